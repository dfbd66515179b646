"""Stock ledger tests: conditional decrements, restores and intake."""

import pytest

from conftest import fresh_stock
from stockbook.middleware.exceptions import (
    InsufficientStockError,
    ResourceNotFoundError,
    ValidationFailedError,
)
from stockbook.services import stock_ledger
from stockbook.services.stock_ledger import StockKey


@pytest.mark.integration
@pytest.mark.asyncio
class TestStockLedger:

    async def test_sale_then_restore_round_trips(self, db_session, test_client_org, battery):
        key = StockKey(product_id=battery["product_id"])

        entry = await stock_ledger.decrement_and_record_sale(db_session, test_client_org, key, 5)
        assert (entry.in_stock, entry.sold_count) == (5, 5)

        entry = await stock_ledger.restore_from_sale(db_session, test_client_org, key, 5)
        assert (entry.in_stock, entry.sold_count) == (10, 0)

    async def test_brand_series_key_hits_same_row(self, db_session, test_client_org, battery):
        key = StockKey(brand_name="Exide", series_name="N70")

        await stock_ledger.decrement_and_record_sale(db_session, test_client_org, key, 2)

        entry = await fresh_stock(db_session, battery["entry_id"])
        assert entry.in_stock == 8
        assert entry.sold_count == 2

    async def test_insufficient_stock_changes_nothing(self, db_session, test_client_org, battery):
        key = StockKey(product_id=battery["product_id"])

        with pytest.raises(InsufficientStockError) as exc_info:
            await stock_ledger.decrement_and_record_sale(db_session, test_client_org, key, 11)

        assert exc_info.value.available == 10
        assert "Available: 10, Requested: 11" in exc_info.value.message
        entry = await fresh_stock(db_session, battery["entry_id"])
        assert (entry.in_stock, entry.sold_count) == (10, 0)

    async def test_depleted_stock_message(self, db_session, test_client_org, battery):
        key = StockKey(product_id=battery["product_id"])
        await stock_ledger.decrement_and_record_sale(db_session, test_client_org, key, 10)

        with pytest.raises(InsufficientStockError, match="already depleted"):
            await stock_ledger.check_available(db_session, test_client_org, key, 1)

    @pytest.mark.parametrize("qty", [0, -2])
    async def test_non_positive_quantity(self, db_session, test_client_org, battery, qty):
        key = StockKey(product_id=battery["product_id"])
        with pytest.raises(ValidationFailedError):
            await stock_ledger.decrement_and_record_sale(db_session, test_client_org, key, qty)

    async def test_restore_floors_sold_count_at_zero(self, db_session, test_client_org, battery):
        key = StockKey(product_id=battery["product_id"])
        await stock_ledger.decrement_and_record_sale(db_session, test_client_org, key, 2)

        entry = await stock_ledger.restore_from_sale(db_session, test_client_org, key, 5)

        assert entry.in_stock == 13
        assert entry.sold_count == 0

    async def test_receive_leaves_sold_count(self, db_session, test_client_org, battery):
        key = StockKey(product_id=battery["product_id"])
        await stock_ledger.decrement_and_record_sale(db_session, test_client_org, key, 4)

        entry = await stock_ledger.receive_stock(db_session, test_client_org, key, 6)

        assert (entry.in_stock, entry.sold_count) == (12, 4)

    async def test_other_clients_stock_is_invisible(self, db_session, other_client_org, battery):
        key = StockKey(product_id=battery["product_id"])
        with pytest.raises(ResourceNotFoundError):
            await stock_ledger.decrement_and_record_sale(db_session, other_client_org, key, 1)

    async def test_key_requires_identity(self):
        with pytest.raises(ValueError):
            StockKey(brand_name="Exide")
