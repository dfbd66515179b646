"""Warranty calculator tests."""

from datetime import date

import pytest

from stockbook.middleware.exceptions import ValidationFailedError
from stockbook.models.tenant.product import ProductType
from stockbook.services.warranty import (
    add_months,
    build_warranty,
    classify_product_type,
    code_matches,
    has_warranty_code,
    is_warranty_exempt,
    warranty_end_date,
)

TODAY = date(2024, 8, 1)


@pytest.mark.unit
class TestWarrantyDates:

    def test_six_months(self):
        assert warranty_end_date(date(2024, 1, 15), 6) == date(2024, 7, 15)

    def test_crosses_year(self):
        assert add_months(date(2023, 11, 30), 3) == date(2024, 2, 29)

    def test_clamps_to_month_end(self):
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)

    def test_ten_years(self):
        assert warranty_end_date(date(2024, 2, 29), 120) == date(2034, 2, 28)

    @pytest.mark.parametrize("months", [0, 121, -1])
    def test_duration_out_of_range(self, months):
        with pytest.raises(ValidationFailedError):
            warranty_end_date(date(2024, 1, 1), months)


@pytest.mark.unit
class TestBuildWarranty:

    def test_valid_line(self):
        terms = build_warranty(
            label="Exide N70", code="WX-1001",
            start_date=date(2024, 1, 15), duration_months=6, today=TODAY,
        )
        assert terms.end_date == date(2024, 7, 15)
        assert terms.to_json() == {
            "code": "WX-1001",
            "start_date": "2024-01-15",
            "end_date": "2024-07-15",
            "duration_months": 6,
        }

    @pytest.mark.parametrize("code", [None, "", "No Warranty", "n/a", "NONE"])
    def test_no_warranty_codes(self, code):
        assert build_warranty(
            label="x", code=code, start_date=None, duration_months=None, today=TODAY,
        ) is None

    def test_short_code_rejected(self):
        with pytest.raises(ValidationFailedError, match="at least 3 characters"):
            build_warranty(
                label="Exide N70", code="AB",
                start_date=date(2024, 1, 1), duration_months=6, today=TODAY,
            )

    def test_missing_start_date(self):
        with pytest.raises(ValidationFailedError, match="start date is required"):
            build_warranty(
                label="Exide N70", code="WX-1",
                start_date=None, duration_months=6, today=TODAY,
            )

    def test_future_start_date(self):
        with pytest.raises(ValidationFailedError, match="future"):
            build_warranty(
                label="Exide N70", code="WX-1",
                start_date=date(2024, 8, 2), duration_months=6, today=TODAY,
            )

    def test_bad_duration_names_line(self):
        with pytest.raises(ValidationFailedError, match="Exide N70"):
            build_warranty(
                label="Exide N70", code="WX-1",
                start_date=date(2024, 1, 1), duration_months=200, today=TODAY,
            )


@pytest.mark.unit
class TestClassification:

    @pytest.mark.parametrize("series", ["Tonic 1L", "500ml", "Distilled", "Battery Water"])
    def test_tonic_series(self, series):
        assert classify_product_type(series) == ProductType.TONIC

    @pytest.mark.parametrize("series", ["N70", "NS40", None])
    def test_battery_series(self, series):
        assert classify_product_type(series) == ProductType.BATTERY

    def test_tonic_is_exempt(self):
        assert is_warranty_exempt(ProductType.TONIC)
        assert is_warranty_exempt("tonic")
        assert not is_warranty_exempt(ProductType.BATTERY)

    def test_has_warranty_code(self):
        assert has_warranty_code("WX-1")
        assert not has_warranty_code("  no warranty ")


@pytest.mark.unit
class TestCodeMatching:

    def test_exact(self):
        assert code_matches("WX-1001", "WX-1001")

    def test_member_of_list(self):
        assert code_matches("AB12 CD34, EF56", "CD34")
        assert code_matches("AB12 CD34, EF56", "EF56")

    def test_adjacent_pair(self):
        assert code_matches("AB12 CD34 EF56", "AB12 CD34")

    def test_substring_is_not_a_match(self):
        assert not code_matches("AB123", "AB12")
        assert not code_matches(None, "AB12")
