"""Management CLI.

Usage:
    python -m stockbook.cli list-clients                          # Show all clients
    python -m stockbook.cli sync-audit [CLIENT_ID]                # Audit one or all clients
    python -m stockbook.cli import-legacy-stock CLIENT_ID FILE    # Load legacy stock JSON
"""

import asyncio
import json
import sys

from sqlalchemy import select

from stockbook.database import async_session
from stockbook.models.public.client import Client
from stockbook.services.sync_audit import run_sync_audit, sync_message
from stockbook.utils.legacy_stock import import_legacy_stock


async def get_clients() -> list[Client]:
    async with async_session() as db:
        result = await db.execute(select(Client).order_by(Client.name))
        return list(result.scalars().all())


async def list_clients():
    clients = await get_clients()
    for c in clients:
        flag = "" if c.is_active else "  (inactive)"
        print(f"  {c.id}  {c.name}{flag}")
    print(f"\n{len(clients)} client(s)")


async def sync_audit(client_id: str | None = None):
    """Run the sales–stock audit and print a short report per client."""
    client_ids = [client_id] if client_id else [c.id for c in await get_clients() if c.is_active]
    if not client_ids:
        print("No clients found.")
        return

    for cid in client_ids:
        async with async_session() as db:
            report = await run_sync_audit(db, cid)
        print(f"  {cid}: {sync_message(report)}")
        for issue in report["sync_issues"]:
            print(
                f"    [{issue['severity']}] {issue['product']}: "
                f"stock says {issue['stock_sold_count']}, sales say {issue['actual_sales']}"
            )


async def import_legacy(client_id: str, path: str):
    with open(path, encoding="utf-8") as fh:
        documents = json.load(fh)
    if isinstance(documents, dict):
        documents = [documents]

    async with async_session() as db:
        counts = await import_legacy_stock(db, client_id, documents)
        await db.commit()
    print(f"  Created {counts['created']}, updated {counts['updated']} stock entries")


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    args = sys.argv[2:]
    if cmd == "list-clients":
        asyncio.run(list_clients())
    elif cmd == "sync-audit":
        asyncio.run(sync_audit(args[0] if args else None))
    elif cmd == "import-legacy-stock" and len(args) == 2:
        asyncio.run(import_legacy(args[0], args[1]))
    else:
        print("Usage: python -m stockbook.cli [list-clients|sync-audit [CLIENT_ID]|import-legacy-stock CLIENT_ID FILE]")
