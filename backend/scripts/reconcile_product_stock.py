"""
Compare every materialized product stock row with a replay of its ledger.

Run locally:
  PYTHONPATH=backend python backend/scripts/reconcile_product_stock.py           # report only
  PYTHONPATH=backend python backend/scripts/reconcile_product_stock.py --repair  # overwrite drifted rows
"""

from __future__ import annotations

import asyncio
import sys

from sqlalchemy import select

from db.database import async_session_maker, ProductStock
from services.product_ledger import reconcile_stock


async def main(repair: bool) -> None:
    async with async_session_maker() as db:
        res = await db.execute(select(ProductStock.product_variant_id))
        variant_ids = [v for (v,) in res.all()]

    drifted = 0
    for variant_id in variant_ids:
        async with async_session_maker() as db:
            report = await reconcile_stock(db, variant_id, repair=repair)
        if not report["in_sync"]:
            drifted += 1
            print(
                f"{variant_id}: stock {report['materialized_quantity']} != ledger {report['ledger_quantity']}"
                + (" (repaired)" if report["repaired"] else "")
            )

    print(f"Done. Rows checked: {len(variant_ids)}. Drifted: {drifted}.")


if __name__ == "__main__":
    asyncio.run(main(repair="--repair" in sys.argv[1:]))
