"""
Inventory models.

- IngredientMovement: append-only ingredient ledger; current stock is
  aggregated from it on demand.
- StockMovement: append-only product ledger.
- ProductStock: materialized quantity per product variant, upserted in the
  same transaction as each StockMovement.
- IngredientStock: ingredient lots, mutated directly (no ledger).
"""
