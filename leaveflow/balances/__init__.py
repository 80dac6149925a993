"""Per-employee, per-policy leave balances and the ledger that mutates them."""
