"""Batch-ledger reconciliation and sales analytics."""
