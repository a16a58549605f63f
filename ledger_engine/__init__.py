"""Ledger Transaction Engine: account balances, money movement and scheduled banking jobs."""
