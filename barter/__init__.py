"""Barter marketplace bid ledger service."""
