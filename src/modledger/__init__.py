"""Moderation action ledger and display directive resolution."""

__version__ = "0.1.0"
