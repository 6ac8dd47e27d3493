"""Order booker sales ledger: daily entries, returns, orders and monthly targets on SQLite."""

__version__ = "1.0.0"
