from . import calculations

__all__ = ["calculations"]
