# database/repositories/__init__.py
"""
Repository layer public API.

Usage:
    from booker_ledger.database.repositories import (
        # Reference data
        CompaniesRepo, Company, ProductsRepo, Product,
        OrderBookersRepo, OrderBooker,
        # Ledger
        DailyEntriesRepo, DailyEntry, DailyEntryItem,
        OrdersRepo, Order, OrderItem, OrderSummary,
        MonthlyTargetsRepo, MonthlyTarget,
        # Reports
        ReportingRepo,
    )

Every repository takes the open Database handle and, optionally, a
ChangeNotifier that is told about each committed write.
"""

from .base import UNSET

# ---------------- Companies ----------------
from .companies_repo import CompaniesRepo, Company

# ---------------- Products -----------------
from .products_repo import ProductsRepo, Product

# -------------- Order bookers --------------
from .order_bookers_repo import OrderBookersRepo, OrderBooker

# ------------- Daily entries ---------------
from .daily_entries_repo import DailyEntriesRepo, DailyEntry, DailyEntryItem, ReturnableItem

# ------------------ Orders -----------------
from .orders_repo import OrdersRepo, Order, OrderItem, OrderSummary

# -------------- Monthly targets ------------
from .monthly_targets_repo import MonthlyTargetsRepo, MonthlyTarget

# ----------------- Reporting ---------------
from .reporting_repo import ReportingRepo

__all__ = [
    "UNSET",
    # companies_repo
    "CompaniesRepo",
    "Company",
    # products_repo
    "ProductsRepo",
    "Product",
    # order_bookers_repo
    "OrderBookersRepo",
    "OrderBooker",
    # daily_entries_repo
    "DailyEntriesRepo",
    "DailyEntry",
    "DailyEntryItem",
    "ReturnableItem",
    # orders_repo
    "OrdersRepo",
    "Order",
    "OrderItem",
    "OrderSummary",
    # monthly_targets_repo
    "MonthlyTargetsRepo",
    "MonthlyTarget",
    # reporting_repo
    "ReportingRepo",
]
