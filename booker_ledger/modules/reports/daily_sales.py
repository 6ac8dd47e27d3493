# booker_ledger/modules/reports/daily_sales.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from ...database.repositories.reporting_repo import ReportingRepo
from ...utils.helpers import to_iso_date
from ..ledger.calculations import percent


@dataclass
class DailySalesItem:
    product_id: str
    product_name: str
    company_name: Optional[str]
    sell_price: float
    cost_price: float
    total_cartons: float
    return_cartons: float
    net_cartons: float
    total_amount: float
    return_amount: float
    net_amount: float
    profit: float
    profit_margin: float


@dataclass
class DailySalesSummary:
    total_cartons: float = 0.0
    total_return_cartons: float = 0.0
    total_net_cartons: float = 0.0
    total_amount: float = 0.0
    total_return_amount: float = 0.0
    total_net_amount: float = 0.0
    total_profit: float = 0.0
    overall_profit_margin: float = 0.0


class DailySalesReport:
    """
    Product-wise sales from order items.

    Profit is on the unit basis: net amount minus the cost of the units that
    were not returned ((quantity - return_quantity) * item cost price).
    """

    def __init__(self, repo: ReportingRepo) -> None:
        self.repo = repo

    def items(
        self,
        date_from=None,
        date_to=None,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> List[DailySalesItem]:
        rows = self.repo.product_sales(
            to_iso_date(date_from) if date_from else None,
            to_iso_date(date_to) if date_to else None,
            list(order_booker_ids) if order_booker_ids is not None else None,
        )
        out = []
        for r in rows:
            net_amount = float(r["total_amount"]) - float(r["return_amount"])
            net_cost = float(r["total_cost"]) - float(r["return_cost"])
            profit = net_amount - net_cost
            out.append(DailySalesItem(
                product_id=r["product_id"],
                product_name=r["product_name"],
                company_name=r["company_name"],
                sell_price=float(r["sell_price"]),
                cost_price=float(r["cost_price"]),
                total_cartons=float(r["total_cartons"]),
                return_cartons=float(r["return_cartons"]),
                net_cartons=float(r["total_cartons"]) - float(r["return_cartons"]),
                total_amount=float(r["total_amount"]),
                return_amount=float(r["return_amount"]),
                net_amount=net_amount,
                profit=profit,
                profit_margin=percent(profit, net_amount) if net_amount > 0 else 0.0,
            ))
        return out

    def summary(
        self,
        date_from=None,
        date_to=None,
        order_booker_ids: Optional[Iterable[str]] = None,
    ) -> DailySalesSummary:
        s = DailySalesSummary()
        for it in self.items(date_from, date_to, order_booker_ids):
            s.total_cartons += it.total_cartons
            s.total_return_cartons += it.return_cartons
            s.total_amount += it.total_amount
            s.total_return_amount += it.return_amount
            s.total_profit += it.profit
        s.total_net_cartons = s.total_cartons - s.total_return_cartons
        s.total_net_amount = s.total_amount - s.total_return_amount
        if s.total_net_amount > 0:
            s.overall_profit_margin = percent(s.total_profit, s.total_net_amount)
        return s
