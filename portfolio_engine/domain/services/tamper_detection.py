"""
Tamper detection for client-echoed allocation totals.

The server state is authoritative; this only reports and logs differences.
"""

import logging
from decimal import Decimal
from typing import Optional

from portfolio_engine.domain.models import ClientTotals, Portfolio, TamperIssue, TamperReport

logger = logging.getLogger(__name__)

MONEY_TOLERANCE = Decimal("0.01")


def detect_tampering(client: Optional[ClientTotals], server: Portfolio) -> TamperReport:
    if client is None:
        return TamperReport()

    issues = []
    if client.cash_balance is not None:
        if abs(client.cash_balance - server.cash_balance) > MONEY_TOLERANCE:
            issues.append(TamperIssue("cash_balance", None, str(client.cash_balance), str(server.cash_balance)))

    if client.current_value is not None:
        server_value = server.computed_value()
        if abs(client.current_value - server_value) > MONEY_TOLERANCE:
            issues.append(TamperIssue("current_value", None, str(client.current_value), str(server_value)))

    for symbol, quantity in client.quantities:
        holding = server.find_holding(symbol.upper())
        server_quantity = holding.quantity if holding else 0
        if quantity != server_quantity:
            issues.append(TamperIssue("quantity", symbol.upper(), str(quantity), str(server_quantity)))

    if issues:
        logger.warning(
            f"🚨 Client totals differ from server for portfolio {server.name}: "
            + ", ".join(f"{i.field}{'[' + i.symbol + ']' if i.symbol else ''} "
                        f"client={i.client_value} server={i.server_value}" for i in issues)
        )
    return TamperReport(issues=tuple(issues))
