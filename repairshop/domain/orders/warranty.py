"""Warranty window checks and ordering for orders under warranty"""

from datetime import date, datetime
from typing import Optional, Union

from .statuses import parse_priority

DateLike = Union[date, datetime]


def _as_date(value: Optional[DateLike]) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def is_under_warranty(order, at: Optional[DateLike] = None) -> bool:
    """
    True if the order is covered at `at` (today by default).

    Unlimited warranties always cover. Dated warranties need an end date and
    cover the whole end day. A missing start date leaves the window open until
    the end.
    """
    if order.garantia_ilimitada:
        return True

    start = _as_date(order.garantia_start_date)
    end = _as_date(order.garantia_end_date)
    if end is None:
        return False

    at_day = _as_date(at) or date.today()
    return (start is None or start <= at_day) and at_day <= end


def warranty_sort_key(order) -> tuple:
    """
    Sort key for warranty listings, meant to be used with reverse=True:
    highest priority first, then unlimited before dated, then later end dates first.
    Orders without a priority or end date sort last within their group.
    """
    priority = parse_priority(order.garantia_prioridad)
    end = _as_date(order.garantia_end_date)
    return (
        priority.rank if priority else 0,
        1 if order.garantia_ilimitada else 0,
        end.toordinal() if end else 0,
    )


def sort_by_warranty_priority(orders: list) -> list:
    return sorted(orders, key=warranty_sort_key, reverse=True)


def days_remaining(order, at: Optional[DateLike] = None) -> Optional[int]:
    """Days left on a dated warranty; None for unlimited or undated ones"""
    if order.garantia_ilimitada:
        return None
    end = _as_date(order.garantia_end_date)
    if end is None:
        return None
    at_day = _as_date(at) or date.today()
    return (end - at_day).days


def validate_warranty(
    start: Optional[DateLike],
    end: Optional[DateLike],
    ilimitada: Optional[bool],
    priority: Optional[str] = None,
) -> list[str]:
    """Advisory checks on warranty fields. Returns warnings; nothing is rejected."""
    warnings = []
    start_day = _as_date(start)
    end_day = _as_date(end)

    if start_day and end_day and end_day < start_day:
        warnings.append("Warranty end date is before its start date")
    if ilimitada and end_day:
        warnings.append("Unlimited warranty also has an end date")
    if end_day and not start_day and not ilimitada:
        warnings.append("Warranty has an end date but no start date")
    if priority and not (start_day or end_day or ilimitada):
        warnings.append("Warranty priority set on an order without a warranty window")
    return warnings
