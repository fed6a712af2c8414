"""
Stock Ledger - quantity arithmetic and derived stock status.

Pure functions: callers persist the returned (quantity, status) pair in the
same transaction that changes the quantity.

Status partition:
    out-of-stock   quantity <= 0
    low-stock      0 < quantity <= min_quantity
    in-stock       quantity > min_quantity
"""
from typing import NamedTuple

IN_STOCK = 'in-stock'
LOW_STOCK = 'low-stock'
OUT_OF_STOCK = 'out-of-stock'


class LedgerEntry(NamedTuple):
    quantity: int
    status: str


def derive_status(quantity: int, min_quantity: int) -> str:
    if quantity <= 0:
        return OUT_OF_STOCK
    if quantity <= min_quantity:
        return LOW_STOCK
    return IN_STOCK


def apply_delta(current_quantity: int, min_quantity: int, delta: int) -> LedgerEntry:
    """
    Apply a signed delta (negative consumes, positive restocks).

    The resulting quantity is clamped at zero.
    """
    new_quantity = max(0, current_quantity + delta)
    return LedgerEntry(new_quantity, derive_status(new_quantity, min_quantity))


def shortfall(current_quantity: int, delta: int) -> int:
    """Units by which a consuming delta exceeds the quantity on hand."""
    return max(0, -(current_quantity + delta))
