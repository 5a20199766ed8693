"""
Enum Utilities for VARCHAR-based Status Fields

Status-like columns (order status, delivery method, warehouse, customer
type ...) are stored as plain VARCHAR. Python ``str`` enums validate API
input; the database holds the enum ``.value`` string.

INPUT (API Request):
    Pydantic Enum → .value → String → Database
    Example: OrderStatus.SHIPPED → "shipped" → VARCHAR

OUTPUT (API Response):
    Database → String → Return directly
"""

from enum import Enum
from typing import Any, Optional, Type, TypeVar


T = TypeVar('T', bound=Enum)


def get_enum_value(value: Any) -> Optional[str]:
    """
    Safely get string value from an enum or string.

    Examples:
        >>> get_enum_value(OrderStatus.SHIPPED)
        'shipped'
        >>> get_enum_value("shipped")
        'shipped'
        >>> get_enum_value(None)
        None
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)


def to_enum(value: Any, enum_class: Type[T]) -> Optional[T]:
    """
    Convert a string value to an enum instance, or None if it is not a member.

    Examples:
        >>> to_enum("bezo", Warehouse)
        Warehouse.BEZO
        >>> to_enum("prague", Warehouse)
        None
    """
    if value is None:
        return None
    if isinstance(value, enum_class):
        return value
    try:
        return enum_class(value)
    except (ValueError, KeyError):
        return None


def enum_comment(enum_class: Type[Enum]) -> str:
    """
    Generate a comment string for a VARCHAR column.

    Examples:
        >>> enum_comment(Warehouse)
        'bratislava, ruzomberok, bezo'
    """
    return ", ".join(e.value for e in enum_class)

