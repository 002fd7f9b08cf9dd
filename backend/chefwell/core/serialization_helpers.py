"""
Generic serialization helpers.
No business logic here, formatting only.
"""
from datetime import date, datetime
from decimal import Decimal


def serialize_decimal(value):
    """Decimal -> float for JSON responses"""
    if value is None:
        return None
    return float(value)


def serialize_exact(value):
    """Decimal -> string, for stored snapshots that must not lose cents"""
    if value is None:
        return None
    return format(Decimal(value).quantize(Decimal("0.01")), "f")


def serialize_datetime(value):
    """datetime -> ISO string for JSON responses"""
    if value is None:
        return None
    return value.isoformat()


def serialize_value(value):
    if isinstance(value, Decimal):
        return serialize_decimal(value)
    if isinstance(value, (datetime, date)):
        return serialize_datetime(value)
    return value


def serialize_model(obj, fields):
    """Plain dict of the given attributes, JSON-safe."""
    return {field: serialize_value(getattr(obj, field)) for field in fields}
