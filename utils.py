from decimal import Decimal
from typing import Any


def to_number(value: Any, places: int = 2) -> float:
    # numeric columns come back as Decimal, str or float depending on the driver
    if value is None:
        return 0.0
    if isinstance(value, (Decimal, str)):
        value = Decimal(value)
    return round(float(value), places)
