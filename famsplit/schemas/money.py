from decimal import Decimal
from typing import Annotated, Any

from pydantic import BeforeValidator


def _decimal_from_number(value: Any) -> Any:
    # Go through repr so 33.33 arrives as Decimal("33.33"), not its binary expansion.
    if isinstance(value, float):
        return Decimal(repr(value))
    return value


Money = Annotated[Decimal, BeforeValidator(_decimal_from_number)]
