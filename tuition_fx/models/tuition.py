from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class TuitionDisplay(BaseModel):
    """Rendered tuition strings for a program card."""

    primary: str
    secondary: Optional[str] = None
    is_real_time: bool = False
    currency: str
    is_home_currency: bool = False


class ConversionResult(BaseModel):
    original_amount: float
    from_currency: str
    to_currency: str
    rate: float
    converted_amount: float
    source: str
