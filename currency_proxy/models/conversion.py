from __future__ import annotations
from typing import Optional

from pydantic import BaseModel, Field


class ConvertRequest(BaseModel):
    # presence is checked by the router (400), not by schema validation
    source: Optional[str] = Field(None, description="Source currency code (e.g. USD)")
    target: Optional[str] = Field(None, description="Target currency code (e.g. EUR)")
    date: Optional[str] = Field(
        None, description="Historical date (YYYY-MM-DD); latest rate when omitted"
    )


class ConvertResponse(BaseModel):
    source: str
    target: str
    date: Optional[str] = Field(None, description="Date resolved by the provider")
    exchangeRate: float
    fromCache: bool
    convertedAmount: Optional[float] = None


class ErrorResponse(BaseModel):
    error: str
