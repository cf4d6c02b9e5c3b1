from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from currency_proxy.core.errors import ValidationError
from currency_proxy.models import ConvertRequest, ConvertResponse, ErrorResponse
from currency_proxy.services.rates.conversion import ConversionCoordinator

"""Conversion router.

Endpoints:
    - POST /convert -> {source, target, date?, exchangeRate, fromCache, convertedAmount?}

Errors are raised, not returned: ValidationError maps to 400 and ProviderError
to 500 through the handlers registered in create_app.
"""

router = APIRouter(tags=["conversion"])
logger = logging.getLogger("app.routers.convert")

MISSING_CURRENCIES_MESSAGE = "source and target currencies are required in the request body"


def get_coordinator(request: Request) -> ConversionCoordinator:
    return request.app.state.coordinator


@router.post(
    "/convert",
    response_model=ConvertResponse,
    response_model_exclude_none=True,
    summary="Convert between two currencies, served from cache when possible",
    responses={
        400: {"model": ErrorResponse, "description": "source or target missing"},
        500: {"model": ErrorResponse, "description": "provider failure"},
    },
)
async def convert_currency(
    payload: Optional[ConvertRequest] = None,
    coordinator: ConversionCoordinator = Depends(get_coordinator),
):
    payload = payload or ConvertRequest()
    if not payload.source or not payload.target:
        raise ValidationError(MISSING_CURRENCIES_MESSAGE)

    result = await coordinator.convert(payload.source, payload.target, payload.date)
    return ConvertResponse(
        source=result.source,
        target=result.target,
        date=result.date,
        exchangeRate=result.exchange_rate,
        fromCache=result.from_cache,
        convertedAmount=result.converted_amount,
    )
