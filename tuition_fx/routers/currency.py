from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from typing import Any, Dict

from tuition_fx.models.rates import CacheStats
from tuition_fx.models.tuition import ConversionResult, TuitionDisplay
from tuition_fx.services.rates.conversion import CurrencyFacade

"""Currency router for dashboard widgets.

Endpoints:
    - GET /currency/convert   -> converted amount (live pipeline or static table)
    - GET /currency/format    -> display string for an amount
    - GET /currency/tuition   -> primary/secondary tuition strings for a program card
    - GET /currency/quota     -> live API budget for the current window
    - GET /currency/cache     -> cache statistics
    - DELETE /currency/cache  -> drop cached rates

All endpoints delegate to the single facade created at startup; none of them
can fail because of the upstream rate API.
"""

router = APIRouter(prefix="/currency", tags=["currency"])


def get_facade(request: Request) -> CurrencyFacade:
    return request.app.state.facade


@router.get("/convert", summary="Convert an amount between currencies")
async def convert(
    amount: float = Query(..., description="Amount in from_currency"),
    from_currency: str = Query(..., min_length=1, max_length=8),
    to_currency: str = Query(..., min_length=1, max_length=8),
    live: bool = Query(True, description="False uses the static table only"),
    facade: CurrencyFacade = Depends(get_facade),
) -> ConversionResult:
    if live:
        return await facade.convert_detailed(amount, from_currency, to_currency)
    return facade.convert_static(amount, from_currency, to_currency)


@router.get("/format", summary="Format an amount in a currency")
async def format_amount(
    amount: float = Query(...),
    currency: str = Query(..., min_length=1, max_length=8),
    convert_to: str | None = Query(None, max_length=8),
    facade: CurrencyFacade = Depends(get_facade),
) -> Dict[str, str]:
    text = await facade.format_async(amount, currency, convert_to=convert_to)
    return {"formatted": text}


@router.get("/tuition", summary="Tuition display strings for a program")
async def tuition(
    amount: float = Query(...),
    country: str = Query(""),
    show_conversion: bool = Query(True),
    facade: CurrencyFacade = Depends(get_facade),
) -> TuitionDisplay:
    return await facade.display_tuition(amount, country, show_conversion=show_conversion)


@router.get("/quota", summary="Live rate API budget")
async def quota(facade: CurrencyFacade = Depends(get_facade)) -> Dict[str, Any]:
    state = facade.quota_status()
    return {
        "used": state.used,
        "limit": state.limit,
        "remaining": state.remaining,
        "window_reset_at": state.window_reset_at.isoformat(),
    }


@router.get("/cache", summary="Rate cache statistics")
async def cache_stats(facade: CurrencyFacade = Depends(get_facade)) -> CacheStats:
    return facade.cache_stats()


@router.delete("/cache", summary="Clear cached rates")
async def clear_cache(facade: CurrencyFacade = Depends(get_facade)) -> Dict[str, str]:
    facade.clear_cache()
    return {"status": "cleared"}
