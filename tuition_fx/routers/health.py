from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness and rate subsystem status")
async def health(request: Request):
    settings = request.app.state.settings
    facade = request.app.state.facade
    quota = facade.quota_status()
    return {
        "status": "ok",
        "version": settings.version,
        "rate_provider": settings.exchange_rate_provider,
        "home_currency": facade.home_currency.value,
        "quota_remaining": quota.remaining,
        "cached_rates": facade.cache_stats().entries,
        "breaker": facade.breaker_state().value,
    }
