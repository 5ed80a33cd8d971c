from fastapi import APIRouter, Depends, HTTPException, Request, status

from attendcache.schemas.pagination import CacheStats, InvalidateRequest, InvalidateResponse, SignOutResponse
from attendcache.services.session import CacheContext
from attendcache.utils.log import app_logger

router = APIRouter(tags=["Cache"])


def get_cache_context(request: Request) -> CacheContext:
    """Context built by the application lifespan (overridable in tests)."""
    return request.app.state.cache_context


@router.get("/cache/stats", response_model=CacheStats, summary="Cache diagnostics")
def cache_stats(context: CacheContext = Depends(get_cache_context)) -> CacheStats:
    return context.cache.stats()


@router.post(
    "/cache/invalidate",
    response_model=InvalidateResponse,
    summary="Drop one key or every key under a prefix",
)
def invalidate(payload: InvalidateRequest, context: CacheContext = Depends(get_cache_context)) -> InvalidateResponse:
    if bool(payload.key) == bool(payload.prefix):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="provide exactly one of key or prefix")

    if payload.key:
        removed = 1 if context.cache.invalidate(payload.key) else 0
    else:
        removed = context.cache.invalidate_by_prefix(payload.prefix)

    app_logger.info("api.cache.invalidated", key=payload.key, prefix=payload.prefix, removed=removed)
    return InvalidateResponse(removed=removed)


@router.post("/auth/signout", response_model=SignOutResponse, summary="Flush every cache on sign-out")
def signout(context: CacheContext = Depends(get_cache_context)) -> SignOutResponse:
    flushed = context.end_session()
    return SignOutResponse(status="success", detail=flushed)
