"""Market summary routes."""

from fastapi import APIRouter, HTTPException

from tilemarket.dependencies import TileViewServiceDep
from tilemarket.errors import UpstreamUnavailable
from tilemarket.models import MarketSummary

router = APIRouter()


@router.get("/summary", response_model=MarketSummary)
async def get_market_summary(service: TileViewServiceDep):
    try:
        return await service.market_summary()
    except UpstreamUnavailable as exc:
        raise HTTPException(503, str(exc)) from exc
