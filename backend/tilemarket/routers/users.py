"""User portfolio routes."""

from fastapi import APIRouter, HTTPException

from tilemarket.dependencies import TileViewServiceDep
from tilemarket.errors import UpstreamUnavailable
from tilemarket.models import UserPortfolio

router = APIRouter()


@router.get("/{address}/tiles", response_model=UserPortfolio)
async def get_user_portfolio(address: str, service: TileViewServiceDep):
    try:
        return await service.user_portfolio(address)
    except UpstreamUnavailable as exc:
        raise HTTPException(503, str(exc)) from exc
