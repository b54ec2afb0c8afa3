"""Tile lookup routes."""

from fastapi import APIRouter, HTTPException

from tilemarket.config import settings
from tilemarket.dependencies import TileViewServiceDep
from tilemarket.errors import InvalidIdentity, UpstreamUnavailable
from tilemarket.models import MetadataDocument, ReconciliationSnapshot, TileDetail
from tilemarket.services.identity import normalize

router = APIRouter()


def _parse_identity(raw: str) -> int:
    try:
        return normalize(raw, settings.GRID_ROW_WIDTH)
    except InvalidIdentity as exc:
        raise HTTPException(400, str(exc)) from exc


@router.get("/", response_model=ReconciliationSnapshot)
async def list_tiles(service: TileViewServiceDep):
    try:
        return await service.snapshot()
    except UpstreamUnavailable as exc:
        raise HTTPException(503, str(exc)) from exc


@router.get("/{identity}", response_model=TileDetail)
async def get_tile_detail(identity: str, service: TileViewServiceDep):
    tile_id = _parse_identity(identity)
    try:
        return await service.tile_detail(tile_id)
    except UpstreamUnavailable as exc:
        raise HTTPException(503, str(exc)) from exc


@router.get("/{identity}/metadata", response_model=MetadataDocument)
async def get_tile_metadata(identity: str, service: TileViewServiceDep):
    tile_id = _parse_identity(identity)
    try:
        return await service.tile_metadata(tile_id)
    except UpstreamUnavailable as exc:
        raise HTTPException(503, str(exc)) from exc
