"""
Dependency injection for FastAPI routes.

Provides typed service dependencies that enable IDE navigation (Ctrl+Click).
"""

from typing import Annotated
from fastapi import Request, Depends

from tilemarket.services.views import TileViewService


def get_view_service(request: Request) -> TileViewService:
    return request.app.state.view_service


TileViewServiceDep = Annotated[TileViewService, Depends(get_view_service)]
