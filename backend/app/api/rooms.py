"""HTTP view of the public room directory."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from app.schemas.rooms import PublicRoomRead
from app.services.watch_party import get_watch_party_service
from framesync.realtime.service import WatchPartyService

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.get("/public", response_model=List[PublicRoomRead], response_model_by_alias=True)
def list_public_rooms(
    service: WatchPartyService = Depends(get_watch_party_service),
) -> List[dict]:
    """Return the same snapshot that ``publicRoomsList`` pushes to clients."""

    return service.directory.snapshot()
