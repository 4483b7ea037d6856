"""Zone API endpoints."""

from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from maps import MapNotFoundError
from zones import (
    ZoneManager,
    ZoneValidationError,
    ZoneNotFoundError,
    BulkSaveError
)
from ..dependencies import get_zone_manager

# Create router
router = APIRouter(
    prefix="/zones",
    tags=["Zones"]
)

class CreateZoneRequest(BaseModel):
    """Request model for creating a zone."""
    map_id: Optional[int] = None
    name: Optional[str] = None
    color: Optional[str] = None
    coordinates: Optional[Any] = None
    customer_id: Optional[int] = None

class UpdateZoneRequest(BaseModel):
    """Request model for updating a zone; omitted fields are kept."""
    name: Optional[str] = None
    color: Optional[str] = None
    coordinates: Optional[Any] = None

class BulkSaveRequest(BaseModel):
    """Request model for saving many zones at once."""
    map_id: Optional[int] = None
    zones: Optional[List[Any]] = None

@router.get("")
async def list_zones(
    map_id: Optional[int] = Query(None),
    manager: ZoneManager = Depends(get_zone_manager)
):
    """List a map's zones, oldest first."""
    if map_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="map_id is required"
        )
    zones = await manager.list_by_map(map_id)
    return {"success": True, "zones": zones}

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_zone(
    request: CreateZoneRequest,
    manager: ZoneManager = Depends(get_zone_manager)
):
    """Create a zone; its owner defaults to the map's owner."""
    try:
        zone = await manager.create_zone(
            map_id=request.map_id,
            name=request.name,
            color=request.color,
            coordinates=request.coordinates,
            customer_id=request.customer_id
        )
    except ZoneValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except MapNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    return {"success": True, "zone": zone}

@router.post("/bulk")
async def bulk_save_zones(
    request: BulkSaveRequest,
    manager: ZoneManager = Depends(get_zone_manager)
):
    """Insert or update many zones in one transaction."""
    if request.zones is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Zones array is required"
        )

    try:
        zones = await manager.bulk_save(request.map_id, request.zones)
    except ZoneValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except (ZoneNotFoundError, MapNotFoundError) as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except BulkSaveError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return {
        "success": True,
        "zones": zones,
        "message": f"{len(zones)} zones saved successfully"
    }

@router.get("/{zone_id}")
async def get_zone(
    zone_id: str,
    manager: ZoneManager = Depends(get_zone_manager)
):
    """Get a zone by id."""
    try:
        zone = await manager.get_zone(zone_id)
    except ZoneNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    return {"success": True, "zone": zone}

@router.put("/{zone_id}")
async def update_zone(
    zone_id: str,
    request: UpdateZoneRequest,
    manager: ZoneManager = Depends(get_zone_manager)
):
    """Update a zone's name, color or coordinates."""
    try:
        zone = await manager.update_zone(
            zone_id,
            name=request.name,
            color=request.color,
            coordinates=request.coordinates
        )
    except ZoneValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except ZoneNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    return {"success": True, "zone": zone}

@router.delete("/{zone_id}")
async def delete_zone(
    zone_id: str,
    manager: ZoneManager = Depends(get_zone_manager)
):
    """Delete a zone."""
    try:
        await manager.delete_zone(zone_id)
    except ZoneNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    return {"success": True, "message": "Zone deleted successfully"}
