"""Map API endpoints."""

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from maps import (
    MapManager,
    MapValidationError,
    MapNotFoundError,
    MapCodeConflictError
)
from zones import ZoneManager
from ..dependencies import get_map_manager, get_zone_manager

# Create router
router = APIRouter(
    prefix="/map",
    tags=["Maps"]
)

class CreateMapRequest(BaseModel):
    """Request model for creating a map."""
    title: Optional[str] = None
    customer_id: Optional[int] = None
    description: Optional[str] = None
    country: Optional[str] = None
    map_data: Optional[Any] = None
    map_bounds: Optional[Any] = None
    active: bool = True
    map_code: Optional[str] = None

class UpdateMapRequest(BaseModel):
    """Request model for updating a map; only sent fields change."""
    title: Optional[str] = None
    customer_id: Optional[int] = None
    description: Optional[str] = None
    country: Optional[str] = None
    map_data: Optional[Any] = None
    map_bounds: Optional[Any] = None
    active: Optional[bool] = None
    map_code: Optional[str] = None

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_map(
    request: CreateMapRequest,
    manager: MapManager = Depends(get_map_manager)
):
    """Create a map owned by a customer."""
    try:
        record = await manager.create_map(**request.model_dump())
    except MapValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except MapCodeConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )
    return {"success": True, "map": record}

@router.put("/{map_id}")
async def update_map(
    map_id: int,
    request: UpdateMapRequest,
    manager: MapManager = Depends(get_map_manager)
):
    """Update a map owned by the requesting customer."""
    if not request.title or not request.title.strip() or request.customer_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title and customer_id are required."
        )

    fields = request.model_dump(exclude_unset=True, exclude={'customer_id'})
    if fields.get('active', False) is None:
        del fields['active']

    try:
        record = await manager.update_map(map_id, request.customer_id, **fields)
    except MapValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except MapNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except MapCodeConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )
    return {"success": True, "record": record}

@router.get("/{map_id}")
async def get_map(
    map_id: int,
    manager: MapManager = Depends(get_map_manager)
):
    """Get a map by id."""
    try:
        record = await manager.get_map(map_id)
    except MapNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    return {"success": True, "map": record}

@router.delete("/{map_id}")
async def delete_map(
    map_id: int,
    manager: MapManager = Depends(get_map_manager)
):
    """Delete a map together with its zones."""
    try:
        await manager.delete_map(map_id)
    except MapNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    return {"success": True, "message": "Map deleted successfully."}

@router.get("/{map_id}/zones")
async def get_map_zones(
    map_id: int,
    manager: ZoneManager = Depends(get_zone_manager)
):
    """List a map's zones, oldest first."""
    zones = await manager.list_by_map(map_id)
    return {"success": True, "zones": zones}
