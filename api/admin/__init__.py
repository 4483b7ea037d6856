"""Admin dashboard API endpoints."""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from auth import CustomerManager
from maps import MapManager
from orders import (
    PackageManager,
    OrderManager,
    OrderValidationError,
    PackageNotFoundError,
    PackageConflictError,
    PackageInUseError
)
from ..dependencies import (
    get_customer_manager,
    get_map_manager,
    get_package_manager,
    get_order_manager
)

# Create router
router = APIRouter(
    prefix="/admin",
    tags=["Admin"]
)

class CreatePackageRequest(BaseModel):
    """Request model for creating a package."""
    name: Optional[str] = None
    price: Optional[Decimal] = None
    allowed_maps: Optional[int] = None
    priority: int = 0
    active: bool = True

class UpdatePackageRequest(BaseModel):
    """Request model for updating a package; only sent fields change."""
    name: Optional[str] = None
    price: Optional[Decimal] = None
    allowed_maps: Optional[int] = None
    priority: Optional[int] = None
    active: Optional[bool] = None

@router.get("/maps")
async def list_maps(
    manager: MapManager = Depends(get_map_manager)
):
    """List every map with owner details and zone count."""
    maps = await manager.list_for_admin()
    return {"success": True, "maps": maps, "total": len(maps)}

@router.get("/orders")
async def list_orders(
    customer_id: Optional[int] = Query(None),
    manager: OrderManager = Depends(get_order_manager)
):
    """List orders, optionally for one customer."""
    orders = await manager.list_orders(customer_id)
    return {"success": True, "orders": orders}

@router.get("/stats")
async def get_stats(
    manager: OrderManager = Depends(get_order_manager)
):
    """Dashboard totals and recent map activity."""
    stats = await manager.get_stats()
    return {"success": True, "stats": stats}

@router.get("/customers")
async def list_customers(
    manager: CustomerManager = Depends(get_customer_manager)
):
    """List customers with map count and current package."""
    customers = await manager.list_customers()
    return {"success": True, "customers": customers}

@router.get("/packages")
async def list_packages(
    manager: PackageManager = Depends(get_package_manager)
):
    """List all packages, inactive ones included."""
    packages = await manager.list_packages()
    return {"success": True, "packages": packages}

@router.post("/packages", status_code=status.HTTP_201_CREATED)
async def create_package(
    request: CreatePackageRequest,
    manager: PackageManager = Depends(get_package_manager)
):
    """Create a package."""
    if not request.name or request.price is None or request.allowed_maps is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="name, price and allowed_maps are required"
        )

    try:
        package = await manager.create_package(**request.model_dump())
    except OrderValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except PackageConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )
    return {"success": True, "package": package}

@router.put("/packages/{package_id}")
async def update_package(
    package_id: int,
    request: UpdatePackageRequest,
    manager: PackageManager = Depends(get_package_manager)
):
    """Update a package."""
    fields = {
        key: value
        for key, value in request.model_dump(exclude_unset=True).items()
        if value is not None
    }

    try:
        package = await manager.update_package(package_id, **fields)
    except OrderValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except PackageNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except PackageConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )
    return {"success": True, "package": package}

@router.delete("/packages/{package_id}")
async def delete_package(
    package_id: int,
    manager: PackageManager = Depends(get_package_manager)
):
    """Delete a package no order references."""
    try:
        await manager.delete_package(package_id)
    except PackageInUseError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except PackageNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    return {"success": True, "message": "Package deleted successfully"}
