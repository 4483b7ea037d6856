"""Package and order API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from orders import (
    PackageManager,
    OrderManager,
    OrderValidationError,
    PackageNotFoundError
)
from ..dependencies import get_package_manager, get_order_manager

# Create router
router = APIRouter(
    tags=["Orders"]
)

class CreateOrderRequest(BaseModel):
    """Request model for purchasing a package."""
    customer_id: Optional[int] = None
    package_id: Optional[int] = None

@router.get("/packages")
async def list_packages(
    manager: PackageManager = Depends(get_package_manager)
):
    """List purchasable packages by priority."""
    packages = await manager.list_active_packages()
    return {"success": True, "packages": packages}

@router.post("/orders", status_code=status.HTTP_201_CREATED)
async def create_order(
    request: CreateOrderRequest,
    manager: OrderManager = Depends(get_order_manager)
):
    """Record a customer's purchase of an active package."""
    try:
        order = await manager.create_order(request.customer_id, request.package_id)
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
    return {"success": True, "order": order}
