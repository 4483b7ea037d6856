"""Customer dashboard API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status

from maps import MapManager
from orders import OrderManager, NoActivePackageError
from ..dependencies import get_map_manager, get_order_manager

# Create router
router = APIRouter(
    prefix="/customer",
    tags=["Customers"]
)

@router.get("/{customer_id}/maps")
async def get_customer_maps(
    customer_id: int,
    manager: MapManager = Depends(get_map_manager)
):
    """List a customer's maps with zone counts, newest first."""
    maps = await manager.list_maps_for_customer(customer_id)
    return {"success": True, "maps": maps}

@router.get("/{customer_id}/package")
async def get_customer_package(
    customer_id: int,
    manager: OrderManager = Depends(get_order_manager)
):
    """Get the customer's current package."""
    try:
        package = await manager.customer_current_package(customer_id)
    except NoActivePackageError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    return {"success": True, "package": package}

@router.get("/{customer_id}/orders")
async def get_customer_orders(
    customer_id: int,
    manager: OrderManager = Depends(get_order_manager)
):
    """List the customer's orders, newest first."""
    orders = await manager.customer_order_history(customer_id)
    return {"success": True, "orders": orders}
