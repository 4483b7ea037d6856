"""FastAPI dependencies building managers from the app's pool.

Tests replace these through ``app.dependency_overrides``.
"""

from typing import Optional

from asyncpg.pool import Pool
from fastapi import Depends, HTTPException, Request, status

from auth import CustomerManager, AdminManager
from maps import MapManager
from zones import ZoneManager
from orders import PackageManager, OrderManager

def get_pool(request: Request) -> Pool:
    """Get the pool owned by the app."""
    pool = request.app.state.pool
    if pool is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not available"
        )
    return pool

def get_acquire_timeout(request: Request) -> Optional[float]:
    """Seconds a request may wait for a pooled connection."""
    return request.app.state.settings.get('acquire_timeout')

def get_customer_manager(
    pool: Pool = Depends(get_pool),
    timeout: Optional[float] = Depends(get_acquire_timeout)
) -> CustomerManager:
    return CustomerManager(pool, timeout)

def get_admin_manager(
    pool: Pool = Depends(get_pool),
    timeout: Optional[float] = Depends(get_acquire_timeout)
) -> AdminManager:
    return AdminManager(pool, timeout)

def get_map_manager(
    pool: Pool = Depends(get_pool),
    timeout: Optional[float] = Depends(get_acquire_timeout)
) -> MapManager:
    return MapManager(pool, timeout)

def get_zone_manager(
    pool: Pool = Depends(get_pool),
    timeout: Optional[float] = Depends(get_acquire_timeout)
) -> ZoneManager:
    return ZoneManager(pool, timeout)

def get_package_manager(
    pool: Pool = Depends(get_pool),
    timeout: Optional[float] = Depends(get_acquire_timeout)
) -> PackageManager:
    return PackageManager(pool, timeout)

def get_order_manager(
    pool: Pool = Depends(get_pool),
    timeout: Optional[float] = Depends(get_acquire_timeout)
) -> OrderManager:
    return OrderManager(pool, timeout)
