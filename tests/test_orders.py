"""Tests for packages, orders and admin stats (needs MAPIT_TEST_DATABASE_URL)."""

import uuid
from decimal import Decimal

import pytest
import pytest_asyncio

from orders import (
    PackageManager,
    OrderManager,
    PackageNotFoundError,
    PackageConflictError,
    PackageInUseError,
    NoActivePackageError,
    OrderValidationError
)

pytestmark = pytest.mark.asyncio

@pytest_asyncio.fixture
async def package_manager(db_pool):
    """Create and return a PackageManager instance."""
    return PackageManager(db_pool, acquire_timeout=10)

@pytest_asyncio.fixture
async def order_manager(db_pool):
    """Create and return an OrderManager instance."""
    return OrderManager(db_pool, acquire_timeout=10)

@pytest_asyncio.fixture
async def package(package_manager):
    """Create and return a throwaway package."""
    return await package_manager.create_package(
        name=f"test-{uuid.uuid4().hex[:8]}",
        price="9.5",
        allowed_maps=5,
        priority=50
    )

async def test_seeded_packages(package_manager):
    """Test the default tiers exist in priority order."""
    packages = await package_manager.list_active_packages()
    by_name = {p["name"]: p for p in packages}

    assert by_name["free"]["price"] == Decimal("0.00")
    assert by_name["starter"]["allowed_maps"] == 3
    assert by_name["premium"]["price"] == Decimal("15.00")
    priorities = [p["priority"] for p in packages]
    assert priorities == sorted(priorities)

async def test_create_package_rounds_price(package):
    """Test prices are stored with two decimals."""
    assert package["price"] == Decimal("9.50")
    assert package["active"] is True

async def test_create_package_name_conflict(package_manager, package):
    """Test package names are unique."""
    with pytest.raises(PackageConflictError):
        await package_manager.create_package(name=package["name"], price=1, allowed_maps=1)

async def test_inactive_package_is_hidden_and_not_purchasable(package_manager, order_manager, package, customer):
    """Test deactivated packages drop out of the catalog and cannot be bought."""
    updated = await package_manager.update_package(package["package_id"], active=False)
    assert updated["active"] is False
    assert updated["allowed_maps"] == package["allowed_maps"]

    active_ids = [p["package_id"] for p in await package_manager.list_active_packages()]
    assert package["package_id"] not in active_ids
    all_ids = [p["package_id"] for p in await package_manager.list_packages()]
    assert package["package_id"] in all_ids

    with pytest.raises(PackageNotFoundError):
        await order_manager.create_order(customer["customer_id"], package["package_id"])

async def test_update_missing_package(package_manager):
    """Test updating a missing package raises not found."""
    with pytest.raises(PackageNotFoundError):
        await package_manager.update_package(-1, price="1.00")

async def test_create_order_at_package_price(order_manager, package, customer):
    """Test an order is completed at the package's price."""
    order = await order_manager.create_order(customer["customer_id"], package["package_id"])

    assert order["status"] == "completed"
    assert order["total"] == Decimal("9.50")
    assert order["customer_id"] == customer["customer_id"]

async def test_create_order_for_missing_customer(order_manager, package):
    """Test an order needs an existing customer."""
    with pytest.raises(OrderValidationError):
        await order_manager.create_order(-1, package["package_id"])

async def test_current_package_and_history(order_manager, package_manager, package, customer):
    """Test the latest completed order decides the current package."""
    with pytest.raises(NoActivePackageError):
        await order_manager.customer_current_package(customer["customer_id"])

    starter = next(p for p in await package_manager.list_active_packages() if p["name"] == "starter")
    await order_manager.create_order(customer["customer_id"], starter["package_id"])
    await order_manager.create_order(customer["customer_id"], package["package_id"])

    current = await order_manager.customer_current_package(customer["customer_id"])
    assert current["name"] == package["name"]
    assert current["allowed_maps"] == 5

    history = await order_manager.customer_order_history(customer["customer_id"])
    assert [o["package_name"] for o in history] == [package["name"], "starter"]

    orders = await order_manager.list_orders(customer_id=customer["customer_id"])
    assert len(orders) == 2
    assert orders[0]["customer_email"] == customer["email"]
    assert orders[0]["customer_name"] == "Alice A"

async def test_delete_package_in_use(package_manager, order_manager, package, customer):
    """Test packages with orders cannot be deleted."""
    await order_manager.create_order(customer["customer_id"], package["package_id"])

    with pytest.raises(PackageInUseError) as exc_info:
        await package_manager.delete_package(package["package_id"])

    assert exc_info.value.order_count == 1
    assert (await package_manager.get_package(package["package_id"]))["name"] == package["name"]

async def test_delete_unused_package(package_manager, package):
    """Test an unused package can be deleted once."""
    await package_manager.delete_package(package["package_id"])

    with pytest.raises(PackageNotFoundError):
        await package_manager.delete_package(package["package_id"])

async def test_stats(order_manager, package, customer, sample_map):
    """Test dashboard totals count the new rows."""
    await order_manager.create_order(customer["customer_id"], package["package_id"])

    stats = await order_manager.get_stats()

    assert stats["totalCustomers"] >= 1
    assert stats["totalMaps"] >= 1
    assert stats["activeMaps"] >= 1
    assert stats["totalOrders"] >= 1
    assert stats["totalRevenue"] >= Decimal("9.50")
    assert stats["recentActivity"]
    assert all(day["count"] >= 1 for day in stats["recentActivity"])
