"""Orders module for managing packages and package purchases.

A package is a priced tier that limits how many maps a customer may own.
An order records a customer buying a package; a customer's current package
is the one from their most recent completed order. No payment processing
happens here: orders are recorded as completed at the package's price.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Any

from asyncpg.pool import Pool
from asyncpg.exceptions import UniqueViolationError, ForeignKeyViolationError

from database import acquire
from database.exceptions import DatabaseError

logger = logging.getLogger(__name__)

ORDER_STATUS_COMPLETED = 'completed'

PACKAGE_COLUMNS = 'package_id, name, price, allowed_maps, priority, active, created_at, updated_at'
ORDER_COLUMNS = 'id, customer_id, package_id, date_time, total, status, created_at, updated_at'

# Fields an admin may set on a package
PACKAGE_FIELDS = ('name', 'price', 'allowed_maps', 'priority', 'active')

RECENT_ACTIVITY_DAYS = 30

class OrderError(Exception):
    """Base class for order-related errors."""
    pass

class OrderValidationError(OrderError):
    """Raised when order or package fields are missing or invalid."""
    pass

class PackageNotFoundError(OrderError):
    """Raised when the requested package is not found or inactive."""
    pass

class PackageConflictError(OrderError):
    """Raised when a package name is already used."""
    pass

class PackageInUseError(OrderError):
    """Raised when deleting a package that orders still reference."""
    def __init__(self, package_id: int, order_count: int):
        super().__init__(package_id, order_count)
        self.package_id = package_id
        self.order_count = order_count

    def __str__(self) -> str:
        return (
            f"Cannot delete package: {self.order_count} order(s) reference it. "
            "Deactivate it instead."
        )

class NoActivePackageError(OrderError):
    """Raised when a customer has no completed order."""
    pass

def _validate_package_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Check and normalize package fields.

    Raises:
        OrderValidationError: If a field is unknown or has an invalid value
    """
    unknown = set(fields) - set(PACKAGE_FIELDS)
    if unknown:
        raise OrderValidationError(f"Unknown package fields: {', '.join(sorted(unknown))}")

    cleaned = dict(fields)
    if 'name' in cleaned:
        name = (cleaned['name'] or '').strip()
        if not name:
            raise OrderValidationError("Package name is required")
        cleaned['name'] = name

    if 'price' in cleaned:
        try:
            price = Decimal(str(cleaned['price']))
        except (InvalidOperation, ValueError):
            raise OrderValidationError(f"Invalid price: {cleaned['price']!r}")
        if not price.is_finite() or price < 0:
            raise OrderValidationError("Price must be a non-negative amount")
        cleaned['price'] = price.quantize(Decimal('0.01'))

    for key in ('allowed_maps', 'priority'):
        if key in cleaned:
            value = cleaned[key]
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise OrderValidationError(f"{key} must be a non-negative integer")

    if 'active' in cleaned and not isinstance(cleaned['active'], bool):
        raise OrderValidationError("active must be true or false")

    return cleaned

class PackageManager:
    """Manages packages."""

    def __init__(self, pool: Pool, acquire_timeout: Optional[float] = None) -> None:
        """Initialize package manager.

        Args:
            pool: Database connection pool
            acquire_timeout: Seconds to wait for a pooled connection
        """
        self.pool = pool
        self.acquire_timeout = acquire_timeout

    async def list_active_packages(self) -> List[Dict[str, Any]]:
        """List purchasable packages ordered by priority."""
        return await self._list('WHERE active = true')

    async def list_packages(self) -> List[Dict[str, Any]]:
        """List all packages, inactive ones included."""
        return await self._list('')

    async def _list(self, where: str) -> List[Dict[str, Any]]:
        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                rows = await conn.fetch(
                    f'''
                    SELECT {PACKAGE_COLUMNS}
                    FROM packages
                    {where}
                    ORDER BY priority ASC, package_id ASC
                    '''
                )
                return [dict(row) for row in rows]
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error listing packages: {e}")
            raise DatabaseError(f"Failed to list packages: {e}")

    async def get_package(self, package_id: int) -> Dict[str, Any]:
        """Get a package by id.

        Raises:
            PackageNotFoundError: If the package does not exist
        """
        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                row = await conn.fetchrow(
                    f'SELECT {PACKAGE_COLUMNS} FROM packages WHERE package_id = $1',
                    package_id
                )
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error getting package {package_id}: {e}")
            raise DatabaseError(f"Failed to get package: {e}")

        if not row:
            raise PackageNotFoundError("Package not found.")
        return dict(row)

    async def create_package(
        self,
        name: str,
        price: Any,
        allowed_maps: int,
        priority: int = 0,
        active: bool = True
    ) -> Dict[str, Any]:
        """Create a package.

        Raises:
            OrderValidationError: If a field is invalid
            PackageConflictError: If the name is already used
        """
        fields = _validate_package_fields({
            'name': name,
            'price': price,
            'allowed_maps': allowed_maps,
            'priority': priority,
            'active': active
        })

        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                row = await conn.fetchrow(
                    f'''
                    INSERT INTO packages (name, price, allowed_maps, priority, active)
                    VALUES ($1, $2, $3, $4, $5)
                    RETURNING {PACKAGE_COLUMNS}
                    ''',
                    fields['name'],
                    fields['price'],
                    fields['allowed_maps'],
                    fields['priority'],
                    fields['active']
                )
            logger.info(f"Created package {row['package_id']} ({row['name']})")
            return dict(row)

        except UniqueViolationError:
            raise PackageConflictError(f"Package {fields['name']} already exists.")
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error creating package: {e}")
            raise DatabaseError(f"Failed to create package: {e}")

    async def update_package(self, package_id: int, **fields: Any) -> Dict[str, Any]:
        """Update a package; omitted fields are kept.

        Raises:
            OrderValidationError: If a field is invalid
            PackageNotFoundError: If the package does not exist
            PackageConflictError: If the new name is already used
        """
        fields = _validate_package_fields(fields)
        if not fields:
            return await self.get_package(package_id)

        columns = [name for name in PACKAGE_FIELDS if name in fields]
        assignments = ', '.join(f"{name} = ${index}" for index, name in enumerate(columns, start=2))

        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                row = await conn.fetchrow(
                    f'''
                    UPDATE packages SET {assignments}, updated_at = now()
                    WHERE package_id = $1
                    RETURNING {PACKAGE_COLUMNS}
                    ''',
                    package_id,
                    *[fields[name] for name in columns]
                )
        except UniqueViolationError:
            raise PackageConflictError(f"Package {fields.get('name')} already exists.")
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error updating package {package_id}: {e}")
            raise DatabaseError(f"Failed to update package: {e}")

        if not row:
            raise PackageNotFoundError("Package not found.")
        logger.info(f"Updated package {package_id}")
        return dict(row)

    async def delete_package(self, package_id: int) -> None:
        """Delete a package that no order references.

        Raises:
            PackageInUseError: If orders reference the package
            PackageNotFoundError: If the package does not exist
        """
        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                async with conn.transaction():
                    order_count = await conn.fetchval(
                        'SELECT COUNT(*) FROM orders WHERE package_id = $1',
                        package_id
                    )
                    if order_count:
                        raise PackageInUseError(package_id, order_count)

                    result = await conn.execute('DELETE FROM packages WHERE package_id = $1', package_id)
                    if result == 'DELETE 0':
                        raise PackageNotFoundError("Package not found.")

            logger.info(f"Deleted package {package_id}")

        except ForeignKeyViolationError:
            # An order was placed between the check and the delete
            raise PackageInUseError(package_id, 1)
        except (OrderError, DatabaseError):
            raise
        except Exception as e:
            logger.error(f"Error deleting package {package_id}: {e}")
            raise DatabaseError(f"Failed to delete package: {e}")

class OrderManager:
    """Manages package orders and dashboard statistics."""

    def __init__(self, pool: Pool, acquire_timeout: Optional[float] = None) -> None:
        """Initialize order manager.

        Args:
            pool: Database connection pool
            acquire_timeout: Seconds to wait for a pooled connection
        """
        self.pool = pool
        self.acquire_timeout = acquire_timeout

    async def create_order(self, customer_id: int, package_id: int) -> Dict[str, Any]:
        """Record a completed purchase of an active package.

        The order total is the package's price at the time of purchase.

        Args:
            customer_id: Purchasing customer
            package_id: Package bought

        Returns:
            The created order

        Raises:
            OrderValidationError: If an id is missing or the customer does not exist
            PackageNotFoundError: If the package does not exist or is inactive
        """
        if customer_id is None or package_id is None:
            raise OrderValidationError("customer_id and package_id are required")

        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                async with conn.transaction():
                    package = await conn.fetchrow(
                        'SELECT package_id, price FROM packages WHERE package_id = $1 AND active = true',
                        package_id
                    )
                    if not package:
                        raise PackageNotFoundError("Package not found or inactive.")

                    row = await conn.fetchrow(
                        f'''
                        INSERT INTO orders (customer_id, package_id, total, status)
                        VALUES ($1, $2, $3, $4)
                        RETURNING {ORDER_COLUMNS}
                        ''',
                        customer_id,
                        package_id,
                        package['price'],
                        ORDER_STATUS_COMPLETED
                    )

            logger.info(f"Created order {row['id']} for customer {customer_id} (package {package_id})")
            return dict(row)

        except ForeignKeyViolationError:
            raise OrderValidationError(f"Customer {customer_id} not found")
        except (OrderError, DatabaseError):
            raise
        except Exception as e:
            logger.error(f"Error creating order: {e}")
            raise DatabaseError(f"Failed to create order: {e}")

    async def customer_order_history(self, customer_id: int) -> List[Dict[str, Any]]:
        """List a customer's orders with package details, newest first."""
        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                rows = await conn.fetch(
                    '''
                    SELECT
                        o.id, o.customer_id, o.package_id, o.date_time, o.total,
                        o.status, o.created_at, o.updated_at,
                        p.name AS package_name,
                        p.allowed_maps
                    FROM orders o
                    JOIN packages p ON p.package_id = o.package_id
                    WHERE o.customer_id = $1
                    ORDER BY o.date_time DESC, o.id DESC
                    ''',
                    customer_id
                )
                return [dict(row) for row in rows]
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error getting orders for customer {customer_id}: {e}")
            raise DatabaseError(f"Failed to get order history: {e}")

    async def customer_current_package(self, customer_id: int) -> Dict[str, Any]:
        """Get the package from a customer's most recent completed order.

        Raises:
            NoActivePackageError: If the customer has no completed order
        """
        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                row = await conn.fetchrow(
                    '''
                    SELECT
                        o.id, o.customer_id, o.package_id, o.date_time, o.total,
                        o.status, o.created_at, o.updated_at,
                        p.name, p.price, p.allowed_maps, p.priority
                    FROM orders o
                    JOIN packages p ON p.package_id = o.package_id
                    WHERE o.customer_id = $1 AND o.status = $2
                    ORDER BY o.date_time DESC, o.id DESC
                    LIMIT 1
                    ''',
                    customer_id,
                    ORDER_STATUS_COMPLETED
                )
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error getting package for customer {customer_id}: {e}")
            raise DatabaseError(f"Failed to get current package: {e}")

        if not row:
            raise NoActivePackageError("No active package found.")
        return dict(row)

    async def list_orders(self, customer_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """List orders with customer and package details, newest first.

        Args:
            customer_id: Optional filter on one customer
        """
        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                rows = await conn.fetch(
                    '''
                    SELECT
                        o.id, o.customer_id, o.package_id, o.date_time, o.total,
                        o.status, o.created_at, o.updated_at,
                        c.first_name || ' ' || c.last_name AS customer_name,
                        c.email AS customer_email,
                        p.name AS package_name
                    FROM orders o
                    LEFT JOIN customer c ON c.customer_id = o.customer_id
                    LEFT JOIN packages p ON p.package_id = o.package_id
                    WHERE ($1::integer IS NULL OR o.customer_id = $1)
                    ORDER BY o.date_time DESC, o.id DESC
                    ''',
                    customer_id
                )
                return [dict(row) for row in rows]
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error listing orders: {e}")
            raise DatabaseError(f"Failed to list orders: {e}")

    async def get_stats(self) -> Dict[str, Any]:
        """Collect admin dashboard totals and map creation over the last 30 days."""
        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                totals = await conn.fetchrow(
                    '''
                    SELECT
                        (SELECT COUNT(*) FROM customer) AS total_customers,
                        (SELECT COUNT(*) FROM map) AS total_maps,
                        (SELECT COUNT(*) FROM map WHERE active = true) AS active_maps,
                        (SELECT COUNT(*) FROM zones) AS total_zones,
                        (SELECT COUNT(*) FROM orders) AS total_orders,
                        (SELECT COALESCE(SUM(total), 0) FROM orders WHERE status = $1) AS total_revenue
                    ''',
                    ORDER_STATUS_COMPLETED
                )
                activity = await conn.fetch(
                    '''
                    SELECT DATE(created_at) AS date, COUNT(*) AS count
                    FROM map
                    WHERE created_at >= now() - make_interval(days => $1)
                    GROUP BY DATE(created_at)
                    ORDER BY date DESC
                    ''',
                    RECENT_ACTIVITY_DAYS
                )
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error collecting stats: {e}")
            raise DatabaseError(f"Failed to collect stats: {e}")

        return {
            'totalCustomers': totals['total_customers'],
            'totalMaps': totals['total_maps'],
            'activeMaps': totals['active_maps'],
            'totalZones': totals['total_zones'],
            'totalOrders': totals['total_orders'],
            'totalRevenue': totals['total_revenue'],
            'recentActivity': [dict(row) for row in activity]
        }

__all__ = [
    'OrderError',
    'OrderValidationError',
    'PackageNotFoundError',
    'PackageConflictError',
    'PackageInUseError',
    'NoActivePackageError',
    'PackageManager',
    'OrderManager',
    'ORDER_STATUS_COMPLETED'
]
