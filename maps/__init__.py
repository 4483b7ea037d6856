"""Maps module for managing customer maps.

A map is owned by exactly one customer (``map.customer_id``). The
``customer_map`` link table records the same ownership with an access
level and is written in the same transaction as the map itself.
"""
import logging
import secrets
import string
import time
from typing import Dict, List, Optional, Any

from asyncpg.pool import Pool
from asyncpg.exceptions import UniqueViolationError, ForeignKeyViolationError

from database import acquire
from database.exceptions import DatabaseError

logger = logging.getLogger(__name__)

MAP_COLUMNS = '''
    map_id, title, description, map_code, customer_id, country,
    map_data, map_bounds, active, created_at, updated_at
'''

# Fields a map owner may change
MUTABLE_FIELDS = ('title', 'description', 'country', 'map_data', 'map_bounds', 'active', 'map_code')

MAP_CODE_ALPHABET = string.ascii_uppercase + string.digits
MAP_CODE_SUFFIX_LENGTH = 9

NOT_FOUND_OR_FORBIDDEN = "Map not found or you do not have permission to edit it."

class MapError(Exception):
    """Base class for map-related errors."""
    pass

class MapValidationError(MapError):
    """Raised when map fields are missing or invalid."""
    pass

class MapNotFoundError(MapError):
    """Raised when a map does not exist or is not owned by the caller."""
    pass

class MapCodeConflictError(MapError):
    """Raised when a map code is already in use."""
    pass

def generate_map_code() -> str:
    """Generate a shareable map code, e.g. ``MAP-1730000000000-K3J9Q2ZP1``."""
    suffix = ''.join(secrets.choice(MAP_CODE_ALPHABET) for _ in range(MAP_CODE_SUFFIX_LENGTH))
    return f"MAP-{int(time.time() * 1000)}-{suffix}"

class MapManager:
    """Manages map records and their ownership."""

    def __init__(self, pool: Pool, acquire_timeout: Optional[float] = None) -> None:
        """Initialize map manager.

        Args:
            pool: Database connection pool
            acquire_timeout: Seconds to wait for a pooled connection
        """
        self.pool = pool
        self.acquire_timeout = acquire_timeout

    async def create_map(
        self,
        title: str,
        customer_id: int,
        description: Optional[str] = None,
        country: Optional[str] = None,
        map_data: Optional[Any] = None,
        map_bounds: Optional[Any] = None,
        active: bool = True,
        map_code: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a map owned by a customer.

        Args:
            title: Map title
            customer_id: Owning customer
            description: Optional description
            country: Optional country name
            map_data: Viewport data (center, zoom...), stored verbatim
            map_bounds: Map bounds, stored verbatim
            active: Whether the map is active
            map_code: Shareable code, generated when not given

        Returns:
            The created map

        Raises:
            MapValidationError: If title or customer_id is missing, or the customer does not exist
            MapCodeConflictError: If the map code is already used
        """
        if not title or not str(title).strip() or customer_id is None:
            raise MapValidationError("Title and customer_id are required.")

        map_code = map_code or generate_map_code()

        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                async with conn.transaction():
                    record = await conn.fetchrow(
                        f'''
                        INSERT INTO map (
                            title, description, map_code, customer_id,
                            country, map_data, map_bounds, active
                        ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                        RETURNING {MAP_COLUMNS}
                        ''',
                        title.strip(),
                        description,
                        map_code,
                        customer_id,
                        country,
                        map_data if map_data is not None else {},
                        map_bounds if map_bounds is not None else {},
                        active
                    )

                    await conn.execute(
                        '''
                        INSERT INTO customer_map (customer_id, map_id, access_level)
                        VALUES ($1, $2, 'owner')
                        ON CONFLICT (customer_id, map_id) DO NOTHING
                        ''',
                        customer_id,
                        record['map_id']
                    )

            logger.info(f"Created map {record['map_id']} for customer {customer_id}")
            return dict(record)

        except UniqueViolationError:
            raise MapCodeConflictError(f"Map code {map_code} already exists.")
        except ForeignKeyViolationError:
            raise MapValidationError(f"Customer {customer_id} not found.")
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error creating map: {e}")
            raise DatabaseError(f"Failed to create map: {e}")

    async def update_map(self, map_id: int, customer_id: int, **fields: Any) -> Dict[str, Any]:
        """Update a map owned by the given customer.

        Supplied fields overwrite, omitted fields are kept. Ownership is part
        of the update condition so a foreign map is indistinguishable from a
        missing one.

        Raises:
            MapValidationError: If an unknown field is given or title is blank
            MapNotFoundError: If the map does not exist or belongs to someone else
            MapCodeConflictError: If the new map code is already used
        """
        unknown = set(fields) - set(MUTABLE_FIELDS)
        if unknown:
            raise MapValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if 'title' in fields and (not fields['title'] or not str(fields['title']).strip()):
            raise MapValidationError("Title is required.")
        if customer_id is None:
            raise MapValidationError("customer_id is required.")

        # Column names come from MUTABLE_FIELDS only
        columns = [name for name in MUTABLE_FIELDS if name in fields]
        values = [fields[name] for name in columns]
        if 'title' in fields:
            values[columns.index('title')] = fields['title'].strip()

        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                if columns:
                    assignments = ', '.join(
                        f"{name} = ${index}" for index, name in enumerate(columns, start=3)
                    )
                    record = await conn.fetchrow(
                        f'''
                        UPDATE map SET {assignments}, updated_at = now()
                        WHERE map_id = $1 AND customer_id = $2
                        RETURNING {MAP_COLUMNS}
                        ''',
                        map_id,
                        customer_id,
                        *values
                    )
                else:
                    record = await conn.fetchrow(
                        f'SELECT {MAP_COLUMNS} FROM map WHERE map_id = $1 AND customer_id = $2',
                        map_id,
                        customer_id
                    )
        except UniqueViolationError:
            raise MapCodeConflictError(f"Map code {fields.get('map_code')} already exists.")
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error updating map {map_id}: {e}")
            raise DatabaseError(f"Failed to update map: {e}")

        if not record:
            raise MapNotFoundError(NOT_FOUND_OR_FORBIDDEN)

        logger.info(f"Updated map {map_id} ({', '.join(columns) or 'no changes'})")
        return dict(record)

    async def get_map(self, map_id: int) -> Dict[str, Any]:
        """Get a map by id.

        Raises:
            MapNotFoundError: If the map does not exist
        """
        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                record = await conn.fetchrow(
                    f'SELECT {MAP_COLUMNS} FROM map WHERE map_id = $1',
                    map_id
                )
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error getting map {map_id}: {e}")
            raise DatabaseError(f"Failed to get map: {e}")

        if not record:
            raise MapNotFoundError("Map not found.")
        return dict(record)

    async def get_map_owner(self, map_id: int, conn=None) -> int:
        """Get the customer id owning a map.

        Args:
            map_id: Map to look up
            conn: Optional connection to reuse (e.g. inside a transaction)

        Raises:
            MapNotFoundError: If the map does not exist
        """
        if conn is not None:
            customer_id = await conn.fetchval('SELECT customer_id FROM map WHERE map_id = $1', map_id)
        else:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                customer_id = await conn.fetchval('SELECT customer_id FROM map WHERE map_id = $1', map_id)

        if customer_id is None:
            raise MapNotFoundError(f"Map {map_id} not found.")
        return customer_id

    async def delete_map(self, map_id: int) -> None:
        """Delete a map with its zones and ownership links.

        Raises:
            MapNotFoundError: If the map does not exist
        """
        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                async with conn.transaction():
                    zones = await conn.execute('DELETE FROM zones WHERE map_id = $1', map_id)
                    await conn.execute('DELETE FROM customer_map WHERE map_id = $1', map_id)
                    result = await conn.execute('DELETE FROM map WHERE map_id = $1', map_id)
                    if result == 'DELETE 0':
                        raise MapNotFoundError("Map not found.")

            logger.info(f"Deleted map {map_id} ({zones.split()[-1]} zones)")

        except (MapError, DatabaseError):
            raise
        except Exception as e:
            logger.error(f"Error deleting map {map_id}: {e}")
            raise DatabaseError(f"Failed to delete map: {e}")

    async def list_maps_for_customer(self, customer_id: int) -> List[Dict[str, Any]]:
        """List a customer's maps with per-map zone counts, newest first."""
        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                rows = await conn.fetch(
                    '''
                    SELECT
                        m.map_id, m.title, m.description, m.map_code, m.customer_id,
                        m.country, m.map_data, m.map_bounds, m.active,
                        m.created_at, m.updated_at,
                        COUNT(z.id) AS zone_count
                    FROM map m
                    LEFT JOIN zones z ON z.map_id = m.map_id
                    WHERE m.customer_id = $1
                    GROUP BY m.map_id
                    ORDER BY m.created_at DESC, m.map_id DESC
                    ''',
                    customer_id
                )
                return [dict(row) for row in rows]
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error listing maps for customer {customer_id}: {e}")
            raise DatabaseError(f"Failed to list maps: {e}")

    async def list_for_admin(self) -> List[Dict[str, Any]]:
        """List every map with its owner's details and zone count, newest first."""
        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                rows = await conn.fetch(
                    '''
                    SELECT
                        m.map_id, m.title, m.description, m.map_code, m.customer_id,
                        m.country, m.active, m.created_at, m.updated_at,
                        c.first_name, c.last_name, c.email, c.registration_date,
                        (SELECT COUNT(*) FROM zones z WHERE z.map_id = m.map_id) AS zone_count
                    FROM map m
                    LEFT JOIN customer c ON c.customer_id = m.customer_id
                    ORDER BY m.created_at DESC, m.map_id DESC
                    '''
                )
                return [dict(row) for row in rows]
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error listing maps: {e}")
            raise DatabaseError(f"Failed to list maps: {e}")

__all__ = [
    'MapError',
    'MapValidationError',
    'MapNotFoundError',
    'MapCodeConflictError',
    'MapManager',
    'generate_map_code',
    'MUTABLE_FIELDS'
]
