"""Zones module for managing polygons drawn on maps.

Coordinates are stored verbatim as a JSON array of ``[lat, lng]`` pairs; no
geometric validation is performed. Every zone carries the customer id of
its map's owner, resolved server side when the caller does not supply it.
"""
import logging
from typing import Dict, List, Optional, Any
from uuid import UUID

from asyncpg.pool import Pool
from asyncpg.exceptions import PostgresError, ForeignKeyViolationError

from database import acquire
from database.exceptions import DatabaseError
from maps import MapManager, MapNotFoundError

logger = logging.getLogger(__name__)

ZONE_COLUMNS = 'id, map_id, customer_id, name, color, coordinates, created_at, updated_at'

REQUIRED_FIELDS_MESSAGE = "map_id, name, color, and coordinates are required"

class ZoneError(Exception):
    """Base class for zone-related errors."""
    pass

class ZoneValidationError(ZoneError):
    """Raised when zone fields are missing or malformed."""
    pass

class ZoneNotFoundError(ZoneError):
    """Raised when a zone does not exist."""
    pass

class BulkSaveError(ZoneError):
    """Raised when a bulk save failed and was rolled back."""
    pass

def is_placeholder_id(zone_id: Any) -> bool:
    """Whether a client-side id marks a zone that was never saved."""
    if zone_id is None:
        return True
    value = str(zone_id).strip()
    return not value or value == 'temp' or value.startswith(('temp-', 'temp_'))

def parse_zone_id(zone_id: Any) -> UUID:
    """Parse a zone id.

    Raises:
        ZoneNotFoundError: If the id is not a UUID, so no zone can have it
    """
    if isinstance(zone_id, UUID):
        return zone_id
    try:
        return UUID(str(zone_id))
    except (TypeError, ValueError):
        raise ZoneNotFoundError("Zone not found")

def _check_coordinates(coordinates: Any) -> None:
    if not isinstance(coordinates, list):
        raise ZoneValidationError("coordinates must be an array of [lat, lng] pairs")

class ZoneManager:
    """Manages zones and bulk zone saves."""

    def __init__(self, pool: Pool, acquire_timeout: Optional[float] = None) -> None:
        """Initialize zone manager.

        Args:
            pool: Database connection pool
            acquire_timeout: Seconds to wait for a pooled connection
        """
        self.pool = pool
        self.acquire_timeout = acquire_timeout
        self.maps = MapManager(pool, acquire_timeout)

    async def list_by_map(self, map_id: int) -> List[Dict[str, Any]]:
        """List a map's zones, oldest first."""
        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                rows = await conn.fetch(
                    f'''
                    SELECT {ZONE_COLUMNS}
                    FROM zones
                    WHERE map_id = $1
                    ORDER BY created_at ASC, id ASC
                    ''',
                    map_id
                )
                return [dict(row) for row in rows]
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error listing zones for map {map_id}: {e}")
            raise DatabaseError(f"Failed to list zones: {e}")

    async def get_zone(self, zone_id: Any) -> Dict[str, Any]:
        """Get a zone by id.

        Raises:
            ZoneNotFoundError: If the zone does not exist
        """
        zone_uuid = parse_zone_id(zone_id)
        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                row = await conn.fetchrow(
                    f'SELECT {ZONE_COLUMNS} FROM zones WHERE id = $1',
                    zone_uuid
                )
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error getting zone {zone_id}: {e}")
            raise DatabaseError(f"Failed to get zone: {e}")

        if not row:
            raise ZoneNotFoundError("Zone not found")
        return dict(row)

    async def create_zone(
        self,
        map_id: int,
        name: str,
        color: str,
        coordinates: List[Any],
        customer_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """Create a zone on a map.

        Args:
            map_id: Map the zone belongs to
            name: Zone name
            color: Display color (hex string)
            coordinates: Polygon as a list of [lat, lng] pairs
            customer_id: Owner, defaults to the map's owner

        Returns:
            The created zone

        Raises:
            ZoneValidationError: If a required field is missing
            MapNotFoundError: If the map does not exist
        """
        if map_id is None or not name or not color or coordinates is None:
            raise ZoneValidationError(REQUIRED_FIELDS_MESSAGE)
        _check_coordinates(coordinates)

        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                if customer_id is None:
                    customer_id = await self.maps.get_map_owner(map_id, conn=conn)

                row = await conn.fetchrow(
                    f'''
                    INSERT INTO zones (map_id, customer_id, name, color, coordinates)
                    VALUES ($1, $2, $3, $4, $5)
                    RETURNING {ZONE_COLUMNS}
                    ''',
                    map_id,
                    customer_id,
                    name,
                    color,
                    coordinates
                )

            logger.info(f"Created zone {row['id']} on map {map_id}")
            return dict(row)

        except ForeignKeyViolationError as e:
            if e.constraint_name and 'customer' in e.constraint_name:
                raise ZoneValidationError(f"Customer {customer_id} not found")
            raise MapNotFoundError(f"Map {map_id} not found.")
        except (MapNotFoundError, DatabaseError):
            raise
        except Exception as e:
            logger.error(f"Error creating zone: {e}")
            raise DatabaseError(f"Failed to create zone: {e}")

    async def update_zone(
        self,
        zone_id: Any,
        name: Optional[str] = None,
        color: Optional[str] = None,
        coordinates: Optional[List[Any]] = None
    ) -> Dict[str, Any]:
        """Update a zone, keeping any field passed as None or empty.

        Raises:
            ZoneValidationError: If coordinates is not a list
            ZoneNotFoundError: If the zone does not exist
        """
        zone_uuid = parse_zone_id(zone_id)
        if coordinates is not None:
            _check_coordinates(coordinates)

        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                row = await self._update(conn, zone_uuid, name or None, color or None, coordinates)
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error updating zone {zone_id}: {e}")
            raise DatabaseError(f"Failed to update zone: {e}")

        if not row:
            raise ZoneNotFoundError("Zone not found")
        return dict(row)

    async def delete_zone(self, zone_id: Any) -> None:
        """Delete a zone.

        Raises:
            ZoneNotFoundError: If the zone does not exist
        """
        zone_uuid = parse_zone_id(zone_id)
        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                result = await conn.execute('DELETE FROM zones WHERE id = $1', zone_uuid)
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error deleting zone {zone_id}: {e}")
            raise DatabaseError(f"Failed to delete zone: {e}")

        if result == 'DELETE 0':
            raise ZoneNotFoundError("Zone not found")
        logger.info(f"Deleted zone {zone_id}")

    async def bulk_save(self, map_id: Optional[int], zones: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Insert or update a batch of zones atomically.

        Entries with a real id update that zone, which must belong to the
        entry's map when one is given. Entries without one (or with a
        ``temp`` placeholder id) are inserted and need a map. Either every
        entry is saved or none is.

        Args:
            map_id: Map for entries that do not name their own map_id
            zones: Zone entries as sent by the editor

        Returns:
            Saved zones in input order

        Raises:
            ZoneValidationError: If an entry is malformed (nothing is written)
            ZoneNotFoundError: If an updated zone is missing from its map
            MapNotFoundError: If a new zone targets a missing map
            BulkSaveError: If the database rejected an entry
        """
        if not isinstance(zones, list):
            raise ZoneValidationError("Zones array is required")

        entries = [self._prepare_entry(map_id, position, zone) for position, zone in enumerate(zones)]
        if not entries:
            return []

        saved = []
        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                async with conn.transaction():
                    owners: Dict[int, int] = {}
                    for entry in entries:
                        if entry['id'] is not None:
                            row = await self._update(
                                conn,
                                entry['id'],
                                entry['name'],
                                entry['color'],
                                entry['coordinates'],
                                map_id=entry['map_id']
                            )
                            if not row:
                                where = f" on map {entry['map_id']}" if entry['map_id'] is not None else ""
                                raise ZoneNotFoundError(f"Zone {entry['id']} not found{where}")
                        else:
                            customer_id = entry['customer_id']
                            if customer_id is None:
                                if entry['map_id'] not in owners:
                                    owners[entry['map_id']] = await self.maps.get_map_owner(
                                        entry['map_id'], conn=conn
                                    )
                                customer_id = owners[entry['map_id']]

                            row = await conn.fetchrow(
                                f'''
                                INSERT INTO zones (id, map_id, customer_id, name, color, coordinates)
                                VALUES (gen_random_uuid(), $1, $2, $3, $4, $5)
                                RETURNING {ZONE_COLUMNS}
                                ''',
                                entry['map_id'],
                                customer_id,
                                entry['name'],
                                entry['color'],
                                entry['coordinates']
                            )
                        saved.append(dict(row))

        except (ZoneError, MapNotFoundError, DatabaseError) as e:
            logger.warning(f"Bulk save of {len(entries)} zones rolled back: {e}")
            raise
        except PostgresError as e:
            logger.warning(f"Bulk save of {len(entries)} zones rolled back: {e}")
            raise BulkSaveError(f"Failed to save zones: {e}")
        except Exception as e:
            logger.error(f"Error during bulk zone save: {e}")
            raise DatabaseError(f"Failed to save zones: {e}")

        logger.info(f"Saved {len(saved)} zones in bulk")
        return saved

    def _prepare_entry(self, map_id: Optional[int], position: int, zone: Any) -> Dict[str, Any]:
        """Validate one bulk entry before any database work."""
        if not isinstance(zone, dict):
            raise ZoneValidationError(f"Zone at position {position} must be an object")

        entry_map_id = zone.get('map_id') if zone.get('map_id') is not None else map_id

        coordinates = zone.get('coordinates')
        if coordinates is not None:
            _check_coordinates(coordinates)

        if is_placeholder_id(zone.get('id')):
            zone_id = None
            if entry_map_id is None:
                raise ZoneValidationError(f"Zone at position {position}: map_id is required")
            if not zone.get('name') or not zone.get('color') or coordinates is None:
                raise ZoneValidationError(f"Zone at position {position}: {REQUIRED_FIELDS_MESSAGE}")
        else:
            try:
                zone_id = parse_zone_id(zone['id'])
            except ZoneNotFoundError:
                raise ZoneValidationError(f"Zone at position {position}: invalid id {zone['id']!r}")

        return {
            'id': zone_id,
            'map_id': entry_map_id,
            'customer_id': zone.get('customer_id'),
            'name': zone.get('name') or None,
            'color': zone.get('color') or None,
            'coordinates': coordinates
        }

    async def _update(
        self,
        conn,
        zone_id: UUID,
        name: Optional[str],
        color: Optional[str],
        coordinates: Optional[List[Any]],
        map_id: Optional[int] = None
    ):
        """Apply a COALESCE update, optionally restricted to one map."""
        return await conn.fetchrow(
            f'''
            UPDATE zones
            SET name = COALESCE($2, name),
                color = COALESCE($3, color),
                coordinates = COALESCE($4::jsonb, coordinates),
                updated_at = now()
            WHERE id = $1 AND ($5::integer IS NULL OR map_id = $5)
            RETURNING {ZONE_COLUMNS}
            ''',
            zone_id,
            name,
            color,
            coordinates,
            map_id
        )

__all__ = [
    'ZoneError',
    'ZoneValidationError',
    'ZoneNotFoundError',
    'BulkSaveError',
    'ZoneManager',
    'is_placeholder_id',
    'parse_zone_id'
]
