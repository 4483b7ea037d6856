"""Database module for managing connections to PostgreSQL.

This module handles:
- Connection pool creation
- Schema management
- Connection lifecycle

No pool is kept at module level. ``init_db`` returns a new pool and the
caller (the API app, a test fixture, a CLI command) owns it and passes it
to the managers that need it.
"""

import asyncio
import json
import logging
import ssl
from contextlib import asynccontextmanager
from typing import Optional, Dict, Any, AsyncIterator
import backoff
import asyncpg
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

from .exceptions import DatabaseError, DatabaseSchemaError, PoolTimeoutError
from .lib.schema_manager import SchemaManager

logger = logging.getLogger(__name__)

def _get_ssl_context() -> ssl.SSLContext:
    """Create SSL context for hosted Postgres (Neon, Supabase, ...) connections."""
    ssl_context = ssl.create_default_context()
    ssl_context.check_hostname = False
    ssl_context.verify_mode = ssl.CERT_NONE
    return ssl_context

def _strip_query(db_url: str) -> str:
    """Remove query parameters asyncpg would reject as server settings."""
    parsed = urlparse(db_url)
    params = {
        key: values[0]
        for key, values in parse_qs(parsed.query).items()
        if key not in ('sslmode', 'ssl', 'channel_binding')
    }
    return urlunparse(parsed._replace(query=urlencode(params)))

def _get_connection_kwargs(db_url: str) -> Dict[str, Any]:
    """Get connection kwargs from database URL.

    Args:
        db_url: Database connection URL

    Returns:
        Dict of connection parameters
    """
    parsed = urlparse(db_url)
    params = parse_qs(parsed.query)

    kwargs: Dict[str, Any] = {}
    sslmode = params.get('sslmode', params.get('ssl', ['disable']))[0]
    if sslmode in ('require', 'verify-ca', 'verify-full', 'true'):
        kwargs['ssl'] = _get_ssl_context()

    return kwargs

async def _init_connection(conn: asyncpg.Connection) -> None:
    """Decode json/jsonb columns into Python objects on every pooled connection."""
    for type_name in ('json', 'jsonb'):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema='pg_catalog'
        )

@backoff.on_exception(
    backoff.expo,
    (asyncpg.exceptions.PostgresConnectionError, asyncpg.exceptions.CannotConnectNowError, OSError),
    max_tries=5
)
async def create_database_if_not_exists(db_url: str) -> None:
    """Create the database if it doesn't exist.

    Args:
        db_url: Database connection URL

    Raises:
        Exception: If database creation fails after retries
    """
    try:
        parsed = urlparse(db_url)
        db_name = parsed.path.strip('/') or 'postgres'
        if db_name == 'postgres':
            return

        # Connect to the maintenance database
        base_url = urlunparse(parsed._replace(path='/postgres'))
        logger.info(f"Connecting to postgres to create {db_name} if needed")

        conn = await asyncpg.connect(_strip_query(base_url), **_get_connection_kwargs(base_url))

        try:
            exists = await conn.fetchval(
                'SELECT EXISTS(SELECT 1 FROM pg_database WHERE datname = $1)',
                db_name
            )

            if not exists:
                await conn.execute(f'CREATE DATABASE "{db_name}"')
                logger.info(f"Created database {db_name}")

        finally:
            await conn.close()

    except Exception as e:
        logger.error(f"Error creating database: {e}")
        raise

@backoff.on_exception(
    backoff.expo,
    (asyncpg.exceptions.PostgresConnectionError, asyncpg.exceptions.CannotConnectNowError, OSError),
    max_tries=5
)
async def init_db(
    db_url: Optional[str] = None,
    settings: Optional[Dict[str, Any]] = None,
    apply_schema: bool = True
) -> asyncpg.Pool:
    """Create a connection pool and bring the schema up to date.

    Only pool creation is retried (startup); queries issued through the
    returned pool are single-attempt.

    Args:
        db_url: Optional database URL. If not provided, will use settings.
        settings: Optional settings dict. Defaults to the loaded settings.conf.
        apply_schema: Run pending schema migrations after connecting

    Returns:
        A new asyncpg pool owned by the caller

    Raises:
        ValueError: If database URL is not provided
        DatabaseSchemaError: If the schema cannot be applied
    """
    if settings is None:
        # Import here to avoid circular imports
        from config import settings_conf as settings

    url = db_url or settings.get('db_url')
    if not url:
        raise ValueError("Database URL not provided")

    if settings.get('auto_create_database'):
        await create_database_if_not_exists(url)

    pool = await asyncpg.create_pool(
        _strip_query(url),
        min_size=settings.get('pool_min_size', 2),
        max_size=settings.get('pool_max_size', 20),
        max_inactive_connection_lifetime=300.0,  # 5 minutes
        command_timeout=settings.get('command_timeout', 60.0),
        init=_init_connection,
        **_get_connection_kwargs(url)
    )

    if apply_schema:
        try:
            await SchemaManager(pool).initialize()
        except Exception:
            await pool.close()
            raise

    return pool

@asynccontextmanager
async def acquire(pool: asyncpg.Pool, timeout: Optional[float] = None) -> AsyncIterator[asyncpg.Connection]:
    """Acquire a pooled connection, failing fast instead of waiting forever.

    Args:
        pool: Database connection pool
        timeout: Seconds to wait for a free connection

    Raises:
        PoolTimeoutError: If no connection became available in time
    """
    try:
        conn = await pool.acquire(timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"Timed out after {timeout}s waiting for a database connection")
        raise PoolTimeoutError("Timed out waiting for a database connection")

    try:
        yield conn
    finally:
        await pool.release(conn)

async def ping(pool: asyncpg.Pool, timeout: Optional[float] = None) -> bool:
    """Check the database answers a trivial query."""
    async with acquire(pool, timeout) as conn:
        return await conn.fetchval('SELECT 1') == 1

async def close(pool: Optional[asyncpg.Pool]) -> None:
    """Close a database connection pool."""
    if pool is not None:
        await pool.close()

# Export public interface
__all__ = [
    'init_db',
    'acquire',
    'ping',
    'close',
    'create_database_if_not_exists',
    'SchemaManager',
    'DatabaseError',
    'DatabaseSchemaError',
    'PoolTimeoutError'
]
