"""Shared fixtures.

Database tests run against the PostgreSQL database named by
MAPIT_TEST_DATABASE_URL and are skipped when it is not set. The schema is
applied on first connect; test data uses unique emails so runs don't collide.
"""

import os
import uuid
from typing import Dict, Any

import pytest
import pytest_asyncio

from config.lib.load_settings_conf import DEFAULTS, validate_settings
from database import init_db, close as close_db
from auth import CustomerManager
from maps import MapManager

TEST_DATABASE_URL = os.environ.get("MAPIT_TEST_DATABASE_URL")

def make_settings(**overrides) -> Dict[str, Any]:
    """Validated settings built from defaults, without reading settings.conf."""
    settings = dict(DEFAULTS)
    settings.update({key: str(value) for key, value in overrides.items()})
    return validate_settings(settings)

def unique_email(prefix: str = "customer") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}@example.com"

@pytest.fixture
def settings_factory():
    """Build validated settings with overrides."""
    return make_settings

@pytest.fixture
def settings() -> Dict[str, Any]:
    """Development settings."""
    return make_settings(environment="development")

@pytest_asyncio.fixture
async def db_pool():
    """Create and return a database connection pool."""
    if not TEST_DATABASE_URL:
        pytest.skip("MAPIT_TEST_DATABASE_URL not set")

    pool = await init_db(
        TEST_DATABASE_URL,
        settings=make_settings(db_url=TEST_DATABASE_URL, environment="test", pool_min_size=1, pool_max_size=5)
    )
    yield pool
    await close_db(pool)

@pytest_asyncio.fixture
async def customer_manager(db_pool):
    """Create and return a CustomerManager instance."""
    return CustomerManager(db_pool, acquire_timeout=10)

@pytest_asyncio.fixture
async def map_manager(db_pool):
    """Create and return a MapManager instance."""
    return MapManager(db_pool, acquire_timeout=10)

@pytest_asyncio.fixture
async def customer(customer_manager) -> Dict[str, Any]:
    """Register and return a fresh customer."""
    return await customer_manager.register(
        first_name="Alice",
        last_name="A",
        email=unique_email("alice"),
        password="Secret123"
    )

@pytest_asyncio.fixture
async def sample_map(map_manager, customer) -> Dict[str, Any]:
    """Create and return a map owned by the fresh customer."""
    return await map_manager.create_map(title="M1", customer_id=customer["customer_id"])
