"""Tests for helpers and checks that run before any database call.

Managers here get no pool: a validation failure must be raised before a
connection is ever requested.
"""

import copy
import pickle
import re
import uuid

import pytest

from auth import CustomerManager, AdminManager, CustomerValidationError, normalize_email
from database import _get_connection_kwargs, _strip_query
from database.lib.schema_manager import SchemaManager
from maps import MapManager, MapValidationError, generate_map_code
from orders import PackageManager, OrderManager, OrderValidationError, PackageInUseError
from zones import ZoneManager, ZoneValidationError, ZoneNotFoundError, is_placeholder_id, parse_zone_id

def test_map_code_format():
    """Test generated map codes look like MAP-<ms>-<9 alphanumerics>."""
    code = generate_map_code()
    assert re.fullmatch(r"MAP-\d{13,}-[A-Z0-9]{9}", code)
    assert code != generate_map_code()

@pytest.mark.parametrize("zone_id,expected", [
    (None, True),
    ("", True),
    ("temp", True),
    ("temp-1712345", True),
    ("temp_3", True),
    ("template", False),
    (str(uuid.uuid4()), False),
])
def test_placeholder_ids(zone_id, expected):
    """Test which client ids mean 'not saved yet'."""
    assert is_placeholder_id(zone_id) is expected

def test_parse_zone_id():
    """Test zone ids parse to UUIDs and garbage reads as not found."""
    zone_id = uuid.uuid4()
    assert parse_zone_id(str(zone_id)) == zone_id
    assert parse_zone_id(zone_id) is zone_id
    with pytest.raises(ZoneNotFoundError):
        parse_zone_id("not-a-uuid")

def test_normalize_email():
    """Test emails are trimmed and lower-cased."""
    assert normalize_email("  Alice@Example.COM ") == "alice@example.com"
    assert normalize_email(None) == ""

@pytest.mark.asyncio
@pytest.mark.parametrize("fields", [
    {"first_name": "", "last_name": "A", "email": "a@example.com", "password": "x"},
    {"first_name": "Alice", "last_name": "   ", "email": "a@example.com", "password": "x"},
    {"first_name": "Alice", "last_name": "A", "email": None, "password": "x"},
    {"first_name": "Alice", "last_name": "A", "email": "a@example.com", "password": ""},
])
async def test_register_requires_all_fields(fields):
    """Test registration rejects blank fields before touching the database."""
    with pytest.raises(CustomerValidationError, match="All fields"):
        await CustomerManager(pool=None).register(**fields)

@pytest.mark.asyncio
async def test_login_requires_fields():
    """Test login rejects blank credentials before touching the database."""
    with pytest.raises(CustomerValidationError):
        await CustomerManager(pool=None).login(" ", "pw")
    with pytest.raises(CustomerValidationError):
        await AdminManager(pool=None).login("admin@example.com", "")

@pytest.mark.asyncio
async def test_create_map_requires_title_and_customer():
    """Test map creation needs a title and an owner."""
    manager = MapManager(pool=None)
    with pytest.raises(MapValidationError, match="Title and customer_id are required"):
        await manager.create_map(title="  ", customer_id=1)
    with pytest.raises(MapValidationError):
        await manager.create_map(title="M1", customer_id=None)

@pytest.mark.asyncio
async def test_update_map_rejects_unknown_fields():
    """Test only mutable map fields can be updated."""
    with pytest.raises(MapValidationError, match="created_at"):
        await MapManager(pool=None).update_map(1, 1, created_at="2024-01-01")

@pytest.mark.asyncio
async def test_create_zone_requires_fields():
    """Test zone creation validates required fields and coordinates."""
    manager = ZoneManager(pool=None)
    with pytest.raises(ZoneValidationError, match="map_id, name, color, and coordinates are required"):
        await manager.create_zone(map_id=1, name="Z1", color=None, coordinates=[[0, 0]])
    with pytest.raises(ZoneValidationError, match="coordinates"):
        await manager.create_zone(map_id=1, name="Z1", color="#ff0000", coordinates="0,0")

@pytest.mark.asyncio
@pytest.mark.parametrize("map_id,zones", [
    (1, "not-a-list"),
    (1, [42]),
    (1, [{"id": "temp-1", "name": "Z1", "color": "#fff"}]),
    (None, [{"name": "Z1", "color": "#fff", "coordinates": []}]),
    (1, [{"id": "not-a-uuid", "name": "Z1"}]),
    (1, [{"name": "Z1", "color": "#fff", "coordinates": {"lat": 0}}]),
])
async def test_bulk_save_validates_before_transaction(map_id, zones):
    """Test malformed bulk entries are rejected before any write."""
    with pytest.raises(ZoneValidationError):
        await ZoneManager(pool=None).bulk_save(map_id, zones)

@pytest.mark.asyncio
async def test_bulk_save_empty_batch():
    """Test an empty batch saves nothing and needs no connection."""
    assert await ZoneManager(pool=None).bulk_save(1, []) == []

@pytest.mark.asyncio
@pytest.mark.parametrize("fields", [
    {"name": " ", "price": "5.00", "allowed_maps": 3},
    {"name": "gold", "price": "-1", "allowed_maps": 3},
    {"name": "gold", "price": "abc", "allowed_maps": 3},
    {"name": "gold", "price": "5.00", "allowed_maps": -1},
])
async def test_package_validation(fields):
    """Test package fields are checked before any write."""
    with pytest.raises(OrderValidationError):
        await PackageManager(pool=None).create_package(**fields)

@pytest.mark.asyncio
async def test_create_order_requires_ids():
    """Test an order needs both a customer and a package."""
    with pytest.raises(OrderValidationError, match="customer_id and package_id are required"):
        await OrderManager(pool=None).create_order(customer_id=1, package_id=None)

def test_ssl_enabled_by_sslmode():
    """Test sslmode=require turns on TLS and is stripped from the DSN."""
    url = "postgresql://u:p@db.example/mapit?sslmode=require&application_name=mapit"
    assert 'ssl' in _get_connection_kwargs(url)
    assert 'ssl' not in _get_connection_kwargs("postgresql://u:p@localhost/mapit")
    assert _strip_query(url) == "postgresql://u:p@db.example/mapit?application_name=mapit"

def test_schema_files_load():
    """Test schema versions load in order and the latest has every table."""
    schema_files = SchemaManager(pool=None)._load_schema_files()

    assert list(schema_files) == [1, 2]
    tables = {table['name'] for table in schema_files[2]['tables']}
    assert tables == {'customer', 'admin', 'map', 'customer_map', 'zones', 'packages', 'orders'}
    assert schema_files[2]['seed']

def test_package_in_use_error_survives_copy():
    """Test the error keeps its fields and message when copied or pickled."""
    error = PackageInUseError(7, 3)

    for clone in (copy.deepcopy(error), pickle.loads(pickle.dumps(error))):
        assert (clone.package_id, clone.order_count) == (7, 3)
        assert str(clone) == str(error)
    assert "3 order(s)" in str(error)

def test_bulk_update_without_map_passes_validation():
    """Test an update entry without any map_id is not rejected up front."""
    entry = ZoneManager(pool=None)._prepare_entry(None, 0, {"id": str(uuid.uuid4()), "name": "Renamed"})

    assert entry["map_id"] is None
    assert entry["name"] == "Renamed"
