"""Tests for zones and bulk saves (needs MAPIT_TEST_DATABASE_URL)."""

import uuid

import pytest
import pytest_asyncio

from maps import MapNotFoundError
from zones import ZoneManager, ZoneNotFoundError, BulkSaveError

pytestmark = pytest.mark.asyncio

SQUARE = [[0, 0], [0, 1], [1, 1], [1, 0]]

@pytest_asyncio.fixture
async def zone_manager(db_pool):
    """Create and return a ZoneManager instance."""
    return ZoneManager(db_pool, acquire_timeout=10)

@pytest_asyncio.fixture
async def zone(zone_manager, sample_map):
    """Create and return a zone on the sample map."""
    return await zone_manager.create_zone(sample_map["map_id"], "Z1", "#ff0000", SQUARE)

async def test_create_zone_takes_map_owner(zone, customer, sample_map):
    """Test a zone created without customer_id belongs to the map's owner."""
    assert isinstance(zone["id"], uuid.UUID)
    assert zone["map_id"] == sample_map["map_id"]
    assert zone["customer_id"] == customer["customer_id"]
    assert zone["coordinates"] == SQUARE

async def test_create_zone_on_missing_map(zone_manager):
    """Test zones cannot be created on a missing map."""
    with pytest.raises(MapNotFoundError):
        await zone_manager.create_zone(-1, "Z1", "#ff0000", SQUARE)

async def test_create_zone_with_empty_coordinates(zone_manager, sample_map):
    """Test an empty polygon is stored as-is."""
    created = await zone_manager.create_zone(sample_map["map_id"], "Empty", "#00ff00", [])
    assert created["coordinates"] == []

async def test_update_zone_keeps_omitted_fields(zone_manager, zone):
    """Test fields passed as None are left unchanged."""
    updated = await zone_manager.update_zone(zone["id"], color="#0000ff")

    assert updated["color"] == "#0000ff"
    assert updated["name"] == "Z1"
    assert updated["coordinates"] == SQUARE
    assert updated["updated_at"] >= zone["updated_at"]

async def test_update_zone_ignores_empty_strings(zone_manager, zone):
    """Test empty name and color keep the stored values."""
    updated = await zone_manager.update_zone(zone["id"], name="", color="")

    assert updated["name"] == "Z1"
    assert updated["color"] == "#ff0000"

async def test_update_and_delete_missing_zone(zone_manager):
    """Test missing or malformed zone ids read as not found."""
    with pytest.raises(ZoneNotFoundError):
        await zone_manager.update_zone(str(uuid.uuid4()), name="X")
    with pytest.raises(ZoneNotFoundError):
        await zone_manager.delete_zone("not-a-uuid")

async def test_delete_zone(zone_manager, zone):
    """Test a deleted zone is gone."""
    await zone_manager.delete_zone(str(zone["id"]))

    with pytest.raises(ZoneNotFoundError):
        await zone_manager.get_zone(zone["id"])

async def test_list_by_map_oldest_first(zone_manager, zone, sample_map):
    """Test zones are listed in creation order."""
    second = await zone_manager.create_zone(sample_map["map_id"], "Z2", "#00ff00", SQUARE)

    zones = await zone_manager.list_by_map(sample_map["map_id"])

    assert [z["id"] for z in zones] == [zone["id"], second["id"]]

async def test_bulk_save_inserts_and_updates(zone_manager, zone, sample_map, customer):
    """Test a mixed batch updates real ids and inserts placeholders."""
    saved = await zone_manager.bulk_save(sample_map["map_id"], [
        {"id": str(zone["id"]), "name": "Z1 renamed"},
        {"id": "temp-1712345", "name": "Z2", "color": "#00ff00", "coordinates": SQUARE},
        {"name": "Z3", "color": "#0000ff", "coordinates": []},
    ])

    assert [z["name"] for z in saved] == ["Z1 renamed", "Z2", "Z3"]
    assert saved[0]["id"] == zone["id"]
    assert saved[0]["color"] == "#ff0000"
    assert all(z["customer_id"] == customer["customer_id"] for z in saved)
    assert len(await zone_manager.list_by_map(sample_map["map_id"])) == 3

async def test_bulk_save_rolls_back_on_missing_zone(zone_manager, sample_map):
    """Test one missing zone leaves the whole batch unsaved."""
    with pytest.raises(ZoneNotFoundError):
        await zone_manager.bulk_save(sample_map["map_id"], [
            {"name": "New", "color": "#00ff00", "coordinates": SQUARE},
            {"id": str(uuid.uuid4()), "name": "Ghost"},
        ])

    assert await zone_manager.list_by_map(sample_map["map_id"]) == []

async def test_bulk_save_rejects_zone_from_other_map(zone_manager, map_manager, zone, customer):
    """Test an update cannot move or edit a zone through another map."""
    other_map = await map_manager.create_map(title="M2", customer_id=customer["customer_id"])

    with pytest.raises(ZoneNotFoundError):
        await zone_manager.bulk_save(other_map["map_id"], [
            {"id": str(zone["id"]), "name": "Hijacked"},
        ])

    assert (await zone_manager.get_zone(zone["id"]))["name"] == "Z1"

async def test_bulk_save_on_missing_map(zone_manager):
    """Test new zones need an existing map."""
    with pytest.raises(MapNotFoundError):
        await zone_manager.bulk_save(-1, [
            {"name": "Z1", "color": "#ff0000", "coordinates": SQUARE},
        ])

async def test_bulk_save_updates_by_id_alone(zone_manager, zone):
    """Test update entries need no map_id when the batch names none."""
    saved = await zone_manager.bulk_save(None, [
        {"id": str(zone["id"]), "name": "Renamed"},
    ])

    assert saved[0]["id"] == zone["id"]
    assert saved[0]["name"] == "Renamed"
    assert saved[0]["map_id"] == zone["map_id"]

async def test_bulk_save_rolls_back_on_constraint_violation(zone_manager, zone, sample_map):
    """Test a rejected second entry of three leaves the map's zones unchanged."""
    before = await zone_manager.list_by_map(sample_map["map_id"])

    with pytest.raises(BulkSaveError):
        await zone_manager.bulk_save(sample_map["map_id"], [
            {"name": "A", "color": "#ff0000", "coordinates": SQUARE},
            {"name": "B", "color": "#00ff00", "coordinates": SQUARE, "customer_id": -1},
            {"name": "C", "color": "#0000ff", "coordinates": SQUARE},
        ])

    after = await zone_manager.list_by_map(sample_map["map_id"])
    assert [z["id"] for z in after] == [z["id"] for z in before]
