"""
Snapshot format

Versioning, validation and the JSON codec for game snapshots.
A snapshot is a plain dict of JSON-compatible values.
"""
import json
from typing import Any, Dict

from .config import GRID_SIZE, PHASES, STATUS_READY, STATUS_PLAYING, STATUS_ENDED, UNIT_STATS


SNAPSHOT_VERSION = 1
SUPPORTED_VERSIONS = (1,)

REQUIRED_KEYS = (
    "version",
    "game_id",
    "status",
    "winner_id",
    "turn_number",
    "current_phase",
    "current_player_id",
    "next_id",
    "players",
    "units",
    "bases",
    "resource_nodes",
)


class SnapshotError(ValueError):
    """Raised when a snapshot cannot be restored."""


def validate_snapshot(data: Dict[str, Any]) -> None:
    """Check a snapshot before it is restored. Raises SnapshotError."""
    if not isinstance(data, dict):
        raise SnapshotError(f"Snapshot must be a dict, got {type(data).__name__}")

    missing = [key for key in REQUIRED_KEYS if key not in data]
    if missing:
        raise SnapshotError(f"Snapshot is missing keys: {', '.join(missing)}")

    if data["version"] not in SUPPORTED_VERSIONS:
        raise SnapshotError(f"Unsupported snapshot version: {data['version']}")
    if data["status"] not in (STATUS_READY, STATUS_PLAYING, STATUS_ENDED):
        raise SnapshotError(f"Unknown status: {data['status']}")
    if data["current_phase"] not in PHASES:
        raise SnapshotError(f"Unknown phase: {data['current_phase']}")

    player_ids = set()
    for player in data["players"]:
        player_ids.add(player["id"])
    if data["current_player_id"] not in player_ids:
        raise SnapshotError(f"Current player {data['current_player_id']} is not in the snapshot")

    occupied = {}
    highest_id = 0
    for collection in ("bases", "resource_nodes", "units"):
        for entity in data[collection]:
            entity_id = entity["id"]
            x, y = entity["position"]
            if not (0 <= x < GRID_SIZE and 0 <= y < GRID_SIZE):
                raise SnapshotError(f"Entity {entity_id} at ({x}, {y}) is off the grid")
            if (x, y) in occupied:
                raise SnapshotError(
                    f"Entities {occupied[(x, y)]} and {entity_id} share cell ({x}, {y})"
                )
            occupied[(x, y)] = entity_id
            if "owner_id" in entity and collection != "resource_nodes":
                if entity["owner_id"] not in player_ids:
                    raise SnapshotError(f"Entity {entity_id} is owned by unknown player {entity['owner_id']}")
            highest_id = max(highest_id, entity_id)

    for unit in data["units"]:
        if unit["unit_type"] not in UNIT_STATS:
            raise SnapshotError(f"Unit {unit['id']} has unknown type {unit['unit_type']}")

    if data["next_id"] <= highest_id:
        raise SnapshotError(f"next_id {data['next_id']} would reuse entity id {highest_id}")


def dumps(snapshot: Dict[str, Any], **kwargs) -> str:
    """Encode a snapshot as JSON."""
    return json.dumps(snapshot, **kwargs)


def loads(text: str) -> Dict[str, Any]:
    """Decode and validate a JSON snapshot."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Snapshot is not valid JSON: {e}") from e
    validate_snapshot(data)
    return data
