"""
GridWar Configuration
Contains game constants, data file paths, and turn settings.
"""
import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

# Paths
PACKAGE_ROOT = Path(__file__).parent.parent
DATA_DIR = PACKAGE_ROOT / "data"

# Players
PLAYER_ONE = 1
PLAYER_TWO = 2
PLAYER_IDS = (PLAYER_ONE, PLAYER_TWO)

# Grid
GRID_SIZE = 25

# Game states
STATUS_READY = "ready"
STATUS_PLAYING = "playing"
STATUS_ENDED = "ended"

# Phases (in turn order)
PHASE_RESOURCE = "resource"
PHASE_ACTION = "action"
PHASE_BUILD = "build"
PHASES = (PHASE_RESOURCE, PHASE_ACTION, PHASE_BUILD)

# Turn economy
STARTING_ENERGY = 100
MAX_ACTIONS = 3
UNIT_ACTIONS_PER_TURN = 1

# Bases
BASE_HEALTH = 200
PLACEMENT_RADIUS = 3        # Units are placed within 3 squares of the base
MAX_PLACEMENT_RADIUS = 5    # Used when the default radius is full

# Combat
ATTACK_RANGE = 1  # Adjacent only, diagonals included

# Resources
GATHER_AMOUNT = 5
GATHER_RANGE = 1
GATHER_COOLDOWN = 3.0  # seconds
NODE_VALUE = 100
NODE_REGENERATION_RATE = 5

# Victory
RESOURCE_VICTORY_THRESHOLD = 500


@dataclass
class TurnConfig:
    """Timing and income settings for the turn controller."""
    time_limit: Optional[float] = 120.0  # seconds, None disables the timer
    auto_end_turn: bool = True
    resource_phase_delay: float = 1.0
    action_phase_delay: float = 0.5
    passive_income: bool = False
    passive_base_energy: int = 10
    passive_node_bonus: int = 20
    passive_bonus_range: int = 2

    @classmethod
    def from_dict(cls, data: dict) -> "TurnConfig":
        """Build from plain data, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_scenario(cls, scenario: dict) -> "TurnConfig":
        """Build from the scenario's "turn" section."""
        return cls.from_dict(scenario.get("turn", {}))

    def to_dict(self) -> dict:
        return asdict(self)


def load_unit_stats() -> dict:
    """Load unit stats from units.json"""
    with open(DATA_DIR / "units.json", "r") as f:
        return json.load(f)


def load_scenario(path: Optional[Path] = None) -> dict:
    """Load scenario configuration"""
    with open(path or DATA_DIR / "scenario.json", "r") as f:
        return json.load(f)


# Pre-load stats for convenience (used by entities.py)
UNIT_STATS = load_unit_stats()
UNIT_TYPES = tuple(UNIT_STATS.keys())
