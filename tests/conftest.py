"""Pytest fixtures for GridWar tests."""
import copy

import pytest
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent

# Both bases at their standard positions, no resource nodes
OPEN_SCENARIO = {
    "starting_energy": 100,
    "max_actions": 3,
    "base_health": 200,
    "players": {
        "1": {"name": "Player 1", "base_pos": [1, 23]},
        "2": {"name": "Player 2", "base_pos": [23, 1]},
    },
    "resource_nodes": [],
}


@pytest.fixture
def project_root():
    """Return the project root path."""
    return PROJECT_ROOT


@pytest.fixture
def scenario():
    """A scenario without resource nodes."""
    return copy.deepcopy(OPEN_SCENARIO)


@pytest.fixture
def events():
    from gridwar.core.events import EventBus
    return EventBus()


@pytest.fixture
def state(events, scenario):
    """A GameState on an open map, not started."""
    from gridwar.core.world import GameState
    return GameState(events, scenario)


@pytest.fixture
def default_state():
    """A GameState loaded from the bundled scenario.json."""
    from gridwar.core.world import GameState
    return GameState()


@pytest.fixture
def scheduler():
    from gridwar.core.scheduler import Scheduler
    return Scheduler()


@pytest.fixture
def resources(state, scheduler):
    """A ResourceManager on the scheduler's virtual clock."""
    from gridwar.core.resources import ResourceManager
    return ResourceManager(state, clock=scheduler.clock)


@pytest.fixture
def game(scenario):
    """A started Game on an open map (no renderer, virtual clock)."""
    from gridwar.game import Game
    g = Game(scenario=scenario)
    g.start()
    return g


@pytest.fixture
def spawn():
    """Put a unit straight onto the board, bypassing placement rules."""
    from gridwar.core.entities import create_entity

    def _spawn(state, unit_type, owner_id, x, y):
        unit = create_entity(unit_type, state.get_next_id(), owner_id, (x, y))
        state.board.place(unit.id, x, y)
        state.units[unit.id] = unit
        return unit

    return _spawn
