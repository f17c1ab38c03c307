"""GridWar Core - Game Logic"""
from .commands import CommandResult, Reason
from .entities import Player, Entity, Unit, Base, ResourceNode
from .events import (
    EventBus,
    GameStartedEvent,
    GameEndedEvent,
    TurnStartedEvent,
    TurnEndedEvent,
    PhaseChangedEvent,
    UnitCreatedEvent,
    UnitMovedEvent,
    UnitAttackedEvent,
    UnitDestroyedEvent,
    ResourcesGatheredEvent,
)
from .world import GameState
from .resources import ResourceManager
from .scheduler import Scheduler
from .turns import TurnController, TurnState
from .serialization import SnapshotError
