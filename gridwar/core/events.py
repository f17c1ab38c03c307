"""
GridWar Events

Typed events for every state change, and the EventBus that carries them.
Each event class has a `name` with its camel-case wire name so
collaborators forwarding the stream (persistence, UI) can tag payloads.
"""
from dataclasses import asdict, dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional


# === Match lifecycle ===

@dataclass
class GameStartedEvent:
    """Fired when the match leaves the ready state."""
    name: ClassVar[str] = "gameStarted"
    game_id: str


@dataclass
class GameEndedEvent:
    """Fired exactly once, when the match reaches its terminal state."""
    name: ClassVar[str] = "gameEnded"
    winner_id: Optional[int]  # None for a draw
    reason: str               # "base_destroyed", "resources", "surrender", "draw"
    turn_number: int


@dataclass
class PlayerSurrenderedEvent:
    name: ClassVar[str] = "playerSurrendered"
    player_id: int
    winner_id: int


@dataclass
class DrawDeclaredEvent:
    name: ClassVar[str] = "drawDeclared"
    turn_number: int


# === Turns and phases ===

@dataclass
class TurnStartedEvent:
    name: ClassVar[str] = "turnStarted"
    player_id: int
    turn_number: int
    phase: str


@dataclass
class TurnEndedEvent:
    name: ClassVar[str] = "turnEnded"
    previous_player_id: int
    next_player_id: int
    turn_number: int  # Number of the turn that is about to start


@dataclass
class PhaseChangedEvent:
    name: ClassVar[str] = "phaseChanged"
    phase: str
    player_id: int
    turn_number: int


@dataclass
class TurnTimeExpiredEvent:
    name: ClassVar[str] = "turnTimeExpired"
    player_id: int
    turn_number: int


@dataclass
class TurnForcedEndEvent:
    name: ClassVar[str] = "turnForcedEnd"
    player_id: int
    turn_number: int


@dataclass
class ActionUsedEvent:
    """Fired whenever a player action is spent."""
    name: ClassVar[str] = "actionUsed"
    player_id: int
    actions_remaining: int


# === Units and combat ===

@dataclass
class UnitCreatedEvent:
    name: ClassVar[str] = "unitCreated"
    unit_id: int
    unit_type: str
    owner_id: int
    pos: tuple
    cost: int


@dataclass
class UnitMovedEvent:
    name: ClassVar[str] = "unitMoved"
    unit_id: int
    owner_id: int
    from_pos: tuple
    to_pos: tuple
    cost: int  # Manhattan distance travelled


@dataclass
class UnitAttackedEvent:
    """Fired for every resolved attack, before any destruction event."""
    name: ClassVar[str] = "unitAttacked"
    attacker_id: int
    target_id: int
    target_kind: str  # "unit" or "base"
    damage: int
    target_health: int
    destroyed: bool


@dataclass
class UnitDestroyedEvent:
    """Fired when a unit dies in combat."""
    name: ClassVar[str] = "unitDestroyed"
    unit_id: int
    unit_type: str
    owner_id: int
    pos: tuple
    killer_id: Optional[int] = None


@dataclass
class UnitRemovedEvent:
    """Fired when a unit is removed outside combat (cleanup, elimination)."""
    name: ClassVar[str] = "unitRemoved"
    unit_id: int
    owner_id: int
    pos: tuple


@dataclass
class BaseDestroyedEvent:
    name: ClassVar[str] = "baseDestroyed"
    base_id: int
    owner_id: int
    pos: tuple
    attacker_id: int


# === Resources ===

@dataclass
class ResourcesGatheredEvent:
    name: ClassVar[str] = "resourcesGathered"
    unit_id: int
    player_id: int
    amount: int
    node_id: int
    node_pos: tuple
    node_value_remaining: int
    player_total: int  # Player's resources_gathered after this gather


@dataclass
class ResourceNodeRegeneratedEvent:
    name: ClassVar[str] = "resourceNodeRegenerated"
    node_id: int
    pos: tuple
    amount: int
    current_value: int
    max_value: int


@dataclass
class ResourcePhaseCompleteEvent:
    """Fired when passive income is paid out at the start of a turn."""
    name: ClassVar[str] = "resourcePhaseComplete"
    player_id: int
    energy_gained: int
    resource_bonus: int


def event_payload(event: Any) -> Dict[str, Any]:
    """Plain-dict form of an event, tagged with its wire name."""
    return {"event": type(event).name, **asdict(event)}


# === EventBus ===

class EventBus:
    """Central event dispatcher.

    The store publishes, collaborators subscribe by event type.
    Publishers don't know about subscribers; handlers run synchronously
    in subscription order, so the stream order matches mutation order.
    """

    def __init__(self):
        self._subscribers: Dict[type, List[Callable]] = {}
        self._catch_all: List[Callable] = []
        self._event_history: List[Any] = []  # For debugging/replay
        self._recording = False

    def subscribe(self, event_type: type, handler: Callable) -> None:
        """Register a handler for an event type."""
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: Callable) -> None:
        """Remove a handler from an event type."""
        if event_type in self._subscribers:
            try:
                self._subscribers[event_type].remove(handler)
            except ValueError:
                pass  # Handler wasn't subscribed

    def subscribe_all(self, handler: Callable) -> None:
        """Register a handler that receives every event."""
        self._catch_all.append(handler)

    def unsubscribe_all(self, handler: Callable) -> None:
        if handler in self._catch_all:
            self._catch_all.remove(handler)

    def publish(self, event: Any) -> None:
        """Notify all handlers subscribed to this event's type."""
        if self._recording:
            self._event_history.append(event)

        # Copy so handlers may subscribe or unsubscribe while being notified
        for handler in list(self._subscribers.get(type(event), [])):
            handler(event)
        for handler in list(self._catch_all):
            handler(event)

    def clear(self) -> None:
        """Clear all subscribers."""
        self._subscribers.clear()
        self._catch_all.clear()

    def start_recording(self) -> None:
        """Start recording events for replay/debugging."""
        self._recording = True
        self._event_history.clear()

    def stop_recording(self) -> List[Any]:
        """Stop recording and return event history."""
        self._recording = False
        return self._event_history.copy()

    @property
    def recorded(self) -> List[Any]:
        return self._event_history.copy()
