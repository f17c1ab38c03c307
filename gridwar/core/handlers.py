"""
Event handlers
Console and file logging built on the store's EventBus.
"""
import json
from typing import List, Optional

from .events import (
    EventBus,
    event_payload,
    GameStartedEvent,
    GameEndedEvent,
    PlayerSurrenderedEvent,
    TurnStartedEvent,
    TurnTimeExpiredEvent,
    TurnForcedEndEvent,
    PhaseChangedEvent,
    UnitCreatedEvent,
    UnitMovedEvent,
    UnitAttackedEvent,
    UnitDestroyedEvent,
    BaseDestroyedEvent,
    ResourcesGatheredEvent,
    ResourceNodeRegeneratedEvent,
    ResourcePhaseCompleteEvent,
)


class LoggerHandler:
    """Simple handler that logs events to console."""

    def __init__(self, events: EventBus, verbose: bool = False):
        self.verbose = verbose
        events.subscribe(GameStartedEvent, self.on_game_started)
        events.subscribe(GameEndedEvent, self.on_game_ended)
        events.subscribe(PlayerSurrenderedEvent, self.on_surrender)
        events.subscribe(TurnStartedEvent, self.on_turn_started)
        events.subscribe(TurnTimeExpiredEvent, self.on_time_expired)
        events.subscribe(UnitDestroyedEvent, self.on_unit_destroyed)
        events.subscribe(BaseDestroyedEvent, self.on_base_destroyed)
        if verbose:
            events.subscribe(TurnForcedEndEvent, self.on_forced_end)
            events.subscribe(PhaseChangedEvent, self.on_phase_changed)
            events.subscribe(UnitCreatedEvent, self.on_unit_created)
            events.subscribe(UnitMovedEvent, self.on_unit_moved)
            events.subscribe(UnitAttackedEvent, self.on_attack)
            events.subscribe(ResourcesGatheredEvent, self.on_resource)
            events.subscribe(ResourceNodeRegeneratedEvent, self.on_regenerated)
            events.subscribe(ResourcePhaseCompleteEvent, self.on_passive_income)

    def on_game_started(self, event: GameStartedEvent) -> None:
        print(f"[GAME] Game {event.game_id} started")

    def on_game_ended(self, event: GameEndedEvent) -> None:
        if event.winner_id is None:
            print(f"[GAME] Draw on turn {event.turn_number} ({event.reason})")
        else:
            print(f"[GAME] Player {event.winner_id} wins on turn {event.turn_number} ({event.reason})")

    def on_surrender(self, event: PlayerSurrenderedEvent) -> None:
        print(f"[GAME] Player {event.player_id} surrendered")

    def on_turn_started(self, event: TurnStartedEvent) -> None:
        print(f"[TURN] Turn {event.turn_number}: player {event.player_id}")

    def on_time_expired(self, event: TurnTimeExpiredEvent) -> None:
        print(f"[TURN] Player {event.player_id} ran out of time")

    def on_forced_end(self, event: TurnForcedEndEvent) -> None:
        print(f"[TURN] Player {event.player_id} ended turn {event.turn_number}")

    def on_phase_changed(self, event: PhaseChangedEvent) -> None:
        print(f"[PHASE] {event.phase} phase for player {event.player_id}")

    def on_unit_created(self, event: UnitCreatedEvent) -> None:
        print(f"[BUILD] Player {event.owner_id} built a {event.unit_type} at {event.pos} for {event.cost}")

    def on_unit_moved(self, event: UnitMovedEvent) -> None:
        print(f"[MOVE] Unit {event.unit_id} moved {event.from_pos} -> {event.to_pos}")

    def on_attack(self, event: UnitAttackedEvent) -> None:
        print(f"[COMBAT] Unit {event.attacker_id} hit {event.target_kind} {event.target_id} "
              f"for {event.damage} damage ({event.target_health} left)")

    def on_unit_destroyed(self, event: UnitDestroyedEvent) -> None:
        print(f"[COMBAT] {event.unit_type} of player {event.owner_id} destroyed at {event.pos}")

    def on_base_destroyed(self, event: BaseDestroyedEvent) -> None:
        print(f"[COMBAT] Base of player {event.owner_id} destroyed by unit {event.attacker_id}")

    def on_resource(self, event: ResourcesGatheredEvent) -> None:
        print(f"[RESOURCE] Player {event.player_id} gathered {event.amount} (total: {event.player_total})")

    def on_regenerated(self, event: ResourceNodeRegeneratedEvent) -> None:
        print(f"[RESOURCE] Node {event.node_id} regenerated to {event.current_value}/{event.max_value}")

    def on_passive_income(self, event: ResourcePhaseCompleteEvent) -> None:
        print(f"[RESOURCE] Player {event.player_id} earned {event.energy_gained} energy")


class EventLogHandler:
    """Keeps every event as a JSON line, optionally appending to a file."""

    def __init__(self, events: EventBus, log_file: Optional[str] = None):
        self.log_file = log_file
        self.logs: List[str] = []
        events.subscribe_all(self.on_event)

    def on_event(self, event) -> None:
        log_line = json.dumps(event_payload(event))
        self.logs.append(log_line)

        # Write to file if specified
        if self.log_file:
            with open(self.log_file, 'a') as f:
                f.write(log_line + '\n')

    def get_recent_logs(self, count: int = 10) -> List[str]:
        """Get most recent log entries."""
        return self.logs[-count:]

    def save_logs(self, filename: str) -> None:
        """Save all logs to a file."""
        with open(filename, 'w') as f:
            for line in self.logs:
                f.write(line + '\n')
