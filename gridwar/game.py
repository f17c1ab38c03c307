"""
GridWar - Turn-Based Grid Strategy Core
========================================

The Game wires the store, resource subsystem, scheduler and turn
controller together and exposes the command and query API.

Features:
- Phase-gated commands for the current player
- Timed auto-advance and turn time limit on a virtual clock
- Real-time driving via update() or explicit tick(dt)
- Snapshot save/restore including cooldowns and the turn timer
"""
import time
from typing import List, Optional

from gridwar.core.commands import (
    CommandResult,
    Reason,
    Command,
    CreateUnit,
    MoveUnit,
    AttackUnit,
    GatherResources,
    NextPhase,
    EndTurn,
    Surrender,
    DeclareDraw,
)
from gridwar.core.config import TurnConfig
from gridwar.core.events import EventBus
from gridwar.core.handlers import LoggerHandler, EventLogHandler
from gridwar.core.resources import ResourceManager
from gridwar.core.scheduler import Scheduler
from gridwar.core.turns import TurnController, TurnState
from gridwar.core.world import GameState


class Game:
    """Main game controller."""

    SIM_HZ = 30  # Simulation ticks per second
    SIM_DT = 1.0 / SIM_HZ

    def __init__(self, verbose: bool = False, scenario: Optional[dict] = None,
                 config: Optional[TurnConfig] = None, log_file: Optional[str] = None,
                 snapshot: Optional[dict] = None):
        self.verbose = verbose
        self.events = EventBus()
        self.scheduler = Scheduler()

        # Loggers subscribe first so they report events in publish order
        self.logger = LoggerHandler(self.events, verbose=True) if verbose else None
        self.event_log = EventLogHandler(self.events, log_file) if log_file else None

        if snapshot is not None:
            if config is None and "turn_config" in snapshot:
                config = TurnConfig.from_dict(snapshot["turn_config"])
            self.state = GameState.deserialize(snapshot, self.events)
        else:
            self.state = GameState(self.events, scenario)

        # Systems
        self.resources = ResourceManager(self.state, clock=self.scheduler.clock)
        self.turns = TurnController(self.state, self.resources, self.scheduler, config)

        if snapshot is not None:
            self.resources.restore_cooldowns(snapshot.get("gathering_cooldowns", {}))
            self.turns.resume(
                snapshot.get("turn_time_remaining"),
                snapshot.get("phase_time_remaining"),
                snapshot.get("turn_expired", False),
            )

        # Timing
        self.accumulator = 0.0
        self.last_time = time.time()

    @classmethod
    def from_snapshot(cls, data: dict, verbose: bool = False,
                      config: Optional[TurnConfig] = None) -> "Game":
        """Restore a game saved with serialize()."""
        return cls(verbose=verbose, config=config, snapshot=data)

    # === Loop ===

    def start(self) -> CommandResult:
        self.accumulator = 0.0
        self.last_time = time.time()
        return self.turns.start_game()

    def tick(self, dt: float) -> None:
        """Advance the game clock by dt seconds."""
        self.scheduler.update(dt)

    def update(self) -> None:
        """Update game state with fixed timestep."""
        current_time = time.time()
        frame_time = current_time - self.last_time
        self.last_time = current_time

        self.accumulator += frame_time

        while self.accumulator >= self.SIM_DT:
            self.tick(self.SIM_DT)
            self.accumulator -= self.SIM_DT

    @property
    def is_over(self) -> bool:
        return self.state.is_over

    @property
    def winner_id(self) -> Optional[int]:
        return self.state.winner_id

    # === Commands ===

    def _authorize_unit(self, action: str, unit_id: int) -> Optional[CommandResult]:
        failure = self.turns.check_running()
        if failure is not None:
            return failure
        unit = self.state.get_unit(unit_id)
        if unit is None:
            return CommandResult.fail(Reason.UNKNOWN_UNIT, f"No unit with id {unit_id}")
        return self.turns.authorize(action, unit.owner_id)

    def create_unit(self, unit_type: str, x: int, y: int, owner_id: Optional[int] = None) -> CommandResult:
        """Build a unit for the current player (build phase)."""
        if owner_id is None:
            owner_id = self.state.current_player_id
        failure = self.turns.authorize("build", owner_id)
        if failure is not None:
            return failure
        return self.state.create_unit(unit_type, owner_id, x, y)

    def move_unit(self, unit_id: int, x: int, y: int) -> CommandResult:
        failure = self._authorize_unit("move", unit_id)
        if failure is not None:
            return failure
        return self.state.move_unit(unit_id, x, y)

    def attack_unit(self, attacker_id: int, x: int, y: int) -> CommandResult:
        failure = self._authorize_unit("attack", attacker_id)
        if failure is not None:
            return failure
        return self.state.attack_unit(attacker_id, x, y)

    def gather_resources(self, unit_id: int) -> CommandResult:
        failure = self._authorize_unit("gather", unit_id)
        if failure is not None:
            return failure
        return self.resources.gather_resources(unit_id)

    def next_phase(self) -> CommandResult:
        return self.turns.next_phase()

    def force_end_turn(self, turn_number: Optional[int] = None) -> CommandResult:
        return self.turns.force_end_turn(turn_number)

    def player_surrender(self, player_id: int) -> CommandResult:
        return self.state.player_surrender(player_id)

    def declare_draw(self) -> CommandResult:
        return self.state.declare_draw()

    def check_stalemate(self) -> bool:
        return self.state.check_stalemate()

    def execute(self, command: Command) -> CommandResult:
        """Dispatch a command object to the matching method."""
        if isinstance(command, CreateUnit):
            return self.create_unit(command.unit_type, command.x, command.y, command.owner_id)
        elif isinstance(command, MoveUnit):
            return self.move_unit(command.unit_id, command.x, command.y)
        elif isinstance(command, AttackUnit):
            return self.attack_unit(command.attacker_id, command.x, command.y)
        elif isinstance(command, GatherResources):
            return self.gather_resources(command.unit_id)
        elif isinstance(command, NextPhase):
            return self.next_phase()
        elif isinstance(command, EndTurn):
            return self.force_end_turn(command.turn_number)
        elif isinstance(command, Surrender):
            return self.player_surrender(command.player_id)
        elif isinstance(command, DeclareDraw):
            return self.declare_draw()
        raise TypeError(f"Unknown command: {command!r}")

    # === Queries ===

    def entity_at(self, x: int, y: int) -> Optional[dict]:
        """Snapshot of whatever occupies (x, y), tagged with its kind."""
        entity = self.state.entity_at(x, y)
        if entity is None:
            return None
        return {"kind": entity.kind, **entity.serialize()}

    def get_player_units(self, player_id: int) -> List[dict]:
        return [unit.serialize() for unit in self.state.get_player_units(player_id)]

    def get_valid_move_positions(self, unit_id: int) -> List[dict]:
        return self.state.get_valid_move_positions(unit_id)

    def get_valid_attack_targets(self, unit_id: int) -> List[dict]:
        return self.state.get_valid_attack_targets(unit_id)

    def get_valid_placement_positions(self, player_id: Optional[int] = None) -> List[dict]:
        if player_id is None:
            player_id = self.state.current_player_id
        return self.state.get_valid_placement_positions(player_id, self.state.placement_radius(player_id))

    def get_current_phase_info(self) -> dict:
        return self.turns.get_current_phase_info()

    @property
    def turn_state(self) -> TurnState:
        return self.turns.turn_state

    # === Save/load ===

    def serialize(self) -> dict:
        """Store snapshot plus the in-flight timers."""
        snapshot = self.state.serialize()
        snapshot["gathering_cooldowns"] = self.resources.snapshot_cooldowns()
        snapshot["turn_time_remaining"] = self.turns.get_time_remaining()
        snapshot["phase_time_remaining"] = self.turns.get_phase_time_remaining()
        snapshot["turn_expired"] = self.turns.turn_expired
        snapshot["turn_config"] = self.turns.config.to_dict()
        return snapshot
