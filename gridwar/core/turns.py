"""
GridWar Turn Controller

Drives the resource -> action -> build cycle for the current player,
with timed auto-advance and a turn time limit. Timers run on the
Scheduler and carry the generation token they were armed with; a
callback whose token is stale does nothing.
"""
from dataclasses import dataclass
from typing import Optional

from .commands import CommandResult, Reason
from .config import (
    PHASES,
    PHASE_RESOURCE,
    PHASE_ACTION,
    PHASE_BUILD,
    STATUS_READY,
    STATUS_PLAYING,
    TurnConfig,
)
from .events import (
    GameEndedEvent,
    ActionUsedEvent,
    TurnStartedEvent,
    TurnEndedEvent,
    PhaseChangedEvent,
    TurnTimeExpiredEvent,
    TurnForcedEndEvent,
    ResourcePhaseCompleteEvent,
)


# Phase in which each kind of player command is legal
ACTION_PHASES = {
    "gather": PHASE_RESOURCE,
    "move": PHASE_ACTION,
    "attack": PHASE_ACTION,
    "build": PHASE_BUILD,
}


@dataclass
class TurnState:
    turn_number: int
    current_phase: str
    current_player_id: int
    is_processing: bool


class TurnController:
    """The turn/phase state machine.

    Starts the match, then follows the store's ActionUsedEvent stream
    to auto-advance out of the action phase.
    """

    def __init__(self, state, resources, scheduler, config: Optional[TurnConfig] = None):
        self.state = state
        self.resources = resources
        self.scheduler = scheduler
        self.config = config or TurnConfig.from_scenario(state.scenario)

        self.is_processing = False
        self._phase_token = 0  # Bumped on every phase or turn change
        self._turn_token = 0   # Bumped on every turn change
        self._turn_deadline: Optional[float] = None
        self._phase_deadline: Optional[float] = None  # Pending auto-advance
        self._turn_expired = False  # Timer fired, turn still running

        events = state.events
        events.subscribe(GameEndedEvent, self._on_game_ended)
        events.subscribe(ActionUsedEvent, self._on_action_used)

    # === Queries ===

    @property
    def phase_index(self) -> int:
        return PHASES.index(self.state.current_phase)

    @property
    def turn_state(self) -> TurnState:
        return TurnState(
            turn_number=self.state.turn_number,
            current_phase=self.state.current_phase,
            current_player_id=self.state.current_player_id,
            is_processing=self.is_processing,
        )

    def get_time_remaining(self) -> Optional[float]:
        """Seconds left on the turn timer, 0.0 once it fired, None without a timer."""
        if self._turn_expired:
            return 0.0
        if self._turn_deadline is None:
            return None
        return max(0.0, self._turn_deadline - self.scheduler.now)

    @property
    def turn_expired(self) -> bool:
        return self._turn_expired

    def get_phase_time_remaining(self) -> Optional[float]:
        """Seconds until the pending phase auto-advance, None if none is pending."""
        if self._phase_deadline is None:
            return None
        return max(0.0, self._phase_deadline - self.scheduler.now)

    def get_current_phase_info(self) -> dict:
        player = self.state.get_current_player()
        return {
            "status": self.state.status,
            "phase": self.state.current_phase,
            "phase_index": self.phase_index,
            "player_id": player.id,
            "turn_number": self.state.turn_number,
            "actions_remaining": player.actions_remaining,
            "energy": player.energy,
            "time_remaining": self.get_time_remaining(),
            "is_processing": self.is_processing,
        }

    def authorize(self, action: str, player_id: int) -> Optional[CommandResult]:
        """Return a failure if `player_id` may not perform `action` now, else None."""
        if action not in ACTION_PHASES:
            raise ValueError(f"Unknown action: {action}")
        failure = self.check_running()
        if failure is not None:
            return failure
        if player_id != self.state.current_player_id:
            return CommandResult.fail(
                Reason.NOT_YOUR_TURN, f"It is player {self.state.current_player_id}'s turn"
            )
        required = ACTION_PHASES[action]
        if self.state.current_phase != required:
            return CommandResult.fail(
                Reason.WRONG_PHASE, f"Cannot {action} during the {self.state.current_phase} phase"
            )
        return None

    def check_running(self) -> Optional[CommandResult]:
        if self.state.is_over:
            return CommandResult.fail(Reason.GAME_ENDED, "The game is over")
        if self.state.status != STATUS_PLAYING:
            return CommandResult.fail(Reason.GAME_NOT_STARTED, "The game has not started")
        if self.is_processing:
            return CommandResult.fail(Reason.TURN_ALREADY_ENDED, "The turn is ending")
        return None

    # === Transitions ===

    def start_game(self) -> CommandResult:
        """Start the match and the first player's turn."""
        if self.state.status != STATUS_READY:
            return self.state.start_game()
        result = self.state.start_game()
        self.start_turn()
        return result

    def start_turn(self) -> CommandResult:
        """Begin the current player's turn in the resource phase."""
        failure = self.check_running()
        if failure is not None:
            return failure

        player_id = self.state.current_player_id
        self.state.reset_player_turn(player_id)
        self.resources.clear_gathering_cooldowns()
        self.state.set_phase(PHASE_RESOURCE)
        phase_token = self._next_phase_token()
        self._arm_turn_timer(self._next_turn_token(), self.config.time_limit)

        self.state.events.publish(TurnStartedEvent(
            player_id=player_id,
            turn_number=self.state.turn_number,
            phase=PHASE_RESOURCE,
        ))
        if self.config.passive_income:
            self._pay_passive_income(player_id)

        self._schedule_auto_advance(phase_token, PHASE_RESOURCE, self.config.resource_phase_delay)
        return CommandResult.ok(player_id=player_id, turn_number=self.state.turn_number)

    def next_phase(self) -> CommandResult:
        """Advance one phase; past build the turn ends."""
        failure = self.check_running()
        if failure is not None:
            return failure

        index = self.phase_index + 1
        if index >= len(PHASES):
            return self.end_turn()

        phase = PHASES[index]
        self.state.set_phase(phase)
        token = self._next_phase_token()
        self.state.events.publish(PhaseChangedEvent(
            phase=phase,
            player_id=self.state.current_player_id,
            turn_number=self.state.turn_number,
        ))
        if phase == PHASE_ACTION and self.state.get_current_player().actions_remaining <= 0:
            self._schedule_auto_advance(token, PHASE_ACTION, self.config.action_phase_delay)
        return CommandResult.ok(phase=phase)

    def end_turn(self) -> CommandResult:
        """Check victory, hand the turn to the next player and start it."""
        failure = self.check_running()
        if failure is not None:
            return failure

        self.is_processing = True
        try:
            winner_id = self.state.check_victory_condition()
            if self.state.is_over:
                return CommandResult.ok(game_over=True, winner_id=winner_id)

            self._invalidate_timers()
            previous_id = self.state.current_player_id
            next_id = self.state.pass_turn()
            self.state.events.publish(TurnEndedEvent(
                previous_player_id=previous_id,
                next_player_id=next_id,
                turn_number=self.state.turn_number,
            ))

            # Nodes regenerate once per full cycle
            if next_id == min(self.state.players):
                self.resources.regenerate_resources()
        finally:
            self.is_processing = False

        self.start_turn()
        return CommandResult.ok(
            previous_player_id=previous_id,
            next_player_id=next_id,
            turn_number=self.state.turn_number,
        )

    def force_end_turn(self, turn_number: Optional[int] = None) -> CommandResult:
        """End the turn on the player's request.

        With `turn_number`, the request only ends that turn: once play
        has moved past it the request is refused, so a repeated
        submission cannot skip a player.
        """
        failure = self.check_running()
        if failure is not None:
            return failure
        if turn_number is not None:
            if turn_number > self.state.turn_number:
                return CommandResult.fail(Reason.NOT_YOUR_TURN, f"Turn {turn_number} has not started")
            if turn_number < self.state.turn_number:
                return CommandResult.fail(
                    Reason.TURN_ALREADY_ENDED, f"Turn {turn_number} has already ended"
                )

        self.state.events.publish(TurnForcedEndEvent(
            player_id=self.state.current_player_id,
            turn_number=self.state.turn_number,
        ))
        return self.end_turn()

    def resume(self, time_remaining: Optional[float] = None,
               phase_time_remaining: Optional[float] = None,
               turn_expired: bool = False) -> None:
        """Re-arm timers for a restored game that is mid-turn."""
        if self.state.status != STATUS_PLAYING:
            return
        token = self._next_phase_token()
        turn_token = self._next_turn_token()
        if turn_expired:
            # The timer already fired for this turn
            self._turn_deadline = None
            self._turn_expired = True
        elif self.config.time_limit is None:
            self._arm_turn_timer(turn_token, None)
        else:
            limit = self.config.time_limit if time_remaining is None else time_remaining
            self._arm_turn_timer(turn_token, limit)
        phase = self.state.current_phase
        if phase_time_remaining is not None:
            self._schedule_auto_advance(token, phase, phase_time_remaining)
        elif phase == PHASE_RESOURCE:
            self._schedule_auto_advance(token, phase, self.config.resource_phase_delay)
        elif phase == PHASE_ACTION and self.state.get_current_player().actions_remaining <= 0:
            self._schedule_auto_advance(token, phase, self.config.action_phase_delay)

    # === Timers ===

    def _next_phase_token(self) -> int:
        self._phase_token += 1
        self._phase_deadline = None
        return self._phase_token

    def _next_turn_token(self) -> int:
        self._turn_token += 1
        return self._turn_token

    def _invalidate_timers(self) -> None:
        self._next_phase_token()
        self._next_turn_token()
        self._turn_deadline = None
        self._turn_expired = False

    def _arm_turn_timer(self, token: int, limit: Optional[float]) -> None:
        self._turn_expired = False
        if limit is None:
            self._turn_deadline = None
            return
        self._turn_deadline = self.scheduler.now + limit
        self.scheduler.call_later(limit, self._on_turn_timeout, token)

    def _schedule_auto_advance(self, token: int, phase: str, delay: float) -> None:
        self._phase_deadline = self.scheduler.now + delay
        self.scheduler.call_later(delay, self._auto_advance, token, phase)

    def _auto_advance(self, token: int, phase: str) -> None:
        if token != self._phase_token or self.state.current_phase != phase:
            return
        if self.check_running() is not None:
            return
        self._phase_deadline = None
        self.next_phase()

    def _on_turn_timeout(self, token: int) -> None:
        if token != self._turn_token or self.check_running() is not None:
            return
        self._turn_deadline = None
        self._turn_expired = True
        self.state.events.publish(TurnTimeExpiredEvent(
            player_id=self.state.current_player_id,
            turn_number=self.state.turn_number,
        ))
        if self.config.auto_end_turn:
            self.end_turn()

    def _pay_passive_income(self, player_id: int) -> None:
        income = self.resources.calculate_passive_income(player_id, self.config)
        gained = income["base_energy"] + income["resource_bonus"]
        self.state.get_player(player_id).add_energy(gained)
        self.state.events.publish(ResourcePhaseCompleteEvent(
            player_id=player_id,
            energy_gained=gained,
            resource_bonus=income["resource_bonus"],
        ))

    # === Event handlers ===

    def _on_game_ended(self, event: GameEndedEvent) -> None:
        self._invalidate_timers()

    def _on_action_used(self, event: ActionUsedEvent) -> None:
        if self.state.current_phase != PHASE_ACTION or event.actions_remaining > 0:
            return
        if event.player_id != self.state.current_player_id or self.state.is_over:
            return
        self._schedule_auto_advance(self._phase_token, PHASE_ACTION, self.config.action_phase_delay)
