"""
Commands
Command objects that callers issue against the game, and the result
every command returns. Rule violations are reported through a Reason,
never raised.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class Reason(Enum):
    """Why a command was refused."""
    INVALID_PLACEMENT = "invalid_placement"
    INVALID_MOVE = "invalid_move"
    INVALID_ATTACK = "invalid_attack"
    OUT_OF_RANGE = "out_of_range"
    WRONG_PHASE = "wrong_phase"
    NOT_WORKER = "not_worker"
    ON_COOLDOWN = "on_cooldown"
    NO_NODE_IN_RANGE = "no_node_in_range"
    NODE_EMPTY = "node_empty"
    NO_ACTIONS_REMAINING = "no_actions_remaining"
    UNKNOWN_UNIT = "unknown_unit"
    NOT_YOUR_TURN = "not_your_turn"
    GAME_NOT_STARTED = "game_not_started"
    TURN_ALREADY_ENDED = "turn_already_ended"
    GAME_ENDED = "game_ended"


@dataclass
class CommandResult:
    """Outcome of a command: success with data, or failure with a reason."""
    success: bool
    reason: Optional[Reason] = None
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, **data: Any) -> "CommandResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, reason: Reason, message: str = "") -> "CommandResult":
        return cls(success=False, reason=reason, message=message)

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, **self.data}
        return {"success": False, "reason": self.reason.value, "message": self.message}


@dataclass
class CreateUnit:
    """Build a unit near the owner's base"""
    unit_type: str
    x: int
    y: int
    owner_id: Optional[int] = None  # Defaults to the current player


@dataclass
class MoveUnit:
    """Move a unit to a cell"""
    unit_id: int
    x: int
    y: int


@dataclass
class AttackUnit:
    """Attack whatever stands on an adjacent cell"""
    attacker_id: int
    x: int
    y: int


@dataclass
class GatherResources:
    """Gather from an adjacent resource node"""
    unit_id: int


@dataclass
class NextPhase:
    """Advance to the next phase"""


@dataclass
class EndTurn:
    """Hand the turn to the other player"""
    turn_number: Optional[int] = None  # Only end this turn


@dataclass
class Surrender:
    player_id: int


@dataclass
class DeclareDraw:
    pass


# Type alias for any command
Command = CreateUnit | MoveUnit | AttackUnit | GatherResources | NextPhase | EndTurn | Surrender | DeclareDraw
