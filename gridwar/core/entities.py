"""
GridWar Entities

Players, units, bases and resource nodes.
Unit stats are loaded from units.json via UNIT_STATS.
"""
from dataclasses import asdict, dataclass
from typing import Optional

from .config import (
    UNIT_STATS,
    STARTING_ENERGY,
    MAX_ACTIONS,
    UNIT_ACTIONS_PER_TURN,
    BASE_HEALTH,
    NODE_VALUE,
    NODE_REGENERATION_RATE,
)


@dataclass
class Player:
    """One side of the match. Never destroyed."""
    id: int
    name: str = ""
    energy: int = STARTING_ENERGY
    actions_remaining: int = MAX_ACTIONS
    resources_gathered: int = 0
    is_active: bool = False
    max_actions: int = MAX_ACTIONS

    def __post_init__(self):
        if not self.name:
            self.name = f"Player {self.id}"

    def add_energy(self, amount: int) -> None:
        self.energy += amount

    def spend_energy(self, amount: int) -> bool:
        """Spend energy. Returns True if successful."""
        if self.energy >= amount:
            self.energy -= amount
            return True
        return False

    def use_action(self) -> bool:
        if self.actions_remaining > 0:
            self.actions_remaining -= 1
            return True
        return False

    def reset_actions(self) -> None:
        self.actions_remaining = self.max_actions

    def serialize(self) -> dict:
        return asdict(self)

    @classmethod
    def deserialize(cls, data: dict) -> "Player":
        return cls(**data)


class Entity:
    """Base class for everything that occupies a cell and can be hit."""

    def __init__(self, entity_id: int, owner_id: int, pos: tuple, health: int):
        self.id = entity_id
        self.owner_id = owner_id
        self.x, self.y = pos
        self.health = health
        self.max_health = health

    def take_damage(self, amount: int) -> bool:
        """Reduce health by amount. Returns True if this destroyed the entity."""
        self.health = max(0, self.health - amount)
        return self.health <= 0

    @property
    def pos(self) -> tuple:
        return (self.x, self.y)

    @property
    def kind(self) -> str:
        return self.__class__.__name__.lower()


class Unit(Entity):
    """A mobile piece. Stats come from its type."""

    def __init__(self, entity_id: int, unit_type: str, owner_id: int, pos: tuple):
        if unit_type not in UNIT_STATS:
            raise ValueError(f"Unknown unit type: {unit_type}")
        stats = UNIT_STATS[unit_type]
        super().__init__(entity_id, owner_id, pos, health=stats["health"])
        self.unit_type = unit_type
        self.cost = stats["cost"]
        self.damage = stats["damage"]
        self.movement = stats["movement"]
        self.has_moved = False
        self.actions_remaining = UNIT_ACTIONS_PER_TURN

    @property
    def alive(self) -> bool:
        return self.health > 0

    def can_act(self) -> bool:
        return self.actions_remaining > 0

    def use_action(self) -> bool:
        if self.actions_remaining > 0:
            self.actions_remaining -= 1
            return True
        return False

    def reset_turn(self) -> None:
        """Clear per-turn flags at the start of the owner's turn."""
        self.has_moved = False
        self.actions_remaining = UNIT_ACTIONS_PER_TURN

    def serialize(self) -> dict:
        return {
            "id": self.id,
            "unit_type": self.unit_type,
            "owner_id": self.owner_id,
            "position": [self.x, self.y],
            "health": self.health,
            "max_health": self.max_health,
            "has_moved": self.has_moved,
            "actions_remaining": self.actions_remaining,
        }

    @classmethod
    def deserialize(cls, data: dict) -> "Unit":
        unit = cls(data["id"], data["unit_type"], data["owner_id"], tuple(data["position"]))
        unit.health = data["health"]
        unit.max_health = data.get("max_health", unit.max_health)
        unit.has_moved = data["has_moved"]
        unit.actions_remaining = data["actions_remaining"]
        return unit


class Base(Entity):
    """A player's headquarters. Never moves; its destruction ends the match."""

    def __init__(self, entity_id: int, owner_id: int, pos: tuple, health: int = BASE_HEALTH):
        super().__init__(entity_id, owner_id, pos, health)
        self.is_destroyed = False

    def take_damage(self, amount: int) -> bool:
        self.is_destroyed = super().take_damage(amount)
        return self.is_destroyed

    def serialize(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "position": [self.x, self.y],
            "health": self.health,
            "max_health": self.max_health,
            "is_destroyed": self.is_destroyed,
        }

    @classmethod
    def deserialize(cls, data: dict) -> "Base":
        base = cls(data["id"], data["owner_id"], tuple(data["position"]), data.get("max_health", BASE_HEALTH))
        base.health = data["health"]
        base.is_destroyed = data["is_destroyed"]
        return base


@dataclass
class ResourceNode:
    """A resource node on the grid. Depleted and replenished, never removed."""
    id: int
    x: int
    y: int
    value: int = NODE_VALUE
    max_value: int = NODE_VALUE
    regeneration_rate: int = NODE_REGENERATION_RATE
    owner_id: Optional[int] = None  # Nodes belong to nobody

    @property
    def pos(self) -> tuple:
        return (self.x, self.y)

    @property
    def kind(self) -> str:
        return "resource_node"

    @property
    def depleted(self) -> bool:
        return self.value <= 0

    def harvest(self, amount: int) -> int:
        """Take up to `amount` from the node, return what was actually taken."""
        taken = min(amount, self.value)
        self.value -= taken
        return taken

    def regenerate(self) -> int:
        """Refill by the regeneration rate, capped at max_value. Returns the gain."""
        gain = min(self.regeneration_rate, self.max_value - self.value)
        if gain <= 0:
            return 0
        self.value += gain
        return gain

    def serialize(self) -> dict:
        return {
            "id": self.id,
            "position": [self.x, self.y],
            "value": self.value,
            "max_value": self.max_value,
            "regeneration_rate": self.regeneration_rate,
        }

    @classmethod
    def deserialize(cls, data: dict) -> "ResourceNode":
        x, y = data["position"]
        return cls(
            id=data["id"], x=x, y=y,
            value=data["value"],
            max_value=data["max_value"],
            regeneration_rate=data["regeneration_rate"],
        )


def create_entity(unit_type: str, entity_id: int, owner_id: int, pos: tuple) -> Unit:
    """Factory function to create units by type name."""
    return Unit(entity_id, unit_type, owner_id, pos)
