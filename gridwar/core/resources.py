"""
GridWar Resource Subsystem

Worker gathering, node regeneration and resource statistics.
"""
import time
from typing import Callable, Dict, List, Optional

from .commands import CommandResult, Reason
from .config import (
    GATHER_AMOUNT,
    GATHER_RANGE,
    GATHER_COOLDOWN,
    PHASE_RESOURCE,
    TurnConfig,
)
from .entities import ResourceNode
from .events import ResourcesGatheredEvent, ResourceNodeRegeneratedEvent
from .grid import chebyshev, manhattan


class ResourceManager:
    """Handles worker resource gathering.

    Cooldowns are tracked against `clock`, a callable returning seconds.
    The game passes its scheduler clock; standalone use falls back to
    time.monotonic.
    """

    def __init__(self, state, clock: Optional[Callable[[], float]] = None):
        self.state = state
        self.clock = clock or time.monotonic
        self._cooldowns: Dict[int, float] = {}  # unit_id -> ready at

    # === Queries ===

    def get_nodes_in_range(self, x: int, y: int, radius: int = GATHER_RANGE) -> List[ResourceNode]:
        """Resource nodes within Chebyshev `radius` of a cell."""
        return [
            node for node in self.state.get_resource_nodes()
            if chebyshev(node.pos, (x, y)) <= radius
        ]

    def get_cooldown_remaining(self, unit_id: int) -> float:
        ready_at = self._cooldowns.get(unit_id)
        if ready_at is None:
            return 0.0
        return max(0.0, ready_at - self.clock())

    def is_on_cooldown(self, unit_id: int) -> bool:
        return self.get_cooldown_remaining(unit_id) > 0

    def can_gather_at_position(self, unit_id: int) -> bool:
        """True if the unit is a worker next to a node that still has value."""
        unit = self.state.get_unit(unit_id)
        if unit is None or unit.unit_type != "worker":
            return False
        return any(not node.depleted for node in self.get_nodes_in_range(unit.x, unit.y))

    def get_gathering_potential(self, x: int, y: int, unit_type: str = "worker") -> int:
        """Total node value a worker standing on (x, y) could draw from."""
        if unit_type != "worker":
            return 0
        return sum(node.value for node in self.get_nodes_in_range(x, y))

    def get_optimal_gathering_positions(self, node_id: int) -> List[dict]:
        """Empty cells around a node, best gathering potential first."""
        node = self.state.get_resource_node(node_id)
        if node is None:
            return []
        positions = []
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                x, y = node.x + dx, node.y + dy
                if (dx or dy) and self.state.is_position_empty(x, y):
                    positions.append({"x": x, "y": y, "potential": self.get_gathering_potential(x, y)})
        positions.sort(key=lambda p: -p["potential"])
        return positions

    def calculate_player_resource_income(self, player_id: int) -> int:
        """Gathering potential summed over a player's workers."""
        return sum(
            self.get_gathering_potential(unit.x, unit.y)
            for unit in self.state.get_player_units(player_id)
            if unit.unit_type == "worker"
        )

    def get_resource_node_info(self) -> List[dict]:
        return [
            {
                "id": node.id,
                "position": [node.x, node.y],
                "value": node.value,
                "max_value": node.max_value,
                "regeneration_rate": node.regeneration_rate,
                "efficiency": node.value / node.max_value if node.max_value else 0.0,
            }
            for node in self.state.get_resource_nodes()
        ]

    def get_total_resources_available(self) -> int:
        return sum(node.value for node in self.state.get_resource_nodes())

    def get_resource_stats(self) -> dict:
        nodes = self.state.get_resource_nodes()
        total = self.get_total_resources_available()
        max_possible = sum(node.max_value for node in nodes)
        return {
            "total_available": total,
            "max_possible": max_possible,
            "efficiency": total / max_possible if max_possible else 0.0,
            "node_count": len(nodes),
            "average_node_value": total / len(nodes) if nodes else 0.0,
            "regeneration_per_turn": sum(node.regeneration_rate for node in nodes),
        }

    def calculate_passive_income(self, player_id: int, config: TurnConfig) -> Dict[str, int]:
        """Base energy plus a bonus for each worker near a node.

        The bonus for one node is passive_node_bonus divided by the
        worker's Manhattan distance to it (at least 1).
        """
        bonus = 0
        for unit in self.state.get_player_units(player_id):
            if unit.unit_type != "worker":
                continue
            for node in self.state.get_resource_nodes():
                distance = manhattan(unit.pos, node.pos)
                if distance <= config.passive_bonus_range:
                    bonus += config.passive_node_bonus // max(1, distance)
        return {"base_energy": config.passive_base_energy, "resource_bonus": bonus}

    # === Commands ===

    def gather_resources(self, unit_id: int) -> CommandResult:
        """Gather from the richest node next to a worker."""
        if self.state.is_over:
            return CommandResult.fail(Reason.GAME_ENDED, "The game is over")
        unit = self.state.get_unit(unit_id)
        if unit is None:
            return CommandResult.fail(Reason.UNKNOWN_UNIT, f"No unit with id {unit_id}")
        if unit.unit_type != "worker":
            return CommandResult.fail(Reason.NOT_WORKER, f"A {unit.unit_type} cannot gather")
        if self.state.current_phase != PHASE_RESOURCE:
            return CommandResult.fail(Reason.WRONG_PHASE, "Gathering is only allowed in the resource phase")
        remaining = self.get_cooldown_remaining(unit_id)
        if remaining > 0:
            return CommandResult.fail(Reason.ON_COOLDOWN, f"Worker is on cooldown for {remaining:.1f}s")
        if not unit.can_act():
            return CommandResult.fail(Reason.NO_ACTIONS_REMAINING, "Worker has already acted this turn")

        nodes = self.get_nodes_in_range(unit.x, unit.y)
        if not nodes:
            return CommandResult.fail(Reason.NO_NODE_IN_RANGE, "No resource node within range")
        available = [node for node in nodes if not node.depleted]
        if not available:
            return CommandResult.fail(Reason.NODE_EMPTY, "Nearby resource nodes are depleted")

        # Richest node first, lowest id on ties
        node = min(available, key=lambda n: (-n.value, n.id))
        amount = node.harvest(GATHER_AMOUNT)
        player = self.state.get_player(unit.owner_id)
        player.add_energy(amount)
        player.resources_gathered += amount
        unit.use_action()
        self._cooldowns[unit.id] = self.clock() + GATHER_COOLDOWN
        self.state.record_action("gather", player_id=player.id, unit_id=unit.id, node_id=node.id, amount=amount)

        self.state.events.publish(ResourcesGatheredEvent(
            unit_id=unit.id,
            player_id=player.id,
            amount=amount,
            node_id=node.id,
            node_pos=node.pos,
            node_value_remaining=node.value,
            player_total=player.resources_gathered,
        ))
        return CommandResult.ok(
            amount=amount,
            node_id=node.id,
            node_value_remaining=node.value,
            energy=player.energy,
            resources_gathered=player.resources_gathered,
        )

    def regenerate_resources(self) -> int:
        """Refill every node by its rate, capped at max_value. Returns the total gain."""
        total = 0
        for node in self.state.get_resource_nodes():
            gain = node.regenerate()
            if gain:
                total += gain
                self.state.events.publish(ResourceNodeRegeneratedEvent(
                    node_id=node.id,
                    pos=node.pos,
                    amount=gain,
                    current_value=node.value,
                    max_value=node.max_value,
                ))
        return total

    def clear_gathering_cooldowns(self) -> None:
        self._cooldowns.clear()

    # === Snapshot ===

    def snapshot_cooldowns(self) -> Dict[str, float]:
        """Remaining cooldown per unit, keyed by unit id as a string."""
        snapshot = {}
        for unit_id in sorted(self._cooldowns):
            remaining = self.get_cooldown_remaining(unit_id)
            if remaining > 0:
                snapshot[str(unit_id)] = remaining
        return snapshot

    def restore_cooldowns(self, data: Dict[str, float]) -> None:
        now = self.clock()
        self._cooldowns = {int(unit_id): now + remaining for unit_id, remaining in data.items()}
