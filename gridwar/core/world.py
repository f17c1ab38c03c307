"""
GridWar World - the Entity Store

Features:
- Single owner of players, units, bases and resource nodes
- Occupancy board with spatial queries
- Rule-checked commands (create, move, attack, remove)
- Victory evaluation (base destruction, resource threshold, surrender, draw)
- Snapshot serialize/deserialize
"""
import uuid
from typing import Dict, List, Optional

from .commands import CommandResult, Reason
from .config import (
    UNIT_STATS,
    PLAYER_IDS,
    PHASES,
    PHASE_RESOURCE,
    STATUS_READY,
    STATUS_PLAYING,
    STATUS_ENDED,
    STARTING_ENERGY,
    MAX_ACTIONS,
    BASE_HEALTH,
    PLACEMENT_RADIUS,
    MAX_PLACEMENT_RADIUS,
    ATTACK_RANGE,
    NODE_VALUE,
    NODE_REGENERATION_RATE,
    RESOURCE_VICTORY_THRESHOLD,
    load_scenario,
)
from .entities import Player, Unit, Base, ResourceNode, create_entity
from .events import (
    EventBus,
    GameStartedEvent,
    GameEndedEvent,
    PlayerSurrenderedEvent,
    DrawDeclaredEvent,
    ActionUsedEvent,
    UnitCreatedEvent,
    UnitMovedEvent,
    UnitAttackedEvent,
    UnitDestroyedEvent,
    UnitRemovedEvent,
    BaseDestroyedEvent,
)
from .grid import Board, manhattan, chebyshev, ring, cells_within
from .serialization import SNAPSHOT_VERSION, validate_snapshot


DEFAULT_BASE_POSITIONS = {1: (1, 23), 2: (23, 1)}

# Scenario used when rebuilding a state from a snapshot
EMPTY_SCENARIO = {"players": {}, "resource_nodes": []}


class GameState:
    """Authoritative game state container.

    Every successful mutation publishes an event on `self.events`, after
    the mutation and in mutation order. Rule violations come back as a
    failed CommandResult and leave the state untouched.
    """

    def __init__(self, events: Optional[EventBus] = None, scenario: Optional[dict] = None):
        self.events = events if events is not None else EventBus()
        self.scenario = scenario if scenario is not None else load_scenario()

        self.game_id = uuid.uuid4().hex[:9]
        self.status = STATUS_READY
        self.winner_id: Optional[int] = None
        self.current_player_id = PLAYER_IDS[0]
        self.current_phase = PHASE_RESOURCE
        self.turn_number = 1
        self.next_id = 1

        self.board = Board()
        self.players: Dict[int, Player] = {}
        self.units: Dict[int, Unit] = {}
        self.bases: Dict[int, Base] = {}
        self.resource_nodes: Dict[int, ResourceNode] = {}
        self.action_history: List[dict] = []

        self._load_scenario(self.scenario)

    def _load_scenario(self, scenario: dict) -> None:
        """Create players, bases and resource nodes from a scenario dict."""
        starting_energy = scenario.get("starting_energy", STARTING_ENERGY)
        max_actions = scenario.get("max_actions", MAX_ACTIONS)
        base_health = scenario.get("base_health", BASE_HEALTH)

        players_data = scenario.get("players")
        if players_data is None:
            players_data = {str(pid): {"base_pos": list(pos)} for pid, pos in DEFAULT_BASE_POSITIONS.items()}

        for player_str, player_data in sorted(players_data.items()):
            player_id = int(player_str)
            self.players[player_id] = Player(
                id=player_id,
                name=player_data.get("name", ""),
                energy=starting_energy,
                actions_remaining=max_actions,
                max_actions=max_actions,
            )
            if "base_pos" in player_data:
                base_pos = tuple(player_data["base_pos"])
                base = Base(self.get_next_id(), player_id, base_pos, health=base_health)
                self.bases[base.id] = base
                self.board.place(base.id, *base_pos)

        if self.current_player_id in self.players:
            self.players[self.current_player_id].is_active = True

        for node_data in scenario.get("resource_nodes", []):
            pos = node_data["pos"]
            value = node_data.get("value", NODE_VALUE)
            self.add_resource_node(
                pos[0], pos[1],
                value=value,
                max_value=node_data.get("max_value", value),
                regeneration_rate=node_data.get("regeneration_rate", NODE_REGENERATION_RATE),
            )

    # === Ids and lookups ===

    def get_next_id(self) -> int:
        """Generate a unique entity ID"""
        entity_id = self.next_id
        self.next_id += 1
        return entity_id

    def add_resource_node(self, x: int, y: int, value: int = NODE_VALUE,
                          max_value: Optional[int] = None,
                          regeneration_rate: int = NODE_REGENERATION_RATE) -> ResourceNode:
        """Place a resource node on a free cell."""
        node = ResourceNode(
            id=self.get_next_id(), x=x, y=y,
            value=value,
            max_value=value if max_value is None else max_value,
            regeneration_rate=regeneration_rate,
        )
        self.board.place(node.id, x, y)
        self.resource_nodes[node.id] = node
        return node

    def get_player(self, player_id: int) -> Optional[Player]:
        return self.players.get(player_id)

    def get_current_player(self) -> Player:
        return self.players[self.current_player_id]

    def get_all_players(self) -> List[Player]:
        return [self.players[pid] for pid in sorted(self.players)]

    def get_unit(self, unit_id: int) -> Optional[Unit]:
        return self.units.get(unit_id)

    def get_player_units(self, player_id: int) -> List[Unit]:
        """Get all units belonging to a player."""
        return [u for u in self.units.values() if u.owner_id == player_id]

    def get_player_base(self, player_id: int) -> Optional[Base]:
        """Get a player's base, None once it is destroyed."""
        for base in self.bases.values():
            if base.owner_id == player_id and not base.is_destroyed:
                return base
        return None

    def get_resource_nodes(self) -> List[ResourceNode]:
        return [self.resource_nodes[nid] for nid in sorted(self.resource_nodes)]

    def get_resource_node(self, node_id: int) -> Optional[ResourceNode]:
        return self.resource_nodes.get(node_id)

    def get_resource_node_at(self, x: int, y: int) -> Optional[ResourceNode]:
        return self.resource_nodes.get(self.board.occupant(x, y))

    # === Spatial queries ===

    def in_bounds(self, x: int, y: int) -> bool:
        return self.board.in_bounds(x, y)

    def entity_at(self, x: int, y: int):
        """Get the unit, base or resource node on a cell, or None."""
        entity_id = self.board.occupant(x, y)
        if entity_id is None:
            return None
        for store in (self.units, self.bases, self.resource_nodes):
            if entity_id in store:
                return store[entity_id]
        raise ValueError(f"Board cell ({x}, {y}) references unknown entity {entity_id}")

    def is_position_empty(self, x: int, y: int) -> bool:
        return self.board.is_empty(x, y)

    def next_player_id(self, player_id: Optional[int] = None) -> int:
        """The player who plays after `player_id` (default: the current player)."""
        order = sorted(self.players)
        current = self.current_player_id if player_id is None else player_id
        return order[(order.index(current) + 1) % len(order)]

    @property
    def is_over(self) -> bool:
        return self.status == STATUS_ENDED

    # === Placement ===

    def is_within_base_radius(self, player_id: int, x: int, y: int,
                              radius: int = PLACEMENT_RADIUS) -> bool:
        base = self.get_player_base(player_id)
        if base is None:
            return False
        return manhattan(base.pos, (x, y)) <= radius

    def get_valid_placement_positions(self, player_id: int,
                                      radius: int = PLACEMENT_RADIUS) -> List[dict]:
        """Empty cells around the player's base, closest first then row-major."""
        base = self.get_player_base(player_id)
        if base is None:
            return []
        positions = []
        for distance in range(1, radius + 1):
            for x, y in ring(base.pos, distance, self.board.width):
                if self.board.is_empty(x, y):
                    positions.append({"x": x, "y": y, "distance": distance})
        return positions

    def placement_radius(self, player_id: int) -> int:
        """Default radius, widened to the maximum when the default area is full."""
        if self.get_valid_placement_positions(player_id, PLACEMENT_RADIUS):
            return PLACEMENT_RADIUS
        return MAX_PLACEMENT_RADIUS

    def find_best_placement_near_base(self, player_id: int) -> Optional[dict]:
        """First empty cell on an expanding ring scan around the base."""
        positions = self.get_valid_placement_positions(player_id, MAX_PLACEMENT_RADIUS)
        return positions[0] if positions else None

    # === Commands ===

    def create_unit(self, unit_type: str, owner_id: int, x: int, y: int) -> CommandResult:
        """Build a unit on an empty cell near the owner's base."""
        if self.is_over:
            return CommandResult.fail(Reason.GAME_ENDED, "The game is over")
        if unit_type not in UNIT_STATS:
            return CommandResult.fail(Reason.INVALID_PLACEMENT, f"Unknown unit type: {unit_type}")
        player = self.players.get(owner_id)
        if player is None:
            return CommandResult.fail(Reason.INVALID_PLACEMENT, f"Unknown player: {owner_id}")
        if not self.board.in_bounds(x, y):
            return CommandResult.fail(Reason.INVALID_PLACEMENT, f"({x}, {y}) is off the grid")
        if not self.board.is_empty(x, y):
            return CommandResult.fail(Reason.INVALID_PLACEMENT, f"({x}, {y}) is occupied")
        if self.get_player_base(owner_id) is None:
            return CommandResult.fail(Reason.INVALID_PLACEMENT, "No base to build from")
        radius = self.placement_radius(owner_id)
        if not self.is_within_base_radius(owner_id, x, y, radius):
            return CommandResult.fail(
                Reason.INVALID_PLACEMENT, f"({x}, {y}) is more than {radius} squares from the base"
            )
        if player.actions_remaining <= 0:
            return CommandResult.fail(Reason.INVALID_PLACEMENT, "No actions remaining")
        cost = UNIT_STATS[unit_type]["cost"]
        if player.energy < cost:
            return CommandResult.fail(
                Reason.INVALID_PLACEMENT, f"Not enough energy ({player.energy}/{cost})"
            )

        player.spend_energy(cost)
        player.use_action()
        unit = create_entity(unit_type, self.get_next_id(), owner_id, (x, y))
        self.units[unit.id] = unit
        self.board.place(unit.id, x, y)
        self.record_action("create", player_id=owner_id, unit_id=unit.id, unit_type=unit_type, to=[x, y])

        self.events.publish(UnitCreatedEvent(
            unit_id=unit.id,
            unit_type=unit_type,
            owner_id=owner_id,
            pos=(x, y),
            cost=cost,
        ))
        self._publish_action_used(player)
        return CommandResult.ok(unit_id=unit.id, unit=unit.serialize(), energy_remaining=player.energy)

    def move_unit(self, unit_id: int, x: int, y: int) -> CommandResult:
        """Move a unit up to its movement range (Manhattan) onto an empty cell."""
        if self.is_over:
            return CommandResult.fail(Reason.GAME_ENDED, "The game is over")
        unit = self.units.get(unit_id)
        if unit is None:
            return CommandResult.fail(Reason.UNKNOWN_UNIT, f"No unit with id {unit_id}")
        if unit.has_moved:
            return CommandResult.fail(Reason.INVALID_MOVE, "Unit already moved this turn")
        if not self.board.in_bounds(x, y):
            return CommandResult.fail(Reason.INVALID_MOVE, f"({x}, {y}) is off the grid")
        distance = manhattan(unit.pos, (x, y))
        if distance > unit.movement:
            return CommandResult.fail(
                Reason.INVALID_MOVE, f"Distance {distance} exceeds movement range {unit.movement}"
            )
        if not self.board.is_empty(x, y):
            return CommandResult.fail(Reason.INVALID_MOVE, f"({x}, {y}) is occupied")
        player = self.players[unit.owner_id]
        if player.actions_remaining <= 0:
            return CommandResult.fail(Reason.INVALID_MOVE, "No actions remaining")

        old_pos = unit.pos
        self.board.move(unit.id, old_pos, (x, y))
        unit.x, unit.y = x, y
        unit.has_moved = True
        player.use_action()
        self.record_action("move", player_id=unit.owner_id, unit_id=unit.id, to=[x, y])

        self.events.publish(UnitMovedEvent(
            unit_id=unit.id,
            owner_id=unit.owner_id,
            from_pos=old_pos,
            to_pos=(x, y),
            cost=distance,
        ))
        self._publish_action_used(player)
        return CommandResult.ok(unit_id=unit.id, from_pos=old_pos, to_pos=(x, y), cost=distance)

    def _check_attack(self, attacker: Unit, x: int, y: int) -> Optional[CommandResult]:
        """Return a failure if the attacker cannot hit (x, y), else None."""
        if not self.board.in_bounds(x, y):
            return CommandResult.fail(Reason.INVALID_ATTACK, f"({x}, {y}) is off the grid")
        if chebyshev(attacker.pos, (x, y)) > ATTACK_RANGE:
            return CommandResult.fail(Reason.OUT_OF_RANGE, f"({x}, {y}) is not adjacent")
        target = self.entity_at(x, y)
        if target is None or target is attacker:
            return CommandResult.fail(Reason.INVALID_ATTACK, f"Nothing to attack at ({x}, {y})")
        if isinstance(target, ResourceNode):
            return CommandResult.fail(Reason.INVALID_ATTACK, "Resource nodes cannot be attacked")
        if target.owner_id == attacker.owner_id:
            return CommandResult.fail(Reason.INVALID_ATTACK, "Cannot attack your own forces")
        if isinstance(target, Base) and target.is_destroyed:
            return CommandResult.fail(Reason.INVALID_ATTACK, "Base is already destroyed")
        if not attacker.can_act():
            return CommandResult.fail(Reason.INVALID_ATTACK, "Unit has no actions left this turn")
        if self.players[attacker.owner_id].actions_remaining <= 0:
            return CommandResult.fail(Reason.INVALID_ATTACK, "No actions remaining")
        return None

    def can_unit_attack(self, attacker_id: int, x: int, y: int) -> bool:
        attacker = self.units.get(attacker_id)
        if attacker is None or self.is_over:
            return False
        return self._check_attack(attacker, x, y) is None

    def attack_unit(self, attacker_id: int, x: int, y: int) -> CommandResult:
        """Attack the enemy unit or base on an adjacent cell (diagonals included)."""
        if self.is_over:
            return CommandResult.fail(Reason.GAME_ENDED, "The game is over")
        attacker = self.units.get(attacker_id)
        if attacker is None:
            return CommandResult.fail(Reason.UNKNOWN_UNIT, f"No unit with id {attacker_id}")
        failure = self._check_attack(attacker, x, y)
        if failure is not None:
            return failure

        target = self.entity_at(x, y)
        player = self.players[attacker.owner_id]
        destroyed = target.take_damage(attacker.damage)
        attacker.use_action()
        player.use_action()
        target_kind = "base" if isinstance(target, Base) else "unit"
        self.record_action("attack", player_id=attacker.owner_id, unit_id=attacker.id,
                           target_id=target.id, damage=attacker.damage)

        self.events.publish(UnitAttackedEvent(
            attacker_id=attacker.id,
            target_id=target.id,
            target_kind=target_kind,
            damage=attacker.damage,
            target_health=target.health,
            destroyed=destroyed,
        ))

        if destroyed and isinstance(target, Unit):
            self._discard_unit(target)
            self.events.publish(UnitDestroyedEvent(
                unit_id=target.id,
                unit_type=target.unit_type,
                owner_id=target.owner_id,
                pos=target.pos,
                killer_id=attacker.id,
            ))
        elif destroyed:
            self.events.publish(BaseDestroyedEvent(
                base_id=target.id,
                owner_id=target.owner_id,
                pos=target.pos,
                attacker_id=attacker.id,
            ))
            self.check_victory_condition()

        if not self.is_over:
            self._publish_action_used(player)

        return CommandResult.ok(
            attacker_id=attacker.id,
            target_id=target.id,
            target_kind=target_kind,
            damage=attacker.damage,
            target_health=target.health,
            destroyed=destroyed,
            winner_id=self.winner_id,
        )

    def remove_unit(self, unit_id: int) -> CommandResult:
        """Remove a unit unconditionally (cleanup, elimination)."""
        unit = self.units.get(unit_id)
        if unit is None:
            return CommandResult.fail(Reason.UNKNOWN_UNIT, f"No unit with id {unit_id}")
        self._discard_unit(unit)
        self.events.publish(UnitRemovedEvent(unit_id=unit.id, owner_id=unit.owner_id, pos=unit.pos))
        return CommandResult.ok(unit_id=unit.id)

    def _discard_unit(self, unit: Unit) -> None:
        self.board.vacate(*unit.pos)
        del self.units[unit.id]

    def _publish_action_used(self, player: Player) -> None:
        self.events.publish(ActionUsedEvent(
            player_id=player.id,
            actions_remaining=player.actions_remaining,
        ))

    def record_action(self, action: str, **details) -> None:
        """Append a successful command to the action history."""
        self.action_history.append({
            "turn": self.turn_number,
            "phase": self.current_phase,
            "action": action,
            **details,
        })

    # === Move and attack queries ===

    def get_valid_move_positions(self, unit_id: int) -> List[dict]:
        """All empty cells within the unit's movement range, with their cost."""
        unit = self.units.get(unit_id)
        if unit is None or unit.has_moved or self.is_over:
            return []
        return [
            {"x": x, "y": y, "cost": manhattan(unit.pos, (x, y))}
            for x, y in cells_within(unit.pos, unit.movement, self.board.width)
            if self.board.is_empty(x, y)
        ]

    def get_valid_attack_targets(self, unit_id: int) -> List[dict]:
        """Enemy units and bases the unit can hit right now."""
        unit = self.units.get(unit_id)
        if unit is None or self.is_over:
            return []
        targets = []
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                if dx == 0 and dy == 0:
                    continue
                x, y = unit.x + dx, unit.y + dy
                if self._check_attack(unit, x, y) is None:
                    target = self.entity_at(x, y)
                    targets.append({
                        "x": x,
                        "y": y,
                        "target_id": target.id,
                        "target_kind": "base" if isinstance(target, Base) else "unit",
                        "damage": unit.damage,
                    })
        return targets

    # === Match lifecycle ===

    def start_game(self) -> CommandResult:
        if self.is_over:
            return CommandResult.fail(Reason.GAME_ENDED, "The game is over")
        if self.status == STATUS_PLAYING:
            return CommandResult.ok(game_id=self.game_id)
        self.status = STATUS_PLAYING
        self.players[self.current_player_id].is_active = True
        self.events.publish(GameStartedEvent(game_id=self.game_id))
        return CommandResult.ok(game_id=self.game_id)

    def end_game(self, winner_id: Optional[int], reason: str) -> None:
        """Enter the terminal state. Later calls are ignored."""
        if self.is_over:
            return
        self.status = STATUS_ENDED
        self.winner_id = winner_id
        for player in self.players.values():
            player.is_active = False
        self.events.publish(GameEndedEvent(winner_id=winner_id, reason=reason, turn_number=self.turn_number))

    def check_victory_condition(self) -> Optional[int]:
        """Evaluate base-destruction and resource wins. Returns the winner, if any."""
        if self.is_over:
            return self.winner_id

        # Base destruction (all bases gone is a draw)
        standing = [pid for pid in sorted(self.players) if self.get_player_base(pid) is not None]
        if not standing:
            self.end_game(None, "base_destroyed")
            return None
        if len(standing) == 1 and len(self.players) > 1:
            self.end_game(standing[0], "base_destroyed")
            return standing[0]

        # Resource threshold (highest total wins, a tie is a draw)
        qualified = [p for p in self.get_all_players() if p.resources_gathered >= RESOURCE_VICTORY_THRESHOLD]
        if qualified:
            best = max(p.resources_gathered for p in qualified)
            leaders = [p.id for p in qualified if p.resources_gathered == best]
            winner_id = leaders[0] if len(leaders) == 1 else None
            self.end_game(winner_id, "resources")
            return winner_id

        # No turn limit: the game goes on
        return None

    def player_surrender(self, player_id: int) -> CommandResult:
        """The player forfeits; the opponent wins."""
        if self.is_over:
            return CommandResult.fail(Reason.GAME_ENDED, "The game is over")
        if player_id not in self.players:
            raise ValueError(f"Unknown player: {player_id}")
        winner_id = self.next_player_id(player_id)
        self.events.publish(PlayerSurrenderedEvent(player_id=player_id, winner_id=winner_id))
        self.end_game(winner_id, "surrender")
        return CommandResult.ok(winner_id=winner_id)

    def declare_draw(self) -> CommandResult:
        """Both players agree to a draw."""
        if self.is_over:
            return CommandResult.fail(Reason.GAME_ENDED, "The game is over")
        self.events.publish(DrawDeclaredEvent(turn_number=self.turn_number))
        self.end_game(None, "draw")
        return CommandResult.ok(winner_id=None)

    def check_stalemate(self) -> bool:
        """Declare a draw if the current player can neither act nor build."""
        if self.is_over:
            return False
        player = self.get_current_player()
        for unit in self.get_player_units(player.id):
            if any(self.board.is_empty(x, y) for x, y in cells_within(unit.pos, unit.movement)):
                return False
            for dy in (-1, 0, 1):
                for dx in (-1, 0, 1):
                    target = self.entity_at(unit.x + dx, unit.y + dy)
                    if isinstance(target, (Unit, Base)) and target.owner_id != player.id:
                        if not (isinstance(target, Base) and target.is_destroyed):
                            return False
        cheapest = min(stats["cost"] for stats in UNIT_STATS.values())
        if player.energy >= cheapest and self.find_best_placement_near_base(player.id) is not None:
            return False
        self.declare_draw()
        return True

    # === Turn bookkeeping (driven by the turn controller) ===

    def set_phase(self, phase: str) -> None:
        if phase not in PHASES:
            raise ValueError(f"Unknown phase: {phase}")
        self.current_phase = phase

    def reset_player_turn(self, player_id: int) -> None:
        """Refill a player's actions and clear their units' per-turn flags."""
        self.players[player_id].reset_actions()
        for unit in self.get_player_units(player_id):
            unit.reset_turn()

    def pass_turn(self) -> int:
        """Hand the turn to the next player. Returns the new current player id."""
        self.players[self.current_player_id].is_active = False
        self.current_player_id = self.next_player_id()
        self.turn_number += 1
        self.players[self.current_player_id].is_active = True
        return self.current_player_id

    # === Serialization ===

    def serialize(self) -> dict:
        """Full snapshot of the store as plain JSON-compatible data."""
        return {
            "version": SNAPSHOT_VERSION,
            "game_id": self.game_id,
            "status": self.status,
            "winner_id": self.winner_id,
            "turn_number": self.turn_number,
            "current_phase": self.current_phase,
            "current_player_id": self.current_player_id,
            "next_id": self.next_id,
            "players": [p.serialize() for p in self.get_all_players()],
            "units": [self.units[uid].serialize() for uid in sorted(self.units)],
            "bases": [self.bases[bid].serialize() for bid in sorted(self.bases)],
            "resource_nodes": [n.serialize() for n in self.get_resource_nodes()],
            "action_history": [dict(entry) for entry in self.action_history],
        }

    @classmethod
    def deserialize(cls, data: dict, events: Optional[EventBus] = None) -> "GameState":
        """Rebuild a store from a snapshot. Raises SnapshotError on corrupt data."""
        validate_snapshot(data)
        state = cls(events, scenario=EMPTY_SCENARIO)
        state.game_id = data["game_id"]
        state.status = data["status"]
        state.winner_id = data["winner_id"]
        state.turn_number = data["turn_number"]
        state.current_phase = data["current_phase"]
        state.current_player_id = data["current_player_id"]
        state.next_id = data["next_id"]

        for player_data in data["players"]:
            player = Player.deserialize(player_data)
            state.players[player.id] = player
        for base_data in data["bases"]:
            base = Base.deserialize(base_data)
            state.bases[base.id] = base
            state.board.place(base.id, *base.pos)
        for node_data in data["resource_nodes"]:
            node = ResourceNode.deserialize(node_data)
            state.resource_nodes[node.id] = node
            state.board.place(node.id, *node.pos)
        for unit_data in data["units"]:
            unit = Unit.deserialize(unit_data)
            state.units[unit.id] = unit
            state.board.place(unit.id, *unit.pos)

        state.action_history = [dict(entry) for entry in data.get("action_history", [])]
        return state
