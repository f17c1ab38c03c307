"""Test the GameState entity store: placement, movement and queries."""
import pytest
from gridwar.core.commands import Reason
from gridwar.core.events import ActionUsedEvent, UnitCreatedEvent, UnitMovedEvent, UnitRemovedEvent
from gridwar.core.grid import cells_within, in_bounds, manhattan


def assert_board_consistent(state):
    """Every entity sits on its own cell and the board holds nothing else."""
    entities = list(state.units.values()) + list(state.bases.values()) + list(state.resource_nodes.values())
    for entity in entities:
        assert state.board.occupant(*entity.pos) == entity.id
    assert len(list(state.board.occupied_cells())) == len(entities)


class TestSetup:
    """Tests for the initial state."""

    def test_default_scenario(self, default_state):
        assert default_state.get_player(1).energy == 100
        assert default_state.get_player(1).actions_remaining == 3
        assert default_state.get_player_base(1).pos == (1, 23)
        assert default_state.get_player_base(2).pos == (23, 1)
        assert len(default_state.resource_nodes) == 9
        node = default_state.get_resource_node_at(12, 12)
        assert node.value == 100
        assert node.regeneration_rate == 5

    def test_starts_ready(self, state):
        assert state.status == "ready"
        assert state.current_player_id == 1
        assert state.current_phase == "resource"
        assert state.turn_number == 1
        assert state.get_player(1).is_active

    def test_ids_are_shared_across_kinds(self, default_state):
        ids = list(default_state.bases) + list(default_state.resource_nodes)
        assert sorted(ids) == list(range(1, 12))
        assert default_state.next_id == 12

    def test_entity_at(self, state):
        assert state.entity_at(1, 23).kind == "base"
        assert state.entity_at(5, 5) is None
        assert state.entity_at(-1, 5) is None
        assert state.is_position_empty(5, 5)
        assert not state.is_position_empty(1, 23)
        assert not state.is_position_empty(25, 5)

    def test_start_game(self, state, events):
        events.start_recording()
        assert state.start_game()
        assert state.status == "playing"
        assert [e.name for e in events.stop_recording()] == ["gameStarted"]


class TestCreateUnit:
    """Tests for GameState.create_unit."""

    def test_create_near_base(self, state, events):
        events.start_recording()
        result = state.create_unit("worker", 1, 2, 23)
        assert result.success
        unit = state.get_unit(result.data["unit_id"])
        assert unit.pos == (2, 23)
        assert state.entity_at(2, 23) is unit
        assert state.get_player(1).energy == 90
        assert state.get_player(1).actions_remaining == 2
        recorded = events.stop_recording()
        assert [type(e) for e in recorded] == [UnitCreatedEvent, ActionUsedEvent]
        assert recorded[0].cost == 10
        assert recorded[1].actions_remaining == 2

    def test_far_from_base_fails_without_cost(self, state):
        result = state.create_unit("heavy", 1, 11, 13)
        assert not result.success
        assert result.reason == Reason.INVALID_PLACEMENT
        assert state.get_player(1).energy == 100
        assert state.get_player(1).actions_remaining == 3
        assert not state.units

    def test_just_outside_radius_fails(self, state):
        assert state.create_unit("worker", 1, 4, 23).success  # distance 3
        assert state.create_unit("worker", 1, 5, 23).reason == Reason.INVALID_PLACEMENT

    def test_out_of_bounds_fails(self, state):
        assert state.create_unit("worker", 1, -1, 23).reason == Reason.INVALID_PLACEMENT

    def test_occupied_fails(self, state):
        assert state.create_unit("worker", 1, 1, 23).reason == Reason.INVALID_PLACEMENT

    def test_insufficient_energy_fails(self, state):
        state.get_player(1).energy = 40
        result = state.create_unit("heavy", 1, 2, 23)
        assert result.reason == Reason.INVALID_PLACEMENT
        assert state.get_player(1).energy == 40

    def test_no_actions_fails(self, state):
        state.get_player(1).actions_remaining = 0
        assert state.create_unit("worker", 1, 2, 23).reason == Reason.INVALID_PLACEMENT

    def test_unknown_type_fails(self, state):
        assert state.create_unit("dragon", 1, 2, 23).reason == Reason.INVALID_PLACEMENT

    def test_unknown_player_fails(self, state):
        assert state.create_unit("worker", 3, 2, 23).reason == Reason.INVALID_PLACEMENT

    def test_destroyed_base_fails(self, state):
        state.get_player_base(1).take_damage(500)
        assert state.create_unit("worker", 1, 2, 23).reason == Reason.INVALID_PLACEMENT

    def test_fallback_radius_when_default_area_full(self, state):
        base = state.get_player_base(1)
        for x, y in cells_within(base.pos, 3):
            state.add_resource_node(x, y)
        assert state.get_valid_placement_positions(1) == []
        assert state.placement_radius(1) == 5
        assert state.create_unit("worker", 1, 5, 23).success   # distance 4
        assert state.create_unit("worker", 1, 6, 23).success   # distance 5
        assert state.create_unit("worker", 1, 7, 23).reason == Reason.INVALID_PLACEMENT


class TestPlacementQueries:
    """Tests for placement position helpers."""

    def test_best_placement_is_first_cell_of_first_ring(self, state):
        assert state.find_best_placement_near_base(1) == {"x": 1, "y": 22, "distance": 1}
        state.create_unit("worker", 1, 1, 22)
        assert state.find_best_placement_near_base(1) == {"x": 0, "y": 23, "distance": 1}

    def test_best_placement_expands_rings(self, state):
        for x, y in cells_within((1, 23), 3):
            state.add_resource_node(x, y)
        assert state.find_best_placement_near_base(1) == {"x": 1, "y": 19, "distance": 4}

    def test_valid_positions_sorted_by_distance(self, state):
        positions = state.get_valid_placement_positions(1)
        distances = [p["distance"] for p in positions]
        assert distances == sorted(distances)
        assert max(distances) == 3
        assert all(state.is_position_empty(p["x"], p["y"]) for p in positions)

    def test_no_positions_without_base(self, state):
        state.get_player_base(2).take_damage(500)
        assert state.get_valid_placement_positions(2) == []
        assert state.find_best_placement_near_base(2) is None


class TestMoveUnit:
    """Tests for GameState.move_unit."""

    def test_scout_moves_full_range(self, state, spawn):
        scout = spawn(state, "scout", 1, 10, 10)
        result = state.move_unit(scout.id, 14, 10)
        assert result.success
        assert result.data["cost"] == 4
        assert scout.pos == (14, 10)
        assert scout.has_moved
        assert state.is_position_empty(10, 10)
        assert state.entity_at(14, 10) is scout

    def test_second_move_fails(self, state, spawn):
        scout = spawn(state, "scout", 1, 10, 10)
        state.move_unit(scout.id, 14, 10)
        result = state.move_unit(scout.id, 15, 10)
        assert result.reason == Reason.INVALID_MOVE
        assert scout.pos == (14, 10)

    def test_too_far_fails(self, state, spawn):
        scout = spawn(state, "scout", 1, 10, 10)
        assert state.move_unit(scout.id, 13, 12).reason == Reason.INVALID_MOVE

    def test_occupied_fails(self, state, spawn):
        worker = spawn(state, "worker", 1, 10, 10)
        spawn(state, "worker", 2, 11, 10)
        assert state.move_unit(worker.id, 11, 10).reason == Reason.INVALID_MOVE

    def test_off_grid_fails(self, state, spawn):
        worker = spawn(state, "worker", 1, 0, 0)
        assert state.move_unit(worker.id, -1, 0).reason == Reason.INVALID_MOVE

    def test_unknown_unit(self, state):
        assert state.move_unit(99, 1, 1).reason == Reason.UNKNOWN_UNIT

    def test_no_player_actions_fails(self, state, spawn):
        worker = spawn(state, "worker", 1, 10, 10)
        state.get_player(1).actions_remaining = 0
        assert state.move_unit(worker.id, 11, 10).reason == Reason.INVALID_MOVE

    def test_move_spends_player_action(self, state, spawn, events):
        worker = spawn(state, "worker", 1, 10, 10)
        events.start_recording()
        state.move_unit(worker.id, 11, 11)
        assert state.get_player(1).actions_remaining == 2
        recorded = events.stop_recording()
        assert [type(e) for e in recorded] == [UnitMovedEvent, ActionUsedEvent]
        assert recorded[0].from_pos == (10, 10)
        assert recorded[0].to_pos == (11, 11)

    def test_move_succeeds_iff_rule_holds(self, scenario, spawn):
        from gridwar.core.world import GameState
        for origin in ((12, 12), (0, 0)):
            for ty in range(origin[1] - 3, origin[1] + 4):
                for tx in range(origin[0] - 3, origin[0] + 4):
                    state = GameState(scenario=scenario)
                    worker = spawn(state, "worker", 1, *origin)
                    spawn(state, "heavy", 2, origin[0] + 1, origin[1])
                    expected = (
                        in_bounds(tx, ty)
                        and manhattan(origin, (tx, ty)) <= worker.movement
                        and state.entity_at(tx, ty) is None
                    )
                    assert state.move_unit(worker.id, tx, ty).success == expected, (origin, tx, ty)


class TestMoveQueries:
    """Tests for get_valid_move_positions."""

    def test_positions_within_range(self, state, spawn):
        worker = spawn(state, "worker", 1, 10, 10)
        positions = state.get_valid_move_positions(worker.id)
        assert len(positions) == 12
        assert all(1 <= p["cost"] <= 2 for p in positions)
        assert {"x": 12, "y": 10, "cost": 2} in positions

    def test_occupied_cells_excluded(self, state, spawn):
        worker = spawn(state, "worker", 1, 10, 10)
        spawn(state, "worker", 2, 11, 10)
        positions = state.get_valid_move_positions(worker.id)
        assert len(positions) == 11
        assert not any(p["x"] == 11 and p["y"] == 10 for p in positions)

    def test_empty_after_moving(self, state, spawn):
        worker = spawn(state, "worker", 1, 10, 10)
        state.move_unit(worker.id, 10, 11)
        assert state.get_valid_move_positions(worker.id) == []

    def test_unknown_unit(self, state):
        assert state.get_valid_move_positions(42) == []


class TestRemoveUnit:
    """Tests for GameState.remove_unit."""

    def test_remove(self, state, spawn, events):
        worker = spawn(state, "worker", 1, 10, 10)
        events.start_recording()
        assert state.remove_unit(worker.id).success
        assert state.get_unit(worker.id) is None
        assert state.is_position_empty(10, 10)
        assert [type(e) for e in events.stop_recording()] == [UnitRemovedEvent]

    def test_remove_unknown(self, state):
        assert state.remove_unit(7).reason == Reason.UNKNOWN_UNIT


class TestOccupancy:
    """No two entities ever share a cell."""

    def test_board_consistent_after_commands(self, default_state, spawn):
        state = default_state
        state.create_unit("worker", 1, 2, 23)
        state.create_unit("scout", 1, 1, 21)
        scout = state.get_player_units(1)[1]
        state.move_unit(scout.id, 3, 19)
        infantry = spawn(state, "infantry", 2, 4, 19)
        state.attack_unit(infantry.id, 3, 19)
        state.create_unit("worker", 1, 3, 19)  # occupied, refused
        state.remove_unit(state.get_player_units(1)[0].id)
        assert_board_consistent(state)

    def test_action_history(self, state):
        state.create_unit("worker", 1, 2, 23)
        state.create_unit("worker", 1, 40, 40)
        assert len(state.action_history) == 1
        entry = state.action_history[0]
        assert entry["action"] == "create"
        assert entry["player_id"] == 1
        assert entry["turn"] == 1
