"""Play whole turns through the Game facade."""
import time

import pytest
from gridwar.core.commands import (
    AttackUnit,
    CreateUnit,
    DeclareDraw,
    EndTurn,
    GatherResources,
    MoveUnit,
    NextPhase,
    Reason,
    Surrender,
)
from gridwar.core.grid import chebyshev
from gridwar.game import Game


class TestTurnCycle:
    """A full resource -> action -> build cycle for both players."""

    def test_unstarted_game_refuses_commands(self, scenario):
        game = Game(scenario=scenario)
        result = game.create_unit("worker", 2, 23)
        assert result.reason == Reason.GAME_NOT_STARTED

    def test_start_twice(self, game):
        assert game.start().success
        assert game.state.turn_number == 1

    def test_timed_cycle(self, game):
        assert game.state.current_phase == "resource"
        game.tick(1.1)
        assert game.state.current_phase == "action"

        assert game.next_phase().data["phase"] == "build"
        result = game.create_unit("worker", 2, 23)
        assert result.success
        assert result.data["energy_remaining"] == 90

        result = game.next_phase()
        assert result.data["next_player_id"] == 2
        assert game.state.current_player_id == 2
        assert game.state.current_phase == "resource"
        assert game.get_current_phase_info()["actions_remaining"] == 3

    def test_build_needs_build_phase(self, game):
        result = game.create_unit("worker", 2, 23)
        assert result.reason == Reason.WRONG_PHASE

    def test_other_players_unit(self, game, spawn):
        enemy = spawn(game.state, "scout", 2, 10, 10)
        game.next_phase()
        result = game.move_unit(enemy.id, 11, 10)
        assert result.reason == Reason.NOT_YOUR_TURN

    def test_unknown_unit(self, game):
        game.next_phase()
        assert game.move_unit(99, 1, 1).reason == Reason.UNKNOWN_UNIT

    def test_turn_state(self, game):
        state = game.turn_state
        assert state.current_player_id == 1
        assert state.current_phase == "resource"
        assert not state.is_processing


class TestExecute:
    """Command objects dispatch to the matching method."""

    def test_phases_and_build(self, game):
        assert game.execute(NextPhase()).data["phase"] == "action"
        assert game.execute(NextPhase()).data["phase"] == "build"
        result = game.execute(CreateUnit("worker", 2, 23))
        assert result.success
        unit_id = result.data["unit_id"]
        assert game.execute(MoveUnit(unit_id, 3, 23)).reason == Reason.WRONG_PHASE
        assert game.execute(EndTurn()).data["next_player_id"] == 2

    def test_gather(self, game, spawn):
        worker = spawn(game.state, "worker", 1, 5, 5)
        game.state.add_resource_node(5, 6)
        result = game.execute(GatherResources(worker.id))
        assert result.success
        assert game.state.get_player(1).energy == 105

    def test_move_and_attack(self, game, spawn):
        scout = spawn(game.state, "scout", 1, 10, 10)
        infantry = spawn(game.state, "infantry", 1, 11, 11)
        target = spawn(game.state, "worker", 2, 12, 10)
        game.execute(NextPhase())
        assert game.execute(MoveUnit(scout.id, 12, 12)).success
        result = game.execute(AttackUnit(infantry.id, 12, 10))
        assert result.data["target_id"] == target.id
        assert result.data["target_health"] == 48
        assert game.get_current_phase_info()["actions_remaining"] == 1

    def test_surrender(self, game):
        result = game.execute(Surrender(1))
        assert result.success
        assert game.winner_id == 2
        assert game.execute(DeclareDraw()).reason == Reason.GAME_ENDED

    def test_draw(self, game):
        assert game.execute(DeclareDraw()).success
        assert game.is_over
        assert game.winner_id is None

    def test_unknown_command(self, game):
        with pytest.raises(TypeError):
            game.execute(object())


class TestVictory:
    """Destroying the enemy base ends the game through the facade."""

    def test_base_kill(self, game, spawn):
        heavy = spawn(game.state, "heavy", 1, 22, 1)
        game.state.get_player_base(2).health = 2
        game.next_phase()
        result = game.execute(AttackUnit(heavy.id, 23, 1))
        assert result.data["destroyed"]
        assert result.data["winner_id"] == 1
        assert game.is_over

        game.tick(500)
        assert game.state.current_phase == "action"
        assert game.state.current_player_id == 1
        assert game.move_unit(heavy.id, 21, 1).reason == Reason.GAME_ENDED


class TestQueries:
    """Read-only views return plain data."""

    def test_entity_at(self, game):
        base = game.entity_at(1, 23)
        assert base["kind"] == "base"
        assert base["owner_id"] == 1
        assert game.entity_at(12, 12) is None

    def test_get_player_units(self, game, spawn):
        unit = spawn(game.state, "infantry", 1, 3, 21)
        units = game.get_player_units(1)
        assert units == [unit.serialize()]
        assert game.get_player_units(2) == []

    def test_placement_positions(self, game):
        positions = game.get_valid_placement_positions()
        assert positions
        assert all(chebyshev((1, 23), (p["x"], p["y"])) <= 3 for p in positions)
        assert positions[0]["distance"] == 1

    def test_move_and_attack_queries(self, game, spawn):
        unit = spawn(game.state, "infantry", 1, 10, 10)
        spawn(game.state, "worker", 2, 11, 11)
        assert {"x": 12, "y": 10} in [{"x": p["x"], "y": p["y"]} for p in game.get_valid_move_positions(unit.id)]
        targets = game.get_valid_attack_targets(unit.id)
        assert [(t["x"], t["y"]) for t in targets] == [(11, 11)]


class TestRealTimeLoop:
    """update() advances the clock in fixed steps."""

    def test_update_accumulates(self, game):
        game.last_time = time.time() - 1.1
        game.update()
        assert game.scheduler.now >= 1.0
        assert game.accumulator < game.SIM_DT
        assert game.state.current_phase == "action"
