"""Test the spatial model."""
import pytest
from gridwar.core.grid import Board, in_bounds, manhattan, chebyshev, ring, cells_within


class TestDistances:
    """Tests for bounds and distance helpers."""

    def test_in_bounds(self):
        assert in_bounds(0, 0)
        assert in_bounds(24, 24)
        assert not in_bounds(25, 0)
        assert not in_bounds(-1, 3)

    def test_manhattan(self):
        assert manhattan((1, 2), (4, 6)) == 7
        assert manhattan((3, 3), (3, 3)) == 0

    def test_chebyshev(self):
        assert chebyshev((1, 2), (4, 6)) == 4
        assert chebyshev((5, 5), (6, 6)) == 1


class TestRingScan:
    """Tests for ring and cells_within."""

    def test_ring_is_row_major(self):
        assert list(ring((5, 5), 1)) == [(5, 4), (4, 5), (6, 5), (5, 6)]

    def test_ring_clips_to_grid(self):
        assert list(ring((0, 0), 1)) == [(1, 0), (0, 1)]

    def test_ring_zero_is_center(self):
        assert list(ring((7, 7), 0)) == [(7, 7)]

    def test_ring_size(self):
        cells = list(ring((12, 12), 3))
        assert len(cells) == 12
        assert all(manhattan((12, 12), c) == 3 for c in cells)

    def test_cells_within_excludes_center(self):
        cells = list(cells_within((12, 12), 2))
        assert len(cells) == 12
        assert (12, 12) not in cells
        assert all(manhattan((12, 12), c) <= 2 for c in cells)


class TestBoard:
    """Tests for the occupancy board."""

    def test_place_and_occupant(self):
        board = Board()
        board.place(7, 3, 4)
        assert board.occupant(3, 4) == 7
        assert not board.is_empty(3, 4)

    def test_off_grid_is_not_empty(self):
        board = Board()
        assert board.occupant(-1, 0) is None
        assert not board.is_empty(-1, 0)

    def test_place_on_occupied_cell_raises(self):
        board = Board()
        board.place(1, 2, 2)
        with pytest.raises(ValueError):
            board.place(2, 2, 2)

    def test_place_off_grid_raises(self):
        board = Board()
        with pytest.raises(ValueError):
            board.place(1, 25, 0)

    def test_move(self):
        board = Board()
        board.place(1, 2, 2)
        board.move(1, (2, 2), (3, 2))
        assert board.is_empty(2, 2)
        assert board.occupant(3, 2) == 1

    def test_move_wrong_source_raises(self):
        board = Board()
        board.place(1, 2, 2)
        with pytest.raises(ValueError):
            board.move(1, (0, 0), (3, 2))

    def test_occupied_cells(self):
        board = Board()
        board.place(1, 2, 2)
        board.place(2, 0, 5)
        assert sorted(board.occupied_cells()) == [((0, 5), 2), ((2, 2), 1)]
