import random

import pytest

from streamcast.gamemap import ArenaMap, grid_to_world

MAP_TEXT = "#####\n#...#\n#.#.#\n#####\n"


def test_grid_to_world_origin_tile():
    assert grid_to_world(1, 5) == (0.0, 0.0, 0.5)


def test_grid_to_world_is_offset_by_spacing():
    base = grid_to_world(3, 7)
    right = grid_to_world(3, 8)
    down = grid_to_world(4, 7)
    assert right[0] - base[0] == 1.0
    assert down[1] - base[1] == 1.0
    assert base[2] == right[2] == down[2]


def test_parse_drops_trailing_newline_only():
    assert ArenaMap.parse("ab\n").rows == ("ab",)
    assert ArenaMap.parse("ab\n\ncd").rows == ("ab", "", "cd")
    assert ArenaMap.parse("").rows == ()


def test_wall_count_matches_hashes():
    arena = ArenaMap.parse(MAP_TEXT)
    assert len(arena.wall_positions()) == MAP_TEXT.count("#")


def test_walls_and_floor_partition_the_grid():
    arena = ArenaMap.parse(MAP_TEXT)
    walls = set(arena.wall_positions())
    floor = set(arena.walkable_positions())
    assert walls.isdisjoint(floor)
    cells = sum(len(line) for line in arena.rows)
    assert len(walls) + len(floor) == cells


def test_walkable_positions_follow_grid():
    arena = ArenaMap.parse(MAP_TEXT)
    expected = [grid_to_world(1, c) for c in (1, 2, 3)] + [grid_to_world(2, c) for c in (1, 3)]
    assert arena.walkable_positions() == expected


def test_random_walkable_position_is_floor():
    arena = ArenaMap.parse(MAP_TEXT)
    rng = random.Random(1234)
    floor = arena.walkable_positions()
    for _ in range(20):
        assert arena.random_walkable_position(rng) in floor


def test_random_walkable_position_is_reproducible():
    arena = ArenaMap.parse(MAP_TEXT)
    first = [arena.random_walkable_position(random.Random(7)) for _ in range(3)]
    assert first[0] == first[1] == first[2]


def test_random_walkable_position_fallback_without_floor():
    arena = ArenaMap.parse("###\n###\n")
    assert arena.random_walkable_position(random.Random(0)) == (0.0, 0.0, 0.5)


def test_load_reads_file(tmp_path):
    path = tmp_path / "map.txt"
    path.write_text(MAP_TEXT, encoding="utf-8")
    assert ArenaMap.load(path) == ArenaMap.parse(MAP_TEXT)


def test_load_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        ArenaMap.load(tmp_path / "absent.txt")