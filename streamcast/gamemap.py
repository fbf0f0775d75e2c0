"""Text maps of the arena: ``#`` marks a wall, anything else is floor."""

from __future__ import annotations

import os
import random
from dataclasses import dataclass

__all__ = ["WALL", "TILE_SPACING", "TILE_HEIGHT", "grid_to_world", "ArenaMap"]

WALL = "#"
TILE_SPACING = 1.0
TILE_HEIGHT = 0.5
_COLUMN_OFFSET = 5
_ROW_OFFSET = 1

Vec3 = tuple[float, float, float]


def grid_to_world(row: int, col: int) -> Vec3:
    """World position of the centre of the tile at ``row``, ``col``."""
    return (
        float(col - _COLUMN_OFFSET) * TILE_SPACING,
        float(row - _ROW_OFFSET) * TILE_SPACING,
        TILE_HEIGHT,
    )


@dataclass(frozen=True)
class ArenaMap:
    """A grid of map rows as read from a map file."""

    rows: tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: str) -> ArenaMap:
        """Build a map from text, one row per line."""
        lines = text.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        return cls(tuple(lines))

    @classmethod
    def load(cls, path: str | os.PathLike[str]) -> ArenaMap:
        """Read a map file."""
        with open(path, encoding="utf-8", newline="") as handle:
            return cls.parse(handle.read())

    def _tiles(self, wall: bool) -> list[Vec3]:
        return [
            grid_to_world(row, col)
            for row, line in enumerate(self.rows)
            for col, char in enumerate(line)
            if (char == WALL) == wall
        ]

    def wall_positions(self) -> list[Vec3]:
        """World positions of all wall tiles, row by row."""
        return self._tiles(wall=True)

    def walkable_positions(self) -> list[Vec3]:
        """World positions of all floor tiles, row by row."""
        return self._tiles(wall=False)

    def random_walkable_position(self, rng: random.Random | None = None) -> Vec3:
        """A random floor tile, or the origin tile when the map has no floor."""
        tiles = self.walkable_positions()
        if not tiles:
            return (0.0, 0.0, TILE_HEIGHT)
        return (rng or random).choice(tiles)