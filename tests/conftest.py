"""Shared fixtures: synthetic trap images and a controllable store clock."""

import io
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest
from PIL import Image

from store import InMemoryStore


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


def blank_grid(width, height, value=255):
    return np.full((height, width), value, dtype=np.uint8)


def paint(grid, x, y, w, h, value=0):
    """Fill a dark rectangle in place."""
    grid[y:y + h, x:x + w] = value
    return grid


def png_bytes(grid, mode="L"):
    buf = io.BytesIO()
    img = Image.fromarray(grid)
    if mode != "L":
        img = img.convert(mode)
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryStore(clock=clock)


@pytest.fixture
def trap_grid():
    """300x200 white trap with three 5x5 insects and one 2x2 speck."""
    grid = blank_grid(300, 200)
    paint(grid, 10, 10, 5, 5)
    paint(grid, 100, 50, 5, 5)
    paint(grid, 200, 150, 5, 5)
    paint(grid, 250, 20, 2, 2)
    return grid


@pytest.fixture
def trap_png(trap_grid):
    return png_bytes(trap_grid)


@pytest.fixture
def trap_file(tmp_path, trap_grid):
    path = tmp_path / "trap.png"
    Image.fromarray(trap_grid).save(path)
    return path
