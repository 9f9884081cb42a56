"""
Pytest configuration and fixtures for simrepl tests.
"""
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
PYTHON_SRC = REPO_ROOT / "python"
if str(PYTHON_SRC) not in sys.path:
    sys.path.insert(0, str(PYTHON_SRC))

from simrepl.demo import LoopState, World, build_console, populate  # noqa: E402


@pytest.fixture
def world():
    w = World()
    populate(w, count=3, seed=7)
    return w


@pytest.fixture
def loop_state():
    return LoopState()


@pytest.fixture
def console(world, loop_state):
    """Demo console whose commands run on a background consumer."""
    c = build_console(world, loop_state)
    c.run_background()
    yield c
    c.close()
