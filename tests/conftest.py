"""
Shared pytest fixtures for the battle core tests.

- the shipped catalog (data/*.json)
- seeded RNGs
- a fresh run session
"""
import os
import random
import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path for tests
_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from deckrift.loader import load_catalog
from deckrift.runtime import spawn_player
from deckrift.runtime_models import SessionRecord

ROOT = Path(_project_root)


@pytest.fixture(scope="session")
def catalog():
    return load_catalog(ROOT / "data")


@pytest.fixture
def rnd():
    return random.Random(12345)


@pytest.fixture
def session(catalog):
    return SessionRecord(sid="test", player=spawn_player(catalog.starting_equipment()))
