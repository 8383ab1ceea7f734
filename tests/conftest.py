"""Shared test fixtures for board engine tests."""

import itertools
import sys
from pathlib import Path

import pytest

# Ensure the repo root (pkg/, board_server.py) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from pkg.board.reducer import BoardReducer
from pkg.board.schema import initial_state

FIXED_NOW = "2024-01-01T00:00:00+00:00"


class Clock:
    """Returns a fixed timestamp, or successive ones after tick()."""

    def __init__(self, stamp=FIXED_NOW):
        self.stamp = stamp
        self._n = 0

    def tick(self):
        self._n += 1
        self.stamp = f"2024-01-01T00:00:{self._n:02d}+00:00"

    def __call__(self):
        return self.stamp


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def reducer(id_factory, clock):
    return BoardReducer(id_factory=id_factory, clock=clock)


@pytest.fixture
def board(reducer):
    """A fresh board: one project with Todo/Doing/Done."""
    return initial_state("Test Project", id_factory=reducer.id_factory, now=reducer.clock())


def lane_ids(state, project_id=None):
    project = state.project(project_id) if project_id else state.active_project()
    return [lane.id for lane in project.ordered_lanes()]


def check_invariants(state):
    """Projects and lanes exist, lane membership agrees with cards, versions ascend."""
    assert state.projects, "board has no projects"
    for project in state.projects:
        assert project.lanes, f"project {project.id} has no lanes"
        listed = []
        for lane in project.lanes:
            for card_id in lane.card_ids:
                card = state.cards[card_id]
                assert card.lane_id == lane.id
                assert card.project_id == project.id
                assert not card.is_deleted
                listed.append(card_id)
        assert len(listed) == len(set(listed))
        for card in state.cards.values():
            if card.project_id == project.id and not card.is_deleted:
                assert card.id in listed
    if state.active_project_id is not None:
        assert state.project(state.active_project_id) is not None
    for card_id, history in state.card_versions.items():
        numbers = [v.version for v in history]
        assert numbers == sorted(numbers), f"versions out of order for {card_id}"
