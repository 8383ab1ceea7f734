"""
Tests for BoardFacade: load lifecycle, fallback timer, debounced saves,
verbs and read helpers.

Storage is an in-memory fake; timers run with short intervals.
"""
import threading
import time

import pytest

from pkg.board.config import BoardConfig
from pkg.board.facade import DEFAULT_TITLE, BoardFacade
from pkg.board.schema import Priority


class FakeStorage:
    """In-memory storage. `gate` blocks load() until set."""

    def __init__(self, blob=None, error=None, gate=None):
        self.blob = blob
        self.error = error
        self.gate = gate
        self.saved = []
        self.saved_event = threading.Event()

    def load(self):
        if self.gate is not None:
            self.gate.wait(5)
        if self.error is not None:
            raise self.error
        return self.blob

    def save(self, state):
        self.saved.append(state)
        self.saved_event.set()

    def clear(self):
        self.blob = None


def make_facade(storage, debounce=0.05, timeout=2.0):
    return BoardFacade(storage, save_debounce_secs=debounce, load_timeout_secs=timeout)


@pytest.fixture
def facade():
    """A mounted facade over an empty store, already loaded."""
    f = make_facade(FakeStorage(), debounce=5.0)
    f.mount()
    assert f.wait_until_loaded(2)
    yield f
    f.unmount()


SAVED_BLOB = {
    "project": {
        "id": "p1",
        "name": "Saved Board",
        "lanes": [{"id": "todo", "title": "Todo", "order": 0, "cardIds": ["c1"]}],
    },
    "cards": {"c1": {"id": "c1", "title": "Saved card", "laneId": "todo"}},
}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Load lifecycle
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_starts_loading():
    f = make_facade(FakeStorage())
    assert f.state.is_loading is True
    assert f.is_loaded is False


def test_mount_loads_and_normalizes_saved_state():
    f = make_facade(FakeStorage(blob=SAVED_BLOB))
    f.mount()
    assert f.wait_until_loaded(2)
    state = f.state
    assert state.is_loading is False
    assert state.active_project_id == "p1"
    assert state.active_project().title == "Saved Board"
    assert state.cards["c1"].project_id == "p1"
    f.unmount()


@pytest.mark.parametrize("storage", [
    FakeStorage(blob=None),
    FakeStorage(blob={"projects": []}),
    FakeStorage(error=RuntimeError("disk on fire")),
])
def test_empty_or_failed_load_starts_fresh(storage):
    f = make_facade(storage)
    f.mount()
    assert f.wait_until_loaded(2)
    project = f.active_project()
    assert project.title == DEFAULT_TITLE
    assert [l.title for l in f.lanes()] == ["Todo", "Doing", "Done"]
    assert f.state.is_loading is False
    f.unmount()


def test_slow_load_falls_back_and_late_result_is_discarded():
    gate = threading.Event()
    storage = FakeStorage(blob=SAVED_BLOB, gate=gate)
    f = make_facade(storage, timeout=0.05)
    f.mount()
    assert f.wait_until_loaded(2)
    assert f.active_project().title == DEFAULT_TITLE

    gate.set()
    f._load_thread.join(2)
    assert f.active_project().title == DEFAULT_TITLE
    assert "c1" not in f.state.cards
    f.unmount()


def test_load_after_unmount_is_discarded(caplog):
    gate = threading.Event()
    f = make_facade(FakeStorage(blob=SAVED_BLOB, gate=gate))
    f.mount()
    f.unmount()
    gate.set()
    f._load_thread.join(2)
    assert f.is_loaded is False
    assert f.state.is_loading is True
    assert "arrived after unmount" in caplog.text


def test_mount_twice_is_harmless(facade):
    state = facade.state
    facade.mount()
    assert facade.state is state


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Saving
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_no_save_before_load():
    storage = FakeStorage()
    f = make_facade(storage, debounce=0.01)
    lane = f.lanes()[0]
    f.add_card("early", lane.id)
    time.sleep(0.1)
    assert storage.saved == []


def test_rapid_changes_coalesce_into_one_save():
    storage = FakeStorage()
    f = make_facade(storage, debounce=0.2)
    f.mount()
    assert f.wait_until_loaded(2)
    todo = f.lanes()[0].id
    for title in ("a", "b", "c"):
        f.add_card(title, todo)
    assert storage.saved_event.wait(2)
    time.sleep(0.4)
    assert len(storage.saved) == 1
    assert len(storage.saved[0].cards) == 3
    f.unmount()


def test_unmount_with_flush_saves_immediately(facade):
    todo = facade.lanes()[0].id
    facade.add_card("x", todo)
    facade.unmount(flush=True)
    assert len(facade.storage.saved) == 1
    assert len(facade.storage.saved[0].cards) == 1


def test_unmount_cancels_pending_save(facade):
    facade.add_card("x", facade.lanes()[0].id)
    facade.unmount()
    assert facade._save_timer is None
    assert facade.storage.saved == []


def test_save_failure_is_logged(caplog):
    class Broken(FakeStorage):
        def save(self, state):
            raise RuntimeError("nope")

    f = make_facade(Broken())
    f.flush()
    assert "Failed to save board state" in caplog.text


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Dispatch & subscribers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_subscribers_notified_on_change(facade):
    seen = []
    facade.subscribe(seen.append)
    facade.add_lane("Review")
    assert len(seen) == 1
    assert seen[0] is facade.state

    facade.delete_card("missing")
    assert len(seen) == 1

    facade.unsubscribe(seen.append)
    facade.add_lane("More")
    assert len(seen) == 1


def test_failing_subscriber_does_not_break_dispatch(facade, caplog):
    def boom(state):
        raise ValueError("bad listener")

    facade.subscribe(boom)
    assert facade.add_lane("Review") is not None
    assert "bad listener" in caplog.text


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Verbs
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_add_card_fills_system_fields(facade):
    todo = facade.lanes()[0].id
    first = facade.add_card("one", todo)
    second = facade.add_card("two", todo, card_type="bug", priority="high", labels=[{"id": "label-3", "name": "Bug", "color": "#eb5a46"}])
    card = facade.state.cards[second]
    assert card.order == 1
    assert card.priority == Priority.HIGH
    assert card.labels[0].name == "Bug"
    assert [c.id for c in facade.cards_by_lane(todo)] == [first, second]


def test_add_card_to_unknown_lane_returns_none(facade):
    assert facade.add_card("x", "no-such-lane") is None
    assert facade.state.cards == {}


def test_card_verbs_and_undo(facade):
    todo, doing, _ = [l.id for l in facade.lanes()]
    card_id = facade.add_card("x", todo)
    assert facade.can_undo(card_id) is False

    facade.update_card(card_id, title="y")
    facade.move_card(card_id, doing, 0)
    assert facade.can_undo(card_id) is True
    assert [v.version for v in facade.history(card_id)] == [1, 2]

    facade.delete_card(card_id)
    assert facade.cards_by_lane(doing) == []
    facade.restore_card(card_id)
    assert [c.id for c in facade.cards_by_lane(doing)] == [card_id]

    facade.undo_card(card_id)
    facade.undo_card(card_id)
    assert facade.state.cards[card_id].lane_id == todo
    facade.undo_card(card_id)
    assert facade.state.cards[card_id].title == "x"
    assert facade.can_undo(card_id) is False


def test_reorder_verbs(facade):
    todo, doing, done = [l.id for l in facade.lanes()]
    c1 = facade.add_card("1", todo)
    c2 = facade.add_card("2", todo)
    facade.reorder_cards(todo, [c2, c1])
    assert [c.id for c in facade.cards_by_lane(todo)] == [c2, c1]
    facade.reorder_lanes([done, doing, todo])
    assert [l.id for l in facade.lanes()] == [done, doing, todo]


def test_lane_verbs(facade):
    lane_id = facade.add_lane("Review")
    facade.update_lane(lane_id, title="QA")
    assert facade.lanes()[-1].title == "QA"
    facade.delete_lane(lane_id)
    assert len(facade.lanes()) == 3


def test_last_lane_error_and_clear(facade):
    for lane in facade.lanes()[1:]:
        facade.delete_lane(lane.id)
    facade.delete_lane(facade.lanes()[0].id)
    assert facade.state.error == "Cannot delete the last lane"
    facade.clear_error()
    assert facade.state.error is None


def test_project_verbs_and_counts(facade):
    first = facade.active_project().id
    facade.add_card("a", facade.lanes()[0].id)
    second = facade.add_project("Side", "http://thumb")
    assert facade.active_project().id == second
    facade.add_card("b", facade.lanes()[0].id)
    facade.add_card("c", facade.lanes()[0].id)
    assert facade.card_counts() == {first: 1, second: 2}

    facade.update_project(second, title="Side Project")
    assert facade.active_project().title == "Side Project"
    facade.set_active_project(first)
    assert facade.active_project().id == first
    facade.delete_project(second)
    assert facade.card_counts() == {first: 1}


def test_stale_active_project_reads_first(facade):
    facade.set_active_project("gone")
    assert facade.active_project() is facade.state.projects[0]
    assert len(facade.lanes()) == 3


def test_stale_active_project_accepts_writes(facade):
    """Writes land in the project the read helpers show"""
    shown = facade.active_project().id
    facade.set_active_project("gone")
    todo = facade.lanes()[0].id

    card_id = facade.add_card("x", todo)
    assert card_id is not None
    assert facade.state.active_project_id == shown
    assert [c.id for c in facade.cards_by_lane(todo)] == [card_id]

    facade.set_active_project("gone")
    lane_id = facade.add_lane("Review")
    assert lane_id is not None
    assert facade.lanes()[-1].id == lane_id

    facade.set_active_project("gone")
    order = [l.id for l in reversed(facade.lanes())]
    facade.reorder_lanes(order)
    assert [l.id for l in facade.lanes()] == order


def test_set_error(facade):
    facade.set_error("Storage offline")
    assert facade.state.error == "Storage offline"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Config
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_from_config():
    cfg = BoardConfig(save_debounce_ms=250, load_timeout_secs=1.5, default_project_title="Mine")
    f = BoardFacade.from_config(cfg, storage=FakeStorage())
    assert f.save_debounce_secs == 0.25
    assert f.load_timeout_secs == 1.5
    assert f.active_project().title == "Mine"


def test_from_config_builds_http_storage():
    cfg = BoardConfig(api_url="http://board.local:3001", request_timeout=2.0)
    f = BoardFacade.from_config(cfg)
    assert f.storage.url == "http://board.local:3001/api/board"
    assert f.storage.timeout == 2.0
