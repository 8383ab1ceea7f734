"""
Board facade: one live BoardState plus the verbs a UI calls.

Lifecycle:
  mount()   → load the saved blob on a background thread, normalize it and
              dispatch LOAD_STATE. If nothing arrives within
              load_timeout_secs a fresh board is loaded instead; whichever
              outcome lands first wins.
  dispatch  → every effective transition notifies subscribers and (once
              loaded) re-arms a debounce timer that saves a snapshot of the
              state as it was when the timer was armed.
  unmount() → cancel timers, optionally flushing the current state.

The reducer does the real work; this class only serializes access to it.
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from . import actions as a
from .normalizer import normalize
from .reducer import BoardReducer
from .schema import (
    BoardState,
    Card,
    CardType,
    CardVersion,
    Lane,
    Priority,
    Project,
    initial_state,
    labels_from,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Stuff to do now, stuff to do later"


class BoardFacade:
    """Imperative wrapper around BoardReducer with load/save plumbing."""

    def __init__(
        self,
        storage,
        reducer: Optional[BoardReducer] = None,
        save_debounce_secs: float = 0.4,
        load_timeout_secs: float = 3.0,
        default_project_title: str = DEFAULT_TITLE,
    ):
        self.storage = storage
        self.reducer = reducer or BoardReducer()
        self.save_debounce_secs = save_debounce_secs
        self.load_timeout_secs = load_timeout_secs
        self.default_project_title = default_project_title

        self._state = self._fresh_state(is_loading=True)
        self._lock = threading.RLock()
        self._loaded = threading.Event()
        self._active = False
        self._subscribers: List[Callable[[BoardState], None]] = []
        self._save_timer: Optional[threading.Timer] = None
        self._fallback_timer: Optional[threading.Timer] = None
        self._load_thread: Optional[threading.Thread] = None

    @classmethod
    def from_config(cls, cfg, storage=None, reducer: Optional[BoardReducer] = None) -> "BoardFacade":
        if storage is None:
            from .client import HttpBoardStorage
            storage = HttpBoardStorage(cfg.api_url, timeout=cfg.request_timeout)
        return cls(
            storage,
            reducer=reducer,
            save_debounce_secs=cfg.save_debounce_secs,
            load_timeout_secs=cfg.load_timeout_secs,
            default_project_title=cfg.default_project_title,
        )

    # ── state & dispatch ─────────────────────────────────────────────────────

    @property
    def state(self) -> BoardState:
        return self._state

    @property
    def is_loaded(self) -> bool:
        return self._loaded.is_set()

    def subscribe(self, callback: Callable[[BoardState], None]) -> None:
        """Register a callback invoked with each new state."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[BoardState], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def dispatch(self, action) -> BoardState:
        with self._lock:
            before = self._state
            after = self.reducer.transition(before, action)
            if after is before:
                return after
            self._state = after
            if not after.is_loading and self._loaded.is_set():
                self._schedule_save(after)
            for callback in list(self._subscribers):
                try:
                    callback(after)
                except Exception as e:
                    logger.error(f"Board subscriber {callback!r} failed: {e}")
            return after

    # ── lifecycle ────────────────────────────────────────────────────────────

    def mount(self) -> None:
        """Start loading persisted state. Safe to call once."""
        with self._lock:
            if self._active or self._loaded.is_set():
                return
            self._active = True
            self._fallback_timer = threading.Timer(self.load_timeout_secs, self._on_load_timeout)
            self._fallback_timer.daemon = True
            self._fallback_timer.start()
            self._load_thread = threading.Thread(target=self._load, name="board-load", daemon=True)
            self._load_thread.start()

    def wait_until_loaded(self, timeout: Optional[float] = None) -> bool:
        return self._loaded.wait(timeout)

    def unmount(self, flush: bool = False) -> None:
        with self._lock:
            self._active = False
            self._cancel_fallback()
        if flush and self._loaded.is_set():
            self.flush()
        else:
            self._cancel_save()

    def flush(self) -> None:
        """Save the current state now, dropping any pending debounce."""
        with self._lock:
            self._cancel_save()
            state = self._state
        self._persist(state)

    def _load(self) -> None:
        try:
            raw = self.storage.load()
        except Exception as e:
            logger.error(f"Failed to initialize board state: {e}")
            raw = None
        self._finish_load(raw)

    def _finish_load(self, raw: Any) -> None:
        with self._lock:
            if not self._active:
                logger.warning("Discarding board load result that arrived after unmount")
                return
            if self._loaded.is_set():
                logger.warning("Discarding board load result that arrived after initialization")
                return
            self._cancel_fallback()
            state = None
            if raw is not None:
                state = normalize(raw, id_factory=self.reducer.id_factory, now=self.reducer.clock())
            if state is None or not state.projects:
                state = self._fresh_state()
            self._loaded.set()
            self.dispatch(a.LoadState(state))

    def _on_load_timeout(self) -> None:
        with self._lock:
            if not self._active or self._loaded.is_set():
                return
            logger.warning(f"Board load exceeded {self.load_timeout_secs}s, starting with a fresh board")
            self._loaded.set()
            self.dispatch(a.LoadState(self._fresh_state()))

    def _repair_active(self) -> None:
        """Point a stale active id at the project the read helpers show."""
        state = self._state
        if state.active_project() is None and state.projects:
            self.dispatch(a.SetActiveProject(state.projects[0].id))

    def _fresh_state(self, is_loading: bool = False) -> BoardState:
        return initial_state(
            self.default_project_title,
            id_factory=self.reducer.id_factory,
            now=self.reducer.clock(),
            is_loading=is_loading,
        )

    # ── persistence ──────────────────────────────────────────────────────────

    def _schedule_save(self, state: BoardState) -> None:
        self._cancel_save()
        self._save_timer = threading.Timer(self.save_debounce_secs, self._persist, args=(state,))
        self._save_timer.daemon = True
        self._save_timer.start()

    def _persist(self, state: BoardState) -> None:
        try:
            self.storage.save(state)
        except Exception as e:
            logger.error(f"Failed to save board state: {e}")

    def _cancel_save(self) -> None:
        if self._save_timer is not None:
            self._save_timer.cancel()
            self._save_timer = None

    def _cancel_fallback(self) -> None:
        if self._fallback_timer is not None:
            self._fallback_timer.cancel()
            self._fallback_timer = None

    # ── card verbs ───────────────────────────────────────────────────────────

    def add_card(
        self,
        title: str,
        lane_id: str,
        description: str = "",
        card_type: Any = "task",
        priority: Any = "medium",
        due_date: Optional[str] = None,
        labels=(),
        assignee: Optional[str] = None,
    ) -> Optional[str]:
        """Append a card to a lane of the active project. Returns its id, or None."""
        with self._lock:
            self._repair_active()
            project = self.active_project()
            lane = project.lane(lane_id) if project else None
            card_id = self.reducer.id_factory()
            state = self.dispatch(a.AddCard(
                title=title,
                lane_id=lane_id,
                description=description,
                card_type=CardType.from_str(card_type),
                priority=Priority.from_str(priority),
                due_date=due_date,
                labels=tuple(labels_from(list(labels))),
                assignee=assignee,
                order=len(lane.card_ids) if lane else 0,
                card_id=card_id,
            ))
            return card_id if card_id in state.cards else None

    def update_card(self, card_id: str, **updates) -> BoardState:
        return self.dispatch(a.UpdateCard(card_id, updates))

    def delete_card(self, card_id: str) -> BoardState:
        return self.dispatch(a.DeleteCard(card_id))

    def restore_card(self, card_id: str) -> BoardState:
        return self.dispatch(a.RestoreCard(card_id))

    def move_card(self, card_id: str, to_lane_id: str, to_index: int) -> BoardState:
        return self.dispatch(a.MoveCard(card_id, to_lane_id, to_index))

    def reorder_cards(self, lane_id: str, card_ids: List[str]) -> BoardState:
        return self.dispatch(a.ReorderCards(lane_id, tuple(card_ids)))

    def undo_card(self, card_id: str) -> BoardState:
        return self.dispatch(a.UndoCard(card_id))

    # ── lane verbs ───────────────────────────────────────────────────────────

    def add_lane(self, title: str) -> Optional[str]:
        with self._lock:
            self._repair_active()
            lane_id = self.reducer.id_factory()
            state = self.dispatch(a.AddLane(title, lane_id=lane_id))
            return lane_id if state.find_lane(lane_id) else None

    def update_lane(self, lane_id: str, **updates) -> BoardState:
        return self.dispatch(a.UpdateLane(lane_id, updates))

    def delete_lane(self, lane_id: str) -> BoardState:
        return self.dispatch(a.DeleteLane(lane_id))

    def reorder_lanes(self, lane_ids: List[str]) -> BoardState:
        with self._lock:
            self._repair_active()
            return self.dispatch(a.ReorderLanes(tuple(lane_ids)))

    # ── project verbs ────────────────────────────────────────────────────────

    def add_project(self, title: str, thumbnail_url: Optional[str] = None) -> Optional[str]:
        with self._lock:
            project_id = self.reducer.id_factory()
            state = self.dispatch(a.AddProject(title, thumbnail_url, project_id=project_id))
            return project_id if state.project(project_id) else None

    def update_project(self, project_id: str, **updates) -> BoardState:
        return self.dispatch(a.UpdateProject(project_id, updates))

    def delete_project(self, project_id: str) -> BoardState:
        return self.dispatch(a.DeleteProject(project_id))

    def set_active_project(self, project_id: Optional[str]) -> BoardState:
        return self.dispatch(a.SetActiveProject(project_id))

    def set_error(self, message: Optional[str]) -> BoardState:
        return self.dispatch(a.SetError(message))

    def clear_error(self) -> BoardState:
        return self.dispatch(a.SetError(None))

    # ── read helpers ─────────────────────────────────────────────────────────

    def active_project(self) -> Optional[Project]:
        """The active project, or the first one if the active id is stale."""
        state = self._state
        project = state.active_project()
        if project is None and state.projects:
            return state.projects[0]
        return project

    def lanes(self) -> List[Lane]:
        project = self.active_project()
        return project.ordered_lanes() if project else []

    def cards_by_lane(self, lane_id: str) -> List[Card]:
        """Live cards of an active-project lane, in display order."""
        project = self.active_project()
        lane = project.lane(lane_id) if project else None
        if lane is None:
            return []
        cards = self._state.cards
        return [cards[cid] for cid in lane.card_ids if cid in cards and not cards[cid].is_deleted]

    def can_undo(self, card_id: str) -> bool:
        return bool(self._state.card_versions.get(card_id))

    def history(self, card_id: str) -> List[CardVersion]:
        return list(self._state.card_versions.get(card_id, []))

    def card_counts(self) -> Dict[str, int]:
        """Live card count per project id."""
        counts = {p.id: 0 for p in self._state.projects}
        for card in self._state.cards.values():
            if not card.is_deleted and card.project_id in counts:
                counts[card.project_id] += 1
        return counts
