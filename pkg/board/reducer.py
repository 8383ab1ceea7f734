"""
Board reducer: (state, action) → new state.

Rules:
  - Pure and total. Nothing here raises or does I/O.
  - An action whose target does not exist returns the *same* state object.
  - Deleting the last lane / last project sets state.error instead.
  - Copy-on-write: the incoming state and its nested lists are never mutated.

Undo model:
  UPDATE_CARD, DELETE_CARD and MOVE_CARD push a snapshot of the card as it
  was *before* the change. UNDO_CARD pops the newest snapshot and restores
  it. A new snapshot is numbered one past the highest remaining version.
"""
from dataclasses import replace
from typing import Callable, Dict, List

from . import actions as a
from .schema import (
    BoardState,
    Card,
    CardVersion,
    Lane,
    Project,
    coerce_card_updates,
    make_id,
    new_project,
    utc_now,
)

LAST_LANE_ERROR = "Cannot delete the last lane"
LAST_PROJECT_ERROR = "Cannot delete the last project"


class BoardReducer:
    """Applies actions to board state. Ids and timestamps come from injected callables."""

    def __init__(
        self,
        id_factory: Callable[[], str] = make_id,
        clock: Callable[[], str] = utc_now,
    ):
        self.id_factory = id_factory
        self.clock = clock
        self._handlers = {
            a.AddCard: self._add_card,
            a.UpdateCard: self._update_card,
            a.DeleteCard: self._delete_card,
            a.RestoreCard: self._restore_card,
            a.MoveCard: self._move_card,
            a.ReorderCards: self._reorder_cards,
            a.UndoCard: self._undo_card,
            a.AddLane: self._add_lane,
            a.UpdateLane: self._update_lane,
            a.DeleteLane: self._delete_lane,
            a.ReorderLanes: self._reorder_lanes,
            a.AddProject: self._add_project,
            a.UpdateProject: self._update_project,
            a.DeleteProject: self._delete_project,
            a.SetActiveProject: self._set_active_project,
            a.LoadState: self._load_state,
            a.SetError: self._set_error,
        }

    def handles(self, action_type: type) -> bool:
        return action_type in self._handlers

    def transition(self, state: BoardState, action) -> BoardState:
        handler = self._handlers.get(type(action))
        if handler is None:
            return state
        return handler(state, action)

    __call__ = transition

    # ── helpers ──────────────────────────────────────────────────────────────

    def _snapshot(self, card: Card, history: List[CardVersion], now: str) -> CardVersion:
        next_version = max((v.version for v in history), default=0) + 1
        return CardVersion(
            id=self.id_factory(),
            card_id=card.id,
            version=next_version,
            data=card.snapshot(),
            timestamp=now,
        )

    @staticmethod
    def _with_project(state: BoardState, project: Project, **changes) -> List[Project]:
        """Return a new project list with `project` replaced by a modified copy."""
        updated = replace(project, **changes)
        return [updated if p.id == project.id else p for p in state.projects]

    @staticmethod
    def _map_lanes(project: Project, fn: Callable[[Lane], Lane]) -> List[Lane]:
        return [fn(lane) for lane in project.lanes]

    @staticmethod
    def _without(ids: List[str], card_id: str) -> List[str]:
        return [cid for cid in ids if cid != card_id]

    def _versioned(self, state: BoardState, card: Card, now: str) -> Dict[str, List[CardVersion]]:
        history = state.card_versions.get(card.id, [])
        versions = dict(state.card_versions)
        versions[card.id] = history + [self._snapshot(card, history, now)]
        return versions

    # ── card actions ─────────────────────────────────────────────────────────

    def _add_card(self, state: BoardState, action: a.AddCard) -> BoardState:
        project = state.active_project()
        if project is None or project.lane(action.lane_id) is None:
            return state
        card_id = action.card_id or self.id_factory()
        if card_id in state.cards:
            return state
        now = self.clock()
        card = Card(
            id=card_id,
            project_id=project.id,
            title=action.title,
            lane_id=action.lane_id,
            description=action.description,
            type=action.card_type,
            priority=action.priority,
            due_date=action.due_date,
            labels=list(action.labels),
            assignee=action.assignee,
            order=action.order,
            is_deleted=False,
            created_at=now,
            updated_at=now,
        )

        def add(lane: Lane) -> Lane:
            if lane.id == action.lane_id:
                return replace(lane, card_ids=lane.card_ids + [card.id])
            return lane

        cards = dict(state.cards)
        cards[card.id] = card
        return replace(
            state,
            cards=cards,
            projects=self._with_project(state, project, lanes=self._map_lanes(project, add), updated_at=now),
        )

    def _update_card(self, state: BoardState, action: a.UpdateCard) -> BoardState:
        card = state.cards.get(action.id)
        if card is None:
            return state
        now = self.clock()
        updated = replace(card, **coerce_card_updates(action.updates))
        updated.updated_at = now

        cards = dict(state.cards)
        cards[card.id] = updated
        project = state.project(card.project_id)
        projects = self._with_project(state, project, updated_at=now) if project else state.projects
        return replace(
            state,
            cards=cards,
            card_versions=self._versioned(state, card, now),
            projects=projects,
        )

    def _delete_card(self, state: BoardState, action: a.DeleteCard) -> BoardState:
        card = state.cards.get(action.id)
        if card is None:
            return state
        now = self.clock()

        cards = dict(state.cards)
        cards[card.id] = replace(card, is_deleted=True, updated_at=now)
        projects = state.projects
        project = state.project(card.project_id)
        if project is not None:
            def drop(lane: Lane) -> Lane:
                if card.id in lane.card_ids:
                    return replace(lane, card_ids=self._without(lane.card_ids, card.id))
                return lane
            projects = self._with_project(state, project, lanes=self._map_lanes(project, drop), updated_at=now)
        return replace(
            state,
            cards=cards,
            card_versions=self._versioned(state, card, now),
            projects=projects,
        )

    def _restore_card(self, state: BoardState, action: a.RestoreCard) -> BoardState:
        card = state.cards.get(action.id)
        if card is None or not card.is_deleted:
            return state
        project = state.project(card.project_id)
        if project is None:
            return state
        now = self.clock()
        lane_id = card.lane_id
        if project.lane(lane_id) is None:
            lane_id = project.ordered_lanes()[0].id

        def add(lane: Lane) -> Lane:
            if lane.id == lane_id:
                return replace(lane, card_ids=self._without(lane.card_ids, card.id) + [card.id])
            return lane

        cards = dict(state.cards)
        cards[card.id] = replace(card, is_deleted=False, lane_id=lane_id, updated_at=now)
        return replace(
            state,
            cards=cards,
            projects=self._with_project(state, project, lanes=self._map_lanes(project, add), updated_at=now),
        )

    def _move_card(self, state: BoardState, action: a.MoveCard) -> BoardState:
        card = state.cards.get(action.card_id)
        if card is None or card.is_deleted:
            return state
        project = state.project(card.project_id)
        if project is None or project.lane(action.to_lane_id) is None:
            return state
        now = self.clock()
        from_lane_id = card.lane_id

        def move(lane: Lane) -> Lane:
            if lane.id == action.to_lane_id:
                ids = self._without(lane.card_ids, card.id)
                ids.insert(action.to_index, card.id)
                return replace(lane, card_ids=ids)
            if lane.id == from_lane_id or card.id in lane.card_ids:
                return replace(lane, card_ids=self._without(lane.card_ids, card.id))
            return lane

        cards = dict(state.cards)
        cards[card.id] = replace(card, lane_id=action.to_lane_id, updated_at=now)
        return replace(
            state,
            cards=cards,
            card_versions=self._versioned(state, card, now),
            projects=self._with_project(state, project, lanes=self._map_lanes(project, move), updated_at=now),
        )

    def _reorder_cards(self, state: BoardState, action: a.ReorderCards) -> BoardState:
        found = state.find_lane(action.lane_id)
        if found is None:
            return state
        project, lane = found
        new_ids = list(action.card_ids)
        # Only a permutation of the lane's current cards is accepted.
        if len(new_ids) != len(lane.card_ids) or set(new_ids) != set(lane.card_ids):
            return state
        now = self.clock()

        def reorder(l: Lane) -> Lane:
            return replace(l, card_ids=new_ids) if l.id == lane.id else l

        return replace(
            state,
            projects=self._with_project(state, project, lanes=self._map_lanes(project, reorder), updated_at=now),
        )

    def _undo_card(self, state: BoardState, action: a.UndoCard) -> BoardState:
        history = state.card_versions.get(action.card_id)
        current = state.cards.get(action.card_id)
        if not history or current is None:
            return state
        now = self.clock()
        last = history[-1]

        data = dict(last.data)
        data["id"] = current.id
        data["updatedAt"] = now
        restored = Card.from_dict(data, now=now)
        restored.project_id = current.project_id

        projects = state.projects
        project = state.project(current.project_id)
        if project is not None:
            if project.lane(restored.lane_id) is None:
                restored.lane_id = current.lane_id
            was_listed = not current.is_deleted
            listed = not restored.is_deleted
            lane_changed = restored.lane_id != current.lane_id

            def reconcile(lane: Lane) -> Lane:
                ids = lane.card_ids
                if was_listed and (not listed or lane_changed) and lane.id == current.lane_id:
                    ids = self._without(ids, current.id)
                if listed and (not was_listed or lane_changed) and lane.id == restored.lane_id:
                    ids = self._without(ids, current.id) + [current.id]
                return lane if ids is lane.card_ids else replace(lane, card_ids=ids)

            projects = self._with_project(state, project, lanes=self._map_lanes(project, reconcile), updated_at=now)

        cards = dict(state.cards)
        cards[current.id] = restored
        versions = dict(state.card_versions)
        versions[current.id] = history[:-1]
        return replace(state, cards=cards, card_versions=versions, projects=projects)

    # ── lane actions ─────────────────────────────────────────────────────────

    def _add_lane(self, state: BoardState, action: a.AddLane) -> BoardState:
        project = state.active_project()
        if project is None:
            return state
        lane_id = action.lane_id or self.id_factory()
        if state.find_lane(lane_id) is not None:
            return state
        now = self.clock()
        order = max((lane.order for lane in project.lanes), default=-1) + 1
        lane = Lane(id=lane_id, title=action.title, order=order, card_ids=[])
        return replace(
            state,
            projects=self._with_project(state, project, lanes=project.lanes + [lane], updated_at=now),
        )

    def _update_lane(self, state: BoardState, action: a.UpdateLane) -> BoardState:
        found = state.find_lane(action.id)
        if found is None:
            return state
        project, lane = found
        changes = {}
        if isinstance(action.updates.get("title"), str):
            changes["title"] = action.updates["title"]
        order = action.updates.get("order")
        if isinstance(order, int) and not isinstance(order, bool):
            changes["order"] = order
        now = self.clock()

        def update(l: Lane) -> Lane:
            return replace(l, **changes) if l.id == lane.id else l

        return replace(
            state,
            projects=self._with_project(state, project, lanes=self._map_lanes(project, update), updated_at=now),
        )

    def _delete_lane(self, state: BoardState, action: a.DeleteLane) -> BoardState:
        found = state.find_lane(action.id)
        if found is None:
            return state
        project, doomed = found
        if len(project.lanes) <= 1:
            return replace(state, error=LAST_LANE_ERROR)
        now = self.clock()

        remaining = [lane for lane in project.lanes if lane.id != doomed.id]
        target = remaining[0]
        moved = [cid for cid in doomed.card_ids if cid not in target.card_ids]

        cards = dict(state.cards)
        for card in state.cards.values():
            if card.project_id == project.id and card.lane_id == doomed.id:
                cards[card.id] = replace(card, lane_id=target.id, updated_at=now)

        lanes = []
        for index, lane in enumerate(remaining):
            if lane.id == target.id:
                lanes.append(replace(lane, card_ids=lane.card_ids + moved, order=index))
            else:
                lanes.append(replace(lane, order=index))
        return replace(
            state,
            cards=cards,
            projects=self._with_project(state, project, lanes=lanes, updated_at=now),
        )

    def _reorder_lanes(self, state: BoardState, action: a.ReorderLanes) -> BoardState:
        project = state.active_project()
        if project is None:
            return state
        lane_ids = list(action.lane_ids)
        current = [lane.id for lane in project.lanes]
        # Only a permutation of the project's current lanes is accepted.
        if len(lane_ids) != len(current) or set(lane_ids) != set(current):
            return state
        now = self.clock()
        by_id = {lane.id: lane for lane in project.lanes}
        lanes = [replace(by_id[lane_id], order=index) for index, lane_id in enumerate(lane_ids)]
        return replace(
            state,
            projects=self._with_project(state, project, lanes=lanes, updated_at=now),
        )

    # ── project actions ──────────────────────────────────────────────────────

    def _add_project(self, state: BoardState, action: a.AddProject) -> BoardState:
        project_id = action.project_id or self.id_factory()
        if state.project(project_id) is not None:
            return state
        project = new_project(
            action.title,
            thumbnail_url=action.thumbnail_url,
            id_factory=self.id_factory,
            now=self.clock(),
            project_id=project_id,
        )
        return replace(state, projects=state.projects + [project], active_project_id=project.id)

    def _update_project(self, state: BoardState, action: a.UpdateProject) -> BoardState:
        project = state.project(action.id)
        if project is None:
            return state
        changes = {}
        if isinstance(action.updates.get("title"), str):
            changes["title"] = action.updates["title"]
        if "thumbnail_url" in action.updates:
            thumbnail = action.updates["thumbnail_url"]
            changes["thumbnail_url"] = thumbnail if isinstance(thumbnail, str) and thumbnail else None
        return replace(
            state,
            projects=self._with_project(state, project, updated_at=self.clock(), **changes),
        )

    def _delete_project(self, state: BoardState, action: a.DeleteProject) -> BoardState:
        project = state.project(action.id)
        if project is None:
            return state
        if len(state.projects) <= 1:
            return replace(state, error=LAST_PROJECT_ERROR)

        projects = [p for p in state.projects if p.id != project.id]
        removed = {cid for cid, c in state.cards.items() if c.project_id == project.id}
        cards = {cid: c for cid, c in state.cards.items() if cid not in removed}
        versions = {cid: v for cid, v in state.card_versions.items() if cid not in removed}
        active = state.active_project_id
        if active == project.id:
            active = projects[0].id if projects else None
        return replace(
            state,
            projects=projects,
            cards=cards,
            card_versions=versions,
            active_project_id=active,
        )

    def _set_active_project(self, state: BoardState, action: a.SetActiveProject) -> BoardState:
        return replace(state, active_project_id=action.id)

    # ── whole-state actions ──────────────────────────────────────────────────

    def _load_state(self, state: BoardState, action: a.LoadState) -> BoardState:
        return replace(action.payload, is_loading=False)

    def _set_error(self, state: BoardState, action: a.SetError) -> BoardState:
        return replace(state, error=action.message)


_default = BoardReducer()


def transition(state: BoardState, action) -> BoardState:
    """Apply one action with the process-default id factory and clock."""
    return _default.transition(state, action)
