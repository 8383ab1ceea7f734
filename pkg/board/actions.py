"""
Board actions: the closed set of requests the reducer understands.

Each action is a small frozen dataclass tagged with its wire `type`.
action_from_dict() decodes the JSON form { "type": ..., "payload": {...} }
used by HTTP callers.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .schema import BoardState, CardType, Label, Priority, labels_from


class ActionError(ValueError):
    """Raised when a wire action cannot be decoded."""
    pass


# ── Card actions ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AddCard:
    type = "ADD_CARD"
    title: str
    lane_id: str
    description: str = ""
    card_type: CardType = CardType.TASK
    priority: Priority = Priority.MEDIUM
    due_date: Optional[str] = None
    labels: Tuple[Label, ...] = ()
    assignee: Optional[str] = None
    order: int = 0
    card_id: Optional[str] = None      # pre-assigned id, else the reducer mints one


@dataclass(frozen=True)
class UpdateCard:
    type = "UPDATE_CARD"
    id: str
    updates: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeleteCard:
    type = "DELETE_CARD"
    id: str


@dataclass(frozen=True)
class RestoreCard:
    type = "RESTORE_CARD"
    id: str


@dataclass(frozen=True)
class MoveCard:
    type = "MOVE_CARD"
    card_id: str
    to_lane_id: str
    to_index: int


@dataclass(frozen=True)
class ReorderCards:
    type = "REORDER_CARDS"
    lane_id: str
    card_ids: Tuple[str, ...]


@dataclass(frozen=True)
class UndoCard:
    type = "UNDO_CARD"
    card_id: str


# ── Lane actions ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AddLane:
    type = "ADD_LANE"
    title: str
    lane_id: Optional[str] = None


@dataclass(frozen=True)
class UpdateLane:
    type = "UPDATE_LANE"
    id: str
    updates: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeleteLane:
    type = "DELETE_LANE"
    id: str


@dataclass(frozen=True)
class ReorderLanes:
    type = "REORDER_LANES"
    lane_ids: Tuple[str, ...]


# ── Project actions ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AddProject:
    type = "ADD_PROJECT"
    title: str
    thumbnail_url: Optional[str] = None
    project_id: Optional[str] = None


@dataclass(frozen=True)
class UpdateProject:
    type = "UPDATE_PROJECT"
    id: str
    updates: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeleteProject:
    type = "DELETE_PROJECT"
    id: str


@dataclass(frozen=True)
class SetActiveProject:
    type = "SET_ACTIVE_PROJECT"
    id: Optional[str]


# ── Whole-state actions ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class LoadState:
    type = "LOAD_STATE"
    payload: BoardState


@dataclass(frozen=True)
class SetError:
    type = "SET_ERROR"
    message: Optional[str]


ACTION_TYPES = (
    AddCard, UpdateCard, DeleteCard, RestoreCard, MoveCard, ReorderCards, UndoCard,
    AddLane, UpdateLane, DeleteLane, ReorderLanes,
    AddProject, UpdateProject, DeleteProject, SetActiveProject,
    LoadState, SetError,
)

_BY_TYPE = {cls.type: cls for cls in ACTION_TYPES}

# camelCase wire keys → python attribute names for partial updates
_CARD_UPDATE_KEYS = {
    "title": "title",
    "description": "description",
    "type": "type",
    "priority": "priority",
    "dueDate": "due_date",
    "labels": "labels",
    "assignee": "assignee",
    "order": "order",
}
_LANE_UPDATE_KEYS = {"title": "title", "order": "order"}
_PROJECT_UPDATE_KEYS = {"title": "title", "thumbnailUrl": "thumbnail_url"}


def _rename(updates: Any, mapping: Dict[str, str]) -> Dict[str, Any]:
    if not isinstance(updates, dict):
        raise ActionError("updates must be an object")
    return {mapping[k]: v for k, v in updates.items() if k in mapping}


def _str(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise ActionError(f"payload.{key} must be a non-empty string")
    return value


def _ids(payload: Dict[str, Any], key: str) -> Tuple[str, ...]:
    value = payload.get(key)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ActionError(f"payload.{key} must be a list of strings")
    return tuple(value)


def action_from_dict(data: Any):
    """
    Decode a wire action.

    Raises:
        ActionError if the type is unknown or the payload is malformed.
    """
    if not isinstance(data, dict):
        raise ActionError("action must be an object")
    kind = data.get("type")
    if kind not in _BY_TYPE:
        raise ActionError(f"Unknown action type: {kind!r}")
    payload = data.get("payload")

    if kind == "SET_ERROR":
        if payload is not None and not isinstance(payload, str):
            raise ActionError("SET_ERROR payload must be a string or null")
        return SetError(payload)
    if kind == "LOAD_STATE":
        if not isinstance(payload, dict):
            raise ActionError("LOAD_STATE payload must be an object")
        from .normalizer import normalize
        return LoadState(normalize(payload))
    if not isinstance(payload, dict):
        raise ActionError(f"{kind} payload must be an object")

    if kind == "ADD_CARD":
        order = payload.get("order", 0)
        return AddCard(
            title=_str(payload, "title"),
            lane_id=_str(payload, "laneId"),
            description=str(payload.get("description") or ""),
            card_type=CardType.from_str(payload.get("type", "task")),
            priority=Priority.from_str(payload.get("priority", "medium")),
            due_date=payload.get("dueDate") or None,
            labels=tuple(labels_from(payload.get("labels"))),
            assignee=payload.get("assignee") or None,
            order=order if isinstance(order, int) else 0,
        )
    if kind == "UPDATE_CARD":
        return UpdateCard(_str(payload, "id"), _rename(payload.get("updates", {}), _CARD_UPDATE_KEYS))
    if kind == "DELETE_CARD":
        return DeleteCard(_str(payload, "id"))
    if kind == "RESTORE_CARD":
        return RestoreCard(_str(payload, "id"))
    if kind == "MOVE_CARD":
        index = payload.get("toIndex")
        if not isinstance(index, int) or isinstance(index, bool):
            raise ActionError("payload.toIndex must be an integer")
        return MoveCard(_str(payload, "cardId"), _str(payload, "toLaneId"), index)
    if kind == "REORDER_CARDS":
        return ReorderCards(_str(payload, "laneId"), _ids(payload, "cardIds"))
    if kind == "UNDO_CARD":
        return UndoCard(_str(payload, "cardId"))
    if kind == "ADD_LANE":
        return AddLane(_str(payload, "title"))
    if kind == "UPDATE_LANE":
        return UpdateLane(_str(payload, "id"), _rename(payload.get("updates", {}), _LANE_UPDATE_KEYS))
    if kind == "DELETE_LANE":
        return DeleteLane(_str(payload, "id"))
    if kind == "REORDER_LANES":
        return ReorderLanes(_ids(payload, "laneIds"))
    if kind == "ADD_PROJECT":
        return AddProject(_str(payload, "title"), payload.get("thumbnailUrl") or None)
    if kind == "UPDATE_PROJECT":
        return UpdateProject(_str(payload, "id"), _rename(payload.get("updates", {}), _PROJECT_UPDATE_KEYS))
    if kind == "DELETE_PROJECT":
        return DeleteProject(_str(payload, "id"))
    # SET_ACTIVE_PROJECT
    return SetActiveProject(_str(payload, "id"))
