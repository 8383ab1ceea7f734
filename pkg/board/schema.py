"""
Board schema: cards, lanes, projects and the pooled board state.

Ownership:
  BoardState → Project → Lane → card ids
  BoardState.cards pools every project's cards by id.

Python attributes are snake_case; to_dict()/from_dict() speak the persisted
camelCase shape so blobs written by older clients keep loading.
"""
import uuid
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Callable, Iterable


def utc_now() -> str:
    """ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


def make_id() -> str:
    return str(uuid.uuid4())


class CardType(Enum):
    """What kind of work a card tracks."""
    FEATURE = "feature"
    BUG = "bug"
    TASK = "task"
    STORY = "story"

    @classmethod
    def from_str(cls, value: Any) -> "CardType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.TASK


class Priority(Enum):
    """Card priority, lowest to highest."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def from_str(cls, value: Any) -> "Priority":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.MEDIUM


@dataclass(frozen=True)
class Label:
    """Catalog label. Cards hold copies, not references."""
    id: str
    name: str
    color: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "color": self.color}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Label"]:
        if isinstance(data, Label):
            return data
        if not isinstance(data, dict) or not data.get("id"):
            return None
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            color=str(data.get("color") or ""),
        )


DEFAULT_LABELS: List[Label] = [
    Label("label-1", "Frontend", "#61bd4f"),
    Label("label-2", "Backend", "#f2d600"),
    Label("label-3", "Bug", "#eb5a46"),
    Label("label-4", "Feature", "#c377e0"),
    Label("label-5", "Documentation", "#00c2e0"),
    Label("label-6", "Design", "#ff9f1a"),
]

DEFAULT_LANE_TITLES = ("Todo", "Doing", "Done")

DEFAULT_PROJECT_TITLE = "Untitled Project"


def labels_from(values: Any) -> List[Label]:
    """Coerce a sequence of Label/dict values, dropping anything unusable."""
    if not isinstance(values, (list, tuple)):
        return []
    out = []
    for value in values:
        label = Label.from_dict(value)
        if label is not None:
            out.append(label)
    return out


@dataclass
class Card:
    """A single card. `order` is advisory; the lane's card_ids is authoritative."""

    id: str
    project_id: str
    title: str
    lane_id: str
    description: str = ""
    type: CardType = CardType.TASK
    priority: Priority = Priority.MEDIUM
    due_date: Optional[str] = None
    labels: List[Label] = field(default_factory=list)
    assignee: Optional[str] = None
    order: int = 0
    is_deleted: bool = False
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "title": self.title,
            "description": self.description,
            "type": self.type.value,
            "priority": self.priority.value,
            "dueDate": self.due_date,
            "labels": [label.to_dict() for label in self.labels],
            "assignee": self.assignee,
            "laneId": self.lane_id,
            "order": self.order,
            "isDeleted": self.is_deleted,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def snapshot(self) -> Dict[str, Any]:
        """Every field except id, in persisted form."""
        data = self.to_dict()
        del data["id"]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], now: Optional[str] = None) -> "Card":
        """Deserialize leniently; missing fields take defaults."""
        stamp = now or utc_now()
        order = data.get("order", 0)
        return cls(
            id=str(data.get("id") or ""),
            project_id=str(data.get("projectId") or ""),
            title=str(data.get("title") or ""),
            lane_id=str(data.get("laneId") or ""),
            description=str(data.get("description") or ""),
            type=CardType.from_str(data.get("type", "task")),
            priority=Priority.from_str(data.get("priority", "medium")),
            due_date=data.get("dueDate") or None,
            labels=labels_from(data.get("labels")),
            assignee=data.get("assignee") or None,
            order=order if isinstance(order, int) and not isinstance(order, bool) else 0,
            is_deleted=bool(data.get("isDeleted", False)),
            created_at=data.get("createdAt") or stamp,
            updated_at=data.get("updatedAt") or stamp,
        )


# Fields UPDATE_CARD may touch. Structure (lane, project, deletion) has its own actions.
CARD_EDITABLE_FIELDS = (
    "title", "description", "type", "priority", "due_date",
    "labels", "assignee", "order",
)


def coerce_card_updates(updates: Dict[str, Any]) -> Dict[str, Any]:
    """Filter and coerce a partial card update to editable, typed fields."""
    out: Dict[str, Any] = {}
    for key, value in updates.items():
        if key not in CARD_EDITABLE_FIELDS:
            continue
        if key == "type":
            value = CardType.from_str(value)
        elif key == "priority":
            value = Priority.from_str(value)
        elif key == "labels":
            value = labels_from(value)
        elif key == "order" and (not isinstance(value, int) or isinstance(value, bool)):
            continue
        out[key] = value
    return out


@dataclass
class CardVersion:
    """One undo step: the card's content just before a mutation."""
    id: str
    card_id: str
    version: int
    data: Dict[str, Any]
    timestamp: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "cardId": self.card_id,
            "version": self.version,
            "data": dict(self.data),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], now: Optional[str] = None) -> "CardVersion":
        version = data.get("version", 1)
        snapshot = data.get("data")
        return cls(
            id=str(data.get("id") or ""),
            card_id=str(data.get("cardId") or ""),
            version=version if isinstance(version, int) and version >= 1 else 1,
            data=dict(snapshot) if isinstance(snapshot, dict) else {},
            timestamp=data.get("timestamp") or now or utc_now(),
        )


@dataclass
class Lane:
    """A column. card_ids is the display order of its live cards."""
    id: str
    title: str
    order: int = 0
    card_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "order": self.order,
            "cardIds": list(self.card_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Lane":
        order = data.get("order", 0)
        card_ids = data.get("cardIds")
        return cls(
            id=str(data.get("id") or ""),
            title=str(data.get("title") or ""),
            order=order if isinstance(order, int) and not isinstance(order, bool) else 0,
            card_ids=[str(c) for c in card_ids] if isinstance(card_ids, list) else [],
        )


@dataclass
class Project:
    """A board. Lane display order comes from each lane's `order`, not list position."""
    id: str
    title: str
    lanes: List[Lane] = field(default_factory=list)
    thumbnail_url: Optional[str] = None
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    def lane(self, lane_id: str) -> Optional[Lane]:
        for lane in self.lanes:
            if lane.id == lane_id:
                return lane
        return None

    def ordered_lanes(self) -> List[Lane]:
        return sorted(self.lanes, key=lambda lane: lane.order)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "thumbnailUrl": self.thumbnail_url,
            "lanes": [lane.to_dict() for lane in self.lanes],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], now: Optional[str] = None) -> "Project":
        stamp = now or utc_now()
        lanes = data.get("lanes")
        return cls(
            id=str(data.get("id") or ""),
            title=str(data.get("title") or DEFAULT_PROJECT_TITLE),
            lanes=[Lane.from_dict(l) for l in lanes if isinstance(l, dict)] if isinstance(lanes, list) else [],
            thumbnail_url=data.get("thumbnailUrl") or None,
            created_at=data.get("createdAt") or stamp,
            updated_at=data.get("updatedAt") or stamp,
        )


@dataclass
class BoardState:
    """Everything the board editor holds in memory and persists as one blob."""
    projects: List[Project] = field(default_factory=list)
    active_project_id: Optional[str] = None
    cards: Dict[str, Card] = field(default_factory=dict)
    card_versions: Dict[str, List[CardVersion]] = field(default_factory=dict)
    is_loading: bool = False
    error: Optional[str] = None

    def project(self, project_id: Optional[str]) -> Optional[Project]:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    def active_project(self) -> Optional[Project]:
        return self.project(self.active_project_id)

    def find_lane(self, lane_id: str) -> Optional[tuple]:
        """Return (project, lane) owning lane_id, or None."""
        for project in self.projects:
            lane = project.lane(lane_id)
            if lane is not None:
                return project, lane
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "projects": [p.to_dict() for p in self.projects],
            "activeProjectId": self.active_project_id,
            "cards": {cid: card.to_dict() for cid, card in self.cards.items()},
            "cardVersions": {
                cid: [v.to_dict() for v in versions]
                for cid, versions in self.card_versions.items()
            },
            "isLoading": self.is_loading,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoardState":
        """Direct deserialization of the current shape. Use normalize() for untrusted blobs."""
        from .normalizer import normalize
        return normalize(data)


def default_lanes(id_factory: Callable[[], str] = make_id,
                  titles: Iterable[str] = DEFAULT_LANE_TITLES) -> List[Lane]:
    """Todo@0, Doing@1, Done@2 with fresh ids and no cards."""
    return [Lane(id=id_factory(), title=title, order=i) for i, title in enumerate(titles)]


def new_project(
    title: str,
    thumbnail_url: Optional[str] = None,
    id_factory: Callable[[], str] = make_id,
    now: Optional[str] = None,
    project_id: Optional[str] = None,
) -> Project:
    stamp = now or utc_now()
    return Project(
        id=project_id or id_factory(),
        title=title,
        lanes=default_lanes(id_factory),
        thumbnail_url=thumbnail_url,
        created_at=stamp,
        updated_at=stamp,
    )


def initial_state(
    title: str = DEFAULT_PROJECT_TITLE,
    id_factory: Callable[[], str] = make_id,
    now: Optional[str] = None,
    is_loading: bool = False,
) -> BoardState:
    """A fresh board: one project with the default lanes."""
    project = new_project(title, id_factory=id_factory, now=now)
    return BoardState(
        projects=[project],
        active_project_id=project.id,
        is_loading=is_loading,
    )
