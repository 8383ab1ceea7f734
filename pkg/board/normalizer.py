# Board state normalizer
#
# Every load path funnels persisted blobs through normalize() before the
# engine sees them. Two shapes are accepted:
#
#   current: { projects: [...], activeProjectId, cards, cardVersions, ... }
#   legacy:  { project: { id, name, lanes, ... }, cards, cardVersions, ... }
#
# normalize() never raises. Whatever cannot be reconciled is defaulted or
# dropped, and the result is stable: normalize(normalize(x)) == normalize(x).

import logging
from typing import Any, Callable, Dict, List, Optional

from .schema import (
    BoardState,
    Card,
    CardVersion,
    DEFAULT_PROJECT_TITLE,
    Project,
    default_lanes,
    make_id,
    utc_now,
)

logger = logging.getLogger(__name__)


def normalize(
    raw: Any,
    id_factory: Optional[Callable[[], str]] = None,
    now: Optional[str] = None,
) -> BoardState:
    """Upgrade a persisted blob of any known shape into a BoardState."""
    id_factory = id_factory or make_id
    stamp = now or utc_now()

    if isinstance(raw, BoardState):
        raw = raw.to_dict()
    if not isinstance(raw, dict):
        return BoardState()

    if "projects" in raw:
        projects = _projects_from(raw.get("projects"), id_factory, stamp)
        ids = {p.id for p in projects}
        active = raw.get("activeProjectId")
        if active not in ids:
            active = projects[0].id if projects else None
    elif isinstance(raw.get("project"), dict):
        logger.debug("Upgrading legacy single-project board")
        project = _legacy_project(raw["project"], id_factory, stamp)
        projects = [project]
        active = project.id
    else:
        projects = []
        active = None

    fallback_project = active or ""
    cards = _cards_from(raw.get("cards"), fallback_project, stamp)
    versions = _versions_from(raw.get("cardVersions"), fallback_project, stamp)
    _reconcile_lanes(projects, cards)

    error = raw.get("error")
    return BoardState(
        projects=projects,
        active_project_id=active,
        cards=cards,
        card_versions=versions,
        is_loading=bool(raw.get("isLoading", False)),
        error=error if isinstance(error, str) else None,
    )


def _projects_from(values: Any, id_factory: Callable[[], str], stamp: str) -> List[Project]:
    if not isinstance(values, list):
        return []
    projects = []
    seen = set()
    for value in values:
        if not isinstance(value, dict):
            continue
        project = _project_from(value, id_factory, stamp)
        if project.id in seen:
            continue
        seen.add(project.id)
        projects.append(project)
    return projects


def _project_from(data: Dict[str, Any], id_factory: Callable[[], str], stamp: str) -> Project:
    project = Project.from_dict(data, now=stamp)
    if not project.id:
        project.id = id_factory()
    for lane in project.lanes:
        if not lane.id:
            lane.id = id_factory()
    if not project.lanes:
        project.lanes = default_lanes(id_factory)
    return project


def _legacy_project(data: Dict[str, Any], id_factory: Callable[[], str], stamp: str) -> Project:
    upgraded = dict(data)
    if not upgraded.get("title"):
        upgraded["title"] = upgraded.get("name") or DEFAULT_PROJECT_TITLE
    upgraded.pop("name", None)
    upgraded.setdefault("thumbnailUrl", None)
    return _project_from(upgraded, id_factory, stamp)


def _cards_from(values: Any, project_id: str, stamp: str) -> Dict[str, Card]:
    if not isinstance(values, dict):
        return {}
    cards = {}
    for card_id, data in values.items():
        if not isinstance(data, dict):
            continue
        card = Card.from_dict(data, now=stamp)
        card.id = str(card_id)
        if not card.project_id:
            card.project_id = project_id
        cards[card.id] = card
    return cards


def _versions_from(values: Any, project_id: str, stamp: str) -> Dict[str, List[CardVersion]]:
    if not isinstance(values, dict):
        return {}
    out = {}
    for card_id, history in values.items():
        if not isinstance(history, list):
            continue
        versions = []
        for data in history:
            if not isinstance(data, dict):
                continue
            version = CardVersion.from_dict(data, now=stamp)
            version.card_id = str(card_id)
            if not version.data.get("projectId"):
                version.data["projectId"] = project_id
            versions.append(version)
        out[str(card_id)] = versions
    return out


def _reconcile_lanes(projects: List[Project], cards: Dict[str, Card]) -> None:
    """
    Make lane membership agree with the cards.

    A lane keeps an id only if the card exists, is live, belongs to the
    project and names this lane. Cards whose lane is gone are re-pointed at
    the first lane; live cards no lane lists are appended to their lane.
    """
    for project in projects:
        listed = set()
        for lane in project.lanes:
            kept = []
            for card_id in lane.card_ids:
                card = cards.get(card_id)
                if (card is None or card.is_deleted or card.project_id != project.id
                        or card.lane_id != lane.id or card_id in listed):
                    continue
                listed.add(card_id)
                kept.append(card_id)
            lane.card_ids = kept

        first = project.ordered_lanes()[0]
        for card in cards.values():
            if card.project_id != project.id:
                continue
            lane = project.lane(card.lane_id)
            if lane is None:
                card.lane_id = first.id
                lane = first
            if card.is_deleted or card.id in listed:
                continue
            lane.card_ids.append(card.id)
            listed.add(card.id)
