"""Derived state over replayed items and their JSON-ready representation."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import IO, Any, Iterable

from .items import (
    FIELD_ACTION_GROUP_IDS,
    FIELD_AREA_IDS,
    FIELD_CREATION_DATE,
    FIELD_DEADLINE,
    FIELD_DESTINATION,
    FIELD_MODIFICATION_DATE,
    FIELD_NOTE,
    FIELD_PROJECT_IDS,
    FIELD_SCHEDULED_DATE,
    FIELD_START_BUCKET,
    FIELD_STATUS,
    FIELD_STOP_DATE,
    FIELD_TAG_IDS,
    FIELD_TASK_IDS,
    FIELD_TITLE,
    FIELD_TRASHED,
    FIELD_TYPE,
    CommandError,
    EntityType,
    Item,
    TaskDestination,
    TaskStatus,
    TaskType,
    first_string,
    note_text,
    sort_by_index,
    string_list,
    to_bool,
    to_float,
    to_int,
    to_str,
)

_TYPE_NAMES = {TaskType.TASK: "task", TaskType.PROJECT: "project", TaskType.HEADING: "heading"}
_STATUS_NAMES = {
    TaskStatus.OPEN: "open",
    TaskStatus.CANCELLED: "cancelled",
    TaskStatus.COMPLETED: "completed",
}
_CHECKLIST_STATUS_NAMES = {TaskStatus.OPEN: "open", TaskStatus.COMPLETED: "completed"}
_DESTINATION_NAMES = {
    TaskDestination.INBOX: "inbox",
    TaskDestination.ANYTIME: "today",
    TaskDestination.SOMEDAY: "someday",
}


@dataclass
class ItemOutput:
    """The exported view of a task, project, heading, area, tag or checklist item."""

    uuid: str
    entity: str
    title: str = ""
    type: str = ""
    status: str = ""
    destination: str = ""
    trashed: bool | None = None
    area_uuid: str = ""
    area: str = ""
    project_uuid: str = ""
    project: str = ""
    created: str = ""
    modified: str = ""
    scheduled: str = ""
    deadline: str = ""
    completed_at: str = ""
    notes: str = ""
    tags: list[str] = field(default_factory=list)
    evening: bool | None = None
    tasks_total: int | None = None
    tasks_completed: int | None = None
    heading_uuid: str = ""
    heading: str = ""
    task_uuid: str = ""
    checklist: list[ItemOutput] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """A JSON-ready dict, leaving out empty and unset fields."""
        out: dict[str, Any] = {"uuid": self.uuid, "entity": self.entity}
        for f in fields(self):
            if f.name in out:
                continue
            value = getattr(self, f.name)
            if value is None or (isinstance(value, (str, list)) and not value):
                continue
            if f.name == "checklist":
                value = [entry.to_dict() for entry in value]
            elif f.name == "tags":
                value = list(value)
            out[f.name] = value
        return out


def _timestamp(seconds: float) -> str:
    return datetime.fromtimestamp(int(seconds), timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _date(seconds: float) -> str:
    return datetime.fromtimestamp(int(seconds), timezone.utc).strftime("%Y-%m-%d")


def _is_type(item: Item, task_type: TaskType) -> bool:
    return item.entity == EntityType.TASK.value and to_int(item.fields.get(FIELD_TYPE)) == task_type


@dataclass
class State:
    """Replayed items with lookups by UUID and by kind."""

    items: list[Item]
    by_uuid: dict[str, Item]
    projects: dict[str, Item]
    areas: dict[str, Item]
    tags: dict[str, Item]

    def resolve_uuid(self, ref: str) -> Item:
        """Find an item by full UUID or by a unique UUID prefix."""
        if not ref:
            raise CommandError("empty UUID")
        item = self.by_uuid.get(ref)
        if item is not None:
            return item
        matches = {i.uuid: i for i in self.items if i.uuid.startswith(ref)}
        if not matches:
            raise CommandError(f"no item found matching {ref!r}")
        if len(matches) > 1:
            raise CommandError(f"{ref!r} is ambiguous: matches {len(matches)} items")
        return next(iter(matches.values()))

    def area_title(self, uuid: str) -> str:
        area = self.areas.get(uuid)
        return to_str(area.fields.get(FIELD_TITLE)) if area else ""

    def project_title(self, uuid: str) -> str:
        project = self.projects.get(uuid)
        return to_str(project.fields.get(FIELD_TITLE)) if project else ""

    def headings_for_project(self, project_uuid: str) -> list[Item]:
        """Untrashed headings of a project, in index order."""
        headings = (
            item
            for item in self.items
            if _is_type(item, TaskType.HEADING)
            and first_string(item.fields.get(FIELD_PROJECT_IDS)) == project_uuid
            and not to_bool(item.fields.get(FIELD_TRASHED))
        )
        return sort_by_index(headings)

    def project_progress(self, project_uuid: str) -> tuple[int, int]:
        """(total, completed) counts of the untrashed tasks in a project."""
        total = completed = 0
        for item in self.items:
            if not _is_type(item, TaskType.TASK):
                continue
            if first_string(item.fields.get(FIELD_PROJECT_IDS)) != project_uuid:
                continue
            if to_bool(item.fields.get(FIELD_TRASHED)):
                continue
            total += 1
            if to_int(item.fields.get(FIELD_STATUS)) == TaskStatus.COMPLETED:
                completed += 1
        return total, completed

    def is_orphaned_by_trashed_parent(self, item: Item) -> bool:
        """Whether the item's project or heading, or that heading's project, is trashed."""
        parents = [
            first_string(item.fields.get(FIELD_PROJECT_IDS)),
            first_string(item.fields.get(FIELD_ACTION_GROUP_IDS)),
        ]
        seen: set[str] = set()
        while parents:
            parent_id = parents.pop()
            if not parent_id or parent_id in seen:
                continue
            seen.add(parent_id)
            parent = self.by_uuid.get(parent_id)
            if parent is None:
                continue
            if to_bool(parent.fields.get(FIELD_TRASHED)):
                return True
            if _is_type(parent, TaskType.HEADING):
                parents.append(first_string(parent.fields.get(FIELD_PROJECT_IDS)))
        return False

    def item_to_output(self, item: Item) -> ItemOutput:
        f = item.fields
        out = ItemOutput(uuid=item.uuid, entity=item.entity, title=to_str(f.get(FIELD_TITLE)))

        if item.entity == EntityType.TASK.value:
            out.type = _TYPE_NAMES.get(to_int(f.get(FIELD_TYPE)), "")
            out.status = _STATUS_NAMES.get(to_int(f.get(FIELD_STATUS)), "")
            out.destination = _DESTINATION_NAMES.get(to_int(f.get(FIELD_DESTINATION)), "")
            out.trashed = to_bool(f.get(FIELD_TRASHED))

            area_uuid = first_string(f.get(FIELD_AREA_IDS))
            project_uuid = first_string(f.get(FIELD_PROJECT_IDS))
            if project_uuid:
                out.project_uuid = project_uuid
                out.project = self.project_title(project_uuid)
                if not area_uuid and project_uuid in self.projects:
                    area_uuid = first_string(self.projects[project_uuid].fields.get(FIELD_AREA_IDS))
            if area_uuid:
                out.area_uuid = area_uuid
                out.area = self.area_title(area_uuid)

            heading_uuid = first_string(f.get(FIELD_ACTION_GROUP_IDS))
            heading = self.by_uuid.get(heading_uuid) if heading_uuid else None
            if heading is not None and to_int(heading.fields.get(FIELD_TYPE)) == TaskType.HEADING:
                out.heading_uuid = heading_uuid
                out.heading = to_str(heading.fields.get(FIELD_TITLE))

            if (created := to_float(f.get(FIELD_CREATION_DATE))) > 0:
                out.created = _timestamp(created)
            if (modified := to_float(f.get(FIELD_MODIFICATION_DATE))) > 0:
                out.modified = _timestamp(modified)
            if (scheduled := to_float(f.get(FIELD_SCHEDULED_DATE))) > 0:
                out.scheduled = _date(scheduled)
            if (deadline := to_float(f.get(FIELD_DEADLINE))) > 0:
                out.deadline = _date(deadline)
            if (stopped := to_float(f.get(FIELD_STOP_DATE))) > 0:
                out.completed_at = _timestamp(stopped)
            out.notes = note_text(f.get(FIELD_NOTE))
            out.tags = string_list(f.get(FIELD_TAG_IDS))
            out.evening = to_int(f.get(FIELD_START_BUCKET)) == 1
        elif item.entity == EntityType.AREA.value:
            out.type = "area"
            out.trashed = to_bool(f.get(FIELD_TRASHED))
        elif item.entity == EntityType.TAG.value:
            out.type = "tag"
        elif item.entity == EntityType.CHECKLIST_ITEM.value:
            out.type = "checklist_item"
            out.status = _CHECKLIST_STATUS_NAMES.get(to_int(f.get(FIELD_STATUS)), "")
            out.task_uuid = first_string(f.get(FIELD_TASK_IDS))

        return out


def build_state(items: Iterable[Item]) -> State:
    """Index replayed items by UUID, projects, areas and tags."""
    items = list(items)
    return State(
        items=items,
        by_uuid={item.uuid: item for item in items},
        projects={item.uuid: item for item in items if _is_type(item, TaskType.PROJECT)},
        areas={item.uuid: item for item in items if item.entity == EntityType.AREA.value},
        tags={item.uuid: item for item in items if item.entity == EntityType.TAG.value},
    )


def _encode(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"cannot encode {type(value).__name__} as JSON")


def dump_json(value: Any, stream: IO[str]) -> None:
    """Write ``value`` to ``stream`` as indented JSON followed by a newline."""
    json.dump(value, stream, indent=2, ensure_ascii=False, default=_encode)
    stream.write("\n")