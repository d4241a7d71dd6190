"""Export of replayed items as JSON or CSV."""

from __future__ import annotations

import csv
import json
import sys
from typing import IO, Iterable

from .items import (
    FIELD_STATUS,
    FIELD_TRASHED,
    FIELD_TYPE,
    CommandError,
    EntityType,
    Item,
    TaskStatus,
    TaskType,
    to_bool,
    to_int,
)
from .output import ItemOutput, State, dump_json

EXPORT_FORMATS = ("json", "csv")
EXPORT_TYPES = ("tasks", "projects", "areas", "tags", "checklist", "all")
EXPORT_FILTERS = ("open", "completed", "trash", "all")

CSV_HEADER = [
    "uuid", "entity", "type", "title", "status", "destination",
    "area", "project", "created", "modified", "scheduled", "deadline",
    "notes", "tags", "evening", "trashed",
]


def _quote(value: str) -> str:
    return json.dumps(value)


def matches_export_type(item: Item, export_type: str) -> bool:
    """Whether the item is of the requested export type."""
    is_task_entity = item.entity == EntityType.TASK.value
    task_type = to_int(item.fields.get(FIELD_TYPE))
    if export_type == "tasks":
        return is_task_entity and task_type == TaskType.TASK
    if export_type == "projects":
        return is_task_entity and task_type == TaskType.PROJECT
    if export_type == "areas":
        return item.entity == EntityType.AREA.value
    if export_type == "tags":
        return item.entity == EntityType.TAG.value
    if export_type == "checklist":
        return item.entity == EntityType.CHECKLIST_ITEM.value
    return export_type == "all"


def matches_export_filter(item: Item, filter_name: str) -> bool:
    """Whether the item passes the requested status filter; tags always pass."""
    if filter_name == "all":
        return True
    if item.entity == EntityType.TAG.value:
        return True
    trashed = to_bool(item.fields.get(FIELD_TRASHED))
    status = to_int(item.fields.get(FIELD_STATUS))
    if filter_name == "open":
        return not trashed and status == TaskStatus.OPEN
    if filter_name == "completed":
        return not trashed and status == TaskStatus.COMPLETED
    if filter_name == "trash":
        return trashed
    return False


def write_json(stream: IO[str], items: Iterable[ItemOutput]) -> None:
    """Write items as an indented JSON array."""
    dump_json([item.to_dict() for item in items], stream)


def _flag(value: bool | None) -> str:
    if value is None:
        return ""
    return "true" if value else "false"


def write_csv(stream: IO[str], items: Iterable[ItemOutput]) -> None:
    """Write items as CSV with a header row."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    writer.writerows(
        [
            item.uuid,
            item.entity,
            item.type,
            item.title,
            item.status,
            item.destination,
            item.area,
            item.project,
            item.created,
            item.modified,
            item.scheduled,
            item.deadline,
            item.notes,
            ";".join(item.tags),
            _flag(item.evening),
            _flag(item.trashed),
        ]
        for item in items
    )


def run_export(
    state: State,
    fmt: str = "json",
    export_type: str = "tasks",
    filter_name: str = "open",
    output: str = "",
    stream: IO[str] | None = None,
) -> None:
    """Export matching items to ``output`` (a path) or to ``stream``."""
    format_name = fmt.lower()
    if format_name not in EXPORT_FORMATS:
        raise CommandError(f"unknown format {_quote(fmt)}: must be json or csv")
    kind = export_type.lower()
    if kind not in EXPORT_TYPES:
        raise CommandError(
            f"unknown type {_quote(export_type)}: must be tasks, projects, areas, tags, checklist, or all"
        )
    filt = filter_name.lower()
    if filt not in EXPORT_FILTERS:
        raise CommandError(
            f"unknown filter {_quote(filter_name)}: must be open, completed, trash, or all"
        )

    outputs = [
        state.item_to_output(item)
        for item in state.items
        if matches_export_type(item, kind) and matches_export_filter(item, filt)
    ]
    writer = write_json if format_name == "json" else write_csv

    if output:
        try:
            handle = open(output, "w", encoding="utf-8", newline="")
        except OSError as exc:
            raise CommandError(f"create output file: {exc}") from exc
        with handle:
            writer(handle, outputs)
    else:
        writer(stream if stream is not None else sys.stdout, outputs)