"""Listing of tasks, projects and the logbook."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import IO

from .items import (
    FIELD_ACTION_GROUP_IDS,
    FIELD_AREA_IDS,
    FIELD_DESTINATION,
    FIELD_PROJECT_IDS,
    FIELD_START_BUCKET,
    FIELD_STATUS,
    FIELD_STOP_DATE,
    FIELD_TAG_IDS,
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
    has_string,
    is_today,
    sort_by_index,
    sort_by_today_index,
    to_bool,
    to_float,
    to_int,
    to_str,
)
from .output import State, dump_json


@dataclass(frozen=True)
class _ListFilter:
    destination: TaskDestination | None = None
    completed: bool = False
    trashed: bool = False
    today: bool = False
    evening: bool = False


_LIST_FILTERS = {
    "inbox": _ListFilter(destination=TaskDestination.INBOX),
    "today": _ListFilter(destination=TaskDestination.ANYTIME, today=True),
    "anytime": _ListFilter(destination=TaskDestination.ANYTIME),
    "evening": _ListFilter(destination=TaskDestination.ANYTIME, today=True, evening=True),
    "someday": _ListFilter(destination=TaskDestination.SOMEDAY),
    "completed": _ListFilter(completed=True),
    "trash": _ListFilter(trashed=True),
    "all": _ListFilter(),
}

# filter name -> (show open, show completed, show trashed)
_PROJECT_FILTERS = {
    "open": (True, False, False),
    "completed": (False, True, False),
    "trash": (False, False, True),
    "all": (True, True, False),
}


def _quote(value: str) -> str:
    return json.dumps(value)


def _title(item: Item) -> str:
    return to_str(item.fields.get(FIELD_TITLE)) or "(untitled)"


def _is_of_type(item: Item, task_type: TaskType) -> bool:
    return item.entity == EntityType.TASK.value and to_int(item.fields.get(FIELD_TYPE)) == task_type


def _resolve(state: State, ref: str, what: str) -> str:
    if not ref:
        return ""
    try:
        return state.resolve_uuid(ref).uuid
    except CommandError as exc:
        raise CommandError(f"resolve {what}: {exc}") from exc


def _task_area(state: State, task: Item) -> str:
    """The task's area, inherited from its project when it has none."""
    area = first_string(task.fields.get(FIELD_AREA_IDS))
    if not area:
        project_id = first_string(task.fields.get(FIELD_PROJECT_IDS))
        project = state.projects.get(project_id) if project_id else None
        if project is not None:
            area = first_string(project.fields.get(FIELD_AREA_IDS))
    return area


def _list_match(
    state: State,
    task: Item,
    spec: _ListFilter,
    project_uuid: str,
    area_uuid: str,
    tag_uuid: str,
    now: datetime,
) -> bool:
    if not _is_of_type(task, TaskType.TASK):
        return False
    f = task.fields
    trashed = to_bool(f.get(FIELD_TRASHED)) or state.is_orphaned_by_trashed_parent(task)
    if trashed != spec.trashed:
        return False
    status = to_int(f.get(FIELD_STATUS))
    if spec.completed:
        if status != TaskStatus.COMPLETED:
            return False
    elif not spec.trashed and status != TaskStatus.OPEN:
        return False
    if spec.destination is not None and to_int(f.get(FIELD_DESTINATION)) != spec.destination:
        return False
    if spec.today and not is_today(f, now):
        return False
    if spec.evening and to_int(f.get(FIELD_START_BUCKET)) != 1:
        return False
    if project_uuid and first_string(f.get(FIELD_PROJECT_IDS)) != project_uuid:
        return False
    if area_uuid and _task_area(state, task) != area_uuid:
        return False
    if tag_uuid and not has_string(f.get(FIELD_TAG_IDS), tag_uuid):
        return False
    return True


def _task_line(task: Item) -> str:
    return f"  {_title(task)}  [{task.uuid}]"


def _print_grouped(state: State, project_uuid: str, tasks: list[Item], out: IO[str]) -> None:
    headings = state.headings_for_project(project_uuid)
    heading_titles = {h.uuid: to_str(h.fields.get(FIELD_TITLE)) for h in headings}
    order = [""] + [h.uuid for h in headings]

    grouped: dict[str, list[Item]] = {}
    for task in tasks:
        heading_id = first_string(task.fields.get(FIELD_ACTION_GROUP_IDS))
        if heading_id not in heading_titles:
            heading_id = ""
        grouped.setdefault(heading_id, []).append(task)

    first = True
    for heading_id in order:
        group = grouped.get(heading_id)
        if not group:
            continue
        if heading_id:
            if not first:
                print(file=out)
            print(f"  --- {heading_titles[heading_id]} ---", file=out)
        for task in group:
            print(_task_line(task), file=out)
        first = False


def run_list(
    state: State,
    filter_name: str = "inbox",
    project: str = "",
    area: str = "",
    tag: str = "",
    as_json: bool = False,
    now: datetime | None = None,
    stream: IO[str] | None = None,
) -> None:
    """List tasks matching a view filter and optional project, area and tag."""
    out = stream if stream is not None else sys.stdout
    spec = _LIST_FILTERS.get(filter_name.lower())
    if spec is None:
        raise CommandError(
            f"unknown filter {_quote(filter_name)}: must be inbox, today, evening, someday, completed, trash, or all"
        )
    project_uuid = _resolve(state, project, "project")
    area_uuid = _resolve(state, area, "area")
    tag_uuid = _resolve(state, tag, "tag")
    now = now if now is not None else datetime.now()

    selected = [
        task
        for task in state.items
        if _list_match(state, task, spec, project_uuid, area_uuid, tag_uuid, now)
    ]
    selected = sort_by_today_index(selected) if spec.today else sort_by_index(selected)

    if as_json:
        dump_json([state.item_to_output(task) for task in selected], out)
        return

    if project_uuid:
        _print_grouped(state, project_uuid, selected, out)
    else:
        for task in selected:
            print(_task_line(task), file=out)

    if selected:
        print(f"\n{len(selected)} task(s)", file=out)
    else:
        print("  (no tasks)", file=out)


def run_projects(
    state: State,
    filter_name: str = "open",
    area: str = "",
    as_json: bool = False,
    stream: IO[str] | None = None,
) -> None:
    """List projects with their progress and area."""
    out = stream if stream is not None else sys.stdout
    flags = _PROJECT_FILTERS.get(filter_name.lower())
    if flags is None:
        raise CommandError(
            f"unknown filter {_quote(filter_name)}: must be open, completed, trash, or all"
        )
    show_open, show_completed, show_trashed = flags
    area_uuid = _resolve(state, area, "area")

    selected: list[Item] = []
    for item in state.items:
        if not _is_of_type(item, TaskType.PROJECT):
            continue
        if to_bool(item.fields.get(FIELD_TRASHED)) != show_trashed:
            continue
        if not show_trashed:
            status = to_int(item.fields.get(FIELD_STATUS))
            if show_open and not show_completed and status != TaskStatus.OPEN:
                continue
            if show_completed and not show_open and status != TaskStatus.COMPLETED:
                continue
        if area_uuid and first_string(item.fields.get(FIELD_AREA_IDS)) != area_uuid:
            continue
        selected.append(item)

    if as_json:
        dump_json([state.item_to_output(item) for item in selected], out)
        return

    for item in selected:
        area_label = ""
        item_area = first_string(item.fields.get(FIELD_AREA_IDS))
        if item_area and (area_title := state.area_title(item_area)):
            area_label = f"  [{area_title}]"
        total, completed = state.project_progress(item.uuid)
        progress = f"  ({completed}/{total})" if total > 0 else ""
        print(f"  {_title(item)}{progress}{area_label}", file=out)

    if selected:
        print(f"\n{len(selected)} project(s)", file=out)
    else:
        print("  (no projects)", file=out)


def run_logbook(
    state: State,
    limit: int = 20,
    as_json: bool = False,
    stream: IO[str] | None = None,
) -> None:
    """Show completed tasks, most recently completed first."""
    out = stream if stream is not None else sys.stdout
    done = [
        item
        for item in state.items
        if _is_of_type(item, TaskType.TASK)
        and to_int(item.fields.get(FIELD_STATUS)) == TaskStatus.COMPLETED
        and not to_bool(item.fields.get(FIELD_TRASHED))
    ]
    done.sort(key=lambda item: to_float(item.fields.get(FIELD_STOP_DATE)), reverse=True)
    if limit > 0:
        done = done[:limit]

    if as_json:
        dump_json([state.item_to_output(item) for item in done], out)
        return

    for item in done:
        stopped = to_float(item.fields.get(FIELD_STOP_DATE))
        date = datetime.fromtimestamp(int(stopped)).strftime("%Y-%m-%d") if stopped > 0 else ""
        print(f"  {date}  {_title(item)}  [{item.uuid}]", file=out)

    if done:
        print(f"\n{len(done)} task(s)", file=out)
    else:
        print("  (no completed tasks)", file=out)