"""Commands that change items: edit, move and empty-trash."""

from __future__ import annotations

import json
import re
import sys
import time
from datetime import date, datetime, timezone
from typing import IO, Any

from .account import Session, _failure
from .items import (
    EMPTY_NOTE,
    FIELD_ACTION_GROUP_IDS,
    FIELD_AREA_IDS,
    FIELD_DEADLINE,
    FIELD_DESTINATION,
    FIELD_HEADING_IDS,
    FIELD_MODIFICATION_DATE,
    FIELD_NOTE,
    FIELD_PROJECT_IDS,
    FIELD_SCHEDULED_DATE,
    FIELD_START_BUCKET,
    FIELD_TITLE,
    FIELD_TODAY_INDEX_REF,
    FIELD_TRASHED,
    FIELD_TYPE,
    CommandError,
    CommitItem,
    EntityType,
    Item,
    ItemType,
    TaskDestination,
    TaskType,
    new_note,
    to_bool,
    to_int,
    to_str,
)
from .output import dump_json

_DATE_SHAPE = re.compile(r"\d{4}-\d{2}-\d{2}")
_TRUE_WORDS = ("true", "1", "yes")
_FALSE_WORDS = ("false", "0", "no")


def _quote(value: str) -> str:
    return json.dumps(value)


def _parse_date(value: str, flag: str) -> int:
    """Midnight UTC of a YYYY-MM-DD date, as Unix seconds."""
    try:
        if not _DATE_SHAPE.fullmatch(value):
            raise ValueError("expected YYYY-MM-DD")
        day = date.fromisoformat(value)
    except ValueError as exc:
        raise CommandError(f"parse --{flag} date {_quote(value)}: {exc}") from exc
    return int(datetime(day.year, day.month, day.day, tzinfo=timezone.utc).timestamp())


def _today_midnight_utc() -> int:
    today = datetime.now()
    return int(datetime(today.year, today.month, today.day, tzinfo=timezone.utc).timestamp())


def _load_task(session: Session, ref: str) -> Item:
    item = session.state.resolve_uuid(ref)
    if item.entity != EntityType.TASK.value:
        raise CommandError(f"{ref} is a {item.entity}, not a task")
    return item


def _commit_modify(session: Session, item: Item, payload: dict[str, Any], ancestor: int) -> int:
    commit = {item.uuid: CommitItem(ItemType.MODIFY, EntityType.TASK, payload)}
    with _failure("commit"):
        response = session.client.commit(session.history_key, ancestor, commit)
    return response.server_head_index


def _report_edit(
    item: Item, changes: list[str], server_index: int, as_json: bool, out: IO[str], joined: bool
) -> None:
    raw_title = to_str(item.fields.get(FIELD_TITLE))
    if as_json:
        dump_json(
            {"uuid": item.uuid, "title": raw_title, "changes": changes, "server_index": server_index},
            out,
        )
        return
    title = raw_title or "(untitled)"
    if joined:
        print(f"  {title}: {', '.join(changes)}", file=out)
    else:
        for change in changes:
            print(f"  {title}: {change}", file=out)
    print(f"Server index: {server_index}", file=out)


def run_edit(
    session: Session,
    uuid: str,
    title: str | None = None,
    note: str | None = None,
    scheduled: str | None = None,
    deadline: str | None = None,
    evening: str | None = None,
    as_json: bool = False,
    stream: IO[str] | None = None,
) -> list[str]:
    """Change a task's properties; ``None`` leaves a property as it is, "" clears it."""
    out = stream if stream is not None else sys.stdout
    item = _load_task(session, uuid)
    with _failure("fetch history info"):
        history = session.client.get_history(session.history_key)

    payload: dict[str, Any] = {FIELD_MODIFICATION_DATE: time.time()}
    changes: list[str] = []

    if title is not None:
        payload[FIELD_TITLE] = title
        changes.append(f"title -> {_quote(title)}")

    if note is not None:
        if note:
            payload[FIELD_NOTE] = new_note(note)
            changes.append("updated note")
        else:
            payload[FIELD_NOTE] = dict(EMPTY_NOTE)
            changes.append("cleared note")

    if scheduled is not None:
        if scheduled:
            stamp = _parse_date(scheduled, "scheduled")
            payload[FIELD_SCHEDULED_DATE] = stamp
            payload[FIELD_TODAY_INDEX_REF] = stamp
            changes.append(f"scheduled -> {scheduled}")
        else:
            payload[FIELD_SCHEDULED_DATE] = None
            payload[FIELD_TODAY_INDEX_REF] = None
            changes.append("cleared scheduled date")

    if deadline is not None:
        if deadline:
            payload[FIELD_DEADLINE] = _parse_date(deadline, "deadline")
            changes.append(f"deadline -> {deadline}")
        else:
            payload[FIELD_DEADLINE] = None
            changes.append("cleared deadline")

    if evening is not None:
        if evening in _TRUE_WORDS:
            payload[FIELD_START_BUCKET] = 1
            changes.append("evening -> on")
        elif evening in _FALSE_WORDS:
            payload[FIELD_START_BUCKET] = 0
            changes.append("evening -> off")
        else:
            raise CommandError("--evening must be true or false")

    if not changes:
        raise CommandError(
            "no changes specified (use --title, --note, --scheduled, --deadline, or --evening)"
        )

    server_index = _commit_modify(session, item, payload, history.latest_server_index)
    _report_edit(item, changes, server_index, as_json, out, joined=False)
    return changes


def _resolve(session: Session, ref: str, what: str) -> Item:
    try:
        return session.state.resolve_uuid(ref)
    except CommandError as exc:
        raise CommandError(f"resolve {what}: {exc}") from exc


def run_move(
    session: Session,
    uuid: str,
    area: str | None = None,
    project: str | None = None,
    destination: str = "",
    heading: str | None = None,
    as_json: bool = False,
    stream: IO[str] | None = None,
) -> list[str]:
    """Move a task to another area, project, heading or destination."""
    out = stream if stream is not None else sys.stdout
    item = _load_task(session, uuid)
    with _failure("fetch history info"):
        history = session.client.get_history(session.history_key)

    payload: dict[str, Any] = {FIELD_MODIFICATION_DATE: time.time()}
    changes: list[str] = []

    if area is not None:
        if area:
            target = _resolve(session, area, "area")
            if target.entity != EntityType.AREA.value:
                raise CommandError(f"{area} is not an area")
            payload[FIELD_AREA_IDS] = [target.uuid]
            changes.append(f"area -> {to_str(target.fields.get(FIELD_TITLE))}")
        else:
            payload[FIELD_AREA_IDS] = []
            changes.append("cleared area")

    if project is not None:
        if project:
            target = _resolve(session, project, "project")
            if to_int(target.fields.get(FIELD_TYPE)) != TaskType.PROJECT:
                raise CommandError(f"{project} is not a project")
            payload[FIELD_PROJECT_IDS] = [target.uuid]
            changes.append(f"project -> {to_str(target.fields.get(FIELD_TITLE))}")
        else:
            payload[FIELD_PROJECT_IDS] = []
            payload[FIELD_ACTION_GROUP_IDS] = []
            payload[FIELD_HEADING_IDS] = []
            changes.append("cleared project")

    if heading is not None:
        if heading:
            target = _resolve(session, heading, "heading")
            if to_int(target.fields.get(FIELD_TYPE)) != TaskType.HEADING:
                raise CommandError(f"{heading} is not a heading")
            payload[FIELD_HEADING_IDS] = [target.uuid]
            payload[FIELD_ACTION_GROUP_IDS] = [target.uuid]
            changes.append(f"heading -> {to_str(target.fields.get(FIELD_TITLE))}")
        else:
            payload[FIELD_HEADING_IDS] = []
            payload[FIELD_ACTION_GROUP_IDS] = []
            changes.append("cleared heading")

    if destination:
        where = destination.lower()
        if where == "inbox":
            payload[FIELD_DESTINATION] = int(TaskDestination.INBOX)
            payload[FIELD_SCHEDULED_DATE] = None
            payload[FIELD_TODAY_INDEX_REF] = None
            changes.append("destination -> inbox")
        elif where in ("today", "anytime", "evening"):
            midnight = _today_midnight_utc()
            payload[FIELD_DESTINATION] = int(TaskDestination.ANYTIME)
            payload[FIELD_SCHEDULED_DATE] = midnight
            payload[FIELD_TODAY_INDEX_REF] = midnight
            payload[FIELD_START_BUCKET] = 1 if where == "evening" else 0
            changes.append("destination -> evening" if where == "evening" else "destination -> today")
        elif where == "someday":
            payload[FIELD_DESTINATION] = int(TaskDestination.SOMEDAY)
            payload[FIELD_SCHEDULED_DATE] = None
            payload[FIELD_TODAY_INDEX_REF] = None
            changes.append("destination -> someday")
        else:
            raise CommandError(
                f"unknown destination {_quote(destination)}: must be inbox, today, evening, or someday"
            )

    if not changes:
        raise CommandError("no changes specified (use --area, --project, or --destination)")

    server_index = _commit_modify(session, item, payload, history.latest_server_index)
    _report_edit(item, changes, server_index, as_json, out, joined=True)
    return changes


def _entity_of(item: Item) -> EntityType | str:
    try:
        return EntityType(item.entity)
    except ValueError:
        return item.entity


def run_empty_trash(
    session: Session,
    confirm: bool = False,
    as_json: bool = False,
    stream: IO[str] | None = None,
) -> int:
    """Permanently delete every trashed item; returns how many were deleted."""
    out = stream if stream is not None else sys.stdout
    trashed = [item for item in session.state.items if to_bool(item.fields.get(FIELD_TRASHED))]
    if not trashed:
        print("Trash is empty.", file=out)
        return 0
    if not confirm:
        raise CommandError(
            f"this will permanently delete {len(trashed)} item(s); use --yes to confirm"
        )

    with _failure("fetch history info"):
        history = session.client.get_history(session.history_key)
    commit = {item.uuid: CommitItem(ItemType.DELETE, _entity_of(item)) for item in trashed}
    with _failure("commit"):
        response = session.client.commit(session.history_key, history.latest_server_index, commit)

    if as_json:
        dump_json(
            {
                "items": [
                    {"uuid": "", "title": f"{len(trashed)} items", "action": "emptied trash"}
                ],
                "server_index": response.server_head_index,
            },
            out,
        )
    else:
        print(f"Permanently deleted {len(trashed)} item(s).", file=out)
        print(f"Server index: {response.server_head_index}", file=out)
    return len(trashed)