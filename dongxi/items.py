"""Item model, history replay and tolerant conversions of loosely typed field values."""

from __future__ import annotations

import math
import zlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Iterable, Mapping

COMMIT_KEY_TYPE = "t"
COMMIT_KEY_ENTITY = "e"
COMMIT_KEY_PAYLOAD = "p"

FIELD_TITLE = "tt"
FIELD_TYPE = "tp"
FIELD_STATUS = "ss"
FIELD_DESTINATION = "st"
FIELD_TRASHED = "tr"
FIELD_AREA_IDS = "ar"
FIELD_PROJECT_IDS = "pr"
FIELD_ACTION_GROUP_IDS = "agr"
FIELD_HEADING_IDS = "hd"
FIELD_TAG_IDS = "tg"
FIELD_TASK_IDS = "ts"
FIELD_CREATION_DATE = "cd"
FIELD_MODIFICATION_DATE = "md"
FIELD_SCHEDULED_DATE = "sr"
FIELD_TODAY_INDEX_REF = "tir"
FIELD_DEADLINE = "dd"
FIELD_STOP_DATE = "sp"
FIELD_NOTE = "nt"
FIELD_START_BUCKET = "sb"
FIELD_INDEX = "ix"
FIELD_TODAY_INDEX = "ti"

EMPTY_NOTE: dict[str, Any] = {"_t": "tx", "ch": 0, "v": "", "t": 1}


class CommandError(Exception):
    """Raised when a command cannot do what it was asked."""


class EntityType(str, Enum):
    TASK = "Task6"
    AREA = "Area3"
    TAG = "Tag4"
    CHECKLIST_ITEM = "ChecklistItem3"


class ItemType(IntEnum):
    CREATE = 0
    MODIFY = 1
    DELETE = 2


class TaskType(IntEnum):
    TASK = 0
    PROJECT = 1
    HEADING = 2


class TaskStatus(IntEnum):
    OPEN = 0
    CANCELLED = 2
    COMPLETED = 3


class TaskDestination(IntEnum):
    INBOX = 0
    ANYTIME = 1
    SOMEDAY = 2


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


@dataclass
class Item:
    """The current state of one synced object."""

    uuid: str
    entity: str
    fields: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.entity = _plain(self.entity)


@dataclass
class CommitItem:
    """One change sent to the server in a commit."""

    type: ItemType
    entity: EntityType | str
    payload: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            COMMIT_KEY_TYPE: int(self.type),
            COMMIT_KEY_ENTITY: _plain(self.entity),
        }
        if self.payload is not None:
            out[COMMIT_KEY_PAYLOAD] = self.payload
        return out


def to_int(value: Any) -> int:
    """Integer value of a number, truncating floats; 0 for anything else."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return 0
        return int(value)
    return 0


def to_float(value: Any) -> float:
    """Float value of a number; 0.0 for anything else."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    return 0.0


def to_bool(value: Any) -> bool:
    return value is True


def to_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def first_string(value: Any) -> str:
    """The first element of a list if it is a string, else ""."""
    if isinstance(value, (list, tuple)) and value and isinstance(value[0], str):
        return value[0]
    return ""


def has_string(value: Any, target: str) -> bool:
    if not isinstance(value, (list, tuple)):
        return False
    return any(isinstance(v, str) and v == target for v in value)


def string_list(value: Any) -> list[str]:
    """The string elements of a list, in order."""
    if not isinstance(value, (list, tuple)):
        return []
    return [v for v in value if isinstance(v, str)]


def new_note(text: str) -> dict[str, Any]:
    """A note value holding the given text."""
    checksum = zlib.crc32(text.encode("utf-8")) if text else 0
    return {"_t": "tx", "ch": checksum, "v": text, "t": 1}


def note_text(value: Any) -> str:
    """The text of a note value, accepting both structured and plain notes."""
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return to_str(value.get("v"))
    return ""


def is_today(fields: Mapping[str, Any], now: datetime) -> bool:
    """Whether an item with these fields belongs in Today as of ``now``."""
    ref = to_float(fields.get(FIELD_TODAY_INDEX_REF))
    if ref <= 0:
        ref = to_float(fields.get(FIELD_SCHEDULED_DATE))
    if ref <= 0:
        return False
    midnight = datetime(now.year, now.month, now.day, tzinfo=timezone.utc).timestamp()
    return ref <= midnight


def replay_history(commits: Iterable[Mapping[str, Any]] | None) -> list[Item]:
    """Replay commits in order and return the surviving items in creation order."""
    state: dict[str, Item] = {}
    order: list[str] = []
    for commit in commits or ():
        for uuid, raw in commit.items():
            if not isinstance(raw, Mapping):
                continue
            payload = raw.get(COMMIT_KEY_PAYLOAD)
            if not isinstance(payload, Mapping):
                payload = {}
            kind = to_int(raw.get(COMMIT_KEY_TYPE))
            if kind == ItemType.CREATE:
                state[uuid] = Item(uuid, to_str(raw.get(COMMIT_KEY_ENTITY)), dict(payload))
                order.append(uuid)
            elif kind == ItemType.MODIFY:
                item = state.get(uuid)
                if item is not None:
                    item.fields.update(payload)
            elif kind == ItemType.DELETE:
                state.pop(uuid, None)
    return [state[uuid] for uuid in order if uuid in state]


def sort_by_index(items: Iterable[Item]) -> list[Item]:
    """Items ordered by their index field, ties kept in place."""
    return sorted(items, key=lambda item: to_int(item.fields.get(FIELD_INDEX)))


def sort_by_today_index(items: Iterable[Item]) -> list[Item]:
    """Items ordered by their Today index field, ties kept in place."""
    return sorted(items, key=lambda item: to_int(item.fields.get(FIELD_TODAY_INDEX)))