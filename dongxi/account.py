"""Cloud account data, the client contract, and the info and login commands."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import IO, Callable, Iterator, Mapping

from .items import CommandError, CommitItem
from .output import State, dump_json


@dataclass
class Account:
    """Account details reported by the server."""

    email: str = ""
    status: str = ""
    maildrop_email: str = ""
    history_key: str = ""


@dataclass
class HistoryInfo:
    """The sync state of one history."""

    latest_server_index: int = 0
    latest_schema_version: int = 0
    is_empty: bool = False
    latest_total_content_size: int = 0


@dataclass
class CommitResponse:
    """The server's answer to a commit."""

    server_head_index: int = 0


@dataclass
class Config:
    """Saved credentials and the history they refer to."""

    email: str
    password: str
    history_key: str = ""


class CloudClient(ABC):
    """The operations the commands need from the sync service."""

    @abstractmethod
    def get_history(self, history_key: str) -> HistoryInfo:
        """Fetch the current sync state of a history."""

    @abstractmethod
    def commit(
        self, history_key: str, ancestor_index: int, items: Mapping[str, CommitItem]
    ) -> CommitResponse:
        """Send a set of changes based on ``ancestor_index``."""

    @abstractmethod
    def get_account(self, email: str) -> Account:
        """Fetch the account registered under ``email``."""


@dataclass
class Session:
    """Loaded state together with the client and history it came from."""

    state: State
    client: CloudClient
    history_key: str
    email: str = ""


@contextmanager
def _failure(context: str) -> Iterator[None]:
    """Re-raise any failure inside the block as a CommandError prefixed by ``context``."""
    try:
        yield
    except Exception as exc:
        raise CommandError(f"{context}: {exc}") from exc


def _aligned(rows: list[str | tuple[str, str]], padding: int = 2) -> list[str]:
    """Lay out label/value rows in columns; plain lines end an aligned block."""
    lines: list[str] = []
    block: list[tuple[str, str]] = []

    def flush() -> None:
        if block:
            width = max(len(label) for label, _ in block) + padding
            lines.extend(f"{label.ljust(width)}{value}" for label, value in block)
            block.clear()

    for row in rows:
        if isinstance(row, tuple):
            block.append(row)
        else:
            flush()
            lines.append(row)
    flush()
    return lines


def _now_rfc3339() -> str:
    stamp = datetime.now().astimezone().isoformat(timespec="seconds")
    return stamp[:-6] + "Z" if stamp.endswith("+00:00") else stamp


def run_info(session: Session, as_json: bool = False, stream: IO[str] | None = None) -> None:
    """Show account details and the sync state of the history."""
    out = stream if stream is not None else sys.stdout
    with _failure("fetch account"):
        account = session.client.get_account(session.email)
    with _failure("fetch history info"):
        history = session.client.get_history(session.history_key)

    if as_json:
        dump_json(
            {
                "email": account.email,
                "status": account.status,
                "maildrop_email": account.maildrop_email,
                "history_key": session.history_key,
                "server_index": history.latest_server_index,
                "schema_version": history.latest_schema_version,
                "is_empty": history.is_empty,
                "content_size": history.latest_total_content_size,
            },
            out,
        )
        return

    rows: list[str | tuple[str, str]] = [
        "DONGXI INFO",
        "===========",
        ("Account Email:", account.email),
        ("Account Status:", account.status),
        ("Maildrop Email:", account.maildrop_email),
        ("History Key:", session.history_key),
        "",
        "SYNC STATE",
        "----------",
        ("Server Index:", str(history.latest_server_index)),
        ("Schema Version:", str(history.latest_schema_version)),
        ("Is Empty:", "true" if history.is_empty else "false"),
        ("Total Content Size:", f"{history.latest_total_content_size} bytes"),
        ("Report Generated:", _now_rfc3339()),
    ]
    for line in _aligned(rows):
        print(line, file=out)


def run_login(
    client_factory: Callable[[str, str], CloudClient],
    save_config: Callable[[Config], None],
    email: str,
    password: str,
    stream: IO[str] | None = None,
) -> Config:
    """Verify credentials against the server and save them."""
    out = stream if stream is not None else sys.stdout
    client = client_factory(email, password)
    with _failure("verify credentials"):
        account = client.get_account(email)

    config = Config(email=email, password=password, history_key=account.history_key)
    with _failure("save config"):
        save_config(config)

    print(f"Logged in as {email}", file=out)
    print(f"History key: {account.history_key}", file=out)
    return config