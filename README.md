# dongxi

`dongxi` works with the change history of a Things Cloud account. It takes
the commits of a history, replays them into the current set of items, and
lets you list, export and change those items. It has no dependencies
beyond the standard library.

## Modules

- `dongxi.items`: the `Item` and `CommitItem` dataclasses, the enums
  `EntityType`, `ItemType`, `TaskType`, `TaskStatus` and `TaskDestination`,
  `replay_history`, and the tolerant field readers `to_int`, `to_float`,
  `to_bool`, `to_str`, `first_string`, `has_string` and `string_list`. It
  also has the note helpers `new_note` and `note_text`, `is_today`, and the
  sorters `sort_by_index` and `sort_by_today_index`. `CommandError` is
  defined here.
- `dongxi.output`: `build_state` and `State`, which holds the items with
  lookups `by_uuid`, `projects`, `areas` and `tags`. Its methods are
  `resolve_uuid` (full UUID or unique prefix), `area_title`,
  `project_title`, `headings_for_project`, `project_progress`,
  `is_orphaned_by_trashed_parent` and `item_to_output`. `ItemOutput` is
  the exported view of an item, and `ItemOutput.to_dict` leaves out empty
  and unset fields. `dump_json` writes indented JSON.
- `dongxi.listing`: `run_list`, `run_projects` and `run_logbook`.
- `dongxi.export`: `run_export`, `write_json`, `write_csv`,
  `matches_export_type` and `matches_export_filter`.
- `dongxi.account`: the abstract `CloudClient`, the dataclasses `Account`,
  `HistoryInfo`, `CommitResponse`, `Config` and `Session`, and the
  functions `run_info` and `run_login`.
- `dongxi.actions`: `run_edit`, `run_move` and `run_empty_trash`.

Anything that fails, such as an unknown filter, a UUID that does not
resolve, a bad date or a failed client call, raises `CommandError` with a
message that says what went wrong.

## Replaying and listing

```python
import sys
from datetime import datetime

from dongxi.items import replay_history
from dongxi.listing import run_list
from dongxi.output import build_state

commits = [
    {
        "task-1": {
            "t": 0,
            "e": "Task6",
            "p": {"tt": "Buy milk", "tp": 0, "ss": 0, "st": 0, "tr": False},
        }
    }
]

state = build_state(replay_history(commits))
run_list(state, filter_name="inbox", now=datetime.now(), stream=sys.stdout)
```

`replay_history` applies create, modify and delete commits in order and
returns the surviving items in creation order. Modifies of unknown items
are ignored, and entries that are not mappings are skipped.

`run_list` takes the views `inbox`, `today`, `anytime`, `evening`,
`someday`, `completed`, `trash` and `all`. It can narrow by `project`,
`area` (a task without an area takes its project's area) and `tag`. Tasks
whose project or heading is trashed count as trashed. With a project
given, it prints tasks grouped under that project's headings. The `today`
and `evening` views sort by Today index; the others sort by index.

`run_projects` lists projects by `open`, `completed`, `trash` or `all`,
with a `(done/total)` count and the area name. `run_logbook` shows
completed, untrashed tasks, most recently completed first, up to `limit`
(20 by default; 0 or less means no limit).

Each of these takes `as_json=True` to write a JSON array of
`ItemOutput.to_dict()` objects instead of text.

## Exporting

```python
import sys
from dongxi.export import run_export

run_export(state, fmt="csv", export_type="all", filter_name="all", stream=sys.stdout)
```

`fmt` is `json` or `csv`. `export_type` is `tasks`, `projects`, `areas`,
`tags`, `checklist` or `all`. `filter_name` is `open`, `completed`,
`trash` or `all`, and tags pass every filter. Give `output` a file path
to write there instead of to `stream`. The CSV has the header `uuid,
entity, type, title, status, destination, area, project, created,
modified, scheduled, deadline, notes, tags, evening, trashed`. Tags are
joined with `;`.

## Changing items

The changing functions take a `Session`, which holds the `State`, a
`CloudClient`, the history key and the account e-mail. Each fetches the
current server index, sends one commit and prints the new index.

```python
from dongxi.actions import run_edit, run_move, run_empty_trash

run_edit(session, "task-1", title="Buy oat milk", scheduled="2025-04-01")
run_move(session, "task-1", destination="evening")
run_empty_trash(session, confirm=True)
```

For `run_edit` and for the `area`, `project` and `heading` of
`run_move`, `None` leaves a property alone and `""` clears it. Dates are
`YYYY-MM-DD` and are stored as midnight UTC. `evening` accepts
`true`/`1`/`yes` and `false`/`0`/`no`. `run_move` destinations are
`inbox`, `today` (or `anytime`), `evening` and `someday`. `run_edit` and
`run_move` return the list of changes made. `run_empty_trash` refuses to
act without `confirm=True` and returns the number of items deleted.

## Account

`run_info(session)` prints the account and sync state, or JSON with
`as_json=True`. `run_login(client_factory, save_config, email, password)`
builds a client, checks the credentials with `get_account`, hands a
`Config` to `save_config` and returns it.

```python
from dongxi.account import Account, CommitResponse, CloudClient, HistoryInfo, run_login


class OfflineClient(CloudClient):
    def get_history(self, history_key):
        return HistoryInfo(latest_server_index=1)

    def commit(self, history_key, ancestor_index, items):
        return CommitResponse(server_head_index=ancestor_index + 1)

    def get_account(self, email):
        return Account(email=email, history_key="history-1")


saved = []
password = "password"
run_login(lambda e, p: OfflineClient(), saved.append, "user@example.com", password)
```

## What it does not do

- It has no command-line program. The commands are Python functions.
- It has no client that talks to the Things Cloud service. `CloudClient`
  is an abstract class, and you supply the implementation.
- It does not download history or store configuration. You pass in the
  commits to replay, and `run_login` hands the `Config` to your own
  `save_config` callable.