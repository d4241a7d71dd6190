import csv
import io
import json

import pytest

from dongxi.export import (
    CSV_HEADER,
    matches_export_filter,
    matches_export_type,
    run_export,
    write_csv,
    write_json,
)
from dongxi.items import (
    COMMIT_KEY_ENTITY,
    COMMIT_KEY_PAYLOAD,
    COMMIT_KEY_TYPE,
    FIELD_DESTINATION,
    FIELD_START_BUCKET,
    FIELD_STATUS,
    FIELD_TAG_IDS,
    FIELD_TASK_IDS,
    FIELD_TITLE,
    FIELD_TRASHED,
    FIELD_TYPE,
    CommandError,
    EntityType,
    Item,
    ItemType,
    TaskDestination,
    TaskStatus,
    TaskType,
    replay_history,
)
from dongxi.output import ItemOutput, build_state


def _entry(uuid, entity, payload):
    return {
        uuid: {
            COMMIT_KEY_TYPE: float(ItemType.CREATE),
            COMMIT_KEY_ENTITY: entity.value,
            COMMIT_KEY_PAYLOAD: payload,
        }
    }


def make_task(uuid, title, extra=None):
    payload = {
        FIELD_TITLE: title,
        FIELD_TYPE: float(TaskType.TASK),
        FIELD_STATUS: float(TaskStatus.OPEN),
        FIELD_DESTINATION: float(TaskDestination.INBOX),
        FIELD_TRASHED: False,
    }
    payload.update(extra or {})
    return _entry(uuid, EntityType.TASK, payload)


def make_project(uuid, title, extra=None):
    payload = {
        FIELD_TITLE: title,
        FIELD_TYPE: float(TaskType.PROJECT),
        FIELD_STATUS: float(TaskStatus.OPEN),
        FIELD_DESTINATION: float(TaskDestination.ANYTIME),
        FIELD_TRASHED: False,
    }
    payload.update(extra or {})
    return _entry(uuid, EntityType.TASK, payload)


def make_area(uuid, title):
    return _entry(uuid, EntityType.AREA, {FIELD_TITLE: title, FIELD_TRASHED: False})


def make_tag(uuid, title):
    return _entry(uuid, EntityType.TAG, {FIELD_TITLE: title})


def make_checklist_item(uuid, title, task_uuid):
    return _entry(
        uuid,
        EntityType.CHECKLIST_ITEM,
        {FIELD_TITLE: title, FIELD_STATUS: float(TaskStatus.OPEN), FIELD_TASK_IDS: [task_uuid]},
    )


def state_of(*entries):
    return build_state(replay_history(list(entries)))


def export(state, **kwargs):
    stream = io.StringIO()
    run_export(state, stream=stream, **kwargs)
    return stream.getvalue()


def export_json(state, **kwargs):
    return json.loads(export(state, **kwargs))


def export_csv(state, **kwargs):
    return list(csv.reader(io.StringIO(export(state, fmt="csv", **kwargs))))


COMPLETED = {FIELD_STATUS: float(TaskStatus.COMPLETED)}
TRASHED = {FIELD_TRASHED: True}


def test_json_tasks_default():
    items = export_json(state_of(make_task("task-1", "Buy milk"), make_task("task-2", "Call dentist")))
    assert len(items) == 2
    assert items[0]["title"] == "Buy milk"
    assert items[0]["type"] == "task"


@pytest.mark.parametrize(
    "export_type,entry,title,type_name",
    [
        ("projects", make_project("proj-1", "My Project"), "My Project", "project"),
        ("areas", make_area("area-1", "Work"), "Work", "area"),
        ("tags", make_tag("tag-1", "Important"), "Important", "tag"),
    ],
)
def test_json_by_type(export_type, entry, title, type_name):
    items = export_json(state_of(make_task("task-1", "A task"), entry), export_type=export_type)
    assert len(items) == 1
    assert items[0]["title"] == title
    assert items[0]["type"] == type_name


def test_json_checklist():
    state = state_of(make_task("task-1", "A task"), make_checklist_item("cl-1", "Step 1", "task-1"))
    items = export_json(state, export_type="checklist")
    assert len(items) == 1
    assert items[0]["title"] == "Step 1"
    assert items[0]["type"] == "checklist_item"
    assert items[0]["task_uuid"] == "task-1"


def test_json_all():
    state = state_of(
        make_task("task-1", "A task"),
        make_project("proj-1", "A project"),
        make_area("area-1", "Work"),
        make_tag("tag-1", "Important"),
        make_checklist_item("cl-1", "Step 1", "task-1"),
    )
    assert len(export_json(state, export_type="all", filter_name="all")) == 5


def test_csv_tasks():
    records = export_csv(state_of(make_task("task-1", "Buy milk"), make_task("task-2", "Call dentist")))
    assert len(records) == 3
    assert records[0][0] == "uuid"
    assert records[1][3] == "Buy milk"


def _mixed_state():
    return state_of(
        make_task("task-1", "Open task"),
        make_task("task-2", "Completed task", COMPLETED),
        make_task("task-3", "Trashed task", TRASHED),
    )


@pytest.mark.parametrize(
    "filter_name,titles",
    [
        ("open", ["Open task"]),
        ("completed", ["Completed task"]),
        ("trash", ["Trashed task"]),
        ("all", ["Open task", "Completed task", "Trashed task"]),
    ],
)
def test_filters(filter_name, titles):
    items = export_json(_mixed_state(), filter_name=filter_name)
    assert [item["title"] for item in items] == titles


def test_file_output_json(tmp_path):
    out_file = tmp_path / "export.json"
    result = export(state_of(make_task("task-1", "Buy milk")), output=str(out_file))
    assert result == ""
    items = json.loads(out_file.read_text(encoding="utf-8"))
    assert len(items) == 1
    assert items[0]["title"] == "Buy milk"


def test_file_output_csv(tmp_path):
    out_file = tmp_path / "export.csv"
    run_export(state_of(make_task("task-1", "Buy milk")), fmt="csv", output=str(out_file))
    with open(out_file, newline="", encoding="utf-8") as handle:
        records = list(csv.reader(handle))
    assert len(records) == 2


def test_empty_results_json():
    assert export_json(state_of(make_area("area-1", "Work"))) == []


def test_empty_results_csv():
    assert export_csv(state_of(make_area("area-1", "Work"))) == [CSV_HEADER]


@pytest.mark.parametrize(
    "kwargs,message",
    [
        ({"fmt": "xml"}, "unknown format"),
        ({"export_type": "widgets"}, "unknown type"),
        ({"filter_name": "invalid"}, "unknown filter"),
    ],
)
def test_bad_arguments(kwargs, message):
    with pytest.raises(CommandError, match=message):
        export(state_of(make_task("task-1", "A task")), **kwargs)


def test_csv_with_tags():
    state = state_of(
        make_tag("tag-1", "Important"),
        make_tag("tag-2", "Urgent"),
        make_task("task-1", "Tagged task", {FIELD_TAG_IDS: ["tag-1", "tag-2"]}),
    )
    records = export_csv(state)
    assert len(records) == 2
    assert records[1][13] == "tag-1;tag-2"


def test_csv_evening_and_trashed():
    state = state_of(
        make_task(
            "task-1",
            "Evening task",
            {FIELD_START_BUCKET: 1.0, FIELD_DESTINATION: float(TaskDestination.ANYTIME)},
        ),
        make_task("task-2", "Trashed task", TRASHED),
    )
    records = export_csv(state, filter_name="all")
    assert len(records) == 3
    assert records[1][14:16] == ["true", "false"]
    assert records[2][14:16] == ["false", "true"]


def test_tags_pass_open_filter():
    items = export_json(state_of(make_tag("tag-1", "Important")), export_type="tags", filter_name="open")
    assert len(items) == 1


def test_csv_area_entity():
    records = export_csv(state_of(make_area("area-1", "Work")), export_type="areas")
    assert len(records) == 2
    assert records[1][1] == EntityType.AREA.value


def test_json_pretty_printed():
    output = export(state_of(make_task("task-1", "Buy milk")))
    assert "\n" in output
    assert "  " in output


def test_csv_header_columns():
    records = export_csv(state_of(make_task("task-1", "A task")))
    assert records[0] == [
        "uuid", "entity", "type", "title", "status", "destination",
        "area", "project", "created", "modified", "scheduled", "deadline",
        "notes", "tags", "evening", "trashed",
    ]


def test_bad_output_path(tmp_path):
    target = tmp_path / "missing" / "file.json"
    with pytest.raises(CommandError, match="create output file"):
        run_export(state_of(make_task("task-1", "A task")), output=str(target))


def test_csv_tag_has_empty_evening_and_trashed():
    records = export_csv(state_of(make_tag("tag-1", "Important")), export_type="tags")
    assert len(records) == 2
    assert records[1][14] == ""
    assert records[1][15] == ""


@pytest.mark.parametrize("export_type", ["tasks", "projects", "areas", "tags", "checklist", "bogus"])
def test_matches_export_type_unknown_entity(export_type):
    assert matches_export_type(Item("x", "weird"), export_type) is False


def test_matches_export_type_all():
    assert matches_export_type(Item("x", "weird"), "all") is True


def _open_task_item(status):
    return Item(
        "t",
        EntityType.TASK.value,
        {FIELD_TRASHED: False, FIELD_STATUS: float(status)},
    )


def test_matches_export_filter_open_not_completed():
    assert matches_export_filter(_open_task_item(TaskStatus.OPEN), "completed") is False


def test_matches_export_filter_unknown():
    assert matches_export_filter(_open_task_item(TaskStatus.OPEN), "bogus") is False


def test_matches_export_filter_completed():
    assert matches_export_filter(_open_task_item(TaskStatus.COMPLETED), "completed") is True


def test_write_csv_items():
    stream = io.StringIO()
    write_csv(stream, [ItemOutput(uuid="test-1", entity="task", title="Test task")])
    rows = list(csv.reader(io.StringIO(stream.getvalue())))
    assert rows[1][0] == "test-1"
    assert rows[1][3] == "Test task"


def test_write_csv_bool_fields():
    stream = io.StringIO()
    write_csv(
        stream,
        [
            ItemOutput(uuid="t1", entity="task", title="Task", evening=True, trashed=False),
            ItemOutput(uuid="t2", entity="task", title="Task2", evening=False, trashed=True),
        ],
    )
    rows = list(csv.reader(io.StringIO(stream.getvalue())))
    assert rows[1][14:16] == ["true", "false"]
    assert rows[2][14:16] == ["false", "true"]


def test_write_json_empty_list():
    stream = io.StringIO()
    write_json(stream, [])
    assert json.loads(stream.getvalue()) == []