from __future__ import annotations

from missionhook.models import (
    Comment,
    MovedEvent,
    Snapshot,
    Subtask,
    Task,
    TaskRef,
    extract_repo_info,
)


def test_task_from_dict_lenient_fields():
    task = Task.from_dict(
        {
            "id": "ab_1",
            "title": "Alpha",
            "status": "todo",
            "description": "",
            "tags": ["epic", 3],
            "subtasks": [{"title": "one", "done": True}, "two"],
            "comments": [{"author": "kim", "text": "hi"}],
            "priority": "high",
        }
    )
    assert task.description is None
    assert task.tags == ("epic", "3")
    assert task.subtasks == (Subtask("one", True), Subtask("two", False))
    assert task.latest_comment == Comment("kim", "hi")
    assert task.extra == {"priority": "high"}
    assert task.has_tag("epic")


def test_task_round_trip_keeps_unknown_keys():
    raw = {"id": "x", "title": "X", "status": "done", "priority": 2, "comments": []}
    out = Task.from_dict(raw).to_dict()
    assert out == {"id": "x", "title": "X", "status": "done", "priority": 2}


def test_snapshot_skips_non_object_entries():
    snap = Snapshot.from_dict({"tasks": [{"id": "a", "title": "A", "status": "todo"}, 5, None]})
    assert len(snap) == 1
    assert snap.find("a") is not None
    assert snap.find("missing") is None


def test_snapshot_from_non_mapping_is_empty():
    assert Snapshot.from_dict(["not", "a", "board"]) == Snapshot.empty()
    assert Snapshot.from_dict({"tasks": "nope"}).tasks == ()


def test_snapshot_to_dict_preserves_board_fields():
    snap = Snapshot.from_dict({"version": 3, "tasks": []})
    assert snap.to_dict() == {"version": 3, "tasks": []}


def test_parsed_snapshot_writes_back_the_decoded_document():
    raw = {
        "tasks": [
            {
                "comments": [{"author": "x", "createdAt": "2024-01-01", "text": "t"}],
                "description": "",
                "id": "ab_1",
                "subtasks": [{"done": False, "id": "s1", "title": "AB1: x"}],
                "tags": [],
                "title": "Alpha",
            }
        ]
    }
    snap = Snapshot.from_dict(raw)
    assert snap.tasks[0].status == ""
    assert snap.to_dict() == raw
    assert Snapshot(tasks=snap.tasks).to_dict()["tasks"][0]["status"] == ""


def test_task_id_keeps_falsy_values():
    assert Task.from_dict({"id": 0, "title": "Zero", "status": "todo"}).id == "0"
    assert Task.from_dict({"id": False, "title": "F", "status": "todo"}).id == "False"
    assert Task.from_dict({"title": "None", "status": "todo"}).id == ""


def test_task_ref_status_is_optional():
    task = Task(id="a", title="A", status="review")
    assert task.ref().to_dict() == {"id": "a", "title": "A", "status": "review"}
    assert task.ref(with_status=False).to_dict() == {"id": "a", "title": "A"}
    assert TaskRef("a", "A").as_task() == Task(id="a", title="A", status="")


def test_moved_event_serialization():
    event = MovedEvent(task=TaskRef("a", "A"), from_status="todo", to_status="done")
    assert event.to_dict() == {
        "type": "moved",
        "task": {"id": "a", "title": "A"},
        "from": "todo",
        "to": "done",
    }


def test_extract_repo_info_defaults():
    info = extract_repo_info(
        {"repository": {"full_name": "acme/board", "name": "board", "owner": {"login": "acme"}}}
    )
    assert info.full_name == "acme/board"
    assert info.owner == "acme"
    assert info.default_branch == "main"
    assert info.api_base == "https://api.github.com/repos/acme/board"


def test_extract_repo_info_missing_repository():
    info = extract_repo_info({})
    assert info.full_name == ""
    assert info.private is False
