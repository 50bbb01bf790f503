"""Tests for rr.store.state - record store and JSON persistence."""

from __future__ import annotations

import json
import threading
from dataclasses import replace
from pathlib import Path

import pytest

from rr.core.result import Err, Ok
from rr.domain.models import (
    ActionRecord,
    Build,
    Distribution,
    Platform,
    ProviderType,
    RolloutAction,
    Severity,
    Submission,
    SubmissionStatus,
    WorkflowStatus,
)
from rr.store.state import JsonFileStore, StateReadError, StateStore, atomic_write_text


def _build(build_id: str = "b1", **changes: object) -> Build:
    build = Build(
        id=build_id,
        release_id="r1",
        platform=Platform.ANDROID,
        target="prod",
        provider_type=ProviderType.JENKINS,
        queue_location="https://ci/queue/item/1/",
    )
    return replace(build, **changes)  # type: ignore[arg-type]


# =============================================================================
# In-memory store
# =============================================================================


class TestStateStore:
    def test_find_builds_filters_release_and_status(self) -> None:
        store = StateStore(
            builds=[
                _build("b1"),
                _build("b2", workflow_status=WorkflowStatus.RUNNING),
                _build("b3", release_id="r2"),
            ]
        )

        assert [b.id for b in store.find_builds("r1", WorkflowStatus.PENDING)] == ["b1"]
        assert [b.id for b in store.find_builds("r1", WorkflowStatus.RUNNING)] == ["b2"]

    def test_update_build_returns_before_and_after(self) -> None:
        store = StateStore(builds=[_build()])

        change = store.update_build(
            "b1", lambda b: replace(b, workflow_status=WorkflowStatus.RUNNING)
        )

        assert change is not None
        before, after = change
        assert before.workflow_status is WorkflowStatus.PENDING
        assert after.workflow_status is WorkflowStatus.RUNNING
        assert store.get_build("b1") == after

    def test_update_build_noop(self) -> None:
        store = StateStore(builds=[_build()])
        assert store.update_build("b1", lambda b: None) is None
        assert store.update_build("b1", lambda b: b) is None
        assert store.update_build("missing", lambda b: b) is None

    def test_locked_is_reentrant(self) -> None:
        store = StateStore()
        with store.locked("submission:s1"):
            with store.locked("submission:s1"):
                pass

    def test_locked_serializes_writers(self) -> None:
        store = StateStore(builds=[_build()])
        order: list[str] = []
        entered = threading.Event()

        def slow_mutate(build: Build) -> Build:
            entered.set()
            order.append("first-start")
            threading.Event().wait(0.05)
            order.append("first-end")
            return replace(build, run_id="x")

        first = threading.Thread(target=store.update_build, args=("b1", slow_mutate))
        first.start()
        entered.wait(1.0)

        def second_mutate(build: Build) -> Build:
            order.append("second")
            return build

        store.update_build("b1", second_mutate)
        first.join()

        assert order == ["first-start", "first-end", "second"]

    def test_save_submissions_and_lookup(self) -> None:
        old = Submission("s1", "r1", Platform.IOS, "1.0", superseded_by="s2")
        new = Submission("s2", "r1", Platform.IOS, "1.1")
        store = StateStore()
        store.save_submissions(old, new)

        assert store.get_submission("s1") == old
        assert {s.id for s in store.submissions_for("r1")} == {"s1", "s2"}
        assert store.submissions_for("r2") == []


# =============================================================================
# JSON persistence
# =============================================================================


class TestJsonFileStore:
    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        result = JsonFileStore.load(tmp_path / "state.json")
        assert isinstance(result, Ok)
        assert result.value.to_dict()["builds"] == []

    def test_mutations_are_written_and_reloaded(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "state.json"
        store = JsonFileStore(path)
        store.save_distribution(Distribution("r1", "acme", (Platform.ANDROID, Platform.IOS)))
        store.add_build(_build(task_id="t1"))
        store.save_submission(
            Submission(
                "s1",
                "r1",
                Platform.ANDROID,
                "2.0",
                status=SubmissionStatus.HALTED,
                exposure_percent=20.0,
                history=(
                    ActionRecord(
                        RolloutAction.HALT,
                        at="2026-01-01T00:00:00+00:00",
                        reason="crash spike",
                        severity=Severity.CRITICAL,
                        actor="oncall",
                    ),
                ),
            )
        )

        reloaded = JsonFileStore.load(path)

        assert isinstance(reloaded, Ok)
        loaded = reloaded.value
        assert loaded.get_build("b1") == _build(task_id="t1")
        submission = loaded.get_submission("s1")
        assert submission is not None
        assert submission.status is SubmissionStatus.HALTED
        assert submission.history[0].severity is Severity.CRITICAL
        assert loaded.get_distribution("r1") == Distribution(
            "r1", "acme", (Platform.ANDROID, Platform.IOS)
        )

    def test_file_is_versioned_json(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        JsonFileStore(path).add_build(_build())

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["version"] == 1
        assert data["builds"][0]["provider_type"] == "JENKINS"

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")

        result = JsonFileStore.load(path)

        assert isinstance(result, Err)
        assert "Invalid JSON" in result.error.message
        assert result.error.path == path

    def test_root_must_be_object(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text("[]", encoding="utf-8")

        result = JsonFileStore.load(path)

        assert isinstance(result, Err)
        assert "JSON object" in result.error.message

    def test_unknown_provider_type_is_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text(
            json.dumps(
                {
                    "builds": [
                        {
                            "id": "b9",
                            "release_id": "r1",
                            "platform": "IOS",
                            "provider_type": "TRAVIS",
                        }
                    ]
                }
            ),
            encoding="utf-8",
        )

        result = JsonFileStore.load(path)

        assert isinstance(result, Err)
        assert result.error.message == "build b9: unknown provider type 'TRAVIS'"

    def test_missing_required_field(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"submissions": [{"id": "s1"}]}), encoding="utf-8")

        result = JsonFileStore.load(path)

        assert isinstance(result, Err)
        assert "submission s1 is missing 'release_id'" in result.error.message

    def test_provider_type_may_be_absent(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text(
            json.dumps({"builds": [{"id": "b1", "release_id": "r1", "platform": "ANDROID"}]}),
            encoding="utf-8",
        )

        result = JsonFileStore.load(path)

        assert isinstance(result, Ok)
        build = result.value.get_build("b1")
        assert build is not None
        assert build.provider_type is None
        assert build.workflow_status is WorkflowStatus.PENDING


# =============================================================================
# Several stores on one file
# =============================================================================


def _open(path: Path) -> JsonFileStore:
    result = JsonFileStore.load(path)
    assert isinstance(result, Ok)
    return result.value


class TestSharedFile:
    def test_writers_do_not_erase_each_other(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        first, second = _open(path), _open(path)

        first.add_build(_build("b1"))
        second.add_build(_build("b2"))
        second.save_distribution(Distribution("r1", "acme", (Platform.ANDROID,)))

        reloaded = _open(path)
        assert reloaded.get_build("b1") is not None
        assert reloaded.get_build("b2") is not None
        assert reloaded.get_distribution("r1") is not None

    def test_locked_section_sees_latest_saved_record(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        JsonFileStore(path).save_submission(
            Submission("s1", "r1", Platform.ANDROID, "2.0", SubmissionStatus.LIVE, 20.0)
        )
        first, second = _open(path), _open(path)

        with first.locked("submission:s1"):
            current = first.get_submission("s1")
            assert current is not None
            first.save_submission(replace(current, exposure_percent=40.0))

        with second.locked("submission:s1"):
            seen = second.get_submission("s1")

        assert seen is not None
        assert seen.exposure_percent == 40.0

    def test_check_then_write_is_serialized(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        JsonFileStore(path).add_build(_build(run_id="0"))
        stores = [_open(path), _open(path)]

        def bump(store: JsonFileStore) -> None:
            for _ in range(25):
                store.update_build("b1", lambda b: replace(b, run_id=str(int(b.run_id or 0) + 1)))

        workers = [threading.Thread(target=bump, args=(s,)) for s in stores]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()

        build = _open(path).get_build("b1")
        assert build is not None
        assert build.run_id == "50"

    def test_unreadable_file_mid_use(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        store = _open(path)
        store.add_build(_build())
        path.write_text("{truncated", encoding="utf-8")

        with pytest.raises(StateReadError) as exc:
            store.add_build(_build("b2"))

        assert "Invalid JSON" in exc.value.error.message
        assert path.read_text(encoding="utf-8") == "{truncated"


def test_atomic_write_leaves_no_temp_files(tmp_path: Path) -> None:
    target = tmp_path / "out.json"
    atomic_write_text(target, "one")
    atomic_write_text(target, "two")

    assert target.read_text(encoding="utf-8") == "two"
    assert [p.name for p in tmp_path.iterdir()] == ["out.json"]
