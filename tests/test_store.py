"""SQLite progress store: round trips, versioned writes, audit trail."""
from __future__ import annotations

import pytest

from formflow.errors import PersistenceUnavailable, StaleProgress
from formflow.store.state import ProgressStore, now_stamp
from formflow.types import ApplicationProgress


@pytest.fixture
def store(tmp_path):
    s = ProgressStore(tmp_path / "state.db")
    yield s
    s.close()


def make_progress(progress_id: str = "p1", subject: str = "ada@example.com") -> ApplicationProgress:
    stamp = now_stamp()
    return ApplicationProgress(
        id=progress_id, template_id="job_application", subject=subject,
        current_step="personal", visited=["personal"], started_at=stamp, updated_at=stamp,
    )


def test_create_and_load_round_trip(store):
    progress = make_progress()
    progress.answers = {"age": 36, "languages": ["python", "go"], "terms": True, "note": "naïve"}
    progress.errors = {"email": [{"field": "email", "code": "required", "message": "This field is required"}]}
    progress.commits = {"personal": "abc123"}
    store.create(progress)

    loaded = store.load_draft("p1")
    assert loaded == progress
    assert store.load_draft("missing") is None


def test_create_records_start_in_history(store):
    store.create(make_progress())
    history = store.get_history("p1")
    assert [h["action"] for h in history] == ["start"]
    assert history[0]["step_id"] == "personal"


def test_save_step_checks_version(store):
    progress = make_progress()
    store.create(progress)

    progress.current_step = "role"
    progress.version = 1
    store.save_step(progress, expected_version=0, action="commit", step_id="personal", data='{"age": 36}')
    assert store.load_draft("p1").current_step == "role"

    stale = make_progress()
    stale.current_step = "consent"
    stale.version = 1
    with pytest.raises(StaleProgress):
        store.save_step(stale, expected_version=0, action="commit", step_id="role")
    assert store.load_draft("p1").current_step == "role"
    # the failed write left no history behind
    assert [h["action"] for h in store.get_history("p1")] == ["commit", "start"]


def test_stale_progress_is_persistence_unavailable():
    assert issubclass(StaleProgress, PersistenceUnavailable)


def test_finalize_writes_status_and_history(store):
    progress = make_progress()
    store.create(progress)
    progress.current_step = None
    progress.status = "submitted"
    progress.submission_count = 1
    progress.version = 1
    store.finalize(progress, expected_version=0)

    loaded = store.load_draft("p1")
    assert loaded.status == "submitted"
    assert loaded.completed
    latest = store.get_history("p1", limit=1)
    assert latest[0]["action"] == "finalize"
    assert latest[0]["data"] == "submitted"


def test_history_newest_first_with_limit(store):
    store.create(make_progress())
    for i in range(5):
        store.add_history("p1", f"s{i}", "commit")
    history = store.get_history("p1", limit=3)
    assert [h["step_id"] for h in history] == ["s4", "s3", "s2"]
    assert store.get_history("other") == []


def test_list_progress_filters_by_subject(store):
    store.create(make_progress("p1", "ada@example.com"))
    store.create(make_progress("p2", "grace@example.com"))
    store.create(make_progress("p3", "ada@example.com"))
    assert [p.id for p in store.list_progress("ada@example.com")] == ["p1", "p3"]
    assert len(store.list_progress()) == 3


def test_duplicate_create_is_a_persistence_error(store):
    store.create(make_progress())
    with pytest.raises(PersistenceUnavailable):
        store.create(make_progress())
    assert len(store.get_history("p1")) == 1


def test_closed_database_is_unavailable(tmp_path):
    s = ProgressStore(tmp_path / "state.db")
    s.close()
    with pytest.raises(PersistenceUnavailable):
        s.load_draft("p1")


def test_unopenable_database_is_unavailable(tmp_path):
    with pytest.raises(PersistenceUnavailable, match="Cannot open"):
        ProgressStore(tmp_path / "missing" / "dir" / "state.db")


def test_records_survive_reopen(tmp_path):
    first = ProgressStore(tmp_path / "state.db")
    first.create(make_progress())
    first.close()

    second = ProgressStore(tmp_path / "state.db")
    try:
        assert second.load_draft("p1").current_step == "personal"
    finally:
        second.close()
