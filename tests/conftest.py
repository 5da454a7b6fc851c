"""Shared fixtures for formflow tests."""
from __future__ import annotations

import shutil
import tempfile
from pathlib import Path

import pytest
import yaml

from formflow.compiler import load_template
from formflow.config import load_config
from formflow.engine.coordinator import CommitResult
from formflow.types import ApplicationProgress, FormTemplate
from formflow.workspace import Workspace

TEMPLATES_DIR = Path(__file__).parent / "templates"

CANDIDATE = "candidate@example.com"
RECRUITER = "recruiter@example.com"
OUTSIDER = "someone@example.com"

ROLE_CONFIG = {
    "roles": {
        "applicant": ["applications.update_own"],
        "recruiter": ["applications.update_own", "applications.update_all"],
    },
    "assignments": {
        CANDIDATE: "applicant",
        RECRUITER: ["recruiter"],
    },
}


def fixture_template(name: str) -> FormTemplate:
    return load_template((TEMPLATES_DIR / f"{name}.yaml").read_text(encoding="utf-8"))


class ApplicationHarness:
    """Test harness for driving one application through the coordinator.

    Provides a clean temp ``.formflow`` home per test with the requested
    template installed. All methods delegate to the coordinator's public API.
    """

    def __init__(self, template_file: str, *, config: dict | None = None):
        self.tmp = Path(tempfile.mkdtemp())
        self.home = self.tmp / ".formflow"
        (self.home / "templates").mkdir(parents=True)
        shutil.copy2(TEMPLATES_DIR / template_file, self.home / "templates" / template_file)
        if config is not None:
            (self.home / "config.yaml").write_text(yaml.safe_dump(config), encoding="utf-8")

        self.template_id = template_file.removesuffix(".yaml")
        self.workspace = Workspace(load_config(self.home))
        self.progress_id: str | None = None

    @property
    def coordinator(self):
        return self.workspace.coordinator

    @property
    def store(self):
        return self.workspace.store

    def start(self, subject: str = CANDIDATE) -> ApplicationProgress:
        progress = self.coordinator.start_application(self.template_id, subject)
        self.progress_id = progress.id
        return progress

    @property
    def progress(self) -> ApplicationProgress:
        return self.coordinator.get_progress(self.progress_id)

    @property
    def step(self) -> str | None:
        return self.progress.current_step

    @property
    def status(self) -> str:
        return self.progress.status

    def commit(self, step_id: str, answers: dict) -> CommitResult:
        return self.coordinator.commit_step(self.progress_id, step_id, answers)

    def back(self, step_id: str) -> ApplicationProgress:
        return self.coordinator.go_back(self.progress_id, step_id)

    def finalize(self, subject: str | None = None) -> ApplicationProgress:
        return self.coordinator.finalize(self.progress_id, subject)

    def snapshot(self) -> dict:
        return self.coordinator.snapshot(self.progress_id)

    def history(self, limit: int = 50) -> list[dict]:
        return self.coordinator.get_history(self.progress_id, limit)

    def actions(self) -> list[str]:
        """History actions, oldest first."""
        return [h["action"] for h in reversed(self.history())]

    def new_workspace(self) -> None:
        """Close the workspace and reopen it from the same home.

        Simulates a candidate closing the browser and resuming later.
        """
        self.workspace.close()
        self.workspace = Workspace(load_config(self.home))

    def close(self):
        self.workspace.close()
        shutil.rmtree(self.tmp, ignore_errors=True)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


@pytest.fixture
def harness_factory():
    """Factory fixture that creates ApplicationHarness instances and cleans up after test."""
    created: list[ApplicationHarness] = []

    def _make(template_file: str, **kwargs) -> ApplicationHarness:
        h = ApplicationHarness(template_file, **kwargs)
        created.append(h)
        return h

    yield _make

    for h in created:
        h.close()


@pytest.fixture
def interest() -> FormTemplate:
    return fixture_template("interest")


@pytest.fixture
def job_application() -> FormTemplate:
    return fixture_template("job_application")


# ─── Valid answers for job_application.yaml ───

PERSONAL = {"full_name": "Ada Lovelace", "email": "ada@example.com", "age": 36}
ROLE_ENGINEERING = {"track": "engineering", "has_portfolio": "no"}
ENGINEERING = {"github": "https://github.com/ada", "languages": ["python"]}
CONSENT = {"terms": True}
