"""
Shared pytest fixtures for taskrecur tests.

This module provides common fixtures used across all test files, including:
- Time freezing utilities
- An isolated taskrecur home so logs and config never touch the real one
- Vault and controller fixtures
- A note factory
"""

from datetime import datetime

import pytest
from freezegun import freeze_time

from taskrecur.controller import Controller
from taskrecur.record import TaskRecord
from taskrecur.store import Vault
from taskrecur.taskrecur_env import TaskrecurConfig, TaskrecurEnvironment


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """
    Point $TASKRECUR_HOME at a temporary directory for every test so that
    log_msg output and config files stay inside tmp_path.
    """
    home = tmp_path / "taskrecur-home"
    monkeypatch.setenv("TASKRECUR_HOME", str(home))
    monkeypatch.chdir(tmp_path)
    return home


@pytest.fixture
def frozen_time():
    """
    Provides a freezegun context that freezes time to 2025-01-01 12:00:00.

    Usage:
        def test_something(frozen_time):
            frozen_time.tick(delta=timedelta(hours=2))
    """
    with freeze_time("2025-01-01 12:00:00") as frozen:
        yield frozen


@pytest.fixture
def freeze_at():
    """
    Returns a function that freezes time to a specific datetime.

    Usage:
        def test_something(freeze_at):
            with freeze_at("2025-01-15 10:00:00"):
                ...
    """
    return freeze_time


@pytest.fixture
def test_env(isolated_home):
    """Provides a TaskrecurEnvironment rooted at the isolated home."""
    env = TaskrecurEnvironment()
    env.ensure(init_config=True)
    return env


@pytest.fixture
def vault(tmp_path):
    """An empty vault in a temporary directory."""
    root = tmp_path / "vault"
    root.mkdir()
    return Vault(root)


@pytest.fixture
def controller(vault):
    """A Controller over the temporary vault using the default config."""
    return Controller(vault, config=TaskrecurConfig())


@pytest.fixture
def note_factory(vault):
    """
    Provides a factory that writes a note with the given front matter.

    Usage:
        def test_something(note_factory):
            artifact = note_factory("Tasks/Water plants.md", status="open")
    """

    def _create(path: str, body: str = "Body text.\n", **front_matter):
        return vault.create(path, TaskRecord.from_mapping(front_matter), body)

    return _create


@pytest.fixture
def weekly_report(note_factory):
    """A weekly recurring report due Monday 2024-01-01 09:00."""
    return note_factory(
        "Reports/Weekly Report 2024-01-01.md",
        body="# Weekly report\n\n- [ ] collect numbers\n",
        status="working",
        priority="high",
        title="Weekly report",
        scheduled="2024-01-01T09:00:00",
        timeEstimate=45,
        tags=["work"],
        recurrenceRule="RRULE:FREQ=WEEKLY;BYDAY=MO",
        project="reporting",
    )


@pytest.fixture
def monday_nine():
    return datetime(2024, 1, 1, 9, 0)
