"""Shared test fixtures for Mission Control."""

import sys
from pathlib import Path

import pytest

# Ensure the repo root (mission_control/, mission_control_server.py) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from mission_control.config import Config
from mission_control.projects import ProjectStore
from mission_control.tasks import TaskStore
from mission_control.documents import DocumentStore
from mission_control.members import MemberStore
from mission_control.scheduled import ScheduledStore
from mission_control.memory import MemoryStore


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / "data")


@pytest.fixture
def project_store(data_dir):
    return ProjectStore(data_dir)


@pytest.fixture
def task_store(data_dir):
    return TaskStore(data_dir)


@pytest.fixture
def document_store(data_dir):
    return DocumentStore(data_dir)


@pytest.fixture
def member_store(data_dir):
    return MemberStore(data_dir)


@pytest.fixture
def scheduled_store(data_dir):
    return ScheduledStore(data_dir)


@pytest.fixture
def memory_store(data_dir):
    return MemoryStore(data_dir)


@pytest.fixture
def project(project_store):
    return project_store.create({"name": "Alpha"})


@pytest.fixture
def write_memory_day(data_dir):
    """Drop a raw memory/{yyyy}/{mm}/{dd}.md file."""
    def _write(date, body):
        year, month, day = date.split("-")
        path = Path(data_dir) / "memory" / year / month / f"{day}.md"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(body, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def app(data_dir):
    from mission_control_server import create_app
    config = Config(data_dir=data_dir)
    application = create_app(config)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    return app.test_client()
