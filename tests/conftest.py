"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import json
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from learnloop.config import get_settings  # noqa: E402
from learnloop.core import LearnModeConfig, Term, TermRecord  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class RecordingSink:
    """RecordSink that keeps every pushed record."""

    def __init__(self):
        self.records: list[TermRecord] = []

    def push(self, record: TermRecord) -> None:
        self.records.append(record)

    def last_for(self, term_id: str) -> TermRecord | None:
        for record in reversed(self.records):
            if record.term_id == term_id:
                return record
        return None


def make_terms(*ids: str) -> list[Term]:
    """Terms with rank following argument order."""
    return [
        Term(id=term_id, word=f"word-{term_id}", definition=f"definition-{term_id}", rank=i)
        for i, term_id in enumerate(ids)
    ]


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; tests set env vars freely."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def abc_terms():
    return make_terms("A", "B", "C")


@pytest.fixture
def threshold_two():
    """Mode config mastering a term after two correct answers."""
    return LearnModeConfig(mastery_threshold=2)


@pytest.fixture
def sample_set_data():
    """Provide a sample study set for testing."""
    return {
        "id": "spanish-verbs",
        "title": "Spanish verbs",
        "terms": [
            {"id": "t1", "word": "ser", "definition": "to be", "rank": 0},
            {"id": "t2", "word": "tener", "definition": "to have", "rank": 1},
            {"id": "t3", "word": "ir", "definition": "to go", "rank": 2},
            {"id": "t4", "word": "hacer", "definition": "to do", "rank": 3},
        ],
        "starred": ["t2", "t4", "missing"],
    }


@pytest.fixture
def sample_set_file(tmp_path, sample_set_data):
    path = tmp_path / "spanish-verbs.json"
    path.write_text(json.dumps(sample_set_data), encoding="utf-8")
    return path


@pytest.fixture
def term_factory():
    return make_terms
