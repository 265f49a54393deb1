"""Shared test fixtures for cmdcards tests."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Ensure the package root and the bots directory are importable
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))
sys.path.insert(0, str(ROOT / "bots"))

from cmdcards.schema import Card, CardCategory, Example
from cmdcards.store import InMemoryRowStore, RowStoreError


OLD = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_card(card_id, command, tags=(), category=CardCategory.OTHER, **kwargs):
    kwargs.setdefault("description", f"About {command}")
    return Card(
        id=card_id,
        created_at=OLD,
        updated_at=OLD,
        command=command,
        tags=list(tags),
        category=category,
        **kwargs,
    )


class FailingRowStore(InMemoryRowStore):
    """In-memory store whose listed operations raise RowStoreError."""

    def __init__(self, tables=None, fail_on=()):
        super().__init__(tables)
        self.fail_on = set(fail_on)

    def _check(self, op):
        if op in self.fail_on:
            raise RowStoreError(f"simulated {op} failure")

    def select_all(self, table):
        self._check("select_all")
        return super().select_all(table)

    def select_by_id(self, table, row_id):
        self._check("select_by_id")
        return super().select_by_id(table, row_id)

    def insert(self, table, record):
        self._check("insert")
        return super().insert(table, record)

    def update_by_id(self, table, row_id, partial):
        self._check("update_by_id")
        return super().update_by_id(table, row_id, partial)

    def delete_by_id(self, table, row_id):
        self._check("delete_by_id")
        return super().delete_by_id(table, row_id)


@pytest.fixture
def sample_cards():
    return [
        make_card(
            "c1", "git status", tags=["git", "basic"], category=CardCategory.GIT,
            description="Show the working tree status",
            examples=[Example("git status -s", "Short format")],
            qa_context="Check before committing",
        ),
        make_card(
            "c2", "npm install", tags=["js"], category=CardCategory.JAVASCRIPT,
            description="Install package dependencies",
        ),
        make_card(
            "c3", "ls -la", tags=["basic", "shell"], category=CardCategory.TERMINAL,
            description="List files including hidden ones",
            examples=[Example("ls -la ~", "List the home directory")],
        ),
    ]


@pytest.fixture
def seeded_store(sample_cards):
    return FailingRowStore({"cards": [c.to_record() for c in sample_cards]})
