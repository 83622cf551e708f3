"""Shared test fixtures.

Seeds the environment before any notenex import so Settings validates, and
provides a mocked Mongo store whose `find` cursors honour `limit`/`sort`.
"""

import os

# Patch env vars BEFORE any notenex imports
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGO_DB_NAME", "notenex_test")
os.environ.setdefault("DEFAULT_TIMEZONE", "UTC")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("REMINDER_DISPATCH_TOKEN", "")

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from notenex.models.user_models import UserContact

NOW = datetime(2024, 3, 1, 9, 5, tzinfo=timezone.utc)


class FakeCursor:
    """Async cursor over a fixed list of documents."""

    def __init__(self, docs):
        self._docs = list(docs)

    def limit(self, n):
        self._docs = self._docs[:n]
        return self

    def sort(self, key, direction=1):
        self._docs.sort(key=lambda d: d[key], reverse=direction < 0)
        return self

    def __aiter__(self):
        self._iter = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


def make_reminder_doc(**overrides):
    doc = {
        "_id": "rem-1",
        "ownerId": "user-1",
        "noteId": "note-1",
        "fireAt": datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc),
        "snoozeUntil": None,
        "status": "scheduled",
        "channels": ["push"],
        "frequency": "once",
        "customCron": None,
        "titleSnapshot": "Water the plants",
        "bodySnapshot": "Balcony first",
        "labelIds": [],
        "createdAt": datetime(2024, 2, 1, tzinfo=timezone.utc),
        "updatedAt": datetime(2024, 2, 1, tzinfo=timezone.utc),
    }
    doc.update(overrides)
    return doc


def make_collection(docs_by_status=None):
    collection = MagicMock()
    collection.docs_by_status = docs_by_status or {}
    collection.find.side_effect = lambda query, *args, **kwargs: FakeCursor(
        collection.docs_by_status.get(query.get("status"), [])
    )
    collection.find_one_and_update = AsyncMock(side_effect=lambda query, *a, **k: {"_id": query["_id"]})
    collection.update_one = AsyncMock(return_value=MagicMock(matched_count=1, modified_count=1))
    collection.update_many = AsyncMock(return_value=MagicMock(modified_count=0))
    collection.find_one = AsyncMock(return_value=None)
    return collection


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store():
    """Mocked reminder/note collections plus stubbed auth directory and preference lookups."""
    reminders = make_collection({"scheduled": [], "snoozed": []})
    notes = make_collection()
    get_contact = AsyncMock(return_value=UserContact(email="owner@example.com", phoneNumber=None))
    get_preference = AsyncMock(return_value=None)
    with patch("notenex.services.reminder_service.get_reminder_collection", return_value=reminders), \
         patch("notenex.services.note_service.get_note_collection", return_value=notes), \
         patch("notenex.services.user_service.get_user_contact", get_contact), \
         patch("notenex.services.user_service.get_user_preference", get_preference):
        yield SimpleNamespace(
            reminders=reminders,
            notes=notes,
            get_contact=get_contact,
            get_preference=get_preference,
        )


@pytest.fixture
def providers():
    """Email and SMS providers that succeed unless told otherwise."""
    send_email = AsyncMock(return_value=True)
    send_sms = AsyncMock(return_value=True)
    with patch("notenex.services.third_party_services.send_email", send_email), \
         patch("notenex.services.third_party_services.send_sms", send_sms):
        yield SimpleNamespace(send_email=send_email, send_sms=send_sms)
