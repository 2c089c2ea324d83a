from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

import db_setup
from contact_store import ContactStore
from db_models import Contact, LinkPrecedence


class FakeContactStore:
    """In-memory store with the same contract as ContactStore."""

    def __init__(self):
        self.contacts = {}
        self.writes = []
        self._clock = datetime(2023, 4, 1, tzinfo=timezone.utc)

    def _ordered(self, contacts):
        return [c.model_copy() for c in sorted(contacts, key=lambda c: (c.createdAt, c.id))]

    def find_by_attributes(self, email=None, phone_number=None):
        return self._ordered(
            c
            for c in self.contacts.values()
            if (email is not None and c.email == email)
            or (phone_number is not None and c.phoneNumber == phone_number)
        )

    def find_by_ids_or_linked_ids(self, ids):
        ids = set(ids)
        return self._ordered(c for c in self.contacts.values() if c.id in ids or c.linkedId in ids)

    def create(self, email, phone_number, link_precedence, linked_id=None):
        self._clock += timedelta(minutes=1)
        contact = Contact(
            id=len(self.contacts) + 1,
            email=email,
            phoneNumber=phone_number,
            linkedId=linked_id,
            linkPrecedence=link_precedence,
            createdAt=self._clock,
        )
        self.contacts[contact.id] = contact
        self.writes.append(("create", contact.id))
        return contact.model_copy()

    def update_link(self, contact_id, link_precedence, linked_id):
        self.contacts[contact_id].linkPrecedence = LinkPrecedence(link_precedence)
        self.contacts[contact_id].linkedId = linked_id
        self.writes.append(("update_link", contact_id))

    def relink_secondaries(self, old_primary_id, new_primary_id):
        moved = 0
        for c in self.contacts.values():
            if c.linkPrecedence == LinkPrecedence.secondary and c.linkedId == old_primary_id:
                c.linkedId = new_primary_id
                moved += 1
        self.writes.append(("relink", old_primary_id))
        return moved


@pytest.fixture
def fake_store():
    return FakeContactStore()


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = str(tmp_path / "contacts.db")
    monkeypatch.setattr(db_setup, "DB_NAME", path)
    db_setup.init_db(path)
    return path


@pytest.fixture
def store(db_path):
    conn = db_setup.get_db_connection(db_path)
    yield ContactStore(conn)
    conn.close()


@pytest.fixture
def client(db_path):
    from main import app

    with TestClient(app) as test_client:
        yield test_client
