import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from db_models import Contact, LinkPrecedence

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class ContactStore:
    """SQLite-backed contact store.

    Every method runs on the single connection handed in. Wrap a
    read-modify-write sequence in ``transaction()`` so concurrent requests
    touching the same identity group are serialized by the database.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    @contextmanager
    def transaction(self):
        self.conn.execute("BEGIN IMMEDIATE")
        try:
            yield self
        except BaseException:
            self.conn.execute("ROLLBACK")
            raise
        else:
            self.conn.execute("COMMIT")

    def _select(self, where: str, params) -> List[Contact]:
        cursor = self.conn.execute(
            f"""
            SELECT * FROM Contact
            WHERE deletedAt IS NULL AND ({where})
            ORDER BY createdAt ASC, id ASC
            """,
            params,
        )
        return [Contact(**dict(row)) for row in cursor.fetchall()]

    def find_by_attributes(self, email: Optional[str] = None, phone_number: Optional[str] = None) -> List[Contact]:
        clauses = []
        params = []
        if email is not None:
            clauses.append("email = ?")
            params.append(email)
        if phone_number is not None:
            clauses.append("phoneNumber = ?")
            params.append(phone_number)
        if not clauses:
            return []
        return self._select(" OR ".join(clauses), params)

    def find_by_ids_or_linked_ids(self, ids: Iterable[int]) -> List[Contact]:
        ids = sorted(set(ids))
        if not ids:
            return []
        marks = ", ".join("?" for _ in ids)
        return self._select(f"id IN ({marks}) OR linkedId IN ({marks})", ids + ids)

    def get(self, contact_id: int) -> Optional[Contact]:
        """Single-row lookup for inspection; not used by the resolver."""
        found = self._select("id = ?", (contact_id,))
        return found[0] if found else None

    def create(
        self,
        email: Optional[str],
        phone_number: Optional[str],
        link_precedence: LinkPrecedence,
        linked_id: Optional[int] = None,
    ) -> Contact:
        now = _now()
        cursor = self.conn.execute(
            """
            INSERT INTO Contact (phoneNumber, email, linkedId, linkPrecedence, createdAt, updatedAt)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (phone_number, email, linked_id, LinkPrecedence(link_precedence).value, now, now),
        )
        logger.debug("Inserted contact %s (%s)", cursor.lastrowid, link_precedence)
        return Contact(
            id=cursor.lastrowid,
            email=email,
            phoneNumber=phone_number,
            linkedId=linked_id,
            linkPrecedence=link_precedence,
            createdAt=now,
            updatedAt=now,
        )

    def update_link(self, contact_id: int, link_precedence: LinkPrecedence, linked_id: Optional[int]) -> None:
        self.conn.execute(
            """
            UPDATE Contact
            SET linkedId = ?, linkPrecedence = ?, updatedAt = ?
            WHERE id = ?
            """,
            (linked_id, LinkPrecedence(link_precedence).value, _now(), contact_id),
        )

    def relink_secondaries(self, old_primary_id: int, new_primary_id: int) -> int:
        cursor = self.conn.execute(
            """
            UPDATE Contact
            SET linkedId = ?, updatedAt = ?
            WHERE linkedId = ? AND linkPrecedence = 'secondary' AND deletedAt IS NULL
            """,
            (new_primary_id, _now(), old_primary_id),
        )
        return cursor.rowcount
