import sqlite3
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence

from db_models import Contact
from db_setup import get_db_connection, transaction
from errors import MissingGeneratedIdError, StorageError


COLUMNS = "id, phoneNumber, email, linkedId, linkPrecedence, createdAt, updatedAt, deletedAt"


def _timestamp(value):
    if value is None:
        return None
    return value.isoformat(timespec="microseconds")


def _contact_from_row(row) -> Contact:
    return Contact(**dict(row))


class _ContactQueries:
    """Contact SQL shared by the ambient and transaction-scoped repositories.

    Subclasses decide which connection a statement runs on by implementing
    ``_execute``, which returns the fetched rows and the last inserted row id.
    """

    def _execute(self, query: str, params: Sequence = ()):
        raise NotImplementedError

    def _run(self, query: str, params: Sequence = ()):
        try:
            return self._execute(query, params)
        except sqlite3.Error as exc:
            raise StorageError(f"contact query failed: {exc}") from exc

    def find_by_email_or_phone(self, email: Optional[str] = None, phone: Optional[str] = None) -> List[Contact]:
        clauses = []
        params = []
        if email is not None:
            clauses.append("email = ?")
            params.append(email)
        if phone is not None:
            clauses.append("phoneNumber = ?")
            params.append(phone)
        if not clauses:
            raise ValueError("at least one of email or phone must be provided")

        query = f"""
            SELECT {COLUMNS} FROM Contact
            WHERE {" OR ".join(clauses)}
            ORDER BY createdAt ASC, id ASC
        """
        rows, _ = self._run(query, params)
        return [_contact_from_row(row) for row in rows]

    def find_by_ids(self, ids: Sequence[int]) -> List[Contact]:
        if not ids:
            return []
        placeholders = ", ".join(["?"] * len(ids))
        query = f"""
            SELECT {COLUMNS} FROM Contact
            WHERE id IN ({placeholders})
            ORDER BY createdAt ASC, id ASC
        """
        rows, _ = self._run(query, list(ids))
        return [_contact_from_row(row) for row in rows]

    def create(self, contact: Contact) -> Contact:
        """Insert the contact and return a copy carrying its generated id."""
        _, row_id = self._run("""
            INSERT INTO Contact (phoneNumber, email, linkedId, linkPrecedence, createdAt, updatedAt, deletedAt)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            contact.phoneNumber,
            contact.email,
            contact.linkedId,
            contact.linkPrecedence.value,
            _timestamp(contact.createdAt),
            _timestamp(contact.updatedAt),
            _timestamp(contact.deletedAt),
        ))
        if not row_id:
            raise MissingGeneratedIdError("no id returned from contact insert")
        return contact.model_copy(update={"id": row_id})

    def update(self, contact: Contact) -> None:
        if contact.id is None:
            raise ValueError("id is required for update")
        self._run("""
            UPDATE Contact
            SET phoneNumber = ?,
                email = ?,
                linkedId = ?,
                linkPrecedence = ?,
                updatedAt = ?,
                deletedAt = ?
            WHERE id = ?
        """, (
            contact.phoneNumber,
            contact.email,
            contact.linkedId,
            contact.linkPrecedence.value,
            _timestamp(contact.updatedAt),
            _timestamp(contact.deletedAt),
            contact.id,
        ))


class TransactionContactRepository(_ContactQueries):
    """Runs every statement on one connection with an open transaction."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def _execute(self, query, params=()):
        cursor = self.conn.execute(query, params)
        return cursor.fetchall(), cursor.lastrowid


class ContactRepository(_ContactQueries):
    """Ambient access: each statement gets its own connection and is committed at once."""

    def __init__(self, db_path: Optional[str] = None, timeout: Optional[float] = None):
        self.db_path = db_path
        self.timeout = timeout

    def _execute(self, query, params=()):
        conn = get_db_connection(self.db_path, self.timeout)
        try:
            cursor = conn.execute(query, params)
            rows = cursor.fetchall()
            conn.commit()
            return rows, cursor.lastrowid
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[TransactionContactRepository]:
        """Open a transaction scope; commits on success, rolls back on any exception."""
        try:
            with transaction(self.db_path, self.timeout) as conn:
                yield TransactionContactRepository(conn)
        except sqlite3.Error as exc:
            raise StorageError(f"contact transaction failed: {exc}") from exc
