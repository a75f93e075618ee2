import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from config import get_settings


SCHEMA = [
    '''
        CREATE TABLE IF NOT EXISTS Contact (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            phoneNumber TEXT,
            email TEXT,
            linkedId INTEGER,
            linkPrecedence TEXT NOT NULL CHECK(linkPrecedence IN ('secondary', 'primary')),
            createdAt DATETIME NOT NULL,
            updatedAt DATETIME NOT NULL,
            deletedAt DATETIME,
            FOREIGN KEY (linkedId) REFERENCES Contact (id)
        )
    ''',
    "CREATE INDEX IF NOT EXISTS idx_contact_email ON Contact (email)",
    "CREATE INDEX IF NOT EXISTS idx_contact_phone_number ON Contact (phoneNumber)",
    "CREATE INDEX IF NOT EXISTS idx_contact_linked_id ON Contact (linkedId)",
]


def init_db(db_path: Optional[str] = None):
    """Create the Contact table and its lookup indexes. Safe to call on every start."""
    conn = get_db_connection(db_path)
    try:
        for statement in SCHEMA:
            conn.execute(statement)
        conn.commit()
    finally:
        conn.close()


def get_db_connection(db_path: Optional[str] = None, timeout: Optional[float] = None):
    settings = get_settings()
    conn = sqlite3.connect(
        db_path or settings.DATABASE_PATH,
        timeout=settings.DB_TIMEOUT if timeout is None else timeout,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(db_path: Optional[str] = None, timeout: Optional[float] = None) -> Iterator[sqlite3.Connection]:
    """Yield a connection inside one write transaction.

    BEGIN IMMEDIATE takes the database write lock up front, so concurrent
    transactions run one after another. Any exception, including
    cancellation, rolls everything back.
    """
    conn = get_db_connection(db_path, timeout)
    conn.isolation_level = None
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")
    finally:
        conn.close()
