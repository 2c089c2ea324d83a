import os
import sqlite3


def _float_env(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


DB_NAME = os.getenv("CONTACTS_DB_PATH", "contacts.db")
DB_TIMEOUT = _float_env("CONTACTS_DB_TIMEOUT", 5.0)


def init_db(db_path: str = None):
    conn = sqlite3.connect(db_path or DB_NAME)
    cursor = conn.cursor()

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS Contact (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            phoneNumber TEXT,
            email TEXT,
            linkedId INTEGER,
            linkPrecedence TEXT CHECK(linkPrecedence IN ('secondary', 'primary')),
            createdAt DATETIME DEFAULT CURRENT_TIMESTAMP,
            updatedAt DATETIME DEFAULT CURRENT_TIMESTAMP,
            deletedAt DATETIME,
            FOREIGN KEY (linkedId) REFERENCES Contact (id)
        )
    ''')
    cursor.execute("CREATE INDEX IF NOT EXISTS ix_contact_email ON Contact (email)")
    cursor.execute("CREATE INDEX IF NOT EXISTS ix_contact_phone ON Contact (phoneNumber)")
    cursor.execute("CREATE INDEX IF NOT EXISTS ix_contact_linked ON Contact (linkedId)")
    conn.commit()

    conn.close()


def get_db_connection(db_path: str = None):
    # autocommit; ContactStore.transaction() issues BEGIN/COMMIT itself
    conn = sqlite3.connect(
        db_path or DB_NAME,
        timeout=DB_TIMEOUT,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
