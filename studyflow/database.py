# studyflow/database.py

import json
import logging
import os
import sqlite3
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional

from studyflow.exceptions import StoreFailure

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("STUDYFLOW_DB", "studyflow.db")

Record = Dict[str, Any]


def connect(database_url: str = DATABASE_URL) -> sqlite3.Connection:
    conn = sqlite3.connect(database_url, check_same_thread=False)
    conn.row_factory = sqlite3.Row # Allows accessing columns by name
    return conn


def create_tables(conn: Optional[sqlite3.Connection] = None):
    owns_connection = conn is None
    if owns_connection:
        conn = connect()
    cursor = conn.cursor()

    # Every collection shares one table; records are stored as JSON text.
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS documents (
            collection TEXT NOT NULL,
            id TEXT NOT NULL,
            data TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            PRIMARY KEY (collection, id)
        );
    """)
    conn.commit()
    if owns_connection:
        conn.close()


class DocumentStore:
    """
    Generic per-collection document store over a SQLite connection.

    Records are plain JSON-compatible dicts. `write` always replaces the whole
    record; there is no partial update.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def generate_id(self) -> str:
        return uuid.uuid4().hex

    def read(self, collection: str, record_id: str) -> Optional[Record]:
        try:
            row = self.conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND id = ?",
                (collection, record_id)
            ).fetchone()
        except sqlite3.Error as e:
            logger.error("Read of %s/%s failed: %s", collection, record_id, e)
            raise StoreFailure(f"Could not read {collection}/{record_id}") from e
        return json.loads(row["data"]) if row else None

    def write(self, collection: str, record_id: str, record: Record) -> None:
        now_iso = datetime.now().isoformat()
        try:
            data_json = json.dumps(record)
        except (TypeError, ValueError) as e:
            raise StoreFailure(f"Record {collection}/{record_id} is not JSON serializable") from e
        try:
            self.conn.execute(
                """INSERT INTO documents (collection, id, data, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(collection, id) DO UPDATE SET
                       data = excluded.data, updated_at = excluded.updated_at""",
                (collection, record_id, data_json, now_iso, now_iso)
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.error("Write of %s/%s failed: %s", collection, record_id, e)
            raise StoreFailure(f"Could not write {collection}/{record_id}") from e

    def query(self, collection: str, predicate: Callable[[Record], bool]) -> List[Record]:
        try:
            rows = self.conn.execute(
                "SELECT data FROM documents WHERE collection = ?", (collection,)
            ).fetchall()
        except sqlite3.Error as e:
            logger.error("Query of %s failed: %s", collection, e)
            raise StoreFailure(f"Could not query {collection}") from e
        records = [json.loads(row["data"]) for row in rows]
        return [record for record in records if predicate(record)]

    def delete(self, collection: str, record_id: str) -> bool:
        try:
            cursor = self.conn.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, record_id)
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.error("Delete of %s/%s failed: %s", collection, record_id, e)
            raise StoreFailure(f"Could not delete {collection}/{record_id}") from e
        return cursor.rowcount > 0

    def close(self):
        self.conn.close()


def get_db() -> Iterator[DocumentStore]:
    store = DocumentStore(connect())
    try:
        yield store
    finally:
        store.close()
