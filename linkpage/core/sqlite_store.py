"""
SQLite Document Store
=====================

Local stand-in for the hosted document database, used for development and
tests. Documents are JSON blobs keyed by (collection, doc_id) in a single
table; insertion order is kept in ``seq``.
"""

import json
import logging
import os
import sqlite3
import uuid
from datetime import datetime, timezone

from .errors import AlreadyExistsError, NotFoundError, StoreError
from .store import Document, DocumentStore

logger = logging.getLogger(__name__)


def _json_default(value):
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _parse_created_at(value):
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _sort_value(value):
    # Numbers before anything else, like Firestore's type ordering
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value, '')
    return (1, 0, str(value))


class SqliteStore(DocumentStore):
    """Document store backed by a local sqlite file"""

    name = 'sqlite'

    def __init__(self, db_path):
        self.db_path = db_path
        self.init_db()

    def _connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self):
        """Create the documents table if it doesn't exist"""
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute('''
                    CREATE TABLE IF NOT EXISTS documents (
                        seq INTEGER PRIMARY KEY AUTOINCREMENT,
                        collection TEXT NOT NULL,
                        doc_id TEXT NOT NULL,
                        data TEXT NOT NULL DEFAULT '{}',
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        UNIQUE (collection, doc_id)
                    )
                ''')
                cursor.execute('''
                    CREATE INDEX IF NOT EXISTS idx_documents_collection
                    ON documents(collection, seq)
                ''')
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error initializing document store at {self.db_path}: {e}")
            raise StoreError(f"Could not open local store: {e}")

    def _row_to_document(self, row):
        return Document(
            id=row['doc_id'],
            data=json.loads(row['data']),
            created_at=_parse_created_at(row['created_at']),
        )

    def list_documents(self, collection, order_by=None, token=None):
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute('''
                    SELECT doc_id, data, created_at FROM documents
                    WHERE collection = ?
                    ORDER BY seq ASC
                ''', (collection,))
                documents = [self._row_to_document(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StoreError(f"Could not read {collection}: {e}")

        if order_by:
            # Documents without the field are left out, as a Firestore orderBy does
            documents = [doc for doc in documents if order_by in doc.data]
            documents.sort(key=lambda doc: _sort_value(doc.data[order_by]))
        return documents

    def get_document(self, collection, doc_id, token=None):
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute('''
                    SELECT doc_id, data, created_at FROM documents
                    WHERE collection = ? AND doc_id = ?
                ''', (collection, doc_id))
                row = cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Could not read {collection}/{doc_id}: {e}")
        return self._row_to_document(row) if row else None

    def create_document(self, collection, data, doc_id=None, token=None):
        doc_id = doc_id or uuid.uuid4().hex
        now = datetime.now(timezone.utc).isoformat()

        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute('''
                    INSERT INTO documents (collection, doc_id, data, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                ''', (collection, doc_id, json.dumps(data, default=_json_default), now, now))
                conn.commit()
        except sqlite3.IntegrityError:
            raise AlreadyExistsError(f"{collection}/{doc_id} already exists")
        except sqlite3.Error as e:
            raise StoreError(f"Could not write {collection}: {e}")

        return Document(id=doc_id, data=json.loads(json.dumps(data, default=_json_default)),
                        created_at=_parse_created_at(now))

    def update_document(self, collection, doc_id, data, token=None):
        now = datetime.now(timezone.utc).isoformat()

        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute('''
                    SELECT doc_id, data, created_at FROM documents
                    WHERE collection = ? AND doc_id = ?
                ''', (collection, doc_id))
                row = cursor.fetchone()
                if not row:
                    raise NotFoundError(f"{collection}/{doc_id} not found")

                merged = json.loads(row['data'])
                merged.update(json.loads(json.dumps(data, default=_json_default)))
                cursor.execute('''
                    UPDATE documents SET data = ?, updated_at = ?
                    WHERE collection = ? AND doc_id = ?
                ''', (json.dumps(merged), now, collection, doc_id))
                conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Could not update {collection}/{doc_id}: {e}")

        return Document(id=doc_id, data=merged, created_at=_parse_created_at(row['created_at']))

    def delete_document(self, collection, doc_id, token=None):
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute('DELETE FROM documents WHERE collection = ? AND doc_id = ?',
                               (collection, doc_id))
                conn.commit()
                deleted = cursor.rowcount > 0
        except sqlite3.Error as e:
            raise StoreError(f"Could not delete {collection}/{doc_id}: {e}")

        if not deleted:
            raise NotFoundError(f"{collection}/{doc_id} not found")

    def ping(self):
        try:
            with self._connect() as conn:
                conn.execute('SELECT 1')
        except sqlite3.Error as e:
            raise StoreError(f"Local store unreachable: {e}")
        return {'backend': self.name, 'path': self.db_path}
