import sqlite3
import json
from pathlib import Path
from typing import Optional, Dict, Any
from contextlib import contextmanager
import threading
import time

from config.app_config import appConfig

if appConfig.storage.dataDir:
    storage_path = Path(appConfig.storage.dataDir)
else:
    storage_path = Path(__file__).resolve().parent.parent / 'local_data'

DB_PATH = storage_path / appConfig.storage.dbName

SCHEMA_VERSION = 1

# Thread-local storage for database connections
_local = threading.local()


def get_schema_version(conn):
    try:
        cursor = conn.execute("PRAGMA user_version")
        return cursor.fetchone()[0]
    except sqlite3.DatabaseError:
        return 0


def set_schema_version(conn, version):
    conn.execute(f"PRAGMA user_version = {int(version)}")


def migrate_database(conn):
    current_version = get_schema_version(conn)

    if current_version < 1:
        print("[database] Migrating to version 1: session memory table")
        conn.execute('''
            CREATE TABLE IF NOT EXISTS session_memory (
                session_id TEXT PRIMARY KEY,
                memory_data TEXT NOT NULL DEFAULT '{}',
                created_at INTEGER,
                updated_at INTEGER
            )
        ''')
        set_schema_version(conn, 1)
        print("[database] Migration to version 1 complete")


def _open(path: Path) -> sqlite3.Connection:
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=30.0, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    migrate_database(conn)
    conn.commit()
    return conn


@contextmanager
def get_connection():
    path = Path(DB_PATH)
    conn = getattr(_local, 'connection', None)
    if conn is None or getattr(_local, 'path', None) != path:
        if conn is not None:
            conn.close()
        _local.connection = _open(path)
        _local.path = path
    try:
        yield _local.connection
    except Exception as e:
        _local.connection.rollback()
        print(f"[database] Error: {e}")
        raise


def close_connection():
    if getattr(_local, 'connection', None) is not None:
        _local.connection.close()
        _local.connection = None
        _local.path = None


def init_database():
    with get_connection() as conn:
        version = get_schema_version(conn)
    print(f"[database] Session memory store ready at {DB_PATH} (schema v{version})")


def get_session_memory(session_id: str) -> Optional[Dict[str, Any]]:
    with get_connection() as conn:
        row = conn.execute(
            'SELECT memory_data FROM session_memory WHERE session_id = ?', (session_id,)
        ).fetchone()
    if row is None:
        return None
    return json.loads(row['memory_data'] or '{}')


def upsert_session_memory(session_id: str, memory: Dict[str, Any]) -> None:
    now = int(time.time() * 1000)
    with get_connection() as conn:
        conn.execute('''
            INSERT INTO session_memory (session_id, memory_data, created_at, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(session_id) DO UPDATE SET
                memory_data = excluded.memory_data, updated_at = excluded.updated_at
        ''', (session_id, json.dumps(memory, ensure_ascii=False), now, now))
        conn.commit()


def delete_session_memory(session_id: str) -> bool:
    with get_connection() as conn:
        cursor = conn.execute('DELETE FROM session_memory WHERE session_id = ?', (session_id,))
        conn.commit()
    return cursor.rowcount > 0
