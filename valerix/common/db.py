import os
import sqlite3
from pathlib import Path

DB_ENV = "DB_PATH"
DEFAULT_DB_PATH = str(Path("data") / "inventory.db")
SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"


def get_db_path() -> str:
    return os.environ.get(DB_ENV, DEFAULT_DB_PATH)


def connect(db_path: str | None = None) -> sqlite3.Connection:
    path = db_path or get_db_path()
    conn = sqlite3.connect(path, check_same_thread=False, timeout=5)
    # WAL lets the API threads read while the consumer holds the write lock.
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


def init_db(db_path: str | None = None) -> None:
    path = db_path or get_db_path()
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = connect(path)
    try:
        # Schema and seed rows are idempotent, so existing DBs are safe.
        with open(SCHEMA_PATH, "r", encoding="utf-8") as handle:
            conn.executescript(handle.read())
        conn.commit()
    finally:
        conn.close()
