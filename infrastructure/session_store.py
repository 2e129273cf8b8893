"""Session/selection persistence on an in-memory SQLite database.

All reads and writes go to an in-memory `sqlite3` connection owned by the UI
thread. Durability comes from whole-database snapshots (`serialize()`) handed
to a single background writer that puts them into a key/value blob store.
Callers never wait for the write: selection and navigation changes request a
snapshot right away, thumbnail updates are debounced, and a snapshot that has
not been written yet is superseded by a newer one.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
import sqlite3
import threading
import time

from PySide6.QtCore import QObject, QRunnable, QThreadPool, QTimer
from loguru import logger

from core.errors import StoreUninitializedError
from core.models import GridMode, ImageItem, SessionRecord, StoredItem
from core.services.interfaces import IBlobStore

DEFAULT_DB_KEY = "photo_picker_db"
DEFAULT_DEBOUNCE_MS = 3000

TABLES = """
CREATE TABLE IF NOT EXISTS sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    folder_name TEXT NOT NULL,
    folder_key TEXT,
    created_at INTEGER NOT NULL,
    last_accessed INTEGER NOT NULL,
    grid_mode TEXT NOT NULL DEFAULT '5x5',
    current_page INTEGER NOT NULL DEFAULT 0,
    focused_index INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id INTEGER NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    relative_path TEXT NOT NULL,
    display_name TEXT NOT NULL,
    size_bytes INTEGER NOT NULL DEFAULT 0,
    last_modified INTEGER NOT NULL DEFAULT 0,
    selected INTEGER NOT NULL DEFAULT 0,
    thumbnail_data BLOB,
    UNIQUE (session_id, relative_path)
);
"""

INDEXES = """
CREATE INDEX IF NOT EXISTS idx_sessions_folder_name ON sessions(folder_name);
CREATE INDEX IF NOT EXISTS idx_sessions_folder_key ON sessions(folder_key);
"""

_SESSION_COLUMNS = (
    "id, folder_name, folder_key, created_at, last_accessed, grid_mode, current_page, focused_index"
)
_ITEM_COLUMNS = (
    "id, session_id, relative_path, display_name, size_bytes, last_modified, selected, "
    "thumbnail_data"
)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(int(ms) / 1000.0)


def _session_from_row(row: sqlite3.Row) -> SessionRecord:
    return SessionRecord(
        session_id=int(row["id"]),
        folder_name=row["folder_name"],
        folder_key=row["folder_key"],
        created_at=_to_datetime(row["created_at"]),
        last_accessed_at=_to_datetime(row["last_accessed"]),
        grid_mode=GridMode.parse(row["grid_mode"]),
        current_page=int(row["current_page"] or 0),
        focused_index=int(row["focused_index"] or 0),
    )


def _item_from_row(row: sqlite3.Row) -> StoredItem:
    data = row["thumbnail_data"]
    return StoredItem(
        item_id=int(row["id"]),
        session_id=int(row["session_id"]),
        relative_path=row["relative_path"],
        display_name=row["display_name"],
        size_bytes=int(row["size_bytes"] or 0),
        last_modified=int(row["last_modified"] or 0),
        selected=bool(row["selected"]),
        thumbnail_data=bytes(data) if data is not None else None,
    )


class _SnapshotJob(QRunnable):
    """Background job writing queued snapshots until none is left."""

    def __init__(self, writer: SnapshotWriter) -> None:
        super().__init__()
        self._writer = writer

    def run(self) -> None:  # type: ignore[override]
        self._writer.drain_pending()


class SnapshotWriter:
    """Single-threaded, coalescing writer of database snapshots.

    Only the most recent snapshot is kept while a write is in progress; an
    older snapshot that was not started yet is dropped.
    """

    def __init__(self, blob_store: IBlobStore, key: str, parent: QObject | None = None) -> None:
        self._blobs = blob_store
        self._key = key
        self._pool = QThreadPool(parent)
        self._pool.setMaxThreadCount(1)
        self._lock = threading.Lock()
        self._pending: bytes | None = None
        self._scheduled = False
        self.writes = 0
        self.superseded = 0
        self.last_error: Exception | None = None

    def submit(self, data: bytes) -> None:
        """Queue `data` for writing without waiting for it."""
        with self._lock:
            if self._pending is not None:
                self.superseded += 1
            self._pending = data
            if self._scheduled:
                return
            self._scheduled = True
        self._pool.start(_SnapshotJob(self))

    def drain_pending(self) -> None:
        """Write queued snapshots; runs on the writer thread."""
        while True:
            with self._lock:
                data = self._pending
                self._pending = None
                if data is None:
                    self._scheduled = False
                    return
            try:
                self._blobs.put(self._key, data)
            except OSError as ex:
                logger.error("Session store sync failed ({} bytes): {}", len(data), ex)
                with self._lock:
                    self.last_error = ex
            else:
                with self._lock:
                    self.writes += 1
                    self.last_error = None

    def wait(self, timeout_ms: int = -1) -> bool:
        """Block until queued snapshots are written. Returns False on timeout."""
        return self._pool.waitForDone(timeout_ms)


class SessionStore:
    """Durable, queryable record of browsing sessions and their items.

    The store must be initialized with `init()` before use and released with
    `close()`. Every operation on an uninitialized store raises
    `StoreUninitializedError`.
    """

    def __init__(
        self,
        blob_store: IBlobStore,
        *,
        key: str = DEFAULT_DB_KEY,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        parent: QObject | None = None,
    ) -> None:
        self._blobs = blob_store
        self._key = key
        self._conn: sqlite3.Connection | None = None
        # `parent` owns the writer pool and the debounce timer
        self._writer = SnapshotWriter(blob_store, key, parent)
        self._debounce = QTimer(parent)
        self._debounce.setSingleShot(True)
        self._debounce.setInterval(max(0, int(debounce_ms)))
        self._debounce.timeout.connect(self._on_debounce_timeout)

    # Lifecycle
    def init(self) -> None:
        """Open the in-memory database and restore the last durable snapshot."""
        if self._conn is not None:
            return
        data = self._blobs.get(self._key)
        conn = self._open(data) if data else None
        if conn is None:
            conn = self._connect()
            conn.executescript(TABLES + INDEXES)
        self._conn = conn
        logger.info(
            "Session store initialized ({} sessions, snapshot {} bytes)",
            len(self.list_sessions()),
            len(data) if data else 0,
        )

    @property
    def is_initialized(self) -> bool:
        return self._conn is not None

    def close(self) -> None:
        """Flush pending snapshots and release the database."""
        if self._conn is None:
            return
        self.flush()
        self._debounce.stop()
        self._conn.close()
        self._conn = None
        logger.info("Session store closed")

    # Sync
    def request_sync(self) -> None:
        """Snapshot the database now and write it in the background."""
        conn = self._db("request_sync")
        self._debounce.stop()
        self._writer.submit(conn.serialize())

    def schedule_sync(self) -> None:
        """Request a snapshot after the debounce interval; restarts on each call."""
        self._db("schedule_sync")
        self._debounce.start()

    @property
    def has_pending_sync(self) -> bool:
        return self._debounce.isActive()

    def flush(self, timeout_ms: int = -1) -> bool:
        """Write any debounced snapshot now and wait for the writer."""
        if self._debounce.isActive() and self._conn is not None:
            self.request_sync()
        return self._writer.wait(timeout_ms)

    @property
    def last_sync_error(self) -> Exception | None:
        return self._writer.last_error

    @property
    def sync_count(self) -> int:
        return self._writer.writes

    def _on_debounce_timeout(self) -> None:
        if self._conn is not None:
            self.request_sync()

    # Sessions
    def create_session(
        self,
        folder_name: str,
        grid_mode: GridMode = GridMode.GRID_5X5,
        folder_key: str | None = None,
    ) -> SessionRecord:
        """Create a session for `folder_name` and return it."""
        conn = self._db("create_session")
        now = _now_ms()
        with conn:
            cur = conn.execute(
                "INSERT INTO sessions (folder_name, folder_key, created_at, last_accessed, "
                "grid_mode) VALUES (?, ?, ?, ?, ?)",
                (folder_name, folder_key, now, now, grid_mode.value),
            )
        session_id = int(cur.lastrowid)
        logger.info("Created session {} for folder {}", session_id, folder_name)
        self.request_sync()
        return SessionRecord(
            session_id=session_id,
            folder_name=folder_name,
            folder_key=folder_key,
            created_at=_to_datetime(now),
            last_accessed_at=_to_datetime(now),
            grid_mode=grid_mode,
        )

    def update_session(
        self, session_id: int, grid_mode: GridMode, current_page: int, focused_index: int
    ) -> None:
        """Persist the navigation position of a session."""
        conn = self._db("update_session")
        with conn:
            conn.execute(
                "UPDATE sessions SET grid_mode = ?, current_page = ?, focused_index = ?, "
                "last_accessed = ? WHERE id = ?",
                (grid_mode.value, int(current_page), int(focused_index), _now_ms(), session_id),
            )
        self.request_sync()

    def get_session(self, session_id: int) -> SessionRecord | None:
        conn = self._db("get_session")
        row = conn.execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE id = ?", (session_id,)
        ).fetchone()
        return _session_from_row(row) if row else None

    def find_session(self, folder_name: str, folder_key: str | None = None) -> SessionRecord | None:
        """Find the most recent session for a folder.

        Sessions are matched by `folder_key` first. Name-only matching is a
        fallback limited to sessions that never recorded a key, so two
        different folders sharing a name do not collide. A legacy session
        matched by name adopts the key.
        """
        conn = self._db("find_session")
        order = "ORDER BY last_accessed DESC, id DESC LIMIT 1"
        if folder_key:
            row = conn.execute(
                f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE folder_key = ? {order}",
                (folder_key,),
            ).fetchone()
            if row:
                return _session_from_row(row)
            row = conn.execute(
                f"SELECT {_SESSION_COLUMNS} FROM sessions "
                f"WHERE folder_name = ? AND folder_key IS NULL {order}",
                (folder_name,),
            ).fetchone()
            if row is None:
                return None
            with conn:
                conn.execute(
                    "UPDATE sessions SET folder_key = ? WHERE id = ?", (folder_key, row["id"])
                )
            self.request_sync()
            return self.get_session(int(row["id"]))
        row = conn.execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE folder_name = ? {order}",
            (folder_name,),
        ).fetchone()
        return _session_from_row(row) if row else None

    def list_sessions(self) -> list[SessionRecord]:
        """Return all sessions, most recently accessed first."""
        conn = self._db("list_sessions")
        rows = conn.execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions ORDER BY last_accessed DESC, id DESC"
        ).fetchall()
        return [_session_from_row(r) for r in rows]

    def delete_session(self, session_id: int) -> None:
        """Delete a session together with all of its items."""
        conn = self._db("delete_session")
        with conn:
            conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        logger.info("Deleted session {}", session_id)
        self.request_sync()

    # Items
    def insert_items(self, session_id: int, items: Iterable[ImageItem]) -> int:
        """Insert item rows, ignoring paths the session already has.

        Returns:
            Number of rows inserted.
        """
        conn = self._db("insert_items")
        rows = [
            (
                session_id,
                it.relative_path,
                it.display_name,
                int(it.size_bytes),
                int(it.last_modified),
                1 if it.selected else 0,
                it.thumbnail_data,
            )
            for it in items
        ]
        if not rows:
            return 0
        with conn:
            before = conn.total_changes
            conn.executemany(
                "INSERT OR IGNORE INTO items (session_id, relative_path, display_name, size_bytes, "
                "last_modified, selected, thumbnail_data) VALUES (?, ?, ?, ?, ?, ?, ?)",
                rows,
            )
            inserted = conn.total_changes - before
            self._touch(conn, session_id)
        logger.info("Inserted {} item rows into session {}", inserted, session_id)
        self.request_sync()
        return inserted

    def update_item_selection(self, session_id: int, relative_path: str, selected: bool) -> bool:
        """Persist one item's selection flag. Returns False if the row is unknown."""
        conn = self._db("update_item_selection")
        with conn:
            cur = conn.execute(
                "UPDATE items SET selected = ? WHERE session_id = ? AND relative_path = ?",
                (1 if selected else 0, session_id, relative_path),
            )
            self._touch(conn, session_id)
        if cur.rowcount == 0:
            logger.warning(
                "Selection update for unknown item {} in session {}", relative_path, session_id
            )
        self.request_sync()
        return cur.rowcount > 0

    def update_items_selection(
        self, session_id: int, relative_paths: Iterable[str], selected: bool
    ) -> int:
        """Persist one selection flag for many items with a single snapshot.

        Returns:
            Number of rows updated.
        """
        conn = self._db("update_items_selection")
        flag = 1 if selected else 0
        rows = [(flag, session_id, path) for path in relative_paths]
        if not rows:
            return 0
        with conn:
            before = conn.total_changes
            conn.executemany(
                "UPDATE items SET selected = ? WHERE session_id = ? AND relative_path = ?", rows
            )
            updated = conn.total_changes - before
            self._touch(conn, session_id)
        if updated < len(rows):
            logger.warning(
                "Bulk selection matched {} of {} items in session {}",
                updated,
                len(rows),
                session_id,
            )
        self.request_sync()
        return updated

    def update_item_thumbnail(self, session_id: int, relative_path: str, data: bytes) -> bool:
        """Persist one item's thumbnail; the durable write is debounced."""
        conn = self._db("update_item_thumbnail")
        with conn:
            cur = conn.execute(
                "UPDATE items SET thumbnail_data = ? WHERE session_id = ? AND relative_path = ?",
                (data, session_id, relative_path),
            )
            self._touch(conn, session_id)
        self.schedule_sync()
        return cur.rowcount > 0

    def get_session_items(self, session_id: int) -> list[StoredItem]:
        """Return every item row of a session ordered by relative path."""
        conn = self._db("get_session_items")
        rows = conn.execute(
            f"SELECT {_ITEM_COLUMNS} FROM items WHERE session_id = ? ORDER BY relative_path",
            (session_id,),
        ).fetchall()
        return [_item_from_row(r) for r in rows]

    def get_selected_items(self, session_id: int) -> list[StoredItem]:
        conn = self._db("get_selected_items")
        rows = conn.execute(
            f"SELECT {_ITEM_COLUMNS} FROM items WHERE session_id = ? AND selected = 1 "
            "ORDER BY relative_path",
            (session_id,),
        ).fetchall()
        return [_item_from_row(r) for r in rows]

    def prune_items(self, session_id: int, keep_paths: Iterable[str]) -> int:
        """Delete rows whose relative path is not in `keep_paths`.

        Reconciliation never removes rows for files that vanished; this is
        the explicit cleanup step. Returns the number of rows deleted.
        """
        conn = self._db("prune_items")
        keep = set(keep_paths)
        stale = [
            (session_id, r["relative_path"])
            for r in conn.execute(
                "SELECT relative_path FROM items WHERE session_id = ?", (session_id,)
            )
            if r["relative_path"] not in keep
        ]
        if not stale:
            return 0
        with conn:
            conn.executemany(
                "DELETE FROM items WHERE session_id = ? AND relative_path = ?", stale
            )
            self._touch(conn, session_id)
        logger.info("Pruned {} stale rows from session {}", len(stale), session_id)
        self.request_sync()
        return len(stale)

    # Backup
    def export_snapshot(self) -> bytes:
        """Return the whole database as bytes."""
        return self._db("export_snapshot").serialize()

    def import_snapshot(self, data: bytes) -> None:
        """Replace the whole database with `data` and persist it.

        Raises:
            ValueError: If `data` is not a valid session database.
        """
        old = self._db("import_snapshot")
        conn = self._open(data)
        if conn is None:
            raise ValueError("Snapshot is not a valid session database")
        self._debounce.stop()
        old.close()
        self._conn = conn
        logger.info("Imported session snapshot ({} bytes)", len(data))
        self.request_sync()

    # Internals
    def _db(self, operation: str) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreUninitializedError(operation)
        return self._conn

    def _touch(self, conn: sqlite3.Connection, session_id: int) -> None:
        conn.execute("UPDATE sessions SET last_accessed = ? WHERE id = ?", (_now_ms(), session_id))

    @staticmethod
    def _connect() -> sqlite3.Connection:
        conn = sqlite3.connect(":memory:")
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _open(self, data: bytes) -> sqlite3.Connection | None:
        """Open a snapshot, upgrading older layouts. None if it is unusable."""
        conn = self._connect()
        try:
            conn.deserialize(data)
            conn.execute("PRAGMA foreign_keys = ON")
            conn.executescript(TABLES)
            columns = {r["name"] for r in conn.execute("PRAGMA table_info(sessions)")}
            if "folder_key" not in columns:
                conn.execute("ALTER TABLE sessions ADD COLUMN folder_key TEXT")
            if "focused_index" not in columns:
                conn.execute(
                    "ALTER TABLE sessions ADD COLUMN focused_index INTEGER NOT NULL DEFAULT 0"
                )
            conn.executescript(INDEXES)
            conn.execute("SELECT COUNT(*) FROM items").fetchone()
        except sqlite3.DatabaseError as ex:
            logger.error("Discarding unreadable session snapshot ({} bytes): {}", len(data), ex)
            conn.close()
            return None
        return conn
