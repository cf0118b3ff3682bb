"""SQLite database operations for captured notifications and preferences."""

import sqlite3
from datetime import datetime
from typing import List, Optional, Set, Tuple

from .models import NotificationRecord, SourcePreference

_NOTIFICATION_COLUMNS = (
    "id, source_id, source_name, title, body, timestamp, is_read, is_important, icon"
)


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value is not None else None


def init_db(db_path: str) -> sqlite3.Connection:
    """
    Initialize the database and create tables if they don't exist.

    Args:
        db_path: Path to the SQLite database file, or ":memory:".

    Returns:
        A connection to the database, usable from any thread.
    """
    conn = sqlite3.connect(db_path, check_same_thread=False)
    # SQLite's own LIKE and lower() only fold ASCII letters
    conn.create_function("casefold", 1, _casefold, deterministic=True)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            source_id TEXT NOT NULL,
            source_name TEXT NOT NULL,
            title TEXT NOT NULL,
            body TEXT NOT NULL,
            timestamp INTEGER NOT NULL,
            is_read INTEGER NOT NULL DEFAULT 0,
            is_important INTEGER NOT NULL DEFAULT 0,
            icon BLOB
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_notifications_timestamp ON notifications (timestamp)"
    )
    conn.execute("""
        CREATE TABLE IF NOT EXISTS app_preferences (
            source_id TEXT PRIMARY KEY,
            display_name TEXT NOT NULL,
            is_important INTEGER NOT NULL DEFAULT 0
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS seen_items (
            id TEXT NOT NULL,
            source TEXT NOT NULL,
            first_seen_at TEXT NOT NULL,
            PRIMARY KEY (id, source)
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
    """)
    conn.commit()
    return conn


def _to_record(row: tuple) -> NotificationRecord:
    return NotificationRecord(
        id=row[0],
        source_id=row[1],
        source_name=row[2],
        title=row[3],
        body=row[4],
        timestamp=row[5],
        is_read=bool(row[6]),
        is_important=bool(row[7]),
        icon=bytes(row[8]) if row[8] is not None else None,
    )


def _select(conn: sqlite3.Connection, where: str = "", params: tuple = ()) -> List[NotificationRecord]:
    sql = f"SELECT {_NOTIFICATION_COLUMNS} FROM notifications"
    if where:
        sql += f" WHERE {where}"
    sql += " ORDER BY timestamp DESC, id DESC"
    cursor = conn.execute(sql, params)
    return [_to_record(row) for row in cursor.fetchall()]


def insert_notification(
    conn: sqlite3.Connection,
    source_id: str,
    source_name: str,
    title: str,
    body: str,
    timestamp: int,
    is_important: bool,
    icon: Optional[bytes] = None,
) -> NotificationRecord:
    """
    Append a notification in a single transaction.

    Returns:
        The stored record with its assigned id.
    """
    cursor = conn.execute(
        "INSERT INTO notifications (source_id, source_name, title, body, timestamp, is_read, is_important, icon) "
        "VALUES (?, ?, ?, ?, ?, 0, ?, ?)",
        (source_id, source_name, title, body, timestamp, int(is_important), icon)
    )
    conn.commit()
    return NotificationRecord(
        id=cursor.lastrowid,
        source_id=source_id,
        source_name=source_name,
        title=title,
        body=body,
        timestamp=timestamp,
        is_read=False,
        is_important=is_important,
        icon=icon,
    )


def get_notification(conn: sqlite3.Connection, notification_id: int) -> Optional[NotificationRecord]:
    records = _select(conn, "id = ?", (notification_id,))
    return records[0] if records else None


def get_all_notifications(conn: sqlite3.Connection) -> List[NotificationRecord]:
    return _select(conn)


def get_important_notifications(conn: sqlite3.Connection) -> List[NotificationRecord]:
    return _select(conn, "is_important = 1")


def get_unread_important(conn: sqlite3.Connection) -> List[NotificationRecord]:
    return _select(conn, "is_read = 0 AND is_important = 1")


def search_notifications(conn: sqlite3.Connection, query: str) -> List[NotificationRecord]:
    """
    Case-insensitive substring search over source id, name, title and body.

    Case is folded with Python's str.casefold, so non-ASCII text matches
    regardless of case too. The query is matched literally.

    Args:
        conn: Database connection opened by init_db.
        query: Text to look for.
    """
    needle = query.casefold()
    return _select(
        conn,
        "instr(casefold(source_id), ?) > 0 OR instr(casefold(source_name), ?) > 0 "
        "OR instr(casefold(title), ?) > 0 OR instr(casefold(body), ?) > 0",
        (needle, needle, needle, needle)
    )


def get_by_date_range(conn: sqlite3.Connection, start: int, end: int) -> List[NotificationRecord]:
    return _select(conn, "timestamp BETWEEN ? AND ?", (start, end))


def count_notifications(conn: sqlite3.Connection) -> int:
    cursor = conn.execute("SELECT COUNT(*) FROM notifications")
    return cursor.fetchone()[0]


def mark_read(conn: sqlite3.Connection, notification_id: int) -> int:
    """Mark one notification read. Returns the number of rows changed."""
    cursor = conn.execute(
        "UPDATE notifications SET is_read = 1 WHERE id = ? AND is_read = 0", (notification_id,)
    )
    conn.commit()
    return cursor.rowcount


def mark_all_important_read(conn: sqlite3.Connection) -> int:
    cursor = conn.execute(
        "UPDATE notifications SET is_read = 1 WHERE is_important = 1 AND is_read = 0"
    )
    conn.commit()
    return cursor.rowcount


def delete_older_than(conn: sqlite3.Connection, cutoff: int) -> int:
    """Delete notifications captured before cutoff (epoch ms)."""
    cursor = conn.execute("DELETE FROM notifications WHERE timestamp < ?", (cutoff,))
    conn.commit()
    return cursor.rowcount


def delete_beyond_limit(conn: sqlite3.Connection, limit: int) -> int:
    """Keep only the `limit` most recent notifications."""
    cursor = conn.execute(
        "DELETE FROM notifications WHERE id NOT IN "
        "(SELECT id FROM notifications ORDER BY timestamp DESC, id DESC LIMIT ?)",
        (limit,)
    )
    conn.commit()
    return cursor.rowcount


def clear_notifications(conn: sqlite3.Connection) -> int:
    cursor = conn.execute("DELETE FROM notifications")
    conn.commit()
    return cursor.rowcount


def get_preference(conn: sqlite3.Connection, source_id: str) -> Optional[SourcePreference]:
    cursor = conn.execute(
        "SELECT source_id, display_name, is_important FROM app_preferences WHERE source_id = ?",
        (source_id,)
    )
    row = cursor.fetchone()
    if row is None:
        return None
    return SourcePreference(source_id=row[0], display_name=row[1], is_important=bool(row[2]))


def get_preferences(conn: sqlite3.Connection) -> List[SourcePreference]:
    cursor = conn.execute(
        "SELECT source_id, display_name, is_important FROM app_preferences ORDER BY display_name"
    )
    return [
        SourcePreference(source_id=row[0], display_name=row[1], is_important=bool(row[2]))
        for row in cursor.fetchall()
    ]


def upsert_preference(conn: sqlite3.Connection, preference: SourcePreference) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO app_preferences (source_id, display_name, is_important) VALUES (?, ?, ?)",
        (preference.source_id, preference.display_name, int(preference.is_important))
    )
    conn.commit()


def insert_preference_if_missing(conn: sqlite3.Connection, source_id: str, display_name: str) -> bool:
    """
    Record a newly seen source as not important.

    Returns:
        True if a row was created, False if the source was already known.
    """
    cursor = conn.execute(
        "INSERT OR IGNORE INTO app_preferences (source_id, display_name, is_important) VALUES (?, ?, 0)",
        (source_id, display_name)
    )
    conn.commit()
    return cursor.rowcount > 0


def get_seen_ids(conn: sqlite3.Connection, source: Optional[str] = None) -> Set[Tuple[str, str]]:
    """
    Retrieve seen feed item ids.

    Args:
        conn: Database connection.
        source: If provided, only return items of this source (feed URL).

    Returns:
        A set of (id, source) tuples that have been seen.
    """
    if source:
        cursor = conn.execute("SELECT id, source FROM seen_items WHERE source = ?", (source,))
    else:
        cursor = conn.execute("SELECT id, source FROM seen_items")
    return {(row[0], row[1]) for row in cursor.fetchall()}


def mark_seen(conn: sqlite3.Connection, items: List[Tuple[str, str]]) -> None:
    now = datetime.utcnow().isoformat() + "Z"
    conn.executemany(
        "INSERT OR IGNORE INTO seen_items (id, source, first_seen_at) VALUES (?, ?, ?)",
        [(item_id, source, now) for item_id, source in items]
    )
    conn.commit()


def get_meta(conn: sqlite3.Connection, key: str) -> Optional[str]:
    cursor = conn.execute("SELECT value FROM meta WHERE key = ?", (key,))
    row = cursor.fetchone()
    return row[0] if row else None


def set_meta(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)",
        (key, value)
    )
    conn.commit()
