"""
database.py
-----------
Creates and manages the SQLite database used by the image store. Holds the
server-side settings (the upload cadence handed to clients) and a log of every
image received.
"""

import sqlite3
import os
from datetime import datetime, timezone

from image_store.config import DATABASE_PATH, DEFAULT_DURATION


def get_db(path=DATABASE_PATH):
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(path=DATABASE_PATH):
    conn = get_db(path)
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS uploads (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            file_name TEXT NOT NULL,
            size INTEGER NOT NULL,
            received_at TEXT NOT NULL
        )
    """)

    conn.commit()
    conn.close()

# ------------------------------------------------------------
# Settings
# ------------------------------------------------------------
def get_duration(path=DATABASE_PATH):
    """Upload cadence in seconds, the default when it was never set"""
    conn = get_db(path)
    cur = conn.cursor()
    cur.execute("SELECT value FROM settings WHERE key = 'Duration'")
    row = cur.fetchone()
    conn.close()
    if row is None:
        return DEFAULT_DURATION
    return int(row['value'])


def set_duration(duration, path=DATABASE_PATH):
    conn = get_db(path)
    cursor = conn.cursor()
    cursor.execute("""
        INSERT INTO settings (key, value) VALUES ('Duration', ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value
    """, (str(int(duration)),))
    conn.commit()
    conn.close()

# ------------------------------------------------------------
# Upload log
# ------------------------------------------------------------
def log_upload(file_name, size, path=DATABASE_PATH):
    """Record a stored image"""
    conn = get_db(path)
    cursor = conn.cursor()

    cursor.execute("""
        INSERT INTO uploads (file_name, size, received_at)
        VALUES (?, ?, ?)
    """, (file_name, size, datetime.now(timezone.utc).isoformat()))

    conn.commit()
    conn.close()


def get_upload_stats(path=DATABASE_PATH):
    """Get statistics about received uploads"""
    conn = get_db(path)
    cur = conn.cursor()

    cur.execute("""
        SELECT
            COUNT(*) as total_uploads,
            COALESCE(SUM(size), 0) as total_bytes,
            MAX(received_at) as last_upload
        FROM uploads
    """)

    result = cur.fetchone()
    conn.close()

    return {
        'total_uploads': result['total_uploads'] or 0,
        'total_bytes': result['total_bytes'] or 0,
        'last_upload': result['last_upload'],
    }
