"""Database utilities for the snapshot store."""

import logging
import sqlite3

logger = logging.getLogger("shuttle.db")


def get_db(db_path: str):
    """Get database connection with Row factory."""
    conn = sqlite3.connect(db_path, timeout=10.0)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str):
    """Initialize database with the snapshots table if it doesn't exist."""
    logger.info("Initializing database...")
    db = get_db(db_path)
    try:
        db.execute("""
            CREATE TABLE IF NOT EXISTS snapshots (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                version INTEGER NOT NULL,
                saved_at REAL NOT NULL,
                payload TEXT NOT NULL
            )
        """)
        count = db.execute("SELECT COUNT(*) FROM snapshots").fetchone()[0]
        if count:
            logger.info(f"Database initialized with {count} saved snapshot(s)")
        db.commit()
    finally:
        db.close()
