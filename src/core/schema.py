"""SQLite schema for the duplicate review ledger (code-first approach)."""

import logging

from src.core import db_client


logger = logging.getLogger(__name__)


# Central list of all ledger tables, in creation order
COLLECTIONS = [
    "deduplication_analyses",
    "deduplication_reviews",
]


TABLE_SCHEMAS: dict[str, str] = {
    "deduplication_analyses": """CREATE TABLE IF NOT EXISTS deduplication_analyses (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        analysis_date TEXT NOT NULL,
        total_tasks INTEGER NOT NULL DEFAULT 0,
        duplicate_pairs_found INTEGER NOT NULL DEFAULT 0,
        duplicate_groups_found INTEGER NOT NULL DEFAULT 0,
        thresholds TEXT NOT NULL DEFAULT '{}',
        filters TEXT
    )""",
    "deduplication_reviews": """CREATE TABLE IF NOT EXISTS deduplication_reviews (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        analysis_id INTEGER NOT NULL REFERENCES deduplication_analyses(id) ON DELETE CASCADE,
        task1_id TEXT NOT NULL,
        task1_description TEXT,
        task1_system TEXT,
        task1_metadata TEXT NOT NULL,
        task2_id TEXT NOT NULL,
        task2_description TEXT,
        task2_system TEXT,
        task2_metadata TEXT NOT NULL,
        similarity_score REAL NOT NULL CHECK (similarity_score >= 0 AND similarity_score <= 1),
        match_reason TEXT NOT NULL,
        warning TEXT,
        review_status TEXT NOT NULL DEFAULT 'pending'
            CHECK (review_status IN ('pending', 'keep_both', 'merge', 'delete_task1', 'delete_task2', 'delete_both')),
        reviewed_by TEXT,
        reviewed_at TEXT,
        review_notes TEXT,
        executed INTEGER NOT NULL DEFAULT 0,
        executed_at TEXT,
        execution_error TEXT,
        UNIQUE(analysis_id, task1_id, task2_id)
    )""",
}


INDEXES: list[str] = [
    "CREATE INDEX IF NOT EXISTS idx_reviews_analysis_id ON deduplication_reviews (analysis_id)",
    "CREATE INDEX IF NOT EXISTS idx_reviews_status ON deduplication_reviews (review_status)",
    "CREATE INDEX IF NOT EXISTS idx_reviews_executed ON deduplication_reviews (executed)",
    "CREATE INDEX IF NOT EXISTS idx_reviews_similarity ON deduplication_reviews (similarity_score DESC)",
    "CREATE INDEX IF NOT EXISTS idx_analyses_date ON deduplication_analyses (analysis_date DESC)",
]


async def init_db(*, db_path: str | None = None) -> None:
    """Create ledger tables and indexes if they do not exist yet."""
    conn = await db_client.get_connection(db_path=db_path)

    for table_name in COLLECTIONS:
        await conn.execute(TABLE_SCHEMAS[table_name])
        logger.debug("Ensured table", extra={"table": table_name})

    for index_sql in INDEXES:
        await conn.execute(index_sql)

    await conn.commit()
    logger.info("Review ledger schema initialised", extra={"tables": COLLECTIONS})
