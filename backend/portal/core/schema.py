"""
Table definitions and additive migrations.

`ensure_schema()` is safe to run on every startup: tables are created when
missing, and columns added to a table after its first release are appended
to databases created by older versions.
"""
import logging

from portal.core.db import Database

logger = logging.getLogger("uvicorn.error")

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    name                 TEXT NOT NULL,
    email                TEXT UNIQUE NOT NULL,
    -- NULL means guest account: created from a content submission, cannot log in
    password_hash        TEXT,
    role                 TEXT NOT NULL DEFAULT 'user'
                         CHECK(role IN ('user', 'member', 'admin', 'executive', 'university', 'company')),
    approval_status      TEXT NOT NULL DEFAULT 'pending'
                         CHECK(approval_status IN ('pending', 'approved', 'rejected')),
    organization_name    TEXT,
    gst                  TEXT,
    pan                  TEXT,
    incorporation_number TEXT,
    phone                TEXT,
    bio                  TEXT,
    linkedin_url         TEXT,
    twitter_url          TEXT,
    website_url          TEXT,
    profile_image        TEXT,
    profile_blob_name    TEXT,
    is_banned            INTEGER NOT NULL DEFAULT 0,
    reset_token          TEXT,
    reset_token_expires  DATETIME,
    created_at           DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS categories (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL,
    description TEXT,
    created_at  DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS resources (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    title          TEXT NOT NULL,
    summary        TEXT,
    type           TEXT DEFAULT 'article' CHECK(type IN (
                       'whitepaper', 'guide', 'tool', 'article', 'news',
                       'homepage video', 'lab result', 'product',
                       'video', 'image', 'document'
                   )),
    access_level   TEXT DEFAULT 'public',
    source_url     TEXT,
    category_slug  TEXT,
    file_path      TEXT,
    file_type      TEXT,
    blob_name      TEXT,
    thumbnail_url  TEXT,
    status         TEXT DEFAULT 'approved',
    user_id        INTEGER REFERENCES users(id) ON DELETE SET NULL,
    download_count INTEGER DEFAULT 0,
    created_at     DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS events (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    title         TEXT NOT NULL,
    date          TEXT NOT NULL,
    location      TEXT NOT NULL,
    link          TEXT,
    type          TEXT DEFAULT 'upcoming' CHECK(type IN ('upcoming', 'past')),
    category      TEXT DEFAULT 'webinar',
    is_featured   INTEGER DEFAULT 0,
    teams_link    TEXT,
    recording_url TEXT,
    created_at    DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS team_members (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    name         TEXT NOT NULL,
    role         TEXT NOT NULL,
    description  TEXT,
    image_url    TEXT,
    blob_name    TEXT,
    linkedin_url TEXT,
    categories   TEXT DEFAULT '["leadership"]',
    created_at   DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS questions (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    title       TEXT NOT NULL,
    details     TEXT,
    status      TEXT DEFAULT 'open',
    user_id     INTEGER REFERENCES users(id) ON DELETE CASCADE,
    category_id INTEGER REFERENCES categories(id) ON DELETE SET NULL,
    created_at  DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS answers (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    question_id INTEGER REFERENCES questions(id) ON DELETE CASCADE,
    user_id     INTEGER REFERENCES users(id) ON DELETE CASCADE,
    content     TEXT NOT NULL,
    is_official INTEGER DEFAULT 0,
    created_at  DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS playbooks (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    title          TEXT NOT NULL,
    brief          TEXT DEFAULT '',
    framework      TEXT NOT NULL DEFAULT '',
    category       TEXT NOT NULL DEFAULT 'Guide',
    file_path      TEXT,
    file_name      TEXT,
    file_type      TEXT,
    blob_name      TEXT,
    download_count INTEGER DEFAULT 0,
    created_at     DATETIME DEFAULT CURRENT_TIMESTAMP
);
"""

# Columns introduced after the first schema; appended to older databases
ADDED_COLUMNS = [
    ("users", "profile_image", "TEXT"),
    ("users", "profile_blob_name", "TEXT"),
    ("users", "bio", "TEXT"),
    ("users", "linkedin_url", "TEXT"),
    ("users", "twitter_url", "TEXT"),
    ("users", "website_url", "TEXT"),
    ("team_members", "blob_name", "TEXT"),
    ("team_members", "categories", "TEXT DEFAULT '[\"leadership\"]'"),
    ("events", "is_featured", "INTEGER DEFAULT 0"),
    ("events", "teams_link", "TEXT"),
    ("events", "recording_url", "TEXT"),
    ("playbooks", "file_name", "TEXT"),
    ("playbooks", "blob_name", "TEXT"),
    ("resources", "summary", "TEXT"),
    ("resources", "access_level", "TEXT DEFAULT 'public'"),
    ("resources", "source_url", "TEXT"),
    ("resources", "category_slug", "TEXT"),
    ("resources", "file_type", "TEXT"),
    ("resources", "blob_name", "TEXT"),
    ("resources", "thumbnail_url", "TEXT"),
    ("resources", "status", "TEXT DEFAULT 'approved'"),
    ("resources", "user_id", "INTEGER"),
    ("resources", "download_count", "INTEGER DEFAULT 0"),
]


async def table_columns(db: Database, table: str) -> list[str]:
    rows = await db.fetch_all(f"PRAGMA table_info({table})")
    return [r["name"] for r in rows]


async def ensure_schema(db: Database) -> list[str]:
    """
    Create missing tables and add missing columns.

    Returns:
        The ``table.column`` names that were added by this call.
    """
    await db.execute_script(SCHEMA)

    added = []
    known: dict[str, list[str]] = {}
    for table, column, definition in ADDED_COLUMNS:
        if table not in known:
            known[table] = await table_columns(db, table)
        if column in known[table]:
            continue
        await db.run(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")
        known[table].append(column)
        added.append(f"{table}.{column}")
        logger.info("[Migration] Added %s.%s", table, column)
    return added
