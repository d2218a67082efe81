"""SQLite backend with FTS5 full-text tables."""

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from aiknowsys.context.adapter import StorageAdapter
from aiknowsys.context.filtering import learned_matches, scope_types
from aiknowsys.context.locator import DatabaseLocator
from aiknowsys.context.models import (
    PLAN_STATUSES,
    DatabaseStats,
    LearnedPattern,
    Plan,
    PlanFilters,
    Project,
    RebuildResult,
    SearchResult,
    Session,
    SessionFilters,
)
from aiknowsys.context.scanner import load_source_layer
from aiknowsys.context.snippets import find_literal
from aiknowsys.errors import StorageNotInitializedError, ValidationError, wrap_database_error

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.1"

DB_SUFFIXES = (".db", ".sqlite", ".sqlite3")

SCHEMA_SQL = """
-- aiknowsys knowledge database v1.1
-- Derived data: everything except projects regenerates from .aiknowsys/

PRAGMA foreign_keys = ON;
PRAGMA journal_mode = WAL;

-- Projects table
CREATE TABLE IF NOT EXISTS projects (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    path        TEXT,
    tech_stack  TEXT,
    created_at  TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Plans table: plan ids are file slugs, unique per project
CREATE TABLE IF NOT EXISTS plans (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    slug        TEXT NOT NULL,
    project_id  TEXT,
    title       TEXT NOT NULL,
    status      TEXT NOT NULL CHECK (status IN ('ACTIVE', 'PAUSED', 'PLANNED', 'COMPLETE', 'CANCELLED')),
    author      TEXT NOT NULL DEFAULT 'unknown',
    priority    TEXT,
    type        TEXT,
    description TEXT,
    content     TEXT,
    topics      TEXT,
    file        TEXT,
    created_at  TEXT,
    updated_at  TEXT,
    UNIQUE (project_id, slug),
    FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_plans_project ON plans(project_id);
CREATE INDEX IF NOT EXISTS idx_plans_status ON plans(status);
CREATE INDEX IF NOT EXISTS idx_plans_author ON plans(author);
CREATE INDEX IF NOT EXISTS idx_plans_updated ON plans(updated_at DESC);

-- Sessions table
CREATE TABLE IF NOT EXISTS sessions (
    id          TEXT PRIMARY KEY,
    project_id  TEXT NOT NULL,
    date        TEXT NOT NULL,
    topic       TEXT NOT NULL,
    status      TEXT,
    plan_id     TEXT,
    duration    TEXT,
    content     TEXT,
    topics      TEXT,
    phases      TEXT,
    file        TEXT,
    created_at  TEXT,
    updated_at  TEXT,
    UNIQUE (project_id, date),
    FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_sessions_date ON sessions(date DESC);
CREATE INDEX IF NOT EXISTS idx_sessions_plan ON sessions(plan_id);

-- Learned patterns table
CREATE TABLE IF NOT EXISTS patterns (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    slug              TEXT NOT NULL,
    category          TEXT NOT NULL,
    title             TEXT NOT NULL,
    content           TEXT,
    tags              TEXT,
    source_project_id TEXT,
    applied_count     INTEGER NOT NULL DEFAULT 0,
    file              TEXT,
    created_at        TEXT,
    UNIQUE (source_project_id, slug),
    FOREIGN KEY (source_project_id) REFERENCES projects(id) ON DELETE SET NULL
);

CREATE INDEX IF NOT EXISTS idx_patterns_category ON patterns(category);

-- FTS5 virtual tables
CREATE VIRTUAL TABLE IF NOT EXISTS plans_fts USING fts5(
    title,
    content,
    content='plans',
    content_rowid='id'
);

CREATE VIRTUAL TABLE IF NOT EXISTS sessions_fts USING fts5(
    topic,
    content,
    content='sessions',
    content_rowid='rowid'
);

CREATE VIRTUAL TABLE IF NOT EXISTS patterns_fts USING fts5(
    title,
    content,
    content='patterns',
    content_rowid='id'
);

-- Triggers to keep FTS5 synchronized
CREATE TRIGGER IF NOT EXISTS plans_ai AFTER INSERT ON plans BEGIN
    INSERT INTO plans_fts(rowid, title, content)
    VALUES (NEW.id, NEW.title, NEW.content);
END;

CREATE TRIGGER IF NOT EXISTS plans_ad AFTER DELETE ON plans BEGIN
    INSERT INTO plans_fts(plans_fts, rowid, title, content)
    VALUES ('delete', OLD.id, OLD.title, OLD.content);
END;

CREATE TRIGGER IF NOT EXISTS plans_au AFTER UPDATE ON plans BEGIN
    INSERT INTO plans_fts(plans_fts, rowid, title, content)
    VALUES ('delete', OLD.id, OLD.title, OLD.content);
    INSERT INTO plans_fts(rowid, title, content)
    VALUES (NEW.id, NEW.title, NEW.content);
END;

CREATE TRIGGER IF NOT EXISTS sessions_ai AFTER INSERT ON sessions BEGIN
    INSERT INTO sessions_fts(rowid, topic, content)
    VALUES (NEW.rowid, NEW.topic, NEW.content);
END;

CREATE TRIGGER IF NOT EXISTS sessions_ad AFTER DELETE ON sessions BEGIN
    INSERT INTO sessions_fts(sessions_fts, rowid, topic, content)
    VALUES ('delete', OLD.rowid, OLD.topic, OLD.content);
END;

CREATE TRIGGER IF NOT EXISTS sessions_au AFTER UPDATE ON sessions BEGIN
    INSERT INTO sessions_fts(sessions_fts, rowid, topic, content)
    VALUES ('delete', OLD.rowid, OLD.topic, OLD.content);
    INSERT INTO sessions_fts(rowid, topic, content)
    VALUES (NEW.rowid, NEW.topic, NEW.content);
END;

CREATE TRIGGER IF NOT EXISTS patterns_ai AFTER INSERT ON patterns BEGIN
    INSERT INTO patterns_fts(rowid, title, content)
    VALUES (NEW.id, NEW.title, NEW.content);
END;

CREATE TRIGGER IF NOT EXISTS patterns_ad AFTER DELETE ON patterns BEGIN
    INSERT INTO patterns_fts(patterns_fts, rowid, title, content)
    VALUES ('delete', OLD.id, OLD.title, OLD.content);
END;

CREATE TRIGGER IF NOT EXISTS patterns_au AFTER UPDATE ON patterns BEGIN
    INSERT INTO patterns_fts(patterns_fts, rowid, title, content)
    VALUES ('delete', OLD.id, OLD.title, OLD.content);
    INSERT INTO patterns_fts(rowid, title, content)
    VALUES (NEW.id, NEW.title, NEW.content);
END;

-- Metadata table for schema versioning
CREATE TABLE IF NOT EXISTS meta (
    key   TEXT PRIMARY KEY,
    value TEXT
);

INSERT OR REPLACE INTO meta (key, value) VALUES ('schema_version', '1.1');
INSERT OR IGNORE INTO meta (key, value) VALUES ('created_at', datetime('now'));
"""

PLAN_COLUMNS = (
    "id, slug, project_id, title, status, author, priority, type, description, topics, file, created_at, updated_at"
)
SESSION_COLUMNS = (
    "id, project_id, date, topic, status, plan_id, duration, topics, phases, file, created_at, updated_at"
)
PATTERN_COLUMNS = "id, slug, category, title, tags, source_project_id, applied_count, file, created_at"

# Ranked search: (result type, SQL). Rows are joined back to the base table
# for the file path and content.
RANKED_QUERIES = {
    "plan": """
        SELECT COALESCE(b.file, 'PLAN_' || b.slug || '.md') AS file, b.content,
            {snippet} AS snippet, bm25(plans_fts) AS score
        FROM plans_fts
        JOIN plans b ON b.id = plans_fts.rowid
        WHERE plans_fts MATCH ? {project_clause}
        ORDER BY score LIMIT ?
    """,
    "session": """
        SELECT COALESCE(b.file, 'sessions/' || b.date || '-session.md') AS file, b.content,
            {snippet} AS snippet, bm25(sessions_fts) AS score
        FROM sessions_fts
        JOIN sessions b ON b.rowid = sessions_fts.rowid
        WHERE sessions_fts MATCH ? {project_clause}
        ORDER BY score LIMIT ?
    """,
    "learned": """
        SELECT COALESCE(b.file, 'learned/' || b.slug || '.md') AS file, b.content,
            {snippet} AS snippet, bm25(patterns_fts) AS score
        FROM patterns_fts
        JOIN patterns b ON b.id = patterns_fts.rowid
        WHERE patterns_fts MATCH ? {project_clause}
        ORDER BY score LIMIT ?
    """,
}
FTS_TABLES = {"plan": "plans_fts", "session": "sessions_fts", "learned": "patterns_fts"}
PROJECT_COLUMNS = {"plan": "b.project_id", "session": "b.project_id", "learned": "b.source_project_id"}


def _like_pattern(value: str, prefix_only: bool = False) -> str:
    """Escape LIKE wildcards so ``value`` matches literally."""
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"{escaped}%" if prefix_only else f"%{escaped}%"


def _json_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        return []
    return [str(v) for v in value] if isinstance(value, list) else []


def _drop_legacy_plans(conn: sqlite3.Connection) -> None:
    """
    Drop a v1.0 plans table keyed by slug alone.

    Plan rows are derived from the markdown files, so the next rebuild
    repopulates the new table.
    """
    columns = {row[1] for row in conn.execute("PRAGMA table_info(plans)")}
    if columns and "slug" not in columns:
        logger.info("Dropping v1.0 plans table; rebuild to repopulate")
        conn.executescript("DROP TABLE IF EXISTS plans_fts; DROP TABLE plans;")


class SqliteStorage(StorageAdapter):
    """
    Storage adapter backed by a SQLite database.

    One database can hold several projects. With ``scope_to_project`` set,
    queries and searches only see rows belonging to ``project_id``.

    Query methods have a metadata-only mode (the default, no ``content``
    column) and a full-content mode selected with ``include_content``.
    """

    # Snippet configuration for FTS5 ranked search results
    SNIPPET_COLUMN_INDEX = -1  # best-matching column
    SNIPPET_HIGHLIGHT_START = ">>>"
    SNIPPET_HIGHLIGHT_END = "<<<"
    SNIPPET_ELLIPSIS = "..."
    SNIPPET_MAX_TOKENS = 32

    def __init__(
        self,
        db_path: Path | str | None = None,
        project_id: str | None = None,
        project_name: str | None = None,
        scope_to_project: bool = False,
    ):
        self.db_path: Path | None = Path(db_path).expanduser().resolve() if db_path else None
        self.project_id = project_id
        self.project_name = project_name
        self.scope_to_project = scope_to_project
        self.target_dir: Path | None = None
        self._conn: sqlite3.Connection | None = None

    # Connection management

    def init(self, target_dir: Path | str) -> None:
        """
        Open (creating if needed) the database and apply the schema.

        ``target_dir`` is a project directory, or a database file path when
        the database is used without a source layer. Missing database path
        and project identity are resolved with DatabaseLocator.

        Raises:
            StorageUnavailableError: If the database cannot be opened or created
        """
        target = Path(target_dir).expanduser().resolve()
        if target.suffix in DB_SUFFIXES or target.is_file():
            self.db_path = self.db_path or target
            self.target_dir = None
        else:
            self.target_dir = target
            if self.db_path is None or self.project_id is None:
                located = DatabaseLocator().get_database_config(target)
                self.db_path = self.db_path or located.db_path
                self.project_id = self.project_id or located.project_id
                self.project_name = self.project_name or located.project_name
        if self.project_id and not self.project_name:
            self.project_name = self.target_dir.name if self.target_dir else self.project_id

        conn = None
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path))
            conn.row_factory = sqlite3.Row
            _drop_legacy_plans(conn)
            conn.executescript(SCHEMA_SQL)
        except (sqlite3.Error, OSError) as e:
            if conn is not None:
                conn.close()
            raise wrap_database_error(e, "open database", self.db_path) from e

        self._conn = conn
        logger.debug("Opened %s (project %s)", self.db_path, self.project_id)

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageNotInitializedError("SqliteStorage not initialized. Call init(target_dir) first.")
        return self._conn

    @contextmanager
    def _read_cursor(self, operation: str = "read") -> Iterator[sqlite3.Cursor]:
        """Get a cursor for read operations."""
        cursor = self._get_connection().cursor()
        try:
            yield cursor
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as e:
            raise wrap_database_error(e, operation, self.db_path) from e
        finally:
            cursor.close()

    @contextmanager
    def _write_cursor(self, operation: str = "write") -> Iterator[sqlite3.Cursor]:
        """Get a cursor for a write transaction; commits on success."""
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except sqlite3.IntegrityError:
            conn.rollback()
            raise
        except sqlite3.Error as e:
            conn.rollback()
            raise wrap_database_error(e, operation, self.db_path) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()

    def _project_clause(self, column: str, params: list) -> str:
        if self.scope_to_project and self.project_id:
            params.append(self.project_id)
            return f" AND {column} = ?"
        return ""

    # Rebuild

    def rebuild_index(self) -> RebuildResult:
        """
        Rescan the source layer and replace this project's rows.

        Runs in a single transaction: a failure leaves the previous rows.
        """
        self._get_connection()
        if self.target_dir is None or not self.project_id:
            raise ValidationError("rebuild_index needs a project directory; this database was opened as a file")

        logger.info("Rebuilding %s for project %s", self.db_path, self.project_id)
        snapshot = load_source_layer(self.target_dir)

        with self._write_cursor("rebuild index") as cursor:
            self._upsert_project(
                cursor, Project(id=self.project_id, name=self.project_name, path=str(self.target_dir))
            )
            cursor.execute("DELETE FROM sessions WHERE project_id = ?", (self.project_id,))
            cursor.execute("DELETE FROM plans WHERE project_id = ?", (self.project_id,))
            cursor.execute("DELETE FROM patterns WHERE source_project_id = ?", (self.project_id,))
            for plan in snapshot.plans:
                self._upsert_plan(cursor, plan, self.project_id)
            for session in snapshot.sessions:
                self._upsert_session(cursor, session, self.project_id)
            for pattern in snapshot.learned:
                self._upsert_pattern(cursor, pattern, self.project_id)

        result = RebuildResult(
            plans_indexed=len(snapshot.plans),
            sessions_indexed=len(snapshot.sessions),
            learned_indexed=len(snapshot.learned),
            errors=snapshot.errors,
        )
        logger.info(
            "Rebuild complete: %d plans, %d sessions, %d learned, %d errors",
            result.plans_indexed,
            result.sessions_indexed,
            result.learned_indexed,
            len(result.errors),
        )
        return result

    # Insert helpers (upserts)

    def insert_project(self, project: Project) -> None:
        with self._write_cursor("insert project") as cursor:
            self._upsert_project(cursor, project)

    def insert_plan(self, plan: Plan, project_id: str | None = None) -> None:
        project_id = project_id or self.project_id
        with self._write_cursor("insert plan") as cursor:
            if project_id:
                self._ensure_project(cursor, project_id)
            self._upsert_plan(cursor, plan, project_id)

    def insert_session(
        self, session: Session, project_id: str | None = None, session_id: str | None = None
    ) -> None:
        project_id = project_id or self.project_id
        if not project_id:
            raise ValidationError("insert_session requires a project_id")
        with self._write_cursor("insert session") as cursor:
            self._ensure_project(cursor, project_id)
            self._upsert_session(cursor, session, project_id, session_id)

    def insert_pattern(
        self, pattern: LearnedPattern, project_id: str | None = None, applied_count: int = 0
    ) -> None:
        project_id = project_id or self.project_id
        with self._write_cursor("insert pattern") as cursor:
            if project_id:
                self._ensure_project(cursor, project_id)
            self._upsert_pattern(cursor, pattern, project_id, applied_count)

    def _ensure_project(self, cursor: sqlite3.Cursor, project_id: str) -> None:
        cursor.execute(
            "INSERT INTO projects (id, name) VALUES (?, ?) ON CONFLICT(id) DO NOTHING",
            (project_id, self.project_name if project_id == self.project_id and self.project_name else project_id),
        )

    def _upsert_project(self, cursor: sqlite3.Cursor, project: Project) -> None:
        tech_stack = json.dumps(project.tech_stack) if project.tech_stack is not None else None
        cursor.execute(
            """INSERT INTO projects (id, name, path, tech_stack, created_at, updated_at)
            VALUES (?, ?, ?, ?, COALESCE(?, datetime('now')), datetime('now'))
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                path = COALESCE(excluded.path, projects.path),
                tech_stack = COALESCE(excluded.tech_stack, projects.tech_stack),
                updated_at = datetime('now')
            """,
            (project.id, project.name or project.id, project.path, tech_stack, project.created_at or None),
        )

    def _upsert_plan(self, cursor: sqlite3.Cursor, plan: Plan, project_id: str | None) -> None:
        if plan.status not in PLAN_STATUSES:
            raise ValidationError(
                f"Invalid plan status '{plan.status}'. Valid statuses: {', '.join(PLAN_STATUSES)}"
            )
        cursor.execute(
            """INSERT INTO plans
            (slug, project_id, title, status, author, priority, type, description,
             content, topics, file, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(project_id, slug) DO UPDATE SET
                title = excluded.title,
                status = excluded.status,
                author = excluded.author,
                priority = excluded.priority,
                type = excluded.type,
                description = excluded.description,
                content = excluded.content,
                topics = excluded.topics,
                file = excluded.file,
                created_at = excluded.created_at,
                updated_at = excluded.updated_at
            """,
            (
                plan.id,
                project_id,
                plan.title,
                plan.status,
                plan.author,
                plan.priority,
                plan.type,
                plan.description,
                plan.content,
                json.dumps(plan.topics),
                plan.file or f"PLAN_{plan.id}.md",
                plan.created or None,
                plan.updated or None,
            ),
        )

    def _upsert_session(
        self, cursor: sqlite3.Cursor, session: Session, project_id: str, session_id: str | None = None
    ) -> None:
        cursor.execute(
            """INSERT INTO sessions
            (id, project_id, date, topic, status, plan_id, duration, content,
             topics, phases, file, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                project_id = excluded.project_id,
                date = excluded.date,
                topic = excluded.topic,
                status = excluded.status,
                plan_id = excluded.plan_id,
                duration = excluded.duration,
                content = excluded.content,
                topics = excluded.topics,
                phases = excluded.phases,
                file = excluded.file,
                created_at = excluded.created_at,
                updated_at = excluded.updated_at
            """,
            (
                session_id or f"{project_id}:{session.date}",
                project_id,
                session.date,
                session.topic,
                session.status,
                session.plan,
                session.duration,
                session.content,
                json.dumps(session.topics),
                json.dumps(session.phases),
                session.file or f"sessions/{session.date}-session.md",
                session.created or session.date,
                session.updated or None,
            ),
        )

    def _upsert_pattern(
        self,
        cursor: sqlite3.Cursor,
        pattern: LearnedPattern,
        project_id: str | None,
        applied_count: int = 0,
    ) -> None:
        cursor.execute(
            """INSERT INTO patterns
            (slug, category, title, content, tags, source_project_id, applied_count, file, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(source_project_id, slug) DO UPDATE SET
                category = excluded.category,
                title = excluded.title,
                content = excluded.content,
                tags = excluded.tags,
                applied_count = excluded.applied_count,
                file = excluded.file,
                created_at = excluded.created_at
            """,
            (
                pattern.id,
                pattern.category,
                pattern.title,
                pattern.content,
                json.dumps(pattern.keywords),
                project_id,
                applied_count,
                pattern.file or f"learned/{pattern.id}.md",
                pattern.created or None,
            ),
        )

    # Project operations

    def get_project(self, project_id: str) -> Project | None:
        with self._read_cursor("get project") as cursor:
            cursor.execute("SELECT * FROM projects WHERE id = ?", (project_id,))
            row = cursor.fetchone()
        if not row:
            return None
        return Project(
            id=row["id"],
            name=row["name"],
            path=row["path"],
            tech_stack=json.loads(row["tech_stack"]) if row["tech_stack"] else None,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    # Query methods

    def query_plans(self, filters: PlanFilters | None = None, include_content: bool = False) -> list[Plan]:
        filters = filters or PlanFilters()
        columns = PLAN_COLUMNS + (", content" if include_content else "")
        query = f"SELECT {columns} FROM plans WHERE 1=1"
        params: list = []

        if filters.status:
            query += " AND status = ?"
            params.append(filters.status)
        if filters.author:
            query += " AND author = ?"
            params.append(filters.author)
        if filters.topic:
            query += " AND (title LIKE ? ESCAPE '\\' OR topics LIKE ? ESCAPE '\\')"
            params.extend([_like_pattern(filters.topic)] * 2)
        if filters.updated_after:
            query += " AND substr(updated_at, 1, 10) >= ?"
            params.append(filters.updated_after)
        if filters.updated_before:
            query += " AND substr(updated_at, 1, 10) <= ?"
            params.append(filters.updated_before)
        if filters.priority:
            query += " AND priority = ?"
            params.append(filters.priority)
        if filters.id_prefix:
            query += " AND slug LIKE ? ESCAPE '\\'"
            params.append(_like_pattern(filters.id_prefix, prefix_only=True))
        if filters.content_contains:
            query += " AND (content LIKE ? ESCAPE '\\' OR title LIKE ? ESCAPE '\\')"
            params.extend([_like_pattern(filters.content_contains)] * 2)
        query += self._project_clause("project_id", params)
        query += " ORDER BY updated_at DESC, slug"

        with self._read_cursor("query plans") as cursor:
            cursor.execute(query, params)
            return [self._row_to_plan(row, include_content) for row in cursor.fetchall()]

    def query_sessions(
        self, filters: SessionFilters | None = None, include_content: bool = False
    ) -> list[Session]:
        filters = filters or SessionFilters()
        columns = SESSION_COLUMNS + (", content" if include_content else "")
        query = f"SELECT {columns} FROM sessions WHERE 1=1"
        params: list = []

        if filters.date:
            query += " AND date = ?"
            params.append(filters.date)
        if filters.date_after:
            query += " AND date >= ?"
            params.append(filters.date_after)
        if filters.date_before:
            query += " AND date <= ?"
            params.append(filters.date_before)
        if filters.topic:
            query += " AND (topic LIKE ? ESCAPE '\\' OR topics LIKE ? ESCAPE '\\')"
            params.extend([_like_pattern(filters.topic)] * 2)
        if filters.plan:
            query += " AND plan_id = ?"
            params.append(filters.plan)
        if filters.status:
            query += " AND status = ?"
            params.append(filters.status)
        if filters.content_contains:
            query += " AND (content LIKE ? ESCAPE '\\' OR topic LIKE ? ESCAPE '\\')"
            params.extend([_like_pattern(filters.content_contains)] * 2)
        query += self._project_clause("project_id", params)
        query += " ORDER BY date DESC"

        with self._read_cursor("query sessions") as cursor:
            cursor.execute(query, params)
            return [self._row_to_session(row, include_content) for row in cursor.fetchall()]

    def query_learned_patterns(
        self,
        category: str | None = None,
        keywords: list[str] | None = None,
        include_content: bool = False,
    ) -> list[LearnedPattern]:
        columns = PATTERN_COLUMNS + (", content" if include_content else "")
        query = f"SELECT {columns} FROM patterns WHERE 1=1"
        params: list = []
        if category:
            query += " AND category = ?"
            params.append(category)
        query += self._project_clause("source_project_id", params)
        query += " ORDER BY slug"

        with self._read_cursor("query patterns") as cursor:
            cursor.execute(query, params)
            patterns = [self._row_to_pattern(row, include_content) for row in cursor.fetchall()]
        # Keywords live in a JSON column; match them like the JSON backend does
        return [p for p in patterns if learned_matches(p, None, keywords)]

    def query_learned(
        self, category: str | None = None, keywords: list[str] | None = None
    ) -> list[LearnedPattern]:
        return self.query_learned_patterns(category, keywords)

    # Search operations

    def search(self, query: str, scope: str = "all") -> list[SearchResult]:
        """
        Case-insensitive literal search over stored content.

        Relevance is the number of occurrences in the record, the same
        heuristic the JSON backend uses, so both backends rank alike.
        """
        wanted_types = scope_types(scope)
        scans = [
            ("plan", "SELECT slug AS id, file, content FROM plans", "project_id", "PLAN_{id}.md"),
            ("session", "SELECT date AS id, file, content FROM sessions", "project_id", "sessions/{id}-session.md"),
            ("learned", "SELECT slug AS id, file, content FROM patterns", "source_project_id", "learned/{id}.md"),
        ]

        results: list[SearchResult] = []
        with self._read_cursor("search") as cursor:
            for result_type, select, project_column, default_file in scans:
                if result_type not in wanted_types:
                    continue
                # Matching is left to find_literal; SQLite lower() folds ASCII only
                params: list = []
                sql = select + " WHERE content IS NOT NULL"
                sql += self._project_clause(project_column, params)
                cursor.execute(sql, params)
                for row in cursor.fetchall():
                    match = find_literal(row["content"], query)
                    if match is None:
                        continue
                    results.append(
                        SearchResult(
                            file=row["file"] or default_file.format(id=row["id"]),
                            line=match.line,
                            context=match.context,
                            relevance=float(match.count),
                            type=result_type,
                        )
                    )

        results.sort(key=lambda r: r.file)
        results.sort(key=lambda r: r.relevance, reverse=True)
        return results

    def search_ranked(self, query: str, scope: str = "all", limit: int = 20) -> list[SearchResult]:
        """
        Full-text search ranked by FTS5 BM25.

        The query is matched as a phrase, so FTS5 operators in it are
        treated as text. Relevance is the negated BM25 score (higher is
        better) and the context is an FTS5 snippet with >>>highlights<<<.
        """
        if not query.strip():
            raise ValidationError("Search query cannot be empty")
        wanted_types = scope_types(scope)
        phrase = '"' + query.replace('"', '""') + '"'

        results: list[SearchResult] = []
        with self._read_cursor("ranked search") as cursor:
            for result_type, template in RANKED_QUERIES.items():
                if result_type not in wanted_types:
                    continue
                snippet_func = (
                    f"snippet({FTS_TABLES[result_type]}, {self.SNIPPET_COLUMN_INDEX}, "
                    f"'{self.SNIPPET_HIGHLIGHT_START}', '{self.SNIPPET_HIGHLIGHT_END}', "
                    f"'{self.SNIPPET_ELLIPSIS}', {self.SNIPPET_MAX_TOKENS})"
                )
                params: list = [phrase]
                project_clause = self._project_clause(PROJECT_COLUMNS[result_type], params)
                params.append(limit)
                cursor.execute(template.format(snippet=snippet_func, project_clause=project_clause), params)
                for row in cursor.fetchall():
                    match = find_literal(row["content"], query) if row["content"] else None
                    results.append(
                        SearchResult(
                            file=row["file"],
                            line=match.line if match else 1,
                            context=row["snippet"],
                            relevance=-row["score"],
                            type=result_type,
                        )
                    )

        results.sort(key=lambda r: r.relevance, reverse=True)
        return results[:limit]

    # Statistics

    def get_stats(self) -> DatabaseStats:
        counts = {}
        with self._read_cursor("get stats") as cursor:
            for table in ("projects", "plans", "sessions", "patterns"):
                cursor.execute(f"SELECT COUNT(*) AS n FROM {table}")
                counts[table] = cursor.fetchone()["n"]
        try:
            size_bytes = self.db_path.stat().st_size
        except OSError:
            size_bytes = 0
        return DatabaseStats(db_path=str(self.db_path), size_bytes=size_bytes, **counts)

    # Row conversion

    def _row_to_plan(self, row: sqlite3.Row, include_content: bool) -> Plan:
        return Plan(
            id=row["slug"],
            title=row["title"],
            status=row["status"],
            author=row["author"],
            created=row["created_at"] or "",
            updated=row["updated_at"] or "",
            file=row["file"] or f"PLAN_{row['slug']}.md",
            topics=_json_list(row["topics"]),
            description=row["description"],
            priority=row["priority"],
            type=row["type"],
            content=row["content"] if include_content else None,
        )

    def _row_to_session(self, row: sqlite3.Row, include_content: bool) -> Session:
        return Session(
            date=row["date"],
            topic=row["topic"],
            file=row["file"] or f"sessions/{row['date']}-session.md",
            plan=row["plan_id"],
            phases=_json_list(row["phases"]),
            topics=_json_list(row["topics"]),
            status=row["status"],
            duration=row["duration"],
            created=row["created_at"] or row["date"],
            updated=row["updated_at"] or "",
            content=row["content"] if include_content else None,
        )

    def _row_to_pattern(self, row: sqlite3.Row, include_content: bool) -> LearnedPattern:
        return LearnedPattern(
            id=row["slug"],
            category=row["category"],
            title=row["title"],
            file=row["file"] or f"learned/{row['slug']}.md",
            keywords=_json_list(row["tags"]),
            created=row["created_at"] or "",
            content=row["content"] if include_content else None,
        )
