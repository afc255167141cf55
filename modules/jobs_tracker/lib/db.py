from __future__ import annotations

import contextlib
import json
import os
import sqlite3
from collections.abc import Iterator
from dataclasses import replace
from datetime import datetime

from .logging_bridge import error as log_error
from .models import Platform, Posting, SearchCriteria, platform_by_tag
from .utils import from_iso, now_utc, to_iso


class ConflictError(Exception):
    """A save targeted an external_id that is already stored."""


class InfrastructureError(Exception):
    """The store itself failed (I/O, locking, corruption)."""


# ---- Public API -------------------------------------------------------------


def init_db(sqlite_path: str) -> None:
    """
    Ensure the SQLite database and schema exist.
    Safe to call multiple times.
    """
    _ensure_dir(sqlite_path)
    with _session(sqlite_path) as conn:
        _ensure_schema(conn)


class SqlitePostingStore:
    """
    Posting persistence. `save` is a plain INSERT guarded by the UNIQUE index on
    external_id; duplicates surface as ConflictError, every other sqlite failure
    as InfrastructureError.
    """

    def __init__(self, sqlite_path: str) -> None:
        self.sqlite_path = sqlite_path
        with _guard("init", sqlite_path):
            init_db(sqlite_path)

    def find_by_external_id(self, external_id: str) -> Posting | None:
        rows = self._query("find_by_external_id", "WHERE external_id = ?", (external_id,))
        return rows[0] if rows else None

    def save(self, posting: Posting) -> Posting:
        ts = now_utc()
        with _guard("save", self.sqlite_path, external_id=posting.external_id):
            with _session(self.sqlite_path) as conn:
                try:
                    cur = conn.execute(
                        """
                        INSERT INTO postings
                          (external_id, title, company, description, platform, url, location,
                           created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            posting.external_id,
                            posting.title,
                            posting.company,
                            posting.description,
                            posting.platform.tag,
                            posting.url,
                            posting.location,
                            to_iso(ts),
                            to_iso(ts),
                        ),
                    )
                except sqlite3.IntegrityError as e:
                    if "external_id" in str(e):
                        raise ConflictError(posting.external_id) from e
                    raise
        return replace(posting, id=cur.lastrowid, created_at=ts, updated_at=ts)

    # ---- read helpers (management/CLI) ----

    def find_all(self) -> list[Posting]:
        return self._query("find_all", "", ())

    def find_by_id(self, posting_id: int) -> Posting | None:
        rows = self._query("find_by_id", "WHERE id = ?", (int(posting_id),))
        return rows[0] if rows else None

    def find_by_platform(self, platform: Platform) -> list[Posting]:
        return self._query("find_by_platform", "WHERE platform = ?", (platform.tag,))

    def find_new_since(self, since: datetime) -> list[Posting]:
        return self._query("find_new_since", "WHERE created_at >= ?", (to_iso(since),))

    def search_by_keyword(self, keyword: str) -> list[Posting]:
        """Case-insensitive substring match on title, description or company."""
        return self._query(
            "search_by_keyword",
            """
            WHERE instr(lower(title), lower(?1)) > 0
               OR instr(lower(description), lower(?1)) > 0
               OR instr(lower(company), lower(?1)) > 0
            """,
            (keyword,),
        )

    def count(self) -> int:
        with _guard("count", self.sqlite_path):
            return count_rows(self.sqlite_path)

    def _query(self, op: str, where: str, args: tuple) -> list[Posting]:
        with _guard(op, self.sqlite_path):
            with _session(self.sqlite_path) as conn:
                cur = conn.execute(
                    f"""
                    SELECT id, external_id, title, company, description, platform, url, location,
                           created_at, updated_at
                    FROM postings {where}
                    ORDER BY id
                    """,
                    args,
                )
                rows = cur.fetchall()
        return [_row_to_posting(r) for r in rows]


class SqliteCriteriaStore:
    """SearchCriteria persistence; keywords/locations are stored as sorted JSON arrays."""

    def __init__(self, sqlite_path: str) -> None:
        self.sqlite_path = sqlite_path
        with _guard("init", sqlite_path):
            init_db(sqlite_path)

    def list_all(self) -> list[SearchCriteria]:
        with _guard("list_all", self.sqlite_path):
            with _session(self.sqlite_path) as conn:
                rows = conn.execute(
                    "SELECT id, name, keywords, locations, created_at, updated_at FROM search_criteria ORDER BY id"
                ).fetchall()
        return [_row_to_criteria(r) for r in rows]

    def find_by_id(self, criteria_id: int) -> SearchCriteria | None:
        with _guard("find_by_id", self.sqlite_path):
            with _session(self.sqlite_path) as conn:
                row = conn.execute(
                    "SELECT id, name, keywords, locations, created_at, updated_at FROM search_criteria WHERE id = ?",
                    (int(criteria_id),),
                ).fetchone()
        return _row_to_criteria(row) if row else None

    def save(self, criteria: SearchCriteria) -> SearchCriteria:
        """
        Insert (id is None) or update (id set) a criteria.

        Raises:
            ValueError: blank name.
            KeyError: update of an id that does not exist.
        """
        if not criteria.name:
            raise ValueError("Criteria name is required.")

        ts = now_utc()
        keywords = json.dumps(sorted(criteria.keywords), ensure_ascii=False)
        locations = json.dumps(sorted(criteria.locations), ensure_ascii=False)

        with _guard("save", self.sqlite_path):
            with _session(self.sqlite_path) as conn:
                if criteria.id is None:
                    cur = conn.execute(
                        """
                        INSERT INTO search_criteria (name, keywords, locations, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?)
                        """,
                        (criteria.name, keywords, locations, to_iso(ts), to_iso(ts)),
                    )
                    return replace(criteria, id=cur.lastrowid, created_at=ts, updated_at=ts)

                cur = conn.execute(
                    "UPDATE search_criteria SET name = ?, keywords = ?, locations = ?, updated_at = ? WHERE id = ?",
                    (criteria.name, keywords, locations, to_iso(ts), criteria.id),
                )
                if cur.rowcount != 1:
                    raise KeyError(f"No search criteria with id {criteria.id}.")
                row = conn.execute("SELECT created_at FROM search_criteria WHERE id = ?", (criteria.id,)).fetchone()
        return replace(criteria, created_at=from_iso(row[0]), updated_at=ts)

    def delete(self, criteria_id: int) -> bool:
        with _guard("delete", self.sqlite_path):
            with _session(self.sqlite_path) as conn:
                cur = conn.execute("DELETE FROM search_criteria WHERE id = ?", (int(criteria_id),))
        return cur.rowcount == 1


# ---- Nice-to-have helpers for tests & diagnostics --------------------------


def count_rows(sqlite_path: str) -> int:
    """Return total rows in postings table; 0 if DB missing/empty."""
    if not os.path.exists(sqlite_path):
        return 0
    with _session(sqlite_path) as conn:
        _ensure_schema(conn)
        (n,) = conn.execute("SELECT COUNT(*) FROM postings").fetchone()
    return int(n or 0)


def reset_db(sqlite_path: str) -> None:
    """
    Remove the DB file entirely (for pytest fixtures).
    Safe if it doesn't exist.
    """
    for suffix in ("", "-wal", "-shm"):
        with contextlib.suppress(FileNotFoundError):
            os.remove(sqlite_path + suffix)


# ---- Internal utilities -----------------------------------------------------


@contextlib.contextmanager
def _guard(op: str, sqlite_path: str, **context) -> Iterator[None]:
    """Translate sqlite/OS failures into InfrastructureError, with a structured error record."""
    try:
        yield
    except (sqlite3.Error, OSError) as e:
        log_error({
            "component": "jobs_tracker.db",
            "op": op,
            "sqlite_path": sqlite_path,
            **context,
            "error": repr(e),
        })
        raise InfrastructureError(f"{op} failed on {sqlite_path}: {e}") from e


@contextlib.contextmanager
def _session(sqlite_path: str) -> Iterator[sqlite3.Connection]:
    conn = _connect(sqlite_path)
    try:
        _apply_pragmas(conn)
        yield conn
    finally:
        conn.close()


def _ensure_dir(sqlite_path: str) -> None:
    d = os.path.dirname(os.path.abspath(sqlite_path)) or "."
    os.makedirs(d, exist_ok=True)


def _connect(sqlite_path: str) -> sqlite3.Connection:
    # isolation_level=None gives autocommit mode; every statement here is its own transaction.
    # check_same_thread is irrelevant: connections never outlive one call.
    return sqlite3.connect(sqlite_path, timeout=30.0, isolation_level=None)


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    # Reasonable defaults for a small, mostly-append table
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA temp_store=MEMORY;")
    conn.execute("PRAGMA cache_size=-8000;")  # approx 8MB cache


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS postings (
          id INTEGER PRIMARY KEY,
          external_id TEXT NOT NULL,
          title       TEXT NOT NULL,
          company     TEXT NOT NULL,
          description TEXT NOT NULL,
          platform    TEXT NOT NULL,
          url         TEXT NOT NULL,
          location    TEXT NOT NULL DEFAULT '',
          created_at  TEXT NOT NULL,
          updated_at  TEXT
        );
        """
    )
    conn.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS ux_postings_external_id
          ON postings (external_id);
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS ix_postings_created_at ON postings (created_at);")
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS search_criteria (
          id INTEGER PRIMARY KEY,
          name       TEXT NOT NULL,
          keywords   TEXT NOT NULL DEFAULT '[]',
          locations  TEXT NOT NULL DEFAULT '[]',
          created_at TEXT NOT NULL,
          updated_at TEXT
        );
        """
    )


def _row_to_posting(row: tuple) -> Posting:
    pid, external_id, title, company, description, platform_tag, url, location, created_at, updated_at = row
    try:
        platform = platform_by_tag(platform_tag)
    except KeyError as e:
        raise InfrastructureError(f"posting {pid} has unknown platform {platform_tag!r}") from e
    return Posting(
        external_id=external_id,
        title=title,
        company=company,
        description=description,
        platform=platform,
        url=url,
        location=location or "",
        id=pid,
        created_at=from_iso(created_at),
        updated_at=from_iso(updated_at),
    )


def _row_to_criteria(row: tuple) -> SearchCriteria:
    cid, name, keywords, locations, created_at, updated_at = row
    return SearchCriteria(
        name=name,
        keywords=frozenset(json.loads(keywords or "[]")),
        locations=frozenset(json.loads(locations or "[]")),
        id=cid,
        created_at=from_iso(created_at),
        updated_at=from_iso(updated_at),
    )
