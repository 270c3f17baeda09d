"""SQLite FTS5 lexical index over the clips table.

The index is an external-content FTS5 table. Triggers on ``clips`` mirror
every insert, delete and update into it, so the projection is written in the
same transaction as the canonical row and can never be observed out of sync.
"""

import re
import sqlite3
from typing import List, Optional

FTS_TABLE = "clips_fts"

INDEX_SCHEMA = f"""
CREATE VIRTUAL TABLE IF NOT EXISTS {FTS_TABLE} USING fts5(
    content,
    summary,
    tags,
    source,
    content='clips',
    content_rowid='seq',
    tokenize='porter unicode61'
);

CREATE TRIGGER IF NOT EXISTS clips_ai AFTER INSERT ON clips BEGIN
    INSERT INTO {FTS_TABLE}(rowid, content, summary, tags, source)
    VALUES (NEW.seq, NEW.content, NEW.summary, NEW.tags, NEW.source);
END;

CREATE TRIGGER IF NOT EXISTS clips_ad AFTER DELETE ON clips BEGIN
    INSERT INTO {FTS_TABLE}({FTS_TABLE}, rowid, content, summary, tags, source)
    VALUES ('delete', OLD.seq, OLD.content, OLD.summary, OLD.tags, OLD.source);
END;

CREATE TRIGGER IF NOT EXISTS clips_au AFTER UPDATE ON clips BEGIN
    INSERT INTO {FTS_TABLE}({FTS_TABLE}, rowid, content, summary, tags, source)
    VALUES ('delete', OLD.seq, OLD.content, OLD.summary, OLD.tags, OLD.source);
    INSERT INTO {FTS_TABLE}(rowid, content, summary, tags, source)
    VALUES (NEW.seq, NEW.content, NEW.summary, NEW.tags, NEW.source);
END;
"""

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def build_match_expression(query: str) -> Optional[str]:
    """Turn free text into an FTS5 expression.

    Every word token becomes a quoted phrase and the phrases are implicitly
    AND-ed, so punctuation or FTS5 operators typed by the user are matched as
    plain text instead of raising a syntax error. Returns None when the query
    has no word tokens.
    """
    tokens = _TOKEN_RE.findall(query)
    if not tokens:
        return None
    return " ".join(f'"{token}"' for token in tokens)


class LexicalIndex:
    """Full-text match and relevance ranking over content, summary, tags, source."""

    def __init__(self, columns: str):
        # Column list of the clips table to select for matching rows
        self.columns = columns

    def create(self, conn: sqlite3.Connection) -> None:
        conn.executescript(INDEX_SCHEMA)

    def match(
        self, conn: sqlite3.Connection, query: str, limit: int
    ) -> List[sqlite3.Row]:
        """Rows matching ``query``, best bm25 rank first, ties by insertion."""
        expression = build_match_expression(query)
        if expression is None or limit <= 0:
            return []

        select = ", ".join(f"c.{col.strip()}" for col in self.columns.split(","))
        return conn.execute(
            f"""
            SELECT {select}
            FROM {FTS_TABLE}
            JOIN clips c ON c.seq = {FTS_TABLE}.rowid
            WHERE {FTS_TABLE} MATCH ?
            ORDER BY {FTS_TABLE}.rank, c.seq
            LIMIT ?
            """,
            (expression, limit),
        ).fetchall()

    def rebuild(self, conn: sqlite3.Connection) -> None:
        """Re-derive the whole index from the clips table."""
        conn.execute(f"INSERT INTO {FTS_TABLE}({FTS_TABLE}) VALUES ('rebuild')")
