"""SQLite-backed persistence for users, stories, nodes, and choices."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

from story_graph.domain.errors import StoreUnavailable, ValidationError
from story_graph.domain.models import Choice, Node, Story, User

logger = logging.getLogger(__name__)

_USER_COLUMNS = (
    "user_id, email, display_name, password_hash, bio, is_admin, created_at_utc, updated_at_utc"
)
_STORY_COLUMNS = (
    "story_id, author_id, title, description, cover_image, is_draft, is_published, "
    "first_node_id, created_at_utc, updated_at_utc"
)
_NODE_COLUMNS = "node_id, story_id, content, title, is_ending, created_at_utc, updated_at_utc"
_CHOICE_COLUMNS = (
    "choice_id, source_node_id, target_node_id, text, sort_order, sequence, "
    "created_at_utc, updated_at_utc"
)
_JOINED_CHOICE_COLUMNS = ", ".join(f"c.{column.strip()}" for column in _CHOICE_COLUMNS.split(","))

# Domain field name -> column name for partial updates.
_STORY_UPDATABLE = {
    "title": "title",
    "description": "description",
    "cover_image": "cover_image",
    "is_draft": "is_draft",
    "is_published": "is_published",
    "first_node_id": "first_node_id",
}
_NODE_UPDATABLE = {"content": "content", "title": "title", "is_ending": "is_ending"}
_CHOICE_UPDATABLE = {"text": "text", "target_node_id": "target_node_id", "order": "sort_order"}


def _now() -> str:
    return datetime.now(UTC).isoformat()


class SQLiteGraphStore:
    """Persist and query story graph records from one SQLite database."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_schema()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(str(self._db_path))
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection whose statements commit or roll back together."""
        try:
            connection = self._connect()
        except sqlite3.Error as exc:
            logger.error("store.connect_failed db_path=%s error=%s", self._db_path, exc)
            raise StoreUnavailable("Record store unavailable") from exc
        try:
            with connection:
                yield connection
        except sqlite3.Error as exc:
            logger.error("store.statement_failed db_path=%s error=%s", self._db_path, exc)
            raise StoreUnavailable("Record store unavailable") from exc
        finally:
            connection.close()

    def _initialize_schema(self) -> None:
        with self._transaction() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    user_id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    display_name TEXT NOT NULL,
                    password_hash TEXT NOT NULL,
                    bio TEXT,
                    is_admin INTEGER NOT NULL DEFAULT 0,
                    created_at_utc TEXT NOT NULL,
                    updated_at_utc TEXT NOT NULL
                )
                """
            )
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS stories (
                    story_id TEXT PRIMARY KEY,
                    author_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    cover_image TEXT,
                    is_draft INTEGER NOT NULL DEFAULT 1,
                    is_published INTEGER NOT NULL DEFAULT 0,
                    first_node_id TEXT,
                    created_at_utc TEXT NOT NULL,
                    updated_at_utc TEXT NOT NULL,
                    FOREIGN KEY (author_id) REFERENCES users(user_id)
                )
                """
            )
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS nodes (
                    node_id TEXT PRIMARY KEY,
                    story_id TEXT NOT NULL,
                    content TEXT NOT NULL,
                    title TEXT,
                    is_ending INTEGER NOT NULL DEFAULT 0,
                    created_at_utc TEXT NOT NULL,
                    updated_at_utc TEXT NOT NULL,
                    FOREIGN KEY (story_id) REFERENCES stories(story_id)
                )
                """
            )
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS choices (
                    sequence INTEGER PRIMARY KEY AUTOINCREMENT,
                    choice_id TEXT NOT NULL UNIQUE,
                    source_node_id TEXT NOT NULL,
                    target_node_id TEXT NOT NULL,
                    text TEXT NOT NULL,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    created_at_utc TEXT NOT NULL,
                    updated_at_utc TEXT NOT NULL,
                    FOREIGN KEY (source_node_id) REFERENCES nodes(node_id),
                    FOREIGN KEY (target_node_id) REFERENCES nodes(node_id)
                )
                """
            )
            connection.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_stories_author_created
                ON stories(author_id, created_at_utc DESC)
                """
            )
            connection.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_stories_published_created
                ON stories(is_published, created_at_utc DESC)
                """
            )
            connection.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_nodes_story_created
                ON nodes(story_id, created_at_utc)
                """
            )
            connection.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_choices_source_order
                ON choices(source_node_id, sort_order, sequence)
                """
            )
            connection.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_choices_target
                ON choices(target_node_id)
                """
            )

    def create_user(
        self,
        *,
        email: str,
        display_name: str,
        password_hash: str,
        bio: str | None = None,
        is_admin: bool = False,
    ) -> User | None:
        """Create a user record; return None when email is already taken."""
        now = _now()
        user_id = uuid4().hex
        with self._transaction() as connection:
            try:
                connection.execute(
                    f"""
                    INSERT INTO users ({_USER_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user_id,
                        email.lower(),
                        display_name,
                        password_hash,
                        bio,
                        int(is_admin),
                        now,
                        now,
                    ),
                )
            except sqlite3.IntegrityError:
                return None
        return self.get_user_by_id(user_id=user_id)

    def get_user_by_email(self, *, email: str) -> User | None:
        """Load one user by normalized email."""
        with self._transaction() as connection:
            row = connection.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE email = ?",
                (email.lower(),),
            ).fetchone()
        if row is None:
            return None
        return self._user_from_row(row)

    def get_user_by_id(self, *, user_id: str) -> User | None:
        """Load one user by id."""
        with self._transaction() as connection:
            row = connection.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        if row is None:
            return None
        return self._user_from_row(row)

    def create_story_with_first_node(
        self,
        *,
        author_id: str,
        title: str,
        description: str | None,
        cover_image: str | None,
        first_node_content: str,
        first_node_title: str | None,
    ) -> tuple[Story, Node]:
        """Create a story and its entry node in one transaction.

        Readers never see the story without ``first_node_id``.
        """
        now = _now()
        story_id = uuid4().hex
        node_id = uuid4().hex
        with self._transaction() as connection:
            connection.execute(
                f"""
                INSERT INTO stories ({_STORY_COLUMNS})
                VALUES (?, ?, ?, ?, ?, 1, 0, NULL, ?, ?)
                """,
                (story_id, author_id, title, description, cover_image, now, now),
            )
            connection.execute(
                f"""
                INSERT INTO nodes ({_NODE_COLUMNS})
                VALUES (?, ?, ?, ?, 0, ?, ?)
                """,
                (node_id, story_id, first_node_content, first_node_title, now, now),
            )
            connection.execute(
                "UPDATE stories SET first_node_id = ? WHERE story_id = ?",
                (node_id, story_id),
            )
        story = self.get_story(story_id=story_id)
        node = self.get_node(node_id=node_id)
        if story is None or node is None:
            raise StoreUnavailable("Created story could not be loaded.")
        return story, node

    def get_story(self, *, story_id: str) -> Story | None:
        """Load one story by id."""
        with self._transaction() as connection:
            row = connection.execute(
                f"SELECT {_STORY_COLUMNS} FROM stories WHERE story_id = ?",
                (story_id,),
            ).fetchone()
        if row is None:
            return None
        return self._story_from_row(row)

    def list_published_stories(self, *, limit: int = 100) -> list[Story]:
        """Return the most recently created published stories."""
        with self._transaction() as connection:
            rows = connection.execute(
                f"""
                SELECT {_STORY_COLUMNS}
                FROM stories
                WHERE is_published = 1
                ORDER BY created_at_utc DESC, rowid DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [self._story_from_row(row) for row in rows]

    def list_stories_by_author(self, *, author_id: str, limit: int = 100) -> list[Story]:
        """Return one author's stories regardless of publish state."""
        with self._transaction() as connection:
            rows = connection.execute(
                f"""
                SELECT {_STORY_COLUMNS}
                FROM stories
                WHERE author_id = ?
                ORDER BY created_at_utc DESC, rowid DESC
                LIMIT ?
                """,
                (author_id, limit),
            ).fetchall()
        return [self._story_from_row(row) for row in rows]

    def update_story(self, *, story_id: str, fields: Mapping[str, object]) -> Story | None:
        """Apply a partial update and return the new stored value.

        A new ``first_node_id`` is written only while that node still exists in
        the story; otherwise nothing changes and ``None`` is returned.
        """
        condition = ""
        condition_params: tuple[object, ...] = ()
        if "first_node_id" in fields:
            condition = "EXISTS (SELECT 1 FROM nodes WHERE node_id = ? AND story_id = ?)"
            condition_params = (fields["first_node_id"], story_id)
        updated = self._update_row(
            table="stories",
            key_column="story_id",
            key=story_id,
            fields=fields,
            updatable=_STORY_UPDATABLE,
            condition=condition,
            condition_params=condition_params,
        )
        if not updated:
            return None
        return self.get_story(story_id=story_id)

    def delete_story_cascade(self, *, story_id: str) -> bool:
        """Delete a story with all of its nodes and their choices."""
        with self._transaction() as connection:
            connection.execute(
                """
                DELETE FROM choices
                WHERE source_node_id IN (SELECT node_id FROM nodes WHERE story_id = ?)
                   OR target_node_id IN (SELECT node_id FROM nodes WHERE story_id = ?)
                """,
                (story_id, story_id),
            )
            connection.execute("DELETE FROM nodes WHERE story_id = ?", (story_id,))
            cursor = connection.execute("DELETE FROM stories WHERE story_id = ?", (story_id,))
            deleted_rows = cursor.rowcount
        return deleted_rows > 0

    def create_node(
        self, *, story_id: str, content: str, title: str | None, is_ending: bool
    ) -> Node:
        """Create and persist one node."""
        now = _now()
        node_id = uuid4().hex
        with self._transaction() as connection:
            connection.execute(
                f"""
                INSERT INTO nodes ({_NODE_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (node_id, story_id, content, title, int(is_ending), now, now),
            )
        node = self.get_node(node_id=node_id)
        if node is None:
            raise StoreUnavailable("Created node could not be loaded.")
        return node

    def get_node(self, *, node_id: str) -> Node | None:
        """Load one node by id."""
        with self._transaction() as connection:
            row = connection.execute(
                f"SELECT {_NODE_COLUMNS} FROM nodes WHERE node_id = ?",
                (node_id,),
            ).fetchone()
        if row is None:
            return None
        return self._node_from_row(row)

    def list_nodes(self, *, story_id: str) -> list[Node]:
        """Return a story's nodes in creation order."""
        with self._transaction() as connection:
            rows = connection.execute(
                f"""
                SELECT {_NODE_COLUMNS}
                FROM nodes
                WHERE story_id = ?
                ORDER BY created_at_utc ASC, rowid ASC
                """,
                (story_id,),
            ).fetchall()
        return [self._node_from_row(row) for row in rows]

    def update_node(self, *, node_id: str, fields: Mapping[str, object]) -> Node | None:
        """Apply a partial update and return the new stored value."""
        updated = self._update_row(
            table="nodes",
            key_column="node_id",
            key=node_id,
            fields=fields,
            updatable=_NODE_UPDATABLE,
        )
        if not updated:
            return None
        return self.get_node(node_id=node_id)

    def delete_node_cascade(self, *, node_id: str) -> bool:
        """Delete a node together with its outbound and inbound choices.

        Raises ``ValidationError`` while any story uses the node as its entry
        node; the check and the deletes share one write transaction.
        """
        with self._transaction() as connection:
            connection.execute("BEGIN IMMEDIATE")
            entry = connection.execute(
                "SELECT story_id FROM stories WHERE first_node_id = ?",
                (node_id,),
            ).fetchone()
            if entry is not None:
                raise ValidationError(
                    "Cannot delete the story's first node; set another first_node_id first"
                )
            connection.execute(
                "DELETE FROM choices WHERE source_node_id = ? OR target_node_id = ?",
                (node_id, node_id),
            )
            cursor = connection.execute("DELETE FROM nodes WHERE node_id = ?", (node_id,))
            deleted_rows = cursor.rowcount
        return deleted_rows > 0

    def create_choice(
        self, *, source_node_id: str, target_node_id: str, text: str, order: int
    ) -> Choice:
        """Create and persist one choice."""
        now = _now()
        choice_id = uuid4().hex
        with self._transaction() as connection:
            connection.execute(
                """
                INSERT INTO choices (
                    choice_id, source_node_id, target_node_id, text, sort_order,
                    created_at_utc, updated_at_utc
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (choice_id, source_node_id, target_node_id, text, order, now, now),
            )
        choice = self.get_choice(choice_id=choice_id)
        if choice is None:
            raise StoreUnavailable("Created choice could not be loaded.")
        return choice

    def get_choice(self, *, choice_id: str) -> Choice | None:
        """Load one choice by id."""
        with self._transaction() as connection:
            row = connection.execute(
                f"SELECT {_CHOICE_COLUMNS} FROM choices WHERE choice_id = ?",
                (choice_id,),
            ).fetchone()
        if row is None:
            return None
        return self._choice_from_row(row)

    def list_choices(self, *, source_node_id: str) -> list[Choice]:
        """Return a node's outbound choices by order, then insertion."""
        with self._transaction() as connection:
            rows = connection.execute(
                f"""
                SELECT {_CHOICE_COLUMNS}
                FROM choices
                WHERE source_node_id = ?
                ORDER BY sort_order ASC, sequence ASC
                """,
                (source_node_id,),
            ).fetchall()
        return [self._choice_from_row(row) for row in rows]

    def list_choices_by_story(self, *, story_id: str) -> list[Choice]:
        """Return every choice whose source node belongs to the story."""
        with self._transaction() as connection:
            rows = connection.execute(
                f"""
                SELECT {_JOINED_CHOICE_COLUMNS}
                FROM choices c
                JOIN nodes n ON n.node_id = c.source_node_id
                WHERE n.story_id = ?
                ORDER BY c.source_node_id, c.sort_order ASC, c.sequence ASC
                """,
                (story_id,),
            ).fetchall()
        return [self._choice_from_row(row) for row in rows]

    def update_choice(self, *, choice_id: str, fields: Mapping[str, object]) -> Choice | None:
        """Apply a partial update and return the new stored value."""
        updated = self._update_row(
            table="choices",
            key_column="choice_id",
            key=choice_id,
            fields=fields,
            updatable=_CHOICE_UPDATABLE,
        )
        if not updated:
            return None
        return self.get_choice(choice_id=choice_id)

    def delete_choice(self, *, choice_id: str) -> bool:
        """Delete one choice; return False when it did not exist."""
        with self._transaction() as connection:
            cursor = connection.execute("DELETE FROM choices WHERE choice_id = ?", (choice_id,))
            deleted_rows = cursor.rowcount
        return deleted_rows > 0

    def apply_choice_orders(self, *, source_node_id: str, orders: Mapping[str, int]) -> None:
        """Write new order values for a node's choices in one transaction."""
        if not orders:
            return
        now = _now()
        with self._transaction() as connection:
            connection.executemany(
                """
                UPDATE choices
                SET sort_order = ?, updated_at_utc = ?
                WHERE choice_id = ? AND source_node_id = ?
                """,
                [
                    (order, now, choice_id, source_node_id)
                    for choice_id, order in orders.items()
                ],
            )

    def _update_row(
        self,
        *,
        table: str,
        key_column: str,
        key: str,
        fields: Mapping[str, object],
        updatable: Mapping[str, str],
        condition: str = "",
        condition_params: tuple[object, ...] = (),
    ) -> bool:
        unknown = sorted(set(fields) - set(updatable))
        if unknown:
            raise ValueError(f"Fields not updatable on {table}: {', '.join(unknown)}")
        assignments = [f"{updatable[name]} = ?" for name in fields]
        values: list[object] = [
            int(value) if isinstance(value, bool) else value for value in fields.values()
        ]
        assignments.append("updated_at_utc = ?")
        values.append(_now())
        values.append(key)
        where = f"{key_column} = ?"
        if condition:
            where = f"{where} AND {condition}"
            values.extend(condition_params)
        with self._transaction() as connection:
            cursor = connection.execute(
                f"UPDATE {table} SET {', '.join(assignments)} WHERE {where}",
                values,
            )
            updated_rows = cursor.rowcount
        return updated_rows > 0

    @staticmethod
    def _user_from_row(row: sqlite3.Row) -> User:
        return User(
            user_id=str(row["user_id"]),
            email=str(row["email"]),
            display_name=str(row["display_name"]),
            password_hash=str(row["password_hash"]),
            bio=row["bio"],
            is_admin=bool(row["is_admin"]),
            created_at_utc=str(row["created_at_utc"]),
            updated_at_utc=str(row["updated_at_utc"]),
        )

    @staticmethod
    def _story_from_row(row: sqlite3.Row) -> Story:
        return Story(
            story_id=str(row["story_id"]),
            author_id=str(row["author_id"]),
            title=str(row["title"]),
            description=row["description"],
            cover_image=row["cover_image"],
            is_draft=bool(row["is_draft"]),
            is_published=bool(row["is_published"]),
            first_node_id=row["first_node_id"],
            created_at_utc=str(row["created_at_utc"]),
            updated_at_utc=str(row["updated_at_utc"]),
        )

    @staticmethod
    def _node_from_row(row: sqlite3.Row) -> Node:
        return Node(
            node_id=str(row["node_id"]),
            story_id=str(row["story_id"]),
            content=str(row["content"]),
            title=row["title"],
            is_ending=bool(row["is_ending"]),
            created_at_utc=str(row["created_at_utc"]),
            updated_at_utc=str(row["updated_at_utc"]),
        )

    @staticmethod
    def _choice_from_row(row: sqlite3.Row) -> Choice:
        return Choice(
            choice_id=str(row["choice_id"]),
            source_node_id=str(row["source_node_id"]),
            target_node_id=str(row["target_node_id"]),
            text=str(row["text"]),
            order=int(row["sort_order"]),
            sequence=int(row["sequence"]),
            created_at_utc=str(row["created_at_utc"]),
            updated_at_utc=str(row["updated_at_utc"]),
        )
