# backend/app/db/sqlite_store.py

import sqlite3
import threading
import time
from pathlib import Path
from typing import List, Optional, Union

from app.core.errors import StorageError
from app.core.logger import logger
from app.models.conversation_models import Conversation, ConversationStatus, Message, Role
from app.models.metadata_models import MessageMetadata, decode_metadata, encode_metadata


# Retry configuration
MAX_RETRIES = 5
RETRY_DELAY = 0.1  # 100ms


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class SQLiteConversationStore:
    """Durable conversations and their messages.

    Every public method is one committed unit of work. Messages reference
    their conversation with ON DELETE CASCADE, so no message outlives its
    conversation. Timestamps are epoch milliseconds and strictly increase
    within one store.
    """

    def __init__(self, db_path: Union[str, Path]):
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self.conn = sqlite3.connect(
            str(db_path),
            check_same_thread=False,
            timeout=30.0
        )
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA synchronous=NORMAL")
        self.conn.execute("PRAGMA busy_timeout=30000")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._lock = threading.RLock()
        self._last_ts = 0
        self._init_tables()

    def _now(self) -> int:
        with self._lock:
            self._last_ts = max(self._last_ts + 1, _epoch_ms())
            return self._last_ts

    def _execute_with_retry(self, operation, *args, **kwargs):
        """Run one unit of work, retrying while the database is locked.

        Any other sqlite error rolls back and surfaces as StorageError.
        """
        with self._lock:
            for attempt in range(MAX_RETRIES):
                try:
                    return operation(*args, **kwargs)
                except sqlite3.OperationalError as e:
                    self.conn.rollback()
                    if "locked" in str(e).lower() and attempt < MAX_RETRIES - 1:
                        time.sleep(RETRY_DELAY * (attempt + 1))
                        continue
                    logger.error(f"SQLite operation failed: {e}")
                    raise StorageError("Database operation failed", details=str(e)) from e
                except sqlite3.Error as e:
                    self.conn.rollback()
                    logger.error(f"SQLite operation failed: {e}")
                    raise StorageError("Database operation failed", details=str(e)) from e

    # ----------------------------------------------------------------------
    # CREATE TABLES
    # ----------------------------------------------------------------------
    def _init_tables(self):
        def _create():
            cur = self.conn.cursor()

            cur.execute("""
            CREATE TABLE IF NOT EXISTS conversations (
                id TEXT PRIMARY KEY,
                title TEXT,
                agent_session_id TEXT,
                status TEXT NOT NULL DEFAULT 'active',
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            );
            """)

            cur.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                id TEXT PRIMARY KEY,
                conversation_id TEXT NOT NULL,
                role TEXT NOT NULL,
                content TEXT NOT NULL,
                metadata TEXT,
                created_at INTEGER NOT NULL,
                FOREIGN KEY (conversation_id) REFERENCES conversations(id) ON DELETE CASCADE
            );
            """)

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_msg_conv ON messages(conversation_id, created_at);"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_conv_status ON conversations(status, updated_at);")

            self.conn.commit()

        self._execute_with_retry(_create)

    # ----------------------------------------------------------------------
    # ROW MAPPING
    # ----------------------------------------------------------------------
    @staticmethod
    def _to_conversation(row: sqlite3.Row) -> Conversation:
        return Conversation(
            id=row["id"],
            title=row["title"],
            agent_session_id=row["agent_session_id"],
            status=ConversationStatus(row["status"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _to_message(row: sqlite3.Row) -> Message:
        return Message(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=Role(row["role"]),
            content=row["content"],
            metadata=decode_metadata(row["metadata"]),
            created_at=row["created_at"],
        )

    # ----------------------------------------------------------------------
    # CONVERSATIONS
    # ----------------------------------------------------------------------
    def create_conversation(self, conversation_id: str, title: Optional[str] = None) -> Conversation:
        def _create_conversation():
            now = self._now()
            self.conn.execute("""
            INSERT INTO conversations (id, title, agent_session_id, status, created_at, updated_at)
            VALUES (?, ?, NULL, ?, ?, ?)
            """, (conversation_id, title, ConversationStatus.ACTIVE.value, now, now))
            self.conn.commit()
            return Conversation(id=conversation_id, title=title, created_at=now, updated_at=now)

        return self._execute_with_retry(_create_conversation)

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        def _get():
            row = self.conn.execute(
                "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
            ).fetchone()
            return self._to_conversation(row) if row else None

        return self._execute_with_retry(_get)

    def list_active_conversations(self) -> List[Conversation]:
        def _list():
            rows = self.conn.execute("""
            SELECT * FROM conversations
            WHERE status = ?
            ORDER BY updated_at DESC
            """, (ConversationStatus.ACTIVE.value,)).fetchall()
            return [self._to_conversation(r) for r in rows]

        return self._execute_with_retry(_list)

    def update_agent_session_id(self, conversation_id: str, session_id: str) -> bool:
        """Returns False when the conversation does not exist."""
        def _update_session():
            cur = self.conn.execute("""
            UPDATE conversations SET agent_session_id=?, updated_at=?
            WHERE id = ?
            """, (session_id, self._now(), conversation_id))
            self.conn.commit()
            return cur.rowcount > 0

        return self._execute_with_retry(_update_session)

    def set_conversation_title(self, conversation_id: str, title: str) -> bool:
        """Returns False when the conversation does not exist."""
        def _update_title():
            cur = self.conn.execute("""
            UPDATE conversations SET title=?, updated_at=?
            WHERE id = ?
            """, (title, self._now(), conversation_id))
            self.conn.commit()
            return cur.rowcount > 0

        return self._execute_with_retry(_update_title)

    def delete_conversation(self, conversation_id: str) -> bool:
        def _delete_conversation():
            # also cascaded by the foreign key
            self.conn.execute("DELETE FROM messages WHERE conversation_id = ?", (conversation_id,))
            cur = self.conn.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))
            self.conn.commit()
            return cur.rowcount > 0

        return self._execute_with_retry(_delete_conversation)

    # ----------------------------------------------------------------------
    # MESSAGES
    # ----------------------------------------------------------------------
    def create_message(
        self,
        message_id: str,
        conversation_id: str,
        role: Union[Role, str],
        content: str,
        metadata: Optional[MessageMetadata] = None,
    ) -> Message:
        role = Role(role)

        def _add_message():
            now = self._now()
            self.conn.execute("""
            INSERT INTO messages (id, conversation_id, role, content, metadata, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """, (
                message_id,
                conversation_id,
                role.value,
                content,
                encode_metadata(metadata),
                now,
            ))
            self.conn.execute(
                "UPDATE conversations SET updated_at=? WHERE id = ?", (now, conversation_id)
            )
            self.conn.commit()
            return Message(
                id=message_id,
                conversation_id=conversation_id,
                role=role,
                content=content,
                metadata=metadata,
                created_at=now,
            )

        return self._execute_with_retry(_add_message)

    def list_messages(self, conversation_id: str) -> List[Message]:
        def _list():
            rows = self.conn.execute("""
            SELECT * FROM messages
            WHERE conversation_id = ?
            ORDER BY created_at ASC, rowid ASC
            """, (conversation_id,)).fetchall()
            return [self._to_message(r) for r in rows]

        return self._execute_with_retry(_list)

    def close(self):
        with self._lock:
            self.conn.close()
