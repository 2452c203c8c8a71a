"""Documents, patient messages and assistant chat history."""

import json
import uuid
from dataclasses import dataclass
from datetime import datetime

from .connection import get_connection

CHAT_HISTORY_LIMIT = 200


@dataclass
class Document:
    id: str | None
    patient_id: str
    document_type: str
    document_name: str
    uploaded_by: str
    description: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    storage_path: str | None = None
    uploaded_at: str | None = None


@dataclass
class Message:
    id: str | None
    patient_id: str
    message_type: str
    subject: str
    message: str
    send_method: str
    sender: str
    priority: str = "normal"
    scheduled_send: str | None = None
    attachments: list[str] | None = None
    status: str = "sent"
    sent_at: str | None = None
    read_at: str | None = None


@dataclass
class ChatMessage:
    role: str
    content: str
    created_at: str | None = None


def chat_scope(user_id: str | None, company_id: str | None) -> str:
    """History key shared by one user within one company."""
    return f"{user_id or 'anonymous'}:{company_id or 'none'}"


class CommunicationRepository:
    """Repository for documents, messages and chat history."""

    # Documents

    def create_document(self, document: Document) -> Document:
        document.id = document.id or str(uuid.uuid4())
        document.uploaded_at = datetime.now().isoformat()

        conn = get_connection()
        conn.execute("""
            INSERT INTO documents (
                id, patient_id, document_type, document_name, description,
                file_name, file_size, mime_type, storage_path, uploaded_by, uploaded_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            document.id, document.patient_id, document.document_type, document.document_name,
            document.description, document.file_name, document.file_size, document.mime_type,
            document.storage_path, document.uploaded_by, document.uploaded_at,
        ))
        conn.commit()
        conn.close()
        return document

    def list_documents(self, patient_id: str) -> list[Document]:
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute(
            "SELECT * FROM documents WHERE patient_id = ? ORDER BY uploaded_at DESC",
            (patient_id,),
        )
        rows = cursor.fetchall()
        conn.close()
        return [Document(**dict(row)) for row in rows]

    def delete_document(self, document_id: str) -> bool:
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute("DELETE FROM documents WHERE id = ?", (document_id,))
        deleted = cursor.rowcount > 0
        conn.commit()
        conn.close()
        return deleted

    # Messages

    def create_message(self, message: Message) -> Message:
        message.id = message.id or str(uuid.uuid4())
        message.sent_at = datetime.now().isoformat()

        conn = get_connection()
        conn.execute("""
            INSERT INTO messages (
                id, patient_id, message_type, subject, message, priority, send_method,
                scheduled_send, sender, attachments, status, sent_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            message.id, message.patient_id, message.message_type, message.subject,
            message.message, message.priority, message.send_method, message.scheduled_send,
            message.sender, json.dumps(message.attachments) if message.attachments else None,
            message.status, message.sent_at,
        ))
        conn.commit()
        conn.close()
        return message

    def list_messages(self, patient_id: str) -> list[Message]:
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute(
            "SELECT * FROM messages WHERE patient_id = ? ORDER BY sent_at DESC",
            (patient_id,),
        )
        rows = cursor.fetchall()
        conn.close()
        return [self._row_to_message(row) for row in rows]

    def mark_message_read(self, message_id: str) -> bool:
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute(
            "UPDATE messages SET status = 'read', read_at = ? WHERE id = ?",
            (datetime.now().isoformat(), message_id),
        )
        updated = cursor.rowcount > 0
        conn.commit()
        conn.close()
        return updated

    # Chat history

    def append_chat_message(self, scope: str, role: str, content: str) -> None:
        """Store one chat turn and drop anything past the history limit."""
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute(
            "INSERT INTO chat_messages (scope, role, content, created_at) VALUES (?, ?, ?, ?)",
            (scope, role, content, datetime.now().isoformat()),
        )
        cursor.execute("""
            DELETE FROM chat_messages
            WHERE scope = ? AND id NOT IN (
                SELECT id FROM chat_messages WHERE scope = ? ORDER BY id DESC LIMIT ?
            )
        """, (scope, scope, CHAT_HISTORY_LIMIT))
        conn.commit()
        conn.close()

    def load_chat_history(self, scope: str, limit: int = CHAT_HISTORY_LIMIT) -> list[ChatMessage]:
        """Most recent messages for a scope, oldest first."""
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute(
            "SELECT role, content, created_at FROM chat_messages WHERE scope = ? ORDER BY id DESC LIMIT ?",
            (scope, limit),
        )
        rows = cursor.fetchall()
        conn.close()
        return [ChatMessage(**dict(row)) for row in reversed(rows)]

    def clear_chat_history(self, scope: str) -> None:
        conn = get_connection()
        conn.execute("DELETE FROM chat_messages WHERE scope = ?", (scope,))
        conn.commit()
        conn.close()

    def _row_to_message(self, row) -> Message:
        """Convert a database row to a Message object."""
        data = dict(row)
        data["attachments"] = json.loads(data["attachments"]) if data["attachments"] else None
        return Message(**data)
