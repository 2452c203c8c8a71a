"""Tests for documents, messages and chat history storage."""

import pytest

from practice_dashboard.practice_records.database import CommunicationRepository, PatientRepository
from practice_dashboard.practice_records.database.communication_repository import (
    CHAT_HISTORY_LIMIT,
    Document,
    Message,
    chat_scope,
)
from practice_dashboard.practice_records.database.patient_repository import Patient


@pytest.fixture
def repo():
    return CommunicationRepository()


@pytest.fixture
def patient():
    return PatientRepository().create(Patient(
        id="p-1", first_name="Jane", last_name="Doe", date_of_birth="1990-01-15",
    ))


class TestDocumentsAndMessages:
    """Tests for patient documents and messages."""

    def test_document_lifecycle(self, repo, patient):
        document = repo.create_document(Document(
            id=None, patient_id=patient.id, document_type="Lab", document_name="CBC",
            uploaded_by="Nurse", file_name="cbc.pdf", file_size=1024, mime_type="application/pdf",
        ))
        assert document.uploaded_at is not None
        assert [d.file_name for d in repo.list_documents(patient.id)] == ["cbc.pdf"]
        assert repo.delete_document(document.id) is True
        assert repo.list_documents(patient.id) == []

    def test_message_attachments_round_trip(self, repo, patient):
        message = repo.create_message(Message(
            id=None, patient_id=patient.id, message_type="Reminder", subject="Visit",
            message="See you soon", send_method="email", sender="Front desk",
            attachments=["prep.pdf"],
        ))
        stored = repo.list_messages(patient.id)[0]
        assert stored.attachments == ["prep.pdf"]
        assert stored.status == "sent"

        assert repo.mark_message_read(message.id) is True
        stored = repo.list_messages(patient.id)[0]
        assert stored.status == "read"
        assert stored.read_at is not None

    def test_message_without_attachments(self, repo, patient):
        repo.create_message(Message(
            id=None, patient_id=patient.id, message_type="Note", subject="Hi",
            message="Hello", send_method="portal", sender="Dr. Lee",
        ))
        assert repo.list_messages(patient.id)[0].attachments is None


class TestChatHistory:
    """Tests for scoped chat history."""

    def test_scope_defaults(self):
        assert chat_scope("u-1", "c-1") == "u-1:c-1"
        assert chat_scope(None, None) == "anonymous:none"

    def test_history_is_scoped_and_ordered(self, repo):
        repo.append_chat_message("u-1:c-1", "user", "first")
        repo.append_chat_message("u-1:c-1", "assistant", "second")
        repo.append_chat_message("u-1:c-2", "user", "other company")

        history = repo.load_chat_history("u-1:c-1")
        assert [(m.role, m.content) for m in history] == [("user", "first"), ("assistant", "second")]

    def test_history_is_trimmed(self, repo):
        for index in range(CHAT_HISTORY_LIMIT + 5):
            repo.append_chat_message("u-1:c-1", "user", f"message {index}")

        history = repo.load_chat_history("u-1:c-1")
        assert len(history) == CHAT_HISTORY_LIMIT
        assert history[0].content == "message 5"
        assert history[-1].content == f"message {CHAT_HISTORY_LIMIT + 4}"

    def test_clear(self, repo):
        repo.append_chat_message("u-1:c-1", "user", "hello")
        repo.append_chat_message("u-2:c-1", "user", "keep me")
        repo.clear_chat_history("u-1:c-1")
        assert repo.load_chat_history("u-1:c-1") == []
        assert len(repo.load_chat_history("u-2:c-1")) == 1
