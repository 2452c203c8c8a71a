"""Assistant chat widget: canned keyword responses with an optional completion API."""

import logging
import os
import re

import openai
from dotenv import load_dotenv
from openai import OpenAI

from practice_dashboard.practice_records.database.communication_repository import (
    CHAT_HISTORY_LIMIT,
    ChatMessage,
    CommunicationRepository,
    chat_scope,
)

load_dotenv(override=True)

logger = logging.getLogger(__name__)

OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
LLM_MODEL = os.environ.get("LLM_MODEL", "gpt-4o-mini")

MAX_MESSAGE_LENGTH = 2000
CONTEXT_MESSAGES = 12

SYSTEM_PROMPT = """You are the billing assistant inside a medical practice-management dashboard.

Help staff with claims, denials, eligibility checks, prior authorizations, payments,
patient registration, scheduling, NPI lookups and medical coding questions.

Rules:
- Be concise and practical. Prefer short steps the user can follow in the dashboard.
- Never ask for or repeat full SSNs, member IDs or other protected health information.
- If you are unsure, say so and point the user to the relevant dashboard page."""

# (keywords, response), first match wins
CANNED_RESPONSES = [
    (
        ("denial", "denials", "denied", "rejected"),
        "To work a denied claim, open **Claims**, filter by status *Denied* and review the "
        "denial reason code. Correct the coding or patient data, then resubmit. Appeals "
        "usually need supporting documentation uploaded to the patient's record.",
    ),
    (
        ("claim", "claims"),
        "Claims are managed under **Claims**. You can create a claim from a completed "
        "appointment, check its status, and resubmit corrected claims. Use **Enhanced Claims** "
        "for batch review.",
    ),
    (
        ("eligibility", "eligible", "coverage"),
        "Use **Eligibility Verification** to check a patient's coverage before the visit. "
        "You'll need the insurance company, member ID and the patient's date of birth.",
    ),
    (
        ("authorization", "authorizations", "prior auth", "pre-auth"),
        "Prior authorizations live under **Authorization**. Submit the request with the "
        "CPT and diagnosis codes, then track its status until the payer approves it.",
    ),
    (
        ("payment", "payments", "balance", "balances", "pay", "paid"),
        "Patient balances show on the **Patients** list. Filter with *Outstanding balance: yes* "
        "to find accounts that need follow-up, and record payments from the billing workflow.",
    ),
    (
        ("schedule", "scheduling", "appointment", "appointments", "book"),
        "Open a patient and choose **Schedule Appointment**. Date, time, type, provider and "
        "reason are required, and the date can't be in the past.",
    ),
    (
        ("register", "new patient", "add patient"),
        "Use **Register New Patient** on the Patients page. Name, date of birth, gender, "
        "contact details, address and primary insurance are required.",
    ),
    (
        ("insurance", "insurer", "payer"),
        "Insurance details are edited from the patient's record with **Edit Insurance**. "
        "The insurance company and insurance ID are required.",
    ),
    (
        ("npi", "taxonomy"),
        "You can look up an NPI from **Customer Setup > Practices**. Enter the 10-digit NPI to "
        "pull the name, address and taxonomy from the NPPES registry.",
    ),
    (
        ("cpt", "icd", "icd-10", "code", "codes", "coding", "modifier", "modifiers"),
        "Use **Code Validation** to check CPT and ICD-10 codes and modifier combinations "
        "before a claim goes out.",
    ),
    (
        ("hello", "hi", "hey"),
        "Hi! I can help with claims, eligibility, authorizations, payments, scheduling and "
        "patient registration. What are you working on?",
    ),
    (
        ("help", "what can you do"),
        "I can walk you through claims and denials, eligibility checks, prior authorizations, "
        "patient registration, scheduling, NPI lookups and coding questions.",
    ),
]

DEFAULT_RESPONSE = (
    "I'm not sure about that one. Try asking about claims, eligibility, authorizations, "
    "payments, scheduling or patient registration."
)


class MessageTooLongError(ValueError):
    """Raised when a chat message exceeds the length limit."""
    pass


def canned_response(text: str) -> str:
    """Pick the first canned response whose keywords appear in the text."""
    lowered = text.lower()
    for keywords, response in CANNED_RESPONSES:
        if any(re.search(rf"\b{re.escape(keyword)}\b", lowered) for keyword in keywords):
            return response
    return DEFAULT_RESPONSE


def _client_from_key(api_key: str | None) -> OpenAI | None:
    return OpenAI(api_key=api_key) if api_key else None


class ChatWidget:
    """Chat history for one user and company, plus reply generation."""

    def __init__(
        self,
        user_id: str | None,
        company_id: str | None,
        repo: CommunicationRepository | None = None,
        client: OpenAI | None = None,
        api_key: str | None = None,
        context: dict | None = None,
    ):
        self.repo = repo or CommunicationRepository()
        self.scope = chat_scope(user_id, company_id)
        self.client = client or _client_from_key(api_key or OPENAI_API_KEY)
        self.context = context or {}
        self.is_loading = False
        self.messages: list[ChatMessage] = self.repo.load_chat_history(self.scope, CHAT_HISTORY_LIMIT)

    def send(self, text: str) -> str | None:
        """
        Record a user message and return the assistant's reply.

        Blank input, or input while a reply is loading, returns None.
        """
        if self.is_loading or not text or not text.strip():
            return None
        text = text.strip()
        if len(text) > MAX_MESSAGE_LENGTH:
            raise MessageTooLongError(f"Message is too long (max {MAX_MESSAGE_LENGTH} characters)")

        self._remember("user", text)

        self.is_loading = True
        try:
            reply = self._generate(text)
        finally:
            self.is_loading = False

        self._remember("assistant", reply)
        return reply

    def clear(self) -> None:
        self.repo.clear_chat_history(self.scope)
        self.messages = []

    def _remember(self, role: str, content: str) -> None:
        self.repo.append_chat_message(self.scope, role, content)
        self.messages.append(ChatMessage(role=role, content=content))
        self.messages = self.messages[-CHAT_HISTORY_LIMIT:]

    def _generate(self, text: str) -> str:
        if self.client is not None:
            reply = self._complete()
            if reply:
                return reply
        return canned_response(text)

    def _context_line(self) -> str:
        parts = [f"{key}: {value}" for key, value in self.context.items() if value]
        return "Current dashboard context - " + ", ".join(parts) if parts else ""

    def _complete(self) -> str | None:
        """One chat completion over the recent history; None on any API failure."""
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        context_line = self._context_line()
        if context_line:
            messages.append({"role": "system", "content": context_line})
        messages.extend(
            {"role": m.role, "content": m.content} for m in self.messages[-CONTEXT_MESSAGES:]
        )

        try:
            response = self.client.chat.completions.create(
                model=LLM_MODEL,
                messages=messages,
                max_completion_tokens=512,
            )
        except openai.OpenAIError:
            logger.warning("Chat completion failed, using canned response", exc_info=True)
            return None

        content = response.choices[0].message.content
        return content.strip() if content else None
