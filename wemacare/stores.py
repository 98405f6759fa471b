"""
Stores Module
=============
Application state stores persisted through KeyValueStorage:

  - AuthStore        ("auth-storage")       signed-in user and profile
  - HealthcareStore  ("healthcare-storage") symptoms, analysis, bookings, chat
  - LanguageStore    ("language-storage")   selected language and UI strings
"""

from __future__ import annotations

import copy
import logging
from typing import Optional

from wemacare import records
from wemacare.records import CURRENT_USER_ID
from wemacare.storage import KeyValueStorage, PersistedStore
from wemacare.translator import DEFAULT_LANGUAGE, Translator, get_language_by_code

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class AuthStore(PersistedStore):
    """Mock authentication: any non-empty credentials sign in."""

    name = "auth-storage"

    def initial_state(self) -> dict:
        return {"user": None, "is_authenticated": False}

    @property
    def user(self) -> Optional[dict]:
        return self.state["user"]

    @property
    def is_authenticated(self) -> bool:
        return bool(self.state["is_authenticated"])

    def login(self, email: str, password: str) -> bool:
        if not email or not password:
            return False
        user = records.create_user(email=email, name="John Doe", user_id="1")
        self._set(user=user, is_authenticated=True)
        logger.info("User %s signed in.", email)
        return True

    def signup(self, email: str, password: str, name: str) -> bool:
        if not email or not password or not name:
            return False
        user = records.create_user(email=email, name=name)
        self._set(user=user, is_authenticated=True)
        logger.info("Created account for %s.", email)
        return True

    def logout(self) -> None:
        self._set(user=None, is_authenticated=False)

    def update_user(self, changes: dict) -> Optional[dict]:
        """Shallow-merge changes into the signed-in user."""
        if self.user is None:
            return None
        self._set(user={**self.user, **changes})
        return self.user

    def ensure_medical_profile(self) -> None:
        if self.user is not None and not self.user.get("medical_profile"):
            self._set(user={**self.user, "medical_profile": records.default_medical_profile()})


# ---------------------------------------------------------------------------
# Healthcare
# ---------------------------------------------------------------------------

class HealthcareStore(PersistedStore):
    """Symptom session, recommendations, appointments and doctor messages."""

    name = "healthcare-storage"

    def initial_state(self) -> dict:
        return {
            "symptoms": [],
            "current_analysis": "",
            "recommendations": None,
            "mental_health_assessment": None,
            "appointments": [],
            "conversations": [],
            "messages": [],
        }

    # Session

    def set_symptoms(self, symptoms: list[dict]) -> None:
        self._set(symptoms=list(symptoms))

    def add_symptom(self, symptom: dict) -> None:
        self._set(symptoms=self.state["symptoms"] + [symptom])

    def remove_symptom(self, symptom_id: str) -> bool:
        remaining = [s for s in self.state["symptoms"] if s.get("id") != symptom_id]
        if len(remaining) == len(self.state["symptoms"]):
            return False
        self._set(symptoms=remaining)
        return True

    def set_analysis(self, analysis: str) -> None:
        self._set(current_analysis=analysis)

    def set_recommendations(self, recommendations: dict) -> None:
        self._set(recommendations=recommendations)

    def set_mental_health_assessment(self, assessment: Optional[dict]) -> None:
        self._set(mental_health_assessment=assessment)

    def clear_current_session(self) -> None:
        """Forget symptoms, analysis and recommendations; keep history."""
        self._set(symptoms=[], current_analysis="", recommendations=None)

    # Appointments

    def book_appointment(self, appointment: dict) -> None:
        self._set(appointments=self.state["appointments"] + [appointment])

    def book_doctor_slot(self, doctor: dict, date: str, time_slot: str, symptoms: str = "") -> dict:
        """Book a slot with a doctor and notify them in the chat.

        Returns:
            The new pending appointment.
        """
        appointment = records.create_appointment(
            doctor_id=doctor["id"],
            patient_id=CURRENT_USER_ID,
            date=date,
            time_slot=time_slot,
            symptoms=symptoms,
        )
        self.book_appointment(appointment)
        self.send_message(
            records.create_message(
                sender_id=CURRENT_USER_ID,
                receiver_id=doctor["id"],
                content=(
                    f"Hi {doctor['name']}, I've booked an appointment for {date} at "
                    f"{time_slot}. Looking forward to discussing my health concerns."
                ),
                message_type="appointment",
                appointment_id=appointment["id"],
            )
        )
        logger.info("Booked %s %s with doctor %s.", date, time_slot, doctor["id"])
        return appointment

    # Messaging

    def send_message(self, message: dict) -> dict:
        """Append a message and update the doctor's conversation.

        Messages from the doctor bump the unread count; messages from the
        patient reset it to zero. A conversation is created on first contact.

        Returns:
            The updated or created conversation.
        """
        from_patient = message["sender_id"] == CURRENT_USER_ID
        conversations = copy.deepcopy(self.state["conversations"])

        conversation = next(
            (
                c for c in conversations
                if c["doctor_id"] in (message["receiver_id"], message["sender_id"])
            ),
            None,
        )
        if conversation is not None:
            conversation["last_message"] = message
            conversation["updated_at"] = message["timestamp"]
            conversation["unread_count"] = 0 if from_patient else conversation["unread_count"] + 1
        else:
            doctor_id = (
                message["receiver_id"]
                if message["receiver_id"] != CURRENT_USER_ID
                else message["sender_id"]
            )
            conversation = {
                "id": records.new_id(),
                "doctor_id": doctor_id,
                "patient_id": CURRENT_USER_ID,
                "last_message": message,
                "unread_count": 0 if from_patient else 1,
                "updated_at": message["timestamp"],
            }
            conversations.append(conversation)

        self._set(messages=self.state["messages"] + [message], conversations=conversations)
        return conversation

    def get_conversation_messages(self, doctor_id: str) -> list[dict]:
        return [
            m for m in self.state["messages"]
            if doctor_id in (m["sender_id"], m["receiver_id"])
        ]

    def mark_conversation_read(self, doctor_id: str) -> bool:
        conversations = copy.deepcopy(self.state["conversations"])
        for conversation in conversations:
            if conversation["doctor_id"] == doctor_id:
                conversation["unread_count"] = 0
                self._set(conversations=conversations)
                return True
        return False


# ---------------------------------------------------------------------------
# Language
# ---------------------------------------------------------------------------

# UI strings translated up front whenever the language changes.
COMMON_APP_TEXTS: list[str] = [
    # Navigation
    "Home", "Symptoms", "Appointments", "Messages", "Profile", "Settings",
    # Actions
    "Back", "Save", "Cancel", "Edit", "Delete", "Share", "Send", "Call", "Video Call",
    # Home
    "Welcome back", "How are you feeling today?", "Check Symptoms",
    "Get AI recommendations", "Medical QR Code", "Quick Actions",
    "Upcoming Appointments", "Recent Messages", "Health Tips", "Stay Hydrated",
    # Symptoms
    "Describe Your Symptoms", "Add your symptoms using text, voice, or images",
    "Type your symptoms here...", "Get AI Recommendations", "Analyzing...",
    # Appointments
    "total appointments", "Upcoming", "Past", "All",
    "Confirmed", "Pending", "Completed", "Cancelled",
    # Messages
    "conversations", "Start a conversation", "Type a message...",
    # Profile
    "Medical Profile", "Your health information", "Full Name", "Email",
    "Date of Birth", "Blood Type", "Allergies", "Medications",
    "Medical Conditions", "Emergency Contact", "Insurance",
    # Settings
    "Account", "Privacy & Security", "Notifications", "Help & FAQ",
    "Contact Support", "About WemaCARE", "Sign Out", "Delete Account",
    # Auth
    "Sign In", "Sign Up", "Create Account", "Loading...",
    # Common phrases
    "Health Status: Good", "Emergency: Call 911",
    "Your AI-powered healthcare companion", "Expert Care", "AI Insights",
]


class LanguageStore(PersistedStore):
    """Selected language plus a persisted per-language translation table."""

    name = "language-storage"

    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        translator: Optional[Translator] = None,
    ) -> None:
        super().__init__(storage)
        self.translator = translator or Translator()
        self.translator.set_current_language(self.current_code)

    def initial_state(self) -> dict:
        return {
            "current_language": copy.deepcopy(get_language_by_code(DEFAULT_LANGUAGE)),
            "translations": {},
        }

    @property
    def current_code(self) -> str:
        return self.state["current_language"]["code"]

    def set_language(self, code: str) -> bool:
        """Switch language and pre-translate the common UI strings.

        Returns:
            False for unsupported language codes.
        """
        language = get_language_by_code(code)
        if language is None:
            logger.warning("Unsupported language requested: %s", code)
            return False

        self._set(current_language=copy.deepcopy(language))
        self.translator.set_current_language(code)
        if code != DEFAULT_LANGUAGE:
            self.translate_texts(COMMON_APP_TEXTS)
        return True

    def translate_texts(self, texts: list[str]) -> dict[str, str]:
        """Translate texts not yet in the table for the current language."""
        code = self.current_code
        if code == DEFAULT_LANGUAGE:
            return {text: text for text in texts}

        existing = dict(self.state["translations"].get(code) or {})
        new_texts = [text for text in texts if not existing.get(text)]
        if new_texts:
            translated = self.translator.translate_bulk(new_texts, code)
            existing.update(translated)
            translations = dict(self.state["translations"])
            translations[code] = existing
            self._set(translations=translations)

        return {text: existing.get(text, text) for text in texts}

    def get_translation(self, text: str) -> str:
        code = self.current_code
        if code == DEFAULT_LANGUAGE:
            return text
        return (self.state["translations"].get(code) or {}).get(text) or text

    def clear_translations(self) -> None:
        self._set(translations={})
