"""
Record factories for the client-side data model.

Records are plain dicts persisted wholesale by the stores. These helpers
make sure every optional field is present with its default.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

SYMPTOM_TYPES = ("text", "voice", "image")
APPOINTMENT_STATUSES = ("pending", "confirmed", "cancelled", "completed")
MESSAGE_TYPES = ("text", "appointment", "image")

CURRENT_USER_ID = "current-user"


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    """Millisecond timestamp id with a short random suffix."""
    return f"{int(time.time() * 1000)}-{uuid4().hex[:6]}"


def default_medical_profile() -> dict:
    return {
        "date_of_birth": "",
        "gender": "male",
        "blood_type": "",
        "height": "",
        "weight": "",
        "allergies": [],
        "medications": [],
        "medical_conditions": [],
        "surgeries": [],
        "family_history": "",
        "emergency_contact": {"name": "", "phone": "", "relationship": ""},
        "insurance": {"provider": "", "policy_number": ""},
        "preferred_language": "English",
        "smoking_status": "never",
        "alcohol_consumption": "none",
        "exercise_frequency": "moderate",
    }


def create_user(
    email: str,
    name: str,
    user_id: Optional[str] = None,
    medical_profile: Optional[dict] = None,
) -> dict:
    profile = default_medical_profile()
    if medical_profile:
        profile.update(medical_profile)
    return {
        "id": user_id or new_id(),
        "email": email,
        "name": name,
        "medical_profile": profile,
        "created_at": utcnow(),
    }


def create_symptom(
    content: str,
    symptom_type: str = "text",
    image_uri: Optional[str] = None,
    voice_uri: Optional[str] = None,
    ai_summary: Optional[str] = None,
) -> dict:
    if symptom_type not in SYMPTOM_TYPES:
        raise ValueError(f"Invalid symptom type: {symptom_type}")
    record = {
        "id": new_id(),
        "type": symptom_type,
        "content": content,
        "timestamp": utcnow(),
    }
    if image_uri:
        record["image_uri"] = image_uri
    if voice_uri:
        record["voice_uri"] = voice_uri
    if ai_summary:
        record["ai_summary"] = ai_summary
    return record


def create_appointment(
    doctor_id: str,
    patient_id: str,
    date: str,
    time_slot: str,
    symptoms: str = "",
    notes: str = "",
) -> dict:
    return {
        "id": new_id(),
        "doctor_id": doctor_id,
        "patient_id": patient_id,
        "date": date,
        "time": time_slot,
        "status": "pending",
        "notes": notes,
        "symptoms": symptoms,
    }


def create_message(
    sender_id: str,
    receiver_id: str,
    content: str,
    message_type: str = "text",
    appointment_id: Optional[str] = None,
    image_uri: Optional[str] = None,
) -> dict:
    if message_type not in MESSAGE_TYPES:
        raise ValueError(f"Invalid message type: {message_type}")
    record = {
        "id": new_id(),
        "sender_id": sender_id,
        "receiver_id": receiver_id,
        "content": content,
        "timestamp": utcnow(),
        "type": message_type,
    }
    if appointment_id:
        record["appointment_id"] = appointment_id
    if image_uri:
        record["image_uri"] = image_uri
    return record
