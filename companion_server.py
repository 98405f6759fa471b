"""
WemaCARE Healthcare Companion API
=================================
FastAPI backend exposing symptom analysis, provider recommendations,
mental-health support, translation, bookings and doctor messaging.

Run:
    pip install -e .
    python companion_server.py

Then open: http://localhost:8001/docs
"""
from __future__ import annotations

import base64
import binascii
import logging
import os
import random
import sys
import tempfile
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

# ── path setup ────────────────────────────────────────────────────────────────
ROOT = Path(__file__).parent
sys.path.insert(0, str(ROOT))

from wemacare import directory, mental_health, records
from wemacare.chat_service import ChatService, ChatServiceError
from wemacare.healthcare_analysis import HealthcareAnalyzer
from wemacare.records import CURRENT_USER_ID, MESSAGE_TYPES, SYMPTOM_TYPES
from wemacare.storage import KeyValueStorage
from wemacare.stores import AuthStore, HealthcareStore, LanguageStore
from wemacare.translator import (
    SUPPORTED_LANGUAGES,
    Translator,
    get_regional_languages,
)

logger = logging.getLogger(__name__)

# Formats accepted by the transcription endpoint.
AUDIO_SUFFIXES = (".m4a", ".mp3", ".mp4", ".mpeg", ".wav", ".webm", ".ogg")


# ── request bodies ────────────────────────────────────────────────────────────

class Credentials(BaseModel):
    email: str
    password: str


class SignupRequest(Credentials):
    name: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    full_name: Optional[str] = None
    address: Optional[dict] = None
    medical_profile: Optional[dict] = None


class SymptomRequest(BaseModel):
    content: str
    type: str = "text"
    image_uri: Optional[str] = None
    voice_uri: Optional[str] = None


class ImageSymptomRequest(BaseModel):
    image_base64: str
    mime_type: str = "image/jpeg"
    image_uri: Optional[str] = None


class VoiceSymptomRequest(BaseModel):
    audio_base64: str
    suffix: str = ".m4a"
    voice_uri: Optional[str] = None


class TranslateRequest(BaseModel):
    text: str
    target_language: str


class BulkTranslateRequest(BaseModel):
    texts: list[str]
    target_language: str
    context: Optional[str] = None


class MedicalTermsRequest(BaseModel):
    terms: list[str]
    target_language: str


class DetectRequest(BaseModel):
    text: str


class LanguageRequest(BaseModel):
    code: str


class LocalizeAdviceRequest(BaseModel):
    advice: str
    language: str
    cultural_context: Optional[str] = None


class AppointmentRequest(BaseModel):
    doctor_id: str
    date: str
    time: str
    symptoms: str = ""


class MessageRequest(BaseModel):
    receiver_id: str
    content: str
    type: str = "text"
    sender_id: str = CURRENT_USER_ID
    appointment_id: Optional[str] = None
    image_uri: Optional[str] = None


# ── app factory ───────────────────────────────────────────────────────────────

def create_app(
    storage: Optional[KeyValueStorage] = None,
    chat_service: Optional[ChatService] = None,
    rng: Optional[random.Random] = None,
) -> FastAPI:
    """Build the API with its stores and services.

    Args:
        storage: Key/value storage shared by all stores.
        chat_service: LLM gateway shared by analysis and translation.
        rng: Random source for match-score jitter.
    """
    storage = storage or KeyValueStorage()
    chat = chat_service or ChatService()
    translator = Translator(chat_service=chat)
    analyzer = HealthcareAnalyzer(chat_service=chat, rng=rng)

    auth = AuthStore(storage)
    care = HealthcareStore(storage)
    language = LanguageStore(storage, translator=translator)

    app = FastAPI(title="WemaCARE Companion API", version="1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.auth = auth
    app.state.care = care
    app.state.language = language

    def current_user() -> dict:
        user = auth.user
        if user is None:
            return records.create_user(email="", name="Guest", user_id=CURRENT_USER_ID)
        return user

    def require_user() -> dict:
        if not auth.is_authenticated or auth.user is None:
            raise HTTPException(401, "Not signed in")
        return auth.user

    # ── health ────────────────────────────────────────────────────────────────

    @app.get("/api/health")
    def api_health():
        return {
            "ok": True,
            "providers": {
                name: chat.is_available(name)
                for name in ("openai", "anthropic", "grok", "gemini")
            },
            "db_path": str(storage.db_path),
        }

    # ── languages & translation ───────────────────────────────────────────────

    @app.get("/api/languages")
    def api_languages(region: str = ""):
        if region:
            return get_regional_languages(region)
        return SUPPORTED_LANGUAGES

    @app.get("/api/language")
    def api_current_language():
        return language.state["current_language"]

    @app.post("/api/language")
    def api_set_language(body: LanguageRequest):
        if not language.set_language(body.code):
            raise HTTPException(400, f"Unsupported language: {body.code}")
        return {
            "current_language": language.state["current_language"],
            "translated": len(language.state["translations"].get(body.code, {})),
        }

    @app.post("/api/translate")
    def api_translate(body: TranslateRequest):
        return {
            "original_text": body.text,
            "translated_text": translator.translate(body.text, body.target_language),
            "target_language": body.target_language,
        }

    @app.post("/api/translate/bulk")
    def api_translate_bulk(body: BulkTranslateRequest):
        if body.context:
            return translator.translate_bulk(body.texts, body.target_language, body.context)
        return translator.translate_bulk(body.texts, body.target_language)

    @app.post("/api/translate/detect")
    def api_detect(body: DetectRequest):
        return {"language": translator.detect_language(body.text)}

    @app.post("/api/translate/medical-terms")
    def api_medical_terms(body: MedicalTermsRequest):
        return translator.translate_medical_terms(body.terms, body.target_language)

    @app.post("/api/translate/advice")
    def api_localize_advice(body: LocalizeAdviceRequest):
        return {
            "advice": translator.get_localized_medical_advice(
                body.advice, body.language, body.cultural_context
            )
        }

    # ── auth ──────────────────────────────────────────────────────────────────

    @app.post("/api/auth/signup")
    def api_signup(body: SignupRequest):
        if not auth.signup(body.email, body.password, body.name):
            raise HTTPException(400, "Email, password and name are required")
        return auth.user

    @app.post("/api/auth/login")
    def api_login(body: Credentials):
        if not auth.login(body.email, body.password):
            raise HTTPException(400, "Email and password are required")
        return auth.user

    @app.post("/api/auth/logout")
    def api_logout():
        auth.logout()
        return {"ok": True}

    @app.get("/api/auth/me")
    def api_me():
        user = require_user()
        auth.ensure_medical_profile()
        return auth.user or user

    @app.patch("/api/auth/profile")
    def api_update_profile(body: ProfileUpdate):
        user = require_user()
        changes = body.model_dump(exclude_none=True)
        if "medical_profile" in changes:
            profile = dict(user.get("medical_profile") or records.default_medical_profile())
            profile.update(changes["medical_profile"])
            changes["medical_profile"] = profile
        return auth.update_user(changes)

    # ── symptoms & analysis ───────────────────────────────────────────────────

    @app.get("/api/symptoms")
    def api_symptoms():
        return care.state["symptoms"]

    @app.post("/api/symptoms")
    def api_add_symptom(body: SymptomRequest):
        if body.type not in SYMPTOM_TYPES:
            raise HTTPException(400, f"Invalid symptom type. Must be one of: {SYMPTOM_TYPES}")
        if not body.content.strip():
            raise HTTPException(400, "Symptom content is required")
        symptom = records.create_symptom(
            body.content, body.type, image_uri=body.image_uri, voice_uri=body.voice_uri
        )
        care.add_symptom(symptom)
        return symptom

    @app.post("/api/symptoms/image")
    def api_add_image_symptom(body: ImageSymptomRequest):
        try:
            description = chat.describe_symptom_image(body.image_base64, body.mime_type)
        except ChatServiceError as exc:
            raise HTTPException(502, f"Image analysis unavailable: {exc}")
        symptom = records.create_symptom(
            description or "Image uploaded for analysis",
            "image",
            image_uri=body.image_uri,
            ai_summary=description,
        )
        care.add_symptom(symptom)
        return symptom

    @app.post("/api/symptoms/voice")
    def api_add_voice_symptom(body: VoiceSymptomRequest):
        if body.suffix not in AUDIO_SUFFIXES:
            raise HTTPException(400, f"Unsupported audio format. Must be one of: {AUDIO_SUFFIXES}")
        try:
            audio = base64.b64decode(body.audio_base64, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(400, "audio_base64 is not valid base64")
        if not audio:
            raise HTTPException(400, "Voice note is empty")

        with tempfile.NamedTemporaryFile(suffix=body.suffix, delete=False) as tmp:
            tmp.write(audio)
            tmp_path = tmp.name
        try:
            transcript = chat.transcribe_audio(tmp_path)
        except ChatServiceError as exc:
            raise HTTPException(502, f"Voice transcription unavailable: {exc}")
        finally:
            os.unlink(tmp_path)

        if not transcript:
            raise HTTPException(422, "No speech recognised in the voice note")
        symptom = records.create_symptom(transcript, "voice", voice_uri=body.voice_uri)
        care.add_symptom(symptom)
        return symptom

    @app.delete("/api/symptoms/{symptom_id}")
    def api_remove_symptom(symptom_id: str):
        if not care.remove_symptom(symptom_id):
            raise HTTPException(404, "Symptom not found")
        return {"ok": True}

    @app.delete("/api/session")
    def api_clear_session():
        care.clear_current_session()
        return {"ok": True}

    @app.post("/api/analysis")
    def api_analysis():
        symptoms = care.state["symptoms"]
        if not symptoms:
            raise HTTPException(400, "Add at least one symptom first")
        result = analyzer.safe_analyze_healthcare_needs(symptoms, current_user())
        care.set_analysis(result["analysis"])
        care.set_recommendations(result)
        return result

    @app.post("/api/recommendations")
    def api_recommendations():
        symptoms = care.state["symptoms"]
        if not symptoms:
            raise HTTPException(400, "Add at least one symptom first")
        result = analyzer.recommend_from_directory(
            symptoms,
            care.state["current_analysis"],
            current_user(),
            care.state["mental_health_assessment"],
        )
        care.set_recommendations(result)
        return result

    @app.post("/api/recommendations/enhanced")
    def api_enhanced_recommendations():
        symptoms = care.state["symptoms"]
        if not symptoms:
            raise HTTPException(400, "Add at least one symptom first")
        return analyzer.get_enhanced_healthcare_recommendations(
            symptoms,
            care.state["current_analysis"],
            current_user().get("medical_profile"),
            language.current_code,
        )

    # ── mental health ─────────────────────────────────────────────────────────

    @app.post("/api/mental-health/assessment")
    def api_mental_assessment():
        symptoms = care.state["symptoms"]
        if not symptoms:
            raise HTTPException(400, "Add at least one symptom first")
        assessment = mental_health.assess_mental_health(
            symptoms, current_user().get("medical_profile"), chat_service=chat
        )
        care.set_mental_health_assessment(assessment)
        return assessment

    def _stored_assessment() -> dict:
        assessment = care.state["mental_health_assessment"]
        if not assessment:
            raise HTTPException(400, "Run a mental health assessment first")
        return assessment

    @app.get("/api/mental-health/providers")
    def api_mental_providers(location: str = "", language_code: str = "en"):
        return mental_health.recommend_mental_health_providers(
            _stored_assessment(), location, language_code
        )

    @app.get("/api/mental-health/facilities")
    def api_mental_facilities(location: str = "", language_code: str = "en"):
        return mental_health.recommend_mental_health_facilities(
            _stored_assessment(), location, language_code
        )

    @app.get("/api/crisis-resources")
    def api_crisis_resources(language_code: str = "en"):
        return mental_health.get_crisis_resources(language_code)

    # ── directory ─────────────────────────────────────────────────────────────

    @app.get("/api/doctors")
    def api_doctors():
        return directory.get_mock_doctors()

    @app.get("/api/doctors/{doctor_id}")
    def api_doctor_detail(doctor_id: str):
        doctor = directory.get_doctor_by_id(doctor_id)
        if doctor is None:
            raise HTTPException(404, "Doctor not found")
        doctor["estimated_cost"] = directory.estimate_consultation_cost(doctor)
        return doctor

    @app.get("/api/doctors/{doctor_id}/slots")
    def api_doctor_slots(doctor_id: str):
        if directory.get_doctor_by_id(doctor_id) is None:
            raise HTTPException(404, "Doctor not found")
        return directory.available_slots(doctor_id)

    @app.get("/api/hospitals")
    def api_hospitals():
        return directory.get_mock_hospitals()

    @app.get("/api/hospitals/nearest")
    def api_nearest_hospitals(
        lat: float, lon: float, count: int = Query(3, ge=1), emergency_only: bool = False
    ):
        if not (-90 <= lat <= 90 and -180 <= lon <= 180):
            raise HTTPException(400, "Invalid coordinates")
        return directory.find_nearest_hospitals(lat, lon, count, emergency_only)

    @app.get("/api/hospitals/{hospital_id}")
    def api_hospital_detail(hospital_id: str):
        hospital = directory.get_hospital_by_id(hospital_id)
        if hospital is None:
            raise HTTPException(404, "Hospital not found")
        return hospital

    # ── appointments & messages ───────────────────────────────────────────────

    @app.get("/api/appointments")
    def api_appointments():
        return care.state["appointments"]

    @app.post("/api/appointments")
    def api_book_appointment(body: AppointmentRequest):
        doctor = directory.get_doctor_by_id(body.doctor_id)
        if doctor is None:
            raise HTTPException(404, "Doctor not found")
        open_slots = directory.available_slots(body.doctor_id)
        if not any(s["date"] == body.date and s["time"] == body.time for s in open_slots):
            raise HTTPException(400, "Requested slot is not available")
        return care.book_doctor_slot(doctor, body.date, body.time, body.symptoms)

    @app.get("/api/conversations")
    def api_conversations():
        return sorted(
            care.state["conversations"], key=lambda c: c["updated_at"], reverse=True
        )

    @app.get("/api/messages/{doctor_id}")
    def api_messages(doctor_id: str):
        care.mark_conversation_read(doctor_id)
        return care.get_conversation_messages(doctor_id)

    @app.post("/api/messages")
    def api_send_message(body: MessageRequest):
        if body.type not in MESSAGE_TYPES:
            raise HTTPException(400, f"Invalid message type. Must be one of: {MESSAGE_TYPES}")
        if not body.content.strip():
            raise HTTPException(400, "Message content is required")
        message = records.create_message(
            body.sender_id,
            body.receiver_id,
            body.content,
            body.type,
            appointment_id=body.appointment_id,
            image_uri=body.image_uri,
        )
        conversation = care.send_message(message)
        return {"message": message, "conversation": conversation}

    return app


app = create_app()


# ── Entry point ───────────────────────────────────────────────────────────────
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    print("\n" + "═" * 58)
    print("  WemaCARE · Healthcare Companion API")
    print("═" * 58)
    print("  ➜  API docs:   http://localhost:8001/docs")
    print(f"  ➜  DB path:    {app.state.auth.storage.db_path}")
    print("═" * 58 + "\n")
    uvicorn.run(app, host="0.0.0.0", port=8001, reload=False, log_level="warning")
