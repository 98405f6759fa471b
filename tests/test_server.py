"""
Companion API Tests
===================
End-to-end requests against the FastAPI app with a mocked LLM gateway
and a temporary database.

Run with: python -m pytest tests/test_server.py -v
"""

from __future__ import annotations

import base64
import json
import os
import random
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Keep the module-level app away from the project database.
_MODULE_TMP = tempfile.TemporaryDirectory()
os.environ["WEMACARE_DB_PATH"] = str(Path(_MODULE_TMP.name) / "module.db")

from fastapi.testclient import TestClient

from companion_server import create_app
from wemacare.chat_service import ChatService, ChatServiceError
from wemacare.storage import KeyValueStorage


def ai_response(payload) -> dict:
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return {
        "content": content,
        "usage": {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
    }


class ApiTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.storage = KeyValueStorage(db_path=str(Path(self._tmp.name) / "api.db"))
        self.chat = mock.MagicMock(spec=ChatService)
        self.chat.is_available.return_value = False
        self.client = TestClient(
            create_app(storage=self.storage, chat_service=self.chat, rng=random.Random(0))
        )

    def tearDown(self):
        self._tmp.cleanup()

    def add_symptom(self, content: str) -> dict:
        response = self.client.post("/api/symptoms", json={"content": content})
        self.assertEqual(response.status_code, 200)
        return response.json()


class TestHealthAndLanguages(ApiTestCase):

    def test_health(self):
        body = self.client.get("/api/health").json()
        self.assertTrue(body["ok"])
        self.assertEqual(set(body["providers"]), {"openai", "anthropic", "grok", "gemini"})

    def test_languages(self):
        languages = self.client.get("/api/languages").json()
        self.assertGreaterEqual(len(languages), 15)
        regional = self.client.get("/api/languages", params={"region": "Nigeria"}).json()
        self.assertEqual({l["code"] for l in regional}, {"en", "yo", "ig"})

    def test_set_language(self):
        self.chat.get_gemini_chat_response.return_value = ai_response("Nyumbani")
        response = self.client.post("/api/language", json={"code": "sw"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["current_language"]["code"], "sw")
        self.assertEqual(self.client.get("/api/language").json()["code"], "sw")

    def test_set_unsupported_language(self):
        response = self.client.post("/api/language", json={"code": "xx"})
        self.assertEqual(response.status_code, 400)

    def test_translate(self):
        self.chat.get_openai_text_response.return_value = ai_response("Homa")
        body = self.client.post(
            "/api/translate", json={"text": "Fever", "target_language": "sw"}
        ).json()
        self.assertEqual(body["translated_text"], "Homa")

    def test_translate_falls_back_to_original(self):
        self.chat.get_openai_text_response.side_effect = ChatServiceError("offline")
        body = self.client.post(
            "/api/translate", json={"text": "Fever", "target_language": "sw"}
        ).json()
        self.assertEqual(body["translated_text"], "Fever")

    def test_detect(self):
        self.chat.get_openai_text_response.return_value = ai_response("ha")
        body = self.client.post("/api/translate/detect", json={"text": "Ina zazzabi"}).json()
        self.assertEqual(body["language"], "ha")


class TestAuthApi(ApiTestCase):

    def test_me_requires_login(self):
        self.assertEqual(self.client.get("/api/auth/me").status_code, 401)

    def test_signup_login_profile(self):
        response = self.client.post(
            "/api/auth/signup", json={"email": "a@b.c", "password": "pw", "name": "Amina"}
        )
        self.assertEqual(response.status_code, 200)

        response = self.client.patch(
            "/api/auth/profile",
            json={"medical_profile": {"allergies": ["Penicillin"], "blood_type": "A+"}},
        )
        profile = response.json()["medical_profile"]
        self.assertEqual(profile["allergies"], ["Penicillin"])
        self.assertEqual(profile["smoking_status"], "never")

        self.assertEqual(self.client.get("/api/auth/me").json()["name"], "Amina")
        self.client.post("/api/auth/logout")
        self.assertEqual(self.client.get("/api/auth/me").status_code, 401)

    def test_empty_credentials(self):
        response = self.client.post("/api/auth/login", json={"email": "", "password": ""})
        self.assertEqual(response.status_code, 400)


class TestSymptomsAndAnalysis(ApiTestCase):

    def test_invalid_symptom_type(self):
        response = self.client.post("/api/symptoms", json={"content": "x", "type": "video"})
        self.assertEqual(response.status_code, 400)

    def test_analysis_needs_symptoms(self):
        self.assertEqual(self.client.post("/api/analysis").status_code, 400)

    def test_analysis_offline_uses_fallback(self):
        self.chat.get_openai_text_response.side_effect = ChatServiceError("offline")
        self.add_symptom("Severe headache since this morning")

        body = self.client.post("/api/analysis").json()

        self.assertEqual(body["urgency_level"], "high")
        self.assertGreaterEqual(len(body["doctors"]), 2)
        for doctor in body["doctors"]:
            self.assertTrue(60 <= doctor["match_score"] <= 100)

    def test_analysis_is_stored(self):
        self.chat.get_openai_text_response.return_value = ai_response(
            {"analysis": "Likely migraine.", "urgency_level": "moderate"}
        )
        self.add_symptom("Throbbing headache")
        self.client.post("/api/analysis")
        self.chat.get_openai_chat_response.side_effect = ChatServiceError("offline")

        body = self.client.post("/api/recommendations").json()
        self.assertEqual(body["confidence"], 0.75)
        prompt_analysis = self.client.app.state.care.state["current_analysis"]
        self.assertEqual(prompt_analysis, "Likely migraine.")

    def test_image_symptom(self):
        self.chat.describe_symptom_image.return_value = "Circular red rash on forearm."
        body = self.client.post(
            "/api/symptoms/image", json={"image_base64": "aGVsbG8="}
        ).json()
        self.assertEqual(body["type"], "image")
        self.assertEqual(body["ai_summary"], "Circular red rash on forearm.")

    def test_image_symptom_unavailable(self):
        self.chat.describe_symptom_image.side_effect = ChatServiceError("offline")
        response = self.client.post("/api/symptoms/image", json={"image_base64": "aGVsbG8="})
        self.assertEqual(response.status_code, 502)

    def test_voice_symptom(self):
        seen = {}

        def transcribe(path):
            seen["bytes"] = Path(path).read_bytes()
            return "My chest feels tight when I climb stairs"

        self.chat.transcribe_audio.side_effect = transcribe
        audio = base64.b64encode(b"RIFF-voice").decode()
        body = self.client.post(
            "/api/symptoms/voice", json={"audio_base64": audio, "suffix": ".wav"}
        ).json()

        self.assertEqual(seen["bytes"], b"RIFF-voice")
        self.assertEqual(body["type"], "voice")
        self.assertEqual(body["content"], "My chest feels tight when I climb stairs")
        self.assertEqual(len(self.client.get("/api/symptoms").json()), 1)

    def test_voice_symptom_unavailable(self):
        self.chat.transcribe_audio.side_effect = ChatServiceError("offline")
        audio = base64.b64encode(b"voice").decode()
        response = self.client.post("/api/symptoms/voice", json={"audio_base64": audio})
        self.assertEqual(response.status_code, 502)

    def test_voice_symptom_bad_input(self):
        response = self.client.post("/api/symptoms/voice", json={"audio_base64": "not base64!"})
        self.assertEqual(response.status_code, 400)
        response = self.client.post(
            "/api/symptoms/voice", json={"audio_base64": "aGVsbG8=", "suffix": "/../x.sh"}
        )
        self.assertEqual(response.status_code, 400)
        self.chat.transcribe_audio.assert_not_called()

    def test_remove_symptom_and_clear_session(self):
        symptom = self.add_symptom("Cough")
        self.assertEqual(self.client.delete(f"/api/symptoms/{symptom['id']}").status_code, 200)
        self.assertEqual(self.client.delete(f"/api/symptoms/{symptom['id']}").status_code, 404)
        self.add_symptom("Cough")
        self.client.delete("/api/session")
        self.assertEqual(self.client.get("/api/symptoms").json(), [])


class TestMentalHealthApi(ApiTestCase):

    def test_providers_need_assessment(self):
        self.assertEqual(self.client.get("/api/mental-health/providers").status_code, 400)

    def test_assessment_then_providers(self):
        self.chat.get_openai_chat_response.return_value = ai_response(
            {"risk_level": "critical", "conditions": [], "urgency": True, "professional_help": True}
        )
        self.add_symptom("I have thoughts of hurting myself")
        assessment = self.client.post("/api/mental-health/assessment").json()
        self.assertEqual(assessment["risk_level"], "critical")

        providers = self.client.get("/api/mental-health/providers").json()
        self.assertEqual(providers[0]["id"], "mh1")
        facilities = self.client.get("/api/mental-health/facilities").json()
        self.assertEqual(facilities[0]["id"], "mhf4")

    def test_providers_with_mistyped_conditions(self):
        self.chat.get_openai_chat_response.return_value = ai_response(
            {"risk_level": "high", "conditions": [{"name": "Depression"}]}
        )
        self.add_symptom("I feel hopeless")
        self.client.post("/api/mental-health/assessment")

        self.assertEqual(self.client.get("/api/mental-health/providers").status_code, 200)
        self.assertEqual(self.client.get("/api/mental-health/facilities").status_code, 200)

    def test_crisis_resources(self):
        body = self.client.get("/api/crisis-resources", params={"language_code": "sw"}).json()
        self.assertEqual(body["resources"][0]["phone"], "116")


class TestDirectoryApi(ApiTestCase):

    def test_doctor_detail_has_cost(self):
        body = self.client.get("/api/doctors/1").json()
        self.assertEqual(body["estimated_cost"], 120.0)
        self.assertEqual(self.client.get("/api/doctors/42").status_code, 404)

    def test_nearest_hospitals(self):
        body = self.client.get(
            "/api/hospitals/nearest", params={"lat": -1.287, "lon": 36.817, "count": 2}
        ).json()
        self.assertEqual(len(body), 2)
        self.assertEqual(body[0]["id"], "3")

    def test_nearest_hospitals_rejects_bad_count(self):
        for count in (0, -1):
            response = self.client.get(
                "/api/hospitals/nearest", params={"lat": -1.287, "lon": 36.817, "count": count}
            )
            self.assertEqual(response.status_code, 422)

    def test_invalid_coordinates(self):
        response = self.client.get("/api/hospitals/nearest", params={"lat": 120, "lon": 0})
        self.assertEqual(response.status_code, 400)

    def test_hospital_not_found(self):
        self.assertEqual(self.client.get("/api/hospitals/9").status_code, 404)


class TestAppointmentsAndMessages(ApiTestCase):

    def test_book_open_slot(self):
        response = self.client.post(
            "/api/appointments",
            json={"doctor_id": "2", "date": "2024-01-17", "time": "11:00 AM", "symptoms": "Palpitations"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "pending")

        conversations = self.client.get("/api/conversations").json()
        self.assertEqual(conversations[0]["doctor_id"], "2")
        self.assertEqual(conversations[0]["last_message"]["type"], "appointment")

    def test_book_unavailable_slot(self):
        response = self.client.post(
            "/api/appointments",
            json={"doctor_id": "3", "date": "2024-01-19", "time": "09:30 AM"},
        )
        self.assertEqual(response.status_code, 400)

    def test_book_unknown_doctor(self):
        response = self.client.post(
            "/api/appointments",
            json={"doctor_id": "42", "date": "2024-01-19", "time": "09:30 AM"},
        )
        self.assertEqual(response.status_code, 404)

    def test_doctor_reply_then_read(self):
        self.client.post("/api/messages", json={"receiver_id": "1", "content": "Hello"})
        body = self.client.post(
            "/api/messages",
            json={"sender_id": "1", "receiver_id": "current-user", "content": "Hi, how can I help?"},
        ).json()
        self.assertEqual(body["conversation"]["unread_count"], 1)

        messages = self.client.get("/api/messages/1").json()
        self.assertEqual(len(messages), 2)
        self.assertEqual(self.client.get("/api/conversations").json()[0]["unread_count"], 0)

    def test_empty_message(self):
        response = self.client.post("/api/messages", json={"receiver_id": "1", "content": " "})
        self.assertEqual(response.status_code, 400)


if __name__ == "__main__":
    unittest.main()
