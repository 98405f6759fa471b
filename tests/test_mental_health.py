"""
Mental Health Tests
===================
Run with: python -m pytest tests/test_mental_health.py -v
"""

from __future__ import annotations

import json
import sys
import unittest
from pathlib import Path
from unittest import mock

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from wemacare import records
from wemacare.chat_service import ChatService, ChatServiceError
from wemacare.mental_health import (
    MENTAL_HEALTH_PROVIDERS,
    assess_mental_health,
    get_crisis_resources,
    recommend_mental_health_facilities,
    recommend_mental_health_providers,
)


def assessment(risk="low", conditions=None, urgency=False) -> dict:
    return {
        "risk_level": risk,
        "conditions": conditions or [],
        "recommendations": [],
        "urgency": urgency,
        "professional_help": True,
    }


class TestAssessMentalHealth(unittest.TestCase):

    def setUp(self):
        self.chat = mock.MagicMock(spec=ChatService)
        self.symptoms = [records.create_symptom("I can't sleep and feel hopeless")]

    def respond(self, content: str) -> None:
        self.chat.get_openai_chat_response.return_value = {
            "content": content,
            "usage": {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
        }

    def test_parsed_assessment(self):
        self.respond(
            json.dumps(
                {
                    "risk_level": "high",
                    "conditions": ["Depression"],
                    "recommendations": ["See a psychiatrist this week"],
                    "urgency": True,
                    "professional_help": True,
                }
            )
        )
        result = assess_mental_health(
            self.symptoms, {"medical_conditions": ["Insomnia"]}, chat_service=self.chat
        )
        self.assertEqual(result["risk_level"], "high")
        self.assertEqual(result["conditions"], ["Depression"])
        self.assertTrue(result["urgency"])

        prompt = self.chat.get_openai_chat_response.call_args.args[0]
        self.assertIn("Previous conditions: Insomnia", prompt)
        self.assertIn("Allergies: None listed", prompt)

    def test_invalid_risk_becomes_moderate(self):
        self.respond('{"risk_level": "extreme", "conditions": []}')
        result = assess_mental_health(self.symptoms, {}, chat_service=self.chat)
        self.assertEqual(result["risk_level"], "moderate")

    def test_string_conditions_are_not_split(self):
        self.respond('{"risk_level": "high", "conditions": "Depression", "recommendations": "Rest"}')
        result = assess_mental_health(self.symptoms, {}, chat_service=self.chat)
        self.assertEqual(result["conditions"], ["Depression"])
        self.assertEqual(result["recommendations"], ["Rest"])

    def test_object_conditions_are_dropped(self):
        self.respond('{"risk_level": "high", "conditions": [{"name": "Depression"}, "Anxiety"]}')
        result = assess_mental_health(self.symptoms, {}, chat_service=self.chat)
        self.assertEqual(result["conditions"], ["Anxiety"])

    def test_string_flags_use_defaults(self):
        self.respond('{"risk_level": "low", "urgency": "false", "professional_help": "no"}')
        result = assess_mental_health(self.symptoms, {}, chat_service=self.chat)
        self.assertFalse(result["urgency"])
        self.assertTrue(result["professional_help"])

    def test_unparseable_response(self):
        self.respond("You seem stressed. Please rest.")
        result = assess_mental_health(self.symptoms, {}, chat_service=self.chat)
        self.assertEqual(result["conditions"], ["General mental health concerns"])
        self.assertEqual(len(result["recommendations"]), 4)
        self.assertTrue(result["professional_help"])

    def test_call_failure(self):
        self.chat.get_openai_chat_response.side_effect = ChatServiceError("offline")
        result = assess_mental_health(self.symptoms, {}, chat_service=self.chat)
        self.assertEqual(result["conditions"], ["Assessment unavailable"])
        self.assertEqual(
            result["recommendations"], ["Please consult with a mental health professional"]
        )


class TestProviderMatching(unittest.TestCase):

    def ids(self, providers):
        return [p["id"] for p in providers]

    def test_rating_and_experience_order(self):
        result = recommend_mental_health_providers(assessment("low"))
        self.assertEqual(self.ids(result), ["mh2", "mh5", "mh1", "mh4", "mh3"])

    def test_critical_prefers_emergency_psychiatrists(self):
        result = recommend_mental_health_providers(assessment("critical"))
        self.assertEqual(self.ids(result)[:2], ["mh1", "mh4"])

    def test_condition_matches_specialty(self):
        result = recommend_mental_health_providers(assessment("low", ["depression"]))
        self.assertEqual(self.ids(result)[:2], ["mh5", "mh1"])

    def test_string_condition_scores_once(self):
        as_string = recommend_mental_health_providers(assessment("low", "depression"))
        as_list = recommend_mental_health_providers(assessment("low", ["depression"]))
        self.assertEqual(self.ids(as_string), self.ids(as_list))

    def test_stored_object_conditions_are_ignored(self):
        result = recommend_mental_health_providers(assessment("low", [{"name": "Depression"}]))
        self.assertEqual(self.ids(result), ["mh2", "mh5", "mh1", "mh4", "mh3"])

    def test_location_filter(self):
        result = recommend_mental_health_providers(assessment("low"), location="nairobi")
        self.assertEqual(self.ids(result), ["mh4"])

    def test_english_speakers_always_included(self):
        result = recommend_mental_health_providers(assessment("low"), language="sw")
        self.assertEqual(len(result), 5)

    def test_results_are_copies(self):
        result = recommend_mental_health_providers(assessment("low"))
        result[0]["name"] = "Changed"
        self.assertNotIn("Changed", [p["name"] for p in MENTAL_HEALTH_PROVIDERS])


class TestFacilityMatching(unittest.TestCase):

    def ids(self, facilities):
        return [f["id"] for f in facilities]

    def test_rating_order_top_three(self):
        result = recommend_mental_health_facilities(assessment("low"))
        self.assertEqual(self.ids(result), ["mhf3", "mhf1", "mhf4"])

    def test_high_risk_prefers_hospitals(self):
        result = recommend_mental_health_facilities(assessment("high"))
        self.assertEqual(self.ids(result)[0], "mhf4")

    def test_critical_urgent_prefers_emergency(self):
        result = recommend_mental_health_facilities(assessment("critical", urgency=True))
        self.assertEqual(self.ids(result), ["mhf4", "mhf3", "mhf1"])
        self.assertTrue(all(f["emergency"] for f in result))

    def test_location_filter(self):
        result = recommend_mental_health_facilities(assessment("low"), location="Cairo")
        self.assertEqual(self.ids(result), ["mhf2"])


class TestCrisisResources(unittest.TestCase):

    def test_english(self):
        resources = get_crisis_resources("en")
        self.assertEqual([r["phone"] for r in resources["resources"]], ["988", "Text HOME to 741741", "911"])

    def test_swahili(self):
        phones = [r["phone"] for r in get_crisis_resources("sw")["resources"]]
        self.assertEqual(phones, ["116", "999"])

    def test_unknown_language_defaults_to_english(self):
        self.assertEqual(get_crisis_resources("zu"), get_crisis_resources("en"))


if __name__ == "__main__":
    unittest.main()
