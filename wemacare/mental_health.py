"""
Mental Health Module
====================
Mental-health screening of symptom input plus matching against a small
directory of African mental-health providers and facilities.

Screening is delegated to the LLM; provider and facility ranking is a
fixed-weight score over the screening result.
"""

from __future__ import annotations

import copy
import logging
from typing import Optional

from wemacare.chat_service import ChatService, as_bool, as_str_list, extract_json_object

logger = logging.getLogger(__name__)

RISK_LEVELS = ("low", "moderate", "high", "critical")
SEVERE_RISK_LEVELS = ("high", "critical")

MENTAL_HEALTH_PROVIDERS: list[dict] = [
    {
        "id": "mh1",
        "name": "Dr. Amara Okafor",
        "type": "psychiatrist",
        "specialty": ["Depression", "Anxiety", "PTSD", "Bipolar Disorder"],
        "location": "Lagos, Nigeria",
        "hospital": "Lagos University Teaching Hospital",
        "rating": 4.8,
        "experience": 12,
        "languages": ["en", "yo", "ig", "ha"],
        "availability": {"online": True, "in_person": True, "emergency": True},
        "cost": {"session": 15000, "currency": "NGN", "insurance": True},
    },
    {
        "id": "mh2",
        "name": "Dr. Fatima Al-Rashid",
        "type": "psychologist",
        "specialty": ["Trauma Therapy", "Family Counseling", "Addiction"],
        "location": "Cairo, Egypt",
        "hospital": "Ain Shams University Hospital",
        "rating": 4.9,
        "experience": 15,
        "languages": ["ar", "en", "fr"],
        "availability": {"online": True, "in_person": True, "emergency": False},
        "cost": {"session": 200, "currency": "EGP", "insurance": True},
    },
    {
        "id": "mh3",
        "name": "Dr. Kwame Asante",
        "type": "therapist",
        "specialty": ["Cognitive Behavioral Therapy", "Mindfulness", "Grief Counseling"],
        "location": "Accra, Ghana",
        "hospital": "Korle-Bu Teaching Hospital",
        "rating": 4.7,
        "experience": 8,
        "languages": ["en", "tw", "ak"],
        "availability": {"online": True, "in_person": True, "emergency": False},
        "cost": {"session": 120, "currency": "GHS", "insurance": False},
    },
    {
        "id": "mh4",
        "name": "Dr. Zara Mwangi",
        "type": "psychiatrist",
        "specialty": ["Child Psychiatry", "ADHD", "Autism Spectrum"],
        "location": "Nairobi, Kenya",
        "hospital": "Kenyatta National Hospital",
        "rating": 4.6,
        "experience": 10,
        "languages": ["en", "sw", "ki"],
        "availability": {"online": True, "in_person": True, "emergency": True},
        "cost": {"session": 3500, "currency": "KES", "insurance": True},
    },
    {
        "id": "mh5",
        "name": "Dr. Thandiwe Ndaba",
        "type": "psychologist",
        "specialty": ["Women's Mental Health", "Postpartum Depression", "Relationship Therapy"],
        "location": "Cape Town, South Africa",
        "hospital": "Groote Schuur Hospital",
        "rating": 4.9,
        "experience": 14,
        "languages": ["en", "af", "xh", "zu"],
        "availability": {"online": True, "in_person": True, "emergency": False},
        "cost": {"session": 800, "currency": "ZAR", "insurance": True},
    },
]

MENTAL_HEALTH_FACILITIES: list[dict] = [
    {
        "id": "mhf1",
        "name": "African Centre for Mental Health",
        "type": "center",
        "services": ["Counseling", "Crisis Intervention", "Group Therapy", "Psychiatric Care"],
        "location": "Lagos, Nigeria",
        "phone": "+234-1-234-5678",
        "emergency": True,
        "rating": 4.7,
        "languages": ["en", "yo", "ig", "ha"],
    },
    {
        "id": "mhf2",
        "name": "Cairo Mental Health Clinic",
        "type": "clinic",
        "services": ["Individual Therapy", "Family Counseling", "Medication Management"],
        "location": "Cairo, Egypt",
        "phone": "+20-2-1234-5678",
        "emergency": False,
        "rating": 4.5,
        "languages": ["ar", "en", "fr"],
    },
    {
        "id": "mhf3",
        "name": "Ubuntu Wellness Center",
        "type": "center",
        "services": ["Traditional Healing", "Modern Therapy", "Community Support"],
        "location": "Johannesburg, South Africa",
        "phone": "+27-11-123-4567",
        "emergency": True,
        "rating": 4.8,
        "languages": ["en", "zu", "xh", "af", "st"],
    },
    {
        "id": "mhf4",
        "name": "East Africa Mental Health Hospital",
        "type": "hospital",
        "services": ["Inpatient Care", "Emergency Psychiatry", "Rehabilitation"],
        "location": "Nairobi, Kenya",
        "phone": "+254-20-123-4567",
        "emergency": True,
        "rating": 4.6,
        "languages": ["en", "sw", "ki"],
    },
]

CRISIS_RESOURCES: dict[str, dict] = {
    "en": {
        "title": "Crisis Resources",
        "subtitle": "Immediate help available 24/7",
        "resources": [
            {
                "name": "National Suicide Prevention Lifeline",
                "phone": "988",
                "description": "Free, confidential crisis support 24/7",
            },
            {
                "name": "Crisis Text Line",
                "phone": "Text HOME to 741741",
                "description": "Free, 24/7 crisis support via text",
            },
            {
                "name": "Emergency Services",
                "phone": "911",
                "description": "For immediate life-threatening emergencies",
            },
        ],
    },
    "sw": {
        "title": "Rasilimali za Msaada wa Haraka",
        "subtitle": "Msaada wa haraka unapatikana saa 24/7",
        "resources": [
            {
                "name": "Mstari wa Kuzuia Kujiua",
                "phone": "116",
                "description": "Msaada wa bure, wa siri saa 24/7",
            },
            {
                "name": "Huduma za Dharura",
                "phone": "999",
                "description": "Kwa dharura za haraka za hatari ya maisha",
            },
        ],
    },
    "ar": {
        "title": "موارد الأزمات",
        "subtitle": "المساعدة الفورية متاحة 24/7",
        "resources": [
            {
                "name": "خط منع الانتحار الوطني",
                "phone": "123",
                "description": "دعم مجاني وسري للأزمات على مدار الساعة",
            },
            {
                "name": "خدمات الطوارئ",
                "phone": "123",
                "description": "للطوارئ الفورية المهددة للحياة",
            },
        ],
    },
}

_UNPARSEABLE_ASSESSMENT = {
    "risk_level": "moderate",
    "conditions": ["General mental health concerns"],
    "recommendations": [
        "Consider speaking with a mental health professional",
        "Practice stress management techniques",
        "Maintain social connections",
        "Ensure adequate sleep and exercise",
    ],
    "urgency": False,
    "professional_help": True,
}

_UNAVAILABLE_ASSESSMENT = {
    "risk_level": "moderate",
    "conditions": ["Assessment unavailable"],
    "recommendations": ["Please consult with a mental health professional"],
    "urgency": False,
    "professional_help": True,
}


def _history_list(history: dict, key: str) -> str:
    values = history.get(key) or []
    return ", ".join(values) if values else "None listed"


def assess_mental_health(
    symptoms: list[dict],
    medical_history: Optional[dict] = None,
    chat_service: Optional[ChatService] = None,
) -> dict:
    """Screen symptom input for mental-health concerns.

    Args:
        symptoms: SymptomInput records.
        medical_history: MedicalProfile dict (conditions, medications, allergies).
        chat_service: LLM gateway; a default ChatService is built when omitted.

    Returns:
        MentalHealthAssessment dict: risk_level, conditions, recommendations,
        urgency and professional_help.
    """
    history = medical_history or {}
    symptom_texts = ". ".join(s.get("content", "") for s in symptoms)

    prompt = f"""As a mental health AI assistant, analyze these symptoms and medical history to provide a mental health assessment:

Symptoms: {symptom_texts}

Medical History:
- Previous conditions: {_history_list(history, "medical_conditions")}
- Current medications: {_history_list(history, "medications")}
- Allergies: {_history_list(history, "allergies")}

Please provide a structured assessment in this JSON format:
{{
  "risk_level": "low|moderate|high|critical",
  "conditions": ["list of potential mental health conditions"],
  "recommendations": ["list of specific recommendations"],
  "urgency": false,
  "professional_help": true
}}

Set "urgency" to true if immediate attention is needed and "professional_help"
to true if professional help is recommended.

Consider factors like:
- Mentions of suicidal thoughts, self-harm (critical risk)
- Symptoms of depression, anxiety, trauma
- Impact on daily functioning
- Duration and severity of symptoms
- Cultural and social context in African healthcare

Focus on depression indicators, anxiety symptoms, trauma/PTSD signs,
substance abuse mentions, social isolation, sleep disturbances, appetite
changes and cognitive difficulties."""

    try:
        service = chat_service or ChatService()
        response = service.get_openai_chat_response(prompt)
    except Exception as exc:
        logger.error("Mental health assessment error: %s", exc)
        return copy.deepcopy(_UNAVAILABLE_ASSESSMENT)

    try:
        raw = extract_json_object(response["content"])
    except ValueError:
        logger.warning("Mental health assessment was not valid JSON; using generic result.")
        return copy.deepcopy(_UNPARSEABLE_ASSESSMENT)

    risk = raw.get("risk_level")
    assessment = {
        "risk_level": risk if risk in RISK_LEVELS else "moderate",
        "conditions": as_str_list(raw.get("conditions")),
        "recommendations": as_str_list(raw.get("recommendations")),
        "urgency": as_bool(raw.get("urgency"), False),
        "professional_help": as_bool(raw.get("professional_help"), True),
    }
    logger.info(
        "Mental health assessment: risk=%s urgency=%s",
        assessment["risk_level"],
        assessment["urgency"],
    )
    return assessment


def _filter_by_language_and_location(records: list[dict], location: str, language: str) -> list[dict]:
    matches = [
        r for r in records
        if language in r["languages"] or "en" in r["languages"]
    ]
    if location:
        needle = location.lower()
        matches = [r for r in matches if needle in r["location"].lower()]
    return matches


def score_provider(provider: dict, assessment: dict) -> float:
    """Rank weight of a provider for the given assessment."""
    risk = assessment.get("risk_level")
    score = 0.0

    if risk == "critical" and provider["availability"]["emergency"]:
        score += 10
    if risk in SEVERE_RISK_LEVELS and provider["type"] == "psychiatrist":
        score += 5

    specialties = [spec.lower() for spec in provider["specialty"]]
    for condition in as_str_list(assessment.get("conditions")):
        if any(condition.lower() in spec for spec in specialties):
            score += 3

    score += provider["rating"] + provider["experience"] * 0.1
    return score


def score_facility(facility: dict, assessment: dict) -> float:
    risk = assessment.get("risk_level")
    score = 0.0
    if risk == "critical" and assessment.get("urgency") and facility["emergency"]:
        score += 10
    if risk in SEVERE_RISK_LEVELS and facility["type"] == "hospital":
        score += 5
    return score + facility["rating"]


def recommend_mental_health_providers(
    assessment: dict, location: str = "", language: str = "en"
) -> list[dict]:
    """Top 5 providers for an assessment, best first.

    Providers must speak ``language`` or English. A non-empty ``location``
    keeps only providers whose location contains it (case-insensitive).
    """
    providers = _filter_by_language_and_location(
        copy.deepcopy(MENTAL_HEALTH_PROVIDERS), location, language
    )
    providers.sort(key=lambda p: score_provider(p, assessment), reverse=True)
    return providers[:5]


def recommend_mental_health_facilities(
    assessment: dict, location: str = "", language: str = "en"
) -> list[dict]:
    """Top 3 facilities for an assessment, best first."""
    facilities = _filter_by_language_and_location(
        copy.deepcopy(MENTAL_HEALTH_FACILITIES), location, language
    )
    facilities.sort(key=lambda f: score_facility(f, assessment), reverse=True)
    return facilities[:3]


def get_crisis_resources(language: str = "en") -> dict:
    """Crisis hotlines for a language; English when not available."""
    return copy.deepcopy(CRISIS_RESOURCES.get(language, CRISIS_RESOURCES["en"]))
