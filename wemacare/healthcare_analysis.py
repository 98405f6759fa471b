"""
Healthcare Analysis Module
==========================
Turns patient symptom input plus medical history into an AI healthcare
assessment and a ranked list of recommended doctors and hospitals.

The LLM produces the clinical narrative (analysis, urgency, specialists,
mental-health screening). Provider ranking is a heuristic match score:

    70 base
    + 10 if the patient has known medical conditions
    + 20 / 15 / 10 / 5 for emergency / high / moderate / low urgency
    + 15 for mental-health specialists when mental-health risk is not low
    + random jitter in [0, 9]
    clamped to [60, 100]

Whenever the LLM is unavailable or its answer cannot be parsed, a
keyword-based fallback assessment is produced instead.
"""

from __future__ import annotations

import copy
import logging
import random
from datetime import date, datetime
from typing import Optional

from wemacare.chat_service import ChatService, as_bool, as_str_list, extract_json_object
from wemacare.directory import get_mock_doctors, get_mock_hospitals

logger = logging.getLogger(__name__)

# Urgency levels
URGENCY_LOW = "low"
URGENCY_MODERATE = "moderate"
URGENCY_HIGH = "high"
URGENCY_EMERGENCY = "emergency"
URGENCY_LEVELS = (URGENCY_LOW, URGENCY_MODERATE, URGENCY_HIGH, URGENCY_EMERGENCY)

# Mental-health risk levels
RISK_LOW = "low"
RISK_MODERATE = "moderate"
RISK_HIGH = "high"
RISK_CRITICAL = "critical"
RISK_LEVELS = (RISK_LOW, RISK_MODERATE, RISK_HIGH, RISK_CRITICAL)

SPECIALIST_GENERAL = "general"
SPECIALIST_SPECIALIST = "specialist"
SPECIALIST_MENTAL_HEALTH = "mental_health"

URGENCY_BONUS = {
    URGENCY_EMERGENCY: 20,
    URGENCY_HIGH: 15,
    URGENCY_MODERATE: 10,
}

MIN_MATCH_SCORE = 60
MAX_MATCH_SCORE = 100

# ---------------------------------------------------------------------------
# Keyword screening used by the offline fallback assessment
# ---------------------------------------------------------------------------
URGENT_KEYWORDS = [
    "severe", "intense", "emergency", "urgent", "acute", "sudden",
    "chest pain", "difficulty breathing",
]
MODERATE_KEYWORDS = ["pain", "ache", "fever", "headache", "nausea", "fatigue"]
MENTAL_HEALTH_KEYWORDS = ["anxiety", "depressed", "sad", "worried", "stress", "panic", "mood"]

DEFAULT_FOLLOW_UP = ["Schedule follow-up appointment", "Monitor symptoms"]

# ---------------------------------------------------------------------------
# Recommendation templates
# ---------------------------------------------------------------------------
_GENERAL_DOCTORS: list[dict] = [
    {
        "id": "1",
        "name": "Dr. Amara Kone",
        "hospital": "Lagos University Teaching Hospital",
        "rating": 4.8,
        "experience": "15 years",
        "languages": ["English", "Yoruba", "French"],
        "phone": "+234-123-456-789",
        "email": "dr.kone@luth.edu.ng",
        "availability": "Available today",
        "consultation_fee": "$50-80 USD",
        "image": "https://example.com/doctor1.jpg",
    },
    {
        "id": "2",
        "name": "Dr. Fatima Al-Rashid",
        "hospital": "Aga Khan University Hospital, Nairobi",
        "rating": 4.9,
        "experience": "12 years",
        "languages": ["English", "Swahili", "Arabic"],
        "phone": "+254-700-123-456",
        "email": "dr.alrashid@aku.edu",
        "availability": "Available tomorrow",
        "consultation_fee": "$60-90 USD",
        "image": "https://example.com/doctor2.jpg",
    },
]

_MENTAL_HEALTH_DOCTORS: list[dict] = [
    {
        "id": "3",
        "name": "Dr. Kwame Asante",
        "specialty": "Psychiatrist",
        "hospital": "Accra Psychiatric Hospital",
        "rating": 4.7,
        "experience": "18 years",
        "languages": ["English", "Twi", "Ga"],
        "phone": "+233-244-567-890",
        "email": "dr.asante@aph.gov.gh",
        "availability": "Available this week",
        "consultation_fee": "$40-70 USD",
        "image": "https://example.com/doctor3.jpg",
    },
    {
        "id": "4",
        "name": "Dr. Aisha Mbeki",
        "specialty": "Clinical Psychologist",
        "hospital": "Johannesburg Mental Health Centre",
        "rating": 4.6,
        "experience": "10 years",
        "languages": ["English", "Zulu", "Afrikaans"],
        "phone": "+27-11-123-4567",
        "email": "dr.mbeki@jmhc.co.za",
        "availability": "Available next week",
        "consultation_fee": "$45-75 USD",
        "image": "https://example.com/doctor4.jpg",
    },
]

_GENERAL_HOSPITALS: list[dict] = [
    {
        "id": "1",
        "name": "Lagos University Teaching Hospital",
        "type": "University Hospital",
        "location": "Lagos, Nigeria",
        "rating": 4.5,
        "specialties": ["Cardiology", "Neurology", "Oncology", "General Medicine"],
        "languages": ["English", "Yoruba", "Igbo"],
        "services": ["Emergency Care", "24/7 Service", "Specialist Consultations"],
        "phone": "+234-1-234-5678",
        "website": "www.luth.edu.ng",
        "match_score": 92,
        "distance": "5.2 km",
        "estimated_cost": "$100-300 USD",
    },
    {
        "id": "2",
        "name": "Aga Khan University Hospital",
        "type": "Private Hospital",
        "location": "Nairobi, Kenya",
        "rating": 4.8,
        "specialties": ["Internal Medicine", "Surgery", "Pediatrics", "Orthopedics"],
        "languages": ["English", "Swahili"],
        "services": ["International Standards", "Advanced Diagnostics", "Telemedicine"],
        "phone": "+254-20-366-2000",
        "website": "www.aku.edu",
        "match_score": 89,
        "distance": "12.1 km",
        "estimated_cost": "$200-500 USD",
    },
]

_MENTAL_HEALTH_HOSPITALS: list[dict] = [
    {
        "id": "3",
        "name": "Accra Psychiatric Hospital",
        "type": "Mental Health Facility",
        "location": "Accra, Ghana",
        "rating": 4.3,
        "specialties": ["Psychiatry", "Psychology", "Addiction Treatment", "Counseling"],
        "languages": ["English", "Twi", "Ga"],
        "services": ["Inpatient Care", "Outpatient Services", "Crisis Intervention"],
        "phone": "+233-30-222-1234",
        "website": "www.aph.gov.gh",
        "match_score": 87,
        "distance": "8.5 km",
        "estimated_cost": "$50-150 USD",
    },
    {
        "id": "4",
        "name": "Johannesburg Mental Health Centre",
        "type": "Mental Health Clinic",
        "location": "Johannesburg, South Africa",
        "rating": 4.4,
        "specialties": ["Mental Health", "Therapy", "Psychiatric Services", "Rehabilitation"],
        "languages": ["English", "Zulu", "Afrikaans", "Sotho"],
        "services": ["Individual Therapy", "Group Sessions", "Family Counseling"],
        "phone": "+27-11-123-4567",
        "website": "www.jmhc.co.za",
        "match_score": 85,
        "distance": "15.3 km",
        "estimated_cost": "$80-200 USD",
    },
]

# Returned when even the fallback analysis could not be produced.
EMERGENCY_FALLBACK_RECOMMENDATION: dict = {
    "analysis": (
        "We're experiencing technical difficulties with our AI analysis. Based on "
        "your symptoms, we recommend consulting with a healthcare professional for "
        "proper evaluation. Please see the recommended doctors below who can provide "
        "you with comprehensive care."
    ),
    "doctors": [
        {
            "id": "emergency-1",
            "name": "Dr. Adaora Okonkwo",
            "specialty": "General Medicine",
            "hospital": "Lagos University Teaching Hospital",
            "rating": 4.7,
            "experience": 12,
            "languages": ["English", "Igbo", "Yoruba"],
            "phone": "+234-123-456-789",
            "email": "dr.okonkwo@luth.edu.ng",
            "match_score": 85,
            "match_reason": "General medical consultation",
            "availability": "Available today",
            "consultation_fee": "$40-60 USD",
            "image": "https://example.com/doctor.jpg",
        },
        {
            "id": "emergency-2",
            "name": "Dr. Kwame Asante",
            "specialty": "Internal Medicine",
            "hospital": "Aga Khan University Hospital",
            "rating": 4.8,
            "experience": 15,
            "languages": ["English", "Swahili"],
            "phone": "+254-700-123-456",
            "email": "dr.asante@aku.edu",
            "match_score": 82,
            "match_reason": "General medical consultation",
            "availability": "Available tomorrow",
            "consultation_fee": "$50-80 USD",
            "image": "https://example.com/doctor2.jpg",
        },
    ],
    "hospitals": [
        {
            "id": "emergency-1",
            "name": "Lagos University Teaching Hospital",
            "type": "University Hospital",
            "location": "Lagos, Nigeria",
            "rating": 4.5,
            "specialties": ["General Medicine", "Emergency Care", "Specialist Services"],
            "languages": ["English", "Yoruba", "Igbo"],
            "services": ["24/7 Emergency", "Specialist Consultations", "Diagnostic Services"],
            "phone": "+234-1-234-5678",
            "website": "www.luth.edu.ng",
            "match_score": 88,
            "distance": "5.2 km",
            "estimated_cost": "$100-250 USD",
        },
    ],
    "mental_health_assessment": {
        "risk_level": RISK_LOW,
        "indicators": [],
        "recommendations": [
            "Consider general wellness practices",
            "Maintain healthy lifestyle",
        ],
        "requires_immediate_attention": False,
        "suggested_specialists": [],
    },
    "urgency_level": URGENCY_MODERATE,
    "reasoning": (
        "Technical analysis unavailable. Providing general medical consultation "
        "recommendations based on standard care protocols."
    ),
    "follow_up_recommendations": [
        "Schedule an appointment with one of the recommended doctors",
        "Monitor your symptoms and note any changes",
        "Seek immediate medical attention if symptoms worsen",
        "Keep a symptom diary to discuss with your doctor",
        "Try the WemaCARE analysis again later",
    ],
}


def calculate_age(date_of_birth: str, today: Optional[date] = None) -> int:
    """Age in whole years for an ISO ``YYYY-MM-DD`` birth date."""
    today = today or date.today()
    birth = datetime.fromisoformat(date_of_birth[:10]).date()
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age


def _join(values, default: str = "None") -> str:
    return ", ".join(values) if values else default


def _symptom_texts(symptoms: list[dict]) -> str:
    return ". ".join(s.get("content", "") for s in symptoms)


def _is_mental_health_case(analysis: dict) -> bool:
    assessment = analysis.get("mental_health_assessment") or {}
    return assessment.get("risk_level") != RISK_LOW


class HealthcareAnalyzer:
    """AI healthcare needs analysis with heuristic provider matching.

    Attributes:
        chat_service: LLM gateway used for the analysis prompts.
        rng: Random source for the match-score jitter.
    """

    def __init__(
        self,
        chat_service: Optional[ChatService] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.chat_service = chat_service or ChatService()
        self.rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Main analysis
    # ------------------------------------------------------------------

    def analyze_healthcare_needs(self, symptoms: list[dict], user: dict) -> dict:
        """Analyze symptoms against the patient's medical history.

        Args:
            symptoms: SymptomInput records (text, voice or image).
            user: User record holding the medical profile.

        Returns:
            Recommendation dict with analysis, doctors, hospitals,
            mental_health_assessment, urgency_level, reasoning and
            follow_up_recommendations.
        """
        profile = user.get("medical_profile") or {}
        prompt = self._build_analysis_prompt(symptoms, profile)

        try:
            response = self.chat_service.get_openai_text_response(
                [{"role": "user", "content": prompt}],
                {"temperature": 0.3, "max_tokens": 3000},
            )
            raw = extract_json_object(response["content"])
            analysis = self._validate_analysis(raw)
        except Exception as exc:
            logger.error("Healthcare analysis error: %s", exc)
            return self.generate_fallback_analysis(symptoms, user)

        doctors = self.generate_doctor_recommendations(analysis, user, symptoms)
        hospitals = self.generate_hospital_recommendations(analysis, user)

        logger.info(
            "Healthcare analysis: urgency=%s mental_risk=%s doctors=%d hospitals=%d",
            analysis["urgency_level"],
            analysis["mental_health_assessment"].get("risk_level"),
            len(doctors),
            len(hospitals),
        )
        return {
            "analysis": analysis["analysis"],
            "doctors": doctors,
            "hospitals": hospitals,
            "mental_health_assessment": analysis["mental_health_assessment"],
            "urgency_level": analysis["urgency_level"],
            "reasoning": analysis["reasoning"],
            "follow_up_recommendations": analysis["follow_up_recommendations"],
        }

    def safe_analyze_healthcare_needs(self, symptoms: list[dict], user: dict) -> dict:
        """Like analyze_healthcare_needs, but never raises."""
        try:
            logger.info("Starting healthcare analysis for %d symptoms", len(symptoms))
            result = self.analyze_healthcare_needs(symptoms, user)
            logger.info("Healthcare analysis completed successfully")
            return result
        except Exception as exc:
            logger.error("Healthcare analysis failed, using emergency fallback: %s", exc)
            return copy.deepcopy(EMERGENCY_FALLBACK_RECOMMENDATION)

    def _build_analysis_prompt(self, symptoms: list[dict], profile: dict) -> str:
        age = "Not provided"
        if profile.get("date_of_birth"):
            try:
                age = str(calculate_age(profile["date_of_birth"]))
            except ValueError:
                logger.warning("Unparseable date of birth: %s", profile["date_of_birth"])

        symptom_lines = "\n".join(
            f"{index}. {s.get('content', '')} ({s.get('type', 'text')})"
            for index, s in enumerate(symptoms, start=1)
        )

        return f"""You are a medical AI assistant helping to recommend healthcare providers in Africa. Analyze the following patient information and symptoms to provide comprehensive recommendations.

PATIENT MEDICAL HISTORY:
- Age: {age}
- Blood Type: {profile.get("blood_type") or "Not provided"}
- Current Medications: {_join(profile.get("medications"))}
- Known Allergies: {_join(profile.get("allergies"))}
- Medical Conditions: {_join(profile.get("medical_conditions"))}
- Previous Surgeries: {_join(profile.get("surgeries"))}
- Family History: {profile.get("family_history") or "Not provided"}

CURRENT SYMPTOMS:
{symptom_lines}

Please provide a comprehensive analysis that includes:

1. MEDICAL ANALYSIS: Detailed assessment considering both current symptoms and medical history
2. MENTAL HEALTH SCREENING: Assess if symptoms indicate mental health concerns (depression, anxiety, stress, trauma, etc.)
3. URGENCY LEVEL: Rate as low/moderate/high/emergency
4. SPECIALIST RECOMMENDATIONS: Specific types of doctors needed
5. HOSPITAL RECOMMENDATIONS: Type of facilities required
6. CULTURAL CONSIDERATIONS: Consider African healthcare context and traditional medicine integration
7. FOLLOW-UP CARE: Recommended monitoring and care plan

IMPORTANT: Respond ONLY with valid JSON format. Do not include any text before or after the JSON. Do not use markdown formatting.

{{
  "analysis": "detailed medical analysis of symptoms and medical history",
  "mental_health_assessment": {{
    "risk_level": "low",
    "indicators": ["list any mental health indicators found"],
    "recommendations": ["specific mental health recommendations"],
    "requires_immediate_attention": false,
    "suggested_specialists": ["therapist", "psychiatrist", "counselor", "psychologist"]
  }},
  "urgency_level": "moderate",
  "reasoning": "detailed explanation of recommendations based on medical history and symptoms",
  "specialists_needed": ["General Practitioner", "Cardiologist"],
  "hospital_type": "general",
  "follow_up_recommendations": ["specific follow-up care instructions"],
  "cultural_considerations": "African healthcare context and traditional medicine notes"
}}
"""

    @staticmethod
    def _validate_analysis(raw: dict) -> dict:
        """Fill defaults for any field the model left out or sent mistyped.

        A missing screening means low mental-health risk. A screening with
        an unknown risk level is treated as moderate.
        """
        mental = raw.get("mental_health_assessment")
        if isinstance(mental, dict):
            risk = mental.get("risk_level")
            risk = risk if risk in RISK_LEVELS else RISK_MODERATE
        else:
            mental, risk = {}, RISK_LOW
        mental = {
            "risk_level": risk,
            "indicators": as_str_list(mental.get("indicators")),
            "recommendations": as_str_list(mental.get("recommendations")),
            "requires_immediate_attention": as_bool(mental.get("requires_immediate_attention"), False),
            "suggested_specialists": as_str_list(mental.get("suggested_specialists")),
        }

        urgency = raw.get("urgency_level")
        if urgency not in URGENCY_LEVELS:
            urgency = URGENCY_MODERATE

        return {
            "analysis": raw.get("analysis") or "Medical analysis could not be completed.",
            "mental_health_assessment": mental,
            "urgency_level": urgency,
            "reasoning": raw.get("reasoning") or "General medical consultation recommended.",
            "specialists_needed": as_str_list(raw.get("specialists_needed")) or ["General Practitioner"],
            "hospital_type": raw.get("hospital_type") or "general",
            "follow_up_recommendations": (
                as_str_list(raw.get("follow_up_recommendations")) or list(DEFAULT_FOLLOW_UP)
            ),
        }

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def calculate_match_score(self, analysis: dict, user: dict, specialist_type: str) -> int:
        """Heuristic 60-100 match score for a recommended provider.

        Args:
            analysis: Validated analysis dict (urgency and mental-health risk).
            user: User record; known medical conditions raise the score.
            specialist_type: 'general', 'specialist' or 'mental_health'.
        """
        score = 70

        profile = user.get("medical_profile") or {}
        if profile.get("medical_conditions"):
            score += 10

        score += URGENCY_BONUS.get(analysis.get("urgency_level"), 5)

        if specialist_type == SPECIALIST_MENTAL_HEALTH and _is_mental_health_case(analysis):
            score += 15

        score += self.rng.randint(0, 9)

        return min(MAX_MATCH_SCORE, max(MIN_MATCH_SCORE, score))

    def generate_doctor_recommendations(
        self, analysis: dict, user: dict, symptoms: list[dict]
    ) -> list[dict]:
        """Doctors for the analysis, best match first.

        The two general doctors take the specialties the model asked for;
        mental-health doctors are added when mental-health risk is not low.
        """
        specialists = as_str_list(analysis.get("specialists_needed")) or ["General Practitioner"]
        default_specialties = ["General Medicine", "Internal Medicine"]
        kinds = [SPECIALIST_GENERAL, SPECIALIST_SPECIALIST]

        doctors: list[dict] = []
        for index, template in enumerate(_GENERAL_DOCTORS):
            doctor = copy.deepcopy(template)
            doctor["specialty"] = (
                specialists[index] if index < len(specialists) else default_specialties[index]
            )
            doctor["match_score"] = self.calculate_match_score(analysis, user, kinds[index])
            doctor["match_reason"] = f"Recommended for {doctor['specialty']} care based on your symptoms"
            doctors.append(doctor)

        if _is_mental_health_case(analysis):
            for template in _MENTAL_HEALTH_DOCTORS:
                doctor = copy.deepcopy(template)
                doctor["match_score"] = self.calculate_match_score(
                    analysis, user, SPECIALIST_MENTAL_HEALTH
                )
                doctor["match_reason"] = "Mental health support recommended by your screening"
                doctors.append(doctor)

        doctors.sort(key=lambda d: d["match_score"], reverse=True)
        return doctors

    def generate_hospital_recommendations(self, analysis: dict, user: dict) -> list[dict]:
        hospitals = copy.deepcopy(_GENERAL_HOSPITALS)
        if _is_mental_health_case(analysis):
            hospitals.extend(copy.deepcopy(_MENTAL_HEALTH_HOSPITALS))
        hospitals.sort(key=lambda h: h["match_score"], reverse=True)
        return hospitals

    # ------------------------------------------------------------------
    # Offline fallback
    # ------------------------------------------------------------------

    def generate_fallback_analysis(self, symptoms: list[dict], user: dict) -> dict:
        """Keyword-based assessment used when the LLM cannot be used."""
        texts = [s.get("content", "").lower() for s in symptoms]
        profile = user.get("medical_profile") or {}
        conditions = profile.get("medical_conditions") or []

        def mentions(keywords: list[str]) -> bool:
            return any(kw in text for text in texts for kw in keywords)

        has_urgent = mentions(URGENT_KEYWORDS)
        has_moderate = mentions(MODERATE_KEYWORDS)
        has_mental = mentions(MENTAL_HEALTH_KEYWORDS)

        urgency = URGENCY_LOW
        if has_urgent:
            urgency = URGENCY_HIGH
        elif has_moderate:
            urgency = URGENCY_MODERATE

        history = (
            f"Given your medical history of {', '.join(conditions)}, " if conditions else ""
        )
        analysis_text = (
            "Based on your reported symptoms, a comprehensive medical evaluation is "
            f"recommended. Your symptoms include: {', '.join(s.get('content', '') for s in symptoms)}. "
            f"{history}it's important to consult with a healthcare professional for "
            "proper diagnosis and treatment."
        )

        mental = {
            "risk_level": RISK_MODERATE if has_mental else RISK_LOW,
            "indicators": ["Mental health-related symptoms reported"] if has_mental else [],
            "recommendations": (
                ["Consider mental health consultation", "Practice stress management techniques"]
                if has_mental
                else ["Maintain good mental health practices"]
            ),
            "requires_immediate_attention": False,
            "suggested_specialists": ["counselor", "therapist"] if has_mental else [],
        }

        fallback = {
            "analysis": analysis_text,
            "mental_health_assessment": mental,
            "urgency_level": urgency,
            "reasoning": "Basic symptom assessment performed due to analysis limitations.",
            "specialists_needed": ["General Practitioner"],
            "hospital_type": "general",
            "follow_up_recommendations": [
                "Schedule appointment with primary care physician",
                "Monitor symptoms closely",
                "Seek immediate care if symptoms worsen",
                "Keep a symptom diary",
            ],
        }

        logger.info("Fallback analysis: urgency=%s mental=%s", urgency, mental["risk_level"])
        return {
            "analysis": fallback["analysis"],
            "doctors": self.generate_doctor_recommendations(fallback, user, symptoms),
            "hospitals": self.generate_hospital_recommendations(fallback, user),
            "mental_health_assessment": mental,
            "urgency_level": urgency,
            "reasoning": fallback["reasoning"],
            "follow_up_recommendations": fallback["follow_up_recommendations"],
        }

    # ------------------------------------------------------------------
    # Enhanced recommendations
    # ------------------------------------------------------------------

    def get_enhanced_healthcare_recommendations(
        self,
        symptoms: list[dict],
        analysis: str,
        medical_history: Optional[dict] = None,
        language: str = "en",
    ) -> dict:
        """Ask the model for mental-health support needs and care advice.

        Returns:
            Dict with doctors, hospitals (always empty here),
            mental_health_support and recommendations.
        """
        history = medical_history or {}
        age = "Not provided"
        if history.get("date_of_birth"):
            try:
                age = str(calculate_age(history["date_of_birth"]))
            except ValueError:
                pass

        prompt = f"""As an advanced AI healthcare assistant for African healthcare systems, analyze these symptoms and medical history to provide comprehensive recommendations:

CURRENT SYMPTOMS: {_symptom_texts(symptoms)}

MEDICAL HISTORY:
- Previous conditions: {_join(history.get("medical_conditions"), "None listed")}
- Current medications: {_join(history.get("medications"), "None listed")}
- Allergies: {_join(history.get("allergies"), "None listed")}
- Age: {age}
- Blood type: {history.get("blood_type") or "Not provided"}

ANALYSIS: {analysis}

TARGET LANGUAGE: {language}

Please provide recommendations in JSON format:
{{
  "mental_health_support": true,
  "recommended_specialties": ["list of medical specialties needed"],
  "urgency_level": "low|moderate|high|critical",
  "cultural_considerations": ["considerations for African healthcare context"],
  "language_specific_advice": "advice in target language if not English",
  "recommendations": ["Specific recommendation 1", "Specific recommendation 2"]
}}

Consider mental health indicators, chronic disease management, cultural sensitivity,
accessibility and economic constraints of care, infectious disease patterns, and
nutritional and environmental factors."""

        try:
            response = self.chat_service.get_openai_chat_response(prompt)
        except Exception as exc:
            logger.error("Enhanced healthcare recommendations error: %s", exc)
            return {
                "doctors": [],
                "hospitals": [],
                "mental_health_support": False,
                "recommendations": ["Unable to provide recommendations at this time"],
            }

        try:
            parsed = extract_json_object(response["content"])
        except ValueError:
            return {
                "doctors": [],
                "hospitals": [],
                "mental_health_support": False,
                "recommendations": ["Consult with a healthcare professional for proper evaluation"],
            }

        return {
            "doctors": [],
            "hospitals": [],
            "mental_health_support": bool(parsed.get("mental_health_support", False)),
            "recommendations": parsed.get("recommendations") or [],
        }

    def recommend_from_directory(
        self,
        symptoms: list[dict],
        analysis: str,
        user: Optional[dict] = None,
        mental_assessment: Optional[dict] = None,
    ) -> dict:
        """Let the model pick the best directory doctors and hospitals.

        Returns:
            Recommendation dict: doctors, hospitals (top 3 each, with
            match_score and match_reason), reasoning and confidence.
        """
        profile = (user or {}).get("medical_profile") or {}
        doctors = get_mock_doctors()
        hospitals = get_mock_hospitals()

        age = "Not provided"
        if profile.get("date_of_birth"):
            try:
                age = str(calculate_age(profile["date_of_birth"]))
            except ValueError:
                pass

        mental_line = "Not assessed"
        if mental_assessment:
            mental_line = (
                f"Risk level: {mental_assessment.get('risk_level')}, "
                f"Professional help needed: {mental_assessment.get('professional_help')}"
            )

        symptom_lines = "\n".join(
            f"{s.get('type', 'text').upper()}: {s.get('content', '')}" for s in symptoms
        )
        doctor_lines = "\n".join(
            f"- [{d['id']}] {d['name']} ({d['specialty']}) - {d['experience']} years experience, "
            f"Rating: {d['rating']}/5, Hospital: {d['hospital']}"
            for d in doctors
        )
        hospital_lines = "\n".join(
            f"- [{h['id']}] {h['name']} - Specialties: {', '.join(h['specialties'])}, "
            f"Rating: {h['rating']}/5, Emergency: {'Yes' if h['emergency_services'] else 'No'}"
            for h in hospitals
        )

        prompt = f"""Based on these symptoms, analysis, and medical history, recommend the most suitable doctors and hospitals:

SYMPTOMS:
{symptom_lines}

ANALYSIS:
{analysis}

MEDICAL HISTORY:
- Previous conditions: {_join(profile.get("medical_conditions"), "None listed")}
- Current medications: {_join(profile.get("medications"), "None listed")}
- Allergies: {_join(profile.get("allergies"), "None listed")}
- Age: {age}
- Blood type: {profile.get("blood_type") or "Not provided"}

MENTAL HEALTH ASSESSMENT: {mental_line}

AVAILABLE DOCTORS:
{doctor_lines}

AVAILABLE HOSPITALS:
{hospital_lines}

Please provide:
1. Top 3 recommended doctors with match scores (0-100) and specific reasons
2. Top 3 recommended hospitals with match scores (0-100) and specific reasons
3. Overall reasoning for recommendations

Format your response as JSON with this structure:
{{
  "doctors": [{{"doctor_id": "1", "match_score": 95, "match_reason": "Specific reason"}}],
  "hospitals": [{{"hospital_id": "1", "match_score": 90, "match_reason": "Specific reason"}}],
  "reasoning": "Overall explanation of recommendations"
}}"""

        try:
            response = self.chat_service.get_openai_chat_response(prompt)
            data = extract_json_object(response["content"])
        except Exception as exc:
            logger.error("Failed to generate directory recommendations: %s", exc)
            return self._directory_fallback(doctors, hospitals)

        doctors_by_id = {d["id"]: d for d in doctors}
        hospitals_by_id = {h["id"]: h for h in hospitals}

        recommended_doctors = []
        for rec in data.get("doctors") or []:
            doctor = doctors_by_id.get(str(rec.get("doctor_id")))
            if doctor is None:
                continue
            recommended_doctors.append(
                {**doctor, "match_score": rec.get("match_score"), "match_reason": rec.get("match_reason", "")}
            )

        recommended_hospitals = []
        for rec in data.get("hospitals") or []:
            hospital = hospitals_by_id.get(str(rec.get("hospital_id")))
            if hospital is None:
                continue
            recommended_hospitals.append(
                {**hospital, "match_score": rec.get("match_score"), "match_reason": rec.get("match_reason", "")}
            )

        return {
            "doctors": recommended_doctors[:3],
            "hospitals": recommended_hospitals[:3],
            "reasoning": data.get("reasoning", ""),
            "confidence": 0.85,
        }

    def _directory_fallback(self, doctors: list[dict], hospitals: list[dict]) -> dict:
        return {
            "doctors": [
                {
                    **doctor,
                    "match_score": self.rng.randint(0, 19) + 80,
                    "match_reason": "Recommended based on your symptoms and medical profile",
                }
                for doctor in doctors[:3]
            ],
            "hospitals": [
                {
                    **hospital,
                    "match_score": self.rng.randint(0, 19) + 75,
                    "match_reason": "Well-equipped facility for your healthcare needs",
                }
                for hospital in hospitals[:3]
            ],
            "reasoning": (
                "These recommendations are based on your symptoms and available "
                "healthcare providers in your area."
            ),
            "confidence": 0.75,
        }
