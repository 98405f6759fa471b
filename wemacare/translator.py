"""
Translator Module
=================
Localises healthcare content for patients across Africa and beyond using
the LLM providers behind ChatService.

Single texts are translated with OpenAI (low temperature for stable
terminology); batches of UI texts go to Gemini in one request joined by
``---SEPARATOR---``. Every translation is cached in memory by
``(text, target_language)`` for the lifetime of the Translator.

On any failure the original text is returned so the caller can always
render something.
"""

from __future__ import annotations

import logging
from typing import Optional

from wemacare.chat_service import ChatService, extract_json_object

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"
BULK_SEPARATOR = "---SEPARATOR---"
DEFAULT_CONTEXT = "healthcare mobile app"

AFRICAN_LANGUAGES: list[dict] = [
    {"code": "en", "name": "English", "native_name": "English", "region": "Universal"},
    {"code": "sw", "name": "Swahili", "native_name": "Kiswahili", "region": "East Africa"},
    {"code": "am", "name": "Amharic", "native_name": "አማርኛ", "region": "Ethiopia"},
    {"code": "ha", "name": "Hausa", "native_name": "Hausa", "region": "West Africa"},
    {"code": "yo", "name": "Yoruba", "native_name": "Yorùbá", "region": "Nigeria"},
    {"code": "ig", "name": "Igbo", "native_name": "Igbo", "region": "Nigeria"},
    {"code": "zu", "name": "Zulu", "native_name": "isiZulu", "region": "South Africa"},
    {"code": "xh", "name": "Xhosa", "native_name": "isiXhosa", "region": "South Africa"},
    {"code": "af", "name": "Afrikaans", "native_name": "Afrikaans", "region": "South Africa"},
    {"code": "st", "name": "Sotho", "native_name": "Sesotho", "region": "Southern Africa"},
    {"code": "tn", "name": "Tswana", "native_name": "Setswana", "region": "Botswana"},
    {"code": "or", "name": "Oromo", "native_name": "Afaan Oromoo", "region": "Ethiopia"},
    {"code": "ti", "name": "Tigrinya", "native_name": "ትግርኛ", "region": "Eritrea/Ethiopia"},
    {"code": "rw", "name": "Kinyarwanda", "native_name": "Ikinyarwanda", "region": "Rwanda"},
    {"code": "lg", "name": "Luganda", "native_name": "Luganda", "region": "Uganda"},
    {"code": "ak", "name": "Akan/Twi", "native_name": "Akan", "region": "Ghana"},
    {"code": "ff", "name": "Fulfulde", "native_name": "Fulfulde", "region": "West Africa"},
    {"code": "wo", "name": "Wolof", "native_name": "Wolof", "region": "Senegal"},
    {"code": "ar", "name": "Arabic", "native_name": "العربية", "region": "North Africa"},
    {"code": "fr", "name": "French", "native_name": "Français", "region": "Francophone Africa"},
]

WORLD_LANGUAGES: list[dict] = [
    {"code": "es", "name": "Spanish", "native_name": "Español", "region": "International"},
    {"code": "de", "name": "German", "native_name": "Deutsch", "region": "International"},
    {"code": "it", "name": "Italian", "native_name": "Italiano", "region": "International"},
    {"code": "pt", "name": "Portuguese", "native_name": "Português", "region": "Lusophone Africa"},
    {"code": "ru", "name": "Russian", "native_name": "Русский", "region": "International"},
    {"code": "ja", "name": "Japanese", "native_name": "日本語", "region": "International"},
    {"code": "ko", "name": "Korean", "native_name": "한국어", "region": "International"},
    {"code": "zh", "name": "Chinese", "native_name": "中文", "region": "International"},
    {"code": "hi", "name": "Hindi", "native_name": "हिन्दी", "region": "International"},
    {"code": "th", "name": "Thai", "native_name": "ไทย", "region": "International"},
    {"code": "vi", "name": "Vietnamese", "native_name": "Tiếng Việt", "region": "International"},
    {"code": "tr", "name": "Turkish", "native_name": "Türkçe", "region": "International"},
]

SUPPORTED_LANGUAGES: list[dict] = AFRICAN_LANGUAGES + WORLD_LANGUAGES
_LANGUAGES_BY_CODE: dict[str, dict] = {lang["code"]: lang for lang in SUPPORTED_LANGUAGES}

# Static glossary used when no provider is reachable.
MEDICAL_TERMS: dict[str, dict[str, str]] = {
    "en": {
        "symptoms": "Symptoms",
        "diagnosis": "Diagnosis",
        "treatment": "Treatment",
        "medication": "Medication",
        "appointment": "Appointment",
        "emergency": "Emergency",
        "mental_health": "Mental Health",
        "therapy": "Therapy",
        "psychiatrist": "Psychiatrist",
        "psychologist": "Psychologist",
        "counseling": "Counseling",
        "depression": "Depression",
        "anxiety": "Anxiety",
        "stress": "Stress",
    },
    "sw": {
        "symptoms": "Dalili",
        "diagnosis": "Utambuzi",
        "treatment": "Matibabu",
        "medication": "Dawa",
        "appointment": "Miadi",
        "emergency": "Dharura",
        "mental_health": "Afya ya Akili",
        "therapy": "Tiba",
        "psychiatrist": "Daktari wa Akili",
        "psychologist": "Mtaalam wa Akili",
        "counseling": "Ushauri",
        "depression": "Unyogovu",
        "anxiety": "Wasiwasi",
        "stress": "Mkazo",
    },
    "ar": {
        "symptoms": "أعراض",
        "diagnosis": "تشخيص",
        "treatment": "علاج",
        "medication": "دواء",
        "appointment": "موعد",
        "emergency": "طوارئ",
        "mental_health": "الصحة النفسية",
        "therapy": "علاج نفسي",
        "psychiatrist": "طبيب نفسي",
        "psychologist": "أخصائي نفسي",
        "counseling": "استشارة",
        "depression": "اكتئاب",
        "anxiety": "قلق",
        "stress": "ضغط نفسي",
    },
    "ha": {
        "symptoms": "Alamun",
        "diagnosis": "Bincike",
        "treatment": "Magani",
        "medication": "Magani",
        "appointment": "Alkawalin ganawar",
        "emergency": "Gaggawa",
        "mental_health": "Lafiyar Hankali",
        "therapy": "Magani",
        "psychiatrist": "Likitan Hankali",
        "psychologist": "Masanin Hankali",
        "counseling": "Shawara",
        "depression": "Damuwa",
        "anxiety": "Damuwa",
        "stress": "Matsanancin hali",
    },
    "yo": {
        "symptoms": "Àmì àìsàn",
        "diagnosis": "Ìwádìí àìsàn",
        "treatment": "Ìtọ́jú",
        "medication": "Òògùn",
        "appointment": "Ìpàdé",
        "emergency": "Ìpayà",
        "mental_health": "Ìlera Ọkàn",
        "therapy": "Ìtọ́jú ọkàn",
        "psychiatrist": "Dókítà ọkàn",
        "psychologist": "Amóye ọkàn",
        "counseling": "Ìmọ̀ràn",
        "depression": "Ìbànújẹ́",
        "anxiety": "Àníyàn",
        "stress": "Ìpọ́njú",
    },
}


def get_language_by_code(code: str) -> Optional[dict]:
    """Return the language record for a code, or None if unsupported."""
    return _LANGUAGES_BY_CODE.get(code)


def get_regional_languages(region: str) -> list[dict]:
    """Languages whose region contains ``region``, plus English."""
    needle = region.lower()
    return [
        lang for lang in SUPPORTED_LANGUAGES
        if needle in lang["region"].lower() or lang["region"] == "Universal"
    ]


def get_medical_term(term: str, language: str) -> str:
    """Look a term up in the static glossary, falling back to English."""
    terms = MEDICAL_TERMS.get(language) or {}
    return terms.get(term) or MEDICAL_TERMS["en"].get(term, term)


class Translator:
    """Translates healthcare text through the configured LLM providers.

    Attributes:
        chat_service: LLM gateway used for every translation request.
        current_language: Code of the patient's selected language.
    """

    def __init__(self, chat_service: Optional[ChatService] = None) -> None:
        self.chat_service = chat_service or ChatService()
        self.current_language: str = DEFAULT_LANGUAGE
        self._cache: dict[tuple[str, str], str] = {}

    # ------------------------------------------------------------------
    # Language selection
    # ------------------------------------------------------------------

    def get_current_language(self) -> str:
        return self.current_language

    def set_current_language(self, code: str) -> bool:
        """Switch the current language; unsupported codes are ignored."""
        if code not in _LANGUAGES_BY_CODE:
            logger.warning("Ignoring unsupported language code: %s", code)
            return False
        self.current_language = code
        return True

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()

    def cached(self, text: str, target_language: str) -> Optional[str]:
        return self._cache.get((text, target_language))

    # ------------------------------------------------------------------
    # Translation
    # ------------------------------------------------------------------

    def translate(self, text: str, target_language: str) -> str:
        """Translate a single text into the target language.

        Args:
            text: Text to translate.
            target_language: Supported language code (e.g. 'sw', 'ha').

        Returns:
            Translated text. Returns the original text for English
            targets, unsupported languages, and provider failures.
        """
        if not text or not text.strip() or target_language == DEFAULT_LANGUAGE:
            return text

        key = (text, target_language)
        if key in self._cache:
            return self._cache[key]

        language = get_language_by_code(target_language)
        if language is None:
            logger.error("Translation error: unsupported language %s", target_language)
            return text

        prompt = f"""Translate the following medical/healthcare text to {language["name"]} ({language["native_name"]}).

Important guidelines:
- Maintain medical accuracy and terminology
- Use culturally appropriate expressions
- Keep formatting and structure intact
- For African languages, use respectful and clear language appropriate for healthcare communication
- Preserve any medical terms that are commonly used in their English form
- If the text contains symptoms or medical conditions, ensure accuracy in translation

Text to translate:
"{text}"

Provide only the translation without any additional explanation."""

        try:
            response = self.chat_service.get_openai_text_response(
                [{"role": "user", "content": prompt}],
                {"temperature": 0.1, "max_tokens": 2000},
            )
        except Exception as exc:
            logger.error("Translation error: %s", exc)
            return text

        translation = response["content"].strip()
        if not translation:
            return text

        self._cache[key] = translation
        logger.info(
            "Translated '%s...' -> '%s...' (en->%s)", text[:30], translation[:30], target_language
        )
        return translation

    def translate_bulk(
        self,
        texts: list[str],
        target_language: str,
        context: str = DEFAULT_CONTEXT,
    ) -> dict[str, str]:
        """Translate many texts in one Gemini request.

        Texts already in the cache are not sent again. Any position missing
        from the model's answer maps to the original text.

        Returns:
            Mapping of original text to translated text for every input.
        """
        result: dict[str, str] = {text: text for text in texts}
        if not texts or target_language == DEFAULT_LANGUAGE:
            return result

        language = get_language_by_code(target_language)
        language_name = language["name"] if language else target_language

        pending: list[str] = []
        for text in texts:
            hit = self._cache.get((text, target_language))
            if hit is not None:
                result[text] = hit
            elif text not in pending:
                pending.append(text)

        if not pending:
            return result

        joined = f"\n{BULK_SEPARATOR}\n".join(pending)
        prompt = f"""Translate the following texts to {language_name}.
Context: This is for a {context}.
Keep medical terminology accurate and maintain the same tone and formatting.
Return the translations in the same order, separated by {BULK_SEPARATOR}.
Only return the translated texts, nothing else.

Texts to translate:
{joined}"""

        try:
            response = self.chat_service.get_gemini_chat_response(prompt)
        except Exception as exc:
            logger.error("Bulk translation error: %s", exc)
            return result

        pieces = response["content"].strip().split(BULK_SEPARATOR)
        for index, original in enumerate(pending):
            translated = pieces[index].strip() if index < len(pieces) else ""
            if translated:
                result[original] = translated
                self._cache[(original, target_language)] = translated

        logger.info(
            "Bulk translated %d/%d texts to %s", len(pending), len(texts), target_language
        )
        return result

    def translate_medical_terms(self, terms: list[str], target_language: str) -> dict[str, str]:
        """Translate medical terms; identity map on English or failure."""
        identity = {term: term for term in terms}
        if target_language == DEFAULT_LANGUAGE or not terms:
            return identity

        language = get_language_by_code(target_language)
        if language is None:
            logger.error("Medical terms translation error: unsupported language %s", target_language)
            return identity

        prompt = f"""Translate these medical terms to {language["name"]} ({language["native_name"]}).

Provide accurate medical translations that would be understood by healthcare professionals and patients in {language["region"]}.

Terms: {", ".join(terms)}

Format the response as JSON:
{{
  "term1": "translation1",
  "term2": "translation2"
}}"""

        try:
            response = self.chat_service.get_openai_text_response(
                [{"role": "user", "content": prompt}],
                {"temperature": 0.1, "max_tokens": 1500},
            )
            parsed = extract_json_object(response["content"])
        except Exception as exc:
            logger.error("Medical terms translation error: %s", exc)
            return identity

        return {term: str(parsed.get(term) or term) for term in terms}

    def detect_language(self, text: str) -> str:
        """Detect the language of a text; 'en' when unsure or on failure."""
        if not text or not text.strip():
            return DEFAULT_LANGUAGE

        codes = ", ".join(f"{lang['code']} ({lang['name']})" for lang in SUPPORTED_LANGUAGES)
        prompt = f"""Detect the language of this text. Choose from these languages and return only the language code:

Supported codes: {codes}

Text: "{text}"

Return only the language code (e.g., "sw", "ha", "yo", etc.). If unsure, return "en"."""

        try:
            response = self.chat_service.get_openai_text_response(
                [{"role": "user", "content": prompt}],
                {"temperature": 0.1, "max_tokens": 50},
            )
        except Exception as exc:
            logger.error("Language detection error: %s", exc)
            return DEFAULT_LANGUAGE

        detected = response["content"].strip().strip('"').lower()
        if detected in _LANGUAGES_BY_CODE:
            logger.info("Detected language: %s", detected)
            return detected
        return DEFAULT_LANGUAGE

    def get_localized_medical_advice(
        self,
        advice: str,
        language_code: str,
        cultural_context: Optional[str] = None,
    ) -> str:
        """Translate and culturally adapt medical advice for a region."""
        if language_code == DEFAULT_LANGUAGE:
            return advice

        language = get_language_by_code(language_code)
        if language is None:
            return advice

        prompt = f"""Translate and culturally adapt this medical advice for {language["region"]} context in {language["name"]} ({language["native_name"]}).

Consider:
- Cultural sensitivities around health and medical treatment
- Traditional medicine integration where appropriate
- Family and community involvement in healthcare decisions
- Religious considerations if relevant
- Local healthcare system and accessibility

Original advice: "{advice}"

Additional context: {cultural_context or "General healthcare advice"}

Provide culturally appropriate translation that maintains medical accuracy while being sensitive to local customs and beliefs."""

        try:
            response = self.chat_service.get_openai_text_response(
                [{"role": "user", "content": prompt}],
                {"temperature": 0.3, "max_tokens": 2000},
            )
        except Exception as exc:
            logger.error("Localized medical advice error: %s", exc)
            return advice

        return response["content"].strip() or advice
