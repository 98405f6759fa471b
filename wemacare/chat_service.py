"""
Chat Service Module
===================
Single gateway to the large-language-model providers used by WemaCARE:
OpenAI, Anthropic, Grok (xAI) and Google Gemini.

Every provider call returns the same response shape so the analysis,
mental-health and translation modules can swap providers freely:

    {"content": "...", "usage": {"prompt_tokens": 0,
                                 "completion_tokens": 0,
                                 "total_tokens": 0}}

Failures are logged and re-raised as ChatServiceError. Callers decide on
the fallback value.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import requests
from dotenv import load_dotenv

load_dotenv()
logger = logging.getLogger(__name__)

PROVIDER_OPENAI = "openai"
PROVIDER_ANTHROPIC = "anthropic"
PROVIDER_GROK = "grok"
PROVIDER_GEMINI = "gemini"

PROVIDERS = (PROVIDER_OPENAI, PROVIDER_ANTHROPIC, PROVIDER_GROK, PROVIDER_GEMINI)

DEFAULT_MODELS = {
    PROVIDER_OPENAI: "gpt-4o",
    PROVIDER_ANTHROPIC: "claude-3-5-sonnet-20240620",
    PROVIDER_GROK: "grok-3-beta",
    PROVIDER_GEMINI: "gemini-2.0-flash-exp",
}

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2048

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
GROK_BASE_URL = "https://api.x.ai/v1"

IMAGE_ANALYSIS_PROMPT = (
    "Please analyze this medical/health-related image and describe what you see. "
    "Focus on any visible symptoms, conditions, or health concerns that might be "
    "relevant for medical consultation."
)


class ChatServiceError(RuntimeError):
    """Raised when an LLM provider is unavailable or returns an error."""


def _configured(key: str) -> bool:
    return bool(key) and key != "your-key"


def _empty_usage() -> dict:
    return {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}


class ChatService:
    """Multi-provider chat-completion client.

    Provider credentials come from the environment. SDK clients may be
    injected directly, which is how the test-suite replaces the network.

    Attributes:
        openai_client: OpenAI SDK client, or None when not configured.
        grok_client: OpenAI SDK client pointed at the xAI endpoint.
        gemini_module: Configured ``google.generativeai`` module.
        anthropic_key: Anthropic API key used for the Messages REST API.
        models: Default model name per provider.
    """

    def __init__(
        self,
        openai_client=None,
        grok_client=None,
        gemini_module=None,
        anthropic_key: Optional[str] = None,
    ) -> None:
        self.openai_client = openai_client
        self.grok_client = grok_client
        self.gemini_module = gemini_module
        self.anthropic_key: str = (
            anthropic_key if anthropic_key is not None else os.getenv("ANTHROPIC_API_KEY", "")
        )
        self.anthropic_url: str = os.getenv("ANTHROPIC_API_URL", ANTHROPIC_API_URL)
        self.timeout: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))
        self.models: dict[str, str] = {
            provider: os.getenv(f"{provider.upper()}_MODEL", default)
            for provider, default in DEFAULT_MODELS.items()
        }

        if self.openai_client is None:
            self.openai_client = self._init_openai_compatible(
                os.getenv("OPENAI_API_KEY", ""), None, "OpenAI"
            )
        if self.grok_client is None:
            self.grok_client = self._init_openai_compatible(
                os.getenv("GROK_API_KEY", ""),
                os.getenv("GROK_BASE_URL", GROK_BASE_URL),
                "Grok",
            )
        if self.gemini_module is None:
            self.gemini_module = self._init_gemini(os.getenv("GEMINI_API_KEY", ""))

        if not _configured(self.anthropic_key):
            logger.info("Anthropic credentials not configured.")

    # ------------------------------------------------------------------
    # Client initialisation
    # ------------------------------------------------------------------

    @staticmethod
    def _init_openai_compatible(api_key: str, base_url: Optional[str], label: str):
        """Create an OpenAI SDK client, or return None when unconfigured."""
        if not _configured(api_key):
            logger.warning("%s credentials not configured. Provider disabled.", label)
            return None
        try:
            from openai import OpenAI

            kwargs: dict[str, Any] = {"api_key": api_key}
            if base_url:
                kwargs["base_url"] = base_url
            client = OpenAI(**kwargs)
            logger.info("%s client initialized.", label)
            return client
        except Exception as exc:
            logger.error("Failed to init %s client: %s", label, exc)
            return None

    @staticmethod
    def _init_gemini(api_key: str):
        if not _configured(api_key):
            logger.warning("Gemini credentials not configured. Provider disabled.")
            return None
        try:
            import google.generativeai as genai

            genai.configure(api_key=api_key)
            logger.info("Gemini client initialized.")
            return genai
        except Exception as exc:
            logger.error("Failed to init Gemini client: %s", exc)
            return None

    def is_available(self, provider: str) -> bool:
        """Return True when the given provider has usable credentials."""
        if provider == PROVIDER_OPENAI:
            return self.openai_client is not None
        if provider == PROVIDER_GROK:
            return self.grok_client is not None
        if provider == PROVIDER_GEMINI:
            return self.gemini_module is not None
        if provider == PROVIDER_ANTHROPIC:
            return _configured(self.anthropic_key)
        return False

    # ------------------------------------------------------------------
    # Generic dispatch
    # ------------------------------------------------------------------

    def get_text_response(
        self,
        provider: str,
        messages: list[dict],
        options: Optional[dict] = None,
    ) -> dict:
        """Dispatch a chat request to the named provider."""
        handlers = {
            PROVIDER_OPENAI: self.get_openai_text_response,
            PROVIDER_ANTHROPIC: self.get_anthropic_text_response,
            PROVIDER_GROK: self.get_grok_text_response,
            PROVIDER_GEMINI: self.get_gemini_text_response,
        }
        handler = handlers.get(provider)
        if handler is None:
            raise ChatServiceError(f"Unknown LLM provider: {provider}")
        return handler(messages, options)

    # ------------------------------------------------------------------
    # OpenAI / Grok
    # ------------------------------------------------------------------

    def _openai_compatible_response(
        self,
        client,
        provider: str,
        messages: list[dict],
        options: Optional[dict],
    ) -> dict:
        options = options or {}
        if client is None:
            raise ChatServiceError(f"{provider} provider is not configured.")

        temperature = options.get("temperature")
        if temperature is None:
            temperature = DEFAULT_TEMPERATURE

        try:
            response = client.chat.completions.create(
                model=options.get("model") or self.models[provider],
                messages=messages,
                temperature=temperature,
                max_tokens=options.get("max_tokens") or DEFAULT_MAX_TOKENS,
            )
        except Exception as exc:
            logger.error("%s API error: %s", provider, exc)
            raise ChatServiceError(f"{provider} request failed: {exc}") from exc

        choices = getattr(response, "choices", None) or []
        content = ""
        if choices and choices[0].message is not None:
            content = choices[0].message.content or ""

        usage = getattr(response, "usage", None)
        result_usage = _empty_usage()
        if usage:
            result_usage = {
                "prompt_tokens": usage.prompt_tokens or 0,
                "completion_tokens": usage.completion_tokens or 0,
                "total_tokens": usage.total_tokens or 0,
            }
            logger.info(
                "%s tokens used: prompt=%d completion=%d total=%d",
                provider,
                result_usage["prompt_tokens"],
                result_usage["completion_tokens"],
                result_usage["total_tokens"],
            )
        return {"content": content, "usage": result_usage}

    def get_openai_text_response(
        self, messages: list[dict], options: Optional[dict] = None
    ) -> dict:
        """Get a text response from OpenAI.

        ``gpt-4o`` accepts image content parts as well, so this is also
        the entry point for image analysis.

        Args:
            messages: Chat messages with ``role`` and ``content`` keys.
            options: Optional ``model``, ``temperature`` and ``max_tokens``.

        Returns:
            AIResponse dict with ``content`` and ``usage``.

        Raises:
            ChatServiceError: Provider unavailable or request failed.
        """
        return self._openai_compatible_response(
            self.openai_client, PROVIDER_OPENAI, messages, options
        )

    def get_grok_text_response(
        self, messages: list[dict], options: Optional[dict] = None
    ) -> dict:
        """Get a text response from Grok through its OpenAI-compatible API."""
        return self._openai_compatible_response(
            self.grok_client, PROVIDER_GROK, messages, options
        )

    # ------------------------------------------------------------------
    # Anthropic
    # ------------------------------------------------------------------

    def get_anthropic_text_response(
        self, messages: list[dict], options: Optional[dict] = None
    ) -> dict:
        """Get a text response from the Anthropic Messages API.

        Anthropic only accepts ``user`` and ``assistant`` roles, so every
        other role is sent as ``user``. Text content blocks of the reply
        are concatenated.
        """
        options = options or {}
        if not _configured(self.anthropic_key):
            raise ChatServiceError(f"{PROVIDER_ANTHROPIC} provider is not configured.")

        payload = {
            "model": options.get("model") or self.models[PROVIDER_ANTHROPIC],
            "messages": [
                {
                    "role": "assistant" if msg.get("role") == "assistant" else "user",
                    "content": msg.get("content", ""),
                }
                for msg in messages
            ],
            "max_tokens": options.get("max_tokens") or DEFAULT_MAX_TOKENS,
            "temperature": options.get("temperature") or DEFAULT_TEMPERATURE,
        }
        headers = {
            "x-api-key": self.anthropic_key,
            "anthropic-version": os.getenv("ANTHROPIC_API_VERSION", ANTHROPIC_VERSION),
            "Content-type": "application/json",
        }

        try:
            response = requests.post(
                self.anthropic_url, headers=headers, json=payload, timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as exc:
            logger.error("Anthropic HTTP error: %s", exc)
            raise ChatServiceError(f"anthropic request failed: {exc}") from exc
        except ValueError as exc:
            logger.error("Anthropic parse error: %s", exc)
            raise ChatServiceError("anthropic returned a non-JSON body") from exc

        content = "".join(
            block.get("text", "")
            for block in data.get("content", [])
            if isinstance(block, dict) and "text" in block
        )
        usage = data.get("usage") or {}
        input_tokens = usage.get("input_tokens") or 0
        output_tokens = usage.get("output_tokens") or 0
        logger.info(
            "anthropic tokens used: prompt=%d completion=%d total=%d",
            input_tokens,
            output_tokens,
            input_tokens + output_tokens,
        )
        return {
            "content": content,
            "usage": {
                "prompt_tokens": input_tokens,
                "completion_tokens": output_tokens,
                "total_tokens": input_tokens + output_tokens,
            },
        }

    # ------------------------------------------------------------------
    # Gemini
    # ------------------------------------------------------------------

    def get_gemini_text_response(
        self, messages: list[dict], options: Optional[dict] = None
    ) -> dict:
        """Get a text response from Google Gemini.

        Gemini's ``generate_content`` takes a single prompt here, so the
        conversation is flattened in order.
        """
        options = options or {}
        if self.gemini_module is None:
            raise ChatServiceError(f"{PROVIDER_GEMINI} provider is not configured.")

        prompt = "\n\n".join(
            msg["content"] if isinstance(msg.get("content"), str) else json.dumps(msg.get("content"))
            for msg in messages
        )
        temperature = options.get("temperature")
        if temperature is None:
            temperature = DEFAULT_TEMPERATURE

        try:
            model = self.gemini_module.GenerativeModel(
                options.get("model") or self.models[PROVIDER_GEMINI]
            )
            result = model.generate_content(
                prompt,
                generation_config={
                    "temperature": temperature,
                    "max_output_tokens": options.get("max_tokens") or DEFAULT_MAX_TOKENS,
                },
            )
            content = (result.text or "").strip()
        except Exception as exc:
            logger.error("Gemini API error: %s", exc)
            raise ChatServiceError(f"gemini request failed: {exc}") from exc

        usage = _empty_usage()
        metadata = getattr(result, "usage_metadata", None)
        if metadata is not None:
            usage = {
                "prompt_tokens": getattr(metadata, "prompt_token_count", 0) or 0,
                "completion_tokens": getattr(metadata, "candidates_token_count", 0) or 0,
                "total_tokens": getattr(metadata, "total_token_count", 0) or 0,
            }
            logger.info(
                "gemini tokens used: prompt=%d completion=%d total=%d",
                usage["prompt_tokens"],
                usage["completion_tokens"],
                usage["total_tokens"],
            )
        return {"content": content, "usage": usage}

    # ------------------------------------------------------------------
    # Single-prompt convenience wrappers
    # ------------------------------------------------------------------

    def get_openai_chat_response(self, prompt: str) -> dict:
        return self.get_openai_text_response([{"role": "user", "content": prompt}])

    def get_anthropic_chat_response(self, prompt: str) -> dict:
        return self.get_anthropic_text_response([{"role": "user", "content": prompt}])

    def get_grok_chat_response(self, prompt: str) -> dict:
        return self.get_grok_text_response([{"role": "user", "content": prompt}])

    def get_gemini_chat_response(self, prompt: str) -> dict:
        return self.get_gemini_text_response([{"role": "user", "content": prompt}])

    # ------------------------------------------------------------------
    # Image and voice symptom input
    # ------------------------------------------------------------------

    def describe_symptom_image(self, image_base64: str, mime_type: str = "image/jpeg") -> str:
        """Describe a symptom photo with the OpenAI vision model.

        Args:
            image_base64: Base64-encoded image bytes.
            mime_type: MIME type used for the data URL.

        Returns:
            Plain-text description of visible symptoms.
        """
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": IMAGE_ANALYSIS_PROMPT},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{mime_type};base64,{image_base64}"},
                    },
                ],
            }
        ]
        response = self.get_openai_text_response(messages, {"max_tokens": 500})
        return response["content"].strip()

    def transcribe_audio(self, audio_path: str) -> str:
        """Transcribe a recorded voice note with the OpenAI audio API."""
        if self.openai_client is None:
            raise ChatServiceError(f"{PROVIDER_OPENAI} provider is not configured.")

        path = Path(audio_path)
        if not path.exists():
            raise ChatServiceError(f"Audio file not found: {audio_path}")

        try:
            with path.open("rb") as handle:
                result = self.openai_client.audio.transcriptions.create(
                    model=os.getenv("TRANSCRIPTION_MODEL", "whisper-1"),
                    file=handle,
                )
        except Exception as exc:
            logger.error("Transcription error: %s", exc)
            raise ChatServiceError(f"transcription failed: {exc}") from exc

        text = getattr(result, "text", "") or ""
        logger.info("Transcribed voice note %s (%d chars).", path.name, len(text))
        return text.strip()


# ---------------------------------------------------------------------------
# JSON recovery for model output
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def extract_json_object(text: str) -> dict:
    """Parse the JSON object contained in an LLM response.

    Models often wrap JSON in markdown fences, add prose around it, or
    leave trailing commas. Those are cleaned up before parsing.

    Raises:
        ValueError: No JSON object could be recovered.
    """
    if not text or not text.strip():
        raise ValueError("Empty LLM response")

    cleaned = _FENCE_RE.sub("", text.strip())
    try:
        parsed = json.loads(cleaned)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("No JSON object found in LLM response")

    candidate = _TRAILING_COMMA_RE.sub(r"\1", cleaned[start : end + 1])
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Failed to parse AI response as JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ValueError("LLM response JSON is not an object")
    return parsed


def as_str_list(value) -> list[str]:
    """Coerce a model-supplied list field to a list of strings.

    A bare string becomes a one-item list; non-string items are dropped.
    """
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str) and item.strip()]


def as_bool(value, default: bool) -> bool:
    """Return ``value`` when it is a real boolean, ``default`` otherwise."""
    return value if isinstance(value, bool) else default
