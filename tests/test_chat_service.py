"""
Chat Service Tests
==================
Provider dispatch, response normalisation and JSON recovery for the
LLM gateway. Every provider is replaced by a local double.

Run with: python -m pytest tests/test_chat_service.py -v
"""

from __future__ import annotations

import os
import sys
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest import mock

import requests

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from wemacare.chat_service import (
    ChatService,
    ChatServiceError,
    as_bool,
    as_str_list,
    extract_json_object,
)

NO_KEYS = {
    "OPENAI_API_KEY": "",
    "ANTHROPIC_API_KEY": "",
    "GROK_API_KEY": "",
    "GEMINI_API_KEY": "",
}


def fake_completion(content: str, prompt: int = 12, completion: int = 30):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=prompt + completion,
        ),
    )


class TestOpenAICompatible(unittest.TestCase):
    """OpenAI and Grok share the chat.completions code path."""

    def setUp(self):
        self.client = mock.MagicMock()
        self.client.chat.completions.create.return_value = fake_completion("Hello")
        with mock.patch.dict(os.environ, NO_KEYS):
            self.service = ChatService(openai_client=self.client, grok_client=self.client)

    def test_openai_response_shape(self):
        result = self.service.get_openai_text_response([{"role": "user", "content": "Hi"}])
        self.assertEqual(result["content"], "Hello")
        self.assertEqual(
            result["usage"],
            {"prompt_tokens": 12, "completion_tokens": 30, "total_tokens": 42},
        )

    def test_openai_defaults(self):
        self.service.get_openai_chat_response("Hi")
        kwargs = self.client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "gpt-4o")
        self.assertEqual(kwargs["temperature"], 0.7)
        self.assertEqual(kwargs["max_tokens"], 2048)
        self.assertEqual(kwargs["messages"], [{"role": "user", "content": "Hi"}])

    def test_explicit_zero_temperature_is_kept(self):
        self.service.get_openai_text_response(
            [{"role": "user", "content": "Hi"}], {"temperature": 0, "max_tokens": 50}
        )
        kwargs = self.client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["temperature"], 0)
        self.assertEqual(kwargs["max_tokens"], 50)

    def test_grok_uses_grok_model(self):
        self.service.get_grok_chat_response("Hi")
        kwargs = self.client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "grok-3-beta")

    def test_sdk_error_becomes_chat_service_error(self):
        self.client.chat.completions.create.side_effect = RuntimeError("rate limited")
        with self.assertRaises(ChatServiceError):
            self.service.get_openai_chat_response("Hi")

    def test_missing_usage_reports_zero(self):
        response = fake_completion("ok")
        response.usage = None
        self.client.chat.completions.create.return_value = response
        result = self.service.get_openai_chat_response("Hi")
        self.assertEqual(result["usage"]["total_tokens"], 0)

    def test_describe_symptom_image_sends_data_url(self):
        self.client.chat.completions.create.return_value = fake_completion(" A red rash. ")
        text = self.service.describe_symptom_image("aGVsbG8=", "image/png")
        self.assertEqual(text, "A red rash.")
        kwargs = self.client.chat.completions.create.call_args.kwargs
        parts = kwargs["messages"][0]["content"]
        self.assertEqual(parts[1]["image_url"]["url"], "data:image/png;base64,aGVsbG8=")
        self.assertEqual(kwargs["max_tokens"], 500)


class TestUnconfiguredProviders(unittest.TestCase):

    def setUp(self):
        with mock.patch.dict(os.environ, NO_KEYS):
            self.service = ChatService(anthropic_key="")

    def test_nothing_available(self):
        for provider in ("openai", "anthropic", "grok", "gemini"):
            self.assertFalse(self.service.is_available(provider))

    def test_calls_raise(self):
        with self.assertRaises(ChatServiceError):
            self.service.get_openai_chat_response("Hi")
        with self.assertRaises(ChatServiceError):
            self.service.get_anthropic_chat_response("Hi")
        with self.assertRaises(ChatServiceError):
            self.service.get_gemini_chat_response("Hi")

    def test_unknown_provider(self):
        with self.assertRaises(ChatServiceError):
            self.service.get_text_response("mistral", [{"role": "user", "content": "Hi"}])

    def test_placeholder_key_is_unconfigured(self):
        with mock.patch.dict(os.environ, NO_KEYS):
            service = ChatService(anthropic_key="your-key")
        self.assertFalse(service.is_available("anthropic"))


class TestAnthropic(unittest.TestCase):

    def setUp(self):
        with mock.patch.dict(os.environ, NO_KEYS):
            self.service = ChatService(anthropic_key="test-key")

    @mock.patch("wemacare.chat_service.requests.post")
    def test_roles_mapped_and_blocks_joined(self, mock_post):
        mock_post.return_value.json.return_value = {
            "content": [
                {"type": "text", "text": "Rest "},
                {"type": "text", "text": "and hydrate."},
            ],
            "usage": {"input_tokens": 20, "output_tokens": 5},
        }
        result = self.service.get_anthropic_text_response(
            [
                {"role": "system", "content": "You are a nurse."},
                {"role": "assistant", "content": "How can I help?"},
                {"role": "user", "content": "I have a cold."},
            ]
        )

        self.assertEqual(result["content"], "Rest and hydrate.")
        self.assertEqual(result["usage"]["total_tokens"], 25)

        payload = mock_post.call_args.kwargs["json"]
        self.assertEqual(
            [m["role"] for m in payload["messages"]], ["user", "assistant", "user"]
        )
        headers = mock_post.call_args.kwargs["headers"]
        self.assertEqual(headers["x-api-key"], "test-key")
        self.assertIn("anthropic-version", headers)

    @mock.patch("wemacare.chat_service.requests.post")
    def test_http_error(self, mock_post):
        mock_post.return_value.raise_for_status.side_effect = requests.HTTPError("500")
        with self.assertRaises(ChatServiceError):
            self.service.get_anthropic_chat_response("Hi")


class TestGemini(unittest.TestCase):

    def test_messages_flattened(self):
        genai = mock.MagicMock()
        model = genai.GenerativeModel.return_value
        model.generate_content.return_value = SimpleNamespace(
            text="  Habari  ",
            usage_metadata=SimpleNamespace(
                prompt_token_count=3, candidates_token_count=2, total_token_count=5
            ),
        )
        with mock.patch.dict(os.environ, NO_KEYS):
            service = ChatService(gemini_module=genai)

        result = service.get_gemini_text_response(
            [
                {"role": "user", "content": "Translate"},
                {"role": "user", "content": "Hello"},
            ],
            {"temperature": 0.2},
        )

        self.assertEqual(result["content"], "Habari")
        self.assertEqual(result["usage"]["total_tokens"], 5)
        genai.GenerativeModel.assert_called_once_with("gemini-2.0-flash-exp")
        args, kwargs = model.generate_content.call_args
        self.assertEqual(args[0], "Translate\n\nHello")
        self.assertEqual(kwargs["generation_config"]["temperature"], 0.2)


class TestTranscription(unittest.TestCase):

    def test_transcribe_audio(self):
        client = mock.MagicMock()
        client.audio.transcriptions.create.return_value = SimpleNamespace(text=" I feel dizzy ")
        with mock.patch.dict(os.environ, NO_KEYS):
            service = ChatService(openai_client=client)

        with tempfile.NamedTemporaryFile(suffix=".m4a", delete=False) as handle:
            handle.write(b"\x00\x01")
            path = handle.name
        try:
            self.assertEqual(service.transcribe_audio(path), "I feel dizzy")
        finally:
            os.unlink(path)

    def test_missing_file(self):
        with mock.patch.dict(os.environ, NO_KEYS):
            service = ChatService(openai_client=mock.MagicMock())
        with self.assertRaises(ChatServiceError):
            service.transcribe_audio("/nonexistent/voice-note.m4a")


class TestExtractJsonObject(unittest.TestCase):

    def test_plain_json(self):
        self.assertEqual(extract_json_object('{"a": 1}'), {"a": 1})

    def test_markdown_fence(self):
        self.assertEqual(extract_json_object('```json\n{"a": 1}\n```'), {"a": 1})

    def test_surrounding_prose_and_trailing_comma(self):
        text = 'Here you go:\n{"urgency_level": "high", "list": [1, 2,],}\nThanks!'
        self.assertEqual(
            extract_json_object(text), {"urgency_level": "high", "list": [1, 2]}
        )

    def test_no_object(self):
        with self.assertRaises(ValueError):
            extract_json_object("I cannot help with that.")

    def test_empty(self):
        with self.assertRaises(ValueError):
            extract_json_object("   ")

    def test_array_is_rejected(self):
        with self.assertRaises(ValueError):
            extract_json_object("[1, 2, 3]")


class TestFieldCoercion(unittest.TestCase):

    def test_bare_string_is_wrapped(self):
        self.assertEqual(as_str_list("Depression"), ["Depression"])
        self.assertEqual(as_str_list("  "), [])

    def test_non_string_items_dropped(self):
        self.assertEqual(as_str_list(["Anxiety", {"name": "PTSD"}, 3, None]), ["Anxiety"])

    def test_other_types_become_empty(self):
        self.assertEqual(as_str_list(None), [])
        self.assertEqual(as_str_list({"name": "Depression"}), [])

    def test_only_real_booleans_kept(self):
        self.assertTrue(as_bool(True, False))
        self.assertFalse(as_bool("false", False))
        self.assertTrue(as_bool("false", True))
        self.assertTrue(as_bool(None, True))


if __name__ == "__main__":
    unittest.main()
