#!/usr/bin/env python3
"""
Tests for the provider clients and the registry. The SDK and HTTP session are
patched, so nothing here touches the network.
"""

import unittest
import os
import sys
from types import SimpleNamespace
from unittest import mock

import openai
import requests

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import llm_client as lc


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestOpenAIChatProvider(unittest.TestCase):

    def test_client_configuration_and_call(self):
        with mock.patch.object(lc, "OpenAI") as fake_openai:
            client = fake_openai.return_value
            client.chat.completions.create.return_value = _completion('{"ok": 1}')
            provider = lc.OpenAIChatProvider("key", "model-x", base_url="https://example/v1", timeout=3, name="groq")
            text = provider.generate_response("SYS", "USER", temperature=0.2)

        self.assertEqual(text, '{"ok": 1}')
        fake_openai.assert_called_once_with(api_key="key", base_url="https://example/v1",
                                            timeout=3.0, max_retries=0)
        kwargs = client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "model-x")
        self.assertEqual(kwargs["temperature"], 0.2)
        self.assertEqual(kwargs["messages"], [{"role": "system", "content": "SYS"},
                                              {"role": "user", "content": "USER"}])

    def test_sdk_errors_become_provider_errors(self):
        with mock.patch.object(lc, "OpenAI") as fake_openai:
            fake_openai.return_value.chat.completions.create.side_effect = openai.OpenAIError("boom")
            provider = lc.OpenAIChatProvider("key", "m")
            with self.assertRaises(lc.ProviderError):
                provider.generate_response("s", "u")

    def test_empty_choices(self):
        with mock.patch.object(lc, "OpenAI") as fake_openai:
            fake_openai.return_value.chat.completions.create.return_value = SimpleNamespace(choices=[])
            provider = lc.OpenAIChatProvider("key", "m")
            with self.assertRaises(lc.ProviderError):
                provider.generate_response("s", "u")

    def test_none_content_is_empty_string(self):
        with mock.patch.object(lc, "OpenAI") as fake_openai:
            fake_openai.return_value.chat.completions.create.return_value = _completion(None)
            self.assertEqual(lc.OpenAIChatProvider("key", "m").generate_response("s", "u"), "")


class TestGeminiProvider(unittest.TestCase):

    def _response(self, payload, ok=True):
        r = mock.MagicMock()
        r.ok = ok
        r.status_code = 200 if ok else 500
        r.json.return_value = payload
        return r

    def test_generate_content(self):
        payload = {"candidates": [{"content": {"parts": [{"text": "{\"a\": 1}"}]}}]}
        with mock.patch.object(lc.requests, "Session") as fake_session:
            session = fake_session.return_value
            session.post.return_value = self._response(payload)
            provider = lc.GeminiProvider("gkey", "gemini-x", "https://g/models", timeout=4)
            text = provider.generate_response("SYS", "USER")

        self.assertEqual(text, '{"a": 1}')
        args, kwargs = session.post.call_args
        self.assertEqual(args[0], "https://g/models/gemini-x:generateContent")
        self.assertEqual(kwargs["params"], {"key": "gkey"})
        self.assertEqual(kwargs["timeout"], 4.0)
        self.assertIn("SYS", kwargs["json"]["contents"][0]["parts"][0]["text"])

    def test_transport_error(self):
        with mock.patch.object(lc.requests, "Session") as fake_session:
            fake_session.return_value.post.side_effect = requests.ConnectionError("down")
            provider = lc.GeminiProvider("k", "m", "https://g")
            with self.assertRaises(lc.ProviderError):
                provider.generate_response("s", "u")

    def test_http_error_status(self):
        with mock.patch.object(lc.requests, "Session") as fake_session:
            fake_session.return_value.post.return_value = self._response({"error": "x"}, ok=False)
            provider = lc.GeminiProvider("k", "m", "https://g")
            with self.assertRaises(lc.ProviderError):
                provider.generate_response("s", "u")

    def test_unexpected_shape(self):
        with mock.patch.object(lc.requests, "Session") as fake_session:
            fake_session.return_value.post.return_value = self._response({"candidates": []})
            provider = lc.GeminiProvider("k", "m", "https://g")
            with self.assertRaises(lc.ProviderError):
                provider.generate_response("s", "u")


class TestBuildProvider(unittest.TestCase):

    def test_groq_defaults(self):
        with mock.patch.object(lc, "OpenAI") as fake_openai:
            provider = lc.build_provider("groq", env={"GROQ_API_KEY": "g"}, timeout=5)
        self.assertIsInstance(provider, lc.OpenAIChatProvider)
        self.assertEqual(provider.name, "groq")
        self.assertEqual(provider.model, "llama-3.3-70b-versatile")
        fake_openai.assert_called_once_with(api_key="g", base_url="https://api.groq.com/openai/v1",
                                            timeout=5.0, max_retries=0)

    def test_model_override_and_deepseek_url(self):
        env = {"DEEPSEEK_API_KEY": "d", "DEEPSEEK_API_URL": "https://proxy/v1", "LLM_MODEL": "custom"}
        with mock.patch.object(lc, "OpenAI") as fake_openai:
            provider = lc.build_provider("DeepSeek", env=env)
        self.assertEqual(provider.model, "custom")
        self.assertEqual(fake_openai.call_args.kwargs["base_url"], "https://proxy/v1")

    def test_unknown_name_falls_back_to_groq(self):
        with mock.patch.object(lc, "OpenAI"):
            with self.assertLogs("llm_client", level="WARNING"):
                provider = lc.build_provider("nonsense", env={})
        self.assertEqual(provider.name, "groq")

    def test_gemini(self):
        provider = lc.build_provider("gemini", env={"GOOGLE_API_KEY": "k"})
        self.assertIsInstance(provider, lc.GeminiProvider)
        self.assertEqual(provider.api_key, "k")
        self.assertEqual(provider.model, "gemini-1.5-flash-8b")


if __name__ == '__main__':
    unittest.main()
