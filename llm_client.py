"""
llm_client.py — Thin clients for the LLM providers + a name-based registry.

Every provider exposes:
    generate_response(system_prompt, user_prompt, temperature=None, max_tokens=None) -> str
and raises ProviderError on any transport or response-shape failure.
"""

from __future__ import annotations
from typing import Callable, Dict, Mapping, Optional
import logging
import os

import requests
from openai import OpenAI, OpenAIError

from et_config import LLM_MAX_TOKENS, LLM_PROVIDER, LLM_TEMPERATURE, LLM_TIMEOUT, PROVIDERS

log = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """Transport or provider-shape failure; the caller decides how to degrade."""


class OpenAIChatProvider:
    """Any OpenAI-compatible chat-completions endpoint (OpenAI, Groq, DeepSeek, DeepInfra)."""

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None,
                 timeout: float = LLM_TIMEOUT, name: str = "openai"):
        self.name: str = name
        self.model: str = model
        self.timeout: float = float(timeout)
        # retries are the adapter's job; the SDK should fail fast
        self.client = OpenAI(api_key=api_key or "missing", base_url=base_url or None,
                             timeout=self.timeout, max_retries=0)

    def generate_response(self, system_prompt: str, user_prompt: str,
                          temperature: Optional[float] = None,
                          max_tokens: Optional[int] = None) -> str:
        try:
            resp = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "system", "content": system_prompt},
                          {"role": "user", "content": user_prompt}],
                temperature=LLM_TEMPERATURE if temperature is None else temperature,
                max_tokens=max_tokens or LLM_MAX_TOKENS,
            )
        except OpenAIError as e:
            raise ProviderError(f"{self.name} request failed: {e}") from e
        if not getattr(resp, "choices", None):
            raise ProviderError(f"{self.name} returned no choices.")
        content = getattr(resp.choices[0].message, "content", "") or ""
        log.info("%s response: %d chars", self.name, len(content))
        return content


class GeminiProvider:
    """Google Gemini generateContent over plain HTTP."""

    def __init__(self, api_key: str, model: str, base_url: str, timeout: float = LLM_TIMEOUT):
        self.name: str = "gemini"
        self.api_key: str = api_key
        self.model: str = model
        self.base_url: str = base_url
        self.timeout: float = float(timeout)
        self.session: requests.Session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })

    # ---------- internals ----------
    def _handle_response(self, r: requests.Response) -> dict:
        try:
            data = r.json()
        except ValueError:
            r.raise_for_status()
            raise ProviderError(f"gemini returned non-JSON body: {r.text[:200]!r}")
        if not r.ok:
            raise requests.HTTPError(f"{r.status_code} {data}", response=r)
        return data

    def generate_response(self, system_prompt: str, user_prompt: str,
                          temperature: Optional[float] = None,
                          max_tokens: Optional[int] = None) -> str:
        url = f"{self.base_url}/{self.model}:generateContent"
        payload = {
            "contents": [{"role": "user", "parts": [{"text": f"{system_prompt}\n\n{user_prompt}"}]}],
            "generationConfig": {
                "temperature": LLM_TEMPERATURE if temperature is None else temperature,
                "maxOutputTokens": max_tokens or LLM_MAX_TOKENS,
            },
        }
        try:
            r = self.session.post(url, params={"key": self.api_key}, json=payload, timeout=self.timeout)
            data = self._handle_response(r)
        except requests.RequestException as e:
            raise ProviderError(f"gemini request failed: {e}") from e
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"gemini response has unexpected shape: {str(data)[:200]}") from e


# ---------- registry ----------
def _openai_factory(name: str) -> Callable[..., OpenAIChatProvider]:
    def build(api_key: str, model: str, base_url: str, timeout: float) -> OpenAIChatProvider:
        return OpenAIChatProvider(api_key, model, base_url=base_url, timeout=timeout, name=name)
    return build


PROVIDER_FACTORIES: Dict[str, Callable] = {
    "groq": _openai_factory("groq"),
    "openai": _openai_factory("openai"),
    "deepseek": _openai_factory("deepseek"),
    "llama": _openai_factory("llama"),
    "gemini": lambda api_key, model, base_url, timeout: GeminiProvider(api_key, model, base_url, timeout),
}


def build_provider(name: Optional[str] = None, env: Optional[Mapping[str, str]] = None,
                   timeout: float = LLM_TIMEOUT):
    """
    Build one provider from its name and the environment. Unknown names fall back to groq.
    Call once at startup and inject the result; providers hold no per-request state.
    """
    env = os.environ if env is None else env
    key = (name or LLM_PROVIDER or "groq").strip().lower()
    if key not in PROVIDER_FACTORIES:
        log.warning("Unknown LLM provider '%s'; using groq.", key)
        key = "groq"
    meta = PROVIDERS[key]
    api_key = env.get(meta["key_env"], "")
    if not api_key:
        log.warning("%s not set; %s calls will fail and fall back.", meta["key_env"], key)
    base_url = meta["base_url"]
    if key == "deepseek":
        base_url = env.get("DEEPSEEK_API_URL", base_url)
    model = env.get("LLM_MODEL") or meta["model"]
    provider = PROVIDER_FACTORIES[key](api_key, model, base_url, timeout)
    log.info("LLM provider initialized: %s (%s)", key, model)
    return provider
