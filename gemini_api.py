"""
gemini_api.py

Minimal client for the Google Generative Language (Gemini) REST API, used
for two things:

- transcribing an audio attachment sent inline as base64;
- turning a transcript into a short heading.

Each call is a single HTTP request. There is no retry: a failure is raised
as GeminiApiError and the caller decides what to do with it.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List, Optional

import requests

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-1.5-pro"
DEFAULT_TIMEOUT_S = 600.0

DEFAULT_TRANSCRIBE_PROMPT = (
    "Please give me the transcript of this in paragraph format without "
    "timestamps and also break up the paragraphs"
)

TITLE_PROMPT = (
    "Write a short descriptive title (at most eight words) for the following "
    "transcript. Reply with the title only, no quotes and no punctuation at "
    "the end.\n\n"
)

# Characters trimmed from both ends of a generated title.
TITLE_STRIP_CHARS = " \t#*_\"'`"


class GeminiApiError(RuntimeError):
    pass


class GeminiClient:
    """Thin wrapper around models/<model>:generateContent."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger(__name__)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def generate(self, parts: List[Dict[str, Any]]) -> str:
        """POST one generateContent request and return the concatenated text."""
        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        payload = {"contents": [{"role": "user", "parts": parts}]}

        self.logger.debug("POST %s (%d parts)", self.endpoint, len(parts))
        try:
            resp = self.session.post(
                self.endpoint,
                headers=headers,
                json=payload,
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            raise GeminiApiError(f"Network error calling {self.model}: {e}") from e

        if resp.status_code >= 400:
            detail = resp.text
            try:
                body = resp.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and isinstance(body.get("error"), dict):
                detail = body["error"].get("message") or detail
            raise GeminiApiError(f"Request failed: HTTP {resp.status_code} | {str(detail)[:500]}")

        try:
            data = resp.json()
        except ValueError as e:
            raise GeminiApiError(f"Invalid JSON response: {resp.text[:500]}") from e
        if not isinstance(data, dict):
            raise GeminiApiError(f"Unexpected response body: {resp.text[:500]}")

        return extract_text(data)

    def transcribe(self, audio: bytes, mime_type: str, prompt: str = DEFAULT_TRANSCRIBE_PROMPT) -> str:
        parts = [
            {"text": prompt},
            {
                "inline_data": {
                    "mime_type": mime_type,
                    "data": base64.b64encode(audio).decode("ascii"),
                }
            },
        ]
        return self.generate(parts).strip()

    def summarize_title(self, text: str) -> str:
        return clean_title(self.generate([{"text": TITLE_PROMPT + text}]))


def extract_text(data: Dict[str, Any]) -> str:
    """Pull the text parts out of a generateContent response body."""
    feedback = data.get("promptFeedback") or {}
    if feedback.get("blockReason"):
        raise GeminiApiError(f"Prompt blocked: {feedback['blockReason']}")

    candidates = data.get("candidates") or []
    if not candidates:
        raise GeminiApiError("Response contained no candidates.")

    content = candidates[0].get("content") or {}
    texts = [part["text"] for part in content.get("parts") or [] if isinstance(part.get("text"), str)]
    if not texts:
        reason = candidates[0].get("finishReason", "unknown")
        raise GeminiApiError(f"Response contained no text (finishReason={reason}).")
    return "".join(texts)


def clean_title(raw: str) -> str:
    """First non-empty line, without Markdown heading marks or wrapping quotes."""
    for line in raw.splitlines():
        title = line.lstrip(TITLE_STRIP_CHARS).rstrip(TITLE_STRIP_CHARS + ".")
        if title:
            return title
    return ""
