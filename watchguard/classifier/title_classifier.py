"""
Title Classifier — asks a hosted LLM to put a video title into one bucket.

The prompt inlines the user's curriculum / phd keyword lists from settings.
Any failure (no API key, HTTP error, empty or unrecognised answer) yields
None so the caller can fall back to asking the user.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..settings import BUCKETS

logger = logging.getLogger(__name__)

_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

_PROMPT = """System Prompt:

You are a strict video classifier. You must categorize a YouTube video into exactly one of these categories: 'trash', 'interesting', 'curriculum', 'phd'.

trash: Entertainment, gossip, memes, gaming, low-value content.

phd: {phd}

curriculum: {curriculum}.

interesting: Anything educational/commentary that doesn't fit the above.

The YouTube title is {title}.

Reply ONLY with the category name in lowercase."""


def build_prompt(title: str, keywords: Dict[str, List[str]]) -> str:
    return _PROMPT.format(
        title=title,
        phd=", ".join(keywords.get("phd", [])),
        curriculum=", ".join(keywords.get("curriculum", [])),
    )


def parse_label(text: str) -> Optional[str]:
    """Map the model's reply to a bucket; tolerates quotes, case and trailing punctuation."""
    label = text.strip().strip("'\"`.").lower()
    if label in BUCKETS:
        return label
    # some replies wrap the label in a sentence
    found = [b for b in BUCKETS if b in label.split()]
    return found[0] if len(found) == 1 else None


def _first_candidate_text(body: Dict[str, Any]) -> Optional[str]:
    try:
        return body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None


class TitleClassifier:

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout_s: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._model = model
        self._timeout_s = timeout_s
        self._transport = transport

    async def classify(self, title: str, keywords: Dict[str, List[str]]) -> Optional[str]:
        if not self._api_key:
            logger.warning("Classifier API key is not configured")
            return None

        payload = {"contents": [{"parts": [{"text": build_prompt(title, keywords)}]}]}
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_s, transport=self._transport
            ) as client:
                r = await client.post(
                    _API_URL.format(model=self._model),
                    params={"key": self._api_key},
                    json=payload,
                )
                r.raise_for_status()
                body = r.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Classifier call failed: %s", exc)
            return None

        text = _first_candidate_text(body)
        if not text:
            logger.error("Classifier returned no text content: %s", body)
            return None

        bucket = parse_label(text)
        if bucket is None:
            logger.warning("Classifier reply %r is not a bucket", text)
        return bucket
