"""
Detection scorer interface and an OpenAI-backed reference scorer.

The orchestrator only depends on the DetectionScorer protocol: given text,
return a DetectionResult or raise AnalysisError. How the score is estimated
is up to the scorer.
"""
from __future__ import annotations

import asyncio
import json
import logging
import math
import re
from typing import Any, Dict, List, Optional, Protocol

from openai import AsyncOpenAI, OpenAIError

from app.core.exceptions import AnalysisError
from app.core.models import DetectionResult, FlaggedSpan

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)

SCORER_SYSTEM_PROMPT = """You estimate how likely a text is to be flagged by AI-detection tools.
Score the text on a perplexity-style risk scale where higher means more likely to be flagged
as AI-generated; typical human writing scores below 180.
Identify the individual sentences that contribute most to the risk.

Return JSON in this exact format:
{"score": 185.5, "flagged_sentences": [{"text": "...", "suggestion": "...", "index": 0}]}

"index" is the zero-based sentence position. Return ONLY valid JSON, no other text."""


class DetectionScorer(Protocol):
    async def analyze(self, text: str) -> DetectionResult:
        """Score text; raise AnalysisError when no score can be produced."""
        ...


def extract_json_from_response(text: str) -> str:
    """
    Pull the JSON object out of an LLM reply.

    Handles fenced code blocks (tagged or not), leading prose and surrounding
    whitespace. Returns the trimmed input when no object is found.
    """
    trimmed = text.strip()
    fenced = _CODE_FENCE_RE.search(trimmed)
    if fenced:
        trimmed = fenced.group(1).strip()
    start = trimmed.find("{")
    end = trimmed.rfind("}")
    if start != -1 and end > start:
        return trimmed[start:end + 1]
    return trimmed


def parse_score(text: str) -> float:
    """
    Extract a score from free text. The last number wins, since a reply may
    mention the threshold before the actual score.

    Raises:
        AnalysisError: If no number is present
    """
    numbers = _NUMBER_RE.findall(text or "")
    if not numbers:
        raise AnalysisError(f"Could not parse perplexity score from: {text!r}")
    return float(numbers[-1])


def _validate_score(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        raise AnalysisError(f"Score is not numeric: {value!r}")
    if not math.isfinite(score) or score < 0:
        raise AnalysisError(f"Score out of range: {score}")
    return score


def parse_detection_payload(payload: Dict[str, Any]) -> DetectionResult:
    """
    Convert a decoded scorer payload into a DetectionResult.

    Raises:
        AnalysisError: If the payload has no valid score
    """
    if not isinstance(payload, dict) or "score" not in payload:
        raise AnalysisError("Scorer response has no score", details={"payload": payload})
    score = _validate_score(payload["score"])

    spans: List[FlaggedSpan] = []
    for position, item in enumerate(payload.get("flagged_sentences") or []):
        if isinstance(item, str):
            spans.append(FlaggedSpan(text=item, index=position))
            continue
        if not isinstance(item, dict) or not item.get("text"):
            logger.debug(f"Ignoring malformed flagged sentence: {item!r}")
            continue
        try:
            index = int(item.get("index", position))
        except (TypeError, ValueError):
            index = position
        spans.append(FlaggedSpan(
            text=str(item["text"]),
            reason=str(item.get("suggestion") or item.get("reason") or ""),
            index=index,
        ))
    spans.sort(key=lambda s: s.index)
    return DetectionResult(score=score, flagged_spans=tuple(spans))


def parse_scorer_reply(reply: str) -> DetectionResult:
    """Parse a raw LLM reply: JSON when possible, a bare number otherwise."""
    json_str = extract_json_from_response(reply)
    try:
        payload = json.loads(json_str)
    except json.JSONDecodeError:
        logger.warning(f"Scorer reply was not JSON, falling back to number parsing: {reply[:200]!r}")
        return DetectionResult(score=_validate_score(parse_score(reply)))
    if isinstance(payload, (int, float)):
        return DetectionResult(score=_validate_score(payload))
    return parse_detection_payload(payload)


class OpenAIDetectionScorer:
    """Reference scorer that asks a chat model for a risk score and flagged sentences."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        timeout_seconds: float = 15.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._api_key = api_key
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        # Created on first use so a missing key surfaces as a call failure
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def analyze(self, text: str) -> DetectionResult:
        if not text or not text.strip():
            raise AnalysisError("Cannot analyze empty text")
        try:
            response = await asyncio.wait_for(
                self._get_client().chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": SCORER_SYSTEM_PROMPT},
                        {"role": "user", "content": f"<text>\n{text}\n</text>"},
                    ],
                    temperature=0,
                    max_tokens=800,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"Detection scorer timed out after {self.timeout_seconds}s")
            raise AnalysisError("Detection analysis timed out", details={"timeout": self.timeout_seconds})
        except OpenAIError as e:
            logger.error(f"Detection scorer request failed: {e}")
            raise AnalysisError(f"Unable to reach detection service: {e}")

        if not response.choices or not response.choices[0].message.content:
            raise AnalysisError("No content in scorer response")
        return parse_scorer_reply(response.choices[0].message.content)
