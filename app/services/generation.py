"""
Generation capability interface and an OpenAI-backed reference generator.

Only finalized text matters to the orchestrator; streaming, if any, happens
inside the generator and completes before generate() returns.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

from openai import AsyncOpenAI, OpenAIError

from app.core.exceptions import GenerationError
from app.core.intensity import IntensityLevel

logger = logging.getLogger(__name__)

BASE_SYSTEM_PROMPT = (
    "You write concise, specific freelance proposals in response to job posts. "
    "Address the client's needs directly and close with a clear next step."
)

AI_TELLS = ["delve", "leverage", "utilize", "robust", "multifaceted", "tapestry", "holistic", "nuanced"]

_STYLE_INSTRUCTIONS = {
    IntensityLevel.OFF: "",
    IntensityLevel.LIGHT: (
        "Write naturally. Occasionally use contractions and vary sentence structure slightly. "
        "Aim for about 0.5-1 subtle human touches per 100 words."
    ),
    IntensityLevel.MEDIUM: (
        "Write as a human freelancer would, with 1-2 subtle human touches per 100 words: "
        "occasional contractions, informal transitions, varied sentence length."
    ),
    IntensityLevel.HEAVY: (
        "Write conversationally, with 2-3 natural human elements per 100 words: frequent contractions, "
        "informal transitions, very short sentences mixed with longer ones, occasional fragments."
    ),
}


class Generator(Protocol):
    async def generate(self, original_input: str, intensity: IntensityLevel) -> str:
        """Return finalized text; raise GenerationError on failure."""
        ...


def build_system_prompt(intensity: IntensityLevel) -> str:
    style = _STYLE_INSTRUCTIONS[intensity]
    if not style:
        return BASE_SYSTEM_PROMPT
    avoid = ", ".join(f'"{w}"' for w in AI_TELLS)
    return f"{BASE_SYSTEM_PROMPT}\n\n{style}\nAvoid AI tells: {avoid}. Keep the tone professional."


class OpenAIProposalGenerator:
    """Reference generator calling a chat model with an intensity-specific style block."""

    def __init__(self, api_key: Optional[str], model: str = "gpt-4o-mini", client: Optional[AsyncOpenAI] = None):
        self.model = model
        self._api_key = api_key
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        # Created on first use so a missing key surfaces as a call failure
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def generate(self, original_input: str, intensity: IntensityLevel) -> str:
        try:
            response = await self._get_client().chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": build_system_prompt(intensity)},
                    {"role": "user", "content": f"Write a proposal for this job post:\n\n{original_input}"},
                ],
                temperature=0.8,
                max_tokens=1000,
            )
        except OpenAIError as e:
            logger.error(f"Proposal generation failed at intensity {intensity.value}: {e}")
            raise GenerationError(str(e), details={"intensity": intensity.value})

        if not response.choices or not response.choices[0].message.content:
            raise GenerationError("No content in generation response", details={"intensity": intensity.value})
        return response.choices[0].message.content.strip()
