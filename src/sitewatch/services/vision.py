"""Vision model analysis of page snapshots."""

import base64
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol

import openai
from openai import AsyncOpenAI

from sitewatch.errors import AnalysisError
from sitewatch.prompts import build_vision_prompt
from sitewatch.services.snapshot import Snapshot

logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"\{.*\}", re.DOTALL)


@dataclass
class AnalysisResult:
    """What the model said about the page.

    ``matched`` is None when the response could not be parsed into the
    expected shape; ``analysis`` then holds the raw text.
    """

    analysis: str
    matched: bool | None

    @property
    def degraded(self) -> bool:
        return self.matched is None


class Analyzer(Protocol):
    async def analyze(
        self,
        provider: str,
        api_key: str | None,
        snapshot: Snapshot,
        criteria: str,
    ) -> AnalysisResult: ...


def _clean_text(text: str) -> str:
    return text.strip().strip("\"'")


def _load_json_object(raw: str) -> dict[str, Any] | None:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        match = _JSON_BLOCK.search(raw)
        if not match:
            return None
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
    return data if isinstance(data, dict) else None


def parse_analysis(raw: str) -> AnalysisResult:
    """Parse a model response into an AnalysisResult.

    Accepts a bare JSON object or one embedded in surrounding prose. Anything
    else yields a degraded result carrying the raw text.
    """
    data = _load_json_object(raw)
    if data is not None:
        analysis = data.get("analysis")
        matched = data.get("criteriaMatched", data.get("matched"))
        if isinstance(analysis, str) and isinstance(matched, bool):
            return AnalysisResult(analysis=_clean_text(analysis), matched=matched)
        if isinstance(analysis, str) and analysis.strip():
            logger.warning("Model response has no boolean criteriaMatched field")
            return AnalysisResult(analysis=_clean_text(analysis), matched=None)

    logger.warning("Model response is not in the expected JSON format")
    return AnalysisResult(analysis=raw.strip(), matched=None)


class VisionAnalyzer:
    """Asks a vision model whether a snapshot satisfies the criteria.

    The ``openai`` provider calls the OpenAI API with the user's key. The
    ``llama`` provider talks to a local Ollama server through its
    OpenAI-compatible endpoint and needs no key.
    """

    def __init__(
        self,
        openai_model: str = "gpt-4o",
        ollama_base_url: str = "http://localhost:11434/v1",
        ollama_model: str = "llama3.2-vision",
        timeout: float = 120.0,
    ) -> None:
        self._openai_model = openai_model
        self._ollama_base_url = ollama_base_url
        self._ollama_model = ollama_model
        self._timeout = timeout

    def _client_for(self, provider: str, api_key: str | None) -> tuple[AsyncOpenAI, str]:
        if provider == "openai":
            return AsyncOpenAI(api_key=api_key, timeout=self._timeout), self._openai_model
        if provider == "llama":
            # Ollama ignores the key but the client requires one
            client = AsyncOpenAI(
                api_key="ollama", base_url=self._ollama_base_url, timeout=self._timeout
            )
            return client, self._ollama_model
        raise AnalysisError(f"Unknown vision provider: {provider}")

    async def analyze(
        self,
        provider: str,
        api_key: str | None,
        snapshot: Snapshot,
        criteria: str,
    ) -> AnalysisResult:
        """Analyze ``snapshot`` against ``criteria``.

        Raises:
            AnalysisError: If the provider call fails.
        """
        client, model = self._client_for(provider, api_key)
        image_url = "data:image/png;base64," + base64.b64encode(snapshot.image).decode()

        try:
            response = await client.chat.completions.create(
                model=model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": build_vision_prompt(criteria)},
                            {"type": "image_url", "image_url": {"url": image_url}},
                        ],
                    }
                ],
            )
        except openai.OpenAIError as e:
            raise AnalysisError(f"Failed to analyze with {provider}: {e}") from e
        finally:
            await client.close()

        if not response.choices:
            raise AnalysisError(f"Failed to analyze with {provider}: empty response")
        raw = response.choices[0].message.content or ""
        logger.debug(f"{provider} raw response: {raw}")
        return parse_analysis(raw)
