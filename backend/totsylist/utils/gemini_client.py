"""Gemini text-generation client.

One client per process, built from settings at startup. The API key and model
identifier are fixed at construction; callers only pass prompts. Every failure
of the outbound call surfaces as ProviderError so the route can fall back.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
import structlog
from google import genai
from google.genai import errors, types

from totsylist.errors import ConfigurationError, ProviderError

if TYPE_CHECKING:
    from totsylist.config import Settings

logger = structlog.get_logger("gemini")

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_API_VERSION = "v1"
DEFAULT_TIMEOUT_SECONDS = 120.0


class GenerationClient:
    """Send a prompt to Gemini and return the reply text."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        *,
        api_version: str = DEFAULT_API_VERSION,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client: genai.Client | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("GEMINI_API_KEY environment variable is not set")
        if not model:
            raise ConfigurationError("GEMINI_MODEL must not be empty")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._client = client or genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(api_version=api_version),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> GenerationClient:
        return cls(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            api_version=settings.gemini_api_version,
            timeout_seconds=settings.gemini_timeout_seconds,
        )

    async def generate(self, prompt: str) -> str:
        """Return the text of the first candidate for ``prompt``.

        Raises ProviderError on transport failure, timeout, a non-success
        status from Gemini, or a reply without text.
        """
        logger.info("gemini_generate_start", model=self.model, prompt_chars=len(prompt))

        try:
            # Sync SDK call in a worker thread so the event loop stays free
            async with asyncio.timeout(self.timeout_seconds):
                response = await asyncio.to_thread(
                    self._client.models.generate_content,
                    model=self.model,
                    contents=prompt,
                )
        except errors.APIError as exc:
            logger.error(
                "gemini_api_error",
                model=self.model,
                status=exc.code,
                provider_status=exc.status,
            )
            raise ProviderError(
                f"Gemini API responded with {exc.code}: {exc.message or exc.status or 'unknown error'}",
                provider_status=exc.code,
            ) from exc
        except TimeoutError as exc:
            logger.error("gemini_timeout", model=self.model, timeout_seconds=self.timeout_seconds)
            raise ProviderError(
                f"Gemini API timed out after {self.timeout_seconds:g}s",
                retryable=True,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("gemini_network_error", model=self.model, error_type=type(exc).__name__)
            raise ProviderError(
                f"Network error calling Gemini API: {type(exc).__name__}: {exc}",
                retryable=True,
            ) from exc
        except Exception as exc:
            error_type = type(exc).__name__
            logger.error("gemini_unexpected_error", model=self.model, error_type=error_type)
            raise ProviderError(
                f"Generation failed: {error_type}: {str(exc)[:200]}",
                retryable=True,
            ) from exc

        text = extract_text(response)
        if not text.strip():
            logger.warning("gemini_empty_response", model=self.model)
            raise ProviderError("No response from Gemini API", retryable=True)

        logger.info("gemini_generate_complete", model=self.model, response_chars=len(text))
        return text


def extract_text(response: types.GenerateContentResponse) -> str:
    """Join the text parts of the first candidate; empty string if there are none."""
    if not response.candidates:
        return ""
    content = response.candidates[0].content
    if content is None or content.parts is None:
        return ""
    texts = []
    for part in content.parts:
        if part.text is not None:
            texts.append(part.text)
    return "".join(texts)
