"""Gemini wrapper: the single call site for the generative model."""

import asyncio
import time
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

import config
from coach.errors import ConfigurationError, TransportError
from coach.logger import get_logger, preview
from coach.models import PromptSpec


class GenerationTimeoutError(TransportError):
    """Raised when the model does not answer within the timeout."""

    pass


class EmptyResponseError(TransportError):
    """Raised when the model returns no text (e.g. a blocked prompt)."""

    pass


class GeminiInvoker:
    """Sends a PromptSpec to Gemini and returns the raw response text.

    Errors are mapped to TransportError and never retried here; whether to try
    again is the caller's decision.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = config.GEMINI_MODEL,
        timeout: float = config.GEMINI_TIMEOUT,
        client: Any = None,
    ):
        """
        Initialize the invoker.

        Args:
            api_key: Gemini API key. Defaults to GEMINI_API_KEY from the environment.
            model: Model identifier shared by every task
            timeout: Seconds to wait for one generation call
            client: Pre-built ``genai.Client`` (mainly for tests)

        Raises:
            ConfigurationError: If no client is given and no API key is configured
        """
        if client is None:
            api_key = api_key or config.GEMINI_API_KEY
            if not api_key:
                raise ConfigurationError("GEMINI_API_KEY is not set")
            client = genai.Client(api_key=api_key)

        self._client = client
        self.model = model
        self.timeout = timeout

    @staticmethod
    def build_contents(spec: PromptSpec) -> list:
        """Text-only, or text followed by the inline audio part."""
        contents: list = [spec.text]
        if spec.attachment is not None:
            contents.append(
                types.Part.from_bytes(
                    data=spec.attachment.data,
                    mime_type=spec.attachment.mime_type,
                )
            )
        return contents

    async def invoke(self, spec: PromptSpec) -> str:
        """
        Generate content for a prompt.

        Args:
            spec: Prompt text and optional audio

        Returns:
            Raw response text, possibly wrapped in code fences

        Raises:
            GenerationTimeoutError: If the call exceeds the timeout
            EmptyResponseError: If the response carries no text
            TransportError: On any provider or network error
        """
        logger = get_logger()
        mode = "text+audio" if spec.attachment is not None else "text"
        logger.debug(f"Gemini request ({self.model}, {mode}):\n{spec.text}")

        started = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self.model,
                    contents=self.build_contents(spec),
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise GenerationTimeoutError(f"Gemini generation timed out after {self.timeout}s")
        except genai_errors.APIError as e:
            raise TransportError(f"Gemini API error: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Gemini network error: {e}") from e

        elapsed_ms = (time.perf_counter() - started) * 1000
        text = response.text
        if not text:
            raise EmptyResponseError("Gemini returned an empty response")

        logger.debug(f"Gemini response in {elapsed_ms:.0f}ms: {preview(text)}")
        return text
