import asyncio
from types import SimpleNamespace

import httpx
import pytest
from google.genai import types

from coach.errors import ConfigurationError, TransportError
from coach.gemini_client import EmptyResponseError, GeminiInvoker, GenerationTimeoutError
from coach.models import AudioAttachment, PromptSpec

pytestmark = pytest.mark.unit


class FakeModels:
    def __init__(self, text="{}", delay=0.0, error=None):
        self.text = text
        self.delay = delay
        self.error = error
        self.calls = []

    async def generate_content(self, model, contents):
        self.calls.append({"model": model, "contents": contents})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


def fake_client(models: FakeModels):
    return SimpleNamespace(aio=SimpleNamespace(models=models))


class TestGeminiInvoker:
    def test_requires_api_key(self):
        """Should raise a configuration error when no key is set."""
        with pytest.raises(ConfigurationError):
            GeminiInvoker()

    @pytest.mark.asyncio
    async def test_text_prompt(self):
        """Should send the prompt text to the configured model."""
        models = FakeModels(text='```json\n{"ok": true}\n```')
        invoker = GeminiInvoker(client=fake_client(models), model="gemini-test")

        raw = await invoker.invoke(PromptSpec(text="Say hi"))

        assert raw == '```json\n{"ok": true}\n```'
        assert models.calls == [{"model": "gemini-test", "contents": ["Say hi"]}]

    @pytest.mark.asyncio
    async def test_audio_prompt(self):
        """Should send the recording as an inline part after the text."""
        models = FakeModels()
        invoker = GeminiInvoker(client=fake_client(models))
        audio = AudioAttachment(data=b"RIFF", mime_type="audio/wav")

        await invoker.invoke(PromptSpec(text="Score this", attachment=audio))

        contents = models.calls[0]["contents"]
        assert contents[0] == "Score this"
        assert isinstance(contents[1], types.Part)
        assert contents[1].inline_data.mime_type == "audio/wav"
        assert contents[1].inline_data.data == b"RIFF"

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Should raise GenerationTimeoutError when the call is too slow."""
        invoker = GeminiInvoker(client=fake_client(FakeModels(delay=1)), timeout=0.01)

        with pytest.raises(GenerationTimeoutError):
            await invoker.invoke(PromptSpec(text="slow"))

    @pytest.mark.asyncio
    async def test_empty_response(self):
        """Should treat a response without text as a transport failure."""
        invoker = GeminiInvoker(client=fake_client(FakeModels(text=None)))

        with pytest.raises(EmptyResponseError):
            await invoker.invoke(PromptSpec(text="blocked"))

    @pytest.mark.asyncio
    async def test_network_error(self):
        """Should map network errors to TransportError."""
        error = httpx.ConnectError("connection refused")
        invoker = GeminiInvoker(client=fake_client(FakeModels(error=error)))

        with pytest.raises(TransportError, match="network"):
            await invoker.invoke(PromptSpec(text="hi"))
