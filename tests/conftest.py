"""Shared fixtures: a scripted invoker, seeded randomness and isolated credentials."""

import random

import pytest

import config
from coach.orchestrators import CoachContext

CREDENTIALS = (
    "GEMINI_API_KEY",
    "NOTION_KEY",
    "NOTION_ROOT_PAGE_ID",
    "GOOGLE_SHEETS_API_KEY",
    "GOOGLE_SHEETS_ID",
)


class FakeInvoker:
    """Replays canned model responses in order and records every prompt it was given.

    A response that is an exception instance is raised instead of returned.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts = []

    async def invoke(self, spec):
        self.prompts.append(spec)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture(autouse=True)
def isolate_credentials(monkeypatch):
    """Tests only see credentials they set explicitly."""
    for name in CREDENTIALS:
        monkeypatch.setattr(config, name, None)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def make_ctx(rng):
    """Build a CoachContext whose invoker replays the given responses."""

    def _make(*responses):
        return CoachContext(invoker=FakeInvoker(*responses), rng=rng)

    return _make
