"""
Shared fixtures: a throwaway SQLite database per test, a scripted SOAP
processor and a sleep function that only records the requested delays.
"""
from dataclasses import dataclass
from typing import List
import uuid

import pytest

from evanote.database import create_session_factory, init_db
from evanote.soap_processor.base import (
    BaseSOAPProcessor,
    GenerationSuccess,
    ProviderResponse,
    TokenUsage,
)
from evanote.store import PatientStore, ProfileStore, VisitStore

VALID_SOAP = {
    "subjective": "Schmerzen im rechten Knie seit zwei Wochen, NRS 6/10.",
    "objective": "Flexion 110°, Extension 0°, Lachman negativ.",
    "assessment": "Verdacht auf Reizung des medialen Meniskus, Irritabilität mittel.",
    "plan": "Manuelle Therapie 2x/Woche, HEP Quadrizeps, Kontrolle in 2 Wochen.",
}

TRANSCRIPT = "Ähm der Patient berichtet über Schmerzen im rechten Knie seit zwei Wochen."


class ScriptedProcessor(BaseSOAPProcessor):
    """Answers with the scripted responses in order; the last one repeats."""

    def __init__(self, *responses):
        self.responses = list(responses) or [success()]
        self.calls = []

    @property
    def model_id(self) -> str:
        return "azure:gpt-4o-mini-eu"

    async def call_provider(self, system_prompt: str, user_prompt: str, max_tokens: int) -> ProviderResponse:
        self.calls.append((system_prompt, user_prompt, max_tokens))
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, BaseException):
            raise response
        return response


def success(payload=None, prompt_tokens=120, completion_tokens=80) -> GenerationSuccess:
    return GenerationSuccess(
        payload=dict(VALID_SOAP) if payload is None else payload,
        usage=TokenUsage(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float):
        self.delays.append(seconds)


@dataclass
class VisitContext:
    owner_id: uuid.UUID
    other_owner_id: uuid.UUID
    patient_id: uuid.UUID
    visit_id: uuid.UUID


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'evanote-test.db'}"


@pytest.fixture
async def session_factory(database_url):
    engine, factory = create_session_factory(database_url)
    await init_db(engine)
    yield factory
    await engine.dispose()


@pytest.fixture
async def visit(session_factory) -> VisitContext:
    """A practitioner with one patient and one draft visit, plus a second practitioner."""
    profiles = ProfileStore(session_factory)
    owner = await profiles.create("user_owner", "Dr. Muster")
    other = await profiles.create("user_other", "Dr. Fremd")
    patient = await PatientStore(session_factory).create(owner.id, "Anna", "Beispiel")
    created = await VisitStore(session_factory).create(patient.id, owner.id, "de")
    return VisitContext(
        owner_id=owner.id,
        other_owner_id=other.id,
        patient_id=patient.id,
        visit_id=created.id,
    )


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
