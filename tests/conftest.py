"""Shared fixtures: scripted generative API, recording sleep, in-memory store."""

import json
from datetime import date

import httpx
import pytest

from app.config import AppConfig, StoreConfig
from app.services.catalog import DAYS_OF_WEEK, SUBJECTS
from app.services.gemini_client import GeminiClient
from app.services.plan_store import InMemoryPlanStore, StoreError

MONDAY = date(2025, 10, 20)
SATURDAY = date(2025, 10, 25)


def gemini_reply(payload, status_code: int = 200) -> httpx.Response:
    body = {"candidates": [{"content": {"parts": [{"text": json.dumps(payload, ensure_ascii=False)}]}}]}
    return httpx.Response(status_code, json=body)


def weekly_plan_payload(days=None, day_suffix: str = "-feira"):
    days = days if days is not None else DAYS_OF_WEEK
    entries = []
    for day in days:
        label = day if day == "Sábado" else f"{day}{day_suffix}"
        entries.append(
            {
                "day": label,
                "schedule": [
                    {
                        "subject": "Matemática",
                        "mainTopic": f"Funções ({day})",
                        "subTopics": ["Afim", "Quadrática"],
                        "description": "Resolver exercícios",
                    }
                ],
            }
        )
    return {"weeklyPlan": entries}


SEMINAR_PAYLOAD = {
    "title": "Seminário de Funções",
    "mainTopic": "Funções",
    "subTopics": [
        {"name": "Função afim", "description": "Gráfico e coeficientes"},
        {"name": "Função quadrática", "description": "Vértice e raízes"},
    ],
    "analogy": "Uma função é como uma máquina de sucos.",
}


class ScriptedGemini:
    """MockTransport handler replaying queued answers; the last one repeats."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, Exception):
            raise answer
        # fresh copy, a Response instance cannot be sent twice
        return httpx.Response(answer.status_code, headers=answer.headers, content=answer.content)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def prompt(self, index: int = -1) -> str:
        body = json.loads(self.requests[index].content)
        return body["contents"][0]["parts"][0]["text"]


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class FlakyStore(InMemoryPlanStore):
    def __init__(self):
        super().__init__()
        self.fail_reads = False
        self.fail_writes = False

    def read(self, key):
        if self.fail_reads:
            raise StoreError("read failed")
        return super().read(key)

    def write_full(self, key, document):
        if self.fail_writes:
            raise StoreError("write failed")
        super().write_full(key, document)

    def write_merge(self, key, fields):
        if self.fail_writes:
            raise StoreError("write failed")
        super().write_merge(key, fields)


@pytest.fixture
def config():
    return AppConfig(
        api_key="test-key",
        store_config=StoreConfig(backend="memory"),
        identity_mode="local",
    )


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def make_client(config):
    def _make(handler) -> GeminiClient:
        return GeminiClient(config, transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def difficulties():
    return {subject: 3 for subject in SUBJECTS}
