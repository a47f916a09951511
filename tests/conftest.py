"""Shared fixtures: throwaway SQLite stores, policy tables, mock remote engine."""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

import httpx
import pytest

from learnflow.cache import MemoryResultCache
from learnflow.db import Base, create_db_engine, create_session_factory
from learnflow.dedup import DedupGuard
from learnflow.orchestrator import Orchestrator
from learnflow.settings import Settings
from learnflow.tasks import TaskKind, build_policies
from learnflow.webhook_client import WebhookClient

PRIMARY_HOST = "primary.test"
FALLBACK_HOST = "fallback.test"

_ALIAS_STEMS = {
    TaskKind.SCORE_ANALYSIS: "WEBHOOK_SCORE_ANALYSIS",
    TaskKind.CAREER_OPTIONS: "WEBHOOK_CAREER_OPTIONS",
    TaskKind.CAREER_DETAILS: "WEBHOOK_CAREER_DETAILS",
    TaskKind.LEARNING_PATH: "WEBHOOK_LEARNING_PATH",
    TaskKind.ASSESSMENT_QUESTIONS: "WEBHOOK_ASSESSMENT_QUESTIONS",
    TaskKind.CONTENT_TRANSCRIPT: "WEBHOOK_CONTENT_TRANSCRIPT",
    TaskKind.MODULE_ASSESSMENT: "WEBHOOK_MODULE_ASSESSMENT",
    TaskKind.CHAT_ANSWER: "WEBHOOK_CHAT_ANSWER",
}


def make_settings(with_fallback: bool = True, **overrides) -> Settings:
    values = {}
    for kind, stem in _ALIAS_STEMS.items():
        values[f"{stem}_URL"] = f"https://{PRIMARY_HOST}/webhook/{kind.value}"
        if with_fallback:
            values[f"{stem}_FALLBACK_URL"] = f"https://{FALLBACK_HOST}/webhook/{kind.value}"
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def session_factory(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'results.db'}")
    Base.metadata.create_all(bind=engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def guard(session_factory) -> DedupGuard:
    return DedupGuard(session_factory)


@pytest.fixture
def policies():
    return build_policies(make_settings())


Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def make_orchestrator(policies, guard):
    def _make(
        handler: Handler,
        *,
        cache: Optional[MemoryResultCache] = None,
        policy_table=None,
        guard_override: Optional[DedupGuard] = None,
    ) -> Tuple[Orchestrator, List[httpx.Request]]:
        calls: List[httpx.Request] = []

        def recording(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return handler(request)

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
        orchestrator = Orchestrator(
            policy_table or policies,
            WebhookClient(http_client),
            guard_override or guard,
            cache=cache if cache is not None else MemoryResultCache(),
        )
        return orchestrator, calls

    return _make
