"""
Pytest configuration and shared fixtures.
"""

import asyncio
import threading
from typing import Any, Callable, Optional

import pytest
from sqlalchemy.orm import sessionmaker

from scriptforge.agents.tasks import AGENT_TASKS
from scriptforge.constants import (
    CINEMATIC_TEASER,
    CONTINUITY_VALIDATOR,
    KNOWLEDGE_GRAPH,
    STORY_INTELLIGENCE,
)
from scriptforge.db.session import init_db, make_engine, make_session_factory
from scriptforge.execution.executor import AgentExecutor, build_default_executor
from scriptforge.execution.retry import RetryPolicy
from scriptforge.services.generation import GenerationOptions
from scriptforge.services.version_store import InMemoryVersionStore, SqlVersionStore


# ============================================
# Sample agent results
# ============================================

def sample_result(agent_type: str) -> dict:
    """A schema-valid result for ``agent_type`` that is clearly not the fallback."""
    result = AGENT_TASKS[agent_type].fallback_result()
    if agent_type == STORY_INTELLIGENCE:
        result.update(
            genre="heist thriller",
            themes=["loyalty", "greed", "trust"],
            main_conflict="A crew must rob a casino while one member plans a double-cross",
            setting="Las Vegas",
            time_period="present day",
        )
    elif agent_type == KNOWLEDGE_GRAPH:
        result["characters"] = [{
            "id": "char-danny",
            "name": "Danny",
            "role": "protagonist",
            "description": "Crew leader",
        }]
    elif agent_type == CONTINUITY_VALIDATOR:
        result.update(continuity_score=87, warnings=[], recommendations=["Tighten act two"])
    elif agent_type == CINEMATIC_TEASER:
        result["tagline"] = "Trust no one. Steal everything."
        result["hooks"] = ["One vault", "Seven thieves"]
    return result


def schema_agent_type(schema: Any) -> Optional[str]:
    for agent_type, task in AGENT_TASKS.items():
        if task.schema is schema:
            return agent_type
    return None


# ============================================
# Fake generation backend
# ============================================

class FakeBackend:
    """
    Scripted ``GenerationBackend``.

    ``structured`` / ``text`` are handlers ``(prompt, schema, options) -> value``
    that may raise. By default structured calls return ``sample_result`` for
    the requested schema and text calls return "OK".
    """

    def __init__(
        self,
        structured: Optional[Callable[..., Any]] = None,
        text: Optional[Callable[..., Any]] = None,
    ):
        self.structured = structured or (lambda prompt, schema, options: sample_result(schema_agent_type(schema)))
        self.text = text or (lambda prompt, schema, options: "OK")
        self.calls: list[dict] = []

    async def generate_structured(self, prompt, schema, options):
        self.calls.append({"kind": "structured", "prompt": prompt, "schema": schema, "options": options})
        return self.structured(prompt, schema, options)

    async def generate_text(self, prompt, options):
        self.calls.append({"kind": "text", "prompt": prompt, "schema": None, "options": options})
        return self.text(prompt, None, options)

    def calls_of(self, kind: str) -> list[dict]:
        return [c for c in self.calls if c["kind"] == kind]


class BlockingBackend(FakeBackend):
    """Structured calls wait on ``release`` so a node can be held in 'running'."""

    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def generate_structured(self, prompt, schema, options):
        self.calls.append({"kind": "structured", "prompt": prompt, "schema": schema, "options": options})
        self.started.set()
        await self.release.wait()
        return sample_result(schema_agent_type(schema))


class FailingStore(InMemoryVersionStore):
    """Version store whose first ``fail_times`` writes raise."""

    def __init__(self, fail_times: int = 1):
        super().__init__()
        self.fail_times = fail_times
        self.write_threads: list[int] = []

    def create_version(self, workflow_id, content, message, stats=None, tags=None):
        self.write_threads.append(threading.get_ident())
        if self.fail_times > 0:
            self.fail_times -= 1
            raise RuntimeError("db write failed")
        return super().create_version(workflow_id, content, message, stats=stats, tags=tags)


def fail_with(error: BaseException) -> Callable[..., Any]:
    def handler(prompt, schema, options):
        raise error
    return handler


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def fast_options():
    return GenerationOptions(max_retries=3, timeout_seconds=1.0, temperature=0.0, max_tokens=256)


@pytest.fixture
def fast_policy():
    return RetryPolicy(rate_limit_cooldown_ms=5000, backoff_base_ms=1000, backoff_cap_ms=10000, timeout_attempt_cap=2)


@pytest.fixture
def sleeps():
    """Seconds passed to the no-op sleep, in call order."""
    return []


@pytest.fixture
def no_sleep(sleeps):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)
    return _sleep


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def make_executor(fast_options, fast_policy, no_sleep):
    def _make(backend: FakeBackend, fallback_enabled: bool = True) -> AgentExecutor:
        return build_default_executor(
            backend,
            options=fast_options,
            policy=fast_policy,
            fallback_enabled=fallback_enabled,
            sleep=no_sleep,
        )
    return _make


@pytest.fixture
def memory_store():
    return InMemoryVersionStore()


@pytest.fixture
def sql_session_factory() -> sessionmaker:
    engine = make_engine("sqlite://")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def sql_store(sql_session_factory):
    return SqlVersionStore(sql_session_factory)
