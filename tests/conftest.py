"""Shared fakes: a controllable clock, a recording sleep and scripted adapters."""
import pytest

from ai.adapters import AdapterReply, Backend, Orchestrator, OrchestratorConfig, ProviderRegistry


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays and returns at once."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class ScriptedAdapter:
    """Adapter replaying a script of outcomes; the last outcome repeats.

    An outcome is either reply text, an AdapterReply, or an exception to raise.
    """

    def __init__(self, *outcomes, clock=None, latency: float = 0.0):
        self.outcomes = list(outcomes) or ["ok"]
        self.clock = clock
        self.latency = latency
        self.calls = []

    async def __call__(self, request):
        self.calls.append(request)
        if self.clock is not None and self.latency:
            self.clock.advance(self.latency)
        outcome = self.outcomes[min(len(self.calls), len(self.outcomes)) - 1]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, AdapterReply):
            return outcome
        return AdapterReply(content=outcome)

    @property
    def call_count(self) -> int:
        return len(self.calls)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def adapters(clock):
    """One healthy scripted adapter per backend."""
    return {b: ScriptedAdapter(f"answer from {b.value}", clock=clock) for b in Backend}


@pytest.fixture
def make_orchestrator(clock, sleep, adapters):
    """Factory for isolated orchestrators wired to the fakes."""

    def _make(**config_kwargs) -> Orchestrator:
        config = OrchestratorConfig(**config_kwargs)
        return Orchestrator(config, ProviderRegistry(adapters), clock=clock, sleep=sleep)

    return _make
