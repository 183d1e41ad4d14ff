"""Tests for Prometheus metrics definitions."""

from prometheus_client import REGISTRY

from conductor.observability.metrics import (
    AGENT_EXECUTIONS,
    INTENT_VERDICTS,
    PROVIDER_ERRORS,
    TOOLS_DROPPED,
)


def _value(name: str, labels: dict[str, str]) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestMetrics:
    """Counters are registered and labelled as documented."""

    def test_agent_executions_counter(self) -> None:
        before = _value("conductor_agent_executions_total", {"outcome": "buffered"})
        AGENT_EXECUTIONS.labels(outcome="buffered").inc()
        assert _value("conductor_agent_executions_total", {"outcome": "buffered"}) == before + 1

    def test_intent_verdicts_counter(self) -> None:
        labels = {"decision": "RUN", "degraded": "true"}
        before = _value("conductor_intent_verdicts_total", labels)
        INTENT_VERDICTS.labels(**labels).inc()
        assert _value("conductor_intent_verdicts_total", labels) == before + 1

    def test_tools_dropped_counter(self) -> None:
        labels = {"reason": "server_unavailable"}
        before = _value("conductor_tools_dropped_total", labels)
        TOOLS_DROPPED.labels(**labels).inc(2)
        assert _value("conductor_tools_dropped_total", labels) == before + 2

    def test_provider_errors_counter(self) -> None:
        labels = {"provider": "openai", "error_type": "PROVIDER_MODEL_ERROR"}
        before = _value("conductor_provider_errors_total", labels)
        PROVIDER_ERRORS.labels(**labels).inc()
        assert _value("conductor_provider_errors_total", labels) == before + 1
