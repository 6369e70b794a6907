from __future__ import annotations

import logging

from devkit.observability import OnceLogger


def test_once_logger_emits_once_per_key(caplog) -> None:
    logger = logging.getLogger("devkit.tests.once")
    once = OnceLogger(logger)

    with caplog.at_level(logging.INFO, logger="devkit.tests.once"):
        assert once.log("speed:0.9", "column_hidden", column="speed") is True
        assert once.log("speed:0.9", "column_hidden", column="speed") is False
        assert once.log("odometer:0.9", "column_hidden", column="odometer") is True

    assert [record.column for record in caplog.records] == ["speed", "odometer"]


def test_once_logger_state_is_per_instance() -> None:
    logger = logging.getLogger("devkit.tests.once")
    first = OnceLogger(logger)
    second = OnceLogger(logger)

    assert first.log("k", "message") is True
    assert second.log("k", "message") is True
    assert first.log("k", "message") is False


def test_configure_otel_installs_service_resource(monkeypatch) -> None:
    from opentelemetry import trace

    from devkit import observability

    installed = []
    monkeypatch.setattr(observability, "_configured", False)
    monkeypatch.setattr(trace, "set_tracer_provider", installed.append)

    observability.configure_otel("geocode-worker")
    observability.configure_otel("geocode-worker")

    assert len(installed) == 1
    assert installed[0].resource.attributes["service.name"] == "geocode-worker"
