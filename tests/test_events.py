"""Integration tests for the EventBus."""

from __future__ import annotations

from typing import Any

import pytest

from dmi_toolbox.core.events import EventBus


class TestEventBusSubscribeEmit:
    """Tests for basic subscribe/emit behaviour."""

    def test_handler_receives_emitted_kwargs(self) -> None:
        """A subscribed handler receives the whole keyword payload."""
        bus = EventBus()
        received: list[dict[str, Any]] = []
        bus.subscribe("progress", lambda **kw: received.append(kw))

        bus.emit("progress", tool="alpha_mask", current=1, total=2, message="Masked 'idle' (1/2)")

        assert received == [{"tool": "alpha_mask", "current": 1, "total": 2, "message": "Masked 'idle' (1/2)"}]

    def test_handlers_called_in_subscription_order(self) -> None:
        """All handlers of an event run, first subscribed first."""
        bus = EventBus()
        calls: list[str] = []
        bus.subscribe("completed", lambda **_kw: calls.append("cli"))
        bus.subscribe("completed", lambda **_kw: calls.append("log"))

        bus.emit("completed", tool="alpha_mask", message="done")

        assert calls == ["cli", "log"]

    def test_emit_without_subscribers_is_noop(self) -> None:
        """Emitting an event with no subscribers does not raise."""
        EventBus().emit("log", tool="alpha_mask", message="nobody listens")

    def test_events_are_independent(self) -> None:
        """A ``log`` handler is not called for ``progress``."""
        bus = EventBus()
        received: list[str] = []
        bus.subscribe("log", lambda **_kw: received.append("log"))

        bus.emit("progress", current=1)

        assert received == []


class TestEventBusErrorHandling:
    """Tests for handler error isolation."""

    def test_failing_handler_does_not_break_others(self, caplog: pytest.LogCaptureFixture) -> None:
        """A handler that raises does not prevent subsequent handlers."""
        bus = EventBus()
        results: list[str] = []

        def bad_handler(**_kw: Any) -> None:
            msg = "boom"
            raise RuntimeError(msg)

        bus.subscribe("completed", bad_handler)
        bus.subscribe("completed", lambda **_kw: results.append("ok"))

        bus.emit("completed")

        assert results == ["ok"]
        assert "boom" in caplog.text
