"""
Tests for the component error handler.
"""

import pytest

from companion_framework.utils.error_handling import ComponentError, ErrorHandler, ErrorSeverity


def error(component="store", severity=ErrorSeverity.RECOVERABLE, message="down"):
    return ComponentError(component=component, severity=severity, message=message)


class TestErrorHandler:

    @pytest.mark.asyncio
    async def test_recovery_strategy_runs(self):
        handler = ErrorHandler()
        recovered = []

        async def recover(err):
            recovered.append(err.message)

        handler.register_recovery("store", recover)

        assert await handler.handle_error(error()) is True
        assert recovered == ["down"]

    @pytest.mark.asyncio
    async def test_missing_or_failing_strategy(self):
        handler = ErrorHandler()
        assert await handler.handle_error(error()) is False

        async def recover(err):
            raise RuntimeError("still down")

        handler.register_recovery("store", recover)
        assert await handler.handle_error(error()) is False

    @pytest.mark.asyncio
    async def test_warning_handled_and_fatal_not(self):
        handler = ErrorHandler()
        assert await handler.handle_error(error("completion", ErrorSeverity.WARNING)) is True
        assert await handler.handle_error(error("coordinator", ErrorSeverity.FATAL)) is False

        summary = handler.get_error_summary()
        assert summary['by_severity'] == {'warning': 1, 'fatal': 1}
        assert summary['by_component'] == {'completion': 1, 'coordinator': 1}

    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        handler = ErrorHandler(max_history=3)
        for index in range(5):
            await handler.handle_error(error("completion", ErrorSeverity.WARNING, f"e{index}"))

        assert [e.message for e in handler.get_error_history()] == ["e2", "e3", "e4"]
        assert handler.get_error_history("store") == []

    def test_traceback_captured(self):
        try:
            raise ValueError("boom")
        except ValueError as e:
            err = ComponentError(component="coordinator", severity=ErrorSeverity.FATAL,
                                 message="cycle failed", exception=e)
        assert "ValueError: boom" in err.traceback_str
