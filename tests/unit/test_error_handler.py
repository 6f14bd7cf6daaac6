import io
import logging

import pytest
import typer

from llm_orchestrator.core.error_handler import handle_error, safe_entrypoint
from llm_orchestrator.core.exceptions import CLIError
from llm_orchestrator.utils.logging import setup_logging


def test_handle_error_logs_known_orchestrator_error_as_error():
    buf = io.StringIO()
    setup_logging(level=logging.DEBUG, stream=buf)

    handle_error(CLIError("invalid flag"))

    out = buf.getvalue()
    assert "[cli] invalid flag" in out
    assert "🔥" in out


def test_handle_error_logs_unknown_exception_as_critical():
    buf = io.StringIO()
    setup_logging(level=logging.DEBUG, stream=buf)

    handle_error(ValueError("boom"))

    out = buf.getvalue()
    assert "💀" in out
    assert "Unexpected error: ValueError: boom" in out


def test_handle_error_verbose_includes_traceback_in_debug():
    buf = io.StringIO()
    setup_logging(level=logging.DEBUG, stream=buf)

    try:
        raise RuntimeError("trace-me")
    except RuntimeError as e:
        handle_error(e, context="unit", verbose=True)

    out = buf.getvalue()
    assert "Traceback:\n" in out
    assert "[unit] Unexpected error: RuntimeError: trace-me" in out


def test_safe_entrypoint_returns_function_result_and_passes_kwargs():
    buf = io.StringIO()
    setup_logging(level=logging.DEBUG, stream=buf)

    @safe_entrypoint("unit.ok")
    def f(x: int, *, verbose: bool = False) -> int:
        return x + 1

    assert f(41, verbose=False) == 42
    assert "ERROR" not in buf.getvalue()
    assert "CRITICAL" not in buf.getvalue()


def test_safe_entrypoint_catches_exception_logs_and_returns_none():
    buf = io.StringIO()
    setup_logging(level=logging.DEBUG, stream=buf)

    @safe_entrypoint("unit.fail")
    def g(*, verbose: bool = True):
        raise CLIError("bad input")

    assert g(verbose=True) is None
    assert "[unit.fail] [cli] bad input" in buf.getvalue()


def test_safe_entrypoint_lets_exit_through():
    @safe_entrypoint("unit.exit")
    def h():
        raise typer.Exit(code=3)

    with pytest.raises(typer.Exit):
        h()
