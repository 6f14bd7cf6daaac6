import inspect
import traceback
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from llm_orchestrator.core.exceptions import OrchestratorError
from llm_orchestrator.utils.logging import get_logger

logger = get_logger("core.error_handler")


def handle_error(
    error: Exception | None = None,
    *,
    context: str | None = None,
    verbose: bool = False,
) -> None:
    """Report an error raised out of an entrypoint.

    Args:
        error: The exception instance to handle.
        context: Optional string describing where the error occurred.
        verbose: If True, log the full traceback at debug level.
    """
    ctx = f"[{context}]" if context else ""

    if error is None:
        logger.critical(f"{ctx} An unknown error occurred".strip())
        return

    if isinstance(error, OrchestratorError):
        # Known errors already carry a user-facing message
        logger.error(f"{ctx} {error}".strip())
    else:
        error_msg = str(error) or "No error message provided"
        logger.critical(
            f"{ctx} Unexpected error: {type(error).__name__}: {error_msg}".strip()
        )

    if verbose:
        trace = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
        logger.debug(f"Traceback:\n{trace}")


T = TypeVar("T")
P = ParamSpec("P")


def safe_entrypoint(context: str) -> Callable[[Callable[P, T]], Callable[P, T | None]]:
    """Decorator wrapping CLI entrypoints with unified error reporting.

    typer/click ``Exit`` exceptions pass through untouched; anything else is
    reported through :func:`handle_error` and the wrapper returns ``None``.
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T | None]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T | None:
            verbose = bool(kwargs.get("verbose", False))
            try:
                return func(*args, **kwargs)
            except Exception as err:
                if "Exit" in err.__class__.__name__:
                    raise
                handle_error(err, context=context, verbose=verbose)
                return None

        wrapper.__signature__ = inspect.signature(func)  # type: ignore[attr-defined]
        return wrapper

    return decorator
