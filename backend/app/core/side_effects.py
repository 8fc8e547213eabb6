"""Best-effort side effects.

Some work must never influence what the caller sees: a failed magic link
email must produce exactly the same response as a delivered one. Such work
runs through run_best_effort(), which always returns an EffectOutcome and
never raises. Failures end up in the log and nowhere else.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import ParamSpec

logger = logging.getLogger(__name__)

P = ParamSpec("P")


@dataclass(frozen=True)
class EffectOutcome:
    """Result of a best-effort side effect.

    Attributes:
        name: Label used in logs (e.g., "magic_link_email").
        succeeded: Whether the effect completed without raising.
        error_type: Exception class name when it failed.
    """

    name: str
    succeeded: bool
    error_type: str | None = None


async def run_best_effort(
    name: str,
    func: Callable[P, Awaitable[object]],
    *args: P.args,
    **kwargs: P.kwargs,
) -> EffectOutcome:
    """Await ``func`` and report how it went, swallowing any exception.

    Args:
        name: Label for logs.
        func: Coroutine function performing the side effect.
        *args: Positional arguments for ``func``.
        **kwargs: Keyword arguments for ``func``.

    Returns:
        EffectOutcome describing success or failure.
    """
    try:
        await func(*args, **kwargs)
    except Exception as exc:
        error_type = type(exc).__name__
        logger.warning(
            "Best-effort side effect failed",
            extra={"effect": name, "error_type": error_type},
            exc_info=True,
        )
        return EffectOutcome(name=name, succeeded=False, error_type=error_type)
    return EffectOutcome(name=name, succeeded=True)
