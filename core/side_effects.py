"""
Best-effort side effects.

Audit entries, notifications and emails triggered by a request must never
fail that request. ``fire_and_log`` runs such an action, records any
failure to the log and always hands control back to the caller.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class SideEffectFailure(Exception):
    """A best-effort side effect failed. Logged, never propagated."""

    def __init__(self, name: str, cause: BaseException):
        self.name = name
        self.cause = cause
        super().__init__(f"Side effect {name} failed: {cause}")


@dataclass
class SideEffectOutcome:
    """Result of a fire-and-log call."""

    name: str
    ok: bool
    result: Any = None
    failure: Optional[SideEffectFailure] = None


async def fire_and_log(
    name: str,
    action: Callable[[], Awaitable[Any]],
    **context: Any,
) -> SideEffectOutcome:
    """
    Run a side-effecting coroutine and swallow its errors.

    Args:
        name: Short name of the side effect, used in logs
        action: Zero-argument callable returning the coroutine to run
        **context: Extra fields attached to the failure log record

    Returns:
        SideEffectOutcome; ``ok`` is False if the action raised
    """
    try:
        result = await action()
    except Exception as e:
        failure = SideEffectFailure(name, e)
        logger.error(
            str(failure),
            extra={
                "side_effect": name,
                "error_type": type(e).__name__,
                **{k: str(v) for k, v in context.items()},
            },
            exc_info=True,
        )
        return SideEffectOutcome(name=name, ok=False, failure=failure)
    return SideEffectOutcome(name=name, ok=True, result=result)
