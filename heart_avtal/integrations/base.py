from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Callable, Optional, TypeVar

from heart_avtal.core.errors import CollaboratorFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="collaborator")


def call_collaborator(
    collaborator: str,
    operation: str,
    fn: Callable[..., T],
    *args: Any,
    timeout: Optional[float] = None,
    **kwargs: Any,
) -> T:
    """
    Run one external call with a deadline.

    Any exception (or the deadline passing) surfaces as CollaboratorFailure,
    so callers roll back and leave the contract untouched. A call that
    timed out keeps running in its worker; its result is discarded.
    """
    if timeout is None:
        try:
            return fn(*args, **kwargs)
        except CollaboratorFailure:
            raise
        except Exception as e:
            logger.warning(
                "collaborator call failed",
                extra={"collaborator": collaborator, "operation": operation, "error": str(e)},
            )
            raise CollaboratorFailure(collaborator, operation, str(e)) from e

    future = _executor.submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout as e:
        future.cancel()
        logger.warning(
            "collaborator call timed out",
            extra={"collaborator": collaborator, "operation": operation, "timeout": timeout},
        )
        raise CollaboratorFailure(
            collaborator, operation, f"no response within {timeout}s", timed_out=True
        ) from e
    except CollaboratorFailure:
        raise
    except Exception as e:
        logger.warning(
            "collaborator call failed",
            extra={"collaborator": collaborator, "operation": operation, "error": str(e)},
        )
        raise CollaboratorFailure(collaborator, operation, str(e)) from e
