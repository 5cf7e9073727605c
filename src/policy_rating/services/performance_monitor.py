# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Performance monitoring decorator for rating operations."""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from beartype import beartype

from ..core.config import get_settings
from ..core.logging_utils import get_logger

P = ParamSpec("P")
T = TypeVar("T")

logger = get_logger(__name__)


@beartype
def performance_monitor(
    operation_name: str,
    max_duration_ms: float | None = None,
    log_slow_operations: bool = True,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator to log slow or failing rating operations.

    Monitoring only observes: the wrapped function's return value and
    exceptions pass through unchanged.

    Args:
        operation_name: Name of the operation for monitoring
        max_duration_ms: Alert threshold in milliseconds; defaults to the
            ``slow_evaluation_ms`` setting
        log_slow_operations: Whether to log slow operations
    """

    @beartype
    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            start_time = time.perf_counter()

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration_ms = (time.perf_counter() - start_time) * 1000
                logger.error(
                    "%s failed after %.2fms: %s", operation_name, duration_ms, e
                )
                raise

            duration_ms = (time.perf_counter() - start_time) * 1000
            threshold = (
                max_duration_ms
                if max_duration_ms is not None
                else get_settings().slow_evaluation_ms
            )
            if log_slow_operations and duration_ms > threshold:
                logger.warning(
                    "Slow operation: %s took %.2fms (threshold: %.2fms)",
                    operation_name,
                    duration_ms,
                    threshold,
                )
            return result

        return wrapper

    return decorator
