"""
Deadlines for multi-step operations that call external systems.
"""
import time
from typing import Callable, Optional, Type

from ..exceptions import OperationTimeoutError


class Deadline:
    """
    Overall time budget for one operation.

    Individual external calls are bounded by driver timeouts; the deadline is
    checked between steps so a slow sequence fails fast instead of holding a
    request slot.
    """

    def __init__(
        self,
        seconds: float,
        clock: Callable[[], float] = time.monotonic,
        error_class: Type[OperationTimeoutError] = OperationTimeoutError,
    ):
        self._clock = clock
        self._expires_at = clock() + seconds
        self._error_class = error_class

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self._clock() >= self._expires_at

    def check(self, operation: str, cause: Optional[BaseException] = None) -> None:
        """
        Raise the configured timeout error if the budget is spent.

        Args:
            operation: Name of the step about to run (or that just failed)
            cause: Failure to chain, when the step itself raised
        """
        if self.expired:
            raise self._error_class(operation) from cause
