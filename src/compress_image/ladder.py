"""First-fit search over an ordered ladder of encoder parameters.

Quality → size is non-linear, so instead of a binary search both pipelines
walk a short fixed ladder and stop at the first entry whose output fits.
A higher-quality entry that already fits is preferred over a smaller one
further down.  When nothing fits, the last entry's output is kept.

The worst case is one encode per ladder entry.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from compress_image.models import CompressionAttempt

logger = logging.getLogger(__name__)

P = TypeVar("P")


@dataclass(frozen=True)
class LadderOutcome(Generic[P]):
    param: P
    data: bytes
    attempts: list[CompressionAttempt] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)


def run_ladder(
    ladder: Sequence[P],
    produce: Callable[[P], bytes],
    budget: int,
) -> LadderOutcome[P]:
    """Call *produce* for each entry of *ladder* until one output is ≤ *budget*.

    Exceptions raised by *produce* propagate immediately: a codec failure is
    not a size problem and must not be skipped over.

    Returns the fitting entry, or the last one when none fit.
    """
    if not ladder:
        raise ValueError("ladder must contain at least one parameter")

    attempts: list[CompressionAttempt] = []
    param, data = None, b""
    for param in ladder:
        data = produce(param)
        attempts.append(CompressionAttempt(param=param, size=len(data)))
        logger.debug("ladder step %s -> %d bytes (budget %d)", param, len(data), budget)
        if len(data) <= budget:
            break

    return LadderOutcome(param=param, data=data, attempts=attempts)
