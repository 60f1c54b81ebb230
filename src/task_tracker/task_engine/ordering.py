"""Fractional ``manual_order`` allocation.

New tasks are appended ``STEP`` past the current maximum; moves between two
neighbours bisect their orders.  Bisection eventually runs out of float
mantissa, at which point :meth:`OrderAllocator.between` refuses and the
caller has to :meth:`OrderAllocator.reindex`.
"""

from __future__ import annotations

from typing import Optional, Sequence

from ..constants import ORDER_STEP
from ..errors import TaskError


class OrderAllocator:
    """Compute ``manual_order`` values without renumbering unrelated tasks."""

    def __init__(self, step: float = ORDER_STEP) -> None:
        self.step = step

    def append(self, max_existing_order: Optional[float]) -> float:
        """Place after every existing task; ``None`` means the board is empty."""
        if max_existing_order is None:
            return self.step
        return max_existing_order + self.step

    def after(self, anchor_order: float) -> float:
        return anchor_order + self.step

    def before(self, anchor_order: float) -> float:
        return anchor_order - self.step

    def between(self, lower: float, upper: float) -> float:
        mid = (lower + upper) / 2
        if mid == lower or mid == upper:
            raise TaskError.precision_exhausted(lower, upper)
        return mid

    def position(
        self,
        *,
        after: Optional[float] = None,
        before: Optional[float] = None,
        max_existing: Optional[float] = None,
    ) -> float:
        """Pick an order from optional neighbour orders.

        With both neighbours the result bisects them; with one it steps away
        from it; with neither it appends.
        """
        if after is not None and before is not None:
            return self.between(after, before)
        if after is not None:
            return self.after(after)
        if before is not None:
            return self.before(before)
        return self.append(max_existing)

    def reindex(self, ordered_ids: Sequence[int]) -> list[tuple[int, float]]:
        """Assign ``STEP, 2*STEP, ...`` to ids already sorted by current order."""
        return [(task_id, self.step * (i + 1)) for i, task_id in enumerate(ordered_ids)]
