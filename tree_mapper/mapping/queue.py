"""Deferred mapping work.

Relationship mappings that would recurse into a type already being mapped
higher in the call stack are parked here and run after the enclosing pass.
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tree_mapper.core.exceptions import MappingError
    from tree_mapper.mapping.operation import MappingOperation

logger = logging.getLogger(__name__)


class MappingOperationQueue:
    """FIFO work-list of deferred operations plus the destination types mid-pass."""

    def __init__(self) -> None:
        self._pending: deque[MappingOperation] = deque()
        self._active_types: Counter[type] = Counter()

    def __len__(self) -> int:
        """Number of operations waiting to run."""
        return len(self._pending)

    def add_operation(self, operation: MappingOperation) -> None:
        """Defer *operation* until the queue is drained."""
        self._pending.append(operation)
        logger.debug("Deferred %r (%d pending)", operation, len(self._pending))

    @contextmanager
    def mapping(self, operation: MappingOperation) -> Iterator[None]:
        """Mark *operation*'s destination in progress for the duration of a pass."""
        destination_type = operation.destination_type
        self._active_types[destination_type] += 1
        try:
            yield
        finally:
            self._active_types[destination_type] -= 1
            if self._active_types[destination_type] <= 0:
                del self._active_types[destination_type]

    def is_mapping_type(self, destination_type: type | None) -> bool:
        """True while some operation for *destination_type* is mid-pass."""
        return destination_type in self._active_types

    def drain(self) -> list[MappingError]:
        """Run deferred operations in enqueue order until none are left.

        Operations may enqueue further work while running; it runs in the
        same drain.

        Returns:
            Errors recorded by the drained operations.
        """
        errors: list[MappingError] = []
        while self._pending:
            operation = self._pending.popleft()
            operation.perform_mapping()
            errors.extend(operation.errors)
        return errors
