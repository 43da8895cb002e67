"""All-or-nothing execution across the in-memory world.

Every stateful component registers with a shared ``TransactionManager``. Entering
``atomic()`` takes the re-entrant lock and snapshots each component; an
exception escaping the block restores every snapshot before re-raising, so a
failed operation leaves no partial effects. Nested blocks act as savepoints.
"""

from contextlib import contextmanager
import copy
import logging
import threading
from typing import Any, Iterator, List, Tuple


logger = logging.getLogger(__name__)


class StatefulComponent:
    """Mixin for components whose whole mutable state lives in ``self._state``."""

    _state: Any

    def snapshot_state(self) -> Any:
        """Return a deep copy of the component state."""
        return copy.deepcopy(self._state)

    def restore_state(self, state: Any) -> None:
        """Replace the component state with a previously taken snapshot."""
        self._state = state


class TransactionManager:
    """Serializes operations and rolls back registered components on failure."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._components: List[StatefulComponent] = []
        self._depth = 0

    def register(self, component: StatefulComponent) -> None:
        """Include ``component`` in every future snapshot."""
        with self._lock:
            if any(existing is component for existing in self._components):
                return
            self._components.append(component)

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def atomic(self, label: str) -> Iterator[None]:
        """Run the enclosed block as one transaction named ``label``."""
        with self._lock:
            savepoint: List[Tuple[StatefulComponent, Any]] = [
                (component, component.snapshot_state()) for component in self._components
            ]
            self._depth += 1
            try:
                yield
            except Exception as exc:
                for component, state in savepoint:
                    component.restore_state(state)
                logger.warning("Rolled back %s at depth=%s: %s", label, self._depth, exc)
                raise
            finally:
                self._depth -= 1
