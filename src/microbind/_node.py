from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from collections.abc import Callable


class Lifetime(Enum):
    TRANSIENT = "transient"
    SINGLETON = "singleton"


@dataclass(frozen=True)
class PropertyAssignment:
    name: str
    value: Any


class Node:
    """One registered binding.

    A node is identified by ``(contract, component, key)``. It owns the
    cached singleton instance, if any, and the property assignments applied
    to every instance it produces. Once disposed it produces nothing.
    """

    def __init__(
        self,
        contract: object | None,
        component: object | None,
        key: str = "",
        *,
        lifetime: Lifetime = Lifetime.TRANSIENT,
    ) -> None:
        self.contract = contract
        self.component = component
        self.key = key
        self.lifetime = lifetime
        self.has_factory_support = False
        self.property_assignments: list[PropertyAssignment] = []
        self.lock = threading.RLock()
        self._instance: object | None = None
        self._activate: Callable[[], object] | None = None
        self._disposed = False

    @property
    def identity(self) -> tuple[object, object, str]:
        return (self.contract, self.component, self.key)

    @property
    def instance(self) -> object | None:
        return self._instance

    @property
    def disposed(self) -> bool:
        return self._disposed

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)

    def __repr__(self) -> str:
        return (
            f"Node(contract={self.contract!r}, component={self.component!r}, key={self.key!r}, "
            f"lifetime={self.lifetime.value})"
        )

    def activate(self, activate: Callable[[], object]) -> None:
        if self._disposed:
            return
        self._activate = activate

    def get_instance(self) -> object | None:
        """Produce an instance through the activation function."""
        if self._disposed or self._activate is None:
            return None

        if self.lifetime is Lifetime.SINGLETON:
            with self.lock:
                if self._instance is None:
                    self._instance = self._activate()
                return self._instance

        return self._activate()

    def set_instance(self, instance: object) -> None:
        if self._instance is not None:
            msg = f"{self!r} already holds a cached instance"
            raise RuntimeError(msg)
        self._instance = instance

    def add_property_assignment(self, assignment: PropertyAssignment) -> None:
        if self._disposed:
            return

        if not any(_same_assignment(assignment, a) for a in self.property_assignments):
            self.property_assignments.append(assignment)

    def dispose(self) -> None:
        """Release the cached instance; its disposer is the kernel's business."""
        self._instance = None
        self._activate = None
        self._disposed = True


def _same_assignment(a: PropertyAssignment, b: PropertyAssignment) -> bool:
    # 1, 1.0 and True compare equal but are not interchangeable property values
    return a.name == b.name and type(a.value) is type(b.value) and a.value == b.value
