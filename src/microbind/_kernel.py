from __future__ import annotations

import inspect
import logging
import threading
from typing import TYPE_CHECKING, Any

from ._errors import (
    CyclicDependencyError,
    PropertyTypeMismatchError,
    UnresolvedDependencyError,
    describe,
)
from ._inspect import TypeInspector
from ._node import Lifetime, Node


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable


class Kernel:
    """Binding registry and resolution engine.

    Holds the registered nodes in registration order (with set semantics on
    the node identity), builds object graphs for them and tears down the
    instances they own. After ``dispose()`` every operation is a no-op.
    """

    def __init__(self, container: object, inspector: TypeInspector | None = None) -> None:
        self._container = container
        self._inspector = inspector or TypeInspector()
        self._nodes: dict[tuple[object, object, str], Node] = {}
        self._last: Node | None = None
        self._lock = threading.RLock()
        self._local = threading.local()
        self._disposed = False

    @property
    def inspector(self) -> TypeInspector:
        return self._inspector

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def nodes(self) -> tuple[Node, ...]:
        with self._lock:
            return tuple(self._nodes.values())

    @property
    def last_node(self) -> Node | None:
        """The node targeted by the most recent registration call."""
        with self._lock:
            return self._last

    def create_node(self, node: Node) -> Node:
        """Insert 'node' unless an equal one exists; return the registered node."""
        if self._disposed:
            return node

        with self._lock:
            registered = self._nodes.setdefault(node.identity, node)
            self._last = registered

        if registered is node:
            logger.debug("Registered %r", node)
        else:
            logger.debug("Binding %r already registered, keeping the existing one", node)
        return registered

    def find_node(self, predicate: Callable[[Node], bool]) -> Node | None:
        return next((n for n in self.nodes if not n.disposed and predicate(n)), None)

    def find_last_node(self, predicate: Callable[[Node], bool]) -> Node | None:
        return next((n for n in reversed(self.nodes) if not n.disposed and predicate(n)), None)

    def find_binding(self, token: object) -> Node | None:
        """Look a token up by key, by contract (interfaces) or by concrete type."""
        if isinstance(token, str):
            return self.find_node(lambda n: n.key == token)

        if self._inspector.is_interface(token):
            return self.find_node(lambda n: n.contract == token)

        return self.find_node(lambda n: n.component == token)

    def resolve(self, token: object) -> Any:
        if self._disposed:
            return None

        node = self.find_binding(token)
        if node is None:
            raise UnresolvedDependencyError(token)

        logger.debug("Resolving %s with %r", describe(token), node)
        return self.generate_instance(node)

    def resolve_all(self, tp: object) -> list[Any]:
        """Instances of every binding assignable to 'tp', in registration order.

        Bindings whose dependencies cannot be found or form a cycle, or that
        produce nothing, are left out.
        """
        if self._disposed:
            return []

        instances = []
        for node in self.nodes:
            if node.disposed:
                continue

            if not (
                self._inspector.is_assignable(node.component, tp) or self._inspector.is_assignable(node.contract, tp)
            ):
                continue

            try:
                instance = self.generate_instance(node)
            except (UnresolvedDependencyError, CyclicDependencyError) as e:
                logger.debug("Skipping %r while resolving all of %s: %s", node, describe(tp), e)
                continue

            if instance is not None:
                instances.append(instance)

        return instances

    def generate_instance(self, node: Node) -> Any:
        """Produce an instance for a located binding, honouring its lifetime."""
        if node.has_factory_support:
            return node.get_instance()

        if node.component is None:
            return None

        if node.lifetime is Lifetime.TRANSIENT:
            return self.construct(node)

        # check, construct and store under the node lock: at most one construction
        with node.lock:
            if node.instance is None:
                node.set_instance(self.construct(node))
            return node.instance

    def construct(self, node: Node) -> Any:
        """Recursively build the node's concrete type and apply its properties."""
        stack = self._construction_stack()
        if any(n is node for n in stack):
            start = next(i for i, n in enumerate(stack) if n is node)
            chain = [_token_of(n) for n in stack[start:]] + [_token_of(node)]
            raise CyclicDependencyError(chain)

        stack.append(node)
        try:
            return self._resolve_internal(node)
        finally:
            stack.pop()

    def dispose(self) -> None:
        """Dispose every owned instance, best effort, then every node."""
        if self._disposed:
            return
        self._disposed = True

        disposed_ids: set[int] = set()
        for node in self.nodes:
            try:
                owned = node.get_instance() if node.has_factory_support else node.instance
                disposer = _disposer_of(owned)
                if disposer is not None and id(owned) not in disposed_ids:
                    disposed_ids.add(id(owned))
                    disposer()
            except Exception as e:  # noqa: BLE001
                logger.warning("Disposing the instance owned by %r failed: %s", node, e)

            node.dispose()

        with self._lock:
            self._nodes.clear()
            self._last = None

    def _resolve_internal(self, node: Node) -> Any:
        cls = node.component
        args: list[Any] = []
        kwargs: dict[str, Any] = {}

        for p in self._inspector.constructor_parameters(cls):
            value = self._resolve_parameter(cls, p)
            if p.kind is p.POSITIONAL_ONLY:
                args.append(value)
            else:
                kwargs[p.name] = value

        instance = cls(*args, **kwargs)
        self._apply_properties(instance, node)
        return instance

    def _resolve_parameter(self, cls: type, p: inspect.Parameter) -> Any:
        """Resolving param.

        Resolution precedence:
        1. the container itself, when it satisfies the annotation
        2. binding for the annotated type
        3. key-based binding named like the parameter (unannotated only)
        4. default
        5. error.
        """
        ann = p.annotation

        if ann is not p.empty:
            if self._accepts_container(ann):
                return self._container
            dependency = self.find_binding(ann)
        else:
            dependency = self.find_node(lambda n: n.key == p.name)

        if dependency is not None:
            return self._resolve_dependency(dependency)

        if p.default is not p.empty:
            return p.default

        token = ann if ann is not p.empty else p.name
        kind = "component" if ann is not p.empty else "key"
        msg = (
            f"No registration found for {kind} {describe(token)} required by constructor "
            f"parameter '{p.name}' of {describe(cls)}."
        )
        raise UnresolvedDependencyError(token, msg)

    def _resolve_dependency(self, node: Node) -> Any:
        instance = self.generate_instance(node)
        # constructed instances already carry their properties
        if node.has_factory_support and instance is not None:
            self._apply_properties(instance, node)
        return instance

    def _accepts_container(self, ann: object) -> bool:
        if not inspect.isclass(ann) or ann is object or ann is Any or self._inspector.is_protocol(ann):
            return False
        try:
            return isinstance(self._container, ann)
        except TypeError:
            return False

    def _apply_properties(self, instance: Any, node: Node) -> None:
        if not node.property_assignments:
            return

        component = type(instance)
        declared = self._inspector.settable_properties(component)

        for assignment in node.property_assignments:
            if assignment.name not in declared:
                raise PropertyTypeMismatchError(component, assignment.name, assignment.value, None)

            expected = declared[assignment.name]
            if not self._inspector.matches_declared_type(assignment.value, expected):
                raise PropertyTypeMismatchError(component, assignment.name, assignment.value, expected)

            setattr(instance, assignment.name, assignment.value)

    def _construction_stack(self) -> list[Node]:
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = self._local.stack = []
        return stack


def _token_of(node: Node) -> object:
    return node.component or node.contract or node.key


def _disposer_of(instance: object) -> Callable[[], object] | None:
    if instance is None:
        return None

    for name in ("dispose", "close"):
        disposer = getattr(instance, name, None)
        if callable(disposer):
            return disposer
    return None
