from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any, get_origin

from ._errors import InvalidBindingError, InvalidOperationError, describe
from ._node import Lifetime, Node, PropertyAssignment


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from types import ModuleType

    from ._kernel import Kernel


class Registration:
    """Fluent registration API.

    Every method returns the builder so calls can be chained; the
    ``with_*`` methods act on the binding created or matched by the last
    registration call.

    Example:
      (container.registrations
          .register(ILogger, Logger)
          .with_lifetime(Lifetime.SINGLETON)
          .with_property_value(Logger, "log_file_location", "/tmp"))

    """

    def __init__(self, container: object, kernel: Kernel) -> None:
        self._container = container
        self._kernel = kernel

    def register(
        self,
        token: type,
        impl: type | None = None,
        *,
        key: str = "",
        lifetime: Lifetime = Lifetime.TRANSIENT,
    ) -> Registration:
        """Bind a concrete type, optionally behind an interface-like contract.

        Example:
          registrations.register(Logger)                  # concrete only
          registrations.register(ILogger, Logger)         # contract -> concrete
          registrations.register(ILogger, Logger, key="file-logger")

        """
        _check_key(key)
        inspector = self._kernel.inspector

        if impl is None:
            if not inspector.is_concrete(token):
                msg = f"The type {describe(token)} denoting the concrete service type must be a concrete class."
                raise InvalidBindingError(msg)
            node = Node(None, token, key, lifetime=Lifetime(lifetime))
        else:
            inspector.validate_binding(token, impl)
            node = Node(token, impl, key, lifetime=Lifetime(lifetime))

        self._kernel.create_node(node)
        return self

    def register_factory(
        self,
        factory: Callable[[Any], object],
        *,
        provides: object | None = None,
        key: str = "",
        lifetime: Lifetime = Lifetime.TRANSIENT,
    ) -> Registration:
        """Bind a callable receiving the container; it replaces recursive construction.

        'provides' is stored as the contract when interface-like, otherwise as
        the concrete type. A factory needs a provided type, a key, or both.
        """
        _check_key(key)
        if not callable(factory):
            msg = f"Factory {factory!r} is not callable."
            raise InvalidBindingError(msg)

        if provides is None and not key:
            msg = "A factory registration requires a provided type or a key."
            raise InvalidBindingError(msg)

        if provides is not None and not (inspect.isclass(provides) or inspect.isclass(get_origin(provides))):
            msg = f"The type provided by factory {factory!r} must be a class, got {provides!r}."
            raise InvalidBindingError(msg)

        container = self._container
        node = self._make_node(provides, key, lifetime)
        node.has_factory_support = True
        node.activate(lambda: factory(container))

        self._kernel.create_node(node)
        return self

    def register_instance(
        self,
        instance: object,
        *,
        key: str = "",
        provides: object | None = None,
    ) -> Registration:
        """Register a pre-built instance, returned verbatim on every resolution."""
        _check_key(key)
        inspector = self._kernel.inspector
        impl = type(instance)

        if provides is None:
            provides = impl
        elif provides is not impl:
            if inspector.is_interface(provides):
                inspector.validate_binding(provides, impl)
            elif not inspector.is_assignable(impl, provides):
                msg = f"The instance of {describe(impl)} is not assignable to {describe(provides)}."
                raise InvalidBindingError(msg)

        node = self._make_node(provides, key, Lifetime.TRANSIENT)
        node.has_factory_support = True
        node.activate(lambda: instance)

        self._kernel.create_node(node)
        return self

    def register_many_to_open_type(self, open_type: type, universe: ModuleType | Iterable[type]) -> Registration:
        """Bind every concrete class of 'universe' implementing 'open_type'.

        'universe' is an iterable of classes or a module, in which case the
        classes defined by that module are scanned in definition order. The
        bindings carry no contract; fetch them with ``resolve_all``.
        """
        inspector = self._kernel.inspector
        count = 0

        for cls in _candidate_types(universe):
            if inspector.implements_open_type(cls, open_type):
                self._kernel.create_node(Node(None, cls))
                count += 1

        logger.debug("Registered %d implementations of %s", count, describe(open_type))
        return self

    def with_property_value(self, component: object, property_name: str, value: Any) -> Registration:
        """Assign 'value' to 'property_name' on instances built for 'component'.

        The assignment goes to the most recent binding whose concrete type or
        contract is 'component'. Nothing happens when there is no such binding.
        The value's type is checked when an instance is built.
        """
        if not property_name:
            return self

        node = self._kernel.find_last_node(lambda n: n.component == component or n.contract == component)
        if node is None:
            logger.debug("No binding for %s, skipping property '%s'", describe(component), property_name)
            return self

        node.add_property_assignment(PropertyAssignment(property_name, value))
        return self

    def with_lifetime(self, lifetime: Lifetime) -> Registration:
        node = self._kernel.last_node
        if node is None:
            msg = (
                "You must first specify a component registration via register(...) before configuring "
                "the lifetime of the component in the container."
            )
            raise InvalidOperationError(msg)

        node.lifetime = Lifetime(lifetime)
        return self

    def _make_node(self, provides: object | None, key: str, lifetime: Lifetime) -> Node:
        if provides is not None and self._kernel.inspector.is_interface(provides):
            return Node(provides, None, key, lifetime=Lifetime(lifetime))
        return Node(None, provides, key, lifetime=Lifetime(lifetime))


def _check_key(key: object) -> None:
    if not isinstance(key, str):
        msg = f"Binding keys must be strings, got {key!r}."
        raise InvalidBindingError(msg)


def _candidate_types(universe: ModuleType | Iterable[type]) -> list[type]:
    if inspect.ismodule(universe):
        types = [v for v in vars(universe).values() if inspect.isclass(v) and v.__module__ == universe.__name__]
    else:
        types = [v for v in universe if inspect.isclass(v)]

    return list(dict.fromkeys(types))
