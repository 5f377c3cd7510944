from __future__ import annotations

import importlib
import inspect
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Protocol,
    TypeVar,
    overload,
    runtime_checkable,
)

from ._errors import InvalidBindingError, ObjectDisposedError
from ._kernel import Kernel
from ._registration import Registration


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from types import TracebackType

    from ._inspect import TypeInspector

T = TypeVar("T")


@runtime_checkable
class Installer(Protocol):
    """Groups registrations; handed the container to configure."""

    def configure(self, container: Container) -> None: ...


@dataclass
class ParameterSpec:
    name: str
    value: Any


@dataclass
class ComponentSpec:
    """Declarative component record.

    ``service`` and ``contract`` are dotted class paths, either
    ``package.module.Class`` or ``package.module:Outer.Inner``.
    """

    id: str
    service: str
    contract: str = ""
    parameters: list[ParameterSpec] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ComponentSpec:
        """Build a record from ``{"id", "service", "contract"?, "parameters"?}``.

        Parameters are either a list of ``{"name", "value"}`` mappings or a
        single name to value mapping.
        """
        raw = data.get("parameters") or []

        try:
            if isinstance(raw, Mapping):
                parameters = [ParameterSpec(name, value) for name, value in raw.items()]
            else:
                parameters = [p if isinstance(p, ParameterSpec) else ParameterSpec(p["name"], p["value"]) for p in raw]

            return cls(
                id=data["id"],
                service=data["service"],
                contract=data.get("contract") or "",
                parameters=parameters,
            )
        except KeyError as e:
            msg = f"The component definition {dict(data)!r} is missing the required attribute '{e.args[0]}'."
            raise InvalidBindingError(msg) from e


def locate_type(name: str) -> type:
    """Import the class named by a dotted path."""
    if ":" in name:
        module_name, _, attr_path = name.partition(":")
    else:
        module_name, _, attr_path = name.rpartition(".")

    module_name, attr_path = module_name.strip(), attr_path.strip()
    if not module_name or not attr_path:
        msg = f"The definition for component '{name}' does not correspond to a Python class path."
        raise InvalidBindingError(msg)

    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as e:
        msg = f"An error occurred while attempting to import module '{module_name}'. Reason: '{e}'"
        raise InvalidBindingError(msg) from e

    for part in attr_path.split("."):
        obj = getattr(obj, part, None)

    if not inspect.isclass(obj):
        msg = (
            f"The type '{attr_path}' could not be found in module '{module_name}'. "
            f"Please re-check the name of the component in the configuration."
        )
        raise InvalidBindingError(msg)

    return obj


class Container:
    """Dependency injection container.

    - register contracts, concrete types, factories and instances
      through ``registrations``
    - resolve by type or by string key with constructor injection
    - lifetimes: transient / singleton
    - disposes the instances it owns on ``dispose()`` or on leaving a
      ``with`` block.
    """

    def __init__(self, inspector: TypeInspector | None = None) -> None:
        self._kernel: Kernel | None = Kernel(self, inspector)
        self._disposed = False
        self._lock = threading.Lock()

    @property
    def registrations(self) -> Registration:
        return Registration(self, self._guard_on_dispose())

    @property
    def disposed(self) -> bool:
        return self._disposed

    @overload
    def resolve(self, token: type[T]) -> T: ...

    @overload
    def resolve(self, token: str) -> Any: ...

    @overload
    def resolve(self, token: Any) -> Any: ...

    def resolve(self, token: Any) -> Any:
        """Resolve a type or a key to an instance.

        Interfaces resolve through the binding registered for that contract,
        other classes through the binding registered for that concrete type,
        strings through the binding registered under that key.
        """
        return self._guard_on_dispose().resolve(token)

    @overload
    def resolve_all(self, tp: type[T]) -> list[T]: ...

    @overload
    def resolve_all(self, tp: Any) -> list[Any]: ...

    def resolve_all(self, tp: Any) -> list[Any]:
        """Resolve every binding whose contract or concrete type is assignable to 'tp'."""
        return self._guard_on_dispose().resolve_all(tp)

    def register_from_installers(self, *installers: Installer) -> None:
        self._guard_on_dispose()
        for installer in installers:
            logger.debug("Configuring container from %s", type(installer).__qualname__)
            installer.configure(self)

    def register_from_installer(self, installer_type: type[Installer]) -> None:
        self.register_from_installers(installer_type())

    def configure(self, components: Iterable[ComponentSpec | Mapping[str, Any]]) -> None:
        """Register declarative component records.

        Each record registers its service (behind its contract, when given)
        under its id as key, then assigns its parameters as property values.
        Every class path is located before anything is registered.
        """
        self._guard_on_dispose()
        records = [c if isinstance(c, ComponentSpec) else ComponentSpec.from_mapping(c) for c in components]
        if not records:
            msg = "There are no components defined to configure the container."
            raise InvalidBindingError(msg)

        located = [
            (record, locate_type(record.contract) if record.contract else None, locate_type(record.service))
            for record in records
        ]

        registrations = self.registrations
        for record, contract, service in located:
            if contract is None:
                registrations.register(service, key=record.id)
            else:
                registrations.register(contract, service, key=record.id)

            for parameter in record.parameters:
                registrations.with_property_value(service, parameter.name, parameter.value)

    def dispose(self) -> None:
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            kernel, self._kernel = self._kernel, None

        if kernel is not None:
            kernel.dispose()

    def __enter__(self) -> Container:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.dispose()

    def _guard_on_dispose(self) -> Kernel:
        kernel = self._kernel
        if self._disposed or kernel is None:
            msg = f"Can not access a disposed instance of {type(self).__qualname__}"
            raise ObjectDisposedError(msg)
        return kernel
