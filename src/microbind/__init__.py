"""Small inversion-of-control container.

This package builds object graphs on demand from registered bindings: a
binding maps an interface-like contract, a concrete class and/or a string key
to a construction policy. Constructor dependencies are resolved recursively
from type annotations, configured property values are assigned after
construction, and the instances the container owns are disposed with it.

Exports:
- `Container`: Main entry point; resolve by type or key, resolve all
  implementations of a type, dispose owned instances.
- `Registration`: Fluent registration builder returned by `Container.registrations`.
- `Lifetime`: Enum for controlling object lifetimes (transient or singleton).
- `Installer`: Protocol for objects grouping registrations.
- `ComponentSpec`, `ParameterSpec`, `locate_type`: declarative component records.
- `Kernel`, `Node`, `TypeInspector`: the resolution engine, binding record and
  reflection capability, for extension.
- the `MicrobindError` exception hierarchy.
"""

from ._container import ComponentSpec, Container, Installer, ParameterSpec, locate_type
from ._errors import (
    CyclicDependencyError,
    InvalidBindingError,
    InvalidOperationError,
    MicrobindError,
    ObjectDisposedError,
    PropertyTypeMismatchError,
    ResolutionError,
    UnresolvedDependencyError,
)
from ._inspect import TypeInspector
from ._kernel import Kernel
from ._node import Lifetime, Node, PropertyAssignment
from ._registration import Registration


__all__ = [
    "ComponentSpec",
    "Container",
    "CyclicDependencyError",
    "Installer",
    "InvalidBindingError",
    "InvalidOperationError",
    "Kernel",
    "Lifetime",
    "MicrobindError",
    "Node",
    "ObjectDisposedError",
    "ParameterSpec",
    "PropertyAssignment",
    "PropertyTypeMismatchError",
    "Registration",
    "ResolutionError",
    "TypeInspector",
    "UnresolvedDependencyError",
    "locate_type",
]
