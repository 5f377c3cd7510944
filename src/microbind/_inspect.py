from __future__ import annotations

import abc
import inspect
import logging
import types
import typing
from typing import (
    Any,
    ClassVar,
    Protocol,
    Union,
    cast,
    get_args,
    get_origin,
    get_type_hints,
)

from ._errors import InvalidBindingError, describe


logger = logging.getLogger(__name__)


class TypeInspector:
    """Reflection capability used by the kernel.

    Answers the four questions the resolution engine asks about a type:
    whether it is interface-like, whether another type is assignable to it,
    what its constructor parameters are and which named properties can be
    set on its instances. Replace it (``Kernel(container, inspector=...)``)
    to change how classes are introspected.
    """

    def is_protocol(self, tp: object) -> bool:
        """Detect whether 'tp' is a typing.Protocol subclass (safe)."""
        return _is_protocol(tp)

    def is_interface(self, tp: object) -> bool:
        """Protocols, abstract classes and direct `abc.ABC` subclasses are contracts.

        A parameterized generic (``Handler[Ping]``) is judged by its origin.
        """
        origin = get_origin(tp)
        if origin is not None and inspect.isclass(origin):
            tp = origin

        if not inspect.isclass(tp):
            return False

        return self.is_protocol(tp) or inspect.isabstract(tp) or abc.ABC in tp.__bases__

    def is_concrete(self, tp: object) -> bool:
        return inspect.isclass(tp) and not self.is_interface(tp)

    def is_assignable(self, concrete: object, target: object) -> bool:
        """Whether instances of 'concrete' can stand in for 'target'."""
        if concrete is None or target is None:
            return False

        if concrete == target:
            return True

        if not inspect.isclass(concrete):
            return False

        if get_origin(target) is not None:
            return _has_generic_base(concrete, target)

        if not inspect.isclass(target):
            return False

        if self.is_protocol(target):
            return not self.conformance_problems(target, concrete)

        return issubclass(concrete, target)

    def validate_binding(self, contract: type, concrete: type) -> None:
        """Validate that 'concrete' implements 'contract'.

        - For normal classes/ABCs: require issubclass(concrete, contract).
        - For Protocols: nominal via MRO, otherwise structural conformance.
        - For parameterized generics: the exact alias among the generic bases.
        """
        if not inspect.isclass(concrete) or inspect.isabstract(concrete) or self.is_protocol(concrete):
            msg = f"The service {describe(concrete)} bound to '{describe(contract)}' must be a concrete class."
            raise InvalidBindingError(msg)

        if not self.is_interface(contract):
            msg = (
                f"The contract '{describe(contract)}' that is bound to service component "
                f"'{describe(concrete)}' must be an interface type."
            )
            raise InvalidBindingError(msg)

        if self.is_protocol(contract):
            problems = self.conformance_problems(contract, concrete)
            if problems:
                msg = (
                    f"The service '{describe(concrete)}' does not structurally conform to protocol "
                    f"'{describe(contract)}': {'; '.join(problems)}"
                )
                raise InvalidBindingError(msg)
            return

        if not self.is_assignable(concrete, contract):
            msg = f"The service '{describe(concrete)}' does not implement the contract '{describe(contract)}'."
            raise InvalidBindingError(msg)

    def conformance_problems(self, proto_cls: type, impl: type) -> list[str]:  # noqa: C901
        """Best-effort structural conformance: presence + basic callable arity + return type checks.

        Returns an empty list when 'impl' conforms, either nominally (the
        protocol is in its MRO) or structurally.
        """
        if proto_cls in getattr(impl, "__mro__", ()):
            return []

        missing: list[str] = []
        signature_mismatches: list[str] = []

        proto_hints = _safe_type_hints(proto_cls)
        impl_hints = _safe_type_hints(impl)

        # Attributes required by annotations
        for name in proto_hints:
            if name.startswith("_"):
                continue
            if not hasattr(impl, name) and name not in impl_hints:
                missing.append(name)

        for name, proto_attr in proto_cls.__dict__.items():
            if name.startswith("_") or not inspect.isfunction(proto_attr):
                continue

            if not hasattr(impl, name):
                missing.append(name)
                continue

            impl_attr = getattr(impl, name)
            if not callable(impl_attr):
                signature_mismatches.append(f"{name}: not callable on {impl.__name__}")
                continue

            try:
                proto_sig = inspect.signature(proto_attr)
                impl_sig = inspect.signature(impl_attr)
            except (TypeError, ValueError) as e:
                signature_mismatches.append(f"{name}: unable to compare signatures ({e})")
                continue

            proto_params = [p for p in proto_sig.parameters.values() if p.name != "self"]
            impl_params = [p for p in impl_sig.parameters.values() if p.name != "self"]

            if _positional_arity(impl_params) < _positional_arity(proto_params):
                signature_mismatches.append(
                    f"{name}: impl has fewer required positional params "
                    f"({_positional_arity(impl_params)}) than protocol "
                    f"({_positional_arity(proto_params)})"
                )

            proto_ret = proto_sig.return_annotation
            impl_ret = impl_sig.return_annotation

            if (
                proto_ret is not inspect.Signature.empty
                and impl_ret is not inspect.Signature.empty
                and proto_ret is not Any
                and impl_ret is not Any
                and not _is_return_type_compatible(impl_ret, proto_ret)
            ):
                signature_mismatches.append(
                    f"{name}: return type {impl_ret!r} is not compatible with protocol return type {proto_ret!r}"
                )

        problems = []
        if missing:
            problems.append(f"missing members: {', '.join(missing)}")
        if signature_mismatches:
            problems.append(f"signature mismatches: {', '.join(signature_mismatches)}")
        return problems

    def constructor_parameters(self, cls: type) -> list[inspect.Parameter]:
        """Ordered constructor parameters with annotations resolved.

        Python classes expose a single ``__init__``, so it is always the
        greediest constructor. Variadic parameters are never injected.
        """
        try:
            sig = inspect.signature(cls)
        except (TypeError, ValueError):
            return []

        hints = _get_init_type_hints(cls)
        params = []
        for name, p in sig.parameters.items():
            if p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
                continue
            params.append(p.replace(annotation=hints.get(name, inspect.Parameter.empty)))
        return params

    def settable_properties(self, cls: type) -> dict[str, object]:
        """Public annotated attributes and properties with a setter, by declared type."""
        properties: dict[str, object] = {}

        for name, hint in _safe_type_hints(cls).items():
            if name.startswith("_") or hint is ClassVar or get_origin(hint) is ClassVar:
                continue
            properties[name] = hint

        for klass in reversed(cls.__mro__):
            for name, attr in vars(klass).items():
                if not isinstance(attr, property):
                    continue
                if attr.fset is None:
                    properties.pop(name, None)
                else:
                    properties[name] = _property_type(attr)

        return properties

    def matches_declared_type(self, value: object, expected: object) -> bool:
        """Exact runtime type match; unions match any member exactly."""
        if expected is Any:
            return True

        origin = get_origin(expected)
        if origin is Union or origin is types.UnionType:
            return any(self.matches_declared_type(value, arg) for arg in get_args(expected))

        if expected is None or expected is type(None):
            return value is None

        if origin is not None and inspect.isclass(origin):
            return type(value) is origin

        return type(value) is expected

    def implements_open_type(self, cls: object, open_type: type) -> bool:
        """Whether the concrete 'cls' implements 'open_type' for any type arguments.

        Matches a parameterized generic base of 'open_type', an interface base
        whose qualified name starts with the open type's, or plain assignability.
        """
        if not self.is_concrete(cls) or cls is open_type:
            return False

        cls = cast("type", cls)
        for klass in cls.__mro__:
            if any(get_origin(base) is open_type for base in klass.__dict__.get("__orig_bases__", ())):
                return True

        prefix = _qualified_name(open_type)
        if any(self.is_interface(k) and _qualified_name(k).startswith(prefix) for k in cls.__mro__[1:]):
            return True

        return self.is_assignable(cls, open_type)


if hasattr(typing, "is_protocol"):
    # https://docs.python.org/3/library/typing.html#typing.is_protocol
    def _is_protocol(tp: object) -> bool:
        return inspect.isclass(tp) and typing.is_protocol(tp)

else:

    def _is_protocol(tp: object) -> bool:
        return inspect.isclass(tp) and tp is not Protocol and bool(getattr(tp, "_is_protocol", False))


def _qualified_name(tp: type) -> str:
    return f"{tp.__module__}.{tp.__qualname__}"


def _has_generic_base(concrete: type, alias: object) -> bool:
    return any(alias in klass.__dict__.get("__orig_bases__", ()) for klass in concrete.__mro__)


def _positional_arity(params: list[inspect.Parameter]) -> int:
    return sum(
        1
        for p in params
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        and p.default is inspect.Parameter.empty
    )


def _is_return_type_compatible(impl_ret: object, proto_ret: object) -> bool:
    if impl_ret == proto_ret:
        return True

    # Handle class-based covariance
    if isinstance(impl_ret, type) and isinstance(proto_ret, type):
        return issubclass(impl_ret, proto_ret)

    # Everything else (Union, Protocol, TypeVar, etc.) is a conservative failure
    return False


def _property_type(prop: property) -> object:
    try:
        hints = get_type_hints(prop.fget) if prop.fget is not None else {}
        if "return" in hints:
            return hints["return"]
        setter_hints = get_type_hints(prop.fset)
    except (TypeError, NameError):
        return Any

    setter_hints.pop("return", None)
    return next(iter(setter_hints.values()), Any)


def _safe_type_hints(tp: type) -> dict[str, Any]:
    try:
        return get_type_hints(tp)
    except TypeError:
        return {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s type hints", exc.name, tp.__qualname__)
        return {}


def _get_init_type_hints(cls: type) -> dict[str, Any]:
    try:
        init = inspect.getattr_static(cls, "__init__")
        hints = get_type_hints(init)
    except TypeError:
        hints = {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s (%s) type hints", exc.name, cls.__name__, cls.__qualname__)
        hints = {}

    return hints
