from __future__ import annotations

from typing import Any


def describe(token: object) -> str:
    """Human readable name for a type, generic alias or key."""
    if isinstance(token, str):
        return repr(token)
    qualname = getattr(token, "__qualname__", None)
    if qualname is not None:
        return qualname
    return repr(token)


class MicrobindError(Exception):
    pass


class InvalidBindingError(MicrobindError, TypeError):
    """A registration was rejected; the registry has not been modified."""


class ResolutionError(MicrobindError, RuntimeError):
    pass


class UnresolvedDependencyError(ResolutionError, LookupError):
    def __init__(self, token: object, message: str | None = None) -> None:
        self.token = token
        if message is None:
            kind = "key" if isinstance(token, str) else "component"
            message = f"No registration found for {kind} {describe(token)}."
        super().__init__(message)


class PropertyTypeMismatchError(ResolutionError, TypeError):
    def __init__(self, component: type, property_name: str, value: Any, expected: object | None) -> None:
        self.component = component
        self.property_name = property_name
        self.value = value
        self.expected = expected

        if expected is None:
            msg = (
                f"For the component '{describe(component)}' the configured property '{property_name}' "
                f"is not a declared settable property."
            )
        else:
            msg = (
                f"For the component '{describe(component)}' with configured property '{property_name}' "
                f"for assignment, the current value '{value!r}({type(value).__qualname__})' does not match "
                f"the type '{describe(expected)}' of the property on the component."
            )
        super().__init__(msg)


class CyclicDependencyError(ResolutionError):
    def __init__(self, chain: list[object]) -> None:
        self.chain = chain
        path = " -> ".join(describe(t) for t in chain)
        super().__init__(f"Cyclic dependency detected: {path}")


class ObjectDisposedError(MicrobindError, RuntimeError):
    pass


class InvalidOperationError(MicrobindError, RuntimeError):
    pass
