import unittest
from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

import pytest

from microbind import (
    Container,
    InvalidBindingError,
    InvalidOperationError,
    Lifetime,
    UnresolvedDependencyError,
)


class IRepository(ABC):
    @abstractmethod
    def get(self, key: str) -> int: ...


class Repository(IRepository):
    def get(self, key: str) -> int:
        return 1


class PartialRepository(IRepository):
    """Still abstract: `get` is not implemented."""


class Unrelated: ...


class Greeter(Protocol):
    def greet(self, name: str) -> str: ...


@runtime_checkable
class RuntimeGreeter(Protocol):
    def greet(self, name: str) -> str: ...


class English:
    def greet(self, name: str) -> str:
        return f"Hello {name}"


class TestRegisterContractConstraints(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()

    def test_register_contract_with_implementing_service(self):
        self.cont.registrations.register(IRepository, Repository)

        assert isinstance(self.cont.resolve(IRepository), Repository)

    def test_register_service_not_implementing_contract_raises(self):
        with pytest.raises(InvalidBindingError):
            self.cont.registrations.register(IRepository, Unrelated)

    def test_failed_registration_leaves_registry_unchanged(self):
        with pytest.raises(InvalidBindingError):
            self.cont.registrations.register(IRepository, Unrelated)

        with pytest.raises(UnresolvedDependencyError):
            self.cont.resolve(IRepository)
        with pytest.raises(UnresolvedDependencyError):
            self.cont.resolve(Unrelated)
        assert self.cont.resolve_all(object) == []

    def test_invalid_binding_is_a_type_error(self):
        with pytest.raises(TypeError):
            self.cont.registrations.register(IRepository, Unrelated)

    def test_register_concrete_class_as_contract_raises(self):
        class Base: ...

        class Derived(Base): ...

        with pytest.raises(InvalidBindingError) as ctx:
            self.cont.registrations.register(Base, Derived)

        assert "must be an interface type" in str(ctx.value)

    def test_register_abstract_service_raises(self):
        with pytest.raises(InvalidBindingError):
            self.cont.registrations.register(IRepository, PartialRepository)

    def test_register_interface_without_service_raises(self):
        with pytest.raises(InvalidBindingError):
            self.cont.registrations.register(IRepository)

    def test_register_non_string_key_raises(self):
        with pytest.raises(InvalidBindingError):
            self.cont.registrations.register(IRepository, Repository, key=42)


class TestRegisterProtocolContracts(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()

    def test_register_structurally_conforming_service(self):
        self.cont.registrations.register(Greeter, English)

        greeter = self.cont.resolve(Greeter)

        assert isinstance(greeter, English)
        assert greeter.greet("Ada") == "Hello Ada"

    def test_register_runtime_checkable_protocol(self):
        self.cont.registrations.register(RuntimeGreeter, English)

        assert isinstance(self.cont.resolve(RuntimeGreeter), English)

    def test_register_service_missing_member_raises(self):
        class Mute:
            def whisper(self) -> None: ...

        with pytest.raises(InvalidBindingError) as ctx:
            self.cont.registrations.register(Greeter, Mute)

        assert "missing members: greet" in str(ctx.value)

    def test_register_service_with_wrong_arity_raises(self):
        class Impatient:
            def greet(self) -> str:
                return "Hi"

        with pytest.raises(InvalidBindingError):
            self.cont.registrations.register(Greeter, Impatient)

    def test_register_service_with_wrong_return_type_raises(self):
        class Counting:
            def greet(self, name: str) -> int:
                return len(name)

        with pytest.raises(InvalidBindingError):
            self.cont.registrations.register(Greeter, Counting)

    def test_register_service_with_more_optional_args_succeeds(self):
        class Polite:
            def greet(self, name: str, title: str = "Dr.") -> str:
                return f"Good day {title} {name}"

        self.cont.registrations.register(Greeter, Polite)

        assert self.cont.resolve(Greeter).greet("Ada") == "Good day Dr. Ada"

    def test_register_service_with_non_callable_member_raises(self):
        class NotCallable:
            greet = 123

        with pytest.raises(InvalidBindingError):
            self.cont.registrations.register(Greeter, NotCallable)


class TestBindingIdentity(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()

    def test_registering_same_binding_twice_keeps_one(self):
        self.cont.registrations.register(IRepository, Repository)
        self.cont.registrations.register(IRepository, Repository)

        assert len(self.cont.resolve_all(IRepository)) == 1

    def test_key_distinguishes_bindings(self):
        self.cont.registrations.register(IRepository, Repository)
        self.cont.registrations.register(IRepository, Repository, key="secondary")

        assert len(self.cont.resolve_all(IRepository)) == 2

    def test_first_registered_binding_wins_for_contract(self):
        class OtherRepository(IRepository):
            def get(self, key: str) -> int:
                return 2

        self.cont.registrations.register(IRepository, Repository)
        self.cont.registrations.register(IRepository, OtherRepository)

        assert isinstance(self.cont.resolve(IRepository), Repository)


class TestFactoryAndInstanceRegistration(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()

    def test_register_factory_by_key(self):
        self.cont.registrations.register_factory(lambda c: Repository(), key="repo")

        assert isinstance(self.cont.resolve("repo"), Repository)

    def test_register_factory_requires_type_or_key(self):
        with pytest.raises(InvalidBindingError):
            self.cont.registrations.register_factory(lambda c: Repository())

    def test_register_factory_requires_callable(self):
        with pytest.raises(InvalidBindingError):
            self.cont.registrations.register_factory(Repository(), key="repo")

    def test_register_factory_rejects_provided_type_that_is_not_a_class(self):
        with pytest.raises(InvalidBindingError):
            self.cont.registrations.register_factory(lambda c: Repository(), provides="repo")

        assert self.cont._kernel.nodes == ()

    def test_factory_bypasses_constructor_injection(self):
        class NeedsArgs:
            def __init__(self, value: int):
                self.value = value

        self.cont.registrations.register_factory(lambda c: NeedsArgs(3), provides=NeedsArgs)

        assert self.cont.resolve(NeedsArgs).value == 3

    def test_register_instance_by_key(self):
        repo = Repository()
        self.cont.registrations.register_instance(repo, key="repo")

        assert self.cont.resolve("repo") is repo

    def test_register_instance_not_conforming_to_contract_raises(self):
        with pytest.raises(InvalidBindingError):
            self.cont.registrations.register_instance(Unrelated(), provides=IRepository)

    def test_register_instance_not_assignable_to_provided_class_raises(self):
        with pytest.raises(InvalidBindingError):
            self.cont.registrations.register_instance(Unrelated(), provides=Repository)

    def test_register_instance_of_subclass_for_provided_class(self):
        class SpecialRepository(Repository): ...

        repo = SpecialRepository()
        self.cont.registrations.register_instance(repo, provides=Repository)

        assert self.cont.resolve(Repository) is repo


class TestWithLifetime(unittest.TestCase):
    def test_with_lifetime_without_registration_raises(self):
        with pytest.raises(InvalidOperationError):
            Container().registrations.with_lifetime(Lifetime.SINGLETON)

    def test_with_lifetime_applies_across_registration_builders(self):
        c = Container()
        c.registrations.register(IRepository, Repository)
        c.registrations.with_lifetime(Lifetime.SINGLETON)

        assert c.resolve(IRepository) is c.resolve(IRepository)

    def test_with_lifetime_accepts_lifetime_value(self):
        c = Container()
        c.registrations.register(IRepository, Repository).with_lifetime("singleton")

        assert c.resolve(IRepository) is c.resolve(IRepository)
