"""Closed failure domains.

A failure domain is declared once, as a class body listing its variants:

    class VendingFailure(FailureDomain):
        InvalidSelection = variant()
        InsufficientFunds = variant(required=Decimal)
        OutOfStock = variant()

Defining the class seals it. Every ``variant(...)`` is replaced by a frozen
dataclass nested under the domain (``VendingFailure.InsufficientFunds``) that
subclasses the domain, so ``isinstance(f, VendingFailure)`` holds for all of
its variants. The set of variants is fixed from then on: subclassing the
domain, or one of its variants, raises ``DefinitionError``.
"""

from __future__ import annotations

import dataclasses
from decimal import Decimal
from enum import Enum
from fractions import Fraction
import types
from typing import Any, ClassVar, Union, get_args, get_origin

from recourse.errors import DefinitionError

# Payload fields hold value data only; mutable containers are rejected up front.
_IMMUTABLE_TYPES: tuple[type, ...] = (
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    Decimal,
    Fraction,
    tuple,
    frozenset,
    type(None),
)

# Field types that also accept a plain int (coerced on construction).
_INT_COERCIBLE: frozenset[type] = frozenset({float, Decimal, Fraction})

_RESERVED_FIELDS = frozenset({"tag", "domain", "payload"})


@dataclasses.dataclass(frozen=True, slots=True)
class VariantSpec:
    """Placeholder left in a domain body by ``variant()`` until the domain is sealed."""

    fields: tuple[tuple[str, Any], ...]


def variant(**fields: Any) -> VariantSpec:
    """Declare a failure variant and its payload fields (``name=type``)."""
    return VariantSpec(tuple(fields.items()))


def _members(tp: Any) -> tuple[Any, ...]:
    """Split a union annotation into its member types."""
    if get_origin(tp) in (Union, types.UnionType):
        return get_args(tp)
    return (tp,)


def _type_name(tp: Any) -> str:
    return " | ".join(getattr(m, "__name__", repr(m)) for m in _members(tp))


def _is_immutable_type(tp: Any) -> bool:
    members = _members(tp)
    if len(members) > 1:
        return all(_is_immutable_type(m) for m in members)
    if not isinstance(tp, type):
        return False
    if issubclass(tp, _IMMUTABLE_TYPES) or issubclass(tp, Enum):
        return True
    if issubclass(tp, FailureDomain):
        return True
    return dataclasses.is_dataclass(tp) and tp.__dataclass_params__.frozen


def is_variant(obj: Any) -> bool:
    """Return True if *obj* is a variant class of some failure domain."""
    return (
        isinstance(obj, type) and issubclass(obj, FailureDomain) and "tag" in vars(obj)
    )


def is_domain(obj: Any) -> bool:
    """Return True if *obj* is a sealed failure domain class."""
    return (
        isinstance(obj, type)
        and issubclass(obj, FailureDomain)
        and "_variants" in vars(obj)
    )


def is_failure(value: Any) -> bool:
    """Return True if *value* is a failure value (an instance of a variant)."""
    return isinstance(value, FailureDomain)


class FailureDomain:
    """Base class for closed failure domains.

    Variant instances expose ``tag`` (the variant name), ``domain`` (the
    domain class) and ``payload`` (a dict of field values). Equality and
    hashing go by variant plus payload.
    """

    tag: ClassVar[str]
    domain: ClassVar[type[FailureDomain]]
    _variants: ClassVar[dict[str, type[FailureDomain]]]
    _sealed: ClassVar[bool]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        failure_bases = [b for b in cls.__bases__ if issubclass(b, FailureDomain)]
        if failure_bases == [FailureDomain]:
            _seal(cls)
            return
        if (
            len(failure_bases) == 1
            and is_domain(failure_bases[0])
            and not failure_bases[0]._sealed
        ):
            # A variant being built while its domain is sealed.
            return
        names = ", ".join(b.__qualname__ for b in failure_bases)
        raise DefinitionError(
            f"{cls.__qualname__} cannot extend {names}: failure domains are closed",
            hint="Declare every variant inside the domain's class body.",
        )

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        # Variants replace this with their dataclass __init__.
        del args, kwargs
        raise DefinitionError(
            f"{type(self).__qualname__} is a failure domain, not a variant",
            hint=f"Instantiate one of {type(self).__qualname__}.variants().",
        )

    def __post_init__(self) -> None:
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            where = f"{type(self).__qualname__}.{f.name}"
            if not isinstance(value, _members(f.type)):
                value = _coerced(value, f.type)
                if value is None:
                    raise TypeError(
                        f"{where} expects {_type_name(f.type)}, "
                        f"got {type(getattr(self, f.name)).__name__}"
                    )
                object.__setattr__(self, f.name, value)
            try:
                hash(value)
            except TypeError as e:
                # Containers pass the type check whatever they hold.
                raise TypeError(f"{where} holds a mutable value: {value!r}") from e

    @property
    def payload(self) -> dict[str, Any]:
        """Field values of this failure, in declaration order."""
        return {f.name: getattr(self, f.name) for f in dataclasses.fields(self)}

    @classmethod
    def variants(cls) -> tuple[type[FailureDomain], ...]:
        """Return the domain's variant classes in definition order."""
        return tuple(cls.domain._variants.values())

    @classmethod
    def variant_named(cls, name: str) -> type[FailureDomain]:
        """Look up a variant class by name."""
        return cls.domain._variants[name]


def _coerced(value: Any, tp: Any) -> Any:
    """Convert a plain int for a float, Decimal or Fraction field, else None."""
    if not isinstance(value, int) or isinstance(value, bool):
        return None
    for member in _members(tp):
        if member in _INT_COERCIBLE:
            return member(value)
    return None


def _seal(domain: type[FailureDomain]) -> None:
    specs = [(n, v) for n, v in vars(domain).items() if isinstance(v, VariantSpec)]
    if not specs:
        raise DefinitionError(
            f"Failure domain {domain.__qualname__} declares no variants",
            hint="List variants in the class body, e.g. `NotFound = variant()`.",
        )

    domain.domain = domain
    domain._variants = {}
    domain._sealed = False
    try:
        for name, spec in specs:
            built = _build_variant(domain, name, spec)
            domain._variants[name] = built
            setattr(domain, name, built)
    finally:
        domain._sealed = True


def _build_variant(
    domain: type[FailureDomain], name: str, spec: VariantSpec
) -> type[FailureDomain]:
    where = f"{domain.__qualname__}.{name}"
    reserved = name in _RESERVED_FIELDS or hasattr(FailureDomain, name)
    if name.startswith("_") or reserved:
        raise DefinitionError(
            f"{where}: variant name {name!r} is reserved",
            hint="Use CapWords variant names such as `OutOfStock`.",
        )
    for field_name, tp in spec.fields:
        if field_name.startswith("_") or field_name in _RESERVED_FIELDS:
            raise DefinitionError(
                f"{where}: field name {field_name!r} is reserved",
                hint="Avoid leading underscores and the names tag, domain, payload.",
            )
        if not _is_immutable_type(tp):
            raise DefinitionError(
                f"{where}.{field_name}: {tp!r} is not an immutable value type",
                hint="Use str, numbers, Decimal, tuples or frozen dataclasses.",
            )

    return dataclasses.make_dataclass(
        name,
        list(spec.fields),
        bases=(domain,),
        namespace={"__qualname__": where, "tag": name},
        frozen=True,
        module=domain.__module__,
    )
