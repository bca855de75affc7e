"""Instrument type registry.

The registry maps each canonical instrument type key to a
:class:`TypeBinding`: the destination table for that type, the
retriever fetching raw instruments and the converter turning them into
storage records.  It is built once at startup and is read-only
afterwards.

Looking up an observed type that has no binding yields an
:class:`UnregisteredType`.  Such a type is written into a table named
after itself, provided a converter alias exists for it (for example
``ecnquote`` quotes are parsed as equities); otherwise symbols of that
type cannot be converted and are skipped by the router.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

from .config import CONVERTER_ALIASES, DESTINATION_ALIASES, INSTRUMENT_TYPES
from .providers.base import QuoteSource
from .providers.models import RawInstrument
from .records import INSTRUMENT_RECORDS, Converter, converter_for

Retriever = Callable[[str], Optional[RawInstrument]]


@dataclass(frozen=True)
class TypeBinding:
    """Converter/retriever pair and destination for one instrument type."""

    key: str
    destination: str
    convert: Converter
    retrieve: Retriever


@dataclass(frozen=True)
class UnregisteredType:
    """An observed instrument type without a binding of its own.

    Attributes:
        key: The observed type.
        destination: The table records of this type are written into,
            always equal to ``key``.
        fallback: The binding whose converter and retriever handle this
            type, or ``None`` if the type cannot be converted.
    """

    key: str
    destination: str
    fallback: Optional[TypeBinding] = None


Resolution = Union[TypeBinding, UnregisteredType]


def _normalise(key: str) -> str:
    return key.strip().lower()


class TypeRegistry:
    """Fixed mapping from instrument type key to :class:`TypeBinding`."""

    def __init__(
        self,
        bindings: Iterable[TypeBinding],
        converter_aliases: Optional[Mapping[str, str]] = None,
    ) -> None:
        mapping: Dict[str, TypeBinding] = {}
        for binding in bindings:
            if binding.key in mapping:
                raise ValueError(f"Duplicate binding for instrument type {binding.key}")
            mapping[binding.key] = binding
        aliases = dict(converter_aliases or {})
        missing = sorted(target for target in aliases.values() if target not in mapping)
        if missing:
            raise ValueError(f"Converter aliases point at unregistered types {missing}")
        self._bindings: Mapping[str, TypeBinding] = MappingProxyType(mapping)
        self._aliases: Mapping[str, str] = MappingProxyType(aliases)

    def lookup(self, key: str) -> Optional[TypeBinding]:
        """Return the binding for ``key`` or ``None`` if it is not registered."""
        return self._bindings.get(_normalise(key))

    def resolve(self, observed: str) -> Resolution:
        """Resolve an observed instrument type.

        Registered types resolve to their binding.  Anything else resolves
        to an :class:`UnregisteredType` whose destination is the observed
        type, with the aliased binding as fallback when one exists.
        """
        key = _normalise(observed)
        binding = self._bindings.get(key)
        if binding is not None:
            return binding
        alias = self._aliases.get(key)
        fallback = self._bindings[alias] if alias is not None else None
        return UnregisteredType(key=key, destination=key, fallback=fallback)

    def keys(self) -> Tuple[str, ...]:
        return tuple(self._bindings)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and _normalise(key) in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)


def build_registry(source: QuoteSource) -> TypeRegistry:
    """Build the registry for all canonical instrument types.

    Every type retrieves through ``source.get_instrument`` and converts
    with the record model registered for it in
    :data:`finstore.records.INSTRUMENT_RECORDS`.
    """
    bindings = [
        TypeBinding(
            key=key,
            destination=DESTINATION_ALIASES.get(key, key),
            convert=converter_for(INSTRUMENT_RECORDS[key]),
            retrieve=source.get_instrument,
        )
        for key in INSTRUMENT_TYPES
    ]
    return TypeRegistry(bindings, CONVERTER_ALIASES)


__all__ = [
    "TypeBinding",
    "UnregisteredType",
    "TypeRegistry",
    "build_registry",
]
