"""Tests for the instrument type registry."""

from __future__ import annotations

import pytest

from finstore.config import INSTRUMENT_TYPES
from finstore.records import EquityRecord, converter_for
from finstore.registry import TypeBinding, TypeRegistry, UnregisteredType, build_registry


def test_destinations_default_to_key(fake_source) -> None:
    registry = build_registry(fake_source)
    assert registry.keys() == INSTRUMENT_TYPES
    assert len(registry) == 8
    for key in registry.keys():
        binding = registry.lookup(key)
        assert binding is not None
        expected = "indices" if key == "index" else key
        assert binding.destination == expected


def test_lookup_unknown_returns_none(fake_source) -> None:
    registry = build_registry(fake_source)
    assert registry.lookup("widget") is None
    assert "widget" not in registry
    # Keys are matched case-insensitively
    assert registry.lookup(" EQUITY ") is registry.lookup("equity")
    assert "Equity" in registry


def test_resolve_registered_and_aliased(fake_source) -> None:
    registry = build_registry(fake_source)
    assert registry.resolve("etf") is registry.lookup("etf")

    ecn = registry.resolve("ecnquote")
    assert isinstance(ecn, UnregisteredType)
    assert ecn.destination == "ecnquote"
    assert ecn.fallback is registry.lookup("equity")

    unknown = registry.resolve("warrant")
    assert isinstance(unknown, UnregisteredType)
    assert unknown.destination == "warrant"
    assert unknown.fallback is None


def test_registry_rejects_duplicates() -> None:
    convert = converter_for(EquityRecord)
    binding = TypeBinding("equity", "equity", convert, lambda symbol: None)
    with pytest.raises(ValueError):
        TypeRegistry([binding, binding])


def test_registry_rejects_dangling_alias() -> None:
    binding = TypeBinding("equity", "equity", converter_for(EquityRecord), lambda symbol: None)
    with pytest.raises(ValueError):
        TypeRegistry([binding], {"ecnquote": "stock"})


def test_registry_is_read_only(fake_source) -> None:
    registry = build_registry(fake_source)
    with pytest.raises(TypeError):
        registry._bindings["widget"] = registry.lookup("equity")  # type: ignore[index]
