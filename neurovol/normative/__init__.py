"""Normative reference values and structure-name resolution."""

from .aliases import StructureAliasResolver
from .loader import (
    ReferenceDataError,
    get_alias_resolver,
    get_reference_store,
    load_alias_resolver,
    load_reference_store,
)
from .reference_store import AgeRange, NormativeEntry, NormativeReferenceStore, NormativeValue

__all__ = [
    "AgeRange",
    "NormativeEntry",
    "NormativeReferenceStore",
    "NormativeValue",
    "ReferenceDataError",
    "StructureAliasResolver",
    "get_alias_resolver",
    "get_reference_store",
    "load_alias_resolver",
    "load_reference_store",
]
