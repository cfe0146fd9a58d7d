"""Alias tables for countries, regions, industries, languages and other categories."""

from .registry import AliasEntry, AliasHit, AliasRegistry, AliasTable, default_registry

__all__ = [
    "AliasEntry",
    "AliasHit",
    "AliasRegistry",
    "AliasTable",
    "default_registry",
]
