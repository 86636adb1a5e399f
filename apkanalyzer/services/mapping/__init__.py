"""Deobfuscation mapping service."""

from .service import load_symbol_map, parse_mapping, parse_seeds
from .symbol_map import SymbolMap

__all__ = ["SymbolMap", "load_symbol_map", "parse_mapping", "parse_seeds"]
