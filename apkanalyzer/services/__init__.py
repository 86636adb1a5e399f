"""apkanalyzer services: archive access, DEX reading, deobfuscation, package trees and the facade."""

from .analyzer import ApkAnalyzer, ApkReport
from .archive import ArchiveReader
from .mapping import SymbolMap, load_symbol_map
from .packages import DuplicateClassPolicy, PackageTreeBuilder, build_package_tree

__all__ = [
    "ApkAnalyzer",
    "ApkReport",
    "ArchiveReader",
    "SymbolMap",
    "load_symbol_map",
    "DuplicateClassPolicy",
    "PackageTreeBuilder",
    "build_package_tree",
]
