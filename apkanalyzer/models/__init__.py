"""
apkanalyzer data models.

Pydantic models for everything reported to callers (archive entries, manifest,
DEX statistics, package summaries) and plain dataclasses for the in-memory
package tree and DEX symbol tables.
"""

from .apk import ArchiveEntry, ComponentInfo, DexFileStats, IntentFilterInfo, ManifestData, ProviderInfo
from .dex import (
    ClassSymbols,
    DexSymbols,
    DexSymbolSource,
    MemberKind,
    MemberReference,
    descriptor_to_class_name,
    descriptor_to_java_type,
    java_member_signature,
)
from .tree import Metric, NodeKind, PackageNode, PackageSummary, PackageTree

__all__ = [
    # APK models
    "ArchiveEntry",
    "ComponentInfo",
    "DexFileStats",
    "IntentFilterInfo",
    "ManifestData",
    "ProviderInfo",
    # DEX symbols
    "ClassSymbols",
    "DexSymbols",
    "DexSymbolSource",
    "MemberKind",
    "MemberReference",
    "descriptor_to_class_name",
    "descriptor_to_java_type",
    "java_member_signature",
    # Package tree
    "Metric",
    "NodeKind",
    "PackageNode",
    "PackageSummary",
    "PackageTree",
]
