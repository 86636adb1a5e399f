"""Package tree service."""

from .builder import (
    DuplicateClassPolicy,
    DuplicateClassWarning,
    PackageTreeBuilder,
    PackageTreeResult,
    build_package_tree,
    split_class_name,
)

__all__ = [
    "DuplicateClassPolicy",
    "DuplicateClassWarning",
    "PackageTreeBuilder",
    "PackageTreeResult",
    "build_package_tree",
    "split_class_name",
]
