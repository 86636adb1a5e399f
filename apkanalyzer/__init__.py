"""
apkanalyzer: package-level statistics for Android APKs.

Decodes the compiled manifest and resource table, reads DEX symbol tables and
builds a deobfuscated package tree with aggregated method, field and
reference counts.
"""

__version__ = "1.0.0"
__author__ = "apkanalyzer Team"
