"""APK analysis facade."""

from .service import ApkAnalyzer, ApkReport, decode_manifest, parse_manifest

__all__ = ["ApkAnalyzer", "ApkReport", "decode_manifest", "parse_manifest"]
