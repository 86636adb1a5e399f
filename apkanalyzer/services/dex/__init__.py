"""DEX reading service."""

from .reader import DEX_READ_ERRORS, AndroguardDexSource, DexHeader, dex_file_stats

__all__ = ["DEX_READ_ERRORS", "AndroguardDexSource", "DexHeader", "dex_file_stats"]
