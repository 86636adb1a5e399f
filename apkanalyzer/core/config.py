"""
Configuration management for apkanalyzer.

Provides centralized, type-safe configuration with environment variable overrides
and sensible defaults for the decoders, the deobfuscation layer and report storage.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load .env file if it exists (looks in cwd and parent directories)
load_dotenv()


class AnalysisConfig(BaseModel):
    """Package tree and size estimation settings."""

    duplicate_class_policy: Literal["first_wins", "last_wins", "error"] = Field(
        default="first_wins", description="How the tree builder treats a class declared twice"
    )
    record_references: bool = Field(
        default=True, description="Record DEX member references into the usage record"
    )
    gzip_level: int = Field(default=9, ge=1, le=9, description="Compression level for download size")
    largest_children_limit: int = Field(default=10, ge=1, description="Default rows in package reports")


class MappingConfig(BaseModel):
    """Deobfuscation mapping settings."""

    mapping_path: Path | None = Field(default=None, description="ProGuard/R8 mapping.txt")
    seeds_path: Path | None = Field(default=None, description="ProGuard/R8 seeds.txt")
    strict: bool = Field(
        default=False, description="Abort when the mapping is malformed instead of proceeding without it"
    )


class StorageConfig(BaseModel):
    """Storage configuration for analysis reports."""

    backend: Literal["local"] = Field(default="local", description="Storage backend")
    base_path: Path = Field(default=Path("./reports"), description="Base path for local storage")


class Config(BaseModel):
    """Root configuration for apkanalyzer."""

    project_name: str = Field(default="apkanalyzer", description="Project identifier")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING", description="Logging level"
    )
    log_format: Literal["auto", "console", "json"] = Field(
        default="auto", description="Log renderer; auto picks console on a terminal, JSON otherwise"
    )
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    mapping: MappingConfig = Field(default_factory=MappingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    model_config = {"extra": "ignore"}

    @classmethod
    def from_env(cls) -> Config:
        """Create configuration from environment variables."""
        mapping_path = os.environ.get("APKA_MAPPING_PATH")
        seeds_path = os.environ.get("APKA_SEEDS_PATH")
        return cls(
            log_level=os.environ.get("APKA_LOG_LEVEL", "WARNING"),  # type: ignore
            log_format=os.environ.get("APKA_LOG_FORMAT", "auto"),  # type: ignore
            analysis=AnalysisConfig(
                duplicate_class_policy=os.environ.get("APKA_DUPLICATE_POLICY", "first_wins"),  # type: ignore
                record_references=os.environ.get("APKA_RECORD_REFERENCES", "true").lower() == "true",
                gzip_level=int(os.environ.get("APKA_GZIP_LEVEL", "9")),
            ),
            mapping=MappingConfig(
                mapping_path=Path(mapping_path) if mapping_path else None,
                seeds_path=Path(seeds_path) if seeds_path else None,
                strict=os.environ.get("APKA_MAPPING_STRICT", "false").lower() == "true",
            ),
            storage=StorageConfig(
                base_path=Path(os.environ.get("APKA_REPORTS_PATH", "./reports")),
            ),
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.from_env()
