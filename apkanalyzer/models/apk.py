"""
APK-related data models.

These models represent what the facade reports about a package: archive
entries with their sizes, the decoded manifest and per-DEX statistics.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ArchiveEntry(BaseModel):
    """One entry of the APK archive."""

    path: str = Field(description="Entry path inside the archive")
    raw_size: int = Field(default=0, description="Uncompressed size in bytes")
    download_size: int = Field(default=0, description="Compressed size as stored in the archive")
    is_directory: bool = Field(default=False)

    @property
    def extension(self) -> str:
        """File extension of the entry without the dot (e.g. 'dex')."""
        name = self.path.rsplit("/", 1)[-1]
        return name.rsplit(".", 1)[-1] if "." in name else ""


class IntentFilterInfo(BaseModel):
    """Information about an Intent filter."""

    actions: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)


class ComponentInfo(BaseModel):
    """An application component declared in the manifest."""

    name: str = Field(description="Class name as declared (may be relative, e.g. '.MainActivity')")
    exported: bool | None = Field(default=None, description="Explicit android:exported value")
    intent_filters: list[IntentFilterInfo] = Field(default_factory=list)

    @property
    def simple_name(self) -> str:
        """Class name without package (e.g. 'MainActivity' from 'com.example.MainActivity')."""
        return self.name.split(".")[-1]

    @property
    def is_launcher(self) -> bool:
        return any(
            "android.intent.action.MAIN" in f.actions and "android.intent.category.LAUNCHER" in f.categories
            for f in self.intent_filters
        )


class ProviderInfo(ComponentInfo):
    """Information about a Content Provider."""

    authorities: list[str] = Field(default_factory=list)


class ManifestData(BaseModel):
    """Parsed AndroidManifest.xml data."""

    package_name: str = Field(description="Application package name")
    version_code: int | None = Field(default=None)
    version_name: str | None = Field(default=None)
    min_sdk_version: int | None = Field(default=None)
    target_sdk_version: int | None = Field(default=None)
    application_label: str | None = Field(default=None)

    permissions: list[str] = Field(default_factory=list)
    activities: list[ComponentInfo] = Field(default_factory=list)
    services: list[ComponentInfo] = Field(default_factory=list)
    receivers: list[ComponentInfo] = Field(default_factory=list)
    providers: list[ProviderInfo] = Field(default_factory=list)
    uses_features: list[str] = Field(default_factory=list)

    @property
    def launcher_activity(self) -> ComponentInfo | None:
        """Get the main launcher activity.

        Returns:
            ComponentInfo | None: The activity whose intent filter combines
                MAIN and LAUNCHER, or None if there is none.
        """
        for activity in self.activities:
            if activity.is_launcher:
                return activity
        return None


class DexFileStats(BaseModel):
    """Definition and reference counts of one DEX file."""

    file_name: str
    class_count: int = 0
    defined_method_count: int = 0
    defined_field_count: int = 0
    referenced_method_count: int = Field(default=0, description="Size of the method_ids table")
    referenced_field_count: int = Field(default=0, description="Size of the field_ids table")
    string_count: int = 0
    type_count: int = 0
    file_size: int = 0

    # 65536 method references is the per-file limit of the format
    @property
    def method_reference_headroom(self) -> int:
        return 0x10000 - self.referenced_method_count
