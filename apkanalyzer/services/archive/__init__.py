"""APK archive service."""

from .service import ANDROID_MANIFEST_XML, RESOURCES_ARSC, ArchiveReader, download_size, file_size

__all__ = ["ANDROID_MANIFEST_XML", "RESOURCES_ARSC", "ArchiveReader", "download_size", "file_size"]
