"""Test configuration for apkanalyzer."""

import io
import tempfile
import zipfile
from pathlib import Path

import pytest

from apkanalyzer.core.config import Config
from tests.builders import SAMPLE_MANIFEST, compile_xml, make_dex, make_resource_table


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests.

    Yields:
        Path: A Path object pointing to the temporary directory.
            The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def manifest_bytes():
    """Compiled binary AndroidManifest.xml with one launcher activity."""
    return compile_xml(SAMPLE_MANIFEST)


@pytest.fixture
def resource_table_bytes():
    return make_resource_table()


@pytest.fixture
def sample_apk_bytes(manifest_bytes, resource_table_bytes):
    """Create APK bytes with a binary manifest, a resource table and two DEX files.

    Returns:
        bytes: The raw bytes of the ZIP archive.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("AndroidManifest.xml", manifest_bytes)
        zf.writestr("resources.arsc", resource_table_bytes)
        zf.writestr("classes2.dex", make_dex(methods=3, fields=1, classes=1))
        zf.writestr("classes.dex", make_dex())
        zf.writestr("res/raw/notes.txt", b"hello apk")
        zf.writestr("assets/", b"")
    return buffer.getvalue()


@pytest.fixture
def sample_apk(temp_dir, sample_apk_bytes):
    """Create a sample APK file for testing.

    Returns:
        Path: The path to the created sample APK file.
    """
    apk_path = temp_dir / "sample.apk"
    apk_path.write_bytes(sample_apk_bytes)
    return apk_path


@pytest.fixture
def config(temp_dir):
    """Default configuration with reports written below the temporary directory."""
    cfg = Config()
    cfg.storage.base_path = temp_dir / "reports"
    return cfg


@pytest.fixture
def mapping_file(temp_dir):
    path = temp_dir / "mapping.txt"
    path.write_text(
        "# compiler: R8\n"
        "com.example.Foo -> a.b.X:\n"
        "    int count -> a\n"
        "    1:4:void run(int):12:15 -> b\n"
        "com.example.util.Helper -> a.c:\n"
        "    java.lang.String format(java.lang.String) -> a\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def seeds_file(temp_dir):
    path = temp_dir / "seeds.txt"
    path.write_text(
        "com.example.Foo\n"
        "com.example.Foo: void run(int)\n"
        "com.example.Foo: int count\n",
        encoding="utf-8",
    )
    return path
