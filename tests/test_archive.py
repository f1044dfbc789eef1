"""Test the .apkg archive writer."""

import zipfile

import pytest

from tidyapkg.core.archive import ArchiveWriter
from tidyapkg.core.errors import ArchiveWriteError


def test_writes_files_and_blobs(tmp_path):
    source = tmp_path / "source.bin"
    source.write_bytes(b"\x00\x01" * 1000)
    package = tmp_path / "out.apkg"

    with ArchiveWriter(package) as z:
        z.write(source, "0", compress_type=zipfile.ZIP_STORED)
        z.write_str("media", '{"0": "source.bin"}')
        assert z.entries() == ["0", "media"]

    with zipfile.ZipFile(package) as zip_file:
        assert zip_file.read("0") == source.read_bytes()
        assert zip_file.read("media") == b'{"0": "source.bin"}'
        assert zip_file.getinfo("0").compress_type == zipfile.ZIP_STORED
        assert zip_file.getinfo("media").compress_type == zipfile.ZIP_DEFLATED


def test_text_blobs_are_utf8(tmp_path):
    package = tmp_path / "out.apkg"

    with ArchiveWriter(package) as z:
        z.write_str("media", '{"0": "café.mp3"}')

    with zipfile.ZipFile(package) as zip_file:
        assert zip_file.read("media").decode("utf-8") == '{"0": "café.mp3"}'


def test_failed_entry_still_leaves_a_readable_archive(tmp_path):
    package = tmp_path / "out.apkg"
    writer = ArchiveWriter(package)
    writer.write_str("first", b"ok")

    with pytest.raises(ArchiveWriteError):
        writer.write(tmp_path / "missing.bin", "second")
    writer.close()

    with zipfile.ZipFile(package) as zip_file:
        assert zip_file.namelist() == ["first"]


def test_context_manager_releases_handle_on_error(tmp_path):
    package = tmp_path / "out.apkg"

    with pytest.raises(ArchiveWriteError):
        with ArchiveWriter(package) as z:
            z.write(tmp_path / "missing.bin", "0")

    with pytest.raises(ArchiveWriteError):
        z.write_str("late", "too late")
    assert zipfile.is_zipfile(package)


def test_close_is_idempotent(tmp_path):
    writer = ArchiveWriter(tmp_path / "out.apkg")
    writer.close()
    writer.close()


def test_unwritable_destination(tmp_path):
    with pytest.raises(ArchiveWriteError):
        ArchiveWriter(tmp_path / "no" / "such" / "dir" / "out.apkg")
