"""
Tests for static binary provisioning.
"""

import io
import os
import tarfile

import pytest

from m4a2mp3.provision import ProvisionError, extract_binaries, provision


def _build_tarball(path, names=("ffmpeg", "ffprobe")):
    with tarfile.open(path, "w:xz") as tar:
        for name in names:
            payload = f"#!/bin/sh\necho {name}\n".encode()
            info = tarfile.TarInfo(f"ffmpeg-7.0-amd64-static/{name}")
            info.size = len(payload)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(payload))
        readme = b"static build"
        info = tarfile.TarInfo("ffmpeg-7.0-amd64-static/readme.txt")
        info.size = len(readme)
        tar.addfile(info, io.BytesIO(readme))
    return path


class TestExtractBinaries:

    def test_strips_top_directory(self, tmp_path):
        archive = _build_tarball(tmp_path / "ffmpeg.tar.xz")
        bin_dir = tmp_path / "bin"

        paths = extract_binaries(archive, bin_dir)

        assert set(paths) == {"ffmpeg", "ffprobe"}
        assert (bin_dir / "ffmpeg").read_bytes().startswith(b"#!/bin/sh")
        assert os.access(bin_dir / "ffprobe", os.X_OK)
        assert not (bin_dir / "readme.txt").exists()

    def test_missing_member(self, tmp_path):
        archive = _build_tarball(tmp_path / "ffmpeg.tar.xz", names=("ffmpeg",))
        with pytest.raises(ProvisionError):
            extract_binaries(archive, tmp_path / "bin")

    def test_not_an_archive(self, tmp_path):
        archive = tmp_path / "bogus.tar.xz"
        archive.write_bytes(b"<html>not found</html>")
        with pytest.raises(ProvisionError):
            extract_binaries(archive, tmp_path / "bin")


class TestProvision:

    def test_download_and_extract(self, http_server, test_media_dir, tmp_path):
        _build_tarball(test_media_dir / "ffmpeg-release-amd64-static.tar.xz")
        bin_dir = tmp_path / "bin"

        paths = provision(bin_dir, url=f"{http_server}/ffmpeg-release-amd64-static.tar.xz")

        assert paths["ffmpeg"] == bin_dir / "ffmpeg"
        assert sorted(p.name for p in bin_dir.iterdir()) == ["ffmpeg", "ffprobe"]

    def test_skips_when_present(self, tmp_path):
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir()
        (bin_dir / "ffmpeg").write_bytes(b"old")
        (bin_dir / "ffprobe").write_bytes(b"old")

        # URL is never contacted
        paths = provision(bin_dir, url="http://127.0.0.1:9/never")

        assert paths["ffmpeg"].read_bytes() == b"old"

    def test_http_error(self, http_server, tmp_path):
        with pytest.raises(ProvisionError):
            provision(tmp_path / "bin", url=f"{http_server}/status/404", force=True)
