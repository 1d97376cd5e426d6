# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""
Tests for on-disk file inspection.
"""

import hashlib

import pytest

from applocker_synth.core.exceptions import ArtifactUnavailableError
from applocker_synth.core.file_inspector import FileInspector
from applocker_synth.core.generation_policy import FileInspectionPolicy


class TestComputeIdentity:
    def test_hash_and_size(self, tmp_path, no_signature_inspector):
        content = b"x" * 10_000
        target = tmp_path / "app.exe"
        target.write_bytes(content)
        identity = no_signature_inspector.compute_identity(str(target))
        assert identity.sha256 == hashlib.sha256(content).hexdigest().upper()
        assert identity.size == 10_000

    def test_small_chunks_same_digest(self, tmp_path):
        content = bytes(range(256)) * 100
        target = tmp_path / "app.exe"
        target.write_bytes(content)
        inspector = FileInspector(FileInspectionPolicy(chunk_size_bytes=1))
        assert inspector.compute_identity(str(target)).sha256 == hashlib.sha256(content).hexdigest().upper()

    def test_missing_file(self, tmp_path, no_signature_inspector):
        with pytest.raises(ArtifactUnavailableError):
            no_signature_inspector.compute_identity(str(tmp_path / "gone.exe"))

    def test_directory_is_unavailable(self, tmp_path, no_signature_inspector):
        with pytest.raises(ArtifactUnavailableError):
            no_signature_inspector.compute_identity(str(tmp_path))

    def test_size_limit(self, tmp_path):
        target = tmp_path / "big.exe"
        target.write_bytes(b"x" * 11)
        with pytest.raises(ArtifactUnavailableError, match="hashing limit"):
            FileInspector(FileInspectionPolicy(max_file_size_bytes=10)).compute_identity(str(target))


class TestReadPublisher:
    def test_without_reader_returns_none(self, tmp_path, no_signature_inspector):
        assert no_signature_inspector.read_publisher(str(tmp_path / "gone.exe")) is None

    def test_reader_receives_path(self, tmp_path):
        target = tmp_path / "signed.exe"
        target.write_bytes(b"MZ")
        seen = []

        def _reader(path):
            seen.append(path)
            return "O=Signed Corp"

        assert FileInspector(signature_reader=_reader).read_publisher(str(target)) == "O=Signed Corp"
        assert seen == [target]

    def test_reader_os_error_becomes_unavailable(self, tmp_path):
        target = tmp_path / "locked.exe"
        target.write_bytes(b"MZ")

        def _reader(path):
            raise OSError("sharing violation")

        with pytest.raises(ArtifactUnavailableError, match="sharing violation"):
            FileInspector(signature_reader=_reader).read_publisher(str(target))

    def test_missing_file_with_reader(self, tmp_path):
        inspector = FileInspector(signature_reader=lambda path: "O=X")
        with pytest.raises(ArtifactUnavailableError):
            inspector.read_publisher(str(tmp_path / "gone.exe"))
