# Copyright 2026 Cisco Systems, Inc.
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
On-disk identity lookup for artifacts that arrive without a hash or publisher.

This is the engine's only I/O boundary.  Reading Authenticode signatures is
platform specific, so the signature reader is a pluggable callable supplied by
the calling shell; hashing is done here with :mod:`hashlib`.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .exceptions import ArtifactUnavailableError
from .generation_policy import FileInspectionPolicy

logger = logging.getLogger(__name__)

SignatureReader = Callable[[Path], "str | None"]


@dataclass(frozen=True)
class FileIdentity:
    """What could be read from a physical file."""

    sha256: str | None = None
    size: int | None = None


class FileInspector:
    """Hashes files (and optionally reads their signer) for the synthesizer."""

    def __init__(
        self,
        policy: FileInspectionPolicy | None = None,
        signature_reader: SignatureReader | None = None,
    ):
        """
        Initialize inspector.

        Args:
            policy: Size limits for hashing. Built-in defaults when None.
            signature_reader: Returns the signer subject of a file, or None
                for unsigned files.  Signature lookup is skipped when None.
        """
        self.policy = policy or FileInspectionPolicy()
        self.signature_reader = signature_reader

    def read_publisher(self, path: str) -> str | None:
        """Signer subject of *path*, or None if unsigned or no reader is configured.

        Raises:
            ArtifactUnavailableError: If the file is missing or unreadable, or
                the reader fails on it for any reason.
        """
        if self.signature_reader is None:
            return None
        file_path = self._existing_file(path)
        try:
            return self.signature_reader(file_path)
        except Exception as e:
            raise ArtifactUnavailableError(f"Cannot read signature of {file_path.name}: {e}") from e

    def compute_identity(self, path: str) -> FileIdentity:
        """Hash *path* and report its size.

        Raises:
            ArtifactUnavailableError: If the file is missing, unreadable or
                larger than the configured limit.
        """
        file_path = self._existing_file(path)
        try:
            size = file_path.stat().st_size
            if size > self.policy.max_file_size_bytes:
                raise ArtifactUnavailableError(
                    f"{file_path.name} is {size} bytes, above the {self.policy.max_file_size_bytes} byte hashing limit"
                )
            return FileIdentity(sha256=self._calculate_sha256(file_path), size=size)
        except OSError as e:
            raise ArtifactUnavailableError(f"Cannot read {file_path.name}: {e}") from e

    def _existing_file(self, path: str) -> Path:
        file_path = Path(path)
        try:
            if not file_path.is_file():
                raise ArtifactUnavailableError(f"{file_path.name} is no longer available")
        except OSError as e:
            raise ArtifactUnavailableError(f"Cannot stat {file_path.name}: {e}") from e
        return file_path

    def _calculate_sha256(self, file_path: Path) -> str:
        """SHA-256 of a file as upper-case hex, read in chunks."""
        sha256_hash = hashlib.sha256()
        chunk_size = max(self.policy.chunk_size_bytes, 4096)
        with open(file_path, "rb") as f:
            for byte_block in iter(lambda: f.read(chunk_size), b""):
                sha256_hash.update(byte_block)
        return sha256_hash.hexdigest().upper()
