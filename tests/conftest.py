"""Shared fixtures for the audio transcription tests."""

from __future__ import annotations

from pathlib import Path
from typing import Dict

import pytest

from vault_index import Vault


def write_files(root: Path, files: Dict[str, object]) -> None:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(str(content), encoding="utf-8")


@pytest.fixture
def make_vault(tmp_path: Path):
    """Build a vault under tmp_path from a {relative path: content} mapping."""

    def _make(files: Dict[str, object]) -> Vault:
        write_files(tmp_path, files)
        return Vault(tmp_path)

    return _make
