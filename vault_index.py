"""
vault_index.py

Filesystem view of an Obsidian vault and the lookup used to turn an audio
wikilink into a concrete file.

Resolution order:

1. The link text as a vault-relative path ('Recordings/standup.m4a').
2. Any file in the vault with the same file name, compared
   case-insensitively ('standup.m4a' -> 'Archive/2024/Standup.M4A').

The fallback returns the first match in the order the filesystem lists
files. That order is not sorted and can differ between machines, so two
files sharing a name resolve to whichever is listed first.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterator, Optional, Tuple, Union

from audio_links import AudioReference


@dataclass(frozen=True)
class VaultFile:
    """A regular file inside the vault, addressed by its vault-relative path."""
    path: str

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def extension(self) -> str:
        suffix = PurePosixPath(self.path).suffix
        return suffix[1:].lower() if suffix else ""


class Vault:
    """Read/write access to the notes and attachments under one root folder."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).expanduser().resolve()

    def __repr__(self) -> str:
        return f"Vault({str(self.root)!r})"

    # -- lookup ------------------------------------------------------------

    def _absolute(self, rel_path: str) -> Optional[Path]:
        """Vault-relative path -> absolute path, or None if it leaves the vault."""
        cleaned = rel_path.strip().replace("\\", "/").lstrip("/")
        if not cleaned:
            return None
        cand = (self.root / cleaned).resolve()
        try:
            cand.relative_to(self.root)
        except ValueError:
            return None
        return cand

    def relative_path(self, path: Union[str, Path]) -> str:
        return Path(path).resolve().relative_to(self.root).as_posix()

    def get_by_path(self, rel_path: str) -> Optional[VaultFile]:
        cand = self._absolute(rel_path)
        if cand is None or not cand.is_file():
            return None
        return VaultFile(path=cand.relative_to(self.root).as_posix())

    def list_files(self) -> Iterator[VaultFile]:
        """
        Walk every regular file in the vault.

        Dot-folders ('.obsidian', '.trash', '.git') are skipped. Files are
        yielded in filesystem order, not sorted.
        """
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            base = Path(dirpath)
            for filename in filenames:
                yield VaultFile(path=(base / filename).relative_to(self.root).as_posix())

    # -- content -----------------------------------------------------------

    def read_bytes(self, file: VaultFile) -> bytes:
        return (self.root / file.path).read_bytes()

    # newline="" keeps the note's own line endings; CRLF notes stay CRLF.

    def read_text(self, rel_path: str) -> str:
        with (self.root / rel_path).open("r", encoding="utf-8", newline="") as handle:
            return handle.read()

    def write_text(self, rel_path: str, text: str) -> None:
        with (self.root / rel_path).open("w", encoding="utf-8", newline="") as handle:
            handle.write(text)


def find_file_by_name(vault: Vault, filename: str) -> Optional[VaultFile]:
    """First file whose name matches case-insensitively; no sorting or tie-break."""
    wanted = filename.lower()
    for file in vault.list_files():
        if file.name.lower() == wanted:
            return file
    return None


def locate_audio_file(reference: AudioReference, vault: Vault) -> Tuple[Optional[VaultFile], bool]:
    """Return (file, by_name); by_name is True when the basename fallback matched."""
    # 1) Direct path
    file = vault.get_by_path(reference.raw)
    if file is not None:
        return file, False

    # 2) Vault-wide basename match
    file = find_file_by_name(vault, reference.basename)
    return file, file is not None


def resolve_audio_file(reference: AudioReference, vault: Vault) -> Optional[VaultFile]:
    return locate_audio_file(reference, vault)[0]
