"""Tests for the filesystem vault and audio link resolution."""

from __future__ import annotations

from audio_links import AudioReference
from conftest import write_files
from vault_index import Vault, VaultFile, find_file_by_name, locate_audio_file, resolve_audio_file


class NoScanVault(Vault):
    """Vault that fails the test if anything lists the whole vault."""

    def list_files(self):
        raise AssertionError("list_files() should not be called")


def test_basename_fallback_finds_nested_file(make_vault) -> None:
    vault = make_vault({"folder/clip.m4a": b"\x00"})
    found = resolve_audio_file(AudioReference(raw="clip.m4a"), vault)
    assert found == VaultFile(path="folder/clip.m4a")


def test_exact_path_does_not_scan_vault(make_vault) -> None:
    make_vault({"folder/clip.m4a": b"\x00", "other/clip.m4a": b"\x01"})
    vault = NoScanVault(make_vault({}).root)
    found = resolve_audio_file(AudioReference(raw="folder/clip.m4a"), vault)
    assert found is not None
    assert found.path == "folder/clip.m4a"


def test_basename_match_is_case_insensitive(make_vault) -> None:
    vault = make_vault({"Archive/Standup.M4A": b"\x00"})
    found = resolve_audio_file(AudioReference(raw="Old/standup.m4a"), vault)
    assert found is not None
    assert found.path == "Archive/Standup.M4A"
    assert found.extension == "m4a"


def test_not_found_anywhere(make_vault) -> None:
    vault = make_vault({"folder/other.m4a": b"\x00", "note.md": "x"})
    assert resolve_audio_file(AudioReference(raw="missing.m4a"), vault) is None


def test_folder_is_not_a_match(make_vault) -> None:
    vault = make_vault({"clip.m4a/inside.txt": "x"})
    assert vault.get_by_path("clip.m4a") is None
    assert resolve_audio_file(AudioReference(raw="clip.m4a"), vault) is None


def test_duplicate_names_resolve_to_one_of_them(make_vault) -> None:
    # Listing order decides; only assert that one of the candidates wins.
    vault = make_vault({"a/dup.m4a": b"1", "b/dup.m4a": b"2"})
    found = find_file_by_name(vault, "DUP.m4a")
    assert found is not None
    assert found.path in {"a/dup.m4a", "b/dup.m4a"}


def test_get_by_path_stays_inside_vault(tmp_path) -> None:
    write_files(tmp_path, {"vault/inner/clip.m4a": b"\x00", "outside.m4a": b"\x00"})
    vault = Vault(tmp_path / "vault")
    assert vault.get_by_path("../outside.m4a") is None
    assert vault.get_by_path("") is None
    assert vault.get_by_path("/inner/clip.m4a") == VaultFile(path="inner/clip.m4a")


def test_list_files_skips_dot_folders(make_vault) -> None:
    vault = make_vault({
        ".obsidian/workspace.json": "{}",
        ".trash/old.m4a": b"\x00",
        "notes/a.md": "a",
        "b.m4a": b"\x00",
    })
    paths = sorted(f.path for f in vault.list_files())
    assert paths == ["b.m4a", "notes/a.md"]


def test_read_and_write_round_trip(make_vault) -> None:
    vault = make_vault({"note.md": "hello", "clip.m4a": b"\x01\x02"})
    assert vault.read_bytes(VaultFile(path="clip.m4a")) == b"\x01\x02"
    vault.write_text("note.md", "héllo\n")
    assert vault.read_text("note.md") == "héllo\n"


def test_locate_reports_which_step_matched(make_vault) -> None:
    vault = make_vault({"a.m4a": b"A", "Audio/b.m4a": b"B"})
    assert locate_audio_file(AudioReference(raw="/a.m4a"), vault) == (VaultFile(path="a.m4a"), False)
    assert locate_audio_file(AudioReference(raw="b.m4a"), vault) == (VaultFile(path="Audio/b.m4a"), True)
    assert locate_audio_file(AudioReference(raw="c.m4a"), vault) == (None, False)


def test_crlf_text_round_trip(make_vault, tmp_path) -> None:
    vault = make_vault({})
    (tmp_path / "note.md").write_bytes(b"a\r\nb\r\n")
    text = vault.read_text("note.md")
    assert text == "a\r\nb\r\n"
    vault.write_text("note.md", text + "c\n")
    assert (tmp_path / "note.md").read_bytes() == b"a\r\nb\r\nc\n"
