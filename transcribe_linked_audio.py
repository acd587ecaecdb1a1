#!/usr/bin/env python3
"""
transcribe_linked_audio.py

Transcribe the audio attachments linked from an Obsidian note and splice
the transcripts into the note.

Overview:

1. Read the note and collect every [[clip.m4a]] / ![[clip.m4a]] link whose
   extension is in the audio allow-list (default: .m4a).
2. For each link, in order:
   - Resolve it to a file in the vault (exact path, then file name anywhere
     in the vault, case-insensitive).
   - Send the audio to Gemini for a transcript.
   - Ask Gemini for a short title (falls back to "Transcript for <file>").
   - Remove the first occurrence of the original link from the note and
     append a new section:

         # <title>
         ![[clip.m4a]]

         <transcript>

   - Save the note before moving on to the next link, so everything already
     transcribed survives a later failure.
3. Links that cannot be found or transcribed are reported and skipped; the
   rest of the batch carries on.

Preparation:

- Create a .env file in the working directory (or export env vars).
- Set GEMINI_API_KEY to a key from Google AI Studio.
- Optional: GEMINI_MODEL, GEMINI_API_BASE, AUDIO_EXTENSIONS (e.g. "m4a,mp3"),
  TRANSCRIBE_PROMPT.

USAGE:

    # Note inside the current folder's vault
    python transcribe_linked_audio.py "Meetings/2024-05-02 Standup.md" --root ~/obsidian-vault

    # Also pick up .mp3 and .wav links, skip title generation
    python transcribe_linked_audio.py note.md --audio-ext mp3 --audio-ext wav --no-titles
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

from dotenv import load_dotenv

from audio_links import DEFAULT_AUDIO_EXTS, AudioReference, extract_audio_links, normalize_extensions
from gemini_api import (
    DEFAULT_BASE_URL,
    DEFAULT_MODEL,
    DEFAULT_TIMEOUT_S,
    DEFAULT_TRANSCRIBE_PROMPT,
    GeminiClient,
)
from vault_index import Vault, locate_audio_file

# ---------------------------------------------------------------------------
# CONFIG
# ---------------------------------------------------------------------------

LOGGER_NAME = "transcribe_audio"

DEFAULT_HEADING = "Transcript for {basename}"

# Audio MIME types that differ from "audio/<extension>".
MIME_OVERRIDES = {
    "m4a": "audio/mp4",
}

# transcribe(audio_bytes, mime_type, prompt) -> transcript
TranscribeFn = Callable[[bytes, str, str], str]
# summarize_title(transcript) -> short title
SummarizeFn = Callable[[str], str]


class CommandError(RuntimeError):
    """Setup problem that stops the whole batch before anything is touched."""


# ----------------------------- logging ---------------------------------


def setup_logger(log_file: Optional[str] = None, verbose: bool = False) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Avoid duplicate handlers if main() runs more than once in a process
    if logger.handlers:
        return logger

    fmt = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    return logger


@dataclass
class BatchSummary:
    """Counters and user-facing notices for one run over a note."""
    note: str
    links_found: int = 0
    transcribed: int = 0
    not_found: int = 0
    failed: int = 0
    titles_generated: int = 0
    notices: List[str] = field(default_factory=list)

    def notify(self, logger: logging.Logger, level: int, message: str) -> None:
        self.notices.append(message)
        logger.log(level, message)


# ---------------------------------------------------------------------------
# Document edits (pure)
# ---------------------------------------------------------------------------

def mime_type_for_extension(extension: str) -> str:
    ext = extension.lower().lstrip(".")
    return MIME_OVERRIDES.get(ext, f"audio/{ext}")


def build_transcript_section(basename: str, transcript: str, title: Optional[str] = None) -> str:
    heading = title or DEFAULT_HEADING.format(basename=basename)
    section = f"# {heading}\n![[{basename}]]"
    if transcript:
        section += f"\n\n{transcript}"
    return section


def remove_first_link(text: str, raw: str) -> Tuple[str, bool]:
    """
    Drop the first ![[raw]] from text, or the first [[raw]] if there is no
    embed. Returns (text, removed).
    """
    for token in (f"![[{raw}]]", f"[[{raw}]]"):
        idx = text.find(token)
        if idx != -1:
            return text[:idx] + text[idx + len(token):], True
    return text, False


def append_section(content: str, section: str) -> str:
    head = content.rstrip("\n")
    if not head.strip():
        return f"{section}\n"
    return f"{head}\n\n{section}\n"


def appended_boundary(content: str, sections: Sequence[str]) -> int:
    """
    Offset where the sections appended earlier in this run begin.

    Walks backwards from the end of the note, peeling off each known section.
    If the tail no longer matches (the note was edited in between), only the
    sections verified so far are excluded.
    """
    end = len(content.rstrip("\n"))
    for section in reversed(sections):
        if not content[:end].endswith(section):
            break
        end = len(content[:end - len(section)].rstrip("\n"))
    return end


def splice_transcript(
    content: str,
    reference: AudioReference,
    section: str,
    appended: Sequence[str] = (),
) -> str:
    """Remove the original link once and append the transcript section."""
    boundary = appended_boundary(content, appended)
    body, tail = content[:boundary], content[boundary:]
    body, _ = remove_first_link(body, reference.raw)
    return append_section(body + tail, section)


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------

def generate_title(
    summarize_title: Optional[SummarizeFn],
    transcript: str,
    reference: AudioReference,
    summary: BatchSummary,
    logger: logging.Logger,
) -> Optional[str]:
    if summarize_title is None or not transcript:
        return None
    try:
        title = summarize_title(transcript)
    except Exception as e:
        summary.notify(logger, logging.WARNING, f"Title generation failed for {reference.basename}: {e}")
        return None

    title = " ".join((title or "").split())
    if not title:
        logger.debug("Empty title for %s; using file name heading.", reference.basename)
        return None
    summary.titles_generated += 1
    return title


def process_audio_links(
    note_path: str,
    references: Sequence[AudioReference],
    vault: Vault,
    transcribe: TranscribeFn,
    summarize_title: Optional[SummarizeFn] = None,
    logger: Optional[logging.Logger] = None,
    prompt: str = DEFAULT_TRANSCRIBE_PROMPT,
) -> BatchSummary:
    """
    Transcribe each reference in order and splice it into the note.

    The note is re-read before and written after every successful link.
    Missing files and transcription errors only skip the link concerned.
    """
    logger = logger or logging.getLogger(LOGGER_NAME)
    summary = BatchSummary(note=note_path, links_found=len(references))
    appended: List[str] = []

    for idx, ref in enumerate(references, start=1):
        logger.debug("[%d/%d] %s", idx, len(references), ref.raw)

        audio_file, by_name = locate_audio_file(ref, vault)
        if audio_file is None:
            summary.not_found += 1
            summary.notify(logger, logging.WARNING, f"Audio file not found: {ref.raw}")
            continue
        if by_name:
            summary.notify(logger, logging.INFO, f"Found {ref.basename} at {audio_file.path}")

        try:
            audio = vault.read_bytes(audio_file)
        except OSError as e:
            summary.failed += 1
            summary.notify(logger, logging.WARNING, f"Could not read {audio_file.path}: {e}")
            continue

        mime_type = mime_type_for_extension(audio_file.extension)
        logger.info("Transcribing %s (%s, %d bytes)", audio_file.path, mime_type, len(audio))
        try:
            transcript = transcribe(audio, mime_type, prompt)
        except Exception as e:
            summary.failed += 1
            summary.notify(logger, logging.WARNING, f"Transcription error for {ref.raw}: {e}")
            continue
        transcript = (transcript or "").strip()

        title = generate_title(summarize_title, transcript, ref, summary, logger)
        section = build_transcript_section(ref.basename, transcript, title)

        content = vault.read_text(note_path)
        vault.write_text(note_path, splice_transcript(content, ref, section, appended))
        appended.append(section)

        summary.transcribed += 1
        summary.notify(logger, logging.INFO, f"Transcript added for {ref.basename}")

    return summary


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------

@dataclass
class TranscribeSettings:
    api_key: str
    note: Optional[Path]
    vault_root: Optional[Path] = None
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    audio_exts: Tuple[str, ...] = DEFAULT_AUDIO_EXTS
    prompt: str = DEFAULT_TRANSCRIBE_PROMPT
    generate_titles: bool = True
    timeout_s: float = DEFAULT_TIMEOUT_S


def settings_from_args(args: argparse.Namespace, environ: Optional[Mapping[str, str]] = None) -> TranscribeSettings:
    """CLI flags first, then environment (.env already loaded), then defaults."""
    env = os.environ if environ is None else environ
    return TranscribeSettings(
        api_key=(args.api_key or env.get("GEMINI_API_KEY") or "").strip(),
        note=Path(args.note).expanduser() if args.note else None,
        vault_root=Path(args.root).expanduser() if args.root else None,
        model=args.model or env.get("GEMINI_MODEL") or DEFAULT_MODEL,
        base_url=args.base_url or env.get("GEMINI_API_BASE") or DEFAULT_BASE_URL,
        audio_exts=normalize_extensions(args.audio_ext or env.get("AUDIO_EXTENSIONS")),
        prompt=args.prompt or env.get("TRANSCRIBE_PROMPT") or DEFAULT_TRANSCRIBE_PROMPT,
        generate_titles=not args.no_titles,
        timeout_s=args.timeout,
    )


def locate_note(settings: TranscribeSettings) -> Tuple[Vault, str]:
    if settings.note is None:
        raise CommandError("No active note. Pass the note to transcribe.")

    note = settings.note
    if not note.is_file() and settings.vault_root is not None and not note.is_absolute():
        note = settings.vault_root / note
    if not note.is_file():
        raise CommandError(f"No active note: {settings.note} does not exist.")

    root = settings.vault_root or note.resolve().parent
    if not root.is_dir():
        raise CommandError(f"Vault root '{root}' does not exist or is not a directory.")
    vault = Vault(root)
    try:
        rel = vault.relative_path(note)
    except ValueError:
        raise CommandError(f"Note {note} is not inside the vault {vault.root}.") from None
    return vault, rel


def transcribe_active_note(
    settings: TranscribeSettings,
    logger: logging.Logger,
    client: Optional[GeminiClient] = None,
) -> BatchSummary:
    # Credential check comes before any file access.
    if not settings.api_key:
        raise CommandError(
            "Gemini API key is not set.\n"
            "Create a .env file containing:\n"
            "  GEMINI_API_KEY=your_api_key_here\n"
            "or set GEMINI_API_KEY as an environment variable, or pass --api-key."
        )

    vault, note_path = locate_note(settings)
    client = client or GeminiClient(
        api_key=settings.api_key,
        model=settings.model,
        base_url=settings.base_url,
        timeout_s=settings.timeout_s,
        logger=logger,
    )

    try:
        content = vault.read_text(note_path)
    except UnicodeDecodeError as e:
        raise CommandError(f"Cannot read {note_path} as UTF-8: {e}") from e

    references = extract_audio_links(content, settings.audio_exts)
    logger.info(
        "%s: %d audio link(s) (%s)",
        note_path,
        len(references),
        ", ".join(settings.audio_exts),
    )
    return process_audio_links(
        note_path,
        references,
        vault,
        transcribe=client.transcribe,
        summarize_title=client.summarize_title if settings.generate_titles else None,
        logger=logger,
        prompt=settings.prompt,
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Transcribe linked audio files in an Obsidian note with Gemini."
    )
    parser.add_argument("note", nargs="?", help="Note to process (the active document).")
    parser.add_argument(
        "--root",
        default=None,
        help="Vault root used to resolve audio links (default: the note's folder).",
    )
    parser.add_argument("--api-key", default=None, help="Gemini API key (overrides .env/env vars)")
    parser.add_argument("--model", default=None, help=f"Gemini model (default: {DEFAULT_MODEL})")
    parser.add_argument("--base-url", default=None, help=f"API base URL (default: {DEFAULT_BASE_URL})")
    parser.add_argument(
        "--audio-ext",
        action="append",
        default=None,
        help="Audio extension to pick up; repeat for several (default: m4a).",
    )
    parser.add_argument("--prompt", default=None, help="Instruction sent along with the audio.")
    parser.add_argument("--no-titles", action="store_true", help="Skip generated headings.")
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_S,
        help=f"HTTP timeout per Gemini request in seconds (default: {DEFAULT_TIMEOUT_S:.0f})",
    )
    parser.add_argument("--log-file", default=None, help="Also write a debug log to this file.")
    parser.add_argument("--verbose", action="store_true", help="Verbose console logging (debug)")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    # Load .env from current working directory (and do not overwrite already-set env vars)
    load_dotenv(override=False)

    logger = setup_logger(args.log_file, args.verbose)
    settings = settings_from_args(args)

    try:
        summary = transcribe_active_note(settings, logger)
    except CommandError as e:
        logger.error("%s", e)
        return 2

    logger.info(
        "Done: %d link(s), %d transcribed, %d not found, %d failed.",
        summary.links_found,
        summary.transcribed,
        summary.not_found,
        summary.failed,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
