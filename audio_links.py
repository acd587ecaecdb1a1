"""
audio_links.py

Find wikilinks to audio attachments in a Markdown note.

Both link forms are recognised and treated the same way:

    [[Recordings/standup.m4a]]
    ![[standup.m4a]]

Only links whose target ends with one of the configured audio extensions
are returned. Links come back in document order; a link written twice is
returned twice.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Tuple, Union

# ---------------------------------------------------------------------------
# CONFIG
# ---------------------------------------------------------------------------

DEFAULT_AUDIO_EXTS: Tuple[str, ...] = (".m4a",)

LINK_OPEN = "[["
LINK_CLOSE = "]]"
EMBED_MARKER = "!"


@dataclass(frozen=True)
class AudioReference:
    """A single audio wikilink as written in the note."""
    raw: str
    embed: bool = False
    start: int = 0

    @property
    def basename(self) -> str:
        return self.raw.split("/")[-1] or self.raw

    @property
    def extension(self) -> str:
        name = self.basename
        if "." not in name:
            return ""
        return name.rsplit(".", 1)[1].lower()


def normalize_extensions(values: Union[str, Iterable[str], None]) -> Tuple[str, ...]:
    """
    Turn 'm4a, .MP3' or ['m4a', '.mp3'] into ('.m4a', '.mp3').

    Empty input falls back to DEFAULT_AUDIO_EXTS.
    """
    if values is None:
        return DEFAULT_AUDIO_EXTS
    if isinstance(values, str):
        values = [values]

    exts: List[str] = []
    for ext in (part for value in values for part in value.split(",")):
        ext = ext.strip().lower()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = f".{ext}"
        if ext not in exts:
            exts.append(ext)
    return tuple(exts) or DEFAULT_AUDIO_EXTS


def iter_wikilinks(content: str) -> Iterable[AudioReference]:
    """
    Yield every [[...]] / ![[...]] token in order, audio or not.

    A token's target is a non-empty run of characters with no ']' and no
    line break. An opening '[[' that is not closed on the same line is
    skipped and scanning resumes one character later.
    """
    pos = 0
    n = len(content)
    while pos < n:
        start = content.find(LINK_OPEN, pos)
        if start == -1:
            return
        body_start = start + len(LINK_OPEN)
        end = body_start
        while end < n and content[end] not in "]\r\n":
            end += 1

        if end == body_start or not content.startswith(LINK_CLOSE, end):
            pos = start + 1
            continue

        embed = start > 0 and content[start - 1] == EMBED_MARKER
        yield AudioReference(
            raw=content[body_start:end],
            embed=embed,
            start=start - 1 if embed else start,
        )
        pos = end + len(LINK_CLOSE)


def is_audio_target(target: str, audio_exts: Iterable[str] = DEFAULT_AUDIO_EXTS) -> bool:
    lowered = target.lower()
    return any(lowered.endswith(ext) for ext in audio_exts)


def extract_audio_links(
    content: str,
    audio_exts: Iterable[str] = DEFAULT_AUDIO_EXTS,
) -> List[AudioReference]:
    """Return the audio wikilinks of a note in document order."""
    exts = normalize_extensions(audio_exts)
    return [ref for ref in iter_wikilinks(content) if is_audio_target(ref.raw, exts)]
