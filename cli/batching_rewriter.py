import os.path
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, TypeAlias

from caching_file_contents import CachingFileContents
from rename_types import FilePathStr

# (offset, length, replacement_text), with offset and length in bytes of the original content.
Rewrite: TypeAlias = tuple[int, int, str]


class RewriteBuffer:
    """
    The edited copy of a single file.

    Rewrites are recorded against the original content and only applied when the
    buffer is materialized, in descending offset order, so the order in which they
    were added does not matter. Identical rewrites are applied once; distinct
    rewrites touching the same bytes are rejected.
    """

    def __init__(self, filepath: FilePathStr, original: bytes):
        self.filepath = filepath
        self.original = original
        self.rewrites: set[Rewrite] = set()

    def holds_text(self, offset: int, text: str) -> bool:
        """Whether the original content has `text` at `offset`."""
        expected = text.encode()
        return offset >= 0 and self.original[offset : offset + len(expected)] == expected

    def replace(
        self,
        offset: int,
        length: int,
        replacement_text: str,
        expected_text: str | None = None,
    ):
        if offset < 0 or length < 0 or offset + length > len(self.original):
            raise ValueError(
                f"Rewrite out of bounds: offset={offset}, length={length}, file={self.filepath}"
            )
        if expected_text is not None and (
            len(expected_text.encode()) != length or not self.holds_text(offset, expected_text)
        ):
            found = self.original[offset : offset + length]
            raise ValueError(
                f"Rewrite of {expected_text!r} at offset {offset} in {self.filepath}"
                f" would replace {found!r}"
            )
        rewrite = (offset, length, replacement_text)
        if rewrite in self.rewrites:
            return
        for other in self.rewrites:
            if overlaps(rewrite, other):
                raise ValueError(
                    f"Overlapping rewrites in {self.filepath}: {rewrite!r} and {other!r}"
                )
        self.rewrites.add(rewrite)

    def materialize(self) -> bytes:
        content = self.original
        for offset, length, replacement_text in sorted(self.rewrites, reverse=True):
            content = content[:offset] + replacement_text.encode() + content[offset + length :]
        return content


def overlaps(a: Rewrite, b: Rewrite) -> bool:
    a_lo, a_len, _ = a
    b_lo, b_len, _ = b
    if a_lo == b_lo and a_len == b_len:
        return True
    return a_lo < b_lo + b_len and b_lo < a_lo + a_len


@dataclass
class FileOutcome:
    filepath: FilePathStr
    content: bytes | None  # None: the file was looked at but needs no changes

    @property
    def changed(self) -> bool:
        return self.content is not None


class BatchingRewriter:
    """
    Collects rewrites to multiple files, one lazily created `RewriteBuffer` per file.
    Nothing is written anywhere until the caller flushes.
    """

    def __init__(self, contents: CachingFileContents | None = None):
        self.contents = contents if contents is not None else CachingFileContents()
        self.buffers: dict[FilePathStr, RewriteBuffer] = {}

    def add_rewrite(
        self,
        filepath: FilePathStr,
        offset: int,
        length: int,
        replacement_text: str,
        expected_text: str | None = None,
    ):
        """Add a rewrite operation for a specific file. With `expected_text`, the
        rewrite is rejected unless it replaces exactly that text."""
        self.buffer_for(filepath).replace(offset, length, replacement_text, expected_text)

    def holds_text(self, filepath: FilePathStr, offset: int, text: str) -> bool:
        return self.buffer_for(filepath).holds_text(offset, text)

    def buffer_for(self, filepath: FilePathStr) -> RewriteBuffer:
        if filepath not in self.buffers:
            self.buffers[filepath] = RewriteBuffer(filepath, self.get_content(filepath))
        return self.buffers[filepath]

    def get_rewrite_buffer(self, filepath: FilePathStr) -> RewriteBuffer | None:
        buffer = self.buffers.get(filepath)
        if buffer is None or not buffer.rewrites:
            return None
        return buffer

    def get_content(self, filepath: FilePathStr) -> bytes:
        """Get the original content of a file, using cache if available."""
        return self.contents.get_bytes(filepath)

    def flush(self, touched_files: Iterable[FilePathStr]) -> list[FileOutcome]:
        """One outcome per touched file, in sorted order. Only files with at least
        one rewrite carry content."""
        outcomes = []
        for filepath in sorted(set(touched_files)):
            buffer = self.get_rewrite_buffer(filepath)
            if buffer is None:
                outcomes.append(FileOutcome(filepath, None))
            else:
                outcomes.append(FileOutcome(filepath, buffer.materialize()))
        return outcomes


def output_path_for(filepath: FilePathStr, output_root: Path, base_dir: Path) -> Path:
    """Where the rewritten copy of `filepath` goes: its path relative to `base_dir`,
    re-rooted under `output_root`. Files outside `base_dir` keep their full path
    (minus the leading anchor) below `output_root`."""
    base = Path(os.path.normpath(base_dir.absolute()))
    path = Path(filepath)
    if not path.is_absolute():
        path = base / path
    path = Path(os.path.normpath(path))
    if path.is_relative_to(base):
        return output_root / path.relative_to(base)
    return output_root / path.relative_to(path.anchor)


def write_outcomes(outcomes: list[FileOutcome], output_root: Path, base_dir: Path) -> list[Path]:
    written = []
    for outcome in outcomes:
        if outcome.content is None:
            continue
        target = output_path_for(outcome.filepath, output_root, base_dir)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(outcome.content)
        written.append(target)
    return written


def write_outcomes_in_place(outcomes: list[FileOutcome]) -> list[Path]:
    written = []
    for outcome in outcomes:
        if outcome.content is None:
            continue
        target = Path(outcome.filepath)
        target.write_bytes(outcome.content)
        written.append(target)
    return written
