from rename_types import FilePathStr


class CachingFileContents:
    """Original bytes of every file we may rewrite, read at most once per run.

    Contents can be supplied up front with `seed` for files that do not exist
    on disk (unsaved editor buffers, or sources handed to libclang directly)."""

    def __init__(self) -> None:
        self.cached_bytes: dict[FilePathStr, bytes] = {}

    def seed(self, filepath: FilePathStr, content: bytes | str) -> None:
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.cached_bytes[filepath] = content

    def get_bytes(self, filepath: FilePathStr) -> bytes:
        if filepath not in self.cached_bytes:
            with open(filepath, "rb") as f:
                self.cached_bytes[filepath] = f.read()
        return self.cached_bytes[filepath]
