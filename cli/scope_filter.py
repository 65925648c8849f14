import os.path

from rename_types import FilePathStr
from syntax_model import LocationMode, SourceLoc


class ScopeFilter:
    """Decides which source locations belong to the project being renamed.

    A location is in scope when it is valid, not inside a system header, and
    either in the main file of the translation unit or in a file whose
    directory contains `root_dir`. The directory test is a plain substring
    match, so `root_dir="src"` also accepts `/opt/resources/foo.h`.

    Every accepted file is remembered, so that at the end of a run we can
    report files that were looked at but left unchanged.
    """

    def __init__(
        self,
        root_dir: str,
        main_file: FilePathStr,
        mode: LocationMode = LocationMode.SPELLING,
    ):
        self.root_dir = root_dir
        self.main_file = main_file
        self.mode = mode
        self.traversed_files: set[FilePathStr] = set()

    def should_process(self, loc: SourceLoc) -> bool:
        pos = loc.resolve(self.mode)
        if pos is None:
            return False

        if pos.in_system_header:
            return False

        accepted = pos.file == self.main_file or self.root_dir in os.path.dirname(pos.file)
        if accepted:
            self.traversed_files.add(pos.file)
        return accepted

    def touched_files(self) -> list[FilePathStr]:
        return sorted(self.traversed_files)
