from __future__ import annotations

import json
import shlex
from dataclasses import dataclass
from pathlib import Path

# Format: https://clang.llvm.org/docs/JSONCompilationDatabase.html


@dataclass
class CompileCommand:
    """One entry of compile_commands.json: how a single source file is compiled."""

    directory: str
    file: str
    # Exactly one of these two is present.
    command: str | None = None
    arguments: list[str] | None = None
    output: str | None = None

    def __post_init__(self):
        if (self.command is None) == (self.arguments is None):
            raise ValueError(
                f"Compile command for {self.file} needs exactly one of 'command' and 'arguments'"
            )

    @property
    def directory_path(self) -> Path:
        return Path(self.directory)

    @property
    def absolute_file_path(self) -> Path:
        return self.directory_path / self.file  # no-op join when `file` is absolute

    def get_command_parts(self) -> list[str]:
        if self.arguments is not None:
            return list(self.arguments)
        assert self.command is not None
        return shlex.split(self.command)

    def get_parse_args(self) -> list[str]:
        """The compiler arguments relevant to parsing, as libclang wants them: no compiler
        executable, no source file, no `-c` and no `-o <output>`. Relative include paths
        are made absolute, since libclang does not run from the build directory."""
        args = self.get_command_parts()[1:]
        if "-o" in args:
            o_index = args.index("-o")
            del args[o_index : o_index + 2]

        source = self.absolute_file_path.resolve()
        parse_args = []
        for arg in args:
            if arg == "-c" or (self.directory_path / arg).resolve() == source:
                continue
            if arg.startswith("-I") and len(arg) > 2 and not Path(arg[2:]).is_absolute():
                arg = "-I" + (self.directory_path / arg[2:]).as_posix()
            parse_args.append(arg)
        return parse_args


@dataclass
class CompileCommands:
    commands: list[CompileCommand]

    @classmethod
    def from_dict(cls, entries: list[dict]) -> CompileCommands:
        return cls([CompileCommand(**entry) for entry in entries])

    @classmethod
    def from_json_file(cls, path: str | Path) -> CompileCommands:
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    @classmethod
    def from_directory(cls, dir: str | Path) -> CompileCommands:
        return cls.from_json_file(Path(dir) / "compile_commands.json")

    def get_commands_for_path(self, path: Path) -> list[CompileCommand]:
        assert path.is_absolute(), "file names repeat across directories; query by absolute path"
        wanted = path.resolve()
        return [cmd for cmd in self.commands if cmd.absolute_file_path.resolve() == wanted]

    def get_parse_args_for_path(self, path: Path) -> list[str]:
        cmds = self.get_commands_for_path(path)
        if not cmds:
            raise ValueError(f"No compile command for {path} in compilation database")
        # Files compiled more than once (several targets) declare the same names each time.
        return cmds[0].get_parse_args()
