from ctypes import POINTER, byref, c_int, c_uint, c_void_p
from typing import Sequence

from clang.cindex import (  # type: ignore
    Config,
    Cursor,
    CursorKind,
    Diagnostic,
    File,
    Index,
    SourceLocation,
    SourceRange,
    Token,
    TranslationUnit,
    conf,
)

from syntax_model import SourceLoc, SourcePos

c_object_p = POINTER(c_void_p)


def create_clang_index(libclang_path: str | None = None) -> Index:
    """Create a clang Index, optionally pointing the bindings at a specific libclang."""

    if libclang_path is not None and not Config.loaded:
        Config.set_library_file(libclang_path)

    return Index.create()


def parse_translation_unit_with_args(
    index: Index,
    path: str,
    args: Sequence[str],
    unsaved_files: list[tuple[str, str]] | None = None,
) -> TranslationUnit:
    """Parse one compilation unit. `args` must not contain the source path itself.

    Raises ValueError if clang reports errors: renaming against a tree with
    unresolved names would silently miss references."""
    tu = index.parse(
        path=path,
        args=list(args),
        unsaved_files=unsaved_files,
        options=TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD,
    )
    errors = [d for d in tu.diagnostics if d.severity >= Diagnostic.Error]
    if errors:
        details = "\n".join(f"  {d.location.file}:{d.location.line}: {d.spelling}" for d in errors)
        raise ValueError(f"clang reported {len(errors)} error(s) while parsing {path}:\n{details}")
    return tu


def _libclang_function(name: str, argtypes: list, restype):
    # The Python bindings do not wrap these, but libclang exports them.
    fn = getattr(conf.lib, name)
    fn.argtypes = argtypes
    fn.restype = restype
    return fn


def file_location(loc: SourceLocation) -> tuple[File | None, int, int, int]:
    """(file, line, column, offset) where libclang places the token at `loc` in a file.

    For a macro argument this is where the argument is written. For a token coming from
    a macro body it is the macro invocation, the same as the expansion location; use
    `PositionReader.source_loc` with the token's name to find it inside the definition."""
    fn = _libclang_function(
        "clang_getSpellingLocation",
        [SourceLocation, POINTER(c_object_p), POINTER(c_uint), POINTER(c_uint), POINTER(c_uint)],
        None,
    )
    f, line, column, offset = c_object_p(), c_uint(), c_uint(), c_uint()
    fn(loc, byref(f), byref(line), byref(column), byref(offset))
    return (File(f) if f else None, line.value, column.value, offset.value)


def expansion_location(loc: SourceLocation) -> tuple[File | None, int, int, int]:
    """(file, line, column, offset) of the outermost macro expansion containing `loc`.
    This is what the bindings report as `loc.file`, `loc.line`, and so on."""
    return (loc.file, loc.line, loc.column, loc.offset)


def is_in_system_header(loc: SourceLocation) -> bool:
    fn = _libclang_function("clang_Location_isInSystemHeader", [SourceLocation], c_int)
    return bool(fn(loc))


def specialized_template(cursor: Cursor) -> Cursor | None:
    """The template (or partial specialization) `cursor` was specialized or
    instantiated from, or None when it is not a specialization."""
    # Registered by the bindings with a Cursor result, but not exposed as a property.
    template = conf.lib.clang_getSpecializedCursorTemplate(cursor)
    if template is None or template.kind.is_invalid():
        return None
    return template


def macro_body_tokens(definition: Cursor) -> list[Token]:
    """Replacement tokens of a MACRO_DEFINITION, without the name and parameter list."""
    tokens = list(definition.get_tokens())[1:]
    # A function-like macro has its '(' directly after the name.
    if tokens and tokens[0].spelling == "(" and tokens[0].extent.start.offset == (
        definition.extent.start.offset + len(definition.spelling.encode())
    ):
        close = next((i for i, t in enumerate(tokens) if t.spelling == ")"), len(tokens) - 1)
        tokens = tokens[close + 1 :]
    return tokens


def find_member_token(body: list[Token], name: str) -> Token | None:
    """The single token spelling `name` in a macro body, preferring the one written
    after '.' or '->'. None when the body has no such token or more than one."""
    candidates = [i for i, t in enumerate(body) if t.spelling == name]
    accessed = [i for i in candidates if i > 0 and body[i - 1].spelling in (".", "->")]
    for indices in (accessed, candidates):
        if len(indices) == 1:
            return body[indices[0]]
        if indices:
            return None
    return None


class PositionReader:
    """Converts libclang locations into `SourceLoc`s for one translation unit."""

    def __init__(self, tu: TranslationUnit):
        self.tu = tu
        self.system_header_by_file: dict[str, bool] = {}
        self.file_by_name: dict[str, File] = {}
        self.spelled_at: dict[tuple[str, int, str], SourcePos] = {}

    def source_loc(self, loc: SourceLocation, name: str | None = None) -> SourceLoc:
        """Spelling and expansion positions of `loc`.

        Given the identifier `name` written at `loc`, the spelling position is checked to
        really hold that identifier. A name written in a macro body is traced into the
        macro definition. When it cannot be found there the position libclang reports is
        kept; edits check the bytes they replace, so nothing is written at it."""
        spelling = self.source_pos(*file_location(loc))
        if name and spelling is not None:
            spelling = self.locate_name(spelling, name)
        return SourceLoc(spelling=spelling, expansion=self.source_pos(*expansion_location(loc)))

    def source_pos(
        self, file: File | None, line: int, column: int, offset: int
    ) -> SourcePos | None:
        if file is None:
            return None
        name = file.name
        if name not in self.system_header_by_file:
            self.file_by_name[name] = file
            file_start = SourceLocation.from_offset(self.tu, file, 0)
            self.system_header_by_file[name] = is_in_system_header(file_start)
        return SourcePos(name, offset, line, column, self.system_header_by_file[name])

    def locate_name(self, pos: SourcePos, name: str) -> SourcePos:
        key = (pos.file, pos.offset, name)
        if key not in self.spelled_at:
            if self.token_at(pos) == name:
                self.spelled_at[key] = pos
            else:
                self.spelled_at[key] = self.macro_body_pos(pos, name) or pos
        return self.spelled_at[key]

    def location_at(self, pos: SourcePos) -> SourceLocation:
        return SourceLocation.from_offset(self.tu, self.file_by_name[pos.file], pos.offset)

    def token_at(self, pos: SourcePos) -> str | None:
        start = self.location_at(pos)
        end = SourceLocation.from_offset(self.tu, self.file_by_name[pos.file], pos.offset + 1)
        for token in self.tu.get_tokens(extent=SourceRange.from_locations(start, end)):
            if token.extent.start.offset == pos.offset:
                return token.spelling
        return None

    def macro_body_pos(self, pos: SourcePos, name: str) -> SourcePos | None:
        """Where `name` is written in the definition of the macro invoked at `pos`."""
        invocation = Cursor.from_location(self.tu, self.location_at(pos))
        if invocation is None or invocation.kind != CursorKind.MACRO_INSTANTIATION:
            return None
        definition = invocation.referenced
        if definition is None or definition.kind != CursorKind.MACRO_DEFINITION:
            return None
        token = find_member_token(macro_body_tokens(definition), name)
        if token is None:
            return None
        return self.source_pos(*expansion_location(token.location))
