"""
The resolved syntax tree that the renamer walks.

A front end (see `cindex_frontend.py`) produces one `TranslationUnit` per
compilation unit, with name resolution already done: every reference node
points at the declaration node it resolves to, and every class template
knows its generic pattern and the specializations the compiler produced.

Locations are carried as `SourceLoc` pairs. Outside of macros the spelling
and expansion positions coincide; inside a macro expansion the spelling
position is where the characters of the token are written (possibly the
macro body in some header), and the expansion position is where the macro
was invoked.

Declaration nodes are compared by identity only (`eq=False`). Code that needs
to key on "the same declaration" must go through `identity_resolver`.
"""

from __future__ import annotations

import enum
from typing import TypeAlias
from dataclasses import dataclass, field

from rename_types import FilePathStr, Usr


class LocationMode(enum.Enum):
    SPELLING = "spelling"
    EXPANSION = "expansion"


class SpecializationKind(enum.Enum):
    NOT_A_SPECIALIZATION = "none"
    IMPLICIT_INSTANTIATION = "implicit-instantiation"
    EXPLICIT_SPECIALIZATION = "explicit-specialization"
    EXPLICIT_INSTANTIATION = "explicit-instantiation"


@dataclass(frozen=True)
class SourcePos:
    file: FilePathStr
    offset: int  # bytes from start of file
    line: int = 0
    column: int = 0
    in_system_header: bool = False

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


@dataclass(frozen=True)
class SourceLoc:
    spelling: SourcePos | None
    expansion: SourcePos | None

    @staticmethod
    def plain(pos: SourcePos) -> SourceLoc:
        """A location that is not inside any macro expansion."""
        return SourceLoc(spelling=pos, expansion=pos)

    @staticmethod
    def invalid() -> SourceLoc:
        return SourceLoc(spelling=None, expansion=None)

    def resolve(self, mode: LocationMode) -> SourcePos | None:
        match mode:
            case LocationMode.SPELLING:
                return self.spelling
            case LocationMode.EXPANSION:
                return self.expansion


@dataclass(eq=False)
class FieldDecl:
    usr: Usr
    name: str
    loc: SourceLoc
    parent: RecordDecl | None = field(default=None, repr=False)


@dataclass(eq=False)
class VarDecl:
    usr: Usr
    name: str
    loc: SourceLoc
    init: list[Node] = field(default_factory=list)


@dataclass(eq=False)
class CtorInitializer:
    # None for base-class initializers.
    member: FieldDecl | None
    member_loc: SourceLoc
    is_base: bool = False
    # False for initializers the compiler synthesized.
    is_written: bool = True
    args: list[Node] = field(default_factory=list)


@dataclass(eq=False)
class FunctionDecl:
    usr: Usr
    name: str
    loc: SourceLoc
    is_method: bool = False
    # Compiler-generated (implicit copy constructors and the like).
    is_implicit: bool = False
    initializers: list[CtorInitializer] = field(default_factory=list)
    body: list[Node] = field(default_factory=list)
    parent: RecordDecl | None = field(default=None, repr=False)

    @property
    def is_main(self) -> bool:
        return self.name == "main" and not self.is_method

    @property
    def is_user_provided(self) -> bool:
        return not self.is_implicit


@dataclass(eq=False)
class RecordDecl:
    usr: Usr
    name: str
    loc: SourceLoc
    members: list[Node] = field(default_factory=list)
    specialization_kind: SpecializationKind = SpecializationKind.NOT_A_SPECIALIZATION
    # For a specialization: the template it specializes.
    # For a generic pattern: the template it describes.
    template: ClassTemplate | None = field(default=None, repr=False)
    # For an instantiation of a partial specialization, in place of `template`.
    partial_specialization: ClassTemplatePartialSpecialization | None = field(
        default=None, repr=False
    )

    def __post_init__(self):
        self.adopt_members()

    def adopt_members(self) -> None:
        """Point the `parent` of every direct field and method back at this record.
        Front ends that fill `members` incrementally call this again once done."""
        for member in self.members:
            if isinstance(member, (FieldDecl, FunctionDecl)):
                member.parent = self

    @property
    def fields(self) -> list[FieldDecl]:
        return [m for m in self.members if isinstance(m, FieldDecl)]

    @property
    def methods(self) -> list[FunctionDecl]:
        return [m for m in self.members if isinstance(m, FunctionDecl)]


@dataclass(eq=False)
class ClassTemplate:
    usr: Usr
    name: str
    loc: SourceLoc
    pattern: RecordDecl
    specializations: list[RecordDecl] = field(default_factory=list)

    def __post_init__(self):
        self.pattern.template = self
        for specialization in self.specializations:
            specialization.template = self

    def add_specialization(self, specialization: RecordDecl) -> None:
        specialization.template = self
        self.specializations.append(specialization)


@dataclass(eq=False)
class ClassTemplatePartialSpecialization:
    usr: Usr
    name: str
    loc: SourceLoc
    members: list[Node] = field(default_factory=list)


@dataclass(eq=False)
class FunctionTemplate:
    usr: Usr
    name: str
    loc: SourceLoc
    pattern: FunctionDecl
    specializations: list[FunctionDecl] = field(default_factory=list)


@dataclass(eq=False)
class MemberExpr:
    member: FieldDecl | FunctionDecl | VarDecl
    loc: SourceLoc  # of the member name, not of the base expression
    children: list[Node] = field(default_factory=list)


@dataclass(eq=False)
class DependentMemberExpr:
    """`t.x` where the type of `t` depends on a template parameter, so `x` is unresolved."""

    name: str
    loc: SourceLoc
    children: list[Node] = field(default_factory=list)


@dataclass(eq=False)
class DeclRefExpr:
    decl: FunctionDecl | VarDecl | None
    name: str
    loc: SourceLoc
    children: list[Node] = field(default_factory=list)


@dataclass(eq=False)
class Stmt:
    """Any statement or expression the renamer has no specific interest in."""

    kind: str
    children: list[Node] = field(default_factory=list)


@dataclass(eq=False)
class TranslationUnit:
    main_file: FilePathStr
    decls: list[Node] = field(default_factory=list)


Node: TypeAlias = (
    TranslationUnit
    | RecordDecl
    | FieldDecl
    | VarDecl
    | FunctionDecl
    | CtorInitializer
    | ClassTemplate
    | ClassTemplatePartialSpecialization
    | FunctionTemplate
    | MemberExpr
    | DependentMemberExpr
    | DeclRefExpr
    | Stmt
)


def children_of(node: Node) -> list[Node]:
    """Syntactic children, in source order.

    Template specializations are not children of their template; they are
    reached through `ClassTemplate.specializations` by code that wants them."""
    match node:
        case TranslationUnit(decls=decls):
            return decls
        case RecordDecl(members=members) | ClassTemplatePartialSpecialization(members=members):
            return members
        case FunctionDecl(initializers=inits, body=body):
            return [*inits, *body]
        case CtorInitializer(args=args):
            return args
        case VarDecl(init=init):
            return init
        case ClassTemplate(pattern=pattern) | FunctionTemplate(pattern=pattern):
            return [pattern]
        case MemberExpr(children=children) | DependentMemberExpr(children=children):
            return children
        case DeclRefExpr(children=children) | Stmt(children=children):
            return children
        case FieldDecl():
            return []
        case _:
            raise TypeError(f"Unexpected node kind: {type(node).__name__}")
