"""
Finds data members that break the naming convention and schedules the edits
that fix them: at the declaration, at every written constructor member
initializer, and at every member access.

The engine walks a resolved syntax tree (`syntax_model`) once. Decisions are
memoized per canonical identity (`identity_resolver`), so every appearance of
a member, in any template instantiation, receives the same corrected name no
matter which appearance is visited first. A reference visited before its
declaration (a constructor initializer written above the member, say)
computes the decision itself.

Edits land at the location selected by the scope filter's `LocationMode`,
which is the spelling location unless configured otherwise, and never at a
location the scope filter rejects. An edit is only made where the file holds
the old name; anything else (a macro invocation, a name pasted together by
the preprocessor) is recorded as a `SkippedEdit` and left alone.
"""

from dataclasses import dataclass
from typing import Callable

from dataclasses_json import DataClassJsonMixin

from batching_rewriter import BatchingRewriter
from constants import WRONG_FIELD_NAME_MESSAGE
from identity_resolver import (
    CanonicalIdentity,
    canonical_identity,
    is_from_partial_specialization,
    resolve_canonical,
)
from naming_policy import FieldPrefixPolicy, FunctionSuffixPolicy
from scope_filter import ScopeFilter
from syntax_model import (
    ClassTemplate,
    ClassTemplatePartialSpecialization,
    CtorInitializer,
    DeclRefExpr,
    DependentMemberExpr,
    FieldDecl,
    FunctionDecl,
    FunctionTemplate,
    MemberExpr,
    Node,
    RecordDecl,
    SourceLoc,
    SpecializationKind,
    Stmt,
    TranslationUnit,
    VarDecl,
    children_of,
)


class UnexpectedMemberError(ValueError):
    pass


@dataclass
class SkippedEdit(DataClassJsonMixin):
    """A rename that was not written because the old name is not in the file there."""

    file: str
    line: int
    column: int
    name: str
    corrected: str

    def render(self) -> str:
        return (
            f"{self.file}:{self.line}:{self.column}: note: '{self.name}' is not written here,"
            f" not renamed to '{self.corrected}'"
        )


@dataclass(frozen=True)
class RenameDecision:
    name: str
    corrected: str

    @property
    def renames(self) -> bool:
        return self.name != self.corrected


@dataclass
class RenameWarning(DataClassJsonMixin):
    file: str
    line: int
    column: int
    message: str
    name: str
    corrected: str

    def render(self) -> str:
        return (
            f"{self.file}:{self.line}:{self.column}: warning: {self.message}"
            f" '{self.name}' (use '{self.corrected}')"
        )


class RenameEngine:
    def __init__(
        self,
        scope: ScopeFilter,
        rewriter: BatchingRewriter,
        field_policy: FieldPrefixPolicy = FieldPrefixPolicy(),
        function_policy: FunctionSuffixPolicy | None = None,
        on_warning: Callable[[RenameWarning], None] | None = None,
    ):
        self.scope = scope
        self.rewriter = rewriter
        self.field_policy = field_policy
        # None means functions are never renamed.
        self.function_policy = function_policy
        self.on_warning = on_warning

        # None records that the declaration is out of scope.
        self.decisions: dict[CanonicalIdentity, RenameDecision | None] = {}
        self.warnings: list[RenameWarning] = []
        self.skipped: list[SkippedEdit] = []

    def run(self, tu: TranslationUnit) -> None:
        self.traverse(tu)

    def renamed(self) -> dict[CanonicalIdentity, RenameDecision]:
        return {
            identity: decision
            for identity, decision in self.decisions.items()
            if decision is not None and decision.renames
        }

    # ------------------------------------------------------------------
    # traversal

    def traverse(self, node: Node) -> None:
        match node:
            case FieldDecl():
                self.visit_field_decl(node)
            case FunctionDecl():
                self.visit_function_decl(node)
                self.traverse_all(children_of(node))
            case CtorInitializer():
                self.visit_ctor_initializer(node)
                self.traverse_all(node.args)
            case MemberExpr():
                self.visit_member_expr(node)
                self.traverse_all(node.children)
            case DeclRefExpr():
                self.visit_decl_ref_expr(node)
                self.traverse_all(node.children)
            case ClassTemplate():
                self.visit_class_template(node)
            case FunctionTemplate():
                self.visit_function_template(node)
            case ClassTemplatePartialSpecialization():
                # Unsupported: members of partial specializations keep their names.
                pass
            case TranslationUnit() | RecordDecl() | VarDecl() | DependentMemberExpr() | Stmt():
                self.traverse_all(children_of(node))
            case _:
                raise TypeError(f"Unexpected node kind: {type(node).__name__}")

    def traverse_all(self, nodes: list[Node]) -> None:
        for node in nodes:
            self.traverse(node)

    def visit_class_template(self, template: ClassTemplate) -> None:
        self.traverse(template.pattern)
        for specialization in template.specializations:
            if specialization.specialization_kind == SpecializationKind.IMPLICIT_INSTANTIATION:
                # Fields of implicit instantiations collapse onto the pattern's;
                # only instantiated method bodies can add anything.
                for method in specialization.methods:
                    if method.is_user_provided:
                        self.traverse_all(children_of(method))
            else:
                self.traverse(specialization)

    def visit_function_template(self, template: FunctionTemplate) -> None:
        self.traverse(template.pattern)
        for specialization in template.specializations:
            if specialization.is_user_provided:
                self.traverse_all(children_of(specialization))

    # ------------------------------------------------------------------
    # declarations and references

    def visit_field_decl(self, field: FieldDecl) -> None:
        if not self.scope.should_process(field.loc):
            return
        self.rewrite_if_renamed(field, field.loc)

    def visit_function_decl(self, fn: FunctionDecl) -> None:
        if self.function_policy is None:
            return
        # main() and methods are never renamed.
        if fn.is_main or fn.is_method:
            return
        if not self.scope.should_process(fn.loc):
            return
        self.rewrite_if_renamed(fn, fn.loc)

    def visit_member_expr(self, expr: MemberExpr) -> None:
        if not self.scope.should_process(expr.loc):
            return

        match expr.member:
            case FunctionDecl(is_method=True):
                # TODO handle methods (overloads and overrides need one decision per override set)
                return
            case FieldDecl():
                self.rewrite_if_renamed(expr.member, expr.loc)
            case other:
                raise UnexpectedMemberError(
                    f"Member access at {expr.loc.resolve(self.scope.mode)} names '{other.name}',"
                    " which is not a non-static data member or method: static data members"
                    " and enumerators reached through member access are not supported"
                )

    def visit_ctor_initializer(self, init: CtorInitializer) -> None:
        if init.is_base or not init.is_written:
            return
        if init.member is None:
            raise UnexpectedMemberError(
                f"Member initializer at {init.member_loc.resolve(self.scope.mode)} has no member"
            )
        if not self.scope.should_process(init.member_loc):
            return
        self.rewrite_if_renamed(init.member, init.member_loc)

    def visit_decl_ref_expr(self, ref: DeclRefExpr) -> None:
        if self.function_policy is None:
            return
        match ref.decl:
            case FunctionDecl(is_method=False) if not ref.decl.is_main:
                if self.scope.should_process(ref.loc):
                    self.rewrite_if_renamed(ref.decl, ref.loc)
            case _:
                return

    # ------------------------------------------------------------------
    # decisions and edits

    def rewrite_if_renamed(self, decl: FieldDecl | FunctionDecl, loc: SourceLoc) -> None:
        decision = self.decision_for(decl)
        if decision is not None and decision.renames:
            self.write(decision, loc)

    def decision_for(self, decl: FieldDecl | FunctionDecl) -> RenameDecision | None:
        if isinstance(decl, FieldDecl):
            decl = resolve_canonical(decl)
        identity = canonical_identity(decl)
        if identity not in self.decisions:
            self.decisions[identity] = self.compute_decision(decl)
        return self.decisions[identity]

    def compute_decision(self, decl: FieldDecl | FunctionDecl) -> RenameDecision | None:
        # Unnamed bit-fields and anonymous struct/union members.
        if not decl.name:
            return None
        # References may reach declarations we must not touch (system headers, other projects).
        if not self.scope.should_process(decl.loc):
            return None

        match decl:
            case FieldDecl() if is_from_partial_specialization(decl):
                # Unsupported, like the partial specializations themselves.
                return None
            case FieldDecl():
                decision = RenameDecision(decl.name, self.field_policy.correct(decl.name))
                if not self.field_policy.is_compliant(decl.name):
                    self.emit_warning(decl, decision)
                return decision
            case FunctionDecl():
                assert self.function_policy is not None
                return RenameDecision(decl.name, self.function_policy.correct(decl.name))

    def write(self, decision: RenameDecision, loc: SourceLoc) -> None:
        pos = loc.resolve(self.scope.mode)
        assert pos is not None, "scope filter accepted an invalid location"
        if not self.rewriter.holds_text(pos.file, pos.offset, decision.name):
            skipped = SkippedEdit(pos.file, pos.line, pos.column, decision.name, decision.corrected)
            # Template instantiations revisit the same written name.
            if skipped not in self.skipped:
                self.skipped.append(skipped)
            return
        self.rewriter.add_rewrite(
            pos.file,
            pos.offset,
            len(decision.name.encode()),
            decision.corrected,
            expected_text=decision.name,
        )

    def emit_warning(self, decl: FieldDecl, decision: RenameDecision) -> None:
        pos = decl.loc.resolve(self.scope.mode)
        assert pos is not None
        warning = RenameWarning(
            file=pos.file,
            line=pos.line,
            column=pos.column,
            message=WRONG_FIELD_NAME_MESSAGE,
            name=decision.name,
            corrected=decision.corrected,
        )
        self.warnings.append(warning)
        if self.on_warning is not None:
            self.on_warning(warning)
