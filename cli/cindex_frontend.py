"""
Builds a `syntax_model.TranslationUnit` from a libclang translation unit.

libclang hides most of what the compiler knows about templates: implicit
instantiations have no visible children, and only the generic pattern of a
class template is walked. References into an instantiation still resolve to
the instantiated declaration, though, so each such field is given a parent
record that points back at its template; the identity resolver takes it
from there.

Other limitations of going through libclang:
    - Compiler-synthesized constructor initializers and base-class
      initializers are never reported, so every initializer we produce is a
      written member initializer.
    - Explicit instantiations (`template struct Box<int>;`) look exactly like
      implicit ones and are treated as such.
    - Member accesses whose object type depends on a template parameter are
      unresolved and become `DependentMemberExpr`.
    - Names written in a macro body are reported at the macro invocation;
      `PositionReader` traces them back into the macro definition.
"""

from clang.cindex import (  # type: ignore
    Cursor,
    CursorKind,
    TranslationUnit,
)

import syntax_model as sm
from typing import TypeAlias
from cindex_helpers import PositionReader, is_in_system_header, specialized_template

RECORD_KINDS = (CursorKind.STRUCT_DECL, CursorKind.CLASS_DECL, CursorKind.UNION_DECL)

METHOD_KINDS = (
    CursorKind.CXX_METHOD,
    CursorKind.CONSTRUCTOR,
    CursorKind.DESTRUCTOR,
    CursorKind.CONVERSION_FUNCTION,
)

FUNCTION_KINDS = (CursorKind.FUNCTION_DECL, *METHOD_KINDS)

# Children through which a record shows that its body was written out,
# which is what separates an explicit specialization from an implicit one.
BODY_MEMBER_KINDS = (CursorKind.FIELD_DECL, *METHOD_KINDS, CursorKind.FUNCTION_TEMPLATE)

# Cursors whose location is a name the renamer may replace.
RENAMED_NAME_KINDS = (
    CursorKind.FIELD_DECL,
    CursorKind.MEMBER_REF_EXPR,
    CursorKind.MEMBER_REF,
    CursorKind.DECL_REF_EXPR,
    CursorKind.FUNCTION_DECL,
    CursorKind.FUNCTION_TEMPLATE,
)

CursorKey: TypeAlias = tuple[CursorKind, int, str]


def cursor_key(cursor: Cursor) -> CursorKey:
    return (cursor.kind, cursor.hash, cursor.get_usr())


class CindexFrontend:
    def __init__(self, tu: TranslationUnit, prune_system_headers: bool = True):
        self.tu = tu
        self.positions = PositionReader(tu)
        self.prune_system_headers = prune_system_headers
        self.nodes: dict[CursorKey, sm.Node] = {}

    def build(self) -> sm.TranslationUnit:
        decls = []
        for child in self.tu.cursor.get_children():
            if self.prune_system_headers and is_in_system_header(child.location):
                continue
            node = self.convert(child)
            if node is not None:
                decls.append(node)
        return sm.TranslationUnit(main_file=self.tu.spelling, decls=decls)

    def convert_children(self, cursor: Cursor) -> list[sm.Node]:
        nodes = []
        for child in cursor.get_children():
            node = self.convert(child)
            if node is not None:
                nodes.append(node)
        return nodes

    def convert(self, cursor: Cursor) -> sm.Node | None:
        kind = cursor.kind
        if kind == CursorKind.FIELD_DECL:
            return self.field_node(cursor)
        if kind in RECORD_KINDS:
            return self.record_definition(cursor)
        if kind == CursorKind.CLASS_TEMPLATE:
            return self.class_template_node(cursor)
        if kind == CursorKind.CLASS_TEMPLATE_PARTIAL_SPECIALIZATION:
            return self.partial_specialization_node(cursor)
        if kind == CursorKind.FUNCTION_TEMPLATE:
            return self.function_template_node(cursor)
        if kind in FUNCTION_KINDS:
            return self.function_definition(cursor)
        if kind == CursorKind.MEMBER_REF_EXPR:
            return self.member_expr(cursor)
        if kind == CursorKind.MEMBER_REF:
            # Outside constructor initializer lists: designated initializers and offsetof.
            referenced = cursor.referenced
            if referenced is None or referenced.kind != CursorKind.FIELD_DECL:
                return None
            return sm.MemberExpr(member=self.field_node(referenced), loc=self.loc(cursor))
        if kind == CursorKind.DECL_REF_EXPR:
            return self.decl_ref_expr(cursor)
        if kind == CursorKind.VAR_DECL:
            return sm.VarDecl(
                usr=self.usr(cursor),
                name=cursor.spelling,
                loc=self.loc(cursor),
                init=self.convert_children(cursor),
            )
        return sm.Stmt(kind=kind.name, children=self.convert_children(cursor))

    # ------------------------------------------------------------------
    # declarations

    def field_node(self, cursor: Cursor) -> sm.FieldDecl:
        key = cursor_key(cursor)
        if key not in self.nodes:
            field = sm.FieldDecl(usr=self.usr(cursor), name=cursor.spelling, loc=self.loc(cursor))
            self.nodes[key] = field
            field.parent = self.parent_record(cursor.semantic_parent)
        node = self.nodes[key]
        assert isinstance(node, sm.FieldDecl)
        return node

    def parent_record(self, cursor: Cursor | None) -> sm.RecordDecl | None:
        if cursor is None:
            return None
        if cursor.kind == CursorKind.CLASS_TEMPLATE:
            return self.class_template_node(cursor).pattern
        if cursor.kind in RECORD_KINDS:
            return self.record_node(cursor)
        return None

    def record_node(self, cursor: Cursor) -> sm.RecordDecl:
        """The record for `cursor`, without its members."""
        key = cursor_key(cursor)
        if key not in self.nodes:
            record = sm.RecordDecl(usr=self.usr(cursor), name=cursor.spelling, loc=self.loc(cursor))
            self.nodes[key] = record

            template_cursor = specialized_template(cursor)
            if template_cursor is None:
                pass
            elif template_cursor.kind == CursorKind.CLASS_TEMPLATE:
                template = self.class_template_node(template_cursor)
                if any(c.kind in BODY_MEMBER_KINDS for c in cursor.get_children()):
                    record.specialization_kind = sm.SpecializationKind.EXPLICIT_SPECIALIZATION
                    record.template = template
                else:
                    record.specialization_kind = sm.SpecializationKind.IMPLICIT_INSTANTIATION
                    template.add_specialization(record)
            elif template_cursor.kind == CursorKind.CLASS_TEMPLATE_PARTIAL_SPECIALIZATION:
                record.specialization_kind = sm.SpecializationKind.IMPLICIT_INSTANTIATION
                record.partial_specialization = self.partial_specialization_node(template_cursor)
        node = self.nodes[key]
        assert isinstance(node, sm.RecordDecl)
        return node

    def record_definition(self, cursor: Cursor) -> sm.RecordDecl:
        record = self.record_node(cursor)
        if cursor.is_definition():
            record.members = self.convert_children(cursor)
            record.adopt_members()
        return record

    def class_template_node(self, cursor: Cursor) -> sm.ClassTemplate:
        key = cursor_key(cursor)
        if key not in self.nodes:
            pattern = sm.RecordDecl(
                usr=self.usr(cursor), name=cursor.spelling, loc=self.loc(cursor)
            )
            template = sm.ClassTemplate(
                usr=self.usr(cursor), name=cursor.spelling, loc=self.loc(cursor), pattern=pattern
            )
            # Registered before the members are converted: method bodies refer back to the fields.
            self.nodes[key] = template
            pattern.members = self.convert_children(cursor)
            pattern.adopt_members()
        node = self.nodes[key]
        assert isinstance(node, sm.ClassTemplate)
        return node

    def partial_specialization_node(self, cursor: Cursor) -> sm.ClassTemplatePartialSpecialization:
        # Members are not converted: the renamer leaves partial specializations alone.
        key = cursor_key(cursor)
        if key not in self.nodes:
            self.nodes[key] = sm.ClassTemplatePartialSpecialization(
                usr=self.usr(cursor), name=cursor.spelling, loc=self.loc(cursor)
            )
        node = self.nodes[key]
        assert isinstance(node, sm.ClassTemplatePartialSpecialization)
        return node

    def function_template_node(self, cursor: Cursor) -> sm.FunctionTemplate:
        key = cursor_key(cursor)
        if key not in self.nodes:
            pattern = self.function_shell(cursor)
            template = sm.FunctionTemplate(
                usr=self.usr(cursor), name=cursor.spelling, loc=self.loc(cursor), pattern=pattern
            )
            self.nodes[key] = template
            self.fill_function(pattern, cursor)
        node = self.nodes[key]
        assert isinstance(node, sm.FunctionTemplate)
        return node

    def function_node(self, cursor: Cursor) -> sm.FunctionDecl:
        key = cursor_key(cursor)
        if key not in self.nodes:
            self.nodes[key] = self.function_shell(cursor)
        node = self.nodes[key]
        assert isinstance(node, sm.FunctionDecl)
        return node

    def function_shell(self, cursor: Cursor) -> sm.FunctionDecl:
        parent = cursor.semantic_parent
        is_method = cursor.kind in METHOD_KINDS or (
            parent is not None and parent.kind in (*RECORD_KINDS, CursorKind.CLASS_TEMPLATE)
        )
        return sm.FunctionDecl(
            usr=self.usr(cursor), name=cursor.spelling, loc=self.loc(cursor), is_method=is_method
        )

    def function_definition(self, cursor: Cursor) -> sm.FunctionDecl:
        fn = self.function_node(cursor)
        self.fill_function(fn, cursor)
        return fn

    def fill_function(self, fn: sm.FunctionDecl, cursor: Cursor) -> None:
        initializers: list[sm.CtorInitializer] = []
        body: list[sm.Node] = []
        for child in cursor.get_children():
            if cursor.kind == CursorKind.CONSTRUCTOR and child.kind == CursorKind.MEMBER_REF:
                referenced = child.referenced
                if referenced is not None and referenced.kind == CursorKind.FIELD_DECL:
                    initializers.append(
                        sm.CtorInitializer(
                            member=self.field_node(referenced), member_loc=self.loc(child)
                        )
                    )
                continue
            node = self.convert(child)
            if node is not None:
                body.append(node)
        fn.initializers = initializers
        fn.body = body

    # ------------------------------------------------------------------
    # references

    def member_expr(self, cursor: Cursor) -> sm.Node:
        children = self.convert_children(cursor)
        referenced = cursor.referenced
        loc = self.loc(cursor)
        if referenced is None:
            return sm.DependentMemberExpr(name=cursor.spelling, loc=loc, children=children)

        member: sm.FieldDecl | sm.FunctionDecl | sm.VarDecl
        if referenced.kind == CursorKind.FIELD_DECL:
            member = self.field_node(referenced)
        elif referenced.kind in FUNCTION_KINDS or referenced.kind == CursorKind.FUNCTION_TEMPLATE:
            member = self.function_node(referenced)
        else:
            # Static data members and anything else a member access can name.
            member = sm.VarDecl(
                usr=self.usr(referenced), name=referenced.spelling, loc=self.loc(referenced)
            )
        return sm.MemberExpr(member=member, loc=loc, children=children)

    def decl_ref_expr(self, cursor: Cursor) -> sm.DeclRefExpr:
        referenced = cursor.referenced
        decl = None
        if referenced is not None and referenced.kind in FUNCTION_KINDS:
            decl = self.function_node(referenced)
        return sm.DeclRefExpr(
            decl=decl,
            name=cursor.spelling,
            loc=self.loc(cursor),
            children=self.convert_children(cursor),
        )

    # ------------------------------------------------------------------

    def loc(self, cursor: Cursor) -> sm.SourceLoc:
        name = cursor.spelling if cursor.kind in RENAMED_NAME_KINDS else None
        return self.positions.source_loc(cursor.location, name)

    def usr(self, cursor: Cursor) -> str:
        usr = cursor.get_usr()
        if usr:
            return usr
        loc = cursor.location
        return f"{loc.file.name if loc.file else '<unknown>'}@{loc.offset}@{cursor.spelling}"


def build_syntax_tree(tu: TranslationUnit, prune_system_headers: bool = True) -> sm.TranslationUnit:
    return CindexFrontend(tu, prune_system_headers).build()
