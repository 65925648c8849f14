"""Tests for clang.cindex helpers and the syntax tree built from libclang."""

import pytest
from clang.cindex import Cursor, CursorKind, TranslationUnit  # type: ignore

import syntax_model as sm
from cindex_frontend import build_syntax_tree
from cindex_helpers import PositionReader, parse_translation_unit_with_args, specialized_template
from identity_resolver import resolve_canonical
from synthetic_sources import walk_preorder


def parse_source(cpp_source: str, filename: str = "decl.cpp") -> TranslationUnit:
    return TranslationUnit.from_source(
        filename,
        args=["-std=c++17"],
        unsaved_files=[(filename, cpp_source)],
        options=TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD,
    )


def first_cursor_of_kind(tu: TranslationUnit, kind: CursorKind) -> Cursor:
    return next(c for c in tu.cursor.walk_preorder() if c.kind == kind)


def member_exprs(node: sm.Node) -> list[sm.MemberExpr]:
    return [n for n in walk_preorder(node) if isinstance(n, sm.MemberExpr)]


def test_plain_locations_agree():
    source = "struct S { int v; };\n"
    tu = parse_source(source)
    field = first_cursor_of_kind(tu, CursorKind.FIELD_DECL)

    loc = PositionReader(tu).source_loc(field.location, field.spelling)

    assert loc.spelling == loc.expansion
    assert loc.spelling.file.endswith("decl.cpp")
    assert (loc.spelling.offset, loc.spelling.line, loc.spelling.column) == (
        source.index("v;"),
        1,
        16,
    )
    assert not loc.spelling.in_system_header


def test_macro_body_is_the_spelling_location():
    source = """struct S { int v; };
#define GET(s) s.v
int f(S s) { return GET(s); }
"""
    tu = parse_source(source)
    member = first_cursor_of_kind(tu, CursorKind.MEMBER_REF_EXPR)

    loc = PositionReader(tu).source_loc(member.location, member.spelling)

    assert loc.spelling != loc.expansion
    assert loc.spelling.line == 2
    assert source.startswith("v\n", loc.spelling.offset)
    assert loc.expansion.line == 3
    assert source.startswith("GET(s)", loc.expansion.offset)


def test_macro_argument_is_the_spelling_location():
    source = """struct S { int v; };
#define ID(x) x
int f(S s) { return ID(s.v); }
"""
    tu = parse_source(source)
    member = first_cursor_of_kind(tu, CursorKind.MEMBER_REF_EXPR)

    loc = PositionReader(tu).source_loc(member.location, member.spelling)

    assert loc.spelling.line == 3
    assert source.startswith("v)", loc.spelling.offset)


def test_ambiguous_macro_body_name_keeps_the_invocation():
    source = """struct S { int v; };
#define SUM(a, b) a.v + b.v
int f(S s, S t) { return SUM(s, t); }
"""
    tu = parse_source(source)
    member = first_cursor_of_kind(tu, CursorKind.MEMBER_REF_EXPR)

    loc = PositionReader(tu).source_loc(member.location, member.spelling)

    # Nothing tells the two `v`s in the body apart; the position is left where no
    # edit of `v` can match.
    assert loc.spelling == loc.expansion
    assert source.startswith("SUM(s, t)", loc.spelling.offset)


def test_specialized_template():
    tu = parse_source(
        "template <typename T> struct Box { T val; };\nstruct Plain {};\nBox<int> a;\nPlain p;\n"
    )
    a, p = [c for c in tu.cursor.get_children() if c.kind == CursorKind.VAR_DECL]

    template = specialized_template(a.type.get_declaration())
    assert template.kind == CursorKind.CLASS_TEMPLATE
    assert template.spelling == "Box"
    assert specialized_template(p.type.get_declaration()) is None


def test_parse_errors_are_fatal(clang_index, tmp_project):
    path = tmp_project / "broken.cpp"
    path.write_text("int main() { return undefined_name; }\n")
    with pytest.raises(ValueError, match="undefined_name"):
        parse_translation_unit_with_args(clang_index, path.as_posix(), ["-std=c++17"])


TEMPLATE_SOURCE = """template <typename T>
struct Box {
    Box() : val() {}
    T val;
    T get() const { return val; }
};

template <typename T>
struct Box<T *> {
    T *ptr;
};

template <>
struct Box<char> {
    char val;
};

int main() {
    Box<int> a;
    Box<double> b;
    Box<char> c;
    Box<int *> d;
    return a.val + (int)b.val + c.val + *d.ptr;
}
"""


def template_tree() -> sm.TranslationUnit:
    return build_syntax_tree(parse_source(TEMPLATE_SOURCE))


def test_class_template_pattern_is_converted():
    tu = template_tree()
    template = next(d for d in tu.decls if isinstance(d, sm.ClassTemplate))

    assert [f.name for f in template.pattern.fields] == ["val"]
    ctor, get = template.pattern.methods
    assert ctor.is_method and get.is_method
    assert ctor.initializers[0].member is template.pattern.fields[0]
    assert member_exprs(get)[0].member is template.pattern.fields[0]


def test_instantiated_fields_resolve_to_the_pattern():
    tu = template_tree()
    template = next(d for d in tu.decls if isinstance(d, sm.ClassTemplate))
    main = next(d for d in tu.decls if isinstance(d, sm.FunctionDecl) and d.is_main)
    a_val, b_val, c_val, d_ptr = [e.member for e in member_exprs(main)]

    generic = template.pattern.fields[0]
    assert a_val is not generic
    assert a_val.parent.specialization_kind == sm.SpecializationKind.IMPLICIT_INSTANTIATION
    assert resolve_canonical(a_val) is generic
    assert resolve_canonical(b_val) is generic

    assert c_val.parent.specialization_kind == sm.SpecializationKind.EXPLICIT_SPECIALIZATION
    assert resolve_canonical(c_val) is c_val

    assert d_ptr.parent.partial_specialization is not None
    assert resolve_canonical(d_ptr) is d_ptr


def test_system_header_declarations_are_pruned(tmp_project, tmp_sysroot, clang_index):
    (tmp_sysroot / "pair.h").write_text("struct Pair { int first; };\n")
    main = tmp_project / "main.cpp"
    main.write_text("#include <pair.h>\nint f(Pair p) { return p.first; }\n")
    tu = parse_translation_unit_with_args(
        clang_index, main.as_posix(), ["-std=c++17", f"-isystem{tmp_sysroot}"]
    )

    tree = build_syntax_tree(tu)

    assert not any(isinstance(d, sm.RecordDecl) for d in tree.decls)
    (first_ref,) = [e for d in tree.decls for e in member_exprs(d)]
    assert first_ref.member.name == "first"
    assert first_ref.member.loc.spelling.in_system_header
