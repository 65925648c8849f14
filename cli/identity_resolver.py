from dataclasses import dataclass

from rename_types import Usr
from syntax_model import FieldDecl, FunctionDecl, SpecializationKind, VarDecl


class IdentityResolutionError(ValueError):
    pass


@dataclass(frozen=True)
class CanonicalIdentity:
    """Key under which rename decisions are memoized.

    All implicit instantiations of a class template share the identity of
    the corresponding field in the generic template definition."""

    kind: str
    usr: Usr


def resolve_canonical(field: FieldDecl) -> FieldDecl:
    """If `field` lives in an implicit instantiation of a class template,
    return the same-named field of the generic template definition.
    Otherwise return `field` itself."""
    parent = field.parent
    if parent is None or parent.specialization_kind != SpecializationKind.IMPLICIT_INSTANTIATION:
        return field

    if is_from_partial_specialization(field):
        return field

    if parent.template is None:
        raise IdentityResolutionError(
            f"Implicit instantiation {parent.name} of field {field.name} has no template"
        )

    generic_parent = parent.template.pattern
    for generic_field in generic_parent.fields:
        if generic_field.name == field.name:
            return generic_field

    raise IdentityResolutionError(
        f"No field named {field.name} in generic definition of {generic_parent.name}"
        f" (instantiated as {parent.name})"
    )


def is_from_partial_specialization(field: FieldDecl) -> bool:
    return field.parent is not None and field.parent.partial_specialization is not None


def canonical_identity(decl: FieldDecl | FunctionDecl | VarDecl) -> CanonicalIdentity:
    match decl:
        case FieldDecl():
            return CanonicalIdentity("field", resolve_canonical(decl).usr)
        case FunctionDecl():
            return CanonicalIdentity("function", decl.usr)
        case VarDecl():
            return CanonicalIdentity("var", decl.usr)
