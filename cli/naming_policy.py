from dataclasses import dataclass

from constants import FUNCTION_RENAME_SUFFIX, REQUIRED_FIELD_PREFIX


@dataclass(frozen=True)
class FieldPrefixPolicy:
    """Data members must start with `prefix`.

    `bar` becomes `m_bar`; a single leading underscore is absorbed, so
    `_bar` also becomes `m_bar` rather than `m__bar`."""

    prefix: str = REQUIRED_FIELD_PREFIX

    def is_compliant(self, name: str) -> bool:
        return name.startswith(self.prefix)

    def correct(self, name: str) -> str:
        if self.is_compliant(name):
            return name
        if name.startswith("_"):
            return self.prefix + name[1:]
        return self.prefix + name


@dataclass(frozen=True)
class FunctionSuffixPolicy:
    suffix: str = FUNCTION_RENAME_SUFFIX

    def is_compliant(self, name: str) -> bool:
        return name.endswith(self.suffix)

    def correct(self, name: str) -> str:
        if self.is_compliant(name):
            return name
        return name + self.suffix
