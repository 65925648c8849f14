import pytest

from naming_policy import FieldPrefixPolicy, FunctionSuffixPolicy


@pytest.mark.parametrize(
    "name,expected",
    [
        ("bar", "m_bar"),
        ("_bar", "m_bar"),
        ("m_bar", "m_bar"),
        ("__bar", "m__bar"),
        ("mbar", "m_mbar"),
    ],
)
def test_field_prefix_correction(name, expected):
    assert FieldPrefixPolicy().correct(name) == expected


def test_corrected_field_names_are_compliant_and_stable():
    policy = FieldPrefixPolicy()
    for name in ["x", "_x", "m_x", "value_", "M_x"]:
        corrected = policy.correct(name)
        assert policy.is_compliant(corrected)
        assert policy.correct(corrected) == corrected


def test_custom_prefix():
    policy = FieldPrefixPolicy("f")
    assert policy.correct("_count") == "fcount"
    assert policy.correct("fcount") == "fcount"


def test_function_suffix():
    policy = FunctionSuffixPolicy()
    assert policy.correct("helper") == "helper_renamed"
    assert policy.correct("helper_renamed") == "helper_renamed"
