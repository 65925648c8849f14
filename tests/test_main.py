import json

from click.testing import CliRunner

from main import cli
from test_fixtures import PROJECT_ROOT_NAME

FOO_CPP = """struct Foo {
    int bar;
};

int main() {
    Foo f;
    f.bar = 1;
    return f.bar;
}
"""


def test_rename_writes_mirrored_output(tmp_project, test_tmp_dir):
    source = tmp_project / "foo.cpp"
    source.write_text(FOO_CPP)
    out = test_tmp_dir / "out"
    report = test_tmp_dir / "report.json"

    result = CliRunner().invoke(
        cli,
        [
            "rename",
            str(source),
            "--root-dir",
            PROJECT_ROOT_NAME,
            "--output-dir",
            str(out),
            "--base-dir",
            str(test_tmp_dir),
            "--report",
            str(report),
            "--",
            "-std=c++17",
        ],
    )

    assert result.exit_code == 0, result.output
    assert f"Src file changed: {source.as_posix()}" in result.output
    assert (out / PROJECT_ROOT_NAME / "foo.cpp").read_text() == FOO_CPP.replace("bar", "m_bar")
    # The original is untouched.
    assert source.read_text() == FOO_CPP

    record = json.loads(report.read_text())
    assert record["changed_files"] == [source.as_posix()]
    assert record["warnings"][0]["name"] == "bar"


def test_rename_in_place(tmp_project):
    source = tmp_project / "foo.cpp"
    source.write_text(FOO_CPP)

    result = CliRunner().invoke(
        cli, ["rename", str(source), "--root-dir", PROJECT_ROOT_NAME, "--in-place"]
    )

    assert result.exit_code == 0, result.output
    assert source.read_text() == FOO_CPP.replace("bar", "m_bar")


def test_rename_reports_parse_errors(tmp_project):
    source = tmp_project / "broken.cpp"
    source.write_text("int main() { return nope; }\n")

    result = CliRunner().invoke(cli, ["rename", str(source), "--in-place"])

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert source.read_text() == "int main() { return nope; }\n"


def test_check_fails_on_noncompliant_names(tmp_project):
    source = tmp_project / "foo.cpp"
    source.write_text(FOO_CPP)

    result = CliRunner().invoke(cli, ["check", str(source)])

    assert result.exit_code == 1
    assert f"Would change: {source.as_posix()}" in result.output
    assert "warning: wrong name for field 'bar' (use 'm_bar')" in result.output
    assert source.read_text() == FOO_CPP


def test_check_passes_on_compliant_names(tmp_project):
    source = tmp_project / "foo.cpp"
    source.write_text(FOO_CPP.replace("bar", "m_bar"))

    result = CliRunner().invoke(cli, ["check", str(source)])

    assert result.exit_code == 0, result.output
    assert "Would change" not in result.output


def test_command_line_overrides_config(tmp_project):
    source = tmp_project / "foo.cpp"
    source.write_text(FOO_CPP)
    config = json.dumps({"root_dir": "elsewhere", "prefix": "f_"})

    result = CliRunner().invoke(
        cli,
        ["rename", str(source), "--config", config, "--root-dir", PROJECT_ROOT_NAME, "--in-place"],
    )

    assert result.exit_code == 0, result.output
    assert source.read_text() == FOO_CPP.replace("bar", "f_bar")


def test_check_reports_a_missing_compilation_database(tmp_project, test_tmp_dir):
    source = tmp_project / "foo.cpp"
    source.write_text(FOO_CPP)
    empty = test_tmp_dir / "build"
    empty.mkdir()

    result = CliRunner().invoke(cli, ["check", str(source), "--compdb", str(empty)])

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "compile_commands.json" in result.output


def test_unwritten_names_are_reported(tmp_project):
    source = tmp_project / "sum.cpp"
    text = """#define SUM(a, b) a.bar + b.bar
struct Foo { int bar; };
int add(Foo f, Foo g) { return SUM(f, g); }
"""
    source.write_text(text)

    result = CliRunner().invoke(
        cli, ["rename", str(source), "--root-dir", PROJECT_ROOT_NAME, "--in-place"]
    )

    assert result.exit_code == 0, result.output
    assert "note: 'bar' is not written here, not renamed to 'm_bar'" in result.output
    assert source.read_text() == text.replace("int bar", "int m_bar")
