import sys
import time
from pathlib import Path

import click

import batching_rewriter
import renaming
from constants import DEFAULT_OUTPUT_DIR, DEFAULT_SRC_ROOT_DIR
from rename_engine import RenameWarning
from syntax_model import LocationMode


def report_warning(warning: RenameWarning) -> None:
    click.echo(warning.render(), err=True)


def report_skipped(result: renaming.RenameResult) -> None:
    for skipped in result.skipped:
        click.echo(skipped.render(), err=True)


def config_from_options(
    config_path_or_literal: str | None,
    root_dir: str | None,
    edit_location: str | None,
    rename_functions: bool | None,
) -> renaming.RenameConfig:
    """Command line flags take precedence over whatever `--config` provides."""
    config = renaming.load_and_parse_config(config_path_or_literal)
    if root_dir is not None:
        config.root_dir = root_dir
    if edit_location is not None:
        config.edit_location = LocationMode(edit_location)
    if rename_functions is not None:
        config.rename_functions = rename_functions
    return config


def analysis_options(fn):
    """Options shared by every command that analyzes a source file."""
    options = [
        click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path)),
        click.argument("clang_args", nargs=-1, type=click.UNPROCESSED),
        click.option(
            "--root-dir",
            help="Only files whose directory contains this string are renamed"
            f" (default: '{DEFAULT_SRC_ROOT_DIR}').",
        ),
        click.option(
            "--edit-location",
            type=click.Choice([m.value for m in LocationMode]),
            help="Which location of a name inside a macro expansion gets edited"
            " (default: spelling).",
        ),
        click.option(
            "--rename-functions/--no-rename-functions",
            default=None,
            help="Also rename free functions (off by default).",
        ),
        click.option(
            "--compdb",
            type=click.Path(exists=True, file_okay=False, path_type=Path),
            help="Directory holding compile_commands.json to take compiler arguments from.",
        ),
        click.option("--libclang", help="Path to the libclang shared library to use."),
        click.option("--config", help="Renaming configuration. Path or JSON literal."),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


@click.group()
def cli():
    pass


@cli.command()
@analysis_options
@click.option(
    "--output-dir",
    default=DEFAULT_OUTPUT_DIR,
    type=click.Path(file_okay=False, path_type=Path),
    help=f"Where rewritten files go, mirroring their layout (default: '{DEFAULT_OUTPUT_DIR}').",
)
@click.option(
    "--base-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Paths below --output-dir are relative to this directory (default: cwd).",
)
@click.option("--in-place", is_flag=True, help="Overwrite the original files instead.")
@click.option(
    "--report",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write a JSON record of the run to this file.",
)
def rename(
    source: Path,
    clang_args: tuple[str, ...],
    root_dir,
    edit_location,
    rename_functions,
    compdb,
    libclang,
    config,
    output_dir: Path,
    base_dir: Path | None,
    in_place: bool,
    report: Path | None,
):
    """Rename non-compliant data members of SOURCE and the headers it includes.

    Arguments after SOURCE (put them after `--`) are passed to clang."""
    start_time = time.time()
    rename_config = config_from_options(config, root_dir, edit_location, rename_functions)

    try:
        result = renaming.do_rename(
            source, clang_args, rename_config, compdb, libclang, on_warning=report_warning
        )
        if in_place:
            batching_rewriter.write_outcomes_in_place(result.outcomes)
        else:
            batching_rewriter.write_outcomes(result.outcomes, output_dir, base_dir or Path.cwd())
    except (ValueError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    report_skipped(result)
    for outcome in result.outcomes:
        if outcome.changed:
            click.echo(f"Src file changed: {outcome.filepath}")
        else:
            click.echo(f"No changes in {outcome.filepath}", err=True)

    if report is not None:
        record = renaming.make_run_record(source, rename_config, result, start_time)
        report.write_text(record.to_json(indent=2), encoding="utf-8")


@cli.command()
@analysis_options
def check(
    source: Path,
    clang_args: tuple[str, ...],
    root_dir,
    edit_location,
    rename_functions,
    compdb,
    libclang,
    config,
):
    """Report non-compliant data members of SOURCE without writing anything.

    Exits with status 1 if any were found."""
    rename_config = config_from_options(config, root_dir, edit_location, rename_functions)

    try:
        result = renaming.do_rename(
            source, clang_args, rename_config, compdb, libclang, on_warning=report_warning
        )
    except (ValueError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    report_skipped(result)
    for filepath in result.changed_files:
        click.echo(f"Would change: {filepath}")

    if result.warnings:
        click.echo(f"{len(result.warnings)} non-compliant declaration(s)", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
