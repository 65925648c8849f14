import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from dataclasses_json import DataClassJsonMixin

import syntax_model as sm
from batching_rewriter import BatchingRewriter, FileOutcome
from caching_file_contents import CachingFileContents
from cindex_frontend import build_syntax_tree
from cindex_helpers import create_clang_index, parse_translation_unit_with_args
from compilation_database import CompileCommands
from constants import DEFAULT_SRC_ROOT_DIR, FUNCTION_RENAME_SUFFIX, REQUIRED_FIELD_PREFIX
from identity_resolver import CanonicalIdentity
from naming_policy import FieldPrefixPolicy, FunctionSuffixPolicy
from rename_engine import RenameDecision, RenameEngine, RenameWarning, SkippedEdit
from scope_filter import ScopeFilter


@dataclass
class RenameConfig(DataClassJsonMixin):
    root_dir: str = DEFAULT_SRC_ROOT_DIR
    prefix: str = REQUIRED_FIELD_PREFIX
    edit_location: sm.LocationMode = sm.LocationMode.SPELLING
    rename_functions: bool = False
    function_suffix: str = FUNCTION_RENAME_SUFFIX

    def field_policy(self) -> FieldPrefixPolicy:
        return FieldPrefixPolicy(self.prefix)

    def function_policy(self) -> FunctionSuffixPolicy | None:
        if not self.rename_functions:
            return None
        return FunctionSuffixPolicy(self.function_suffix)


def load_and_parse_config(config_path_or_literal: str | None) -> RenameConfig:
    if not config_path_or_literal:
        return RenameConfig()
    try:
        data = json.loads(config_path_or_literal)
    except json.JSONDecodeError:
        data = json.loads(Path(config_path_or_literal).read_text(encoding="utf-8"))
    return RenameConfig.from_dict(data)


@dataclass
class RenameResult:
    outcomes: list[FileOutcome]
    warnings: list[RenameWarning]
    decisions: dict[CanonicalIdentity, RenameDecision]
    skipped: list[SkippedEdit] = field(default_factory=list)

    @property
    def changed_files(self) -> list[str]:
        return [o.filepath for o in self.outcomes if o.changed]

    @property
    def unchanged_files(self) -> list[str]:
        return [o.filepath for o in self.outcomes if not o.changed]


@dataclass
class RenameRunRecord(DataClassJsonMixin):
    source: str
    root_dir: str
    edit_location: str
    elapsed_ms: int
    warnings: list[RenameWarning] = field(default_factory=list)
    skipped: list[SkippedEdit] = field(default_factory=list)
    changed_files: list[str] = field(default_factory=list)
    unchanged_files: list[str] = field(default_factory=list)


def rename_syntax_tree(
    tu: sm.TranslationUnit,
    config: RenameConfig,
    contents: CachingFileContents | None = None,
    on_warning: Callable[[RenameWarning], None] | None = None,
) -> RenameResult:
    """One full run over an already-resolved tree: traverse, then flush every touched file."""
    scope = ScopeFilter(config.root_dir, tu.main_file, config.edit_location)
    rewriter = BatchingRewriter(contents)
    engine = RenameEngine(
        scope,
        rewriter,
        field_policy=config.field_policy(),
        function_policy=config.function_policy(),
        on_warning=on_warning,
    )
    engine.run(tu)
    return RenameResult(
        outcomes=rewriter.flush(scope.touched_files()),
        warnings=engine.warnings,
        decisions=engine.renamed(),
        skipped=engine.skipped,
    )


def parse_args_for(source: Path, clang_args: Sequence[str], compdb_dir: Path | None) -> list[str]:
    args: list[str] = []
    if compdb_dir is not None:
        compdb = CompileCommands.from_directory(compdb_dir)
        args.extend(compdb.get_parse_args_for_path(source.absolute()))
    args.extend(clang_args)
    return args


def do_rename(
    source: Path,
    clang_args: Sequence[str],
    config: RenameConfig,
    compdb_dir: Path | None = None,
    libclang_path: str | None = None,
    on_warning: Callable[[RenameWarning], None] | None = None,
) -> RenameResult:
    index = create_clang_index(libclang_path)
    tu = parse_translation_unit_with_args(
        index, source.as_posix(), parse_args_for(source, clang_args, compdb_dir)
    )
    return rename_syntax_tree(build_syntax_tree(tu), config, on_warning=on_warning)


def make_run_record(
    source: Path, config: RenameConfig, result: RenameResult, start_time: float
) -> RenameRunRecord:
    return RenameRunRecord(
        source=source.as_posix(),
        root_dir=config.root_dir,
        edit_location=config.edit_location.value,
        elapsed_ms=int((time.time() - start_time) * 1000),
        warnings=result.warnings,
        skipped=result.skipped,
        changed_files=result.changed_files,
        unchanged_files=result.unchanged_files,
    )
