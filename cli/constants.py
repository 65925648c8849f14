# Fallback for --root-dir: fixtures live under tests/ in the projects we were built for.
DEFAULT_SRC_ROOT_DIR = "tests"

REQUIRED_FIELD_PREFIX = "m_"

# Only used when function renaming is switched on.
FUNCTION_RENAME_SUFFIX = "_renamed"

DEFAULT_OUTPUT_DIR = "renamed"

WRONG_FIELD_NAME_MESSAGE = "wrong name for field"
