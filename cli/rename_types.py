from typing import TypeAlias

FilePathStr: TypeAlias = str
Usr: TypeAlias = str
