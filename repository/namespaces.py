# repository/namespaces.py
from typing import Final

ROOT: Final[str] = "ragpipeline"

DOC_LOCKS: Final[str] = f"{ROOT}:locks:doc"
