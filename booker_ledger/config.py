import os
from pathlib import Path

from .constants import DATA_DIR, DB_FILE_NAME, DB_PATH_ENV

BASE_DIR = Path(__file__).resolve().parent
DATA_PATH = BASE_DIR / DATA_DIR
DB_PATH = DATA_PATH / DB_FILE_NAME


def resolve_db_path(override: str | os.PathLike | None = None) -> Path:
    """
    Resolution order:
      1) explicit override (CLI --db)
      2) BOOKER_LEDGER_DB_PATH environment variable
      3) data/ledger.db next to the package
    The parent directory is created so sqlite can open the file.
    """
    if override:
        path = Path(override).expanduser().resolve()
    else:
        env = os.getenv(DB_PATH_ENV)
        path = Path(env).expanduser().resolve() if env else DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    return path
