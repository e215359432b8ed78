from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _getenv_int(name: str, default: int) -> int:
    v = os.getenv(name, str(default)).strip()
    try:
        return int(v)
    except ValueError as err:
        raise ValueError(f"Environment variable {name} must be an integer; got {v!r}") from err


def _getenv_str(name: str, default: str) -> str:
    return os.getenv(name, default).strip()


def _getenv_list_int(name: str, default_csv: str) -> list[int]:
    raw = os.getenv(name, default_csv).strip()
    out: list[int] = []
    for tok in (t.strip() for t in raw.split(",")):
        if not tok:
            continue
        try:
            out.append(int(tok))
        except ValueError as err:
            raise ValueError(
                f"Environment variable {name} must be a CSV of integers; got {raw!r}"
            ) from err
    return out


def _getenv_bool(name: str, default: bool) -> bool:
    """
    Read a loosely-typed boolean from the environment.

    Treats "1", "true", "yes", "on" (case-insensitive) as True;
    "0", "false", "no", "off", "" as False. If unset, returns default.
    """
    raw = os.getenv(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off", ""}:
        return False
    return True


def _getenv_bands(name: str, default_csv: str) -> tuple[int, int, int]:
    """
    Read a distance band table (short, medium, long) as a CSV of three
    non-negative integers.
    """
    values = _getenv_list_int(name, default_csv)
    if len(values) != 3 or any(v < 0 for v in values):
        raise ValueError(
            f"Environment variable {name} must be three non-negative integers; got {values!r}"
        )
    return values[0], values[1], values[2]


# Load .env from project root if present
ROOT = Path(__file__).resolve().parents[1]
load_dotenv(ROOT / ".env", override=False)

DEFAULT_DB_PATH = ROOT / "dev.db"

# -------------------------------
# Search scoring (env-overridable)
# -------------------------------
SEARCH_SCORE_CEILING: int = _getenv_int("DMHERO_SEARCH_CEILING", 1000)
SEARCH_RESULT_LIMIT: int = _getenv_int("DMHERO_SEARCH_RESULT_LIMIT", 20)
SEARCH_LINKED_DISPLAY_LIMIT: int = _getenv_int("DMHERO_LINKED_DISPLAY_LIMIT", 5)
SEARCH_MIN_WORD_LENGTH: int = _getenv_int("DMHERO_SEARCH_MIN_WORD_LENGTH", 3)

# Global search and the per-type listings tolerate different distances for
# the same query length. Both tables stay separately configurable.
GLOBAL_DISTANCE_BANDS: tuple[int, int, int] = _getenv_bands("DMHERO_GLOBAL_BANDS", "2,3,4")
SCOPED_DISTANCE_BANDS: tuple[int, int, int] = _getenv_bands("DMHERO_SCOPED_BANDS", "1,2,3")

# Log search decisions per candidate at DEBUG level (noisy on big campaigns).
SEARCH_TRACE: bool = _getenv_bool("DMHERO_SEARCH_TRACE", False)


@dataclass(frozen=True)
class Settings:
    # DB_URL (sqlite:///...) wins over DB_PATH; both empty means ROOT/dev.db.
    DB_URL: str = _getenv_str("DMHERO_DB_URL", "")
    DB_PATH: str = _getenv_str("DMHERO_DB_PATH", "")
    LOG_LEVEL: str = _getenv_str("DMHERO_LOG_LEVEL", "INFO").upper()

    score_ceiling: int = SEARCH_SCORE_CEILING
    result_limit: int = SEARCH_RESULT_LIMIT
    linked_display_limit: int = SEARCH_LINKED_DISPLAY_LIMIT
    min_word_length: int = SEARCH_MIN_WORD_LENGTH
    global_bands: tuple[int, int, int] = GLOBAL_DISTANCE_BANDS
    scoped_bands: tuple[int, int, int] = SCOPED_DISTANCE_BANDS

    def database_path(self) -> str:
        """
        Filesystem path of the campaign database.

        Raises RuntimeError for non-sqlite DB_URL values.
        """
        if self.DB_URL:
            if not self.DB_URL.startswith("sqlite:///"):
                raise RuntimeError(f"Only sqlite is supported; got {self.DB_URL}")
            return self.DB_URL.removeprefix("sqlite:///")
        if self.DB_PATH:
            return self.DB_PATH
        return str(DEFAULT_DB_PATH)


def load_settings() -> Settings:
    """
    Build a fresh Settings snapshot.

    Module-level constants are read once at import; this re-reads the
    environment. The CLI and the API build their search configuration from
    one snapshot.
    """
    return Settings(
        DB_URL=_getenv_str("DMHERO_DB_URL", ""),
        DB_PATH=_getenv_str("DMHERO_DB_PATH", ""),
        LOG_LEVEL=_getenv_str("DMHERO_LOG_LEVEL", "INFO").upper(),
        score_ceiling=_getenv_int("DMHERO_SEARCH_CEILING", 1000),
        result_limit=_getenv_int("DMHERO_SEARCH_RESULT_LIMIT", 20),
        linked_display_limit=_getenv_int("DMHERO_LINKED_DISPLAY_LIMIT", 5),
        min_word_length=_getenv_int("DMHERO_SEARCH_MIN_WORD_LENGTH", 3),
        global_bands=_getenv_bands("DMHERO_GLOBAL_BANDS", "2,3,4"),
        scoped_bands=_getenv_bands("DMHERO_SCOPED_BANDS", "1,2,3"),
    )


settings = Settings()

__all__ = [
    "Settings",
    "load_settings",
    "settings",
    "SEARCH_SCORE_CEILING",
    "SEARCH_RESULT_LIMIT",
    "SEARCH_LINKED_DISPLAY_LIMIT",
    "SEARCH_MIN_WORD_LENGTH",
    "GLOBAL_DISTANCE_BANDS",
    "SCOPED_DISTANCE_BANDS",
    "SEARCH_TRACE",
]
