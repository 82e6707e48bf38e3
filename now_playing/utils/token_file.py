"""Read and overwrite the single-value refresh token file."""

import os
import tempfile
from pathlib import Path

from now_playing.logging_config import get_logger

logger = get_logger(__name__)


def read_token_file(path: Path) -> str | None:
    """Load the stored token.

    Args:
        path: Token file location

    Returns:
        The token, or None if the file is missing or blank

    Raises:
        OSError: If the file exists but cannot be read
    """
    if not path.exists():
        return None
    token = path.read_text(encoding="utf-8").strip()
    return token or None


def write_token_file(path: Path, token: str) -> None:
    """Replace the stored token atomically.

    The token is written to a sibling temp file and moved over the old one,
    so a crash mid-write never leaves a truncated token behind.

    Args:
        path: Token file location
        token: Token to store

    Raises:
        ValueError: If the token is empty or spans several lines
        OSError: If the file cannot be written
    """
    if not token or "\n" in token:
        raise ValueError("Refusing to store an empty or multi-line token")

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp:
            tmp.write(token)
        os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    logger.info(f"Saved refresh token to {path.name}")
