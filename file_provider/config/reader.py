"""Raw file access for configuration files."""

from pathlib import Path
from typing import Union

from ..errors import FileReadError


def read_file(path: Union[str, Path]) -> str:
    """
    Read the full text content of a configuration file.

    Args:
        path: File to read

    Returns:
        File content decoded as UTF-8

    Raises:
        FileReadError: If the path is empty or the file cannot be read
    """
    if not str(path):
        raise FileReadError(str(path), "invalid filename")

    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise FileReadError(str(path), str(e)) from e
