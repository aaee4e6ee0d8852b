"""Structured decoding of configuration text into snapshots."""

import tomllib

from pydantic import ValidationError

from ..errors import DecodeError
from ..models import Configuration


def decode_configuration(text: str) -> Configuration:
    """
    Decode TOML configuration text.

    Top-level tables: ``routers``, ``middlewares``, ``services`` (name-keyed)
    and the ``[[tls]]`` array.

    Args:
        text: TOML document

    Returns:
        Configuration with undeclared mappings left as None

    Raises:
        DecodeError: If TOML syntax or an entity definition is invalid
    """
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise DecodeError(str(e)) from e

    try:
        return Configuration.model_validate(data)
    except ValidationError as e:
        raise DecodeError(str(e)) from e
