"""
Template rendering for configuration files.

Configuration text is rendered through Jinja2 before it is decoded, so
files can pull values from the environment or compute repeated blocks.
"""

import logging
import os
from typing import Any, Callable, Dict, List, Mapping, Optional

from jinja2 import Environment, StrictUndefined, TemplateError, TemplateSyntaxError, Undefined

from ..errors import TemplateRenderError

logger = logging.getLogger(__name__)


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default)


def _split(value: str, sep: Optional[str] = None) -> List[str]:
    return value.split(sep)


def _replace(value: str, old: str, new: str) -> str:
    return value.replace(old, new)


def _default(value: Any, fallback: Any) -> Any:
    if isinstance(value, Undefined) or not value:
        return fallback
    return value


DEFAULT_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "env": _env,
    "split": _split,
    "replace": _replace,
    "lower": str.lower,
    "upper": str.upper,
    "trim": str.strip,
    "default": _default,
}


class TemplateRenderer:
    """Renders configuration text with a fixed set of function bindings."""

    def __init__(self, functions: Optional[Mapping[str, Callable[..., Any]]] = None):
        """
        Initialize template renderer.

        Args:
            functions: Extra function bindings, overriding the defaults by name.
                Each binding is available as a global (``env("HOME")``).
                Extra bindings and defaults Jinja has no filter for are also
                filters (``"a,b" | split(",")``); Jinja's own ``default``,
                ``lower``, ``upper``, ``trim`` and ``replace`` filters are kept.
        """
        self.functions: Dict[str, Callable[..., Any]] = dict(DEFAULT_FUNCTIONS)
        if functions:
            self.functions.update(functions)

        self.environment = Environment(
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
        self.environment.globals.update(self.functions)

        for name, function in DEFAULT_FUNCTIONS.items():
            self.environment.filters.setdefault(name, function)
        if functions:
            self.environment.filters.update(functions)

    def render(self, text: str, context: Optional[Mapping[str, Any]] = None) -> str:
        """
        Render configuration text.

        Args:
            text: Template source
            context: Variables available to the template

        Returns:
            Rendered text

        Raises:
            TemplateRenderError: If the template cannot be parsed or evaluated
        """
        try:
            template = self.environment.from_string(text)
            return template.render(**(context or {}))
        except TemplateSyntaxError as e:
            raise TemplateRenderError(e.message or str(e), line_number=e.lineno) from e
        except TemplateError as e:
            raise TemplateRenderError(str(e)) from e
        except (TypeError, ValueError) as e:
            # Raised by function bindings called with bad arguments
            raise TemplateRenderError(str(e)) from e
