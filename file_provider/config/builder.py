"""
Snapshot builder.

Turns one configuration file into a normalized snapshot:
read -> (render template) -> decode -> apply empty defaults.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from ..errors import ConfigError, BuildError
from ..models import Configuration, PROVIDER_NAME
from .decoder import decode_configuration
from .reader import read_file
from .template import TemplateRenderer

logger = logging.getLogger(__name__)


class SnapshotBuilder:
    """Builds configuration snapshots from single files."""

    def __init__(
        self,
        renderer: Optional[TemplateRenderer] = None,
        debug_log_generated_template: bool = False
    ):
        """
        Initialize snapshot builder.

        Args:
            renderer: Template renderer (defaults to one with the default bindings)
            debug_log_generated_template: Log rendered text at DEBUG level
        """
        self.renderer = renderer or TemplateRenderer()
        self.debug_log_generated_template = debug_log_generated_template

    def build(self, path: Union[str, Path], render_template: bool = True) -> Configuration:
        """
        Build a snapshot from a file.

        Args:
            path: Configuration file
            render_template: Render through the template engine before decoding.
                False for the bootstrap file, which is decoded as-is.

        Returns:
            Snapshot whose routers/middlewares/services are never None

        Raises:
            BuildError: Wrapping the read, render or decode failure
        """
        try:
            content = read_file(path)

            if render_template:
                content = self.renderer.render(content)
                if self.debug_log_generated_template:
                    logger.debug(
                        f"Template content for {path}:\n{content}",
                        extra={"provider_name": PROVIDER_NAME}
                    )

            configuration = decode_configuration(content)
        except ConfigError as e:
            raise BuildError(str(path), e) from e

        return configuration.with_defaults()
