"""
Directory aggregator.

Recursively loads every configuration file below a directory and merges
the resulting snapshots with a first-registered-wins policy:

- routers, middlewares, services: a name already merged is kept and the
  later definition is dropped with a warning
- TLS entries: deduplicated by identity across the whole tree, in
  first-seen order
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..errors import DirectoryReadError
from ..models import Configuration, Middleware, PROVIDER_NAME, Router, Service, TLSConfiguration
from .builder import SnapshotBuilder

logger = logging.getLogger(__name__)

# Declarative and template extensions
CONFIG_EXTENSIONS = (".toml", ".tmpl")

NAMED_KINDS = ("router", "middleware", "service")


@dataclass
class MergeState:
    """Accumulator threaded through the directory walk."""
    routers: Dict[str, Router] = field(default_factory=dict)
    middlewares: Dict[str, Middleware] = field(default_factory=dict)
    services: Dict[str, Service] = field(default_factory=dict)
    # Insertion-ordered set
    tls: Dict[TLSConfiguration, None] = field(default_factory=dict)

    @classmethod
    def from_configuration(cls, configuration: Optional[Configuration]) -> "MergeState":
        """Seed the accumulator from an existing snapshot."""
        state = cls()
        if configuration is not None:
            state.merge(configuration)
        return state

    def merge(self, configuration: Configuration) -> None:
        """Merge one snapshot into the accumulator."""
        for kind in NAMED_KINDS:
            existing = self._mapping(kind)
            incoming = getattr(configuration, f"{kind}s") or {}

            for name, conf in incoming.items():
                if name in existing:
                    logger.warning(
                        f"{kind.capitalize()} already configured, skipping: {name}",
                        extra={"provider_name": PROVIDER_NAME, f"{kind}_name": name}
                    )
                    continue
                existing[name] = conf

        for conf in configuration.tls:
            if conf in self.tls:
                logger.debug(f"TLS configuration {conf} already configured, skipping")
                continue
            self.tls[conf] = None

    def to_configuration(self) -> Configuration:
        """Materialize the merged snapshot."""
        return Configuration(
            routers=dict(self.routers),
            middlewares=dict(self.middlewares),
            services=dict(self.services),
            tls=list(self.tls),
        )

    def _mapping(self, kind: str) -> Dict[str, Any]:
        return getattr(self, f"{kind}s")


class DirectoryAggregator:
    """Builds one snapshot from a directory tree of configuration files."""

    def __init__(self, builder: SnapshotBuilder):
        """
        Initialize directory aggregator.

        Args:
            builder: Builder used for every eligible file
        """
        self.builder = builder

    def build_from_directory(
        self,
        root: Union[str, Path],
        accumulator: Optional[Configuration] = None
    ) -> Configuration:
        """
        Build and merge every configuration file below root.

        Entries are visited depth-first in filename order, so the file that
        sorts first wins a name conflict.

        Args:
            root: Directory to walk
            accumulator: Snapshot whose entries take precedence over the tree

        Returns:
            Merged snapshot

        Raises:
            DirectoryReadError: If a directory cannot be listed
            BuildError: If a configuration file cannot be built
        """
        state = MergeState.from_configuration(accumulator)
        state = self._walk(Path(root), state)
        return state.to_configuration()

    def _walk(self, directory: Path, state: MergeState) -> MergeState:
        """Visit one directory, returning the updated accumulator."""
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise DirectoryReadError(str(directory), str(e)) from e

        for entry in entries:
            if entry.is_dir() and not entry.is_symlink():
                state = self._walk(entry, state)
                continue

            if not entry.name.endswith(CONFIG_EXTENSIONS):
                continue

            configuration = self.builder.build(entry, render_template=True)
            state.merge(configuration)

        return state
