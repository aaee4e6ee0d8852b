"""
Pydantic data models for the file configuration provider.

Defines the configuration snapshot, its opaque payload entities, the
delivery message and the provider settings.
"""

import tomllib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


PROVIDER_NAME = "file"


class TargetKind(str, Enum):
    """Kind of backing target, in precedence order."""
    DIRECTORY = "directory"
    FILE = "file"
    FALLBACK_FILE = "fallback_file"


# Payload entities
#
# Their shape is owned by the consuming system; only enough structure is
# declared to decode files written with camelCase keys.

class Router(BaseModel):
    """Routing rule binding entry points to a service, other keys kept as declared."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    entry_points: List[str] = Field(default_factory=list, description="Entry point names")
    middlewares: List[str] = Field(default_factory=list, description="Middleware names applied in order")
    service: str = Field("", description="Target service name")
    rule: str = Field("", description="Matching rule")
    priority: int = Field(0, description="Rule priority")


class Middleware(BaseModel):
    """Request/response middleware, body kept as declared."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class Service(BaseModel):
    """Backend service, body kept as declared."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    load_balancer: Optional[Dict[str, Any]] = Field(None, description="Load balancer definition")


class Certificate(BaseModel):
    """Certificate/key file pair."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    cert_file: str = ""
    key_file: str = ""


class TLSConfiguration(BaseModel):
    """TLS certificate entry.

    Frozen and hashable: two entries with the same content are the same
    entry when merging.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    entry_points: Tuple[str, ...] = ()
    stores: Tuple[str, ...] = ()
    certificate: Certificate = Field(default_factory=Certificate)


# Snapshot

class Configuration(BaseModel):
    """One configuration snapshot.

    Mappings are None when the source did not declare them; snapshots
    handed to consumers always carry empty mappings instead.
    """

    model_config = ConfigDict(populate_by_name=True)

    routers: Optional[Dict[str, Router]] = None
    middlewares: Optional[Dict[str, Middleware]] = None
    services: Optional[Dict[str, Service]] = None
    tls: List[TLSConfiguration] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "Configuration":
        """Snapshot with empty, non-null mappings."""
        return cls(routers={}, middlewares={}, services={}, tls=[])

    def is_empty(self) -> bool:
        """True when no router, middleware, service or TLS entry is declared."""
        return not (self.routers or self.middlewares or self.services or self.tls)

    def with_defaults(self) -> "Configuration":
        """Return this snapshot with absent mappings replaced by empty ones."""
        if self.is_empty():
            return Configuration.empty()

        return self.model_copy(update={
            "routers": self.routers if self.routers is not None else {},
            "middlewares": self.middlewares if self.middlewares is not None else {},
            "services": self.services if self.services is not None else {},
        })

    def summary(self) -> Dict[str, int]:
        """Entity counts, for logging."""
        return {
            "routers": len(self.routers or {}),
            "middlewares": len(self.middlewares or {}),
            "services": len(self.services or {}),
            "tls": len(self.tls),
        }


class Message(BaseModel):
    """Delivery message: provider identity plus one snapshot."""

    model_config = ConfigDict(frozen=True)

    provider_name: str = PROVIDER_NAME
    configuration: Configuration


# Provider settings

@dataclass(frozen=True)
class ProviderTarget:
    """Resolved backing target of a provider."""
    kind: TargetKind
    path: Path

    @property
    def is_directory(self) -> bool:
        return self.kind == TargetKind.DIRECTORY

    @property
    def render_template(self) -> bool:
        """The fallback file is a bootstrap file and is never template-rendered."""
        return self.kind != TargetKind.FALLBACK_FILE

    @property
    def watch_path(self) -> Path:
        """Directory the watcher subscribes to."""
        if self.is_directory:
            return self.path
        return self.path.parent


class ProviderSettings(BaseModel):
    """File provider settings supplied by the host."""

    directory: Optional[str] = Field(None, description="Load configuration from .toml/.tmpl files in a directory tree")
    filename: Optional[str] = Field(None, description="Load configuration from a single file")
    fallback_file: Optional[str] = Field(None, description="Bootstrap file, used when no directory or filename is set")
    watch: bool = Field(False, description="Watch the target for changes and redeliver")
    debug_log_generated_template: bool = Field(False, description="Log rendered templates at DEBUG level")
    channel_capacity: int = Field(10, gt=0, description="Delivery channel capacity")

    @field_validator('directory', 'filename', 'fallback_file', mode='before')
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty strings as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def resolve_target(self) -> Optional[ProviderTarget]:
        """
        Resolve the backing target.

        Precedence: directory > filename > fallback file.

        Returns:
            ProviderTarget or None if nothing is configured
        """
        if self.directory:
            return ProviderTarget(TargetKind.DIRECTORY, Path(self.directory))
        if self.filename:
            return ProviderTarget(TargetKind.FILE, Path(self.filename))
        if self.fallback_file:
            return ProviderTarget(TargetKind.FALLBACK_FILE, Path(self.fallback_file))
        return None

    @classmethod
    def from_toml(cls, path: Path) -> "ProviderSettings":
        """
        Load settings from a TOML file.

        Settings may sit at the top level or under a [file] table.

        Raises:
            FileNotFoundError: If the settings file doesn't exist
            tomllib.TOMLDecodeError: If TOML syntax is invalid
            pydantic.ValidationError: If a setting is invalid
        """
        with open(path, "rb") as f:
            data = tomllib.load(f)

        return cls(**data.get("file", data))
