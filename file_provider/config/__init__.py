"""
Configuration loading subsystem.

Modules:
- reader: Read raw configuration files
- template: Render configuration text through Jinja2
- decoder: Decode TOML into configuration snapshots
- builder: Build one normalized snapshot from one file
- aggregator: Merge every file of a directory tree
- file_watcher: Rebuild and redeliver on filesystem changes
"""

from .reader import read_file
from .template import TemplateRenderer
from .decoder import decode_configuration
from .builder import SnapshotBuilder
from .aggregator import DirectoryAggregator
from .file_watcher import ChangeWatcher, WatchSubscription, is_relevant

__all__ = [
    "read_file",
    "TemplateRenderer",
    "decode_configuration",
    "SnapshotBuilder",
    "DirectoryAggregator",
    "ChangeWatcher",
    "WatchSubscription",
    "is_relevant",
]
