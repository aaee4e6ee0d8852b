"""
File Configuration Provider

Dynamic, file-backed configuration source.
Loads configuration from a file or a directory tree and redelivers it on change.
"""

__version__ = "1.0.0"
__author__ = "NixOS Configuration Team"
