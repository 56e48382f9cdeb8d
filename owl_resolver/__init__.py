"""Opal load-path resolver with a persistent, Gemfile.lock-invalidated cache."""

from .cache_store import CacheState
from .cache_store import CacheStore
from .cache_store import LoadPathIndex
from .config import ResolverConfig
from .config import load_config
from .errors import CacheCorruptError
from .errors import ConfigurationError
from .errors import ExternalToolError
from .errors import OwlResolverError
from .errors import StaleLockWarning
from .plugin import OpalResolverPlugin
from .resolver import Resolver

__version__ = "0.1.0"

__all__ = [
    "CacheCorruptError",
    "CacheState",
    "CacheStore",
    "ConfigurationError",
    "ExternalToolError",
    "LoadPathIndex",
    "OpalResolverPlugin",
    "OwlResolverError",
    "Resolver",
    "ResolverConfig",
    "StaleLockWarning",
    "load_config",
]
