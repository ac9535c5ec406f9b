"""Research routing package.

Provides:
- ResearchRouter: classify, select, fallback and batch dispatch
- ProviderAdapter: protocol every research provider implements
- ConfigSource implementations for static and hot-reloaded routing rules
"""

from discovery.research.config_source import ConfigSource, JsonFileConfigSource, StaticConfigSource
from discovery.research.providers import ProviderAdapter
from discovery.research.router import ResearchRouter

__all__ = [
    "ConfigSource",
    "JsonFileConfigSource",
    "ProviderAdapter",
    "ResearchRouter",
    "StaticConfigSource",
]
