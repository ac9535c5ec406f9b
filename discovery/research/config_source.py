"""ConfigSource: where routing configuration comes from and how changes arrive.

Two implementations:
- StaticConfigSource: fixed document (defaults or tests)
- JsonFileConfigSource: JSON file polled by mtime; watch() runs the poll loop

Consumers only see load() and on_change(callback); the polling mechanism
stays behind the interface.
"""

import asyncio
import json
from collections.abc import Callable
from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog

from discovery.schemas.research import RoutingConfig

logger = structlog.get_logger(__name__)

ConfigListener = Callable[[RoutingConfig], None]


@runtime_checkable
class ConfigSource(Protocol):
    def load(self) -> RoutingConfig: ...

    def on_change(self, callback: ConfigListener) -> None: ...


class StaticConfigSource:
    """Config source that never changes unless told to via publish()."""

    def __init__(self, config: RoutingConfig | None = None):
        self._config = config or RoutingConfig()
        self._listeners: list[ConfigListener] = []

    def load(self) -> RoutingConfig:
        return self._config

    def on_change(self, callback: ConfigListener) -> None:
        self._listeners.append(callback)

    def publish(self, config: RoutingConfig) -> None:
        self._config = config
        for listener in self._listeners:
            listener(config)


class JsonFileConfigSource:
    """Routing config file, merged over built-in defaults.

    A missing or invalid file yields the defaults; a reload that fails to
    parse keeps the last good config.
    """

    def __init__(self, path: str | Path, poll_seconds: float = 2.0):
        self.path = Path(path)
        self.poll_seconds = poll_seconds
        self._listeners: list[ConfigListener] = []
        self._last_mtime: float | None = None
        self._current: RoutingConfig | None = None

    def _mtime(self) -> float | None:
        try:
            return self.path.stat().st_mtime
        except FileNotFoundError:
            return None

    def _read(self) -> RoutingConfig:
        document = json.loads(self.path.read_text(encoding="utf-8"))
        return RoutingConfig.from_document(document)

    def load(self) -> RoutingConfig:
        self._last_mtime = self._mtime()
        if self._last_mtime is None:
            logger.info("router_config_defaults", path=str(self.path))
            self._current = RoutingConfig()
            return self._current
        try:
            self._current = self._read()
            logger.info("router_config_loaded", path=str(self.path))
        except (ValueError, OSError) as exc:
            logger.warning("router_config_invalid", path=str(self.path), error=str(exc))
            self._current = RoutingConfig()
        return self._current

    def on_change(self, callback: ConfigListener) -> None:
        self._listeners.append(callback)

    def poll(self) -> bool:
        """Check the file once; notify listeners if it changed and parsed.

        Returns:
            True if listeners were notified with a new config
        """
        mtime = self._mtime()
        if mtime is None or mtime == self._last_mtime:
            return False
        self._last_mtime = mtime
        try:
            config = self._read()
        except (ValueError, OSError) as exc:
            logger.warning("router_config_reload_failed", path=str(self.path), error=str(exc))
            return False

        self._current = config
        for listener in self._listeners:
            listener(config)
        logger.info("router_config_reloaded", path=str(self.path))
        return True

    async def watch(self, stop_event: asyncio.Event | None = None) -> None:
        """Poll until stop_event is set (or forever). Run as a background task."""
        stop_event = stop_event or asyncio.Event()
        while not stop_event.is_set():
            self.poll()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_seconds)
            except asyncio.TimeoutError:
                continue
