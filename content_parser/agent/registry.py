"""Parser registry: binds normalized names to strategies."""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Union

from content_parser.engines.errors import ParserAlreadyRegisteredError, ParserNotFoundError
from content_parser.engines.parser_strategy import ParserStrategy


logger = logging.getLogger(__name__)


StrategyFactory = Callable[[], ParserStrategy]


def normalize_name(name: str) -> str:
    """Registry key for ``name``: trimmed and lower-cased."""
    return (name or "").strip().lower()


@dataclass
class RegisteredParser:
    """A registry entry.

    Attributes:
        name: Normalized parser name
        instance: Resolved strategy, or None until the factory first runs
        factory: Zero-argument factory for lazily built strategies
    """
    name: str
    instance: ParserStrategy | None = None
    factory: StrategyFactory | None = None


class ParserRegistry:
    """Thread-safe name -> strategy lookup.

    Strategies may be registered as instances or as zero-argument factories;
    a factory runs on first ``get`` and its result is cached. Registry errors
    are wiring mistakes and always raise.
    """

    def __init__(self) -> None:
        self._entries: dict[str, RegisteredParser] = {}
        # Re-entrant: a factory may resolve other parsers through get()
        self._lock = threading.RLock()

    def register(self, name: str, strategy: Union[ParserStrategy, StrategyFactory]) -> None:
        """Register a strategy instance or factory under ``name``.

        Raises:
            ParserAlreadyRegisteredError: If the normalized name is taken.
            ValueError: If the name is empty.
        """
        key = normalize_name(name)
        if not key:
            raise ValueError("Parser name must not be empty")

        if isinstance(strategy, ParserStrategy):
            entry = RegisteredParser(name=key, instance=strategy)
        elif callable(strategy):
            entry = RegisteredParser(name=key, factory=strategy)
        else:
            raise TypeError(f"Cannot register {type(strategy).__name__} as parser '{key}'")

        with self._lock:
            if key in self._entries:
                raise ParserAlreadyRegisteredError(key)
            self._entries[key] = entry

        logger.debug(f"Registered parser '{key}'")

    def get(self, name: str) -> ParserStrategy:
        """Return the strategy registered under ``name``.

        Raises:
            ParserNotFoundError: If nothing is registered under the normalized name.
        """
        key = normalize_name(name)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                raise ParserNotFoundError(key)
            if entry.instance is None:
                entry.instance = entry.factory()
            return entry.instance

    def has(self, name: str) -> bool:
        with self._lock:
            return normalize_name(name) in self._entries

    def names(self) -> list[str]:
        """Registered names in registration order."""
        with self._lock:
            return list(self._entries)

    def remove(self, name: str) -> None:
        """Unregister ``name``; unknown names are ignored."""
        with self._lock:
            self._entries.pop(normalize_name(name), None)

    def details(self, name: str) -> dict[str, Any]:
        """Describe one parser: name, class, description and supported types."""
        strategy = self.get(name)
        return {
            "name": normalize_name(name),
            "class": type(strategy).__name__,
            "description": getattr(strategy, "description", ""),
            "supported_types": list(getattr(strategy, "supported_types", ())),
        }

    def all_details(self) -> list[dict[str, Any]]:
        return [self.details(name) for name in self.names()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has(name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
