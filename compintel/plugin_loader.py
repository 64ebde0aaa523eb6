"""
Plugin loader for discovery and construction of adapters and notifiers.

Classes are registered under ``module.ClassName`` (e.g.
``lexicon.LexiconSentimentAnalyzer``) by scanning the ``compintel.plugins``
and ``compintel.sinks`` packages.
"""

import importlib
import inspect
import logging
import pkgutil
from typing import Any, Dict, Type, TypeVar

from .config import PluginSpec
from .interfaces import EntityExtractor, Notifier, SentimentAnalyzer

logger = logging.getLogger(__name__)

PLUGIN_PACKAGES = ("compintel.plugins", "compintel.sinks")

_PLUGIN_BASES = (SentimentAnalyzer, EntityExtractor, Notifier)

# Global registry of discovered plugin classes
_REGISTRY: Dict[str, type] = {}

T = TypeVar("T")


def refresh_registry() -> None:
    """Scan the plugin packages and register every concrete plugin class."""
    _REGISTRY.clear()

    module_count = 0
    for package_name in PLUGIN_PACKAGES:
        package = importlib.import_module(package_name)
        for info in pkgutil.iter_modules(package.__path__):
            if info.name.startswith("_"):
                continue

            full_name = f"{package_name}.{info.name}"
            try:
                mod = importlib.import_module(full_name)
            except Exception as e:
                logger.error(f"Failed to load module {full_name}: {e}")
                continue
            module_count += 1

            for name, obj in inspect.getmembers(mod, inspect.isclass):
                if (issubclass(obj, _PLUGIN_BASES)
                        and not inspect.isabstract(obj)
                        and obj.__module__ == mod.__name__):
                    key = f"{info.name}.{name}"
                    _REGISTRY[key] = obj
                    logger.debug(f"Registered plugin: {key}")

    logger.info(f"Plugin discovery complete: {module_count} modules, {len(_REGISTRY)} plugins")


def get(class_path: str) -> type:
    """Get a plugin class by its path.

    Args:
        class_path: Format 'module.ClassName' (e.g., 'google_nl.GoogleSentimentAnalyzer')

    Raises:
        KeyError: If the class is not found
    """
    if not _REGISTRY:
        refresh_registry()

    if class_path not in _REGISTRY:
        available = sorted(_REGISTRY.keys())
        raise KeyError(f"Plugin '{class_path}' not found. Available: {available}")

    return _REGISTRY[class_path]


def build(spec: PluginSpec, expected: Type[T]) -> T:
    """Instantiate the plugin named by ``spec`` and check its interface."""
    cls = get(spec.class_path)
    if not issubclass(cls, expected):
        raise TypeError(f"Plugin '{spec.class_path}' is not a {expected.__name__}")
    return cls(**spec.kwargs)


def list_available() -> Dict[str, Any]:
    """Get a copy of all registered plugins."""
    if not _REGISTRY:
        refresh_registry()
    return _REGISTRY.copy()
