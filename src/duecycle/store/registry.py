"""
Store factory — builds the obligation store named in the configuration.

Supports the built-in backends and, as a plugin hook, any fully qualified
class path whose class subclasses :class:`ObligationStore`.
"""

from __future__ import annotations

import importlib
import logging

from duecycle.config import DuecycleConfig, StoreConfig
from duecycle.store.base import ObligationStore

logger = logging.getLogger("duecycle.store.registry")

# Built-in store type mapping
_BUILTIN_STORES: dict[str, str] = {
    "memory": "duecycle.store.memory.InMemoryObligationStore",
    "sql": "duecycle.store.sql.SQLObligationStore",
}


def create_store(config: DuecycleConfig | StoreConfig) -> ObligationStore:
    """Instantiate the configured store.

    Raises:
        ValueError: the store type cannot be imported or is not a store.
    """
    store_config = config.store if isinstance(config, DuecycleConfig) else config
    store_path = _BUILTIN_STORES.get(store_config.type, store_config.type)

    try:
        module_path, class_name = store_path.rsplit(".", 1)
        module = importlib.import_module(module_path)
        store_cls = getattr(module, class_name)
    except (ValueError, ImportError, AttributeError) as e:
        raise ValueError(f"Cannot load store '{store_config.type}': {e}") from e

    if not (isinstance(store_cls, type) and issubclass(store_cls, ObligationStore)):
        raise ValueError(f"'{store_path}' is not an ObligationStore")

    options = dict(store_config.options)
    if store_config.url:
        options["url"] = store_config.url
    store = store_cls(**options)
    logger.info("Using %s obligation store", store.name)
    return store
