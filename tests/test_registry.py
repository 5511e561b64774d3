"""Tests for the store factory."""

import pytest

from duecycle.config import DuecycleConfig, StoreConfig
from duecycle.store import InMemoryObligationStore, create_store
from duecycle.store.sql import SQLObligationStore


class TestCreateStore:
    def test_default_is_memory(self):
        store = create_store(DuecycleConfig())
        assert isinstance(store, InMemoryObligationStore)
        assert store.name == "memory"

    def test_sql_with_url(self):
        store = create_store(StoreConfig(type="sql", url="sqlite://"))
        assert isinstance(store, SQLObligationStore)
        assert store.name == "sql"

    def test_dotted_class_path(self):
        config = StoreConfig(type="duecycle.store.memory.InMemoryObligationStore", options={"label": "custom"})
        store = create_store(config)
        assert isinstance(store, InMemoryObligationStore)
        assert store.options == {"label": "custom"}

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Cannot load store"):
            create_store(StoreConfig(type="nosuch"))

    def test_missing_module(self):
        with pytest.raises(ValueError, match="Cannot load store"):
            create_store(StoreConfig(type="duecycle.nowhere.Store"))

    def test_not_a_store(self):
        with pytest.raises(ValueError, match="not an ObligationStore"):
            create_store(StoreConfig(type="duecycle.models.tags.Tag"))
