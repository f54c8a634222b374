"""Subscriber key, tags and attributes.

Every mutation is applied to memory and the persistent store synchronously
(callers observe their own writes immediately) and reports a change through
``on_change`` only when state actually changed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from types import MappingProxyType

from pymobilepush._constants import KEY_ATTRIBUTES, KEY_SUBSCRIBER_KEY, KEY_TAGS
from pymobilepush.exceptions import PushValidationError
from pymobilepush.state.store import PersistentStateStore

_logger = logging.getLogger(__name__)


def _require_name(value: object, what: str) -> str:
    if not isinstance(value, str):
        raise PushValidationError(f"{what} must be a string, got {type(value).__name__}")
    if not value.strip():
        raise PushValidationError(f"{what} must contain a non-whitespace character")
    return value


class IdentityAndAttributeStore:
    def __init__(
        self,
        store: PersistentStateStore,
        *,
        on_change: Callable[[], None],
    ) -> None:
        self._store = store
        self._on_change = on_change

        key = store.get(KEY_SUBSCRIBER_KEY)
        self._subscriber_key: str | None = key if isinstance(key, str) else None

        tags = store.get(KEY_TAGS)
        self._tags: set[str] = {t for t in tags if isinstance(t, str)} if isinstance(tags, list) else set()

        attributes = store.get(KEY_ATTRIBUTES)
        self._attributes: dict[str, str] = (
            {str(k): str(v) for k, v in attributes.items()} if isinstance(attributes, dict) else {}
        )

    # ------------------------------------------------------------------
    # Subscriber key
    # ------------------------------------------------------------------

    def set_subscriber_key(self, key: str | None) -> None:
        """Attribute this installation to *key* (``None`` clears it). Last write wins."""
        if key is not None and not isinstance(key, str):
            raise PushValidationError(f"subscriber key must be a string, got {type(key).__name__}")
        if key == self._subscriber_key:
            return
        self._subscriber_key = key
        self._store.set(KEY_SUBSCRIBER_KEY, key)
        _logger.debug("Subscriber key updated")
        self._on_change()

    def get_subscriber_key(self) -> str | None:
        return self._subscriber_key

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def add_tag(self, tag: str) -> None:
        """Add *tag*; adding a tag that is already present is a no-op."""
        tag = _require_name(tag, "tag")
        if tag in self._tags:
            return
        self._tags.add(tag)
        self._persist_tags()
        _logger.debug("Tag added: %s", tag)
        self._on_change()

    def remove_tag(self, tag: str) -> str | None:
        """Remove *tag*. Returns the removed tag, or ``None`` if it was absent."""
        tag = _require_name(tag, "tag")
        if tag not in self._tags:
            return None
        self._tags.discard(tag)
        self._persist_tags()
        _logger.debug("Tag removed: %s", tag)
        self._on_change()
        return tag

    def all_tags(self) -> frozenset[str]:
        return frozenset(self._tags)

    def _persist_tags(self) -> None:
        self._store.set(KEY_TAGS, sorted(self._tags))

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------

    def add_attribute(self, name: str, value: str) -> None:
        """Set attribute *name* to *value*, overwriting any previous value."""
        name = _require_name(name, "attribute name")
        if not isinstance(value, str):
            raise PushValidationError(f"attribute value must be a string, got {type(value).__name__}")
        if self._attributes.get(name) == value:
            return
        self._attributes[name] = value
        self._persist_attributes()
        _logger.debug("Attribute set: %s", name)
        self._on_change()

    def remove_attribute(self, name: str) -> str | None:
        """Remove attribute *name*. Returns its previous value, or ``None`` if absent."""
        name = _require_name(name, "attribute name")
        if name not in self._attributes:
            return None
        previous = self._attributes.pop(name)
        self._persist_attributes()
        _logger.debug("Attribute removed: %s", name)
        self._on_change()
        return previous

    def all_attributes(self) -> Mapping[str, str]:
        """Read-only snapshot of the attribute map."""
        return MappingProxyType(dict(self._attributes))

    def _persist_attributes(self) -> None:
        self._store.set(KEY_ATTRIBUTES, dict(self._attributes))
