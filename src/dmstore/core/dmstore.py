"""Core DMStore facade.

This module defines the main entry point used by applications and tests:
it loads configuration, builds the document session and registers one
EntityStore per configured entity kind.
"""

import logging
from typing import Any

import inflection
from dotenv import load_dotenv

from dmstore.core.dewey.dewey import Dewey
from dmstore.core.entities.entity_store import EntityStore
from dmstore.core.entities.kinds import DEFAULT_KINDS, EntityKind
from dmstore.core.sessions.exist_rest import ExistRestSession
from dmstore.core.sessions.memory import MemoryDocumentSession
from dmstore.core.sessions.session import DocumentSession
from dmstore.core.spock.spock import Spock

logger = logging.getLogger(__name__)
load_dotenv()


class DMStore:
    """Core facade for the document management store."""

    def __init__(self, *args, **kwargs):
        """Prevent direct construction; use `DMStore.create(...)` instead."""
        raise RuntimeError("Use: instance = DMStore.create(...)")

    def _initialize(self, *, config_path: str | None = None, session: DocumentSession | None = None):
        """Initialize DMStore internal components.

        Args:
            config_path: Path to JSON configuration file
            session: Optional session overriding the configured backend
        """
        self.spock = Spock(config_path=config_path)
        self.dewey = Dewey()
        self._session = session
        self._owns_session = session is None

        # Alias
        self.config_manager = self.spock
        self.kind_registry = self.dewey
        logger.debug("DMStore instance created.")

    @classmethod
    def create(
        cls,
        *,
        config_path: str | None = None,
        config: dict[str, Any] | None = None,
        session: DocumentSession | None = None,
    ) -> "DMStore":
        """Factory method to create and initialize DMStore.

        Args:
            config_path: Path to JSON configuration file
            config: Optional configuration dictionary
            session: Optional session; built from the ``dmstore`` section when omitted

        Raises:
            ValueError: If the configuration names an unknown backend or an
                incomplete kind.
        """
        instance = cls.__new__(cls)  # bypass __init__
        instance._initialize(config_path=config_path, session=session)
        instance.spock.load(config=config)
        if instance._session is None:
            instance._session = instance._build_session()
        instance._register_kinds()
        return instance

    @property
    def session(self) -> DocumentSession:
        return self._session

    def store(self, kind_id: str) -> EntityStore:
        """Return the EntityStore registered for ``kind_id``.

        Raises:
            LookupError: If the kind is not registered.
        """
        result = self.dewey.execute_get(kind_id)
        if result.store is None:
            available = ", ".join(sorted(self.dewey.list_ids())) or "<none>"
            raise LookupError(f"Kind '{kind_id}' not registered. Available: {available}.")
        return result.store

    def kinds(self) -> list[str]:
        return self.dewey.list_ids()

    def close(self) -> None:
        """Release the HTTP client of a session built by this instance."""
        if self._owns_session and isinstance(self._session, ExistRestSession):
            self._session.close_client()

    def __enter__(self) -> "DMStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # =========================================================================
    # WIRING
    # =========================================================================

    def _build_session(self) -> DocumentSession:
        backend = self.spock.get_dmstore_config("backend", "memory")
        if backend == "memory":
            logger.info("Using in-memory document session.")
            return MemoryDocumentSession()
        if backend == "exist":
            url = self.spock.get_dmstore_config("url")
            if not url:
                raise ValueError("Backend 'exist' requires 'dmstore.url'")
            collection = self.spock.get_dmstore_config("collection", "db")
            logger.info("Using eXist-db session at %s (collection '%s').", url, collection)
            return ExistRestSession(
                url,
                collection,
                username=self.spock.get_dmstore_config("username"),
                password=self.spock.get_dmstore_config("password"),
                timeout=float(self.spock.get_dmstore_config("timeout", 30.0)),
            )
        raise ValueError(f"Unknown backend {backend!r}; expected 'memory' or 'exist'")

    def _configured_kinds(self) -> list[EntityKind]:
        wrapper = self.spock.get_dmstore_config("wrapper")
        kind_ids = list(DEFAULT_KINDS) + [
            kind_id for kind_id in self.spock.kind_ids() if kind_id not in DEFAULT_KINDS
        ]
        kinds = []
        for kind_id in kind_ids:
            overrides = self.spock.get_kind_config(kind_id)
            if not overrides.pop("enabled", True):
                logger.debug("Kind '%s' disabled by configuration.", kind_id)
                continue
            if kind_id in DEFAULT_KINDS:
                base = DEFAULT_KINDS[kind_id].model_dump()
            else:
                tag = overrides.get("tag") or inflection.singularize(kind_id)
                base = {"tag": tag, "entities_root": inflection.pluralize(tag)}
            if wrapper:
                base["wrapper"] = wrapper
            kinds.append(EntityKind(**{**base, **overrides, "id": kind_id}))
        return kinds

    def _register_kinds(self) -> None:
        bootstrap = bool(self.spock.get_dmstore_config("bootstrap", False))
        verify = bool(self.spock.get_dmstore_config("verify", False))
        for kind in self._configured_kinds():
            result = self.dewey.register_kind(kind, self._session)
            if result.is_error():
                logger.warning("Kind '%s' not registered: %s", kind.id, result.detail.message)
                continue
            store = self.dewey.execute_get(kind.id).store
            if bootstrap:
                store.bootstrap()
            if verify:
                store.check_shape()
        logger.info("Registered kinds: %s", ", ".join(self.dewey.list_ids()))


__all__ = ["DMStore"]
