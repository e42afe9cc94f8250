"""Dewey - Entity Kind Registry.

Dewey catalogues the entity stores of a DMStore instance by kind id
("users", "groups", "tags", ...), with metadata for lookups. Like a
library catalogue, it knows where every kind of entity is shelved.
"""

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

import inflection

from dmstore.core.dto.dewey_dto import GetResult, RegisterResult, SearchKindResult
from dmstore.core.dto.result_dto import StatusCode, StatusDetail
from dmstore.core.entities.allocator import IdentifierAllocator
from dmstore.core.entities.entity_store import EntityStore
from dmstore.core.entities.kinds import EntityKind
from dmstore.core.sessions.session import DocumentSession

logger = logging.getLogger(__name__)


# =============================================================================
# KIND ENTRY (INTERNAL)
# =============================================================================


@dataclass(slots=True)
class KindEntry:
    """Internal entry for registered stores.

    Attributes:
        id: Kind id.
        store: The EntityStore serving the kind.
        meta: Arbitrary metadata for searching/filtering.
    """

    id: str
    store: EntityStore
    meta: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# DEWEY - KIND REGISTRY
# =============================================================================


class Dewey:
    """Registry of EntityStores keyed by kind id.

    Example:
        >>> dewey = Dewey()
        >>> dewey.register_kind(DEFAULT_KINDS["users"], session)
        >>> users = dewey.execute_get("users").store
        >>> tables = dewey.execute_search_by_meta(document="DMSTags.xml")
    """

    def __init__(self):
        self._registry: dict[str, KindEntry] = {}
        logger.debug("Dewey instance created.")

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def execute_register(
        self,
        id: str,
        store: EntityStore,
        meta: dict[str, Any] | None = None,
    ) -> RegisterResult:
        """Register a store under the given kind id.

        [Result Pattern] Check result.is_ok() and result.created for status.

        Args:
            id: Unique kind id.
            store: The EntityStore to register.
            meta: Optional metadata for searching/filtering.

        Returns:
            RegisterResult with:
            - success + created=True: New registration
            - success + created=False + detail(DUPLICATE): Same instance (skipped)
            - error + detail(ALREADY_EXISTS): Different store with same id
            - error + detail(INVALID): Invalid id or store type
        """
        if not isinstance(id, str) or not id.strip():
            return RegisterResult.fail(
                StatusDetail(
                    code=StatusCode.INVALID,
                    message=f"Invalid kind id: {id!r}",
                    context={"id": id},
                ),
                id=str(id) if id else "",
                created=False,
            )

        if not isinstance(store, EntityStore):
            return RegisterResult.fail(
                StatusDetail(
                    code=StatusCode.INVALID,
                    message=f"Kind '{id}' must be served by an EntityStore",
                    context={"id": id, "type": type(store).__name__},
                ),
                id=id,
                created=False,
            )

        if id in self._registry:
            if self._registry[id].store is store:
                logger.warning("Kind '%s' already registered with the same store. Skipping.", id)
                return RegisterResult.success(
                    id=id,
                    created=False,
                    detail=StatusDetail(
                        code=StatusCode.DUPLICATE,
                        message="Same instance already registered",
                    ),
                )
            return RegisterResult.fail(
                StatusDetail(
                    code=StatusCode.ALREADY_EXISTS,
                    message=f"Override not allowed for already registered kind: {id!r}",
                    context={"id": id},
                ),
                id=id,
                created=False,
            )

        self._registry[id] = KindEntry(id=id, store=store, meta=meta or {})
        logger.debug("Kind '%s' registered on document '%s'.", id, store.document)
        return RegisterResult.success(id=id, created=True)

    def register_kind(
        self,
        kind: EntityKind,
        session: DocumentSession,
        *,
        allocator: IdentifierAllocator | None = None,
        meta: dict[str, Any] | None = None,
    ) -> RegisterResult:
        """Build an EntityStore for ``kind`` and register it under ``kind.id``.

        The kind's document, entities root, tag and a display label are added
        to the metadata.
        """
        store = EntityStore(kind, session, allocator)
        merged = {
            "document": kind.document,
            "entities_root": kind.entities_root,
            "tag": kind.tag,
            "label": inflection.humanize(kind.id),
            **(meta or {}),
        }
        return self.execute_register(kind.id, store, merged)

    def unregister(self, id: str) -> bool:
        """Unregister a kind. Returns False if it was not registered."""
        if id in self._registry:
            del self._registry[id]
            logger.debug("Kind '%s' unregistered.", id)
            return True
        return False

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def execute_get(self, id: str) -> GetResult:
        """Get a store by kind id.

        Returns:
            GetResult with:
            - success: Store found in result.store
            - success + detail(NOT_FOUND): Kind not registered (expected state)
        """
        entry = self._registry.get(id)
        if entry is None:
            logger.debug("Kind '%s' not found in registry.", id)
            return GetResult.success(
                store=None,
                id=id,
                detail=StatusDetail(
                    code=StatusCode.NOT_FOUND,
                    message=f"Kind '{id}' not found",
                    context={"id": id},
                ),
            )
        return GetResult.success(store=entry.store, id=id)

    def get_meta(self, id: str) -> dict[str, Any] | None:
        entry = self._registry.get(id)
        if entry is None:
            return None
        return dict(entry.meta)

    def has(self, id: str) -> bool:
        return id in self._registry

    # =========================================================================
    # SEARCH
    # =========================================================================

    def execute_search(
        self,
        predicate: Callable[[dict[str, Any]], bool],
    ) -> SearchKindResult:
        """Search registered kinds by metadata predicate.

        A predicate raising for one entry is logged and treated as no match.

        Returns:
            SearchKindResult with:
            - success: Matches in result.stores / result.ids
            - success + detail(NO_RESULTS): No matches found (informational)
        """
        stores = []
        ids = []
        for entry in self._registry.values():
            try:
                if predicate(entry.meta):
                    stores.append(entry.store)
                    ids.append(entry.id)
            except Exception as e:
                logger.warning("Predicate failed for kind '%s': %s", entry.id, e)

        if not stores:
            return SearchKindResult.success(
                stores=[],
                ids=[],
                detail=StatusDetail(
                    code=StatusCode.NO_RESULTS,
                    message="No kinds matched the predicate",
                ),
            )
        return SearchKindResult.success(stores=stores, ids=ids)

    def execute_search_by_meta(self, **criteria: Any) -> SearchKindResult:
        """Search kinds by exact metadata matches.

        Args:
            **criteria: Key-value pairs that must match in metadata.
                A list or tuple value matches any of its elements;
                None only requires the key to exist.
        """

        def matcher(meta: dict[str, Any]) -> bool:
            for key, value in criteria.items():
                if key not in meta:
                    return False
                if value is None:
                    continue
                if isinstance(value, (list, tuple)):
                    if meta[key] not in value:
                        return False
                elif meta[key] != value:
                    return False
            return True

        return self.execute_search(matcher)

    # =========================================================================
    # ITERATION & INFO
    # =========================================================================

    def list_ids(self) -> list[str]:
        return list(self._registry.keys())

    def __len__(self) -> int:
        return len(self._registry)

    def __iter__(self) -> Iterator[tuple[str, EntityStore]]:
        for entry in self._registry.values():
            yield entry.id, entry.store

    def __contains__(self, id: str) -> bool:
        return id in self._registry

    @property
    def registry(self) -> dict[str, EntityStore]:
        """Shallow copy of the registry as ``{id: store}``."""
        return {entry.id: entry.store for entry in self._registry.values()}


# Alias for consistency with other managers
KindRegistry = Dewey


__all__ = ["Dewey", "KindRegistry", "KindEntry"]
