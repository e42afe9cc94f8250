"""Entities - Identifier allocation.

New ids are derived as ``max(existing) + 1``. The allocation query and the
append that consumes the id are separate round trips and no lock is held
between them: two concurrent allocations against the same document can
return the same id. Callers needing strict uniqueness serialize ``create``
calls themselves.
"""

import logging
import math
from typing import Any

from dmstore.core.exceptions import MalformedDocument
from dmstore.core.sessions.session import DocumentSession
from dmstore.core.xupdate.paths import all_ids

logger = logging.getLogger(__name__)

#: Selector of every entity id in a store document.
DEFAULT_ID_SELECTOR = all_ids()


class IdentifierAllocator:
    """Issues the next free integer id for a collection of id-carrying nodes."""

    def next(
        self,
        session: DocumentSession,
        handle: Any,
        id_selector: str = DEFAULT_ID_SELECTOR,
    ) -> int:
        """Return ``floor(max(id_selector)) + 1``, or 1 when nothing matches.

        Args:
            session: Session the handle belongs to.
            handle: Open document handle.
            id_selector: Expression selecting the id attributes to consider.

        Raises:
            MalformedDocument: If the maximum is not a number.
        """
        result = session.query(handle, f"max({id_selector})")
        if not result:
            logger.debug("No ids under %s, starting at 1", id_selector)
            return 1
        try:
            current = float(result[0])
        except ValueError:
            current = math.nan
        if not math.isfinite(current):
            raise MalformedDocument(
                getattr(handle, "document", "?"),
                f"non-numeric id found under {id_selector!r}: {result[0]!r}",
            )
        new_id = math.floor(current) + 1
        logger.debug("Allocated id %d under %s", new_id, id_selector)
        return new_id


__all__ = ["IdentifierAllocator", "DEFAULT_ID_SELECTOR"]
