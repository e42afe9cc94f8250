"""Sessions - DocumentSession protocol (contract).

Defines the narrow capability interface through which the store reaches
the document database:

- open/close a named document,
- evaluate a path expression into an ordered list of strings,
- execute an XUpdate fragment and get the modified-node count.

Adapters live next to this module (``memory``, ``exist_rest``).
"""

import logging
from abc import abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Protocol, runtime_checkable

from dmstore.core.xupdate.fragments import Modifications

logger = logging.getLogger(__name__)


@runtime_checkable
class DocumentSession(Protocol):
    """Protocol for document database sessions.

    Note:
        - Handles are opaque; only the session that issued one may use it.
        - ``query`` returns an empty list for "no match", which is distinct
          from ``[""]`` (one match with empty string value).
        - ``mutate`` returning 0 is not an error: the fragment matched nothing.
        - Errors are raised as ``NotFound`` (unknown document),
          ``MalformedFragment`` (rejected expression or fragment) and
          ``BackendUnavailable`` (everything else).
    """

    @property
    def name(self) -> str:
        """Human-readable name for this session/backend."""
        ...

    @abstractmethod
    def open(self, document: str) -> Any:
        """Open a named document and return a handle for it.

        Raises:
            NotFound: If the document does not exist.
            BackendUnavailable: If the backend cannot be reached.
        """
        ...

    @abstractmethod
    def close(self, handle: Any) -> None:
        """Release a handle returned by ``open``."""
        ...

    @abstractmethod
    def query(self, handle: Any, expression: str) -> list[str]:
        """Evaluate a path expression against the document.

        Args:
            handle: Handle from ``open``.
            expression: XPath/XQuery expression.

        Returns:
            Ordered string values of the result items. Element results are
            serialized markup, attribute and text results their string value,
            numbers their canonical XPath string.

        Raises:
            MalformedFragment: If the expression is rejected.
            BackendUnavailable: If the backend call fails.
        """
        ...

    @abstractmethod
    def mutate(self, handle: Any, fragment: Modifications | str) -> int:
        """Execute an XUpdate fragment against the document.

        Args:
            handle: Handle from ``open``.
            fragment: ``Modifications`` value or complete XUpdate text.

        Returns:
            Number of modified nodes.

        Raises:
            MalformedFragment: If the fragment is rejected.
            BackendUnavailable: If the backend call fails.
        """
        ...

    @abstractmethod
    def exists(self, handle: Any, expression: str) -> bool:
        """Return True if ``expression`` matches at least one item."""
        ...


@runtime_checkable
class DocumentFactory(Protocol):
    """Optional capability of sessions able to create store documents."""

    @abstractmethod
    def has_document(self, document: str) -> bool:
        """Return True if the named document exists."""
        ...

    @abstractmethod
    def create_document(self, document: str, entities_root: str, wrapper: str) -> None:
        """Create ``<wrapper><entities_root/></wrapper>`` under ``document``.

        Raises:
            AlreadyExists: If the document already exists.
        """
        ...


@contextmanager
def opened(session: DocumentSession, document: str) -> Iterator[Any]:
    """Open ``document`` for the duration of a ``with`` block.

    The handle is closed on every exit path. When the block raises, a failure
    while closing is logged and dropped so it never masks the primary error.

    Example:
        >>> with opened(session, "DMSUsers.xml") as handle:
        ...     ids = session.query(handle, "/DMS/*[1]/*/@id")
    """
    handle = session.open(document)
    try:
        yield handle
    except BaseException:
        try:
            session.close(handle)
        except Exception as e:
            logger.warning("Failed to close document '%s' during unwind: %s", document, e)
        raise
    else:
        session.close(handle)


__all__ = ["DocumentSession", "DocumentFactory", "opened"]
