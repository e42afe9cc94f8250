"""Sessions - eXist-db REST DocumentSession.

Talks to the eXist-db REST interface (``/exist/rest/db/...``) with httpx:

- queries are sent as ``GET <document>?_query=...&_wrap=yes`` and the
  ``exist:result`` wrapper is unpacked into strings;
- XUpdate fragments are ``POST``-ed to the document URL; the server answers
  with ``<exist:modifications count="N"/>``.

Non-element results (attributes, text nodes, numbers) are converted to
strings server side, so every item comes back either as serialized markup
or as an ``exist:value``.

Errors are never retried here.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from lxml import etree

from dmstore.core.exceptions import (
    AlreadyExists,
    BackendUnavailable,
    MalformedFragment,
    NotFound,
)
from dmstore.core.xupdate.fragments import Modifications
from dmstore.core.xupdate.paths import DEFAULT_WRAPPER, validate_name

logger = logging.getLogger(__name__)

EXIST_NS = "http://exist.sourceforge.net/NS/exist"

_QUERY_TEMPLATE = (
    "for $item in ({expression}) "
    "return if ($item instance of element()) then $item else string($item)"
)

# Markers eXist puts in the body of a 500 answer when the request itself is bad.
_REJECTION_MARKERS = ("XPathException", "XUpdate", "SAXParseException", "XMLDBException")


@dataclass(slots=True)
class ExistHandle:
    """Handle to a document opened on an ``ExistRestSession``."""

    document: str
    path: str
    closed: bool = False


class ExistRestSession:
    """DocumentSession for an eXist-db server reached over its REST API.

    Example:
        >>> session = ExistRestSession("http://localhost:8080/exist/rest", "db/DMS")
        >>> with opened(session, "DMSUsers.xml") as handle:
        ...     session.query(handle, "/DMS/*[1]/*/@id")
        ['1', '2']
    """

    def __init__(
        self,
        base_url: str,
        collection: str,
        *,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 30.0,
        max_results: int = 100000,
        client: httpx.Client | None = None,
        name: str = "exist",
    ):
        """Initialize the session.

        Args:
            base_url: REST root, e.g. ``http://localhost:8080/exist/rest``.
            collection: Collection path holding the documents, e.g. ``db/DMS``.
            username: Optional database user.
            password: Optional database password.
            timeout: Request timeout in seconds.
            max_results: Value sent as ``_howmany`` on queries.
            client: Optional preconfigured httpx client (tests, pooling).
            name: Human-readable name for this session.
        """
        self._collection = collection.strip("/")
        self._max_results = max_results
        self._name = name
        self._owns_client = client is None
        if client is None:
            auth = (username, password or "") if username else None
            client = httpx.Client(base_url=base_url.rstrip("/"), auth=auth, timeout=timeout)
        self._client = client
        logger.debug("ExistRestSession '%s' created for collection '%s'.", name, self._collection)

    @property
    def name(self) -> str:
        return self._name

    def close_client(self) -> None:
        """Close the underlying HTTP client if this session created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "ExistRestSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close_client()

    # =========================================================================
    # DOCUMENT MANAGEMENT
    # =========================================================================

    def has_document(self, document: str) -> bool:
        response = self._request("HEAD", self._path(document), document=document)
        if response.status_code == 404:
            return False
        self._check(response, document=document)
        return True

    def create_document(
        self,
        document: str,
        entities_root: str,
        wrapper: str = DEFAULT_WRAPPER,
    ) -> None:
        """Store an empty ``<wrapper><entities_root/></wrapper>`` document.

        Raises:
            AlreadyExists: If the document already exists.
        """
        if self.has_document(document):
            raise AlreadyExists("document", document=document)
        root = etree.Element(validate_name(wrapper, "wrapper"))
        etree.SubElement(root, validate_name(entities_root, "entities root"))
        response = self._request(
            "PUT",
            self._path(document),
            content=etree.tostring(root, xml_declaration=True, encoding="UTF-8"),
            headers={"Content-Type": "application/xml"},
            document=document,
        )
        self._check(response, document=document)
        logger.info("Document '%s' created in collection '%s'.", document, self._collection)

    # =========================================================================
    # DOCUMENT SESSION PROTOCOL
    # =========================================================================

    def open(self, document: str) -> ExistHandle:
        path = self._path(document)
        response = self._request("HEAD", path, document=document)
        self._check(response, document=document)
        return ExistHandle(document=document, path=path)

    def close(self, handle: ExistHandle) -> None:
        handle.closed = True

    def query(self, handle: ExistHandle, expression: str) -> list[str]:
        self._ensure_open(handle)
        params = {
            "_query": _QUERY_TEMPLATE.format(expression=expression),
            "_wrap": "yes",
            "_indent": "no",
            "_howmany": str(self._max_results),
        }
        response = self._request("GET", handle.path, params=params, document=handle.document)
        self._check(response, document=handle.document, fragment=expression)
        values = _parse_result(response.content)
        logger.debug("Query on '%s' %s -> %d item(s)", handle.document, expression, len(values))
        return values

    def mutate(self, handle: ExistHandle, fragment: Modifications | str) -> int:
        self._ensure_open(handle)
        text = fragment.to_xml() if isinstance(fragment, Modifications) else fragment
        response = self._request(
            "POST",
            handle.path,
            content=text.encode("utf-8"),
            headers={"Content-Type": "application/xml"},
            document=handle.document,
        )
        self._check(response, document=handle.document, fragment=text)
        modified = _parse_modifications(response.content)
        logger.debug("Fragment on '%s' modified %d node(s)", handle.document, modified)
        return modified

    def exists(self, handle: ExistHandle, expression: str) -> bool:
        return len(self.query(handle, expression)) > 0

    # =========================================================================
    # HTTP
    # =========================================================================

    def _path(self, document: str) -> str:
        return f"/{self._collection}/{document}"

    def _ensure_open(self, handle: ExistHandle) -> None:
        if handle.closed:
            raise BackendUnavailable(f"Handle for document '{handle.document}' is closed")

    def _request(self, method: str, path: str, *, document: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("%s %s failed for document '%s': %s", method, path, document, e)
            raise BackendUnavailable(f"{method} {path} failed", cause=e) from e

    def _check(
        self,
        response: httpx.Response,
        *,
        document: str,
        fragment: str | None = None,
    ) -> None:
        status = response.status_code
        if status < 400:
            return
        if status == 404:
            raise NotFound("document", document=document)
        body = response.text
        if status == 400 or (
            status >= 500 and any(marker in body for marker in _REJECTION_MARKERS)
        ):
            raise MalformedFragment(f"HTTP {status}: {body.strip()[:200]}", fragment=fragment)
        raise BackendUnavailable(f"HTTP {status} for document '{document}'")


def _parse_xml(content: bytes) -> etree._Element:
    try:
        return etree.fromstring(content)
    except etree.XMLSyntaxError as e:
        raise BackendUnavailable("Unreadable response from server", cause=e) from e


def _parse_result(content: bytes) -> list[str]:
    root = _parse_xml(content)
    values = []
    for item in root:
        if not isinstance(item.tag, str):
            continue
        if item.tag == f"{{{EXIST_NS}}}value":
            values.append(item.text or "")
        else:
            element = copy.deepcopy(item)
            etree.cleanup_namespaces(element)
            values.append(etree.tostring(element, encoding="unicode", with_tail=False))
    return values


def _parse_modifications(content: bytes) -> int:
    if not content.strip():
        return 0
    root = _parse_xml(content)
    count = root.get("count")
    if count is None:
        count = "".join(ch for ch in (root.text or "") if ch.isdigit()) or "0"
    return int(count)


__all__ = ["ExistRestSession", "ExistHandle", "EXIST_NS"]
