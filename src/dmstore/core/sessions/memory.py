"""Sessions - In-memory DocumentSession backed by lxml.

Holds named documents as lxml trees, evaluates XPath 1.0 queries (plus a
``max()`` extension so id allocation works unchanged) and executes XUpdate
fragments. Each fragment is applied to a working copy that replaces the
document only when every operation succeeded, so a fragment is atomic as a
whole.

Supported XUpdate instructions: ``variable``, ``append``, ``insert-before``,
``insert-after``, ``remove``, ``rename``, ``update`` and, inside them,
``value-of``, ``element``, ``attribute``, ``text`` and literal markup.
"""

import copy
import logging
import math
import re
from dataclasses import dataclass
from typing import Any

from lxml import etree

from dmstore.core.exceptions import (
    AlreadyExists,
    BackendUnavailable,
    MalformedDocument,
    MalformedFragment,
    NotFound,
)
from dmstore.core.xupdate.fragments import XUPDATE_NS, Modifications
from dmstore.core.xupdate.paths import DEFAULT_WRAPPER, validate_name

logger = logging.getLogger(__name__)

_XU = f"{{{XUPDATE_NS}}}"
_VARIABLE_RE = re.compile(r"^\s*\$([\w.\-]+)\s*$")


def _xpath_max(context: Any, nodes: Any) -> Any:
    """XPath ``max(node-set)``; an empty node-set yields an empty result."""
    if not isinstance(nodes, list):
        nodes = [nodes]
    if not nodes:
        return []
    values = []
    for node in nodes:
        try:
            values.append(float(str(node)))
        except ValueError:
            return math.nan
    return max(values)


_EXTENSIONS = {(None, "max"): _xpath_max}


def format_number(value: float) -> str:
    """Render an XPath number the way XPath ``string()`` does."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == int(value):
        return str(int(value))
    return repr(value)


def _to_strings(result: Any) -> list[str]:
    if isinstance(result, bool):
        return ["true" if result else "false"]
    if isinstance(result, float):
        return [format_number(result)]
    if isinstance(result, str):
        return [str(result)]
    values = []
    for item in result:
        if etree.iselement(item):
            values.append(etree.tostring(item, encoding="unicode", with_tail=False))
        else:
            values.append(str(item))
    return values


@dataclass(slots=True)
class MemoryHandle:
    """Handle to a document opened on a ``MemoryDocumentSession``."""

    document: str
    closed: bool = False


# =============================================================================
# XUPDATE EXECUTOR
# =============================================================================


@dataclass(frozen=True, slots=True)
class _Attribute:
    name: str
    value: str


class _XUpdateExecutor:
    """Applies the operations of one ``xupdate:modifications`` element to a tree."""

    def __init__(self, tree: etree._ElementTree, fragment: str):
        self._tree = tree
        self._fragment = fragment
        self._variables: dict[str, list[Any]] = {}

    def run(self, modifications: etree._Element) -> int:
        if modifications.tag != f"{_XU}modifications":
            raise MalformedFragment(
                "Root element must be xupdate:modifications", fragment=self._fragment
            )
        modified = 0
        for op in modifications:
            if not isinstance(op.tag, str):
                continue
            if not op.tag.startswith(_XU):
                raise MalformedFragment(f"Unexpected element {op.tag!r}", fragment=self._fragment)
            try:
                modified += self._apply(etree.QName(op).localname, op)
            except ValueError as e:
                # lxml rejects invalid element/attribute names with ValueError
                raise self._fail(str(e), cause=e) from e
        etree.cleanup_namespaces(self._tree.getroot())
        return modified

    def _fail(self, details: str, cause: BaseException | None = None) -> MalformedFragment:
        return MalformedFragment(details, fragment=self._fragment, cause=cause)

    # -------------------------------------------------------------------------
    # selection
    # -------------------------------------------------------------------------

    def _select(self, expression: str | None) -> list[Any]:
        if not expression:
            raise self._fail("Missing select attribute")
        match = _VARIABLE_RE.match(expression)
        if match:
            try:
                return self._variables[match.group(1)]
            except KeyError:
                raise self._fail(f"Undefined variable ${match.group(1)}") from None
        try:
            result = self._tree.xpath(expression, extensions=_EXTENSIONS)
        except etree.XPathError as e:
            raise self._fail(f"Invalid select expression {expression!r}", cause=e) from e
        if not isinstance(result, list):
            raise self._fail(f"Select expression {expression!r} does not address nodes")
        return result

    def _select_elements(self, expression: str | None) -> list[etree._Element]:
        nodes = self._select(expression)
        for node in nodes:
            if not etree.iselement(node):
                raise self._fail(f"Select expression {expression!r} must address elements")
        return nodes

    # -------------------------------------------------------------------------
    # content
    # -------------------------------------------------------------------------

    def _content(self, op: etree._Element) -> list[Any]:
        items: list[Any] = []
        if op.text:
            items.append(op.text)
        for child in op:
            if isinstance(child.tag, str) and child.tag.startswith(_XU):
                items.extend(self._instruction(etree.QName(child).localname, child))
            elif isinstance(child.tag, str):
                literal = copy.deepcopy(child)
                literal.tail = None
                items.append(literal)
            if child.tail:
                items.append(child.tail)
        return items

    def _instruction(self, local: str, child: etree._Element) -> list[Any]:
        if local == "attribute":
            name = child.get("name")
            if not name:
                raise self._fail("xupdate:attribute requires a name")
            return [_Attribute(name, child.xpath("string()"))]
        if local == "element":
            name = child.get("name")
            if not name:
                raise self._fail("xupdate:element requires a name")
            element = etree.Element(name)
            _fill(element, self._content(child))
            return [element]
        if local == "text":
            return [child.text or ""]
        if local == "value-of":
            values = []
            for node in self._select(child.get("select")):
                if etree.iselement(node):
                    captured = copy.deepcopy(node)
                    captured.tail = None
                    values.append(captured)
                else:
                    values.append(str(node))
            return values
        raise self._fail(f"Unsupported content instruction xupdate:{local}")

    # -------------------------------------------------------------------------
    # operations
    # -------------------------------------------------------------------------

    def _apply(self, local: str, op: etree._Element) -> int:
        select = op.get("select")
        if local == "variable":
            name = op.get("name")
            if not name:
                raise self._fail("xupdate:variable requires a name")
            self._variables[name] = list(self._select(select))
            return 0
        if local == "append":
            targets = self._select_elements(select)
            content = self._content(op)
            for target in targets:
                _fill(target, _fresh(content))
            return len(targets)
        if local in ("insert-before", "insert-after"):
            targets = self._select_elements(select)
            content = self._content(op)
            if any(isinstance(item, _Attribute) for item in content):
                raise self._fail(f"xupdate:{local} cannot carry attributes")
            for target in targets:
                if target.getparent() is None:
                    raise self._fail(f"xupdate:{local} cannot target the document element")
                if local == "insert-before":
                    _insert_before(target, _fresh(content))
                else:
                    _insert_after(target, _fresh(content))
            return len(targets)
        if local == "remove":
            nodes = self._select(select)
            for node in nodes:
                self._remove(node)
            return len(nodes)
        if local == "rename":
            new_name = (op.text or "").strip()
            if not new_name:
                raise self._fail("xupdate:rename requires a new name")
            nodes = self._select(select)
            for node in nodes:
                self._rename(node, new_name)
            return len(nodes)
        if local == "update":
            nodes = self._select(select)
            content = self._content(op)
            for node in nodes:
                self._update(node, content)
            return len(nodes)
        raise self._fail(f"Unsupported operation xupdate:{local}")

    def _remove(self, node: Any) -> None:
        if etree.iselement(node):
            parent = node.getparent()
            if parent is None:
                raise self._fail("Cannot remove the document element")
            if node.tail:
                previous = node.getprevious()
                if previous is not None:
                    previous.tail = (previous.tail or "") + node.tail
                else:
                    parent.text = (parent.text or "") + node.tail
                node.tail = None
            parent.remove(node)
            return
        parent = getattr(node, "getparent", lambda: None)()
        if parent is None:
            raise self._fail("Cannot remove a computed value")
        if node.is_attribute:
            del parent.attrib[node.attrname]
        elif node.is_tail:
            parent.tail = None
        else:
            parent.text = None

    def _rename(self, node: Any, new_name: str) -> None:
        if etree.iselement(node):
            node.tag = new_name
            return
        if getattr(node, "is_attribute", False):
            parent = node.getparent()
            value = parent.attrib.pop(node.attrname)
            parent.set(new_name, value)
            return
        raise self._fail("xupdate:rename must address elements or attributes")

    def _update(self, node: Any, content: list[Any]) -> None:
        if etree.iselement(node):
            node.text = None
            for child in list(node):
                node.remove(child)
            _fill(node, _fresh(content))
            return
        parent = getattr(node, "getparent", lambda: None)()
        if parent is None:
            raise self._fail("Cannot update a computed value")
        text = "".join(item for item in content if isinstance(item, str))
        if node.is_attribute:
            parent.set(node.attrname, text)
        elif node.is_tail:
            parent.tail = text
        else:
            parent.text = text


def _fresh(content: list[Any]) -> list[Any]:
    return [copy.deepcopy(item) if etree.iselement(item) else item for item in content]


def _append_text(parent: etree._Element, text: str) -> None:
    if len(parent):
        last = parent[-1]
        last.tail = (last.tail or "") + text
    else:
        parent.text = (parent.text or "") + text


def _fill(target: etree._Element, content: list[Any]) -> None:
    for item in content:
        if isinstance(item, _Attribute):
            target.set(item.name, item.value)
        elif isinstance(item, str):
            _append_text(target, item)
        else:
            target.append(item)


def _insert_before(target: etree._Element, content: list[Any]) -> None:
    for item in content:
        if isinstance(item, str):
            previous = target.getprevious()
            if previous is not None:
                previous.tail = (previous.tail or "") + item
            else:
                parent = target.getparent()
                parent.text = (parent.text or "") + item
        else:
            target.addprevious(item)


def _insert_after(target: etree._Element, content: list[Any]) -> None:
    rest = target.tail
    target.tail = None
    anchor = target
    for item in content:
        if isinstance(item, str):
            anchor.tail = (anchor.tail or "") + item
        else:
            anchor.addnext(item)
            anchor = item
    if rest:
        anchor.tail = (anchor.tail or "") + rest


# =============================================================================
# SESSION
# =============================================================================


class MemoryDocumentSession:
    """DocumentSession keeping every document in process memory.

    Example:
        >>> session = MemoryDocumentSession()
        >>> session.create_document("DMSUsers.xml", "users")
        >>> with opened(session, "DMSUsers.xml") as handle:
        ...     session.query(handle, "/DMS/*[1]/*/@id")
        []
    """

    def __init__(self, documents: dict[str, str] | None = None, *, name: str = "memory"):
        """Initialize the session.

        Args:
            documents: Optional mapping of document name to initial markup.
            name: Human-readable name for this session.
        """
        self._name = name
        self._documents: dict[str, etree._ElementTree] = {}
        self._open_handles = 0
        for document, markup in (documents or {}).items():
            self.load_document(document, markup)
        logger.debug("MemoryDocumentSession '%s' created.", name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def open_handles(self) -> int:
        """Number of handles opened and not yet closed."""
        return self._open_handles

    # =========================================================================
    # DOCUMENT MANAGEMENT
    # =========================================================================

    def create_document(
        self,
        document: str,
        entities_root: str,
        wrapper: str = DEFAULT_WRAPPER,
    ) -> None:
        """Create an empty store document ``<wrapper><entities_root/></wrapper>``.

        Raises:
            AlreadyExists: If a document with this name exists.
        """
        if document in self._documents:
            raise AlreadyExists("document", document=document)
        root = etree.Element(validate_name(wrapper, "wrapper"))
        etree.SubElement(root, validate_name(entities_root, "entities root"))
        self._documents[document] = etree.ElementTree(root)
        logger.debug("Document '%s' created with entities root '%s'.", document, entities_root)

    def load_document(self, document: str, markup: str) -> None:
        """Store ``markup`` under ``document``, replacing any previous content.

        Raises:
            MalformedDocument: If the markup is not well-formed.
        """
        try:
            root = etree.fromstring(markup.encode("utf-8"))
        except etree.XMLSyntaxError as e:
            raise MalformedDocument(document, f"not well-formed: {e}") from e
        self._documents[document] = etree.ElementTree(root)

    def drop_document(self, document: str) -> None:
        """Delete a document.

        Raises:
            NotFound: If the document does not exist.
        """
        if self._documents.pop(document, None) is None:
            raise NotFound("document", document=document)

    def has_document(self, document: str) -> bool:
        return document in self._documents

    def serialize(self, document: str) -> str:
        """Return the current markup of a document."""
        tree = self._documents.get(document)
        if tree is None:
            raise NotFound("document", document=document)
        return etree.tostring(tree.getroot(), encoding="unicode")

    # =========================================================================
    # DOCUMENT SESSION PROTOCOL
    # =========================================================================

    def open(self, document: str) -> MemoryHandle:
        if document not in self._documents:
            raise NotFound("document", document=document)
        self._open_handles += 1
        return MemoryHandle(document)

    def close(self, handle: MemoryHandle) -> None:
        if handle.closed:
            return
        handle.closed = True
        self._open_handles -= 1

    def query(self, handle: MemoryHandle, expression: str) -> list[str]:
        tree = self._tree(handle)
        try:
            result = tree.xpath(expression, extensions=_EXTENSIONS)
        except etree.XPathError as e:
            raise MalformedFragment(
                f"Invalid expression {expression!r}", fragment=expression, cause=e
            ) from e
        values = _to_strings(result)
        logger.debug("Query on '%s' %s -> %d item(s)", handle.document, expression, len(values))
        return values

    def mutate(self, handle: MemoryHandle, fragment: Modifications | str) -> int:
        tree = self._tree(handle)
        text = fragment.to_xml() if isinstance(fragment, Modifications) else fragment
        try:
            modifications = etree.fromstring(text.encode("utf-8"))
        except etree.XMLSyntaxError as e:
            raise MalformedFragment("Fragment is not well-formed", fragment=text, cause=e) from e

        working = etree.ElementTree(copy.deepcopy(tree.getroot()))
        modified = _XUpdateExecutor(working, text).run(modifications)
        self._documents[handle.document] = working
        logger.debug("Fragment on '%s' modified %d node(s)", handle.document, modified)
        return modified

    def exists(self, handle: MemoryHandle, expression: str) -> bool:
        return len(self.query(handle, expression)) > 0

    def _tree(self, handle: MemoryHandle) -> etree._ElementTree:
        if handle.closed:
            raise BackendUnavailable(f"Handle for document '{handle.document}' is closed")
        tree = self._documents.get(handle.document)
        if tree is None:
            raise NotFound("document", document=handle.document)
        return tree


__all__ = ["MemoryDocumentSession", "MemoryHandle", "format_number"]
