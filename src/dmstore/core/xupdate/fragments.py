"""XUpdate - Update fragment builders.

Pure functions wrapping a target selector and a payload into complete XUpdate
documents. Each builder returns a ``Modifications`` value holding the ordered
operation elements; ``to_xml()`` renders them inside the fixed envelope::

    <?xml version="1.0"?>
    <xupdate:modifications version="1.0" xmlns:xupdate="http://www.xmldb.org/xupdate">
      <xupdate:append select="/DMS/*[1]">...</xupdate:append>
    </xupdate:modifications>

Copy and move capture the source into a ``$copy`` variable first, so the
insertion point is resolved against the document as it was before the
source was removed.

Payloads are embedded verbatim. Use ``text_payload()`` for plain text that
may contain markup-special characters.

Nothing here talks to a document; malformed selectors or payloads surface
only when the fragment is executed.
"""

import re
from dataclasses import dataclass
from typing import Literal
from xml.sax.saxutils import escape, quoteattr

from dmstore.core.xupdate.paths import validate_name

XUPDATE_NS = "http://www.xmldb.org/xupdate"

_ENVELOPE_START = (
    '<?xml version="1.0"?>'
    f'<xupdate:modifications version="1.0" xmlns:xupdate="{XUPDATE_NS}">'
)
_ENVELOPE_END = "</xupdate:modifications>"

_ATTRIBUTE_PATH_RE = re.compile(r"/@[^/]+\Z")

#: Operation kinds a fragment can carry.
type OperationKind = Literal[
    "append",
    "insert-before",
    "insert-after",
    "remove",
    "rename",
    "update",
    "variable",
]

#: Where copy/move place the captured nodes relative to the destination.
type Placement = Literal["before", "after", "inside"]

_PLACEMENT_OPS: dict[str, str] = {
    "before": "insert-before",
    "after": "insert-after",
    "inside": "append",
}


# =============================================================================
# FRAGMENT VALUE
# =============================================================================


@dataclass(frozen=True, slots=True)
class Modifications:
    """An XUpdate document: ordered operation elements inside the envelope.

    Attributes:
        operations: Serialized ``xupdate:*`` operation elements, in execution order.
    """

    operations: tuple[str, ...]

    def to_xml(self) -> str:
        """Render the complete fragment document."""
        return _ENVELOPE_START + "".join(self.operations) + _ENVELOPE_END

    def __str__(self) -> str:
        return self.to_xml()

    def __add__(self, other: "Modifications") -> "Modifications":
        return Modifications(self.operations + other.operations)


def _operation(kind: OperationKind, select: str, content: str = "") -> str:
    return f"<xupdate:{kind} select={quoteattr(select)}>{content}</xupdate:{kind}>"


def text_payload(value: str) -> str:
    """Escape plain text so it is embedded as character data, not markup.

    Carriage returns become character references; a raw one would be
    normalized to a line feed by the XML parser.
    """
    return escape(str(value), {"\r": "&#13;"})


def is_attribute_path(selector: str) -> bool:
    """Return True if ``selector`` addresses an attribute (ends in ``/@name``)."""
    return _ATTRIBUTE_PATH_RE.search(selector) is not None


def split_attribute_path(selector: str) -> tuple[str, str]:
    """Split ``parent/@name`` into ``(parent, name)``."""
    slash = selector.rindex("/")
    return selector[:slash], selector[slash + 2 :]


# =============================================================================
# SINGLE-OPERATION BUILDERS
# =============================================================================


def append(select: str, payload: str) -> Modifications:
    """Append ``payload`` as last child content of every node matched by ``select``."""
    return Modifications((_operation("append", select, payload),))


def add_attribute(select: str, name: str, value: str) -> Modifications:
    """Add (or overwrite) attribute ``name`` on every element matched by ``select``."""
    validate_name(name, "attribute")
    attribute = f'<xupdate:attribute name="{name}">{text_payload(value)}</xupdate:attribute>'
    return Modifications((_operation("append", select, attribute),))


def insert_before(select: str, payload: str) -> Modifications:
    """Insert ``payload`` as preceding sibling of every node matched by ``select``."""
    return Modifications((_operation("insert-before", select, payload),))


def insert_after(select: str, payload: str) -> Modifications:
    """Insert ``payload`` as following sibling of every node matched by ``select``."""
    return Modifications((_operation("insert-after", select, payload),))


def remove(select: str) -> Modifications:
    """Remove every node matched by ``select``."""
    return Modifications((_operation("remove", select),))


def rename(select: str, new_name: str) -> Modifications:
    """Rename every element or attribute matched by ``select``."""
    return Modifications((_operation("rename", select, validate_name(new_name, "new name")),))


def update(select: str, payload: str) -> Modifications:
    """Replace the content of the nodes matched by ``select`` with ``payload``.

    XUpdate cannot replace content with nothing, so an empty (or
    whitespace-only) payload is rewritten:

    - attribute selector (``.../@name``): re-add the attribute on the
      parent element with an empty value;
    - element selector: remove all child elements, then all direct text
      nodes, leaving the element present and empty.

    Args:
        select: Selector of the nodes to update.
        payload: New content (markup or escaped text).

    Returns:
        The fragment to execute.
    """
    if payload.strip() == "":
        if is_attribute_path(select):
            parent, name = split_attribute_path(select)
            return add_attribute(parent, name, "")
        return remove(f"{select}/*") + remove(f"{select}/text()")
    return Modifications((_operation("update", select, payload),))


# =============================================================================
# COPY / MOVE
# =============================================================================


def _capture(source: str) -> str:
    return f'<xupdate:variable name="copy" select={quoteattr(source)}/>'


def copy(source: str, destination: str, placement: Placement) -> Modifications:
    """Copy the nodes matched by ``source`` before/after/inside ``destination``."""
    op = _PLACEMENT_OPS[placement]
    return Modifications(
        (
            _capture(source),
            _operation(op, destination, '<xupdate:value-of select="$copy"/>'),
        )
    )


def move(source: str, destination: str, placement: Placement) -> Modifications:
    """Move the nodes matched by ``source`` before/after/inside ``destination``."""
    op = _PLACEMENT_OPS[placement]
    return Modifications(
        (
            _capture(source),
            '<xupdate:remove select="$copy"/>',
            _operation(op, destination, '<xupdate:value-of select="$copy"/>'),
        )
    )


def copy_before(source: str, destination: str) -> Modifications:
    return copy(source, destination, "before")


def copy_after(source: str, destination: str) -> Modifications:
    return copy(source, destination, "after")


def copy_inside(source: str, destination: str) -> Modifications:
    return copy(source, destination, "inside")


def move_before(source: str, destination: str) -> Modifications:
    return move(source, destination, "before")


def move_after(source: str, destination: str) -> Modifications:
    return move(source, destination, "after")


def move_inside(source: str, destination: str) -> Modifications:
    """Move ``source`` inside ``destination``, as its last child."""
    return move(source, destination, "inside")


__all__ = [
    "XUPDATE_NS",
    "Modifications",
    "OperationKind",
    "Placement",
    "text_payload",
    "is_attribute_path",
    "split_attribute_path",
    "append",
    "add_attribute",
    "insert_before",
    "insert_after",
    "remove",
    "rename",
    "update",
    "copy",
    "move",
    "copy_before",
    "copy_after",
    "copy_inside",
    "move_before",
    "move_after",
    "move_inside",
]
