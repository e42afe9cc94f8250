"""Test helpers and shared constants."""

from lxml import etree

USERS_DOCUMENT = "DMSUsers.xml"

SAMPLE_USERS = (
    "<DMS><users>"
    '<user id="1"><username>alice</username><email>a@x.com</email></user>'
    '<user id="2" level="admin"><username>bob</username></user>'
    '<user id="5"><username>carol</username></user>'
    "</users></DMS>"
)


def canonical(markup: str) -> str:
    """Return ``markup`` re-serialized, so equal trees compare equal as text."""
    return etree.tostring(etree.fromstring(markup.encode("utf-8")), encoding="unicode")
