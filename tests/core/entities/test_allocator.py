"""Tests for the IdentifierAllocator."""

import pytest

from dmstore.core.entities.allocator import IdentifierAllocator
from dmstore.core.exceptions import MalformedDocument
from dmstore.core.sessions import MemoryDocumentSession, opened
from dmstore.core.xupdate.paths import child_ids, entity_by_id
from tests.utils import SAMPLE_USERS, USERS_DOCUMENT


def allocate(markup: str, selector: str | None = None) -> int:
    session = MemoryDocumentSession({USERS_DOCUMENT: markup})
    allocator = IdentifierAllocator()
    with opened(session, USERS_DOCUMENT) as handle:
        if selector is None:
            return allocator.next(session, handle)
        return allocator.next(session, handle, selector)


class TestIdentifierAllocator:
    """Ids are max + 1, starting at 1."""

    def test_empty_collection_starts_at_one(self):
        assert allocate("<DMS><users/></DMS>") == 1

    def test_gaps_are_not_filled(self):
        assert allocate(SAMPLE_USERS) == 6

    def test_fractional_maximum_is_floored(self):
        assert allocate('<DMS><users><user id="2.5"/></users></DMS>') == 3

    def test_non_numeric_id(self):
        with pytest.raises(MalformedDocument, match="non-numeric id"):
            allocate('<DMS><users><user id="1"/><user id="abc"/></users></DMS>')

    def test_custom_selector_for_nested_children(self):
        markup = (
            "<DMS><queries>"
            '<query id="1"><inputs><input id="1"/><input id="4"/></inputs></query>'
            '<query id="2"><inputs/></query>'
            "</queries></DMS>"
        )
        assert allocate(markup, child_ids(entity_by_id(1), "inputs")) == 5
        assert allocate(markup, child_ids(entity_by_id(2), "inputs")) == 1
