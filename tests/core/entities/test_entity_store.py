"""Tests for EntityStore over the in-memory session."""

import logging

import pytest

from dmstore.core.entities.entity_store import EntityStore, Markup
from dmstore.core.entities.kinds import DEFAULT_KINDS, EntityKind
from dmstore.core.exceptions import (
    AlreadyExists,
    AmbiguousMatch,
    MalformedDocument,
    MalformedFragment,
    NotFound,
    NotSupported,
    ValidationError,
)
from dmstore.core.sessions import MemoryDocumentSession
from dmstore.core.xupdate.paths import entity_by_id
from tests.utils import SAMPLE_USERS, USERS_DOCUMENT


@pytest.fixture
def sample_session() -> MemoryDocumentSession:
    return MemoryDocumentSession({USERS_DOCUMENT: SAMPLE_USERS})


@pytest.fixture
def sample_users(users_kind, sample_session) -> EntityStore:
    """Store over users 1 (alice), 2 (bob, admin) and 5 (carol)."""
    return EntityStore(users_kind, sample_session)


@pytest.fixture
def queries() -> EntityStore:
    session = MemoryDocumentSession()
    session.create_document("DMSXQueries.xml", "queries")
    return EntityStore(DEFAULT_KINDS["queries"], session)


class TestScenario:
    """The end-to-end user lifecycle."""

    def test_user_lifecycle(self, users, session):
        user_id = users.create({"username": "alice"})
        assert user_id == 1

        users.add_field(1, "email", "a@x.com")
        assert users.has_field(1, "email")

        users.set_field(1, "email", "")
        assert users.get_field(1, "email") == ""
        assert session.serialize(USERS_DOCUMENT) == (
            '<DMS><users><user id="1"><username>alice</username><email/></user></users></DMS>'
        )

        users.remove(1)
        assert not users.exists(entity_by_id(1))
        assert session.open_handles == 0


class TestCreate:
    """Entity creation."""

    @pytest.mark.parametrize(
        "fields",
        [
            {"username": "alice"},
            {"username": "o'neil", "email": 'say "hi"'},
            {"username": "a<b & c>", "note": "  padded  "},
            {"username": "Jürgen", "city": "Zürich"},
            {"username": "crlf", "note": "line1\r\nline2\r"},
        ],
    )
    def test_fields_read_back_exactly(self, users, fields):
        user_id = users.create(fields)
        assert users.exists_id(user_id)
        for name, value in fields.items():
            assert users.get_field(user_id, name) == value

    def test_ids_follow_maximum(self, sample_users):
        assert sample_users.create({"username": "dave"}) == 6
        assert sample_users.list_ids() == [1, 2, 5, 6]

    def test_field_order_is_kept(self, users):
        user_id = users.create([("username", "alice"), ("email", "a@x.com"), ("city", "Rome")])
        assert users.field_names(user_id) == ["username", "email", "city"]

    def test_attributes(self, users, session):
        user_id = users.create({"username": "alice"}, {"level": "admin & co"})
        assert users.get_attribute(user_id, "level") == "admin & co"
        assert '<user id="1" level="admin &amp; co">' in session.serialize(USERS_DOCUMENT)

    def test_id_attribute_is_reserved(self, users):
        with pytest.raises(ValidationError):
            users.create({"username": "alice"}, {"id": "99"})

    def test_custom_tag(self, users, session):
        users.create({"username": "root"}, tag="admin")
        assert '<admin id="1">' in session.serialize(USERS_DOCUMENT)

    def test_nested_field_path(self, users):
        user_id = users.create({"username": "alice", "info/city": "Rome"})
        assert users.get_field(user_id, "info/city") == "Rome"

    def test_markup_value_is_stored_verbatim(self, users):
        user_id = users.create({"username": "alice", "profile": Markup("<first>A</first><last>B</last>")})
        assert users.get_field(user_id, "profile/last") == "B"
        assert users.get_field(user_id, "profile") == ""
        assert users.get_field(user_id, "profile", markup=True) == "<first>A</first><last>B</last>"

    def test_malformed_markup_is_rejected(self, users, session):
        with pytest.raises(MalformedFragment):
            users.create({"username": "alice", "profile": Markup("<first>")})
        assert users.list_ids() == []
        assert session.open_handles == 0

    def test_unique_field(self, sample_users):
        with pytest.raises(AlreadyExists) as excinfo:
            sample_users.create({"username": "bob"})
        assert excinfo.value.field == "username"
        assert sample_users.list_ids() == [1, 2, 5]

    def test_schema_is_enforced(self, session):
        kind = EntityKind(
            id="users",
            document=USERS_DOCUMENT,
            entities_root="users",
            tag="user",
            fields=("username", "info"),
        )
        store = EntityStore(kind, session)
        store.create({"username": "a", "info/city": "Rome"})
        with pytest.raises(ValidationError):
            store.create({"username": "b", "password": "x"})
        with pytest.raises(ValidationError):
            store.add_field(1, "password", "x")

    @pytest.mark.parametrize("name", ["bad name", "1st", "a:b", ""])
    def test_invalid_field_names(self, users, name):
        with pytest.raises(ValidationError):
            users.create({name: "x"})

    def test_create_is_logged(self, users, caplog):
        with caplog.at_level(logging.INFO, logger="dmstore.core.entities.entity_store"):
            users.create({"username": "alice"})
        assert "Entity 1 created in 'DMSUsers.xml'" in caplog.text


class TestRemove:
    """Entity removal."""

    def test_remove_then_absent(self, sample_users):
        sample_users.remove(2)
        assert not sample_users.exists_id(2)
        assert sample_users.list_ids() == [1, 5]

    def test_second_remove_fails(self, sample_users):
        sample_users.remove(2)
        with pytest.raises(NotFound) as excinfo:
            sample_users.remove(2)
        assert excinfo.value.entity_id == 2

    def test_top_id_is_reused_after_removal(self, users):
        assert users.create({"username": "a"}) == 1
        assert users.create({"username": "b"}) == 2
        users.remove(2)
        assert users.create({"username": "c"}) == 2

    def test_removed_id_is_not_reused_while_higher_ids_exist(self, sample_users):
        sample_users.remove(2)
        assert sample_users.create({"username": "dave"}) == 6

    def test_remove_where(self, sample_users):
        assert sample_users.remove_where("username", "carol") == 5
        assert sample_users.list_ids() == [1, 2]

    def test_remove_where_without_match(self, sample_users):
        with pytest.raises(NotFound):
            sample_users.remove_where("username", "nobody")


class TestFields:
    """Field lifecycle."""

    def test_add_has_remove(self, sample_users):
        sample_users.add_field(5, "email", "c@x.com")
        assert sample_users.has_field(5, "email")
        with pytest.raises(AlreadyExists):
            sample_users.add_field(5, "email", "other@x.com")
        sample_users.remove_field(5, "email")
        assert not sample_users.has_field(5, "email")

    def test_remove_missing_field(self, sample_users):
        with pytest.raises(NotFound) as excinfo:
            sample_users.remove_field(5, "email")
        assert excinfo.value.what == "field"

    def test_field_ops_on_missing_entity(self, sample_users):
        for call in (
            lambda: sample_users.add_field(9, "email", "x"),
            lambda: sample_users.remove_field(9, "email"),
            lambda: sample_users.set_field(9, "email", "x"),
            lambda: sample_users.get_field(9, "email"),
        ):
            with pytest.raises(NotFound) as excinfo:
                call()
            assert excinfo.value.what == "entity"
        assert not sample_users.has_field(9, "email")

    def test_set_last_write_wins(self, sample_users):
        sample_users.set_field(1, "email", "v1@x.com")
        sample_users.set_field(1, "email", "v2@x.com")
        assert sample_users.get_field(1, "email") == "v2@x.com"

    def test_set_does_not_create(self, sample_users):
        with pytest.raises(NotFound) as excinfo:
            sample_users.set_field(2, "email", "b@x.com")
        assert excinfo.value.what == "field"
        assert not sample_users.has_field(2, "email")

    def test_set_markup(self, sample_users):
        sample_users.set_field(1, "email", Markup("<home>h@x</home><work>w@x</work>"))
        assert sample_users.get_field(1, "email/work") == "w@x"

    def test_set_empty_then_refill(self, sample_users):
        sample_users.set_field(1, "email", "")
        assert sample_users.has_field(1, "email")
        sample_users.set_field(1, "email", "again@x.com")
        assert sample_users.get_field(1, "email") == "again@x.com"

    def test_get_absent_field_returns_default(self, sample_users):
        assert sample_users.get_field(2, "email") is None
        assert sample_users.get_field(2, "email", "none@x.com") == "none@x.com"

    def test_add_nested_field(self, sample_users):
        sample_users.add_field(1, "info", "")
        sample_users.add_field(1, "info/city", "Rome")
        assert sample_users.get_field(1, "info/city") == "Rome"

    def test_add_nested_field_without_parent(self, sample_users):
        with pytest.raises(NotFound) as excinfo:
            sample_users.add_field(1, "info/city", "Rome")
        assert excinfo.value.field == "info"

    def test_multi_valued_field(self, sample_users, sample_session):
        sample_users.add_value(1, "groups", "group", "staff")
        sample_users.add_value(1, "groups", "group", "editors")

        assert sample_users.values(1, "groups", "group") == ["staff", "editors"]
        assert sample_users.has_value(1, "groups", "group", "editors")
        assert not sample_users.has_value(1, "groups", "group", "admins")
        assert "<groups><group>staff</group><group>editors</group></groups>" in (
            sample_session.serialize(USERS_DOCUMENT)
        )

    def test_duplicate_value(self, sample_users):
        sample_users.add_value(1, "groups", "group", "staff")
        with pytest.raises(AlreadyExists) as excinfo:
            sample_users.add_value(1, "groups", "group", "staff")
        assert excinfo.value.what == "value"
        assert sample_users.values(1, "groups", "group") == ["staff"]

    def test_remove_value_keeps_the_others(self, sample_users):
        for group in ("staff", "o'neil \"team\"", "editors"):
            sample_users.add_value(1, "groups", "group", group)

        sample_users.remove_value(1, "groups", "group", "o'neil \"team\"")

        assert sample_users.values(1, "groups", "group") == ["staff", "editors"]
        with pytest.raises(NotFound) as excinfo:
            sample_users.remove_value(1, "groups", "group", "o'neil \"team\"")
        assert excinfo.value.what == "value"

    def test_values_without_container(self, sample_users):
        assert sample_users.values(2, "groups", "group") == []
        assert not sample_users.has_value(2, "groups", "group", "staff")

    def test_values_on_missing_entity(self, sample_users):
        for call in (
            lambda: sample_users.values(9, "groups", "group"),
            lambda: sample_users.add_value(9, "groups", "group", "staff"),
            lambda: sample_users.remove_value(9, "groups", "group", "staff"),
        ):
            with pytest.raises(NotFound) as excinfo:
                call()
            assert excinfo.value.what == "entity"

    def test_rename_field(self, sample_users):
        sample_users.rename_field(1, "email", "mail")
        assert sample_users.get_field(1, "mail") == "a@x.com"
        assert sample_users.field_names(1) == ["username", "mail"]

    def test_rename_onto_existing_field(self, sample_users):
        with pytest.raises(AlreadyExists):
            sample_users.rename_field(1, "email", "username")

    def test_rename_missing_field(self, sample_users):
        with pytest.raises(NotFound):
            sample_users.rename_field(2, "email", "mail")


class TestAttributes:
    """Entity attributes."""

    def test_set_add_and_update(self, sample_users):
        sample_users.set_attribute(1, "level", "editor")
        assert sample_users.get_attribute(1, "level") == "editor"
        sample_users.set_attribute(2, "level", "guest")
        assert sample_users.get_attribute(2, "level") == "guest"

    def test_set_empty_keeps_attribute(self, sample_users, sample_session):
        sample_users.set_attribute(2, "level", "")
        assert sample_users.has_attribute(2, "level")
        assert sample_users.get_attribute(2, "level") == ""
        assert '<user id="2" level="">' in sample_session.serialize(USERS_DOCUMENT)

    def test_get_with_default(self, sample_users):
        assert sample_users.get_attribute(1, "level") is None
        assert sample_users.get_attribute(1, "level", "user") == "user"
        with pytest.raises(NotFound):
            sample_users.get_attribute(9, "level")

    def test_remove(self, sample_users):
        sample_users.remove_attribute(2, "level")
        assert not sample_users.has_attribute(2, "level")
        with pytest.raises(NotFound):
            sample_users.remove_attribute(2, "level")

    def test_id_is_read_only(self, sample_users):
        with pytest.raises(ValidationError):
            sample_users.set_attribute(1, "id", "7")
        with pytest.raises(ValidationError):
            sample_users.remove_attribute(1, "id")
        assert sample_users.get_attribute(1, "id") == "1"

    def test_set_on_missing_entity(self, sample_users):
        with pytest.raises(NotFound):
            sample_users.set_attribute(9, "level", "x")


class TestLookups:
    """Read surface beyond single fields."""

    def test_list_ids_in_document_order(self, sample_users):
        assert sample_users.list_ids() == [1, 2, 5]

    def test_exists_expression(self, sample_users):
        assert sample_users.exists("/DMS/*[1]/*[@level='admin']")
        assert not sample_users.exists("/DMS/*[1]/*[@level='root']")

    def test_find(self, sample_users):
        assert sample_users.find("username", "bob") == 2
        assert sample_users.find("username", "nobody") is None

    def test_find_with_quotes(self, users):
        user_id = users.create({"username": "o'neil \"jr\""})
        assert users.find("username", "o'neil \"jr\"") == user_id

    def test_find_ambiguous(self):
        session = MemoryDocumentSession(
            {
                USERS_DOCUMENT: "<DMS><users>"
                '<user id="1"><username>dup</username></user>'
                '<user id="2"><username>dup</username></user>'
                "</users></DMS>"
            }
        )
        store = EntityStore(DEFAULT_KINDS["users"], session)
        with pytest.raises(AmbiguousMatch) as excinfo:
            store.find("username", "dup")
        assert excinfo.value.count == 2

    def test_get(self, sample_users):
        assert sample_users.get(1) == {"username": "alice", "email": "a@x.com"}
        with pytest.raises(NotFound):
            sample_users.get(9)

    def test_values_of(self, sample_users):
        assert sample_users.values_of("username") == ["alice", "bob", "carol"]
        assert sample_users.values_of("username", where={"email": "a@x.com"}) == ["alice"]
        assert sample_users.values_of("username", where={"email": "nobody"}) == []

    def test_mapping(self, sample_users):
        assert sample_users.mapping("username") == {1: "alice", 2: "bob", 5: "carol"}
        assert sample_users.mapping("email") == {1: "a@x.com", 2: None, 5: None}

    def test_non_numeric_ids_are_malformed(self):
        session = MemoryDocumentSession(
            {
                USERS_DOCUMENT: "<DMS><users>"
                '<user id="1"><username>a</username><inputs><input id="x"/></inputs></user>'
                '<user id="two"><username>b</username></user>'
                "</users></DMS>"
            }
        )
        store = EntityStore(DEFAULT_KINDS["users"], session)
        for call in (
            store.list_ids,
            lambda: store.mapping("username"),
            lambda: store.find("username", "b"),
            lambda: store.child_ids(1, "inputs"),
        ):
            with pytest.raises(MalformedDocument, match="non-numeric id"):
                call()

    @pytest.mark.parametrize("bad", ["²", "1³", "-1", "one"])
    def test_invalid_ids_are_rejected(self, sample_users, bad):
        with pytest.raises(ValidationError):
            sample_users.exists_id(bad)

    def test_field_names_of_missing_entity(self, sample_users):
        with pytest.raises(NotFound):
            sample_users.field_names(9)


class TestChildren:
    """Ordered nested collections with their own ids."""

    def test_add_child_creates_container(self, queries):
        query_id = queries.create({"name": "by year"})
        assert not queries.has_field(query_id, "inputs")
        assert queries.add_child(query_id, "inputs", "input", {"name": "year"}, {"type": "int"}) == 1
        assert queries.add_child(query_id, "inputs", "input", {"name": "month"}) == 2
        assert queries.child_ids(query_id, "inputs") == [1, 2]
        assert queries.child_fields(query_id, "inputs", 1) == {"name": "year"}

    def test_child_ids_are_per_entity(self, queries):
        first = queries.create({"name": "a"})
        second = queries.create({"name": "b"})
        queries.add_child(first, "inputs", "input")
        queries.add_child(first, "inputs", "input")
        assert queries.add_child(second, "inputs", "input") == 1

    def test_move_child(self, queries):
        query_id = queries.create({"name": "q"})
        for _ in range(3):
            queries.add_child(query_id, "inputs", "input")
        queries.move_child(query_id, "inputs", 3, before=1)
        assert queries.child_ids(query_id, "inputs") == [3, 1, 2]
        queries.move_child(query_id, "inputs", 3)
        assert queries.child_ids(query_id, "inputs") == [1, 2, 3]
        queries.move_child(query_id, "inputs", 2, before=2)
        assert queries.child_ids(query_id, "inputs") == [1, 2, 3]

    def test_move_missing_child(self, queries):
        query_id = queries.create({"name": "q"})
        queries.add_child(query_id, "inputs", "input")
        with pytest.raises(NotFound):
            queries.move_child(query_id, "inputs", 7)
        with pytest.raises(NotFound):
            queries.move_child(query_id, "inputs", 1, before=7)

    def test_remove_child(self, queries):
        query_id = queries.create({"name": "q"})
        queries.add_child(query_id, "outputs", "output")
        queries.add_child(query_id, "outputs", "output")
        queries.remove_child(query_id, "outputs", 1)
        assert queries.child_ids(query_id, "outputs") == [2]
        with pytest.raises(NotFound):
            queries.remove_child(query_id, "outputs", 1)
        with pytest.raises(NotFound):
            queries.child_fields(query_id, "outputs", 1)

    def test_add_child_to_missing_entity(self, queries):
        with pytest.raises(NotFound):
            queries.add_child(4, "inputs", "input")


class MinimalSession:
    """A DocumentSession that cannot create documents."""

    name = "minimal"

    def open(self, document):
        return document

    def close(self, handle):
        pass

    def query(self, handle, expression):
        return []

    def mutate(self, handle, fragment):
        return 0

    def exists(self, handle, expression):
        return False


class TestDocumentShape:
    """Bootstrap and shape checks."""

    def test_bootstrap(self):
        session = MemoryDocumentSession()
        tags = EntityStore(DEFAULT_KINDS["tags"], session)
        assert tags.bootstrap() is True
        assert session.serialize("DMSTags.xml") == "<DMS><tags/></DMS>"
        assert tags.bootstrap() is False
        tags.check_shape()

    def test_bootstrap_needs_document_factory(self):
        store = EntityStore(DEFAULT_KINDS["tags"], MinimalSession())
        with pytest.raises(NotSupported):
            store.bootstrap()

    @pytest.mark.parametrize(
        ("markup", "message"),
        [
            ("<DMS><users/><extra/></DMS>", "exactly one element child, found 2"),
            ("<DMS/>", "exactly one element child, found 0"),
            ("<ROOT><users/></ROOT>", "exactly one element child, found 0"),
            ("<DMS><people/></DMS>", "expected entities root 'users'"),
        ],
    )
    def test_check_shape_rejects(self, users_kind, markup, message):
        store = EntityStore(users_kind, MemoryDocumentSession({USERS_DOCUMENT: markup}))
        with pytest.raises(MalformedDocument, match=message):
            store.check_shape()

    def test_check_shape_accepts_sample(self, sample_users):
        sample_users.check_shape()

    def test_handles_released_after_failures(self, sample_users, sample_session):
        with pytest.raises(NotFound):
            sample_users.remove(9)
        with pytest.raises(AlreadyExists):
            sample_users.add_field(1, "email", "x")
        assert sample_session.open_handles == 0
