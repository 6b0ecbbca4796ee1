"""
Tests for the MongoDB session store, using a mocked collection.
"""

from unittest.mock import MagicMock

from pymongo.errors import PyMongoError

from database.session_store import SessionStore
from triage.languages import Language
from triage.models import Role, Session, Turn
from triage.states import SessionStatus


def make_session(user_id="user-1"):
    session = Session(user_id=user_id, language=Language.HINDI)
    session.append_turn(Turn(session.id, Role.USER, "नमस्ते", Language.HINDI))
    return session


class TestMongoBacked:
    """Tests for the document mapping against a collection."""

    def test_save_upserts_one_document(self):
        collection = MagicMock()
        store = SessionStore(collection=collection)
        session = make_session()

        assert store.save(session) is True

        args, kwargs = collection.replace_one.call_args
        assert args[0] == {"_id": session.id}
        assert args[1]["_id"] == session.id
        assert args[1]["language"] == "hi"
        assert args[1]["turns"][0]["content"] == "नमस्ते"
        assert kwargs == {"upsert": True}

    def test_get_falls_back_to_collection(self):
        session = make_session()
        collection = MagicMock()
        collection.find_one.return_value = session.to_dict()
        store = SessionStore(collection=collection)

        loaded = store.get(session.id)

        collection.find_one.assert_called_once_with({"_id": session.id})
        assert loaded.id == session.id
        assert loaded.turns[0].content == "नमस्ते"

    def test_saved_sessions_are_not_kept_in_memory(self):
        collection = MagicMock()
        store = SessionStore(collection=collection)
        for n in range(20):
            store.save(make_session(f"user-{n}"))

        assert store._memory == {}
        assert collection.replace_one.call_count == 20

    def test_get_reads_collection_after_save(self):
        collection = MagicMock()
        store = SessionStore(collection=collection)
        session = make_session()
        collection.find_one.return_value = session.to_dict()
        store.save(session)

        assert store.get(session.id).id == session.id
        collection.find_one.assert_called_once_with({"_id": session.id})

    def test_save_failure_keeps_local_copy(self):
        collection = MagicMock()
        collection.replace_one.side_effect = PyMongoError("write failed")
        store = SessionStore(collection=collection)
        session = make_session()

        assert store.save(session) is False
        assert store.get(session.id).user_id == "user-1"
        collection.find_one.assert_not_called()

    def test_successful_retry_clears_local_copy(self):
        collection = MagicMock()
        collection.replace_one.side_effect = [PyMongoError("write failed"), None]
        store = SessionStore(collection=collection)
        session = make_session()

        assert store.save(session) is False
        assert session.id in store._memory
        assert store.save(session) is True
        assert store._memory == {}

    def test_list_by_status_prefers_unsaved_copy(self):
        session = make_session()
        collection = MagicMock()
        collection.find.return_value.sort.return_value.limit.return_value = [session.to_dict()]
        collection.replace_one.side_effect = PyMongoError("write failed")
        store = SessionStore(collection=collection)

        session.transition_to(SessionStatus.COMPLETED)
        store.save(session)

        assert store.list_by_status(SessionStatus.ACTIVE) == []
        assert [s.id for s in store.list_by_status(SessionStatus.COMPLETED)] == [session.id]

    def test_get_failure_returns_none(self):
        collection = MagicMock()
        collection.find_one.side_effect = PyMongoError("read failed")
        store = SessionStore(collection=collection)
        assert store.get("missing") is None

    def test_list_by_status_queries_recent_first(self):
        session = make_session()
        collection = MagicMock()
        collection.find.return_value.sort.return_value.limit.return_value = [session.to_dict()]
        store = SessionStore(collection=collection)

        sessions = store.list_by_status(SessionStatus.ACTIVE, limit=10)

        collection.find.assert_called_once_with({"status": "active"})
        collection.find.return_value.sort.assert_called_once_with("last_activity", -1)
        collection.find.return_value.sort.return_value.limit.assert_called_once_with(10)
        assert [s.id for s in sessions] == [session.id]


class TestInMemory:
    """Tests for the store without MongoDB."""

    def test_save_and_get(self, store):
        session = make_session()
        assert store.save(session) is False
        assert not store.connected
        assert store.get(session.id).language is Language.HINDI
        assert store.get("missing") is None

    def test_get_returns_fresh_objects(self, store):
        session = make_session()
        store.save(session)
        first = store.get(session.id)
        first.turns.clear()
        assert len(store.get(session.id).turns) == 1

    def test_list_by_status(self, store):
        active = make_session("a")
        done = make_session("b")
        done.transition_to(SessionStatus.COMPLETED)
        store.save(active)
        store.save(done)

        assert [s.user_id for s in store.list_by_status(SessionStatus.ACTIVE)] == ["a"]
        assert [s.user_id for s in store.list_by_status(SessionStatus.COMPLETED)] == ["b"]
