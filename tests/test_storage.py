"""
Tests for the checkpoint stores.
"""

import pytest
import asyncio

from pydantic import ValidationError

from pausegraph.engine.checkpoint import Checkpoint, CheckpointStatus
from pausegraph.engine.errors import NodeExecutionError
from pausegraph.engine.executor import Executor
from pausegraph.engine.graph import Graph, START, END
from pausegraph.engine.interrupt import Command, PendingInterrupt, interrupt
from pausegraph.storage import (
    MemoryCheckpointStore,
    SQLiteCheckpointStore,
    create_checkpoint_store,
)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Each test runs against both backends."""
    if request.param == "memory":
        yield MemoryCheckpointStore()
    else:
        store = SQLiteCheckpointStore(str(tmp_path / "checkpoints.db"))
        yield store
        asyncio.run(store.close())


def make_checkpoint(session_id="s1", cursor="node", **kwargs) -> Checkpoint:
    return Checkpoint(session_id=session_id, state=kwargs.pop("state", {"a": 1}), cursor=cursor, **kwargs)


# ============================================================
# Store Contract Tests
# ============================================================

class TestCheckpointStore:
    """Tests every backend must pass."""

    @pytest.mark.asyncio
    async def test_load_missing(self, store):
        """Test loading a session that was never saved."""
        assert await store.load("missing") is None

    @pytest.mark.asyncio
    async def test_save_and_load(self, store):
        """Test a save is visible to the next load."""
        checkpoint = make_checkpoint(
            state={"input": "Tokyo", "candidates": [{"id": "1", "metadata": {"price": 850}}]},
            interrupt=PendingInterrupt(
                node="ask", payload={"question": "Which?"}, resume_key="choice"
            ),
            graph="flights",
            step=3,
        )
        await store.save(checkpoint)
        loaded = await store.load("s1")

        assert loaded.state == checkpoint.state
        assert loaded.cursor == "node"
        assert loaded.interrupt.payload == {"question": "Which?"}
        assert loaded.interrupt.resume_key == "choice"
        assert loaded.status == CheckpointStatus.SUSPENDED
        assert loaded.graph == "flights"
        assert loaded.step == 3
        assert loaded.updated_at == checkpoint.updated_at
        assert loaded.model_dump() == checkpoint.model_dump()

    @pytest.mark.asyncio
    async def test_round_trip_is_exact(self, store):
        """Test that every kind of accepted value loads back unchanged."""
        state = {
            "nested": {"list": [1, 2.5, None, True, "x"], "empty": {}},
            "flag": False,
            "pair": [1, 2],
        }
        await store.save(make_checkpoint(state=state))

        loaded = await store.load("s1")
        assert loaded.state == state
        assert type(loaded.state["nested"]["list"][1]) is float

        with pytest.raises(ValidationError, match="tuple"):
            make_checkpoint(state={"pair": (1, 2)})

    @pytest.mark.asyncio
    async def test_save_replaces(self, store):
        """Test that a session keeps only its latest checkpoint."""
        await store.save(make_checkpoint(cursor="first", state={"n": 1}))
        await store.save(make_checkpoint(cursor="second", state={"n": 2}))

        loaded = await store.load("s1")
        assert loaded.cursor == "second"
        assert loaded.state == {"n": 2}
        assert await store.list_sessions() == ["s1"]

    @pytest.mark.asyncio
    async def test_loaded_copy_is_detached(self, store):
        """Test that mutating a loaded checkpoint does not change the store."""
        await store.save(make_checkpoint(state={"items": [1]}))

        loaded = await store.load("s1")
        loaded.state["items"].append(2)

        assert (await store.load("s1")).state == {"items": [1]}

    @pytest.mark.asyncio
    async def test_sessions_are_separate(self, store):
        """Test that sessions do not overwrite each other."""
        await store.save(make_checkpoint("a", state={"who": "a"}))
        await store.save(make_checkpoint("b", state={"who": "b"}))

        assert (await store.load("a")).state == {"who": "a"}
        assert (await store.load("b")).state == {"who": "b"}
        assert sorted(await store.list_sessions()) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_delete(self, store):
        """Test deleting a session."""
        await store.save(make_checkpoint())

        assert await store.delete("s1") is True
        assert await store.load("s1") is None
        assert await store.delete("s1") is False

    @pytest.mark.asyncio
    async def test_concurrent_saves(self, store):
        """Test concurrent saves to different sessions."""
        await asyncio.gather(*[
            store.save(make_checkpoint(f"s{i}", state={"i": i})) for i in range(10)
        ])

        for i in range(10):
            assert (await store.load(f"s{i}")).state == {"i": i}

    @pytest.mark.asyncio
    async def test_session_locks_are_released(self, store):
        """Test that idle sessions keep no lock around."""
        await asyncio.gather(*[
            store.save(make_checkpoint("same", state={"i": i})) for i in range(5)
        ])
        await store.load("same")
        await store.load("never-saved")

        assert store._locks == {}


# ============================================================
# Backend-specific Tests
# ============================================================

class TestMemoryCheckpointStore:
    """Tests for MemoryCheckpointStore."""

    @pytest.mark.asyncio
    async def test_saved_copy_is_detached(self):
        """Test that mutating a saved object does not change the store."""
        store = MemoryCheckpointStore()
        checkpoint = make_checkpoint(state={"items": [1]})
        await store.save(checkpoint)
        checkpoint.state["items"].append(2)

        assert (await store.load("s1")).state == {"items": [1]}
        assert len(store) == 1
        assert "s1" in store


class TestSQLiteCheckpointStore:
    """Tests for SQLiteCheckpointStore."""

    @pytest.mark.asyncio
    async def test_survives_reopen(self, tmp_path):
        """Test that a suspended session can be resumed after a restart."""
        db_path = str(tmp_path / "sessions.db")

        def ask(state) -> None:
            interrupt({"question": "Proceed?"}, key="answer")

        def finish(state):
            return {"result": f"answer was {state['answer']}"}

        def build():
            graph = Graph(name="restartable")
            graph.add_node("ask", ask)
            graph.add_node("finish", finish)
            graph.add_edge(START, "ask")
            graph.add_edge("ask", "finish")
            graph.add_edge("finish", END)
            return graph

        first = SQLiteCheckpointStore(db_path)
        result = await Executor(build(), first).invoke({"input": "x"}, "s1")
        assert result.suspended
        await first.close()

        second = SQLiteCheckpointStore(db_path)
        result = await Executor(build(), second).resume(Command(session_id="s1", value="yes"))
        await second.close()

        assert result.completed
        assert result.state == {"input": "x", "answer": "yes", "result": "answer was yes"}

    @pytest.mark.asyncio
    async def test_unstorable_update_fails_node(self, tmp_path):
        """Test that a node returning an arbitrary object fails cleanly."""
        class Opaque:
            pass

        def produce(state):
            return {"obj": Opaque()}

        graph = Graph(name="opaque")
        graph.add_node("produce", produce)
        graph.add_edge(START, "produce")
        graph.add_edge("produce", END)

        store = SQLiteCheckpointStore(str(tmp_path / "opaque.db"))
        with pytest.raises(NodeExecutionError) as exc_info:
            await Executor(graph, store).invoke({"input": "x"}, "s1")

        assert exc_info.value.session_id == "s1"
        assert exc_info.value.node == "produce"
        checkpoint = await store.load("s1")
        assert checkpoint.cursor == "produce"
        assert checkpoint.state == {"input": "x"}
        await store.close()

    @pytest.mark.asyncio
    async def test_in_memory_database(self):
        """Test the default in-memory database."""
        store = SQLiteCheckpointStore()
        await store.save(make_checkpoint())
        assert (await store.load("s1")).cursor == "node"
        await store.close()

    @pytest.mark.asyncio
    async def test_closed_store(self, tmp_path):
        """Test that a closed store refuses work."""
        store = SQLiteCheckpointStore(str(tmp_path / "closed.db"))
        await store.close()

        with pytest.raises(RuntimeError, match="closed"):
            await store.load("s1")

    def test_creates_parent_directory(self, tmp_path):
        """Test that missing directories are created."""
        db_path = tmp_path / "nested" / "dir" / "checkpoints.db"
        store = SQLiteCheckpointStore(str(db_path))
        assert db_path.parent.is_dir()
        asyncio.run(store.close())


class TestCreateCheckpointStore:
    """Tests for the store factory."""

    def test_memory_backend(self):
        assert isinstance(create_checkpoint_store("memory"), MemoryCheckpointStore)

    def test_sqlite_backend(self, tmp_path):
        store = create_checkpoint_store("sqlite", str(tmp_path / "factory.db"))
        assert isinstance(store, SQLiteCheckpointStore)
        asyncio.run(store.close())

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown checkpoint backend"):
            create_checkpoint_store("redis")
