import asyncio
import json

from accountability.exceptions import PersistenceError
from accountability.persistence import JsonFileDocumentStore, MemoryDocumentStore, SnapshotWriter


class SlowStore(MemoryDocumentStore):
    """Records every write; the first write yields to the loop a few times."""

    def __init__(self):
        super().__init__()
        self.writes = []

    async def set(self, key, value):
        if not self.writes:
            for _ in range(3):
                await asyncio.sleep(0)
        self.writes.append(value["v"])
        await super().set(key, value)


class BrokenStore:
    async def get(self, key):
        raise PersistenceError("disk gone", key=key)

    async def set(self, key, value):
        raise PersistenceError("disk gone", key=key)


def test_memory_store_copies_values():
    async def run():
        store = MemoryDocumentStore()
        doc = {"goals": {"1": {"goal": "Run"}}}
        await store.set("k", doc)
        doc["goals"]["1"]["goal"] = "changed"
        loaded = await store.get("k")
        assert loaded["goals"]["1"]["goal"] == "Run"
        assert await store.get("missing") is None

    asyncio.run(run())


def test_json_file_store_round_trip(tmp_path):
    async def run():
        store = JsonFileDocumentStore(tmp_path / "data")
        assert await store.get("soo3") is None
        await store.set("soo3", {"name": "Ada", "note": "café"})
        assert await store.get("soo3") == {"name": "Ada", "note": "café"}

    asyncio.run(run())
    saved = json.loads((tmp_path / "data" / "soo3.json").read_text(encoding="utf-8"))
    assert saved["name"] == "Ada"
    assert not (tmp_path / "data" / "soo3.json.tmp").exists()


def test_json_file_store_raises_on_corrupt_file(tmp_path):
    (tmp_path / "soo3.json").write_text("{not json", encoding="utf-8")
    store = JsonFileDocumentStore(tmp_path)

    async def run():
        try:
            await store.get("soo3")
        except PersistenceError as e:
            return e
        return None

    error = asyncio.run(run())
    assert error is not None
    assert error.key == "soo3"


def test_snapshot_writer_last_write_wins():
    store = SlowStore()
    writer = SnapshotWriter(store, "soo3")

    async def run():
        for v in range(1, 6):
            writer.schedule({"v": v})
        await writer.flush()
        return await store.get("soo3")

    final = asyncio.run(run())
    assert final == {"v": 5}
    assert store.writes[-1] == 5
    assert store.writes == sorted(store.writes)
    assert writer.pending_count == 0


def test_snapshot_writer_swallows_failures():
    writer = SnapshotWriter(BrokenStore(), "soo3")

    async def run():
        assert await writer.load() is None
        writer.schedule({"v": 1})
        await writer.flush()

    asyncio.run(run())


def test_snapshot_writer_without_running_loop_writes_inline():
    store = MemoryDocumentStore()
    writer = SnapshotWriter(store, "soo3")
    writer.schedule({"v": 1})
    writer.schedule({"v": 2})
    assert asyncio.run(store.get("soo3")) == {"v": 2}
