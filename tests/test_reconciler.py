"""
@description 状态合并服务测试
@responsibility 验证记录与引擎状态的合并、引擎缺失状态的报错和令牌作用域解析
"""

import asyncio
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.exceptions import EngineFaultError, PathOutOfScopeError
from app.schemas.torrent import EngineFile, EngineStatus, TorrentStatus
from app.services.reconciler import Reconciler


def make_record(record_id=1, hash_string="abc123", owner_id="user-1", name="Foo"):
    return SimpleNamespace(
        id=record_id,
        owner_id=owner_id,
        hash_string=hash_string,
        created_name=name,
        created_at=datetime(2026, 1, 1, 12, 0, 0),
    )


def make_status(hash_string="abc123", files=None):
    return EngineStatus(
        hash_string=hash_string,
        name="Foo (engine)",
        downloaded_bytes=500,
        uploaded_bytes=20,
        status=TorrentStatus.DOWNLOADING,
        total_size=1000,
        percent_done=0.5,
        rate_download=100,
        rate_upload=5,
        bytes_completed=500,
        files=files or [],
    )


@pytest.fixture
def record_store():
    store = MagicMock()
    store.get_all = AsyncMock(return_value=[])
    store.get = AsyncMock(return_value=None)
    return store


@pytest.fixture
def engine_client():
    client = MagicMock()
    client.stats_for_all = AsyncMock(return_value={})
    client.stats_for = AsyncMock(return_value=None)
    return client


@pytest.fixture
def reconciler(record_store, engine_client):
    return Reconciler(record_store, engine_client)


class TestListMerged:
    @pytest.mark.asyncio
    async def test_merges_by_hash(self, reconciler, record_store, engine_client):
        record_store.get_all.return_value = [
            make_record(1, "hash-a"),
            make_record(2, "hash-b", owner_id="user-2"),
        ]
        engine_client.stats_for_all.return_value = {
            "hash-a": make_status("hash-a"),
            "hash-b": make_status("hash-b"),
            "hash-untracked": make_status("hash-untracked"),
        }

        views = await reconciler.list_merged()

        assert [v.id for v in views] == [1, 2]
        assert views[1].owner_id == "user-2"
        assert views[0].name == "Foo (engine)"
        assert views[0].percent_done == 0.5

    @pytest.mark.asyncio
    async def test_missing_status_is_fault(self, reconciler, record_store, engine_client):
        """记录在引擎中没有状态时整体报错，不静默丢弃"""
        record_store.get_all.return_value = [make_record(1, "hash-a"), make_record(2, "hash-b")]
        engine_client.stats_for_all.return_value = {"hash-a": make_status("hash-a")}

        with pytest.raises(EngineFaultError) as exc_info:
            await reconciler.list_merged()

        assert exc_info.value.hash_strings == ["hash-b"]

    @pytest.mark.asyncio
    async def test_queries_run_concurrently(self, reconciler, record_store, engine_client):
        """记录查询和引擎查询并发执行"""
        both_started = asyncio.Event()
        started = []

        async def slow_get_all():
            started.append("records")
            if len(started) == 2:
                both_started.set()
            await asyncio.wait_for(both_started.wait(), timeout=1)
            return []

        async def slow_stats():
            started.append("engine")
            if len(started) == 2:
                both_started.set()
            await asyncio.wait_for(both_started.wait(), timeout=1)
            return {}

        record_store.get_all = slow_get_all
        engine_client.stats_for_all = slow_stats

        assert await reconciler.list_merged() == []
        assert sorted(started) == ["engine", "records"]


class TestGetMerged:
    @pytest.mark.asyncio
    async def test_fields_from_both_sources(self, reconciler, record_store, engine_client):
        record = make_record()
        status = make_status(files=[EngineFile(name="Foo/a.mkv", size=1000, progress=0.5)])
        record_store.get.return_value = record
        engine_client.stats_for.return_value = status

        view = await reconciler.get_merged(1)

        assert view.id == record.id
        assert view.owner_id == record.owner_id
        assert view.hash_string == record.hash_string
        assert view.created_at == record.created_at
        for field in (
            "name",
            "downloaded_bytes",
            "uploaded_bytes",
            "status",
            "total_size",
            "percent_done",
            "rate_download",
            "rate_upload",
            "bytes_completed",
            "files",
        ):
            assert getattr(view, field) == getattr(status, field)
        engine_client.stats_for.assert_awaited_once_with("abc123")

    @pytest.mark.asyncio
    async def test_unknown_record(self, reconciler, engine_client):
        assert await reconciler.get_merged(42) is None
        engine_client.stats_for.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_record_without_status(self, reconciler, record_store, engine_client):
        """记录存在但引擎没有状态属于引擎故障，与 NotFound 区分"""
        record_store.get.return_value = make_record()
        engine_client.stats_for.return_value = None

        with pytest.raises(EngineFaultError):
            await reconciler.get_merged(1)


class TestResolveFile:
    @pytest.mark.asyncio
    async def test_file_index(self, reconciler, record_store, engine_client):
        record_store.get.return_value = make_record()
        engine_client.stats_for.return_value = make_status(
            files=[EngineFile(name="Foo/a.mkv"), EngineFile(name="Foo/b.srt")]
        )

        scope = await reconciler.resolve_file(1, 1)

        assert scope.hash_string == "abc123"
        assert scope.file_path == "Foo/b.srt"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("index", [2, 10, -1])
    async def test_index_out_of_range(self, reconciler, record_store, engine_client, index):
        record_store.get.return_value = make_record()
        engine_client.stats_for.return_value = make_status(
            files=[EngineFile(name="Foo/a.mkv"), EngineFile(name="Foo/b.srt")]
        )

        assert await reconciler.resolve_file(1, index) is None

    @pytest.mark.asyncio
    async def test_unknown_record(self, reconciler):
        assert await reconciler.resolve_file(99, 0) is None


class TestResolveItem:
    @pytest.mark.asyncio
    async def test_defaults_to_record_name(self, reconciler, record_store, engine_client):
        record_store.get.return_value = make_record(name="Foo")

        scope = await reconciler.resolve_item(1)

        assert scope.file_path == "Foo"
        engine_client.stats_for.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "path,expected",
        [
            ("Foo/Season 1", "Foo/Season 1"),
            ("/Foo/Season 1/", "Foo/Season 1"),
            ("Foo/Season 1/e01.mkv", "Foo/Season 1/e01.mkv"),
        ],
    )
    async def test_path_inside_torrent(self, reconciler, record_store, engine_client, path, expected):
        record_store.get.return_value = make_record()
        engine_client.stats_for.return_value = make_status(
            files=[EngineFile(name="Foo/Season 1/e01.mkv")]
        )

        scope = await reconciler.resolve_item(1, path)

        assert scope.file_path == expected

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["..hidden", "..hidden/file.txt"])
    async def test_dot_dot_prefixed_name_allowed(self, reconciler, record_store, engine_client, path):
        """以 .. 开头的普通文件名不是上级目录引用"""
        record_store.get.return_value = make_record()
        engine_client.stats_for.return_value = make_status(files=[EngineFile(name="..hidden/file.txt")])

        scope = await reconciler.resolve_item(1, path)

        assert scope.file_path == path

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["Bar", "Foo/Season 2", "../etc/passwd", "..", "Foo/Season"])
    async def test_path_outside_torrent(self, reconciler, record_store, engine_client, path):
        record_store.get.return_value = make_record()
        engine_client.stats_for.return_value = make_status(
            files=[EngineFile(name="Foo/Season 1/e01.mkv")]
        )

        with pytest.raises(PathOutOfScopeError):
            await reconciler.resolve_item(1, path)

    @pytest.mark.asyncio
    async def test_unknown_record(self, reconciler):
        assert await reconciler.resolve_item(99, "Foo") is None
