"""Tests for the artifact cache."""

import asyncio

import pytest


class Clock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_cache(tmp_path, clock=None, max_age=3600):
    from analysis_hub.cache import ArtifactCache

    return ArtifactCache(tmp_path / "cache", default_max_age_seconds=max_age, clock=clock or Clock())


class TestArtifactCache:
    """Tests for ArtifactCache."""

    @pytest.mark.asyncio
    async def test_write_then_read(self, tmp_path):
        """Test that a completed write is readable and fresh."""
        cache = make_cache(tmp_path)

        async with cache.write("codeql-python-abc") as path:
            (path / "db.bin").write_text("data")

        assert cache.is_fresh("codeql-python-abc")
        async with cache.read("codeql-python-abc") as entry:
            assert entry is not None
            assert (entry / "db.bin").read_text() == "data"

    @pytest.mark.asyncio
    async def test_missing_entry(self, tmp_path):
        """Test that reading an unknown key yields None."""
        cache = make_cache(tmp_path)

        async with cache.read("nothing") as entry:
            assert entry is None

    @pytest.mark.asyncio
    async def test_failed_write_removed(self, tmp_path):
        """Test that an exception during write leaves no entry behind."""
        cache = make_cache(tmp_path)

        with pytest.raises(RuntimeError):
            async with cache.write("k") as path:
                (path / "partial").write_text("x")
                raise RuntimeError("extraction failed")

        assert not cache.path_for("k").exists()
        assert not cache.is_fresh("k")

    @pytest.mark.asyncio
    async def test_expiry(self, tmp_path):
        """Test that entries go stale after their max age."""
        clock = Clock()
        cache = make_cache(tmp_path, clock)

        async with cache.write("short", max_age_seconds=60):
            pass
        async with cache.write("long"):
            pass

        clock.now += 120
        assert not cache.is_fresh("short")
        assert cache.is_fresh("long")

        assert await cache.evict_expired() == ["short"]
        assert cache.path_for("long").is_dir()

    @pytest.mark.asyncio
    async def test_eviction_skips_held_keys(self, tmp_path):
        """Test that referenced entries survive eviction."""
        clock = Clock()
        cache = make_cache(tmp_path, clock)

        async with cache.write("db", max_age_seconds=10):
            pass
        clock.now += 100

        async with cache.hold("db"):
            assert cache.references("db") == 1
            assert await cache.evict_expired() == []

        assert cache.references("db") == 0
        assert await cache.evict_expired() == ["db"]

    @pytest.mark.asyncio
    async def test_abandoned_directories_evicted(self, tmp_path):
        """Test that directories without a marker are cleaned up."""
        cache = make_cache(tmp_path)
        (cache.directory / "orphan").mkdir(parents=True)

        assert await cache.evict_expired() == ["orphan"]

    def test_unsafe_key_characters(self, tmp_path):
        """Test that keys map to a single safe directory name."""
        cache = make_cache(tmp_path)

        assert cache.path_for("../../etc").parent == cache.directory
        with pytest.raises(ValueError):
            cache.path_for("")

    @pytest.mark.asyncio
    async def test_writer_waits_for_readers(self, tmp_path):
        """Test that a writer does not start while a reader holds the entry."""
        cache = make_cache(tmp_path)
        async with cache.write("k"):
            pass

        events = []

        async def reader():
            async with cache.read("k"):
                events.append("read-start")
                await asyncio.sleep(0.05)
                events.append("read-end")

        async def writer():
            await asyncio.sleep(0.01)
            async with cache.write("k"):
                events.append("write")

        await asyncio.gather(reader(), writer())

        assert events == ["read-start", "read-end", "write"]

    @pytest.mark.asyncio
    async def test_idle_locks_released(self, tmp_path):
        """Test that per-key locks do not outlive the last user of the key."""
        cache = make_cache(tmp_path)

        for i in range(20):
            async with cache.write(f"key-{i}"):
                pass
            async with cache.read(f"key-{i}"):
                pass
        async with cache.read("never-written"):
            pass

        assert cache._locks == {}
        assert cache.references("key-0") == 0

    @pytest.mark.asyncio
    async def test_lock_kept_while_shared(self, tmp_path):
        """Test that a key's lock survives until its last reader leaves."""
        cache = make_cache(tmp_path)
        first_in = asyncio.Event()
        release = asyncio.Event()

        async def long_reader():
            async with cache.read("k"):
                first_in.set()
                await release.wait()

        task = asyncio.create_task(long_reader())
        await first_in.wait()
        lock = cache._locks["k"]
        async with cache.read("k"):
            pass

        assert cache._locks["k"] is lock
        release.set()
        await task
        assert "k" not in cache._locks


class TestReadWriteLock:
    """Tests for ReadWriteLock."""

    @pytest.mark.asyncio
    async def test_concurrent_readers(self):
        """Test that readers share the lock."""
        from analysis_hub.cache import ReadWriteLock

        lock = ReadWriteLock()
        inside = []

        async def reader(name):
            async with lock.reading():
                inside.append(name)
                await asyncio.sleep(0.02)
                assert lock.busy

        await asyncio.gather(reader("a"), reader("b"))

        assert sorted(inside) == ["a", "b"]
        assert not lock.busy
