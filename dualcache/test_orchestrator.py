"""
Tests for DualCache, dood!

This test suite validates the orchestrator across every RAM/disk mode
combination, including:
- Basic operations (put, get, delete, contains)
- Tier isolation of invalidateRAM / invalidateDisk
- LRU eviction falling through to disk
- TTL expiration with an injected clock
- Transport reuse with a shared codec
- Fail-open behaviour on disk errors
- Concurrent workloads
"""

import datetime
import random
import threading
from typing import Any, Optional
from unittest.mock import patch

import pytest

from .codecs import JsonCodec, PickleCodec, StringCodec
from .configuration import (
    CacheConfiguration,
    DiskDisabled,
    DiskSerialized,
    RamDisabled,
    RamReference,
    RamSerialized,
)
from .disk_tier import DiskTier
from .errors import CodecEncodeError, ConfigurationError, TransientIOError
from .orchestrator import CacheOrchestrator, DualCache
from .types import Codec, DiskMode, RamMode

CACHE_NAME = "test"
APP_VERSION = 0
RAM_MAX_SIZE = 1000
# diskcache counts its own SQLite file in the volume, so the disk budget must leave room for it
DISK_MAX_SIZE = 10 * 1024 * 1024

RAM_MODES = ["disable", "reference", "serializer"]
DISK_MODES = ["disable", "serializer"]


def jsonSize(value: Any) -> int:
    """Size function for reference mode: length of the JSON form"""
    return len(JsonCodec().encode(value))


class FakeClock:
    """Manually advanced clock returning epoch millis"""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int) -> None:
        self.now += millis


def makeConfig(
    tmpPath,
    ramMode: str = "serializer",
    diskMode: str = "serializer",
    codec: Optional[Codec[Any]] = None,
    diskCodec: Optional[Codec[Any]] = None,
    ramCapacity: int = RAM_MAX_SIZE,
    ttl: Optional[datetime.timedelta] = None,
    appVersion: int = APP_VERSION,
    lockStripes: Optional[int] = None,
) -> CacheConfiguration:
    """Build configuration for one RAM/disk mode combination"""
    codec = codec if codec is not None else JsonCodec()
    diskCodec = diskCodec if diskCodec is not None else codec

    match ramMode:
        case "reference":
            ramPolicy: Any = RamReference(jsonSize)
        case "serializer":
            ramPolicy = RamSerialized(codec)
        case _:
            ramPolicy = RamDisabled()

    diskPolicy: Any = DiskSerialized(diskCodec) if diskMode == "serializer" else DiskDisabled()

    return CacheConfiguration(
        cacheName=CACHE_NAME,
        appVersion=appVersion,
        ramPolicy=ramPolicy,
        ramCapacityBytes=ramCapacity,
        diskPolicy=diskPolicy,
        diskCapacityBytes=DISK_MAX_SIZE,
        diskDirectory=tmpPath,
        ttl=ttl,
        loggingEnabled=True,
        lockStripes=lockStripes,
    )


@pytest.fixture(params=[(ram, disk) for ram in RAM_MODES for disk in DISK_MODES], ids=lambda p: f"{p[0]}-{p[1]}")
def anyCache(request, tmp_path):
    """Cache in each of the six mode combinations, dood!"""
    ramMode, diskMode = request.param
    cache = DualCache(makeConfig(tmp_path, ramMode, diskMode))
    yield cache
    cache.close()


@pytest.fixture
def dualCache(tmp_path):
    """Serialized RAM + serialized disk cache sharing one JSON codec, dood!"""
    cache = DualCache(makeConfig(tmp_path))
    yield cache
    cache.close()


class TestAllModes:
    """Test behaviour every configuration must have, dood!"""

    def test_round_trip(self, anyCache):
        """Test a put value comes back unless both tiers are disabled, dood!"""
        value = {"name": "Prinny", "level": 99, "items": ["knife", "sardine"]}
        anyCache.put("user:1", value)

        bothDisabled = anyCache.getRamMode() == RamMode.DISABLE and anyCache.getDiskMode() == DiskMode.DISABLE
        if bothDisabled:
            assert anyCache.get("user:1") is None
            assert not anyCache.contains("user:1")
        else:
            assert anyCache.get("user:1") == value
            assert anyCache.contains("user:1")

    def test_replace(self, anyCache):
        """Test put on an existing key replaces the value, dood!"""
        anyCache.put("key", {"v": 1})
        anyCache.put("key", {"v": 2})
        if anyCache.getRamMode() != RamMode.DISABLE or anyCache.getDiskMode() != DiskMode.DISABLE:
            assert anyCache.get("key") == {"v": 2}

    def test_delete_is_idempotent(self, anyCache):
        """Test delete removes the key and can be repeated, dood!"""
        anyCache.put("key", {"v": 1})
        anyCache.delete("key")
        assert anyCache.get("key") is None
        assert not anyCache.contains("key")
        anyCache.delete("key")
        anyCache.delete("never-existed")

    def test_invalidate(self, anyCache):
        """Test invalidate drops everything, dood!"""
        for i in range(5):
            anyCache.put(f"key:{i}", {"i": i})
        anyCache.invalidate()
        for i in range(5):
            assert anyCache.get(f"key:{i}") is None

    def test_used_bytes(self, anyCache):
        """Test usage is -1 for disabled tiers and positive after a put otherwise, dood!"""
        anyCache.put("key", {"v": 1})
        if anyCache.getRamMode() == RamMode.DISABLE:
            assert anyCache.ramUsedBytes() == -1
        else:
            assert anyCache.ramUsedBytes() == jsonSize({"v": 1})
        if anyCache.getDiskMode() == DiskMode.DISABLE:
            assert anyCache.diskUsedBytes() == -1
        else:
            assert anyCache.diskUsedBytes() > 0

    def test_stats(self, anyCache):
        """Test statistics report modes and counters, dood!"""
        anyCache.put("key", {"v": 1})
        anyCache.get("key")
        anyCache.get("missing")

        stats = anyCache.getStats()
        assert stats["name"] == CACHE_NAME
        assert stats["ramMode"] == str(anyCache.getRamMode())
        assert stats["diskMode"] == str(anyCache.getDiskMode())
        assert stats["diskErrors"] == 0
        assert stats["ramHits"] + stats["diskHits"] + stats["misses"] == 2
        assert (stats["ram"] is None) == (anyCache.getRamMode() == RamMode.DISABLE)
        assert (stats["disk"] is None) == (anyCache.getDiskMode() == DiskMode.DISABLE)


class TestTiers:
    """Test tier coordination, dood!"""

    def test_both_disabled_allocates_nothing(self, tmp_path):
        """Test a fully disabled cache touches neither memory tier nor filesystem, dood!"""
        cache = DualCache(makeConfig(tmp_path, "disable", "disable"))
        assert cache._ram is None
        assert cache._disk is None
        assert not (tmp_path / CACHE_NAME).exists()

        cache.put("key", "value")
        assert cache.get("key") is None
        cache.invalidate()

    def test_invalidate_ram_keeps_disk(self, dualCache):
        """Test RAM invalidation leaves disk entries readable, dood!"""
        dualCache.put("key", {"v": 1})
        dualCache.invalidateRAM()

        assert dualCache.ramUsedBytes() == 0
        assert dualCache.contains("key")
        assert dualCache.get("key") == {"v": 1}
        # Disk hit was promoted back into RAM
        assert dualCache._ram.contains("key")

    def test_invalidate_disk_keeps_ram(self, dualCache):
        """Test disk invalidation leaves RAM entries readable, dood!"""
        dualCache.put("key", {"v": 1})
        dualCache.invalidateDisk()

        assert dualCache.get("key") == {"v": 1}
        assert dualCache._disk.read("key") is None

        dualCache.invalidateRAM()
        assert dualCache.get("key") is None
        assert not dualCache.contains("key")

    def test_lru_falls_through_to_disk(self, tmp_path):
        """Test entries evicted from RAM are still served from disk, dood!"""
        cache = DualCache(makeConfig(tmp_path, codec=StringCodec(), ramCapacity=100))
        for i in range(20):
            cache.put(f"key:{i}", f"value-{i:04d}-xxxxxxxxxx")

        assert cache.ramUsedBytes() <= 100
        assert not cache._ram.contains("key:0")
        assert cache._ram.contains("key:19")
        for i in range(20):
            assert cache.get(f"key:{i}") == f"value-{i:04d}-xxxxxxxxxx"
        assert cache.getStats()["diskHits"] > 0
        cache.close()

    def test_reference_mode_keeps_object(self, tmp_path):
        """Test reference RAM hands back the very object that was put, dood!"""
        cache = DualCache(makeConfig(tmp_path, "reference", "disable"))
        value = {"v": [1, 2, 3]}
        cache.put("key", value)
        assert cache.get("key") is value

    def test_shared_codec_transport_identical(self, dualCache):
        """Test RAM and disk hold the same transport when they share a codec, dood!"""
        dualCache.put("key", {"b": 2, "a": "я"})
        assert dualCache._ram.get("key") == dualCache._disk.read("key")

    def test_different_codecs(self, tmp_path):
        """Test RAM and disk may use different codecs, dood!"""
        cache = DualCache(makeConfig(tmp_path, codec=JsonCodec(), diskCodec=PickleCodec()))
        cache.put("key", {"v": 1})

        assert isinstance(cache._ram.get("key"), str)
        assert isinstance(cache._disk.read("key"), bytes)

        cache.invalidateRAM()
        assert cache.get("key") == {"v": 1}
        assert isinstance(cache._ram.get("key"), str)
        cache.close()

    def test_version_bump_drops_disk(self, tmp_path):
        """Test a new app version doesn't see data written by the old one, dood!"""
        with DualCache(makeConfig(tmp_path, "disable", "serializer", appVersion=1)) as cache:
            cache.put("key", {"v": 1})

        with DualCache(makeConfig(tmp_path, "disable", "serializer", appVersion=1)) as cache:
            assert cache.get("key") == {"v": 1}

        with DualCache(makeConfig(tmp_path, "disable", "serializer", appVersion=2)) as cache:
            assert cache.get("key") is None

    def test_lock_stripes(self, tmp_path):
        """Test a striped cache behaves the same, dood!"""
        with DualCache(makeConfig(tmp_path, lockStripes=4)) as cache:
            for i in range(20):
                cache.put(f"key:{i}", {"i": i})
            cache.invalidateRAM()
            assert [cache.get(f"key:{i}") for i in range(20)] == [{"i": i} for i in range(20)]
            assert cache._disk.locks.lockCount() == 4

    def test_alias(self):
        """Test orchestrator alias, dood!"""
        assert CacheOrchestrator is DualCache


class TestTtl:
    """Test expiration with an injected clock, dood!"""

    @pytest.mark.parametrize("ramMode", RAM_MODES)
    def test_expiry(self, tmp_path, ramMode):
        """Test entries vanish once the clock reaches their expiry, dood!"""
        clock = FakeClock()
        cache = DualCache(makeConfig(tmp_path, ramMode, ttl=datetime.timedelta(seconds=1)), clock=clock)
        cache.put("key", {"v": 1})

        clock.advance(999)
        assert cache.get("key") == {"v": 1}

        clock.advance(1)
        assert cache.contains("key")
        assert cache.get("key") is None
        assert not cache.contains("key")
        assert cache.getStats()["expired"] == 1
        cache.close()

    def test_expiry_on_disk_only(self, tmp_path):
        """Test expired disk entries are removed, dood!"""
        clock = FakeClock()
        cache = DualCache(makeConfig(tmp_path, "disable", ttl=datetime.timedelta(seconds=1)), clock=clock)
        cache.put("key", {"v": 1})
        clock.advance(5000)

        assert cache.get("key") is None
        assert cache._disk.read("key") is None
        cache.close()

    def test_promotion_keeps_expiry(self, tmp_path):
        """Test a disk hit promoted into RAM keeps its original expiry, dood!"""
        clock = FakeClock()
        cache = DualCache(makeConfig(tmp_path, ttl=datetime.timedelta(seconds=1)), clock=clock)
        cache.put("key", {"v": 1})
        cache.invalidateRAM()

        clock.advance(500)
        assert cache.get("key") == {"v": 1}
        assert cache._ram.contains("key")

        clock.advance(500)
        assert cache.get("key") is None

    def test_shortest_ttl_survives_same_tick(self, tmp_path):
        """Test a one millisecond ttl is still readable at the tick it was written, dood!"""
        clock = FakeClock()
        cache = DualCache(makeConfig(tmp_path, ttl=datetime.timedelta(milliseconds=1)), clock=clock)
        cache.put("key", {"v": 1})
        assert cache.get("key") == {"v": 1}

        clock.advance(1)
        assert cache.get("key") is None
        cache.close()

    def test_reference_size_includes_timestamp(self, tmp_path):
        """Test reference RAM with TTL accounts 8 extra bytes per entry, dood!"""
        cache = DualCache(makeConfig(tmp_path, "reference", "disable", ttl=datetime.timedelta(minutes=1)))
        cache.put("key", {"v": 1})
        assert cache.ramUsedBytes() == jsonSize({"v": 1}) + 8

    def test_shared_codec_with_ttl(self, tmp_path):
        """Test the envelope is computed once and shared by both tiers, dood!"""
        cache = DualCache(makeConfig(tmp_path, ttl=datetime.timedelta(minutes=1)), clock=FakeClock())
        cache.put("key", {"v": 1})

        transport = cache._ram.get("key")
        assert transport.startswith("DCX1")
        assert transport == cache._disk.read("key")
        cache.close()


class TestErrors:
    """Test error handling, dood!"""

    def test_invalid_arguments(self, dualCache):
        """Test bad keys and None values are rejected, dood!"""
        with pytest.raises(ValueError):
            dualCache.put("key", None)
        with pytest.raises(ValueError):
            dualCache.put("", "value")
        with pytest.raises(TypeError):
            dualCache.get(42)  # type: ignore[arg-type]

    def test_encode_error_propagates(self, dualCache):
        """Test values the codec can't encode are refused before touching any tier, dood!"""
        with pytest.raises(CodecEncodeError):
            dualCache.put("key", {"v": object()})
        assert not dualCache.contains("key")

    def test_ram_decode_failure_is_configuration_error(self, dualCache):
        """Test unreadable RAM content is reported as misconfiguration, dood!"""
        dualCache._ram.put("key", "{broken")
        with pytest.raises(ConfigurationError):
            dualCache.get("key")

    def test_corrupt_disk_entry_is_miss(self, dualCache):
        """Test unreadable disk content is a miss and gets removed, dood!"""
        dualCache._disk.write("key", "{broken")
        assert dualCache.get("key") is None
        assert not dualCache.contains("key")

    def test_corrupt_pickle_entry_is_miss(self, tmp_path):
        """Test a corrupt pickle on disk is a miss and gets removed, dood!"""
        cache = DualCache(makeConfig(tmp_path, "disable", codec=PickleCodec()))
        # Valid opcodes, but REDUCE on an int argument list raises TypeError while unpickling
        cache._disk.write("key", b"I1\nI2\nR.")

        assert cache.get("key") is None
        assert not cache.contains("key")
        cache.close()

    def test_foreign_directory_not_touched(self, tmp_path):
        """Test a cache pointed at someone else's directory fails open and deletes nothing, dood!"""
        documents = tmp_path / CACHE_NAME
        documents.mkdir()
        (documents / "thesis.txt").write_text("years of work")

        cache = DualCache(makeConfig(tmp_path, "disable"))
        cache.put("key", {"v": 1})
        assert cache.get("key") is None
        cache.invalidateDisk()

        assert (documents / "thesis.txt").read_text() == "years of work"
        assert cache.getStats()["diskErrors"] >= 3
        cache.close()

    def test_disk_write_failure_fails_open(self, dualCache):
        """Test a failed disk write keeps the RAM copy and counts the error, dood!"""
        with patch.object(DiskTier, "write", side_effect=TransientIOError("disk full")):
            dualCache.put("key", {"v": 1})

        assert dualCache.get("key") == {"v": 1}
        assert dualCache.getStats()["diskErrors"] == 1

    def test_disk_read_failure_is_miss(self, dualCache):
        """Test failed disk reads and lookups are misses, dood!"""
        dualCache.put("key", {"v": 1})
        dualCache.invalidateRAM()
        with (
            patch.object(DiskTier, "read", side_effect=TransientIOError("io")),
            patch.object(DiskTier, "contains", side_effect=TransientIOError("io")),
            patch.object(DiskTier, "usedBytes", side_effect=TransientIOError("io")),
        ):
            assert dualCache.get("key") is None
            assert not dualCache.contains("key")
            assert dualCache.diskUsedBytes() == 0

        assert dualCache.get("key") == {"v": 1}

    def test_wipe_failure_still_clears_ram(self, dualCache):
        """Test invalidate clears RAM even when the disk wipe fails, dood!"""
        dualCache.put("key", {"v": 1})
        with patch.object(DiskTier, "wipe", side_effect=TransientIOError("busy")):
            dualCache.invalidate()

        assert dualCache.ramUsedBytes() == 0
        assert dualCache.getStats()["diskErrors"] == 1

    def test_closed_cache_fails_open(self, tmp_path):
        """Test disk operations after close are misses, not exceptions, dood!"""
        cache = DualCache(makeConfig(tmp_path, "disable"))
        cache.put("key", {"v": 1})
        cache.close()

        cache.put("other", {"v": 2})
        assert cache.get("key") is None
        assert cache.getStats()["diskErrors"] >= 2


class TestConcurrency:
    """Test concurrent workloads, dood!"""

    @pytest.mark.parametrize("ramMode", ["reference", "serializer"])
    def test_random_workload(self, tmp_path, ramMode):
        """Test many threads mixing every operation neither deadlock nor raise, dood!"""
        cache = DualCache(makeConfig(tmp_path, ramMode, ramCapacity=200, lockStripes=None))
        errors = []

        def worker(seed: int):
            rng = random.Random(seed)
            try:
                for _ in range(100):
                    key = f"key:{rng.randrange(20)}"
                    roll = rng.random()
                    if roll < 0.4:
                        cache.put(key, {"seed": seed, "n": rng.randrange(1000)})
                    elif roll < 0.5:
                        cache.delete(key)
                    elif roll < 0.8:
                        value = cache.get(key)
                        assert value is None or set(value) == {"seed", "n"}
                    elif roll < 0.9:
                        cache.contains(key)
                    else:
                        cache.invalidate()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(seed,)) for seed in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=120)

        assert not any(thread.is_alive() for thread in threads)
        assert errors == []
        assert cache.getStats()["diskErrors"] == 0
        cache.close()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
