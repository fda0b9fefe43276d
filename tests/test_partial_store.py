"""Test the partial-file store"""

from types import SimpleNamespace

import pytest

from rtransfer.errors import IOFailure, ProtocolFailure
from rtransfer.storage.partial import PartialFileStore


@pytest.fixture
def store(output_dir):
    return PartialFileStore(output_dir)


class TestDestinationNames:
    """Declared names are reduced to bare file names"""

    @pytest.mark.parametrize("declared, expected", [
        ("report.txt", "report.txt"),
        ("/etc/passwd", "passwd"),
        ("../../secret.key", "secret.key"),
        ("C:\\Users\\me\\photo.jpg", "photo.jpg"),
    ])
    def test_reduced_to_base_name(self, declared, expected):
        assert PartialFileStore.destination_name(declared) == expected

    @pytest.mark.parametrize("declared", ["", ".", "..", "dir/.."])
    def test_rejects_names_without_a_file(self, declared):
        with pytest.raises(ProtocolFailure):
            PartialFileStore.destination_name(declared)

    @pytest.mark.parametrize("declared", [
        "notes.partial",
        "log.partial.suspect",
        "uploads/NOTES.PARTIAL",
    ])
    def test_rejects_partial_and_marker_names(self, declared):
        with pytest.raises(ProtocolFailure, match="Reserved"):
            PartialFileStore.destination_name(declared)

    @pytest.mark.parametrize("declared", ["partial.txt", "photo.suspect", "a.partial.bak"])
    def test_similar_names_are_allowed(self, declared):
        assert PartialFileStore.destination_name(declared) == declared


class TestResumeOffset:
    """Test resume offset lookup"""

    @pytest.mark.asyncio
    async def test_fresh_name(self, store):
        assert await store.resume_offset_for("new.bin") == 0

    @pytest.mark.asyncio
    async def test_existing_partial(self, store):
        store.partial_path("big.iso").write_bytes(b"x" * 100)

        assert await store.resume_offset_for("big.iso") == 100

    @pytest.mark.asyncio
    async def test_suspect_partial_is_not_resumed(self, store):
        store.partial_path("big.iso").write_bytes(b"x" * 100)
        await store.mark_suspect("big.iso", "aa", "bb")

        assert await store.resume_offset_for("big.iso") == 0
        assert store.partial_path("big.iso").exists()

    @pytest.mark.asyncio
    async def test_validate_matching_offset(self, store):
        store.partial_path("a.bin").write_bytes(b"x" * 10)

        assert await store.validate_offset("a.bin", 10)
        assert store.partial_path("a.bin").exists()

    @pytest.mark.asyncio
    async def test_validate_mismatch_deletes_partial(self, store):
        store.partial_path("a.bin").write_bytes(b"x" * 12)

        assert not await store.validate_offset("a.bin", 10)
        assert not store.partial_path("a.bin").exists()


class TestWrites:
    """Test append and truncate modes"""

    @pytest.mark.asyncio
    async def test_append_when_resuming(self, store):
        store.partial_path("a.bin").write_bytes(b"abc")

        handle = await store.open_for_append("a.bin", 3)
        await handle.write(b"def")
        await handle.close()

        assert store.partial_path("a.bin").read_bytes() == b"abcdef"

    @pytest.mark.asyncio
    async def test_truncate_when_fresh(self, store):
        store.partial_path("a.bin").write_bytes(b"stale")
        await store.mark_suspect("a.bin", "aa", "bb")

        handle = await store.open_for_append("a.bin", 0)
        await handle.write(b"new")
        await handle.close()

        assert store.partial_path("a.bin").read_bytes() == b"new"
        assert not await store.is_suspect("a.bin")

    @pytest.mark.asyncio
    async def test_not_enough_space(self, store):
        with pytest.raises(IOFailure):
            await store.open_for_append("huge.bin", 0, expected_bytes=2 ** 62)

    @pytest.mark.asyncio
    async def test_free_space_is_queried_off_the_event_loop(self, store, monkeypatch):
        queried = []

        async def fake_disk_usage(path):
            queried.append(path)
            return SimpleNamespace(total=100, used=90, free=10)

        monkeypatch.setattr("rtransfer.storage.partial._disk_usage", fake_disk_usage)

        with pytest.raises(IOFailure, match="Not enough disk space"):
            await store.open_for_append("a.bin", 0, expected_bytes=11)
        assert queried == [store.output_dir]
        assert not store.partial_path("a.bin").exists()


class TestPromotion:
    """Test promotion to final names"""

    @pytest.mark.asyncio
    async def test_complete_partial_is_renamed(self, store):
        store.partial_path("a.bin").write_bytes(b"x" * 5)

        final = await store.promote("a.bin", 5, 5)

        assert final == store.final_path("a.bin")
        assert final.read_bytes() == b"x" * 5
        assert not store.partial_path("a.bin").exists()

    @pytest.mark.asyncio
    async def test_incomplete_partial_stays(self, store):
        store.partial_path("a.bin").write_bytes(b"x" * 3)

        path = await store.promote("a.bin", 5, 3)

        assert path == store.partial_path("a.bin")
        assert path.exists()
        assert not store.final_path("a.bin").exists()

    @pytest.mark.asyncio
    async def test_counter_inserted_before_extension(self, store, output_dir):
        (output_dir / "report.txt").write_bytes(b"first")
        (output_dir / "report_1.txt").write_bytes(b"second")
        store.partial_path("report.txt").write_bytes(b"third")

        final = await store.promote("report.txt", 5, 5)

        assert final == output_dir / "report_2.txt"
        assert (output_dir / "report.txt").read_bytes() == b"first"

    @pytest.mark.asyncio
    async def test_counter_without_extension(self, store, output_dir):
        (output_dir / "README").write_bytes(b"old")

        assert await store.collision_free_path("README") == output_dir / "README_1"
