"""
Partial-file store

On-disk lifecycle of a receive:

    <output_dir>/<name>.partial          appended to while data arrives
    <output_dir>/<name> | <stem>_<n><ext>  after a complete, verified receive
    <output_dir>/<name>.partial.suspect  marker left when verification failed

The partial's length is always the number of payload bytes appended to it,
which is what makes it a valid resume point after an interrupted session.
"""

import shutil
import time
from pathlib import Path, PurePosixPath
from typing import Optional
import logging

import aiofiles
import aiofiles.os

from ..errors import IOFailure, ProtocolFailure
from ..utils import format_size

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = '.partial'
SUSPECT_SUFFIX = '.suspect'

# Final names may not end like a partial or marker path
RESERVED_SUFFIXES = (PARTIAL_SUFFIX, PARTIAL_SUFFIX + SUSPECT_SUFFIX)

_disk_usage = aiofiles.os.wrap(shutil.disk_usage)


class PartialFileStore:
    """Owns partial and final artifacts inside one output directory"""

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def destination_name(declared_name: str) -> str:
        """
        Reduce a sender-declared name to a bare file name

        The declared name is never trusted as a path, and names that would
        land on another transfer's partial or marker file are refused.
        """
        name = PurePosixPath(declared_name.replace('\\', '/')).name
        if name in ('', '.', '..'):
            raise ProtocolFailure(f"Invalid file name: {declared_name!r}")
        if name.lower().endswith(RESERVED_SUFFIXES):
            raise ProtocolFailure(f"Reserved file name: {declared_name!r}")
        return name

    def final_path(self, name: str) -> Path:
        return self.output_dir / name

    def partial_path(self, name: str) -> Path:
        return self.output_dir / (name + PARTIAL_SUFFIX)

    def suspect_marker(self, name: str) -> Path:
        return self.output_dir / (name + PARTIAL_SUFFIX + SUSPECT_SUFFIX)

    async def current_length(self, name: str) -> int:
        """Length of the partial artifact, 0 when there is none"""
        path = self.partial_path(name)
        try:
            if not await aiofiles.os.path.isfile(path):
                return 0
            return await aiofiles.os.path.getsize(path)
        except OSError as e:
            raise IOFailure(f"Cannot inspect {path}: {e}") from e

    async def is_suspect(self, name: str) -> bool:
        return await aiofiles.os.path.exists(self.suspect_marker(name))

    async def resume_offset_for(self, name: str) -> int:
        """
        Offset the receiver advertises before any data is exchanged

        A partial that previously failed verification is not resumed from.
        """
        if await self.is_suspect(name):
            logger.warning(f"⚠ Partial file for {name} failed verification earlier, starting over")
            return 0

        offset = await self.current_length(name)
        if offset > 0:
            logger.info(f"Found partial file, resuming from: {format_size(offset)}")
        return offset

    async def validate_offset(self, name: str, claimed_offset: int) -> bool:
        """
        Check the partial still has the advertised length

        On mismatch the stale partial is deleted so the fresh write starts clean.
        """
        actual = await self.current_length(name)
        if actual == claimed_offset:
            return True

        logger.warning(
            f"⚠ Partial file size mismatch for {name}: "
            f"expected {claimed_offset}, found {actual}"
        )
        await self.discard(name)
        return False

    async def open_for_append(self, name: str, offset: int,
                              expected_bytes: Optional[int] = None):
        """
        Open the partial for writing

        Appends when resuming (offset > 0), otherwise creates or truncates it.
        """
        path = self.partial_path(name)
        mode = 'ab' if offset > 0 else 'wb'

        if expected_bytes is not None:
            await self._ensure_capacity(expected_bytes)

        try:
            handle = await aiofiles.open(path, mode)
        except OSError as e:
            raise IOFailure(f"Cannot open {path}: {e}") from e

        if offset == 0:
            await self._clear_suspect(name)
        return handle

    async def discard(self, name: str):
        """Delete the partial artifact and any marker"""
        path = self.partial_path(name)
        try:
            if await aiofiles.os.path.exists(path):
                await aiofiles.os.remove(path)
                logger.info(f"Discarded partial file: {path}")
        except OSError as e:
            raise IOFailure(f"Cannot delete {path}: {e}") from e
        await self._clear_suspect(name)

    async def promote(self, name: str, declared_size: int, received_total: int) -> Path:
        """
        Rename a complete partial to a collision-free final name

        Returns the final path, or the partial path when the receive is
        incomplete (it stays in place as the next resume point).
        """
        partial = self.partial_path(name)
        if received_total != declared_size:
            logger.warning(f"⚠ Transfer incomplete. Partial file saved: {partial}")
            return partial

        final = await self.collision_free_path(name)
        try:
            await aiofiles.os.rename(partial, final)
        except OSError as e:
            raise IOFailure(f"Cannot rename {partial} to {final}: {e}") from e

        logger.info(f"✓ File saved: {final.resolve()}")
        return final

    async def collision_free_path(self, name: str) -> Path:
        """
        First free final name: name, then stem_1.ext, stem_2.ext, ...
        """
        candidate = self.final_path(name)
        pure = PurePosixPath(name)
        counter = 1
        while await aiofiles.os.path.exists(candidate):
            candidate = self.output_dir / f"{pure.stem}_{counter}{pure.suffix}"
            counter += 1
        return candidate

    async def mark_suspect(self, name: str, expected: str, actual: str):
        """Flag the partial as failed verification; it stays for inspection"""
        marker = self.suspect_marker(name)
        try:
            async with aiofiles.open(marker, 'w') as f:
                await f.write(
                    f"marked_at: {time.time()}\n"
                    f"expected: {expected}\n"
                    f"actual: {actual}\n"
                )
        except OSError as e:
            raise IOFailure(f"Cannot write {marker}: {e}") from e
        logger.warning(f"⚠ Partial file kept for inspection: {self.partial_path(name)}")

    async def _clear_suspect(self, name: str):
        marker = self.suspect_marker(name)
        try:
            if await aiofiles.os.path.exists(marker):
                await aiofiles.os.remove(marker)
        except OSError as e:
            raise IOFailure(f"Cannot delete {marker}: {e}") from e

    async def _ensure_capacity(self, needed: int):
        try:
            free = (await _disk_usage(self.output_dir)).free
        except OSError as e:
            raise IOFailure(f"Cannot query free space in {self.output_dir}: {e}") from e
        if needed > free:
            raise IOFailure(
                f"Not enough disk space: need {format_size(needed)}, "
                f"have {format_size(free)}"
            )
