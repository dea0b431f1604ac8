"""
Chunk Store

Append-only, arrival-ordered collector for the audio fragments a browser
recorder streams back during a session.

Fragments stay in memory until ``memory_limit_bytes`` is exceeded; later
fragments are written to spill files in a per-session spool directory so long
meetings do not grow the process without bound.
"""

from __future__ import annotations

import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Iterable, List, Optional

from meeting_recorder.core.logging import get_logger
from meeting_recorder.domain.models import Fragment

logger = get_logger("chunk_store")


class ChunkStore:
    """Arrival-ordered fragment buffer with disk spill."""

    def __init__(
        self,
        spool_root: Path,
        memory_limit_bytes: int = 32 * 1024 * 1024,
        suffix: str = ".webm",
    ):
        """
        Initialize the store.

        Args:
            spool_root: Directory under which the spool directory is created
            memory_limit_bytes: In-memory bytes kept before spilling to disk
            suffix: Extension used for spill files
        """
        self.spool_root = Path(spool_root)
        self.memory_limit_bytes = memory_limit_bytes
        self.suffix = suffix

        self._lock = Lock()
        self._fragments: List[Fragment] = []
        self._next_sequence = 0
        self._memory_bytes = 0
        self._total_bytes = 0
        self._spool_dir: Optional[Path] = None
        self._discarded = False

    @property
    def count(self) -> int:
        """Fragments currently held (not yet drained)."""
        with self._lock:
            return len(self._fragments)

    @property
    def total_bytes(self) -> int:
        """Bytes appended over the store's lifetime."""
        with self._lock:
            return self._total_bytes

    @property
    def spool_dir(self) -> Optional[Path]:
        return self._spool_dir

    def append(self, data: bytes, received_at: Optional[datetime] = None) -> Fragment:
        """
        Append one fragment in call order.

        Args:
            data: Raw fragment bytes (opaque)
            received_at: Arrival time, defaults to now

        Returns:
            The stored fragment
        """
        received_at = received_at or datetime.now()
        with self._lock:
            if self._discarded:
                raise RuntimeError("ChunkStore has been discarded")

            sequence = self._next_sequence
            self._next_sequence += 1
            size = len(data)

            if self._memory_bytes + size > self.memory_limit_bytes:
                path = self._spill(sequence, received_at, data)
                fragment = Fragment(sequence=sequence, received_at=received_at, size=size, path=path)
            else:
                fragment = Fragment(
                    sequence=sequence, received_at=received_at, size=size, data=bytes(data)
                )
                self._memory_bytes += size

            self._fragments.append(fragment)
            self._total_bytes += size

        logger.debug(
            f"Fragment #{fragment.sequence} stored: {size} bytes"
            f"{' (spilled)' if fragment.spilled else ''}"
        )
        return fragment

    def drain_all(self) -> List[Fragment]:
        """Return every held fragment in arrival order and empty the store."""
        with self._lock:
            fragments = self._fragments
            self._fragments = []
            self._memory_bytes = 0
        return fragments

    def discard(self) -> None:
        """Drop all fragments and delete the spool directory."""
        with self._lock:
            self._fragments = []
            self._memory_bytes = 0
            self._discarded = True
            spool_dir, self._spool_dir = self._spool_dir, None

        if spool_dir is not None:
            shutil.rmtree(spool_dir, ignore_errors=True)
            logger.debug(f"Spool directory removed: {spool_dir}")

    def _spill(self, sequence: int, received_at: datetime, data: bytes) -> Path:
        if self._spool_dir is None:
            self.spool_root.mkdir(parents=True, exist_ok=True)
            self._spool_dir = Path(tempfile.mkdtemp(prefix="chunks-", dir=self.spool_root))
            logger.info(f"Memory limit reached, spilling fragments to {self._spool_dir}")

        received_ms = int(received_at.timestamp() * 1000)
        path = self._spool_dir / f"{sequence:08d}_{received_ms}{self.suffix}"
        path.write_bytes(data)
        return path


def assemble(fragments: Iterable[Fragment], destination: Path) -> int:
    """
    Concatenate fragments into ``destination`` in the order given.

    Returns:
        Number of bytes written
    """
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    written = 0
    with open(destination, "wb") as out:
        for fragment in fragments:
            if fragment.path is not None:
                with open(fragment.path, "rb") as src:
                    shutil.copyfileobj(src, out)
            else:
                out.write(fragment.read())
            written += fragment.size

    logger.info(f"Assembled {written} bytes into {destination}")
    return written
