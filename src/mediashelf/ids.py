from __future__ import annotations

import logging
import random
import time
from typing import Callable, Collection, Iterable

from mediashelf.blobstore import BlobStore, join_path
from mediashelf.errors import AllocationExhaustedError

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 30
KEY_DIGITS = 6


def format_storage_key(prefix: str, number: int) -> str:
    return f"{prefix}{number:0{KEY_DIGITS}d}"

class FilenameAllocator:
    """Picks a storage key that no existing file or entry uses yet.

    A key is taken when ``{key}{ext}`` exists in the target directory for any of
    the given extensions, or when it is in ``taken`` (keys of the live collection).
    The store is checked on every draw, so keys already on disk but missing from the
    in-memory collection are still avoided.
    """

    def __init__(
        self,
        store: BlobStore,
        rng: random.Random | None = None,
        seed_source: Callable[[], int] = time.perf_counter_ns,
        attempts: int = MAX_ATTEMPTS,
    ):
        self.store = store
        self.rng = rng or random.Random()
        self.seed_source = seed_source
        self.attempts = attempts

    def is_taken(self, key: str, directory: str, extensions: Iterable[str], taken: Collection[str] = ()) -> bool:
        if key in taken:
            return True
        return any(self.store.exists(join_path(directory, f"{key}{ext}")) for ext in extensions)

    def allocate(
        self,
        directory: str,
        prefix: str,
        extensions: Iterable[str],
        taken: Collection[str] = (),
    ) -> str:
        extensions = sorted(set(extensions))
        for attempt in range(self.attempts):
            key = format_storage_key(prefix, self.rng.randint(1, 10**KEY_DIGITS - 1))
            if not self.is_taken(key, directory, extensions, taken):
                return key
            logger.debug("storage key collision on %s (attempt %d), reseeding", key, attempt + 1)
            self.rng.seed(self.seed_source())
        raise AllocationExhaustedError(
            "Couldn't find a unique filename.",
            f"directory={directory} prefix={prefix!r} attempts={self.attempts}",
        )
