"""
proofgate/core/locking.py

Cross-process exclusive locks on the append-only JSONL stores.

The used-proof store and the audit log may be shared by several gateway
processes (a service and the CLI, or several CLI runs). Every append
happens under an exclusive flock on the data file itself, after the
writer has caught up with lines other processes appended.

POSIX only.
"""

import fcntl
from contextlib import contextmanager
from typing import IO, Iterator


@contextmanager
def exclusive_lock(f: IO) -> Iterator[IO]:
    """Hold LOCK_EX on an open file for the duration of the block."""
    fcntl.flock(f.fileno(), fcntl.LOCK_EX)
    try:
        yield f
    finally:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
