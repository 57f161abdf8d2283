"""Utility exports for filesystem, hashing, and concurrency helpers."""

from defect_radar.utils.concurrency import (
    BoundedSemaphore,
    WorkerPool,
    default_concurrency,
    run_with_timeout,
)
from defect_radar.utils.fs import (
    file_extension,
    is_within,
    iter_project_files,
    matches_ignore,
    relative_posix,
)
from defect_radar.utils.hashing import fingerprint, sha256_bytes, sha256_text

__all__ = [
    "BoundedSemaphore",
    "WorkerPool",
    "default_concurrency",
    "file_extension",
    "fingerprint",
    "is_within",
    "iter_project_files",
    "matches_ignore",
    "relative_posix",
    "run_with_timeout",
    "sha256_bytes",
    "sha256_text",
]
