"""
Publishing Context

Responsibilities:
- Uploads compiled PDFs to a deterministic per-identity object path
- Retries transient storage failures with exponential backoff
- Removes stale PDFs in the background

Owns: Storage backends, object naming, cleanup scheduling
Never: Compiles LaTeX or calls AI providers
"""

from rescribe.contexts.publishing.identity import Identity
from rescribe.contexts.publishing.publisher import (
    ArtifactPublisher,
    CleanupFailure,
    CleanupQueue,
    PublishedArtifact,
    sanitize_file_name,
)
from rescribe.contexts.publishing.storage import (
    LocalStorage,
    StorageBackend,
    StorageEntry,
    SupabaseStorage,
)

__all__ = [
    "ArtifactPublisher",
    "CleanupFailure",
    "CleanupQueue",
    "Identity",
    "LocalStorage",
    "PublishedArtifact",
    "StorageBackend",
    "StorageEntry",
    "SupabaseStorage",
    "sanitize_file_name",
]
