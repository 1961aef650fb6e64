"""Result catalog sources: local directories and Hugging Face dataset repos."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from huggingface_hub import snapshot_download
from huggingface_hub.errors import GatedRepoError, RepositoryNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_ALLOW_PATTERNS = ("*.json", "**/*.json", "**/*.log")


def _access_hint(exc: RepositoryNotFoundError, repo_id: str) -> str:
    """Explain how to fix a rejected catalog download."""
    url = f"https://huggingface.co/datasets/{repo_id}"
    if isinstance(exc, GatedRepoError):
        return (
            f"Result catalog '{repo_id}' is gated and your token has not been granted "
            f"access. Request access at {url} and retry."
        )
    status = exc.response.status_code if exc.response is not None else "?"
    if os.environ.get("HF_TOKEN"):
        return (
            f"Could not fetch result catalog '{repo_id}' (HTTP {status}). HF_TOKEN is "
            f"set but was rejected; check that it is valid and can read {url}."
        )
    return (
        f"Could not fetch result catalog '{repo_id}' (HTTP {status}). The repository "
        f"does not exist or is private. Set HF_TOKEN to an access token from "
        f"https://huggingface.co/settings/tokens and retry."
    )


class ResultsSource(Protocol):
    """Common interface for result catalog sources."""

    def local_root(self) -> Path:
        """Materialize the source locally and return the catalog path."""
        ...


@dataclass(frozen=True)
class LocalResultsSource:
    """A catalog directory on the local filesystem."""

    root: Path

    def local_root(self) -> Path:
        p = Path(self.root)
        if not p.is_dir():
            raise FileNotFoundError(f"Results catalog does not exist: {p}")
        return p


@dataclass(frozen=True)
class HFResultsSource:
    """A catalog stored in a Hugging Face dataset repository.

    Downloads a snapshot of the result documents and logs to the local
    cache and returns its root. `subdir` selects a catalog inside the repo.
    Respects the ``HF_HOME`` environment variable for cache location.
    """

    repo_id: str
    revision: str | None = None
    subdir: str | None = None
    cache_dir: Path | None = None
    allow_patterns: tuple[str, ...] = field(default=DEFAULT_ALLOW_PATTERNS)

    def local_root(self) -> Path:
        patterns = list(self.allow_patterns)
        if self.subdir:
            patterns = [f"{self.subdir.rstrip('/')}/{p}" for p in patterns]
        try:
            local = snapshot_download(
                repo_id=self.repo_id,
                repo_type="dataset",
                revision=self.revision,
                cache_dir=(str(self.cache_dir) if self.cache_dir is not None else None),
                allow_patterns=patterns,
            )
        except RepositoryNotFoundError as e:
            raise type(e)(_access_hint(e, self.repo_id), response=e.response) from None
        root = Path(local)
        return root / self.subdir if self.subdir else root


SourceLike = ResultsSource | str | Path


def resolve_source_root(source: SourceLike) -> Path:
    """Resolve a source-like input into a local catalog path."""
    if isinstance(source, (str, Path)):
        root = LocalResultsSource(Path(source)).local_root()
    else:
        root = source.local_root()
    logger.debug("Resolved source root: %s", root)
    return root
