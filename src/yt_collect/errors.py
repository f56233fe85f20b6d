"""Error kinds that end a collector run."""
from __future__ import annotations
from typing import Optional


class CollectorError(Exception):
    """Base for failures that abort a run. `stage` names where it happened."""

    kind = "CollectorError"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        return f"{self.kind}: {self.args[0]}"


class ExternalFetchFailed(CollectorError):
    """Network, HTTP or parse failure on an upstream API call."""

    kind = "ExternalFetchFailed"


class NoKeywordsAvailable(CollectorError):
    kind = "NoKeywordsAvailable"


class PersistenceWriteFailed(CollectorError):
    """The store rejected a write."""

    kind = "PersistenceWriteFailed"
