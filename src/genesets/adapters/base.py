"""Base interface for source-table adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod

from genesets.config import SourceSpec
from genesets.models import SourceTable


class SourceAdapter(ABC):
    """Adapter that loads one source into the normalized schema."""

    spec: SourceSpec

    @property
    def name(self) -> str:
        return self.spec.name

    @abstractmethod
    def read(self) -> SourceTable:
        """Return the source as a :class:`SourceTable`."""
