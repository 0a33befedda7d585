"""Base class for reconciled-table storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod

import pandas as pd


class TableStorage(ABC):
    """Persists the final reconciled table."""

    @abstractmethod
    def persist(self, frame: pd.DataFrame) -> None:
        """Persist the table in backend-specific format."""
