"""Base interface for snapshot exporters."""

from __future__ import annotations

import abc

from ..collector.base import Snapshot


class BaseExporter(abc.ABC):
    """Abstract base for exporters that receive collector snapshots."""

    @abc.abstractmethod
    def export(self, snapshot: Snapshot) -> None:
        """Publish one snapshot."""

    @abc.abstractmethod
    def shutdown(self) -> None:
        """Flush and release resources."""
