"""
Notification Dispatcher - routes content items to their subprocessor.

The registry is keyed by ``NotificationKind``.  Items of a kind nobody
registered for are skipped, not rejected: the Hub adds notification kinds
over time and an older client must keep working.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from exceptions import NotificationProcessingError
from schemas.notifications import NotificationContentItem, NotificationKind

from .protocol import SubProcessor

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Maps each notification kind to at most one ``SubProcessor``."""

    def __init__(self):
        self._registry: Dict[NotificationKind, SubProcessor] = {}

    def register(self, kind: NotificationKind, subprocessor: SubProcessor) -> None:
        """Register *subprocessor* for *kind*, replacing any earlier one.

        Raises
        ------
        NotificationProcessingError
            If *subprocessor* has no ``process`` method.
        """
        if not isinstance(subprocessor, SubProcessor):
            raise NotificationProcessingError(
                f"{type(subprocessor).__name__} does not implement process(item)"
            )
        if kind in self._registry:
            logger.debug("Replacing subprocessor for %s", kind.value)
        self._registry[kind] = subprocessor

    def is_registered(self, kind: NotificationKind) -> bool:
        return kind in self._registry

    @property
    def kinds(self) -> List[NotificationKind]:
        return list(self._registry)

    def dispatch(self, item: NotificationContentItem) -> bool:
        """Hand *item* to its subprocessor.

        Returns ``False`` when the item's kind is not registered.
        """
        kind = getattr(item, "kind", None)
        subprocessor = self._registry.get(kind)
        if subprocessor is None:
            logger.debug("No subprocessor registered for %r; skipping item", kind)
            return False
        subprocessor.process(item)
        return True
