# utils/notifier.py
"""
Change notifications for read paths.

Repositories call the notify_* helpers only after a write has committed.
Listeners (list views, report tabs, caches) connect to the signals and
re-fetch just what changed:

    entity_changed(entity, entity_id, action)   action in {'created','updated','deleted'}
    group_changed(entity, group_key)            e.g. 'month:2024-03', 'order_booker:<id>'
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from PySide6.QtCore import QObject, Signal

_log = logging.getLogger(__name__)


def month_group(iso_date: str) -> str:
    return f"month:{str(iso_date)[:7]}"


def fk_group(name: str, value: object) -> str:
    return f"{name}:{value}"


class ChangeNotifier(QObject):
    entity_changed = Signal(str, str, str)
    group_changed = Signal(str, str)

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)

    def notify(
        self,
        entity: str,
        entity_id: object,
        action: str,
        groups: Iterable[str] = (),
    ) -> None:
        groups = list(groups)
        _log.debug("change: %s %s %s groups=%s", entity, entity_id, action, groups)
        self.entity_changed.emit(entity, str(entity_id), action)
        seen: set[str] = set()
        for key in groups:
            if key and key not in seen:
                seen.add(key)
                self.group_changed.emit(entity, key)


__all__ = ["ChangeNotifier", "month_group", "fk_group"]
