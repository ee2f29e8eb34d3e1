from __future__ import annotations

import enum
import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class Source(enum.Enum):
    BUS = "bus"
    PLAYER = "player"
    PEER = "peer"


class NotificationTracker:
    """
    Remembers the last condition reported per source and only lets a log
    line through when that condition changes.
    """

    def __init__(self, log: logging.Logger = logger):
        self._log = log
        self._last: Dict[Source, Optional[str]] = {s: None for s in Source}

    def condition(self, source: Source) -> Optional[str]:
        return self._last[source]

    def notify(self, source: Source, condition: str, msg: str, *args, level: int = logging.INFO) -> bool:
        if self._last[source] == condition:
            return False
        self._last[source] = condition
        self._log.log(level, msg, *args)
        return True

    def set_quietly(self, source: Source, condition: str) -> None:
        self._last[source] = condition

    def reset(self, source: Source) -> None:
        self._last[source] = None
