from __future__ import annotations

from datetime import datetime
from typing import Callable, Sequence

from .models import Prayer


class CurrentNextTracker:
    @staticmethod
    def locate(
        now: datetime,
        today: Sequence[Prayer],
        tomorrow_first: Callable[[], Prayer | None],
    ) -> tuple[Prayer | None, Prayer | None]:
        """Return (current, next) for ``now``.

        Before the first prayer ``current`` is the last entry of ``today``.
        After the last prayer ``next`` comes from ``tomorrow_first``.
        """
        if not today:
            return None, None
        for index, prayer in enumerate(today):
            if prayer.time > now:
                current = today[index - 1] if index > 0 else today[-1]
                return current, prayer
        return today[-1], tomorrow_first()
