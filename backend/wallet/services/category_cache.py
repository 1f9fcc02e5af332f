from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from wallet.core.clock import Clock, SystemClock
from wallet.models.monthly_summary import MonthlySummary

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY_NAMES = [
    "groceries",
    "food",
    "dining",
    "transport",
    "fuel",
    "shopping",
    "utilities",
    "rent",
    "healthcare",
    "education",
    "entertainment",
    "travel",
    "bills",
    "gift",
    "other",
]

SummaryLoader = Callable[[str], Awaitable[list[MonthlySummary]]]


def _category_key(name: str) -> str:
    return name.strip().casefold()


@dataclass
class CategoryCacheEntry:
    user_id: str
    last_fetched: datetime
    categories: dict[str, str] = field(default_factory=dict)

    def add(self, names: Iterable[str]) -> None:
        for name in names:
            key = _category_key(name)
            if key and key not in self.categories:
                self.categories[key] = name

    def as_list(self) -> list[str]:
        return [self.categories[key] for key in sorted(self.categories)]


class CategoryCache:
    """Time-bounded cache of the categories one user has used.

    Holds a single entry; asking for another user's categories replaces it.
    """

    def __init__(
        self,
        loader: SummaryLoader,
        *,
        clock: Clock | None = None,
        ttl: timedelta = timedelta(minutes=5),
    ):
        self._loader = loader
        self._clock = clock or SystemClock()
        self._ttl = ttl
        self._entry: CategoryCacheEntry | None = None

    @property
    def entry(self) -> CategoryCacheEntry | None:
        return self._entry

    def _live_entry(self, user_id: str) -> CategoryCacheEntry | None:
        entry = self._entry
        if entry is None or entry.user_id != user_id:
            return None
        if self._clock.now() - entry.last_fetched >= self._ttl:
            return None
        return entry

    async def get_categories(self, user_id: str) -> list[str]:
        entry = self._live_entry(user_id)
        if entry is not None:
            return entry.as_list()

        try:
            summaries = await self._loader(user_id)
        except Exception:
            logger.warning("category cache load failed, using defaults", exc_info=True)
            return list(DEFAULT_CATEGORY_NAMES)

        entry = CategoryCacheEntry(user_id=user_id, last_fetched=self._clock.now())
        for summary in summaries:
            entry.add((summary.category_breakdown or {}).keys())
        self._entry = entry
        logger.info("category cache rebuilt: categories=%d", len(entry.categories))
        return entry.as_list()

    def add_category(self, user_id: str, category: str) -> None:
        entry = self._live_entry(user_id)
        if entry is None:
            return
        entry.add([category])

    def invalidate(self) -> None:
        self._entry = None
