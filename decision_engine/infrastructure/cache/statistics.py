from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class CacheStatistics:
    total_entries: int
    total_hits: int
    total_misses: int
    last_cleared_at: datetime

    @property
    def hit_rate(self) -> float:
        lookups = self.total_hits + self.total_misses
        return self.total_hits / lookups * 100 if lookups > 0 else 0.0
