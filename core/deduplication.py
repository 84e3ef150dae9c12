"""
Sleep bar deduplication.

Several fallback paths (duty estimate, rest-day blocks) can describe the same
sleep period. Per row, the first bar seen keeps its slot; a later overlapping
bar only takes over when it carries quality-factor detail the kept bars lack.
"""

import logging
from collections import defaultdict
from typing import Dict, List

from models.data_models import SleepBar

logger = logging.getLogger(__name__)


class BarDeduplicator:

    def deduplicate(self, bars: List[SleepBar]) -> List[SleepBar]:
        """Non-overlapping sleep bars per row, ordered by row then start hour"""
        by_row: Dict[int, List[SleepBar]] = defaultdict(list)
        for bar in bars:
            by_row[bar.row].append(bar)

        result = []
        for row in sorted(by_row):
            kept: List[SleepBar] = []
            for bar in sorted(by_row[row], key=lambda b: b.start_hour):
                clashes = [k for k in kept if k.overlaps(bar)]
                if not clashes:
                    kept.append(bar)
                elif bar.has_quality_detail and not any(k.has_quality_detail for k in clashes):
                    logger.debug(f"Row {row}: sleep bar {bar.start_hour:.2f}-{bar.end_hour:.2f} "
                                 f"replaces {len(clashes)} bar(s) without quality detail")
                    kept = [k for k in kept if all(k is not c for c in clashes)]
                    kept.append(bar)
                else:
                    logger.debug(f"Row {row}: dropped duplicate sleep bar {bar.start_hour:.2f}-{bar.end_hour:.2f}")
            result.extend(sorted(kept, key=lambda b: b.start_hour))
        return result
