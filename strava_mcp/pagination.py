"""
Bulk activity fetching.
Pages are requested one after another until Strava runs out of activities or a
call/result ceiling is reached.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .config import settings
from .schemas import SummaryActivity

logger = logging.getLogger(__name__)


@dataclass
class PaginationResult:
    items: List[SummaryActivity] = field(default_factory=list)
    total_fetched: int = 0
    total_matching: int = 0
    api_calls: int = 0
    hit_call_ceiling: bool = False

    @property
    def truncated(self) -> bool:
        return len(self.items) < self.total_matching


async def fetch_all(
    client,
    per_page: Optional[int] = None,
    ceiling_calls: Optional[int] = None,
    max_results: Optional[int] = None,
    before: Optional[int] = None,
    after: Optional[int] = None,
    predicate: Optional[Callable[[SummaryActivity], bool]] = None,
    delay: Optional[float] = None,
) -> PaginationResult:
    """
    Fetch activities page by page.

    Stops on an empty page, a short page, after `ceiling_calls` requests, or once
    `max_results` matching activities have been collected. Only the first page gets
    the refresh-and-retry on 401; a failure on any later page propagates and the
    partial results are dropped.
    """
    per_page = settings.ACTIVITIES_PER_PAGE if per_page is None else per_page
    ceiling_calls = settings.MAX_API_CALLS if ceiling_calls is None else ceiling_calls
    max_results = settings.MAX_ACTIVITIES if max_results is None else max_results
    if per_page < 1 or ceiling_calls < 1 or max_results < 1:
        raise ValueError("per_page, ceiling_calls and max_results must be positive")
    delay = settings.PAGE_DELAY_SECONDS if delay is None else delay

    result = PaginationResult()
    matching: List[SummaryActivity] = []
    page = 1

    while True:
        activities = await client.list_activities_page(
            page=page,
            per_page=per_page,
            before=before,
            after=after,
            retry_auth=(page == 1),
        )
        result.api_calls += 1

        if not activities:
            break

        result.total_fetched += len(activities)
        if predicate is not None:
            matching.extend(a for a in activities if predicate(a))
        else:
            matching.extend(activities)
        logger.info(f"After page {page}: {result.total_fetched} fetched, {len(matching)} match filters")

        if len(activities) < per_page:
            break
        if len(matching) >= max_results:
            break
        if result.api_calls >= ceiling_calls:
            result.hit_call_ceiling = True
            logger.warning(f"Reached API call ceiling ({ceiling_calls}) while fetching activities")
            break

        page += 1
        await asyncio.sleep(delay)

    result.total_matching = len(matching)
    result.items = matching[:max_results]
    return result
