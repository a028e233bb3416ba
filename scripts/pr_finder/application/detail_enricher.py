from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from pr_finder.domain.entities import DetailRecord, SummaryRecord
from pr_finder.domain.errors import MalformedRecordError, TransportError
from pr_finder.domain.interfaces import ITransport
from .error_classifier import classify
from .paginator import PAGE_SIZE
from .records import parse_detail

log = logging.getLogger(__name__)

MAX_CONCURRENT = PAGE_SIZE


class DetailEnricher:
    """
    Fetches the pull request detail record for every summary in a batch.

    All lookups in a batch run concurrently; the semaphore caps how many are
    in flight. The batch is all-or-nothing: the first failure cancels the
    remaining lookups and propagates.
    """

    def __init__(self, transport: ITransport, max_concurrent: int = MAX_CONCURRENT) -> None:
        self._transport = transport
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def _fetch_detail(self, record: SummaryRecord) -> DetailRecord:
        async with self._semaphore:
            try:
                data = await self._transport.get(record.detail_url)
            except TransportError as exc:
                log.warning("Detail lookup failed for #%d: %s", record.number, exc)
                raise classify(exc) from exc
        return parse_detail(data)

    async def enrich(
        self, records: Sequence[SummaryRecord]
    ) -> list[tuple[SummaryRecord, DetailRecord]]:
        missing = [r.number for r in records if not r.detail_url]
        if missing:
            raise MalformedRecordError(
                f"Summary records without a detail locator: {missing}"
            )

        tasks = [asyncio.create_task(self._fetch_detail(r)) for r in records]
        try:
            details = await asyncio.gather(*tasks)
        except BaseException:
            # Fail fast: abandon every lookup still in flight
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        log.debug("Enriched %d records", len(details))
        # gather preserves input order, so pairing is positional
        return list(zip(records, details))
