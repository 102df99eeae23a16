"""
Outbox sync: push ledger rows with synced_at IS NULL to the cloud ingest
endpoint in batches, then stamp the ones the cloud accepted.

One engine per process. A boolean guard stops runs from overlapping; a tick
that lands while a run is in flight is dropped, not queued. There is no
backoff: the fixed interval is the retry schedule.
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

import httpx
from pydantic import BaseModel, Field

from posledger.exceptions import SyncError
from posledger.schemas.sales import SaleRecord, SyncResponse
from posledger.services.ledger import LedgerStore
from posledger.util.dates import utcnow

logger = logging.getLogger(__name__)

SYNC_INTERVAL_SEC = 5 * 60
SYNC_STARTUP_DELAY_SEC = 15  # after the aggregator sync has had its turn
SYNC_BATCH_SIZE = 50
SYNC_FETCH_LIMIT = 500


class SyncResult(BaseModel):
    synced: int = 0
    errors: list[str] = Field(default_factory=list)


class CloudSyncClient:
    """POST /api/sales/{tenant_id}/sync over httpx."""

    def __init__(self, base_url: str, token: str | None = None, timeout: float = 10,
                 transport: httpx.AsyncBaseTransport | None = None):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout,
                                         headers=headers, transport=transport)

    async def push(self, tenant_id: str, transactions: list[dict]) -> SyncResponse:
        r = await self._client.post(f"/api/sales/{tenant_id}/sync", json={"transactions": transactions})
        if r.status_code >= 400:
            raise SyncError(f"sync endpoint answered {r.status_code}: {r.text[:200]}")
        resp = SyncResponse.model_validate(r.json())
        if not resp.success:
            raise SyncError(f"sync endpoint rejected batch: {'; '.join(resp.errors) or 'no reason given'}")
        return resp

    async def aclose(self) -> None:
        await self._client.aclose()


def accepted_ids(batch: list[SaleRecord], resp: SyncResponse) -> list[str]:
    """
    Ids to stamp as synced. Explicit acceptedIds win; otherwise the endpoint
    processes in submission order and the first `synced` items are the accepted ones.
    """
    if resp.accepted_ids is not None:
        wanted = set(resp.accepted_ids)
        return [tx.id for tx in batch if tx.id in wanted]
    n = max(0, min(resp.synced, len(batch)))
    return [tx.id for tx in batch[:n]]


class SyncOutboxEngine:
    def __init__(
        self,
        ledger: LedgerStore,
        client: CloudSyncClient,
        tenant_id: Optional[str] | Callable[[], Optional[str]] = None,
        batch_size: int = SYNC_BATCH_SIZE,
        fetch_limit: int = SYNC_FETCH_LIMIT,
        interval: float = SYNC_INTERVAL_SEC,
        startup_delay: float = SYNC_STARTUP_DELAY_SEC,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.ledger = ledger
        self.client = client
        self._tenant = tenant_id if callable(tenant_id) else (lambda: tenant_id)
        self.batch_size = batch_size
        self.fetch_limit = fetch_limit
        self.interval = interval
        self.startup_delay = startup_delay

        self._syncing = False
        self._task: asyncio.Task | None = None
        self._stop: asyncio.Event | None = None
        # stopped loops still finishing a batch
        self._draining: list[asyncio.Task] = []
        self.last_run_at: datetime | None = None
        self.last_result: SyncResult | None = None
        self.last_error: str | None = None

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    @property
    def is_running(self) -> bool:
        """A loop is scheduled and has not been told to stop."""
        return (self._task is not None and not self._task.done()
                and self._stop is not None and not self._stop.is_set())

    async def run_once(self, tenant_id: str | None = None) -> SyncResult:
        tenant_id = tenant_id or self._tenant()
        if not tenant_id:
            logger.info("No tenant configured, skipping sync")
            return SyncResult()
        if self._syncing:
            logger.info("Sync already in progress, skipping")
            return SyncResult()

        self._syncing = True
        result = SyncResult()
        try:
            pending = await asyncio.to_thread(self.ledger.unsynced, tenant_id, self.fetch_limit)
            if not pending:
                logger.debug("No transactions to sync")
                return result
            logger.info("Found %d transactions to sync", len(pending))

            for start in range(0, len(pending), self.batch_size):
                batch = pending[start:start + self.batch_size]
                try:
                    resp = await self.client.push(tenant_id, [tx.to_payload() for tx in batch])
                except (httpx.HTTPError, SyncError, ValueError) as e:
                    # rows stay pending; the next tick retries them
                    logger.error("Batch sync failed (%d transactions): %s", len(batch), e)
                    result.errors.append(f"batch of {len(batch)} failed: {e}")
                    continue

                result.errors.extend(resp.errors)
                ids = accepted_ids(batch, resp)
                if ids:
                    await asyncio.to_thread(self.ledger.mark_synced, ids)
                result.synced += len(ids)

            logger.info("Sync complete: %d synced, %d errors", result.synced, len(result.errors))
        except Exception as e:
            logger.exception("Sync failed")
            result.errors.insert(0, str(e))
        finally:
            self._syncing = False
            self.last_run_at = utcnow()
            self.last_result = result
            self.last_error = result.errors[0] if result.errors else None
        return result

    async def trigger_now(self, tenant_id: str | None = None) -> SyncResult:
        return await self.run_once(tenant_id)

    def start(self) -> None:
        """Schedule the periodic loop on the running event loop."""
        if self.is_running:
            logger.info("Sync service already running")
            return
        if self._task is not None and not self._task.done():
            self._draining.append(self._task)
        stop = asyncio.Event()
        self._stop = stop
        self._task = asyncio.get_running_loop().create_task(self._loop(stop), name="sales-outbox-sync")
        logger.info("Sync service started, interval: %ss", self.interval)

    def stop(self) -> None:
        """No further ticks. A batch already in flight is allowed to finish."""
        if self._stop is not None:
            self._stop.set()
            logger.info("Sync service stopped")

    async def wait_stopped(self) -> None:
        tasks = [t for t in (*self._draining, self._task) if t is not None]
        self._draining = []
        self._task = None
        if tasks:
            await asyncio.gather(*tasks)

    def status(self) -> dict:
        return {
            "is_running": self.is_running,
            "is_syncing": self._syncing,
            "last_run_at": self.last_run_at,
            "last_result": self.last_result.model_dump() if self.last_result else None,
            "last_error": self.last_error,
        }

    async def _loop(self, stop: asyncio.Event) -> None:
        if await self._wait(stop, self.startup_delay):
            return
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Periodic sync failed")
            if await self._wait(stop, self.interval):
                return

    @staticmethod
    async def _wait(stop: asyncio.Event, seconds: float) -> bool:
        """Sleep up to `seconds`; True when this loop's stop event was set meanwhile."""
        try:
            await asyncio.wait_for(stop.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False
