"""Everything a POS device runs, built once from Settings."""
import httpx

from posledger.config import Settings
from posledger.db import Database
from posledger.services.aggregator import AggregatorChannel
from posledger.services.checkout import Checkout
from posledger.services.invoice import InvoiceAllocator
from posledger.services.ledger import LedgerStore
from posledger.services.reporting import ReconciliationReporter
from posledger.services.settings import TenantSettingsStore
from posledger.services.sync import CloudSyncClient, SyncOutboxEngine
from posledger.util.dates import days_ago


class DeviceRuntime:
    def __init__(self, cfg: Settings, db: Database | None = None,
                 transport: httpx.AsyncBaseTransport | None = None):
        self.cfg = cfg
        self.tenant_id = cfg.TENANT_ID
        self.db = db or Database(cfg.DB_URL)
        self.ledger = LedgerStore(self.db, cfg.TZ)
        self.tenant_settings = TenantSettingsStore(self.db)
        self.allocator = InvoiceAllocator(self.db, cfg.TZ)
        self.checkout = Checkout(self.ledger, self.allocator, self.tenant_settings)
        self.aggregators = AggregatorChannel(self.db)
        self.reporter = ReconciliationReporter(self.ledger, self.aggregators, cfg.TZ)
        self.client = CloudSyncClient(cfg.CLOUD_BASE_URL, cfg.CLOUD_API_TOKEN,
                                      timeout=cfg.SYNC_HTTP_TIMEOUT_SEC, transport=transport)
        self.engine = SyncOutboxEngine(
            self.ledger,
            self.client,
            tenant_id=lambda: self.tenant_id,
            batch_size=cfg.SYNC_BATCH_SIZE,
            fetch_limit=cfg.SYNC_FETCH_LIMIT,
            interval=cfg.SYNC_INTERVAL_SEC,
            startup_delay=cfg.SYNC_STARTUP_DELAY_SEC,
        )

    def purge_retention(self) -> int:
        """Drop synced sales older than RETENTION_DAYS. Unsynced rows are never purged."""
        if self.cfg.RETENTION_DAYS <= 0:
            return 0
        return self.ledger.purge_synced(days_ago(self.cfg.RETENTION_DAYS))

    async def aclose(self) -> None:
        self.engine.stop()
        await self.engine.wait_stopped()
        await self.client.aclose()
        self.db.dispose()
