# conftest.py
import random
import string
import uuid
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from posledger.config import Settings
from posledger.db import Database
from posledger.main import create_cloud_app, create_device_app
from posledger.schemas.sales import SaleItem, SaleRecord
from posledger.services.aggregator import AggregatorChannel
from posledger.services.checkout import Checkout
from posledger.services.invoice import InvoiceAllocator
from posledger.services.ledger import LedgerStore
from posledger.services.reporting import ReconciliationReporter
from posledger.services.settings import TenantSettingsStore
from posledger.util.security import create_token

TENANT = "tenant-1"
SECRET = "test-secret"
TZ = "Asia/Kolkata"


def jprint(step, r):
    """Assert a 2xx response and hand back its JSON."""
    assert 200 <= r.status_code < 300, f"{step} -> {r.status_code}: {r.text}"
    return r.json() if r.headers.get("content-type", "").startswith("application/json") else r.text


def make_sale(invoice="INV-2501-000001", grand_total=105.0, subtotal=100.0, cgst=2.5, sgst=2.5,
              round_off=0.0, completed_at=None, tenant_id=TENANT, **kw) -> SaleRecord:
    completed_at = completed_at or datetime(2025, 1, 15, 6, 30, tzinfo=timezone.utc)
    fields = dict(
        id=str(uuid.uuid4()),
        tenant_id=tenant_id,
        invoice_number=invoice,
        order_type="dine-in",
        table_number=4,
        subtotal=subtotal,
        cgst=cgst,
        sgst=sgst,
        round_off=round_off,
        grand_total=grand_total,
        payment_method="cash",
        items=[SaleItem(name="Paneer Tikka", quantity=2, price=50, subtotal=100)],
        created_at=completed_at,
        completed_at=completed_at,
    )
    fields.update(kw)
    return SaleRecord(**fields)


@pytest.fixture
def tenant_id():
    return TENANT


@pytest.fixture
def rng_suffix():
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=6))


@pytest.fixture
def db():
    database = Database("sqlite://")
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def ledger(db):
    return LedgerStore(db, TZ)


@pytest.fixture
def tenant_settings(db):
    return TenantSettingsStore(db)


@pytest.fixture
def allocator(db):
    clock = lambda: datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
    return InvoiceAllocator(db, TZ, clock=clock)


@pytest.fixture
def checkout(ledger, allocator, tenant_settings):
    return Checkout(ledger, allocator, tenant_settings)


@pytest.fixture
def reporter(db, ledger):
    return ReconciliationReporter(ledger, AggregatorChannel(db), TZ)


@pytest.fixture
def cfg():
    return Settings(
        APP_SECRET=SECRET,
        DB_URL="sqlite://",
        CLOUD_DB_URL="sqlite://",
        TENANT_ID=TENANT,
        TZ=TZ,
        SYNC_ENABLED=False,
        CLOUD_BASE_URL="http://cloud.test",
        CLOUD_API_TOKEN=create_token(TENANT, SECRET),
    )


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_token(TENANT, SECRET)}"}


@pytest.fixture
def cloud_db():
    database = Database("sqlite://")
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def cloud_app(cfg, cloud_db):
    return create_cloud_app(cfg, db=cloud_db)


@pytest.fixture
def cloud_client(cloud_app):
    with TestClient(cloud_app) as c:
        yield c


@pytest.fixture
def device_client(cfg, db):
    app = create_device_app(cfg, db=db)
    with TestClient(app) as c:
        yield c
