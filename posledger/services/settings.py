from sqlalchemy.orm import Session

from posledger.db import Database
from posledger.models.core import RestaurantSettings

_EDITABLE = {
    "name", "gstin",
    "tax_enabled", "cgst_rate", "sgst_rate", "service_charge_enabled", "service_charge_rate",
    "round_off_enabled", "tax_included_in_price",
    "packing_enabled", "packing_default_charge", "packing_charges_by_category",
    "invoice_prefix", "invoice_start_number",
}


def get_or_create(s: Session, tenant_id: str) -> RestaurantSettings:
    rs = s.query(RestaurantSettings).filter(RestaurantSettings.tenant_id == tenant_id).first()
    if not rs:
        rs = RestaurantSettings(tenant_id=tenant_id, invoice_start_number=1, current_invoice_number=1)
        s.add(rs)
        s.flush()
    return rs


class TenantSettingsStore:
    def __init__(self, db: Database):
        self.db = db

    def get(self, tenant_id: str) -> RestaurantSettings:
        with self.db.session() as s:
            rs = get_or_create(s, tenant_id)
            s.commit()
            return rs

    def update(self, tenant_id: str, **changes) -> RestaurantSettings:
        unknown = set(changes) - _EDITABLE
        if unknown:
            raise ValueError(f"not editable: {', '.join(sorted(unknown))}")
        with self.db.session() as s:
            rs = get_or_create(s, tenant_id)
            for k, v in changes.items():
                setattr(rs, k, v)
            # moving the start number forward also moves the live counter
            if "invoice_start_number" in changes:
                rs.current_invoice_number = max(rs.current_invoice_number or 1, int(changes["invoice_start_number"]))
            s.commit()
            return rs
