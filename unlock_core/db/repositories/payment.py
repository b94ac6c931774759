from datetime import datetime
from typing import List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from unlock_core.core.status import PaymentStatus, merge_payment_status
from unlock_core.core.utils import utcnow
from unlock_core.db.models import PaymentRecord


class PaymentRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        return self.session.get(PaymentRecord, payment_id)

    def upsert_payment(
        self,
        payment_id: str,
        status: PaymentStatus,
        amount_halalas: int,
        mode: Optional[str] = None,
        scheme: Optional[str] = None,
        currency: Optional[str] = None,
        metadata_json: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> PaymentRecord:
        now = utcnow()
        record = self.get_payment(payment_id)

        if record is None:
            record = PaymentRecord(
                id=payment_id,
                status=status.value,
                mode=mode,
                scheme=scheme,
                amount_halalas=amount_halalas,
                currency=currency,
                metadata_json=metadata_json,
                created_at=created_at or now,
                updated_at=now,
            )
            self.session.add(record)
            self.session.flush()
            logger.info(f"Recorded payment {payment_id} with status {status.value}")
            return record

        merged = merge_payment_status(record.status, status)
        if merged.value != record.status:
            logger.info(f"Payment {payment_id}: {record.status} -> {merged.value}")
        elif merged != status:
            logger.warning(
                f"Ignoring provider status {status.value} for payment {payment_id}, "
                f"already {record.status}"
            )

        record.status = merged.value
        record.mode = mode or record.mode
        record.scheme = scheme or record.scheme
        record.amount_halalas = amount_halalas
        record.currency = currency or record.currency
        record.metadata_json = metadata_json or record.metadata_json
        record.updated_at = now
        self.session.flush()
        return record

    def list_payments(self, limit: int = 50, status: Optional[str] = None) -> List[PaymentRecord]:
        stmt = select(PaymentRecord)
        if status:
            stmt = stmt.where(PaymentRecord.status == status)
        stmt = stmt.order_by(PaymentRecord.created_at.desc()).limit(limit)
        return list(self.session.execute(stmt).scalars().all())


__all__ = ["PaymentRepository"]
