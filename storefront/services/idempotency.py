"""
Idempotency cache backed by the ``idempotency_records`` table.

Retried submissions carrying the same key get the original response back
instead of creating a second order. This is a best-effort de-duplication aid:
two requests racing with the same unseen key can both miss and both proceed.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.db.models import IdempotencyRecord

logger = get_logger(__name__)

MAX_KEY_LENGTH = 255


@dataclass
class CachedResponse:
    response: Any
    status_code: int


def scoped_key(namespace: str, owner_id: str, client_key: str) -> str:
    """Bind a client-supplied key to its caller so keys can't collide across accounts."""
    return f"{namespace}:{owner_id}:{client_key}"


class IdempotencyCache:
    """get/put of cached responses; expired records are invisible."""

    def __init__(self, db: Session, default_ttl_seconds: Optional[int] = None):
        self.db = db
        self.default_ttl_seconds = default_ttl_seconds or settings.IDEMPOTENCY_TTL_SECONDS

    def get(self, key: str) -> Optional[CachedResponse]:
        now = datetime.now(timezone.utc)
        record = self.db.query(IdempotencyRecord).filter(
            IdempotencyRecord.key == key,
            IdempotencyRecord.expires_at > now,
        ).first()
        if not record:
            return None
        return CachedResponse(response=record.response, status_code=record.status_code)

    def put(self, key: str, response: Any, status_code: int, ttl_seconds: Optional[int] = None) -> None:
        """Upsert: overwrites any previous value and resets expiration."""
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)

        try:
            self._upsert(key, response, status_code, expires_at)
            self.db.commit()
        except IntegrityError:
            # Another request inserted the same key between our read and write
            self.db.rollback()
            self._upsert(key, response, status_code, expires_at)
            self.db.commit()

    def _upsert(self, key: str, response: Any, status_code: int, expires_at: datetime) -> None:
        record = self.db.query(IdempotencyRecord).filter(IdempotencyRecord.key == key).first()
        if record:
            record.response = response
            record.status_code = status_code
            record.expires_at = expires_at
        else:
            self.db.add(IdempotencyRecord(
                key=key,
                response=response,
                status_code=status_code,
                expires_at=expires_at,
            ))
        self.db.flush()

    def purge_expired(self) -> int:
        """Physically delete expired records. Returns the number removed."""
        now = datetime.now(timezone.utc)
        deleted = self.db.query(IdempotencyRecord).filter(
            IdempotencyRecord.expires_at <= now
        ).delete(synchronize_session=False)
        self.db.commit()
        if deleted:
            logger.info(f"Purged {deleted} expired idempotency records")
        return deleted
