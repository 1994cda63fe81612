"""
Tests for the idempotency cache.
"""
from datetime import datetime, timedelta, timezone

from storefront.db.models import IdempotencyRecord
from storefront.services.idempotency import IdempotencyCache, scoped_key


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class TestIdempotencyCache:

    def test_miss_returns_none(self, db_session):
        assert IdempotencyCache(db_session).get("order:u1:never-seen") is None

    def test_put_then_get(self, db_session):
        cache = IdempotencyCache(db_session)
        cache.put("order:u1:k1", {"id": "o-1", "status": "pending"}, 201)

        cached = cache.get("order:u1:k1")

        assert cached is not None
        assert cached.status_code == 201
        assert cached.response == {"id": "o-1", "status": "pending"}

    def test_put_overwrites_and_resets_ttl(self, db_session):
        cache = IdempotencyCache(db_session, default_ttl_seconds=60)
        cache.put("order:u1:k1", {"id": "first"}, 201)
        record = db_session.query(IdempotencyRecord).filter_by(key="order:u1:k1").one()
        record.expires_at = datetime.now(timezone.utc) + timedelta(seconds=5)
        db_session.commit()

        cache.put("order:u1:k1", {"id": "second"}, 201, ttl_seconds=600)

        assert cache.get("order:u1:k1").response == {"id": "second"}
        assert db_session.query(IdempotencyRecord).count() == 1
        record = db_session.query(IdempotencyRecord).filter_by(key="order:u1:k1").one()
        db_session.refresh(record)
        assert _aware(record.expires_at) > datetime.now(timezone.utc) + timedelta(seconds=500)

    def test_expired_record_is_invisible(self, db_session):
        cache = IdempotencyCache(db_session)
        cache.put("order:u1:old", {"id": "o-1"}, 201)
        record = db_session.query(IdempotencyRecord).filter_by(key="order:u1:old").one()
        record.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
        db_session.commit()

        assert cache.get("order:u1:old") is None

    def test_purge_expired_removes_only_expired(self, db_session):
        cache = IdempotencyCache(db_session)
        cache.put("order:u1:old", {"id": "o-1"}, 201)
        cache.put("order:u1:live", {"id": "o-2"}, 201)
        record = db_session.query(IdempotencyRecord).filter_by(key="order:u1:old").one()
        record.expires_at = datetime.now(timezone.utc) - timedelta(minutes=5)
        db_session.commit()

        removed = cache.purge_expired()

        assert removed == 1
        keys = [r.key for r in db_session.query(IdempotencyRecord).all()]
        assert keys == ["order:u1:live"]


class TestScopedKey:

    def test_keys_are_bound_to_their_owner(self):
        assert scoped_key("order", "u1", "abc") == "order:u1:abc"
        assert scoped_key("order", "u1", "abc") != scoped_key("order", "u2", "abc")
