"""
SQLite Database Adapter.

Implements the repository ports in src.core.ports.db using SQLite.
Designed to be Postgres-compatible (uses standard SQL patterns).

Timestamps are stored as ISO-8601 UTC strings with microsecond precision,
so lexical comparison in SQL matches chronological order.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from src.core.entities import (
    ContentItem,
    ContentOwner,
    DeliveryRecord,
    DeliveryStatus,
    Subscriber,
    SubscriberStatus,
)

# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Convert SQLite row to dictionary."""
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def parse_dt(s: str | None) -> datetime | None:
    """Parse ISO datetime string (naive values are taken as UTC)."""
    if not s:
        return None
    dt = datetime.fromisoformat(s)
    return dt if dt.tzinfo else dt.replace(tzinfo=UTC)


def format_dt(dt: datetime | None) -> str | None:
    """Format datetime for storage."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat(timespec="microseconds")


# -----------------------------------------------------------------------------
# Base SQLite Repository
# -----------------------------------------------------------------------------


class SQLiteRepoBase:
    """Base class for SQLite repositories."""

    def __init__(self, db_path: str, connection: sqlite3.Connection | None = None):
        self.db_path = db_path
        self._external_conn = connection

    def _get_conn(self) -> sqlite3.Connection:
        """Get database connection (uses external if provided)."""
        if self._external_conn is not None:
            return self._external_conn

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def _should_close(self) -> bool:
        """Whether to close connection after use."""
        return self._external_conn is None


# -----------------------------------------------------------------------------
# ContentOwner Repository
# -----------------------------------------------------------------------------


class SQLiteOwnerRepo(SQLiteRepoBase):
    """SQLite implementation of OwnerRepoPort."""

    def get_by_id(self, owner_id: UUID) -> ContentOwner | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM owners WHERE id = ?", (str(owner_id),)).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def get_by_username(self, username: str) -> ContentOwner | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM owners WHERE username = ? AND deleted_at IS NULL",
                (username,),
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def save(self, owner: ContentOwner) -> ContentOwner:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO owners (
                    id, username, email, display_name, role,
                    newsletter_enabled, send_mode, frequency,
                    newsletter_title, newsletter_description,
                    from_name, from_email, last_digest_sent_at,
                    created_at, updated_at, deleted_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    username=excluded.username,
                    email=excluded.email,
                    display_name=excluded.display_name,
                    role=excluded.role,
                    newsletter_enabled=excluded.newsletter_enabled,
                    send_mode=excluded.send_mode,
                    frequency=excluded.frequency,
                    newsletter_title=excluded.newsletter_title,
                    newsletter_description=excluded.newsletter_description,
                    from_name=excluded.from_name,
                    from_email=excluded.from_email,
                    last_digest_sent_at=excluded.last_digest_sent_at,
                    updated_at=excluded.updated_at,
                    deleted_at=excluded.deleted_at
                """,
                (
                    str(owner.id),
                    owner.username,
                    owner.email,
                    owner.display_name,
                    owner.role,
                    int(owner.newsletter_enabled),
                    owner.send_mode,
                    owner.frequency,
                    owner.newsletter_title,
                    owner.newsletter_description,
                    owner.from_name,
                    owner.from_email,
                    format_dt(owner.last_digest_sent_at),
                    format_dt(owner.created_at),
                    format_dt(owner.updated_at),
                    format_dt(owner.deleted_at),
                ),
            )
            if self._should_close():
                conn.commit()
            return owner
        finally:
            if self._should_close():
                conn.close()

    def list_digest_owners(self) -> list[ContentOwner]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM owners
                WHERE newsletter_enabled = 1
                  AND send_mode = 'digest'
                  AND deleted_at IS NULL
                ORDER BY created_at
                """
            ).fetchall()
            return [self._map_row(r) for r in rows]
        finally:
            if self._should_close():
                conn.close()

    def stamp_last_sent(self, owner_id: UUID, sent_at: datetime) -> None:
        stamp = format_dt(sent_at)
        conn = self._get_conn()
        try:
            # Older stamps are ignored.
            conn.execute(
                """
                UPDATE owners
                SET last_digest_sent_at = ?, updated_at = ?
                WHERE id = ?
                  AND (last_digest_sent_at IS NULL OR last_digest_sent_at < ?)
                """,
                (stamp, stamp, str(owner_id), stamp),
            )
            if self._should_close():
                conn.commit()
        finally:
            if self._should_close():
                conn.close()

    def _map_row(self, row: dict[str, Any]) -> ContentOwner:
        return ContentOwner(
            id=UUID(row["id"]),
            username=row["username"],
            email=row["email"],
            display_name=row["display_name"],
            role=row["role"],
            newsletter_enabled=bool(row["newsletter_enabled"]),
            send_mode=row["send_mode"],
            frequency=row["frequency"],
            newsletter_title=row["newsletter_title"],
            newsletter_description=row["newsletter_description"],
            from_name=row["from_name"],
            from_email=row["from_email"],
            last_digest_sent_at=parse_dt(row["last_digest_sent_at"]),
            created_at=parse_dt(row["created_at"]),
            updated_at=parse_dt(row["updated_at"]),
            deleted_at=parse_dt(row["deleted_at"]),
        )


# -----------------------------------------------------------------------------
# ContentItem Repository
# -----------------------------------------------------------------------------


class SQLiteContentRepo(SQLiteRepoBase):
    """SQLite implementation of ContentRepoPort."""

    def get_by_id(self, item_id: UUID) -> ContentItem | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM content_items WHERE id = ?", (str(item_id),)
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def save(self, item: ContentItem) -> ContentItem:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO content_items (
                    id, owner_id, title, slug, status, published_at,
                    newsletter_sent_at, thumbnail_url, genre,
                    created_at, updated_at, deleted_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title=excluded.title,
                    slug=excluded.slug,
                    status=excluded.status,
                    published_at=excluded.published_at,
                    newsletter_sent_at=excluded.newsletter_sent_at,
                    thumbnail_url=excluded.thumbnail_url,
                    genre=excluded.genre,
                    updated_at=excluded.updated_at,
                    deleted_at=excluded.deleted_at
                """,
                (
                    str(item.id),
                    str(item.owner_id),
                    item.title,
                    item.slug,
                    item.status,
                    format_dt(item.published_at),
                    format_dt(item.newsletter_sent_at),
                    item.thumbnail_url,
                    item.genre,
                    format_dt(item.created_at),
                    format_dt(item.updated_at),
                    format_dt(item.deleted_at),
                ),
            )
            if self._should_close():
                conn.commit()
            return item
        finally:
            if self._should_close():
                conn.close()

    def list_by_ids(self, item_ids: Sequence[UUID]) -> list[ContentItem]:
        if not item_ids:
            return []
        placeholders = ",".join("?" for _ in item_ids)
        conn = self._get_conn()
        try:
            rows = conn.execute(
                f"SELECT * FROM content_items WHERE id IN ({placeholders})",
                tuple(str(i) for i in item_ids),
            ).fetchall()
            return [self._map_row(r) for r in rows]
        finally:
            if self._should_close():
                conn.close()

    def list_unsent_published(self, owner_id: UUID, limit: int) -> list[ContentItem]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM content_items
                WHERE owner_id = ?
                  AND status = 'published'
                  AND newsletter_sent_at IS NULL
                  AND deleted_at IS NULL
                ORDER BY published_at DESC
                LIMIT ?
                """,
                (str(owner_id), limit),
            ).fetchall()
            return [self._map_row(r) for r in rows]
        finally:
            if self._should_close():
                conn.close()

    def mark_newsletter_sent(self, item_ids: Sequence[UUID], sent_at: datetime) -> None:
        if not item_ids:
            return
        placeholders = ",".join("?" for _ in item_ids)
        stamp = format_dt(sent_at)
        conn = self._get_conn()
        try:
            conn.execute(
                f"""
                UPDATE content_items
                SET newsletter_sent_at = ?, updated_at = ?
                WHERE id IN ({placeholders})
                """,
                (stamp, stamp, *(str(i) for i in item_ids)),
            )
            if self._should_close():
                conn.commit()
        finally:
            if self._should_close():
                conn.close()

    def _map_row(self, row: dict[str, Any]) -> ContentItem:
        return ContentItem(
            id=UUID(row["id"]),
            owner_id=UUID(row["owner_id"]),
            title=row["title"],
            slug=row["slug"],
            status=row["status"],
            published_at=parse_dt(row["published_at"]),
            newsletter_sent_at=parse_dt(row["newsletter_sent_at"]),
            thumbnail_url=row["thumbnail_url"],
            genre=row["genre"],
            created_at=parse_dt(row["created_at"]),
            updated_at=parse_dt(row["updated_at"]),
            deleted_at=parse_dt(row["deleted_at"]),
        )


# -----------------------------------------------------------------------------
# Subscriber Repository
# -----------------------------------------------------------------------------


class SQLiteSubscriberRepo(SQLiteRepoBase):
    """SQLite implementation of SubscriberRepoPort."""

    def get_by_id(self, subscriber_id: UUID) -> Subscriber | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM newsletter_subscribers WHERE id = ?",
                (str(subscriber_id),),
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def get_by_owner_and_email(self, owner_id: UUID, email: str) -> Subscriber | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM newsletter_subscribers WHERE owner_id = ? AND email = ?",
                (str(owner_id), email),
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def get_by_token(self, token: str) -> Subscriber | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                """
                SELECT * FROM newsletter_subscribers
                WHERE verification_token = ? OR redeemed_token = ?
                """,
                (token, token),
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def save(self, subscriber: Subscriber) -> Subscriber:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO newsletter_subscribers (
                    id, owner_id, email, status, verification_token,
                    redeemed_token, subscribed_at, verified_at,
                    unsubscribed_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    email=excluded.email,
                    status=excluded.status,
                    verification_token=excluded.verification_token,
                    redeemed_token=excluded.redeemed_token,
                    subscribed_at=excluded.subscribed_at,
                    verified_at=excluded.verified_at,
                    unsubscribed_at=excluded.unsubscribed_at,
                    updated_at=excluded.updated_at
                """,
                (
                    str(subscriber.id),
                    str(subscriber.owner_id),
                    subscriber.email,
                    subscriber.status.value,
                    subscriber.verification_token,
                    subscriber.redeemed_token,
                    format_dt(subscriber.subscribed_at),
                    format_dt(subscriber.verified_at),
                    format_dt(subscriber.unsubscribed_at),
                    format_dt(subscriber.updated_at),
                ),
            )
            if self._should_close():
                conn.commit()
            return subscriber
        finally:
            if self._should_close():
                conn.close()

    def list_by_owner(
        self,
        owner_id: UUID,
        status: SubscriberStatus | None = None,
    ) -> list[Subscriber]:
        query = "SELECT * FROM newsletter_subscribers WHERE owner_id = ?"
        params: list[Any] = [str(owner_id)]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY subscribed_at DESC"

        conn = self._get_conn()
        try:
            rows = conn.execute(query, params).fetchall()
            return [self._map_row(r) for r in rows]
        finally:
            if self._should_close():
                conn.close()

    def count_by_status(self, owner_id: UUID) -> dict[SubscriberStatus, int]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT status, COUNT(*) AS n FROM newsletter_subscribers
                WHERE owner_id = ?
                GROUP BY status
                """,
                (str(owner_id),),
            ).fetchall()
            return {SubscriberStatus(r["status"]): r["n"] for r in rows}
        finally:
            if self._should_close():
                conn.close()

    def _map_row(self, row: dict[str, Any]) -> Subscriber:
        return Subscriber(
            id=UUID(row["id"]),
            owner_id=UUID(row["owner_id"]),
            email=row["email"],
            status=SubscriberStatus(row["status"]),
            verification_token=row["verification_token"],
            redeemed_token=row["redeemed_token"],
            subscribed_at=parse_dt(row["subscribed_at"]),
            verified_at=parse_dt(row["verified_at"]),
            unsubscribed_at=parse_dt(row["unsubscribed_at"]),
            updated_at=parse_dt(row["updated_at"]),
        )


# -----------------------------------------------------------------------------
# DeliveryRecord Repository
# -----------------------------------------------------------------------------


class SQLiteDeliveryRepo(SQLiteRepoBase):
    """SQLite implementation of DeliveryRepoPort."""

    def create(self, record: DeliveryRecord) -> DeliveryRecord:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO newsletter_deliveries (
                    id, owner_id, subject, item_ids, subscriber_count,
                    success_count, failure_count, status, error_detail,
                    sent_at, completed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                self._params(record),
            )
            if self._should_close():
                conn.commit()
            return record
        finally:
            if self._should_close():
                conn.close()

    def save(self, record: DeliveryRecord) -> DeliveryRecord:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                UPDATE newsletter_deliveries SET
                    subject = ?,
                    item_ids = ?,
                    subscriber_count = ?,
                    success_count = ?,
                    failure_count = ?,
                    status = ?,
                    error_detail = ?,
                    completed_at = ?
                WHERE id = ?
                """,
                (
                    record.subject,
                    json.dumps([str(i) for i in record.item_ids]),
                    record.subscriber_count,
                    record.success_count,
                    record.failure_count,
                    record.status.value,
                    record.error_detail,
                    format_dt(record.completed_at),
                    str(record.id),
                ),
            )
            if self._should_close():
                conn.commit()
            return record
        finally:
            if self._should_close():
                conn.close()

    def get_by_id(self, delivery_id: UUID) -> DeliveryRecord | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM newsletter_deliveries WHERE id = ?", (str(delivery_id),)
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def list_by_owner(self, owner_id: UUID) -> list[DeliveryRecord]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM newsletter_deliveries
                WHERE owner_id = ?
                ORDER BY sent_at DESC
                """,
                (str(owner_id),),
            ).fetchall()
            return [self._map_row(r) for r in rows]
        finally:
            if self._should_close():
                conn.close()

    def list_by_status(
        self,
        status: DeliveryStatus,
        sent_before: datetime | None = None,
    ) -> list[DeliveryRecord]:
        query = "SELECT * FROM newsletter_deliveries WHERE status = ?"
        params: list[Any] = [status.value]
        if sent_before is not None:
            query += " AND sent_at < ?"
            params.append(format_dt(sent_before))
        query += " ORDER BY sent_at"

        conn = self._get_conn()
        try:
            rows = conn.execute(query, params).fetchall()
            return [self._map_row(r) for r in rows]
        finally:
            if self._should_close():
                conn.close()

    def _params(self, record: DeliveryRecord) -> tuple[Any, ...]:
        return (
            str(record.id),
            str(record.owner_id),
            record.subject,
            json.dumps([str(i) for i in record.item_ids]),
            record.subscriber_count,
            record.success_count,
            record.failure_count,
            record.status.value,
            record.error_detail,
            format_dt(record.sent_at),
            format_dt(record.completed_at),
        )

    def _map_row(self, row: dict[str, Any]) -> DeliveryRecord:
        return DeliveryRecord(
            id=UUID(row["id"]),
            owner_id=UUID(row["owner_id"]),
            subject=row["subject"],
            item_ids=[UUID(i) for i in json.loads(row["item_ids"] or "[]")],
            subscriber_count=row["subscriber_count"],
            success_count=row["success_count"],
            failure_count=row["failure_count"],
            status=DeliveryStatus(row["status"]),
            error_detail=row["error_detail"],
            sent_at=parse_dt(row["sent_at"]),
            completed_at=parse_dt(row["completed_at"]),
        )
