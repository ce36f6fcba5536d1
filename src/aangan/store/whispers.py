"""Whisper repository: whispers, reactions, expiry and cascade deletion."""

import logging
import sqlite3
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta

from ..errors import NotFound, ValidationError
from .database import Database
from .models import (
    DEFAULT_ALLOWED_EMOJIS,
    MAX_EMOTION_LENGTH,
    MAX_GUEST_ID_LENGTH,
    MAX_ZONE_LENGTH,
    Reaction,
    Whisper,
    from_db_timestamp,
    to_db_timestamp,
    utcnow,
)

logger = logging.getLogger(__name__)

# Placeholder takes the request time as a stored timestamp string
ACTIVE_WHISPER_CLAUSE = "(w.expires_at IS NULL OR w.expires_at > ?)"

WHISPER_COLUMNS = (
    "w.id, w.content, w.emotion, w.zone, w.is_ai_generated, "
    "w.expires_at, w.created_at"
)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


def whisper_from_row(row: sqlite3.Row) -> Whisper:
    """Build a Whisper from a row selected with WHISPER_COLUMNS."""
    return Whisper(
        id=row["id"],
        content=row["content"],
        emotion=row["emotion"],
        zone=row["zone"],
        is_ai_generated=bool(row["is_ai_generated"]),
        expires_at=from_db_timestamp(row["expires_at"]),
        created_at=from_db_timestamp(row["created_at"]),
    )


def reaction_from_row(row: sqlite3.Row) -> Reaction:
    return Reaction(
        id=row["id"],
        whisper_id=row["whisper_id"],
        guest_id=row["guest_id"],
        emoji=row["emoji"],
        created_at=from_db_timestamp(row["created_at"]),
    )


def _validate_guest_id(guest_id: str | None) -> None:
    if guest_id is None or not guest_id.strip():
        raise ValidationError("guest_id cannot be empty")
    if len(guest_id) > MAX_GUEST_ID_LENGTH:
        raise ValidationError(
            f"guest_id must be at most {MAX_GUEST_ID_LENGTH} characters"
        )


def _normalize_tag(value: str | None, name: str, max_length: int) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if len(value) > max_length:
        raise ValidationError(
            f"{name} must be at most {max_length} characters, got {len(value)}"
        )
    return value


def _expiry(created_at: datetime, ttl: float | timedelta) -> datetime:
    if isinstance(ttl, bool) or not isinstance(ttl, (int, float, timedelta)):
        raise ValidationError(f"ttl must be seconds or a timedelta, got {ttl!r}")
    try:
        delta = ttl if isinstance(ttl, timedelta) else timedelta(seconds=ttl)
        return created_at + delta
    except (OverflowError, ValueError) as e:
        # Non-finite seconds, or an expiry past datetime.max
        raise ValidationError(f"ttl out of range: {ttl!r}", e) from e


class WhisperRepository:
    """Relational store for whispers and their reactions.

    Expiry is logical: a whisper whose ``expires_at`` is not after the
    request time is invisible to every read and to reactions, even before
    ``purge_expired`` removes the row. Deleting a whisper removes its
    reactions and embedding in the same transaction through the schema's
    ``ON DELETE CASCADE`` foreign keys.

    Pagination is offset based: ``limit`` rows starting at ``offset`` in
    ``created_at`` descending order (newest first, ties by id descending).
    """

    def __init__(
        self,
        database: Database,
        allowed_emojis: Sequence[str] = DEFAULT_ALLOWED_EMOJIS,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize repository.

        Args:
            database: Database holding the whisper tables
            allowed_emojis: Emoji codes accepted by add_reaction
            clock: Source of the current UTC time

        Raises:
            ValueError: If allowed_emojis is empty
        """
        if not allowed_emojis:
            raise ValueError("allowed_emojis cannot be empty")
        self.database = database
        self.allowed_emojis = tuple(allowed_emojis)
        self.clock = clock

    def _now(self) -> str:
        return to_db_timestamp(self.clock())

    def create_whisper(
        self,
        content: str,
        emotion: str | None = None,
        zone: str | None = None,
        ttl: float | timedelta | None = None,
        is_ai_generated: bool = False,
    ) -> Whisper:
        """Store a new whisper.

        Args:
            content: Whisper text
            emotion: Optional emotion tag
            zone: Optional zone tag
            ttl: Lifetime in seconds (or timedelta); None never expires.
                Zero or negative values produce an already expired whisper.
            is_ai_generated: Whether the AI companion wrote it

        Returns:
            The stored whisper

        Raises:
            ValidationError: If content is empty or a tag is too long
            StorageFailure: If the database is unavailable
        """
        if content is None or not content.strip():
            raise ValidationError("Whisper content cannot be empty")
        content = content.strip()
        emotion = _normalize_tag(emotion, "emotion", MAX_EMOTION_LENGTH)
        zone = _normalize_tag(zone, "zone", MAX_ZONE_LENGTH)

        created_at = self.clock()
        expires_at = _expiry(created_at, ttl) if ttl is not None else None

        with self.database.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO whispers
                    (content, emotion, zone, is_ai_generated, expires_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    content,
                    emotion,
                    zone,
                    int(bool(is_ai_generated)),
                    to_db_timestamp(expires_at) if expires_at else None,
                    to_db_timestamp(created_at),
                ),
            )
            whisper_id = cursor.lastrowid

        # Read back through the storage format so callers see stored precision
        whisper = Whisper(
            id=whisper_id,
            content=content,
            emotion=emotion,
            zone=zone,
            is_ai_generated=bool(is_ai_generated),
            expires_at=from_db_timestamp(to_db_timestamp(expires_at))
            if expires_at
            else None,
            created_at=from_db_timestamp(to_db_timestamp(created_at)),
        )
        logger.debug(f"Created whisper {whisper_id} (zone={zone}, emotion={emotion})")
        return whisper

    def get_whisper(self, whisper_id: int) -> Whisper:
        """Fetch a live whisper.

        Raises:
            NotFound: If the whisper is absent or logically expired
        """
        with self.database.connect() as conn:
            row = conn.execute(
                f"""
                SELECT {WHISPER_COLUMNS} FROM whispers w
                WHERE w.id = ? AND {ACTIVE_WHISPER_CLAUSE}
                """,
                (whisper_id, self._now()),
            ).fetchone()

        if row is None:
            raise NotFound("whisper", whisper_id)
        return whisper_from_row(row)

    def list_active_whispers(
        self,
        zone: str | None = None,
        emotion: str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[Whisper]:
        """List live whispers, newest first.

        Args:
            zone: Only whispers tagged with this zone
            emotion: Only whispers tagged with this emotion
            limit: Page size (1 to MAX_PAGE_SIZE)
            offset: Number of rows to skip

        Raises:
            ValidationError: If limit or offset is out of range
        """
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(
                f"limit must be between 1 and {MAX_PAGE_SIZE}, got {limit}"
            )
        if offset < 0:
            raise ValidationError(f"offset cannot be negative, got {offset}")

        conditions = [ACTIVE_WHISPER_CLAUSE]
        params: list[object] = [self._now()]
        if zone is not None:
            conditions.append("w.zone = ?")
            params.append(zone)
        if emotion is not None:
            conditions.append("w.emotion = ?")
            params.append(emotion)
        params.extend([limit, offset])

        with self.database.connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {WHISPER_COLUMNS} FROM whispers w
                WHERE {" AND ".join(conditions)}
                ORDER BY w.created_at DESC, w.id DESC
                LIMIT ? OFFSET ?
                """,
                params,
            ).fetchall()

        return [whisper_from_row(row) for row in rows]

    def count_active(self) -> int:
        """Count live whispers."""
        with self.database.connect() as conn:
            row = conn.execute(
                f"SELECT COUNT(*) FROM whispers w WHERE {ACTIVE_WHISPER_CLAUSE}",
                (self._now(),),
            ).fetchone()
        return row[0]

    def delete_whisper(self, whisper_id: int) -> bool:
        """Delete a whisper with its reactions and embedding.

        Idempotent: deleting an unknown id is not an error.

        Returns:
            True if a whisper row was removed
        """
        with self.database.transaction() as conn:
            cursor = conn.execute("DELETE FROM whispers WHERE id = ?", (whisper_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info(f"Deleted whisper {whisper_id} with reactions and embedding")
        else:
            logger.debug(f"Delete of unknown whisper {whisper_id} ignored")
        return deleted

    def purge_expired(self) -> int:
        """Physically remove logically expired whispers.

        Returns:
            Number of whispers removed
        """
        with self.database.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM whispers WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (self._now(),),
            )
            purged = cursor.rowcount

        if purged:
            logger.info(f"Purged {purged} expired whispers")
        return purged

    def _require_live(self, conn: sqlite3.Connection, whisper_id: int) -> None:
        row = conn.execute(
            f"SELECT 1 FROM whispers w WHERE w.id = ? AND {ACTIVE_WHISPER_CLAUSE}",
            (whisper_id, self._now()),
        ).fetchone()
        if row is None:
            raise NotFound("whisper", whisper_id)

    def add_reaction(self, whisper_id: int, guest_id: str, emoji: str) -> Reaction:
        """Record an emoji reaction.

        Reactions are additive: the same guest may react with the same emoji
        more than once.

        Raises:
            ValidationError: If guest_id is empty or emoji is not allowed
            NotFound: If the whisper is absent or logically expired
        """
        _validate_guest_id(guest_id)
        if emoji not in self.allowed_emojis:
            raise ValidationError(
                f"emoji must be one of {', '.join(self.allowed_emojis)}, got {emoji!r}"
            )

        created_at = self.clock()
        with self.database.transaction() as conn:
            self._require_live(conn, whisper_id)
            cursor = conn.execute(
                """
                INSERT INTO whisper_reactions (whisper_id, guest_id, emoji, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (whisper_id, guest_id, emoji, to_db_timestamp(created_at)),
            )
            reaction_id = cursor.lastrowid

        logger.debug(f"Guest {guest_id} reacted {emoji} to whisper {whisper_id}")
        return Reaction(
            id=reaction_id,
            whisper_id=whisper_id,
            guest_id=guest_id,
            emoji=emoji,
            created_at=from_db_timestamp(to_db_timestamp(created_at)),
        )

    def remove_reactions(self, whisper_id: int, guest_id: str) -> int:
        """Withdraw every reaction a guest left on a live whisper.

        Returns:
            Number of reactions removed (0 if the guest never reacted)

        Raises:
            ValidationError: If guest_id is empty
            NotFound: If the whisper is absent or logically expired
        """
        _validate_guest_id(guest_id)
        with self.database.transaction() as conn:
            self._require_live(conn, whisper_id)
            cursor = conn.execute(
                "DELETE FROM whisper_reactions WHERE whisper_id = ? AND guest_id = ?",
                (whisper_id, guest_id),
            )
            removed = cursor.rowcount

        if removed:
            logger.debug(
                f"Removed {removed} reactions by {guest_id} from whisper {whisper_id}"
            )
        return removed

    def has_reacted(self, whisper_id: int, guest_id: str) -> bool:
        """Check whether a guest has any reaction on a live whisper.

        Raises:
            ValidationError: If guest_id is empty
            NotFound: If the whisper is absent or logically expired
        """
        _validate_guest_id(guest_id)
        with self.database.connect() as conn:
            self._require_live(conn, whisper_id)
            row = conn.execute(
                """
                SELECT 1 FROM whisper_reactions
                WHERE whisper_id = ? AND guest_id = ?
                LIMIT 1
                """,
                (whisper_id, guest_id),
            ).fetchone()
        return row is not None

    def list_reactions(self, whisper_id: int) -> list[Reaction]:
        """List reactions of a live whisper, oldest first.

        Raises:
            NotFound: If the whisper is absent or logically expired
        """
        with self.database.connect() as conn:
            self._require_live(conn, whisper_id)
            rows = conn.execute(
                """
                SELECT r.id, r.whisper_id, r.guest_id, r.emoji, r.created_at
                FROM whisper_reactions r
                WHERE r.whisper_id = ?
                ORDER BY r.id
                """,
                (whisper_id,),
            ).fetchall()

        return [reaction_from_row(row) for row in rows]

    def list_guest_reactions(self, guest_id: str) -> list[Reaction]:
        """List a guest's reactions across live whispers, newest first.

        Reactions on expired whispers are left out even before purging.

        Raises:
            ValidationError: If guest_id is empty
        """
        _validate_guest_id(guest_id)
        with self.database.connect() as conn:
            rows = conn.execute(
                f"""
                SELECT r.id, r.whisper_id, r.guest_id, r.emoji, r.created_at
                FROM whisper_reactions r
                JOIN whispers w ON w.id = r.whisper_id
                WHERE r.guest_id = ? AND {ACTIVE_WHISPER_CLAUSE}
                ORDER BY r.created_at DESC, r.id DESC
                """,
                (guest_id, self._now()),
            ).fetchall()

        return [reaction_from_row(row) for row in rows]

    def reaction_counts(self, whisper_id: int) -> dict[str, int]:
        """Count reactions per emoji for a live whisper.

        Every allowed emoji is present in the result, zero when unused.

        Raises:
            NotFound: If the whisper is absent or logically expired
        """
        with self.database.connect() as conn:
            self._require_live(conn, whisper_id)
            rows = conn.execute(
                """
                SELECT emoji, COUNT(*) AS count
                FROM whisper_reactions
                WHERE whisper_id = ?
                GROUP BY emoji
                """,
                (whisper_id,),
            ).fetchall()

        counts = dict.fromkeys(self.allowed_emojis, 0)
        for row in rows:
            counts[row["emoji"]] = row["count"]
        return counts
