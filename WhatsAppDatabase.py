#!/usr/bin/env python3
"""
WhatsApp Database - Read-only access to WhatsApp's ChatStorage.sqlite

This module reads the two things the media migrator needs out of WhatsApp's
Core Data store: the chat sessions (who each conversation is with) and the
media items attached to messages.

🗄️ TABLES USED:
- ZWACHATSESSION: one row per conversation (ZPARTNERNAME, ZCONTACTJID)
- ZWAMESSAGE: message rows (Z_PK, ZMEDIASECTIONID, ZMESSAGEDATE)
- ZWAMEDIAITEM: attachment rows (ZMESSAGE, ZMEDIALOCALPATH)

🕰️ TIMESTAMPS:
WhatsApp stores ZMESSAGEDATE as a floating point number of seconds since
2001-01-01 00:00:00 UTC (Apple's reference date). Some exports carry real
date values instead. Both shapes are resolved here, at the data-access
boundary, into a MessageTimestamp:

- EpochSeconds: numeric offset (whole seconds + sub-second fraction)
- CalendarTimestamp: a datetime value read from the database

Both are shifted by APPLE_EPOCH_OFFSET seconds when converted to a datetime.
"""

import math
import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, List, Union

from MigrationErrors import UnsupportedTimestampError

# Seconds between 1970-01-01 and 2001-01-01 (UTC)
APPLE_EPOCH_OFFSET = 978307200

UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class CalendarTimestamp:
    """Message date read as a calendar value"""
    value: datetime

    def to_datetime(self) -> datetime:
        value = self.value
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        try:
            return value.astimezone(timezone.utc) + timedelta(seconds=APPLE_EPOCH_OFFSET)
        except OverflowError:
            raise UnsupportedTimestampError(f"Message date out of range: {self.value!r}")


@dataclass(frozen=True)
class EpochSeconds:
    """Message date read as seconds since the Apple reference date"""
    value: float

    def to_datetime(self) -> datetime:
        seconds = int(self.value)
        fraction = self.value - seconds
        try:
            return UNIX_EPOCH + timedelta(
                seconds=seconds + APPLE_EPOCH_OFFSET,
                microseconds=int(fraction * 1_000_000)
            )
        except OverflowError:
            raise UnsupportedTimestampError(f"Message date out of range: {self.value!r}")


MessageTimestamp = Union[CalendarTimestamp, EpochSeconds]


def resolve_message_timestamp(raw) -> MessageTimestamp:
    """Turn a raw ZMESSAGEDATE value into a MessageTimestamp"""
    if isinstance(raw, datetime):
        return CalendarTimestamp(raw)
    # bool is an int subclass but never a valid date
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        if not math.isfinite(raw):
            raise UnsupportedTimestampError(f"Unsupported date time: {raw!r}")
        return EpochSeconds(float(raw))
    if isinstance(raw, str):
        try:
            return CalendarTimestamp(datetime.fromisoformat(raw.strip()))
        except ValueError:
            raise UnsupportedTimestampError(f"Unsupported date time: {raw!r}")
    raise UnsupportedTimestampError(f"Unsupported date time: {raw!r}")


@dataclass
class ChatSession:
    """Represents a conversation with one WhatsApp contact"""
    contact_jid: str
    partner_name: str


@dataclass
class MediaItem:
    """Represents a media file attached to a message"""
    media_section_id: str
    message_date: MessageTimestamp
    media_local_path: str


class WhatsAppDatabase:
    """Main class for reading the WhatsApp database"""

    CHAT_SESSIONS_QUERY = """
    SELECT ZPARTNERNAME AS partner_name, ZCONTACTJID AS contact_jid
    FROM ZWACHATSESSION
    """

    MEDIA_ITEMS_FROM = """
    FROM ZWAMESSAGE AS m
    INNER JOIN ZWAMEDIAITEM AS mi ON m.Z_PK = mi.ZMESSAGE
    WHERE mi.ZMEDIALOCALPATH != '' AND m.ZMEDIASECTIONID != ''
    """

    def __init__(self, db_path: str):
        """
        Open a read-only connection to the database

        Args:
            db_path: Path to ChatStorage.sqlite
        """
        if not os.path.exists(db_path):
            raise FileNotFoundError(f"Database not found: {db_path}")

        self.db_path = db_path
        db_uri = Path(os.path.abspath(db_path)).as_uri() + "?mode=ro"
        self.conn = sqlite3.connect(db_uri, uri=True)
        self.conn.row_factory = sqlite3.Row

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def load_chat_sessions(self) -> List[ChatSession]:
        """Load every chat session (partner name + contact JID)"""
        sessions = []
        cursor = self.conn.execute(self.CHAT_SESSIONS_QUERY)
        for row in cursor:
            if row['partner_name'] is None or row['contact_jid'] is None:
                print(f"Warning: Skipping chat session with missing name or ID "
                      f"({row['partner_name']!r}, {row['contact_jid']!r})")
                continue
            sessions.append(ChatSession(
                contact_jid=str(row['contact_jid']),
                partner_name=str(row['partner_name'])
            ))
        return sessions

    def count_media_items(self) -> int:
        """Count the media items iter_media_items() will yield"""
        cursor = self.conn.execute(f"SELECT COUNT(*) {self.MEDIA_ITEMS_FROM}")
        return cursor.fetchone()[0]

    def iter_media_items(self) -> Iterator[MediaItem]:
        """
        Yield media items joined with their messages, ordered by media section

        The ordering only groups items from the same section together; it is
        not chronological across sections.
        """
        query = f"""
        SELECT m.ZMEDIASECTIONID AS media_section_id,
               m.ZMESSAGEDATE AS message_date,
               mi.ZMEDIALOCALPATH AS media_local_path
        {self.MEDIA_ITEMS_FROM}
        ORDER BY m.ZMEDIASECTIONID
        """
        cursor = self.conn.execute(query)
        for row in cursor:
            yield MediaItem(
                media_section_id=str(row['media_section_id']),
                message_date=resolve_message_timestamp(row['message_date']),
                media_local_path=str(row['media_local_path'])
            )

    def close(self):
        """Close database connection"""
        self.conn.close()
