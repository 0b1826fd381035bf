#!/usr/bin/env python3
"""
MediaMigrator - Copies WhatsApp media into a per-contact folder tree

Takes the media items listed in WhatsApp's database and places each file
under the name of the contact the conversation was with, named after the
message timestamp so the folder sorts chronologically.

📁 TARGET STRUCTURE:
<target>/<contact name>/<YYYYMMDDHHMMSS.mmm>.<ext>
Example: /Backup/WhatsApp/Alice/20210314153005.123.jpg

🔧 PROCESSING PIPELINE:
1. Build the chat index (contact JID → contact name), one folder per contact
2. For every media item, decompose its local path into JID + filename
3. Build the timestamped destination filename
4. Transfer: skip if already the same file, hard link if possible, else copy

The run is strictly sequential and stops at the first error. Files transferred
before the error stay where they are.
"""

import os
import shutil
import stat
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List

from tqdm import tqdm

from MigrationErrors import (
    DuplicateChatError,
    InvalidMediaPathError,
    MediaTransferError,
    UnknownChatError,
)
from WhatsAppDatabase import ChatSession, MediaItem, WhatsAppDatabase

TRANSFER_SAME = "same"
TRANSFER_LINKED = "linked"
TRANSFER_COPIED = "copied"


@dataclass
class TransferTask:
    """A single source → destination file transfer"""
    source: str
    destination: str


def contact_folder(target_root: str, partner_name: str) -> str:
    """
    Folder for a contact directly under target_root

    Names are used verbatim from the database, except that leading separators
    are dropped so an absolute-looking name cannot replace target_root.
    """
    return os.path.join(target_root, partner_name.lstrip('/'))


def build_chat_index(sessions: Iterable[ChatSession], target_root: str) -> Dict[str, str]:
    """
    Map contact JIDs to contact names and create one folder per contact

    Args:
        sessions: Chat sessions read from the database
        target_root: Root of the output folder tree

    Returns:
        Dictionary mapping contact JID to the contact's folder name
    """
    chat_index: Dict[str, str] = {}
    for session in sessions:
        if session.contact_jid in chat_index:
            raise DuplicateChatError(session.contact_jid)
        chat_index[session.contact_jid] = session.partner_name

        os.makedirs(contact_folder(target_root, session.partner_name), exist_ok=True)

    return chat_index


def split_media_path(media_local_path: str) -> List[str]:
    """Split a ZMEDIALOCALPATH into segments; the second one is the contact JID"""
    parts = media_local_path.lstrip('/').split('/')
    if len(parts) < 2:
        raise InvalidMediaPathError(f"Invalid media path: {media_local_path}")
    return parts


def get_media_extension(media_local_path: str) -> str:
    """Extension of the final path segment, which must contain exactly one dot"""
    filename = media_local_path.split('/')[-1]
    name_parts = filename.split('.')
    if len(name_parts) != 2:
        raise InvalidMediaPathError(f"Invalid file name: {media_local_path}")
    return name_parts[1]


def format_media_filename(timestamp: datetime, extension: str) -> str:
    """Build a sortable YYYYMMDDHHMMSS.mmm.<ext> filename"""
    milliseconds = timestamp.microsecond // 1000
    return f"{timestamp.strftime('%Y%m%d%H%M%S')}.{milliseconds:03d}.{extension}"


def plan_transfer(item: MediaItem, chat_index: Dict[str, str],
                  media_root: str, target_root: str) -> TransferTask:
    """
    Work out where a media item comes from and where it goes

    Args:
        item: Media item read from the database
        chat_index: Contact JID → contact name mapping from build_chat_index()
        media_root: Root of WhatsApp's raw media folder
        target_root: Root of the output folder tree

    Returns:
        TransferTask with the source and destination paths
    """
    parts = split_media_path(item.media_local_path)

    contact_jid = parts[1]
    if contact_jid not in chat_index:
        raise UnknownChatError(contact_jid, item.media_local_path)

    extension = get_media_extension(item.media_local_path)
    filename = format_media_filename(item.message_date.to_datetime(), extension)

    source = os.path.join(media_root, *parts[1:])
    destination = os.path.join(contact_folder(target_root, chat_index[contact_jid]), filename)
    return TransferTask(source=source, destination=destination)


def transfer_file(source: str, destination: str) -> str:
    """
    Place source at destination without duplicating data when possible

    Skips the transfer when both paths already point at the same file, tries
    a hard link next and falls back to a byte-for-byte copy that is synced to
    disk before closing.

    Returns:
        TRANSFER_SAME, TRANSFER_LINKED or TRANSFER_COPIED
    """
    source_stat = os.stat(source)
    if not stat.S_ISREG(source_stat.st_mode):
        raise MediaTransferError(
            f"copy: non-regular source file {os.path.basename(source)} "
            f"({stat.filemode(source_stat.st_mode)!r})"
        )

    try:
        destination_stat = os.stat(destination)
    except FileNotFoundError:
        pass
    else:
        if not stat.S_ISREG(destination_stat.st_mode):
            raise MediaTransferError(
                f"copy: non-regular destination file {os.path.basename(destination)} "
                f"({stat.filemode(destination_stat.st_mode)!r})"
            )
        if os.path.samestat(source_stat, destination_stat):
            return TRANSFER_SAME

    try:
        os.link(source, destination)
        return TRANSFER_LINKED
    except OSError:
        # Link failed (e.g. cross-device), fall back to copying
        pass

    with open(source, 'rb') as source_file:
        destination_file = open(destination, 'wb')
        try:
            shutil.copyfileobj(source_file, destination_file)
            destination_file.flush()
            os.fsync(destination_file.fileno())
        except BaseException:
            # The copy error is the one reported; a close error is secondary
            try:
                destination_file.close()
            except OSError:
                pass
            raise
        destination_file.close()

    return TRANSFER_COPIED


class MediaMigrator:
    """
    Main media migration controller

    Builds the chat index, then walks the media items one at a time and
    transfers each into its contact folder.
    """

    def __init__(self, db: WhatsAppDatabase, media_root: str, target_root: str):
        """
        Initialize MediaMigrator

        Args:
            db: Open WhatsApp database
            media_root: Root of WhatsApp's raw media folder (must exist)
            target_root: Root of the output folder tree (must exist)
        """
        self.db = db
        self.media_root = media_root
        self.target_root = target_root

    def run(self) -> Counter:
        """
        Migrate every media item, stopping at the first error

        Returns:
            Counter of transfer outcomes (same / linked / copied). Nothing is
            printed from it; callers and tests use it to see which path each
            transfer took.
        """
        print("Loading chat sessions...")
        chat_index = build_chat_index(self.db.load_chat_sessions(), self.target_root)
        print(f"Loaded {len(chat_index)} chats")

        outcomes = Counter()
        total = self.db.count_media_items()

        with tqdm(total=total, desc="Migrating media", unit="file", disable=None) as pbar:
            for item in self.db.iter_media_items():
                task = plan_transfer(item, chat_index, self.media_root, self.target_root)
                outcomes[transfer_file(task.source, task.destination)] += 1
                pbar.update(1)

        return outcomes
