#!/usr/bin/env python3
"""
Migration Errors - Error taxonomy for the WhatsApp media migrator

Every failure is fatal to the run. The classes only exist so callers and
tests can tell the categories apart:

- Configuration: missing flags, missing database or media folder
- Integrity: duplicate chat identifiers, unknown chats, malformed media paths
- I/O: files that cannot be transferred (OSError / sqlite3.Error propagate as-is)
- Data: message timestamps stored in an unsupported representation
"""


class MigrationError(Exception):
    """Base class for all migrator errors"""


class ConfigurationError(MigrationError):
    """A required path was not provided or does not exist"""


class DuplicateChatError(MigrationError):
    """The same contact identifier appears in more than one chat session"""

    def __init__(self, contact_jid: str):
        super().__init__(f"Duplicate ID found: {contact_jid}")
        self.contact_jid = contact_jid


class UnknownChatError(MigrationError):
    """A media path references a contact identifier with no chat session"""

    def __init__(self, contact_jid: str, media_path: str):
        super().__init__(f"Chat [{contact_jid}] not found: {media_path}")
        self.contact_jid = contact_jid
        self.media_path = media_path


class InvalidMediaPathError(MigrationError):
    """A media path has too few segments or a filename without a single extension"""


class UnsupportedTimestampError(MigrationError):
    """A message date is neither a datetime nor a number of seconds"""


class MediaTransferError(MigrationError):
    """Source or destination is not a regular file"""
