import sqlite3

import pytest


SCHEMA = """
CREATE TABLE ZWACHATSESSION (
    Z_PK INTEGER PRIMARY KEY,
    ZCONTACTJID VARCHAR,
    ZPARTNERNAME VARCHAR
);
CREATE TABLE ZWAMESSAGE (
    Z_PK INTEGER PRIMARY KEY,
    ZMEDIASECTIONID VARCHAR,
    ZMESSAGEDATE TIMESTAMP
);
CREATE TABLE ZWAMEDIAITEM (
    Z_PK INTEGER PRIMARY KEY,
    ZMESSAGE INTEGER,
    ZMEDIALOCALPATH VARCHAR
);
"""


@pytest.fixture
def make_whatsapp_db(tmp_path):
    """Build a ChatStorage.sqlite with the given chats and media rows

    chats: list of (partner_name, contact_jid)
    media: list of (media_section_id, message_date, media_local_path)
    """
    def _make(chats=(), media=(), name="ChatStorage.sqlite"):
        db_path = tmp_path / name
        conn = sqlite3.connect(str(db_path))
        conn.executescript(SCHEMA)
        conn.executemany(
            "INSERT INTO ZWACHATSESSION (ZPARTNERNAME, ZCONTACTJID) VALUES (?, ?)",
            chats,
        )
        for section_id, message_date, local_path in media:
            cursor = conn.execute(
                "INSERT INTO ZWAMESSAGE (ZMEDIASECTIONID, ZMESSAGEDATE) VALUES (?, ?)",
                (section_id, message_date),
            )
            conn.execute(
                "INSERT INTO ZWAMEDIAITEM (ZMESSAGE, ZMEDIALOCALPATH) VALUES (?, ?)",
                (cursor.lastrowid, local_path),
            )
        conn.commit()
        conn.close()
        return str(db_path)

    return _make


@pytest.fixture
def media_root(tmp_path):
    """WhatsApp media folder with one image for contact 123"""
    root = tmp_path / "Media"
    (root / "123").mkdir(parents=True)
    (root / "123" / "IMG.jpg").write_bytes(b"\xff\xd8\xff\xe0 fake jpeg")
    return root
