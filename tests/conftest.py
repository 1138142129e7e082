"""
Shared fixtures: temporary chat-history stores populated with conversations
from across Middle-earth.
"""

import json
import sqlite3
from pathlib import Path
from unittest.mock import patch

import pytest

from cursor_history.config.weights import WeightsManager

STORE_SCHEMA = (
    "CREATE TABLE cursorDiskKV (key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)"
)

# Real records are large; padding keeps fixtures above the project-search size
PADDING = "." * 1200


def dump(record: dict) -> str:
    """Serialize compactly, the way the editor stores records."""
    return json.dumps(record, separators=(",", ":"))


def legacy_record(composer_id: str, messages: list[dict], **fields) -> str:
    return dump({"composerId": composer_id, "conversation": messages, **fields})


def modern_record(composer_id: str, headers: list[dict], **fields) -> str:
    return dump(
        {
            "_v": 3,
            "composerId": composer_id,
            "fullConversationHeadersOnly": headers,
            **fields,
        }
    )


def create_store(db_path: Path, rows: list[tuple[str, str]]) -> Path:
    """Create a cursorDiskKV store; rows are written in order."""
    with sqlite3.connect(str(db_path)) as conn:
        conn.execute(STORE_SCHEMA)
        conn.executemany("INSERT INTO cursorDiskKV (key, value) VALUES (?, ?)", rows)
        conn.commit()
    conn.close()
    return db_path


FRODO_MESSAGES = [
    {
        "type": 1,
        "bubbleId": "f1",
        "text": "How do I destroy the ring safely?",
        "relevantFiles": ["/home/frodo/shire/ring.py"],
        "timestamp": 1700000000000,
    },
    {
        "type": 2,
        "bubbleId": "f2",
        "text": "Carry it to Mount Doom.\nThrow it into the fire.",
        "relevantFiles": ["/home/frodo/shire/mordor.py"],
        "attachedFoldersNew": ["/home/frodo/shire/maps"],
        "suggestedCodeBlocks": [
            {"language": "py", "code": "def destroy(ring):\n    return None"}
        ],
    },
]

GANDALF_MESSAGES = [
    {
        "type": 1,
        "bubbleId": "g1",
        "text": "Tell me about the palantir summary",
        "relevantFiles": ["/home/gandalf/isengard/palantir.ts"],
    },
    {
        "type": 2,
        "bubbleId": "g2",
        "text": "The seeing stones show far-off things.",
        "suggestedCodeBlocks": [
            {"language": "typescript", "code": "const stone = seeFar();"}
        ],
    },
]

ARAGORN_BUBBLES = {
    "a1": {"bubbleId": "a1", "type": 1, "text": "How do I reforge Narsil?"},
    "a2": {
        "bubbleId": "a2",
        "type": 2,
        "text": "Bring the shards to Rivendell.",
        "suggestedCodeBlocks": [{"language": "rust", "code": "fn reforge() {}"}],
    },
}


def fellowship_rows() -> list[tuple[str, str]]:
    return [
        (
            "composerData:frodo-legacy",
            legacy_record(
                "frodo-legacy",
                FRODO_MESSAGES,
                name="Quest of the Ring",
                attachedFoldersNew=["/home/frodo/shire"],
                relevantFiles=["/home/frodo/shire/ring.py"],
                padding=PADDING,
            ),
        ),
        (
            "composerData:gandalf-legacy",
            legacy_record(
                "gandalf-legacy",
                GANDALF_MESSAGES,
                attachedFoldersNew=["/home/gandalf/isengard"],
                relevantFiles=["/home/gandalf/isengard/palantir.ts"],
                padding=PADDING,
            ),
        ),
        (
            "composerData:aragorn-modern",
            modern_record(
                "aragorn-modern",
                [{"bubbleId": "a1", "type": 1}, {"bubbleId": "a2", "type": 2}],
                name="Reforging Narsil",
                attachedFoldersNew=["/home/aragorn/gondor"],
                relevantFiles=["/home/aragorn/gondor/crown.rs"],
                latestConversationSummary={
                    "summary": {"summary": "Narsil is reforged as Anduril"}
                },
                padding=PADDING,
            ),
        ),
        *[
            (f"bubbleId:aragorn-modern:{bubble_id}", dump(bubble))
            for bubble_id, bubble in ARAGORN_BUBBLES.items()
        ],
        ("composerData:pippin-tiny", dump({"composerId": "pippin-tiny", "conversation": []})),
    ]


@pytest.fixture
def fellowship_db(tmp_path):
    """Store with two legacy, one modern and one below-threshold conversation.

    Store order, newest first: aragorn-modern, gandalf-legacy, frodo-legacy.
    """
    return create_store(tmp_path / "state.vscdb", fellowship_rows())


@pytest.fixture
def long_modern_db(tmp_path):
    """Modern conversation with fifteen headers, every bubble present."""
    headers = [
        {"bubbleId": f"b{i}", "type": 1 if i % 2 == 0 else 2} for i in range(15)
    ]
    rows = [
        (
            "composerData:council-of-elrond",
            modern_record("council-of-elrond", headers, padding=PADDING),
        )
    ]
    rows.extend(
        (
            f"bubbleId:council-of-elrond:b{i}",
            dump({"bubbleId": f"b{i}", "text": f"Voice {i} speaks at the council"}),
        )
        for i in range(15)
    )
    return create_store(tmp_path / "council.vscdb", rows)


@pytest.fixture(autouse=True)
def reset_weights():
    """Every test starts from the bundled weights file."""
    WeightsManager.reset_default()
    yield
    WeightsManager.reset_default()


@pytest.fixture
def log_home(tmp_path):
    """Enable file logging into a temporary home."""
    with patch("cursor_history.utils.logger.CURSOR_HISTORY_HOME", str(tmp_path)):
        yield tmp_path
