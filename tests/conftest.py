"""Shared fixtures: a small source collection with decks, scheduling and media."""

import zipfile
from pathlib import Path

import pytest

from tidyapkg.core.collection import Collection, create_collection
from tidyapkg.models.anki_models import AnkiDeck, AnkiDeckConfig, AnkiModel

BASIC_MID = 1001
REVERSE_MID = 1002
OTHER_MID = 1003

MODELS = [
    {
        "id": BASIC_MID,
        "name": "Basic",
        "type": 0,
        "css": ".card { font-family: custom; } @font-face { src: url('_font.ttf'); }",
        "flds": [{"name": "Front", "ord": 0}, {"name": "Back", "ord": 1}],
        "tmpls": [
            {
                "name": "Card 1",
                "ord": 0,
                "qfmt": "{{Front}}",
                "afmt": "{{FrontSide}}<hr id=answer>{{Back}}",
            }
        ],
    },
    {
        "id": REVERSE_MID,
        "name": "Reverse",
        "type": 0,
        "css": ".card { color: black; }",
        "flds": [{"name": "Front", "ord": 0}, {"name": "Back", "ord": 1}],
        "tmpls": [
            {
                "name": "Card 1",
                "ord": 0,
                "qfmt": '<img src="_logo.png">{{Back}}',
                "afmt": "{{Front}}",
            }
        ],
    },
    {
        "id": OTHER_MID,
        "name": "Other",
        "type": 0,
        "css": "@import '_unused.css';",
        "flds": [{"name": "Front", "ord": 0}, {"name": "Back", "ord": 1}],
        "tmpls": [{"name": "Card 1", "ord": 0, "qfmt": "{{Front}}", "afmt": "{{Back}}"}],
    },
]

DECKS = [
    {"id": 10, "name": "Lang", "dyn": 0, "conf": 2, "desc": "Languages"},
    {"id": 11, "name": "Lang::French", "dyn": 0, "conf": 3, "desc": ""},
    {"id": 12, "name": "Other", "dyn": 0, "conf": 2, "desc": ""},
    {"id": 13, "name": "Lang::Cram", "dyn": 1, "terms": [["deck:Lang", 100, 0]], "desc": ""},
    {"id": 14, "name": "Language", "dyn": 0, "conf": 1, "desc": ""},
]

DECK_CONFIGS = [
    {"id": 2, "name": "Custom", "new": {"perDay": 30}},
    {"id": 3, "name": "Intense", "new": {"perDay": 100}},
]

# id, guid, mid, mod, usn, tags, flds, sfld, csum, flags, data
NOTES = [
    (
        100,
        "guid100",
        BASIC_MID,
        0,
        -1,
        " french leech marked ",
        'bonjour<img src="hello.jpg">\x1fhello[sound:hello.mp3]',
        "bonjour",
        1,
        0,
        "",
    ),
    (
        101,
        "guid101",
        REVERSE_MID,
        0,
        -1,
        " animals ",
        'chat\x1fcat <img src="diagram.svg">',
        "chat",
        2,
        0,
        "",
    ),
    (
        102,
        "guid102",
        OTHER_MID,
        0,
        -1,
        " Marked other ",
        'autre\x1f<img src="sub/nested.png"> <img src="other.png">',
        "autre",
        3,
        0,
        "",
    ),
]

# id, nid, did, ord, mod, usn, type, queue, due, ivl, factor, reps, lapses, left, odue, odid,
# flags, data
CARDS = [
    (1000, 100, 10, 0, 0, -1, 2, 2, 500, 30, 2600, 5, 1, 0, 0, 0, 3, ""),
    (1001, 100, 11, 1, 0, -1, 1, 1, 1700000000, 0, 2500, 2, 0, 1001, 0, 0, 1, ""),
    (1002, 101, 11, 0, 0, -1, 0, 0, 7, 0, 0, 0, 0, 0, 0, 0, 0, ""),
    (1003, 102, 12, 0, 0, -1, 2, -1, 100, 10, 2300, 3, 0, 0, 0, 0, 2, ""),
]

# id, cid, usn, ease, ivl, lastIvl, factor, time, type
REVLOG = [
    (1600000000000, 1000, -1, 3, 10, 1, 2500, 6000, 1),
    (1600000100000, 1000, -1, 3, 30, 10, 2600, 4000, 1),
    (1600000200000, 1003, -1, 1, 10, 20, 2300, 9000, 2),
]

MEDIA_FILES = {
    "hello.jpg": b"\xff\xd8jpeg",
    "hello.mp3": b"ID3mp3",
    "diagram.svg": b"<svg xmlns='http://www.w3.org/2000/svg'>" + b"<g/>" * 200 + b"</svg>",
    "other.png": b"\x89PNGother",
    "_font.ttf": b"font",
    "_logo.png": b"\x89PNGlogo",
    "_unused.css": b"body {}",
    "unreferenced.txt": b"nobody uses me",
}


def build_collection(root: Path, sched_ver: int = 1) -> Collection:
    """Create the sample collection and its media folder under ``root``."""
    root.mkdir(parents=True, exist_ok=True)
    col = create_collection(root / "collection.anki2")
    col.conf["schedVer"] = sched_ver
    for data in MODELS:
        col.models.update(AnkiModel.from_json(data))
    for data in DECKS:
        col.decks.update(AnkiDeck.from_json(data))
    for data in DECK_CONFIGS:
        col.decks.update_conf(AnkiDeckConfig.from_json(data))
    col.db.execute_many("INSERT INTO notes VALUES (?,?,?,?,?,?,?,?,?,?,?)", NOTES)
    col.db.execute_many(f"INSERT INTO cards VALUES ({','.join('?' * 18)})", CARDS)
    col.db.execute_many("INSERT INTO revlog VALUES (?,?,?,?,?,?,?,?,?)", REVLOG)
    col.save()

    media_dir = col.media.dir()
    media_dir.mkdir()
    for name, data in MEDIA_FILES.items():
        (media_dir / name).write_bytes(data)
    (media_dir / "sub").mkdir()
    (media_dir / "sub" / "nested.png").write_bytes(b"\x89PNGnested")
    return col


@pytest.fixture
def source_col(tmp_path):
    col = build_collection(tmp_path / "profile")
    yield col
    col.close()


@pytest.fixture
def v2_col(tmp_path):
    col = build_collection(tmp_path / "profile", sched_ver=2)
    yield col
    col.close()


@pytest.fixture
def extract_entry(tmp_path):
    """Extract one archive entry to a file and return its path."""

    def _extract(package: Path, entry: str) -> Path:
        dest = tmp_path / "extracted" / package.stem
        dest.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(package) as zip_file:
            zip_file.extract(entry, dest)
        return dest / entry

    return _extract
