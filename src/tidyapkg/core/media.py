"""Find the media files an export needs to carry."""

from __future__ import annotations

import enum
import hashlib
import html
import logging
import os
import re
from pathlib import Path
from typing import TYPE_CHECKING

from tidyapkg.core.anki_db import ids2str
from tidyapkg.core.errors import MediaResolutionError
from tidyapkg.models.anki_models import AnkiModel

if TYPE_CHECKING:
    from tidyapkg.core.collection import Collection

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "\x1f"
PATH_SEPARATORS = {"/", os.sep}

# [sound:filename.mp3] and <img src="filename.jpg">, quoted or not
MEDIA_REGEXPS = (
    re.compile(r"\[sound:(?P<fname>[^]]+)\]", re.IGNORECASE),
    re.compile(r"<img[^>]* src=(?P<quote>[\"']?)(?P<fname>[^>]+?)(?P=quote)[\s>]", re.IGNORECASE),
)
REMOTE_RE = re.compile(r"(https?|ftp)://")

LATEX_STANDARD_RE = re.compile(r"\[latex\](.+?)\[/latex\]", re.DOTALL | re.IGNORECASE)
LATEX_EXPRESSION_RE = re.compile(r"\[\$\](.+?)\[/\$\]", re.DOTALL | re.IGNORECASE)
LATEX_MATH_RE = re.compile(r"\[\$\$\](.+?)\[/\$\$\]", re.DOTALL | re.IGNORECASE)


class MediaScanPolicy(enum.Enum):
    """How an export decides which media files to bundle."""

    # every top-level file of the media folder
    EVERYTHING = "everything"
    # files named in note fields, plus "_" files whose name occurs anywhere
    # in an exported model's css or templates; over-includes, never misses
    CONSERVATIVE = "conservative"


def _strip_html(text: str) -> str:
    text = re.sub(r"(?s)<!--.*?-->", "", text)
    text = re.sub(r"(?si)<(style|script).*?>.*?</\1>", "", text)
    text = re.sub(r"<.*?>", "", text)
    return html.unescape(text)


def latex_files_in_str(text: str, model: AnkiModel | None = None) -> list[str]:
    """Names of the images Anki renders the LaTeX in ``text`` into."""
    ext = "svg" if model is not None and model.original_data.get("latexsvg") else "png"
    bodies = [m.group(1) for m in LATEX_STANDARD_RE.finditer(text)]
    bodies += ["$" + m.group(1) + "$" for m in LATEX_EXPRESSION_RE.finditer(text)]
    bodies += [
        "\\begin{displaymath}" + m.group(1) + "\\end{displaymath}"
        for m in LATEX_MATH_RE.finditer(text)
    ]
    names = []
    for body in bodies:
        latex = _strip_html(re.sub(r"<br( /)?>|<div>", "\n", body))
        names.append(f"latex-{hashlib.sha1(latex.encode('utf8')).hexdigest()}.{ext}")
    return names


def detect_media_in_fields(fields: list[str]) -> list[str]:
    """Detect local media file references in card fields.

    Args:
        fields: List of field contents

    Returns:
        Referenced file names, without duplicates, in order of appearance
    """
    media_files = []

    for field in fields:
        for regex in MEDIA_REGEXPS:
            for match in regex.finditer(field):
                fname = match.group("fname")
                if not REMOTE_RE.match(fname.lower()):
                    media_files.append(fname)

    return list(dict.fromkeys(media_files))


def model_has_media(model: AnkiModel | None, fname: str) -> bool:
    """Whether a model's styling or templates mention ``fname``.

    This is a plain substring test, so it allows false positives. A missing
    model counts as a match.
    """
    if model is None:
        logger.warning(f"No model to scan for {fname}, keeping the file")
        return True
    if fname in model.css:
        return True
    for template in model.templates:
        if fname in template.get("qfmt", "") or fname in template.get("afmt", ""):
            return True
    return False


class MediaManager:
    """Access to a collection's media folder."""

    def __init__(self, col: Collection, media_dir: Path | None = None):
        self.col = col
        self._dir = Path(media_dir) if media_dir is not None else None

    def dir(self) -> Path:
        if self._dir is not None:
            return self._dir
        return self.col.path.with_suffix(".media")

    def files_in_str(self, mid: int, string: str) -> list[str]:
        """Media files referenced by a note's field blob."""
        model = self.col.models.get(mid)
        found = detect_media_in_fields(string.split(FIELD_SEPARATOR))
        found += latex_files_in_str(string, model)
        return list(dict.fromkeys(found))

    def list_files(self) -> list[str]:
        """Names of the regular files directly inside the media folder."""
        mdir = self.dir()
        if not mdir.is_dir():
            logger.debug(f"No media folder at {mdir}")
            return []
        try:
            return sorted(entry.name for entry in mdir.iterdir() if entry.is_file())
        except OSError as e:
            raise MediaResolutionError(f"Cannot read media folder {mdir}: {e}") from e


def resolve_media(
    col: Collection,
    note_ids: list[int],
    include_media: bool = True,
    policy: MediaScanPolicy = MediaScanPolicy.CONSERVATIVE,
) -> frozenset[str]:
    """Decide which media files to export alongside the given notes.

    Args:
        col: Collection the notes and media folder belong to
        note_ids: Notes being exported
        include_media: When False nothing is bundled and the folder is not read
        policy: Whether to take the whole folder or scan for references

    Returns:
        File names relative to the media folder
    """
    if not include_media:
        return frozenset()
    if policy is MediaScanPolicy.EVERYTHING:
        return frozenset(col.media.list_files())

    found: set[str] = set()
    rows = col.db.all(f"SELECT mid, flds FROM notes WHERE id IN {ids2str(note_ids)}")
    for row in rows:
        for fname in col.media.files_in_str(row["mid"], row["flds"]):
            # the media folder is flat
            if any(sep in fname for sep in PATH_SEPARATORS):
                continue
            found.add(fname)

    models = [col.models.get(mid) for mid in sorted({row["mid"] for row in rows})]
    for fname in col.media.list_files():
        if not fname.startswith("_"):
            continue
        if any(model_has_media(model, fname) for model in models):
            found.add(fname)

    return frozenset(found)
