"""Pick the text encoding used for a shapefile's string attributes.

The shapefile format says attribute text is latin1, but some GIS software
ships a ``.cpg`` file next to the shapefile that names another encoding.
Extracts in the wild disagree:

- Census place names carry accents, are latin1, and have no ``.cpg``.
- Some international extracts ship ``ANSI 1252`` declarations, others
  ``UTF-8`` (with plain ASCII content).

So: assume latin1 unless a ``.cpg`` with a declaration we recognise sits
next to the file.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Final, Sequence

# =============================================================================
# CONFIGURATION
# =============================================================================

DEFAULT_ENCODING: Final[str] = "latin1"
ENCODING_SUFFIX: Final[str] = ".cpg"

_CP1252_TOKEN: Final[str] = "ANSI 1252"
_UTF8_RE: Final[re.Pattern[str]] = re.compile(r"UTF[-_ ]?8")

LOGGER = logging.getLogger(__name__)

# =============================================================================
# FUNCTIONS
# =============================================================================


def find_encoding_file(shape_path: str | Path) -> Path | None:
    """Return the ``.cpg`` sharing *shape_path*'s base name (any case), if any."""
    shape = Path(shape_path)
    if not shape.parent.is_dir():
        return None
    for candidate in sorted(shape.parent.iterdir()):
        if candidate.suffix.lower() == ENCODING_SUFFIX and candidate.stem == shape.stem:
            return candidate
    return None


def classify_declaration(text: str) -> str:
    if _CP1252_TOKEN in text:
        return "CP1252"
    if _UTF8_RE.search(text):
        return "UTF-8"
    return DEFAULT_ENCODING


def detect_encoding(shape_path: str | Path) -> str:
    """Return the encoding to decode *shape_path*'s attributes with."""
    cpg = find_encoding_file(shape_path)
    if cpg is None:
        return DEFAULT_ENCODING

    # Declarations are plain ASCII; latin1 never fails to decode
    lines = cpg.read_text(encoding="latin1").splitlines()
    encoding = classify_declaration(lines[0]) if lines else DEFAULT_ENCODING
    LOGGER.debug("%s declares %r -> %s", cpg.name, lines[:1], encoding)
    return encoding


def detect_encodings(shape_paths: Sequence[str | Path]) -> list[str]:
    return [detect_encoding(p) for p in shape_paths]
