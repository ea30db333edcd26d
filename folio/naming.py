"""Name derivation helpers: untitled names, heading titles, links, images."""

import re
from datetime import datetime, timezone
from typing import List, Optional, Tuple

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg")
MAX_TITLE_LENGTH = 80

_HEADING_RE = re.compile(r"^\s{0,3}#\s+(.+?)\s*#*\s*$")
_UNSAFE_CHARS_RE = re.compile(r'[\\/:*?"<>|\x00-\x1f]')
_EXTENSION_RE = re.compile(r"\.[A-Za-z0-9]+$")


def is_image_file(name: str) -> bool:
    return name.lower().endswith(IMAGE_EXTENSIONS)


def untitled_name(index: int) -> str:
    return f"Untitled-{index}.md"


def pasted_image_name(now: Optional[datetime] = None) -> str:
    """Timestamped file name for an image pasted into a document."""
    if now is None:
        now = datetime.now(timezone.utc)
    stamp = re.sub(r"[:.+]", "-", now.isoformat(timespec="milliseconds"))
    return f"image-{stamp}.png"


def title_from_content(content: str) -> Optional[str]:
    """Return the text of the first level-one heading, if any."""
    for line in content.splitlines():
        match = _HEADING_RE.match(line)
        if match:
            return match.group(1).strip()
    return None


def sanitize_file_stem(title: str) -> str:
    """Turn free heading text into something usable as a file name."""
    stem = _UNSAFE_CHARS_RE.sub("", title)
    stem = re.sub(r"\s+", " ", stem).strip().strip(".")
    return stem[:MAX_TITLE_LENGTH].rstrip()


def filename_from_content(content: str) -> Optional[str]:
    """File name for title-driven rename, e.g. '# Meeting notes' -> 'Meeting notes.md'."""
    title = title_from_content(content)
    if not title:
        return None
    stem = sanitize_file_stem(title)
    if not stem:
        return None
    return f"{stem}.md"


def split_link_target(target: str) -> Tuple[str, Optional[str]]:
    """Split 'Note Name#Heading' into ('Note Name', 'Heading')."""
    name, sep, anchor = target.partition("#")
    return name, (anchor if sep else None)


def link_candidates(name: str) -> List[str]:
    """Names a wiki link may refer to; '.md' is implied when no extension is given."""
    if _EXTENSION_RE.search(name):
        return [name]
    return [name, f"{name}.md"]
