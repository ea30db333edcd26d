"""Replay a saved session into a freshly opened workspace."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .events import SessionRestoredEvent
from .exceptions import FolioError
from .models import Document, SavedSession
from .workspace import Workspace

logger = logging.getLogger(__name__)

README_NAME = "readme.md"
MARKDOWN_SUFFIX = ".md"


@dataclass
class RestoreResult:
    restored: List[Document] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    fallback_path: Optional[str] = None

    @property
    def empty(self) -> bool:
        return not self.restored and self.fallback_path is None


async def restore_session(workspace: Workspace, saved: Optional[SavedSession]) -> RestoreResult:
    """Re-open the documents of a saved session.

    Best effort: a saved path that no longer resolves (moved or deleted while
    the app was closed) is skipped, never raised. If nothing could be restored
    the root's README.md (any case), or else its first Markdown file in listing
    order, is opened as the sole document.

    Args:
        workspace: Workspace with its root already open
        saved: Session record, or None if there was none

    Returns:
        RestoreResult describing what was opened
    """
    result = RestoreResult()

    if saved is not None:
        for entry in saved.open_files:
            try:
                doc = await workspace.open_from_tree(entry.path, activate=False)
            except (FolioError, ValueError) as e:
                logger.debug("Skipping saved document %s: %s", entry.path, e)
                result.skipped.append(entry.path)
                continue
            doc.cursor = entry.cursor
            result.restored.append(doc)

    if result.restored:
        active = None
        if saved.active_file_path is not None:
            active = workspace.find_by_path(saved.active_file_path)
        workspace.set_active((active or result.restored[0]).id)
    else:
        result.fallback_path = await _open_fallback(workspace)

    logger.info(
        "Restored %d document(s), skipped %d%s",
        len(result.restored),
        len(result.skipped),
        f", opened {result.fallback_path}" if result.fallback_path else "",
    )
    workspace.bus.emit(
        SessionRestoredEvent(
            restored=len(result.restored), skipped=len(result.skipped), fallback_path=result.fallback_path
        )
    )
    return result


async def _open_fallback(workspace: Workspace) -> Optional[str]:
    listing = await workspace.list_directory("")
    files = [e.name for e in listing if not e.is_dir]

    readmes = [name for name in files if name.lower() == README_NAME]
    markdown = [name for name in files if name.lower().endswith(MARKDOWN_SUFFIX) and name not in readmes]
    for name in readmes + markdown:
        try:
            await workspace.open_from_tree(name)
        except FolioError as e:
            logger.debug("Fallback document %s could not be opened: %s", name, e)
            continue
        return name
    return None
