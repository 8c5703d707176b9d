"""
Commit journal for multi-file store updates.

A commit stages the new contents of every affected store beside its target,
then records the staged files in a journal written atomically. Writing the
journal is the commit point: from then on recovery rolls the commit forward.
A crash before the journal exists leaves only orphaned staged files, which
recovery deletes, so the stores never end up disagreeing.
"""

import json
import logging
import os
import uuid
from pathlib import Path
from typing import Dict, List

from ..exceptions import PersistenceError
from .files import atomic_write_text, fsync_directory, read_text, write_synced

logger = logging.getLogger(__name__)


class CommitJournal:
    """Stages and applies all-or-nothing updates to files in one directory."""

    JOURNAL_NAME = "commit.journal"
    STAGED_SUFFIX = ".staged"

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    @property
    def journal_path(self) -> Path:
        return self.directory / self.JOURNAL_NAME

    def has_pending(self) -> bool:
        return self.journal_path.exists()

    def commit(self, changes: Dict[str, str]) -> None:
        """
        Replace every file named in changes with its new text, all or nothing.

        Args:
            changes: Mapping of file name (inside the directory) to full new contents

        Raises:
            PersistenceError: If staging fails (nothing changed), or if the swap
                fails after the commit point (committed=True, recovery completes it)
        """
        if not changes:
            return

        commit_id = uuid.uuid4().hex[:12]
        staged: List[Dict[str, str]] = []

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            for target, text in changes.items():
                staged_name = f"{target}.{commit_id}{self.STAGED_SUFFIX}"
                write_synced(self.directory / staged_name, text)
                staged.append({"target": target, "staged": staged_name})
            fsync_directory(self.directory)

            atomic_write_text(
                self.journal_path,
                json.dumps({"commit_id": commit_id, "files": staged}),
            )
        except (OSError, PersistenceError) as e:
            self._discard([item["staged"] for item in staged])
            logger.error(f"Commit {commit_id} aborted before the commit point: {e}")
            raise PersistenceError(f"Could not stage store update: {e}") from e

        try:
            self._apply(staged)
        except OSError as e:
            logger.error(f"Commit {commit_id} recorded but not applied: {e}")
            raise PersistenceError(
                f"Store update {commit_id} is journaled but not yet applied: {e}", committed=True
            ) from e

        logger.debug(f"Commit {commit_id} applied to {', '.join(changes)}")

    def recover(self) -> bool:
        """
        Finish an interrupted commit and clean up orphaned staged files.

        Returns:
            True if a journaled commit was rolled forward
        """
        rolled_forward = False

        if self.journal_path.exists():
            try:
                journal = json.loads(read_text(self.journal_path))
                staged = journal["files"]
            except (ValueError, KeyError) as e:
                raise PersistenceError(f"Unreadable commit journal {self.journal_path}: {e}") from e

            try:
                self._apply(staged)
            except OSError as e:
                raise PersistenceError(f"Could not roll forward journaled commit: {e}") from e

            logger.warning(f"Rolled forward interrupted commit {journal.get('commit_id')}")
            rolled_forward = True

        orphans = [p.name for p in self.directory.glob(f"*{self.STAGED_SUFFIX}")]
        if orphans:
            logger.warning(f"Discarding {len(orphans)} staged file(s) from an unfinished commit")
            self._discard(orphans)

        return rolled_forward

    def _apply(self, staged: List[Dict[str, str]]) -> None:
        for item in staged:
            source = self.directory / item["staged"]
            # Already swapped in by an earlier, interrupted apply
            if source.exists():
                os.replace(source, self.directory / item["target"])
        fsync_directory(self.directory)
        self.journal_path.unlink()
        fsync_directory(self.directory)

    def _discard(self, names: List[str]) -> None:
        for name in names:
            try:
                (self.directory / name).unlink()
            except FileNotFoundError:
                pass
