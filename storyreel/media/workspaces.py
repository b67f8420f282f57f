"""Request-scoped temp workspaces with guaranteed release.

WHY: Each export or frame extraction needs an isolated directory for
its intermediate files and output. Workspaces are keyed by a random
request id so concurrent requests never collide, and every one must
eventually be deleted — after the video is downloaded, when the request
fails, or when nobody comes back for it.

HOW: Three components work together:
  WorkspaceStatus — enum of workspace states
  Workspace       — dataclass holding id, kind, directory, and output
  WorkspaceStore  — thread-safe registry with create/get/mark/release
                    and a TTL sweep for abandoned workspaces
scoped_temp_file() covers the one-file case (speech audio handed to
transcription) with release on every exit path.

RULES:
- All store mutations are protected by threading.Lock
- Directory names are ``{prefix}-{uuid4}`` under the store root
- release() removes the directory outside the lock and is idempotent
- cleanup_expired() releases workspaces whose last change is older than
  the TTL, whatever their state
- Directory removal failures are logged, never raised
"""

from __future__ import annotations

import enum
import logging
import os
import shutil
import tempfile
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from storyreel.config import DEFAULT_MAX_WORKSPACES, DEFAULT_WORKSPACE_TTL_SECONDS
from storyreel.errors import StoryreelError

logger = logging.getLogger(__name__)

KIND_PREFIXES = {
    "export": "video-export",
    "frame": "frame-extract",
}


class WorkspaceLimitError(StoryreelError):
    """Too many live workspaces; the caller should retry later."""

    status_code = 429


class WorkspaceStatus(str, enum.Enum):
    """States of a workspace.

    RULES:
    - pending: created, pipeline still writing into it
    - ready: output file available for retrieval
    - failed: pipeline gave up; awaiting release
    """

    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


@dataclass
class Workspace:
    """One isolated temp directory owned by a single request.

    RULES:
    - id: UUID4 string, also the download handle
    - path: the directory; deleted when the workspace is released
    - output_file: file name inside path, set when status is READY
    """

    id: str
    kind: str
    path: Path
    created_at: float
    updated_at: float
    status: WorkspaceStatus = WorkspaceStatus.PENDING
    output_file: Optional[str] = None
    error: Optional[str] = None

    @property
    def output_path(self) -> Optional[Path]:
        if self.output_file is None:
            return None
        return self.path / self.output_file


class WorkspaceStore:
    """Thread-safe registry of live workspaces.

    WHY: The export endpoint creates a workspace, the download endpoint
    releases it, and the janitor sweeps whatever was abandoned. They run
    on different tasks and threads, so access is serialized.

    HOW: Workspaces live in a dict keyed by id. Mutations take the lock;
    directory I/O for removal happens outside it.
    """

    def __init__(
        self,
        root: Optional[Path] = None,
        ttl_seconds: int = DEFAULT_WORKSPACE_TTL_SECONDS,
        max_workspaces: int = DEFAULT_MAX_WORKSPACES,
    ) -> None:
        self._root = Path(root) if root is not None else Path(tempfile.gettempdir())
        self._workspaces: Dict[str, Workspace] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_workspaces = max_workspaces

    def create(self, kind: str = "export") -> Workspace:
        """Create a PENDING workspace with a fresh directory.

        RULES:
        - Raises WorkspaceLimitError when max_workspaces are live
        - The directory exists when this returns
        """
        prefix = KIND_PREFIXES.get(kind, kind)
        with self._lock:
            if len(self._workspaces) >= self.max_workspaces:
                raise WorkspaceLimitError(
                    "Maximum number of concurrent workspaces ({}) reached".format(
                        self.max_workspaces
                    )
                )

            workspace_id = str(uuid.uuid4())
            path = self._root / "{}-{}".format(prefix, workspace_id)
            path.mkdir(parents=True)
            now = time.time()
            workspace = Workspace(
                id=workspace_id,
                kind=kind,
                path=path,
                created_at=now,
                updated_at=now,
            )
            self._workspaces[workspace_id] = workspace

        logger.info("Created %s workspace %s at %s", kind, workspace_id, path)
        return workspace

    def get(self, workspace_id: str) -> Optional[Workspace]:
        with self._lock:
            return self._workspaces.get(workspace_id)

    def list(self) -> List[Workspace]:
        """Snapshot of all workspaces, oldest first."""
        with self._lock:
            return sorted(self._workspaces.values(), key=lambda w: w.created_at)

    def mark_ready(self, workspace_id: str, output_file: str) -> Optional[Workspace]:
        with self._lock:
            workspace = self._workspaces.get(workspace_id)
            if workspace is None:
                return None
            workspace.status = WorkspaceStatus.READY
            workspace.output_file = output_file
            workspace.updated_at = time.time()
            return workspace

    def mark_failed(self, workspace_id: str, error: str) -> Optional[Workspace]:
        with self._lock:
            workspace = self._workspaces.get(workspace_id)
            if workspace is None:
                return None
            workspace.status = WorkspaceStatus.FAILED
            workspace.error = error
            workspace.updated_at = time.time()
            return workspace

    def release(self, workspace_id: str) -> bool:
        """Forget a workspace and delete its directory.

        Returns True if the workspace existed.
        """
        with self._lock:
            workspace = self._workspaces.pop(workspace_id, None)

        if workspace is None:
            return False

        _remove_tree(workspace.path)
        logger.info("Released workspace %s", workspace_id)
        return True

    def cleanup_expired(self) -> int:
        """Release every workspace untouched for longer than the TTL."""
        now = time.time()
        expired: List[Workspace] = []

        with self._lock:
            for workspace_id, workspace in list(self._workspaces.items()):
                if now - workspace.updated_at > self._ttl_seconds:
                    expired.append(self._workspaces.pop(workspace_id))

        for workspace in expired:
            _remove_tree(workspace.path)
            logger.info(
                "Expired workspace %s (%s, idle %.0fs)",
                workspace.id, workspace.status.value, now - workspace.updated_at,
            )

        return len(expired)

    def release_all(self) -> int:
        """Release every workspace; used on shutdown."""
        with self._lock:
            ids = list(self._workspaces)
        return sum(1 for workspace_id in ids if self.release(workspace_id))


def _remove_tree(path: Path) -> None:
    if path.exists():
        try:
            shutil.rmtree(path)
        except OSError:
            logger.warning("Failed to clean up temp dir: %s", path)


@contextmanager
def scoped_temp_file(data: bytes, suffix: str = ".wav", prefix: str = "tts-") -> Iterator[Path]:
    """Write ``data`` to a temp file for the duration of the block.

    RULES:
    - The file is deleted on every exit path, including exceptions
    - Deletion failures are logged, never raised
    """
    fd, name = tempfile.mkstemp(suffix=suffix, prefix=prefix)
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        logger.debug("Temporary audio file saved to: %s", path)
        yield path
    finally:
        try:
            path.unlink()
            logger.debug("Temporary audio file deleted: %s", path)
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Error deleting temporary file %s", path)
