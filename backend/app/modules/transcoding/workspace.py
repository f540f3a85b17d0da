"""Per-job scratch directories."""

import logging
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Union

from app.core.logging import log_warning
from app.modules.transcoding.errors import WorkspaceError

logger = logging.getLogger(__name__)

INPUT_STEM = "input"
OUTPUT_DIRNAME = "hls"


@dataclass(frozen=True)
class Workspace:
    """Scratch area owned by a single job.

    ``input_path`` and ``output_dir`` are siblings inside ``root``, so
    removing ``root`` removes everything the job wrote.
    """
    root: Path
    input_path: Path
    output_dir: Path


class WorkspaceManager:
    """Creates and removes job workspaces under a base directory."""

    def __init__(self, base_dir: Union[str, Path]):
        self.base_dir = Path(base_dir)

    def provision(self, video_id: str, input_suffix: str = ".mp4") -> Workspace:
        """Create a fresh workspace for ``video_id``.

        The directory name starts with the video ID and carries a random
        suffix, so concurrent jobs never share a directory.

        Raises:
            WorkspaceError: If the directories cannot be created
        """
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            root = Path(tempfile.mkdtemp(prefix=f"{video_id}_", dir=self.base_dir))
            output_dir = root / OUTPUT_DIRNAME
            output_dir.mkdir()
        except OSError as e:
            raise WorkspaceError(
                f"Could not provision workspace under {self.base_dir}: {e}",
                video_id=video_id,
            ) from e

        logger.debug("Provisioned workspace %s", root)
        return Workspace(
            root=root,
            input_path=root / f"{INPUT_STEM}{input_suffix}",
            output_dir=output_dir,
        )

    def write_input(self, workspace: Workspace, raw_bytes: bytes) -> Path:
        """Write the uploaded bytes to the workspace input file."""
        try:
            workspace.input_path.write_bytes(raw_bytes)
        except OSError as e:
            raise WorkspaceError(f"Could not write input file: {e}") from e
        return workspace.input_path

    def destroy(self, workspace: Workspace) -> None:
        """Remove the workspace recursively. Never raises."""
        try:
            shutil.rmtree(workspace.root)
        except FileNotFoundError:
            pass
        except OSError as e:
            log_warning(
                logger,
                "Failed to remove workspace",
                workspace=str(workspace.root),
                error=str(e),
            )

    @contextmanager
    def session(self, video_id: str, input_suffix: str = ".mp4") -> Iterator[Workspace]:
        """Provision a workspace for the duration of a block."""
        workspace = self.provision(video_id, input_suffix)
        try:
            yield workspace
        finally:
            self.destroy(workspace)
