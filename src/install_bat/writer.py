"""Persist rendered artifacts to the output directory.

Writes happen in two phases: every artifact is first written to a
<name>.tmp file, and only when all of them succeeded are the temp files
renamed into place. A failed write removes every temp file, so the output
directory never holds a partial set of generated files.
"""

import logging
from pathlib import Path
from typing import Iterable

from install_bat.common import FilesystemError
from install_bat.installer import RenderedArtifact

logger = logging.getLogger(__name__)


def ensure_output_dir(output_dir: Path) -> None:
    """Create the output directory if it doesn't exist."""
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Cannot create output directory {output_dir}: {e}") from e


def _tmp_path(target: Path) -> Path:
    return target.with_name(f"{target.name}.tmp")


def _discard(paths: Iterable[Path]) -> None:
    for path in paths:
        if path.exists():
            path.unlink()


def stage_artifact(output_dir: Path, artifact: RenderedArtifact) -> Path:
    """Write one artifact to its temp file.

    Returns:
        Path to the temp file

    Raises:
        FilesystemError: On write failure (the temp file is removed)
    """
    target = output_dir / artifact.filename
    tmp_file = _tmp_path(target)

    try:
        # newline='' keeps the installer's CRLF line endings untouched
        with open(tmp_file, 'w', encoding='utf-8', newline='') as f:
            f.write(artifact.content)
    except OSError as e:
        _discard([tmp_file])
        raise FilesystemError(f"Failed to write {target}: {e}") from e

    return tmp_file


def commit(targets: list[Path]) -> None:
    """Rename staged temp files onto their targets.

    Raises:
        FilesystemError: On rename failure (remaining temp files are removed)
    """
    for i, target in enumerate(targets):
        try:
            _tmp_path(target).replace(target)
        except OSError as e:
            _discard(_tmp_path(t) for t in targets[i:])
            raise FilesystemError(f"Failed to write {target}: {e}") from e


def write_artifacts(artifacts: Iterable[RenderedArtifact], output_dir: Path) -> list[Path]:
    """Write all artifacts, logging each path before it is written.

    Args:
        artifacts: Rendered files
        output_dir: Destination directory (created if missing)

    Returns:
        Paths written, in order

    Raises:
        FilesystemError: If the directory or any file cannot be written
    """
    output_dir = Path(output_dir)
    logger.info("Generate files in output directory")
    ensure_output_dir(output_dir)

    targets: list[Path] = []
    try:
        for artifact in artifacts:
            target = output_dir / artifact.filename
            logger.info("  %s", target)
            stage_artifact(output_dir, artifact)
            targets.append(target)
    except FilesystemError:
        _discard(_tmp_path(t) for t in targets)
        raise

    commit(targets)
    return targets
