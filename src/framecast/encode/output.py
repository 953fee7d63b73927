from __future__ import annotations

import logging
import os
from pathlib import Path

from framecast.errors import OutputPathError

logger = logging.getLogger(__name__)


def prepare_output_path(output_path: str | os.PathLike, verbose: bool = False) -> Path:
    path = Path(output_path).expanduser()
    out_dir = path.parent
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        if not os.access(out_dir, os.W_OK):
            raise PermissionError(f"Output directory is not writable: {out_dir}")
    except OSError as exc:
        if verbose:
            logger.info("Could not create/access output directory %s: %s", out_dir, exc)
        raise OutputPathError(
            f"Cannot create/access output directory {out_dir}: {exc}"
        ) from exc
    return path
