"""Filesystem helpers.

Everything here except ``decompress_file_to_dir`` is blocking; callers on the
event loop run these through ``asyncio.to_thread``.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Union

from keel.utils.systemd import run_command


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def write_file(path: PathLike, content: Union[str, bytes]) -> None:
    """Atomically replace ``path`` with ``content``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = content.encode() if isinstance(content, str) else content

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as tmp_file:
            tmp_file.write(data)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def converge_file_contents(path: PathLike, content: str) -> bool:
    """Write ``content`` only if it differs from what is on disk.

    Returns True when the file was written.
    """
    path = Path(path)
    if path.exists() and path.read_bytes() == content.encode():
        logger.debug(f"Skipping writing {path} because contents are identical")
        return False

    write_file(path, content)
    logger.debug(f"Wrote {path}")
    return True


def copy_dir_entries(src: PathLike, dst: PathLike) -> None:
    """Copy the contents of ``src`` into ``dst``, overwriting existing files."""
    shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)


async def decompress_file_to_dir(archive: PathLike, target_dir: PathLike) -> None:
    """Extract a gzipped tarball into ``target_dir``."""
    await run_command(
        ["tar", "--no-same-owner", "-xzf", str(archive), "-C", str(target_dir)],
        timeout=600,
    )
