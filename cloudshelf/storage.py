"""Server-side file operations on users' storage directories.

Paths handed to these functions are real filesystem paths; the caller
resolves client-supplied paths against the storage root first.
"""

from __future__ import annotations

import os
import shutil
from typing import Iterator, Optional

from .protocol import (
    COMMON_ERR,
    CREAT_DIR_OK,
    DEL_DIR_FAILURED,
    DEL_DIR_OK,
    DEL_FILE_FAILURED,
    DEL_FILE_OK,
    DIR_NO_EXIST,
    FILE_NAME_EXIST,
    MOVE_FILE_FAILURED,
    MOVE_FILE_OK,
    NAME_SIZE,
    FileInfo,
)

CHUNK_SIZE = 4096


def _fit_name(name: str) -> str:
    """Shorten a name so that its UTF-8 form fits a 32-byte slot."""
    raw = name.encode("utf-8")
    if len(raw) <= NAME_SIZE:
        return name
    return raw[:NAME_SIZE].decode("utf-8", errors="ignore")


def _entry_type(path: str) -> int:
    if os.path.isdir(path):
        return FileInfo.DIRECTORY
    if os.path.isfile(path):
        return FileInfo.REGULAR
    return FileInfo.DIRECTORY


def list_directory(path: str) -> list[FileInfo]:
    """Entries of a directory, "." and ".." included, sorted by name ignoring case."""
    names = [".", ".."] + os.listdir(path)
    names.sort(key=lambda n: (n.casefold(), n))
    return [FileInfo(_fit_name(n), _entry_type(os.path.join(path, n))) for n in names]


def create_directory(cur_path: str, name: str) -> str:
    """Create ``name`` inside ``cur_path`` and return the reply text."""
    if not os.path.exists(cur_path):
        return DIR_NO_EXIST
    new_path = os.path.join(cur_path, name)
    if os.path.exists(new_path):
        return FILE_NAME_EXIST
    try:
        os.mkdir(new_path)
    except OSError:
        return COMMON_ERR
    return CREAT_DIR_OK


def delete_directory(cur_path: str, name: str) -> str:
    """Remove a directory with all its contents; regular files are refused."""
    target = os.path.join(cur_path, name)
    if not os.path.isdir(target):
        return DEL_DIR_FAILURED
    try:
        shutil.rmtree(target)
    except OSError:
        return DEL_DIR_FAILURED
    return DEL_DIR_OK


def rename_entry(cur_path: str, old_name: str, new_name: str) -> bool:
    """Rename an entry of ``cur_path``; False if it fails or the new name is taken."""
    old_path = os.path.join(cur_path, old_name)
    new_path = os.path.join(cur_path, new_name)
    if not os.path.lexists(old_path) or os.path.lexists(new_path):
        return False
    try:
        os.rename(old_path, new_path)
    except OSError:
        return False
    return True


def enter_directory(cur_path: str, name: str) -> list[FileInfo]:
    """List the directory ``name`` inside ``cur_path``.

    Raises NotADirectoryError for a regular file and FileNotFoundError
    when nothing of that name exists.
    """
    target = os.path.join(cur_path, name)
    if os.path.isdir(target):
        return list_directory(target)
    if os.path.isfile(target):
        raise NotADirectoryError(target)
    raise FileNotFoundError(target)


def delete_file(cur_path: str, name: str) -> str:
    """Remove a regular file; directories are refused."""
    target = os.path.join(cur_path, name)
    if not os.path.isfile(target):
        return DEL_FILE_FAILURED
    try:
        os.remove(target)
    except OSError:
        return DEL_FILE_FAILURED
    return DEL_FILE_OK


def move_file(src_path: str, dest_dir: str, file_name: str) -> str:
    """Move ``src_path`` into ``dest_dir`` under ``file_name``.

    Returns an empty string when ``dest_dir`` does not exist at all.
    """
    if os.path.isdir(dest_dir):
        dest_path = os.path.join(dest_dir, file_name)
        if os.path.lexists(dest_path) or not os.path.lexists(src_path):
            return COMMON_ERR
        try:
            os.rename(src_path, dest_path)
        except OSError:
            return COMMON_ERR
        return MOVE_FILE_OK
    if os.path.isfile(dest_dir):
        return MOVE_FILE_FAILURED
    return ""


def _copy_file(src: str, dest: str) -> bool:
    if os.path.exists(dest):
        return False
    try:
        shutil.copyfile(src, dest)
    except OSError:
        return False
    return True


def copy_tree(src_dir: str, dest_dir: str) -> None:
    """Copy a directory recursively; files already at the destination are kept."""
    try:
        os.mkdir(dest_dir)
    except FileExistsError:
        pass
    for entry in sorted(os.listdir(src_dir)):
        src = os.path.join(src_dir, entry)
        dest = os.path.join(dest_dir, entry)
        if os.path.isfile(src):
            _copy_file(src, dest)
        elif os.path.isdir(src):
            copy_tree(src, dest)


def receive_share(recv_name: str, share_path: str, root: str) -> Optional[str]:
    """Copy a shared file or directory into the receiver's home under ``root``.

    ``share_path`` is a client path relative to ``root``. Returns the
    destination path, or None when the shared path does not exist.
    """
    source = os.path.join(root, share_path)
    file_name = share_path.rsplit("/", 1)[-1]
    dest = os.path.join(root, recv_name, file_name)
    if os.path.isfile(source):
        _copy_file(source, dest)
        return dest
    if os.path.isdir(source):
        copy_tree(source, dest)
        return dest
    return None


def read_chunks(path: str, size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield the contents of a file in pieces of at most ``size`` bytes."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    with open(path, "rb") as handle:
        while True:
            chunk = handle.read(size)
            if not chunk:
                return
            yield chunk