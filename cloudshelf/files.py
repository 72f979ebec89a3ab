"""Client-side view of the user's storage: browsing, uploads and downloads."""

from __future__ import annotations

import os
from typing import BinaryIO, Iterator, Optional

from .protocol import (
    NAME_SIZE,
    PDU,
    FileInfo,
    MsgType,
    make_pdu,
    unpack_file_infos,
)
from .storage import CHUNK_SIZE, read_chunks


class FileBrowser:
    """Tracks the current remote directory and builds the file requests.

    The home directory of a user is ``./<login name>``; every request carries
    the current path so the server knows where to act.
    """

    def __init__(self, login_name: str) -> None:
        self.login_name = login_name
        self.root_path = f"./{login_name}"
        self.cur_path = self.root_path
        self.enter_dir = ""
        self.entries: list[FileInfo] = []
        self.upload_path = ""
        self.save_path = ""
        self.move_file_name = ""
        self.move_file_path = ""
        self.dest_dir = ""
        self.selecting_dest = False

    # -- directories -----------------------------------------------------

    def create_dir_request(self, name: str) -> PDU:
        """Request a new directory ``name`` inside the current one."""
        if not name:
            raise ValueError("the new directory name must not be empty")
        if len(name) > NAME_SIZE:
            raise ValueError(f"the new directory name may not exceed {NAME_SIZE} characters")
        return make_pdu(MsgType.CREATE_DIR_REQUEST, [self.login_name, name], self.cur_path)

    def flush_request(self) -> PDU:
        """Request the listing of the current directory."""
        return make_pdu(MsgType.FLUSH_FILE_REQUEST, b"", self.cur_path)

    def delete_dir_request(self, name: str) -> PDU:
        if not name:
            raise ValueError("choose the directory to delete")
        return make_pdu(MsgType.DEL_DIR_REQUEST, name, self.cur_path)

    def rename_request(self, old_name: str, new_name: str) -> PDU:
        if not old_name:
            raise ValueError("choose the file to rename")
        if not new_name:
            raise ValueError("the new file name must not be empty")
        return make_pdu(MsgType.RENAME_FILE_REQUEST, [old_name, new_name], self.cur_path)

    def enter_dir_request(self, name: str) -> PDU:
        """Request to enter ``name``; the path changes once the listing arrives."""
        if not name:
            raise ValueError("choose the directory to enter")
        self.enter_dir = name
        return make_pdu(MsgType.ENTER_DIR_REQUEST, [name], self.cur_path)

    def clear_enter_dir(self) -> None:
        self.enter_dir = ""

    def return_to_parent(self) -> PDU:
        """Step up one directory and return the listing request for it.

        Raises ValueError when already in the home directory.
        """
        if self.cur_path == self.root_path:
            raise ValueError("already in the top directory")
        self.cur_path = self.cur_path.rsplit("/", 1)[0]
        self.clear_enter_dir()
        return self.flush_request()

    def update_file_list(self, pdu: PDU) -> list[FileInfo]:
        """Take a listing reply; completes a pending directory change."""
        self.entries = unpack_file_infos(pdu.msg)
        if self.enter_dir:
            self.cur_path = f"{self.cur_path}/{self.enter_dir}"
            self.clear_enter_dir()
        return self.entries

    # -- files -----------------------------------------------------------

    def upload_request(self, local_path: str) -> PDU:
        """Announce an upload of ``local_path``: its name and size."""
        if not local_path:
            raise ValueError("the file to upload must be given")
        file_name = os.path.basename(local_path)
        size = os.path.getsize(local_path)
        self.upload_path = local_path
        return make_pdu(MsgType.UPLOAD_FILE_REQUEST, f"{file_name} {size}", self.cur_path)

    def upload_chunks(self, local_path: Optional[str] = None) -> Iterator[bytes]:
        """Yield the raw contents to send after the upload announcement."""
        path = local_path or self.upload_path
        if not path:
            raise ValueError("no file to upload")
        return read_chunks(path, CHUNK_SIZE)

    def delete_file_request(self, name: str) -> PDU:
        if not name:
            raise ValueError("choose the file to delete")
        return make_pdu(MsgType.DEL_FILE_REQUEST, name, self.cur_path)

    def download_request(self, name: str, save_path: str) -> PDU:
        """Request ``name`` to be downloaded into the local ``save_path``."""
        if not name:
            raise ValueError("choose the file to download")
        if not save_path:
            self.save_path = ""
            raise ValueError("a place to save the file must be given")
        self.save_path = save_path
        return make_pdu(MsgType.DOWNLOAD_FILE_REQUEST, name, self.cur_path)

    def begin_move(self, name: str) -> None:
        """Pick the file to move; the destination is chosen next."""
        if not name:
            raise ValueError("choose the file to move")
        self.move_file_name = name
        self.move_file_path = f"{self.cur_path}/{name}"
        self.selecting_dest = True

    def move_request(self, dest_name: str) -> PDU:
        """Move the picked file into the directory ``dest_name``."""
        try:
            if not self.selecting_dest:
                raise ValueError("no file has been picked for moving")
            if not dest_name:
                raise ValueError("choose the destination directory")
            self.dest_dir = f"{self.cur_path}/{dest_name}"
            src = self.move_file_path.encode("utf-8")
            dest = self.dest_dir.encode("utf-8")
            data = f"{len(src)} {len(dest)} {self.move_file_name}"
            return make_pdu(MsgType.MOVE_FILE_REQUEST, data, src + b"\0" + dest + b"\0")
        finally:
            self.selecting_dest = False


class Download:
    """A file being received from the server, of a known total size."""

    def __init__(self, path: str, total: int) -> None:
        if total <= 0:
            raise ValueError("a download must have a positive size")
        self.path = path
        self.total = total
        self.received = 0
        self._handle: Optional[BinaryIO] = open(path, "wb")

    @property
    def finished(self) -> bool:
        return self._handle is None

    def write(self, chunk: bytes) -> bool:
        """Store a chunk; True once the whole file has arrived.

        Raises ValueError if more bytes arrive than were announced.
        """
        if self._handle is None:
            raise ValueError("the download is already finished")
        self._handle.write(chunk)
        self.received += len(chunk)
        if self.received == self.total:
            self._close()
            return True
        if self.received > self.total:
            self._close()
            raise ValueError("received more data than the announced file size")
        return False

    def _close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None