"""Handling of one client connection on the storage server."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import BinaryIO, Callable, Optional

from . import storage
from .database import AddFriendResult, SearchResult, UserDatabase
from .protocol import (
    ADD_FRIEND_NO_EXIST,
    ADD_FRIEND_OFFLINE,
    DATA_SIZE,
    DEL_FRIEND_OK,
    ENTER_DIR_FAILURED,
    EXISTED_FRIEND,
    LOGIN_FAILED,
    LOGIN_OK,
    NAME_SIZE,
    PDU,
    REGIST_FAILED,
    REGIST_OK,
    RENAME_FILE_FAILURED,
    RENAME_FILE_OK,
    SEARCH_USR_NO,
    SEARCH_USR_OFFLINE,
    SEARCH_USR_ONLINE,
    SHARE_FILE_OK,
    UNKNOW_ERROR,
    UPLOAD_FILE_FAILURED,
    UPLOAD_FILE_OK,
    MsgType,
    PDUReader,
    make_pdu,
    pack_file_infos,
    pack_names,
    unpack_names,
)

log = logging.getLogger(__name__)

_SEARCH_REPLIES = {
    SearchResult.NOT_FOUND: SEARCH_USR_NO,
    SearchResult.ONLINE: SEARCH_USR_ONLINE,
    SearchResult.OFFLINE: SEARCH_USR_OFFLINE,
}

_ADD_FRIEND_REPLIES = {
    AddFriendResult.UNKNOWN: UNKNOW_ERROR,
    AddFriendResult.EXISTED: EXISTED_FRIEND,
    AddFriendResult.OFFLINE: ADD_FRIEND_OFFLINE,
    AddFriendResult.NOT_EXIST: ADD_FRIEND_NO_EXIST,
}


@dataclass
class _Upload:
    handle: BinaryIO
    total: int
    received: int = 0


def _fit_data(text: str) -> str:
    """Cut text so that its UTF-8 form fits the PDU data field."""
    return text.encode("utf-8")[:DATA_SIZE].decode("utf-8", errors="ignore")


class Session:
    """Protocol state of one connected client.

    ``send`` takes the bytes to write to the client, ``hub`` forwards PDUs
    to other logged-in clients and ``root`` is the directory that holds
    every user's storage.
    """

    def __init__(
        self,
        send: Callable[[bytes], object],
        hub,
        database: UserDatabase,
        root: str,
    ) -> None:
        self.send = send
        self.hub = hub
        self.database = database
        self.root = root
        self.name = ""
        self._reader = PDUReader()
        self._upload: Optional[_Upload] = None
        self._handlers = {
            MsgType.REGIST_REQUEST: self._regist,
            MsgType.LOGIN_REQUEST: self._login,
            MsgType.ALL_ONLINE_REQUEST: self._all_online,
            MsgType.SEARCH_USR_REQUEST: self._search_user,
            MsgType.ADD_FRIEND_REQUEST: self._add_friend,
            MsgType.ADD_FRIEND_AGREE: self._agree_friend,
            MsgType.ADD_FRIEND_REFUSE: self._refuse_friend,
            MsgType.FLUSH_FRIEND_REQUEST: self._flush_friend,
            MsgType.DELETE_FRIEND_REQUEST: self._delete_friend,
            MsgType.PRIVATE_CHAT_REQUEST: self._private_chat,
            MsgType.GROUP_CHAT_REQUEST: self._group_chat,
            MsgType.CREATE_DIR_REQUEST: self._create_dir,
            MsgType.FLUSH_FILE_REQUEST: self._flush_file,
            MsgType.DEL_DIR_REQUEST: self._delete_dir,
            MsgType.RENAME_FILE_REQUEST: self._rename,
            MsgType.ENTER_DIR_REQUEST: self._enter_dir,
            MsgType.UPLOAD_FILE_REQUEST: self._upload_request,
            MsgType.DEL_FILE_REQUEST: self._delete_file,
            MsgType.DOWNLOAD_FILE_REQUEST: self._download,
            MsgType.SHARE_FILE_REQUEST: self._share,
            MsgType.SHARE_FILE_NOTE_RESPOND: self._share_accepted,
            MsgType.MOVE_FILE_REQUEST: self._move,
        }

    # -- stream handling -------------------------------------------------

    def feed(self, data: bytes) -> None:
        """Process bytes received from the client."""
        if self._upload is not None:
            self._receive_upload(bytes(data))
            return
        for pdu in self._reader.feed(data):
            self.handle(pdu)
            if self._upload is not None:
                rest = bytes(self._reader.buffer)
                self._reader.buffer.clear()
                if rest:
                    self._receive_upload(rest)
                return

    def handle(self, pdu: PDU) -> None:
        """Act on one request; unknown message types are ignored."""
        handler = self._handlers.get(pdu.msg_type)
        if handler is not None:
            handler(pdu)

    def close(self) -> None:
        """Release the session: mark the user offline and leave the hub."""
        if self._upload is not None:
            self._upload.handle.close()
            self._upload = None
        if self.name:
            self.database.set_offline(self.name)
        self.hub.remove(self)

    # -- helpers ---------------------------------------------------------

    def _reply(self, msg_type: MsgType, data="", msg: bytes = b"") -> None:
        self.send(make_pdu(msg_type, data, msg).to_bytes())

    def _path(self, client_path: str) -> str:
        return os.path.join(self.root, client_path.lstrip("/"))

    def _listing(self, path: str) -> bytes:
        try:
            return pack_file_infos(storage.list_directory(path))
        except OSError:
            return b""

    # -- accounts and friends --------------------------------------------

    def _regist(self, pdu: PDU) -> None:
        name, pwd = pdu.data_slot(0), pdu.data_slot(1)
        if name:
            try:
                os.makedirs(self._path(name), exist_ok=True)
            except OSError as exc:
                log.warning("cannot create home of %s: %s", name, exc)
        ok = self.database.register(name, pwd)
        self._reply(MsgType.REGIST_RESPOND, REGIST_OK if ok else REGIST_FAILED)

    def _login(self, pdu: PDU) -> None:
        name, pwd = pdu.data_slot(0), pdu.data_slot(1)
        if self.database.login(name, pwd):
            self.name = name
            self._reply(MsgType.LOGIN_RESPOND, LOGIN_OK)
        else:
            self._reply(MsgType.LOGIN_RESPOND, LOGIN_FAILED)

    def _all_online(self, pdu: PDU) -> None:
        names = self.database.all_online()
        self._reply(MsgType.ALL_ONLINE_RESPOND, msg=pack_names(names))

    def _search_user(self, pdu: PDU) -> None:
        result = self.database.search_user(pdu.data_text())
        self._reply(MsgType.SEARCH_USR_RESPOND, _SEARCH_REPLIES[result])

    def _add_friend(self, pdu: PDU) -> None:
        pername, name = pdu.data_slot(0), pdu.data_slot(1)
        result = self.database.check_add_friend(pername, name)
        if result == AddFriendResult.ONLINE:
            self.hub.resend(pername, pdu)
        else:
            self._reply(MsgType.ADD_FRIEND_RESPOND, _ADD_FRIEND_REPLIES[result])

    def _agree_friend(self, pdu: PDU) -> None:
        pername, name = pdu.data_slot(0), pdu.data_slot(1)
        self.database.agree_add_friend(pername, name)
        self.hub.resend(name, pdu)

    def _refuse_friend(self, pdu: PDU) -> None:
        self.hub.resend(pdu.data_slot(1), pdu)

    def _flush_friend(self, pdu: PDU) -> None:
        names = self.database.online_friends(pdu.data_slot(0))
        self._reply(MsgType.FLUSH_FRIEND_RESPOND, msg=pack_names(names))

    def _delete_friend(self, pdu: PDU) -> None:
        name, friend_name = pdu.data_slot(0), pdu.data_slot(1)
        self.database.delete_friend(name, friend_name)
        self._reply(MsgType.DELETE_FRIEND_RESPOND, DEL_FRIEND_OK)
        self.hub.resend(friend_name, pdu)

    def _private_chat(self, pdu: PDU) -> None:
        self.hub.resend(pdu.data_slot(1), pdu)

    def _group_chat(self, pdu: PDU) -> None:
        for friend in self.database.online_friends(pdu.data_slot(0)):
            self.hub.resend(friend, pdu)

    # -- files -----------------------------------------------------------

    def _create_dir(self, pdu: PDU) -> None:
        text = storage.create_directory(self._path(pdu.msg_text()), pdu.data_slot(1))
        self._reply(MsgType.CREATE_DIR_RESPOND, text)

    def _flush_file(self, pdu: PDU) -> None:
        listing = self._listing(self._path(pdu.msg_text()))
        self._reply(MsgType.FLUSH_FILE_RESPOND, msg=listing)

    def _delete_dir(self, pdu: PDU) -> None:
        text = storage.delete_directory(self._path(pdu.msg_text()), pdu.data_text())
        self._reply(MsgType.DEL_DIR_RESPOND, text)

    def _rename(self, pdu: PDU) -> None:
        ok = storage.rename_entry(
            self._path(pdu.msg_text()), pdu.data_slot(0), pdu.data_slot(1)
        )
        self._reply(
            MsgType.RENAME_FILE_RESPOND, RENAME_FILE_OK if ok else RENAME_FILE_FAILURED
        )

    def _enter_dir(self, pdu: PDU) -> None:
        try:
            infos = storage.enter_directory(self._path(pdu.msg_text()), pdu.data_slot(0))
        except NotADirectoryError:
            self._reply(MsgType.ENTER_DIR_RESPOND, ENTER_DIR_FAILURED)
            return
        except OSError:
            return
        self._reply(MsgType.FLUSH_FILE_RESPOND, msg=pack_file_infos(infos))

    def _delete_file(self, pdu: PDU) -> None:
        text = storage.delete_file(self._path(pdu.msg_text()), pdu.data_text())
        self._reply(MsgType.DEL_FILE_RESPOND, text)

    def _upload_request(self, pdu: PDU) -> None:
        fields = pdu.data_text().split()
        if not fields:
            return
        try:
            total = int(fields[1])
        except (IndexError, ValueError):
            total = 0
        path = os.path.join(self._path(pdu.msg_text()), fields[0])
        try:
            handle = open(path, "wb")
        except OSError as exc:
            log.warning("cannot open upload target %s: %s", path, exc)
            return
        self._upload = _Upload(handle, total)
        if total == 0:
            self._finish_upload(UPLOAD_FILE_OK)

    def _receive_upload(self, data: bytes) -> None:
        upload = self._upload
        upload.handle.write(data)
        upload.received += len(data)
        if upload.received == upload.total:
            self._finish_upload(UPLOAD_FILE_OK)
        elif upload.received > upload.total:
            self._finish_upload(UPLOAD_FILE_FAILURED)

    def _finish_upload(self, text: str) -> None:
        self._upload.handle.close()
        self._upload = None
        self._reply(MsgType.UPLOAD_FILE_RESPOND, text)

    def _download(self, pdu: PDU) -> None:
        name = pdu.data_text()
        path = os.path.join(self._path(pdu.msg_text()), name)
        is_file = os.path.isfile(path)
        size = os.path.getsize(path) if is_file else 0
        self._reply(MsgType.DOWNLOAD_FILE_RESPOND, _fit_data(f"{name} {size}"))
        if not is_file:
            return
        try:
            for chunk in storage.read_chunks(path):
                self.send(chunk)
        except OSError as exc:
            log.warning("sending %s failed: %s", path, exc)

    def _share(self, pdu: PDU) -> None:
        fields = pdu.data_text().split()
        sender = fields[0] if fields else ""
        try:
            count = max(int(fields[1]), 0)
        except (IndexError, ValueError):
            count = 0
        size = count * NAME_SIZE
        note = make_pdu(MsgType.SHARE_FILE_NOTE_REQUEST, sender, pdu.msg[size:])
        for receiver in unpack_names(pdu.msg[:size]):
            self.hub.resend(receiver, note)
        self._reply(MsgType.SHARE_FILE_RESPOND, SHARE_FILE_OK)

    def _share_accepted(self, pdu: PDU) -> None:
        storage.receive_share(pdu.data_text(), pdu.msg_text().lstrip("/"), self.root)

    def _move(self, pdu: PDU) -> None:
        fields = pdu.data_text().split()
        try:
            src_len = max(int(fields[0]), 0)
            dest_len = max(int(fields[1]), 0)
            file_name = fields[2]
        except (IndexError, ValueError):
            self._reply(MsgType.MOVE_FILE_RESPOND, "")
            return
        src = pdu.msg[:src_len].decode("utf-8", errors="replace")
        start = src_len + 1
        dest = pdu.msg[start:start + dest_len].decode("utf-8", errors="replace")
        if not src or not dest:
            self._reply(MsgType.MOVE_FILE_RESPOND, "")
            return
        text = storage.move_file(self._path(src), self._path(dest), file_name)
        self._reply(MsgType.MOVE_FILE_RESPOND, text)