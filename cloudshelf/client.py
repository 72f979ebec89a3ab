"""The storage client: reacts to server replies and drives the other panels."""

from __future__ import annotations

import argparse
import socket
import sys
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .files import Download, FileBrowser
from .protocol import (
    LOGIN_FAILED,
    LOGIN_OK,
    NAME_SIZE,
    PDU,
    REGIST_FAILED,
    REGIST_OK,
    SEARCH_USR_NO,
    SEARCH_USR_OFFLINE,
    SEARCH_USR_ONLINE,
    MsgType,
    PDUReader,
    make_pdu,
)
from .server import load_config as _parse_config
from .social import FriendPanel, PrivateChat, ShareSelection

INFO = "info"
WARNING = "warning"
ERROR = "error"
QUESTION = "question"

# Replies whose data field is simply shown to the user, with their titles.
_PLAIN_REPLIES = {
    MsgType.ADD_FRIEND_RESPOND: "Add friend",
    MsgType.CREATE_DIR_RESPOND: "Create directory",
    MsgType.DEL_DIR_RESPOND: "Delete directory",
    MsgType.RENAME_FILE_RESPOND: "Rename file",
    MsgType.UPLOAD_FILE_RESPOND: "Upload file",
    MsgType.DEL_FILE_RESPOND: "Delete file",
    MsgType.SHARE_FILE_RESPOND: "Share file",
    MsgType.MOVE_FILE_RESPOND: "Move file",
}

_SEARCH_STATES = {
    SEARCH_USR_NO: "not exist",
    SEARCH_USR_ONLINE: "online",
    SEARCH_USR_OFFLINE: "offline",
}


@dataclass(frozen=True)
class Notice:
    """A message for the user produced by a server reply."""

    title: str
    text: str
    level: str = INFO


def _truncate(text: str, size: int = NAME_SIZE) -> str:
    return text.encode("utf-8")[:size].decode("utf-8", errors="ignore")


def _never(notice: Notice) -> bool:
    return False


class CloudClient:
    """Client-side protocol state.

    ``send`` takes the bytes to write to the server. ``confirm`` is asked
    whenever the server puts a yes/no question to the user (a friend
    request or a shared file); by default every question is declined.
    """

    def __init__(self, send: Callable[[bytes], object]) -> None:
        self.send = send
        self.confirm: Callable[[Notice], bool] = _never
        self.login_name = ""
        self.logged_in = False
        self.friends = FriendPanel("")
        self.chat = PrivateChat("")
        self.share = ShareSelection()
        self.files = FileBrowser("")
        self.download: Optional[Download] = None
        self._reader = PDUReader()

    # -- requests ----------------------------------------------------------

    def _send_pdu(self, pdu: PDU) -> PDU:
        self.send(pdu.to_bytes())
        return pdu

    def _account_pdu(self, msg_type: MsgType, name: str, pwd: str) -> PDU:
        if not name or not pwd:
            raise ValueError("user name and password must not be empty")
        return make_pdu(msg_type, [_truncate(name), _truncate(pwd)])

    def login_request(self, name: str, pwd: str) -> PDU:
        """Send a login request and remember the name being logged in."""
        pdu = self._account_pdu(MsgType.LOGIN_REQUEST, name, pwd)
        self.login_name = name
        self.friends = FriendPanel(name)
        self.chat = PrivateChat(name)
        self.share = ShareSelection()
        return self._send_pdu(pdu)

    def register_request(self, name: str, pwd: str) -> PDU:
        """Send a registration request."""
        return self._send_pdu(self._account_pdu(MsgType.REGIST_REQUEST, name, pwd))

    # -- receiving ---------------------------------------------------------

    def feed(self, data: bytes) -> list[Notice]:
        """Process bytes from the server and return the resulting notices."""
        notices: list[Notice] = []
        if self.download is not None:
            self._receive_download(bytes(data), notices)
            return notices
        for pdu in self._reader.feed(data):
            notice = self.handle(pdu)
            if notice is not None:
                notices.append(notice)
            if self.download is not None:
                rest = bytes(self._reader.buffer)
                self._reader.buffer.clear()
                if rest:
                    self._receive_download(rest, notices)
                break
        return notices

    def _receive_download(self, data: bytes, notices: list[Notice]) -> None:
        download = self.download
        try:
            done = download.write(data)
        except ValueError:
            self.download = None
            notices.append(Notice("Download file", "download failed", ERROR))
            return
        if done:
            self.download = None
            notices.append(Notice("Download file", "download succeeded", INFO))

    def handle(self, pdu: PDU) -> Optional[Notice]:
        """Act on one reply from the server; returns a notice if there is one."""
        msg_type = pdu.msg_type
        text = pdu.data_text()

        if msg_type in _PLAIN_REPLIES:
            return Notice(_PLAIN_REPLIES[msg_type], text)

        if msg_type == MsgType.REGIST_RESPOND:
            if text == REGIST_OK:
                return Notice("Register", REGIST_OK, INFO)
            if text == REGIST_FAILED:
                return Notice("Register", REGIST_FAILED, WARNING)
            return None

        if msg_type == MsgType.LOGIN_RESPOND:
            if text == LOGIN_OK:
                self.logged_in = True
                self.files = FileBrowser(self.login_name)
                return Notice("Login", LOGIN_OK, INFO)
            if text == LOGIN_FAILED:
                return Notice("Login", LOGIN_FAILED, WARNING)
            return None

        if msg_type == MsgType.ALL_ONLINE_RESPOND:
            self.friends.online_users(pdu)
            return None

        if msg_type == MsgType.SEARCH_USR_RESPOND:
            state = _SEARCH_STATES.get(text)
            if state is None:
                return None
            return Notice("Search", f"{self.friends.search_name}: {state}")

        if msg_type == MsgType.ADD_FRIEND_REQUEST:
            notice = Notice(
                "Add friend", f"{pdu.data_slot(1)} wants to add you as friend", QUESTION
            )
            answer = (
                MsgType.ADD_FRIEND_AGREE if self.confirm(notice) else MsgType.ADD_FRIEND_REFUSE
            )
            self._send_pdu(make_pdu(answer, pdu.data))
            return notice

        if msg_type == MsgType.ADD_FRIEND_AGREE:
            return Notice("Add friend", f"added {pdu.data_slot(0)} as friend")

        if msg_type == MsgType.ADD_FRIEND_REFUSE:
            return Notice("Add friend", f"adding {pdu.data_slot(0)} as friend failed")

        if msg_type == MsgType.FLUSH_FRIEND_RESPOND:
            self.friends.update_friend_list(pdu)
            return None

        if msg_type == MsgType.DELETE_FRIEND_REQUEST:
            return Notice("Delete friend", f"{pdu.data_slot(0)} removed you as friend")

        if msg_type == MsgType.DELETE_FRIEND_RESPOND:
            return Notice("Delete friend", "friend deleted")

        if msg_type == MsgType.PRIVATE_CHAT_REQUEST:
            self.chat.set_chat_name(pdu.data_slot(0))
            self.chat.format_message(pdu)
            return None

        if msg_type == MsgType.GROUP_CHAT_REQUEST:
            self.friends.format_group_message(pdu)
            return None

        if msg_type == MsgType.FLUSH_FILE_RESPOND:
            self.files.update_file_list(pdu)
            return None

        if msg_type == MsgType.ENTER_DIR_RESPOND:
            self.files.clear_enter_dir()
            return Notice("Enter directory", text)

        if msg_type == MsgType.DOWNLOAD_FILE_RESPOND:
            return self._start_download(text)

        if msg_type == MsgType.SHARE_FILE_NOTE_REQUEST:
            return self._share_note(pdu)

        return None

    def _start_download(self, text: str) -> Optional[Notice]:
        fields = text.split()
        if len(fields) < 2:
            return None
        try:
            total = int(fields[1])
        except ValueError:
            return None
        if not fields[0] or total <= 0:
            return None
        try:
            self.download = Download(self.files.save_path, total)
        except OSError:
            return Notice("Download file", "cannot open the path to save the file", WARNING)
        return None

    def _share_note(self, pdu: PDU) -> Optional[Notice]:
        path = pdu.msg_text()
        if "/" not in path:
            return None
        file_name = path.rsplit("/", 1)[1]
        notice = Notice(
            "Share file",
            f"{pdu.data_text()} share file->{file_name} \n Do you accept?",
            QUESTION,
        )
        if self.confirm(notice):
            self._send_pdu(
                make_pdu(MsgType.SHARE_FILE_NOTE_RESPOND, _truncate(self.login_name), pdu.msg)
            )
        return notice


def load_config(text: str) -> tuple[str, int]:
    """Read the server address and port from configuration text."""
    return _parse_config(text)


_HELP = """commands:
  register NAME PWD | login NAME PWD
  online | search NAME | friends | add NAME | unfriend NAME
  chat NAME MESSAGE | group MESSAGE
  ls | cd NAME | up | mkdir NAME | rmdir NAME | rm NAME | rename OLD NEW
  upload PATH | download NAME SAVE_PATH | move NAME DEST_DIR
  share NAME FRIEND... | show | help | quit"""


def _run_command(client: CloudClient, words: list[str]) -> None:
    cmd, args = words[0], words[1:]
    files, friends = client.files, client.friends
    send = client._send_pdu
    if cmd == "register":
        client.register_request(*args[:2])
    elif cmd == "login":
        client.login_request(*args[:2])
    elif cmd == "online":
        send(friends.online_request())
    elif cmd == "search":
        send(friends.search_request(args[0]))
    elif cmd == "friends":
        send(friends.flush_request())
    elif cmd == "add":
        send(friends.add_friend_request(args[0]))
    elif cmd == "unfriend":
        send(friends.delete_request(args[0]))
    elif cmd == "chat":
        client.chat.set_chat_name(args[0])
        send(client.chat.send_request(" ".join(args[1:])))
    elif cmd == "group":
        send(friends.group_chat_request(" ".join(args)))
    elif cmd == "ls":
        send(files.flush_request())
    elif cmd == "cd":
        send(files.enter_dir_request(args[0]))
    elif cmd == "up":
        send(files.return_to_parent())
    elif cmd == "mkdir":
        send(files.create_dir_request(args[0]))
    elif cmd == "rmdir":
        send(files.delete_dir_request(args[0]))
    elif cmd == "rm":
        send(files.delete_file_request(args[0]))
    elif cmd == "rename":
        send(files.rename_request(args[0], args[1]))
    elif cmd == "upload":
        send(files.upload_request(args[0]))
        for chunk in files.upload_chunks():
            client.send(chunk)
    elif cmd == "download":
        send(files.download_request(args[0], args[1]))
    elif cmd == "move":
        files.begin_move(args[0])
        send(files.move_request(args[1]))
    elif cmd == "share":
        client.share.update_friends(args[1:])
        client.share.select_all()
        send(client.share.share_request(client.login_name, files.cur_path, args[0]))
    elif cmd == "show":
        print(f"path: {files.cur_path}")
        for entry in files.entries:
            print(("[dir] " if entry.is_dir else "      ") + entry.name)
        print("online:", ", ".join(friends.online))
        print("friends:", ", ".join(friends.friends))
        for line in friends.messages + client.chat.messages:
            print(line)
    else:
        print(_HELP)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="cloudshelf", description="Storage client console.")
    parser.add_argument("--config", default="client.config", help="file holding address and port")
    parser.add_argument(
        "--accept", action="store_true", help="accept friend requests and shared files"
    )
    args = parser.parse_args(argv)

    try:
        with open(args.config, encoding="utf-8") as handle:
            host, port = load_config(handle.read())
    except (OSError, ValueError) as exc:
        print(f"open config failed: {exc}", file=sys.stderr)
        return 1

    try:
        sock = socket.create_connection((host, port))
    except OSError as exc:
        print(f"cannot connect to the server: {exc}", file=sys.stderr)
        return 1
    print("connected to the server")

    lock = threading.Lock()
    client = CloudClient(sock.sendall)
    client.confirm = lambda notice: args.accept

    def receive() -> None:
        while True:
            try:
                data = sock.recv(65536)
            except OSError:
                break
            if not data:
                break
            with lock:
                notices = client.feed(data)
            for notice in notices:
                print(f"[{notice.title}] {notice.text}")
        print("disconnected")

    threading.Thread(target=receive, daemon=True).start()
    with sock:
        for line in sys.stdin:
            words = line.split()
            if not words:
                continue
            if words[0] == "quit":
                break
            try:
                with lock:
                    _run_command(client, words)
            except (ValueError, TypeError, IndexError, KeyError, OSError) as exc:
                print(f"error: {exc}")
    return 0


if __name__ == "__main__":
    sys.exit(main())