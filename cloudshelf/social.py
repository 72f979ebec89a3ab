"""Client-side friends, chat and file-sharing state and requests."""

from __future__ import annotations

from typing import Iterable

from .protocol import PDU, MsgType, make_pdu, pack_names, unpack_names


def _says(sender: str, text: str) -> str:
    return f"{sender} says: {text}"


class FriendPanel:
    """Friend list, online users and group chat of the logged-in user."""

    def __init__(self, login_name: str) -> None:
        self.login_name = login_name
        self.search_name = ""
        self.online: list[str] = []
        self.friends: list[str] = []
        self.messages: list[str] = []

    def online_request(self) -> PDU:
        """Ask for every user that is online."""
        return make_pdu(MsgType.ALL_ONLINE_REQUEST)

    def search_request(self, name: str) -> PDU:
        """Ask whether ``name`` exists and is online."""
        if not name:
            raise ValueError("the user name to search for must not be empty")
        self.search_name = name
        return make_pdu(MsgType.SEARCH_USR_REQUEST, name)

    def flush_request(self) -> PDU:
        """Ask for the friends of the logged-in user that are online."""
        return make_pdu(MsgType.FLUSH_FRIEND_REQUEST, self.login_name)

    def delete_request(self, friend_name: str) -> PDU:
        if not friend_name:
            raise ValueError("choose the friend to delete")
        return make_pdu(MsgType.DELETE_FRIEND_REQUEST, [self.login_name, friend_name])

    def add_friend_request(self, name: str) -> PDU:
        """Ask ``name`` to become a friend of the logged-in user."""
        if not name:
            raise ValueError("choose the user to add")
        return make_pdu(MsgType.ADD_FRIEND_REQUEST, [name, self.login_name])

    def group_chat_request(self, message: str) -> PDU:
        """Send ``message`` to every online friend."""
        if not message:
            raise ValueError("the message must not be empty")
        return make_pdu(MsgType.GROUP_CHAT_REQUEST, self.login_name, message)

    def online_users(self, pdu: PDU) -> list[str]:
        """Take a reply listing online users; the names are added to ``online``."""
        names = unpack_names(pdu.msg)
        self.online.extend(names)
        return names

    def update_friend_list(self, pdu: PDU) -> list[str]:
        """Take a reply listing online friends; the names are added to ``friends``."""
        names = unpack_names(pdu.msg)
        self.friends.extend(names)
        return names

    def format_group_message(self, pdu: PDU) -> str:
        """Render a group chat message and keep it in ``messages``."""
        text = _says(pdu.data_text(), pdu.msg_text())
        self.messages.append(text)
        return text


class PrivateChat:
    """A one-to-one conversation with a single friend."""

    def __init__(self, login_name: str) -> None:
        self.login_name = login_name
        self.chat_name = ""
        self.messages: list[str] = []

    def set_chat_name(self, name: str) -> None:
        self.chat_name = name

    def send_request(self, message: str) -> PDU:
        """Build the request carrying ``message`` to the chat partner."""
        if not message:
            raise ValueError("the chat message must not be empty")
        if not self.chat_name:
            raise ValueError("no chat partner has been chosen")
        return make_pdu(
            MsgType.PRIVATE_CHAT_REQUEST, [self.login_name, self.chat_name], message
        )

    def format_message(self, pdu: PDU) -> str:
        """Render a received private message and keep it in ``messages``."""
        text = _says(pdu.data_slot(0), pdu.msg_text())
        self.messages.append(text)
        return text


class ShareSelection:
    """Friends offered as receivers of a shared file, each checked or not."""

    def __init__(self) -> None:
        self.choices: dict[str, bool] = {}

    @property
    def selected(self) -> list[str]:
        return [name for name, checked in self.choices.items() if checked]

    def update_friends(self, names: Iterable[str]) -> None:
        """Replace the offered friends; none of them is checked."""
        self.choices = {name: False for name in names}

    def select_all(self) -> None:
        for name in self.choices:
            self.choices[name] = True

    def cancel_select(self) -> None:
        for name in self.choices:
            self.choices[name] = False

    def toggle(self, name: str) -> bool:
        """Flip the check of ``name`` and return its new state."""
        if name not in self.choices:
            raise KeyError(name)
        self.choices[name] = not self.choices[name]
        return self.choices[name]

    def share_request(self, login_name: str, cur_path: str, file_name: str) -> PDU:
        """Share ``cur_path/file_name`` with every checked friend."""
        receivers = self.selected
        path = f"{cur_path}/{file_name}"
        body = pack_names(receivers) + path.encode("utf-8") + b"\0"
        return make_pdu(
            MsgType.SHARE_FILE_REQUEST, f"{login_name} {len(receivers)}", body
        )