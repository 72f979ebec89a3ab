import pytest

from cloudshelf.protocol import (
    NAME_SIZE,
    PDU,
    MsgType,
    make_pdu,
    pack_names,
    unpack_names,
)
from cloudshelf.social import FriendPanel, PrivateChat, ShareSelection


def roundtrip(pdu):
    return PDU.from_bytes(pdu.to_bytes())


def test_online_request_type_and_empty_body():
    pdu = roundtrip(FriendPanel("alice").online_request())
    assert pdu.msg_type == MsgType.ALL_ONLINE_REQUEST
    assert pdu.msg == b""


def test_search_request_records_name():
    panel = FriendPanel("alice")
    pdu = roundtrip(panel.search_request("bob"))
    assert pdu.msg_type == MsgType.SEARCH_USR_REQUEST
    assert pdu.data_text() == "bob"
    assert panel.search_name == "bob"


def test_search_request_empty_rejected():
    with pytest.raises(ValueError):
        FriendPanel("alice").search_request("")


def test_flush_request_carries_login_name():
    pdu = roundtrip(FriendPanel("alice").flush_request())
    assert pdu.msg_type == MsgType.FLUSH_FRIEND_REQUEST
    assert pdu.data_text() == "alice"


def test_delete_request_slots():
    pdu = roundtrip(FriendPanel("alice").delete_request("bob"))
    assert pdu.msg_type == MsgType.DELETE_FRIEND_REQUEST
    assert (pdu.data_slot(0), pdu.data_slot(1)) == ("alice", "bob")


def test_delete_request_requires_friend():
    with pytest.raises(ValueError):
        FriendPanel("alice").delete_request("")


def test_add_friend_request_puts_target_first():
    pdu = roundtrip(FriendPanel("alice").add_friend_request("bob"))
    assert pdu.msg_type == MsgType.ADD_FRIEND_REQUEST
    assert (pdu.data_slot(0), pdu.data_slot(1)) == ("bob", "alice")


def test_group_chat_request():
    pdu = roundtrip(FriendPanel("alice").group_chat_request("hello all"))
    assert pdu.msg_type == MsgType.GROUP_CHAT_REQUEST
    assert pdu.data_text() == "alice"
    assert pdu.msg_text() == "hello all"
    assert pdu.msg.endswith(b"\0")


def test_group_chat_empty_rejected():
    with pytest.raises(ValueError):
        FriendPanel("alice").group_chat_request("")


def test_online_users_accumulate():
    panel = FriendPanel("alice")
    first = make_pdu(MsgType.ALL_ONLINE_RESPOND, msg=pack_names(["bob", "carol"]))
    second = make_pdu(MsgType.ALL_ONLINE_RESPOND, msg=pack_names(["dave"]))
    assert panel.online_users(first) == ["bob", "carol"]
    panel.online_users(second)
    assert panel.online == ["bob", "carol", "dave"]


def test_update_friend_list():
    panel = FriendPanel("alice")
    pdu = make_pdu(MsgType.FLUSH_FRIEND_RESPOND, msg=pack_names(["bob"]))
    assert panel.update_friend_list(pdu) == ["bob"]
    assert panel.friends == ["bob"]


def test_format_group_message():
    panel = FriendPanel("bob")
    pdu = make_pdu(MsgType.GROUP_CHAT_REQUEST, "alice", "hi")
    assert panel.format_group_message(pdu) == "alice says: hi"
    assert panel.messages == ["alice says: hi"]


def test_private_chat_request():
    chat = PrivateChat("alice")
    chat.set_chat_name("bob")
    pdu = roundtrip(chat.send_request("psst"))
    assert pdu.msg_type == MsgType.PRIVATE_CHAT_REQUEST
    assert (pdu.data_slot(0), pdu.data_slot(1)) == ("alice", "bob")
    assert pdu.msg_text() == "psst"


def test_private_chat_empty_message_rejected():
    chat = PrivateChat("alice")
    chat.set_chat_name("bob")
    with pytest.raises(ValueError):
        chat.send_request("")


def test_private_chat_format_message():
    chat = PrivateChat("bob")
    pdu = make_pdu(MsgType.PRIVATE_CHAT_REQUEST, ["alice", "bob"], "psst")
    assert chat.format_message(pdu) == "alice says: psst"
    assert chat.messages == ["alice says: psst"]


def test_share_selection_select_and_cancel():
    sel = ShareSelection()
    sel.update_friends(["bob", "carol"])
    assert sel.selected == []
    sel.select_all()
    assert sel.selected == ["bob", "carol"]
    sel.cancel_select()
    assert sel.selected == []


def test_share_selection_toggle():
    sel = ShareSelection()
    sel.update_friends(["bob", "carol"])
    assert sel.toggle("carol") is True
    assert sel.selected == ["carol"]
    assert sel.toggle("carol") is False
    with pytest.raises(KeyError):
        sel.toggle("nobody")


def test_update_friends_replaces_and_unchecks():
    sel = ShareSelection()
    sel.update_friends(["bob"])
    sel.select_all()
    sel.update_friends(["carol", "dave"])
    assert list(sel.choices) == ["carol", "dave"]
    assert sel.selected == []


def test_share_request_layout():
    sel = ShareSelection()
    sel.update_friends(["bob", "carol", "dave"])
    sel.toggle("bob")
    sel.toggle("dave")
    pdu = roundtrip(sel.share_request("alice", "./alice", "notes.txt"))
    assert pdu.msg_type == MsgType.SHARE_FILE_REQUEST
    assert pdu.data_text().split() == ["alice", "2"]
    assert unpack_names(pdu.msg[: 2 * NAME_SIZE]) == ["bob", "dave"]
    tail = pdu.msg[2 * NAME_SIZE:]
    assert tail.rstrip(b"\0").decode() == "./alice/notes.txt"
    assert pdu.msg_len == 2 * NAME_SIZE + len("./alice/notes.txt") + 1