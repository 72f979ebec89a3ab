import struct

import pytest

from cloudshelf.protocol import (
    HEADER_SIZE,
    PDU,
    FileInfo,
    MsgType,
    PDUReader,
    ProtocolError,
    make_pdu,
    pack_file_infos,
    pack_names,
    unpack_file_infos,
    unpack_names,
)


def test_empty_pdu_is_header_only():
    raw = make_pdu(MsgType.LOGIN_REQUEST).to_bytes()
    assert len(raw) == 76
    assert raw[:8] == struct.pack("<II", 76, int(MsgType.LOGIN_REQUEST))


def test_round_trip_keeps_fields():
    pdu = make_pdu(MsgType.FLUSH_FILE_REQUEST, "alice", "./alice")
    back = PDU.from_bytes(pdu.to_bytes())
    assert back.msg_type is MsgType.FLUSH_FILE_REQUEST
    assert back.data_text() == "alice"
    assert back.msg_text() == "./alice"
    assert back.msg == b"./alice\0"
    assert back.pdu_len == HEADER_SIZE + len(back.msg)


def test_name_slots():
    pdu = make_pdu(MsgType.ADD_FRIEND_REQUEST, ["bob", "alice"])
    assert pdu.data_slot(0) == "bob"
    assert pdu.data_slot(1) == "alice"
    with pytest.raises(IndexError):
        pdu.data_slot(2)


def test_data_too_long():
    with pytest.raises(ProtocolError):
        make_pdu(MsgType.LOGIN_REQUEST, "x" * 65)


def test_too_many_slots():
    with pytest.raises(ProtocolError):
        make_pdu(MsgType.LOGIN_REQUEST, ["a", "b", "c"])


def test_unknown_type_is_kept():
    pdu = PDU.from_bytes(PDU(12345).to_bytes())
    assert pdu.msg_type == 12345


def test_from_bytes_rejects_mismatched_length():
    raw = make_pdu(MsgType.LOGIN_REQUEST, msg=b"abc").to_bytes()
    with pytest.raises(ProtocolError):
        PDU.from_bytes(raw[:-1])
    with pytest.raises(ProtocolError):
        PDU.from_bytes(raw[:10])


def test_names_round_trip():
    names = ["alice", "bob", "x" * 32]
    raw = pack_names(names)
    assert len(raw) == 32 * len(names)
    assert unpack_names(raw) == names


def test_name_too_long():
    with pytest.raises(ProtocolError):
        pack_names(["y" * 33])


def test_file_info_round_trip():
    infos = [FileInfo("docs", FileInfo.DIRECTORY), FileInfo("a.txt", FileInfo.REGULAR)]
    raw = pack_file_infos(infos)
    assert len(raw) == 36 * 2
    back = unpack_file_infos(raw)
    assert back == infos
    assert back[0].is_dir and not back[1].is_dir


def test_file_info_bad_size():
    with pytest.raises(ProtocolError):
        FileInfo.from_bytes(b"\0" * 10)


def test_reader_reassembles_fragments():
    first = make_pdu(MsgType.REGIST_RESPOND, "regist ok").to_bytes()
    second = make_pdu(MsgType.GROUP_CHAT_REQUEST, "bob", "hi").to_bytes()
    stream = first + second
    reader = PDUReader()
    got = []
    for i in range(0, len(stream), 7):
        got.extend(reader.feed(stream[i:i + 7]))
    assert [p.msg_type for p in got] == [MsgType.REGIST_RESPOND, MsgType.GROUP_CHAT_REQUEST]
    assert got[1].msg_text() == "hi"
    assert reader.buffer == bytearray()


def test_reader_leaves_unconsumed_bytes():
    pdu = make_pdu(MsgType.UPLOAD_FILE_REQUEST, "f.txt 3").to_bytes()
    reader = PDUReader()
    it = reader.feed(pdu + make_pdu(MsgType.LOGIN_REQUEST).to_bytes())
    assert next(it).data_text() == "f.txt 3"
    assert PDU.from_bytes(bytes(reader.buffer)).msg_type is MsgType.LOGIN_REQUEST


def test_reader_rejects_short_length():
    reader = PDUReader()
    with pytest.raises(ProtocolError):
        list(reader.feed(struct.pack("<I", 4) + b"\0" * 80))