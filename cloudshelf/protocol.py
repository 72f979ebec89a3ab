"""Wire format shared by the cloud storage client and server.

Every message is a protocol data unit (PDU): a fixed 76-byte header
(total length, message type, 64 bytes of data, message length) followed
by a variable-length message body. All integers are little-endian.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Iterator, Sequence, Union

REGIST_OK = "regist ok"
REGIST_FAILED = "regist failed : name existed"
LOGIN_OK = "login ok"
LOGIN_FAILED = "login failed : name error or pwd error or relogin"
SEARCH_USR_NO = "no such people"
SEARCH_USR_ONLINE = "online"
SEARCH_USR_OFFLINE = "offline"
UNKNOW_ERROR = "unknow error"
EXISTED_FRIEND = "friend exist"
ADD_FRIEND_OFFLINE = "usr offline"
ADD_FRIEND_NO_EXIST = "usr not exist"
DEL_FRIEND_OK = "delete friend ok"
DIR_NO_EXIST = "cur dir not exist"
FILE_NAME_EXIST = "file name exist"
CREAT_DIR_OK = "create dir ok"
DEL_DIR_OK = "delete dir ok"
DEL_DIR_FAILURED = "delete dir failured: is reguler file"
RENAME_FILE_OK = "rename file ok"
RENAME_FILE_FAILURED = "rename file failured"
ENTER_DIR_FAILURED = "enter dir failured: is reguler file"
DEL_FILE_OK = "delete file ok"
DEL_FILE_FAILURED = "delete file failured: is diretory"
UPLOAD_FILE_OK = "upload file ok"
UPLOAD_FILE_FAILURED = "upload file failured"
MOVE_FILE_OK = "move file ok"
MOVE_FILE_FAILURED = "move file failured:is reguler file"
COMMON_ERR = "operate failed: system is busy"
SHARE_FILE_OK = "share file ok"

DATA_SIZE = 64
NAME_SIZE = 32
_HEADER = struct.Struct("<II64sI")
HEADER_SIZE = _HEADER.size
_LENGTH = struct.Struct("<I")
_FILE_INFO = struct.Struct("<32si")
FILE_INFO_SIZE = _FILE_INFO.size


class ProtocolError(ValueError):
    """Raised when bytes do not form a valid PDU."""


class MsgType(IntEnum):
    MIN = 0
    REGIST_REQUEST = 1
    REGIST_RESPOND = 2
    LOGIN_REQUEST = 3
    LOGIN_RESPOND = 4
    ALL_ONLINE_REQUEST = 5
    ALL_ONLINE_RESPOND = 6
    SEARCH_USR_REQUEST = 7
    SEARCH_USR_RESPOND = 8
    ADD_FRIEND_REQUEST = 9
    ADD_FRIEND_RESPOND = 10
    ADD_FRIEND_AGREE = 11
    ADD_FRIEND_REFUSE = 12
    FLUSH_FRIEND_REQUEST = 13
    FLUSH_FRIEND_RESPOND = 14
    DELETE_FRIEND_REQUEST = 15
    DELETE_FRIEND_RESPOND = 16
    PRIVATE_CHAT_REQUEST = 17
    PRIVATE_CHAT_RESPOND = 18
    GROUP_CHAT_REQUEST = 19
    GROUP_CHAT_RESPOND = 20
    CREATE_DIR_REQUEST = 21
    CREATE_DIR_RESPOND = 22
    FLUSH_FILE_REQUEST = 23
    FLUSH_FILE_RESPOND = 24
    DEL_DIR_REQUEST = 25
    DEL_DIR_RESPOND = 26
    RENAME_FILE_REQUEST = 27
    RENAME_FILE_RESPOND = 28
    ENTER_DIR_REQUEST = 29
    ENTER_DIR_RESPOND = 30
    DEL_FILE_REQUEST = 31
    DEL_FILE_RESPOND = 32
    UPLOAD_FILE_REQUEST = 33
    UPLOAD_FILE_RESPOND = 34
    DOWNLOAD_FILE_REQUEST = 35
    DOWNLOAD_FILE_RESPOND = 36
    SHARE_FILE_REQUEST = 37
    SHARE_FILE_RESPOND = 38
    SHARE_FILE_NOTE_REQUEST = 39
    SHARE_FILE_NOTE_RESPOND = 40
    MOVE_FILE_REQUEST = 41
    MOVE_FILE_RESPOND = 42
    MAX = 0x00FFFFFF


def _c_string(raw: bytes) -> str:
    """Decode bytes up to the first NUL."""
    return raw.split(b"\0", 1)[0].decode("utf-8", errors="replace")


def _encode(value: Union[str, bytes]) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def _as_type(value: int) -> int:
    try:
        return MsgType(value)
    except ValueError:
        return value


@dataclass
class PDU:
    """One protocol data unit."""

    msg_type: int
    data: bytes = b""
    msg: bytes = b""

    def __post_init__(self) -> None:
        self.msg_type = _as_type(int(self.msg_type))
        data = bytes(self.data)
        if len(data) > DATA_SIZE:
            raise ProtocolError(f"data field holds at most {DATA_SIZE} bytes")
        self.data = data.ljust(DATA_SIZE, b"\0")
        self.msg = bytes(self.msg)

    @property
    def pdu_len(self) -> int:
        return HEADER_SIZE + len(self.msg)

    @property
    def msg_len(self) -> int:
        return len(self.msg)

    def to_bytes(self) -> bytes:
        header = _HEADER.pack(self.pdu_len, int(self.msg_type), self.data, self.msg_len)
        return header + self.msg

    @classmethod
    def from_bytes(cls, raw: bytes) -> "PDU":
        raw = bytes(raw)
        if len(raw) < HEADER_SIZE:
            raise ProtocolError("too short for a PDU header")
        pdu_len, msg_type, data, msg_len = _HEADER.unpack_from(raw)
        if pdu_len != len(raw):
            raise ProtocolError(f"length field {pdu_len} does not match {len(raw)} bytes")
        if msg_len != pdu_len - HEADER_SIZE:
            raise ProtocolError("message length field is inconsistent")
        return cls(msg_type, data, raw[HEADER_SIZE:])

    def data_text(self) -> str:
        """The data field as a NUL-terminated string."""
        return _c_string(self.data)

    def data_slot(self, index: int) -> str:
        """One of the two 32-byte name slots of the data field."""
        if index not in (0, 1):
            raise IndexError("data slot index must be 0 or 1")
        start = index * NAME_SIZE
        return _c_string(self.data[start:start + NAME_SIZE])

    def msg_text(self) -> str:
        """The message body as a NUL-terminated string."""
        return _c_string(self.msg)


def _pack_data(data: Union[str, bytes, Sequence[str]]) -> bytes:
    if isinstance(data, (str, bytes, bytearray)):
        return _encode(data)
    slots = list(data)
    if len(slots) > DATA_SIZE // NAME_SIZE:
        raise ProtocolError("data field holds at most two name slots")
    return pack_names(slots)


def make_pdu(
    msg_type: int,
    data: Union[str, bytes, Sequence[str]] = b"",
    msg: Union[str, bytes] = b"",
) -> PDU:
    """Build a PDU.

    ``data`` may be text, bytes, or a sequence of up to two names, each
    placed in its own 32-byte slot. A text ``msg`` is NUL-terminated.
    """
    body = msg.encode("utf-8") + b"\0" if isinstance(msg, str) else bytes(msg)
    return PDU(msg_type, _pack_data(data), body)


def pack_names(names: Iterable[str]) -> bytes:
    """Pack names into consecutive 32-byte NUL-padded slots."""
    out = bytearray()
    for name in names:
        raw = _encode(name)
        if len(raw) > NAME_SIZE:
            raise ProtocolError(f"name {name!r} is longer than {NAME_SIZE} bytes")
        out += raw.ljust(NAME_SIZE, b"\0")
    return bytes(out)


def unpack_names(raw: bytes) -> list[str]:
    """Split bytes into names, one per whole 32-byte slot."""
    count = len(raw) // NAME_SIZE
    return [_c_string(raw[i * NAME_SIZE:(i + 1) * NAME_SIZE]) for i in range(count)]


@dataclass(frozen=True)
class FileInfo:
    """One directory entry: a name and its type."""

    name: str
    file_type: int = 0

    DIRECTORY = 0
    REGULAR = 1

    @property
    def is_dir(self) -> bool:
        return self.file_type == self.DIRECTORY

    def to_bytes(self) -> bytes:
        raw = self.name.encode("utf-8")
        if len(raw) > NAME_SIZE:
            raise ProtocolError(f"file name {self.name!r} is longer than {NAME_SIZE} bytes")
        return _FILE_INFO.pack(raw, self.file_type)

    @classmethod
    def from_bytes(cls, raw: bytes) -> "FileInfo":
        if len(raw) != FILE_INFO_SIZE:
            raise ProtocolError(f"a file entry is {FILE_INFO_SIZE} bytes")
        name, file_type = _FILE_INFO.unpack(raw)
        return cls(_c_string(name), file_type)


def pack_file_infos(infos: Iterable[FileInfo]) -> bytes:
    return b"".join(info.to_bytes() for info in infos)


def unpack_file_infos(raw: bytes) -> list[FileInfo]:
    count = len(raw) // FILE_INFO_SIZE
    return [
        FileInfo.from_bytes(raw[i * FILE_INFO_SIZE:(i + 1) * FILE_INFO_SIZE])
        for i in range(count)
    ]


class PDUReader:
    """Reassembles PDUs from a byte stream.

    Bytes not yet consumed stay in ``buffer``, so a caller that switches to
    raw data transfer can take them from there.
    """

    def __init__(self) -> None:
        self.buffer = bytearray()

    def feed(self, data: bytes) -> Iterator[PDU]:
        """Add bytes and return an iterator over the complete PDUs so far.

        PDUs are taken from the buffer one at a time as the iterator advances.
        """
        self.buffer += data
        return self._pdus()

    def _pdus(self) -> Iterator[PDU]:
        while len(self.buffer) >= _LENGTH.size:
            (length,) = _LENGTH.unpack_from(self.buffer)
            if length < HEADER_SIZE:
                raise ProtocolError(f"length field {length} is smaller than the header")
            if len(self.buffer) < length:
                return
            raw = bytes(self.buffer[:length])
            del self.buffer[:length]
            yield PDU.from_bytes(raw)