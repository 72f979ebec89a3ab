import socket
import threading
import time

import pytest

from cloudshelf.database import UserDatabase
from cloudshelf.protocol import (
    LOGIN_OK,
    REGIST_OK,
    MsgType,
    PDU,
    PDUReader,
    make_pdu,
)
from cloudshelf.server import CloudServer, Hub, load_config, main

PASSWORD = "password"


class _FakeSession:
    def __init__(self, name):
        self.name = name
        self.received = []
        self.send = self.received.append


def test_resend_reaches_named_session_only():
    hub = Hub()
    alice, bob = _FakeSession("alice"), _FakeSession("bob")
    hub.add(alice)
    hub.add(bob)
    pdu = make_pdu(MsgType.PRIVATE_CHAT_REQUEST, ["alice", "bob"], "hi")
    assert hub.resend("bob", pdu) is True
    assert bob.received == [pdu.to_bytes()]
    assert alice.received == []


def test_resend_to_unknown_or_anonymous_fails():
    hub = Hub()
    anonymous = _FakeSession("")
    hub.add(anonymous)
    pdu = make_pdu(MsgType.PRIVATE_CHAT_REQUEST)
    assert hub.resend("carol", pdu) is False
    assert hub.resend("", pdu) is False
    assert anonymous.received == []


def test_remove_drops_session():
    hub = Hub()
    alice = _FakeSession("alice")
    hub.add(alice)
    hub.remove(alice)
    hub.remove(alice)
    assert alice not in hub
    assert len(hub) == 0
    assert hub.resend("alice", make_pdu(MsgType.PRIVATE_CHAT_REQUEST)) is False


def test_load_config_reads_address_and_port():
    assert load_config("127.0.0.1\r\n8888") == ("127.0.0.1", 8888)
    assert load_config("0.0.0.0 5000\n") == ("0.0.0.0", 5000)


@pytest.mark.parametrize("text", ["", "127.0.0.1", "127.0.0.1 port", "127.0.0.1 70000"])
def test_load_config_rejects_bad_text(text):
    with pytest.raises(ValueError):
        load_config(text)


def test_main_fails_without_config(tmp_path):
    missing = tmp_path / "absent.config"
    assert main(["--config", str(missing), "--root", str(tmp_path)]) == 1


def test_main_fails_on_bad_config(tmp_path):
    config = tmp_path / "server.config"
    config.write_text("only-an-address")
    assert main(["--config", str(config), "--root", str(tmp_path)]) == 1


@pytest.fixture
def server_address(tmp_path):
    with socket.socket() as probe:
        probe.bind(("127.0.0.1", 0))
        port = probe.getsockname()[1]

    def run():
        with UserDatabase() as database:
            CloudServer(database, str(tmp_path)).serve("127.0.0.1", port)

    threading.Thread(target=run, daemon=True).start()
    deadline = time.monotonic() + 5
    while True:
        try:
            socket.create_connection(("127.0.0.1", port), timeout=1).close()
            break
        except OSError:
            if time.monotonic() > deadline:
                raise
            time.sleep(0.05)
    return "127.0.0.1", port


def _recv_pdu(sock, reader):
    pdu = next(reader.feed(b""), None)
    while pdu is None:
        chunk = sock.recv(4096)
        if not chunk:
            raise ConnectionError("server closed the connection")
        pdu = next(reader.feed(chunk), None)
    return pdu


def _request(sock, reader, pdu):
    sock.sendall(pdu.to_bytes())
    return _recv_pdu(sock, reader)


def test_clients_register_login_and_chat(server_address, tmp_path):
    with socket.create_connection(server_address, timeout=5) as alice, \
            socket.create_connection(server_address, timeout=5) as bob:
        alice_reader, bob_reader = PDUReader(), PDUReader()
        for sock, reader, name in ((alice, alice_reader, "alice"), (bob, bob_reader, "bob")):
            reply = _request(sock, reader, make_pdu(MsgType.REGIST_REQUEST, [name, PASSWORD]))
            assert reply.data_text() == REGIST_OK
            reply = _request(sock, reader, make_pdu(MsgType.LOGIN_REQUEST, [name, PASSWORD]))
            assert reply.data_text() == LOGIN_OK

        chat = make_pdu(MsgType.PRIVATE_CHAT_REQUEST, ["bob", "alice"], "hi")
        bob.sendall(chat.to_bytes())
        received = _recv_pdu(alice, alice_reader)
        assert received == chat
        assert received.msg_text() == "hi"
    assert (tmp_path / "alice").is_dir()
    assert (tmp_path / "bob").is_dir()


def test_server_reports_online_users(server_address):
    with socket.create_connection(server_address, timeout=5) as sock:
        reader = PDUReader()
        _request(sock, reader, make_pdu(MsgType.REGIST_REQUEST, ["carol", PASSWORD]))
        _request(sock, reader, make_pdu(MsgType.LOGIN_REQUEST, ["carol", PASSWORD]))
        reply = _request(sock, reader, make_pdu(MsgType.ALL_ONLINE_REQUEST))
        assert isinstance(reply, PDU)
        assert reply.msg_type == MsgType.ALL_ONLINE_RESPOND
        assert "carol" in reply.msg.decode("utf-8", errors="ignore")