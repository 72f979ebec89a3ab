"""The storage server: connection registry, network loop and command."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional, Sequence

from .database import UserDatabase
from .protocol import PDU
from .session import Session

log = logging.getLogger(__name__)


class Hub:
    """Registry of connected sessions, used to forward PDUs between users."""

    def __init__(self) -> None:
        self._sessions: list = []

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session) -> bool:
        return session in self._sessions

    def add(self, session) -> None:
        self._sessions.append(session)

    def remove(self, session) -> None:
        try:
            self._sessions.remove(session)
        except ValueError:
            pass

    def resend(self, name: str, pdu: PDU) -> bool:
        """Send ``pdu`` to the first session logged in as ``name``."""
        if not name:
            return False
        for session in self._sessions:
            if session.name == name:
                session.send(pdu.to_bytes())
                return True
        return False


class CloudServer:
    """Accepts clients and gives each one its own Session."""

    def __init__(self, database: UserDatabase, root: str) -> None:
        self.database = database
        self.root = root
        self.hub = Hub()

    def serve(self, host: str, port: int) -> None:
        """Listen on ``host``:``port`` and serve clients until interrupted."""
        asyncio.run(self._serve(host, port))

    async def _serve(self, host: str, port: int) -> None:
        server = await asyncio.start_server(self._handle_connection, host, port)
        log.info("listening on %s:%s", host, port)
        async with server:
            await server.serve_forever()

    async def _handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        log.info("new client connected")
        session = Session(writer.write, self.hub, self.database, self.root)
        self.hub.add(session)
        try:
            while True:
                data = await reader.read(65536)
                if not data:
                    break
                session.feed(data)
                await writer.drain()
        except ConnectionError:
            pass
        except Exception:
            log.exception("client session failed")
        finally:
            session.close()
            writer.close()


def load_config(text: str) -> tuple[str, int]:
    """Read the listening address and port from configuration text."""
    fields = text.replace("\r\n", " ").split()
    if len(fields) < 2:
        raise ValueError("configuration must hold an address and a port")
    host, port_text = fields[0], fields[1]
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"invalid port {port_text!r}") from None
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"port {port} out of range")
    return host, port


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="cloudshelf-server", description="Run the storage server.")
    parser.add_argument("--config", default="server.config", help="file holding address and port")
    parser.add_argument("--database", default="cloud.db", help="SQLite database file")
    parser.add_argument("--root", default=".", help="directory holding users' storage")
    args = parser.parse_args(argv)

    try:
        with open(args.config, encoding="utf-8") as handle:
            host, port = load_config(handle.read())
    except (OSError, ValueError) as exc:
        print(f"open config failed: {exc}", file=sys.stderr)
        return 1

    logging.basicConfig(level=logging.INFO)
    os.makedirs(args.root, exist_ok=True)
    with UserDatabase(args.database) as database:
        try:
            CloudServer(database, args.root).serve(host, port)
        except KeyboardInterrupt:
            pass
    return 0


if __name__ == "__main__":
    sys.exit(main())