# cloudshelf

cloudshelf is a small cloud file-sharing service. A server keeps user
accounts and friendships in an SQLite database and a storage directory per
user; clients log in, manage friends, chat privately or with all online
friends, and browse, upload, download, move and share files.

Client and server talk over TCP using protocol data units (PDUs): a
76-byte little-endian header holding the total length, the message type,
a 64-byte data field and the message length, followed by a
variable-length message body.

## Installation

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Configuration

Both commands read the address to use from a configuration file holding
an IP address and a port separated by whitespace or a line break:

```
127.0.0.1
8888
```

## Running the server

```
cloudshelf-server --config server.config --database cloud.db --root .
```

- `--config` – file holding address and port (default `server.config`)
- `--database` – SQLite database file (default `cloud.db`); the tables are
  created when missing
- `--root` – directory holding every user's storage (default `.`); it is
  created when missing

Registering a user creates the directory `<root>/<name>`. Paths sent by
clients, such as `./alice/docs`, are resolved against the root. The server
runs until interrupted.

## Running the client

```
cloudshelf-client --config client.config
```

- `--config` – file holding the server's address and port (default
  `client.config`)
- `--accept` – answer yes to every friend request and shared file; without
  it every such question is declined

The client is a line console. It reads commands from standard input and
prints each notice from the server as `[title] text`:

```
register NAME PWD | login NAME PWD
online | search NAME | friends | add NAME | unfriend NAME
chat NAME MESSAGE | group MESSAGE
ls | cd NAME | up | mkdir NAME | rmdir NAME | rm NAME | rename OLD NEW
upload PATH | download NAME SAVE_PATH | move NAME DEST_DIR
share NAME FRIEND... | show | help | quit
```

`show` prints the current remote path, the last directory listing, the
online users and friends received so far, and the chat messages. `up`
changes the current path locally and asks for the parent's listing; `cd`
changes it once the server's listing arrives.

## What the service does

Accounts and friends

- register and log in (a user may be logged in only once at a time);
  disconnecting marks the user offline
- list all online users and search for a user by name
- send, accept and refuse friend requests; delete friends
- list online friends
- private chat with one user, group chat with all online friends

Files

- list, create, rename and delete directories (deleting is recursive)
- enter a directory and return to its parent
- upload and download regular files, sent as raw bytes after the
  announcing PDU
- delete regular files
- move a file into another directory
- share a file or directory with selected friends; accepting a share
  copies it into the receiver's own storage, keeping files already there

## Using the pieces as a library

`cloudshelf.protocol` builds and parses PDUs:

```python
from cloudshelf.protocol import MsgType, PDUReader, make_pdu

pdu = make_pdu(MsgType.FLUSH_FILE_REQUEST, b"", "./alice")
raw = pdu.to_bytes()

reader = PDUReader()
for received in reader.feed(raw):
    print(received.msg_type, received.msg_text())
```

It also has `PDU.from_bytes`, `PDU.data_text`, `PDU.data_slot`,
`FileInfo`, `pack_names`/`unpack_names` and
`pack_file_infos`/`unpack_file_infos`, and raises `ProtocolError` for
malformed data.

`cloudshelf.database.UserDatabase` is the account store:

```python
from cloudshelf.database import UserDatabase

pwd = "password"
with UserDatabase("cloud.db") as db:
    db.register("alice", pwd)
    db.login("alice", pwd)
    print(db.all_online())
```

Other modules:

- `cloudshelf.storage` – the server's file operations (`list_directory`,
  `create_directory`, `delete_directory`, `rename_entry`,
  `enter_directory`, `delete_file`, `move_file`, `copy_tree`,
  `receive_share`, `read_chunks`)
- `cloudshelf.session` – `Session`, the request handling of one connected
  client, fed with the bytes it receives
- `cloudshelf.server` – `Hub`, which forwards PDUs to logged-in users,
  `CloudServer`, the asyncio TCP server, and `load_config`
- `cloudshelf.files` – `FileBrowser`, which tracks the current remote path
  and builds file requests, and `Download`
- `cloudshelf.social` – `FriendPanel`, `PrivateChat` and `ShareSelection`
- `cloudshelf.client` – `CloudClient`, which dispatches server replies and
  returns `Notice` objects

## What it does not do

- There is no graphical interface; the client is the line console above.
- Passwords are stored in the database as plain text, and the protocol is
  not encrypted.
- The server does not confine client paths to the user's own directory;
  any path below (or reachable from) the storage root is accepted.