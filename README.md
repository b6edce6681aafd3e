# netmanage

Building blocks for network-management tooling:

- `netmanage.snmp.session` / `netmanage.snmp.factory`: an SNMP v1/v2c client
  session with GET, GET NEXT, GET BULK, walk and bulk walk;
- `netmanage.snmp.server`: a receiver that accepts v2 traps and informs and
  acknowledges the informs;
- `netmanage.snmp.ber`: a small BER encoder/decoder for the SNMP wire format;
- `netmanage.snmp.types`: data types, variable bindings and PDUs;
- `netmanage.ssh`: SSH server scaffolding with password authentication, for
  hosting test agents.

## Installing

```
pip install .
```

The tests need the `test` extra:

```
pip install ".[test]"
pytest
```

## SNMP client

`new_session(target, ...)` in `netmanage.snmp.factory` connects a socket to
the agent at `"host:port"` and returns a `Session`. The keyword options and
their defaults are: `network="udp"` (also `udp4`, `udp6`, `tcp`, `tcp4`,
`tcp6`), `timeout=5.0` seconds, `retries=3`, `version=Version.SNMPV2C`,
`community="public"` and `trace=DEFAULT_LOGGING_HOOKS`. A target without a
port, or with an invalid one, raises `ValueError`; a failure to connect raises
the `OSError`.

```python
from netmanage.snmp.factory import new_session
from netmanage.snmp.types import Version

with new_session("192.0.2.10:161", community="public", version=Version.SNMPV2C) as session:
    pdu = session.get(["1.3.6.1.2.1.1.5.0"])
    for varbind in pdu.varbinds:
        print(varbind.oid, varbind.typed_value)

    pdu = session.get_bulk(["1.3.6.1.2.1.1.4.0", "1.3.6.1.2.1.2.2.1.2"], 1, 3)
```

Each request returns a `PDU` with `request_id`, `error`, `error_index` and
`varbinds`, a list of `Varbind(oid, typed_value)`. Request ids start at a
random value and increase by one per request. A request whose reply times out
is sent again, with a fresh request id, until the retry limit is reached;
other errors are raised at once. Replies that cannot be decoded raise
`BerError`.

A `Session` can also be built directly around any connected object offering
`settimeout`, `send`, `recv` and `close`, with a `SessionConfig`.

### Walking a subtree

`walk` issues GET NEXT requests and `bulk_walk` GET BULK requests, starting
from a root OID. The walker is called once for every variable below the root.
The walk stops when a variable falls outside the subtree, the agent reports
end of MIB, or a reply holds no variables; an exception raised by the walker
ends the walk and is passed on.

```python
found = []
session.walk("1.3.6.1.2.1.1", found.append)
session.bulk_walk("1.3.6.1.2.1.2.2.1.2", 10, found.append)
```

### Values

Each variable binding carries a `TypedValue`, whose `type` is a `DataType`:
`INTEGER`, `OCTET_STRING`, `OID`, `IP_ADDRESS`, `TIME`, `COUNTER32`,
`COUNTER64`, `GAUGE32`, `OPAQUE`, `END_OF_MIB`, `NO_SUCH_OBJECT` or
`NO_SUCH_INSTANCE`. `str()` gives a readable rendering (dotted quads for IP
addresses, hex for opaque data, durations such as `185.32ms` for time ticks),
`as_int()` returns an integer-based value as `int`, and `oid()` returns an
OID value; both raise `TypeError` for other types.

### Tracing

Sessions report connection, read, write and error events through a
`SessionTrace` from `netmanage.snmp.trace`; pass one as `trace=` to
`new_session`. Ready-made sets are `DEFAULT_LOGGING_HOOKS` (errors only),
`METRIC_LOGGING_HOOKS` (timings), `DIAGNOSTIC_LOGGING_HOOKS` (everything,
with hex dumps) and `NO_OP_LOGGING_HOOKS`. They log through the standard
`logging` module. Hooks left unset fall back to ones that do nothing.

## SNMP trap and inform receiver

Implement `Handler.new_message` and start a server with `new_server` from
`netmanage.snmp.server`. It listens on port 162 of all interfaces unless told
otherwise; port 0 picks an ephemeral port, and `local_address` tells which.
Networks `udp`, `udp4` and `udp6` are accepted.

```python
from netmanage.snmp.server import Handler, new_server

class Printer(Handler):
    def new_message(self, pdu, is_inform, source_addr):
        kind = "inform" if is_inform else "trap"
        print(kind, source_addr, [str(vb.typed_value) for vb in pdu.varbinds])

server = new_server(Printer(), address="127.0.0.1", port=10162)
...
server.close()
```

Messages are handled one at a time on a background thread, and an inform is
acknowledged with a response PDU only after `new_message` returns, so
handlers should return promptly. Messages that are neither traps nor informs,
or that cannot be decoded, are reported through the server's `ServerHooks`
(`netmanage.snmp.serverhooks`: `DEFAULT_SERVER_HOOKS`,
`DIAGNOSTIC_SERVER_HOOKS`, `NO_OP_SERVER_HOOKS`) and otherwise ignored.
`Server.process_message` can also be called directly on a datagram.

## SSH server scaffolding

`password_config` in `netmanage.ssh.config` builds a `ServerConfig` with a
freshly generated 2048-bit RSA host key that accepts a single user name and
password. `new_server` in `netmanage.ssh.server` listens on the given address
and port (0 for an ephemeral one, available as `port`), and for every
accepted channel asks the factory for a `Handler` whose `handle` method
serves the channel; the channel is closed when `handle` returns. Subsystem
requests are accepted; shell, exec, pty and environment requests are refused.

```python
from netmanage.ssh.config import password_config
from netmanage.ssh.server import Handler, new_server

class Echo(Handler):
    def handle(self, channel):
        channel.sendall(channel.recv(1024))

password = "password"
config = password_config("admin", password)
server = new_server("localhost", 0, config, lambda transport: Echo())
...
server.close()
```

Server events can be observed with an `SshTrace` from `netmanage.ssh.trace`,
installed for a block with `use_ssh_trace` and read back with
`current_ssh_trace`; `new_server` takes the trace in effect when it is
called.

## What the package does not do

- There is no NETCONF layer: the SSH server only hands raw channels to your
  handler, and no NETCONF message handling or client is included.
- The SNMP session has no SET request, and SNMPv3 security (users,
  authentication, privacy) is not implemented; `Version.SNMPV3` is only the
  number written in the message.
- There is no command-line tool; everything is used from Python.