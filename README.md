# segmem

`segmem` is the memory module of a small teaching operating system. It runs a
segmented memory server over TCP. A kernel, a CPU and a file system connect to
that server. The package also contains the binary message protocol these
modules use to talk to each other.

## What it does

- Holds one flat block of memory. A bitmap (`segmem.bitmap.Bitmap`) records
  which bytes are used and which are free.
- Places segments with the `FIRST`, `BEST` or `WORST` fit strategy. The
  configuration chooses which one.
- Keeps one segment table per process. Segment 0 is created at start-up and
  shared by every process's table.
- Reports to the kernel when there is enough free memory in total but no
  single hole is large enough. It compacts memory when the kernel asks.
- Serves reads and writes from the CPU and the file system.
- Encodes and decodes the protocol messages:
  - instructions
  - process and eviction contexts
  - segments and segment tables
  - status codes
  - text data
  - raw data
  - read and write requests

## Installing

```
pip install .
```

To install the test dependencies as well: `pip install .[test]`.

## Running the server

```
segmem [CONFIG] [--log-file FILE]
```

`CONFIG` defaults to `./config/memoria.config`. The log always goes to
standard error. With `--log-file` it is also written to that file.

The configuration is made of `KEY=VALUE` lines. Blank lines and lines that
start with `#` are ignored. Every key below is required:

```
PUERTO_ESCUCHA=8002
TAM_MEMORIA=4096
TAM_SEGMENTO_0=128
CANT_SEGMENTOS=16
RETARDO_MEMORIA=1000
RETARDO_COMPACTACION=60000
ALGORITMO_ASIGNACION=BEST
```

The two delays are given in milliseconds. They are applied in whole seconds:
each memory access, and each compaction, sleeps for `delay // 1000` seconds.

### Start-up and the menu

The server first waits until one kernel, one CPU and one file system have each
connected and completed the handshake. It then shows an interactive menu on
standard input and output. The menu can show:

1. the configuration
2. one process's segment table (the menu asks for the PID)
3. the free holes
4. segment 0 and every segment table
5. the internal flags

Option 6 exits. The server also stops when:

- standard input reaches end of file
- the kernel ends its connection
- Ctrl+C is pressed; the command then returns status 2

## Protocol

Every package is laid out as follows:

1. one operation-code byte (`segmem.communication.OpCode`)
2. the payload size, as an unsigned 32-bit little-endian integer
3. the payload

Packages that carry nothing, such as `END` and `COMPACT`, have a one-byte NUL
payload.

The handshake exchanges signed 32-bit little-endian codes
(`segmem.communication.HandshakeCode`), in this order:

1. The client sends its own code.
2. The server answers with its own code.
3. The client replies `OK` or `FAIL`.

The memory server answers as `MEMORY`. It accepts one `KERNEL`, one `CPU` and
one `FS` connection.

### Kernel requests

| Request | Reply |
| --- | --- |
| `COMPACT` | Compacts memory, then replies `SEGMENTS_TABLES` with every table. |
| `PID_INSTRUCTION` with `CREATE_SEGMENT id size` | `SEGMENT` with the new segment, or a `STATUS_CODE` of `MAX_SEG_QUANTITY_REACHED`, `OUT_OF_MEMORY` or `COMPACTATION_REQUIRED`. |
| `PID_INSTRUCTION` with `DELETE_SEGMENT id` | Frees the segment and replies `SEGMENTS_TABLE` with the process's table. |
| `PID_STATUS` with `PROCESS_NEW` | Creates the table and replies `SEGMENTS_TABLE`. |
| `PID_STATUS` with `PROCESS_END` | Drops the table and frees its segments. Sends no reply. |
| `END` | Ends the conversation. |

### CPU and file-system requests

| Request | Reply |
| --- | --- |
| `INFO_READ` | `INFO` with the bytes read. |
| `INFO_WRITE` | `STATUS_CODE` `SUCCESS`. |
| `END` | Ends the conversation. |

`INFO_READ` and `INFO_WRITE` reply with `SEGMENTATION_FAULT` instead when the
address lies in no segment or the range runs past the end of memory.

## Using the library

```python
from segmem.config import parse_config
from segmem.memory import Memory

with open("config/memoria.config", encoding="utf-8") as handle:
    config = parse_config(handle.read())
memory = Memory(config)

memory.create_segments_table(pid=1)
segment = memory.create_segment(1, 64)   # may raise OutOfMemoryError or CompactionRequired
memory.add_segment_to_table(1, segment)
memory.write(segment.base_address, b"hello")
print(memory.read(segment.base_address, 5).data)   # b'hello'
print(memory.free_holes())                         # [(base, size), ...]
```

A peer can talk to a running server with `segmem.communication`:

```python
from segmem.communication import HandshakeCode, create_connection
from segmem.types import Info, InfoWrite

with create_connection("127.0.0.1", 8002) as conn:
    if conn.client_handshake(HandshakeCode.CPU, HandshakeCode.MEMORY):
        conn.send_info_write(InfoWrite(128, Info(b"hi")))
        reply = conn.receive()
        conn.send_end()
```

### Modules

| Module | Contents |
| --- | --- |
| `segmem.types` | Data classes and enums: `Instruction`, `Registers`, `Segment`, `SegmentsTable`, `StatusCode`, and others. |
| `segmem.bitmap` | The free-space bitmap. |
| `segmem.wire` | Codecs for integers, instructions, segments and segment tables. |
| `segmem.messages` | `Package` framing and the composite message codecs. |
| `segmem.communication` | `Connection`, `create_connection`, `server_start`, `client_wait` and the handshake. |
| `segmem.config` | `parse_config`, `read_config` and `MemoryConfig`. |
| `segmem.memory` | `Memory`: placement, segment tables, reads and writes, compaction. |
| `segmem.handlers` | Request handling for the kernel, CPU and file system. |
| `segmem.server` | `MemoryServer`, which accepts the three modules and serves each on its own thread. |
| `segmem.console` | The menu and its display formatting. |
| `segmem.app` | The `segmem` command. |

## What it does not do

- **Other modules.** The package contains only the memory server. It has no
  kernel, CPU, console or file-system program. `segmem.communication` gives a
  peer what it needs to connect and exchange messages, but nothing here
  schedules processes or executes instructions.
- **Open-file messages.** `OpCode.OPEN_FILE` has a code, but no encoder or
  decoder exists for open-file messages.
- **Persistence.** Memory contents are not kept after the server stops.

## Tests

```
pytest
```