# linkpoll

Building blocks for event-driven network I/O on Linux. The package has no
third-party dependencies.

| Module | What it holds |
| --- | --- |
| `linkpoll.nocopy` | The `Reader`, `Writer` and `ReadWriter` interfaces, `LinkBufferError`, `NoCopyEOFError`, the shared `settings` (a `BufferSettings`), `malloc` and `round_capacity` |
| `linkpoll.node` | `LinkBufferNode`, one reference-counted block of a buffer, and `new_node` |
| `linkpoll.linkbuffer` | `LinkBuffer`, the chained no-copy buffer |
| `linkpoll.safe_linkbuffer` | `SafeLinkBuffer`, a `LinkBuffer` whose operations hold a reentrant lock |
| `linkpoll.readwriter` | Adapters between file-like streams and the no-copy interfaces |
| `linkpoll.poll` | The abstract `Poll` interface and `PollEvent` |
| `linkpoll.loadbalance` | `LoadBalance`, `RoundRobinLB`, `RandomLB` and `new_loadbalance` |
| `linkpoll.manager` | `Manager`, which runs and resizes a set of pollers |
| `linkpoll.epoll` | `Epoll`, `EpollEvent`, `EpollOp` and the `EPOLL*` flags |
| `linkpoll.sysio` | Vectored I/O and socket options on raw file descriptors |

## Installation

```
pip install linkpoll
```

To run the test suite:

```
pip install "linkpoll[test]"
pytest
```

## LinkBuffer

A `LinkBuffer` keeps writing and reading apart. To write, reserve space with
`malloc(n)`, fill the returned `memoryview`, then call `flush()` to make the
data readable. You can also append with `write_binary`, `write_string`
(encoded as UTF-8) and `write_byte`. To read, use `next`, `peek`, `skip`,
`until`, `read_binary`, `read_string` and `read_byte`. Call `release()` once
you are finished with what you have read, so the nodes already consumed can
be dropped.

```python
from linkpoll.linkbuffer import LinkBuffer

buf = LinkBuffer(0)
view = buf.malloc(5)
view[:] = b"hello"
buf.flush()

assert len(buf) == 5
assert bytes(buf.peek(2)) == b"he"
assert bytes(buf.next(5)) == b"hello"
buf.release()
```

Further operations:

- `malloc_len()` gives the number of bytes reserved but not yet flushed.
  `malloc_ack(n)` keeps the first `n` of them and discards the rest.
- `write_direct(extra, remain_len)` inserts `extra` into the reserved area,
  `remain_len` bytes before its end, without copying it.
- `write_binary` links inputs longer than 4 KiB in place instead of copying
  them.
- `slice(n)` moves the next `n` bytes into a new read-only `LinkBuffer` that
  shares memory with this one, then releases this buffer.
- `append(other)` and `write_buffer(other)` move the nodes of another
  `LinkBuffer` onto the tail of this one and empty `other`. Nothing is
  flushed by these calls.
- `until(delim)` returns everything up to and including the first `delim`
  byte. `index_byte(c, skip)` returns the position of the first `c` at or
  after `skip`, or `-1`.
- `readable_bytes()` returns all readable data. The data is copied only when
  it spans several nodes. `get_bytes(p)` returns up to `p` views, one per
  readable node.
- `book(book_size, max_size)` and `book_ack(n)` reserve space and then commit
  what was filled. `calc_max_size`, `reset_tail` and `memory_size` report on
  the node chain and adjust it.
- `close()` releases every node.

Asking for more bytes than the buffer holds raises `LinkBufferError`. So do
`until` when the delimiter is absent and `malloc_ack` with a negative count.
Zero or negative counts on the read methods return empty results.

Two settings are shared by every buffer through `linkpoll.nocopy.settings`:

- `link_buffer_cap` is the minimum node size. It defaults to 4096.
- `always_no_copy_read` defaults to `False`. When it is `True`,
  `read_binary` of 64 bytes or more from a single node returns a view
  instead of a copy.

`SafeLinkBuffer` has the same methods as `LinkBuffer` and can be shared
between threads.

## Adapting streams

`new_reader`, `new_writer` and `new_read_writer` wrap file-like objects.

- The reader fills an internal `LinkBuffer` from the stream's `readinto`, or
  from `read` when `readinto` is missing. It raises `NoCopyEOFError` when the
  stream returns no more data before enough bytes have arrived.
- The writer collects data and sends it to the stream's `write` on `flush()`.

```python
import io
from linkpoll.readwriter import new_reader, new_writer

reader = new_reader(io.BytesIO(b"line one\nline two\n"))
assert bytes(reader.next(4)) == b"line"

sink = io.BytesIO()
writer = new_writer(sink)
writer.write_binary(b"payload")
writer.flush()
assert sink.getvalue() == b"payload"
```

`new_io_reader`, `new_io_writer` and `new_io_read_writer` go the other way.
They turn a no-copy `Reader` or `Writer` into an `io.RawIOBase` stream
(`IOReader`, `IOWriter`, `IOReadWriter`). An object that already has
`readinto` or `write` is returned as it is.

- `IOReader.readinto` returns `0` once the reader is empty.
- `IOWriter.write` flushes after every write.

## Pollers and load balancing

`Poll` is an abstract interface with the methods `wait`, `close`, `trigger`,
`control(operator, event)`, `alloc` and `free`. `PollEvent` names the control
operations: `READABLE`, `WRITABLE`, `DETACH`, `R2RW` and `RW2R`.

`Manager(num_loops, poll_factory)` creates pollers with `poll_factory` and
runs each one's `wait` in a daemon thread. It hands pollers out through a
load balancer:

- `LoadBalance.ROUND_ROBIN` takes them in turn. This is the default.
- `LoadBalance.RANDOM` picks one at random.

```python
from linkpoll.manager import Manager
from linkpoll.loadbalance import LoadBalance

manager = Manager(4, poll_factory)   # poll_factory returns a Poll
manager.set_load_balance(LoadBalance.ROUND_ROBIN)
poll = manager.pick()                 # starts the pollers the first time it is called
```

The other `Manager` methods:

- `set_num_loops(n)` changes the number of pollers. It raises `ValueError`
  for `n < 1`, and the next `pick` applies the change.
- `reset()` closes all pollers and starts new ones.
- `close()` closes them all.

## Epoll and socket helpers

`Epoll` wraps `select.epoll` and remembers user data for each descriptor:

```python
from linkpoll.epoll import EPOLLIN, Epoll, EpollEvent, EpollOp
from linkpoll.sysio import get_sys_fd_pairs, writev

r, w = get_sys_fd_pairs()
with Epoll() as ep:
    ep.ctl(EpollOp.ADD, r, EpollEvent(EPOLLIN, bytes([0, 0, 0, 0, 0, 0, 0, 1])))
    assert writev(w, [b"first line", b"second line"]) == 21
    events = ep.wait(128, 1000)
    assert events[0].data == bytes([0, 0, 0, 0, 0, 0, 0, 1])
```

`linkpoll.sysio` has the following helpers:

- `writev`, `readv` and `sendmsg` perform vectored I/O. `sendmsg` can send
  with `MSG_ZEROCOPY`.
- `iovecs` drops empty chunks and truncates the total to 2 GiB.
- `get_sys_fd_pairs` returns the descriptors of a connected Unix socket pair.
- `sys_socket` creates a non-blocking socket and returns its descriptor.
- `set_tcp_no_delay`, `set_keep_alive`, `set_default_sockopts`,
  `set_zero_copy` and `set_block_zero_copy_send` set socket options.

These helpers need Linux.

## What is not included

The package contains no concrete poller. There is no event loop that reads
from and writes to connections, and no connection, listener or server type.
`Manager` runs whatever `Poll` implementations its `poll_factory` returns,
and you must supply them. The package installs no command-line program.