"""NUL-terminated string and memory helpers over bytes."""

from typing import BinaryIO, Optional, Union

BytesLike = Union[bytes, bytearray, memoryview, str]


def _as_bytes(s: BytesLike) -> bytes:
    if isinstance(s, str):
        return s.encode("latin-1")
    return bytes(s)


def _cstr(s: BytesLike) -> bytes:
    """The bytes of ``s`` up to, not including, the first NUL."""
    data = _as_bytes(s)
    end = data.find(0)
    return data if end < 0 else data[:end]


def _terminated(s: BytesLike) -> bytes:
    return _cstr(s) + b"\0"


def memcmp(a: BytesLike, b: BytesLike, n: int) -> int:
    """Difference of the first unequal byte among the first ``n``, else 0."""
    a, b = _as_bytes(a), _as_bytes(b)
    if n < 0 or n > len(a) or n > len(b):
        raise ValueError(f"cannot compare {n} bytes")
    for x, y in zip(a[:n], b[:n]):
        if x != y:
            return x - y
    return 0


def memmove(dst: bytearray, dst_off: int, src: BytesLike, src_off: int, n: int) -> bytearray:
    """Copy ``n`` bytes into ``dst``; overlapping regions are handled."""
    if isinstance(src, str):
        src = src.encode("latin-1")
    if n < 0 or dst_off < 0 or src_off < 0:
        raise ValueError("negative offset or length")
    if dst_off + n > len(dst) or src_off + n > len(src):
        raise ValueError("copy out of range")
    dst[dst_off:dst_off + n] = bytes(src[src_off:src_off + n])
    return dst


def strncmp(p: BytesLike, q: BytesLike, n: int) -> int:
    """Compare at most ``n`` characters of two C strings."""
    if n <= 0:
        return 0
    for x, y in zip(_terminated(p)[:n], _terminated(q)[:n]):
        if x != y or x == 0:
            return x - y
    return 0


def strcmp(p: BytesLike, q: BytesLike) -> int:
    """Compare two C strings."""
    for x, y in zip(_terminated(p), _terminated(q)):
        if x != y or x == 0:
            return x - y
    return 0


def strncpy(src: BytesLike, n: int) -> bytes:
    """The ``n`` bytes strncpy writes: the string, then NUL padding.

    As in C, the result is not NUL-terminated when ``src`` is ``n`` long or more.
    """
    if n <= 0:
        return b""
    return _terminated(src)[:n].ljust(n, b"\0")


def safestrcpy(src: BytesLike, n: int) -> bytes:
    """The bytes safestrcpy writes into an ``n``-byte buffer, NUL included.

    Nothing is written when ``n`` is not positive.
    """
    if n <= 0:
        return b""
    return _cstr(src)[:n - 1] + b"\0"


def strlen(s: BytesLike) -> int:
    """Length of the C string in ``s``."""
    return len(_cstr(s))


def strchr(s: BytesLike, c: Union[int, bytes, str]) -> Optional[int]:
    """Index of the first ``c`` in the C string ``s``, or None."""
    if isinstance(c, (bytes, str)):
        c = _as_bytes(c)
        if len(c) != 1:
            raise ValueError("strchr needs a single character")
        c = c[0]
    index = _cstr(s).find(c & 0xFF) if c else -1
    return None if index < 0 else index


def atoi(s: BytesLike) -> int:
    """Value of the leading decimal digits of ``s`` (0 if there are none)."""
    value = 0
    for ch in _cstr(s):
        if not 0x30 <= ch <= 0x39:
            break
        value = value * 10 + ch - 0x30
    return value


def gets(stream: BinaryIO, max_len: int) -> bytes:
    """Read one line of at most ``max_len - 1`` bytes, keeping its terminator."""
    line = bytearray()
    while len(line) + 1 < max_len:
        c = stream.read(1)
        if not c:
            break
        line += c
        if c in (b"\n", b"\r"):
            break
    return bytes(line)