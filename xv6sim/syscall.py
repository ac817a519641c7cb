"""System-call argument fetching and dispatch."""

import struct
from typing import Callable, Dict

from .constants import UINT_MASK

_INT = struct.Struct("<i")

Handler = Callable[[], int]


class BadAddress(ValueError):
    """Raised when a user address lies outside the process."""


class UserMemory:
    """A process's user address space, from 0 to its size."""

    def __init__(self, data: bytes):
        self.data = bytes(data)

    @property
    def sz(self) -> int:
        """Size of the address space in bytes."""
        return len(self.data)

    def fetch_int(self, addr: int) -> int:
        """The signed 32-bit integer at ``addr``."""
        addr &= UINT_MASK
        if addr >= self.sz or ((addr + 4) & UINT_MASK) > self.sz:
            raise BadAddress(f"int at {addr:#x} outside process")
        return _INT.unpack_from(self.data, addr)[0]

    def fetch_str(self, addr: int) -> bytes:
        """The NUL-terminated string at ``addr``, without its NUL."""
        addr &= UINT_MASK
        if addr >= self.sz:
            raise BadAddress(f"string at {addr:#x} outside process")
        end = self.data.find(b"\0", addr)
        if end < 0:
            raise BadAddress(f"string at {addr:#x} not terminated")
        return self.data[addr:end]

    def arg_int(self, esp: int, n: int) -> int:
        """The ``n``th 32-bit argument of a call whose user stack is at ``esp``."""
        return self.fetch_int(esp + 4 + 4 * n)

    def arg_ptr(self, esp: int, n: int, size: int) -> int:
        """The ``n``th argument as the address of ``size`` bytes inside the process."""
        addr = self.arg_int(esp, n) & UINT_MASK
        if addr >= self.sz or ((addr + size) & UINT_MASK) > self.sz:
            raise BadAddress(f"block of {size} bytes at {addr:#x} outside process")
        return addr

    def arg_str(self, esp: int, n: int) -> bytes:
        """The ``n``th argument as a NUL-terminated string."""
        return self.fetch_str(self.arg_int(esp, n))


class Dispatcher:
    """Maps system call numbers to their handlers."""

    def __init__(self):
        self._handlers: Dict[int, Handler] = {}

    def register(self, num: int, handler: Handler) -> None:
        """Install ``handler`` for call number ``num``."""
        if num <= 0:
            raise ValueError(f"system call number must be positive, got {num}")
        self._handlers[int(num)] = handler

    def dispatch(self, num: int, pid: int, name: str) -> int:
        """Run call ``num`` for process ``pid``; unknown calls yield -1."""
        handler = self._handlers.get(num) if num > 0 else None
        if handler is None:
            print(f"{pid} {name}: unknown sys call {num}")
            return -1
        return handler()