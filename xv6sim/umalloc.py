"""First-fit free-list allocator over a break-extended heap."""

from bisect import bisect_left, bisect_right, insort
from typing import Dict, List, Optional, Tuple

HEADER_SIZE = 8
MIN_MORECORE_UNITS = 4096

# The list anchor lives below every heap address and never holds memory.
_BASE = -HEADER_SIZE


class Heap:
    """A heap that grows by moving a program break up to ``limit`` bytes.

    Addresses are byte offsets from the start of the heap.  Every block
    carries a one-unit header, and sizes are counted in header units.
    """

    def __init__(self, limit: int):
        if limit < 0:
            raise ValueError(f"limit must not be negative, got {limit}")
        self.limit = limit
        self._brk = 0
        self._addrs: List[int] = []
        self._sizes: Dict[int, int] = {}
        self._freep: Optional[int] = None
        self._allocated: Dict[int, int] = {}

    @property
    def brk(self) -> int:
        """The current program break."""
        return self._brk

    def sbrk(self, n: int) -> int:
        """Move the break by ``n`` bytes and return the old break."""
        old = self._brk
        new = old + n
        if new < 0 or new > self.limit:
            raise MemoryError(f"cannot move break from {old} by {n}")
        self._brk = new
        return old

    def _next(self, addr: int) -> int:
        i = bisect_right(self._addrs, addr)
        return self._addrs[i % len(self._addrs)]

    def _remove(self, addr: int) -> int:
        """Take the free block at ``addr`` off the list and return its size."""
        self._addrs.pop(bisect_left(self._addrs, addr))
        return self._sizes.pop(addr)

    def _release(self, bp: int, units: int) -> None:
        """Put the block with header at ``bp`` back on the list, coalescing."""
        i = bisect_left(self._addrs, bp)
        prev = self._addrs[i - 1]
        nxt = self._addrs[i % len(self._addrs)]
        if nxt != _BASE and bp + units * HEADER_SIZE == nxt:
            units += self._remove(nxt)
        if prev + self._sizes[prev] * HEADER_SIZE == bp:
            self._sizes[prev] += units
        else:
            insort(self._addrs, bp)
            self._sizes[bp] = units
        self._freep = prev

    def _morecore(self, nunits: int) -> int:
        nunits = max(nunits, MIN_MORECORE_UNITS)
        addr = self.sbrk(nunits * HEADER_SIZE)
        self._release(addr, nunits)
        return self._freep

    def malloc(self, nbytes: int) -> int:
        """Allocate ``nbytes`` and return the block's address."""
        if nbytes < 0:
            raise ValueError(f"cannot allocate {nbytes} bytes")
        nunits = (nbytes + HEADER_SIZE - 1) // HEADER_SIZE + 1
        if self._freep is None:
            self._addrs = [_BASE]
            self._sizes = {_BASE: 0}
            self._freep = _BASE
        prevp = self._freep
        p = self._next(prevp)
        while True:
            size = self._sizes[p]
            if size >= nunits:
                if size == nunits:
                    self._remove(p)
                else:
                    self._sizes[p] = size - nunits
                    p += (size - nunits) * HEADER_SIZE
                self._freep = prevp
                self._allocated[p + HEADER_SIZE] = nunits
                return p + HEADER_SIZE
            if p == self._freep:
                p = self._morecore(nunits)
            prevp, p = p, self._next(p)

    def free(self, addr: int) -> None:
        """Return a block obtained from :meth:`malloc`."""
        units = self._allocated.pop(addr, None)
        if units is None:
            raise ValueError(f"address {addr} was not allocated")
        self._release(addr - HEADER_SIZE, units)

    def free_blocks(self) -> List[Tuple[int, int]]:
        """Free blocks as (header address, size in bytes), in address order."""
        return [
            (addr, self._sizes[addr] * HEADER_SIZE)
            for addr in self._addrs
            if addr != _BASE
        ]