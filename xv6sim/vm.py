"""Two-level x86 page tables over simulated physical memory."""

import struct
from typing import Dict, List, Optional

from .constants import (
    DEVSPACE,
    EXTMEM,
    KERNBASE,
    KERNLINK,
    PHYSTOP,
    UINT_MASK,
    p2v,
    v2p,
)
from .mmu import (
    NPDENTRIES,
    NPTENTRIES,
    PGSIZE,
    PTE_P,
    PTE_U,
    PTE_W,
    pdx,
    pg_round_down,
    pg_round_up,
    pte_addr,
    ptx,
)

_WORD = struct.Struct("<I")


class OutOfMemoryError(MemoryError):
    """Raised when no physical page is left."""


class PhysicalMemory:
    """Page-granular physical memory with a free-page allocator."""

    def __init__(self, start: int, stop: int):
        self.start = pg_round_up(start)
        self.stop = pg_round_down(stop)
        if self.start >= self.stop:
            raise ValueError("physical range holds no whole page")
        self._pages: Dict[int, bytearray] = {}
        self._free: List[int] = list(range(self.stop - PGSIZE, self.start - 1, -PGSIZE))
        self._free_set = set(self._free)

    def kalloc(self) -> int:
        """Take a free page and return its physical address."""
        if not self._free:
            raise OutOfMemoryError("out of physical pages")
        pa = self._free.pop()
        self._free_set.discard(pa)
        return pa

    def kfree(self, pa: int) -> None:
        """Return a page obtained from :meth:`kalloc`."""
        if pa % PGSIZE or not self.start <= pa < self.stop:
            raise ValueError(f"kfree: bad physical address {pa:#x}")
        if pa in self._free_set:
            raise ValueError(f"kfree: page {pa:#x} is already free")
        self._free.append(pa)
        self._free_set.add(pa)

    def _page(self, pa: int) -> bytearray:
        base = pg_round_down(pa)
        page = self._pages.get(base)
        if page is None:
            if not self.start <= base < self.stop:
                raise ValueError(f"physical address {pa:#x} out of range")
            page = self._pages[base] = bytearray(PGSIZE)
        return page

    def _read_word(self, pa: int) -> int:
        return _WORD.unpack_from(self._page(pa), pa % PGSIZE)[0]

    def _write_word(self, pa: int, value: int) -> None:
        _WORD.pack_into(self._page(pa), pa % PGSIZE, value & UINT_MASK)

    def read(self, pa: int, n: int) -> bytes:
        """Read ``n`` bytes at physical address ``pa``."""
        out = bytearray()
        while n > 0:
            off = pa % PGSIZE
            chunk = min(n, PGSIZE - off)
            out += self._page(pa)[off:off + chunk]
            pa += chunk
            n -= chunk
        return bytes(out)

    def write(self, pa: int, data: bytes) -> None:
        """Write ``data`` at physical address ``pa``."""
        view = memoryview(bytes(data))
        while view:
            off = pa % PGSIZE
            chunk = min(len(view), PGSIZE - off)
            self._page(pa)[off:off + chunk] = view[:chunk]
            pa += chunk
            view = view[chunk:]

    def free_pages(self) -> int:
        """Number of pages available to :meth:`kalloc`."""
        return len(self._free)


class PageDirectory:
    """A process or kernel page directory and the tables beneath it."""

    def __init__(self, memory: PhysicalMemory):
        self.memory = memory
        self.pa = memory.kalloc()
        memory.write(self.pa, bytes(PGSIZE))

    def _entry(self, addr: int) -> int:
        return self.memory._read_word(addr)

    def _set_entry(self, addr: int, value: int) -> None:
        self.memory._write_word(addr, value)

    def walk(self, va: int, alloc: bool = False) -> Optional[int]:
        """Physical address of the PTE for ``va``, creating its table if asked."""
        pde_addr = self.pa + 4 * pdx(va)
        pde = self._entry(pde_addr)
        if pde & PTE_P:
            pgtab = pte_addr(pde)
        else:
            if not alloc:
                return None
            try:
                pgtab = self.memory.kalloc()
            except OutOfMemoryError:
                return None
            self.memory.write(pgtab, bytes(PGSIZE))
            self._set_entry(pde_addr, pgtab | PTE_P | PTE_W | PTE_U)
        return pgtab + 4 * ptx(va)

    def map_pages(self, va: int, size: int, pa: int, perm: int) -> None:
        """Map ``size`` bytes at ``va`` to physical memory from ``pa``."""
        if size <= 0:
            raise ValueError(f"cannot map {size} bytes")
        a = pg_round_down(va & UINT_MASK)
        last = pg_round_down((va + size - 1) & UINT_MASK)
        while True:
            pte = self.walk(a, True)
            if pte is None:
                raise OutOfMemoryError("no page for a page table")
            if self._entry(pte) & PTE_P:
                raise RuntimeError(f"remap of {a:#x}")
            self._set_entry(pte, pa | perm | PTE_P)
            if a == last:
                break
            a = (a + PGSIZE) & UINT_MASK
            pa += PGSIZE

    def init_uvm(self, init: bytes) -> None:
        """Load ``init`` into a fresh page at address 0."""
        if len(init) >= PGSIZE:
            raise ValueError("inituvm: more than a page")
        mem = self.memory.kalloc()
        self.memory.write(mem, bytes(PGSIZE))
        self.map_pages(0, PGSIZE, mem, PTE_W | PTE_U)
        self.memory.write(mem, init)

    def load_uvm(self, addr: int, data: bytes, offset: int, sz: int) -> None:
        """Copy ``sz`` bytes of ``data`` from ``offset`` to mapped pages at ``addr``."""
        if addr % PGSIZE:
            raise ValueError("loaduvm: addr must be page aligned")
        for i in range(0, sz, PGSIZE):
            pte = self.walk(addr + i, False)
            if pte is None:
                raise RuntimeError("loaduvm: address should exist")
            pa = pte_addr(self._entry(pte))
            n = min(sz - i, PGSIZE)
            chunk = data[offset + i:offset + i + n]
            if len(chunk) != n:
                raise ValueError("loaduvm: short read")
            self.memory.write(pa, chunk)

    def alloc_uvm(self, oldsz: int, newsz: int) -> int:
        """Grow user memory from ``oldsz`` to ``newsz``; return the new size."""
        if newsz >= KERNBASE:
            raise ValueError(f"size {newsz:#x} reaches kernel space")
        if newsz < oldsz:
            return oldsz
        a = pg_round_up(oldsz)
        while a < newsz:
            try:
                mem = self.memory.kalloc()
            except OutOfMemoryError:
                self.dealloc_uvm(newsz, oldsz)
                raise
            self.memory.write(mem, bytes(PGSIZE))
            try:
                self.map_pages(a, PGSIZE, mem, PTE_W | PTE_U)
            except OutOfMemoryError:
                self.memory.kfree(mem)
                self.dealloc_uvm(newsz, oldsz)
                raise
            a += PGSIZE
        return newsz

    def dealloc_uvm(self, oldsz: int, newsz: int) -> int:
        """Shrink user memory from ``oldsz`` to ``newsz``; return the new size."""
        if newsz >= oldsz:
            return oldsz
        a = pg_round_up(newsz)
        while a < oldsz:
            pte = self.walk(a, False)
            if pte is None:
                a += (NPTENTRIES - 1) * PGSIZE
            else:
                entry = self._entry(pte)
                if entry & PTE_P:
                    pa = pte_addr(entry)
                    if pa == 0:
                        raise RuntimeError("kfree of page 0")
                    self.memory.kfree(pa)
                    self._set_entry(pte, 0)
            a += PGSIZE
        return newsz

    def free(self) -> None:
        """Release user pages, page tables and the directory itself."""
        self.dealloc_uvm(KERNBASE, 0)
        for i in range(NPDENTRIES):
            pde = self._entry(self.pa + 4 * i)
            if pde & PTE_P:
                self.memory.kfree(pte_addr(pde))
        self.memory.kfree(self.pa)

    def clear_pte_u(self, uva: int) -> None:
        """Make the page at ``uva`` inaccessible to user code."""
        pte = self.walk(uva, False)
        if pte is None:
            raise RuntimeError("clearpteu")
        self._set_entry(pte, self._entry(pte) & ~PTE_U)

    def copy(self, sz: int, data_addr: int) -> "PageDirectory":
        """A new directory with the kernel mapped and a copy of ``sz`` user bytes."""
        child = setup_kvm(self.memory, data_addr)
        try:
            for i in range(0, sz, PGSIZE):
                pte = self.walk(i, False)
                if pte is None:
                    raise RuntimeError("copyuvm: pte should exist")
                entry = self._entry(pte)
                if not entry & PTE_P:
                    raise RuntimeError("copyuvm: page not present")
                mem = self.memory.kalloc()
                self.memory.write(mem, self.memory.read(pte_addr(entry), PGSIZE))
                try:
                    child.map_pages(i, PGSIZE, mem, PTE_W | PTE_U)
                except OutOfMemoryError:
                    self.memory.kfree(mem)
                    raise
        except OutOfMemoryError:
            child.free()
            raise
        return child

    def uva2ka(self, uva: int) -> Optional[int]:
        """Kernel virtual address of the user page at ``uva``, or None."""
        pte = self.walk(uva, False)
        if pte is None:
            return None
        entry = self._entry(pte)
        if not entry & PTE_P or not entry & PTE_U:
            return None
        return p2v(pte_addr(entry))

    def copyout(self, va: int, data: bytes) -> None:
        """Copy ``data`` to user address ``va``."""
        view = memoryview(bytes(data))
        while view:
            va0 = pg_round_down(va)
            ka = self.uva2ka(va0)
            if ka is None:
                raise ValueError(f"bad user address {va:#x}")
            n = min(PGSIZE - (va - va0), len(view))
            self.memory.write(v2p(ka) + (va - va0), view[:n])
            view = view[n:]
            va = va0 + PGSIZE

    def read_user(self, va: int, n: int) -> bytes:
        """Read ``n`` bytes from user address ``va``."""
        out = bytearray()
        while n > 0:
            va0 = pg_round_down(va)
            ka = self.uva2ka(va0)
            if ka is None:
                raise ValueError(f"bad user address {va:#x}")
            chunk = min(PGSIZE - (va - va0), n)
            out += self.memory.read(v2p(ka) + (va - va0), chunk)
            n -= chunk
            va = va0 + PGSIZE
        return bytes(out)


def setup_kvm(memory: PhysicalMemory, data_addr: int) -> PageDirectory:
    """A page directory holding the kernel's mappings.

    ``data_addr`` is the kernel virtual address where writable kernel data
    begins; text and read-only data lie between KERNLINK and it.
    """
    if data_addr <= KERNLINK or data_addr % PGSIZE or v2p(data_addr) >= PHYSTOP:
        raise ValueError(f"bad kernel data address {data_addr:#x}")
    if KERNBASE + PHYSTOP > DEVSPACE:
        raise RuntimeError("PHYSTOP too high")
    kmap = (
        (KERNBASE, 0, EXTMEM, PTE_W),
        (KERNLINK, v2p(KERNLINK), v2p(data_addr), 0),
        (data_addr, v2p(data_addr), PHYSTOP, PTE_W),
        (DEVSPACE, DEVSPACE, 0, PTE_W),
    )
    pgdir = PageDirectory(memory)
    try:
        for virt, phys_start, phys_end, perm in kmap:
            pgdir.map_pages(virt, (phys_end - phys_start) & UINT_MASK, phys_start, perm)
    except OutOfMemoryError:
        pgdir.free()
        raise
    return pgdir