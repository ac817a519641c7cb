import pytest

from xv6sim.constants import DEVSPACE, EXTMEM, KERNBASE, KERNLINK, p2v, v2p
from xv6sim.mmu import PGSIZE, PTE_P, PTE_U, PTE_W
from xv6sim.vm import OutOfMemoryError, PageDirectory, PhysicalMemory, setup_kvm

START = 0x400000
NPAGES = 512
DATA = KERNLINK + 0x100000


@pytest.fixture
def memory():
    return PhysicalMemory(START, START + NPAGES * PGSIZE)


def entry_at(memory, pte):
    return int.from_bytes(memory.read(pte, 4), "little")


def test_kalloc_and_kfree_count_pages(memory):
    assert memory.free_pages() == NPAGES
    pa = memory.kalloc()
    assert pa % PGSIZE == 0
    assert START <= pa < START + NPAGES * PGSIZE
    assert memory.free_pages() == NPAGES - 1
    memory.kfree(pa)
    assert memory.free_pages() == NPAGES


def test_kfree_rejects_bad_addresses(memory):
    pa = memory.kalloc()
    with pytest.raises(ValueError):
        memory.kfree(pa + 1)
    with pytest.raises(ValueError):
        memory.kfree(START + NPAGES * PGSIZE)
    memory.kfree(pa)
    with pytest.raises(ValueError):
        memory.kfree(pa)


def test_kalloc_exhaustion():
    mem = PhysicalMemory(START, START + 2 * PGSIZE)
    first, second = mem.kalloc(), mem.kalloc()
    assert first != second
    with pytest.raises(OutOfMemoryError):
        mem.kalloc()


def test_physical_read_write_across_pages(memory):
    data = bytes(range(200))
    memory.write(START + PGSIZE - 50, data)
    assert memory.read(START + PGSIZE - 50, 200) == data
    with pytest.raises(ValueError):
        memory.read(START - PGSIZE, 4)


def test_walk_allocates_page_table_on_request(memory):
    pgdir = PageDirectory(memory)
    assert pgdir.walk(0x1000, False) is None
    before = memory.free_pages()
    pte = pgdir.walk(0x1000, True)
    assert memory.free_pages() == before - 1
    assert pgdir.walk(0x1000, False) == pte
    assert entry_at(memory, pte) == 0


def test_map_pages_and_uva2ka(memory):
    pgdir = PageDirectory(memory)
    pa = memory.kalloc()
    pgdir.map_pages(0x5000, PGSIZE, pa, PTE_W | PTE_U)
    assert pgdir.uva2ka(0x5000) == p2v(pa)
    with pytest.raises(RuntimeError):
        pgdir.map_pages(0x5000, PGSIZE, pa, PTE_W | PTE_U)
    kernel_only = memory.kalloc()
    pgdir.map_pages(0x9000, PGSIZE, kernel_only, PTE_W)
    assert pgdir.uva2ka(0x9000) is None
    assert pgdir.uva2ka(0x20000) is None


def test_map_pages_rejects_empty_range(memory):
    pgdir = PageDirectory(memory)
    with pytest.raises(ValueError):
        pgdir.map_pages(0, 0, memory.kalloc(), PTE_W)


def test_init_uvm_round_trip(memory):
    pgdir = PageDirectory(memory)
    code = b"\x90\x90\xcd\x40" * 8
    pgdir.init_uvm(code)
    assert pgdir.read_user(0, len(code)) == code
    assert pgdir.read_user(len(code), 4) == bytes(4)
    ka = pgdir.uva2ka(0)
    assert memory.read(v2p(ka), len(code)) == code
    with pytest.raises(ValueError):
        PageDirectory(memory).init_uvm(bytes(PGSIZE))


def test_alloc_uvm_copyout_and_read_back(memory):
    pgdir = PageDirectory(memory)
    assert pgdir.alloc_uvm(0, 3 * PGSIZE) == 3 * PGSIZE
    data = bytes(range(256)) * 20
    pgdir.copyout(100, data)
    assert pgdir.read_user(100, len(data)) == data
    with pytest.raises(ValueError):
        pgdir.read_user(3 * PGSIZE, 1)
    with pytest.raises(ValueError):
        pgdir.copyout(3 * PGSIZE - 1, b"xy")


def test_alloc_uvm_limits(memory):
    pgdir = PageDirectory(memory)
    assert pgdir.alloc_uvm(2 * PGSIZE, PGSIZE) == 2 * PGSIZE
    with pytest.raises(ValueError):
        pgdir.alloc_uvm(0, KERNBASE)


def test_dealloc_uvm_returns_pages(memory):
    pgdir = PageDirectory(memory)
    pgdir.alloc_uvm(0, PGSIZE)
    mark = memory.free_pages()
    pgdir.alloc_uvm(PGSIZE, 5 * PGSIZE)
    assert memory.free_pages() < mark
    assert pgdir.dealloc_uvm(5 * PGSIZE, PGSIZE) == PGSIZE
    assert memory.free_pages() == mark
    assert pgdir.dealloc_uvm(PGSIZE, 2 * PGSIZE) == PGSIZE
    assert pgdir.read_user(0, 1) == b"\0"
    with pytest.raises(ValueError):
        pgdir.read_user(PGSIZE, 1)


def test_reallocated_page_is_zeroed(memory):
    pgdir = PageDirectory(memory)
    pgdir.alloc_uvm(0, 2 * PGSIZE)
    last = 2 * PGSIZE - 1
    pgdir.copyout(last, bytes([99]))
    assert pgdir.read_user(last, 1) == bytes([99])
    pgdir.dealloc_uvm(2 * PGSIZE, PGSIZE)
    pgdir.alloc_uvm(PGSIZE, 2 * PGSIZE)
    assert pgdir.read_user(last, 1) == b"\0"


def test_alloc_uvm_out_of_memory_cleans_up():
    mem = PhysicalMemory(START, START + 4 * PGSIZE)
    pgdir = PageDirectory(mem)
    with pytest.raises(OutOfMemoryError):
        pgdir.alloc_uvm(0, 10 * PGSIZE)
    with pytest.raises(ValueError):
        pgdir.read_user(0, 1)
    assert pgdir.alloc_uvm(0, 2 * PGSIZE) == 2 * PGSIZE


def test_clear_pte_u(memory):
    pgdir = PageDirectory(memory)
    pgdir.alloc_uvm(0, 2 * PGSIZE)
    pgdir.clear_pte_u(0)
    assert pgdir.uva2ka(0) is None
    with pytest.raises(ValueError):
        pgdir.copyout(0, b"a")
    pgdir.copyout(PGSIZE, b"ok")
    assert pgdir.read_user(PGSIZE, 2) == b"ok"
    with pytest.raises(RuntimeError):
        pgdir.clear_pte_u(0x10000000)


def test_load_uvm(memory):
    pgdir = PageDirectory(memory)
    pgdir.alloc_uvm(0, 2 * PGSIZE)
    image = bytes(range(256)) * 40
    pgdir.load_uvm(0, image, 100, 5000)
    assert pgdir.read_user(0, 5000) == image[100:5100]
    with pytest.raises(ValueError):
        pgdir.load_uvm(16, image, 0, 10)
    with pytest.raises(ValueError):
        pgdir.load_uvm(0, image, len(image) - 10, 100)
    with pytest.raises(RuntimeError):
        pgdir.load_uvm(0x10000000, image, 0, 10)


def test_free_returns_all_pages(memory):
    pgdir = PageDirectory(memory)
    pgdir.alloc_uvm(0, 3 * PGSIZE)
    pgdir.copyout(0, b"data")
    pgdir.free()
    assert memory.free_pages() == NPAGES


def test_setup_kvm_mappings(memory):
    pgdir = setup_kvm(memory, DATA)
    io = entry_at(memory, pgdir.walk(KERNBASE, False))
    assert io == PTE_W | PTE_P
    text = entry_at(memory, pgdir.walk(KERNLINK, False))
    assert text == EXTMEM | PTE_P
    data = entry_at(memory, pgdir.walk(DATA, False))
    assert data == v2p(DATA) | PTE_W | PTE_P
    dev = entry_at(memory, pgdir.walk(DEVSPACE, False))
    assert dev == DEVSPACE | PTE_W | PTE_P
    top = entry_at(memory, pgdir.walk(0xFFFFF000, False))
    assert top == 0xFFFFF000 | PTE_W | PTE_P
    assert pgdir.uva2ka(KERNBASE) is None
    assert pgdir.walk(0, False) is None
    pgdir.free()
    assert memory.free_pages() == NPAGES


def test_setup_kvm_rejects_bad_data_address(memory):
    with pytest.raises(ValueError):
        setup_kvm(memory, KERNLINK)
    with pytest.raises(ValueError):
        setup_kvm(memory, DATA + 1)
    assert memory.free_pages() == NPAGES


def test_setup_kvm_out_of_memory_releases_pages():
    mem = PhysicalMemory(START, START + 16 * PGSIZE)
    with pytest.raises(OutOfMemoryError):
        setup_kvm(mem, DATA)
    assert mem.free_pages() == 16


def test_copy_duplicates_user_memory(memory):
    parent = PageDirectory(memory)
    parent.alloc_uvm(0, 2 * PGSIZE)
    payload = b"parent data " * 500
    parent.copyout(0, payload)
    child = parent.copy(2 * PGSIZE, DATA)
    assert child.read_user(0, len(payload)) == payload
    child.copyout(0, b"CHILD")
    assert parent.read_user(0, 5) == payload[:5]
    assert child.read_user(0, 5) == b"CHILD"
    assert child.uva2ka(0) != parent.uva2ka(0)
    child.free()
    parent.free()
    assert memory.free_pages() == NPAGES