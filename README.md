# xv6sim

Pure-Python models of the core pieces of a small teaching Unix kernel and
its user programs. You can use and inspect each piece on its own. None of
them needs hardware or an emulator.

## Modules

- `xv6sim.constants` holds the kernel parameters (`NPROC`, `NOFILE`,
  `MAXARG` and others) and the memory layout (`KERNBASE`, `PHYSTOP`,
  `DEVSPACE` and others). It defines these enums:
  - `FileType`
  - `OpenMode`, an `IntFlag`
  - `Syscall`
  - `Trap`

  It also provides:
  - `v2p` and `p2v`, which convert between kernel virtual and physical addresses.
  - `timer_div(freq)`, the interval-timer count for `freq` interrupts per second. A frequency that is not positive raises `ValueError`.
- `xv6sim.mmu` holds the paging helpers: `pdx`, `ptx`, `pgaddr`,
  `pg_round_up`, `pg_round_down` and `pte_addr`. It also defines the eflags,
  control-register, segment and PTE flag constants. It builds descriptors:
  - `seg` and `seg16` build a `SegmentDescriptor`.
  - `make_gate` builds a `GateDescriptor`.
  - Both dataclasses `pack()` to their 8-byte layout and `unpack()` from it.
  - `seg_asm` returns the raw 8 bytes of a boot-time segment.
- `xv6sim.elf` reads and writes ELF headers and program headers:
  - `ElfHeader.parse` checks the magic number.
  - `ElfHeader.program_headers(data)` returns the program headers of an image.
  - `ProgramHeader.parse` and `pack` read and write one program header.
  - Truncated or invalid input raises `ElfFormatError`.
- `xv6sim.cstring` has C-style helpers that work on bytes and stop at the
  first NUL: `memcmp`, `memmove`, `strncmp`, `strcmp`, `strncpy`,
  `safestrcpy`, `strlen`, `strchr`, `atoi` and `gets`.
  - `strchr` returns an index or `None`.
  - `gets` reads one line from a binary stream.
- `xv6sim.umalloc` provides `Heap(limit)`, a first-fit free-list allocator
  with one-unit block headers:
  - Its `sbrk` moves the break and raises `MemoryError` beyond `limit`.
  - `malloc` and `free` allocate and release blocks. `free` coalesces neighbouring blocks.
  - `free_blocks()` lists the free blocks as `(address, bytes)`.
- `xv6sim.vm` models paging:
  - `PhysicalMemory(start, stop)` is page-granular memory. It has `kalloc`, `kfree`, `read`, `write` and `free_pages`.
  - `PageDirectory` is a two-level page table over that memory. It has `walk`, `map_pages`, `init_uvm`, `load_uvm`, `alloc_uvm`, `dealloc_uvm`, `free`, `clear_pte_u`, `copy`, `uva2ka`, `copyout` and `read_user`.
  - `setup_kvm(memory, data_addr)` builds a directory with the kernel mappings.
  - Running out of pages raises `OutOfMemoryError`.
- `xv6sim.spinlock` provides two classes:
  - `Cpu` tracks interrupt-disable nesting with `push_cli`, `pop_cli` and `sti`.
  - `SpinLock` is held by one `Cpu` at a time, through `acquire`, `release` and `holding`. `acquire` blocks while another CPU holds the lock.
  - Misuse raises `LockError`. Examples of misuse are acquiring a lock twice on one CPU, releasing a lock the CPU does not hold, and unbalanced `pop_cli`.
- `xv6sim.shell` parses shell command lines:
  - `tokenize` splits a command line into `(kind, text)` tokens.
  - `parse_cmd` builds a tree of `ExecCmd`, `RedirCmd`, `PipeCmd`, `ListCmd` and `BackCmd`.
  - It handles the operators `<`, `>`, `>>`, `|`, `;`, `&` and parentheses.
  - Bad input raises `ShellSyntaxError`. Examples are leftovers, a missing `)`, a redirection with no file name, and ten or more arguments.
- `xv6sim.syscall` provides two classes:
  - `UserMemory` fetches system-call arguments from a process image, through `fetch_int`, `fetch_str`, `arg_int`, `arg_ptr` and `arg_str`. An address outside the process raises `BadAddress`.
  - `Dispatcher` maps call numbers to handlers. For an unknown number, `dispatch` prints a message and returns -1.
- `xv6sim.wc` and `xv6sim.rm` are the word-count and remove utilities.
  - `wc.count(data)` returns `(lines, words, chars)`.
  - `wc.wc(stream, name)` returns the report line for a stream.

## Example

```python
from xv6sim.shell import parse_cmd, PipeCmd
from xv6sim.umalloc import Heap
from xv6sim.vm import PhysicalMemory, PageDirectory

cmd = parse_cmd("cat README | grep the > out\n")
assert isinstance(cmd, PipeCmd)

heap = Heap(limit=1 << 20)
a = heap.malloc(100)
heap.free(a)

mem = PhysicalMemory(0x200000, 0x400000)
pgdir = PageDirectory(mem)
size = pgdir.alloc_uvm(0, 8192)
pgdir.copyout(100, b"hello")
assert pgdir.read_user(100, 5) == b"hello"
```

## Commands

```
xv6-wc README          # prints "lines words bytes name" for each file
xv6-wc < README        # reads standard input when no file is given
xv6-rm file1 file2     # removes files or empty directories, stops at the first failure
```

Both commands exit with status 1 on failure.

## What it does not do

The package models parts of a kernel. It does not run one.

- There is no scheduler, process table or trap handling.
- There is no file system, disk or buffer cache.
- There are no devices.
- The shell module only parses command lines. It does not execute them.
- The system-call `Dispatcher` runs only the handlers you register with it.

## Tests

```
pip install -e .[test]
pytest
```