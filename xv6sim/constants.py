"""Kernel-wide parameters, numbering schemes and address-space layout."""

from enum import IntEnum, IntFlag

UINT_MASK = 0xFFFFFFFF

# Kernel parameters.
NPROC = 64
KSTACKSIZE = 4096
NCPU = 8
NOFILE = 16
NFILE = 100
NBUF = 10
NINODE = 50
NDEV = 10
ROOTDEV = 1
MAXARG = 32
LOGSIZE = 10

# Memory layout.
EXTMEM = 0x100000
PHYSTOP = 0xE000000
DEVSPACE = 0xFE000000
KERNBASE = 0x80000000
KERNLINK = KERNBASE + EXTMEM

# Hardware interrupt lines.
IRQ_TIMER = 0
IRQ_KBD = 1
IRQ_COM1 = 4
IRQ_IDE = 14
IRQ_ERROR = 19
IRQ_SPURIOUS = 31

# Intel 8253 programmable interval timer.
IO_TIMER1 = 0x040
TIMER_FREQ = 1193182
TIMER_MODE = IO_TIMER1 + 3
TIMER_SEL0 = 0x00
TIMER_RATEGEN = 0x04
TIMER_16BIT = 0x30


class FileType(IntEnum):
    """Kind of object an inode describes."""

    DIR = 1
    FILE = 2
    DEV = 3


class OpenMode(IntFlag):
    """Flags accepted by the open system call."""

    RDONLY = 0x000
    WRONLY = 0x001
    RDWR = 0x002
    CREATE = 0x200


class Syscall(IntEnum):
    """System call numbers."""

    FORK = 1
    EXIT = 2
    WAIT = 3
    PIPE = 4
    READ = 5
    KILL = 6
    EXEC = 7
    FSTAT = 8
    CHDIR = 9
    DUP = 10
    GETPID = 11
    SBRK = 12
    SLEEP = 13
    UPTIME = 14
    OPEN = 15
    WRITE = 16
    MKNOD = 17
    UNLINK = 18
    LINK = 19
    MKDIR = 20
    CLOSE = 21


class Trap(IntEnum):
    """Processor-defined exceptions and the kernel's chosen vectors."""

    DIVIDE = 0
    DEBUG = 1
    NMI = 2
    BRKPT = 3
    OFLOW = 4
    BOUND = 5
    ILLOP = 6
    DEVICE = 7
    DBLFLT = 8
    TSS = 10
    SEGNP = 11
    STACK = 12
    GPFLT = 13
    PGFLT = 14
    FPERR = 16
    ALIGN = 17
    MCHK = 18
    SIMDERR = 19
    IRQ0 = 32
    SYSCALL = 64
    DEFAULT = 500


def v2p(addr: int) -> int:
    """Convert a kernel virtual address to a physical address."""
    return (addr - KERNBASE) & UINT_MASK


def p2v(addr: int) -> int:
    """Convert a physical address to a kernel virtual address."""
    return (addr + KERNBASE) & UINT_MASK


def timer_div(freq: int) -> int:
    """Return the timer count that yields interrupts at ``freq`` Hz."""
    if freq <= 0:
        raise ValueError(f"frequency must be positive, got {freq}")
    return (TIMER_FREQ + freq // 2) // freq