"""x86 memory-management unit definitions: paging helpers and descriptors."""

from dataclasses import dataclass, fields
from typing import ClassVar, Tuple

UINT_MASK = 0xFFFFFFFF

# Eflags register.
FL_CF = 0x00000001
FL_PF = 0x00000004
FL_AF = 0x00000010
FL_ZF = 0x00000040
FL_SF = 0x00000080
FL_TF = 0x00000100
FL_IF = 0x00000200
FL_DF = 0x00000400
FL_OF = 0x00000800
FL_IOPL_MASK = 0x00003000
FL_IOPL_0 = 0x00000000
FL_IOPL_1 = 0x00001000
FL_IOPL_2 = 0x00002000
FL_IOPL_3 = 0x00003000
FL_NT = 0x00004000
FL_RF = 0x00010000
FL_VM = 0x00020000
FL_AC = 0x00040000
FL_VIF = 0x00080000
FL_VIP = 0x00100000
FL_ID = 0x00200000

# Control register flags.
CR0_PE = 0x00000001
CR0_MP = 0x00000002
CR0_EM = 0x00000004
CR0_TS = 0x00000008
CR0_ET = 0x00000010
CR0_NE = 0x00000020
CR0_WP = 0x00010000
CR0_AM = 0x00040000
CR0_NW = 0x20000000
CR0_CD = 0x40000000
CR0_PG = 0x80000000
CR4_PSE = 0x00000010

# Segment selectors.
SEG_KCODE = 1
SEG_KDATA = 2
SEG_KCPU = 3
SEG_UCODE = 4
SEG_UDATA = 5
SEG_TSS = 6

DPL_USER = 0x3

# Application segment type bits.
STA_X = 0x8
STA_E = 0x4
STA_C = 0x4
STA_W = 0x2
STA_R = 0x2
STA_A = 0x1

# System segment type bits.
STS_T16A = 0x1
STS_LDT = 0x2
STS_T16B = 0x3
STS_CG16 = 0x4
STS_TG = 0x5
STS_IG16 = 0x6
STS_TG16 = 0x7
STS_T32A = 0x9
STS_T32B = 0xB
STS_CG32 = 0xC
STS_IG32 = 0xE
STS_TG32 = 0xF

# Paging.
NPDENTRIES = 1024
NPTENTRIES = 1024
PGSIZE = 4096
PGSHIFT = 12
PTXSHIFT = 12
PDXSHIFT = 22

PTE_P = 0x001
PTE_W = 0x002
PTE_U = 0x004
PTE_PWT = 0x008
PTE_PCD = 0x010
PTE_A = 0x020
PTE_D = 0x040
PTE_PS = 0x080
PTE_MBZ = 0x180

SEG_NULLASM = bytes(8)

_DESCRIPTOR_SIZE = 8


def pdx(va: int) -> int:
    """Page directory index of a virtual address."""
    return ((va & UINT_MASK) >> PDXSHIFT) & 0x3FF


def ptx(va: int) -> int:
    """Page table index of a virtual address."""
    return ((va & UINT_MASK) >> PTXSHIFT) & 0x3FF


def pgaddr(d: int, t: int, o: int) -> int:
    """Build a virtual address from directory index, table index and offset."""
    return ((d << PDXSHIFT) | (t << PTXSHIFT) | o) & UINT_MASK


def pg_round_up(sz: int) -> int:
    """Round up to a page boundary."""
    return (sz + PGSIZE - 1) & ~(PGSIZE - 1)


def pg_round_down(a: int) -> int:
    """Round down to a page boundary."""
    return a & ~(PGSIZE - 1)


def pte_addr(pte: int) -> int:
    """Physical address held in a page table or directory entry."""
    return (pte & UINT_MASK) & ~0xFFF


def _pack_fields(obj, layout) -> bytes:
    value = 0
    shift = 0
    for name, width in layout:
        field = getattr(obj, name)
        if not 0 <= field < (1 << width):
            raise ValueError(f"field {name}={field} does not fit in {width} bits")
        value |= field << shift
        shift += width
    return value.to_bytes(_DESCRIPTOR_SIZE, "little")


def _unpack_fields(cls, layout, data: bytes):
    if len(data) != _DESCRIPTOR_SIZE:
        raise ValueError(f"descriptor must be {_DESCRIPTOR_SIZE} bytes, got {len(data)}")
    value = int.from_bytes(data, "little")
    values = {}
    for name, width in layout:
        values[name] = value & ((1 << width) - 1)
        value >>= width
    return cls(**values)


@dataclass
class SegmentDescriptor:
    """A GDT/LDT segment descriptor with its bitfields spelled out."""

    lim_15_0: int = 0
    base_15_0: int = 0
    base_23_16: int = 0
    type: int = 0
    s: int = 0
    dpl: int = 0
    p: int = 0
    lim_19_16: int = 0
    avl: int = 0
    rsv1: int = 0
    db: int = 0
    g: int = 0
    base_31_24: int = 0

    _LAYOUT: ClassVar[Tuple[Tuple[str, int], ...]] = (
        ("lim_15_0", 16),
        ("base_15_0", 16),
        ("base_23_16", 8),
        ("type", 4),
        ("s", 1),
        ("dpl", 2),
        ("p", 1),
        ("lim_19_16", 4),
        ("avl", 1),
        ("rsv1", 1),
        ("db", 1),
        ("g", 1),
        ("base_31_24", 8),
    )

    @property
    def base(self) -> int:
        """The full 32-bit segment base."""
        return self.base_15_0 | (self.base_23_16 << 16) | (self.base_31_24 << 24)

    def pack(self) -> bytes:
        """Encode as the 8 bytes the processor reads."""
        return _pack_fields(self, self._LAYOUT)

    @classmethod
    def unpack(cls, data: bytes) -> "SegmentDescriptor":
        """Decode 8 descriptor bytes."""
        return _unpack_fields(cls, cls._LAYOUT, data)


@dataclass
class GateDescriptor:
    """An interrupt or trap gate in the IDT."""

    off_15_0: int = 0
    cs: int = 0
    args: int = 0
    rsv1: int = 0
    type: int = 0
    s: int = 0
    dpl: int = 0
    p: int = 0
    off_31_16: int = 0

    _LAYOUT: ClassVar[Tuple[Tuple[str, int], ...]] = (
        ("off_15_0", 16),
        ("cs", 16),
        ("args", 5),
        ("rsv1", 3),
        ("type", 4),
        ("s", 1),
        ("dpl", 2),
        ("p", 1),
        ("off_31_16", 16),
    )

    @property
    def offset(self) -> int:
        """The full 32-bit handler offset."""
        return self.off_15_0 | (self.off_31_16 << 16)

    def pack(self) -> bytes:
        """Encode as the 8 bytes the processor reads."""
        return _pack_fields(self, self._LAYOUT)

    @classmethod
    def unpack(cls, data: bytes) -> "GateDescriptor":
        """Decode 8 gate bytes."""
        return _unpack_fields(cls, cls._LAYOUT, data)


def seg(type_: int, base: int, lim: int, dpl: int) -> SegmentDescriptor:
    """Normal 32-bit segment with 4 KiB granularity."""
    base &= UINT_MASK
    lim &= UINT_MASK
    return SegmentDescriptor(
        lim_15_0=(lim >> 12) & 0xFFFF,
        base_15_0=base & 0xFFFF,
        base_23_16=(base >> 16) & 0xFF,
        type=type_ & 0xF,
        s=1,
        dpl=dpl & 0x3,
        p=1,
        lim_19_16=(lim >> 28) & 0xF,
        avl=0,
        rsv1=0,
        db=1,
        g=1,
        base_31_24=(base >> 24) & 0xFF,
    )


def seg16(type_: int, base: int, lim: int, dpl: int) -> SegmentDescriptor:
    """Byte-granular segment, as used for the task state segment."""
    base &= UINT_MASK
    lim &= UINT_MASK
    return SegmentDescriptor(
        lim_15_0=lim & 0xFFFF,
        base_15_0=base & 0xFFFF,
        base_23_16=(base >> 16) & 0xFF,
        type=type_ & 0xF,
        s=1,
        dpl=dpl & 0x3,
        p=1,
        lim_19_16=(lim >> 16) & 0xF,
        avl=0,
        rsv1=0,
        db=1,
        g=0,
        base_31_24=(base >> 24) & 0xFF,
    )


def seg_asm(type_: int, base: int, lim: int) -> bytes:
    """Raw bytes of a boot-time segment descriptor."""
    base &= UINT_MASK
    lim &= UINT_MASK
    words = ((lim >> 12) & 0xFFFF, base & 0xFFFF)
    tail = bytes(
        (
            (base >> 16) & 0xFF,
            0x90 | (type_ & 0xFF),
            0xC0 | ((lim >> 28) & 0xF),
            (base >> 24) & 0xFF,
        )
    )
    return b"".join(w.to_bytes(2, "little") for w in words) + tail


def make_gate(istrap: bool, sel: int, off: int, dpl: int) -> GateDescriptor:
    """Interrupt gate (clears IF) or trap gate (leaves IF alone)."""
    off &= UINT_MASK
    return GateDescriptor(
        off_15_0=off & 0xFFFF,
        cs=sel & 0xFFFF,
        args=0,
        rsv1=0,
        type=STS_TG32 if istrap else STS_IG32,
        s=0,
        dpl=dpl & 0x3,
        p=1,
        off_31_16=off >> 16,
    )


def descriptor_fields(desc) -> dict:
    """Field values of a descriptor as a plain mapping."""
    return {f.name: getattr(desc, f.name) for f in fields(desc)}