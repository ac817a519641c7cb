"""ELF executable headers."""

import struct
from dataclasses import astuple, dataclass
from typing import ClassVar, List

ELF_MAGIC = 0x464C457F

ELF_PROG_LOAD = 1

ELF_PROG_FLAG_EXEC = 1
ELF_PROG_FLAG_WRITE = 2
ELF_PROG_FLAG_READ = 4

_HEADER = struct.Struct("<I12sHHIIIIIHHHHHH")
_PROG = struct.Struct("<8I")


class ElfFormatError(ValueError):
    """Raised when bytes do not form a valid ELF image."""


@dataclass
class ProgramHeader:
    """A program section header."""

    type: int = 0
    off: int = 0
    vaddr: int = 0
    paddr: int = 0
    filesz: int = 0
    memsz: int = 0
    flags: int = 0
    align: int = 0

    SIZE: ClassVar[int] = _PROG.size

    @classmethod
    def parse(cls, data: bytes) -> "ProgramHeader":
        """Decode a program header from the start of ``data``."""
        if len(data) < _PROG.size:
            raise ElfFormatError("truncated program header")
        return cls(*_PROG.unpack_from(data))

    def pack(self) -> bytes:
        """Encode in on-disk form."""
        return _PROG.pack(*astuple(self))


@dataclass
class ElfHeader:
    """The ELF file header."""

    magic: int = ELF_MAGIC
    elf: bytes = bytes(12)
    type: int = 0
    machine: int = 0
    version: int = 0
    entry: int = 0
    phoff: int = 0
    shoff: int = 0
    flags: int = 0
    ehsize: int = 0
    phentsize: int = 0
    phnum: int = 0
    shentsize: int = 0
    shnum: int = 0
    shstrndx: int = 0

    SIZE: ClassVar[int] = _HEADER.size

    @classmethod
    def parse(cls, data: bytes) -> "ElfHeader":
        """Decode and validate the header at the start of ``data``."""
        if len(data) < _HEADER.size:
            raise ElfFormatError("truncated ELF header")
        header = cls(*_HEADER.unpack_from(data))
        if header.magic != ELF_MAGIC:
            raise ElfFormatError(f"bad ELF magic {header.magic:#x}")
        return header

    def pack(self) -> bytes:
        """Encode in on-disk form."""
        if len(self.elf) != 12:
            raise ValueError("elf identification must be 12 bytes")
        return _HEADER.pack(*astuple(self))

    def program_headers(self, data: bytes) -> List[ProgramHeader]:
        """Program headers of the image ``data`` this header belongs to."""
        if self.phnum and self.phentsize < ProgramHeader.SIZE:
            raise ElfFormatError(f"program header size {self.phentsize} too small")
        headers = []
        for i in range(self.phnum):
            start = self.phoff + i * self.phentsize
            headers.append(ProgramHeader.parse(data[start:start + ProgramHeader.SIZE]))
        return headers