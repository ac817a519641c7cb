"""Count lines, words and bytes."""

import sys
from typing import BinaryIO, Iterable, List, NamedTuple, Optional

CHUNK = 512
_SPACE = frozenset(b" \r\t\n\v")


class Counts(NamedTuple):
    lines: int
    words: int
    chars: int


def _count_chunks(chunks: Iterable[bytes]) -> Counts:
    lines = words = chars = 0
    inword = False
    for chunk in chunks:
        chars += len(chunk)
        lines += chunk.count(b"\n")
        for byte in chunk:
            if byte in _SPACE:
                inword = False
            elif not inword:
                words += 1
                inword = True
    return Counts(lines, words, chars)


def count(data: bytes) -> Counts:
    """Line, word and byte counts of ``data``."""
    return _count_chunks([bytes(data)])


def _read_chunks(stream: BinaryIO):
    while True:
        chunk = stream.read(CHUNK)
        if not chunk:
            return
        yield chunk


def wc(stream: BinaryIO, name: str) -> str:
    """The report line for ``stream``: lines, words, bytes and ``name``."""
    counts = _count_chunks(_read_chunks(stream))
    return f"{counts.lines} {counts.words} {counts.chars} {name}"


def main(argv: Optional[List[str]] = None) -> int:
    """Report counts for each named file, or for standard input."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        if not args:
            print(wc(sys.stdin.buffer, ""))
            return 0
        for path in args:
            try:
                stream = open(path, "rb")
            except OSError:
                print(f"wc: cannot open {path}")
                return 1
            with stream:
                print(wc(stream, path))
    except OSError:
        print("wc: read error")
        return 1
    return 0