"""
PDF Object Syntax

Helpers for writing the low-level PDF syntax: numbers, names, strings,
dictionaries, indirect objects and streams.
"""

import zlib
from datetime import datetime
from typing import Dict, Iterable, Optional, Tuple

_NAME_REGULAR = set(b'!"$&\'*+,-.0123456789:;=?@ABCDEFGHIJKLMNOPQRSTUVWXYZ\\^_`abcdefghijklmnopqrstuvwxyz|~')


def fmt(value: float) -> str:
    """Format a number compactly: 72.0 -> '72', 12.345 -> '12.35'."""
    text = f"{value:.2f}".rstrip('0').rstrip('.')
    return '0' if text in ('-0', '') else text


def fmt_color(component: int) -> str:
    text = f"{component / 255:.3f}".rstrip('0').rstrip('.')
    return text or '0'


def pdf_name(name: str) -> str:
    encoded = name.encode('utf-8')
    return '/' + ''.join(chr(b) if b in _NAME_REGULAR else f"#{b:02X}" for b in encoded)


def escape_literal(data: bytes) -> bytes:
    return (data.replace(b'\\', b'\\\\')
                .replace(b'(', b'\\(')
                .replace(b')', b'\\)')
                .replace(b'\r', b'\\r'))


def pdf_string(text: str) -> str:
    """A text string: literal when plain ASCII, UTF-16BE hex otherwise."""
    if all(32 <= ord(ch) < 127 for ch in text):
        return '(' + escape_literal(text.encode('ascii')).decode('ascii') + ')'
    return '<FEFF' + text.encode('utf-16-be').hex().upper() + '>'


def pdf_date(moment: datetime) -> str:
    stamp = moment.strftime('D:%Y%m%d%H%M%S')
    offset = moment.utcoffset()
    if offset is None:
        return f"({stamp})"
    minutes = int(offset.total_seconds() // 60)
    if minutes == 0:
        return f"({stamp}Z)"
    sign = '+' if minutes > 0 else '-'
    hours, mins = divmod(abs(minutes), 60)
    return f"({stamp}{sign}{hours:02d}'{mins:02d}')"


def ref(number: int) -> str:
    return f"{number} 0 R"


def pdf_array(items: Iterable[str]) -> str:
    return '[' + ' '.join(items) + ']'


def pdf_dict(entries: Dict[str, Optional[str]]) -> str:
    """Render a dictionary; entries with a None value are left out."""
    body = ' '.join(f"/{key} {value}" for key, value in entries.items() if value is not None)
    return f"<< {body} >>"


class PDFObject:
    """An indirect object: `N 0 obj ... endobj`."""

    def __init__(self, number: int, body: str):
        self.number = number
        self.body = body

    def serialize(self) -> bytes:
        return f"{self.number} 0 obj\n{self.body}\nendobj\n".encode('latin-1')


class PDFStream(PDFObject):
    """
    A stream object. `data` is compressed with Flate when `compress` is set
    and the dictionary does not already name a filter.
    """

    def __init__(self, number: int, entries: Dict[str, Optional[str]], data: bytes, compress: bool = False):
        entries = dict(entries)
        if compress and 'Filter' not in entries:
            data = zlib.compress(data)
            entries['Filter'] = '/FlateDecode'
        entries['Length'] = str(len(data))
        super().__init__(number, pdf_dict(entries))
        self.data = data

    def serialize(self) -> bytes:
        return (f"{self.number} 0 obj\n{self.body}\nstream\n".encode('latin-1')
                + self.data
                + b"\nendstream\nendobj\n")


def xref_table(offsets: Dict[int, int]) -> bytes:
    """
    Build the cross-reference table for objects 1..N.

    Each entry is exactly 20 bytes: 10-digit offset, 5-digit generation,
    type keyword and a two-character end of line.
    """
    size = len(offsets) + 1
    lines = [f"xref\n0 {size}\n", "0000000000 65535 f \n"]
    for number in range(1, size):
        lines.append(f"{offsets[number]:010d} 00000 n \n")
    return ''.join(lines).encode('ascii')


def trailer(size: int, root: int, info: Optional[int], xref_offset: int) -> bytes:
    entries = {'Size': str(size), 'Root': ref(root), 'Info': ref(info) if info else None}
    return f"trailer\n{pdf_dict(entries)}\nstartxref\n{xref_offset}\n%%EOF\n".encode('ascii')


def parse_xref(data: bytes) -> Dict[int, int]:
    """
    Read the cross-reference table of a serialized document.

    Returns:
        Mapping of object number to byte offset for every in-use entry
    """
    position = data.rfind(b'startxref')
    if position < 0:
        raise ValueError("startxref not found")
    xref_offset = int(data[position + len(b'startxref'):].split()[0])
    if data[xref_offset:xref_offset + 4] != b'xref':
        raise ValueError(f"No xref table at offset {xref_offset}")

    offsets: Dict[int, int] = {}
    lines = iter(data[xref_offset + 4:].splitlines())
    for line in lines:
        parts = line.split()
        if not parts:
            continue
        if parts[0] == b'trailer':
            break
        first, count = int(parts[0]), int(parts[1])
        for number in range(first, first + count):
            offset, _generation, kind = next(lines).split()
            if kind == b'n':
                offsets[number] = int(offset)
    return offsets


def object_at(data: bytes, offset: int) -> Tuple[int, int]:
    """Return (object number, generation) of the `N G obj` header at offset."""
    header = data[offset:offset + 32].split(b'\n', 1)[0].split()
    if len(header) < 3 or header[2] != b'obj':
        raise ValueError(f"No object header at offset {offset}")
    return int(header[0]), int(header[1])
