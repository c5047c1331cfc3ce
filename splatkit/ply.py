"""Reading and writing PLY headers and element records (ASCII and binary)."""

from __future__ import annotations

import struct
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, BinaryIO, Optional


class PlyError(ValueError):
    """Malformed or truncated PLY data."""


class ScalarType(str, Enum):
    CHAR = "char"
    UCHAR = "uchar"
    SHORT = "short"
    USHORT = "ushort"
    INT = "int"
    UINT = "uint"
    FLOAT = "float"
    DOUBLE = "double"


class Encoding(str, Enum):
    ASCII = "ascii"
    BINARY_LITTLE_ENDIAN = "binary_little_endian"
    BINARY_BIG_ENDIAN = "binary_big_endian"


_STRUCT_CODES = {
    ScalarType.CHAR: "b",
    ScalarType.UCHAR: "B",
    ScalarType.SHORT: "h",
    ScalarType.USHORT: "H",
    ScalarType.INT: "i",
    ScalarType.UINT: "I",
    ScalarType.FLOAT: "f",
    ScalarType.DOUBLE: "d",
}

_INT_RANGES = {
    ScalarType.CHAR: (-(2**7), 2**7 - 1),
    ScalarType.UCHAR: (0, 2**8 - 1),
    ScalarType.SHORT: (-(2**15), 2**15 - 1),
    ScalarType.USHORT: (0, 2**16 - 1),
    ScalarType.INT: (-(2**31), 2**31 - 1),
    ScalarType.UINT: (0, 2**32 - 1),
}

_ALIASES = {
    "int8": ScalarType.CHAR,
    "uint8": ScalarType.UCHAR,
    "int16": ScalarType.SHORT,
    "uint16": ScalarType.USHORT,
    "int32": ScalarType.INT,
    "uint32": ScalarType.UINT,
    "float32": ScalarType.FLOAT,
    "float64": ScalarType.DOUBLE,
}


def _parse_scalar(name: str) -> ScalarType:
    if name in _ALIASES:
        return _ALIASES[name]
    try:
        return ScalarType(name)
    except ValueError:
        raise PlyError(f"unknown scalar type {name!r}") from None


def _is_float(kind: ScalarType) -> bool:
    return kind in (ScalarType.FLOAT, ScalarType.DOUBLE)


@dataclass
class PropertyDef:
    """A property of an element: a scalar, or a list when ``count_type`` is set."""

    name: str
    data_type: ScalarType
    count_type: Optional[ScalarType] = None


@dataclass
class ElementDef:
    name: str
    count: int = 0
    properties: list[PropertyDef] = field(default_factory=list)


@dataclass
class PlyHeader:
    encoding: Encoding = Encoding.ASCII
    elements: list[ElementDef] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)
    obj_infos: list[str] = field(default_factory=list)


def _read_header_line(stream: BinaryIO) -> str:
    raw = stream.readline()
    if not raw:
        raise PlyError("unexpected end of file in header")
    try:
        return raw.decode("ascii").strip()
    except UnicodeDecodeError:
        raise PlyError("header is not ASCII") from None


def _parse_count(text: str) -> int:
    try:
        count = int(text)
    except ValueError:
        raise PlyError(f"invalid element count {text!r}") from None
    if count < 0:
        raise PlyError(f"negative element count {count}")
    return count


def read_header(stream: BinaryIO) -> PlyHeader:
    """Parse a PLY header, leaving ``stream`` at the first element record."""
    if _read_header_line(stream) != "ply":
        raise PlyError("missing 'ply' magic line")

    header = PlyHeader()
    seen_format = False
    while True:
        line = _read_header_line(stream)
        if not line:
            continue
        keyword, _, rest = line.partition(" ")
        rest = rest.strip()
        parts = rest.split()

        if keyword == "end_header":
            break
        if keyword == "format":
            if len(parts) != 2:
                raise PlyError(f"malformed format line {line!r}")
            try:
                header.encoding = Encoding(parts[0])
            except ValueError:
                raise PlyError(f"unknown encoding {parts[0]!r}") from None
            seen_format = True
        elif keyword == "comment":
            header.comments.append(rest)
        elif keyword == "obj_info":
            header.obj_infos.append(rest)
        elif keyword == "element":
            if len(parts) != 2:
                raise PlyError(f"malformed element line {line!r}")
            header.elements.append(ElementDef(parts[0], _parse_count(parts[1])))
        elif keyword == "property":
            if not header.elements:
                raise PlyError("property defined before any element")
            if parts and parts[0] == "list":
                if len(parts) != 4:
                    raise PlyError(f"malformed list property {line!r}")
                prop = PropertyDef(
                    parts[3], _parse_scalar(parts[2]), _parse_scalar(parts[1])
                )
            else:
                if len(parts) != 2:
                    raise PlyError(f"malformed property line {line!r}")
                prop = PropertyDef(parts[1], _parse_scalar(parts[0]))
            header.elements[-1].properties.append(prop)
        else:
            raise PlyError(f"unknown header line {line!r}")

    if not seen_format:
        raise PlyError("header has no format line")
    return header


def _parse_ascii(token: str, kind: ScalarType) -> Any:
    try:
        value = float(token) if _is_float(kind) else int(token)
    except ValueError:
        raise PlyError(f"invalid {kind.value} value {token!r}") from None
    if not _is_float(kind):
        _check_int(value, kind)
    return value


def _check_int(value: int, kind: ScalarType) -> None:
    low, high = _INT_RANGES[kind]
    if not low <= value <= high:
        raise PlyError(f"value {value} out of range for {kind.value}")


def _read_ascii_element(stream: BinaryIO, element: ElementDef) -> dict[str, Any]:
    raw = stream.readline()
    if not raw:
        raise PlyError(f"unexpected end of file reading {element.name!r}")
    try:
        tokens = iter(raw.decode("ascii").split())
    except UnicodeDecodeError:
        raise PlyError("ASCII record is not ASCII") from None

    def take(kind: ScalarType) -> Any:
        token = next(tokens, None)
        if token is None:
            raise PlyError(f"too few values in {element.name!r} record")
        return _parse_ascii(token, kind)

    values: dict[str, Any] = {}
    for prop in element.properties:
        if prop.count_type is None:
            values[prop.name] = take(prop.data_type)
        else:
            count = take(prop.count_type)
            if count < 0:
                raise PlyError(f"negative list length in {prop.name!r}")
            values[prop.name] = [take(prop.data_type) for _ in range(count)]
    if next(tokens, None) is not None:
        raise PlyError(f"too many values in {element.name!r} record")
    return values


def _read_binary_element(
    stream: BinaryIO, element: ElementDef, prefix: str
) -> dict[str, Any]:
    def take(kind: ScalarType, count: int = 1) -> tuple:
        fmt = f"{prefix}{count}{_STRUCT_CODES[kind]}"
        size = struct.calcsize(fmt)
        data = stream.read(size)
        if len(data) != size:
            raise PlyError(f"unexpected end of file reading {element.name!r}")
        return struct.unpack(fmt, data)

    values: dict[str, Any] = {}
    for prop in element.properties:
        if prop.count_type is None:
            values[prop.name] = take(prop.data_type)[0]
        else:
            (count,) = take(prop.count_type)
            if count < 0:
                raise PlyError(f"negative list length in {prop.name!r}")
            values[prop.name] = list(take(prop.data_type, count)) if count else []
    return values


def _endian_prefix(encoding: Encoding) -> str:
    return "<" if encoding is Encoding.BINARY_LITTLE_ENDIAN else ">"


def read_element(
    stream: BinaryIO, element: ElementDef, encoding: Encoding
) -> dict[str, Any]:
    """Read one record of ``element``; lists come back as Python lists."""
    encoding = Encoding(encoding)
    if encoding is Encoding.ASCII:
        return _read_ascii_element(stream, element)
    return _read_binary_element(stream, element, _endian_prefix(encoding))


def write_header(stream: BinaryIO, header: PlyHeader) -> None:
    """Write a header, including the closing ``end_header`` line."""
    lines = ["ply", f"format {Encoding(header.encoding).value} 1.0"]
    lines += [f"comment {c}" for c in header.comments]
    lines += [f"obj_info {o}" for o in header.obj_infos]
    for element in header.elements:
        lines.append(f"element {element.name} {element.count}")
        for prop in element.properties:
            if prop.count_type is None:
                lines.append(f"property {prop.data_type.value} {prop.name}")
            else:
                lines.append(
                    f"property list {prop.count_type.value} "
                    f"{prop.data_type.value} {prop.name}"
                )
    lines.append("end_header")
    stream.write(("\n".join(lines) + "\n").encode("ascii"))


def _coerce(value: Any, kind: ScalarType, name: str) -> Any:
    if value is None:
        raise PlyError(f"no value for property {name!r}")
    if _is_float(kind):
        return float(value)
    number = int(value)
    _check_int(number, kind)
    return number


def _record_items(
    element: ElementDef, values: Mapping[str, Any]
) -> list[tuple[ScalarType, Any]]:
    items: list[tuple[ScalarType, Any]] = []
    for prop in element.properties:
        if prop.name not in values:
            raise PlyError(f"no value for property {prop.name!r}")
        value = values[prop.name]
        if prop.count_type is None:
            items.append((prop.data_type, _coerce(value, prop.data_type, prop.name)))
        else:
            if value is None:
                raise PlyError(f"no value for property {prop.name!r}")
            entries = list(value)
            items.append((prop.count_type, _coerce(len(entries), prop.count_type, prop.name)))
            items.extend((prop.data_type, _coerce(v, prop.data_type, prop.name)) for v in entries)
    return items


def write_element(
    stream: BinaryIO,
    element: ElementDef,
    values: Mapping[str, Any],
    encoding: Encoding,
) -> None:
    """Write one record of ``element`` from a mapping of property name to value."""
    encoding = Encoding(encoding)
    items = _record_items(element, values)
    if encoding is Encoding.ASCII:
        line = " ".join(repr(v) if _is_float(k) else str(v) for k, v in items)
        stream.write((line + "\n").encode("ascii"))
        return
    fmt = _endian_prefix(encoding) + "".join(_STRUCT_CODES[k] for k, _ in items)
    try:
        stream.write(struct.pack(fmt, *(v for _, v in items)))
    except (struct.error, OverflowError) as exc:
        raise PlyError(f"cannot encode {element.name!r} record: {exc}") from None