"""Fixed-width scalar markers.

Python has a single arbitrary-precision ``int`` and a double-precision
``float``. These ``NewType`` markers let a field declare the width it is
serialized with so the generated schema can carry exact bounds or a format::

    @dataclass
    class Pixel:
        red: UInt8
        offset: Int16
        raw: RawJSON
"""

from __future__ import annotations

from typing import NewType

__all__ = [
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "UInt",
    "UInt8",
    "UInt16",
    "UInt32",
    "UInt64",
    "Float32",
    "Float64",
    "RawJSON",
]

Int8 = NewType("Int8", int)
Int16 = NewType("Int16", int)
Int32 = NewType("Int32", int)
Int64 = NewType("Int64", int)
UInt = NewType("UInt", int)
UInt8 = NewType("UInt8", int)
UInt16 = NewType("UInt16", int)
UInt32 = NewType("UInt32", int)
UInt64 = NewType("UInt64", int)
Float32 = NewType("Float32", float)
Float64 = NewType("Float64", float)

# Already-encoded JSON carried as bytes; emitted as an untyped schema.
RawJSON = NewType("RawJSON", bytes)
