"""
InstructionCodec — binary encoding of proof instructions.

The on-chain program deserializes its instruction data with Borsh, so the
layout here is written out by hand and must match it byte for byte:

    u8                      variant discriminant
    (u32 LE len, utf-8)*    string fields, in declared order
    u64 LE                  integer fields, in declared order

Variants:
    0  StoreProof   fields depend on the deployment's InstructionLayout
    1  GetProof     no fields

Two StoreProof layouts exist in deployed programs:

    content-length   {url, content_hash, content_length: u64}
    created-at       {url, hash, created_at}

decode() is the exact inverse of encode() and exists for verification.
"""

import struct
from dataclasses import dataclass

from chain_gateway.config import InstructionLayout
from chain_gateway.errors import EncodingError
from chain_gateway.records import ContentRecord

STORE_PROOF = 0
GET_PROOF = 1

U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1

# Declared field order per layout: (field name, kind)
_LAYOUTS = {
    InstructionLayout.CONTENT_LENGTH: (
        ("url", "string"),
        ("content_hash", "string"),
        ("content_length", "u64"),
    ),
    InstructionLayout.CREATED_AT: (
        ("url", "string"),
        ("hash", "string"),
        ("created_at", "string"),
    ),
}


@dataclass(frozen=True)
class StoreProof:
    """Store one proof. Only the fields of the active layout are populated."""
    url: str
    content_hash: str = ""
    content_length: int = 0
    created_at: str = ""

    discriminant = STORE_PROOF

    @property
    def hash(self) -> str:
        return self.content_hash

    @classmethod
    def from_record(cls, record: ContentRecord) -> "StoreProof":
        return cls(
            url=record.url,
            content_hash=record.content_hash,
            content_length=record.content_length,
            created_at=record.created_at,
        )


@dataclass(frozen=True)
class GetProof:
    discriminant = GET_PROOF


ProofInstruction = StoreProof | GetProof


def _pack_string(value, name: str) -> bytes:
    if not isinstance(value, str):
        raise EncodingError(f"{name} must be a string, got {type(value).__name__}")
    try:
        raw = value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise EncodingError(f"{name} is not valid UTF-8: {e}") from e
    if len(raw) > U32_MAX:
        raise EncodingError(f"{name} is too long to encode ({len(raw)} bytes)")
    return struct.pack("<I", len(raw)) + raw


def _pack_u64(value, name: str) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingError(f"{name} must be an integer, got {type(value).__name__}")
    if not 0 <= value <= U64_MAX:
        raise EncodingError(f"{name} out of range for u64: {value}")
    return struct.pack("<Q", value)


class InstructionCodec:
    """Encodes records into the program's instruction format for one layout."""

    def __init__(self, layout: InstructionLayout = InstructionLayout.CONTENT_LENGTH):
        self.layout = layout
        self._fields = _LAYOUTS[layout]

    def encode(self, record: ContentRecord) -> bytes:
        """
        Encode a record as a StoreProof instruction.

        Raises:
            EncodingError: If a field cannot be represented.
        """
        return self.encode_instruction(StoreProof.from_record(record))

    def encode_instruction(self, instruction: ProofInstruction) -> bytes:
        if isinstance(instruction, GetProof):
            return bytes([GET_PROOF])
        if not isinstance(instruction, StoreProof):
            raise EncodingError(f"Unknown instruction: {instruction!r}")

        strings = []
        integers = []
        for name, kind in self._fields:
            value = getattr(instruction, name)
            if kind == "string":
                strings.append(_pack_string(value, name))
            else:
                integers.append(_pack_u64(value, name))
        return bytes([STORE_PROOF]) + b"".join(strings) + b"".join(integers)

    def decode(self, data: bytes) -> ProofInstruction:
        """
        Decode instruction bytes produced by encode().

        Raises:
            EncodingError: On an unknown discriminant, truncation or trailing bytes.
        """
        if not data:
            raise EncodingError("Empty instruction data")

        tag = data[0]
        if tag == GET_PROOF:
            if len(data) != 1:
                raise EncodingError("GetProof carries no fields")
            return GetProof()
        if tag != STORE_PROOF:
            raise EncodingError(f"Unknown instruction discriminant: {tag}")

        offset = 1
        values = {}
        try:
            for name, kind in self._fields:
                if kind != "string":
                    continue
                (length,) = struct.unpack_from("<I", data, offset)
                offset += 4
                raw = data[offset:offset + length]
                if len(raw) != length:
                    raise EncodingError(f"Truncated string field {name}")
                values[name] = raw.decode("utf-8")
                offset += length
            for name, kind in self._fields:
                if kind != "u64":
                    continue
                (values[name],) = struct.unpack_from("<Q", data, offset)
                offset += 8
        except struct.error as e:
            raise EncodingError(f"Truncated instruction data: {e}") from e
        except UnicodeDecodeError as e:
            raise EncodingError(f"Invalid UTF-8 in instruction data: {e}") from e

        if offset != len(data):
            raise EncodingError(f"{len(data) - offset} trailing bytes after instruction")

        if "hash" in values:
            values["content_hash"] = values.pop("hash")
        return StoreProof(**values)
