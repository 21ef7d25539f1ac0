#!/usr/bin/env python3
"""
Member record codec
Packs the governance roster into the opaque payload taken by GovImp.initOnce
"""

from dataclasses import dataclass
from typing import Iterator, List, Sequence, Tuple

from web3 import Web3

WORD_SIZE = 32
CANONICAL_ID_LENGTH = 128  # 64 bytes as hex


class InvalidMemberIdError(ValueError):
    """Raised when a node id cannot be turned into a canonical 64-byte id"""


@dataclass
class MemberRecord:
    """One roster entry"""
    staker: str
    voter: str
    reward: str
    name: str
    id: str
    ip: str
    port: int
    bootnode: bool = False
    addr: str = ""
    stake: int = 0


def pack_num(num: int) -> bytes:
    """
    Pack a non-negative integer into a 32-byte big-endian word

    Args:
        num: Value to pack, must fit in 256 bits

    Returns:
        32 bytes, zero padded on the left

    Raises:
        OverflowError: if the value is negative or wider than 256 bits
    """
    return num.to_bytes(WORD_SIZE, 'big')


def pack_address(address: str) -> bytes:
    """Left pad a 20-byte account address to a full word"""
    raw = Web3.to_bytes(hexstr=address)
    if len(raw) != 20:
        raise ValueError(f"Address must be 20 bytes, got {len(raw)}: {address}")
    return raw.rjust(WORD_SIZE, b'\x00')


def normalize_id(node_id: str) -> str:
    """
    Reduce a node id to its canonical 128 hex character form

    Ids of unexpected length are cut to 130 characters first, a 130 character
    id then loses its two character prefix.
    """
    if len(node_id) != CANONICAL_ID_LENGTH and len(node_id) != CANONICAL_ID_LENGTH + 2:
        node_id = node_id[:CANONICAL_ID_LENGTH + 2]
    if len(node_id) == CANONICAL_ID_LENGTH + 2:
        node_id = node_id[2:]
    if len(node_id) != CANONICAL_ID_LENGTH:
        raise InvalidMemberIdError(
            f"Node id must be {CANONICAL_ID_LENGTH} hex characters after normalization, got {len(node_id)}"
        )
    return node_id


class MemberDataBuilder:
    """Byte buffer for the initOnce member payload"""

    def __init__(self):
        self._buf = bytearray()

    def __len__(self) -> int:
        return len(self._buf)

    def word(self, num: int) -> 'MemberDataBuilder':
        self._buf += pack_num(num)
        return self

    def address(self, address: str) -> 'MemberDataBuilder':
        self._buf += pack_address(address)
        return self

    def blob(self, data: bytes) -> 'MemberDataBuilder':
        """Length word followed by the raw bytes"""
        self._buf += pack_num(len(data))
        self._buf += data
        return self

    def text(self, value: str) -> 'MemberDataBuilder':
        return self.blob(value.encode('utf-8'))

    def member(self, record: MemberRecord) -> 'MemberDataBuilder':
        node_id = normalize_id(record.id)
        try:
            id_bytes = bytes.fromhex(node_id)
        except ValueError as e:
            raise InvalidMemberIdError(f"Node id of {record.name} is not hex: {e}") from e

        # all three must decode before the buffer is touched
        accounts = [pack_address(a) for a in (record.staker, record.voter, record.reward)]
        for account in accounts:
            self._buf += account
        self.text(record.name)
        self.blob(id_bytes)
        self.text(record.ip)
        self.word(record.port)
        return self

    def to_bytes(self) -> bytes:
        return bytes(self._buf)

    def to_hex(self) -> str:
        return '0x' + self._buf.hex()


def encode_members(records: Sequence[MemberRecord], start: int, end: int) -> str:
    """
    Encode records[start:end] as a 0x-prefixed hex payload

    Args:
        records: Ordered roster
        start: First index (inclusive)
        end: Last index (exclusive)

    Returns:
        Hex string starting with "0x"; "0x" alone for an empty range
    """
    builder = MemberDataBuilder()
    for i in range(start, end):
        builder.member(records[i])
    return builder.to_hex()


def batch_ranges(total: int, batch_size: int) -> Iterator[Tuple[int, int]]:
    """Split [0, total) into consecutive windows of at most batch_size members"""
    if batch_size <= 0:
        batch_size = max(total, 1)
    for start in range(0, total, batch_size):
        yield start, min(start + batch_size, total)


def encode_batches(records: Sequence[MemberRecord], batch_size: int) -> List[str]:
    return [encode_members(records, start, end) for start, end in batch_ranges(len(records), batch_size)]
