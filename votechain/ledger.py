# votechain/ledger.py
"""
Tamper-evident, append-only vote ledger.

Each Block stores one vote payload together with the SHA-256 digest of its
predecessor. Blockchain.validate() walks the whole chain and reports every
block whose stored digest or predecessor link no longer matches, so any
edit, reorder, insertion or deletion shows up on the next check.

The ledger lives in memory only and is never repaired in place: once a chain
fails validation the election owning it has to be recreated.
"""

import struct
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from cryptography.hazmat.primitives import hashes

from votechain.errors import LedgerError, UninitializedLedgerError
from votechain.models.vote_model import VotePayload

GENESIS_PREVIOUS_HASH = "0" * 64
GENESIS_PAYLOAD = VotePayload(voter_tag="GENESIS", candidate="GENESIS")

DIGEST_MISMATCH = "digest_mismatch"
LINK_MISMATCH = "link_mismatch"
INDEX_MISMATCH = "index_mismatch"
HEAD_MISMATCH = "head_mismatch"


def digest(data: bytes) -> str:
    """SHA-256 of data as 64 lowercase hex characters."""
    h = hashes.Hash(hashes.SHA256())
    h.update(data)
    return h.finalize().hex()


def _field(value: str) -> bytes:
    raw = value.encode("utf-8")
    return struct.pack(">I", len(raw)) + raw


def encode_block_fields(index: int, timestamp: str, payload: VotePayload, previous_hash: str) -> bytes:
    """Canonical byte encoding of the four hashed fields.

    The index is a fixed 8-byte integer and every string is length-prefixed,
    so two different field tuples can never produce the same bytes.
    """
    return (
        struct.pack(">Q", index)
        + _field(timestamp)
        + _field(payload.voter_tag)
        + _field(payload.candidate)
        + _field(previous_hash)
    )


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Block:
    index: int
    timestamp: str
    payload: VotePayload
    previous_hash: str
    hash: str

    @classmethod
    def create(cls, index: int, timestamp: str, payload: VotePayload, previous_hash: str) -> "Block":
        if index < 0:
            raise ValueError("Block index must be non-negative")
        block_hash = digest(encode_block_fields(index, timestamp, payload, previous_hash))
        return cls(
            index=index,
            timestamp=timestamp,
            payload=payload,
            previous_hash=previous_hash,
            hash=block_hash,
        )

    def recompute(self) -> str:
        """Digest of the block's current field values. Used by validation."""
        return digest(encode_block_fields(self.index, self.timestamp, self.payload, self.previous_hash))

    def to_dict(self, truncate: Optional[int] = None) -> Dict:
        block_hash, previous_hash = str(self.hash), str(self.previous_hash)
        if truncate is not None:
            block_hash = block_hash[:truncate] + "..."
            previous_hash = previous_hash[:truncate] + "..."
        return {
            "index": self.index,
            "timestamp": str(self.timestamp),
            "payload": self.payload.model_dump(by_alias=True),
            "hash": block_hash,
            "previousHash": previous_hash,
        }

    def __str__(self) -> str:
        return (
            f"Block #{self.index}\n"
            f"  Hash: {self.hash[:16]}...\n"
            f"  Prev: {self.previous_hash[:16]}...\n"
            f"  Candidate: {self.payload.candidate}"
        )


@dataclass(frozen=True)
class Violation:
    index: int
    kind: str
    detail: str

    def to_dict(self) -> Dict:
        return {"index": self.index, "kind": self.kind, "detail": self.detail}


@dataclass(frozen=True)
class ValidationReport:
    """Outcome of Blockchain.validate(); truthy only when the chain is intact."""

    checked: int
    violations: Tuple[Violation, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.violations

    @property
    def violating_indices(self) -> List[int]:
        seen = []
        for violation in self.violations:
            if violation.index not in seen:
                seen.append(violation.index)
        return seen

    def __bool__(self) -> bool:
        return self.valid


class Blockchain:
    """
    Hash-chained sequence of vote blocks.

    Call init() before anything else. append() is the only mutator and is
    serialized by an internal lock, so two concurrent votes can never read
    the same latest block and fork the chain.
    """

    def __init__(self):
        self._blocks: Optional[List[Block]] = None
        # Length and latest hash as of the last append; a chain cut or
        # extended at the tail still links correctly.
        self._length = 0
        self._head: Optional[str] = None
        self._lock = threading.Lock()

    def init(self) -> "Blockchain":
        with self._lock:
            if self._blocks is not None:
                raise LedgerError("Blockchain is already initialized")
            genesis = Block.create(0, utc_timestamp(), GENESIS_PAYLOAD, GENESIS_PREVIOUS_HASH)
            self._blocks = [genesis]
            self._length, self._head = 1, genesis.hash
        return self

    @property
    def initialized(self) -> bool:
        return self._blocks is not None

    def _require_init(self) -> List[Block]:
        if self._blocks is None:
            raise UninitializedLedgerError("Blockchain.init() must be called first")
        return self._blocks

    def _snapshot(self) -> Tuple[Block, ...]:
        with self._lock:
            return tuple(self._require_init())

    @property
    def blocks(self) -> Tuple[Block, ...]:
        """Point-in-time, read-only copy of the chain."""
        return self._snapshot()

    def __len__(self) -> int:
        return len(self._snapshot())

    def latest(self) -> Block:
        with self._lock:
            return self._require_init()[-1]

    def append(self, payload: VotePayload) -> Block:
        if not isinstance(payload, VotePayload):
            raise TypeError("payload must be a VotePayload")
        with self._lock:
            blocks = self._require_init()
            previous = blocks[-1]
            block = Block.create(previous.index + 1, utc_timestamp(), payload, previous.hash)
            blocks.append(block)
            self._length, self._head = self._length + 1, block.hash
        return block

    def validate(self) -> ValidationReport:
        """
        Check every block of the chain.

        For each position i the stored hash must match the recomputed digest,
        the index must equal i, and previous_hash must equal the hash of block
        i-1 (or the genesis sentinel at i == 0). The chain must also still end
        at the block the last append() produced. All violations are reported
        in chain order; nothing is modified.
        """
        with self._lock:
            blocks = tuple(self._require_init())
            expected_length, head = self._length, self._head
        violations = []
        for position, block in enumerate(blocks):
            if type(block.index) is not int or block.index != position:
                violations.append(Violation(
                    position, INDEX_MISMATCH,
                    f"expected index {position}, found {block.index!r}",
                ))
            try:
                intact = block.recompute() == block.hash
            except (struct.error, TypeError, AttributeError, ValueError, OverflowError):
                # Fields no longer encodable: tampered with a foreign type or range
                intact = False
            if not intact:
                violations.append(Violation(
                    position, DIGEST_MISMATCH,
                    "stored hash does not match block contents",
                ))
            expected_previous = blocks[position - 1].hash if position else GENESIS_PREVIOUS_HASH
            if block.previous_hash != expected_previous:
                violations.append(Violation(
                    position, LINK_MISMATCH,
                    "previous hash does not match predecessor",
                ))
        if len(blocks) != expected_length:
            violations.append(Violation(
                min(len(blocks), expected_length), HEAD_MISMATCH,
                f"expected {expected_length} blocks, found {len(blocks)}",
            ))
        elif blocks[-1].hash != head:
            violations.append(Violation(
                len(blocks) - 1, HEAD_MISMATCH,
                "latest block is not the last one appended",
            ))
        violations.sort(key=lambda v: v.index)
        return ValidationReport(checked=len(blocks), violations=tuple(violations))

    def is_valid(self) -> bool:
        return self.validate().valid


def create_blockchain() -> Blockchain:
    """Return a new, initialized Blockchain holding only the genesis block."""
    return Blockchain().init()
