# votechain/session.py
# One ElectionSession per election. Creating a new election replaces the
# whole session, ledger included; nothing is reset in place.

import logging
import threading
from typing import Dict, Optional, Sequence

from votechain.errors import (
    DuplicateVoteError,
    ElectionClosedError,
    IntegrityCompromisedError,
    InvalidCandidateError,
    NoActiveElectionError,
)
from votechain.ledger import Block, Blockchain, ValidationReport, create_blockchain, utc_timestamp
from votechain.models.vote_model import VotePayload

logger = logging.getLogger(__name__)

VISIBLE_TAG_CHARS = 3


def mask_voter_id(voter_id: str) -> str:
    """Keep the first three characters and star out the rest.

    Ids of three characters or fewer are starred out completely, otherwise
    the tag would reveal the whole id.
    """
    if len(voter_id) <= VISIBLE_TAG_CHARS:
        return "*" * len(voter_id)
    return voter_id[:VISIBLE_TAG_CHARS] + "*" * (len(voter_id) - VISIBLE_TAG_CHARS)


class ElectionSession:
    def __init__(self, title: str, candidates: Sequence[str]):
        if len(set(candidates)) != len(candidates):
            raise ValueError("Candidates must be different")
        if len(candidates) < 2:
            raise ValueError("An election needs at least two candidates")
        self.title = title
        self.candidates = tuple(candidates)
        self.created = utc_timestamp()
        self.active = True
        self.ledger: Blockchain = create_blockchain()
        self._voted = set()
        self._lock = threading.Lock()

    def cast_vote(self, voter_id: str, candidate: str) -> Block:
        with self._lock:
            if not self.active:
                raise ElectionClosedError("Election has ended")
            if candidate not in self.candidates:
                raise InvalidCandidateError(f"Invalid candidate: {candidate}")
            if voter_id in self._voted:
                raise DuplicateVoteError("You have already voted")

            report = self.ledger.validate()
            if not report.valid:
                raise IntegrityCompromisedError(report.violating_indices)

            block = self.ledger.append(VotePayload(voter_tag=mask_voter_id(voter_id), candidate=candidate))
            self._voted.add(voter_id)
        return block

    def has_voted(self, voter_id: str) -> bool:
        return voter_id in self._voted

    def end(self) -> None:
        # Waits for any vote already past the active check
        with self._lock:
            self.active = False

    def validate(self) -> ValidationReport:
        return self.ledger.validate()

    def tally(self) -> Dict[str, int]:
        """Votes per candidate, counted from the ledger rather than a side table."""
        counts = {name: 0 for name in self.candidates}
        for block in self.ledger.blocks[1:]:
            if block.payload.candidate in counts:
                counts[block.payload.candidate] += 1
        return counts

    @property
    def total_votes(self) -> int:
        return len(self.ledger) - 1

    def to_dict(self) -> Dict:
        return {
            "title": self.title,
            "candidates": list(self.candidates),
            "created": self.created,
            "active": self.active,
        }


class SessionStore:
    """Holds the current election. Handlers get it from app.state."""

    def __init__(self):
        self._session: Optional[ElectionSession] = None
        self._lock = threading.Lock()

    def create(self, title: str, candidates: Sequence[str]) -> ElectionSession:
        session = ElectionSession(title, candidates)
        with self._lock:
            previous, self._session = self._session, session
        if previous is not None:
            logger.info("Discarded election '%s' (%d votes)", previous.title, previous.total_votes)
        logger.info("Created election '%s' with candidates %s", title, list(session.candidates))
        return session

    def get(self) -> Optional[ElectionSession]:
        return self._session

    def current(self) -> ElectionSession:
        session = self._session
        if session is None:
            raise NoActiveElectionError("No active election")
        return session
