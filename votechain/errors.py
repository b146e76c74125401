# votechain/errors.py
# Domain errors. Routes translate these into HTTP responses.


class VoteChainError(Exception):
    """Base class for every error raised by votechain."""


class LedgerError(VoteChainError):
    """Misuse of a Blockchain instance."""


class UninitializedLedgerError(LedgerError):
    """An operation other than init() was called before init()."""


class NoActiveElectionError(VoteChainError):
    """No election has been created yet."""


class ElectionClosedError(VoteChainError):
    """The election has been ended and no longer accepts votes."""


class InvalidCandidateError(VoteChainError):
    pass


class DuplicateVoteError(VoteChainError):
    pass


class IntegrityCompromisedError(VoteChainError):
    """The ledger failed validation; the election must be recreated."""

    def __init__(self, violating_indices):
        self.violating_indices = list(violating_indices)
        super().__init__(f"Ledger integrity compromised at blocks {self.violating_indices}")
