import logging

from fastapi import APIRouter, Depends, HTTPException

from votechain.config import Settings
from votechain.dependencies import get_app_settings, get_store
from votechain.errors import NoActiveElectionError
from votechain.schemas import (
    BlockchainOut,
    CandidateResult,
    CandidatesOut,
    ElectionCreate,
    ElectionCreated,
    ElectionOut,
    ResultsOut,
)
from votechain.security import require_admin
from votechain.session import ElectionSession, SessionStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Election"])

NO_ELECTION_TITLE = "No election created"


def _blockchain_view(session: ElectionSession, display_length: int) -> BlockchainOut:
    report = session.validate()
    blocks = session.ledger.blocks
    return BlockchainOut(
        total_blocks=len(blocks),
        is_valid=report.valid,
        violations=[v.to_dict() for v in report.violations],
        blocks=[b.to_dict(truncate=display_length) for b in blocks],
    )


@router.post("/create-election", response_model=ElectionCreated, dependencies=[Depends(require_admin)])
def create_election(election: ElectionCreate, store: SessionStore = Depends(get_store)):
    try:
        session = store.create(election.title, election.candidates)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ElectionCreated(message="Election created successfully", election=ElectionOut(**session.to_dict()))


@router.post("/end-election", response_model=ElectionCreated, dependencies=[Depends(require_admin)])
def end_election(store: SessionStore = Depends(get_store)):
    try:
        session = store.current()
    except NoActiveElectionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    session.end()
    logger.info("Election '%s' ended with %d votes", session.title, session.total_votes)
    return ElectionCreated(message="Election ended", election=ElectionOut(**session.to_dict()))


@router.get("/candidates", response_model=CandidatesOut)
def get_candidates(store: SessionStore = Depends(get_store)):
    session = store.get()
    if session is None:
        return CandidatesOut(title="", candidates=[], active=False)
    return CandidatesOut(title=session.title, candidates=list(session.candidates), active=session.active)


@router.get("/results", response_model=ResultsOut)
def get_results(store: SessionStore = Depends(get_store), settings: Settings = Depends(get_app_settings)):
    session = store.get()
    if session is None:
        return ResultsOut(
            election=ElectionOut(title=NO_ELECTION_TITLE, candidates=[], active=False),
            results=[],
            total_votes=0,
        )

    blockchain = _blockchain_view(session, settings.hash_display_length)
    if not blockchain.is_valid:
        logger.error("Ledger for '%s' failed validation: %s", session.title,
                     [v.index for v in blockchain.violations])

    counts = session.tally()

    return ResultsOut(
        election=ElectionOut(**session.to_dict()),
        results=[CandidateResult(candidate=name, votes=count) for name, count in counts.items()],
        total_votes=sum(counts.values()),
        blockchain=blockchain,
    )
