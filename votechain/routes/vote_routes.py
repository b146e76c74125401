import logging

from fastapi import APIRouter, Depends, HTTPException

from votechain.dependencies import get_store
from votechain.errors import (
    DuplicateVoteError,
    ElectionClosedError,
    IntegrityCompromisedError,
    InvalidCandidateError,
    NoActiveElectionError,
)
from votechain.ratelimit import vote_rate_limit
from votechain.schemas import VoteCast, VoteReceipt
from votechain.session import SessionStore

logger = logging.getLogger(__name__)

vote_router = APIRouter(tags=["Vote"])


@vote_router.post("/cast-vote", response_model=VoteReceipt, dependencies=[Depends(vote_rate_limit)])
def cast_vote(vote: VoteCast, store: SessionStore = Depends(get_store)):
    """
    Records a vote in the current election's ledger.
    The ledger is validated first; a compromised chain accepts no more votes.
    """
    try:
        session = store.current()
        block = session.cast_vote(vote.voter_id, vote.candidate)
    except NoActiveElectionError:
        raise HTTPException(status_code=400, detail="No active election")
    except ElectionClosedError:
        raise HTTPException(status_code=400, detail="No active election")
    except InvalidCandidateError:
        raise HTTPException(status_code=400, detail="Invalid candidate")
    except DuplicateVoteError:
        raise HTTPException(status_code=403, detail="You have already voted")
    except IntegrityCompromisedError as e:
        logger.error("Blockchain integrity compromised: %s", e)
        raise HTTPException(status_code=500, detail="System integrity error")

    logger.info("Vote recorded in block %d for %s (%s)", block.index, block.payload.candidate,
                block.payload.voter_tag)
    return VoteReceipt(message="Vote cast successfully", block_index=block.index, timestamp=block.timestamp)
