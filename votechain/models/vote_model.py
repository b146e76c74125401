from pydantic import BaseModel, ConfigDict, Field


class VotePayload(BaseModel):
    """What a ledger block records about one vote: a masked voter tag and the candidate."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    voter_tag: str = Field(..., min_length=1, alias="voterTag")
    candidate: str = Field(..., min_length=1)
