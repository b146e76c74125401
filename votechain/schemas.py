import re
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Stripped from every free-text input before it reaches the session or ledger
_UNSAFE_CHARS = re.compile(r"[<>\"'&]")


def sanitize_text(value, max_length: int = 100) -> str:
    if not isinstance(value, str):
        raise ValueError("must be a string")
    trimmed = value.strip()
    if not trimmed or len(trimmed) > max_length:
        raise ValueError(f"must be between 1 and {max_length} characters")
    cleaned = _UNSAFE_CHARS.sub("", trimmed).strip()
    if not cleaned:
        raise ValueError("must contain more than markup characters")
    return cleaned


# --- Requests ---

class ElectionCreate(BaseModel):
    title: str
    candidates: List[str] = Field(..., min_length=2)

    @model_validator(mode="before")
    @classmethod
    def fold_numbered_candidates(cls, data):
        # Also accept the two-field form {candidate1, candidate2}
        if isinstance(data, dict) and "candidates" not in data:
            numbered = [data[key] for key in ("candidate1", "candidate2") if key in data]
            if numbered:
                data = {**data, "candidates": numbered}
        return data

    @field_validator("title", mode="before")
    @classmethod
    def clean_title(cls, v):
        return sanitize_text(v, max_length=200)

    @field_validator("candidates", mode="before")
    @classmethod
    def clean_candidates(cls, v):
        if not isinstance(v, list):
            raise ValueError("candidates must be a list")
        cleaned = [sanitize_text(name) for name in v]
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("Candidates must be different")
        return cleaned


class VoteCast(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    voter_id: str = Field(..., alias="voterId")
    candidate: str

    @field_validator("voter_id", mode="before")
    @classmethod
    def clean_voter_id(cls, v):
        return sanitize_text(v, max_length=50)

    @field_validator("candidate", mode="before")
    @classmethod
    def clean_candidate(cls, v):
        return sanitize_text(v)


class AdminLogin(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    admin_key: str = Field(..., alias="adminKey", min_length=1)


# --- Responses ---

class ElectionOut(BaseModel):
    title: str
    candidates: List[str]
    created: Optional[str] = None
    active: bool


class ElectionCreated(BaseModel):
    message: str
    election: ElectionOut


class CandidatesOut(BaseModel):
    title: str
    candidates: List[str]
    active: bool


class VoteReceipt(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    block_index: int = Field(..., alias="blockIndex")
    timestamp: str


class CandidateResult(BaseModel):
    candidate: str
    votes: int


class BlockOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    index: int
    timestamp: str
    payload: Dict[str, str]
    hash: str
    previous_hash: str = Field(..., alias="previousHash")


class ViolationOut(BaseModel):
    index: int
    kind: str
    detail: str


class BlockchainOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_blocks: int = Field(..., alias="totalBlocks")
    is_valid: bool = Field(..., alias="isValid")
    violations: List[ViolationOut]
    blocks: List[BlockOut]


class ResultsOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    election: ElectionOut
    results: List[CandidateResult]
    total_votes: int = Field(..., alias="totalVotes")
    blockchain: Optional[BlockchainOut] = None


class HealthOut(BaseModel):
    status: str
    timestamp: str
    blockchain: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
