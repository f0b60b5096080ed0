from typing import List, Literal

from fastapi import APIRouter
from pydantic import BaseModel, Field, constr

from tutorhub.core.auth import create_token
from tutorhub.core.config import settings

router = APIRouter()

Role = Literal["teacher", "parent", "client", "admin"]


class MockLogin(BaseModel):
    user_id: constr(min_length=1)
    roles: List[Role] = Field(min_length=1)


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    roles: List[str]
    expires_in: int


@router.post("/mock-login", response_model=TokenOut)
def mock_login(payload: MockLogin):
    """Development-only token issuer; real identities come from the marketplace's auth service."""
    token = create_token(payload.user_id, list(payload.roles))
    return TokenOut(access_token=token, roles=list(payload.roles), expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60)
