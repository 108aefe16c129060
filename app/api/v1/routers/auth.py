from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.api.auth_utils import enforce_signin_limits, record_signin_attempt
from app.core.errors import Unauthorized
from app.core.limiter import limiter
from app.core.security import create_access_token
from app.core.settings import settings
from app.db.session import get_db
from app.models import User
from app.schemas.auth import RegisterRequest, SignInRequest, SignInResponse, UserOut
from app.services import users

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signin", response_model=SignInResponse)
@limiter.limit(lambda: f"{settings.rate_limit_per_minute}/minute")
async def signin(
    credentials: SignInRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> SignInResponse:
    await enforce_signin_limits(credentials.email)
    try:
        user = await users.authenticate(db, credentials.email, credentials.password)
    except Unauthorized:
        await record_signin_attempt(credentials.email, success=False)
        raise
    await record_signin_attempt(credentials.email, success=True)

    token = create_access_token(str(user.id), role=user.role, token_version=user.token_version)
    return SignInResponse(token=token, user=UserOut.model_validate(user))


@router.post("/register", response_model=UserOut, status_code=201)
@limiter.limit(lambda: f"{settings.rate_limit_per_minute}/minute")
async def register(
    payload: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> UserOut:
    user = await users.register(
        db,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )
    return UserOut.model_validate(user)


@router.post("/logout", status_code=204)
async def logout(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> None:
    await users.logout(db, current_user)
    return None


@router.get("/me", response_model=UserOut)
async def read_current_user(current_user: User = Depends(deps.get_current_user)) -> UserOut:
    return UserOut.model_validate(current_user)
