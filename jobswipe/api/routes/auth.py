import logging
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from jobswipe.core.auth_dependency import get_db
from jobswipe.core import plan_limits
from jobswipe.core.security import hash_password, verify_password, create_access_token
from jobswipe.db.models.account import Account, EMPLOYER
from jobswipe.schemas.auth import SignupRequest, SignupResponse, TokenResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/signup", status_code=status.HTTP_201_CREATED, response_model=SignupResponse)
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    email = payload.email.lower()
    existing = db.query(Account).filter(Account.email == email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")

    try:
        hashed = hash_password(payload.password)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    account = Account(
        full_name=payload.full_name,
        email=email,
        password_hash=hashed,
        role=payload.role,
        # Every employer starts on basic; seekers never pay
        subscription_plan=plan_limits.DEFAULT_PLAN if payload.role == EMPLOYER else None,
    )

    db.add(account)
    db.commit()
    db.refresh(account)

    logger.info(f"Account created: account_id={account.id}, role={account.role}")
    return {
        "message": "Account created successfully",
        "account_id": account.id,
        "role": account.role,
    }


# OAuth2 password form so Swagger's Authorize button works; username is the email
@router.post("/login", response_model=TokenResponse)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    account = db.query(Account).filter(Account.email == form_data.username.lower()).first()

    if not account or not verify_password(form_data.password, account.password_hash):
        logger.info("Login failed: invalid credentials")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_access_token({"sub": account.email})

    return {
        "access_token": token,
        "token_type": "bearer"
    }
