from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from sqlalchemy.orm import Session
from jobswipe.core.config import SECRET_KEY, ALGORITHM
from jobswipe.db.session import SessionLocal
from jobswipe.db.models.account import Account, EMPLOYER

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(token: str = Depends(oauth2_scheme)):
    """Get current account email from JWT token."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        email: str = payload.get("sub")

        if email is None:
            raise HTTPException(status_code=401, detail="Invalid token")

        return email

    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


def get_current_account(
    email: str = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Account:
    """Get current Account object from JWT token."""
    account = db.query(Account).filter(Account.email == email).first()
    if not account:
        raise HTTPException(
            status_code=404,
            detail="Account not found"
        )
    return account


def get_current_employer(account: Account = Depends(get_current_account)) -> Account:
    """Only employers pay for unlocks; everyone else is rejected here."""
    if account.role != EMPLOYER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "employer_only", "message": "Only employer accounts can do this"}
        )
    return account
