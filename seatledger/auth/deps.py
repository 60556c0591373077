from fastapi import HTTPException, Request, status, Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from seatledger.services import auth as auth_service
from seatledger.services.registry import LedgerRegistry


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def get_current_owner_id(token: str = Depends(oauth2_scheme)) -> str:
    try:
        return auth_service.verify_access_token(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials")


def get_registry(request: Request) -> LedgerRegistry:
    return request.app.state.ledger_registry
