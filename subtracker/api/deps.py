"""
FastAPI dependencies (DB session, current account)
"""
from fastapi import Request, HTTPException, status

from subtracker.infrastructure.db.session import get_db as _get_db


# Re-export get_db для удобства
get_db = _get_db


def get_account_id(request: Request) -> int:
    """
    Account of the logged-in user, taken from the session

    Raises:
        HTTPException(401): если не залогинен

    Usage:
        @router.get("/subscriptions")
        def list_subscriptions(account_id: int = Depends(get_account_id)):
            ...
    """
    user_id = request.session.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return int(user_id)
