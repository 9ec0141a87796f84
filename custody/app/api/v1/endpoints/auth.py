"""
Authentication API endpoints.

Accounts are provisioned elsewhere; this only reports who the bearer is.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from custody.app.db.session import get_db
from custody.app.schemas.admin import AccountResponse
from custody.app.core.dependencies import get_current_actor
from custody.app.domain.custody.actor import Actor
from custody.app.domain.custody.repository import AccountDirectory

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/me", response_model=AccountResponse)
async def get_me(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Stored profile of the authenticated account, including its role."""
    account = await AccountDirectory(db).get(actor.id)
    return AccountResponse.model_validate(account)
