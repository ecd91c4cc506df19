from fastapi import APIRouter, Depends, status

from app.core.auth import require_identity
from app.dependencies import get_cart_sessions
from app.models.identity import Identity
from app.services.cart_sessions import CartSessionRegistry

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(
    identity: Identity = Depends(require_identity),
    sessions: CartSessionRegistry = Depends(get_cart_sessions),
):
    """
    End the caller's cart session.

    The Supabase session itself is signed out by the client SDK; this
    only drops the server-side cart state kept for the user.
    """
    await sessions.end(identity.user_id)
    return None
