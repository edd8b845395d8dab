"""Payments API router."""
from fastapi import APIRouter, Depends

from auth import Session as AuthSession, verify_token
from dependencies import get_payment_client
from schemas import PaymentIntentRequest, PaymentIntentResponse
from services.payment_service import PaymentGatewayClient

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/paymongo/intent", response_model=PaymentIntentResponse)
async def create_paymongo_intent(
    request: PaymentIntentRequest,
    session: AuthSession = Depends(verify_token),
    payment_client: PaymentGatewayClient = Depends(get_payment_client)
):
    """Start a PayMongo payment - requires authentication."""
    return await payment_client.create_paymongo_intent(
        user_id=session.user_id,
        amount=request.amount,
        description=request.description,
        return_url=request.return_url
    )
