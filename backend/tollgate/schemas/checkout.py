"""Checkout schemas."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class CheckoutRequest(BaseModel):
    """Request to start a checkout for a plan."""

    plan_id: UUID
    email: Optional[EmailStr] = None
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class FreeVerificationRequest(BaseModel):
    """Request to start the card verification that unlocks the free trial."""

    email: Optional[EmailStr] = None
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class StripeCheckoutSession(BaseModel):
    """Created Stripe checkout session."""

    session_id: str
    url: Optional[str] = None


class RazorpayOrder(BaseModel):
    """Created Razorpay order, as handed to the client-side checkout."""

    order_id: str
    amount: int = Field(..., description="Amount in paise")
    currency: str
    receipt: str
    key_id: Optional[str] = None


class RazorpayVerifyRequest(BaseModel):
    """Client-side confirmation of a Razorpay payment."""

    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
