"""Pydantic request/response schemas for the Marketplace API.

These are external contracts, kept separate from the internal Protean
commands. Amounts are integers in the currency's minor unit.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    recipient: str | None = None
    street: str
    city: str
    postal_code: str
    country: str


class OrderItemSchema(BaseModel):
    product_id: str
    title: str
    quantity: int = Field(ge=1)
    unit_price: int = Field(ge=0)


class ReturnItemSchema(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    customer_id: str
    creator_id: str
    items: list[OrderItemSchema] = Field(min_length=1)
    shipping_address: AddressSchema
    customer_name: str | None = None
    customer_email: str | None = None
    currency: str = "EUR"
    payment_method: str = "Card"
    payment_intent_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                    "creator_id": "creator-001",
                    "items": [
                        {"product_id": "prod-001", "title": "Stoneware mug", "quantity": 2, "unit_price": 2400},
                    ],
                    "shipping_address": {
                        "recipient": "Camille Martin",
                        "street": "12 rue des Lilas",
                        "city": "Lyon",
                        "postal_code": "69003",
                        "country": "FR",
                    },
                    "payment_intent_id": "pi_3Pabc",
                }
            ]
        }
    }


class CancelOrderRequest(BaseModel):
    reason: str
    customer_id: str | None = None


class RecordShipmentRequest(BaseModel):
    carrier: str
    tracking_number: str
    creator_id: str | None = None


class RecordDeliveryRequest(BaseModel):
    delivered_at: datetime | None = None


class OpenDisputeRequest(BaseModel):
    customer_id: str | None = None
    dispute_type: str | None = None
    description: str | None = None


# ---------------------------------------------------------------------------
# Dispute Request Schemas
# ---------------------------------------------------------------------------
class ResolveDisputeRequest(BaseModel):
    resolution: str


class CloseDisputeRequest(BaseModel):
    reason: str


# ---------------------------------------------------------------------------
# Return Request Schemas
# ---------------------------------------------------------------------------
class RequestReturnRequest(BaseModel):
    order_id: str
    customer_id: str
    reason: str
    reason_details: str | None = None
    items: list[ReturnItemSchema] | None = None


class CreatorActionRequest(BaseModel):
    creator_id: str


class RejectReturnRequest(BaseModel):
    creator_id: str
    reason: str


class ShipBackRequest(BaseModel):
    customer_id: str
    tracking_number: str | None = None
    carrier: str | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderIdResponse(BaseModel):
    order_id: str


class ReturnIdResponse(BaseModel):
    return_id: str


class DisputeIdResponse(BaseModel):
    status: str = "dispute_opened"
    dispute_id: str


class RefundResponse(BaseModel):
    refund_id: str | None = None


class CancelOrderResponse(BaseModel):
    order_id: str
    refund_id: str | None = None


class StatusResponse(BaseModel):
    status: str = "ok"


class OrderItemResponse(BaseModel):
    product_id: str
    title: str | None = None
    quantity: int
    unit_price: int
    subtotal: int


class OrderResponse(BaseModel):
    order_id: str
    order_number: str | None = None
    customer_id: str
    creator_id: str
    status: str
    total_amount: int
    currency: str
    items: list[OrderItemResponse]
    stripe_payment_intent_id: str | None = None
    stripe_refund_id: str | None = None
    carrier: str | None = None
    tracking_number: str | None = None
    delivered_at: datetime | None = None
    return_days_remaining: int = 0


class ReturnResponse(BaseModel):
    return_id: str
    order_id: str
    status: str
    reason: str
    refund_amount: int
    currency: str
    is_partial: bool
    rejection_reason: str | None = None
    stripe_refund_id: str | None = None


class DisputeResponse(BaseModel):
    dispute_id: str
    order_id: str
    status: str
    dispute_type: str
    description: str | None = None
    resolution: str | None = None
    opened_at: datetime | None = None


class ReleasableOrderResponse(BaseModel):
    order_id: str
    creator_id: str
    amount: int
    currency: str
    eligible_at: datetime


class WebhookAckResponse(BaseModel):
    received: bool = True
    outcome: str
    event_id: str | None = None
