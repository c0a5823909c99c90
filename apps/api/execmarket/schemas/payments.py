from pydantic import BaseModel


class UnlockIntentRequest(BaseModel):
    candidate_id: str


class UnlockIntentResponse(BaseModel):
    payment_ref: str
    client_secret: str
    amount: int
    currency: str


class WebhookAck(BaseModel):
    status: str = "received"
    handled: bool = False
