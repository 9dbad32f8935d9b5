from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class TransactionType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class PaymentMethod(str, Enum):
    BKASH = "Bkash"
    NAGAD = "Nagad"
    ROCKET = "Rocket"
    BANK = "Bank Transfer"


class SettlementAction(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class User(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    role: UserRole = UserRole.USER
    gold_balance: Decimal = Decimal("0")
    created_at: datetime
    version: int = 0

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class GoldPrice(BaseModel):
    id: str
    price_per_gram: Decimal
    updated_at: datetime
    updated_by: str

    model_config = ConfigDict(from_attributes=True, frozen=True)


class PaymentMethodInfo(BaseModel):
    name: PaymentMethod
    details: str


class Transaction(BaseModel):
    id: str
    user_id: str
    type: TransactionType
    amount_bdt: Decimal
    gold_price_at_moment: Decimal
    gold_grams: Decimal
    method: PaymentMethod
    status: TransactionStatus = TransactionStatus.PENDING
    created_at: datetime
    proof_reference: Optional[str] = None
    payout_details: Optional[str] = None
    processed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def can_process(self) -> bool:
        return self.status == TransactionStatus.PENDING


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    phone: str = Field(..., min_length=1)

    model_config = ConfigDict(json_schema_extra={
        "example": {"name": "Rahim Uddin", "email": "rahim@example.com", "phone": "01711111111"}
    })


class LoginRequest(BaseModel):
    email: str


class UpdateProfileRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None


class SetPriceRequest(BaseModel):
    price_per_gram: Decimal = Field(..., description="Price of one gram of gold in BDT")


class UpdatePaymentMethodRequest(BaseModel):
    details: str


class TransactionOrderRequest(BaseModel):
    amount_bdt: Decimal = Field(..., description="Currency amount in BDT")
    method: PaymentMethod
    type: TransactionType
    proof_reference: Optional[str] = Field(default=None, description="Uploaded payment proof (BUY)")
    payout_details: Optional[str] = Field(default=None, description="Where to send the money (SELL)")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "amount_bdt": 2000,
            "method": "Bkash",
            "type": "SELL",
            "payout_details": "Bkash personal 01711111111",
        }
    })


class CreateTransactionRequest(TransactionOrderRequest):
    user_id: str

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "user_id": "user-3f2c9a",
            "amount_bdt": 2000,
            "method": "Bkash",
            "type": "SELL",
            "payout_details": "Bkash personal 01711111111",
        }
    })


class ProcessTransactionRequest(BaseModel):
    action: SettlementAction


class TransactionResponse(BaseModel):
    transaction: Transaction
    gold_balance: Decimal
    message: str


class SessionResponse(BaseModel):
    token: str
    user: User


class AdminOverview(BaseModel):
    current_price: GoldPrice
    pending_count: int
    recent_transactions: list[Transaction]
