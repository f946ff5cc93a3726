from __future__ import annotations
from pydantic import BaseModel, Field, ConfigDict
from typing import Literal
from uuid import UUID
from datetime import datetime
from decimal import Decimal

class TransactionPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    kind: str
    amount: Decimal  # signed: negative for money leaving the wallet
    status: str
    description: str | None = None
    reference_id: UUID | None = None
    created_at: datetime

class WalletSnapshot(BaseModel):
    balance: Decimal
    currency: str
    transactions: list[TransactionPublic]

class DepositRequest(BaseModel):
    amount: Decimal = Field(gt=0, decimal_places=2)

class DepositResponse(BaseModel):
    client_secret: str
    payment_intent_id: str

class ConfirmDepositRequest(BaseModel):
    payment_intent_id: str = Field(min_length=1, max_length=128)

class ConfirmDepositResponse(BaseModel):
    status: Literal["credited", "already_processed"]
    balance: Decimal

class WithdrawRequest(BaseModel):
    amount: Decimal = Field(gt=0, decimal_places=2)

class WithdrawResponse(BaseModel):
    new_balance: Decimal
    transaction: TransactionPublic
