from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from syncledger.core.ledger.models import LedgerTransaction, ProducerBalance

WithdrawalStatus = Literal["pending", "completed", "rejected"]


class WithdrawalCreateRequest(BaseModel):
    amount: Decimal = Field(description="Amount to withdraw.", examples=["50.00"])
    payment_method_id: str = Field(
        description="Payout method registered by the producer.", examples=["pm_bank_01"]
    )
    payment_method_label: Optional[str] = Field(
        default=None,
        description="Display label used in the ledger description.",
        examples=["First Bank"],
    )


class WithdrawalDecisionRequest(BaseModel):
    notes: Optional[str] = Field(
        default=None,
        description="Operator note stored with the decision.",
        examples=["Bank details mismatch"],
    )


class WithdrawalRequest(BaseModel):
    withdrawal_id: str = Field(description="Withdrawal identifier.", examples=["wd_001"])
    producer_id: str = Field(description="Producer identifier.", examples=["prod_001"])
    amount: Decimal = Field(description="Requested amount.", examples=["50.00"])
    payment_method_id: str = Field(description="Payout method.", examples=["pm_bank_01"])
    status: WithdrawalStatus = Field(description="Request status.", examples=["pending"])
    transaction_id: str = Field(description="Paired debit transaction.", examples=["ltx_001"])
    created_at: str = Field(description="Request timestamp.")
    decided_at: Optional[str] = Field(default=None, description="Decision timestamp.")
    decided_by: Optional[str] = Field(default=None, description="Deciding operator.")
    notes: Optional[str] = Field(default=None, description="Operator note.")


class WithdrawalResponse(BaseModel):
    withdrawal: WithdrawalRequest = Field(description="Withdrawal request after the operation.")
    transaction: LedgerTransaction = Field(description="Paired debit transaction.")
    balance: ProducerBalance = Field(description="Producer balance after the operation.")


class WithdrawalListResponse(BaseModel):
    items: List[WithdrawalRequest] = Field(description="Withdrawal requests, newest first.")


class WithdrawalRecord(BaseModel):
    withdrawal_id: str
    producer_id: str
    amount: Decimal
    payment_method_id: str
    status: WithdrawalStatus
    transaction_id: str
    created_at: datetime
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None
    notes: Optional[str] = None
