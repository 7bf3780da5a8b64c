from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from syncledger.core.common.money import ZERO

TransactionType = Literal["sale", "withdrawal", "adjustment"]
TransactionStatus = Literal["pending", "completed", "rejected"]
TransactionReferenceType = Literal["proposal", "withdrawal"]
DebitOutcome = Literal["completed", "rejected"]


class LedgerReference(BaseModel):
    reference_type: TransactionReferenceType = Field(
        description="Kind of entity the transaction belongs to.", examples=["proposal"]
    )
    reference_id: str = Field(description="Referenced entity id.", examples=["sp_001"])


class LedgerEntryRequest(BaseModel):
    amount: Decimal = Field(description="Unsigned amount, greater than zero.", examples=["25.00"])
    transaction_type: TransactionType = Field(
        default="adjustment", description="Transaction type.", examples=["adjustment"]
    )
    description: Optional[str] = Field(default=None, description="Operator description.")


class DebitSettlementRequest(BaseModel):
    outcome: DebitOutcome = Field(description="Settlement outcome.", examples=["completed"])


class ProducerBalance(BaseModel):
    producer_id: str = Field(description="Producer identifier.", examples=["prod_001"])
    available_balance: Decimal = Field(description="Withdrawable funds.", examples=["120.00"])
    pending_balance: Decimal = Field(
        description="Sale revenue inside the holding period.", examples=["500.00"]
    )
    lifetime_earnings: Decimal = Field(description="Total sale revenue.", examples=["620.00"])
    updated_at: str = Field(description="Last balance change.")


class LedgerTransaction(BaseModel):
    transaction_id: str = Field(description="Transaction identifier.", examples=["ltx_001"])
    producer_id: str = Field(description="Producer identifier.", examples=["prod_001"])
    amount: Decimal = Field(description="Signed amount; negative for debits.", examples=["-50.00"])
    transaction_type: TransactionType = Field(description="Transaction type.")
    status: TransactionStatus = Field(description="Transaction status.")
    description: str = Field(description="Human-readable description.")
    reference_type: Optional[TransactionReferenceType] = Field(default=None)
    reference_id: Optional[str] = Field(default=None)
    created_at: str = Field(description="Creation timestamp.")
    settled_at: Optional[str] = Field(default=None, description="Settlement timestamp.")
    matured_at: Optional[str] = Field(
        default=None, description="When a held credit became available."
    )


class LedgerTransactionListResponse(BaseModel):
    producer_id: str = Field(description="Producer identifier.", examples=["prod_001"])
    items: List[LedgerTransaction] = Field(description="Transactions, oldest first.")


class BalanceReconciliation(BaseModel):
    producer_id: str = Field(description="Producer identifier.", examples=["prod_001"])
    stored: ProducerBalance = Field(description="Balance row as stored.")
    expected_available_balance: Decimal = Field(description="Available balance from replay.")
    expected_pending_balance: Decimal = Field(description="Pending balance from replay.")
    expected_lifetime_earnings: Decimal = Field(description="Lifetime earnings from replay.")
    transaction_count: int = Field(description="Transactions replayed.", examples=[3])
    consistent: bool = Field(description="Stored balance matches the replay.", examples=[True])


class MaturityReleaseResponse(BaseModel):
    released_at: str = Field(description="Release reference time.")
    matured_before: str = Field(description="Credits created before this instant were released.")
    released_transaction_ids: List[str] = Field(description="Credits moved to available.")
    released_amount: Decimal = Field(description="Total amount released.", examples=["500.00"])


class ProducerBalanceRecord(BaseModel):
    producer_id: str
    available_balance: Decimal = ZERO
    pending_balance: Decimal = ZERO
    lifetime_earnings: Decimal = ZERO
    updated_at: datetime


class LedgerTransactionRecord(BaseModel):
    transaction_id: str
    producer_id: str
    amount: Decimal
    transaction_type: TransactionType
    status: TransactionStatus
    description: str
    reference_type: Optional[TransactionReferenceType] = None
    reference_id: Optional[str] = None
    created_at: datetime
    settled_at: Optional[datetime] = None
    matured_at: Optional[datetime] = None

    @property
    def is_debit(self) -> bool:
        return self.amount < 0
