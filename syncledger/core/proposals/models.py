from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

ProducerStatus = Literal["pending", "accepted", "rejected", "expired"]
ClientStatus = Literal["pending", "accepted", "rejected"]
PaymentStatus = Literal["pending", "paid"]
PaymentTerms = Literal["immediate", "net30", "net60", "net90"]
ProposalDecision = Literal["accept", "reject"]
StatusAxis = Literal["producer", "client", "payment"]
ProposalPhase = Literal[
    "producer_decision",
    "client_decision",
    "awaiting_payment",
    "paid",
    "rejected",
    "expired",
]


class ProposalStatus(BaseModel):
    model_config = {"frozen": True}

    producer_status: ProducerStatus = Field(
        default="pending",
        description="Producer decision axis.",
        examples=["accepted"],
    )
    client_status: ClientStatus = Field(
        default="pending",
        description="Client decision axis; only leaves pending after producer acceptance.",
        examples=["pending"],
    )
    payment_status: PaymentStatus = Field(
        default="pending",
        description="Payment axis; only leaves pending after client acceptance.",
        examples=["pending"],
    )

    @model_validator(mode="after")
    def _check_axis_ordering(self) -> "ProposalStatus":
        if self.producer_status != "accepted" and self.client_status != "pending":
            raise ValueError("ILLEGAL_STATUS: client decision before producer acceptance")
        if self.client_status != "accepted" and self.payment_status != "pending":
            raise ValueError("ILLEGAL_STATUS: payment before client acceptance")
        return self

    def value_of(self, axis: StatusAxis) -> str:
        if axis == "producer":
            return self.producer_status
        if axis == "client":
            return self.client_status
        return self.payment_status

    def with_axis(self, axis: StatusAxis, value: str) -> "ProposalStatus":
        payload = self.model_dump()
        payload[f"{axis}_status"] = value
        return ProposalStatus.model_validate(payload)

    @property
    def phase(self) -> ProposalPhase:
        if self.producer_status == "expired":
            return "expired"
        if self.producer_status == "rejected" or self.client_status == "rejected":
            return "rejected"
        if self.producer_status == "pending":
            return "producer_decision"
        if self.client_status == "pending":
            return "client_decision"
        if self.payment_status == "pending":
            return "awaiting_payment"
        return "paid"

    @property
    def is_terminal(self) -> bool:
        return self.phase in {"paid", "rejected", "expired"}


class ProposalSubmitRequest(BaseModel):
    track_id: str = Field(
        min_length=1,
        description="Track the client wants to license.",
        examples=["trk_001"],
    )
    sync_fee: Decimal = Field(
        description="Offered sync fee; must be greater than zero.",
        examples=["500.00"],
    )
    payment_terms: PaymentTerms = Field(
        default="immediate",
        description="Payment terms offered by the client.",
        examples=["net30"],
    )
    expiration_date: datetime = Field(
        description="Deadline for the producer decision, UTC ISO8601.",
        examples=["2026-11-01T00:00:00+00:00"],
    )
    is_urgent: bool = Field(default=False, description="Urgency flag.", examples=[False])
    project_type: Optional[str] = Field(
        default=None,
        description="Free-text project description.",
        examples=["Indie film trailer"],
    )
    duration: Optional[str] = Field(
        default=None,
        description="Requested license duration.",
        examples=["1 year"],
    )
    is_exclusive: bool = Field(
        default=False,
        description="Whether exclusive rights are requested.",
        examples=[False],
    )


class ProposalDecisionRequest(BaseModel):
    decision: ProposalDecision = Field(description="Decision to record.", examples=["accept"])


class PaymentCompletedEvent(BaseModel):
    proposal_id: str = Field(description="Paid proposal identifier.", examples=["sp_001"])
    payment_reference: Optional[str] = Field(
        default=None,
        description="Payment-provider reference such as an invoice or intent id.",
        examples=["pi_3Nx01"],
    )


class NegotiationMessageRequest(BaseModel):
    message: str = Field(description="Free-text negotiation message.", examples=["Can we do 400?"])
    counter_offer: Optional[Decimal] = Field(
        default=None,
        description="Optional counter-offer amount.",
        examples=["400.00"],
    )
    counter_terms: Optional[str] = Field(
        default=None,
        description="Optional counter terms.",
        examples=["net30, non-exclusive"],
    )


class SyncProposal(BaseModel):
    proposal_id: str = Field(description="Proposal identifier.", examples=["sp_001"])
    track_id: str = Field(description="Track identifier.", examples=["trk_001"])
    client_id: str = Field(description="Submitting client.", examples=["client_001"])
    producer_id: str = Field(description="Producer owning the track.", examples=["prod_001"])
    sync_fee: Decimal = Field(description="Agreed sync fee.", examples=["500.00"])
    payment_terms: PaymentTerms = Field(description="Payment terms.", examples=["immediate"])
    expiration_date: str = Field(
        description="Producer decision deadline.", examples=["2026-11-01T00:00:00+00:00"]
    )
    is_urgent: bool = Field(description="Urgency flag.", examples=[False])
    project_type: Optional[str] = Field(default=None, description="Project description.")
    duration: Optional[str] = Field(default=None, description="License duration.")
    is_exclusive: bool = Field(default=False, description="Exclusive rights flag.")
    status: ProposalStatus = Field(description="Three-axis proposal status.")
    phase: ProposalPhase = Field(description="Derived lifecycle phase.", examples=["paid"])
    is_expired: bool = Field(
        description="Producer decision deadline has passed while still pending.",
        examples=[False],
    )
    created_at: str = Field(description="Creation timestamp.")
    updated_at: str = Field(description="Latest transition timestamp.")
    payment_reference: Optional[str] = Field(default=None, description="Payment reference.")
    paid_at: Optional[str] = Field(default=None, description="Payment timestamp.")


class SyncProposalListResponse(BaseModel):
    items: List[SyncProposal] = Field(description="Page of proposals, newest first.")
    next_cursor: Optional[str] = Field(
        default=None, description="Cursor for the next page.", examples=["sp_001"]
    )


class ProposalHistoryEntry(BaseModel):
    history_id: str = Field(description="History entry identifier.", examples=["sph_001"])
    proposal_id: str = Field(description="Proposal identifier.", examples=["sp_001"])
    status_axis: StatusAxis = Field(description="Status axis changed.", examples=["producer"])
    previous_status: str = Field(description="Value before the change.", examples=["pending"])
    new_status: str = Field(description="Value after the change.", examples=["accepted"])
    changed_by: str = Field(description="Actor that caused the change.", examples=["prod_001"])
    created_at: str = Field(description="Change timestamp.")


class ProposalHistoryResponse(BaseModel):
    proposal_id: str = Field(description="Proposal identifier.", examples=["sp_001"])
    entries: List[ProposalHistoryEntry] = Field(description="Entries in commit order.")


class NegotiationMessage(BaseModel):
    message_id: str = Field(description="Message identifier.", examples=["spm_001"])
    proposal_id: str = Field(description="Proposal identifier.", examples=["sp_001"])
    sender_id: str = Field(description="Sender actor id.", examples=["client_001"])
    message: str = Field(description="Message text.")
    counter_offer: Optional[Decimal] = Field(default=None, description="Counter-offer amount.")
    counter_terms: Optional[str] = Field(default=None, description="Counter terms.")
    created_at: str = Field(description="Creation timestamp.")
    sequence_no: int = Field(description="Per-proposal ordering number.", examples=[1])


class NegotiationThreadResponse(BaseModel):
    proposal_id: str = Field(description="Proposal identifier.", examples=["sp_001"])
    messages: List[NegotiationMessage] = Field(description="Messages in creation order.")
    latest_counter_offer: Optional[Decimal] = Field(
        default=None,
        description="Most recent counter-offer amount in the thread.",
        examples=["450.00"],
    )


class PendingPaymentResponse(BaseModel):
    proposal_id: str = Field(description="Proposal awaiting payment.", examples=["sp_001"])
    amount: Decimal = Field(description="Amount to charge.", examples=["500.00"])
    payment_terms: PaymentTerms = Field(description="Payment terms.", examples=["net30"])
    client_id: str = Field(description="Paying client.", examples=["client_001"])
    producer_id: str = Field(description="Receiving producer.", examples=["prod_001"])


class ExpirySweepResponse(BaseModel):
    swept_at: str = Field(description="Sweep reference time.")
    expired_proposal_ids: List[str] = Field(description="Proposals expired by this run.")
    skipped_proposal_ids: List[str] = Field(
        description="Overdue proposals decided concurrently before the sweep committed."
    )


class SyncProposalRecord(BaseModel):
    proposal_id: str
    track_id: str
    client_id: str
    producer_id: str
    sync_fee: Decimal
    payment_terms: PaymentTerms
    expiration_date: datetime
    is_urgent: bool = False
    project_type: Optional[str] = None
    duration: Optional[str] = None
    is_exclusive: bool = False
    status: ProposalStatus = Field(default_factory=ProposalStatus)
    created_at: datetime
    updated_at: datetime
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    version: int = 1

    def is_expired(self, now: datetime) -> bool:
        return self.status.producer_status == "pending" and now > self.expiration_date


class ProposalHistoryRecord(BaseModel):
    history_id: str
    proposal_id: str
    status_axis: StatusAxis
    previous_status: str
    new_status: str
    changed_by: str
    created_at: datetime


class NegotiationMessageRecord(BaseModel):
    message_id: str
    proposal_id: str
    sender_id: str
    message: str
    counter_offer: Optional[Decimal] = None
    counter_terms: Optional[str] = None
    created_at: datetime
    sequence_no: int = 0
