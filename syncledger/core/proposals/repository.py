from datetime import datetime
from typing import Optional, Protocol

from syncledger.core.ledger.models import LedgerTransactionRecord
from syncledger.core.proposals.models import (
    NegotiationMessageRecord,
    ProducerStatus,
    ProposalHistoryRecord,
    ProposalStatus,
    SyncProposalRecord,
)


class ProposalRepository(Protocol):
    def create_proposal(self, proposal: SyncProposalRecord) -> None: ...

    def get_proposal(self, *, proposal_id: str) -> Optional[SyncProposalRecord]: ...

    def list_proposals(
        self,
        *,
        producer_id: Optional[str],
        client_id: Optional[str],
        producer_status: Optional[ProducerStatus],
        limit: int,
        cursor: Optional[str],
    ) -> tuple[list[SyncProposalRecord], Optional[str]]: ...

    def list_overdue_proposals(self, *, now: datetime) -> list[SyncProposalRecord]: ...

    def transition_status(
        self,
        *,
        proposal_id: str,
        expected_status: ProposalStatus,
        history: ProposalHistoryRecord,
    ) -> Optional[SyncProposalRecord]:
        """Compare-and-set the status triplet and append history in one unit of work.

        Returns None when the stored triplet no longer equals ``expected_status``.
        """
        ...

    def record_payment(
        self,
        *,
        proposal_id: str,
        expected_status: ProposalStatus,
        history: ProposalHistoryRecord,
        payment_reference: Optional[str],
        sale: LedgerTransactionRecord,
    ) -> Optional[SyncProposalRecord]:
        """Mark the proposal paid and credit the producer in one unit of work."""
        ...

    def list_history(self, *, proposal_id: str) -> list[ProposalHistoryRecord]: ...

    def append_message(
        self, *, message: NegotiationMessageRecord, now: datetime
    ) -> Optional[NegotiationMessageRecord]:
        """Append only while the proposal is producer-pending and unexpired at ``now``."""
        ...

    def list_messages(self, *, proposal_id: str) -> list[NegotiationMessageRecord]: ...
