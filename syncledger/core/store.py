from typing import Protocol

from syncledger.core.ledger.repository import LedgerRepository
from syncledger.core.notifications import NotificationOutbox
from syncledger.core.proposals.repository import ProposalRepository
from syncledger.core.withdrawals.repository import WithdrawalRepository


class SyncStore(
    ProposalRepository, LedgerRepository, WithdrawalRepository, NotificationOutbox, Protocol
):
    """One storage backend so proposal payment and ledger credit share a transaction."""
