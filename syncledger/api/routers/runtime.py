from threading import Lock
from typing import Optional

from syncledger.api.routers.sync_config import (
    build_notification_sinks,
    build_store,
    build_track_catalog,
    ledger_pending_hold_days,
    notification_max_attempts,
    withdrawal_minimum_amount,
)
from syncledger.core.common.clock import utc_now
from syncledger.core.ledger import LedgerService
from syncledger.core.notifications import NotificationDispatcher
from syncledger.core.proposals import (
    NegotiationService,
    ProposalWorkflowService,
    StaticTrackCatalog,
)
from syncledger.core.store import SyncStore
from syncledger.core.withdrawals import WithdrawalService

_LOCK = Lock()
_STORE: Optional[SyncStore] = None
_TRACK_CATALOG: Optional[StaticTrackCatalog] = None
_DISPATCHER: Optional[NotificationDispatcher] = None
_PROPOSAL_SERVICE: Optional[ProposalWorkflowService] = None
_NEGOTIATION_SERVICE: Optional[NegotiationService] = None
_LEDGER_SERVICE: Optional[LedgerService] = None
_WITHDRAWAL_SERVICE: Optional[WithdrawalService] = None


def get_store() -> SyncStore:
    global _STORE
    with _LOCK:
        if _STORE is None:
            _STORE = build_store()
        return _STORE


def get_track_catalog() -> StaticTrackCatalog:
    global _TRACK_CATALOG
    with _LOCK:
        if _TRACK_CATALOG is None:
            _TRACK_CATALOG = build_track_catalog()
        return _TRACK_CATALOG


def get_dispatcher() -> NotificationDispatcher:
    global _DISPATCHER
    store = get_store()
    with _LOCK:
        if _DISPATCHER is None:
            _DISPATCHER = NotificationDispatcher(
                outbox=store,
                sinks=build_notification_sinks(),
                max_attempts=notification_max_attempts(),
                clock=utc_now,
            )
        return _DISPATCHER


def get_proposal_workflow_service() -> ProposalWorkflowService:
    global _PROPOSAL_SERVICE
    if _PROPOSAL_SERVICE is None:
        _PROPOSAL_SERVICE = ProposalWorkflowService(
            repository=get_store(),
            track_catalog=get_track_catalog(),
            dispatcher=get_dispatcher(),
            clock=utc_now,
        )
    return _PROPOSAL_SERVICE


def get_negotiation_service() -> NegotiationService:
    global _NEGOTIATION_SERVICE
    if _NEGOTIATION_SERVICE is None:
        _NEGOTIATION_SERVICE = NegotiationService(
            repository=get_store(),
            dispatcher=get_dispatcher(),
            clock=utc_now,
        )
    return _NEGOTIATION_SERVICE


def get_ledger_service() -> LedgerService:
    global _LEDGER_SERVICE
    if _LEDGER_SERVICE is None:
        _LEDGER_SERVICE = LedgerService(
            repository=get_store(),
            pending_hold_days=ledger_pending_hold_days(),
            clock=utc_now,
        )
    return _LEDGER_SERVICE


def get_withdrawal_service() -> WithdrawalService:
    global _WITHDRAWAL_SERVICE
    if _WITHDRAWAL_SERVICE is None:
        _WITHDRAWAL_SERVICE = WithdrawalService(
            repository=get_store(),
            dispatcher=get_dispatcher(),
            minimum_amount=withdrawal_minimum_amount(),
            clock=utc_now,
        )
    return _WITHDRAWAL_SERVICE


def reset_services_for_tests() -> None:
    global _STORE
    global _TRACK_CATALOG
    global _DISPATCHER
    global _PROPOSAL_SERVICE
    global _NEGOTIATION_SERVICE
    global _LEDGER_SERVICE
    global _WITHDRAWAL_SERVICE
    with _LOCK:
        _STORE = None
        _TRACK_CATALOG = None
        _DISPATCHER = None
    _PROPOSAL_SERVICE = None
    _NEGOTIATION_SERVICE = None
    _LEDGER_SERVICE = None
    _WITHDRAWAL_SERVICE = None
