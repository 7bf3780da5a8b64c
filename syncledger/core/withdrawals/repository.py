from typing import Optional, Protocol

from syncledger.core.withdrawals.models import WithdrawalRecord, WithdrawalStatus


class WithdrawalRepository(Protocol):
    def get_withdrawal(self, *, withdrawal_id: str) -> Optional[WithdrawalRecord]: ...

    def list_withdrawals(
        self,
        *,
        producer_id: Optional[str],
        status: Optional[WithdrawalStatus],
    ) -> list[WithdrawalRecord]: ...
