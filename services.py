from collections import Counter
from decimal import Decimal
from typing import Iterable, List, Optional
import structlog

from models import (
    AccountStatement,
    ApplyOutcome,
    ApplyResult,
    ClientAccount,
    Transaction,
    TransactionRecord,
    TransactionType,
    TransitionResult,
)
from repositories import (
    ClientRepository,
    InMemoryClientRepository,
    InMemoryTransactionRepository,
    TransactionRepository,
)

logger = structlog.get_logger()


class AccountStateMachine:
    """Applies one classified transaction to one client account.

    Invalid transitions are never errors: they leave the account untouched
    and report why through the returned ``TransitionResult``.
    """

    def handle(
        self,
        account: ClientAccount,
        transaction_type: TransactionType,
        transaction: Transaction
    ) -> TransitionResult:
        """Apply ``transaction_type`` using ``transaction`` as context.

        For disputes, resolves and chargebacks ``transaction`` is the original
        deposit or withdrawal being referenced. Callers must only pass
        transactions owned by ``account``.
        """
        # Locked accounts are terminal
        if account.locked:
            return TransitionResult.account_locked

        if transaction_type == TransactionType.deposit:
            result = self._deposit(account, transaction.amount)
        elif transaction_type == TransactionType.withdrawal:
            result = self._withdrawal(account, transaction.amount)
        elif transaction_type == TransactionType.dispute:
            result = self._dispute(account, transaction)
        elif transaction_type == TransactionType.resolve:
            result = self._resolve(account, transaction)
        else:
            result = self._chargeback(account, transaction)

        account.total = account.available + account.held
        return result

    def _deposit(self, account: ClientAccount, amount: Decimal) -> TransitionResult:
        account.available += amount
        return TransitionResult.applied

    def _withdrawal(self, account: ClientAccount, amount: Decimal) -> TransitionResult:
        if account.available < amount:
            return TransitionResult.insufficient_funds
        account.available -= amount
        return TransitionResult.applied

    def _dispute(self, account: ClientAccount, original: Transaction) -> TransitionResult:
        if original.type != TransactionType.deposit:
            return TransitionResult.not_disputable
        account.disputes.add(original.id)
        account.available -= original.amount
        account.held += original.amount
        return TransitionResult.applied

    def _resolve(self, account: ClientAccount, original: Transaction) -> TransitionResult:
        if not account.is_disputed(original.id):
            return TransitionResult.not_under_dispute
        account.disputes.discard(original.id)
        account.available += original.amount
        account.held -= original.amount
        return TransitionResult.applied

    def _chargeback(self, account: ClientAccount, original: Transaction) -> TransitionResult:
        if not account.is_disputed(original.id):
            return TransitionResult.not_under_dispute
        account.disputes.discard(original.id)
        account.held -= original.amount
        account.locked = True
        return TransitionResult.applied


class LedgerEngine:
    """Owns the transaction and client tables and routes records to accounts.

    Records must be applied one at a time in input order; dispute, resolve and
    chargeback only make sense relative to what has been applied before them.
    """

    def __init__(
        self,
        transaction_repo: Optional[TransactionRepository] = None,
        client_repo: Optional[ClientRepository] = None,
        state_machine: Optional[AccountStateMachine] = None
    ):
        self.transaction_repo = transaction_repo or InMemoryTransactionRepository()
        self.client_repo = client_repo or InMemoryClientRepository()
        self.state_machine = state_machine or AccountStateMachine()

    def apply(self, record: TransactionRecord) -> ApplyResult:
        """Classify one record and apply it to the owning account."""
        if record.type.carries_amount:
            return self._apply_movement(record)
        return self._apply_reference(record)

    def run(self, records: Iterable[TransactionRecord]) -> Counter:
        """Apply every record in order and return a count of outcomes."""
        summary: Counter = Counter()
        for record in records:
            result = self.apply(record)
            summary[result.outcome] += 1

        logger.info(
            "Ledger run completed",
            records=sum(summary.values()),
            accounts=self.client_repo.count(),
            transactions=self.transaction_repo.count(),
            **{outcome.value: count for outcome, count in summary.items()}
        )
        return summary

    def statements(self) -> List[AccountStatement]:
        return [AccountStatement.from_account(account) for account in self.client_repo.all()]

    def get_account(self, client_id: int) -> Optional[ClientAccount]:
        return self.client_repo.get(client_id)

    def get_transaction(self, tx_id: int) -> Optional[Transaction]:
        return self.transaction_repo.get(tx_id)

    def _apply_movement(self, record: TransactionRecord) -> ApplyResult:
        if self.transaction_repo.exists(record.tx):
            return self._drop(record, ApplyOutcome.dropped_duplicate)

        transaction = Transaction.from_record(record)
        self.transaction_repo.add(transaction)
        account = self.client_repo.get_or_create(transaction.client_id)
        transition = self.state_machine.handle(account, record.type, transaction)
        return self._result(record, transition)

    def _apply_reference(self, record: TransactionRecord) -> ApplyResult:
        original = self.transaction_repo.get(record.tx)
        if original is None:
            return self._drop(record, ApplyOutcome.dropped_unknown_reference)

        if original.client_id != record.client:
            return self._drop(
                record,
                ApplyOutcome.dropped_ownership_mismatch,
                owner_id=original.client_id
            )

        account = self.client_repo.get(record.client)
        if account is None:
            return self._drop(record, ApplyOutcome.dropped_unknown_client)

        transition = self.state_machine.handle(account, record.type, original)
        return self._result(record, transition)

    def _result(self, record: TransactionRecord, transition: TransitionResult) -> ApplyResult:
        if transition == TransitionResult.applied:
            return ApplyResult(outcome=ApplyOutcome.applied, transition=transition)

        logger.debug(
            "Transaction ignored by account",
            tx_id=record.tx,
            client_id=record.client,
            type=record.type.value,
            reason=transition.value
        )
        return ApplyResult(outcome=ApplyOutcome.ignored, transition=transition)

    def _drop(self, record: TransactionRecord, outcome: ApplyOutcome, **details) -> ApplyResult:
        logger.debug(
            "Transaction dropped",
            tx_id=record.tx,
            client_id=record.client,
            type=record.type.value,
            reason=outcome.value,
            **details
        )
        return ApplyResult(outcome=outcome)
