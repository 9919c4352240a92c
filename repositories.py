from abc import ABC, abstractmethod
from typing import Dict, Iterator, Optional

from models import ClientAccount, Transaction


class TransactionRepository(ABC):
    """Global, write-once table of deposits and withdrawals keyed by tx id."""

    @abstractmethod
    def get(self, tx_id: int) -> Optional[Transaction]:
        """Get stored transaction. Returns None if the id was never seen."""
        pass

    @abstractmethod
    def add(self, transaction: Transaction) -> None:
        """Store a new transaction. Ids can only be written once."""
        pass

    @abstractmethod
    def exists(self, tx_id: int) -> bool:
        pass

    @abstractmethod
    def count(self) -> int:
        pass


class ClientRepository(ABC):
    @abstractmethod
    def get(self, client_id: int) -> Optional[ClientAccount]:
        """Get account. Returns None if the client never transacted."""
        pass

    @abstractmethod
    def get_or_create(self, client_id: int) -> ClientAccount:
        """Get account, opening a zero-balance one on first sight."""
        pass

    @abstractmethod
    def all(self) -> Iterator[ClientAccount]:
        pass

    @abstractmethod
    def count(self) -> int:
        pass


class InMemoryTransactionRepository(TransactionRepository):
    def __init__(self):
        self.transactions: Dict[int, Transaction] = {}

    def get(self, tx_id: int) -> Optional[Transaction]:
        return self.transactions.get(tx_id)

    def add(self, transaction: Transaction) -> None:
        if transaction.id in self.transactions:
            raise ValueError(f"Transaction {transaction.id} already exists")
        self.transactions[transaction.id] = transaction

    def exists(self, tx_id: int) -> bool:
        return tx_id in self.transactions

    def count(self) -> int:
        return len(self.transactions)


class InMemoryClientRepository(ClientRepository):
    def __init__(self):
        self.accounts: Dict[int, ClientAccount] = {}

    def get(self, client_id: int) -> Optional[ClientAccount]:
        return self.accounts.get(client_id)

    def get_or_create(self, client_id: int) -> ClientAccount:
        account = self.accounts.get(client_id)
        if account is None:
            account = ClientAccount(id=client_id)
            self.accounts[client_id] = account
        return account

    def all(self) -> Iterator[ClientAccount]:
        return iter(self.accounts.values())

    def count(self) -> int:
        return len(self.accounts)
