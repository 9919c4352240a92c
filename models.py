from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from enum import Enum
from typing import List, Optional, Set
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


DEFAULT_AMOUNT_SCALE = 4
MAX_CLIENT_ID = 2 ** 16 - 1
MAX_TX_ID = 2 ** 32 - 1

ZERO = Decimal("0.0000")


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"

    @property
    def carries_amount(self) -> bool:
        return self in (TransactionType.deposit, TransactionType.withdrawal)


REFERENCE_TYPES = (TransactionType.dispute, TransactionType.resolve, TransactionType.chargeback)


class TransitionResult(str, Enum):
    """What the account state machine did with a single transition attempt."""
    applied = "applied"
    account_locked = "account_locked"
    insufficient_funds = "insufficient_funds"
    not_disputable = "not_disputable"
    not_under_dispute = "not_under_dispute"


class ApplyOutcome(str, Enum):
    """How the ledger engine classified an incoming record."""
    applied = "applied"
    ignored = "ignored"
    dropped_duplicate = "dropped_duplicate"
    dropped_unknown_reference = "dropped_unknown_reference"
    dropped_ownership_mismatch = "dropped_ownership_mismatch"
    dropped_unknown_client = "dropped_unknown_client"


class TransactionRecord(BaseModel):
    """One parsed input row.

    Deposits and withdrawals must carry an amount; disputes, resolves and
    chargebacks reference an earlier transaction by ``tx`` and never carry one.
    Amounts are rescaled to the scale passed in the validation context
    (``{"scale": n}``), four fractional digits by default.
    """
    type: TransactionType = Field(..., description="Transaction type")
    client: int = Field(..., ge=0, le=MAX_CLIENT_ID, description="Client identifier (u16)")
    tx: int = Field(..., ge=0, le=MAX_TX_ID, description="Transaction identifier (u32)")
    amount: Optional[Decimal] = Field(None, description="Amount for deposits and withdrawals")

    @model_validator(mode='before')
    @classmethod
    def ignore_amount_on_references(cls, data):
        # Only deposits and withdrawals carry an amount; anything else in that column is not parsed
        if isinstance(data, dict) and data.get('type') in REFERENCE_TYPES:
            data = {key: value for key, value in data.items() if key != 'amount'}
        return data

    @field_validator('client', 'tx', 'amount', mode='before')
    @classmethod
    def strip_whitespace(cls, v, info: ValidationInfo):
        if isinstance(v, str):
            v = v.strip()
            # Referencing rows often leave the trailing amount column empty
            if v == "" and info.field_name == 'amount':
                return None
        return v

    @field_validator('amount')
    @classmethod
    def rescale_amount(cls, v, info: ValidationInfo):
        if v is None:
            return v
        scale = (info.context or {}).get("scale", DEFAULT_AMOUNT_SCALE)
        try:
            return v.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise ValueError(f'Amount {v} cannot be represented with {scale} fractional digits')

    @model_validator(mode='after')
    def validate_amount_type_consistency(self):
        if self.type.carries_amount:
            if self.amount is None:
                raise ValueError(f'{self.type.value} requires an amount')
        else:
            self.amount = None
        return self


class Transaction(BaseModel):
    """A deposit or withdrawal as stored in the transaction table."""
    model_config = ConfigDict(frozen=True)

    id: int
    type: TransactionType
    client_id: int
    amount: Decimal

    @classmethod
    def from_record(cls, record: TransactionRecord) -> "Transaction":
        return cls(id=record.tx, type=record.type, client_id=record.client, amount=record.amount)


class ClientAccount(BaseModel):
    id: int
    available: Decimal = ZERO
    held: Decimal = ZERO
    total: Decimal = ZERO
    locked: bool = False
    disputes: Set[int] = Field(default_factory=set, description="Deposit ids under open dispute")

    def is_disputed(self, tx_id: int) -> bool:
        return tx_id in self.disputes


class AccountStatement(BaseModel):
    client: int
    available: Decimal
    held: Decimal
    total: Decimal
    locked: bool

    @classmethod
    def from_account(cls, account: ClientAccount) -> "AccountStatement":
        return cls(
            client=account.id,
            available=account.available,
            held=account.held,
            total=account.total,
            locked=account.locked,
        )

    def as_row(self) -> List[str]:
        return [
            str(self.client),
            format(self.available, "f"),
            format(self.held, "f"),
            format(self.total, "f"),
            str(self.locked).lower(),
        ]


class ApplyResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    outcome: ApplyOutcome
    transition: Optional[TransitionResult] = None

    @property
    def dropped(self) -> bool:
        return self.outcome not in (ApplyOutcome.applied, ApplyOutcome.ignored)
