"""Domain models - pure Python dataclasses and enums representing business entities"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional


class PaymentStatus(str, Enum):
    """Monthly fee lifecycle"""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    WAITING_APPROVAL = "WAITING_APPROVAL"
    WAITING_MANUAL_INPUT = "WAITING_MANUAL_INPUT"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"


class EntryType(str, Enum):
    IN = "IN"
    OUT = "OUT"


class Bucket(str, Enum):
    """Ledger partition: CASH carries a running balance, DEFERRED is an event log"""

    CASH = "CASH"
    DEFERRED = "DEFERRED"


class LedgerSource(str, Enum):
    MANUAL = "MANUAL"
    MONTHLY_FEE = "MONTHLY_FEE"


class FundingSource(str, Enum):
    """Where a resident's monthly contribution came from in a breakdown"""

    DEFERRED = "DEFERRED"
    MONTHLY_FEE = "MONTHLY_FEE"


@dataclass(frozen=True)
class FeeBreakdown:
    """Allocation of one monthly fee across internal sub-accounts"""

    kas_rt: int
    agama_rt: int
    sampah: int
    keamanan: int
    agama_rw: int
    kas_rw: int
    kkm_rw: int

    @property
    def total(self) -> int:
        return sum(asdict(self).values())


@dataclass
class BreakdownRow:
    """One resident's line in a period breakdown"""

    block: str
    house_number: str
    full_name: Optional[str]
    source: Optional[FundingSource] = None
    total_amount: Optional[int] = None
    kas_rt: Optional[int] = None
    agama_rt: Optional[int] = None
    sampah: Optional[int] = None
    keamanan: Optional[int] = None
    agama_rw: Optional[int] = None
    kas_rw: Optional[int] = None
    kkm_rw: Optional[int] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["source"] = self.source.value if self.source else None
        return data


@dataclass
class BatchResult:
    """Outcome of one batch OCR run"""

    processed: int
    failed: int


@dataclass
class ReleaseSummary:
    """Outcome of a deferred release over all active subscriptions"""

    release_month: str
    processed: int
    skipped: int
