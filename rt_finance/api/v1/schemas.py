"""Pydantic schemas for API request/response validation"""

import uuid
import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from rt_finance.domain.models import Bucket, EntryType, LedgerSource


class ErrorResponse(BaseModel):
    """Body of every 4xx/5xx raised from a domain error"""

    code: str
    message: str


class ExtractAmountResponse(BaseModel):
    """Response for POST /v1/extract-amount"""

    raw: str
    amount: Optional[int] = None


# --- Monthly fee -----------------------------------------------------------


class MonthlyFeeValidateRequest(BaseModel):
    """Request body for POST /v1/monthly-fee/validate"""

    block: str = Field(..., min_length=1)
    house_number: str = Field(..., min_length=1)
    date: str = Field(..., description="Period as YYYY-MM")


class MonthlyFeeManualRequest(MonthlyFeeValidateRequest):
    """Request body for POST /v1/monthly-fee/manual"""

    name: str = Field(..., min_length=1)
    image_url: str = Field(..., min_length=1)
    notes: Optional[str] = None


class ManualAmountRequest(BaseModel):
    """Treasurer-supplied amount for a payment OCR could not read"""

    amount: int = Field(..., ge=100_000)
    actor: str = "admin"


class MonthlyFeeSchema(BaseModel):
    """Single monthly fee payment"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    block: str
    house_number: str
    period: str
    full_name: Optional[str] = None
    amount: Optional[int] = None
    status: str
    image_url: Optional[str] = None
    attempt: int = 0
    error_message: Optional[str] = None
    notes: Optional[str] = None


class MonthlyFeeProofResponse(BaseModel):
    """Response for POST /v1/monthly-fee"""

    success: bool = True
    data: MonthlyFeeSchema
    raw_text: Optional[str] = None
    amount: Optional[int] = None
    image_url: Optional[str] = None


class BreakdownRowSchema(BaseModel):
    block: str
    house_number: str
    full_name: Optional[str] = None
    source: Optional[str] = None
    total_amount: Optional[int] = None
    kas_rt: Optional[int] = None
    agama_rt: Optional[int] = None
    sampah: Optional[int] = None
    keamanan: Optional[int] = None
    agama_rw: Optional[int] = None
    kas_rw: Optional[int] = None
    kkm_rw: Optional[int] = None


class BreakdownResponse(BaseModel):
    """Response for GET /v1/monthly-fee/breakdown/{year}/{month}"""

    period: str
    total: int
    data: List[BreakdownRowSchema]


class SubmitToRWRequest(BaseModel):
    ids: List[int] = Field(..., min_length=1)
    period: str
    notes: Optional[str] = None


class RWSubmissionSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    period: str
    total_amount: int
    submitted_at: dt.datetime
    notes: Optional[str] = None
    record_count: int = 0


# --- Cash ledger -----------------------------------------------------------


class CashLedgerRequest(BaseModel):
    """Request body for POST /v1/cash-ledger"""

    type: EntryType
    amount: int = Field(..., gt=0)
    description: str = Field(..., min_length=1)
    date: Optional[dt.date] = None
    bucket: Bucket = Bucket.CASH
    source: LedgerSource = LedgerSource.MANUAL
    source_ref: Optional[str] = None


class CashLedgerSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    amount: int
    bucket: str
    balance: Optional[int] = None
    date: dt.date
    description: str
    source: str
    source_ref: Optional[str] = None
    created_by: str


class BalanceResponse(BaseModel):
    balance: int


class CsvImportResponse(BaseModel):
    message: str = "CSV imported successfully"
    total: int


# --- Deferred subscriptions --------------------------------------------------


class DeferredSubscriptionRequest(BaseModel):
    """Request body for POST /v1/deferred-subscription"""

    block: str
    house_number: str
    total_amount: int
    monthly_amount: int
    start_month: Optional[str] = None
    end_month: Optional[str] = None
    source_ref: Optional[str] = None


class DeferredSubscriptionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    block: str
    house_number: str
    total_amount: int
    monthly_amount: int
    remaining: int
    start_month: str
    end_month: str
    is_active: bool
    source_ref: Optional[str] = None


# --- Cron -------------------------------------------------------------------


class OcrRunResponse(BaseModel):
    message: str
    processed: int = 0
    failed: int = 0


class ReleaseResponse(BaseModel):
    message: str = "Deferred monthly release completed"
    release_month: str
    processed: int
    skipped: int


# --- Residents -------------------------------------------------------------


class ResidentSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    block: str
    house_number: str
    full_name: Optional[str] = None
    occupancy_type: Optional[str] = None
    house_status: Optional[str] = None
    notes: Optional[str] = None


class ResidentListResponse(BaseModel):
    """Response for GET /v1/residents"""

    page: int
    limit: int
    total: int
    total_pages: int
    data: List[ResidentSchema]


class ResidentUpdateRequest(BaseModel):
    """At least one field is required; omitted fields keep their value"""

    full_name: Optional[str] = None
    occupancy_type: Optional[str] = None
    house_status: Optional[str] = None
    notes: Optional[str] = None


class ResidentUpdateResponse(BaseModel):
    message: str = "Resident updated successfully"
    resident: ResidentSchema


class BlocksResponse(BaseModel):
    total: int
    blocks: List[str]


class BlockHouses(BaseModel):
    block: str
    houses: List[str]


class BlockHousesResponse(BaseModel):
    total_blocks: int
    data: List[BlockHouses]

# --- Telegram webhook ------------------------------------------------------
# Only the fields the bot reads; Telegram sends many more, which are ignored.


class TelegramUser(BaseModel):
    id: int
    first_name: str = ""


class TelegramChat(BaseModel):
    id: int


class TelegramMessage(BaseModel):
    message_id: int
    chat: TelegramChat
    from_user: Optional[TelegramUser] = Field(None, alias="from")
    text: Optional[str] = None
    caption: Optional[str] = None
    reply_to_message: Optional["TelegramMessage"] = None


class TelegramCallbackQuery(BaseModel):
    id: str
    from_user: TelegramUser = Field(..., alias="from")
    message: Optional[TelegramMessage] = None
    data: Optional[str] = None


class TelegramUpdate(BaseModel):
    """Body Telegram POSTs to the webhook"""

    update_id: int
    message: Optional[TelegramMessage] = None
    callback_query: Optional[TelegramCallbackQuery] = None


class TelegramWebhookResponse(BaseModel):
    ok: bool = True
    outcome: str
