"""Monthly fee allocation table across RT/RW sub-accounts"""

from types import MappingProxyType
from typing import Mapping
from rt_finance.domain.models import FeeBreakdown
from rt_finance.domain.exceptions import UnsupportedAmount

# Every supported fee tier and its exact allocation. New tiers are added here;
# totals outside the table are rejected, never interpolated.
FEE_TABLE: Mapping[int, FeeBreakdown] = MappingProxyType({
    # Security only (house not yet occupied)
    100_000: FeeBreakdown(
        kas_rt=0, agama_rt=0, sampah=0, keamanan=100_000, agama_rw=0, kas_rw=0, kkm_rw=0,
    ),
    # Standard fee without religious funds
    186_000: FeeBreakdown(
        kas_rt=30_000, agama_rt=0, sampah=50_000, keamanan=97_500, agama_rw=0, kas_rw=3_000, kkm_rw=5_500,
    ),
    # Discounted standard fee, reduced waste share
    200_000: FeeBreakdown(
        kas_rt=30_000, agama_rt=2_400, sampah=40_000, keamanan=97_500, agama_rw=21_600, kas_rw=3_000, kkm_rw=5_500,
    ),
    # Standard fee
    210_000: FeeBreakdown(
        kas_rt=30_000, agama_rt=2_400, sampah=50_000, keamanan=97_500, agama_rw=21_600, kas_rw=3_000, kkm_rw=5_500,
    ),
})


def supported_totals() -> list[int]:
    return sorted(FEE_TABLE)


def breakdown_amount(total: int) -> FeeBreakdown:
    """
    Map a monthly fee total to its sub-account allocation.

    Raises:
        UnsupportedAmount: total is not a known fee tier
    """
    try:
        return FEE_TABLE[total]
    except KeyError:
        raise UnsupportedAmount(f"Unsupported totalAmount: {total}") from None
