"""Rating engine - bounded, reproducible creditworthiness score from ledger history"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from salary_advance.domain.contracts import RatingRepository, TransactionRepository
from salary_advance.domain.exceptions import NoHistoryError
from salary_advance.domain.models import LedgerEntry, Rating, ScoreBreakdown
from salary_advance.infrastructure.observability.logging import log_rating_computed
from salary_advance.infrastructure.observability.metrics import record_rating
from salary_advance.utils.cancellation import CancellationToken, ensure_token
from salary_advance.utils.date_utils import utcnow

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class ScoringPolicy:
    """
    Normalizers, weights and bounds for the rating.

    Defaults:
    - 10 entries saturate the count score
    - 100,000 in absolute volume saturates the volume score
    - one year between first and last entry saturates the duration score
    - a cleared-balance standard deviation of 2,000 drives stability to 0
    """

    count_normalizer: float = 10.0
    volume_normalizer: float = 100_000.0
    duration_days: float = 365.0
    stability_normalizer: float = 2_000.0
    count_weight: float = 0.3
    volume_weight: float = 0.3
    duration_weight: float = 0.2
    stability_weight: float = 0.2
    floor: float = 1.0
    ceiling: float = 10.0
    decimals: int = 2


DEFAULT_POLICY = ScoringPolicy()


def _chronological(entries: Sequence[LedgerEntry]) -> List[LedgerEntry]:
    # Fixed order keeps float sums bit-identical across calls
    return sorted(entries, key=lambda e: (e.transaction_date, e.transaction_id))


def count_score(entry_count: int, policy: ScoringPolicy = DEFAULT_POLICY) -> float:
    """Activity volume, min(count / N, 1)"""
    return min(entry_count / policy.count_normalizer, 1.0)


def volume_score(entries: Sequence[LedgerEntry], policy: ScoringPolicy = DEFAULT_POLICY) -> float:
    """Sum of absolute amounts over all entries, normalized and capped at 1"""
    total = sum(abs(float(e.amount)) for e in _chronological(entries))
    return min(total / policy.volume_normalizer, 1.0)


def duration_score(entries: Sequence[LedgerEntry], policy: ScoringPolicy = DEFAULT_POLICY) -> float:
    """Span between earliest and latest entry; 0 with fewer than 2 entries"""
    if len(entries) < 2:
        return 0.0
    dates = [e.transaction_date for e in entries]
    days = (max(dates) - min(dates)).total_seconds() / SECONDS_PER_DAY
    return min(days / policy.duration_days, 1.0)


def stability_score(entries: Sequence[LedgerEntry], policy: ScoringPolicy = DEFAULT_POLICY) -> float:
    """
    1 - stddev(cleared balances) / N, floored at 0.

    With fewer than 2 entries no volatility is observed, so the score is 1
    (opposite convention from duration_score).
    """
    if len(entries) < 2:
        return 1.0
    balances = [float(e.cleared_balance) for e in _chronological(entries)]
    mean = math.fsum(balances) / len(balances)
    variance = math.fsum((b - mean) ** 2 for b in balances) / len(balances)
    std_dev = math.sqrt(variance)
    return max(1.0 - std_dev / policy.stability_normalizer, 0.0)


def score_entries(entries: Sequence[LedgerEntry], policy: ScoringPolicy = DEFAULT_POLICY) -> tuple[float, ScoreBreakdown]:
    """
    Score a customer's full history.

    Weights: 30% count, 30% volume, 20% duration, 20% stability. The weighted
    sum is scaled to 10, rounded and clamped to [floor, ceiling].

    Raises:
        NoHistoryError: No entries; backfill should have made this unreachable
    """
    if not entries:
        raise NoHistoryError("no transactions found for customer")

    breakdown = ScoreBreakdown(
        count_score=count_score(len(entries), policy),
        volume_score=volume_score(entries, policy),
        duration_score=duration_score(entries, policy),
        stability_score=stability_score(entries, policy),
    )

    weighted = (
        policy.count_weight * breakdown.count_score
        + policy.volume_weight * breakdown.volume_score
        + policy.duration_weight * breakdown.duration_score
        + policy.stability_weight * breakdown.stability_score
    )
    score = round(weighted * 10, policy.decimals)
    score = min(max(score, policy.floor), policy.ceiling)

    return score, breakdown


class ScoringEngine:
    """Reads a customer's ledger, scores it and stores one rating per customer"""

    def __init__(
        self,
        transactions: TransactionRepository,
        ratings: RatingRepository,
        policy: ScoringPolicy = DEFAULT_POLICY,
    ):
        self.transactions = transactions
        self.ratings = ratings
        self.policy = policy

    def calculate_rating(self, customer_id: str, token: Optional[CancellationToken] = None) -> Rating:
        """
        Recompute and persist the rating for one customer.

        Raises:
            NoHistoryError: Customer has no ledger entries
            PersistenceError: Reading history or writing the rating failed
        """
        ensure_token(token).raise_if_cancelled()
        if not customer_id:
            raise ValueError("customer ID is required")

        entries = self.transactions.list_for_customer(customer_id)
        score, breakdown = score_entries(entries, self.policy)

        now = utcnow()
        rating = self.ratings.upsert(
            Rating(customer_id=customer_id, score=score, breakdown=breakdown, created_at=now, updated_at=now)
        )

        record_rating(score)
        log_rating_computed(customer_id, score)
        return rating

    def get_all_ratings(self) -> List[Rating]:
        return self.ratings.list_all()
