"""Wiring: builds domain services from a database session and settings"""

import random
from typing import Optional

from sqlalchemy.orm import Session

from salary_advance.config import Settings, settings as default_settings
from salary_advance.domain.backfill import SyntheticBackfillGenerator
from salary_advance.domain.importer import CustomerImporter, TransactionImporter
from salary_advance.domain.ledger import LedgerBalanceTracker
from salary_advance.domain.pipeline import RatingPipeline
from salary_advance.domain.scoring import ScoringEngine, ScoringPolicy
from salary_advance.infrastructure.database.repositories import (
    CustomerRepository,
    RatingRepository,
    TransactionRepository,
)
from salary_advance.utils.cancellation import CancellationToken


def get_scoring_policy(config: Settings = default_settings) -> ScoringPolicy:
    return ScoringPolicy(
        count_normalizer=config.score_count_normalizer,
        volume_normalizer=config.score_volume_normalizer,
        duration_days=config.score_duration_days,
        stability_normalizer=config.score_stability_normalizer,
    )


def get_tracker(db: Session) -> LedgerBalanceTracker:
    return LedgerBalanceTracker(CustomerRepository(db), TransactionRepository(db))


def get_customer_importer(db: Session) -> CustomerImporter:
    return CustomerImporter(CustomerRepository(db))


def get_transaction_importer(db: Session, tracker: Optional[LedgerBalanceTracker] = None) -> TransactionImporter:
    return TransactionImporter(CustomerRepository(db), tracker or get_tracker(db))


def get_backfill(
    db: Session,
    tracker: Optional[LedgerBalanceTracker] = None,
    rng: Optional[random.Random] = None,
    config: Settings = default_settings,
) -> SyntheticBackfillGenerator:
    return SyntheticBackfillGenerator(
        CustomerRepository(db),
        TransactionRepository(db),
        tracker or get_tracker(db),
        rng=rng,
        min_entries=config.backfill_min_entries,
        max_entries=config.backfill_max_entries,
        min_amount=config.backfill_min_amount,
        max_amount=config.backfill_max_amount,
        window_days=config.backfill_window_days,
    )


def get_scoring_engine(db: Session, config: Settings = default_settings) -> ScoringEngine:
    return ScoringEngine(TransactionRepository(db), RatingRepository(db), get_scoring_policy(config))


def get_pipeline(
    db: Session,
    rng: Optional[random.Random] = None,
    config: Settings = default_settings,
) -> RatingPipeline:
    """Importer and backfill share one tracker so per-customer locks are shared"""
    tracker = get_tracker(db)
    return RatingPipeline(
        CustomerRepository(db),
        get_transaction_importer(db, tracker),
        get_backfill(db, tracker, rng=rng, config=config),
        get_scoring_engine(db, config),
    )


def get_token(config: Settings = default_settings) -> CancellationToken:
    return CancellationToken(timeout=config.pipeline_timeout_seconds)
