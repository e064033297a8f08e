"""Prometheus metrics for import outcomes, persistence health and rating distribution"""

from prometheus_client import Counter, Histogram

# Import metrics
import_records_counter = Counter(
    "salary_advance_import_records_total",
    "Imported records by outcome",
    ["kind", "outcome"],  # kind: customer | transaction, outcome: accepted | rejected
)

persistence_failure_counter = Counter(
    "salary_advance_persistence_failures_total",
    "Repository calls that failed",
    ["operation"],
)

# Backfill metrics
synthetic_entries_counter = Counter(
    "salary_advance_synthetic_entries_total",
    "Synthetic ledger entries generated",
)

# Scoring metrics
rating_score_histogram = Histogram(
    "salary_advance_rating_score",
    "Distribution of computed rating scores",
    buckets=[1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 10.0],
)


def record_import_outcome(kind: str, verified: bool) -> None:
    outcome = "accepted" if verified else "rejected"
    import_records_counter.labels(kind=kind, outcome=outcome).inc()


def record_persistence_failure(operation: str) -> None:
    persistence_failure_counter.labels(operation=operation).inc()


def record_synthetic_entries(count: int) -> None:
    if count > 0:
        synthetic_entries_counter.inc(count)


def record_rating(score: float) -> None:
    rating_score_histogram.observe(score)
