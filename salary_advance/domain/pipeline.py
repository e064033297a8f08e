"""Transaction batch pipeline: import → synthetic backfill → rating"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from salary_advance.domain.audit import AuditLog
from salary_advance.domain.backfill import SyntheticBackfillGenerator
from salary_advance.domain.contracts import CustomerRepository
from salary_advance.domain.exceptions import BatchEmptyResult, NoHistoryError, PersistenceError
from salary_advance.domain.importer import TransactionImporter, parse_batch
from salary_advance.domain.models import LedgerEntry, PipelineResult, Rating, RejectedRecord
from salary_advance.domain.scoring import ScoringEngine
from salary_advance.infrastructure.observability.logging import log_persistence_failure
from salary_advance.infrastructure.observability.metrics import record_persistence_failure
from salary_advance.utils.cancellation import CancellationToken, ensure_token


class RatingPipeline:
    """
    Runs one transaction batch end to end.

    Flow:
    1. Import and validate the batch (partial success is normal)
    2. Backfill synthetic history for customers still without entries
    3. Rate every known customer from its final history

    The audit log accumulates across all three stages.
    """

    def __init__(
        self,
        customers: CustomerRepository,
        importer: TransactionImporter,
        backfill: SyntheticBackfillGenerator,
        scoring: ScoringEngine,
    ):
        self.customers = customers
        self.importer = importer
        self.backfill = backfill
        self.scoring = scoring

    def process_batch(
        self,
        data: Union[bytes, str],
        allow_overdraft: bool = False,
        token: Optional[CancellationToken] = None,
    ) -> PipelineResult:
        return self.process_records(parse_batch(data), allow_overdraft=allow_overdraft, token=token)

    def process_records(
        self,
        records: Sequence[Dict[str, Any]],
        allow_overdraft: bool = False,
        token: Optional[CancellationToken] = None,
    ) -> PipelineResult:
        """
        Raises:
            BatchEmptyResult: A non-empty batch committed no record, or an
                empty batch left nothing to generate or rate
        """
        token = ensure_token(token)

        imported = self.importer.import_records(
            records, allow_overdraft=allow_overdraft, token=token, require_success=False
        )
        if records and not imported.accepted:
            # Backfill and rating are skipped; the log holds one line per input record
            raise BatchEmptyResult("no valid transactions imported; see logs for details", logs=imported.logs)

        audit_log = AuditLog(imported.logs)
        persistence_failures = imported.persistence_failures

        transactions: List[LedgerEntry] = list(imported.accepted)
        transactions.extend(self.backfill.backfill(audit_log, token))
        persistence_failures += sum(1 for e in audit_log.entries if e.synthetic and not e.verified)

        ratings, rating_failures = self._rate_all(audit_log, token)
        persistence_failures += rating_failures

        if not transactions and not ratings:
            raise BatchEmptyResult("no transactions or ratings processed", logs=audit_log.entries)

        return PipelineResult(
            transactions=transactions,
            ratings=ratings,
            logs=audit_log.entries,
            persistence_failures=persistence_failures,
        )

    def _rate_all(self, audit_log: AuditLog, token: CancellationToken) -> tuple[List[Rating], int]:
        ratings: List[Rating] = []
        failures = 0

        for customer in self.customers.list_all():
            token.raise_if_cancelled()
            try:
                ratings.append(self.scoring.calculate_rating(customer.customer_id, token))
            except NoHistoryError as e:
                # Backfill guarantees history, so this is an internal invariant violation
                logging.error(
                    f"Customer reached scoring without history: {e}",
                    extra={"step": "rating_failed", "customer_id": customer.customer_id},
                )
                self._rating_failed(audit_log, customer.customer_id, e)
            except PersistenceError as e:
                failures += 1
                record_persistence_failure(e.operation)
                log_persistence_failure(e.operation, e, customer_id=customer.customer_id, stage="scoring")
                self._rating_failed(audit_log, customer.customer_id, e)

        return ratings, failures

    @staticmethod
    def _rating_failed(audit_log: AuditLog, customer_id: str, error: Exception) -> None:
        audit_log.append(
            RejectedRecord(
                record_index=None,
                errors=[f"failed to calculate rating: {error}"],
                customer_id=customer_id,
            )
        )
