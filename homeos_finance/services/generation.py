"""Recurring generation - materializes due occurrences into the ledger exactly once"""

import logging
import time
import uuid
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from homeos_finance.config import Settings, settings
from homeos_finance.domain.exceptions import (
    DataIntegrityError,
    DomainValidationError,
    EntityNotFoundError,
    GenerationLimitError,
    InvalidRecurrenceError,
)
from homeos_finance.domain.models import (
    GenerationFailure,
    GenerationReport,
    GenerationStats,
    RecurringTransaction,
    Transaction,
    TransactionStatus,
)
from homeos_finance.domain.recurrence import (
    next_due_occurrence,
    next_occurrence_after,
    preview_occurrences,
    reseeded_cursor,
)
from homeos_finance.infrastructure.database.repositories import (
    AccountRepository,
    RecurringTransactionRepository,
    TransactionRepository,
    recurring_to_domain,
)
from homeos_finance.infrastructure.observability.logging import log_generation_run
from homeos_finance.infrastructure.observability.metrics import record_generation

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset(
    {
        "description",
        "category_id",
        "account_id",
        "credit_card_id",
        "amount_type",
        "amount",
        "frequency",
        "day_of_month",
        "use_last_day",
        "start_date",
        "end_date",
    }
)


def build_transaction(recurring: RecurringTransaction, occurrence: date, suffix: str) -> Transaction:
    """Ledger transaction for one occurrence of a recurring definition"""
    return Transaction(
        id=uuid.uuid4(),
        description=f"{recurring.description} {suffix}".strip(),
        amount=recurring.amount,
        type=recurring.type,
        due_date=occurrence,
        status=TransactionStatus.PENDING,
        category_id=recurring.category_id,
        account_id=recurring.account_id,
        credit_card_id=recurring.credit_card_id,
    )


class RecurringGenerationCoordinator:
    """
    Generates ledger transactions for due recurring definitions.

    Each occurrence is one unit of work: the transaction, its generation
    link and the cursor advance are committed together or not at all. The
    recurrence row is locked for the unit, and the link table's unique
    (recurrence, occurrence date) pair turns a duplicate insert into a
    no-op, so repeated or concurrent runs never duplicate ledger entries.
    """

    def __init__(self, db: Session, config: Settings = settings):
        self.db = db
        self.config = config
        self.recurring_repo = RecurringTransactionRepository(db)
        self.transaction_repo = TransactionRepository(db)
        self.account_repo = AccountRepository(db)

    def generate_due(self, user_id: str, as_of: date, deadline: float | None = None) -> GenerationReport:
        """
        Generate every occurrence due on or before as_of for a user.

        Failures of one recurrence are recorded in the report and do not stop
        the others. When deadline (a time.monotonic() value) passes, remaining
        recurrences are left for the next run; finished units stay committed.
        """
        start_time = time.time()
        report = GenerationReport(user_id=user_id, as_of=as_of)
        generated_types: List[str] = []

        due_ids = [record.id for record in self.recurring_repo.get_due_for_generation(user_id, as_of)]
        self.db.rollback()  # End the read; each unit opens its own transaction

        for position, recurring_id in enumerate(due_ids):
            if deadline is not None and time.monotonic() >= deadline:
                report.timed_out = True
                logger.warning(
                    "Generation deadline reached, stopping",
                    extra={"user_id": user_id, "remaining": len(due_ids) - position},
                )
                break

            try:
                self._generate_for(user_id, recurring_id, as_of, report, generated_types)
            except DataIntegrityError as e:
                self.db.rollback()
                self._record_failure(report, recurring_id, "integrity", e)
            except DomainValidationError as e:
                self.db.rollback()
                self._record_failure(report, recurring_id, "validation", e)
            except GenerationLimitError as e:
                self.db.rollback()
                self._record_failure(report, recurring_id, "limit", e)
            except Exception as e:
                self.db.rollback()
                logger.exception(
                    "Failed to generate transactions for recurring",
                    extra={"user_id": user_id, "recurring_id": str(recurring_id)},
                )
                report.failures.append(GenerationFailure(recurring_id, "error", str(e)))

        duration_ms = (time.time() - start_time) * 1000
        record_generation(generated_types, report.skipped_existing, [f.reason for f in report.failures])
        log_generation_run(
            user_id,
            as_of.isoformat(),
            report.generated_count,
            report.skipped_existing,
            len(report.failures),
            duration_ms,
        )
        return report

    def _generate_for(
        self,
        user_id: str,
        recurring_id: uuid.UUID,
        as_of: date,
        report: GenerationReport,
        generated_types: List[str],
    ) -> None:
        """Advance one recurrence until its cursor passes as_of or its end date"""
        units = 0
        while True:
            record = self.recurring_repo.get_by_id(recurring_id, user_id, for_update=True)
            if record is None or not record.is_active:
                # Deleted or deactivated since the due list was read
                self.db.rollback()
                return

            recurring = recurring_to_domain(record)
            occurrence = next_due_occurrence(recurring, as_of)
            if occurrence is None:
                self.db.rollback()
                return

            if units >= self.config.generation_max_occurrences:
                raise GenerationLimitError(
                    f"Recurring transaction {recurring_id} exceeded {self.config.generation_max_occurrences} "
                    f"occurrences in one run; next due {occurrence}"
                )

            if not self.account_repo.funding_source_exists(
                user_id, account_id=recurring.account_id, credit_card_id=recurring.credit_card_id
            ):
                source = "account" if recurring.account_id is not None else "credit card"
                raise DataIntegrityError(
                    f"Recurring transaction {recurring.description!r} ({recurring_id}) references a deleted {source}"
                )

            now = datetime.now(timezone.utc)
            transaction = build_transaction(recurring, occurrence, self.config.generated_description_suffix)
            try:
                self.transaction_repo.insert(user_id, transaction)
                self.recurring_repo.link_generated_transaction(transaction.id, recurring_id, occurrence, now)
                self.recurring_repo.update_next_occurrence(record, next_occurrence_after(recurring, occurrence), now)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                self._skip_existing(user_id, recurring, occurrence)
                report.skipped_existing += 1
            else:
                report.generated_transaction_ids.append(transaction.id)
                generated_types.append(transaction.type.value)
                logger.debug(
                    "Generated recurring occurrence",
                    extra={"user_id": user_id, "recurring_id": str(recurring_id), "occurrence": occurrence.isoformat()},
                )

            units += 1

    def _skip_existing(self, user_id: str, recurring: RecurringTransaction, occurrence: date) -> None:
        """
        Move the cursor past an occurrence another run already generated.

        Raises:
            DataIntegrityError: the insert failed for a reason other than an
                existing link for this occurrence
        """
        if self.transaction_repo.get_by_recurring_and_date(user_id, recurring.id, occurrence) is None:
            raise DataIntegrityError(
                f"Could not generate occurrence {occurrence} of recurring transaction {recurring.id}"
            )

        logger.debug(
            "Transaction already exists for occurrence, skipping",
            extra={"user_id": user_id, "recurring_id": str(recurring.id), "occurrence": occurrence.isoformat()},
        )

        record = self.recurring_repo.get_by_id(recurring.id, user_id, for_update=True)
        if record is not None and record.next_occurrence <= occurrence:
            self.recurring_repo.update_next_occurrence(record, next_occurrence_after(recurring, occurrence))
        self.db.commit()

    def _record_failure(self, report: GenerationReport, recurring_id: uuid.UUID, reason: str, error: Exception) -> None:
        logger.error(
            f"Recurring generation failed: {error}",
            extra={"user_id": report.user_id, "recurring_id": str(recurring_id), "reason": reason},
        )
        report.failures.append(GenerationFailure(recurring_id=recurring_id, reason=reason, message=str(error)))

    def preview(self, user_id: str, recurring_id: uuid.UUID, count: int = 12) -> List[date]:
        """Next occurrences from the cursor, without generating anything"""
        record = self.recurring_repo.get_by_id(recurring_id, user_id)
        if record is None:
            raise EntityNotFoundError(f"Recurring transaction {recurring_id} not found")
        return preview_occurrences(recurring_to_domain(record), count)

    def edit(self, user_id: str, recurring_id: uuid.UUID, **changes) -> RecurringTransaction:
        """
        Apply an explicit edit to a definition and reseed its cursor.

        The edited definition is validated as a whole. Its cursor restarts at
        the first occurrence of the edited series that comes after the last
        generated one, so an edit never back-fills past periods and never
        regenerates an occurrence date that already has a ledger entry.

        Raises:
            EntityNotFoundError: unknown definition for this user
            InvalidRecurrenceError: unknown field or invalid edited definition
            DataIntegrityError: the edited funding source does not exist
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise InvalidRecurrenceError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        record = self.recurring_repo.get_by_id(recurring_id, user_id, for_update=True)
        if record is None:
            self.db.rollback()
            raise EntityNotFoundError(f"Recurring transaction {recurring_id} not found")

        try:
            edited = replace(recurring_to_domain(record), next_occurrence=None, **changes)
            if not self.account_repo.funding_source_exists(
                user_id, account_id=edited.account_id, credit_card_id=edited.credit_card_id
            ):
                source = "account" if edited.account_id is not None else "credit card"
                raise DataIntegrityError(f"Recurring transaction {recurring_id} references a deleted {source}")

            cursor = reseeded_cursor(edited, self.recurring_repo.get_last_generated_occurrence(recurring_id))
            self.recurring_repo.update(record, edited, cursor)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Recurring transaction updated",
            extra={
                "user_id": user_id,
                "recurring_id": str(recurring_id),
                "fields": sorted(changes),
                "next_occurrence": cursor.isoformat(),
            },
        )
        return replace(edited, next_occurrence=cursor)

    def toggle(self, user_id: str, recurring_id: uuid.UUID) -> RecurringTransaction:
        """
        Flip a definition between active and inactive.

        The cursor is kept, so reactivating catches up on the occurrences
        missed while inactive.
        """
        record = self.recurring_repo.get_by_id(recurring_id, user_id, for_update=True)
        if record is None:
            self.db.rollback()
            raise EntityNotFoundError(f"Recurring transaction {recurring_id} not found")

        self.recurring_repo.set_active(record, not record.is_active)
        self.db.commit()

        logger.info(
            "Recurring transaction toggled",
            extra={"user_id": user_id, "recurring_id": str(recurring_id), "is_active": record.is_active},
        )
        return recurring_to_domain(record)

    def stats(self, user_id: str, today: date | None = None) -> GenerationStats:
        """Counts and dates for monitoring a user's recurring generation"""
        today = today or date.today()
        records = self.recurring_repo.get_all(user_id, include_inactive=True)
        active = [r for r in records if r.is_active]
        generated_at = [r.last_generated_at for r in active if r.last_generated_at is not None]

        return GenerationStats(
            active_count=len(active),
            total_count=len(records),
            next_due_date=min((r.next_occurrence for r in active), default=None),
            last_run_at=max(generated_at, default=None),
            pending_count=sum(1 for r in active if r.next_occurrence <= today + timedelta(days=30)),
        )
