"""
EscrowService -- the escrow custody engine.

Responsibility:
    All custody business logic for one account at a time: creation with fee
    and milestone validation, deposit instruction generation, deposit
    confirmation, full and partial release, refund, freeze, and the balance
    view.

Architecture position:
    Kernel > Services -- imperative shell around the pure domain rules in
    escrow_kernel.domain.  Calls the injected PaymentRail for deposit
    instructions only.

Invariants enforced:
    - Every mutating operation is load_for_update -> validate -> compute ->
      check_custody_invariants -> assign -> flush.  Nothing is assigned to
      the ORM object until every check has passed, so a rejected operation
      leaves the account untouched.
    - Every release (full or partial) passes is_release_authorized().
    - platformFee is computed once, in create_escrow().
    - The service flushes, never commits, and never retries.

Failure modes:
    - InvalidRequestError subclasses: bad amounts, milestone sum mismatch,
      unsupported payment method, release above the available balance.
    - EscrowNotFoundError: unknown account id.
    - EscrowConflictError subclasses: operation not allowed in the current
      status, nothing left to release or refund, duplicate contract.
    - ReleaseNotAuthorizedError: consent-or-arbiter rule failed.
    - PaymentGatewayError: the payment rail raised.
    - OptimisticLockError: another transaction changed the account first.

Audit relevance:
    Each successful mutation logs one event (escrow_created,
    escrow_deposit_initiated, escrow_deposit_confirmed, escrow_released,
    escrow_partially_released, escrow_refunded, escrow_frozen) with exact
    amounts.  Every rejection logs escrow_operation_rejected at WARNING with
    the error code.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from escrow_kernel.domain.authorization import is_release_authorized, normalize_approvals
from escrow_kernel.domain.balance import available_amount
from escrow_kernel.domain.clock import Clock, SystemClock, as_utc
from escrow_kernel.domain.dtos import (
    DepositInstruction,
    EscrowAccountInfo,
    EscrowBalance,
    MilestoneSpec,
    PayerIdentity,
    PaymentMethod,
    RefundResult,
    ReleaseResult,
)
from escrow_kernel.domain.fees import calculate_fee
from escrow_kernel.domain.money import MAX_AMOUNT, ZERO, to_amount, to_positive_amount
from escrow_kernel.domain.payment_rail import PaymentRail, parse_payment_method
from escrow_kernel.domain.status import (
    RELEASABLE_STATUSES,
    RELEASE_BLOCKED_REASONS,
    EscrowStatus,
    status_after_deposit,
    status_after_partial_release,
)
from escrow_kernel.exceptions import (
    EscrowKernelError,
    InsufficientAvailableBalanceError,
    InvalidAmountError,
    InvalidEscrowStateError,
    InvalidRequestError,
    MilestoneSumMismatchError,
    NoFundsAvailableError,
    PaymentGatewayError,
    ReleaseNotAuthorizedError,
)
from escrow_kernel.invariants import CustodyAmounts, check_custody_invariants
from escrow_kernel.logging_config import LogContext, get_logger
from escrow_kernel.models.escrow_account import EscrowAccount, EscrowMilestone
from escrow_kernel.selectors.escrow_selector import to_account_info, to_balance
from escrow_kernel.services.base import BaseService
from escrow_kernel.services.escrow_store import EscrowAccountStore
from escrow_kernel.settings import EscrowSettings

logger = get_logger("services.escrow")


def _amounts(account: EscrowAccount) -> CustodyAmounts:
    return CustodyAmounts(
        deposited=account.deposited_amount,
        released=account.released_amount,
        frozen=account.frozen_amount,
        platform_fee=account.platform_fee,
    )


def _require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequestError(f"{field_name} must be a non-empty string")
    return value.strip()


class EscrowService(BaseService[EscrowAccount]):
    """
    The escrow engine.

    Contract:
        Public methods accept ids as UUID or str and amounts as Decimal, int
        or numeric str.  They return frozen DTOs, never ORM objects.

    Usage:
        with session_scope() as session:
            engine = EscrowService(session, settings, rail)
            info = engine.create_escrow("CTR-1", Decimal("10000"), "D", "B")
            engine.confirm_deposit(info.id, Decimal("10000"))
            engine.release_escrow(info.id, ["D", "B"])
    """

    def __init__(
        self,
        session: Session,
        settings: EscrowSettings,
        payment_rail: PaymentRail,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._settings = settings
        self._rail = payment_rail
        self._clock = clock or SystemClock()
        self._store = EscrowAccountStore(session)

    @property
    def settings(self) -> EscrowSettings:
        return self._settings

    @contextmanager
    def _operation(
        self,
        operation: str,
        escrow_id: UUID | str | None = None,
        contract_id: str | None = None,
    ) -> Iterator[None]:
        with LogContext.bind(
            escrow_id=str(escrow_id) if escrow_id is not None else None,
            contract_id=contract_id,
        ):
            try:
                yield
            except EscrowKernelError as exc:
                logger.warning(
                    "escrow_operation_rejected",
                    extra={
                        "operation": operation,
                        "error_code": exc.code,
                        "error_category": exc.category,
                        "detail": str(exc),
                    },
                )
                raise

    def _check(
        self,
        account: EscrowAccount,
        after: CustodyAmounts,
        before: CustodyAmounts | None,
    ) -> None:
        check_custody_invariants(str(account.id), after, before)

    # ------------------------------------------------------------------
    # Fees
    # ------------------------------------------------------------------

    def calculate_fee(self, amount: Decimal | int | str) -> Decimal:
        """Platform fee for ``amount`` at the configured rate and rounding."""
        value = to_amount(amount)
        if value < 0:
            raise InvalidAmountError(amount, "amount must not be negative")
        return calculate_fee(
            value, self._settings.fee_percent, self._settings.fee_rounding
        )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_escrow(
        self,
        contract_id: str,
        total_amount: Decimal | int | str,
        depositor_id: str,
        beneficiary_id: str,
        deposit_deadline: datetime | None = None,
        milestones: Sequence[MilestoneSpec | Mapping[str, Any]] | None = None,
    ) -> EscrowAccountInfo:
        """
        Open a PENDING escrow account for a contract.

        Raises:
            InvalidAmountError: total_amount is not a positive 2-place amount.
            MilestoneSumMismatchError: milestones do not sum to total_amount.
            EscrowAlreadyExistsError: the contract already has an account.
        """
        with self._operation(
            "create_escrow",
            contract_id=contract_id if isinstance(contract_id, str) else None,
        ):
            contract_id = _require_text(contract_id, "contract_id")
            depositor_id = _require_text(depositor_id, "depositor_id")
            beneficiary_id = _require_text(beneficiary_id, "beneficiary_id")
            total = to_positive_amount(total_amount)
            specs = self._parse_milestones(milestones or (), total)

            platform_fee = self.calculate_fee(total)
            check_custody_invariants(
                contract_id,
                CustodyAmounts(ZERO, ZERO, ZERO, platform_fee),
            )

            account = EscrowAccount(
                contract_id=contract_id,
                depositor_id=depositor_id,
                beneficiary_id=beneficiary_id,
                total_amount=total,
                deposited_amount=ZERO,
                released_amount=ZERO,
                frozen_amount=ZERO,
                platform_fee=platform_fee,
                status=EscrowStatus.PENDING.value,
                currency=self._settings.currency,
                deposit_deadline=as_utc(deposit_deadline),
                milestones=[
                    EscrowMilestone(
                        position=position,
                        label=label,
                        amount=amount,
                        released=False,
                        approved_by=[],
                    )
                    for position, (label, amount) in enumerate(specs)
                ],
            )
            self._store.add(account)

            logger.info(
                "escrow_created",
                extra={
                    "escrow_id": str(account.id),
                    "total_amount": total,
                    "platform_fee": platform_fee,
                    "currency": account.currency,
                    "milestone_count": len(specs),
                },
            )
            return to_account_info(account)

    def _parse_milestones(
        self,
        milestones: Iterable[MilestoneSpec | Mapping[str, Any]],
        total: Decimal,
    ) -> list[tuple[str, Decimal]]:
        specs: list[tuple[str, Decimal]] = []
        for milestone in milestones:
            if isinstance(milestone, MilestoneSpec):
                label, raw_amount = milestone.label, milestone.amount
            else:
                label, raw_amount = milestone.get("label"), milestone.get("amount")
            specs.append(
                (_require_text(label, "milestone label"), to_positive_amount(raw_amount))
            )

        if specs:
            milestones_total = sum((amount for _, amount in specs), ZERO)
            if milestones_total != total:
                raise MilestoneSumMismatchError(milestones_total, total)
        return specs

    # ------------------------------------------------------------------
    # Deposits
    # ------------------------------------------------------------------

    def deposit_to_escrow(
        self,
        escrow_id: UUID | str,
        payment_method: PaymentMethod | str,
        payer_data: Mapping[str, Any] | None = None,
    ) -> DepositInstruction:
        """
        Ask the payment rail for an instruction covering the unfunded remainder.

        Does not credit the account; confirm_deposit() does that once the
        payment has settled.

        Raises:
            UnsupportedPaymentMethodError: method outside the supported set.
            InvalidEscrowStateError: released, refunded, frozen, or already
                fully funded.
            PaymentGatewayError: the rail failed.
        """
        with self._operation("deposit_to_escrow", escrow_id):
            method = parse_payment_method(
                payment_method, self._settings.supported_payment_methods
            )
            account = self._store.load(escrow_id)
            status = account.escrow_status

            if status in (EscrowStatus.RELEASED, EscrowStatus.REFUNDED):
                raise InvalidEscrowStateError(
                    str(account.id), status.value, "deposit",
                    "Cannot deposit to a released or refunded escrow",
                )
            if status == EscrowStatus.FROZEN:
                raise InvalidEscrowStateError(
                    str(account.id), status.value, "deposit",
                    "Cannot deposit to a frozen escrow",
                )

            remaining = account.total_amount - account.deposited_amount
            if remaining <= 0:
                raise InvalidEscrowStateError(
                    str(account.id), status.value, "deposit",
                    "Escrow is already fully funded",
                )

            payer = PayerIdentity.from_payer_data(dict(payer_data or {}))
            description = f"Deposito Escrow - Contrato {account.contract_id}"
            instruction = self._request_instruction(
                account, method, remaining, payer, description
            )

            logger.info(
                "escrow_deposit_initiated",
                extra={
                    "payment_method": method.value,
                    "amount": remaining,
                },
            )
            return instruction

    def _request_instruction(
        self,
        account: EscrowAccount,
        method: PaymentMethod,
        amount: Decimal,
        payer: PayerIdentity,
        description: str,
    ) -> DepositInstruction:
        try:
            if method == PaymentMethod.PIX:
                charge = self._rail.generate_charge(amount, payer, description)
                return DepositInstruction(
                    escrow_id=account.id,
                    amount=amount,
                    payment_method=method,
                    charge=charge,
                )
            due_date = as_utc(account.deposit_deadline) or (
                self._clock.now()
                + timedelta(days=self._settings.boleto_default_expiration_days)
            )
            statement = self._rail.generate_statement(
                amount, payer, due_date, description
            )
            return DepositInstruction(
                escrow_id=account.id,
                amount=amount,
                payment_method=method,
                statement=statement,
            )
        except Exception as exc:
            logger.warning(
                "payment_rail_failed",
                extra={"payment_method": method.value},
                exc_info=True,
            )
            raise PaymentGatewayError(
                str(account.id), method.value, f"{type(exc).__name__}: {exc}"
            ) from exc

    def confirm_deposit(
        self,
        escrow_id: UUID | str,
        amount: Decimal | int | str,
    ) -> EscrowAccountInfo:
        """
        Credit a settled deposit.

        The account becomes FUNDED once deposits reach total_amount, else
        PARTIALLY_FUNDED.  Deposits above total_amount are accepted.

        Raises:
            InvalidAmountError: amount is not positive, or the
                deposited total would exceed MAX_AMOUNT.
            InvalidEscrowStateError: released, refunded or frozen.
        """
        with self._operation("confirm_deposit", escrow_id):
            confirmed = to_positive_amount(amount)
            account = self._store.load_for_update(escrow_id)
            status = account.escrow_status

            if status.is_terminal or status == EscrowStatus.FROZEN:
                raise InvalidEscrowStateError(
                    str(account.id), status.value, "confirm_deposit",
                    f"Cannot confirm a deposit on a {status.value.lower()} escrow",
                )

            before = _amounts(account)
            new_deposited = account.deposited_amount + confirmed
            if new_deposited > MAX_AMOUNT:
                raise InvalidAmountError(
                    amount,
                    f"deposited total {new_deposited} would exceed {MAX_AMOUNT}",
                )
            new_status = status_after_deposit(new_deposited, account.total_amount)
            self._check(
                account,
                CustodyAmounts(new_deposited, before.released, before.frozen, before.platform_fee),
                before,
            )

            account.deposited_amount = new_deposited
            account.status = new_status.value
            self._store.save(account)

            logger.info(
                "escrow_deposit_confirmed",
                extra={
                    "amount": confirmed,
                    "deposited_amount": new_deposited,
                    "status": new_status.value,
                },
            )
            return to_account_info(account)

    # ------------------------------------------------------------------
    # Releases
    # ------------------------------------------------------------------

    def _ensure_releasable(self, account: EscrowAccount, operation: str) -> None:
        status = account.escrow_status
        if status not in RELEASABLE_STATUSES:
            raise InvalidEscrowStateError(
                str(account.id), status.value, operation,
                RELEASE_BLOCKED_REASONS[status],
            )

    def _ensure_authorized(
        self,
        account: EscrowAccount,
        approved_by: Sequence[str],
    ) -> list[str]:
        approvals = normalize_approvals(approved_by or ())
        if not is_release_authorized(account.depositor_id, account.beneficiary_id, approvals):
            raise ReleaseNotAuthorizedError(str(account.id), list(approved_by or ()))
        return approvals

    def release_escrow(
        self,
        escrow_id: UUID | str,
        approved_by: Sequence[str],
    ) -> ReleaseResult:
        """
        Release everything held, less the platform fee, to the beneficiary.

        Sets releasedAmount to deposited - fee, status RELEASED, and marks
        every milestone released.

        Raises:
            InvalidEscrowStateError: status outside RELEASABLE_STATUSES.
            ReleaseNotAuthorizedError: approvals fail consent-or-arbiter.
            NoFundsAvailableError: deposited - released - fee <= 0.
        """
        with self._operation("release_escrow", escrow_id):
            account = self._store.load_for_update(escrow_id)
            self._ensure_releasable(account, "release")
            approvals = self._ensure_authorized(account, approved_by)

            before = _amounts(account)
            releasable = before.deposited - before.released - before.platform_fee
            if releasable <= 0:
                raise NoFundsAvailableError(str(account.id), "release", releasable)

            new_released = before.deposited - before.platform_fee
            self._check(
                account,
                CustodyAmounts(before.deposited, new_released, before.frozen, before.platform_fee),
                before,
            )

            now = self._clock.now()
            account.released_amount = new_released
            account.status = EscrowStatus.RELEASED.value
            for milestone in account.milestones:
                if not milestone.released:
                    milestone.released = True
                    milestone.released_at = now
                    milestone.approved_by = list(approvals)
            self._store.save(account)

            result = ReleaseResult(
                escrow_id=account.id,
                amount_released=releasable,
                remaining_balance=ZERO,
                transfer_reference=f"TRF-{uuid4()}",
                beneficiary_id=account.beneficiary_id,
                released_at=now,
                approved_by=tuple(approvals),
            )
            logger.info(
                "escrow_released",
                extra={
                    "amount": releasable,
                    "beneficiary_id": account.beneficiary_id,
                    "transfer_reference": result.transfer_reference,
                    "approved_by": approvals,
                },
            )
            return result

    def release_partial_escrow(
        self,
        escrow_id: UUID | str,
        amount: Decimal | int | str,
        milestone: str | None,
        approved_by: Sequence[str],
    ) -> ReleaseResult:
        """
        Release part of the available balance, typically for a milestone.

        ``milestone`` is matched against milestone labels and ids; a match
        is marked released, no match is ignored.  The account becomes
        RELEASED once released + fee reaches deposited.

        Raises:
            InvalidAmountError: amount is not positive.
            InvalidEscrowStateError: status outside RELEASABLE_STATUSES.
            ReleaseNotAuthorizedError: approvals fail consent-or-arbiter.
            InsufficientAvailableBalanceError: amount > available.
        """
        with self._operation("release_partial_escrow", escrow_id):
            requested = to_positive_amount(amount)
            account = self._store.load_for_update(escrow_id)
            self._ensure_releasable(account, "release_partial")
            approvals = self._ensure_authorized(account, approved_by)

            before = _amounts(account)
            available = available_amount(
                before.deposited, before.released, before.frozen, before.platform_fee
            )
            if requested > available:
                raise InsufficientAvailableBalanceError(
                    str(account.id), requested, max(available, ZERO)
                )

            new_released = before.released + requested
            new_status = status_after_partial_release(
                new_released, before.platform_fee, before.deposited
            )
            after = CustodyAmounts(
                before.deposited, new_released, before.frozen, before.platform_fee
            )
            self._check(account, after, before)

            now = self._clock.now()
            account.released_amount = new_released
            account.status = new_status.value
            matched = self._match_milestone(account, milestone)
            if matched is not None and not matched.released:
                matched.released = True
                matched.released_at = now
                matched.approved_by = list(approvals)
            self._store.save(account)

            remaining = max(
                available_amount(after.deposited, after.released, after.frozen, after.platform_fee),
                ZERO,
            )
            result = ReleaseResult(
                escrow_id=account.id,
                amount_released=requested,
                remaining_balance=remaining,
                transfer_reference=f"TRF-{uuid4()}",
                beneficiary_id=account.beneficiary_id,
                released_at=now,
                milestone=milestone,
                approved_by=tuple(approvals),
            )
            logger.info(
                "escrow_partially_released",
                extra={
                    "amount": requested,
                    "remaining_balance": remaining,
                    "milestone": milestone,
                    "milestone_matched": matched is not None,
                    "status": new_status.value,
                    "transfer_reference": result.transfer_reference,
                },
            )
            return result

    @staticmethod
    def _match_milestone(
        account: EscrowAccount,
        reference: str | None,
    ) -> EscrowMilestone | None:
        if not reference:
            return None
        for candidate in account.milestones:
            if candidate.label == reference or str(candidate.id) == reference:
                return candidate
        return None

    # ------------------------------------------------------------------
    # Refund and freeze
    # ------------------------------------------------------------------

    def refund_escrow(self, escrow_id: UUID | str, reason: str) -> RefundResult:
        """
        Return deposited - released to the depositor and close the account.

        frozenAmount is not subtracted: a frozen account refunds everything
        not yet released.

        Raises:
            InvalidEscrowStateError: already released or refunded.
            NoFundsAvailableError: deposited - released <= 0.
        """
        with self._operation("refund_escrow", escrow_id):
            account = self._store.load_for_update(escrow_id)
            status = account.escrow_status

            if status == EscrowStatus.RELEASED:
                raise InvalidEscrowStateError(
                    str(account.id), status.value, "refund",
                    "Cannot refund a fully released escrow",
                )
            if status == EscrowStatus.REFUNDED:
                raise InvalidEscrowStateError(
                    str(account.id), status.value, "refund",
                    "Escrow has already been refunded",
                )

            before = _amounts(account)
            refundable = before.deposited - before.released
            if refundable <= 0:
                raise NoFundsAvailableError(str(account.id), "refund", refundable)
            self._check(account, before, before)

            account.status = EscrowStatus.REFUNDED.value
            self._store.save(account)

            result = RefundResult(
                escrow_id=account.id,
                amount_refunded=refundable,
                reason=reason,
                depositor_id=account.depositor_id,
                refund_reference=f"RFD-{uuid4()}",
                refunded_at=self._clock.now(),
            )
            logger.info(
                "escrow_refunded",
                extra={
                    "amount": refundable,
                    "reason": reason,
                    "refund_reference": result.refund_reference,
                },
            )
            return result

    def freeze_escrow(self, escrow_id: UUID | str, dispute_id: str) -> EscrowAccountInfo:
        """
        Lock deposited - released while a dispute is open.

        There is no unfreeze; a frozen account leaves FROZEN only by refund.

        Raises:
            InvalidRequestError: dispute_id is blank.
            InvalidEscrowStateError: released, refunded, or already frozen.
        """
        with self._operation("freeze_escrow", escrow_id):
            dispute_id = _require_text(dispute_id, "dispute_id")
            account = self._store.load_for_update(escrow_id)
            status = account.escrow_status

            if status.is_terminal:
                raise InvalidEscrowStateError(
                    str(account.id), status.value, "freeze",
                    "Cannot freeze a released or refunded escrow",
                )
            if status == EscrowStatus.FROZEN:
                raise InvalidEscrowStateError(
                    str(account.id), status.value, "freeze",
                    "Escrow is already frozen",
                )

            before = _amounts(account)
            new_frozen = before.deposited - before.released
            self._check(
                account,
                CustodyAmounts(before.deposited, before.released, new_frozen, before.platform_fee),
                before,
            )

            account.frozen_amount = new_frozen
            account.status = EscrowStatus.FROZEN.value
            account.dispute_id = dispute_id
            self._store.save(account)

            logger.info(
                "escrow_frozen",
                extra={"frozen_amount": new_frozen, "dispute_id": dispute_id},
            )
            return to_account_info(account)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_balance(self, escrow_id: UUID | str) -> EscrowBalance:
        return to_balance(self._store.load(escrow_id))

    def get_account(self, escrow_id: UUID | str) -> EscrowAccountInfo:
        return to_account_info(self._store.load(escrow_id))
