"""
Checkout service: the transaction orchestrator.

Composes the gates into one commit operation:

    IDLE -> VALIDATING -> COMMITTING -> PERSISTED
               |              |
               +--> REJECTED <+

Validation (no side effects):
1. Empty cart / blank staff id; staff verification against the directory
2. Catalog lookup for every line, then the compliance gate (credential
   format, then an active holder of the registration number when staff
   verification is on)
3. Stock pre-check
4. Cash payment check
5. Identity plan (reads only; only a conflict rejects)

Commit (durable side effects, in this order):
6. Stock decrements, new customer record (if planned), transaction insert,
   refresh of a matched customer's details, customer aggregate, daily sales
   summary

Recoverable failures are returned in CheckoutResult.error. A store failure
before the transaction insert completes releases the decrements, deletes a
customer created for the sale and raises CommitFailedError; nothing is
retried automatically.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from domain.cart import Cart, CartLine
from domain.customer import Customer
from domain.errors import (
    CommitFailedError,
    IdentityConflictError,
    InsufficientPaymentError,
    PersistenceError,
    PosError,
    ValidationError,
)
from domain.medicine import Medicine
from domain.money import ZERO, to_money
from domain.time import utc_now
from domain.transaction import (
    PaymentMethod,
    Transaction,
    TransactionLine,
    TransactionType,
    generate_receipt_number,
)
from repositories.ports import (
    CustomerPool,
    DailySalesLedger,
    MedicineCatalog,
    StaffDirectory,
    TransactionLedger,
)
from services.compliance_service import ComplianceGate
from services.identity_service import (
    IdentityPlan,
    IdentityResolution,
    IdentityResolver,
    ResolutionStatus,
)
from services.pricing_service import CartTotals, PricingEngine
from services.stock_ledger_service import StockLedgerGate, StockReservation

logger = logging.getLogger(__name__)


class CheckoutState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    COMMITTING = "committing"
    PERSISTED = "persisted"
    REJECTED = "rejected"


_ALLOWED_TRANSITIONS = {
    CheckoutState.IDLE: {CheckoutState.VALIDATING},
    CheckoutState.VALIDATING: {CheckoutState.COMMITTING, CheckoutState.REJECTED},
    CheckoutState.COMMITTING: {CheckoutState.PERSISTED, CheckoutState.REJECTED},
    CheckoutState.PERSISTED: set(),
    CheckoutState.REJECTED: set(),
}


class IllegalTransitionError(RuntimeError):
    def __init__(self, current: CheckoutState, target: CheckoutState):
        self.current = current
        self.target = target
        super().__init__(f"Illegal checkout transition: {current.value} -> {target.value}")


class CheckoutStateMachine:
    """
    Tracks one checkout attempt. PERSISTED and REJECTED are terminal; a
    rejected checkout is resubmitted as a new attempt from IDLE.
    """

    def __init__(self) -> None:
        self.state = CheckoutState.IDLE
        self.history: List[CheckoutState] = [CheckoutState.IDLE]
        self.reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return not _ALLOWED_TRANSITIONS[self.state]

    def transition(self, target: CheckoutState, reason: Optional[str] = None) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.state]:
            raise IllegalTransitionError(self.state, target)
        logger.debug(
            "Checkout state transition",
            extra={"from_state": self.state.value, "to_state": target.value, "reason": reason},
        )
        self.state = target
        self.history.append(target)
        if reason is not None:
            self.reason = reason


@dataclass(frozen=True, slots=True)
class CustomerInput:
    """What the cashier captured about the buyer; every field is optional."""
    term: Optional[str] = None  # national ID, or a phone typed in the ID box
    name: Optional[str] = None
    phone: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not any((v or "").strip() for v in (self.term, self.name, self.phone))


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    """
    A sale ready to be committed.

    lines: Cart lines with prices frozen when they were added
    credential: Pharmacist registration number (required for prescription lines)
    """
    lines: Tuple[CartLine, ...]
    staff_id: str
    payment_method: PaymentMethod = PaymentMethod.CASH
    tendered_amount: Decimal = ZERO
    discount_rate: Decimal = Decimal("0")
    credential: Optional[str] = None
    customer: Optional[CustomerInput] = None
    note: Optional[str] = None

    @staticmethod
    def from_cart(
        cart: Cart,
        staff_id: str,
        credential: Optional[str] = None,
        customer: Optional[CustomerInput] = None,
        note: Optional[str] = None,
    ) -> "CheckoutRequest":
        return CheckoutRequest(
            lines=tuple(cart.lines),
            staff_id=staff_id,
            payment_method=cart.payment_method,
            tendered_amount=cart.tendered_amount,
            discount_rate=cart.discount_rate,
            credential=credential,
            customer=customer,
            note=note,
        )


@dataclass(frozen=True, slots=True)
class Receipt:
    """
    Receipt-ready view of a committed sale.

    warnings: Non-fatal problems after the transaction was persisted (for
        example the customer total could not be updated).
    """
    transaction: Transaction
    customer: Optional[Customer]
    customer_created: bool = False
    currency: str = "LKR"
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    """
    Result of a checkout attempt.

    success: True when the sale was persisted
    state: Final state (PERSISTED or REJECTED)
    receipt: Present on success
    error: The first recoverable failure, when rejected
    totals: Totals computed during validation (None if rejected before pricing)
    """
    success: bool
    state: CheckoutState
    history: Tuple[CheckoutState, ...]
    receipt: Optional[Receipt] = None
    error: Optional[PosError] = None
    totals: Optional[CartTotals] = None


@dataclass
class _Validated:
    lines: List[CartLine]
    medicines: Dict[str, Medicine]
    totals: CartTotals
    credential: Optional[str]
    identity_plan: Optional[IdentityPlan] = None
    warnings: List[str] = field(default_factory=list)


class CheckoutService:
    def __init__(
        self,
        catalog: MedicineCatalog,
        customers: CustomerPool,
        transactions: TransactionLedger,
        daily_sales: Optional[DailySalesLedger] = None,
        staff: Optional[StaffDirectory] = None,
        pricing: Optional[PricingEngine] = None,
        compliance: Optional[ComplianceGate] = None,
        identity: Optional[IdentityResolver] = None,
        require_staff_verification: bool = True,
        currency: str = "LKR",
        clock: Callable[[], datetime] = utc_now,
    ):
        self._catalog = catalog
        self._customers = customers
        self._transactions = transactions
        self._daily_sales = daily_sales
        self._staff = staff
        self.pricing = pricing or PricingEngine()
        self.compliance = compliance or ComplianceGate()
        self.identity = identity or IdentityResolver(customers)
        self.stock = StockLedgerGate(catalog)
        self.require_staff_verification = require_staff_verification
        self.currency = currency
        self._clock = clock

    @property
    def _verifies_staff(self) -> bool:
        return self._staff is not None and self.require_staff_verification

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate(self, request: CheckoutRequest) -> Tuple[Optional[_Validated], Optional[PosError], Optional[CartTotals]]:
        if not request.lines:
            return None, ValidationError("Cart is empty", field="lines"), None
        staff_id = (request.staff_id or "").strip()
        if not staff_id:
            return None, ValidationError("Staff id is required", field="staff_id"), None

        if self._verifies_staff:
            member = self._staff.verify_staff(staff_id)
            if member is None or not member.is_active():
                return None, ValidationError(f"Unknown or inactive staff member {staff_id}", field="staff_id"), None

        medicines: Dict[str, Medicine] = {}
        for line in request.lines:
            if line.medicine_id in medicines:
                continue
            medicine = self._catalog.get_medicine(line.medicine_id)
            if medicine is None:
                return None, ValidationError(f"Unknown medicine {line.medicine_id}", field="medicine_id"), None
            medicines[line.medicine_id] = medicine

        lines = [
            line if line.medicine_name else replace(line, medicine_name=medicines[line.medicine_id].name)
            for line in request.lines
        ]

        requirement = self.compliance.evaluate(lines, medicines)
        compliance_error = self.compliance.validate(request.credential, requirement.prescription_required)
        if compliance_error is None and requirement.prescription_required and self._verifies_staff:
            registration = request.credential.strip()
            holder = self._staff.find_by_registration(registration)
            compliance_error = self.compliance.verify_holder(registration, holder)
        if compliance_error is not None:
            return None, compliance_error, None

        stock_error = self.stock.check(lines)
        if stock_error is not None:
            return None, stock_error, None

        totals = self.pricing.price_lines(
            lines,
            discount_rate=request.discount_rate,
            payment_method=request.payment_method,
            tendered_amount=request.tendered_amount,
        )
        if not totals.covers(request.payment_method):
            return None, InsufficientPaymentError(required=totals.net_total, tendered=totals.tendered_amount), totals

        credential = (request.credential or "").strip() or None
        validated = _Validated(lines=lines, medicines=medicines, totals=totals, credential=credential)

        if request.customer is not None and not request.customer.is_empty:
            plan = self.identity.plan(request.customer.term, request.customer.name, request.customer.phone)
            if isinstance(plan, IdentityConflictError):
                return None, plan, totals
            validated.identity_plan = plan

        return validated, None, totals

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def _discard_created_customer(self, customer: Customer) -> bool:
        try:
            self._customers.delete_customer(customer.customer_id, customer.kind)
        except PersistenceError as e:
            logger.critical(
                "Failed to remove customer created for an uncommitted sale",
                extra={"customer_id": customer.customer_id, "error": str(e)},
            )
            return False
        return True

    def _abort_commit(
        self,
        reservation: StockReservation,
        step: str,
        error: PersistenceError,
        created_customer: Optional[Customer] = None,
    ) -> CommitFailedError:
        unreleased = self.stock.release(reservation)
        customer_removed = False
        if created_customer is not None:
            customer_removed = self._discard_created_customer(created_customer)
        created_customer_id = created_customer.customer_id if created_customer else None
        logger.critical(
            "Checkout commit failed after stock was decremented",
            extra={
                "step": step,
                "applied": list(reservation.applied),
                "unreleased": unreleased,
                "created_customer_id": created_customer_id,
                "customer_removed": customer_removed,
                "error": str(error),
            },
        )
        return CommitFailedError(
            f"Checkout failed while {step}: {error}",
            applied=list(reservation.applied),
            unreleased=unreleased,
            created_customer_id=created_customer_id,
            customer_removed=customer_removed,
        )

    def _build_transaction(self, request: CheckoutRequest, validated: _Validated, customer: Optional[Customer], committed_at: datetime) -> Transaction:
        totals = validated.totals
        return Transaction(
            transaction_id=str(uuid.uuid4()),
            receipt_number=generate_receipt_number(committed_at),
            transaction_type=TransactionType.SALE,
            lines=tuple(
                TransactionLine(
                    medicine_id=line.medicine_id,
                    medicine_name=line.medicine_name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line.line_total,
                )
                for line in validated.lines
            ),
            subtotal=totals.subtotal,
            discount_rate=totals.discount_rate,
            discount_amount=totals.discount_amount,
            tax_rate=totals.tax_rate,
            tax_amount=totals.tax,
            net_total=totals.net_total,
            tendered_amount=totals.tendered_amount,
            balance=totals.balance,
            payment_method=request.payment_method,
            staff_id=request.staff_id.strip(),
            committed_at=committed_at,
            credential=validated.credential,
            customer_id=customer.customer_id if customer else None,
            note=request.note,
        )

    def _commit(self, request: CheckoutRequest, validated: _Validated) -> Tuple[Optional[Receipt], Optional[PosError]]:
        outcome = self.stock.commit(validated.lines)
        if not isinstance(outcome, StockReservation):
            # Lost a race for the last units; decrements already released.
            return None, outcome
        reservation = outcome
        committed_at = self._clock()
        plan = validated.identity_plan

        # A new record must exist before the insert so the sale can point at it.
        resolution = IdentityResolution(status=ResolutionStatus.NOT_FOUND)
        if plan is not None and plan.status is ResolutionStatus.CREATED:
            try:
                resolution = self.identity.apply(plan, now=committed_at)
            except PersistenceError as e:
                raise self._abort_commit(reservation, "creating the customer", e) from e
        elif plan is not None and plan.status is ResolutionStatus.MATCHED:
            resolution = IdentityResolution(status=ResolutionStatus.MATCHED, customer=plan.customer)

        customer = resolution.customer
        transaction = self._build_transaction(request, validated, customer, committed_at)
        try:
            self._transactions.save_transaction(transaction)
        except PersistenceError as e:
            created = customer if resolution.created else None
            raise self._abort_commit(reservation, "saving the transaction", e, created_customer=created) from e

        # The sale is durable from here on; customer details and aggregates
        # are best effort.
        warnings = validated.warnings
        if plan is not None and plan.status is ResolutionStatus.MATCHED and not plan.patch.is_empty:
            try:
                customer = self.identity.apply(plan, now=committed_at).customer
            except PersistenceError as e:
                warnings.append("customer details not updated")
                logger.error(
                    "Failed to refresh customer details",
                    extra={"customer_id": customer.customer_id, "transaction_id": transaction.transaction_id, "error": str(e)},
                )

        if customer is not None:
            try:
                self._customers.record_purchase(customer.customer_id, customer.kind, transaction.net_total, committed_at)
            except PersistenceError as e:
                warnings.append("customer purchase total not updated")
                logger.error(
                    "Failed to update customer purchase total",
                    extra={"customer_id": customer.customer_id, "transaction_id": transaction.transaction_id, "error": str(e)},
                )
            else:
                customer = replace(
                    customer,
                    total_purchases=to_money(customer.total_purchases + transaction.net_total),
                    last_visit=committed_at,
                )

        if self._daily_sales is not None:
            try:
                self._daily_sales.record_daily_sale(committed_at.date(), transaction.signed_total, 1)
            except PersistenceError as e:
                warnings.append("daily sales summary not updated")
                logger.error(
                    "Failed to update daily sales summary",
                    extra={"transaction_id": transaction.transaction_id, "error": str(e)},
                )

        receipt = Receipt(
            transaction=transaction,
            customer=customer,
            customer_created=resolution.created,
            currency=self.currency,
            warnings=tuple(warnings),
        )
        return receipt, None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def checkout(self, request: CheckoutRequest) -> CheckoutResult:
        """
        Validate and commit a sale.

        Args:
            request: Lines, tender, staff, credential and optional customer input

        Returns:
            CheckoutResult; on rejection `error` holds the first failure and
            nothing was written

        Raises:
            CommitFailedError: If the store failed after stock was decremented.
                Decrements are released best-effort; any that could not be
                released are listed in `unreleased`. A customer created for
                the sale is deleted; `orphaned_customer_id` names it if that
                failed too.

        Example:
            result = service.checkout(CheckoutRequest.from_cart(cart, staff_id="EMP001"))
            if result.success:
                print(result.receipt.transaction.receipt_number)
        """
        machine = CheckoutStateMachine()
        machine.transition(CheckoutState.VALIDATING)

        validated, error, totals = self._validate(request)
        if error is not None:
            return self._reject(machine, error, totals)

        machine.transition(CheckoutState.COMMITTING)
        try:
            receipt, error = self._commit(request, validated)
        except CommitFailedError as e:
            machine.transition(CheckoutState.REJECTED, reason=e.code)
            raise
        if error is not None:
            return self._reject(machine, error, validated.totals)

        machine.transition(CheckoutState.PERSISTED)
        transaction = receipt.transaction
        logger.info(
            "Sale committed",
            extra={
                "transaction_id": transaction.transaction_id,
                "receipt_number": transaction.receipt_number,
                "net_total": str(transaction.net_total),
                "line_count": len(transaction.lines),
                "customer_id": transaction.customer_id,
                "staff_id": transaction.staff_id,
            },
        )
        return CheckoutResult(
            success=True,
            state=machine.state,
            history=tuple(machine.history),
            receipt=receipt,
            totals=validated.totals,
        )

    def _reject(self, machine: CheckoutStateMachine, error: PosError, totals: Optional[CartTotals]) -> CheckoutResult:
        machine.transition(CheckoutState.REJECTED, reason=error.code)
        logger.info(
            "Checkout rejected",
            extra={"code": error.code, "reason": str(error), "stage": machine.history[-2].value},
        )
        return CheckoutResult(
            success=False,
            state=machine.state,
            history=tuple(machine.history),
            error=error,
            totals=totals,
        )


__all__ = [
    "CheckoutRequest",
    "CheckoutResult",
    "CheckoutService",
    "CheckoutState",
    "CheckoutStateMachine",
    "CustomerInput",
    "IllegalTransitionError",
    "Receipt",
]
