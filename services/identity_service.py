"""
Identity resolution for walk-in customers and patients.

Matches what the cashier types (a national ID or a phone number) against the
merged customer + patient pool, so a returning customer is recognised instead
of being registered again on every visit.

Search ranking (strict priority, best first):
    1. exact national ID
    2. exact phone
    3. partial national ID   (term of at least 6 characters)
    4. partial phone         (term of at least 6 characters)
    5. name substring        (unreliable: names repeat)
Ties break by: registered before walk-in, most recent visit first, then name.

Resolution is split into plan() and apply():
- plan() only reads. It decides whether the term matches an existing record
  (and which fields to refresh), whether a new record should be created, or
  whether the sale proceeds as an anonymous walk-in. Identifier collisions are
  reported here as IdentityConflictError and nothing is written.
- apply() performs the write. The checkout orchestrator defers it to the
  commit step so an abandoned checkout leaves no trace: a new record is
  created just before the transaction insert (and deleted again if that
  insert fails), details of a matched record are refreshed only after it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum, IntEnum
from typing import Dict, List, Optional, Tuple, Union

from domain.customer import (
    Customer,
    CustomerDraft,
    CustomerKind,
    CustomerPatch,
    IdentityField,
    normalize_national_id,
    normalize_phone,
)
from domain.errors import IdentityConflictError
from domain.time import utc_now
from repositories.ports import CustomerPool

logger = logging.getLogger(__name__)

# Local mobile/landline (0XXXXXXXXX) or international (+94XXXXXXXXX).
DEFAULT_PHONE_PATTERN = r"^(?:\+?94|0)\d{9}$"

# Rows fetched per partial/name query before ranking.
_FETCH_LIMIT = 50


class MatchPriority(IntEnum):
    EXACT_NATIONAL_ID = 1
    EXACT_PHONE = 2
    PARTIAL_NATIONAL_ID = 3
    PARTIAL_PHONE = 4
    NAME = 5

    @property
    def is_exact(self) -> bool:
        return self <= MatchPriority.EXACT_PHONE


@dataclass(frozen=True, slots=True)
class IdentityCandidate:
    customer: Customer
    priority: MatchPriority


class SearchOutcome(str, Enum):
    AUTO_MATCHED = "auto_matched"
    CANDIDATES = "candidates"
    NO_MATCH = "no_match"


@dataclass(frozen=True, slots=True)
class IdentitySearchResult:
    """
    Ranked search result.

    AUTO_MATCHED means the term was long enough and the best hit was an exact
    ID or phone match; callers may select it without showing the list (or
    still ask the cashier to confirm).
    """
    term: str
    outcome: SearchOutcome
    candidates: Tuple[IdentityCandidate, ...]

    @property
    def auto_matched(self) -> Optional[Customer]:
        if self.outcome is SearchOutcome.AUTO_MATCHED:
            return self.candidates[0].customer
        return None


class ResolutionStatus(str, Enum):
    MATCHED = "matched"
    CREATED = "created"
    NOT_FOUND = "not_found"


@dataclass(frozen=True, slots=True)
class IdentityPlan:
    """
    Outcome of plan(): what apply() will do.

    status MATCHED carries the existing customer and the fields to refresh;
    CREATED carries the draft to insert; NOT_FOUND carries neither.
    """
    status: ResolutionStatus
    customer: Optional[Customer] = None
    patch: CustomerPatch = CustomerPatch()
    draft: Optional[CustomerDraft] = None


@dataclass(frozen=True, slots=True)
class IdentityResolution:
    status: ResolutionStatus
    customer: Optional[Customer] = None
    updated_fields: Tuple[str, ...] = ()

    @property
    def created(self) -> bool:
        return self.status is ResolutionStatus.CREATED


def _rank_key(candidate: IdentityCandidate):
    customer = candidate.customer
    last_visit = customer.last_visit.timestamp() if customer.last_visit else float("-inf")
    return (candidate.priority, customer.walk_in, -last_visit, customer.name.casefold())


class IdentityResolver:
    def __init__(
        self,
        pool: CustomerPool,
        search_limit: int = 8,
        auto_match_min_length: int = 10,
        partial_match_min_length: int = 6,
        phone_pattern: str = DEFAULT_PHONE_PATTERN,
        default_kind: CustomerKind = CustomerKind.CUSTOMER,
    ):
        self._pool = pool
        self.search_limit = search_limit
        self.auto_match_min_length = auto_match_min_length
        self.partial_match_min_length = partial_match_min_length
        self._phone_re = re.compile(phone_pattern)
        self.default_kind = default_kind

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, term: str) -> IdentitySearchResult:
        """
        Rank known records against a free-text term.

        Args:
            term: National ID, phone number or (part of) a name

        Returns:
            IdentitySearchResult with at most `search_limit` candidates

        Example:
            result = resolver.search("0771234567")
            if result.auto_matched:
                customer = result.auto_matched
        """
        text = (term or "").strip()
        if not text:
            return IdentitySearchResult(term=text, outcome=SearchOutcome.NO_MATCH, candidates=())

        best: Dict[str, IdentityCandidate] = {}

        def offer(customer: Optional[Customer], priority: MatchPriority) -> None:
            if customer is None:
                return
            current = best.get(customer.customer_id)
            if current is None or priority < current.priority:
                best[customer.customer_id] = IdentityCandidate(customer=customer, priority=priority)

        national_id = normalize_national_id(text)
        phone = normalize_phone(text)

        offer(self._pool.find_by_exact_field(IdentityField.NATIONAL_ID, national_id), MatchPriority.EXACT_NATIONAL_ID)
        if phone:
            offer(self._pool.find_by_exact_field(IdentityField.PHONE, phone), MatchPriority.EXACT_PHONE)

        if len(text) >= self.partial_match_min_length:
            for customer in self._pool.find_by_partial_field(IdentityField.NATIONAL_ID, national_id, _FETCH_LIMIT):
                offer(customer, MatchPriority.PARTIAL_NATIONAL_ID)
            if phone:
                for customer in self._pool.find_by_partial_field(IdentityField.PHONE, phone, _FETCH_LIMIT):
                    offer(customer, MatchPriority.PARTIAL_PHONE)

        for customer in self._pool.find_by_name(text, _FETCH_LIMIT):
            offer(customer, MatchPriority.NAME)

        ranked = sorted(best.values(), key=_rank_key)[: self.search_limit]
        if not ranked:
            return IdentitySearchResult(term=text, outcome=SearchOutcome.NO_MATCH, candidates=())

        if len(text) >= self.auto_match_min_length and ranked[0].priority.is_exact:
            outcome = SearchOutcome.AUTO_MATCHED
        else:
            outcome = SearchOutcome.CANDIDATES
        return IdentitySearchResult(term=text, outcome=outcome, candidates=tuple(ranked))

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def looks_like_phone(self, value: str) -> bool:
        normalized = normalize_phone(value)
        return bool(normalized and self._phone_re.match(normalized))

    def _find_exact(self, term: str) -> Optional[Customer]:
        customer = self._pool.find_by_exact_field(IdentityField.NATIONAL_ID, normalize_national_id(term))
        if customer is not None:
            return customer
        phone = normalize_phone(term)
        if phone:
            return self._pool.find_by_exact_field(IdentityField.PHONE, phone)
        return None

    def _conflict(self, field: IdentityField, value: Optional[str], owner_id: Optional[str]) -> Optional[IdentityConflictError]:
        """Conflict if `value` is bound to a record other than `owner_id`."""
        if not value:
            return None
        holder = self._pool.find_by_exact_field(field, value)
        if holder is not None and holder.customer_id != owner_id:
            return IdentityConflictError(field=field.value, value=value, existing_customer_id=holder.customer_id)
        return None

    def plan(
        self,
        term: Optional[str],
        display_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Union[IdentityPlan, IdentityConflictError]:
        """
        Decide how a sale's customer input maps onto the pool, without writing.

        Args:
            term: What was typed in the ID box (national ID, or a phone number)
            display_name: Customer name as given at the counter
            phone: Contact phone, if captured separately

        Returns:
            IdentityPlan, or IdentityConflictError naming the clashing field
        """
        term = (term or "").strip() or None
        name = (display_name or "").strip() or None
        phone_value = normalize_phone(phone)

        # Which identifiers the input claims: a phone typed into the ID box
        # counts as the phone when no separate phone was given.
        national_id: Optional[str] = None
        if term:
            if self.looks_like_phone(term) and (phone_value is None or phone_value == normalize_phone(term)):
                phone_value = normalize_phone(term)
            else:
                national_id = normalize_national_id(term)

        # 1. Exact match on the term, then on the phone: most recent name/phone wins.
        existing = self._find_exact(term) if term else None
        if existing is None and phone_value:
            existing = self._pool.find_by_exact_field(IdentityField.PHONE, phone_value)
            if existing is not None and national_id and existing.national_id not in (None, national_id):
                # The phone belongs to someone registered under another ID.
                return IdentityConflictError(
                    field=IdentityField.PHONE.value,
                    value=phone_value,
                    existing_customer_id=existing.customer_id,
                )

        if existing is not None:
            name_update = name if name and name != existing.name else None
            phone_update = phone_value if phone_value and phone_value != existing.phone else None
            if phone_update:
                conflict = self._conflict(IdentityField.PHONE, phone_update, existing.customer_id)
                if conflict is not None:
                    return conflict
            id_update = None
            if national_id and existing.national_id is None and existing.phone != normalize_phone(term):
                id_update = national_id
            return IdentityPlan(
                status=ResolutionStatus.MATCHED,
                customer=existing,
                patch=CustomerPatch(name=name_update, national_id=id_update, phone=phone_update),
            )

        # 2. No match: create when there is enough to identify the customer.
        if (national_id or phone_value) and name:
            for field, value in ((IdentityField.NATIONAL_ID, national_id), (IdentityField.PHONE, phone_value)):
                conflict = self._conflict(field, value, owner_id=None)
                if conflict is not None:
                    return conflict
            return IdentityPlan(
                status=ResolutionStatus.CREATED,
                draft=CustomerDraft(
                    name=name,
                    national_id=national_id,
                    phone=phone_value,
                    kind=self.default_kind,
                ),
            )

        # 3. Anonymous walk-in with a name only: keep a minimal record.
        if name:
            return IdentityPlan(
                status=ResolutionStatus.CREATED,
                draft=CustomerDraft(name=name, kind=self.default_kind),
            )

        return IdentityPlan(status=ResolutionStatus.NOT_FOUND)

    def apply(self, plan: IdentityPlan, now: Optional[datetime] = None) -> IdentityResolution:
        """
        Perform the writes decided by plan().

        A record created by another terminal between plan() and apply() is
        adopted instead of duplicated. An identifier claimed by another record
        in the meantime is left off the patch.
        """
        now = now or utc_now()

        if plan.status is ResolutionStatus.MATCHED and plan.customer is not None:
            customer = plan.customer
            patch = plan.patch
            for field, value in ((IdentityField.NATIONAL_ID, patch.national_id), (IdentityField.PHONE, patch.phone)):
                conflict = self._conflict(field, value, customer.customer_id)
                if conflict is not None:
                    logger.warning(
                        "Identifier claimed concurrently; keeping the stored value",
                        extra={
                            "customer_id": customer.customer_id,
                            "identity_field": field.value,
                            "existing_customer_id": conflict.existing_customer_id,
                        },
                    )
                    patch = replace(patch, **{field.value: None})
            updated: List[str] = []
            if not patch.is_empty:
                self._pool.update_customer(customer.customer_id, customer.kind, patch)
                changes = {
                    name: value
                    for name, value in (("name", patch.name), ("national_id", patch.national_id), ("phone", patch.phone))
                    if value is not None
                }
                updated = list(changes)
                customer = replace(customer, **changes)
                logger.info(
                    "Customer details refreshed",
                    extra={"customer_id": customer.customer_id, "updated_fields": updated},
                )
            return IdentityResolution(
                status=ResolutionStatus.MATCHED,
                customer=customer,
                updated_fields=tuple(updated),
            )

        if plan.status is ResolutionStatus.CREATED and plan.draft is not None:
            draft = plan.draft
            if draft.national_id:
                existing = self._pool.find_by_exact_field(IdentityField.NATIONAL_ID, draft.national_id)
                if existing is not None:
                    logger.warning(
                        "Customer created concurrently; adopting existing record",
                        extra={"customer_id": existing.customer_id},
                    )
                    return IdentityResolution(status=ResolutionStatus.MATCHED, customer=existing)
            if draft.phone:
                holder = self._pool.find_by_exact_field(IdentityField.PHONE, draft.phone)
                if holder is not None:
                    if not draft.national_id:
                        logger.warning(
                            "Customer created concurrently; adopting existing record",
                            extra={"customer_id": holder.customer_id},
                        )
                        return IdentityResolution(status=ResolutionStatus.MATCHED, customer=holder)
                    # Phone was claimed meanwhile; keep it unique by not claiming it.
                    draft = replace(draft, phone=None)

            customer = self._pool.create_customer(draft, created_at=now)
            logger.info(
                "Customer created",
                extra={
                    "customer_id": customer.customer_id,
                    "identified": customer.is_identified,
                    "kind": customer.kind.value,
                },
            )
            return IdentityResolution(status=ResolutionStatus.CREATED, customer=customer)

        return IdentityResolution(status=ResolutionStatus.NOT_FOUND)

    def resolve_or_create(
        self,
        term: Optional[str],
        display_name: Optional[str] = None,
        phone: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Union[IdentityResolution, IdentityConflictError]:
        """
        Match the input to an existing record or create one.

        Returns:
            IdentityResolution (created=True for new records), or
            IdentityConflictError when the ID or phone belongs to someone else
        """
        plan = self.plan(term, display_name, phone)
        if isinstance(plan, IdentityConflictError):
            return plan
        return self.apply(plan, now=now)


__all__ = [
    "DEFAULT_PHONE_PATTERN",
    "IdentityCandidate",
    "IdentityPlan",
    "IdentityResolution",
    "IdentityResolver",
    "IdentitySearchResult",
    "MatchPriority",
    "ResolutionStatus",
    "SearchOutcome",
]
