"""
Tests for `services/identity_service.py`.

Covers contract rules:
- Search ranking: exact national ID > exact phone > partial national ID >
  partial phone > name, with ties broken by registered-before-walk-in, then
  most recent visit.
- A long term whose best hit is exact is auto-matched.
- A national ID or phone is never bound to two records.
- plan() never writes; apply() adopts records created concurrently.
"""

from __future__ import annotations

from datetime import datetime, timezone

from domain.customer import Customer, CustomerDraft, IdentityField
from domain.errors import IdentityConflictError
from repositories.memory_store import InMemoryStore
from services.identity_service import (
    IdentityResolver,
    MatchPriority,
    ResolutionStatus,
    SearchOutcome,
)

NOW = datetime(2025, 3, 1, 10, 0, 0, tzinfo=timezone.utc)


def _ids(result):
    return [c.customer.customer_id for c in result.candidates]


def test_search_priority_order() -> None:
    pool = InMemoryStore(
        customers=[
            Customer(customer_id="E", name="0771234567 fan club"),
            Customer(customer_id="D", name="Dinesh", phone="00771234567"),
            Customer(customer_id="C", name="Chaminda", national_id="90771234567X"),
            Customer(customer_id="B", name="Bhagya", phone="0771234567"),
            Customer(customer_id="A", name="Asanka", national_id="0771234567"),
        ]
    )

    result = IdentityResolver(pool).search("0771234567")

    assert _ids(result) == ["A", "B", "C", "D", "E"]
    assert [c.priority for c in result.candidates] == [
        MatchPriority.EXACT_NATIONAL_ID,
        MatchPriority.EXACT_PHONE,
        MatchPriority.PARTIAL_NATIONAL_ID,
        MatchPriority.PARTIAL_PHONE,
        MatchPriority.NAME,
    ]
    assert result.outcome is SearchOutcome.AUTO_MATCHED
    assert result.auto_matched.customer_id == "A"


def test_exact_phone_ranks_first(identity) -> None:
    """The record owning the exact phone wins even though it is a walk-in."""

    result = identity.search("0712345678")

    assert _ids(result)[0] == "C002"
    assert result.candidates[0].priority is MatchPriority.EXACT_PHONE
    assert result.auto_matched.customer_id == "C002"


def test_name_ties_prefer_registered_then_recent(identity) -> None:
    result = identity.search("a")

    # C002 is the most recent visitor but a walk-in, so it sorts last.
    assert _ids(result) == ["C001", "P001", "C002"]
    assert result.outcome is SearchOutcome.CANDIDATES
    assert result.auto_matched is None


def test_partial_match_needs_minimum_length(identity) -> None:
    assert _ids(identity.search("0771234")) == ["C001"]
    assert identity.search("07712").outcome is SearchOutcome.NO_MATCH


def test_short_term_is_never_auto_matched(store) -> None:
    resolver = IdentityResolver(store, auto_match_min_length=13)

    result = resolver.search("0771234567")

    assert _ids(result)[0] == "C001"
    assert result.outcome is SearchOutcome.CANDIDATES


def test_search_limit_and_blank_term(store) -> None:
    resolver = IdentityResolver(store, search_limit=1)

    assert len(resolver.search("a").candidates) == 1
    assert resolver.search("   ").outcome is SearchOutcome.NO_MATCH


def test_search_matches_patients_too(identity) -> None:
    result = identity.search("199512341234")

    assert result.auto_matched.customer_id == "P001"


def test_plan_match_refreshes_name(identity, store) -> None:
    plan = identity.plan("199012345678", display_name="Nimal K. Perera")

    assert plan.status is ResolutionStatus.MATCHED
    assert plan.customer.customer_id == "C001"
    assert plan.patch.name == "Nimal K. Perera"
    # Nothing is written until apply().
    assert store.get_customer("C001").name == "Nimal Perera"

    resolution = identity.apply(plan, now=NOW)

    assert resolution.updated_fields == ("name",)
    assert resolution.customer.name == "Nimal K. Perera"
    assert store.get_customer("C001").name == "Nimal K. Perera"


def test_plan_match_by_phone_in_id_box(identity) -> None:
    plan = identity.plan("071-234 5678")

    assert plan.status is ResolutionStatus.MATCHED
    assert plan.customer.customer_id == "C002"
    assert plan.patch.is_empty


def test_plan_fills_missing_national_id(store) -> None:
    store.create_customer(CustomerDraft(name="Ravi", phone="0761112223"), created_at=NOW)
    resolver = IdentityResolver(store)

    plan = resolver.plan("200112345678", display_name="Ravi", phone="0761112223")

    assert plan.status is ResolutionStatus.MATCHED
    assert plan.patch.national_id == "200112345678"
    resolution = resolver.apply(plan, now=NOW)
    assert store.get_customer(resolution.customer.customer_id).national_id == "200112345678"


def test_phone_owned_by_other_id_conflicts(identity, store) -> None:
    before = len(store.all_customers())

    outcome = identity.resolve_or_create("200011112222", display_name="New Person", phone="0771234567", now=NOW)

    assert isinstance(outcome, IdentityConflictError)
    assert outcome.field == "phone"
    assert outcome.existing_customer_id == "C001"
    assert len(store.all_customers()) == before


def test_changing_phone_to_taken_number_conflicts(identity) -> None:
    outcome = identity.plan("199012345678", display_name="Nimal Perera", phone="0779876543")

    assert isinstance(outcome, IdentityConflictError)
    assert outcome.existing_customer_id == "P001"


def test_new_customer_is_created(identity, store) -> None:
    resolution = identity.resolve_or_create("200011112222", display_name="Sunil Dias", phone="0701112223", now=NOW)

    assert resolution.created
    customer = store.get_customer(resolution.customer.customer_id)
    assert customer.national_id == "200011112222"
    assert customer.phone == "0701112223"
    assert customer.created_at == NOW


def test_phone_term_creates_customer_with_phone(identity) -> None:
    plan = identity.plan("0705556667", display_name="Saman")

    assert plan.status is ResolutionStatus.CREATED
    assert plan.draft.phone == "0705556667"
    assert plan.draft.national_id is None


def test_name_only_creates_walk_in(identity, store) -> None:
    resolution = identity.resolve_or_create(None, display_name="Counter Guest", now=NOW)

    assert resolution.created
    customer = store.get_customer(resolution.customer.customer_id)
    assert customer.walk_in
    assert not customer.is_identified


def test_no_input_is_not_found(identity) -> None:
    assert identity.plan(None).status is ResolutionStatus.NOT_FOUND
    assert identity.resolve_or_create("", display_name="  ").status is ResolutionStatus.NOT_FOUND


def test_apply_adopts_concurrently_created_record(identity, store) -> None:
    plan = identity.plan("200011112222", display_name="Sunil Dias")
    assert plan.status is ResolutionStatus.CREATED

    # Another terminal registers the same person first.
    other = store.create_customer(
        CustomerDraft(name="Sunil Dias", national_id="200011112222"),
        created_at=datetime(2025, 3, 1, 9, 59, tzinfo=timezone.utc),
    )
    before = len(store.all_customers())

    resolution = identity.apply(plan, now=NOW)

    assert resolution.status is ResolutionStatus.MATCHED
    assert resolution.customer.customer_id == other.customer_id
    assert len(store.all_customers()) == before


def test_apply_skips_phone_claimed_since_plan(identity, store) -> None:
    plan = identity.plan("199012345678", display_name="Nimal K. Perera", phone="0701112223")
    assert plan.patch.phone == "0701112223"

    # Another terminal registers the number before this sale commits.
    other = store.create_customer(
        CustomerDraft(name="Sunil Dias", phone="0701112223"),
        created_at=datetime(2025, 3, 1, 9, 59, tzinfo=timezone.utc),
    )

    resolution = identity.apply(plan, now=NOW)

    assert resolution.updated_fields == ("name",)
    assert resolution.customer.phone == "0771234567"
    stored = store.get_customer("C001")
    assert stored.name == "Nimal K. Perera"
    assert stored.phone == "0771234567"
    assert store.find_by_exact_field(IdentityField.PHONE, "0701112223") == other
