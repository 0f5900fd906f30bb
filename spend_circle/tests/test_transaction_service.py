import pytest
from datetime import datetime, timezone
from decimal import Decimal

from spend_circle.models.debts import Debt
from spend_circle.models.settlements import Settlement
from spend_circle.models.transactions import Transaction
from spend_circle.schemas.category_schema import (
    CustomCategory, SystemCategory, category_color, resolve_category
)
from spend_circle.schemas.profile_schema import SplitDetails, SplitMember, UserProfile
from spend_circle.schemas.transaction_schema import ExpenseCreate, ExpenseOut
from spend_circle.services.balance_service import get_circle_balances
from spend_circle.services.errors import NotFoundError, PermissionDeniedError, ValidationError
from spend_circle.services.settlement_service import confirm_settlement, initiate_settlement
from spend_circle.services.transaction_service import (
    add_transaction, build_custom_split, build_equal_split, delete_transaction,
    get_circle_transactions, get_transaction, record_split_expense,
    remove_transaction_from_circle, validate_split_details
)


def expense(user_id, amount, circle_id=None, category="Food"):
    return ExpenseCreate(
        description="Groceries run",
        amount=Decimal(amount),
        category=category,
        date=datetime(2024, 5, 2, tzinfo=timezone.utc),
        circle_id=circle_id,
        user_id=user_id,
    )


@pytest.mark.unit
class TestBuildSplits:

    def test_equal_split_remainder_goes_to_payer(self, alice, bob, carol):
        split = build_equal_split(Decimal("100"), alice, [alice, bob, carol])
        shares = {m.uid: m.share for m in split.members}
        assert shares == {"alice": Decimal("33.34"), "bob": Decimal("33.33"), "carol": Decimal("33.33")}
        assert sum(shares.values()) == Decimal("100.00")
        assert split.payer().uid == "alice"
        assert split.type == "equally"

    def test_custom_split_must_add_up(self, alice, bob):
        with pytest.raises(ValidationError, match="sum of custom shares"):
            build_custom_split(Decimal("50"), alice, [alice, bob], {"alice": Decimal("10"), "bob": Decimal("20")})

    def test_custom_split(self, alice, bob):
        split = build_custom_split(Decimal("50"), alice, [alice, bob], {"alice": Decimal("10"), "bob": Decimal("40")})
        assert split.type == "unequally"
        assert [m.share for m in split.non_payers()] == [Decimal("40.00")]

    def test_payer_must_participate(self, alice, bob, carol):
        with pytest.raises(ValidationError):
            build_equal_split(Decimal("30"), carol, [alice, bob])

    def test_no_members(self, alice):
        with pytest.raises(ValidationError, match="at least one participant"):
            build_equal_split(Decimal("30"), alice, [])


@pytest.mark.unit
class TestValidateSplitDetails:

    def _split(self, alice, bob, **overrides):
        data = dict(
            total=Decimal("60"),
            payer_id="alice",
            members=[
                SplitMember(**alice.model_dump(), share=Decimal("30"), is_payer=True),
                SplitMember(**bob.model_dump(), share=Decimal("30")),
            ],
        )
        data.update(overrides)
        return SplitDetails(**data)

    def test_valid(self, alice, bob):
        validate_split_details(self._split(alice, bob), amount=Decimal("60"))

    def test_two_payers(self, alice, bob):
        members = [
            SplitMember(**alice.model_dump(), share=Decimal("30"), is_payer=True),
            SplitMember(**bob.model_dump(), share=Decimal("30"), is_payer=True),
        ]
        with pytest.raises(ValidationError, match="exactly one payer"):
            validate_split_details(self._split(alice, bob, members=members))

    def test_shares_exceed_total(self, alice, bob):
        members = [
            SplitMember(**alice.model_dump(), share=Decimal("0"), is_payer=True),
            SplitMember(**bob.model_dump(), share=Decimal("61")),
        ]
        with pytest.raises(ValidationError, match="exceed"):
            validate_split_details(self._split(alice, bob, members=members))

    def test_total_must_match_amount(self, alice, bob):
        with pytest.raises(ValidationError, match="must equal the expense amount"):
            validate_split_details(self._split(alice, bob), amount=Decimal("59"))

    def test_duplicate_member(self, alice, bob):
        members = [
            SplitMember(**alice.model_dump(), share=Decimal("30"), is_payer=True),
            SplitMember(**bob.model_dump(), share=Decimal("15")),
            SplitMember(**bob.model_dump(), share=Decimal("15")),
        ]
        with pytest.raises(ValidationError, match="more than once"):
            validate_split_details(self._split(alice, bob, members=members))


@pytest.mark.integration
class TestRecordSplitExpense:

    def test_creates_one_debt_per_non_payer(self, db, circle, alice, bob, carol, record_expense):
        transaction_id = record_expense(alice, [alice, bob, carol], "300", circle_id=circle.id)

        transaction = get_transaction(db, transaction_id)
        assert transaction.is_split
        assert transaction.amount == Decimal("300.00")

        debts = db.query(Debt).filter(Debt.transaction_id == transaction_id).all()
        assert sorted((d.debtor_id, d.creditor_id, d.amount) for d in debts) == [
            ("bob", "alice", Decimal("100.00")),
            ("carol", "alice", Decimal("100.00")),
        ]
        assert all(d.settlement_status == "unsettled" for d in debts)
        assert all(set(d.involved_uids) == {d.debtor_id, "alice"} for d in debts)

    def test_zero_share_creates_no_debt(self, db, alice, bob, carol, record_expense):
        transaction_id = record_expense(
            alice, [alice, bob, carol], "50",
            shares={"alice": Decimal("25"), "bob": Decimal("25"), "carol": Decimal("0")},
        )
        debts = db.query(Debt).filter(Debt.transaction_id == transaction_id).all()
        assert [d.debtor_id for d in debts] == ["bob"]

    def test_one_cent_share_creates_debt(self, db, alice, bob, record_expense):
        transaction_id = record_expense(
            alice, [alice, bob], "10", shares={"alice": Decimal("9.99"), "bob": Decimal("0.01")},
        )
        debts = db.query(Debt).filter(Debt.transaction_id == transaction_id).all()
        assert [d.amount for d in debts] == [Decimal("0.01")]

    def test_only_payer_can_record(self, db, alice, bob):
        split = build_equal_split(Decimal("20"), alice, [alice, bob])
        with pytest.raises(ValidationError, match="expense claim"):
            record_split_expense(db, expense("bob", "20"), split)
        assert db.query(Transaction).count() == 0

    def test_invalid_split_writes_nothing(self, db, alice, bob):
        split = build_equal_split(Decimal("20"), alice, [alice, bob])
        with pytest.raises(ValidationError):
            record_split_expense(db, expense("alice", "25"), split)
        assert db.query(Transaction).count() == 0
        assert db.query(Debt).count() == 0

    def test_members_must_belong_to_circle(self, db, circle, alice):
        outsider = UserProfile(uid="dave", display_name="Dave", email="dave@example.com")
        split = build_equal_split(Decimal("20"), alice, [alice, outsider])
        with pytest.raises(ValidationError, match="not a member"):
            record_split_expense(db, expense("alice", "20", circle_id=circle.id), split)

    def test_unknown_category_rejected(self):
        with pytest.raises(ValueError):
            expense("alice", "20", category="Yachts")

    def test_category_normalized(self):
        assert expense("alice", "20", category="  groceries ").category == "Groceries"


@pytest.mark.integration
class TestCircleTransactions:

    def test_remove_from_circle(self, db, circle, alice, bob, carol, record_expense, producer):
        transaction_id = record_expense(bob, [alice, bob], "40", circle_id=circle.id)

        transaction = remove_transaction_from_circle(db, transaction_id, alice)

        assert transaction.circle_id is None
        assert transaction.is_split is False
        assert transaction.split_details is None
        assert db.query(Debt).filter(Debt.transaction_id == transaction_id).count() == 0
        assert get_circle_transactions(db, circle.id) == []
        assert producer.types_for("bob") == ["circle-expense-removed-by-owner"]

    def test_remove_from_circle_requires_owner(self, db, circle, alice, bob, record_expense):
        transaction_id = record_expense(bob, [alice, bob], "40", circle_id=circle.id)
        with pytest.raises(PermissionDeniedError):
            remove_transaction_from_circle(db, transaction_id, bob)

    def test_remove_after_confirmed_repayment_clears_balances(self, db, circle, alice, bob, carol,
                                                              record_expense):
        transaction_id = record_expense(alice, [alice, bob, carol], "300", circle_id=circle.id)
        debt_id = db.query(Debt).filter(Debt.transaction_id == transaction_id, Debt.debtor_id == "bob").one().id
        initiate_settlement(db, debt_id, bob)
        confirm_settlement(db, debt_id, alice)

        remove_transaction_from_circle(db, transaction_id, alice)

        assert db.query(Settlement).filter(Settlement.debt_id == debt_id).count() == 0
        balances = {b.user.uid: b.net_balance for b in get_circle_balances(db, circle.id)}
        assert balances == {"alice": Decimal("0.00"), "bob": Decimal("0.00"), "carol": Decimal("0.00")}

    def test_delete_transaction_removes_debts_and_repayments(self, db, circle, alice, bob, record_expense):
        transaction_id = record_expense(alice, [alice, bob], "40", circle_id=circle.id)
        debt_id = db.query(Debt).filter(Debt.transaction_id == transaction_id).one().id
        initiate_settlement(db, debt_id, bob)
        confirm_settlement(db, debt_id, alice)

        delete_transaction(db, transaction_id, "alice")

        assert get_transaction(db, transaction_id) is None
        assert db.query(Debt).filter(Debt.transaction_id == transaction_id).count() == 0
        assert db.query(Settlement).filter(Settlement.debt_id == debt_id).count() == 0
        balances = {b.user.uid: b.net_balance for b in get_circle_balances(db, circle.id)}
        assert all(value == Decimal("0.00") for value in balances.values())

    def test_delete_someone_elses_transaction(self, db, alice, bob, record_expense):
        transaction_id = record_expense(alice, [alice, bob], "40")
        with pytest.raises(PermissionDeniedError):
            delete_transaction(db, transaction_id, "bob")
        with pytest.raises(NotFoundError):
            delete_transaction(db, "missing", "alice")

    def test_add_personal_transaction(self, db, alice):
        transaction = add_transaction(db, expense("alice", "12.5"))
        assert transaction.is_split is False
        assert transaction.amount == Decimal("12.50")


@pytest.mark.unit
class TestCategories:

    def test_custom_category_resolves(self):
        trip = CustomCategory(name="Road Trip", color="#123abc")
        category = resolve_category("road trip", [trip])
        assert category == trip
        assert category_color(category) == "#123abc"

    def test_default_and_system_colors(self):
        assert category_color(resolve_category("Food")) == "#ef4444"
        assert resolve_category("settlement") == SystemCategory.settlement
        assert category_color(SystemCategory.settlement) == "#6b7280"

    def test_custom_category_on_expense(self):
        expense = ExpenseCreate(
            description="Fuel",
            amount=Decimal("30"),
            category="road trip",
            date=datetime(2024, 5, 2, tzinfo=timezone.utc),
            custom_categories=[CustomCategory(name="Road Trip")],
        )
        assert expense.category == "Road Trip"
        assert "custom_categories" not in expense.model_dump()

    def test_expense_out_carries_category_color(self):
        common = dict(description="Rent", amount=Decimal("900"), date=datetime(2024, 5, 2, tzinfo=timezone.utc),
                      id="tx-1", user_id="alice", is_split=False,
                      created_at=datetime(2024, 5, 2, tzinfo=timezone.utc))
        assert ExpenseOut(category="Housing", **common).model_dump()["category_color"] == "#3b82f6"
        # Custom categories are not stored with the expense
        assert ExpenseOut(category="Road Trip", **common).category_color == "#6b7280"
