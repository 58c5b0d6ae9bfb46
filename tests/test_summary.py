from datetime import date

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from services import CategoryPersonTotal, LedgerService, PersonTotal
from settlement import Transfer


def _row(parent: str, day: str, amount: str, flow: str = "Expense", memo: str = ""):
    return {
        "ParentCategory": parent,
        "Date": day,
        "FlowDirection": flow,
        "PaymentMethod": "Card",
        "Amount": amount,
        "Location": "",
        "Memo": memo,
    }


def _service_with(rows) -> LedgerService:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    session = Session(engine)
    service = LedgerService(session)
    service.ingest(rows)
    return service


def test_two_person_period_settles_with_one_transfer() -> None:
    service = _service_with(
        [
            _row("Food/Alice", "2024-03-01", "3000"),
            _row("Food/Bob", "2024-03-05", "1000"),
        ]
    )

    summary, settlement = service.settle_period("2024-03")

    assert summary.grand_total == 4000
    assert summary.person_count == 2
    assert settlement.fair_share == 2000
    assert {b.person: b.balance for b in settlement.balances} == {
        "Alice": 1000,
        "Bob": -1000,
    }
    assert settlement.transfers == [
        Transfer(from_person="Bob", to_person="Alice", amount=1000)
    ]


def test_summary_totals_are_consistent() -> None:
    service = _service_with(
        [
            _row("Food/Bob", "2024-03-03", "1200"),
            _row("Food/Alice", "2024-03-01", "800"),
            _row("Rent/Alice", "2024-03-01", "60000"),
            _row("Daily/Carol", "2024-03-09", "450"),
            _row("Food/Bob", "2024-03-02", "300"),
        ]
    )

    summary = service.summarize("2024-03")

    assert summary.person_totals == [
        PersonTotal("Alice", 60800),
        PersonTotal("Bob", 1500),
        PersonTotal("Carol", 450),
    ]
    assert summary.category_person_matrix == [
        CategoryPersonTotal("Daily", "Carol", 450),
        CategoryPersonTotal("Food", "Alice", 800),
        CategoryPersonTotal("Food", "Bob", 1500),
        CategoryPersonTotal("Rent", "Alice", 60000),
    ]
    assert summary.categories == ["Daily", "Food", "Rent"]
    assert summary.persons == ["Alice", "Bob", "Carol"]
    assert summary.grand_total == sum(t.amount for t in summary.person_totals)
    assert summary.grand_total == sum(c.amount for c in summary.category_person_matrix)
    assert summary.grand_total == sum(c.amount for c in summary.category_totals)


def test_details_are_grouped_and_ordered_by_date() -> None:
    service = _service_with(
        [
            _row("Food/Bob", "2024-03-20", "100", memo="late"),
            _row("Food/Bob", "2024-03-02", "200", memo="early"),
            _row("Food/Bob", "2024-03-10", "300", memo="middle"),
            _row("Food/Alice", "2024-03-05", "400"),
        ]
    )

    details = service.summarize("2024-03").details

    assert [(d.category, d.person) for d in details] == [
        ("Food", "Alice"),
        ("Food", "Bob"),
    ]
    bob = details[1]
    assert [r.memo for r in bob.records] == ["early", "middle", "late"]
    assert bob.records[0].record_date == date(2024, 3, 2)


def test_income_is_stored_but_not_summed() -> None:
    service = _service_with(
        [
            _row("Food/Alice", "2024-03-01", "1000"),
            _row("Salary/Bob", "2024-03-25", "250000", flow="Income"),
        ]
    )

    summary = service.summarize("2024-03")

    assert summary.grand_total == 1000
    assert summary.persons == ["Alice"]
    assert service.available_periods()[0].record_count == 2


def test_empty_period_has_no_persons_and_no_transfers() -> None:
    service = _service_with([_row("Food/Alice", "2024-03-01", "1000")])

    summary, settlement = service.settle_period("2023-12")

    assert summary.grand_total == 0
    assert summary.person_count == 0
    assert summary.details == []
    assert settlement.fair_share == 0
    assert settlement.transfers == []


def test_summary_is_repeatable() -> None:
    service = _service_with(
        [
            _row("Food/Alice", "2024-03-01", "100"),
            _row("Food/Bob", "2024-03-01", "50"),
            _row("Food/Carol", "2024-03-01", "0"),
        ]
    )

    first = service.settle_period("2024-03")
    second = service.settle_period("2024-03")

    assert first == second
    assert first[1].fair_share == 50
    assert first[1].transfers == [Transfer(from_person="Carol", to_person="Alice", amount=50)]
