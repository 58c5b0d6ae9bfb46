"""Fair-share split and greedy settlement transfers between contributors."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol, Union


class PaidTotal(Protocol):
    person: str
    amount: int


@dataclass(frozen=True)
class Transfer:
    from_person: str
    to_person: str
    amount: int


@dataclass(frozen=True)
class PersonBalance:
    person: str
    paid: int
    fair_share: int
    balance: int


@dataclass(frozen=True)
class SettlementResult:
    fair_share: int
    balances: list[PersonBalance]
    transfers: list[Transfer]


def fair_share(grand_total: int, person_count: int) -> int:
    """``grand_total / person_count`` rounded half up; zero without persons."""
    if person_count <= 0:
        return 0
    share = Decimal(grand_total) / Decimal(person_count)
    return int(share.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _paid_pairs(
    person_totals: Union[Mapping[str, int], Iterable[PaidTotal]],
) -> list[tuple[str, int]]:
    if isinstance(person_totals, Mapping):
        return [(person, int(paid)) for person, paid in person_totals.items()]
    return [(total.person, int(total.amount)) for total in person_totals]


def settle(
    person_totals: Union[Mapping[str, int], Iterable[PaidTotal]],
) -> SettlementResult:
    """Compute balances against the fair share and the transfers that clear them.

    Creditors (balance > 0) are matched against debtors (balance < 0), largest
    first on both sides. Equal balances keep the order in which persons were
    supplied. Each step moves ``min(credit, debt)`` and advances a side only
    once its balance is exactly zero.

    Because the fair share is rounded, balances may not sum to zero. Whatever
    remains once one side runs out is left unsettled.
    """
    paid_pairs = _paid_pairs(person_totals)
    grand_total = sum(paid for _, paid in paid_pairs)
    share = fair_share(grand_total, len(paid_pairs))

    balances = [
        PersonBalance(person=person, paid=paid, fair_share=share, balance=paid - share)
        for person, paid in paid_pairs
    ]

    creditors = sorted(
        ([b.person, b.balance] for b in balances if b.balance > 0),
        key=lambda item: item[1],
        reverse=True,
    )
    debtors = sorted(
        ([b.person, b.balance] for b in balances if b.balance < 0),
        key=lambda item: item[1],
    )

    transfers: list[Transfer] = []
    i = j = 0
    while i < len(creditors) and j < len(debtors):
        creditor = creditors[i]
        debtor = debtors[j]
        amount = min(creditor[1], abs(debtor[1]))
        transfers.append(
            Transfer(from_person=debtor[0], to_person=creditor[0], amount=amount)
        )
        creditor[1] -= amount
        debtor[1] += amount
        if creditor[1] == 0:
            i += 1
        if debtor[1] == 0:
            j += 1

    return SettlementResult(fair_share=share, balances=balances, transfers=transfers)
