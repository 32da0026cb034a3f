from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from .records import RevenueSplitMember


@dataclass(frozen=True)
class SplitShare:
    user_id: str
    name: str
    email: str
    weight: float
    percentage: float
    amount: float


def calculate_split(members: Sequence[RevenueSplitMember], total_expense_target: float) -> List[SplitShare]:
    """
    Share of total_expense_target owed by each member, proportional to weight.

    Weights are relative; an empty member list or a zero weight total yields
    no shares.
    """
    if not members:
        return []
    total_weight = sum(m.weight for m in members)
    if total_weight == 0:
        return []

    return [
        SplitShare(
            user_id=m.user_id,
            name=m.name,
            email=m.email,
            weight=m.weight,
            percentage=(m.weight / total_weight) * 100,
            amount=(total_expense_target * m.weight) / total_weight,
        )
        for m in members
    ]
