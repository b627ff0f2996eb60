"""Company grouping over the co-op collection"""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from dochub.models.entities import Coop, CoopStatus

SEASONS = ("Spring", "Summer", "Fall")
SEASON_RANK = {season.lower(): rank for rank, season in enumerate(SEASONS)}

_SEMESTER_RE = re.compile(r"^\s*([A-Za-z]+)\s+(\d{4})\s*$")


@dataclass
class CompanyGroup:
    company: str
    coops: List[Coop] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.coops)


@dataclass
class CoopSummary:
    companies: int
    total_coops: int
    current_coops: int


def parse_semester(semester: str) -> Optional[Tuple[int, int]]:
    """(year, season rank) for "Season Year" strings, None if unparseable"""
    match = _SEMESTER_RE.match(semester or "")
    if not match:
        return None
    rank = SEASON_RANK.get(match.group(1).lower())
    if rank is None:
        return None
    return int(match.group(2)), rank


def sort_company_members(coops: Sequence[Coop]) -> List[Coop]:
    """Current co-ops first, then newest semester first.

    Unparseable semesters follow the parseable ones in descending lexical order.
    """
    parsed = [c for c in coops if parse_semester(c.semester) is not None]
    unparsed = [c for c in coops if parse_semester(c.semester) is None]
    parsed.sort(key=lambda c: parse_semester(c.semester), reverse=True)
    unparsed.sort(key=lambda c: c.semester, reverse=True)
    # Stable sort keeps the semester order within each status
    return sorted(parsed + unparsed, key=lambda c: c.status != CoopStatus.CURRENT)


def group_coops_by_company(coops: Sequence[Coop]) -> List[CompanyGroup]:
    """Group by exact company name; largest groups first, ties in collection order"""
    groups: Dict[str, CompanyGroup] = {}
    for coop in coops:
        groups.setdefault(coop.company, CompanyGroup(company=coop.company)).coops.append(coop)

    for group in groups.values():
        group.coops = sort_company_members(group.coops)
    return sorted(groups.values(), key=lambda g: g.count, reverse=True)


def coop_summary(groups: Sequence[CompanyGroup]) -> CoopSummary:
    return CoopSummary(
        companies=len(groups),
        total_coops=sum(g.count for g in groups),
        current_coops=sum(1 for g in groups for c in g.coops if c.status == CoopStatus.CURRENT),
    )


def filter_company_groups(groups: Sequence[CompanyGroup], query: str) -> List[CompanyGroup]:
    """Groups whose company, or any member's name or position, contains ``query``"""
    query = query.strip().lower()
    if not query:
        return list(groups)
    return [
        g
        for g in groups
        if query in g.company.lower()
        or any(query in c.brother_name.lower() or query in c.position.lower() for c in g.coops)
    ]


def semester_options(today: Optional[date] = None, years_back: int = 3) -> List[str]:
    """Semester choices from next year back to ``years_back`` years ago, newest first"""
    year = (today or date.today()).year
    return [
        f"{season} {y}"
        for y in range(year + 1, year - years_back - 1, -1)
        for season in reversed(SEASONS)
    ]
