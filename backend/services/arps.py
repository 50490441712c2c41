"""
Annual Research Performance Score (ARPS) calculator.

A faculty member's yearly score combines three categories:

- Publications: research papers, Scopus-indexed books/chapters and Scopus
  conference proceedings, each scored by points x author multiplier.
- Patents: points by grant status times a sole/joint applicant multiplier.
- EMR: flat award by sanctioned amount bracket, PI or co-PI.

Each category is weighted and capped, the finals are summed, and the total
is mapped to a grade. The scoring functions are pure; ``ArpsService`` only
fetches the records.
"""
import re
from dataclasses import dataclass, field
from datetime import date, timezone
from typing import Any, Optional, Sequence
from uuid import UUID

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models import (
    APPROVED_CLAIM_STATUSES,
    AuthorRole,
    ClaimType,
    EmrInterest,
    EmrInterestStatus,
    IncentiveClaim,
)
from backend.schemas.arps import ArpsCategoryScore, ArpsContribution, ArpsGrade, ArpsResult
from backend.utils import LocalCalendar

logger = structlog.get_logger(__name__)

# Weight and cap per category
PUBLICATION_WEIGHT, PUBLICATION_CAP = 0.50, 50.0
PATENT_WEIGHT, PATENT_CAP = 0.15, 15.0
EMR_WEIGHT, EMR_CAP = 0.15, 15.0

GRADE_THRESHOLDS: tuple[tuple[float, ArpsGrade], ...] = (
    (80.0, ArpsGrade.SEE),
    (50.0, ArpsGrade.EE),
    (30.0, ArpsGrade.ME),
)

JOURNAL_POINTS = {
    "Original Research Article": 8,
    "Short Communication": 6,
    "Case Report / Case Study": 7,
}
QUARTILE_MULTIPLIERS = {"Q1": 1.0, "Q2": 0.7, "Q3": 0.4, "Q4": 0.3}

SCOPUS_CONFERENCE_PROCEEDINGS = "Scopus Indexed Conference Proceedings"

LAKH = 100_000
CRORE = 100 * LAKH
# (lower bound, inclusive lower?, upper bound, PI points, co-PI points)
EMR_BRACKETS = (
    (20 * LAKH, True, 50 * LAKH, 50, 15),
    (50 * LAKH, False, CRORE, 70, 20),
    (CRORE, False, None, 100, 25),
)

EMR_AMOUNT_PATTERN = re.compile(r"Amount:\s*([\d,]+)")

_MAIN_AUTHOR_ROLES = {role.value for role in AuthorRole if role.is_main}


def _parse_position(author_position: Optional[Any]) -> int:
    try:
        return int(str(author_position).strip())
    except (TypeError, ValueError):
        return 0


# =============================================================================
# Multipliers
# =============================================================================


def get_author_multiplier(author_type: Optional[str], author_position: Optional[Any] = None) -> float:
    """
    Author multiplier for journal papers.

    Main authors get 0.7 whatever their position. Co-authors get 0.3 up to
    the fifth position and 0.1 beyond it; an unknown position counts as 0.3.
    """
    if author_type in _MAIN_AUTHOR_ROLES:
        return 0.7
    position = _parse_position(author_position)
    if author_type == AuthorRole.CO_AUTHOR.value and position > 5:
        return 0.1
    return 0.3


def get_book_author_multiplier(author_type: Optional[str], author_position: Optional[Any] = None) -> float:
    """Author multiplier for books, chapters and conference proceedings."""
    if author_type in _MAIN_AUTHOR_ROLES:
        return 0.7
    position = _parse_position(author_position)
    if author_type == AuthorRole.CO_AUTHOR.value and 0 < position <= 5:
        return 0.3
    return 0.0


def get_journal_points(publication_type: Optional[str], journal_classification: Optional[str]) -> tuple[int, float]:
    """Return (points, quartile multiplier) for a journal paper."""
    if publication_type == "Review Article":
        points = 8 if journal_classification in ("Q1", "Q2") else 6
    else:
        points = JOURNAL_POINTS.get(publication_type or "", 0)
    return points, QUARTILE_MULTIPLIERS.get(journal_classification or "", 0.0)


# =============================================================================
# Per-record scores
# =============================================================================


def claimant_role(claim: Any, user_id: UUID) -> Optional[str]:
    """
    The user's author role on a claim, or None if they are not an author.

    The claim's own ``author_type`` is the claimant's declared role; for
    co-author claims filed by someone else the role comes from the author list.
    """
    uid = str(user_id)
    entry = next((a for a in (claim.authors or []) if str(a.get("uid") or "") == uid), None)
    if str(claim.user_id) == uid and claim.author_type:
        return claim.author_type
    if entry is not None:
        return entry.get("role")
    return None


def score_research_paper(claim: Any, role: Optional[str]) -> float:
    points, quartile = get_journal_points(claim.publication_type, claim.journal_classification)
    return points * quartile * get_author_multiplier(role, claim.author_position)


def score_book(claim: Any, role: Optional[str]) -> float:
    if not claim.is_scopus_indexed:
        return 0.0
    base = 10 if claim.book_application_type == "Book" else 5
    return base * get_book_author_multiplier(role, claim.author_position)


def score_conference(claim: Any, role: Optional[str]) -> float:
    if claim.publication_type != SCOPUS_CONFERENCE_PROCEEDINGS:
        return 0.0
    return 2 * get_book_author_multiplier(role, claim.author_position)


def score_patent(claim: Any) -> float:
    """Patent points: Published 10, Granted 75 (international) or 50, times the applicant multiplier."""
    if claim.current_status == "Published":
        base = 10
    elif claim.current_status == "Granted":
        base = 75 if claim.patent_locale == "International" else 50
    else:
        base = 0

    if not claim.patent_filed_in_pu_name:
        multiplier = 0.0
    else:
        multiplier = 1.0 if claim.is_pu_sole_applicant else 0.8
    return base * multiplier


def parse_emr_amount(duration_amount: Optional[str]) -> Optional[int]:
    """Extract the rupee amount from text like 'Duration: 3 Years, Amount: 25,00,000'."""
    if not duration_amount:
        return None
    match = EMR_AMOUNT_PATTERN.search(duration_amount)
    if not match:
        return None
    return int(match.group(1).replace(",", ""))


def score_emr_amount(amount: int, is_pi: bool) -> int:
    for lower, inclusive, upper, pi_points, co_pi_points in EMR_BRACKETS:
        above_lower = amount >= lower if inclusive else amount > lower
        below_upper = upper is None or amount <= upper
        if above_lower and below_upper:
            return pi_points if is_pi else co_pi_points
    return 0


def score_emr(interest: Any, user_id: UUID) -> int:
    amount = parse_emr_amount(interest.duration_amount)
    if amount is None:
        return 0
    return score_emr_amount(amount, str(interest.user_id) == str(user_id))


def grade_for(total: float) -> ArpsGrade:
    for threshold, grade in GRADE_THRESHOLDS:
        if total >= threshold:
            return grade
    return ArpsGrade.DME


# =============================================================================
# Category aggregation
# =============================================================================


@dataclass
class CategoryTally:
    raw: float = 0.0
    items: list[ArpsContribution] = field(default_factory=list)

    def add(self, id: UUID, reference: Optional[str], title: str, score: float) -> None:
        if score > 0:
            self.raw += score
            self.items.append(ArpsContribution(id=id, reference=reference, title=title, score=score))

    def finalize(self, weight: float, cap: float) -> ArpsCategoryScore:
        weighted = self.raw * weight
        return ArpsCategoryScore(
            raw=self.raw,
            weighted=weighted,
            final=min(weighted, cap),
            contributing_items=self.items,
        )


def _is_approved(claim: Any) -> bool:
    return claim.status in {status.value for status in APPROVED_CLAIM_STATUSES}


def publication_tally(claims: Sequence[Any], user_id: UUID) -> CategoryTally:
    tally = CategoryTally()
    for claim in claims:
        if not _is_approved(claim):
            continue
        role = claimant_role(claim, user_id)
        if role is None:
            continue

        if claim.claim_type == ClaimType.RESEARCH_PAPERS.value:
            score = score_research_paper(claim, role)
        elif claim.claim_type == ClaimType.BOOKS.value:
            score = score_book(claim, role)
        elif claim.claim_type == ClaimType.CONFERENCE.value:
            score = score_conference(claim, role)
        else:
            continue
        tally.add(claim.id, claim.claim_id, claim.title, score)
    return tally


def patent_tally(claims: Sequence[Any]) -> CategoryTally:
    tally = CategoryTally()
    for claim in claims:
        if _is_approved(claim) and claim.claim_type == ClaimType.PATENTS.value:
            tally.add(claim.id, claim.claim_id, claim.title, score_patent(claim))
    return tally


def emr_tally(interests: Sequence[Any], user_id: UUID, year: int) -> CategoryTally:
    tally = CategoryTally()
    for interest in interests:
        if interest.status != EmrInterestStatus.SANCTIONED.value:
            continue
        if interest.sanction_date is None or interest.sanction_date.year != year:
            continue
        tally.add(interest.id, interest.interest_id, interest.call_title or "EMR Project", score_emr(interest, user_id))
    return tally


def combine_scores(
    user_id: UUID,
    year: int,
    claims: Sequence[Any],
    interests: Sequence[Any],
) -> ArpsResult:
    """Score already-fetched records for one user and year."""
    publications = publication_tally(claims, user_id).finalize(PUBLICATION_WEIGHT, PUBLICATION_CAP)
    patents = patent_tally(claims).finalize(PATENT_WEIGHT, PATENT_CAP)
    emr = emr_tally(interests, user_id, year).finalize(EMR_WEIGHT, EMR_CAP)

    total = publications.final + patents.final + emr.final
    return ArpsResult(
        user_id=user_id,
        year=year,
        publications=publications,
        patents=patents,
        emr=emr,
        total_arps=total,
        grade=grade_for(total),
    )


# =============================================================================
# Service
# =============================================================================


class ArpsService:
    """Fetches a user's claims and EMR projects for a year and scores them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _claims_for_year(self, user_id: UUID, year: int) -> list[IncentiveClaim]:
        # Calendar year boundaries fall at local midnight
        start = LocalCalendar.at_local_time(date(year, 1, 1), 0).astimezone(timezone.utc)
        end = LocalCalendar.at_local_time(date(year + 1, 1, 1), 0).astimezone(timezone.utc)
        result = await self.db.execute(
            select(IncentiveClaim).where(
                and_(
                    IncentiveClaim.user_id == user_id,
                    IncentiveClaim.submission_date >= start,
                    IncentiveClaim.submission_date < end,
                )
            )
        )
        return list(result.scalars().all())

    async def _sanctioned_projects(self, user_id: UUID, year: int) -> list[EmrInterest]:
        """Sanctioned EMR projects where the user is PI or co-PI."""
        result = await self.db.execute(
            select(EmrInterest).where(
                and_(
                    EmrInterest.status == EmrInterestStatus.SANCTIONED.value,
                    EmrInterest.sanction_date >= date(year, 1, 1),
                    EmrInterest.sanction_date <= date(year, 12, 31),
                )
            )
        )
        uid = str(user_id)
        return [
            interest
            for interest in result.scalars().all()
            if str(interest.user_id) == uid or uid in (interest.co_pi_ids or [])
        ]

    async def calculate(self, user_id: UUID, year: int) -> ArpsResult:
        claims = await self._claims_for_year(user_id, year)
        interests = await self._sanctioned_projects(user_id, year)
        result = combine_scores(user_id, year, claims, interests)

        logger.info(
            "arps_calculated",
            user_id=str(user_id),
            year=year,
            total=result.total_arps,
            grade=result.grade.value,
        )
        return result
