"""
Incentive amount calculators, one per claim type.

All calculators take a claim-like record (ORM row or any object with the
same attributes) and return whole rupees, rounded half up.
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from backend.core.exceptions import ValidationError
from backend.models import AuthorRole, ClaimType

SPECIAL_POLICY_FACULTIES = frozenset(
    {
        "Faculty of Applied Sciences",
        "Faculty of Medicine",
        "Faculty of Homoeopathy",
        "Faculty of Ayurved",
        "Faculty of Nursing",
        "Faculty of Pharmacy",
        "Faculty of Physiotherapy",
        "Faculty of Public Health",
        "Faculty of Engineering & Technology",
    }
)

JOURNAL_BASE_AMOUNTS = {
    "Nature/Science/Lancet": 50000,
    "Top 1% Journals": 25000,
    "Q1": 15000,
    "Q2": 10000,
    "Q3": 6000,
    "Q4": 4000,
}
UGC_GROUP_ONE = "UGC listed journals (Journals found qualified through UGC-CARE Protocol, Group-I)"
LETTER_TO_EDITOR = "Letter to the Editor/Editorial"
LETTER_TOTAL_AMOUNT = 2500
PUBLICATION_TYPE_FACTORS = {
    "Case Reports/Short Surveys": 0.9,
    "Review Articles": 0.8,
}

APC_QUARTILE_AMOUNTS = {"Q1": 40000, "Q2": 30000, "Q3": 20000, "Q4": 15000}

ONLINE_CONFERENCE_LIMITS = {
    # presentation order: (share of registration fee, cap)
    "First": (0.75, 15000),
    "Second": (0.60, 10000),
    "Third": (0.50, 7000),
    "Additional": (0.30, 2000),
}
INTERNATIONAL_VENUE_CAPS = {
    "Indian Subcontinent": 30000,
    "South Korea, Japan, Australia and Middle East": 45000,
    "Europe": 60000,
    "African/South American/North American": 75000,
    "Other": 75000,
}
HOME_ORGANIZER = "parul university"

MEMBERSHIP_SHARE, MEMBERSHIP_CAP = 0.5, 10000


def round_rupees(amount: float) -> int:
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_special_faculty(faculty: Optional[str]) -> bool:
    return faculty in SPECIAL_POLICY_FACULTIES


def _internal_authors(claim: Any) -> list[dict]:
    return [a for a in (claim.authors or []) if not a.get("is_external")]


# =============================================================================
# Research papers
# =============================================================================


def paper_base_amount(claim: Any, faculty: Optional[str]) -> int:
    """Base incentive by journal classification, with extra tiers outside the special-policy faculties."""
    if claim.journal_classification in JOURNAL_BASE_AMOUNTS:
        return JOURNAL_BASE_AMOUNTS[claim.journal_classification]
    if is_special_faculty(faculty):
        return 0
    if claim.index_type == "esci":
        return 2000
    if claim.wos_type in ("Q3", "Q4"):
        return 3000
    if claim.publication_type == UGC_GROUP_ONE:
        return 1000
    return 0


def adjust_for_publication_type(base: float, publication_type: Optional[str]) -> float:
    if publication_type == LETTER_TO_EDITOR:
        return LETTER_TOTAL_AMOUNT
    return base * PUBLICATION_TYPE_FACTORS.get(publication_type or "", 1.0)


def calculate_research_paper_incentive(claim: Any, faculty: Optional[str]) -> int:
    """
    Share of a paper's incentive that goes to the claimant.

    Between internal authors: a sole main author takes everything; main
    authors and co-authors split 70/30 between the two groups; internal
    co-authors without a main author share 80%; several main authors
    share equally. Letters to the editor are split across all authors.

    Raises:
        ValidationError: If the claimant is not in the author list.
    """
    if claim.is_pu_name_in_publication is False:
        return 0

    authors = claim.authors or []
    email = (claim.user_email or "").lower()
    claimant = next((a for a in authors if (a.get("email") or "").lower() == email), None)
    if claimant is None:
        raise ValidationError("Claimant not found in the author list.")

    total = adjust_for_publication_type(paper_base_amount(claim, faculty), claim.publication_type)

    if claim.publication_type == LETTER_TO_EDITOR:
        return round_rupees(total / (len(authors) or 1))

    internal = _internal_authors(claim)
    if not internal:
        return 0

    main_roles = {role.value for role in AuthorRole if role.is_main}
    main = [a for a in internal if a.get("role") in main_roles]
    co = [a for a in internal if a.get("role") == AuthorRole.CO_AUTHOR.value]

    amount = 0.0
    if len(main) == 1 and not co and len(internal) == 1:
        amount = total
    elif main and co:
        if claimant.get("role") == AuthorRole.CO_AUTHOR.value:
            amount = total * 0.3 / len(co)
        else:
            amount = total * 0.7 / len(main)
    elif len(co) == 1 and not main and len(internal) == 1:
        amount = total * 0.8
    elif len(co) > 1 and not main:
        amount = total * 0.8 / len(co)
    elif main and not co:
        amount = total / len(main)

    return round_rupees(amount)


# =============================================================================
# Books and chapters
# =============================================================================


def book_base_amount(
    is_chapter: bool,
    is_scopus: bool,
    publisher_type: Optional[str],
    pages: int,
) -> int:
    if is_chapter:
        if is_scopus:
            return 6000
        tiers = {"National": (2500, 1500, 500), "International": (3000, 2000, 1000)}.get(publisher_type or "")
        if tiers is None:
            return 0
        if pages > 20:
            return tiers[0]
        if pages >= 10:
            return tiers[1]
        if pages >= 5:
            return tiers[2]
        return 0

    if is_scopus:
        return 18000
    if publisher_type == "National":
        if pages > 350:
            return 3000
        if pages >= 200:
            return 2500
        if pages >= 100:
            return 2000
        return 1000
    if publisher_type == "International":
        if pages > 350:
            return 6000
        if pages >= 200:
            return 3500
        return 2000
    return 0


def calculate_book_incentive(claim: Any) -> int:
    """
    Book or chapter incentive per internal author.

    Several chapters in one book earn base, base/2, base/3, ... capped at
    what the whole book would earn.
    """
    is_chapter = claim.book_application_type == "Book Chapter"
    is_scopus = claim.is_scopus_indexed is True
    pages = (claim.book_chapter_pages if is_chapter else claim.book_total_pages) or 0

    base = float(book_base_amount(is_chapter, is_scopus, claim.publisher_type, pages))
    if claim.author_role == "Editor":
        base /= 2

    total = base
    chapters = claim.chapters_in_same_book or 0
    if is_chapter and chapters > 1:
        full_book = book_base_amount(False, is_scopus, claim.publisher_type, 999)
        running = 0.0
        for k in range(1, chapters + 1):
            running += base / k
            if running >= full_book:
                running = full_book
                break
        total = min(running, full_book)

    internal_count = len(_internal_authors(claim))
    if internal_count > 1:
        total /= internal_count
    return round_rupees(total)


# =============================================================================
# APC, conferences, memberships
# =============================================================================


def calculate_apc_incentive(claim: Any, faculty: Optional[str]) -> int:
    internal_count = len(_internal_authors(claim))
    if internal_count == 0:
        return 0

    indexing = set(claim.apc_indexing_status or [])
    total = 0
    if indexing & {"Scopus", "Web of science"}:
        total = APC_QUARTILE_AMOUNTS.get(claim.apc_q_rating or "", 0)
    elif not is_special_faculty(faculty):
        if "UGC-CARE Group-I" in indexing:
            total = 5000
        elif "Web of Science indexed journals (ESCI)" in indexing:
            total = 8000

    return round_rupees(total / internal_count) if total else 0


def conference_reimbursement_cap(claim: Any) -> float:
    registration_fee = claim.registration_fee or 0

    if HOME_ORGANIZER in (claim.organizer_name or "").lower():
        return registration_fee * 0.75

    if claim.conference_mode == "Online":
        share, cap = ONLINE_CONFERENCE_LIMITS.get(claim.online_presentation_order or "", (0, 0))
        return min(registration_fee * share, cap)

    if claim.conference_mode == "Offline":
        if claim.conference_type == "International":
            if claim.conference_venue == "India":
                return 20000 if claim.presentation_type == "Oral" else 15000
            return INTERNATIONAL_VENUE_CAPS.get(claim.conference_venue or "", 0)
        if claim.conference_type == "National":
            return 12000 if claim.presentation_type == "Oral" else 10000
        if claim.conference_type == "Regional/State":
            return 7500
    return 0


def calculate_conference_incentive(claim: Any) -> int:
    expenses = (claim.registration_fee or 0) + (claim.travel_fare or 0)
    return round_rupees(min(expenses, conference_reimbursement_cap(claim)))


def calculate_membership_incentive(claim: Any) -> int:
    paid = claim.membership_amount_paid or 0
    if paid <= 0:
        return 0
    return round_rupees(min(paid * MEMBERSHIP_SHARE, MEMBERSHIP_CAP))


def calculate_incentive(claim: Any, faculty: Optional[str]) -> Optional[int]:
    """Dispatch on claim type; None for types assessed manually (patents, general)."""
    claim_type = ClaimType(claim.claim_type)
    if claim_type == ClaimType.RESEARCH_PAPERS:
        return calculate_research_paper_incentive(claim, faculty)
    if claim_type == ClaimType.BOOKS:
        return calculate_book_incentive(claim)
    if claim_type == ClaimType.APC:
        return calculate_apc_incentive(claim, faculty)
    if claim_type == ClaimType.CONFERENCE:
        return calculate_conference_incentive(claim)
    if claim_type == ClaimType.MEMBERSHIP:
        return calculate_membership_incentive(claim)
    return None
