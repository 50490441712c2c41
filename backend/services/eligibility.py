"""
Financial disbursement eligibility for incentive claims.

Research paper co-authors listed beyond the fifth position may claim, but
receive no payment.
"""
from typing import Any, Optional

from backend.models import AuthorRole, ClaimType

MAX_PAID_CO_AUTHOR_POSITION = 5


def _position_number(value: Optional[str]) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 0


def _find_claimant(claim: Any) -> tuple[int, Optional[dict]]:
    """(1-based index, author entry) of the claimant, matched by email then uid."""
    authors = claim.authors or []
    email = (claim.user_email or "").lower()
    for index, author in enumerate(authors, start=1):
        if email and (author.get("email") or "").lower() == email:
            return index, author
    uid = str(claim.user_id) if claim.user_id else ""
    for index, author in enumerate(authors, start=1):
        if uid and str(author.get("uid") or "") == uid:
            return index, author
    return 0, None


def claimant_role(claim: Any) -> Optional[str]:
    if claim.author_type:
        return claim.author_type
    _, author = _find_claimant(claim)
    return author.get("role") if author else None


def claimant_position(claim: Any) -> int:
    explicit = _position_number(claim.author_position)
    if explicit > 0:
        return explicit
    index, _ = _find_claimant(claim)
    return index


def is_research_co_author_beyond_fifth(claim: Any) -> bool:
    if claim.claim_type != ClaimType.RESEARCH_PAPERS.value:
        return False
    if claimant_role(claim) != AuthorRole.CO_AUTHOR.value:
        return False
    return claimant_position(claim) > MAX_PAID_CO_AUTHOR_POSITION


def is_eligible_for_disbursement(claim: Any) -> bool:
    return not is_research_co_author_beyond_fifth(claim)
