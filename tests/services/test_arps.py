"""
Tests for the ARPS calculator.
Covers the author multipliers, per-record scores, category caps, grading
and the yearly aggregation against the database.
"""
import uuid
from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models import ClaimStatus, ClaimType, EmrInterest, EmrInterestStatus, IncentiveClaim
from backend.schemas.arps import ArpsGrade
from backend.services.arps import (
    ArpsService,
    claimant_role,
    combine_scores,
    get_author_multiplier,
    get_book_author_multiplier,
    grade_for,
    parse_emr_amount,
    score_book,
    score_conference,
    score_emr,
    score_patent,
    score_research_paper,
)

USER_ID = uuid.uuid4()


def make_claim(**overrides):
    fields = dict(
        id=uuid.uuid4(),
        claim_id="RDC/IC/PAPER/0001",
        claim_type=ClaimType.RESEARCH_PAPERS.value,
        status=ClaimStatus.ACCEPTED.value,
        user_id=USER_ID,
        authors=[],
        title="A study",
        publication_type="Original Research Article",
        journal_classification="Q1",
        author_type="First Author",
        author_position="1",
        is_scopus_indexed=None,
        book_application_type=None,
        current_status=None,
        patent_locale=None,
        patent_filed_in_pu_name=None,
        is_pu_sole_applicant=None,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def make_interest(**overrides):
    fields = dict(
        id=uuid.uuid4(),
        interest_id="RDC/EMR/INTEREST/00001",
        call_title="DST SERB Core Research Grant",
        user_id=USER_ID,
        co_pi_ids=[],
        status=EmrInterestStatus.SANCTIONED.value,
        sanction_date=date(2025, 4, 1),
        duration_amount="Duration: 3 Years, Amount: 20,00,000",
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestAuthorMultiplier:
    """Tests for the journal author multiplier."""

    @pytest.mark.parametrize("role", ["First Author", "Corresponding Author", "First & Corresponding Author"])
    def test_main_author_ignores_position(self, role):
        assert get_author_multiplier(role, "1") == 0.7
        assert get_author_multiplier(role, "9") == 0.7

    def test_co_author_within_first_five(self):
        assert get_author_multiplier("Co-Author", "3") == 0.3
        assert get_author_multiplier("Co-Author", "5") == 0.3

    def test_co_author_beyond_fifth(self):
        assert get_author_multiplier("Co-Author", "7") == 0.1

    def test_co_author_without_position(self):
        assert get_author_multiplier("Co-Author", None) == 0.3
        assert get_author_multiplier("Co-Author", "n/a") == 0.3

    def test_unknown_role_defaults(self):
        assert get_author_multiplier(None) == 0.3


class TestBookAuthorMultiplier:
    """Tests for the book and conference author multiplier."""

    def test_main_author(self):
        assert get_book_author_multiplier("First Author", "4") == 0.7

    def test_co_author_positions(self):
        assert get_book_author_multiplier("Co-Author", "2") == 0.3
        assert get_book_author_multiplier("Co-Author", "6") == 0.0
        assert get_book_author_multiplier("Co-Author", None) == 0.0


class TestRecordScores:
    """Tests for per-record publication and patent points."""

    def test_q1_original_article_first_author(self):
        claim = make_claim()
        assert score_research_paper(claim, "First Author") == pytest.approx(5.6)

    def test_review_article_points_depend_on_quartile(self):
        q2 = make_claim(publication_type="Review Article", journal_classification="Q2")
        q3 = make_claim(publication_type="Review Article", journal_classification="Q3")
        assert score_research_paper(q2, "First Author") == pytest.approx(8 * 0.7 * 0.7)
        assert score_research_paper(q3, "First Author") == pytest.approx(6 * 0.4 * 0.7)

    def test_unclassified_journal_scores_zero(self):
        claim = make_claim(journal_classification="UGC-CARE Group I")
        assert score_research_paper(claim, "First Author") == 0

    def test_book_requires_scopus(self):
        book = make_claim(claim_type=ClaimType.BOOKS.value, book_application_type="Book", is_scopus_indexed=True)
        assert score_book(book, "First Author") == pytest.approx(7.0)
        book.is_scopus_indexed = False
        assert score_book(book, "First Author") == 0

    def test_book_chapter_points(self):
        chapter = make_claim(
            claim_type=ClaimType.BOOKS.value,
            book_application_type="Book Chapter",
            is_scopus_indexed=True,
            author_type="Co-Author",
            author_position="2",
        )
        assert score_book(chapter, "Co-Author") == pytest.approx(1.5)

    def test_conference_requires_scopus_proceedings(self):
        conference = make_claim(
            claim_type=ClaimType.CONFERENCE.value,
            publication_type="Scopus Indexed Conference Proceedings",
        )
        assert score_conference(conference, "First Author") == pytest.approx(1.4)
        conference.publication_type = "Other"
        assert score_conference(conference, "First Author") == 0

    def test_granted_international_sole_applicant(self):
        patent = make_claim(
            claim_type=ClaimType.PATENTS.value,
            current_status="Granted",
            patent_locale="International",
            patent_filed_in_pu_name=True,
            is_pu_sole_applicant=True,
        )
        assert score_patent(patent) == 75

    def test_granted_national_joint_applicant(self):
        patent = make_claim(
            claim_type=ClaimType.PATENTS.value,
            current_status="Granted",
            patent_locale="National",
            patent_filed_in_pu_name=True,
            is_pu_sole_applicant=False,
        )
        assert score_patent(patent) == pytest.approx(40.0)

    def test_patent_outside_university_name(self):
        patent = make_claim(
            claim_type=ClaimType.PATENTS.value,
            current_status="Published",
            patent_filed_in_pu_name=False,
        )
        assert score_patent(patent) == 0


class TestClaimantRole:
    """Tests for locating the user among a claim's authors."""

    def test_owner_uses_declared_role(self):
        claim = make_claim(author_type="Corresponding Author")
        assert claimant_role(claim, USER_ID) == "Corresponding Author"

    def test_co_author_found_in_author_list(self):
        other = uuid.uuid4()
        claim = make_claim(user_id=other, authors=[{"uid": str(USER_ID), "role": "Co-Author"}])
        assert claimant_role(claim, USER_ID) == "Co-Author"

    def test_unrelated_user(self):
        claim = make_claim(user_id=uuid.uuid4(), authors=[])
        assert claimant_role(claim, USER_ID) is None


class TestEmrScore:
    """Tests for EMR amount parsing and brackets."""

    def test_parse_amount(self):
        assert parse_emr_amount("Duration: 3 Years, Amount: 25,00,000") == 2500000
        assert parse_emr_amount("3 years") is None
        assert parse_emr_amount(None) is None

    def test_lowest_bracket_inclusive(self):
        pi = make_interest()
        co_pi = make_interest(user_id=uuid.uuid4(), co_pi_ids=[str(USER_ID)])
        assert score_emr(pi, USER_ID) == 50
        assert score_emr(co_pi, USER_ID) == 15

    @pytest.mark.parametrize(
        "amount,pi_points",
        [
            ("19,99,999", 0),
            ("50,00,000", 50),
            ("50,00,001", 70),
            ("1,00,00,000", 70),
            ("1,50,00,000", 100),
        ],
    )
    def test_bracket_edges(self, amount, pi_points):
        interest = make_interest(duration_amount=f"Amount: {amount}")
        assert score_emr(interest, USER_ID) == pi_points


class TestGrade:
    """Tests for grade thresholds."""

    @pytest.mark.parametrize(
        "total,grade",
        [
            (80, ArpsGrade.SEE),
            (79.999, ArpsGrade.EE),
            (50, ArpsGrade.EE),
            (30, ArpsGrade.ME),
            (29.999, ArpsGrade.DME),
            (0, ArpsGrade.DME),
        ],
    )
    def test_boundaries(self, total, grade):
        assert grade_for(total) == grade


class TestCombineScores:
    """Tests for weighting, caps and filtering."""

    def test_publication_cap(self):
        claims = [make_claim() for _ in range(20)]
        result = combine_scores(USER_ID, 2025, claims, [])

        assert result.publications.raw == pytest.approx(112.0)
        assert result.publications.weighted == pytest.approx(56.0)
        assert result.publications.final == 50.0
        assert len(result.publications.contributing_items) == 20

    def test_patent_and_emr_weights(self):
        patent = make_claim(
            claim_type=ClaimType.PATENTS.value,
            current_status="Granted",
            patent_locale="International",
            patent_filed_in_pu_name=True,
            is_pu_sole_applicant=True,
        )
        result = combine_scores(USER_ID, 2025, [patent], [make_interest()])

        assert result.patents.final == pytest.approx(11.25)
        assert result.emr.final == pytest.approx(7.5)
        assert result.total_arps == pytest.approx(18.75)
        assert result.grade == ArpsGrade.DME

    def test_unapproved_claims_ignored(self):
        claims = [make_claim(status=ClaimStatus.PENDING_STAGE_1.value), make_claim(status=ClaimStatus.REJECTED.value)]
        result = combine_scores(USER_ID, 2025, claims, [])
        assert result.publications.raw == 0
        assert result.publications.contributing_items == []

    def test_emr_outside_year_ignored(self):
        interest = make_interest(sanction_date=date(2024, 12, 31))
        result = combine_scores(USER_ID, 2025, [], [interest])
        assert result.emr.raw == 0

    def test_total_is_sum_of_finals(self):
        claims = [make_claim() for _ in range(30)]
        patents = [
            make_claim(
                claim_type=ClaimType.PATENTS.value,
                current_status="Granted",
                patent_locale="International",
                patent_filed_in_pu_name=True,
                is_pu_sole_applicant=True,
            )
            for _ in range(2)
        ]
        interests = [make_interest(duration_amount="Amount: 2,00,00,000") for _ in range(2)]
        result = combine_scores(USER_ID, 2025, claims + patents, interests)

        assert result.patents.final == 15.0
        assert result.emr.final == 15.0
        assert result.total_arps == pytest.approx(80.0)
        assert result.grade == ArpsGrade.SEE


class TestArpsService:
    """Tests for the database-backed yearly calculation."""

    @pytest.mark.asyncio
    async def test_calculate_for_year(self, async_session: AsyncSession, faculty_user, admin_user):
        in_year = IncentiveClaim(
            claim_id="RDC/IC/PAPER/0001",
            claim_type=ClaimType.RESEARCH_PAPERS.value,
            status=ClaimStatus.ACCEPTED.value,
            user_id=faculty_user.id,
            user_name=faculty_user.name,
            user_email=faculty_user.email,
            submission_date=datetime(2025, 6, 1, tzinfo=timezone.utc),
            paper_title="Graphene sensors",
            publication_type="Original Research Article",
            journal_classification="Q1",
            author_type="First Author",
            author_position="1",
        )
        previous_year = IncentiveClaim(
            claim_id="RDC/IC/PAPER/0002",
            claim_type=ClaimType.RESEARCH_PAPERS.value,
            status=ClaimStatus.ACCEPTED.value,
            user_id=faculty_user.id,
            user_name=faculty_user.name,
            user_email=faculty_user.email,
            submission_date=datetime(2024, 6, 1, tzinfo=timezone.utc),
            paper_title="Older paper",
            publication_type="Original Research Article",
            journal_classification="Q1",
            author_type="First Author",
        )
        co_pi_project = EmrInterest(
            interest_id="RDC/EMR/INTEREST/00001",
            user_id=admin_user.id,
            user_name=admin_user.name,
            user_email=admin_user.email,
            co_pi_ids=[str(faculty_user.id)],
            status=EmrInterestStatus.SANCTIONED.value,
            sanction_date=date(2025, 3, 15),
            duration_amount="Duration: 2 Years, Amount: 60,00,000",
            is_bulk_uploaded=True,
        )
        async_session.add_all([in_year, previous_year, co_pi_project])
        await async_session.commit()

        result = await ArpsService(async_session).calculate(faculty_user.id, 2025)

        assert result.publications.raw == pytest.approx(5.6)
        assert [item.reference for item in result.publications.contributing_items] == ["RDC/IC/PAPER/0001"]
        assert result.emr.raw == 20
        assert result.emr.final == pytest.approx(3.0)
        assert result.total_arps == pytest.approx(2.8 + 3.0)

    @pytest.mark.asyncio
    async def test_year_boundary_is_local_midnight(self, async_session: AsyncSession, faculty_user):
        # 19:00 UTC on 31 December is already 1 January in India
        async_session.add(
            IncentiveClaim(
                claim_id="RDC/IC/PAPER/0003",
                claim_type=ClaimType.RESEARCH_PAPERS.value,
                status=ClaimStatus.ACCEPTED.value,
                user_id=faculty_user.id,
                user_name=faculty_user.name,
                user_email=faculty_user.email,
                submission_date=datetime(2024, 12, 31, 19, 0, tzinfo=timezone.utc),
                paper_title="New year paper",
                publication_type="Original Research Article",
                journal_classification="Q1",
                author_type="First Author",
                author_position="1",
            )
        )
        await async_session.commit()

        previous = await ArpsService(async_session).calculate(faculty_user.id, 2024)
        current = await ArpsService(async_session).calculate(faculty_user.id, 2025)

        assert previous.publications.contributing_items == []
        assert [item.reference for item in current.publications.contributing_items] == ["RDC/IC/PAPER/0003"]
