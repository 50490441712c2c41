"""
Tests for the incentive amount calculators.
"""
from types import SimpleNamespace

import pytest

from backend.core.exceptions import ValidationError
from backend.models import ClaimType
from backend.services.incentive_calculation import (
    LETTER_TO_EDITOR,
    book_base_amount,
    calculate_apc_incentive,
    calculate_book_incentive,
    calculate_conference_incentive,
    calculate_incentive,
    calculate_membership_incentive,
    calculate_research_paper_incentive,
    conference_reimbursement_cap,
    paper_base_amount,
    round_rupees,
)

CLAIMANT = "claimant@university.edu"
GENERAL_FACULTY = "Faculty of Management Studies"
SPECIAL_FACULTY = "Faculty of Medicine"


def author(role: str, email: str = CLAIMANT, is_external: bool = False) -> dict:
    return {"name": email.split("@")[0], "email": email, "role": role, "is_external": is_external}


def make_claim(**overrides):
    fields = dict(
        claim_type=ClaimType.RESEARCH_PAPERS.value,
        user_email=CLAIMANT,
        authors=[author("First Author")],
        journal_classification="Q1",
        publication_type="Original Research Article",
        index_type=None,
        wos_type=None,
        is_pu_name_in_publication=True,
        book_application_type=None,
        is_scopus_indexed=None,
        publisher_type=None,
        author_role=None,
        book_total_pages=None,
        book_chapter_pages=None,
        chapters_in_same_book=None,
        apc_indexing_status=[],
        apc_q_rating=None,
        registration_fee=None,
        travel_fare=None,
        organizer_name=None,
        conference_mode=None,
        conference_type=None,
        conference_venue=None,
        presentation_type=None,
        online_presentation_order=None,
        membership_amount_paid=None,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestRounding:
    @pytest.mark.parametrize("amount,expected", [(2.5, 3), (3.5, 4), (1666.6667, 1667), (0.49, 0), (10.0, 10)])
    def test_rounds_half_up(self, amount, expected):
        assert round_rupees(amount) == expected


class TestResearchPapers:
    """Tests for research paper shares."""

    def test_sole_main_author_takes_everything(self):
        assert calculate_research_paper_incentive(make_claim(), GENERAL_FACULTY) == 15000

    def test_main_and_co_authors_split_seventy_thirty(self):
        authors = [
            author("First Author"),
            author("Co-Author", "b@university.edu"),
            author("Co-Author", "c@university.edu"),
        ]
        main = make_claim(authors=authors, journal_classification="Q2")
        assert calculate_research_paper_incentive(main, GENERAL_FACULTY) == 7000

        co = make_claim(
            authors=[author("First Author", "a@university.edu"), author("Co-Author"), authors[2]],
            journal_classification="Q2",
        )
        assert calculate_research_paper_incentive(co, GENERAL_FACULTY) == 1500

    def test_single_internal_co_author_gets_eighty_percent(self):
        claim = make_claim(
            authors=[author("First Author", "ext@other.org", is_external=True), author("Co-Author")],
        )
        assert calculate_research_paper_incentive(claim, GENERAL_FACULTY) == 12000

    def test_several_co_authors_share_eighty_percent(self):
        claim = make_claim(
            authors=[author("Co-Author"), author("Co-Author", "b@university.edu"), author("Co-Author", "c@university.edu")],
            journal_classification="Q3",
        )
        assert calculate_research_paper_incentive(claim, GENERAL_FACULTY) == 1600

    def test_several_main_authors_share_equally(self):
        claim = make_claim(
            authors=[author("First Author"), author("Corresponding Author", "b@university.edu")],
            journal_classification="Q4",
        )
        assert calculate_research_paper_incentive(claim, GENERAL_FACULTY) == 2000

    def test_review_and_case_report_factors(self):
        review = make_claim(publication_type="Review Articles")
        case_report = make_claim(publication_type="Case Reports/Short Surveys")
        assert calculate_research_paper_incentive(review, GENERAL_FACULTY) == 12000
        assert calculate_research_paper_incentive(case_report, GENERAL_FACULTY) == 13500

    def test_letter_to_editor_split_over_all_authors(self):
        claim = make_claim(
            publication_type=LETTER_TO_EDITOR,
            authors=[
                author("First Author"),
                author("Co-Author", "ext@other.org", is_external=True),
                author("Co-Author", "b@university.edu"),
            ],
        )
        assert calculate_research_paper_incentive(claim, GENERAL_FACULTY) == 833

    def test_claimant_must_be_listed(self):
        claim = make_claim(authors=[author("First Author", "someone@else.edu")])
        with pytest.raises(ValidationError):
            calculate_research_paper_incentive(claim, GENERAL_FACULTY)

    def test_no_university_name_means_nothing(self):
        claim = make_claim(is_pu_name_in_publication=False)
        assert calculate_research_paper_incentive(claim, GENERAL_FACULTY) == 0

    def test_extra_tiers_only_outside_special_faculties(self):
        esci = make_claim(journal_classification=None, index_type="esci")
        assert paper_base_amount(esci, GENERAL_FACULTY) == 2000
        assert paper_base_amount(esci, SPECIAL_FACULTY) == 0

        wos = make_claim(journal_classification=None, wos_type="Q3")
        assert paper_base_amount(wos, GENERAL_FACULTY) == 3000


class TestBooks:
    """Tests for books and chapters."""

    def test_scopus_book(self):
        claim = make_claim(claim_type=ClaimType.BOOKS.value, book_application_type="Book", is_scopus_indexed=True)
        assert calculate_book_incentive(claim) == 18000

    def test_editor_gets_half(self):
        claim = make_claim(
            claim_type=ClaimType.BOOKS.value,
            book_application_type="Book",
            is_scopus_indexed=True,
            author_role="Editor",
        )
        assert calculate_book_incentive(claim) == 9000

    @pytest.mark.parametrize(
        "publisher,pages,expected",
        [
            ("National", 400, 3000),
            ("National", 250, 2500),
            ("National", 150, 2000),
            ("National", 50, 1000),
            ("International", 400, 6000),
            ("International", 200, 3500),
            ("International", 120, 2000),
        ],
    )
    def test_book_page_tiers(self, publisher, pages, expected):
        assert book_base_amount(False, False, publisher, pages) == expected

    @pytest.mark.parametrize("pages,expected", [(25, 3000), (15, 2000), (6, 1000), (3, 0)])
    def test_international_chapter_tiers(self, pages, expected):
        assert book_base_amount(True, False, "International", pages) == expected

    def test_chapters_in_same_book_use_harmonic_sum(self):
        claim = make_claim(
            claim_type=ClaimType.BOOKS.value,
            book_application_type="Book Chapter",
            is_scopus_indexed=True,
            chapters_in_same_book=3,
        )
        # 6000 + 3000 + 2000
        assert calculate_book_incentive(claim) == 11000

    def test_chapters_capped_at_full_book(self):
        claim = make_claim(
            claim_type=ClaimType.BOOKS.value,
            book_application_type="Book Chapter",
            is_scopus_indexed=True,
            chapters_in_same_book=50,
        )
        assert calculate_book_incentive(claim) == 18000

    def test_divided_among_internal_authors(self):
        claim = make_claim(
            claim_type=ClaimType.BOOKS.value,
            book_application_type="Book",
            is_scopus_indexed=True,
            authors=[author("First Author"), author("Co-Author", "b@university.edu"), author("Co-Author", "x@o.org", True)],
        )
        assert calculate_book_incentive(claim) == 9000


class TestApc:
    def test_indexed_quartile(self):
        claim = make_claim(claim_type=ClaimType.APC.value, apc_indexing_status=["Scopus"], apc_q_rating="Q2")
        assert calculate_apc_incentive(claim, SPECIAL_FACULTY) == 30000

    def test_split_among_internal_authors(self):
        claim = make_claim(
            claim_type=ClaimType.APC.value,
            apc_indexing_status=["Web of science"],
            apc_q_rating="Q1",
            authors=[author("First Author"), author("Co-Author", "b@university.edu")],
        )
        assert calculate_apc_incentive(claim, GENERAL_FACULTY) == 20000

    def test_ugc_only_outside_special_faculties(self):
        claim = make_claim(claim_type=ClaimType.APC.value, apc_indexing_status=["UGC-CARE Group-I"])
        assert calculate_apc_incentive(claim, GENERAL_FACULTY) == 5000
        assert calculate_apc_incentive(claim, SPECIAL_FACULTY) == 0

    def test_esci(self):
        claim = make_claim(
            claim_type=ClaimType.APC.value,
            apc_indexing_status=["Web of Science indexed journals (ESCI)"],
        )
        assert calculate_apc_incentive(claim, GENERAL_FACULTY) == 8000


class TestConferences:
    def test_home_organizer_covers_three_quarters_of_fee(self):
        claim = make_claim(registration_fee=4000, travel_fare=0, organizer_name="Parul University, Vadodara")
        assert conference_reimbursement_cap(claim) == 3000
        assert calculate_conference_incentive(claim) == 3000

    def test_online_first_presentation(self):
        claim = make_claim(registration_fee=30000, conference_mode="Online", online_presentation_order="First")
        assert calculate_conference_incentive(claim) == 15000

    def test_offline_international_abroad(self):
        claim = make_claim(
            registration_fee=40000,
            travel_fare=50000,
            conference_mode="Offline",
            conference_type="International",
            conference_venue="Europe",
        )
        assert calculate_conference_incentive(claim) == 60000

    def test_expenses_below_cap(self):
        claim = make_claim(
            registration_fee=3000,
            travel_fare=2000,
            conference_mode="Offline",
            conference_type="National",
            presentation_type="Oral",
        )
        assert calculate_conference_incentive(claim) == 5000


class TestMembershipAndDispatch:
    def test_membership_half_capped(self):
        assert calculate_membership_incentive(make_claim(membership_amount_paid=5000)) == 2500
        assert calculate_membership_incentive(make_claim(membership_amount_paid=50000)) == 10000
        assert calculate_membership_incentive(make_claim(membership_amount_paid=0)) == 0

    @pytest.mark.parametrize("claim_type", [ClaimType.PATENTS, ClaimType.GENERAL])
    def test_manual_types_have_no_amount(self, claim_type):
        assert calculate_incentive(make_claim(claim_type=claim_type.value), GENERAL_FACULTY) is None

    def test_dispatch_to_membership(self):
        claim = make_claim(claim_type=ClaimType.MEMBERSHIP.value, membership_amount_paid=3000)
        assert calculate_incentive(claim, GENERAL_FACULTY) == 1500
