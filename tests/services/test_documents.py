"""
Tests for Word and Excel document generation.
"""
import base64
import io
from datetime import date, datetime, timezone

import openpyxl
import pytest
from docx import Document

from backend.core.exceptions import DocumentGenerationError, ValidationError
from backend.models import ClaimStatus, ClaimType, IncentiveClaim, ProjectStatus
from backend.schemas.projects import GrantPhase, ProjectSubmission
from backend.services.documents import (
    DocumentService,
    format_value,
    render_docx,
    render_text,
    render_xlsx,
)
from backend.services.projects import ProjectService


def build_docx(*paragraphs, table_cells=(), header=None, split=None) -> bytes:
    """A Word file with the given paragraphs, one table row, a header and optionally split runs."""
    document = Document()
    for text in paragraphs:
        document.add_paragraph(text)
    if split:
        paragraph = document.add_paragraph()
        for piece in split:
            paragraph.add_run(piece)
    if table_cells:
        table = document.add_table(rows=1, cols=len(table_cells))
        for cell, text in zip(table.rows[0].cells, table_cells):
            cell.text = text
    if header:
        document.sections[0].header.paragraphs[0].text = header
    output = io.BytesIO()
    document.save(output)
    return output.getvalue()


def docx_text(data: bytes) -> dict:
    document = Document(io.BytesIO(data))
    return {
        "body": [p.text for p in document.paragraphs],
        "cells": [cell.text for table in document.tables for row in table.rows for cell in row.cells],
        "header": [p.text for p in document.sections[0].header.paragraphs],
    }


def build_xlsx(cells: dict) -> bytes:
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for ref, value in cells.items():
        sheet[ref] = value
    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()


def load_sheet(data: bytes):
    return openpyxl.load_workbook(io.BytesIO(data)).worksheets[0]


def decode(result) -> bytes:
    return base64.b64decode(result.file_data)


class TestFormatValue:
    @pytest.mark.parametrize(
        "value,policy,expected",
        [
            (None, "na", "N/A"),
            ("", "na", "N/A"),
            (None, "empty", ""),
            (True, "na", "Yes"),
            (False, "na", "No"),
            (15000.0, "na", "15000"),
            (2500.5, "na", "2500.5"),
            (date(2026, 3, 9), "na", "09/03/2026"),
            (["A. Patel", "R. Shah"], "na", "A. Patel, R. Shah"),
            ("Finance", "empty", "Finance"),
        ],
    )
    def test_format_value(self, value, policy, expected):
        assert format_value(value, policy) == expected

    def test_datetime_uses_local_date(self):
        # 20:00 UTC is already the next day in Vadodara
        assert format_value(datetime(2026, 3, 9, 20, 0, tzinfo=timezone.utc)) == "10/03/2026"


class TestRenderText:
    def test_substitutes_all_placeholders(self):
        assert render_text("{a} and {b}", {"a": "x", "b": None}) == "x and N/A"

    def test_missing_value_follows_null_policy(self):
        assert render_text("Hello {nobody}", {}) == "Hello N/A"
        assert render_text("Hello {nobody}", {}, "empty") == "Hello "

    def test_stray_brace_message(self):
        with pytest.raises(DocumentGenerationError) as exc_info:
            render_text("Hello {nobody", {})
        assert exc_info.value.message == "Failed to render the document template."

    def test_stray_brace_raises(self):
        with pytest.raises(DocumentGenerationError):
            render_text("Total {amount", {"amount": 1})


class TestRenderDocx:
    def test_fills_body_table_and_header(self):
        template = build_docx(
            "Project: {project_title}",
            table_cells=("{pi_name}", "{department}"),
            header="{faculty}",
        )
        values = {
            "project_title": "Rural Credit",
            "pi_name": "Dr. Asha Patel",
            "department": None,
            "faculty": "Faculty of Management Studies",
        }

        text = docx_text(render_docx(template, values))

        assert "Project: Rural Credit" in text["body"]
        assert text["cells"] == ["Dr. Asha Patel", "N/A"]
        assert text["header"] == ["Faculty of Management Studies"]

    def test_placeholder_split_across_runs(self):
        template = build_docx(split=("Dear {pi_", "name}, your grant is ", "{grant_amount}", "."))

        text = docx_text(render_docx(template, {"pi_name": "Dr. Patel", "grant_amount": "1,00,000"}))

        assert "Dear Dr. Patel, your grant is 1,00,000." in text["body"]

    def test_empty_policy(self):
        template = build_docx("Remarks: {remarks}.")

        text = docx_text(render_docx(template, {"remarks": None}, "empty"))

        assert "Remarks: ." in text["body"]

    def test_missing_value_renders_na(self):
        text = docx_text(render_docx(build_docx("Ref: {mystery}"), {}))

        assert text["body"] == ["Ref: N/A"]

    def test_stray_brace_raises(self):
        with pytest.raises(DocumentGenerationError):
            render_docx(build_docx("Ref: {mystery"), {})

    def test_unreadable_template_raises(self):
        with pytest.raises(DocumentGenerationError):
            render_docx(b"not a word file", {})


class TestRenderXlsx:
    def test_whole_cell_keeps_numbers(self):
        template = build_xlsx({"A1": "{total_amount}", "A2": "Ref: {reference_number}"})

        sheet = load_sheet(render_xlsx(template, {"total_amount": 25000.0, "reference_number": "RDC/PAY/7"}))

        assert sheet["A1"].value == 25000
        assert sheet["A2"].value == "Ref: RDC/PAY/7"

    def test_unused_payment_rows_are_blank(self):
        template = build_xlsx({"A1": "{beneficiary_1}", "A2": "{beneficiary_2}", "B2": "Row {amount_2}."})

        sheet = load_sheet(render_xlsx(template, {"beneficiary_1": "Asha Patel"}))

        assert sheet["A1"].value == "Asha Patel"
        assert sheet["A2"].value in (None, "")
        assert sheet["B2"].value == "Row ."

    def test_missing_value_is_blank(self):
        sheet = load_sheet(render_xlsx(build_xlsx({"A1": "{unknown_field}", "A2": "Note: {unknown_field}"}), {}))

        assert sheet["A1"].value in (None, "")
        assert sheet["A2"].value == "Note: "


class TestProjectDocuments:
    """Tests for the IMR recommendation and office noting forms."""

    async def _project(self, session, user, email_service, **overrides):
        data = ProjectSubmission(title="Rural Credit & Savings", status="Submitted", **overrides)
        return await ProjectService(session, email=email_service).save_submission(user, data)

    @pytest.mark.asyncio
    async def test_recommendation_form(self, async_session, faculty_user, email_service, templates_dir):
        (templates_dir / "IMR_RECOMMENDATION_TEMPLATE.docx").write_bytes(
            build_docx("{project_title}", "{pi_name}", "{grant_amount}", "{evaluator_comments}")
        )
        project = await self._project(async_session, faculty_user, email_service)

        result = await DocumentService(async_session).generate_recommendation_form(project.id)

        assert result.file_name == "Recommendation_Rural_Credit_Savings.docx"
        body = docx_text(decode(result))["body"]
        assert body == ["Rural Credit & Savings", "Dr. Asha Patel", "N/A", "No evaluations submitted yet."]

    @pytest.mark.asyncio
    async def test_missing_template(self, async_session, faculty_user, email_service, templates_dir):
        project = await self._project(async_session, faculty_user, email_service)

        with pytest.raises(DocumentGenerationError) as exc_info:
            await DocumentService(async_session).generate_recommendation_form(project.id)

        assert exc_info.value.message == "Recommendation form template not found."

    @pytest.mark.asyncio
    async def test_office_noting_saves_grant_for_recommended(
        self, async_session, faculty_user, co_investigator, email_service, templates_dir
    ):
        (templates_dir / "IMR_OFFICE_NOTING_TEMPLATE.docx").write_bytes(
            build_docx(
                "{pi_name} ({pi_designation})",
                "{co_pi1}|{co_pi2}",
                "{copi_department}",
                "{phase1_amount}+{phase2_amount}={total_amount}",
                "{phase3_amount}",
                "{project_duration}",
            )
        )
        project = await self._project(
            async_session,
            faculty_user,
            email_service,
            co_pi_details=[{"uid": co_investigator.id, "name": co_investigator.name}],
        )
        await ProjectService(async_session, email=email_service).update_status(project.id, ProjectStatus.RECOMMENDED)
        phases = [GrantPhase(name="Phase 1", amount=60000), GrantPhase(name="Phase 2", amount=40000)]

        result = await DocumentService(async_session).generate_office_noting_form(project.id, "2 Years", phases)

        body = docx_text(decode(result))["body"]
        assert body == [
            "Dr. Asha Patel (Assistant Professor)",
            "Dr. Ravi Shah|",
            "Marketing",
            "60,000+40,000=1,00,000",
            "N/A",
            "2 Years",
        ]
        assert result.file_name == "Office_Notings_Rural_Credit_Savings.docx"
        assert project.grant["total_amount"] == 100000
        assert project.project_duration == "2 Years"

    @pytest.mark.asyncio
    async def test_office_noting_leaves_other_projects_alone(self, async_session, faculty_user, email_service, templates_dir):
        (templates_dir / "IMR_OFFICE_NOTING_TEMPLATE.docx").write_bytes(build_docx("{project_title}"))
        project = await self._project(async_session, faculty_user, email_service)

        await DocumentService(async_session).generate_office_noting_form(
            project.id, "1 Year", [GrantPhase(name="Phase 1", amount=50000)]
        )

        assert project.grant is None

    @pytest.mark.asyncio
    async def test_office_noting_phase_limit(self, async_session, faculty_user, email_service, templates_dir):
        project = await self._project(async_session, faculty_user, email_service)
        phases = [GrantPhase(name=f"Phase {i}", amount=1000) for i in range(1, 6)]

        with pytest.raises(ValidationError):
            await DocumentService(async_session).generate_office_noting_form(project.id, "3 Years", phases)


class TestClaimDocuments:
    """Tests for claim forms, payment sheets and claim export."""

    async def _claim(self, session, user, claim_id="RDC/IC/PAPER/0001", amount=15000.0, **fields) -> IncentiveClaim:
        claim = IncentiveClaim(
            claim_id=claim_id,
            claim_type=ClaimType.RESEARCH_PAPERS.value,
            status=ClaimStatus.ACCEPTED.value,
            user_id=user.id,
            user_name=user.name,
            user_email=user.email,
            paper_title="Working Capital Cycles in Indian SMEs",
            journal_name="Journal of Small Business Finance",
            calculated_incentive=amount,
            final_approved_amount=amount,
            authors=[{"name": user.name, "email": user.email, "role": "First Author"}],
            approvals=[
                {"stage": 1, "status": "Approved", "approved_amount": amount, "comments": "OK"},
            ],
            **fields,
        )
        session.add(claim)
        await session.flush()
        return claim

    @pytest.mark.asyncio
    async def test_claim_form(self, async_session, faculty_user, templates_dir):
        (templates_dir / "INCENTIVE_PAPER_TEMPLATE.docx").write_bytes(
            build_docx(
                "{name}",
                "{designation}",
                "{journal_name}",
                "{approver_1}{approver_2}",
                "{approver1_amount}",
                "{doi}",
            )
        )
        claim = await self._claim(async_session, faculty_user)

        result = await DocumentService(async_session).generate_claim_form(claim.id)

        assert result.file_name == "Incentive_PAPER_RDC_IC_PAPER_0001.docx"
        assert docx_text(decode(result))["body"] == [
            "Dr. Asha Patel",
            "Assistant Professor, Finance",
            "Journal of Small Business Finance",
            "✓",
            "15,000",
            "N/A",
        ]

    @pytest.mark.asyncio
    async def test_claim_form_with_unfilled_details(self, async_session, faculty_user, templates_dir):
        (templates_dir / "INCENTIVE_PATENT_TEMPLATE.docx").write_bytes(
            build_docx("{patent_title}", "{application_no}")
        )
        claim = IncentiveClaim(
            claim_id="RDC/IC/PATENT/0001",
            claim_type=ClaimType.PATENTS.value,
            status=ClaimStatus.PENDING.value,
            user_id=faculty_user.id,
            user_name=faculty_user.name,
            user_email=faculty_user.email,
            patent_title="Solar dryer",
            details={},
        )
        async_session.add(claim)
        await async_session.flush()

        result = await DocumentService(async_session).generate_claim_form(claim.id)

        assert result.file_name == "Incentive_PATENT_RDC_IC_PATENT_0001.docx"
        assert docx_text(decode(result))["body"] == ["Solar dryer", "N/A"]

    @pytest.mark.asyncio
    async def test_payment_sheet(self, async_session, faculty_user, co_investigator, templates_dir):
        (templates_dir / "INCENTIVE_PAYMENT_SHEET.xlsx").write_bytes(
            build_xlsx(
                {
                    "A1": "Date: {date}",
                    "B1": "{reference_number}",
                    "A3": "{beneficiary_1}",
                    "B3": "{amount_1}",
                    "C3": "{ifsc_1}",
                    "D3": "{remarks_1}",
                    "A4": "{beneficiary_2}",
                    "B4": "{amount_2}",
                    "C4": "{ifsc_2}",
                    "A5": "{beneficiary_3}",
                    "B5": "{amount_3}",
                    "A7": "{total_amount}",
                    "A8": "{amount_in_word}",
                }
            )
        )
        first = await self._claim(async_session, faculty_user)
        second = await self._claim(async_session, co_investigator, claim_id="RDC/IC/PAPER/0002", amount=7500.0)

        result = await DocumentService(async_session).generate_incentive_payment_sheet(
            [first.id, second.id], {str(first.id): "Q1 paper"}, "RDC/PAY/2026/11"
        )

        assert result.file_name == "Payment_Sheet_RDC_PAY_2026_11.xlsx"
        sheet = load_sheet(decode(result))
        assert sheet["B1"].value == "RDC/PAY/2026/11"
        assert sheet["A3"].value == "Asha Patel"
        assert sheet["B3"].value == 15000
        assert sheet["C3"].value == "SBIN0000001"
        assert sheet["D3"].value == "Q1 paper"
        assert sheet["A4"].value == "Dr. Ravi Shah"
        assert sheet["C4"].value == "N/A"
        assert sheet["A5"].value in (None, "")
        assert sheet["A7"].value == 22500
        assert sheet["A8"].value == "Twenty Two Thousand Five Hundred Only"

    @pytest.mark.asyncio
    async def test_payment_sheet_needs_claims(self, async_session):
        with pytest.raises(ValidationError) as exc_info:
            await DocumentService(async_session).generate_incentive_payment_sheet([], {}, "REF")
        assert exc_info.value.message == "Select at least one claim."

    @pytest.mark.asyncio
    async def test_export_claim(self, async_session, faculty_user, templates_dir):
        (templates_dir / "INCENTIVE_CLAIM_EXPORT.xlsx").write_bytes(
            build_xlsx({"A2": "Name", "A3": "MIS", "A4": "Designation", "A5": "Department", "C11": "Amount"})
        )
        claim = await self._claim(async_session, faculty_user, amount=12000.0)

        result = await DocumentService(async_session).export_claim_to_excel(claim.id)

        sheet = load_sheet(decode(result))
        assert [sheet[ref].value for ref in ("B2", "B3", "B4", "B5")] == [
            "Dr. Asha Patel",
            "MIS1001",
            "Assistant Professor",
            "Finance",
        ]
        assert sheet["D11"].value == 12000
        assert sheet["A2"].value == "Name"
