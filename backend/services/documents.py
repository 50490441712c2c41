"""
Document generation from Word and Excel templates.

Word templates carry ``{name}`` placeholders anywhere in the body, tables,
headers or footers; a placeholder may be split across several runs by the
editor that produced the file. Excel templates carry placeholders in cell
values. Rendered files are returned base64 encoded.
"""
import base64
import io
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterator, Literal, Mapping, Optional
from uuid import UUID

import httpx
import openpyxl
import structlog
from docx import Document
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.config import settings
from backend.core.exceptions import DocumentGenerationError, ValidationError
from backend.models import ClaimType, IncentiveClaim, ProjectStatus, User
from backend.schemas.documents import DocumentResult
from backend.schemas.projects import GrantPhase, GrantUpdate
from backend.services.incentives import IncentiveService
from backend.services.projects import ProjectService
from backend.services.users import UserService
from backend.utils import LocalCalendar, amount_in_words, format_display_date, format_rupees

logger = structlog.get_logger(__name__)

NullPolicy = Literal["na", "empty"]

PLACEHOLDER_PATTERN = re.compile(r"\{([A-Za-z0-9_]+)\}")

RECOMMENDATION_TEMPLATE = "IMR_RECOMMENDATION_TEMPLATE.docx"
OFFICE_NOTING_TEMPLATE = "IMR_OFFICE_NOTING_TEMPLATE.docx"
PAYMENT_SHEET_TEMPLATE = "INCENTIVE_PAYMENT_SHEET.xlsx"
CLAIM_EXPORT_TEMPLATE = "INCENTIVE_CLAIM_EXPORT.xlsx"
MAX_CO_PIS = 4
MAX_PHASES = 4


def claim_template_name(claim_type: ClaimType) -> str:
    return f"INCENTIVE_{claim_type.acronym}_TEMPLATE.docx"


# =============================================================================
# Template loading
# =============================================================================


async def load_template(name: str, label: str) -> bytes:
    """
    Read a template from ``document_templates_dir``, which is either a local
    directory or an http(s) base URL.

    Raises:
        DocumentGenerationError: If the template cannot be found or fetched.
    """
    source = settings.document_templates_dir
    if source.startswith(("http://", "https://")):
        url = f"{source.rstrip('/')}/{name}"
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(30.0)) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning("template_fetch_failed", template=name, error=str(e))
            raise DocumentGenerationError(f"{label} template not found.") from e
        if response.status_code != 200:
            logger.warning("template_fetch_failed", template=name, status_code=response.status_code)
            raise DocumentGenerationError(f"{label} template not found.")
        return response.content

    path = Path(source) / name
    if not path.is_file():
        logger.warning("template_missing", template=name, path=str(path))
        raise DocumentGenerationError(f"{label} template not found.")
    return path.read_bytes()


# =============================================================================
# Placeholder rendering
# =============================================================================


def format_value(value: Any, null_policy: NullPolicy = "na") -> str:
    """Render one value for a template; None and "" follow the null policy."""
    if value is None or value == "":
        return "N/A" if null_policy == "na" else ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (date, datetime)):
        return format_display_date(value)
    if isinstance(value, (list, tuple)):
        return ", ".join(format_value(item, null_policy) for item in value)
    return str(value)


def render_text(text: str, values: Mapping[str, Any], null_policy: NullPolicy = "na") -> str:
    """
    Substitute every ``{name}`` in ``text``.

    Raises:
        DocumentGenerationError: On a stray brace.
    """
    _check_braces(text)

    def replace(match: re.Match) -> str:
        return _resolve(match.group(1), values, null_policy)

    return PLACEHOLDER_PATTERN.sub(replace, text)


def _check_braces(text: str) -> None:
    leftover = PLACEHOLDER_PATTERN.sub("", text)
    if "{" in leftover or "}" in leftover:
        logger.warning("template_unbalanced_brace", text=text[:80])
        raise DocumentGenerationError()


def _resolve(name: str, values: Mapping[str, Any], null_policy: NullPolicy) -> str:
    # A field the form never collected renders like an empty one
    return format_value(values.get(name), null_policy)


def _render_paragraph(paragraph, values: Mapping[str, Any], null_policy: NullPolicy) -> None:
    runs = paragraph.runs
    text = "".join(run.text for run in runs)
    if "{" not in text and "}" not in text:
        return
    _check_braces(text)

    bounds = []
    position = 0
    for run in runs:
        bounds.append((position, position + len(run.text)))
        position += len(run.text)

    # Right to left, so offsets of earlier placeholders stay valid
    for match in reversed(list(PLACEHOLDER_PATTERN.finditer(text))):
        value = _resolve(match.group(1), values, null_policy)
        start, end = match.span()
        first = next(i for i, (lo, hi) in enumerate(bounds) if lo <= start < hi)
        last = next(i for i, (lo, hi) in enumerate(bounds) if lo < end <= hi)
        head = runs[first].text[: start - bounds[first][0]]
        tail = runs[last].text[end - bounds[last][0]:]
        runs[first].text = head + value + tail
        for index in range(first + 1, last + 1):
            runs[index].text = ""


def _container_paragraphs(container) -> Iterator:
    yield from container.paragraphs
    for table in container.tables:
        for row in table.rows:
            for cell in row.cells:
                yield from _container_paragraphs(cell)


def _document_paragraphs(document) -> Iterator:
    yield from _container_paragraphs(document)
    for section in document.sections:
        parts = (
            section.header,
            section.footer,
            section.first_page_header,
            section.first_page_footer,
            section.even_page_header,
            section.even_page_footer,
        )
        for part in parts:
            # Linked parts have no definition of their own
            if not part.is_linked_to_previous:
                yield from _container_paragraphs(part)


def render_docx(content: bytes, values: Mapping[str, Any], null_policy: NullPolicy = "na") -> bytes:
    """Fill a Word template and return the rendered file."""
    try:
        document = Document(io.BytesIO(content))
    except Exception as e:
        logger.error("template_unreadable", error=str(e))
        raise DocumentGenerationError() from e

    for paragraph in _document_paragraphs(document):
        _render_paragraph(paragraph, values, null_policy)

    output = io.BytesIO()
    document.save(output)
    return output.getvalue()


def _open_workbook(content: bytes):
    try:
        return openpyxl.load_workbook(io.BytesIO(content))
    except Exception as e:
        logger.error("template_unreadable", error=str(e))
        raise DocumentGenerationError() from e


def _save_workbook(workbook) -> bytes:
    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()


def render_xlsx(content: bytes, values: Mapping[str, Any]) -> bytes:
    """
    Fill the first sheet of an Excel template.

    A cell holding exactly one placeholder takes the raw value, so numbers
    stay numeric. Payment rows beyond the supplied claims are blanked.
    """
    workbook = _open_workbook(content)
    sheet = workbook.worksheets[0]
    for row in sheet.iter_rows():
        for cell in row:
            if not isinstance(cell.value, str) or ("{" not in cell.value and "}" not in cell.value):
                continue
            whole = PLACEHOLDER_PATTERN.fullmatch(cell.value.strip())
            if whole:
                value = values.get(whole.group(1))
                cell.value = value if isinstance(value, (int, float)) else format_value(value, "empty")
                continue
            cell.value = render_text(cell.value, values, "empty")
    return _save_workbook(workbook)


def _result(data: bytes, file_name: str) -> DocumentResult:
    return DocumentResult(file_data=base64.b64encode(data).decode("ascii"), file_name=file_name)


def _file_stem(text: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", text).strip("_")[:60] or "document"


# =============================================================================
# Service
# =============================================================================


class DocumentService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.projects = ProjectService(db)
        self.claims = IncentiveService(db)
        self.users = UserService(db)

    async def _optional_user(self, user_id: Optional[UUID | str]) -> Optional[User]:
        if not user_id:
            return None
        return await self.db.get(User, UUID(str(user_id)))

    async def generate_recommendation_form(self, project_id: UUID) -> DocumentResult:
        project = await self.projects.get(project_id)
        evaluations = await self.projects.list_evaluations(project.id)
        evaluator_comments = "\n\n".join(
            f"{e.evaluator_name} ({e.recommendation}):\n{e.comments}" for e in evaluations
        )
        grant_total = (project.grant or {}).get("total_amount")

        values = {
            "pi_name": project.pi_name,
            "submission_date": project.submission_date,
            "project_title": project.title,
            "faculty": project.faculty,
            "department": project.department,
            "institute": project.institute,
            "grant_amount": format_rupees(grant_total) if grant_total is not None else None,
            "evaluator_comments": evaluator_comments or "No evaluations submitted yet.",
        }
        content = await load_template(RECOMMENDATION_TEMPLATE, "Recommendation form")
        data = render_docx(content, values, "na")
        logger.info("recommendation_form_generated", project_id=str(project.id))
        return _result(data, f"Recommendation_{_file_stem(project.title)}.docx")

    async def generate_office_noting_form(
        self,
        project_id: UUID,
        project_duration: str,
        phases: list[GrantPhase],
    ) -> DocumentResult:
        """
        Office notings for an IMR grant.

        For a ``Recommended`` project the duration and phases entered here are
        also saved onto the project as its grant.
        """
        if len(phases) > MAX_PHASES:
            raise ValidationError(f"At most {MAX_PHASES} grant phases are supported.")
        project = await self.projects.get(project_id)
        pi = await self._optional_user(project.pi_id)
        co_pis = project.co_pi_details or []
        first_co_pi = await self._optional_user(co_pis[0].get("uid")) if co_pis else None

        values: dict[str, Any] = {
            "pi_name": project.pi_name,
            "pi_designation": pi.designation if pi else None,
            "pi_department": (pi.department if pi else None) or project.department,
            "pi_phone": pi.phone_number if pi else None,
            "pi_email": project.pi_email,
            "copi_designation": first_co_pi.designation if first_co_pi else None,
            "copi_department": first_co_pi.department if first_co_pi else None,
            "project_title": project.title,
            "project_duration": project_duration,
            "total_amount": format_rupees(sum(phase.amount for phase in phases)),
            "presentation_date": project.meeting_date,
            "presentation_time": (project.meeting_details or {}).get("time"),
        }
        for index in range(MAX_CO_PIS):
            name = co_pis[index].get("name") if index < len(co_pis) else None
            values[f"co_pi{index + 1}"] = name or ""
        for index in range(MAX_PHASES):
            values[f"phase{index + 1}_amount"] = format_rupees(phases[index].amount) if index < len(phases) else None

        content = await load_template(OFFICE_NOTING_TEMPLATE, "Office notings form")
        data = render_docx(content, values, "na")

        if project.status == ProjectStatus.RECOMMENDED.value:
            await self.projects.update_duration(project.id, project_duration)
            await self.projects.update_grant(
                project.id,
                GrantUpdate(total_amount=sum(phase.amount for phase in phases), phases=phases),
            )
        logger.info("office_noting_generated", project_id=str(project.id))
        return _result(data, f"Office_Notings_{_file_stem(project.title)}.docx")

    # =========================================================================
    # Incentive claims
    # =========================================================================

    async def _claimant(self, claim: IncentiveClaim) -> User:
        user = await self.db.get(User, claim.user_id)
        if user is None:
            raise DocumentGenerationError("Claimant user profile not found.")
        return user

    @staticmethod
    def claim_values(claim: IncentiveClaim, user: User) -> dict[str, Any]:
        """Every claim column and form detail, plus the claimant and approval fields."""
        values: dict[str, Any] = dict(claim.details or {})
        for column in IncentiveClaim.__table__.columns:
            if column.key not in ("details", "approvals", "authors"):
                values[column.key] = getattr(claim, column.key)

        internal = [a for a in claim.authors or [] if not a.get("is_external")]
        values.update(
            {
                "name": user.name,
                "designation": f"{user.designation or 'N/A'}, {user.department or 'N/A'}",
                "department": user.department,
                "institute": user.institute,
                "mis_id": user.mis_id,
                "email": user.email,
                "title": claim.title,
                "total_authors": len(claim.authors or []) or None,
                "total_internal_authors": len(internal) or None,
                "author_names": [a.get("name") for a in claim.authors or []],
            }
        )
        approvals = list(claim.approvals or [])
        for stage in range(1, 5):
            approval = approvals[stage - 1] if stage <= len(approvals) else None
            approved = bool(approval) and approval.get("status") == "Approved"
            amount = approval.get("approved_amount") if approval else None
            values[f"approver_{stage}"] = "✓" if approved else ""
            values[f"approver{stage}_comments"] = (approval or {}).get("comments") or ""
            values[f"approver{stage}_amount"] = format_rupees(amount) if amount is not None else ""
        return values

    async def generate_claim_form(self, claim_pk: UUID) -> DocumentResult:
        claim = await self.claims.get(claim_pk)
        user = await self._claimant(claim)
        claim_type = ClaimType(claim.claim_type)

        content = await load_template(claim_template_name(claim_type), f"{claim_type.value} claim form")
        data = render_docx(content, self.claim_values(claim, user), "na")
        logger.info("claim_form_generated", claim_id=claim.claim_id, claim_type=claim_type.value)
        stem = _file_stem(claim.claim_id or str(claim.id))
        return _result(data, f"Incentive_{claim_type.acronym}_{stem}.docx")

    async def generate_incentive_payment_sheet(
        self,
        claim_ids: list[UUID],
        remarks: Mapping[str, str],
        reference_number: str,
    ) -> DocumentResult:
        """One payment row per claim in the order given, with totals in words."""
        if not claim_ids:
            raise ValidationError("Select at least one claim.")
        result = await self.db.execute(select(IncentiveClaim).where(IncentiveClaim.id.in_(claim_ids)))
        by_id = {claim.id: claim for claim in result.scalars().all()}
        claims = [by_id[claim_id] for claim_id in claim_ids if claim_id in by_id]
        if not claims:
            raise ValidationError("None of the selected claims were found.")

        user_result = await self.db.execute(select(User).where(User.id.in_({c.user_id for c in claims})))
        users = {user.id: user for user in user_result.scalars().all()}

        values: dict[str, Any] = {}
        total = 0.0
        for index, claim in enumerate(claims, start=1):
            user = users.get(claim.user_id)
            bank = (user.bank_details if user else None) or {}
            amount = claim.final_approved_amount or 0
            total += amount
            values.update(
                {
                    f"beneficiary_{index}": bank.get("beneficiary_name") or (user.name if user else claim.user_name),
                    f"account_{index}": bank.get("account_number") or "N/A",
                    f"ifsc_{index}": bank.get("ifsc_code") or "N/A",
                    f"branch_{index}": bank.get("branch_name") or "N/A",
                    f"amount_{index}": amount,
                    f"college_{index}": (user.institute if user else None) or "N/A",
                    f"mis_{index}": (user.mis_id if user else None) or "N/A",
                    f"remarks_{index}": remarks.get(str(claim.id)) or "N/A",
                }
            )
        values.update(
            {
                "date": format_display_date(LocalCalendar.today()),
                "reference_number": reference_number,
                "total_amount": total,
                "amount_in_word": amount_in_words(total),
            }
        )

        content = await load_template(PAYMENT_SHEET_TEMPLATE, "Payment sheet")
        data = render_xlsx(content, values)
        logger.info("payment_sheet_generated", claims=len(claims), total=total)
        return _result(data, f"Payment_Sheet_{_file_stem(reference_number)}.xlsx")

    async def export_claim_to_excel(self, claim_pk: UUID) -> DocumentResult:
        claim = await self.claims.get(claim_pk)
        user = await self.db.get(User, claim.user_id)
        amount = claim.final_approved_amount if claim.final_approved_amount is not None else claim.calculated_incentive

        content = await load_template(CLAIM_EXPORT_TEMPLATE, "Claim export")
        workbook = _open_workbook(content)
        sheet = workbook.worksheets[0]
        sheet["B2"] = user.name if user else claim.user_name
        sheet["B3"] = (user.mis_id if user else None) or "N/A"
        sheet["B4"] = (user.designation if user else None) or "N/A"
        sheet["B5"] = (user.department if user else None) or "N/A"
        sheet["D11"] = amount or 0
        data = _save_workbook(workbook)
        return _result(data, f"Claim_{_file_stem(claim.claim_id or str(claim.id))}.xlsx")
