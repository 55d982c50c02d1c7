"""Report records scoped to the active organization."""
import re
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from impactos.core.errors import NotFound, ValidationFailed
from impactos.models.enums import AuditAction
from impactos.models.report import Report
from impactos.services.access_service import OrgContext
from impactos.services.audit_service import AuditService


def report_filename(title: str) -> str:
    """Download filename derived from the title: ``Q3 Report!`` -> ``q3-report.md``."""
    stem = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return f"{stem or 'report'}.md"


class ReportService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit_service = AuditService(db)

    async def create(self, ctx: OrgContext, title: str, content: str) -> Report:
        title = (title or "").strip()
        if not title:
            raise ValidationFailed("Title is required", details={"field": "title"})

        report = Report(
            organization_id=ctx.organization_id,
            title=title,
            content=content,
            created_by=ctx.user_id,
        )
        self.db.add(report)
        await self.db.flush()

        await self.audit_service.log(
            organization_id=ctx.organization_id,
            action=AuditAction.REPORT_CREATE,
            entity_type="report",
            entity_id=report.id,
            user_id=ctx.user_id,
            diff_json={"title": title},
        )
        return report

    async def get(self, organization_id: UUID, report_id: UUID) -> Report:
        """Fetch a report of this organization; other tenants' ids are NotFound."""
        result = await self.db.execute(
            select(Report).where(
                Report.id == report_id,
                Report.organization_id == organization_id,
            )
        )
        report = result.scalar_one_or_none()
        if report is None:
            raise NotFound("Report not found")
        return report
