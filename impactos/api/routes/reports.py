"""Report endpoints scoped to the active organization."""
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from impactos.api.deps import require_editor, require_viewer
from impactos.core.database import get_db
from impactos.schemas.report import ReportCreateRequest, ReportResponse
from impactos.services.access_service import OrgContext
from impactos.services.report_service import ReportService, report_filename

router = APIRouter()


@router.post("", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
async def create_report(
    report_data: ReportCreateRequest,
    ctx: OrgContext = Depends(require_editor()),
    db: AsyncSession = Depends(get_db),
):
    """Save a report in the active organization (editor and above)."""
    report = await ReportService(db).create(ctx, report_data.title, report_data.content)
    await db.commit()
    return ReportResponse.model_validate(report)


@router.get("/{report_id}/download")
async def download_report(
    report_id: UUID,
    ctx: OrgContext = Depends(require_viewer()),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Download a report as a markdown attachment.

    Reports of other organizations are reported as not found.
    """
    report = await ReportService(db).get(ctx.organization_id, report_id)
    await db.commit()
    return Response(
        content=report.content,
        media_type="text/markdown; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{report_filename(report.title)}"'
        },
    )
