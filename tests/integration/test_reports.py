"""Integration tests for tenant-scoped reports and UI preferences."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from impactos.models.organization import Organization
from impactos.models.report import Report
from impactos.models.user import User


@pytest.mark.asyncio
class TestReportDownload:
    """Integration tests for GET /api/reports/{id}/download."""

    async def test_member_downloads_markdown_attachment(
        self, client: AsyncClient, editor_headers: dict, viewer_headers: dict
    ):
        created = await client.post(
            "/api/reports",
            headers=editor_headers,
            json={"title": "Q3 Report!", "content": "# Q3\n\nAll good."},
        )
        report_id = created.json()["id"]

        response = await client.get(f"/api/reports/{report_id}/download", headers=viewer_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/markdown")
        assert response.headers["content-disposition"] == 'attachment; filename="q3-report.md"'
        assert response.text == "# Q3\n\nAll good."

    async def test_other_tenants_report_is_not_found(
        self,
        client: AsyncClient,
        db: AsyncSession,
        test_org: Organization,
        test_outsider_user: User,
        viewer_headers: dict,
    ):
        elsewhere = Organization(name="Elsewhere", slug="elsewhere")
        db.add(elsewhere)
        await db.flush()
        report = Report(organization_id=elsewhere.id, title="Secret", content="classified")
        db.add(report)
        await db.commit()

        response = await client.get(f"/api/reports/{report.id}/download", headers=viewer_headers)

        assert response.status_code == 404
        assert "classified" not in response.text

    async def test_blank_title_rejected(self, client: AsyncClient, editor_headers: dict):
        response = await client.post(
            "/api/reports", headers=editor_headers, json={"title": "   ", "content": ""}
        )

        assert response.status_code == 422


@pytest.mark.asyncio
class TestSidebarPreference:
    async def test_sidebar_state_cookie(self, client: AsyncClient, outsider_headers: dict):
        response = await client.put(
            "/api/preferences/sidebar", headers=outsider_headers, json={"open": False}
        )

        assert response.status_code == 200
        assert response.json() == {"sidebar_state": "false"}
        assert response.cookies.get("sidebar_state") == "false"
        assert "HttpOnly" not in response.headers["set-cookie"]
