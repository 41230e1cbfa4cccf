"""CSV exports of users, subscriptions, audit logs and analytics."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from duely.admin.analytics import AdminAnalyticsService
from duely.admin.audit_log import AuditLogger
from duely.admin.export import EXPORT_KINDS, ExportService, export_filename
from duely.api.middleware.admin_auth import client_ip, get_current_admin, user_agent
from duely.services.database import get_db_session

router = APIRouter(prefix="/api/admin/export", tags=["admin-export"])


@router.get("/{kind}")
async def export_csv(
    kind: str,
    request: Request,
    period: str = Query("30d", pattern=r"^(7d|30d|90d|1y)$"),
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    """Download ``kind`` as a CSV attachment.

    Args:
        kind: One of ``users``, ``subscriptions``, ``admin-logs``, ``analytics``
        period: Analytics period; ignored for the other kinds

    Raises:
        HTTPException: 404 for an unknown export kind
    """
    if kind not in EXPORT_KINDS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown export type")

    service = ExportService(db)
    if kind == "users":
        content = await service.users_csv()
    elif kind == "subscriptions":
        content = await service.subscriptions_csv()
    elif kind == "admin-logs":
        content = await service.admin_logs_csv()
    else:
        overview = await AdminAnalyticsService(db).overview(period, "day")
        content = service.analytics_csv(overview)

    await AuditLogger(db).log_action(
        current_admin["admin_id"],
        "data_exported",
        target=kind,
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )

    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(kind)}"'},
    )
