# backend/bullion/routers/backup.py
"""
Backup endpoints.

- GET  /backup/export           - Download the whole store as a JSON bundle
- POST /backup/restore          - Replace the store with an uploaded bundle
- GET  /backup/files            - Backup files in the backup directory
- POST /backup/files            - Write a new backup file (older ones are pruned)

Restore is all-or-nothing: a bundle of an unknown format version or with
invalid content is rejected with **400** and nothing is changed.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from bullion.database import get_db
from bullion.dependencies import get_backup_service
from bullion.schemas.backup import BackupData, BackupFileInfo, RestoreResponse
from bullion.services.backup import BackupService

logger = logging.getLogger(__name__)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/backup",
    tags=["Backup"],
)


@router.get(
    "/export",
    response_model=BackupData,
    summary="Export all assets and price history",
)
def export_backup(
        db: Session = Depends(get_db),
        service: BackupService = Depends(get_backup_service),
) -> Response:
    """The bundle `POST /backup/restore` accepts."""
    data = service.export(db)
    return Response(content=service.to_json(data), media_type="application/json")


@router.post(
    "/restore",
    response_model=RestoreResponse,
    summary="Restore from a backup bundle",
)
async def restore_backup(
        request: Request,
        db: Session = Depends(get_db),
        service: BackupService = Depends(get_backup_service),
) -> RestoreResponse:
    """
    Replace every asset and price point with the bundle's content.

    The body is read raw so the format version can be checked before the
    rest of the bundle is interpreted.
    """
    data = service.from_json(await request.body())
    result = service.restore(db, data)
    return RestoreResponse(
        assets_restored=result.assets_restored,
        history_restored=result.history_restored,
        version=result.version,
    )


@router.get(
    "/files",
    response_model=list[BackupFileInfo],
    summary="List backup files",
)
def list_backup_files(
        service: BackupService = Depends(get_backup_service),
) -> list[BackupFileInfo]:
    """Newest first."""
    return service.list_backups()


@router.post(
    "/files",
    response_model=BackupFileInfo,
    status_code=status.HTTP_201_CREATED,
    summary="Write a backup file",
)
def create_backup_file(
        db: Session = Depends(get_db),
        service: BackupService = Depends(get_backup_service),
) -> BackupFileInfo:
    """Export to a new file in the backup directory, then prune old files."""
    path = service.save_to_file(service.export(db))
    return next(info for info in service.list_backups() if info.path == str(path))
