# backend/bullion/services/backup.py
"""
Backup Service for exporting and restoring the whole store.

This service handles:
- Exporting all assets and price history into a BackupData bundle
- JSON (de)serialization with format version checks
- Restoring a bundle, replacing the store content in one transaction
- Managing backup files on disk (save, list, load, prune)

Format versions:
    Bundles carry an integer `version`. A bundle whose version is unknown
    to this build (higher than BACKUP_FORMAT_VERSION) is rejected before
    any of its content is interpreted.

Usage:
    service = BackupService()

    data = service.export(db)
    path = service.save_to_file(data)

    restored = service.restore(db, service.load_from_file(path))
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from bullion.config import settings
from bullion.models import Asset, PriceHistory
from bullion.schemas.backup import BackupAsset, BackupData, BackupFileInfo, BackupPricePoint
from bullion.services.constants import (
    BACKUP_FILE_EXTENSION,
    BACKUP_FILE_PREFIX,
    BACKUP_FORMAT_VERSION,
    SOURCE_RESTORE,
)
from bullion.services.exceptions import (
    InvalidBackupError,
    NotFoundError,
    UnsupportedBackupVersionError,
)
from bullion.services.history_store import PriceHistoryStore

logger = logging.getLogger(__name__)

# Sortable, filesystem-safe UTC timestamp used in backup file names
_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S_%f"


@dataclass
class RestoreResult:
    """Counts of what a restore wrote."""
    assets_restored: int
    history_restored: int
    version: int


class BackupService:
    """
    Export/restore of the complete portfolio.

    Attributes:
        _store: Store used for reads and the transactional replace
        _backup_dir: Directory holding backup files
        _max_files: Number of backup files kept by prune_backups
    """

    def __init__(
            self,
            store: PriceHistoryStore | None = None,
            backup_dir: Path | str | None = None,
            max_files: int | None = None,
    ) -> None:
        self._store = store or PriceHistoryStore()
        self._backup_dir = Path(backup_dir) if backup_dir else settings.backup_dir
        self._max_files = max_files or settings.max_backup_files

    # =========================================================================
    # EXPORT / RESTORE
    # =========================================================================

    def export(self, db: Session) -> BackupData:
        """Snapshot every asset and history row into a bundle."""
        assets = self._store.list_assets(db)
        rows = self._store.get_all_history_rows(db)

        data = BackupData(
            version=BACKUP_FORMAT_VERSION,
            timestamp=datetime.now(timezone.utc),
            assets=[BackupAsset.model_validate(asset) for asset in assets],
            history=[BackupPricePoint.model_validate(row) for row in rows],
        )
        logger.info(f"Exported {len(data.assets)} assets, {len(data.history)} history rows")
        return data

    def restore(self, db: Session, data: BackupData) -> RestoreResult:
        """
        Replace the store content with the bundle.

        Asset ids are kept; history row ids are reassigned. Each asset's
        current price is taken from its latest history point, so the cached
        price always matches the restored history.

        Raises:
            UnsupportedBackupVersionError: Bundle written by a newer format
            SQLAlchemyError: Nothing is changed if the replace fails
        """
        self._check_version(data.version)

        latest: dict[int, BackupPricePoint] = {}
        for point in data.history:
            current = latest.get(point.asset_id)
            if current is None or point.timestamp >= current.timestamp:
                latest[point.asset_id] = point

        assets = []
        for item in data.assets:
            last_point = latest.get(item.id)
            assets.append(Asset(
                id=item.id,
                name=item.name,
                asset_type=item.asset_type,
                metal=item.metal,
                purity=item.purity,
                weight_grams=item.weight_grams,
                quantity=item.quantity,
                purchase_price=item.purchase_price,
                retailer_id=item.retailer_id,
                current_price=last_point.sell_price if last_point else None,
                current_buy_price=last_point.buy_price if last_point else None,
                created_at=item.created_at or data.timestamp,
            ))

        history = [
            PriceHistory(
                asset_id=point.asset_id,
                timestamp=point.timestamp,
                sell_price=point.sell_price,
                buy_price=point.buy_price,
                is_manual=point.is_manual,
                source=point.source or SOURCE_RESTORE,
            )
            for point in data.history
        ]

        self._store.replace_all(db, assets, history)
        logger.info(f"Restored backup v{data.version}: {len(assets)} assets, {len(history)} history rows")

        return RestoreResult(
            assets_restored=len(assets),
            history_restored=len(history),
            version=data.version,
        )

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_json(self, data: BackupData) -> str:
        return data.model_dump_json(indent=2)

    def from_json(self, raw: str | bytes) -> BackupData:
        """
        Parse a bundle.

        The version is checked first; the body is only validated for
        versions this build understands.

        Raises:
            InvalidBackupError: Not JSON, not an object, no version, or invalid body
            UnsupportedBackupVersionError: Unknown (future) format version
        """
        try:
            document = json.loads(raw)
        except ValueError as e:
            raise InvalidBackupError(f"not valid JSON ({e})") from e

        if not isinstance(document, dict):
            raise InvalidBackupError("top level must be an object")
        if "version" not in document:
            raise InvalidBackupError("missing 'version'")

        self._check_version(document["version"])

        try:
            return BackupData.model_validate(document)
        except PydanticValidationError as e:
            raise InvalidBackupError(f"{e.error_count()} invalid field(s)") from e

    @staticmethod
    def _check_version(version: object) -> None:
        if (
                not isinstance(version, int)
                or isinstance(version, bool)
                or not 1 <= version <= BACKUP_FORMAT_VERSION
        ):
            raise UnsupportedBackupVersionError(version, BACKUP_FORMAT_VERSION)

    # =========================================================================
    # FILES
    # =========================================================================

    def save_to_file(self, data: BackupData, prune: bool = True) -> Path:
        """
        Write the bundle to a new timestamped file in the backup directory.

        Older files beyond the configured maximum are pruned afterwards.
        """
        self._backup_dir.mkdir(parents=True, exist_ok=True)

        stamp = datetime.now(timezone.utc).strftime(_FILE_TIMESTAMP_FORMAT)
        path = self._backup_dir / f"{BACKUP_FILE_PREFIX}{stamp}{BACKUP_FILE_EXTENSION}"
        path.write_text(self.to_json(data), encoding="utf-8")
        logger.info(f"Backup written to {path}")

        if prune:
            self.prune_backups()
        return path

    def list_backups(self) -> list[BackupFileInfo]:
        """Backup files, newest first."""
        if not self._backup_dir.is_dir():
            return []

        files = [
            path for path in self._backup_dir.iterdir()
            if path.is_file()
            and path.name.startswith(BACKUP_FILE_PREFIX)
            and path.name.endswith(BACKUP_FILE_EXTENSION)
        ]
        files.sort(key=lambda p: (p.stat().st_mtime, p.name), reverse=True)

        return [
            BackupFileInfo(
                name=path.name,
                path=str(path),
                size=path.stat().st_size,
                modified_at=datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc),
            )
            for path in files
        ]

    def load_from_file(self, path: Path | str) -> BackupData:
        """
        Raises:
            NotFoundError: The file does not exist
            InvalidBackupError / UnsupportedBackupVersionError: See from_json
        """
        path = Path(path)
        if not path.is_file():
            raise NotFoundError(
                f"Backup file not found: {path.name}",
                resource_type="BackupFile",
                resource_id=path.name,
            )
        return self.from_json(path.read_text(encoding="utf-8"))

    def prune_backups(self, keep: int | None = None) -> list[Path]:
        """Delete all but the `keep` newest backup files. Returns the deleted paths."""
        keep = self._max_files if keep is None else keep
        backups = self.list_backups()

        deleted = []
        for info in backups[keep:]:
            path = Path(info.path)
            path.unlink(missing_ok=True)
            deleted.append(path)

        if deleted:
            logger.info(f"Pruned {len(deleted)} old backup files (keeping {keep})")
        return deleted
