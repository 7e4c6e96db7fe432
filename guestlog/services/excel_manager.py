"""
Excel Visit Log with Concurrency Control

Appends one row per customer visit to a spreadsheet the front desk can
open directly. Writers from several Celery workers are serialized with a
file lock next to the workbook.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from filelock import FileLock, Timeout

from guestlog.core.config import get_settings

logger = logging.getLogger(__name__)


class ExcelManager:
    """Process-safe Excel visit log."""

    VISIT_COLUMNS = [
        "customer_id",
        "name",
        "contact_number",
        "visit_count",
        "is_new",
        "visited_at",
        "first_visit_at",
        "exported_at",
    ]

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        filename: Optional[str] = None,
        lock_timeout: Optional[int] = None,
    ):
        settings = get_settings()
        self.data_dir = Path(data_dir or settings.data_directory)
        self.visits_file = self.data_dir / (filename or settings.visits_filename)
        self.lock_file = self.visits_file.with_name(self.visits_file.name + ".lock")
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.excel_lock_timeout

    def _ensure_data_dir(self) -> None:
        """Create data directory if needed."""
        if not self.data_dir.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.data_dir}")

    def _load_or_create_df(self) -> pd.DataFrame:
        """Load existing workbook or start an empty one."""
        if self.visits_file.exists():
            return pd.read_excel(self.visits_file, engine="openpyxl", dtype={"contact_number": str})
        return pd.DataFrame(columns=self.VISIT_COLUMNS)

    def export_visit(self, visit_data: dict[str, Any]) -> dict[str, Any]:
        """
        Append a visit row under the file lock.

        Args:
            visit_data: Customer record in its JSON shape plus ``isNew``

        Returns:
            dict with success flag, message and export timestamp

        Raises:
            Timeout: the lock was not acquired within ``lock_timeout``
        """
        self._ensure_data_dir()

        customer_id = visit_data.get("id", 0)
        result = {
            "success": False,
            "message": "",
            "customer_id": customer_id,
            "exported_at": None,
        }

        try:
            with FileLock(str(self.lock_file), timeout=self.lock_timeout):
                logger.debug(f"Lock acquired for Customer #{customer_id}")

                df = self._load_or_create_df()

                export_time = datetime.now().isoformat()
                new_row = {
                    "customer_id": customer_id,
                    "name": visit_data.get("name"),
                    "contact_number": visit_data.get("contactNumber"),
                    "visit_count": visit_data.get("visitCount", 1),
                    "is_new": visit_data.get("isNew", False),
                    "visited_at": visit_data.get("updatedAt", export_time),
                    "first_visit_at": visit_data.get("createdAt"),
                    "exported_at": export_time,
                }

                new_df = pd.DataFrame([new_row], columns=self.VISIT_COLUMNS)
                df = new_df if df.empty else pd.concat([df, new_df], ignore_index=True)
                df.to_excel(str(self.visits_file), index=False, engine="openpyxl")

                logger.info(f"Visit of Customer #{customer_id} exported to Excel")

                result["success"] = True
                result["message"] = f"Customer #{customer_id} visit exported"
                result["exported_at"] = export_time

        except Timeout:
            logger.error(f"Lock timeout ({self.lock_timeout}s) for Customer #{customer_id}")
            raise

        return result

    def get_all_visits(self) -> list[dict[str, Any]]:
        """Get all visit rows from the workbook."""
        if not self.visits_file.exists():
            return []
        df = pd.read_excel(self.visits_file, engine="openpyxl", dtype={"contact_number": str})
        return df.to_dict("records")

    def clear_all(self) -> bool:
        """Delete the workbook and its lock file."""
        for f in [self.visits_file, self.lock_file]:
            if f.exists():
                f.unlink()
        logger.info("Visit log cleared")
        return True
