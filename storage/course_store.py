"""File-backed persistence for uploads, extracted text, analyses and plans."""
import json
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

import aiofiles
from pydantic import BaseModel, ValidationError

from utils.logger import setup_logger
from analysis.models import BookAnalysis
from planning.models import CoursePlan
import config

logger = setup_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def safe_name(name: str) -> str:
    """Replace characters that are unsafe in file and directory names."""
    cleaned = _UNSAFE_CHARS.sub("_", name.strip())
    # Never allow "." or ".." to survive as a path component
    return cleaned.strip(".") or "_"


class UploadRecord(BaseModel):
    original_filename: str
    storage_path: str
    size_bytes: int


class SavedPlan(BaseModel):
    course_id: str
    plan: CoursePlan
    saved_at: str


class CourseStore:
    """Reads and writes per-user course state under a root directory.

    Layout::

        <root>/<user>/uploads/<ms>_<filename>
        <root>/<user>/courses/<course>/extracted_text.json
        <root>/<user>/courses/<course>/book_analysis.json
        <root>/<user>/courses/<course>/course_plan.json

    Reads return None when a file is absent or unreadable.
    """

    EXTRACTED_TEXT_FILE = "extracted_text.json"
    BOOK_ANALYSIS_FILE = "book_analysis.json"
    COURSE_PLAN_FILE = "course_plan.json"

    def __init__(self, root: Path = config.STATE_DIR):
        self.root = Path(root)

    def user_dir(self, user_id: str) -> Path:
        return self.root / safe_name(user_id)

    def uploads_dir(self, user_id: str) -> Path:
        return self.user_dir(user_id) / "uploads"

    def course_dir(self, user_id: str, course_id: str) -> Path:
        return self.user_dir(user_id) / "courses" / safe_name(course_id)

    async def _write_json(self, path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, 'w', encoding='utf-8') as f:
            await f.write(json.dumps(data, indent=2, ensure_ascii=False))

    async def _read_json(self, path: Path) -> Optional[Any]:
        if not path.exists():
            return None
        try:
            async with aiofiles.open(path, 'r', encoding='utf-8') as f:
                return json.loads(await f.read())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read {path}: {e}")
            return None

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    async def save_pdf_upload(self, user_id: str, filename: str, data: bytes) -> UploadRecord:
        """Store an uploaded PDF under a timestamped, sanitized name."""
        upload_dir = self.uploads_dir(user_id)
        upload_dir.mkdir(parents=True, exist_ok=True)
        storage_path = upload_dir / f"{int(time.time() * 1000)}_{safe_name(filename)}"

        async with aiofiles.open(storage_path, 'wb') as f:
            await f.write(data)

        logger.info(f"Saved upload {filename} ({len(data)} bytes)")
        return UploadRecord(
            original_filename=filename,
            storage_path=str(storage_path),
            size_bytes=len(data),
        )

    # ------------------------------------------------------------------
    # Extracted text
    # ------------------------------------------------------------------

    async def save_extracted_pages(self, user_id: str, course_id: str, pages: List[str]) -> None:
        path = self.course_dir(user_id, course_id) / self.EXTRACTED_TEXT_FILE
        await self._write_json(path, {"pages": pages})

    async def read_extracted_pages(self, user_id: str, course_id: str) -> Optional[List[str]]:
        data = await self._read_json(self.course_dir(user_id, course_id) / self.EXTRACTED_TEXT_FILE)
        if not isinstance(data, dict) or not isinstance(data.get("pages"), list):
            return None
        return [p if isinstance(p, str) else "" for p in data["pages"]]

    # ------------------------------------------------------------------
    # Book analysis
    # ------------------------------------------------------------------

    async def save_book_analysis(self, user_id: str, course_id: str, analysis: BookAnalysis) -> None:
        path = self.course_dir(user_id, course_id) / self.BOOK_ANALYSIS_FILE
        await self._write_json(path, analysis.model_dump(mode="json"))

    async def read_book_analysis(self, user_id: str, course_id: str) -> Optional[BookAnalysis]:
        data = await self._read_json(self.course_dir(user_id, course_id) / self.BOOK_ANALYSIS_FILE)
        if data is None:
            return None
        try:
            return BookAnalysis.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Stored book analysis for {course_id} is invalid: {e}")
            return None

    # ------------------------------------------------------------------
    # Course plan
    # ------------------------------------------------------------------

    async def save_course_plan(self, user_id: str, course_id: str, plan: CoursePlan) -> SavedPlan:
        saved_at = datetime.now(timezone.utc).isoformat()
        path = self.course_dir(user_id, course_id) / self.COURSE_PLAN_FILE
        await self._write_json(path, {**plan.model_dump(mode="json"), "saved_at": saved_at})
        return SavedPlan(course_id=course_id, plan=plan, saved_at=saved_at)

    async def read_course_plan(self, user_id: str, course_id: str) -> Optional[CoursePlan]:
        data = await self._read_json(self.course_dir(user_id, course_id) / self.COURSE_PLAN_FILE)
        if data is None:
            return None
        try:
            # saved_at is ignored by the model
            return CoursePlan.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Stored course plan for {course_id} is invalid: {e}")
            return None

    def list_courses(self, user_id: str) -> List[str]:
        courses_dir = self.user_dir(user_id) / "courses"
        if not courses_dir.exists():
            return []
        return sorted(p.name for p in courses_dir.iterdir() if p.is_dir())
