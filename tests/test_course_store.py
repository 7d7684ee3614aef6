"""Test file-backed course state."""
import asyncio
import json

import pytest

from planning.plan_generator import fallback_course_plan
from storage.course_store import CourseStore, safe_name
from conftest import make_book_analysis


def test_safe_name():
    assert safe_name("my book (final).pdf") == "my_book__final_.pdf"
    assert safe_name("../../etc/passwd") == "_.._etc_passwd"
    assert safe_name("..") == "_"


def test_missing_state_reads_as_none(tmp_path):
    store = CourseStore(tmp_path)

    assert asyncio.run(store.read_book_analysis("u1", "course_1")) is None
    assert asyncio.run(store.read_course_plan("u1", "course_1")) is None
    assert asyncio.run(store.read_extracted_pages("u1", "course_1")) is None
    assert store.list_courses("u1") == []


def test_extracted_pages_round_trip(tmp_path):
    store = CourseStore(tmp_path)
    pages = ["first page", "", "third page"]

    asyncio.run(store.save_extracted_pages("u1", "course_1", pages))

    assert asyncio.run(store.read_extracted_pages("u1", "course_1")) == pages
    stored = json.loads(
        (tmp_path / "u1" / "courses" / "course_1" / "extracted_text.json").read_text()
    )
    assert stored == {"pages": pages}


def test_book_analysis_round_trip(tmp_path):
    store = CourseStore(tmp_path)
    analysis = make_book_analysis()

    asyncio.run(store.save_book_analysis("u1", "course_1", analysis))

    assert asyncio.run(store.read_book_analysis("u1", "course_1")) == analysis
    stored = json.loads(
        (tmp_path / "u1" / "courses" / "course_1" / "book_analysis.json").read_text()
    )
    assert stored["detection_method"] == "pdf-links"


def test_course_plan_saved_with_timestamp(tmp_path):
    store = CourseStore(tmp_path)
    plan = fallback_course_plan(make_book_analysis())

    saved = asyncio.run(store.save_course_plan("u1", "course_1", plan))

    assert saved.course_id == "course_1"
    assert saved.saved_at
    assert asyncio.run(store.read_course_plan("u1", "course_1")) == plan
    stored = json.loads(
        (tmp_path / "u1" / "courses" / "course_1" / "course_plan.json").read_text()
    )
    assert stored["saved_at"] == saved.saved_at


def test_corrupt_files_read_as_none(tmp_path):
    store = CourseStore(tmp_path)
    course_dir = store.course_dir("u1", "course_1")
    course_dir.mkdir(parents=True)
    (course_dir / "book_analysis.json").write_text("{not json")
    (course_dir / "course_plan.json").write_text(json.dumps({"units": "nope"}))

    assert asyncio.run(store.read_book_analysis("u1", "course_1")) is None
    assert asyncio.run(store.read_course_plan("u1", "course_1")) is None


def test_upload_stored_under_sanitized_name(tmp_path):
    store = CourseStore(tmp_path)

    record = asyncio.run(store.save_pdf_upload("u1", "My Book.pdf", b"%PDF-1.4 data"))

    assert record.original_filename == "My Book.pdf"
    assert record.size_bytes == 13
    assert record.storage_path.endswith("_My_Book.pdf")
    with open(record.storage_path, "rb") as f:
        assert f.read() == b"%PDF-1.4 data"


def test_list_courses(tmp_path):
    store = CourseStore(tmp_path)
    asyncio.run(store.save_extracted_pages("u1", "course_2", ["a"]))
    asyncio.run(store.save_extracted_pages("u1", "course_1", ["b"]))
    asyncio.run(store.save_extracted_pages("u2", "course_9", ["c"]))

    assert store.list_courses("u1") == ["course_1", "course_2"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
