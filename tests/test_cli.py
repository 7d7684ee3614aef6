"""Test CLI upload validation and commands."""
import pytest
from click.testing import CliRunner

from main import (
    UploadValidationError,
    cli,
    console,
    print_book_analysis,
    print_course_plan,
    validate_uploads,
)
from planning.models import CoursePlan, PlanUnit
from conftest import make_book_analysis
import config


def test_validate_uploads_accepts_pdfs(tmp_path):
    pdf = tmp_path / "book.PDF"
    pdf.write_bytes(b"%PDF-1.4")

    validate_uploads([pdf])


def test_validate_uploads_rejects_other_extensions(tmp_path):
    notes = tmp_path / "notes.txt"
    notes.write_text("hello")

    with pytest.raises(UploadValidationError):
        validate_uploads([notes])


def test_validate_uploads_rejects_too_many_files(tmp_path):
    paths = []
    for i in range(config.MAX_UPLOAD_FILES + 1):
        path = tmp_path / f"book{i}.pdf"
        path.write_bytes(b"%PDF-1.4")
        paths.append(path)

    with pytest.raises(UploadValidationError):
        validate_uploads(paths)


def test_validate_uploads_rejects_empty_batch():
    with pytest.raises(UploadValidationError):
        validate_uploads([])


def test_upload_command_reports_invalid_file(tmp_path):
    notes = tmp_path / "notes.txt"
    notes.write_text("hello")

    result = CliRunner().invoke(cli, ["upload", "--user", "u1", "--pdf", str(notes)])

    assert result.exit_code == 1
    assert "not a PDF file" in result.output


def test_bracketed_titles_print_verbatim():
    """Test that titles containing markup-like brackets are shown as text."""
    analysis = make_book_analysis().model_copy(update={"title": "Notes [/b] on sets"})
    first = analysis.chapters[0].model_copy(
        update={"title": "Sets [a, b]", "key_concepts": ["[bold]union"]}
    )
    analysis = analysis.model_copy(update={"chapters": [first] + analysis.chapters[1:]})

    with console.capture() as capture:
        print_book_analysis(analysis)

    output = capture.get()
    assert "Notes [/b] on sets" in output
    assert "Sets [a, b]" in output
    assert "[bold]union" in output


def test_bracketed_plan_titles_print_verbatim():
    plan = CoursePlan(
        title="Course [/i]",
        description="Covers [x] and [y]",
        units=[PlanUnit(unit_number=1, title="Unit [/red]", source_chapters=[1])],
    )

    with console.capture() as capture:
        print_course_plan(plan)

    output = capture.get()
    assert "Course [/i]" in output
    assert "Covers [x] and [y]" in output
    assert "Unit [/red]" in output
