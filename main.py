"""Main CLI entry point for Book Quest."""
import asyncio
import sys
import time
from pathlib import Path
from typing import List

import click
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from utils.logger import setup_logger
from analysis.book_analyzer import BookAnalyzer
from analysis.models import BookAnalysis
from generation.structured_generator import StructuredGenerator
from ingestion.pdf_extractor import PDFExtractor, PDFExtractionError
from planning.models import CoursePlan
from planning.plan_generator import CoursePlanGenerator
from planning.plan_reconciler import PlanGapReconciler
from storage.course_store import CourseStore
import config

logger = setup_logger(__name__)
console = Console()


class UploadValidationError(Exception):
    """Raised when uploaded files are rejected before processing."""
    pass


def validate_uploads(paths: List[Path]) -> None:
    """Check file count, extension and size of an upload batch.

    Raises:
        UploadValidationError: On the first rejected file
    """
    if not paths:
        raise UploadValidationError("At least one PDF file is required.")
    if len(paths) > config.MAX_UPLOAD_FILES:
        raise UploadValidationError(
            f"Maximum {config.MAX_UPLOAD_FILES} files allowed per upload."
        )
    for path in paths:
        if path.suffix.lower() != ".pdf":
            raise UploadValidationError(f'"{path.name}" is not a PDF file.')
        if path.stat().st_size > config.MAX_UPLOAD_BYTES:
            limit_mb = config.MAX_UPLOAD_BYTES // (1024 * 1024)
            raise UploadValidationError(f'"{path.name}" exceeds the {limit_mb} MB limit.')


def print_book_analysis(analysis: BookAnalysis) -> None:
    header = f"[bold]{escape(analysis.title)}[/bold]"
    if analysis.author:
        header += f" by {escape(analysis.author)}"
    console.print(header)
    console.print(
        f"Pages: {analysis.total_pages} | Chapters: {len(analysis.chapters)} | "
        f"Detection: [cyan]{analysis.detection_method.value}[/cyan]\n"
    )

    table = Table(title="Chapters")
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("Pages")
    table.add_column("Minutes", justify="right")
    table.add_column("Key concepts")
    for ch in analysis.chapters:
        table.add_row(
            str(ch.chapter_number),
            escape(ch.title),
            f"{ch.start_page + 1}-{ch.end_page + 1}",
            str(ch.estimated_reading_minutes),
            escape(", ".join(ch.key_concepts[:4])),
        )
    console.print(table)


def print_course_plan(plan: CoursePlan) -> None:
    console.print(f"\n[bold]{escape(plan.title)}[/bold]")
    if plan.description:
        console.print(escape(plan.description))
    console.print(f"Estimated hours: {plan.estimated_hours}\n")

    table = Table(title="Units")
    table.add_column("Unit", justify="right")
    table.add_column("Title")
    table.add_column("Chapters")
    table.add_column("Minutes", justify="right")
    for unit in plan.units:
        table.add_row(
            str(unit.unit_number),
            escape(unit.title),
            ", ".join(str(c) for c in unit.source_chapters),
            f"{unit.estimated_minutes:g}",
        )
    console.print(table)


async def _upload(user_id: str, pdf_paths: List[Path]) -> str:
    store = CourseStore()
    extractor = PDFExtractor()
    generator = StructuredGenerator()
    analyzer = BookAnalyzer(generator)

    course_id = f"course_{int(time.time() * 1000)}"
    combined = None
    primary_bytes = None

    for path in pdf_paths:
        data = path.read_bytes()
        await store.save_pdf_upload(user_id, path.name, data)

        extraction = await extractor.extract_async(data)
        console.print(f"  {escape(path.name)}: {extraction.total_pages} pages")

        if primary_bytes is None:
            primary_bytes = data
            combined = extraction
        else:
            combined = combined.combined_with(extraction)

    if combined is None or not combined.pages:
        raise PDFExtractionError("No readable PDF content found.")

    await store.save_extracted_pages(user_id, course_id, combined.pages)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console
    ) as progress:
        task = progress.add_task("Analyzing book structure and chapters...", total=None)
        analysis = await analyzer.analyze_book(primary_bytes, combined.pages)
        progress.update(task, completed=True)

    await store.save_book_analysis(user_id, course_id, analysis)

    print_book_analysis(analysis)
    if generator.total_tokens_used:
        console.print(f"Tokens used: {generator.total_tokens_used}")
    return course_id


@click.group()
def cli():
    """Book Quest - turn a PDF textbook into an editable course plan."""
    pass


@cli.command()
@click.option('--user', 'user_id', required=True, help='Learner ID')
@click.option('--pdf', 'pdfs', required=True, multiple=True,
              type=click.Path(exists=True, dir_okay=False), help='PDF file (repeatable)')
def upload(user_id, pdfs):
    """Upload PDFs, detect chapters and analyze the book."""
    console.print("\n[bold cyan]Book Upload[/bold cyan]\n")

    paths = [Path(p) for p in pdfs]
    try:
        validate_uploads(paths)
        course_id = asyncio.run(_upload(user_id, paths))
    except (UploadValidationError, PDFExtractionError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    console.print("\n[green]✓ Upload complete![/green]")
    console.print(f"Course ID: [cyan]{course_id}[/cyan]")


@cli.command()
@click.option('--user', 'user_id', required=True, help='Learner ID')
@click.option('--course', 'course_id', required=True, help='Course ID')
@click.option('--notes', default='', help='Learner goals and preferences')
def plan(user_id, course_id, notes):
    """Generate and save a course plan for an analyzed book."""
    console.print("\n[bold cyan]Course Plan Generation[/bold cyan]\n")

    async def _run():
        store = CourseStore()
        analysis = await store.read_book_analysis(user_id, course_id)
        if analysis is None:
            return None
        course_plan = await CoursePlanGenerator(StructuredGenerator()).generate(analysis, notes)
        await store.save_course_plan(user_id, course_id, course_plan)
        return course_plan

    course_plan = asyncio.run(_run())
    if course_plan is None:
        console.print(f"[red]Error: no book analysis found for course {escape(course_id)}[/red]")
        sys.exit(1)

    print_course_plan(course_plan)
    console.print("\n[green]✓ Plan saved[/green]")


@cli.command('edit-plan')
@click.option('--user', 'user_id', required=True, help='Learner ID')
@click.option('--course', 'course_id', required=True, help='Course ID')
@click.option('--instruction', required=True, help='What to change in the plan')
@click.option('--notes', default='', help='Learner goals and preferences')
def edit_plan(user_id, course_id, instruction, notes):
    """Edit a saved course plan with a free-text instruction."""
    console.print("\n[bold cyan]Course Plan Edit[/bold cyan]\n")

    instruction = instruction.strip()
    if not instruction:
        console.print("[red]Error: instruction must not be empty[/red]")
        sys.exit(1)

    async def _run():
        store = CourseStore()
        analysis = await store.read_book_analysis(user_id, course_id)
        current_plan = await store.read_course_plan(user_id, course_id)
        if analysis is None or current_plan is None:
            return None

        pages = await store.read_extracted_pages(user_id, course_id)
        reconciler = PlanGapReconciler(StructuredGenerator())
        result = await reconciler.reconcile(current_plan, instruction, analysis, pages, notes)

        await store.save_course_plan(user_id, course_id, result.updated_plan)
        if result.updated_book_analysis is not None:
            await store.save_book_analysis(user_id, course_id, result.updated_book_analysis)
        return result

    result = asyncio.run(_run())
    if result is None:
        console.print(
            f"[red]Error: course {escape(course_id)} needs a book analysis and a plan before editing[/red]"
        )
        sys.exit(1)

    console.print(f"[yellow]{escape(result.explanation)}[/yellow]")
    if result.updated_book_analysis is not None:
        chapter_count = len(result.updated_book_analysis.chapters)
        console.print(f"Book analysis now has {chapter_count} chapters")
    print_course_plan(result.updated_plan)


@cli.command()
@click.option('--user', 'user_id', required=True, help='Learner ID')
@click.option('--course', 'course_id', required=True, help='Course ID')
def show(user_id, course_id):
    """Show the stored analysis and plan of a course."""
    async def _run():
        store = CourseStore()
        return (
            await store.read_book_analysis(user_id, course_id),
            await store.read_course_plan(user_id, course_id),
        )

    analysis, course_plan = asyncio.run(_run())
    if analysis is None:
        console.print(f"[yellow]No book analysis stored for {escape(course_id)}[/yellow]")
    else:
        print_book_analysis(analysis)

    if course_plan is None:
        console.print(f"[yellow]No course plan stored for {escape(course_id)}[/yellow]")
    else:
        print_course_plan(course_plan)


@cli.command()
@click.option('--user', 'user_id', required=True, help='Learner ID')
def status(user_id):
    """List a learner's courses."""
    store = CourseStore()
    courses = store.list_courses(user_id)
    if not courses:
        console.print("[yellow]No courses found[/yellow]")
        return

    table = Table(title=f"Courses for {escape(user_id)}")
    table.add_column("Course ID", style="cyan")
    table.add_column("Analysis")
    table.add_column("Plan")
    for course_id in courses:
        course_dir = store.course_dir(user_id, course_id)
        table.add_row(
            escape(course_id),
            "✓" if (course_dir / store.BOOK_ANALYSIS_FILE).exists() else "-",
            "✓" if (course_dir / store.COURSE_PLAN_FILE).exists() else "-",
        )
    console.print(table)


if __name__ == '__main__':
    cli()
