"""Extraction commands."""

import json
from pathlib import Path

import click

from cleancut.cli._common import app, console


@app.command("extract", help="Extract the article from a saved HTML file.")
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("--url", "-u", type=str, default="", help="Original page URL (site extractors, link resolution)")
@click.option("--title", type=str, default="", help="Page title, if known")
@click.option(
    "--output",
    "-o",
    type=click.Path(file_okay=True, dir_okay=False, path_type=Path),
    default=None,
    help="Output file. Use .md for Markdown or .json for the full result.",
)
@click.option(
    "--semantic/--no-semantic",
    default=None,
    help="Enable the article/main container stage. Also reads CLEANCUT_ENABLE_SEMANTIC_STAGE env.",
)
@click.option(
    "--external/--no-external",
    default=None,
    help="Enable the readability-lxml stage. Also reads CLEANCUT_ENABLE_EXTERNAL_EXTRACTOR_STAGE env.",
)
@click.option(
    "--heuristic/--no-heuristic",
    default=None,
    help="Enable the scoring-engine fallback stage. Also reads CLEANCUT_ENABLE_HEURISTIC_STAGE env.",
)
@click.option("--min-quality", type=click.FloatRange(0, 100), default=None, help="Minimum gate score to accept a stage")
@click.option("--timeout", type=click.IntRange(min=1), default=None, help="Pipeline time budget in ms")
@click.option("--strict/--no-strict", default=None, help="Require every output quality metric >= 70")
@click.option("--report/--no-report", default=False, help="Print gate and quality reports to stderr")
def extract_file(
    source,
    url: str,
    title: str,
    output: Path | None,
    semantic: bool | None,
    external: bool | None,
    heuristic: bool | None,
    min_quality: float | None,
    timeout: int | None,
    strict: bool | None,
    report: bool,
) -> None:
    """Extract the main article of an HTML file as Markdown.

    Pass - as SOURCE to read from stdin.

    Examples:
        cleancut extract page.html
        cleancut extract page.html --url https://example.com/blog/post --output post.md
        cleancut extract page.html --output result.json --report
        cleancut extract docs.html --no-external --strict
        curl -s https://example.com | cleancut extract - --url https://example.com
    """
    from cleancut.config import load_pipeline_config
    from cleancut.exceptions import ConfigurationError
    from cleancut.services.clipper import ContentClipper
    from cleancut.services.validator import generate_summary_report

    overrides = {
        "enable_semantic_stage": semantic,
        "enable_external_extractor_stage": external,
        "enable_heuristic_stage": heuristic,
        "min_quality_score": min_quality,
        "timeout_ms": timeout,
        "strict_quality_mode": strict,
    }
    try:
        base = load_pipeline_config()
        config = type(base).model_validate(
            {**base.model_dump(), **{key: value for key, value in overrides.items() if value is not None}}
        )
    except ConfigurationError as e:
        click.echo(f"Error: {e.message}", err=True)
        raise SystemExit(1)

    html = source.read()
    result = ContentClipper(config).clip(html, url=url, title=title)

    if report:
        console.print(result.pipeline.quality_report or "No gate report (pipeline degraded)", markup=False)
        console.print("")
        console.print(generate_summary_report(result.quality), markup=False)

    if result.pipeline.error:
        click.echo(f"Warning: {result.pipeline.error}", err=True)

    if output:
        if output.suffix.lower() == ".json":
            with open(output, "w", encoding="utf-8") as f:
                json.dump(result.model_dump(mode="json"), f, indent=2)
        else:
            with open(output, "w", encoding="utf-8") as f:
                f.write(result.markdown + "\n")
        click.echo(f"Saved to {output}", err=True)
    else:
        click.echo(result.markdown)
