"""Command line entry point for Bookmark Digest."""

import json
from pathlib import Path

import click
from rich.console import Console

from bookmark_digest.app.config import load_settings
from bookmark_digest.app.dependencies import build_page_analysis_service
from bookmark_digest.app.services.content_analysis import (
    ContentAnalysis,
    compose_summary,
    extract_keywords,
)
from bookmark_digest.app.services.html_text import extract_text
from bookmark_digest.app.services.page_analysis_service import FetchFailure, decode_body

console = Console()


@click.group()
@click.version_option(version="0.1.0")
def main():
    """Bookmark Digest - summaries and keywords for web pages."""
    pass


@main.command()
@click.argument("url")
@click.option("--json", "as_json", is_flag=True, help="Print the raw analysis as JSON.")
def analyze(url: str, as_json: bool):
    """Fetch URL and print its summary and keywords."""
    service = build_page_analysis_service(load_settings())

    try:
        analysis = service.analyze(url)
    except FetchFailure as exc:
        console.print(f"[red]Failed to fetch[/red] {url}: {exc}")
        raise SystemExit(1) from exc

    if as_json:
        click.echo(json.dumps(analysis.to_dict(), ensure_ascii=False))
        return

    _print_analysis(url, analysis)


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def keywords(path: Path):
    """Rank keywords of a saved HTML file."""
    settings = load_settings()
    html = decode_body(path.read_bytes(), None)
    ranked = extract_keywords(extract_text(html), settings.keyword_options)

    if not ranked:
        console.print("[yellow]No keywords found.[/yellow]")
        return

    for keyword in ranked:
        click.echo(keyword)


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--url", default="", help="Original page URL, used for platform hints.")
def summarize(path: Path, url: str):
    """Summarize a saved HTML file."""
    html = decode_body(path.read_bytes(), None)
    click.echo(compose_summary(html, url))


def _print_analysis(url: str, analysis: ContentAnalysis) -> None:
    console.print(f"\n[bold]{url}[/bold]")
    console.print(analysis.summary)

    console.print("\n[bold]KEYWORDS[/bold]")
    if analysis.keywords:
        for keyword in analysis.keywords:
            console.print(f"  - {keyword}")
    else:
        console.print("  (none)")


if __name__ == "__main__":
    main()
