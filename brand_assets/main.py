"""
Brand Preview Assets — CLI

Usage:
  python -m brand_assets.main --page page.json
  python -m brand_assets.main --page page.json --output outputs/assets.json
  python -m brand_assets.main --page page.json --skip-hero --quiet
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import accent, brand_mark, hero, pipeline, quality_gate
from .config import load_config
from .models import PreviewAssets

console = Console()


# ── CLI ───────────────────────────────────────────────────────────────────────

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Brand Preview Assets — pick brand mark, hero image and colours for a scraped page"
    )
    parser.add_argument(
        "--page",
        required=True,
        help="Path to the scraped-page JSON document",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Write the selected assets as JSON to this path",
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Optional .env file with BRAND_ASSETS_* overrides",
    )
    parser.add_argument(
        "--skip-hero",
        action="store_true",
        help="Skip hero-image evaluation",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only print the final summary",
    )
    return parser.parse_args(argv)


def _silence() -> None:
    for module in (accent, brand_mark, hero, pipeline, quality_gate):
        module.console.quiet = True


# ── Summary ───────────────────────────────────────────────────────────────────

def display_summary(assets: PreviewAssets) -> None:
    table = Table(title=assets.url, show_header=True, header_style="bold cyan")
    table.add_column("Asset", style="bold")
    table.add_column("Result")
    table.add_column("Detail", style="dim")

    mark = assets.brand_mark
    if mark.fallback or mark.winner is None:
        table.add_row("Brand mark", "[yellow]initials fallback[/yellow]", mark.log[-1] if mark.log else "")
    else:
        w = mark.winner
        table.add_row(
            "Brand mark",
            f"[green]{w.candidate.source}[/green] ({w.total_score:g})",
            f"{w.width}×{w.height} {w.candidate.url[:60]}",
        )

    if assets.hero is None:
        table.add_row("Hero", "[dim]skipped[/dim]", "")
    elif assets.hero.source == "gradient":
        style = assets.hero.fallback_style or "gradient"
        table.add_row("Hero", f"[yellow]{style} fallback[/yellow]", assets.hero.log[-1] if assets.hero.log else "")
    else:
        ev = assets.hero.evaluation
        img = ev.image if ev else None
        table.add_row(
            "Hero",
            f"[green]{assets.hero.source}[/green] ({ev.score.total_score:g})" if ev else assets.hero.source,
            f"{img.image_type} {img.orientation} tl={img.text_likelihood:g}" if img else "",
        )

    c = assets.colors.colors
    gate = assets.colors.quality_gate
    status = "[green]passed[/green]" if gate.passed else "[red]unresolved[/red]"
    table.add_row(
        "Colours",
        f"{status} ({gate.iterations} fix rounds)",
        f"sidebar {c.sidebar_background} / text {c.sidebar_text} / accent {c.accent}",
    )
    console.print(table)

    failed = [f"{name}: {check.detail}" for name, check in gate.checks.items() if not check.passed]
    if failed:
        console.print(Panel("\n".join(failed), title="Unresolved colour checks", border_style="red"))


# ── Entry point ───────────────────────────────────────────────────────────────

def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = load_config(args.env_file)
    if args.quiet:
        _silence()

    result = pipeline.run_page_file(
        Path(args.page),
        Path(args.output) if args.output else None,
        config=config,
        skip_hero=args.skip_hero,
    )
    if not result.success:
        console.print(f"[red]✗ Failed to process {args.page}[/red]\n{result.error}")
        return 1

    display_summary(result.assets)
    if result.output_path:
        console.print(f"[green]✓[/green] Assets written to {result.output_path}")
    console.print(f"[dim]Done in {result.elapsed_seconds:.1f}s[/dim]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
