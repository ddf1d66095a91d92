"""CLI for the quarterly risk monitor."""
from __future__ import annotations

import asyncio
import logging
import subprocess
import sys

import typer

from riskboard.config import PipelineConfig, get_settings
from riskboard.errors import RiskboardError

app_cli = typer.Typer(name="riskboard", help="Quarterly macro risk monitor CLI")


def _service():
    from riskboard.pipeline.orchestrator import RefreshService
    from riskboard.snapshots.store import make_row_store

    settings = get_settings()
    return RefreshService(PipelineConfig.from_settings(settings), make_row_store(settings))


def _fail(e: RiskboardError) -> None:
    typer.echo(f"ERROR ({e.summary}): {e.detail}", err=True)
    raise typer.Exit(1)


@app_cli.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app_cli.command()
def refresh(period: str = typer.Option(None, help="Quarter label 'YYYY Qn'; defaults to the current quarter")):
    """Fetch latest indicators and upsert the period's six rows."""
    try:
        result = asyncio.run(_service().refresh(period, log_fn=typer.echo))
    except RiskboardError as e:
        _fail(e)
    except ValueError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(2)

    for warning in result.warnings:
        typer.echo(f"WARN: {warning}")


@app_cli.command()
def backfill(quarters: int = typer.Option(None, min=1, help="Number of quarters, current one included")):
    """Rebuild recent quarters from point-in-time values."""
    try:
        result = asyncio.run(_service().backfill(quarters, log_fn=typer.echo))
    except RiskboardError as e:
        _fail(e)

    for warning in result.warnings:
        typer.echo(f"WARN: {warning}")
    typer.echo(f"Backfilled: {', '.join(result.periods)}")


@app_cli.command()
def snapshot(region: str = typer.Argument("Global"), limit: int = typer.Option(None, min=1)):
    """Print stored rows for a region, oldest first."""
    from riskboard.snapshots.schemas import Region

    try:
        region_enum = Region(region)
    except ValueError:
        typer.echo(f"Unknown region: {region}", err=True)
        raise typer.Exit(2)

    try:
        rows = asyncio.run(_service().get_snapshot(region_enum, limit))
    except RiskboardError as e:
        _fail(e)

    for r in rows:
        typer.echo(
            f"{r.period}  {r.region.value:<14} score={r.risk_score:.3f} {r.signal.value:<8} "
            f"hyOAS={r.hy_oas:g} fci={r.fci:g} pmi={r.pmi:g} dxy={r.dxy:g} "
            f"bb={r.book_bill:g} ur={r.unemployment:g}"
        )


@app_cli.command()
def explain(
    hy_oas: float = typer.Option(..., "--hy-oas"),
    fci: float = typer.Option(...),
    pmi: float = typer.Option(...),
    dxy: float = typer.Option(...),
    book_bill: float = typer.Option(..., "--book-bill"),
    ur: float = typer.Option(...),
):
    """Score one indicator bundle and show its sub-scores."""
    from riskboard.score.composite import IndicatorBundle, compute_score, compute_subscores, to_signal
    from riskboard.score.versions import SCORE_CALC_VERSION, SCORE_WEIGHTS

    try:
        bundle = IndicatorBundle(hy_oas=hy_oas, fci=fci, pmi=pmi, dxy=dxy, book_bill=book_bill, ur=ur)
    except ValueError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(2)

    for name, sub in compute_subscores(bundle).items():
        typer.echo(f"  {name:<10} {sub:.3f} x {SCORE_WEIGHTS[name]:.2f}")
    score = compute_score(bundle)
    signal = to_signal(score)
    typer.echo(f"riskScore={score:.4f} signal={signal.value} ({signal.colour}) [{SCORE_CALC_VERSION}]")


@app_cli.command()
def migrate():
    """Run Alembic migrations (upgrade head)."""
    subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        check=True,
    )


@app_cli.command()
def serve(
    host: str = "0.0.0.0",
    port: int = 8000,
    reload: bool = False,
):
    """Start the API server."""
    import uvicorn
    uvicorn.run("riskboard.main:app", host=host, port=port, reload=reload)
