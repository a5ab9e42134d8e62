"""CLI application using Typer for the statistics engine."""

import dataclasses
from pathlib import Path
from typing import List, Optional

import pandas as pd
import typer
from rich.console import Console
from rich.table import Table

from ..clinical import calculate_diagnostic_test, calculate_egfr, calculate_nnt
from ..core.errors import InvalidInputError
from ..meta import MetaAnalyzer, PooledResult, Study, coerce_studies
from ..power import SampleSizeRequest, power as compute_power, sample_size_per_group
from ..utils.logging import get_logger

app = typer.Typer(
    name="evistat",
    help="Evistat - meta-analysis, sample size and clinical score calculator",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)

DETERMINISTIC_NOTE = "[dim]Deterministic calculation (not AI-generated)[/dim]"


def _fail(exc: Exception) -> None:
    logger.warning(f"Invalid input: {exc}", extra={"error": type(exc).__name__})
    console.print(f"[red]Error: {exc}[/red]")
    raise typer.Exit(1)


def _fmt(value: float, digits: int = 4) -> str:
    if value == float("inf"):
        return "∞"
    return f"{value:.{digits}f}"


def _load_studies(
    effects_csv: Path,
    study_col: str,
    effect_col: str,
    se_col: str,
    subgroup_col: Optional[str],
) -> List[Study]:
    df = pd.read_csv(effects_csv)
    required = {study_col, effect_col, se_col}
    if not required.issubset(df.columns):
        missing = ", ".join(sorted(required - set(df.columns)))
        raise InvalidInputError(f"Columns not found in CSV: {missing}")
    rows: List[dict] = []
    for i, row in df.iterrows():
        try:
            effect = float(row[effect_col])
            se = float(row[se_col])
        except (TypeError, ValueError):
            logger.warning(f"Skipping row {i}: non-numeric effect or standard error")
            continue
        subgroup = None
        if subgroup_col and subgroup_col in df.columns and pd.notna(row[subgroup_col]):
            subgroup = str(row[subgroup_col])
        rows.append({
            "id": str(i),
            "name": str(row[study_col]),
            "effect_size": effect,
            "standard_error": se,
            "subgroup": subgroup,
        })
    return coerce_studies(rows)


def _print_pooled(title: str, pooled: PooledResult) -> None:
    table = Table(title=title)
    table.add_column("Study", style="cyan")
    table.add_column("Effect", justify="right")
    table.add_column("95% CI", justify="right")
    table.add_column("Weight %", style="green", justify="right")
    for row in pooled.studies:
        table.add_row(
            row.name,
            _fmt(row.effect_size),
            f"[{_fmt(row.lower_ci)}, {_fmt(row.upper_ci)}]",
            f"{row.weight_percent:.1f}",
        )
    table.add_row(
        "[bold]Pooled (random effects)[/bold]",
        f"[bold]{_fmt(pooled.pooled_effect)}[/bold]",
        f"[bold][{_fmt(pooled.lower_ci)}, {_fmt(pooled.upper_ci)}][/bold]",
        "[bold]100.0[/bold]",
    )
    console.print(table)
    console.print(
        f"z = {pooled.z_value:.3f}, p = {pooled.p_value:.4f} | "
        f"Q = {pooled.q_statistic:.3f} (df={pooled.q_df}, p={pooled.q_p_value:.4f}), "
        f"I² = {pooled.i_squared:.1f}%, τ² = {pooled.tau_squared:.4f} ({pooled.heterogeneity})"
    )


@app.command()
def meta(
    effects_csv: Path = typer.Argument(..., help="CSV file with one study per row", exists=True),
    study_col: str = typer.Option("study", help="Column name for study labels"),
    effect_col: str = typer.Option("effect", help="Column name for effect estimates"),
    se_col: str = typer.Option("se", help="Column name for standard errors"),
    subgroup_col: Optional[str] = typer.Option(None, help="Column name for subgroup labels"),
    egger: bool = typer.Option(False, "--egger", help="Run Egger's test for publication bias"),
    loo: bool = typer.Option(False, "--leave-one-out", help="Run leave-one-out sensitivity analysis"),
    subgroups: bool = typer.Option(False, "--subgroups", help="Pool each subgroup separately"),
) -> None:
    """Random-effects meta-analysis of the studies in a CSV file."""
    console.print("[bold blue]Running meta‑analysis[/bold blue]")
    analyzer = MetaAnalyzer()
    try:
        studies = _load_studies(effects_csv, study_col, effect_col, se_col, subgroup_col)
        pooled = analyzer.pool(studies)
        _print_pooled("Meta-analysis", pooled)
        if egger:
            result = analyzer.eggers_regression(studies)
            console.print(
                f"Egger's test: intercept = {result.intercept:.3f} (SE {result.se:.3f}), "
                f"p = {result.p_value:.4f} - {result.interpretation}"
            )
        if loo:
            df = analyzer.sensitivity_table(studies)
            loo_table = Table(title="Leave-one-out sensitivity")
            for col in df.columns:
                loo_table.add_column(col, justify="right" if col != "omitted" else "left")
            for _, row in df.iterrows():
                loo_table.add_row(row["omitted"], *[f"{row[c]:.4f}" for c in df.columns[1:]])
            console.print(loo_table)
        if subgroups:
            test = analyzer.subgroup_difference(studies)
            for label, result in test.subgroups.items():
                _print_pooled(f"Subgroup: {label}", result)
            console.print(f"Test for subgroup differences: Q = {test.q_between:.3f}, df = {test.df}, p = {test.p_value:.4f}")
    except InvalidInputError as exc:
        _fail(exc)
    console.print(DETERMINISTIC_NOTE)


@app.command("sample-size")
def sample_size_cmd(
    study_type: str = typer.Argument(..., help="two_means, two_proportions, correlation, one_sample_mean or paired"),
    effect_size: float = typer.Option(..., "--effect-size", "-d", help="Cohen's d, Cohen's h or r"),
    power: float = typer.Option(0.8, "--power", help="Desired power (0-1)"),
    alpha: float = typer.Option(0.05, "--alpha", help="Significance level (0-1)"),
    ratio: float = typer.Option(1.0, "--ratio", help="Allocation ratio n_control / n_treatment"),
    tails: int = typer.Option(2, "--tails", help="1 or 2 tailed test"),
) -> None:
    """Required sample size for a study design."""
    try:
        request = SampleSizeRequest(
            study_type=study_type,
            effect_size=effect_size,
            power=power,
            alpha=alpha,
            ratio=ratio,
            tails=tails,
        )
    except ValueError as exc:
        _fail(exc)
    try:
        n_treatment, n_control = sample_size_per_group(request)
    except InvalidInputError as exc:
        _fail(exc)
    if n_control:
        console.print(f"n per group: {n_treatment} (treatment) / {n_control} (control)")
    console.print(f"[bold green]Total sample size: {n_treatment + n_control}[/bold green]")
    console.print(DETERMINISTIC_NOTE)


@app.command()
def power(
    study_type: str = typer.Argument(..., help="Study design"),
    n: float = typer.Option(..., "--n", help="Total sample size"),
    effect_size: float = typer.Option(..., "--effect-size", "-d", help="Cohen's d, Cohen's h or r"),
    alpha: float = typer.Option(0.05, "--alpha", help="Significance level (0-1)"),
    ratio: float = typer.Option(1.0, "--ratio", help="Allocation ratio n_control / n_treatment"),
) -> None:
    """Power achieved by a given total sample size."""
    try:
        achieved = compute_power(n, effect_size, alpha, study_type, ratio=ratio)
    except InvalidInputError as exc:
        _fail(exc)
    console.print(f"[bold green]Power: {achieved:.3f}[/bold green]")
    console.print(DETERMINISTIC_NOTE)


@app.command()
def nnt(
    control_rate: float = typer.Argument(..., help="Control group event rate (0-1)"),
    treatment_rate: float = typer.Argument(..., help="Treatment group event rate (0-1)"),
    n_control: Optional[int] = typer.Option(None, "--n-control", help="Control group size"),
    n_treatment: Optional[int] = typer.Option(None, "--n-treatment", help="Treatment group size"),
) -> None:
    """Number needed to treat from two event rates."""
    result = calculate_nnt(control_rate, treatment_rate, n_control, n_treatment)
    console.print(f"ARR = {result.arr:.4f}, RRR = {result.rrr:.4f}, NNT = {_fmt(result.nnt, 2)}")
    console.print(f"95% CI: [{_fmt(result.ci95.lower, 2)}, {_fmt(result.ci95.upper, 2)}]")
    console.print(f"[bold]{result.interpretation}[/bold]")
    console.print(DETERMINISTIC_NOTE)


@app.command()
def egfr(
    creatinine: float = typer.Argument(..., help="Serum creatinine (mg/dL)"),
    age: float = typer.Argument(..., help="Age in years"),
    sex: str = typer.Argument(..., help="male or female"),
    cystatin_c: Optional[float] = typer.Option(None, "--cystatin-c", help="Cystatin C (mg/L)"),
) -> None:
    """eGFR with the CKD-EPI 2021 equation."""
    try:
        result = calculate_egfr(creatinine, age, sex, cystatin_c)
    except InvalidInputError as exc:
        _fail(exc)
    console.print(f"eGFR = {result.egfr} mL/min/1.73m² ({result.formula})")
    console.print(f"Stage {result.ckd_stage}: {result.interpretation}")
    console.print(DETERMINISTIC_NOTE)


@app.command()
def diagnostic(
    tp: int = typer.Argument(..., help="True positives"),
    fp: int = typer.Argument(..., help="False positives"),
    fn: int = typer.Argument(..., help="False negatives"),
    tn: int = typer.Argument(..., help="True negatives"),
) -> None:
    """Diagnostic accuracy metrics from a 2×2 table."""
    result = calculate_diagnostic_test(tp, fp, fn, tn)
    table = Table(title="Diagnostic test accuracy")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for name, value in dataclasses.asdict(result).items():
        table.add_row(name, _fmt(value, 3))
    console.print(table)
    console.print(DETERMINISTIC_NOTE)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Hostname to bind the web server to."),
    port: Optional[int] = typer.Option(None, "--port", help="Port for the web server."),
    reload: bool = typer.Option(False, "--reload/--no-reload", help="Enable auto-reload (development only)."),
) -> None:
    """Start the JSON web API."""
    from ..config.settings import settings
    from ..web.app import start_server

    host = host or settings.api_host
    port = port or settings.api_port
    console.print(f"[bold blue]Starting web server[/bold blue] at http://{host}:{port}")
    start_server(host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
