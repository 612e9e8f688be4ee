"""
main.py
--------
Entry point for the Model Comparison & Forecasting Engine.

Reads a case-level CSV, runs the full pipeline, and writes the derived
tables to the outputs/ folder.

Usage (from the project root):
    python main.py --input path/to/cases.csv

    # With optional arguments:
    python main.py --input cases.csv --seed 42
    python main.py --input cases.csv --no-jitter
    python main.py --input cases.csv --max-departments 4
    python main.py --input cases.csv --run-quality-monitor
"""

import sys
import os
import argparse
import logging
import pandas as pd
from datetime import datetime

# Ensure project root is on path (for runs from any working directory)
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from pipeline import ModelComparisonPipeline
from monitoring.input_quality_monitor import InputQualityMonitor
from reporting.comparison import executive_summary, kpi_comparison
from config.config_loader import get_model_labels


# =============================================================================
# LOGGING SETUP
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("main")


# =============================================================================
# ARGUMENT PARSING
# =============================================================================

def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Model Comparison Engine: compare AI scoring models against baseline and forecast accuracy."
    )
    parser.add_argument(
        "--input", type=str, required=True,
        help="Path to the case-level CSV."
    )
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Output directory. Defaults to outputs/ in project root."
    )
    parser.add_argument(
        "--seed", type=int, default=None,
        help="Seed for the accuracy jitter generator."
    )
    parser.add_argument(
        "--no-jitter", action="store_true", default=False,
        help="Disable accuracy jitter for fully deterministic output."
    )
    parser.add_argument(
        "--max-departments", type=int, default=None,
        help="Department cap. Defaults to config value (8)."
    )
    parser.add_argument(
        "--run-quality-monitor", action="store_true", default=False,
        help="Also run input quality checks and output a quality report."
    )
    return parser.parse_args(argv)


# =============================================================================
# MAIN
# =============================================================================

def main(argv=None):
    args = parse_args(argv)

    output_dir = args.output_dir or os.path.join(PROJECT_ROOT, "outputs")
    os.makedirs(output_dir, exist_ok=True)

    # --- Load records ---
    logger.info(f"Loading records from: {args.input}")
    if not os.path.exists(args.input):
        logger.error(f"Input file not found: {args.input}")
        sys.exit(1)

    frame = pd.read_csv(args.input, dtype=str, keep_default_na=False)
    records = frame.to_dict(orient="records")
    logger.info(f"Loaded {len(records):,} records.")

    # --- Run pipeline ---
    pipeline = ModelComparisonPipeline(
        seed=args.seed,
        jitter_scale=0.0 if args.no_jitter else 1.0,
        max_departments=args.max_departments,
    )
    result = pipeline.run(records)

    # --- Output: derived tables ---
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    outputs = {
        "cells": pipeline.cells_frame(result),
        "department_summary": pipeline.summary_frame(result),
        "forecast": pipeline.forecast_frame(result),
        "combined_forecast": pipeline.combined_frame(result),
    }
    for name, df in outputs.items():
        path = os.path.join(output_dir, f"{name}_{timestamp}.csv")
        df.to_csv(path, index=False)
        logger.info(f"{name} saved to: {path}")

    _print_summary(result)

    # --- Optional: Input quality monitoring ---
    if args.run_quality_monitor:
        logger.info("Running input quality monitor...")
        grid = pipeline.extractor.extract(records)
        report = InputQualityMonitor().run(records, grid, result.cells)

        logger.info(f"Quality Report: {report.summary}")
        for alert in report.alerts:
            level = {"CRITICAL": logging.ERROR, "WARNING": logging.WARNING}.get(alert.severity, logging.INFO)
            logger.log(level, f"[{alert.alert_type}] {alert.severity}: {alert.message}")

        if report.alerts:
            quality_path = os.path.join(output_dir, f"quality_report_{timestamp}.csv")
            pd.DataFrame([vars(a) for a in report.alerts]).to_csv(quality_path, index=False)
            logger.info(f"Quality report saved to: {quality_path}")
        else:
            logger.info("No input quality alerts.")


def _fmt(value) -> str:
    return "   n/a" if value is None else f"{value:+6.1f}%"


def _print_summary(result):
    """Prints a clean summary table to the console."""
    if not result.summaries:
        print("\n  No department data to display.\n")
        return

    labels = get_model_labels()
    v1, v2 = labels["model_1"], labels["model_2"]

    print("\n" + "=" * 80)
    print("  MODEL COMPARISON SUMMARY")
    print("=" * 80)

    print(f"\n  Improvement over baseline (All departments):")
    print("  " + "-" * 60)
    for row in kpi_comparison(result.summaries):
        print(f"    {row['kpi']:15s}  {v1}: {_fmt(row['model_1'])}   {v2}: {_fmt(row['model_2'])}")

    headline = executive_summary(result.summaries, result.forecasts)
    print(f"\n  Average improvement:  {v1}: {_fmt(headline.avg_improvement['model_1'])}   "
          f"{v2}: {_fmt(headline.avg_improvement['model_2'])}")
    if headline.winner:
        print(f"  Winner: {labels[headline.winner]}")

    if headline.final_forecast:
        print(f"\n  {v2} accuracy forecast (end of horizon):")
        print("  " + "-" * 60)
        for department, value in headline.final_forecast.items():
            print(f"    {department:30s}  {value:.3f}")
        print(
            f"\n  Strongest trend: {headline.strongest_trend_department} "
            f"({headline.strongest_trend_slope:+.2f}%/period, R²={headline.strongest_trend_r_squared:.2f})"
        )

    print(f"\n  Records analysed: {sum(s.case_count for s in result.summaries):,} "
          f"across {len(result.departments)} departments and {len(result.months)} months")
    print("=" * 80 + "\n")


if __name__ == "__main__":
    main()
