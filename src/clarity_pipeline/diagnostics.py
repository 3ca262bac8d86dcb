# ========================
# src/clarity_pipeline/diagnostics.py
# ========================

"""
Diagnostic Plots

Quick-look figures for checking the layer before it is handed on.
Rendered off-screen with the Agg backend.
"""

import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from .exceptions import WriteError
from .models import MonthlyMean, RegionYearMean

logger = logging.getLogger(__name__)


def save_figure_png(fig: plt.Figure, out_png: Path, dpi: int = 150) -> str:
    """
    Save a matplotlib figure to a PNG path and close it.

    Raises:
        WriteError: If the figure cannot be written
    """
    out_png = Path(out_png)
    try:
        out_png.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(out_png, dpi=dpi, bbox_inches="tight")
    except OSError as e:
        logger.error(f"Error writing figure {out_png}: {e}")
        raise WriteError(out_png, str(e)) from e
    finally:
        plt.close(fig)
    logger.info(f"Saved figure to: {out_png}")
    return str(out_png)


def plot_monthly_means(monthly: Iterable[MonthlyMean], out_png: Path) -> str:
    """
    Plot monthly mean depth against month, one line per region and year.

    Gaps (null means) are skipped.
    """
    series: Dict[tuple, List[MonthlyMean]] = defaultdict(list)
    for entry in monthly:
        if entry.value is not None:
            series[(entry.region_id, entry.year)].append(entry)

    fig, ax = plt.subplots(figsize=(8, 5))
    for (region_id, year), entries in sorted(series.items()):
        entries.sort(key=lambda m: m.month)
        ax.plot([m.month for m in entries], [m.value for m in entries],
                marker="o", alpha=0.6, label=f"{region_id} / {year}")

    ax.set_title("Monthly mean Secchi depth by region and year")
    ax.set_xlabel("Month")
    ax.set_ylabel("Secchi depth (m)")
    # deeper water is clearer; plot depth downwards
    ax.invert_yaxis()
    ax.grid(True, linestyle="--", alpha=0.4)
    if 0 < len(series) <= 12:
        ax.legend(fontsize="small", title="region / year")
    return save_figure_png(fig, out_png)


def plot_region_year_means(results: Iterable[RegionYearMean], out_png: Path) -> str:
    """Plot the final summer mean per region across years."""
    series: Dict[int, List[RegionYearMean]] = defaultdict(list)
    for row in results:
        if row.value is not None:
            series[row.region_id].append(row)

    fig, ax = plt.subplots(figsize=(8, 4))
    for region_id, rows in sorted(series.items()):
        rows.sort(key=lambda r: r.year)
        ax.plot([r.year for r in rows], [r.value for r in rows], marker="o", label=str(region_id))

    ax.set_title("Mean summer Secchi depth")
    ax.set_xlabel("Year")
    ax.set_ylabel("Secchi depth (m)")
    ax.invert_yaxis()
    ax.grid(True, linestyle="--", alpha=0.4)
    if 0 < len(series) <= 20:
        ax.legend(fontsize="small", title="region", ncol=2)
    return save_figure_png(fig, out_png)


def render_diagnostics(monthly: List[MonthlyMean], results: List[RegionYearMean],
                       plot_dir) -> Dict[str, str]:
    """
    Render all diagnostic figures into ``plot_dir``.

    Returns:
        dict: Figure name -> saved path
    """
    plot_dir = Path(plot_dir)
    return {
        'monthly_means_plot': plot_monthly_means(monthly, plot_dir / "secchi_monthly_means.png"),
        'region_year_means_plot': plot_region_year_means(results, plot_dir / "secchi_region_year_means.png"),
    }
