import textwrap
from typing import List, Optional, Tuple, Union

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from matplotlib.axes import Axes
from matplotlib.colors import LinearSegmentedColormap
from matplotlib.figure import Figure

A4_LANDSCAPE = (11.69, 8.27)

# red -> yellow -> green, like a traffic light
SCORE_CMAP = LinearSegmentedColormap.from_list("qc_score", ["#d73027", "#fee08b", "#1a9850"])


def new_figure(title: str, figsize: Tuple[float, float] = A4_LANDSCAPE) -> Tuple[Figure, Axes]:
    fig, ax = plt.subplots(figsize=figsize)
    fig.suptitle(title, fontsize=14, weight="semibold")
    return fig, ax


def _finish_axis(ax: Axes, title: str, xlabel: str, ylabel: str,
                 xtick_rotation: Optional[int], xtick_fontsize: int, draw_grid: bool) -> None:
    ax.set_title(title)
    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    if draw_grid:
        ax.grid(True, which="both", linestyle="--", linewidth=0.5, alpha=0.7)
    if xtick_rotation is not None:
        ax.tick_params(axis="x", rotation=xtick_rotation, labelsize=xtick_fontsize)
        for label in ax.get_xticklabels():
            label.set_horizontalalignment("right")


def plot_bar_on_axis(
    ax: Axes,
    data: pd.DataFrame,
    x: str,
    y: str,
    title: str,
    xlabel: str,
    ylabel: str,
    hue: Optional[str] = None,
    palette: Optional[Union[str, List[str], dict]] = "Blues_d",
    xtick_rotation: Optional[int] = 45,
    xtick_fontsize: int = 8,
    log_scale: bool = False,
    draw_grid: bool = True,
    annotate_values: bool = False,
    threshold: Optional[float] = None,
) -> None:
    """
    Plots a barplot on the provided axis using Seaborn and consistent formatting.

    Parameters:
        ax (Axes): Matplotlib axis to plot on.
        data (pd.DataFrame): DataFrame with data to plot.
        x (str): Column name for x-axis (usually the sample short name).
        y (str): Column name for y-axis (bar height).
        hue (str): Optional column to stack/dodge by; defaults to `x`.
        threshold (float): Draw a dashed target line at this height.
    """
    sns.barplot(x=x, y=y, data=data, hue=hue or x, palette=palette, ax=ax,
                legend=hue is not None)
    _finish_axis(ax, title, xlabel, ylabel, xtick_rotation, xtick_fontsize, draw_grid)

    if log_scale:
        ax.set_yscale("log")
    if threshold is not None:
        ax.axhline(y=threshold, color="gray", linestyle="--", linewidth=1.5, alpha=0.6)

    if annotate_values:
        for container in ax.containers:
            for bar in container:
                height = bar.get_height()
                if not np.isnan(height) and height > 0:
                    ax.annotate(
                        f"{height:.3g}",
                        xy=(bar.get_x() + bar.get_width() / 2, height),
                        xytext=(0, 5),
                        textcoords="offset points",
                        ha="center",
                        va="bottom",
                        fontsize=8,
                        color="black",
                    )


def plot_box_on_axis(
    ax: Axes,
    data: pd.DataFrame,
    x: str,
    y: str,
    title: str,
    xlabel: str,
    ylabel: str,
    xtick_rotation: Optional[int] = 45,
    xtick_fontsize: int = 8,
    draw_median_line: bool = True,
    threshold: Optional[float] = None,
) -> None:
    """Per-sample distribution (boxplot); optional global median and target lines."""
    sns.boxplot(x=x, y=y, data=data, hue=x, palette="Blues_d", ax=ax, showfliers=False, legend=False)
    _finish_axis(ax, title, xlabel, ylabel, xtick_rotation, xtick_fontsize, True)
    if draw_median_line and len(data):
        ax.axhline(y=np.nanmedian(data[y]), color="gray", linestyle="--", linewidth=1.5, alpha=0.6)
    if threshold is not None:
        ax.axhline(y=threshold, color="red", linestyle=":", linewidth=1.2, alpha=0.8)


def plot_histogram_on_axis(
    ax: Axes,
    data: pd.DataFrame,
    x: str,
    title: str,
    xlabel: str,
    hue: Optional[str] = None,
    bins: Union[int, str] = 50,
    stat: str = "count",
    discrete: bool = False,
) -> None:
    sns.histplot(data=data, x=x, hue=hue, bins=bins, stat=stat, discrete=discrete,
                 multiple="dodge" if discrete else "layer", element="step", ax=ax)
    _finish_axis(ax, title, xlabel, stat, None, 8, True)


def plot_line_on_axis(
    ax: Axes,
    data: pd.DataFrame,
    x: str,
    y: str,
    hue: Optional[str],
    title: str,
    xlabel: str,
    ylabel: str,
) -> None:
    sns.lineplot(data=data, x=x, y=y, hue=hue, ax=ax, linewidth=1)
    _finish_axis(ax, title, xlabel, ylabel, None, 8, True)
    if hue and ax.get_legend() is not None:
        ax.legend(title=hue, loc="upper right", fontsize=7)


def plot_scatter_on_axis(
    ax: Axes,
    data: pd.DataFrame,
    x: str,
    y: str,
    hue: Optional[str],
    title: str,
    xlabel: str,
    ylabel: str,
    annotate: Optional[str] = None,
) -> None:
    sns.scatterplot(data=data, x=x, y=y, hue=hue, ax=ax, s=25, alpha=0.7)
    _finish_axis(ax, title, xlabel, ylabel, None, 8, True)
    if annotate:
        for _, row in data.iterrows():
            ax.annotate(str(row[annotate]), (row[x], row[y]), fontsize=7,
                        xytext=(3, 3), textcoords="offset points")


def plot_table_page(df: pd.DataFrame, title: str, max_rows: int = 40,
                    col_width: int = 60) -> Figure:
    """A figure holding `df` as a text table (first `max_rows` rows)."""
    fig, ax = new_figure(title)
    ax.axis("off")
    if df.empty:
        ax.text(0.5, 0.5, "no data", ha="center", va="center", fontsize=12)
        return fig
    shown = df.head(max_rows).astype(str).map(lambda v: textwrap.shorten(v, col_width, placeholder="..."))
    table = ax.table(cellText=shown.values, colLabels=list(shown.columns), loc="upper center",
                     cellLoc="left")
    table.auto_set_font_size(False)
    table.set_fontsize(7)
    table.auto_set_column_width(list(range(shown.shape[1])))
    if len(df) > max_rows:
        ax.text(0.5, 0.0, f"... {len(df) - max_rows} more row(s)", ha="center", fontsize=8)
    return fig


def plot_score_heatmap(matrix: pd.DataFrame, names: Optional[List[str]] = None,
                       title: str = "Overview") -> Figure:
    """Score matrix (metrics x samples) on a red-yellow-green scale, null cells left blank."""
    height = max(4.0, 0.3 * len(matrix) + 2)
    width = max(6.0, 0.45 * matrix.shape[1] + 4)
    fig, ax = plt.subplots(figsize=(width, height))
    plot_data = matrix.astype(float)
    if names is not None:
        plot_data.index = names
    sns.heatmap(plot_data, cmap=SCORE_CMAP, vmin=0, vmax=1, linewidths=0.5, linecolor="white",
                cbar_kws={"label": "score"}, ax=ax)
    ax.set_title(title, fontsize=14, weight="semibold")
    ax.set_xlabel("")
    ax.set_ylabel("")
    plt.setp(ax.get_xticklabels(), rotation=45, ha="right")
    fig.tight_layout()
    return fig


def plot_sample_bars(values: pd.Series, title: str, ylabel: str,
                     threshold: Optional[float] = None, log_scale: bool = False) -> Figure:
    """One bar per sample (index = short name)."""
    fig, ax = new_figure(title)
    data = pd.DataFrame({"sample": values.index.astype(str), "value": values.to_numpy(dtype=float)})
    plot_bar_on_axis(ax, data, x="sample", y="value", title="", xlabel="", ylabel=ylabel,
                     threshold=threshold, log_scale=log_scale, annotate_values=len(data) <= 20)
    fig.tight_layout()
    return fig
