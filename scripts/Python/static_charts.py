"""
Static SVG rendition of the dashboards charts.

Uses matplotlib's object API (no pyplot state, so it runs headless) and seaborn
for the bars and scatter points. Domains, ticks, bins and jitter come from
chart_geometry, the same as the interactive charts.
"""
import logging
import math
import traceback
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence, Union

import numpy as np
import pandas as pd
import seaborn as sns
from matplotlib.figure import Figure

from chart_geometry import (
    LinearScale,
    LogScale,
    count_values,
    grid_tick_values,
    histogram_bins,
    jitter_key,
    jitter_offsets,
    money_tick,
    padded_extent,
    year_tick_values,
)
from field_parsing import format_js_number
from film_data import positive_values
from utils import DEFAULT_CHARTS, DEFAULT_SOURCE_NOTE, DEFAULT_THEME, merge_settings
from visualization import ANTICIPATORY_CLASSES, anticipatory_class, raw_or_log_format

logger = logging.getLogger(__name__)

DPI = 100


class StaticChartRenderer:
    """Writes one SVG file per chart"""
    def __init__(self,
                 save_dir: Union[str, Path],
                 theme: Optional[Dict[str, str]] = None,
                 charts: Optional[Dict[str, Dict[str, Any]]] = None,
                 source_note: str = DEFAULT_SOURCE_NOTE):
        self.save_dir = Path(save_dir)
        self.save_dir.mkdir(parents=True, exist_ok=True)
        self.theme = merge_settings(DEFAULT_THEME, theme)
        self.charts = {name: merge_settings(DEFAULT_CHARTS.get(name, {}), (charts or {}).get(name))
                       for name in set(DEFAULT_CHARTS) | set(charts or {})}
        self.source_note = source_note

    def _figure(self, chart: str, height: Optional[float] = None):
        settings = self.charts[chart]
        margin = settings["margin"]
        width = settings["width"]
        height = height if height is not None else settings["height"]

        fig = Figure(figsize=(width / DPI, height / DPI), dpi=DPI, facecolor=self.theme["bg"])
        ax = fig.add_axes([
            margin["left"] / width,
            margin["bottom"] / height,
            (width - margin["left"] - margin["right"]) / width,
            (height - margin["top"] - margin["bottom"]) / height,
        ])
        ax.set_facecolor(self.theme["bg"])
        for side in ("top", "right"):
            ax.spines[side].set_visible(False)
        for side in ("bottom", "left"):
            ax.spines[side].set_color(self.theme["muted"])
        ax.tick_params(colors=self.theme["ink"], labelsize=8)
        ax.xaxis.label.set_color(self.theme["muted"])
        ax.yaxis.label.set_color(self.theme["muted"])
        fig.text(1 - margin["right"] / width, 2 / height, self.source_note,
                 ha="right", va="bottom", fontsize=7, color=self.theme["muted"])
        return fig, ax

    def _title(self, ax, title: Optional[str]) -> None:
        if title:
            ax.set_title(title, loc="left", fontsize=10, fontweight="bold", color=self.theme["ink"])

    def _hgrid(self, ax, values: Sequence[float]) -> None:
        for v in values:
            ax.axhline(v, color=self.theme["ink"], alpha=0.12, linewidth=0.8, zorder=0)

    def _count_axis(self, ax, counts: Sequence[int], grid: bool = True) -> None:
        y = LinearScale([0, max(counts) if len(counts) else 0]).nice()
        ax.set_ylim(*y.domain)
        ax.set_yticks(y.ticks(5))
        ax.set_yticklabels([format_js_number(t) for t in y.ticks(5)])
        if grid:
            self._hgrid(ax, y.ticks(5))

    def _save(self, fig: Figure, name: str) -> Path:
        output_path = self.save_dir / f"{name}.svg"
        fig.savefig(output_path, format="svg", facecolor=fig.get_facecolor())
        logger.info(f"Saved {name} SVG to {output_path}")
        return output_path

    def render_genre_counts(self, counts: pd.DataFrame) -> Optional[Path]:
        """Top genres as purple bars with rotated labels."""
        try:
            if counts is None or counts.empty:
                logger.warning("No genre counts to render")
                return None
            fig, ax = self._figure("genres")
            sns.barplot(x=counts["genre"].tolist(), y=counts["count"].tolist(), ax=ax,
                        color=self.charts["genres"]["bar_color"], width=0.9)
            ax.tick_params(axis="x", labelrotation=35)
            for label in ax.get_xticklabels():
                label.set_horizontalalignment("right")
            self._count_axis(ax, counts["count"].tolist(), grid=False)
            return self._save(fig, "genre_barplot")

        except Exception as e:
            logger.error(f"Error in render_genre_counts: {str(e)}")
            logger.error(traceback.format_exc())
            raise

    def render_count_distribution(self, values: Sequence[Any], title: str, x_label: str,
                                  y_label: str = "Films (count)",
                                  name: str = "score_plot") -> Optional[Path]:
        try:
            counts = count_values(values)
            if not counts:
                logger.warning(f"No finite values for {name}")
                return None
            fig, ax = self._figure("variables")
            sns.barplot(x=[format_js_number(k) for k, _ in counts], y=[c for _, c in counts],
                        ax=ax, color=self.theme["accent"], width=0.82)
            self._count_axis(ax, [c for _, c in counts])
            self._title(ax, title)
            ax.set_xlabel(x_label)
            ax.set_ylabel(y_label)
            return self._save(fig, name)

        except Exception as e:
            logger.error(f"Error in render_count_distribution: {str(e)}")
            logger.error(traceback.format_exc())
            raise

    def render_year_counts(self, years: Sequence[Any], title: str,
                           name: str = "year_plot") -> Optional[Path]:
        try:
            counts = count_values(years)
            if not counts:
                logger.warning("No release years to render")
                return None
            labels = [format_js_number(y) for y, _ in counts]
            fig, ax = self._figure("variables")
            sns.barplot(x=labels, y=[c for _, c in counts], ax=ax,
                        color=self.theme["accent"], width=0.88)
            shown = set(year_tick_values(labels))
            ax.set_xticks(range(len(labels)))
            ax.set_xticklabels([lab if lab in shown else "" for lab in labels])
            self._count_axis(ax, [c for _, c in counts])
            self._title(ax, title)
            ax.set_xlabel("Release year")
            ax.set_ylabel("Films (count)")
            return self._save(fig, name)

        except Exception as e:
            logger.error(f"Error in render_year_counts: {str(e)}")
            logger.error(traceback.format_exc())
            raise

    def render_histogram(self, values: Sequence[float], title: str, x_label: str,
                         y_label: str = "Count",
                         tick_format: Optional[Callable[[float], str]] = None,
                         name: str = "histogram") -> Optional[Path]:
        try:
            clean = [float(v) for v in values if np.isfinite(v)]
            if not clean:
                logger.warning(f"No finite values for {name}")
                return None
            fig, ax = self._figure("variables")
            x = LinearScale([min(clean), max(clean)]).nice()
            bins = histogram_bins(clean, self.charts["variables"]["bins"], x.domain)
            ax.bar([b.x0 for b in bins], [b.count for b in bins],
                   width=[b.width * 0.98 for b in bins], align="edge",
                   color=self.theme["accent"], zorder=2)
            fmt = tick_format or format_js_number
            ax.set_xlim(*x.domain)
            ax.set_xticks(x.ticks(6))
            ax.set_xticklabels([fmt(t) for t in x.ticks(6)])
            self._count_axis(ax, [b.count for b in bins])
            self._title(ax, title)
            ax.set_xlabel(x_label)
            ax.set_ylabel(y_label)
            return self._save(fig, name)

        except Exception as e:
            logger.error(f"Error in render_histogram: {str(e)}")
            logger.error(traceback.format_exc())
            raise

    def render_money_histogram(self, movies: pd.DataFrame, column: str, label: str,
                               figure: str, mode: str = "raw") -> Optional[Path]:
        """Box office or budget histogram in raw dollars or log10."""
        is_log = mode == "log"
        stem = "boxoffice" if column == "box" else column
        return self.render_histogram(
            positive_values(movies[column], log=is_log),
            title=f"Figure {figure} — {label} ({'log10' if is_log else 'raw'})",
            x_label=f"log10 {label} (2020$)" if is_log else f"{label} (2020$)",
            y_label="Films (count)",
            tick_format=raw_or_log_format(mode),
            name=f"{stem}_plot_{mode}",
        )

    def _scatter(self, ax, films: pd.DataFrame, xs, ys) -> None:
        hue = []
        palette = {}
        for value in films["anticipatory"]:
            flag = anticipatory_class(value)
            for cls, label, color_key in ANTICIPATORY_CLASSES:
                if cls is flag:
                    hue.append(label)
                    palette[label] = self.theme[color_key]
        sns.scatterplot(x=xs, y=ys, hue=hue, palette=palette, ax=ax, s=16,
                        linewidth=0, alpha=0.85, legend=False, zorder=3)

    def render_film_timeline(self, films: pd.DataFrame) -> Optional[Path]:
        """Jittered release year vs prediction score scatter."""
        try:
            if films is None or films.empty:
                logger.warning("No usable films (year + prediction_score).")
                return None
            settings = self.charts["timeline"]
            margin = settings["margin"]
            inner_w = settings["width"] - margin["left"] - margin["right"]
            inner_h = settings["height"] - margin["top"] - margin["bottom"]

            years = films["year"].astype(float).tolist()
            scores = films["score"].astype(float).tolist()
            x = LinearScale(padded_extent(years, absolute=0.5), [0, inner_w]).nice()
            y = LinearScale(padded_extent(scores, fraction=0.05), [inner_h, 0]).nice()
            offsets = jitter_offsets([jitter_key(a, b) for a, b in zip(years, scores)],
                                     settings["jitter_radius"])

            fig, ax = self._figure("timeline")
            self._hgrid(ax, grid_tick_values(y, 4, reference=settings["reference_score"]))
            self._scatter(ax, films,
                          [x.invert(x(a) + jx) for a, (jx, _) in zip(years, offsets)],
                          [y.invert(y(b) + jy) for b, (_, jy) in zip(scores, offsets)])
            ax.set_xlim(*x.domain)
            ax.set_ylim(*y.domain)
            ax.set_xticks(x.ticks(6))
            ax.set_xticklabels([str(int(round(t))) for t in x.ticks(6)])
            ax.set_yticks(y.ticks(5))
            ax.set_xlabel("Release year", color=self.theme["ink"])
            ax.set_ylabel("Prediction score", color=self.theme["ink"])
            return self._save(fig, "film_timeline")

        except Exception as e:
            logger.error(f"Error in render_film_timeline: {str(e)}")
            logger.error(traceback.format_exc())
            raise

    def render_film_results(self, films: pd.DataFrame) -> Optional[Path]:
        """Jittered score vs log box office scatter."""
        try:
            if films is None or films.empty:
                logger.warning("No usable films (score + boxoffice).")
                return None
            settings = self.charts["results"]
            margin = settings["margin"]
            inner_w = settings["width"] - margin["left"] - margin["right"]
            inner_h = settings["height"] - margin["top"] - margin["bottom"]

            scores = films["score"].astype(float).tolist()
            box = films["boxoffice"].astype(float).tolist()
            x = LinearScale(padded_extent(scores, fraction=0.05), [0, inner_w]).nice()
            y = LogScale([min(box), max(box)], [inner_h, 0]).nice()
            offsets = jitter_offsets([jitter_key(s, math.log10(b)) for s, b in zip(scores, box)],
                                     settings["jitter_radius"])

            fig, ax = self._figure("results")
            ax.set_yscale("log")
            self._hgrid(ax, grid_tick_values(y, 4))
            self._scatter(ax, films,
                          [x.invert(x(s) + jx) for s, (jx, _) in zip(scores, offsets)],
                          [y.invert(y(b) + jy) for b, (_, jy) in zip(box, offsets)])
            ax.set_xlim(*x.domain)
            ax.set_ylim(*y.domain)
            ax.set_xticks(x.ticks(6))
            ax.set_yticks(y.ticks(6))
            ax.set_yticklabels([money_tick(t) for t in y.ticks(6)])
            ax.minorticks_off()
            ax.set_xlabel("Prediction score", color=self.theme["ink"])
            ax.set_ylabel("Worldwide box office (2020, log scale)", color=self.theme["ink"])
            return self._save(fig, "film_results")

        except Exception as e:
            logger.error(f"Error in render_film_results: {str(e)}")
            logger.error(traceback.format_exc())
            raise

    def render_regression(self, coefficients: pd.DataFrame) -> Optional[Path]:
        """Coefficient estimates with 95% CI bars, largest absolute effect on top."""
        try:
            if coefficients is None or coefficients.empty:
                logger.warning("No usable regression terms to render")
                return None
            settings = self.charts["regression"]
            n = len(coefficients)
            height = settings["margin"]["top"] + settings["margin"]["bottom"] + n * settings["row_height"]

            lows = coefficients["ci_low"].astype(float)
            highs = coefficients["ci_high"].astype(float)
            x_min, x_max = float(lows.min()), float(highs.max())
            pad = 0.06 * ((x_max - x_min) or 1)
            x = LinearScale([x_min - pad, x_max + pad]).nice()

            fig, ax = self._figure("regression", height=height)
            rows = np.arange(n)
            cap = 10 / settings["row_height"]
            for tick in x.ticks(7):
                ax.axvline(tick, color=self.theme["ink"], alpha=0.10, linewidth=0.8, zorder=0)
            ax.axvline(0, color=self.theme["accent"], linewidth=2, linestyle=(0, (7, 7)), zorder=1)
            ax.hlines(rows, lows, highs, color=self.theme["ink"], linewidth=6,
                      capstyle="round", zorder=2)
            ax.vlines(lows, rows - cap, rows + cap, color=self.theme["ink"], linewidth=5, zorder=2)
            ax.vlines(highs, rows - cap, rows + cap, color=self.theme["ink"], linewidth=5, zorder=2)
            ax.scatter(coefficients["estimate"].astype(float), rows, s=200,
                       color=self.theme["accent"], edgecolors="white", linewidths=1.5, zorder=3)

            ax.set_xlim(*x.domain)
            ax.set_xticks(x.ticks(7))
            ax.set_ylim(n - 0.5, -0.5)
            ax.set_yticks(rows)
            ax.set_yticklabels(coefficients["term"].tolist(), fontsize=12)
            ax.tick_params(axis="y", length=0)
            ax.spines["left"].set_visible(False)
            ax.set_xlabel("Coefficient (β) and 95% confidence interval",
                          color=self.theme["ink"], fontsize=12)
            return self._save(fig, "regression_results")

        except Exception as e:
            logger.error(f"Error in render_regression: {str(e)}")
            logger.error(traceback.format_exc())
            raise
