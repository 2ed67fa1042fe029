import plotly.graph_objects as go
import numpy as np
import pandas as pd
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union
import logging
import math
import traceback

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
from field_parsing import format_js_number, format_money, format_p_value
from film_data import positive_values
from utils import DEFAULT_CHARTS, DEFAULT_SOURCE_NOTE, DEFAULT_THEME, merge_settings

logger = logging.getLogger(__name__)

ANTICIPATORY_CLASSES = [
    (True, "Anticipatory", "anticipatory"),
    (False, "Non-anticipatory", "non_anticipatory"),
    (None, "Unknown", "unknown"),
]


class VisualizationError(Exception):
    """Custom exception for visualization-related errors"""
    def __init__(self, message: str):
        self.message = message
        logger.error(f"VisualizationError: {message}")
        super().__init__(self.message)


def anticipatory_class(flag: Any) -> Optional[bool]:
    if isinstance(flag, (bool, np.bool_)):
        return bool(flag)
    return None


def raw_or_log_format(mode: str) -> Callable[[float], str]:
    if mode == "log":
        return lambda v: f"{v:.2f}"
    return money_tick


class FilmVisualizer:
    """Class for creating the interactive film dashboards charts"""
    def __init__(self,
                 save_dir: Optional[Union[str, Path]] = None,
                 theme: Optional[Dict[str, str]] = None,
                 charts: Optional[Dict[str, Dict[str, Any]]] = None,
                 source_note: str = DEFAULT_SOURCE_NOTE):
        """
        Initialize the FilmVisualizer.

        Args:
            save_dir: Directory to write ``<chart>.html`` files to, None to only
                build figures (the dashboard does this)
            theme: Colour overrides on top of DEFAULT_THEME
            charts: Per-chart size and layout overrides on top of DEFAULT_CHARTS
            source_note: Source line printed under every chart

        Raises:
            OSError: If directory creation fails
        """
        self.theme = merge_settings(DEFAULT_THEME, theme)
        self.charts = {name: merge_settings(DEFAULT_CHARTS.get(name, {}), (charts or {}).get(name))
                       for name in set(DEFAULT_CHARTS) | set(charts or {})}
        self.source_note = source_note
        self.save_dir = None
        if save_dir is not None:
            try:
                self.save_dir = Path(save_dir)
                self.save_dir.mkdir(parents=True, exist_ok=True)
                logger.info(f"Initialized FilmVisualizer with save directory: {self.save_dir}")
            except Exception as e:
                logger.error(f"Failed to create save directory: {str(e)}")
                raise OSError(f"Could not create save directory: {str(e)}")

    # ---- shared layout helpers ----

    def _inner_size(self, chart: str, height: Optional[float] = None) -> Dict[str, float]:
        settings = self.charts[chart]
        margin = settings["margin"]
        total_h = height if height is not None else settings["height"]
        return {
            "width": settings["width"] - margin["left"] - margin["right"],
            "height": total_h - margin["top"] - margin["bottom"],
        }

    def _base_layout(self, fig: go.Figure, chart: str, title: Optional[str] = None,
                     height: Optional[float] = None) -> go.Figure:
        settings = self.charts[chart]
        margin = settings["margin"]
        fig.update_layout(
            width=settings["width"],
            height=height if height is not None else settings["height"],
            margin=dict(l=margin["left"], r=margin["right"],
                        t=margin["top"], b=margin["bottom"]),
            paper_bgcolor=self.theme["bg"],
            plot_bgcolor=self.theme["bg"],
            font=dict(color=self.theme["ink"], size=11),
            hovermode="closest",
            showlegend=False,
            bargap=0,
        )
        fig.update_xaxes(showgrid=False, zeroline=False, linecolor=self.theme["muted"],
                         ticks="outside", tickcolor=self.theme["muted"])
        fig.update_yaxes(showgrid=False, zeroline=False, linecolor=self.theme["muted"],
                         ticks="outside", tickcolor=self.theme["muted"])
        if title:
            fig.update_layout(title=dict(text=f"<b>{title}</b>", x=0, xanchor="left",
                                         font=dict(size=13, color=self.theme["ink"])))
        fig.add_annotation(text=self.source_note, xref="paper", yref="paper",
                           x=1, y=0, yshift=-margin["bottom"] + 4,
                           xanchor="right", yanchor="bottom", showarrow=False,
                           font=dict(size=9, color=self.theme["muted"]))
        return fig

    def _add_grid(self, fig: go.Figure, values: Sequence[float], axis: str = "y") -> None:
        for v in values:
            if axis == "y":
                fig.add_shape(type="line", xref="paper", x0=0, x1=1, yref="y", y0=v, y1=v,
                              line=dict(color=self.theme["grid"], width=1), layer="below")
            else:
                fig.add_shape(type="line", yref="paper", y0=0, y1=1, xref="x", x0=v, x1=v,
                              line=dict(color=self.theme["grid"], width=1), layer="below")

    def _count_axis(self, fig: go.Figure, counts: Sequence[int], grid: bool = True) -> None:
        y = LinearScale([0, max(counts) if len(counts) else 0]).nice()
        tickvals = y.ticks(5)
        fig.update_yaxes(range=y.domain, tickvals=tickvals,
                         ticktext=[format_js_number(t) for t in tickvals])
        if grid:
            self._add_grid(fig, tickvals)

    def _save(self, fig: go.Figure, name: str) -> Optional[Path]:
        if self.save_dir is None:
            return None
        output_path = self.save_dir / f"{name}.html"
        fig.write_html(str(output_path), include_plotlyjs="cdn")
        logger.info(f"Saved {name} plot to {output_path}")
        return output_path

    # ---- bar charts ----

    def plot_genre_counts(self, counts: pd.DataFrame,
                          title: Optional[str] = None) -> Optional[go.Figure]:
        """
        Bar chart of the most frequent genres.

        Args:
            counts: DataFrame with ``genre`` and ``count`` columns, already sorted
            title: Optional chart title

        Returns:
            The figure, or None when there is nothing to plot
        """
        try:
            if counts is None or counts.empty:
                logger.warning("No genre counts to plot")
                return None
            if not {"genre", "count"}.issubset(counts.columns):
                raise VisualizationError("Genre counts need 'genre' and 'count' columns")

            fig = go.Figure(go.Bar(
                x=counts["genre"].tolist(),
                y=counts["count"].tolist(),
                marker_color=self.charts["genres"]["bar_color"],
                hovertemplate="%{x}<br>%{y} films<extra></extra>",
            ))
            self._base_layout(fig, "genres", title)
            fig.update_layout(bargap=0.1)
            fig.update_xaxes(type="category", tickangle=-35)
            self._count_axis(fig, counts["count"].tolist(), grid=False)

            self._save(fig, "genre_barplot")
            return fig

        except Exception as e:
            logger.error(f"Error in plot_genre_counts: {str(e)}")
            logger.error(traceback.format_exc())
            raise

    def plot_count_distribution(self, values: Sequence[Any], title: str, x_label: str,
                                y_label: str = "Films (count)",
                                order: Optional[Sequence[Any]] = None,
                                name: str = "score_plot") -> Optional[go.Figure]:
        """Count plot of discrete values (figure 1.a, prediction scores)."""
        try:
            counts = count_values(values, order=order)
            if not counts:
                logger.warning(f"No finite values for {name}")
                return None

            keys = [format_js_number(k) for k, _ in counts]
            fig = go.Figure(go.Bar(
                x=keys,
                y=[c for _, c in counts],
                marker_color=self.theme["accent"],
                hovertemplate=f"{x_label}: %{{x}}<br>%{{y}} films<extra></extra>",
            ))
            self._base_layout(fig, "variables", title)
            fig.update_layout(bargap=0.18)
            fig.update_xaxes(type="category", categoryorder="array", categoryarray=keys,
                             title_text=x_label)
            fig.update_yaxes(title_text=y_label)
            self._count_axis(fig, [c for _, c in counts])

            self._save(fig, name)
            return fig

        except Exception as e:
            logger.error(f"Error in plot_count_distribution: {str(e)}")
            logger.error(traceback.format_exc())
            raise

    def plot_year_counts(self, years: Sequence[Any], title: str,
                         name: str = "year_plot") -> Optional[go.Figure]:
        """Films per release year (figure 1.b)."""
        try:
            counts = count_values(years)
            if not counts:
                logger.warning("No release years to plot")
                return None

            labels = [format_js_number(y) for y, _ in counts]
            fig = go.Figure(go.Bar(
                x=labels,
                y=[c for _, c in counts],
                marker_color=self.theme["accent"],
                hovertemplate="%{x}<br>%{y} films<extra></extra>",
            ))
            self._base_layout(fig, "variables", title)
            fig.update_layout(bargap=0.12)
            fig.update_xaxes(type="category", categoryorder="array", categoryarray=labels,
                             tickvals=year_tick_values(labels), title_text="Release year")
            fig.update_yaxes(title_text="Films (count)")
            self._count_axis(fig, [c for _, c in counts])

            self._save(fig, name)
            return fig

        except Exception as e:
            logger.error(f"Error in plot_year_counts: {str(e)}")
            logger.error(traceback.format_exc())
            raise

    def plot_histogram(self, values: Sequence[Any], title: str, x_label: str,
                       y_label: str = "Count", bins: Optional[int] = None,
                       tick_format: Optional[Callable[[float], str]] = None,
                       name: str = "histogram") -> Optional[go.Figure]:
        """
        Histogram on nice thresholds.

        Args:
            values: Values to bin, non-finite entries are dropped
            title: Figure title
            x_label: X axis title
            y_label: Y axis title
            bins: Approximate number of thresholds (chart default: 22)
            tick_format: Formatter for x tick labels
            name: Output file stem

        Returns:
            The figure, or None when there are no finite values
        """
        try:
            clean = [float(v) for v in values if v is not None and np.isfinite(v)]
            if not clean:
                logger.warning(f"No finite values for {name}")
                return None

            x = LinearScale([min(clean), max(clean)],
                            [0, self._inner_size("variables")["width"]]).nice()
            histogram = histogram_bins(clean, bins or self.charts["variables"]["bins"], x.domain)
            one_px = abs(x.invert(1) - x.invert(0))
            fmt = tick_format or format_js_number

            fig = go.Figure(go.Bar(
                x=[b.midpoint for b in histogram],
                y=[b.count for b in histogram],
                width=[max(0.0, b.width - one_px) for b in histogram],
                customdata=[[fmt(b.x0), fmt(b.x1)] for b in histogram],
                marker_color=self.theme["accent"],
                hovertemplate="%{customdata[0]} to %{customdata[1]}<br>%{y} films<extra></extra>",
            ))
            self._base_layout(fig, "variables", title)
            tickvals = x.ticks(6)
            fig.update_xaxes(range=x.domain, tickvals=tickvals,
                             ticktext=[fmt(t) for t in tickvals], title_text=x_label)
            fig.update_yaxes(title_text=y_label)
            self._count_axis(fig, [b.count for b in histogram])

            self._save(fig, name)
            return fig

        except Exception as e:
            logger.error(f"Error in plot_histogram: {str(e)}")
            logger.error(traceback.format_exc())
            raise

    def plot_box_office(self, movies: pd.DataFrame, mode: str = "raw") -> Optional[go.Figure]:
        """Worldwide box office histogram (figure 1.c), raw dollars or log10."""
        is_log = mode == "log"
        return self.plot_histogram(
            positive_values(movies["box"], log=is_log),
            title=f"Figure 1.c — Worldwide box office ({'log10' if is_log else 'raw'})",
            x_label="log10 Box office (2020$)" if is_log else "Box office (2020$)",
            y_label="Films (count)",
            tick_format=raw_or_log_format(mode),
            name=f"boxoffice_plot_{mode}",
        )

    def plot_budget(self, movies: pd.DataFrame, mode: str = "raw") -> Optional[go.Figure]:
        """Budget histogram (figure 1.d), raw dollars or log10."""
        is_log = mode == "log"
        return self.plot_histogram(
            positive_values(movies["budget"], log=is_log),
            title=f"Figure 1.d — Budget ({'log10' if is_log else 'raw'})",
            x_label="log10 Budget (2020$)" if is_log else "Budget (2020$)",
            y_label="Films (count)",
            tick_format=raw_or_log_format(mode),
            name=f"budget_plot_{mode}",
        )

    # ---- scatterplots ----

    def _scatter_traces(self, fig: go.Figure, films: pd.DataFrame, xs: List[float],
                        ys: List[float], hovertemplate: str, customdata: List[list],
                        selected: Optional[int]) -> None:
        classes = [anticipatory_class(v) for v in films["anticipatory"]]
        for flag, label, color_key in ANTICIPATORY_CLASSES:
            idx = [i for i, c in enumerate(classes) if c is flag]
            if not idx:
                continue
            fig.add_trace(go.Scatter(
                x=[xs[i] for i in idx],
                y=[ys[i] for i in idx],
                mode="markers",
                name=label,
                marker=dict(size=7, color=self.theme[color_key], opacity=0.85,
                            line=dict(width=0)),
                customdata=[customdata[i] for i in idx],
                hovertemplate=hovertemplate,
            ))
        if selected is not None and 0 <= selected < len(films):
            fig.add_trace(go.Scatter(
                x=[xs[selected]], y=[ys[selected]], mode="markers", name="Selected",
                marker=dict(size=12, color=self.theme["accent"],
                            line=dict(width=2, color=self.theme["ink"])),
                customdata=[customdata[selected]],
                hovertemplate=hovertemplate,
            ))

    def plot_film_timeline(self, films: pd.DataFrame,
                           selected: Optional[int] = None) -> Optional[go.Figure]:
        """
        Release year against prediction score, one point per film.

        Films sharing a (year, score) position are fanned out on a small circle
        and the grid always includes the score 1.0 reference when in range.

        Args:
            films: Output of ``load_timeline_films``
            selected: Row index of the selected film, highlighted when given

        Returns:
            The figure, or None when there are no films
        """
        try:
            if films is None or films.empty:
                logger.warning("No usable films (year + prediction_score).")
                return None

            settings = self.charts["timeline"]
            inner = self._inner_size("timeline")
            years = films["year"].astype(float).tolist()
            scores = films["score"].astype(float).tolist()

            x = LinearScale(padded_extent(years, absolute=0.5), [0, inner["width"]]).nice()
            y = LinearScale(padded_extent(scores, fraction=0.05), [inner["height"], 0]).nice()

            offsets = jitter_offsets([jitter_key(yr, sc) for yr, sc in zip(years, scores)],
                                     settings["jitter_radius"])
            xs = [x.invert(x(yr) + jx) for yr, (jx, _) in zip(years, offsets)]
            ys = [y.invert(y(sc) + jy) for sc, (_, jy) in zip(scores, offsets)]

            customdata = [[i, str(t), format_js_number(yr), sc]
                          for i, (t, yr, sc) in enumerate(zip(films["title"], years, scores))]
            fig = go.Figure()
            self._scatter_traces(
                fig, films, xs, ys,
                "<b>%{customdata[1]}</b> (%{customdata[2]})<br>"
                "Prediction score: %{customdata[3]:.2f}<extra></extra>",
                customdata, selected)

            self._base_layout(fig, "timeline")
            xticks = x.ticks(6)
            fig.update_xaxes(range=x.domain, tickvals=xticks,
                             ticktext=[str(int(round(t))) for t in xticks],
                             title_text="Release year")
            fig.update_yaxes(range=y.domain, tickvals=y.ticks(5), title_text="Prediction score")
            self._add_grid(fig, grid_tick_values(y, 4, reference=settings["reference_score"]))

            self._save(fig, "film_timeline")
            return fig

        except Exception as e:
            logger.error(f"Error in plot_film_timeline: {str(e)}")
            logger.error(traceback.format_exc())
            raise

    def plot_film_results(self, films: pd.DataFrame,
                          selected: Optional[int] = None) -> Optional[go.Figure]:
        """
        Movie-based score against worldwide box office on a log scale.

        Args:
            films: Output of ``load_result_films``
            selected: Row index of the selected film, highlighted when given

        Returns:
            The figure, or None when there are no films
        """
        try:
            if films is None or films.empty:
                logger.warning("No usable films (score + boxoffice).")
                return None

            settings = self.charts["results"]
            inner = self._inner_size("results")
            scores = films["score"].astype(float).tolist()
            box = films["boxoffice"].astype(float).tolist()

            x = LinearScale(padded_extent(scores, fraction=0.05), [0, inner["width"]]).nice()
            y = LogScale([min(box), max(box)], [inner["height"], 0]).nice()

            keys = [jitter_key(sc, math.log10(b)) for sc, b in zip(scores, box)]
            offsets = jitter_offsets(keys, settings["jitter_radius"])
            xs = [x.invert(x(sc) + jx) for sc, (jx, _) in zip(scores, offsets)]
            ys = [y.invert(y(b) + jy) for b, (_, jy) in zip(box, offsets)]

            customdata = [[i, str(t), sc, format_money(b)]
                          for i, (t, sc, b) in enumerate(zip(films["title"], scores, box))]
            fig = go.Figure()
            self._scatter_traces(
                fig, films, xs, ys,
                "<b>%{customdata[1]}</b><br>Prediction score: %{customdata[2]:.2f}"
                "<br>Box office: %{customdata[3]}<extra></extra>",
                customdata, selected)

            self._base_layout(fig, "results")
            yticks = y.ticks(6)
            fig.update_xaxes(range=x.domain, tickvals=x.ticks(6), title_text="Prediction score")
            fig.update_yaxes(type="log", range=y.log_range, tickvals=yticks,
                             ticktext=[money_tick(t) for t in yticks],
                             title_text="Worldwide box office (2020, log scale)")
            self._add_grid(fig, grid_tick_values(y, 4))

            self._save(fig, "film_results")
            return fig

        except Exception as e:
            logger.error(f"Error in plot_film_results: {str(e)}")
            logger.error(traceback.format_exc())
            raise

    # ---- regression ----

    def plot_regression(self, coefficients: pd.DataFrame) -> Optional[go.Figure]:
        """
        Coefficient plot: point estimate and 95% CI per term, largest effect on top.

        Args:
            coefficients: Output of ``load_regression_results``

        Returns:
            The figure, or None when there are no usable terms
        """
        try:
            if coefficients is None or coefficients.empty:
                logger.warning("No usable regression terms to plot")
                return None

            settings = self.charts["regression"]
            n = len(coefficients)
            height = settings["margin"]["top"] + settings["margin"]["bottom"] + n * settings["row_height"]
            inner = self._inner_size("regression", height=height)

            lows = coefficients["ci_low"].astype(float)
            highs = coefficients["ci_high"].astype(float)
            x_min, x_max = float(lows.min()), float(highs.max())
            pad = 0.06 * ((x_max - x_min) or 1)
            x = LinearScale([x_min - pad, x_max + pad], [0, inner["width"]]).nice()

            fig = go.Figure()
            self._base_layout(fig, "regression", height=height)
            xticks = x.ticks(7)
            self._add_grid(fig, xticks, axis="x")

            # caps are 10px tall on each side of a row
            cap = 10 / settings["row_height"]
            line_color = self.theme["ink"]
            for row, (_, coef) in enumerate(coefficients.iterrows()):
                fig.add_shape(type="line", x0=coef["ci_low"], x1=coef["ci_high"], y0=row, y1=row,
                              line=dict(color=line_color, width=6))
                for bound in (coef["ci_low"], coef["ci_high"]):
                    fig.add_shape(type="line", x0=bound, x1=bound, y0=row - cap, y1=row + cap,
                                  line=dict(color=line_color, width=5))

            fig.add_shape(type="line", x0=0, x1=0, yref="paper", y0=0, y1=1,
                          line=dict(color=self.theme["accent"], width=2, dash="dash"))

            customdata = [[t, format_p_value(p), lo, hi]
                          for t, p, lo, hi in zip(coefficients["term"], coefficients["p_value"],
                                                  lows, highs)]
            fig.add_trace(go.Scatter(
                x=coefficients["estimate"].astype(float).tolist(),
                y=list(range(n)),
                mode="markers",
                marker=dict(size=20, color=self.theme["accent"],
                            line=dict(width=1.5, color="rgba(255,255,255,0.85)")),
                customdata=customdata,
                hovertemplate="<b>%{customdata[0]}</b><br>β = %{x:.3f}"
                              "<br>95% CI [%{customdata[2]:.3f}, %{customdata[3]:.3f}]"
                              "<br>p = %{customdata[1]}<extra></extra>",
            ))

            fig.update_xaxes(range=x.domain, tickvals=xticks,
                             title_text="Coefficient (β) and 95% confidence interval")
            fig.update_yaxes(range=[n - 0.5, -0.5], tickvals=list(range(n)),
                             ticktext=coefficients["term"].tolist(), ticks="",
                             showline=False, tickfont=dict(size=16))

            self._save(fig, "regression_results")
            return fig

        except Exception as e:
            logger.error(f"Error in plot_regression: {str(e)}")
            logger.error(traceback.format_exc())
            raise
