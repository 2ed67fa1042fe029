"""
Command-line entry point: export the charts, serve the dashboard or write the
example datasets.
"""
import argparse
import logging
import sys
import traceback
from pathlib import Path
from typing import Any, Dict, List, Optional

from film_data import DATASET_LOADERS, DashboardData, load_dashboard_data, positive_values
from generate_example_data import write_examples
from static_charts import StaticChartRenderer
from utils import AnalysisConfig, ResultsManager, setup_logging
from visualization import FilmVisualizer

logger = logging.getLogger(__name__)

MONEY_CHARTS = [("box", "Box office", "1.c"), ("budget", "Budget", "1.d")]
SCORE_TITLE = "Figure 1.a — Distribution of prediction scores"
SCORE_LABEL = "Prediction score (0–5)"
YEAR_TITLE = "Figure 1.b — Films per release year"


def dataset_paths(config: AnalysisConfig) -> Dict[str, Path]:
    paths = {}
    for name in DATASET_LOADERS:
        try:
            paths[name] = config.dataset(name)
        except KeyError as e:
            logger.warning(str(e))
    return paths


def load_configured_data(config: AnalysisConfig) -> DashboardData:
    top_n = config.chart("genres")["top_n"]
    return load_dashboard_data(dataset_paths(config), top_n=top_n)


def _written(path: Optional[Path]) -> List[str]:
    return [str(path)] if path is not None else []


def export_charts(config: AnalysisConfig, data: DashboardData) -> Dict[str, Any]:
    """
    Write every chart as HTML and SVG.

    Args:
        config: Loaded configuration
        data: Loaded datasets

    Returns:
        Manifest mapping each chart to its row count and written files
    """
    settings = dict(theme=config.theme, charts=config.charts, source_note=config.source_note)
    visualizer = FilmVisualizer(save_dir=config.path("results", "plots"), **settings)
    renderer = StaticChartRenderer(config.path("results", "svg"), **settings)

    def html_file(name: str, figure) -> List[str]:
        if figure is None:
            return []
        return [str(visualizer.save_dir / f"{name}.html")]

    charts = {}
    movies = data.movies

    charts["genre_barplot"] = {
        "rows": len(data.genres),
        "files": html_file("genre_barplot", visualizer.plot_genre_counts(data.genres))
        + _written(renderer.render_genre_counts(data.genres)),
    }
    charts["score_plot"] = {
        "rows": int(movies["score"].notna().sum()),
        "files": html_file("score_plot", visualizer.plot_count_distribution(
            movies["score"], title=SCORE_TITLE, x_label=SCORE_LABEL))
        + _written(renderer.render_count_distribution(
            movies["score"], title=SCORE_TITLE, x_label=SCORE_LABEL)),
    }
    charts["year_plot"] = {
        "rows": len(movies),
        "files": html_file("year_plot", visualizer.plot_year_counts(movies["year"], title=YEAR_TITLE))
        + _written(renderer.render_year_counts(movies["year"], title=YEAR_TITLE)),
    }
    for column, label, figure in MONEY_CHARTS:
        stem = "boxoffice" if column == "box" else column
        for mode in ("raw", "log"):
            name = f"{stem}_plot_{mode}"
            plot = visualizer.plot_box_office if column == "box" else visualizer.plot_budget
            charts[name] = {
                "rows": len(positive_values(movies[column])),
                "files": html_file(name, plot(movies, mode))
                + _written(renderer.render_money_histogram(movies, column, label, figure, mode)),
            }
    charts["film_timeline"] = {
        "rows": len(data.timeline),
        "files": html_file("film_timeline", visualizer.plot_film_timeline(data.timeline))
        + _written(renderer.render_film_timeline(data.timeline)),
    }
    charts["film_results"] = {
        "rows": len(data.results),
        "files": html_file("film_results", visualizer.plot_film_results(data.results))
        + _written(renderer.render_film_results(data.results)),
    }
    charts["regression_results"] = {
        "rows": len(data.regression),
        "files": html_file("regression_results", visualizer.plot_regression(data.regression))
        + _written(renderer.render_regression(data.regression)),
    }

    logger.info(f"Exported {sum(len(c['files']) for c in charts.values())} chart files")
    return charts


def run_export(config: AnalysisConfig) -> Path:
    data = load_configured_data(config)
    manifest = {"charts": export_charts(config, data)}
    return ResultsManager(config).save_results(manifest, "render_manifest")


def run_serve(config: AnalysisConfig) -> None:
    from dashboard import create_app

    settings = config.dashboard_settings
    app = create_app(config, load_configured_data(config))
    logger.info(f"Serving dashboard on http://{settings['host']}:{settings['port']}")
    app.run(host=settings["host"], port=settings["port"], debug=settings["debug"])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Film prediction dashboards")
    parser.add_argument("--config", default="config/config.yaml",
                        help="Path to the YAML config file")
    parser.add_argument("--log-level", default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Override the configured log level")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("export", help="Write every chart as HTML and SVG")
    subparsers.add_parser("serve", help="Run the interactive dashboard")
    examples = subparsers.add_parser("generate-examples",
                                     help="Write the synthetic example datasets")
    examples.add_argument("--output-dir", default="data/examples")
    examples.add_argument("--seed", type=int, default=42)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "generate-examples":
        setup_logging(None, level=getattr(logging, args.log_level or "INFO"))
        write_examples(args.output_dir, random_state=args.seed)
        return 0

    try:
        config = AnalysisConfig(args.config)
        log_settings = config.logging_settings
        level = getattr(logging, args.log_level) if args.log_level else log_settings["level"]
        setup_logging(None, level=level, log_file=log_settings["file"])

        if args.command == "export":
            manifest_path = run_export(config)
            logger.info(f"Render manifest written to {manifest_path}")
        else:
            run_serve(config)
        return 0

    except Exception as e:
        logger.critical(f"Command '{args.command}' failed: {str(e)}\n{traceback.format_exc()}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
