"""
Dash application hosting the film dashboards.

Pages are routed on the URL path. The menu and the details panels are driven
by callbacks whose decisions live in small pure functions (``menu_state``,
``submenu_state``, ``page_for_path``, ``selected_index``, ``details_panel``)
so they can be tested without a browser.
"""
import logging
import re
from typing import Any, Callable, Dict, Optional, Tuple

import pandas as pd
from dash import Dash, Input, Output, State, ctx, dcc, html

from film_data import DashboardData
from film_details import render_claims_details, render_justification_details
from utils import DEFAULT_SOURCE_NOTE, DEFAULT_THEME, AnalysisConfig, merge_settings
from visualization import FilmVisualizer

logger = logging.getLogger(__name__)

NAV_LINKS = [
    ("/genres", "Genres"),
    ("/variables", "Variables"),
    ("/timeline", "Prediction timeline"),
    ("/results", "Predictions vs box office"),
    ("/regression", "Regression results"),
]

HIDDEN = {"display": "none"}
SHOWN = {"display": "block"}
BACKDROP = {"position": "fixed", "top": 0, "right": 0, "bottom": 0, "left": 0, "zIndex": 10}

BLANK_LINES = re.compile(r"\n[ \t]*(?:\n[ \t]*)+")

# Escape clicks the backdrop, which closes the menus like an outside click
ESCAPE_CLOSES_MENU = """
function(pathname) {
    if (!window.filmMenuEscapeBound) {
        document.addEventListener("keydown", function(e) {
            var backdrop = document.getElementById("menu-backdrop");
            if (e.key === "Escape" && backdrop) {
                backdrop.click();
            }
        }, true);
        window.filmMenuEscapeBound = true;
    }
    return window.dash_clientside.no_update;
}
"""


def menu_state(trigger_id: Optional[str], hidden: Optional[bool]) -> bool:
    """
    Return the menu's next ``hidden`` value. The trigger toggles it; navigation
    and the backdrop (an outside click or Escape) close it.
    """
    if trigger_id == "menu-trigger":
        return not bool(hidden)
    return True


def submenu_state(trigger_id: Optional[str], is_open: bool) -> bool:
    if trigger_id == "submenu-trigger":
        return not is_open
    return False


def selected_index(trigger_id: Optional[str], click_data: Optional[Dict[str, Any]],
                   clear_id: str) -> Optional[int]:
    """
    Row index of the clicked film.

    Args:
        trigger_id: Id of the component that fired the callback
        click_data: Plotly click payload; the row index is ``customdata[0]``
        clear_id: Id of the "clear selection" control

    Returns:
        The row index, or None when the selection was cleared or the click did
        not land on a point
    """
    if trigger_id == clear_id or not click_data:
        return None
    points = click_data.get("points") or []
    if not points:
        return None
    customdata = points[0].get("customdata")
    if not customdata:
        return None
    try:
        return int(customdata[0])
    except (TypeError, ValueError):
        return None


def details_panel(markup: Optional[str]) -> Tuple[Any, Dict[str, str]]:
    """Children and style for a details panel; None hides it."""
    if markup is None:
        return "", HIDDEN
    # a blank line would end the HTML block and hand the rest to Markdown
    markup = BLANK_LINES.sub("<br/><br/>", markup)
    return dcc.Markdown(markup, dangerously_allow_html=True), SHOWN


def film_record(films: pd.DataFrame, index: Optional[int]) -> Optional[Dict[str, Any]]:
    if index is None or films is None or not (0 <= index < len(films)):
        return None
    return films.iloc[index].to_dict()


def figure_or_empty(figure) -> Any:
    return figure if figure is not None else {}


def _graph(graph_id: str, figure) -> html.Div:
    # the graph stays in the layout so callbacks always find their output
    children = [dcc.Graph(id=graph_id, figure=figure_or_empty(figure),
                          config={"displaylogo": False},
                          style=SHOWN if figure is not None else HIDDEN)]
    if figure is None:
        children.append(html.P("No usable rows in this dataset.", className="muted"))
    return html.Div(children, className="chart-wrap")


def _toggle(toggle_id: str, label: str) -> dcc.RadioItems:
    return dcc.RadioItems(
        id=toggle_id,
        className="plot-toggle",
        options=[{"label": f"{label} (raw)", "value": "raw"},
                 {"label": f"{label} (log10)", "value": "log"}],
        value="raw",
        inline=True,
    )


class DashboardPages:
    """Builds the page layouts from the loaded data"""
    def __init__(self, data: DashboardData, visualizer: FilmVisualizer,
                 source_note: str = DEFAULT_SOURCE_NOTE):
        self.data = data
        self.visualizer = visualizer
        self.source_note = source_note

    def home(self) -> html.Div:
        return html.Div([
            html.H1("Films that predicted the future"),
            html.P("Prediction scores, box office outcomes and regression results "
                   "for a corpus of annotated films."),
            html.Ul([html.Li(dcc.Link(label, href=href)) for href, label in NAV_LINKS]),
        ], className="page home")

    def genres(self) -> html.Div:
        return html.Div([
            html.H2("Most frequent genres"),
            _graph("barplot", self.visualizer.plot_genre_counts(self.data.genres)),
        ], className="page")

    def variables(self) -> html.Div:
        movies = self.data.movies
        return html.Div([
            html.H2("Variables"),
            _graph("score-plot", self.visualizer.plot_count_distribution(
                movies["score"], title="Figure 1.a — Distribution of prediction scores",
                x_label="Prediction score (0–5)")),
            _graph("year-plot", self.visualizer.plot_year_counts(
                movies["year"], title="Figure 1.b — Films per release year")),
            _toggle("boxoffice-controls", "Box office"),
            _graph("boxoffice-plot", self.visualizer.plot_box_office(movies, "raw")),
            _toggle("budget-controls", "Budget"),
            _graph("budget-plot", self.visualizer.plot_budget(movies, "raw")),
            html.Div(self.source_note, className="figure-source"),
        ], className="page chart-wrap variables")

    def timeline(self) -> html.Div:
        return html.Div([
            html.H2("Prediction scores over time"),
            _graph("film-scatter", self.visualizer.plot_film_timeline(self.data.timeline)),
            html.Button("Clear selection", id="timeline-clear", n_clicks=0),
            html.Div(id="film-details", className="film-details", style=HIDDEN),
        ], className="page")

    def results(self) -> html.Div:
        return html.Div([
            html.H2("Prediction scores and box office"),
            _graph("results-scatter", self.visualizer.plot_film_results(self.data.results)),
            html.Button("Clear selection", id="results-clear", n_clicks=0),
            html.Div(id="results-details", className="film-details", style=HIDDEN),
        ], className="page")

    def regression(self) -> html.Div:
        return html.Div([
            html.H2("Regression results"),
            _graph("results", self.visualizer.plot_regression(self.data.regression)),
        ], className="page")

    def routes(self) -> Dict[str, Callable[[], html.Div]]:
        return {
            "/": self.home,
            "/genres": self.genres,
            "/variables": self.variables,
            "/timeline": self.timeline,
            "/results": self.results,
            "/regression": self.regression,
        }


def page_for_path(pathname: Optional[str],
                  routes: Dict[str, Callable[[], Any]]) -> Any:
    path = (pathname or "/").rstrip("/") or "/"
    page = routes.get(path)
    if page is None:
        logger.info(f"Unknown dashboard path requested: {pathname}")
        return html.Div([html.H2("Page not found"), dcc.Link("Back to home", href="/")],
                        className="page not-found")
    return page()


def _menu() -> html.Header:
    graph_links = [html.Li(dcc.Link(label, href=href, className="menu-link"))
                   for href, label in NAV_LINKS]
    return html.Header([
        html.Button("Menu", id="menu-trigger", className="menu-trigger", n_clicks=0),
        html.Nav(id="website-menu", className="menu", hidden=True, children=html.Ul([
            html.Li(dcc.Link("Home", href="/", className="menu-link")),
            html.Li(id="graphs-submenu", className="has-submenu", children=[
                html.Button("Graphs", id="submenu-trigger", className="submenu-trigger",
                            n_clicks=0),
                html.Ul(graph_links, className="submenu"),
            ]),
        ])),
    ], className="site-header", style={"position": "relative", "zIndex": 20})


def create_app(config: Optional[AnalysisConfig], data: DashboardData) -> Dash:
    """
    Build the Dash app.

    Args:
        config: Loaded configuration for theme, chart settings and source
            note, or None for the built-in defaults
        data: Loaded datasets

    Returns:
        Configured Dash application
    """
    if config is not None:
        theme, charts, source_note = config.theme, config.charts, config.source_note
    else:
        theme, charts, source_note = merge_settings(DEFAULT_THEME, None), None, DEFAULT_SOURCE_NOTE
    visualizer = FilmVisualizer(save_dir=None, theme=theme, charts=charts,
                                source_note=source_note)
    pages = DashboardPages(data, visualizer, source_note)
    max_claims = visualizer.charts["timeline"]["max_claims"]

    app = Dash(__name__, title="Film predictions", suppress_callback_exceptions=True)
    app.layout = html.Div([
        dcc.Location(id="url"),
        html.Div(id="menu-backdrop", n_clicks=0, style=HIDDEN),
        _menu(),
        html.Main(id="page-content"),
    ], style={"backgroundColor": theme["bg"], "color": theme["ink"], "minHeight": "100vh"})

    app.clientside_callback(
        ESCAPE_CLOSES_MENU,
        Output("menu-backdrop", "title"),
        Input("url", "pathname"),
    )

    @app.callback(
        Output("website-menu", "hidden"),
        Output("menu-trigger", "className"),
        Output("menu-backdrop", "style"),
        Input("menu-trigger", "n_clicks"),
        Input("menu-backdrop", "n_clicks"),
        Input("url", "pathname"),
        State("website-menu", "hidden"),
    )
    def toggle_menu(_n_clicks, _backdrop_clicks, _pathname, hidden):
        next_hidden = menu_state(ctx.triggered_id, hidden)
        if next_hidden:
            return True, "menu-trigger", HIDDEN
        return False, "menu-trigger is-open", BACKDROP

    @app.callback(
        Output("graphs-submenu", "className"),
        Input("submenu-trigger", "n_clicks"),
        Input("menu-backdrop", "n_clicks"),
        Input("url", "pathname"),
        State("graphs-submenu", "className"),
    )
    def toggle_submenu(_n_clicks, _backdrop_clicks, _pathname, class_name):
        is_open = "open" in (class_name or "").split()
        return "has-submenu open" if submenu_state(ctx.triggered_id, is_open) else "has-submenu"

    @app.callback(Output("page-content", "children"), Input("url", "pathname"))
    def render_page(pathname):
        return page_for_path(pathname, pages.routes())

    @app.callback(Output("boxoffice-plot", "figure"), Input("boxoffice-controls", "value"))
    def render_box_office(mode):
        return figure_or_empty(visualizer.plot_box_office(data.movies, mode or "raw"))

    @app.callback(Output("budget-plot", "figure"), Input("budget-controls", "value"))
    def render_budget(mode):
        return figure_or_empty(visualizer.plot_budget(data.movies, mode or "raw"))

    @app.callback(
        Output("film-details", "children"),
        Output("film-details", "style"),
        Output("film-scatter", "figure"),
        Input("film-scatter", "clickData"),
        Input("timeline-clear", "n_clicks"),
    )
    def select_timeline_film(click_data, _n_clicks):
        index = selected_index(ctx.triggered_id, click_data, "timeline-clear")
        film = film_record(data.timeline, index)
        children, style = details_panel(render_claims_details(film, max_claims=max_claims))
        return children, style, figure_or_empty(
            visualizer.plot_film_timeline(data.timeline, selected=index))

    @app.callback(
        Output("results-details", "children"),
        Output("results-details", "style"),
        Output("results-scatter", "figure"),
        Input("results-scatter", "clickData"),
        Input("results-clear", "n_clicks"),
    )
    def select_result_film(click_data, _n_clicks):
        index = selected_index(ctx.triggered_id, click_data, "results-clear")
        film = film_record(data.results, index)
        children, style = details_panel(render_justification_details(film))
        return children, style, figure_or_empty(
            visualizer.plot_film_results(data.results, selected=index))

    logger.info("Dashboard app created")
    return app
