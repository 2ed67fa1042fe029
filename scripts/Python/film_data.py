"""
Dataset loaders for the film dashboards.

Each loader reads one CSV with every cell kept as a raw string, coerces the
fields its chart needs and drops the rows it cannot plot. Missing columns read
as empty, so their values come out as NaN or None instead of raising.
"""
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Union

import numpy as np
import pandas as pd

from field_parsing import (
    is_missing_text,
    parse_anticipatory,
    parse_anticipatory_label,
    parse_json_list,
    parse_num,
    parse_outcome_list,
    to_num,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

TIMELINE_COLUMNS = ["title", "year", "score", "gross", "anticipatory",
                    "claims", "past_outcomes", "present_outcomes"]
RESULT_COLUMNS = ["title", "year", "score", "boxoffice", "budget",
                  "score_evaluation", "anticipatory"]
VARIABLE_COLUMNS = ["year", "score", "box", "budget"]
REGRESSION_COLUMNS = ["term", "estimate", "ci_low", "ci_high", "p_value"]


class DatasetError(Exception):
    """Raised when a CSV cannot be read as a table at all"""
    def __init__(self, message: str):
        self.message = message
        logger.error(f"DatasetError: {message}")
        super().__init__(self.message)


def read_raw_csv(path: PathLike) -> pd.DataFrame:
    """
    Read a CSV keeping every cell as the string found in the file.

    Args:
        path: CSV file path

    Returns:
        DataFrame of strings, empty cells as ""

    Raises:
        FileNotFoundError: If the file does not exist
        DatasetError: If the file has no header row
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Dataset not found at {path}")
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError as e:
        raise DatasetError(f"{path} has no header row: {str(e)}")
    logger.info(f"Loaded {len(df)} rows from {path}")
    return df


def _column(df: pd.DataFrame, name: str) -> pd.Series:
    if name in df.columns:
        return df[name]
    logger.debug(f"Column '{name}' missing, reading it as empty")
    return pd.Series([""] * len(df), index=df.index, dtype=object)


def _film_title(row: pd.Series) -> str:
    for key in ("title", "imdb"):
        value = row.get(key, "")
        if value:
            return value
    return "Unknown title"


def _warn_if_empty(df: pd.DataFrame, what: str) -> pd.DataFrame:
    if df.empty:
        logger.warning(f"No usable films ({what}).")
    return df.reset_index(drop=True)


def load_genre_counts(path: PathLike, top_n: int = 15) -> pd.DataFrame:
    """
    Count films per genre and keep the most frequent ones.

    Blank and ``nan`` genres are dropped before counting and the ``na`` genre
    afterwards. Ties keep the order in which the genres first appear.

    Args:
        path: Path to the annotated corpus CSV
        top_n: Number of genres to keep

    Returns:
        DataFrame with columns ``genre`` and ``count``
    """
    raw = read_raw_csv(path)
    genres = _column(raw, "genre")
    genres = genres[~genres.map(is_missing_text).astype(bool)]
    if genres.empty:
        logger.warning("No usable genres in dataset.")
        return pd.DataFrame({"genre": pd.Series(dtype=str), "count": pd.Series(dtype=int)})

    counts = genres.groupby(genres, sort=False).size()
    counts = counts[counts.index.str.lower() != "na"]
    counts = counts.sort_values(ascending=False, kind="stable").head(top_n)

    out = pd.DataFrame({"genre": counts.index.astype(str), "count": counts.values.astype(int)})
    if out.empty:
        logger.warning("No usable genres in dataset.")
    return out


def load_timeline_films(path: PathLike) -> pd.DataFrame:
    """Films with release year, prediction score and their structured claims."""
    raw = read_raw_csv(path)
    records = []
    for _, row in raw.iterrows():
        year = to_num(row.get("year", ""))
        score = to_num(row.get("prediction_score", ""))
        if math.isnan(year) or math.isnan(score):
            continue
        records.append({
            "title": _film_title(row),
            "year": year,
            "score": score,
            "gross": to_num(row.get("worldwide_gross_income_2020", "")),
            "anticipatory": parse_anticipatory(row.get("anticipatory", "")),
            "claims": parse_json_list(row.get("claims_json", "")) or [],
            "past_outcomes": parse_outcome_list(row.get("past_outcomes", "")),
            "present_outcomes": parse_outcome_list(row.get("present_outcomes", "")),
        })
    films = pd.DataFrame.from_records(records, columns=TIMELINE_COLUMNS)
    return _warn_if_empty(films, "year + prediction_score")


def load_result_films(path: PathLike) -> pd.DataFrame:
    """Films with a movie-based score and a positive worldwide box office."""
    raw = read_raw_csv(path)
    films = pd.DataFrame({
        "title": raw.apply(_film_title, axis=1) if len(raw) else pd.Series(dtype=object),
        "year": _column(raw, "year").map(to_num),
        "score": _column(raw, "movie_based_score").map(to_num),
        "boxoffice": _column(raw, "worldwide_gross_income_2020").map(to_num),
        "budget": _column(raw, "budget_2020").map(to_num),
        "score_evaluation": _column(raw, "score_evaluation").astype(str),
        "anticipatory": _column(raw, "anticipatory_label").map(parse_anticipatory_label),
    }, columns=RESULT_COLUMNS)

    keep = np.isfinite(films["score"].astype(float)) & (films["boxoffice"].astype(float) > 0)
    return _warn_if_empty(films[keep], "score + boxoffice")


def load_variable_movies(path: PathLike) -> pd.DataFrame:
    """Loosely parsed year, score, box office and budget; rows need a year."""
    raw = read_raw_csv(path)
    movies = pd.DataFrame({
        "year": _column(raw, "year").map(parse_num),
        "score": _column(raw, "score").map(parse_num),
        "box": _column(raw, "worldwide_gross_income_2020").map(parse_num),
        "budget": _column(raw, "budget_2020").map(parse_num),
    }, columns=VARIABLE_COLUMNS).astype(float)
    return _warn_if_empty(movies[np.isfinite(movies["year"])], "year")


def load_regression_results(path: PathLike) -> pd.DataFrame:
    """
    Regression coefficients with confidence intervals.

    Rows need a term and finite estimate and interval bounds; the result is
    sorted by absolute estimate, largest effect first.
    """
    raw = read_raw_csv(path)
    coefs = pd.DataFrame({
        "term": _column(raw, "term").astype(str),
        "estimate": _column(raw, "estimate").map(to_num),
        "ci_low": _column(raw, "ci_low").map(to_num),
        "ci_high": _column(raw, "ci_high").map(to_num),
        "p_value": _column(raw, "p_value").map(to_num),
    }, columns=REGRESSION_COLUMNS)

    bounds = coefs[["estimate", "ci_low", "ci_high"]].astype(float)
    keep = (coefs["term"] != "") & np.isfinite(bounds).all(axis=1)
    coefs = coefs[keep].copy()
    coefs["abs_estimate"] = coefs["estimate"].astype(float).abs()
    coefs = coefs.sort_values("abs_estimate", ascending=False, kind="stable")
    coefs = coefs.drop(columns="abs_estimate").reset_index(drop=True)
    if coefs.empty:
        logger.warning("No usable regression terms in dataset.")
    return coefs


def positive_values(series: pd.Series, log: bool = False) -> np.ndarray:
    """Finite, strictly positive values of a column, optionally as log10."""
    values = pd.to_numeric(series, errors="coerce").to_numpy(dtype=float)
    values = values[np.isfinite(values) & (values > 0)]
    return np.log10(values) if log else values


@dataclass
class DashboardData:
    """Every dataset the dashboards draw from; a dataset that failed to load is empty"""
    genres: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=["genre", "count"]))
    movies: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=VARIABLE_COLUMNS))
    timeline: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=TIMELINE_COLUMNS))
    results: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=RESULT_COLUMNS))
    regression: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=REGRESSION_COLUMNS))


DATASET_LOADERS = {
    "genres": load_genre_counts,
    "movies": load_variable_movies,
    "timeline": load_timeline_films,
    "results": load_result_films,
    "regression": load_regression_results,
}


def load_dashboard_data(paths: Dict[str, PathLike], top_n: int = 15) -> DashboardData:
    """
    Load every configured dataset.

    Each chart stands on its own, so a dataset that is missing or unreadable
    is logged and left empty rather than stopping the others.

    Args:
        paths: Dataset name (genres, movies, timeline, results, regression) to CSV path
        top_n: Number of genres to keep

    Returns:
        DashboardData with one frame per dataset
    """
    data = DashboardData()
    for name, loader in DATASET_LOADERS.items():
        if name not in paths:
            logger.warning(f"No path configured for dataset '{name}'")
            continue
        try:
            if name == "genres":
                frame = loader(paths[name], top_n=top_n)
            else:
                frame = loader(paths[name])
        except (FileNotFoundError, DatasetError) as e:
            logger.error(f"Skipping dataset '{name}': {str(e)}")
            continue
        setattr(data, name, frame)
    return data
