import json
import logging
from pathlib import Path
from typing import Dict, Union

import numpy as np
import pandas as pd

from utils import setup_logging

logger = logging.getLogger(__name__)

GENRES = ["Drama", "Sci-Fi", "Thriller", "Action", "Comedy", "Horror",
          "Adventure", "Animation", "Mystery", "Romance", "Fantasy",
          "Crime", "Documentary", "Biography", "War", "Western", "Musical"]

CLAIM_TEXTS = [
    "Video calls replace most office meetings",
    "Personal computers fit in a pocket",
    "Cars drive themselves on public roads",
    "Large language models hold conversations",
    "Genetic screening of embryos becomes routine",
    "Mass surveillance through networked cameras",
    "Commercial space tourism",
    "Robots work alongside people in warehouses",
]

OUTCOME_FORMATS = ["json", "comma", "space", "semicolon", "labelled"]
# plain JSON, fenced JSON, truncated JSON
CLAIM_STYLES = [0, 0, 1, 2, 0, 1]


def ensure_directories(base_dir: Union[str, Path] = '.') -> None:
    """Create necessary directories if they don't exist"""
    directories = [
        'data/raw',
        'data/examples',
        'results/plots',
        'results/svg',
        'results/reports',
        'results/logs',
        'config'
    ]

    for directory in directories:
        (Path(base_dir) / directory).mkdir(parents=True, exist_ok=True)


def _money(rng: np.random.Generator, low: float, high: float) -> float:
    return float(np.round(10 ** rng.uniform(np.log10(low), np.log10(high)), -3))


def _money_text(value: float, style: int) -> str:
    """Money cell in one of the spellings found in exported spreadsheets"""
    if style == 0:
        return f"${value:,.0f}"
    if style == 1:
        return f"{value:,.0f}"
    return f"{value:.0f}"


def generate_corpus(n_films: int = 200, random_state: int = 42) -> pd.DataFrame:
    """
    Annotated film corpus used by the genre and variables charts.

    Genres include blank and ``nan`` cells and the ``NA`` placeholder; money
    columns mix ``$``, thousands separators and bare numbers.
    """
    rng = np.random.default_rng(random_state)

    weights = np.linspace(2.0, 0.3, len(GENRES))
    genres = rng.choice(GENRES, size=n_films, p=weights / weights.sum()).astype(object)
    for i, placeholder in zip(rng.choice(n_films, size=12, replace=False),
                              ["", "nan", "NaN", "NA"] * 3):
        genres[i] = placeholder

    years = rng.integers(1950, 2021, size=n_films)
    scores = rng.integers(0, 6, size=n_films)
    box = [_money(rng, 2e5, 3e9) for _ in range(n_films)]
    budget = [_money(rng, 1e5, 4e8) for _ in range(n_films)]

    df = pd.DataFrame({
        'imdb': [f"tt{1000000 + i}" for i in range(n_films)],
        'title': [f"Film {i + 1}" for i in range(n_films)],
        'genre': genres,
        'year': years.astype(str),
        'score': scores.astype(str),
        'worldwide_gross_income_2020': [_money_text(v, i % 3) for i, v in enumerate(box)],
        'budget_2020': [_money_text(v, (i + 1) % 3) for i, v in enumerate(budget)],
    })

    # missing money and year cells
    df.loc[rng.choice(n_films, size=10, replace=False), 'worldwide_gross_income_2020'] = ""
    df.loc[rng.choice(n_films, size=10, replace=False), 'budget_2020'] = "unknown"
    df.loc[rng.choice(n_films, size=3, replace=False), 'year'] = ""
    return df


def _claims_cell(claims, style: int) -> str:
    payload = json.dumps(claims)
    if style == 0:
        return payload
    if style == 1:
        return f"```json\n{payload}\n```"
    # truncated payload, dropped by the loader
    return payload[:len(payload) // 2]


def _outcomes_cell(values, fmt: str) -> str:
    tokens = ["NA" if v is None else str(v) for v in values]
    if fmt == "json":
        return json.dumps(values)
    if fmt == "comma":
        return ", ".join(tokens)
    if fmt == "space":
        return " ".join(tokens)
    if fmt == "semicolon":
        return ";".join(tokens)
    return " ".join("OUTCOME=NA" if v is None else f"OUTCOME={v}" for v in values)


def generate_timeline(n_films: int = 80, random_state: int = 42) -> pd.DataFrame:
    """
    Films with claims about the future and how those claims turned out.

    A handful of rows repeat the same (year, score) pair so that the scatter
    has overlapping points to fan out.
    """
    rng = np.random.default_rng(random_state)
    rows = []
    for i in range(n_films):
        n_claims = int(rng.integers(0, 8))
        claims = [{"claim_text": str(rng.choice(CLAIM_TEXTS))} for _ in range(n_claims)]
        past = [None if rng.random() < 0.15 else int(rng.integers(0, 2)) for _ in range(n_claims)]
        present = [None if rng.random() < 0.1 else int(rng.integers(0, 2)) for _ in range(n_claims)]
        fmt = OUTCOME_FORMATS[i % len(OUTCOME_FORMATS)]
        rows.append({
            'imdb': f"tt{2000000 + i}",
            'title': f"Future Film {i + 1}" if i % 9 else "",
            'year': str(int(rng.integers(1960, 2020))),
            'prediction_score': f"{rng.integers(0, 21) / 4:.2f}",
            'worldwide_gross_income_2020': f"{_money(rng, 1e6, 2e9):.0f}",
            'anticipatory': str(rng.choice(["1", "0", "1", ""])),
            'claims_json': _claims_cell(claims, CLAIM_STYLES[i % len(CLAIM_STYLES)]),
            'past_outcomes': _outcomes_cell(past, fmt),
            'present_outcomes': _outcomes_cell(present, fmt),
        })

    df = pd.DataFrame(rows)
    # duplicate (year, score) positions
    df.loc[1:4, 'year'] = "1999"
    df.loc[1:4, 'prediction_score'] = "3.00"
    df.loc[n_films - 1, 'prediction_score'] = "n/a"
    return df


def generate_results(n_films: int = 120, random_state: int = 42) -> pd.DataFrame:
    """Films with a movie-based score, box office, budget and the score's rationale"""
    rng = np.random.default_rng(random_state)
    scores = rng.integers(0, 11, size=n_films) / 2
    df = pd.DataFrame({
        'imdb': [f"tt{3000000 + i}" for i in range(n_films)],
        'title': [f"Result Film {i + 1}" for i in range(n_films)],
        'year': rng.integers(1960, 2020, size=n_films).astype(str),
        'movie_based_score': [f"{s:.1f}" for s in scores],
        'worldwide_gross_income_2020': [f"{_money(rng, 5e5, 3e9):.0f}" for _ in range(n_films)],
        'budget_2020': [f"{_money(rng, 1e5, 4e8):.0f}" for _ in range(n_films)],
        'score_evaluation': [
            f"{int(k)} of the film's claims matched later technology." if k else ""
            for k in rng.integers(0, 6, size=n_films)
        ],
        'anticipatory_label': rng.choice(["1", "0", "1.0", ""], size=n_films),
    })
    # the same score and box office twice, and rows the loader drops
    df.loc[1, ['movie_based_score', 'worldwide_gross_income_2020']] = \
        df.loc[0, ['movie_based_score', 'worldwide_gross_income_2020']].values
    df.loc[2, 'worldwide_gross_income_2020'] = "0"
    df.loc[3, 'movie_based_score'] = ""
    return df


def generate_regression() -> pd.DataFrame:
    """Coefficient table of a box-office model, with one unusable row"""
    return pd.DataFrame([
        {'term': 'Prediction score', 'estimate': '0.412', 'ci_low': '0.188',
         'ci_high': '0.636', 'p_value': '0.0003'},
        {'term': 'Anticipatory film', 'estimate': '-0.271', 'ci_low': '-0.598',
         'ci_high': '0.056', 'p_value': '0.104'},
        {'term': 'log10 Budget', 'estimate': '0.836', 'ci_low': '0.701',
         'ci_high': '0.971', 'p_value': '0.00001'},
        {'term': 'Release year', 'estimate': '0.009', 'ci_low': '-0.004',
         'ci_high': '0.022', 'p_value': '0.18'},
        {'term': 'Sequel', 'estimate': 'not estimated', 'ci_low': '',
         'ci_high': '', 'p_value': 'NA'},
    ])


def write_examples(output_dir: Union[str, Path] = 'data/examples',
                   random_state: int = 42) -> Dict[str, Path]:
    """
    Write the example datasets.

    Args:
        output_dir: Directory for the CSV files
        random_state: Seed shared by every generator

    Returns:
        Mapping of dataset name to written path
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    frames = {
        'corpus': generate_corpus(random_state=random_state),
        'timeline': generate_timeline(random_state=random_state),
        'results': generate_results(random_state=random_state),
        'regression': generate_regression(),
    }

    written = {}
    for name, df in frames.items():
        path = output_dir / f"{name}.csv"
        df.to_csv(path, index=False)
        logger.info(f"Saved example dataset to {path}")
        written[name] = path
    return written


def main():
    setup_logging(None, level=logging.INFO)
    ensure_directories()
    write_examples()


if __name__ == "__main__":
    main()
