import math
import shutil
import tempfile
import unittest
from pathlib import Path

import numpy as np
import pandas as pd

from film_data import (
    DashboardData,
    DatasetError,
    load_dashboard_data,
    load_genre_counts,
    load_regression_results,
    load_result_films,
    load_timeline_films,
    load_variable_movies,
    positive_values,
    read_raw_csv,
)


class FilmDataTestCase(unittest.TestCase):

    def setUp(self):
        """Create a scratch directory for the CSV fixtures"""
        self.tmp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def write_csv(self, name, text):
        path = self.tmp_dir / name
        path.write_text(text, encoding="utf-8")
        return path


class TestReadRawCsv(FilmDataTestCase):

    def test_cells_stay_strings(self):
        """Test numbers and NA markers are kept as written"""
        path = self.write_csv("raw.csv", "year,genre\n2001,NA\n,nan\n")
        df = read_raw_csv(path)
        self.assertEqual(df["year"].tolist(), ["2001", ""])
        self.assertEqual(df["genre"].tolist(), ["NA", "nan"])

    def test_missing_and_empty_files(self):
        with self.assertRaises(FileNotFoundError):
            read_raw_csv(self.tmp_dir / "missing.csv")
        with self.assertRaises(DatasetError):
            read_raw_csv(self.write_csv("empty.csv", ""))


class TestGenreCounts(FilmDataTestCase):

    def test_counts_sorted_with_stable_ties(self):
        """Test missing genres are dropped and ties keep first-seen order"""
        path = self.write_csv("corpus.csv", "genre\n" + "\n".join([
            "Comedy", "Drama", "Drama", "", "nan", "NA", "NA", "NA", "Sci-Fi", "Comedy", "Horror",
        ]) + "\n")
        counts = load_genre_counts(path)
        self.assertEqual(counts["genre"].tolist(), ["Comedy", "Drama", "Sci-Fi", "Horror"])
        self.assertEqual(counts["count"].tolist(), [2, 2, 1, 1])

    def test_top_n(self):
        path = self.write_csv("corpus.csv", "genre\nA\nB\nB\nC\nC\nC\n")
        counts = load_genre_counts(path, top_n=2)
        self.assertEqual(counts["genre"].tolist(), ["C", "B"])

    def test_no_genre_column(self):
        path = self.write_csv("corpus.csv", "title\nFilm\n")
        counts = load_genre_counts(path)
        self.assertTrue(counts.empty)
        self.assertEqual(list(counts.columns), ["genre", "count"])


class TestTimelineFilms(FilmDataTestCase):

    def test_records(self):
        """Test claims, outcomes and titles are parsed per film"""
        frame = pd.DataFrame([
            {"title": "", "imdb": "tt01", "year": "1999", "prediction_score": "3",
             "worldwide_gross_income_2020": "1000", "anticipatory": "1",
             "claims_json": '```json\n[{"claim_text": "Video calls"}]\n```',
             "past_outcomes": "1, NA", "present_outcomes": "[1, 0]"},
            {"title": "Second", "imdb": "tt02", "year": "2005", "prediction_score": "1.5",
             "worldwide_gross_income_2020": "", "anticipatory": "",
             "claims_json": '[{"claim_text": ', "past_outcomes": "",
             "present_outcomes": "OUTCOME=NA"},
            {"title": "Dropped", "imdb": "tt03", "year": "", "prediction_score": "2",
             "worldwide_gross_income_2020": "", "anticipatory": "0",
             "claims_json": "", "past_outcomes": "", "present_outcomes": ""},
        ])
        path = self.tmp_dir / "timeline.csv"
        frame.to_csv(path, index=False)

        films = load_timeline_films(path)
        self.assertEqual(len(films), 2)
        first, second = films.iloc[0], films.iloc[1]
        self.assertEqual(first["title"], "tt01")
        self.assertEqual(first["year"], 1999.0)
        self.assertIs(first["anticipatory"], True)
        self.assertEqual(first["claims"], [{"claim_text": "Video calls"}])
        self.assertEqual(first["past_outcomes"], [1.0, None])
        self.assertEqual(first["present_outcomes"], [1, 0])
        self.assertEqual(second["title"], "Second")
        self.assertEqual(second["claims"], [])
        self.assertIsNone(second["anticipatory"])
        self.assertTrue(math.isnan(second["gross"]))
        self.assertEqual(second["present_outcomes"], [None])

    def test_no_usable_rows(self):
        path = self.write_csv("timeline.csv", "title,year,prediction_score\nA,,1\n")
        with self.assertLogs("film_data", level="WARNING"):
            films = load_timeline_films(path)
        self.assertTrue(films.empty)


class TestResultFilms(FilmDataTestCase):

    def test_filters_score_and_box_office(self):
        path = self.write_csv("results.csv", "\n".join([
            "title,year,movie_based_score,worldwide_gross_income_2020,budget_2020,"
            "score_evaluation,anticipatory_label",
            "Kept,2001,2.5,5000000,100000,Two claims held up.,1.0",
            "Zero box,2002,3,0,1,,0",
            "No score,2003,,100,1,,1",
            "Unlabelled,2004,4,200,,,",
        ]) + "\n")
        films = load_result_films(path)
        self.assertEqual(films["title"].tolist(), ["Kept", "Unlabelled"])
        self.assertIs(films.loc[0, "anticipatory"], True)
        self.assertIsNone(films.loc[1, "anticipatory"])
        self.assertEqual(films.loc[0, "score_evaluation"], "Two claims held up.")
        self.assertTrue(math.isnan(films.loc[1, "budget"]))


class TestVariableMovies(FilmDataTestCase):

    def test_loose_parsing(self):
        """Test currency formatting is stripped and rows need a year"""
        path = self.write_csv("corpus.csv", "\n".join([
            "year,score,worldwide_gross_income_2020,budget_2020",
            '2001,3,"$1,500,000",unknown',
            ",2,100,100",
            "1999 ,x,,\"25,000\"",
        ]) + "\n")
        movies = load_variable_movies(path)
        self.assertEqual(movies["year"].tolist(), [2001.0, 1999.0])
        self.assertEqual(movies.loc[0, "box"], 1500000.0)
        self.assertTrue(math.isnan(movies.loc[0, "budget"]))
        self.assertTrue(math.isnan(movies.loc[1, "score"]))
        self.assertEqual(movies.loc[1, "budget"], 25000.0)

    def test_positive_values(self):
        series = pd.Series([100.0, 0.0, -5.0, np.nan, 1000.0])
        np.testing.assert_array_equal(positive_values(series), [100.0, 1000.0])
        np.testing.assert_array_almost_equal(positive_values(series, log=True), [2.0, 3.0])


class TestRegressionResults(FilmDataTestCase):

    def test_sorted_by_absolute_estimate(self):
        path = self.write_csv("regression.csv", "\n".join([
            "term,estimate,ci_low,ci_high,p_value",
            "Small,0.1,-0.1,0.3,0.4",
            "Large negative,-0.9,-1.2,-0.6,0.00001",
            "Broken,not estimated,,,NA",
            ",0.5,0.1,0.9,0.01",
            "Medium,0.5,0.2,0.8,NA",
        ]) + "\n")
        coefs = load_regression_results(path)
        self.assertEqual(coefs["term"].tolist(), ["Large negative", "Medium", "Small"])
        self.assertTrue(math.isnan(coefs.loc[1, "p_value"]))


class TestDashboardData(FilmDataTestCase):

    def test_missing_dataset_is_skipped(self):
        """Test one missing file leaves the other datasets loaded"""
        genres = self.write_csv("corpus.csv", "genre,year\nDrama,2001\n")
        with self.assertLogs("film_data", level="ERROR"):
            data = load_dashboard_data({
                "genres": genres,
                "movies": genres,
                "timeline": self.tmp_dir / "missing.csv",
            })
        self.assertIsInstance(data, DashboardData)
        self.assertEqual(data.genres["genre"].tolist(), ["Drama"])
        self.assertEqual(len(data.movies), 1)
        self.assertTrue(data.timeline.empty)
        self.assertIn("claims", data.timeline.columns)
        self.assertTrue(data.regression.empty)


if __name__ == '__main__':
    unittest.main()
