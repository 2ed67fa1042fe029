import shutil
import tempfile
import unittest
from pathlib import Path

import numpy as np
import pandas as pd

from static_charts import StaticChartRenderer
from test_visualization import make_results, make_timeline


class TestStaticChartRenderer(unittest.TestCase):

    def setUp(self):
        """Set up a renderer writing SVG files into a scratch directory"""
        self.tmp_dir = Path(tempfile.mkdtemp())
        self.renderer = StaticChartRenderer(self.tmp_dir / "svg")
        self.movies = pd.DataFrame({
            "year": [1999.0, 2001.0, 2001.0, 2010.0],
            "score": [1.0, 3.0, 3.0, 5.0],
            "box": [1e6, 5e7, 0.0, np.nan],
            "budget": [2e5, np.nan, 3e7, 1e8],
        })

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def assertSvg(self, path, name):
        self.assertEqual(path, self.tmp_dir / "svg" / f"{name}.svg")
        self.assertTrue(path.exists())
        self.assertIn("<svg", path.read_text(encoding="utf-8"))

    def test_bar_charts(self):
        counts = pd.DataFrame({"genre": ["Drama", "Sci-Fi", "Horror"], "count": [9, 4, 4]})
        self.assertSvg(self.renderer.render_genre_counts(counts), "genre_barplot")
        self.assertSvg(self.renderer.render_count_distribution(
            self.movies["score"], title="Scores", x_label="Score"), "score_plot")
        self.assertSvg(self.renderer.render_year_counts(self.movies["year"], title="Years"),
                       "year_plot")

    def test_money_histograms(self):
        """Test both raw and log renditions get their own file"""
        self.assertSvg(self.renderer.render_money_histogram(
            self.movies, "box", "Box office", "1.c", "raw"), "boxoffice_plot_raw")
        self.assertSvg(self.renderer.render_money_histogram(
            self.movies, "budget", "Budget", "1.d", "log"), "budget_plot_log")

    def test_scatterplots(self):
        self.assertSvg(self.renderer.render_film_timeline(make_timeline()), "film_timeline")
        self.assertSvg(self.renderer.render_film_results(make_results()), "film_results")

    def test_regression(self):
        coefs = pd.DataFrame({
            "term": ["Budget", "Score"],
            "estimate": [0.8, -0.2],
            "ci_low": [0.6, -0.5],
            "ci_high": [1.0, 0.1],
            "p_value": [0.00001, 0.2],
        })
        self.assertSvg(self.renderer.render_regression(coefs), "regression_results")

    def test_empty_inputs_write_nothing(self):
        self.assertIsNone(self.renderer.render_genre_counts(pd.DataFrame(columns=["genre", "count"])))
        self.assertIsNone(self.renderer.render_film_timeline(make_timeline().iloc[0:0]))
        self.assertIsNone(self.renderer.render_regression(None))
        self.assertIsNone(self.renderer.render_count_distribution([np.nan], title="x", x_label="x"))
        self.assertEqual(list((self.tmp_dir / "svg").iterdir()), [])


if __name__ == '__main__':
    unittest.main()
