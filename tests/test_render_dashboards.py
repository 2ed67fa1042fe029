import json
import shutil
import tempfile
import unittest
from pathlib import Path

import pandas as pd

from film_data import (
    load_genre_counts,
    load_regression_results,
    load_result_films,
    load_timeline_films,
    load_variable_movies,
)
from generate_example_data import ensure_directories, write_examples
from render_dashboards import build_parser, main
from test_utils import write_config


class TestExampleData(unittest.TestCase):

    def setUp(self):
        """Write the example datasets into a scratch directory"""
        self.tmp_dir = Path(tempfile.mkdtemp())
        self.paths = write_examples(self.tmp_dir / 'examples', random_state=7)

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_files_written(self):
        self.assertEqual(sorted(self.paths), ['corpus', 'regression', 'results', 'timeline'])
        for path in self.paths.values():
            self.assertTrue(path.exists())

    def test_seed_is_reproducible(self):
        again = write_examples(self.tmp_dir / 'again', random_state=7)
        for name, path in self.paths.items():
            self.assertEqual(path.read_text(), again[name].read_text())

    def test_loaders_clean_the_examples(self):
        """Test the deliberately messy rows are filtered by the loaders"""
        genres = load_genre_counts(self.paths['corpus'])
        self.assertLessEqual(len(genres), 15)
        self.assertFalse(genres['genre'].str.lower().isin(['', 'nan', 'na']).any())

        raw_corpus = pd.read_csv(self.paths['corpus'], dtype=str, keep_default_na=False)
        movies = load_variable_movies(self.paths['corpus'])
        self.assertEqual(len(movies), (raw_corpus['year'] != '').sum())
        self.assertGreater(movies['box'].notna().sum(), 0)

        timeline = load_timeline_films(self.paths['timeline'])
        self.assertEqual(len(timeline), 79)
        duplicated = timeline[(timeline['year'] == 1999) & (timeline['score'] == 3.0)]
        self.assertGreaterEqual(len(duplicated), 4)
        self.assertIn([], timeline['claims'].tolist())

        results = load_result_films(self.paths['results'])
        self.assertEqual(len(results), 118)

        regression = load_regression_results(self.paths['regression'])
        self.assertEqual(len(regression), 4)
        self.assertEqual(regression['term'].iloc[0], 'log10 Budget')

    def test_ensure_directories(self):
        ensure_directories(self.tmp_dir / 'project')
        self.assertTrue((self.tmp_dir / 'project' / 'results' / 'svg').is_dir())
        self.assertTrue((self.tmp_dir / 'project' / 'data' / 'examples').is_dir())


class TestCommandLine(unittest.TestCase):

    def setUp(self):
        self.tmp_dir = Path(tempfile.mkdtemp())
        self.config_path = write_config(self.tmp_dir)

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_parser(self):
        args = build_parser().parse_args(['--log-level', 'DEBUG', 'export'])
        self.assertEqual(args.command, 'export')
        self.assertEqual(args.config, 'config/config.yaml')
        with self.assertRaises(SystemExit):
            build_parser().parse_args([])

    def test_generate_then_export(self):
        """Test the full export writes HTML, SVG and a manifest"""
        examples = self.tmp_dir / 'data' / 'examples'
        self.assertEqual(main(['--log-level', 'WARNING', 'generate-examples',
                               '--output-dir', str(examples)]), 0)
        self.assertEqual(main(['--config', str(self.config_path),
                               '--log-level', 'WARNING', 'export']), 0)

        plots = self.tmp_dir / 'results' / 'plots'
        svg = self.tmp_dir / 'results' / 'svg'
        for name in ['genre_barplot', 'score_plot', 'year_plot', 'boxoffice_plot_raw',
                     'boxoffice_plot_log', 'budget_plot_raw', 'budget_plot_log',
                     'film_timeline', 'film_results', 'regression_results']:
            self.assertTrue((plots / f'{name}.html').exists(), name)
            self.assertTrue((svg / f'{name}.svg').exists(), name)

        manifests = list((self.tmp_dir / 'results' / 'reports').glob('render_manifest_*.json'))
        self.assertEqual(len(manifests), 1)
        with open(manifests[0]) as f:
            manifest = json.load(f)
        self.assertEqual(manifest['charts']['regression_results']['rows'], 4)
        self.assertEqual(len(manifest['charts']['film_timeline']['files']), 2)

        # money charts count only the positive values they plot
        movies = load_variable_movies(examples / 'corpus.csv')
        for name, column in [('boxoffice_plot_raw', 'box'), ('budget_plot_log', 'budget')]:
            self.assertEqual(manifest['charts'][name]['rows'], int((movies[column] > 0).sum()))
        self.assertLess(manifest['charts']['boxoffice_plot_raw']['rows'],
                        manifest['charts']['year_plot']['rows'])

    def test_export_with_missing_datasets(self):
        """Test charts without data are skipped rather than failing the export"""
        self.assertEqual(main(['--config', str(self.config_path),
                               '--log-level', 'CRITICAL', 'export']), 0)
        self.assertEqual(list((self.tmp_dir / 'results' / 'plots').iterdir()), [])

    def test_bad_config(self):
        self.assertEqual(main(['--config', str(self.tmp_dir / 'missing.yaml'),
                               '--log-level', 'CRITICAL', 'export']), 1)


if __name__ == '__main__':
    unittest.main()
