import logging
import shutil
import tempfile
import unittest
from pathlib import Path

import yaml

from utils import AnalysisConfig, ResultsManager, merge_settings, setup_logging


def write_config(base_dir, **overrides):
    """Write a config whose directories all live under base_dir"""
    config = {
        'paths': {
            'data': {'raw': str(base_dir / 'data' / 'raw'),
                     'examples': str(base_dir / 'data' / 'examples')},
            'results': {'plots': str(base_dir / 'results' / 'plots'),
                        'svg': str(base_dir / 'results' / 'svg'),
                        'reports': str(base_dir / 'results' / 'reports')},
        },
        'datasets': {
            'genres': str(base_dir / 'data' / 'examples' / 'corpus.csv'),
            'movies': str(base_dir / 'data' / 'examples' / 'corpus.csv'),
            'timeline': str(base_dir / 'data' / 'examples' / 'timeline.csv'),
            'results': str(base_dir / 'data' / 'examples' / 'results.csv'),
            'regression': str(base_dir / 'data' / 'examples' / 'regression.csv'),
        },
        'visualization': {'style': 'default', 'color_palette': 'deep',
                          'plotly_template': 'plotly_dark'},
        'logging': {'level': 'WARNING'},
    }
    config.update(overrides)
    path = base_dir / 'config.yaml'
    with open(path, 'w') as f:
        yaml.safe_dump(config, f)
    return path


class TestAnalysisConfig(unittest.TestCase):

    def setUp(self):
        """Create a scratch directory holding the config"""
        self.tmp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_load_creates_directories(self):
        config = AnalysisConfig(str(write_config(self.tmp_dir)))
        self.assertTrue((self.tmp_dir / 'results' / 'svg').is_dir())
        self.assertEqual(config.path('results', 'plots'), self.tmp_dir / 'results' / 'plots')
        self.assertEqual(config.dataset('timeline').name, 'timeline.csv')
        self.assertEqual(config.logging_settings['level'], logging.WARNING)

    def test_defaults_and_overrides(self):
        """Test chart and theme settings merge over the built-in defaults"""
        path = write_config(self.tmp_dir,
                            charts={'timeline': {'jitter_radius': 9}},
                            theme={'accent': '#ff0000'},
                            dashboard={'port': 9000})
        config = AnalysisConfig(str(path))
        self.assertEqual(config.chart('timeline')['jitter_radius'], 9)
        self.assertEqual(config.chart('timeline')['width'], 820)
        self.assertEqual(config.charts['results']['jitter_radius'], 7)
        self.assertEqual(config.theme['accent'], '#ff0000')
        self.assertEqual(config.theme['bg'], '#0d0d10')
        self.assertEqual(config.source_note, "Source : IMDb dataset, 2020")
        self.assertEqual(config.dashboard_settings,
                         {'host': '127.0.0.1', 'port': 9000, 'debug': False})

    def test_missing_pieces(self):
        with self.assertRaises(FileNotFoundError):
            AnalysisConfig(str(self.tmp_dir / 'missing.yaml'))

        empty = self.tmp_dir / 'empty.yaml'
        empty.write_text('')
        with self.assertRaises(ValueError):
            AnalysisConfig(str(empty))

        no_viz = self.tmp_dir / 'no_viz.yaml'
        no_viz.write_text(yaml.safe_dump({'paths': {'data': {}, 'results': {}}}))
        with self.assertRaises(KeyError):
            AnalysisConfig(str(no_viz))

        config = AnalysisConfig(str(write_config(self.tmp_dir)))
        with self.assertRaises(KeyError):
            config.dataset('unknown')
        with self.assertRaises(KeyError):
            config.path('results', 'unknown')


class TestResultsManager(unittest.TestCase):

    def setUp(self):
        self.tmp_dir = Path(tempfile.mkdtemp())
        self.manager = ResultsManager(AnalysisConfig(str(write_config(self.tmp_dir))))

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_save_and_load(self):
        manifest = {'charts': {'film_timeline': {'rows': 4, 'files': ['a.html']}}}
        path = self.manager.save_results(manifest, 'render_manifest', timestamp=False)
        self.assertEqual(path.name, 'render_manifest.json')
        self.assertEqual(self.manager.load_results('render_manifest'), manifest)

    def test_timestamped_name(self):
        path = self.manager.save_results({}, 'render_manifest')
        self.assertTrue(path.name.startswith('render_manifest_'))

    def test_load_missing(self):
        with self.assertRaises(FileNotFoundError):
            self.manager.load_results('nothing')

    def test_messages_logged_once(self):
        """Test manager messages are not repeated when root logging is configured too"""
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        log_file = self.tmp_dir / 'results' / 'logs' / 'run.log'
        try:
            config = AnalysisConfig(str(write_config(
                self.tmp_dir, logging={'level': 'INFO', 'file': str(log_file)})))
            setup_logging(None, level=logging.INFO, log_file=str(log_file))
            ResultsManager(config).save_results({}, 'render_manifest', timestamp=False)
            for handler in root.handlers + logging.getLogger('utils').handlers:
                handler.flush()
            self.assertEqual(log_file.read_text().count('Results saved to'), 1)
        finally:
            for logger in (root, logging.getLogger('utils')):
                for handler in logger.handlers:
                    handler.close()
                logger.handlers.clear()
            root.handlers.extend(saved_handlers)
            root.setLevel(saved_level)


class TestHelpers(unittest.TestCase):

    def test_merge_settings(self):
        defaults = {'a': {'b': 1, 'c': 2}, 'd': 3}
        merged = merge_settings(defaults, {'a': {'c': 5}, 'e': 6})
        self.assertEqual(merged, {'a': {'b': 1, 'c': 5}, 'd': 3, 'e': 6})
        self.assertEqual(defaults['a']['c'], 2)
        self.assertEqual(merge_settings(defaults, None), defaults)

    def test_setup_logging_file_handler(self):
        tmp_dir = Path(tempfile.mkdtemp())
        try:
            log_file = tmp_dir / 'logs' / 'run.log'
            logger = setup_logging('film_test_logger', logging.DEBUG, str(log_file))
            self.assertEqual(len(logger.handlers), 2)
            logger.info('hello')
            for handler in logger.handlers:
                handler.flush()
            self.assertIn('hello', log_file.read_text())
            # a second call replaces the handlers instead of stacking them
            logger = setup_logging('film_test_logger', logging.INFO)
            self.assertEqual(len(logger.handlers), 1)
        finally:
            for handler in logging.getLogger('film_test_logger').handlers:
                handler.close()
            logging.getLogger('film_test_logger').handlers.clear()
            shutil.rmtree(tmp_dir, ignore_errors=True)


if __name__ == '__main__':
    unittest.main()
