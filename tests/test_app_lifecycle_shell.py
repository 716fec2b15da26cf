import asyncio
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock

import requests
from fastapi.testclient import TestClient

from stocktool.config.settings import Settings
from stocktool.main import _bind_offline_worker, app


def _network_session():
    session = MagicMock()
    session.get.side_effect = lambda url, headers=None, timeout=None: SimpleNamespace(
        status_code=200,
        headers={'Content-Type': 'text/html'},
        content=f'network:{url}'.encode(),
    )
    return session


class AppLifecycleShellTest(unittest.TestCase):
    def setUp(self):
        self._saved_worker = app.state.offline_worker
        self._saved_get_settings = app.state.get_settings
        self.settings = Settings(SHELL_ORIGIN='http://shell.test', SHELL_ASSETS=['/', '/index.html'])
        app.state.get_settings = lambda: self.settings

    def tearDown(self):
        app.state.offline_worker = self._saved_worker
        app.state.get_settings = self._saved_get_settings

    def test_startup_precaches_and_activates_shell(self):
        _bind_offline_worker(app, self.settings, session=_network_session())

        with TestClient(app) as client:
            status = client.get('/shell/status').json()

        self.assertEqual(status['state'], 'activated')
        self.assertTrue(status['claimed'])
        self.assertEqual(
            sorted(status['caches']['stocktool-cache-v1']),
            ['http://shell.test/', 'http://shell.test/index.html'],
        )

    def test_startup_survives_precache_failure(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError('offline')
        _bind_offline_worker(app, self.settings, session=session)

        with TestClient(app) as client:
            status = client.get('/shell/status').json()

        self.assertEqual(status['state'], 'redundant')

    def test_precache_can_be_disabled(self):
        self.settings = Settings(SHELL_PRECACHE_ON_STARTUP=False)
        session = _network_session()
        _bind_offline_worker(app, self.settings, session=session)

        with TestClient(app):
            pass

        session.get.assert_not_called()
        self.assertEqual(app.state.offline_worker.state, 'parsed')

    def test_shell_route_serves_cached_asset_and_forwards_api(self):
        session = _network_session()
        _bind_offline_worker(app, self.settings, session=session)
        asyncio.run(app.state.offline_worker.start())
        calls_after_install = session.get.call_count
        client = TestClient(app)

        asset = client.get('/shell', params={'url': '/index.html'})
        api = client.get('/shell', params={'url': '/v1/quotes'})

        self.assertEqual(asset.status_code, 200)
        self.assertEqual(asset.content, b'network:http://shell.test/index.html')
        self.assertEqual(api.content, b'network:http://shell.test/v1/quotes')
        self.assertEqual(session.get.call_count, calls_after_install + 1)

    def test_shell_route_network_failure_is_502(self):
        session = _network_session()
        _bind_offline_worker(app, self.settings, session=session)
        asyncio.run(app.state.offline_worker.start())
        session.get.side_effect = requests.ConnectionError('offline')
        client = TestClient(app)

        response = client.get('/shell', params={'url': '/v1/quotes'})

        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()['detail'], 'SHELL_FETCH_FAILED')

    def test_shell_route_refuses_foreign_url_without_fetching(self):
        self.settings = Settings(
            SHELL_ORIGIN='http://shell.test',
            SHELL_ASSETS=['/', '/index.html'],
            SHELL_POPULATE_ON_MISS=True,
        )
        session = _network_session()
        _bind_offline_worker(app, self.settings, session=session)
        asyncio.run(app.state.offline_worker.start())
        session.get.reset_mock()
        client = TestClient(app)

        response = client.get('/shell', params={'url': 'http://169.254.169.254/latest/meta-data/'})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['detail'], 'SHELL_URL_NOT_ALLOWED')
        session.get.assert_not_called()
        self.assertEqual(
            sorted(app.state.offline_worker.storage.open('stocktool-cache-v1').urls()),
            ['http://shell.test/', 'http://shell.test/index.html'],
        )


if __name__ == '__main__':
    unittest.main()
