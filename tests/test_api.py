import pytest

from urlrisk import api
from urlrisk.app.corroboration import Corroborator, CorroborationRateLimited
from urlrisk.models import Classification, CorroborationResult


class StubCorroborator(Corroborator):
    def __init__(self, verdict=Classification.MALICIOUS, error=None):
        self.verdict = verdict
        self.error = error
        self.calls = []

    def classify(self, url, features=None):
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return CorroborationResult(
            classification=self.verdict,
            confidence=88.0,
            category="phishing",
            reasoning=("stubbed",),
            source="stub",
        )


@pytest.fixture
def client(monkeypatch):
    api.app.config['TESTING'] = True
    api.limiter.enabled = False
    monkeypatch.setattr(api, 'corroborator', None)
    monkeypatch.setattr(api, 'API_KEY', None)
    with api.app.test_client() as c:
        yield c


def test_health(client):
    rv = client.get('/health')
    assert rv.status_code == 200
    assert rv.get_json()['status'] == 'ok'


def test_scan_returns_local_verdict(client):
    rv = client.post('/scan', json={'url': 'https://github.com/'})
    assert rv.status_code == 200
    d = rv.get_json()
    assert d['url'] == 'https://github.com/'
    assert d['local']['classification'] == 'safe'
    assert 0 <= d['local']['confidence'] <= 100
    assert 'features' in d['local']
    assert d['corroboration'] == {'status': 'disabled'}
    assert d['agreement'] is None


def test_scan_strips_whitespace(client):
    rv = client.post('/scan', json={'url': '  http://bit.ly/abc123  '})
    assert rv.status_code == 200
    assert rv.get_json()['local']['classification'] == 'suspicious'


@pytest.mark.parametrize('body', [
    {},
    {'url': ''},
    {'url': '   '},
    {'url': 42},
    {'link': 'https://github.com/'},
])
def test_scan_rejects_bad_input(client, body):
    rv = client.post('/scan', json=body)
    assert rv.status_code == 400
    assert 'error' in rv.get_json()


def test_scan_rejects_non_json(client):
    rv = client.post('/scan', data='not json', content_type='text/plain')
    assert rv.status_code == 400


def test_scan_reports_both_verdicts_on_disagreement(client, monkeypatch):
    stub = StubCorroborator(verdict=Classification.MALICIOUS)
    monkeypatch.setattr(api, 'corroborator', stub)
    rv = client.post('/scan', json={'url': 'https://github.com/'})
    d = rv.get_json()
    assert d['local']['classification'] == 'safe'
    assert d['corroboration']['status'] == 'ok'
    assert d['corroboration']['classification'] == 'malicious'
    assert d['agreement'] is False
    assert stub.calls == ['https://github.com/']


def test_scan_survives_corroboration_failure(client, monkeypatch):
    monkeypatch.setattr(api, 'corroborator',
                        StubCorroborator(error=CorroborationRateLimited('slow down')))
    rv = client.post('/scan', json={'url': 'http://192.168.1.1/login'})
    assert rv.status_code == 200
    d = rv.get_json()
    assert d['local']['classification'] in ('suspicious', 'malicious')
    assert d['corroboration']['status'] == 'unavailable'
    assert d['corroboration']['reason'] == 'rate_limited'
    assert d['corroboration']['notice'] == 'corroboration unavailable'


def test_scan_can_skip_corroboration(client, monkeypatch):
    stub = StubCorroborator()
    monkeypatch.setattr(api, 'corroborator', stub)
    rv = client.post('/scan', json={'url': 'https://github.com/', 'corroborate': False})
    assert rv.get_json()['corroboration'] == {'status': 'disabled'}
    assert stub.calls == []


def test_extract(client):
    rv = client.post('/extract', json={'url': 'http://192.168.1.1/login'})
    assert rv.status_code == 200
    feats = rv.get_json()['features']
    assert feats['having_ip'] == 1
    assert feats['uses_https'] == 0


def test_batch_preserves_order(client):
    urls = ['https://github.com/', 'http://evil.com/*{x}', '']
    rv = client.post('/batch', json={'urls': urls})
    assert rv.status_code == 200
    d = rv.get_json()
    assert d['total'] == 3
    assert [r['url'] for r in d['results']] == urls
    assert d['results'][0]['local']['classification'] == 'safe'
    assert d['results'][1]['local']['classification'] == 'malicious'
    assert d['results'][2]['local']['features']['parse_failed'] == 1
    assert d['summary']['safe'] == 1
    assert d['summary']['suspicious'] == 1
    assert d['summary']['malicious'] == 1
    assert d['summary']['error'] == 0
    assert 'analyzed_at' in d


@pytest.mark.parametrize('body', [
    {'urls': []},
    {'urls': 'https://github.com/'},
    {'urls': ['https://github.com/', 7]},
    {'urls': ['https://example.com/%d' % i for i in range(101)]},
    {},
])
def test_batch_rejects_bad_input(client, body):
    rv = client.post('/batch', json=body)
    assert rv.status_code == 400


def test_batch_accepts_maximum_size(client):
    urls = ['https://example.com/%d' % i for i in range(100)]
    rv = client.post('/batch', json={'urls': urls})
    assert rv.status_code == 200
    assert len(rv.get_json()['results']) == 100


def test_policy_config(client):
    rv = client.get('/config/policy')
    assert rv.status_code == 200
    d = rv.get_json()
    assert d['suspicious_threshold'] == 35.0
    assert d['malicious_threshold'] == 60.0
    assert d['weights']['having_ip'] == d['weights']['missing_https']


def test_api_key_required_when_configured(client, monkeypatch):
    monkeypatch.setattr(api, 'API_KEY', 'sekret')
    rv = client.post('/scan', json={'url': 'https://github.com/'})
    assert rv.status_code == 401
    assert rv.get_json()['error'] == 'unauthorized'

    rv = client.post('/scan', json={'url': 'https://github.com/'},
                     headers={'X-API-Key': 'sekret'})
    assert rv.status_code == 200
    # health stays open
    assert client.get('/health').status_code == 200
