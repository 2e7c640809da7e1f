import json
import os
import unittest
from unittest import mock

import requests

from urlrisk.app.corroboration import (
    ChatCompletionCorroborator,
    CorroborationQuotaExceeded,
    CorroborationRateLimited,
    CorroborationTimeout,
    CorroborationUnavailable,
    InvalidCorroboration,
    build_corroborator,
    parse_verdict,
)
from urlrisk.app.scanner import corroborate
from urlrisk.app.heuristics import analyze_url
from urlrisk.extract_features import extract_features
from urlrisk.models import Classification


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no body")
        return self._payload


def _completion(content):
    return {"choices": [{"message": {"content": content}}]}


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.requests = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.requests.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response


def _client(session):
    return ChatCompletionCorroborator("https://ai.example/v1/chat", "key-123",
                                      model="test-model", timeout=2.5, session=session)


class TestParseVerdict(unittest.TestCase):
    def test_valid_answer(self):
        res = parse_verdict(json.dumps({
            "prediction": "Malicious",
            "confidence": 91.34,
            "category": "credential phishing",
            "reasoning": ["brand in subdomain", "no https"],
        }), source="m")
        self.assertEqual(res.classification, Classification.MALICIOUS)
        self.assertEqual(res.confidence, 91.3)
        self.assertEqual(res.category, "credential phishing")
        self.assertEqual(res.reasoning, ("brand in subdomain", "no https"))
        self.assertEqual(res.source, "m")

    def test_reasoning_string_and_missing_category(self):
        res = parse_verdict('{"prediction": "safe", "confidence": 70, "reasoning": "ok"}')
        self.assertIsNone(res.category)
        self.assertEqual(res.reasoning, ("ok",))

    def test_rejects_bad_answers(self):
        for content in (
            "not json",
            "[1, 2]",
            '{"prediction": "dangerous", "confidence": 50}',
            '{"prediction": "safe", "confidence": 150}',
            '{"prediction": "safe", "confidence": "high"}',
        ):
            with self.assertRaises(InvalidCorroboration):
                parse_verdict(content)


class TestChatCompletionCorroborator(unittest.TestCase):
    def test_successful_call(self):
        session = FakeSession(FakeResponse(200, _completion(
            '{"prediction": "suspicious", "confidence": 64, "reasoning": ["x"]}')))
        res = _client(session).classify("http://bit.ly/x", extract_features("http://bit.ly/x"))
        self.assertEqual(res.classification, Classification.SUSPICIOUS)
        self.assertEqual(res.source, "test-model")

        sent = session.requests[0]
        self.assertEqual(sent["url"], "https://ai.example/v1/chat")
        self.assertEqual(sent["headers"]["Authorization"], "Bearer key-123")
        self.assertEqual(sent["timeout"], 2.5)
        self.assertEqual(sent["json"]["model"], "test-model")
        self.assertEqual(sent["json"]["response_format"], {"type": "json_object"})
        self.assertIn("shortened=True", sent["json"]["messages"][0]["content"])
        self.assertIn("http://bit.ly/x", sent["json"]["messages"][1]["content"])

    def test_status_codes_map_to_errors(self):
        cases = [
            (429, CorroborationRateLimited, "rate_limited"),
            (402, CorroborationQuotaExceeded, "quota_exceeded"),
            (500, CorroborationUnavailable, "unavailable"),
            (401, CorroborationUnavailable, "unavailable"),
        ]
        for status, exc_type, reason in cases:
            with self.assertRaises(exc_type) as ctx:
                _client(FakeSession(FakeResponse(status))).classify("http://a.com")
            self.assertEqual(ctx.exception.reason, reason)

    def test_transport_errors(self):
        with self.assertRaises(CorroborationTimeout) as ctx:
            _client(FakeSession(exc=requests.Timeout("slow"))).classify("http://a.com")
        self.assertEqual(ctx.exception.reason, "timeout")

        with self.assertRaises(CorroborationUnavailable):
            _client(FakeSession(exc=requests.ConnectionError("down"))).classify("http://a.com")

    def test_malformed_body(self):
        for payload in (None, {}, {"choices": []}, _completion("nope")):
            with self.assertRaises(InvalidCorroboration):
                _client(FakeSession(FakeResponse(200, payload))).classify("http://a.com")


class TestCorroborateHelper(unittest.TestCase):
    def test_failure_keeps_local_verdict_and_adds_notice(self):
        local = analyze_url("http://192.168.1.1/login")
        client = _client(FakeSession(FakeResponse(429)))
        with self.assertLogs("scanner", level="WARNING"):
            opinion = corroborate(local.url, local, client)
        self.assertEqual(opinion["status"], "unavailable")
        self.assertEqual(opinion["reason"], "rate_limited")
        self.assertEqual(opinion["notice"], "corroboration unavailable")

    def test_disabled_without_client(self):
        local = analyze_url("https://github.com/")
        self.assertEqual(corroborate(local.url, local, None), {"status": "disabled"})


class TestBuildCorroborator(unittest.TestCase):
    def test_unconfigured(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertIsNone(build_corroborator())

    def test_configured(self):
        env = {
            "URLRISK_AI_ENDPOINT": "https://ai.example/v1/chat",
            "URLRISK_AI_API_KEY": "k",
            "URLRISK_AI_MODEL": "m",
            "URLRISK_AI_TIMEOUT": "3",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            client = build_corroborator()
        self.assertIsInstance(client, ChatCompletionCorroborator)
        self.assertEqual(client.model, "m")
        self.assertEqual(client.timeout, 3.0)

    def test_bad_timeout_falls_back(self):
        env = {
            "URLRISK_AI_ENDPOINT": "https://ai.example/v1/chat",
            "URLRISK_AI_API_KEY": "k",
            "URLRISK_AI_TIMEOUT": "soon",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            client = build_corroborator()
        self.assertEqual(client.timeout, 10.0)


if __name__ == '__main__':
    unittest.main()
