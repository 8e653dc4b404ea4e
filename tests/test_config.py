import logging

import pytest

from config import Config
from main import build_client, setup_logging, wait_budget_sec
from retry import RetryPolicy


def test_config_builds_retry_policy():
    cfg = Config(report_max_retries=5, report_retry_interval_ms=250)
    assert cfg.retry_policy() == RetryPolicy(5, 250)


def test_build_client_wires_config():
    cfg = Config(
        base_url="https://api.test/",
        application_id="app-1",
        app_version="9.9",
        report_max_retries=2,
        report_retry_interval_ms=50,
        request_timeout_sec=1.5,
        transport_workers=2,
    )
    client, queue, transport = build_client(cfg)
    try:
        assert client.base_url == "https://api.test/"
        assert client.report_policy == RetryPolicy(2, 50)
        assert client.scheduler is queue
        assert transport.timeout == 1.5
        assert "app-1/9.9" in client.user_agent.string_representation
    finally:
        queue.close()
        transport.close()


def test_setup_logging_console_only():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        setup_logging("debug")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert logging.getLogger("urllib3").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


def test_wait_budget_covers_every_attempt_and_backoff():
    cfg = Config(request_timeout_sec=2.0, report_max_retries=3, report_retry_interval_ms=100)
    # 4 attempts * 2s + (0.1 + 0.2 + 0.4)s + 5s slack
    assert wait_budget_sec(cfg) == pytest.approx(13.7)
    assert wait_budget_sec(cfg, retried=False) == pytest.approx(7.0)
