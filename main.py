# main.py
import sys
import json
import logging
import threading
from typing import List, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

from config import CFG, Config
from clients import ButtonClient, encode_application_id
from dispatch import DispatchQueue
from net import RequestsTransport
from retry import backoff_delay_ms
from user_agent import UserAgent


def setup_logging(level: str, log_file: Optional[str] = None) -> None:
    """
    Unified logging setup:
    - App logs -> file (optional) + console
    - Third-party noisy logs (urllib3/requests) -> WARNING+
    """
    level = level.upper()

    root = logging.getLogger()
    root.handlers.clear()  # 防止重复 addHandler
    root.setLevel(getattr(logging, level, logging.INFO))

    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s",
        "%Y-%m-%d %H:%M:%S",
    )

    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setFormatter(fmt)
        fh.setLevel(getattr(logging, level, logging.INFO))
        root.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    ch.setLevel(getattr(logging, level, logging.INFO))
    root.addHandler(ch)

    for name in ("urllib3", "requests"):
        logging.getLogger(name).setLevel(logging.WARNING)

    root.info(
        "[LOG] logging initialized "
        f"(level={level}, file={log_file or 'off'}, console=on)"
    )


log = logging.getLogger(__name__)


def build_client(cfg: Config) -> Tuple[ButtonClient, DispatchQueue, RequestsTransport]:
    transport = RequestsTransport(timeout=cfg.request_timeout_sec, max_workers=cfg.transport_workers)
    queue = DispatchQueue()
    ua = UserAgent(application_id=cfg.application_id or None, application_version=cfg.app_version or None)
    client = ButtonClient(
        transport,
        queue,
        ua,
        base_url=cfg.base_url,
        report_policy=cfg.retry_policy(),
    )
    return client, queue, transport


def wait_budget_sec(cfg: Config, retried: bool = True, slack: float = 5.0) -> float:
    """Upper bound for one logical call: every attempt timing out plus all backoff waits."""
    if not retried:
        return cfg.request_timeout_sec + slack
    policy = cfg.retry_policy()
    backoff_ms = sum(backoff_delay_ms(a, policy.base_interval_ms) for a in range(policy.max_retries))
    return (policy.max_retries + 1) * cfg.request_timeout_sec + backoff_ms / 1000.0 + slack


def main(argv: List[str]) -> int:
    """
    python main.py <order.json> [--track]

    Reports (or, with --track, tracks) the order parameters found in the
    JSON file and waits for the single completion.
    """
    setup_logging(CFG.log_level, CFG.log_file)

    args = [a for a in argv if not a.startswith("--")]
    if len(args) != 1:
        log.error("usage: main.py <order.json> [--track]")
        return 2
    with open(args[0], encoding="utf-8") as f:
        params = json.load(f)

    if "--track" not in argv and not CFG.application_id:
        log.error("[MAIN] BUTTON_APPLICATION_ID is not set")
        return 2

    client, queue, transport = build_client(CFG)
    done = threading.Event()
    result: List[Optional[Exception]] = []

    def _on_done(err):
        result.append(err)
        done.set()

    try:
        if "--track" in argv:
            client.track_order(params, _on_done)
        else:
            client.report_order(params, encode_application_id(CFG.application_id), _on_done)
        budget = wait_budget_sec(CFG, retried="--track" not in argv)
        if not done.wait(budget):
            log.error(f"[MAIN] no completion within {budget:.1f}s")
            return 1
    finally:
        queue.close()
        transport.close()

    if result[0] is not None:
        log.error(f"[MAIN] failed: {result[0]}")
        return 1
    log.info("[MAIN] ok")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
