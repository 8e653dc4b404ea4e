# config.py
import os
from dataclasses import dataclass

from retry import RetryPolicy


@dataclass
class Config:
    # runtime
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "button_merchant.log")

    # endpoints / keys
    base_url: str = os.getenv("BUTTON_API_BASE", "https://api.usebutton.com/")
    application_id: str = os.getenv("BUTTON_APPLICATION_ID", "")
    app_version: str = os.getenv("APP_VERSION", "")

    # report retry budget
    report_max_retries: int = int(os.getenv("REPORT_MAX_RETRIES", "3"))
    report_retry_interval_ms: int = int(os.getenv("REPORT_RETRY_INTERVAL_MS", "100"))

    # transport
    request_timeout_sec: float = float(os.getenv("REQUEST_TIMEOUT_SEC", "10.0"))
    transport_workers: int = int(os.getenv("TRANSPORT_WORKERS", "4"))

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.report_max_retries,
            base_interval_ms=self.report_retry_interval_ms,
        )


CFG = Config()
