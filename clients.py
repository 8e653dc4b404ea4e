# clients.py
import base64
import enum
import json
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from dispatch import Scheduler
from models import Order
from net import ButtonError, Outcome, Request, Transport, TransportFailure
from retry import RetryPolicy, send_with_retry
from user_agent import UserAgent

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.usebutton.com/"

PostInstallCallback = Callable[[Optional[str], Optional[str]], None]
ErrorCallback = Callable[[Optional[ButtonError]], None]


class Service(enum.Enum):
    POST_INSTALL = "v1/web/deferred-deeplink"
    ACTIVITY = "v1/activity/order"
    ORDER = "v1/mobile-order"

    def url(self, base_url: str = DEFAULT_BASE_URL) -> str:
        return base_url.rstrip("/") + "/" + self.value


def encode_application_id(application_id: str) -> str:
    return base64.b64encode(application_id.encode("utf-8")).decode("ascii")


def build_request(
    url: str,
    user_agent: str,
    parameters: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> Request:
    h: Dict[str, str] = {"User-Agent": user_agent}
    body: Optional[bytes] = None
    if parameters is not None:
        try:
            body = json.dumps(parameters).encode("utf-8")
        except (TypeError, ValueError) as e:
            log.warning(f"[CLIENT] {url} parameters not JSON serializable, sending without body: {e}")
        else:
            h["Content-Type"] = "application/json"
    if headers:
        h.update(headers)
    return Request(url, h, body)


def parse_post_install(body: Optional[bytes]) -> Tuple[Optional[str], Optional[str]]:
    """
    {"object": {"action": "<url>", "attribution": {"btn_ref": "<token>"}}}
    Anything else -> (None, None).
    """
    if not body:
        return None, None
    try:
        j = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None, None
    if not isinstance(j, dict):
        return None, None
    obj = j.get("object")
    if not isinstance(obj, dict):
        return None, None
    action = obj.get("action")
    attribution = obj.get("attribution")
    if not isinstance(action, str) or not isinstance(attribution, dict):
        return None, None
    btn_ref = attribution.get("btn_ref")
    return action, btn_ref if isinstance(btn_ref, str) else None


class ButtonClient:
    """
    fetch_post_install_url / track_order are sent once; report_order goes
    through the retry coordinator. Every completion runs on `scheduler`.
    """

    def __init__(
        self,
        transport: Transport,
        scheduler: Scheduler,
        user_agent: UserAgent,
        base_url: str = DEFAULT_BASE_URL,
        report_policy: Optional[RetryPolicy] = None,
    ):
        self.transport = transport
        self.scheduler = scheduler
        self.user_agent = user_agent
        self.base_url = base_url
        self.report_policy = report_policy or RetryPolicy()

    def _request(
        self,
        service: Service,
        parameters: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Request:
        return build_request(
            service.url(self.base_url),
            self.user_agent.string_representation,
            parameters,
            headers,
        )

    def _send_once(self, request: Request, completion: Callable[[Outcome], None]) -> None:
        def _on_outcome(outcome: Outcome) -> None:
            self.scheduler.call_soon(completion, outcome)

        try:
            self.transport.send(request, _on_outcome)
        except Exception as e:
            log.exception(f"[CLIENT] transport raised for {request.url}")
            _on_outcome(TransportFailure(e))

    def fetch_post_install_url(
        self,
        parameters: Mapping[str, Any],
        completion: PostInstallCallback,
    ) -> None:
        request = self._request(Service.POST_INSTALL, parameters)

        def _done(outcome: Outcome) -> None:
            if not outcome.ok:
                log.info(f"[CLIENT] post-install lookup failed: {outcome.error}")
                completion(None, None)
                return
            completion(*parse_post_install(outcome.body))

        self._send_once(request, _done)

    def track_order(
        self,
        parameters: Mapping[str, Any],
        completion: Optional[ErrorCallback] = None,
    ) -> None:
        request = self._request(Service.ACTIVITY, parameters)

        def _done(outcome: Outcome) -> None:
            if not outcome.ok:
                log.warning(f"[CLIENT] track order failed: {outcome.error}")
            if completion is not None:
                completion(outcome.error)

        self._send_once(request, _done)

    def report_order(
        self,
        parameters: Mapping[str, Any],
        encoded_application_id: str,
        completion: Optional[ErrorCallback] = None,
    ) -> None:
        request = self._request(
            Service.ORDER,
            parameters,
            {"Authorization": f"Basic {encoded_application_id}:"},
        )

        def _done(outcome: Outcome) -> None:
            if not outcome.ok:
                log.warning(f"[CLIENT] report order failed: {outcome.error}")
            if completion is not None:
                completion(outcome.error)

        send_with_retry(self.transport, self.scheduler, request, _done, self.report_policy)

    def report(
        self,
        order: Order,
        encoded_application_id: str,
        completion: Optional[ErrorCallback] = None,
    ) -> None:
        self.report_order(order.to_dict(), encoded_application_id, completion)
