import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import pytest
import requests

from tbmm.utils import DEFAULT_CONFIG, ENV_OVERRIDES


class FakeResponse:
    """Just enough of requests.Response for the API clients"""

    def __init__(self, status_code: int = 200, payload: Any = None, text: str = "",
                 headers: Optional[Dict[str, str]] = None, reason: str = "OK"):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.reason = reason
        if headers is None:
            headers = {"Content-Type": "application/json"} if payload is not None else {}
        self.headers = headers

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} {self.reason}", response=self)


@dataclass
class RequestCall:
    method: str
    url: str
    kwargs: Dict[str, Any]


@dataclass
class RequestRecorder:
    """Stands in for requests.request/get/head and records every call"""

    responder: Callable[[str, str, Dict[str, Any]], FakeResponse]
    method: Optional[str] = None
    calls: List[RequestCall] = field(default_factory=list)

    def __call__(self, *args, **kwargs) -> FakeResponse:
        if self.method is None:
            method, url = args[0], args[1]
        else:
            method, url = self.method, args[0]
        self.calls.append(RequestCall(method=method, url=url, kwargs=kwargs))
        return self.responder(method, url, kwargs)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for env_name, _section, _key in ENV_OVERRIDES:
        monkeypatch.delenv(env_name, raising=False)


@pytest.fixture()
def config(tmp_path) -> Dict[str, Any]:
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["storage"]["dir"] = str(tmp_path / "state")
    cfg["logging"]["dir"] = str(tmp_path / "logs")
    return cfg
