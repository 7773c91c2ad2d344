"""requests-based client for the gardenpi HTTP API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests

from . import __version__
from .errors import GardenError, InvalidSchedule, InvalidValve, PoisonedState, RejectedByMode
from .model import Mode, Schedule, Valve, ValveState

DEFAULT_URL = "http://127.0.0.1:50050"

_ERRORS = {
    "invalid_valve": InvalidValve,
    "invalid_schedule": InvalidSchedule,
    "rejected_by_mode": RejectedByMode,
    "poisoned_state": PoisonedState,
}


class GardenClient:
    def __init__(self, base_url: str = DEFAULT_URL, timeout: float = 10, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": f"gardenpi-client/{__version__}"})

    def _request(self, method: str, path: str, payload: Any = None) -> Dict[str, Any]:
        """Send a request and return the decoded JSON body.

        Error bodies produced by the server are raised as the matching
        GardenError subclass; anything else goes through raise_for_status().
        """
        resp = self.session.request(method, self.base_url + path, json=payload, timeout=self.timeout)
        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("error"):
                exc = _ERRORS.get(body["error"])
                if exc is InvalidValve:
                    raise InvalidValve(path.rsplit("/", 1)[-1])
                if exc is not None:
                    raise exc(body.get("message", ""))
                raise GardenError(body.get("message") or body["error"])
            resp.raise_for_status()
        return resp.json()

    def get_mode(self) -> Mode:
        return Mode.parse(self._request("GET", "/api/mode")["mode"])

    def set_mode(self, mode: Any) -> None:
        self._request("POST", "/api/mode", {"mode": Mode.parse(mode).value})

    def get_schedule(self) -> Schedule:
        return Schedule.from_dict(self._request("GET", "/api/schedule"))

    def set_schedule(self, schedule: Schedule) -> bool:
        body = self._request("POST", "/api/schedule", schedule.to_dict())
        return bool(body.get("success"))

    def set_valve_state(self, valve: Any, state: Any) -> bool:
        """Returns False when the server rejects the write in scheduled mode."""
        v = Valve.parse(valve)
        try:
            body = self._request("POST", f"/api/valves/{v.key}", {"state": ValveState.parse(state).value})
        except RejectedByMode:
            return False
        return bool(body.get("success"))

    def get_valve_state(self, valve: Any) -> ValveState:
        v = Valve.parse(valve)
        return ValveState.parse(self._request("GET", f"/api/valves/{v.key}")["state"])

    def get_valve_states(self) -> List[ValveState]:
        return [ValveState.parse(s) for s in self._request("GET", "/api/valves")["valves"]]

    def pause(self) -> None:
        self._request("POST", "/api/reconciler/pause")

    def resume(self) -> None:
        self._request("POST", "/api/reconciler/resume")

    def status(self) -> Dict[str, Any]:
        return self._request("GET", "/api/status")

    def close(self) -> None:
        self.session.close()
