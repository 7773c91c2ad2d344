"""
HTTP front end for the control interface.

Routes are thin: each parses its JSON body, calls one GardenController
operation and turns the Result into a response.  Failures always carry
``{"success": false, "error": <kind>, "message": <text>}`` so callers can
tell "not applied" apart from success.
"""

from __future__ import annotations

import logging

from flask import Flask, jsonify, request

from .control import ErrorKind, GardenController, Result
from .model import Valve, states_to_list

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.INVALID_VALVE: 404,
    ErrorKind.INVALID_STATE: 400,
    ErrorKind.INVALID_MODE: 400,
    ErrorKind.INVALID_SCHEDULE: 400,
    ErrorKind.REJECTED_BY_MODE: 409,
    ErrorKind.POISONED_STATE: 500,
    ErrorKind.NO_RECONCILER: 404,
}


def _failure(result: Result):
    body = {"success": False, "error": result.error.value, "message": result.message}
    return jsonify(body), ERROR_STATUS.get(result.error, 400)


def _ack(result: Result):
    if not result.ok:
        return _failure(result)
    return jsonify({"success": True})


def build_app(controller: GardenController) -> Flask:
    """Construct the Flask application around an existing controller."""
    app = Flask(__name__)
    app.controller = controller

    @app.get("/api/mode")
    def api_get_mode():
        res = controller.get_mode()
        if not res.ok:
            return _failure(res)
        return jsonify({"mode": res.value.value})

    @app.post("/api/mode")
    def api_set_mode():
        data = request.get_json(force=True) or {}
        if not isinstance(data, dict) or "mode" not in data:
            return jsonify({"success": False, "error": ErrorKind.INVALID_MODE.value, "message": "Missing mode"}), 400
        return _ack(controller.set_mode(data["mode"]))

    @app.get("/api/schedule")
    def api_get_schedule():
        res = controller.get_schedule()
        if not res.ok:
            return _failure(res)
        return jsonify(res.value.to_dict())

    @app.post("/api/schedule")
    def api_set_schedule():
        """Replace the whole schedule.

        Accepts either the bare schedule object or ``{"schedule": {...}}``.
        """
        data = request.get_json(force=True)
        if isinstance(data, dict) and isinstance(data.get("schedule"), dict):
            data = data["schedule"]
        return _ack(controller.set_schedule(data))

    @app.get("/api/valves")
    def api_get_valve_states():
        res = controller.get_valve_states()
        if not res.ok:
            return _failure(res)
        return jsonify({"valves": states_to_list(res.value), "names": [v.key for v in Valve]})

    @app.get("/api/valves/<valve>")
    def api_get_valve_state(valve: str):
        res = controller.get_valve_state(valve)
        if not res.ok:
            return _failure(res)
        return jsonify({"valve": Valve.parse(valve).key, "state": res.value.value})

    @app.post("/api/valves/<valve>")
    def api_set_valve_state(valve: str):
        data = request.get_json(force=True) or {}
        if not isinstance(data, dict) or "state" not in data:
            return jsonify({"success": False, "error": ErrorKind.INVALID_STATE.value, "message": "Missing state"}), 400
        return _ack(controller.set_valve_state(valve, data["state"]))

    @app.post("/api/reconciler/pause")
    def api_pause():
        return _ack(controller.pause_reconciler())

    @app.post("/api/reconciler/resume")
    def api_resume():
        return _ack(controller.resume_reconciler())

    @app.get("/api/status")
    def api_status():
        res = controller.status()
        if not res.ok:
            return _failure(res)
        return jsonify(res.value)

    return app
