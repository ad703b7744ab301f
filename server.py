#!/usr/bin/env python3
"""Code Studio - JSON API server."""

import logging
import os
import threading
import time
import uuid

from flask import Flask, jsonify, request

from agents.validator import validate_code, validate_runtime_safety
from core.compressor import ContextCompressor
from core.errors import StudioError
from core.memory import MemoryStore
from core.orchestrator import Orchestrator
from core.preview import LintPreview
from core.quality import score_quality
from core.state import ValidationMode
from core.versions import VersionHistory
from utils.code_cleanup import is_script

LOGGER = logging.getLogger(__name__)

app = Flask(__name__)
memory = MemoryStore.from_directory()
# Shared agents for listing; requests run on their session's orchestrator
orchestrator = Orchestrator(memory=memory)
history = []
_history_lock = threading.Lock()

# Finished requests keyed by job_id: {id: {"result": ..., "created": timestamp}}
_jobs = {}
_jobs_lock = threading.Lock()
_MAX_JOBS = 50  # prevent unbounded memory growth
_JOB_TTL = 3600  # expire jobs after 1 hour
_MAX_HISTORY = 100

# One orchestrator per client session, each with its own conversation
# context and file versions: {id: {"orchestrator": ..., "used": timestamp}}
_sessions = {}
_sessions_lock = threading.Lock()
_MAX_SESSIONS = 100
_SESSION_TTL = 3600


def _cleanup_jobs():
    """Remove expired jobs. Called under _jobs_lock."""
    now = time.time()
    expired = [jid for jid, job in _jobs.items() if now - job["created"] > _JOB_TTL]
    for jid in expired:
        del _jobs[jid]
    # If still over limit, remove oldest
    if len(_jobs) > _MAX_JOBS:
        by_age = sorted(_jobs.items(), key=lambda x: x[1]["created"])
        for jid, _ in by_age[:len(_jobs) - _MAX_JOBS]:
            del _jobs[jid]


def _store_job(result):
    """Store a job and return its ID."""
    job_id = str(uuid.uuid4())[:8]
    with _jobs_lock:
        _cleanup_jobs()
        _jobs[job_id] = {"result": result, "created": time.time()}
    return job_id


def _get_job(job_id):
    """Get the stored result for a job ID, or None if not found/expired."""
    with _jobs_lock:
        job = _jobs.get(job_id)
    if not job:
        return None
    if time.time() - job["created"] > _JOB_TTL:
        with _jobs_lock:
            _jobs.pop(job_id, None)
        return None
    return job["result"]


def _session(session_id=None):
    """Return (session_id, orchestrator), creating the session on first use."""
    now = time.time()
    with _sessions_lock:
        expired = [sid for sid, s in _sessions.items() if now - s["used"] > _SESSION_TTL]
        for sid in expired:
            del _sessions[sid]
        session = _sessions.get(session_id) if session_id else None
        if session is None:
            session_id = session_id or str(uuid.uuid4())[:8]
            session = {"orchestrator": Orchestrator(memory=memory, compressor=ContextCompressor(memory),
                                                    history=VersionHistory())}
            _sessions[session_id] = session
            if len(_sessions) > _MAX_SESSIONS:
                oldest = min((sid for sid in _sessions if sid != session_id),
                             key=lambda sid: _sessions[sid]["used"])
                del _sessions[oldest]
        session["used"] = now
    return session_id, session["orchestrator"]


def _issue_to_dict(issue):
    return {
        "rule": issue.rule,
        "message": issue.message,
        "severity": issue.severity,
        "line": issue.line,
        "suggestion": issue.suggestion,
    }


def _debug_to_dict(debug):
    if debug is None:
        return None
    diagnosis = debug.diagnosis
    return {
        "success": debug.success,
        "category": debug.category,
        "attempts": debug.attempts,
        "message": debug.message,
        "target_files": diagnosis.target_files if diagnosis else [],
        "primary_issue": diagnosis.primary_issue.pattern if diagnosis and diagnosis.primary_issue else None,
        "root_cause": diagnosis.root_cause if diagnosis else "",
        "history": [
            {"attempt": a.number, "success": a.success, "stuck": a.stuck, "error": a.error,
             "issues": [i.pattern for i in a.issues]}
            for a in debug.history
        ],
        "file_operations": [op.to_dict() for op in debug.file_operations],
    }


def _result_to_dict(result):
    """Serialize a StudioResult to a JSON-safe dict."""
    plan_result = result.plan_result
    code_result = result.code_result
    plan = quality = ux = None
    if plan_result is not None:
        plan = plan_result.plan.to_dict() if plan_result.plan else None
        if plan_result.quality is not None:
            quality = {"score": plan_result.quality.score, "passed": plan_result.quality.passed,
                       "suggestions": plan_result.quality.suggestions,
                       "refined": plan_result.refined}
        ux = plan_result.ux_design.to_dict() if plan_result.ux_design else None
    return {
        "request": result.request,
        "success": result.success,
        "message": result.message,
        "scenario": result.scenario,
        "skip_planning": bool(plan_result and plan_result.skip_planning),
        "plan": plan,
        "quality": quality,
        "ux_design": ux,
        "operation": code_result.operation if code_result else None,
        "file_operations": [op.to_dict() for op in result.file_operations],
        "failures": [{"filename": f.filename, "error": f.error}
                     for f in (code_result.failures if code_result else [])],
        "files": result.files,
        "debug": _debug_to_dict(code_result.debug if code_result else None),
        "debug_cycles": result.debug_cycles,
        "error_category": result.error_category,
        "attempts": result.attempts,
    }


def _remember(entry):
    with _history_lock:
        history.append(entry)
        del history[:-_MAX_HISTORY]


@app.route("/api/agents")
def api_agents():
    agents = [{"name": a.name, "description": a.description, "llm": True} for a in orchestrator.agents()]
    agents.extend([
        {"name": "validator", "description": "Rule-based code checks and auto-fixes", "llm": False},
        {"name": "file_scanner", "description": "Finds the file behind an error via imports", "llm": False},
    ])
    return jsonify(agents)


@app.route("/api/generate", methods=["POST"])
def api_generate():
    """Plan and write code for a request against an optional file map."""
    data = request.get_json(silent=True)
    if not data or not str(data.get("request", "")).strip():
        return jsonify({"error": "Missing request"}), 400
    files = data.get("files") or {}
    if not isinstance(files, dict):
        return jsonify({"error": "files must be an object of filename -> content"}), 400

    req = data["request"].strip()
    preview = LintPreview() if data.get("preview") else None
    session_id, session = _session(str(data.get("session_id") or "") or None)
    try:
        result = session.run(req, files, preview=preview,
                             max_debug_cycles=data.get("max_debug_cycles"))
    except StudioError as e:
        LOGGER.warning("Generate failed: %s", e)
        return jsonify({"error": str(e)}), 502

    payload = _result_to_dict(result)
    payload["session_id"] = session_id
    payload["job_id"] = _store_job(payload)
    _remember({"job_id": payload["job_id"], "request": req, "success": result.success,
               "scenario": result.scenario, "files": [op.filename for op in result.file_operations]})
    return jsonify(payload)


@app.route("/api/debug", methods=["POST"])
def api_debug():
    data = request.get_json(silent=True)
    if not data or not str(data.get("error", "")).strip():
        return jsonify({"error": "Missing error"}), 400
    files = data.get("files")
    if not files or not isinstance(files, dict):
        return jsonify({"error": "Missing files"}), 400

    session_id, session = _session(str(data.get("session_id") or "") or None)
    try:
        debug = session.debug(data["error"], files)
    except StudioError as e:
        LOGGER.warning("Debug failed: %s", e)
        return jsonify({"error": str(e)}), 502

    payload = _debug_to_dict(debug)
    payload["session_id"] = session_id
    payload["job_id"] = _store_job(payload)
    _remember({"job_id": payload["job_id"], "request": f"debug: {data['error'][:100]}",
               "success": debug.success, "scenario": "debug",
               "files": [op.filename for op in debug.file_operations]})
    return jsonify(payload)


@app.route("/api/validate", methods=["POST"])
def api_validate():
    data = request.get_json(silent=True)
    if not data or "code" not in data:
        return jsonify({"error": "Missing code"}), 400
    filename = data.get("filename") or "App.jsx"
    result = validate_code(data["code"], filename, data.get("mode", ValidationMode.FULL.value))
    payload = {
        "valid": result.valid,
        "errors": [_issue_to_dict(i) for i in result.errors],
        "warnings": [_issue_to_dict(i) for i in result.warnings],
        "fixes": result.fixes,
        "auto_fixed": result.auto_fixed,
        "code": result.code,
    }
    if is_script(filename) and isinstance(data["code"], str):
        safety = validate_runtime_safety(data["code"], filename, data.get("files"))
        payload["runtime_safe"] = safety.valid
        payload["runtime_errors"] = [_issue_to_dict(i) for i in safety.errors]
    return jsonify(payload)


@app.route("/api/score", methods=["POST"])
def api_score():
    data = request.get_json(silent=True)
    if not data or "artifact" not in data:
        return jsonify({"error": "Missing artifact"}), 400
    kind = data.get("kind", "plan")
    if kind not in ("plan", "code"):
        return jsonify({"error": f"Unknown kind: {kind}"}), 400
    quality = score_quality(data["artifact"], kind)
    return jsonify({"score": quality.score, "passed": quality.passed,
                    "suggestions": quality.suggestions, "checks": quality.checks})


@app.route("/api/status/<job_id>")
def api_status(job_id):
    result = _get_job(job_id)
    if not result:
        return jsonify({"error": "Job not found"}), 404
    return jsonify(result)


@app.route("/api/memory/stats")
def api_memory_stats():
    stats = memory.stats()
    stats["common_patterns"] = memory.get_common_bug_patterns()
    return jsonify(stats)


@app.route("/api/history")
def api_history():
    with _history_lock:
        return jsonify(list(history))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    port = int(os.environ.get("PORT", 5001))
    print(f"Code Studio API running at http://localhost:{port}")
    app.run(debug=False, port=port)
