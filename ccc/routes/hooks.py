"""Hooks routes for Claude Code lifecycle events.

These endpoints receive HTTP POST requests from Claude Code hooks in
local sessions, giving a synchronous capture path next to pane scraping.

Endpoints:
- POST /hook/stop               - Turn completed, reply in transcript
- POST /hook/user-prompt-submit - Prompt submitted in the terminal
- POST /hook/question           - AskUserQuestion raised
- GET  /hook/status             - Hook receiver status
"""

import json
import logging

from flask import Blueprint, current_app, jsonify, request

hooks_bp = Blueprint("hooks", __name__)

logger = logging.getLogger(__name__)


def _log_hook_request(event_type: str, data: dict) -> None:
    """Log hook request with full data for debugging."""
    cwd = data.get("cwd", "")
    cwd_short = cwd.rstrip("/").split("/")[-1] if cwd else "no-cwd"
    logger.info(f"[HOOK] {event_type} | cwd={cwd_short}")
    logger.debug(f"[HOOK] {event_type} full data: {json.dumps(data, default=str)}")


def _get_hook_receiver():
    """Get the HookReceiver from app extensions."""
    return current_app.extensions.get("hook_receiver")


def _get_config():
    """Get the app config from extensions."""
    config_service = current_app.extensions.get("config_service")
    return config_service.get_config() if config_service else None


def _process(event_type: str):
    data = request.get_json(silent=True) or {}
    _log_hook_request(event_type, data)

    config = _get_config()
    if config and not config.hooks.enabled:
        logger.info(f"[HOOK] {event_type} REJECTED: hooks disabled")
        return jsonify({"status": "disabled", "message": "Hooks are disabled"}), 200

    hook_receiver = _get_hook_receiver()
    if not hook_receiver:
        logger.error(f"[HOOK] {event_type} FAILED: hook receiver not available")
        return jsonify({"status": "error", "message": "Hook receiver not available"}), 200

    result = hook_receiver.process_event(event_type=event_type, data=data)
    logger.info(
        f"[HOOK] {event_type} RESULT: success={result.success}, "
        f"session={result.session or 'none'}, message={result.message}"
    )

    return jsonify(
        {
            "status": "ok" if result.success else "error",
            "session": result.session,
            "message": result.message,
        }
    )


@hooks_bp.route("/stop", methods=["POST"])
def hook_stop():
    """Handle stop hook from Claude Code.

    Called when Claude finishes a turn.

    Request body:
        {
            "cwd": "string",
            "transcript_path": "string",
            "message": "string (optional, overrides the transcript)"
        }

    Returns:
        JSON with processing result.
    """
    return _process("stop")


@hooks_bp.route("/user-prompt-submit", methods=["POST"])
def hook_user_prompt_submit():
    """Handle user_prompt_submit hook from Claude Code.

    Request body:
        {
            "cwd": "string",
            "prompt": "string"
        }
    """
    return _process("user-prompt-submit")


@hooks_bp.route("/question", methods=["POST"])
def hook_question():
    """Handle PreToolUse hook for AskUserQuestion.

    Request body:
        {
            "cwd": "string",
            "tool_input": {"questions": [{"question", "header", "multiSelect", "options"}]}
        }
    """
    return _process("question")


@hooks_bp.route("/status", methods=["GET"])
def hook_status():
    """Get hook receiver status.

    Returns:
        JSON with:
        - enabled: Whether hooks are enabled in config
        - receiving_hooks: Whether any hook has arrived
        - last_event_time: Unix timestamp of last event
        - event_count: Total events processed
        - sessions_with_questions: Sessions with pending questions
    """
    config = _get_config()
    hooks_enabled = config.hooks.enabled if config else True

    hook_receiver = _get_hook_receiver()
    if not hook_receiver:
        return jsonify(
            {
                "enabled": hooks_enabled,
                "receiving_hooks": False,
                "message": "Hook receiver not initialized",
            }
        )

    status = hook_receiver.get_status()
    status["enabled"] = hooks_enabled

    return jsonify(status)
