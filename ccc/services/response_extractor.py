"""Response extraction from scraped pane text.

The agent's reply is the block between the latest input prompt and the
one before it. Tool calls, spinners, status bars and similar UI chrome
are filtered out so only the prose remains.
"""

import logging
import time

from ccc.backends.base import TerminalBackend, TransportError

logger = logging.getLogger(__name__)

# Scrollback windows tried in order; the UI can repaint over a short window
CAPTURE_SIZES = (200, 500, 500)

PROMPT_GLYPH = "❯"

BULLET_PREFIX = "● "

SPINNER_PREFIXES = ("✶", "✢", "✽", "✻", "·", "* ")

THINKING_VERBS = ("Cogitated", "Brewed", "Cooked", "Churned", "Marinated", "Cultivated")

TOOL_SUMMARY_PREFIXES = ("Searched ", "Wrote ", "Read ")


def _is_ascii_letter(ch: str) -> bool:
    return ("A" <= ch <= "Z") or ("a" <= ch <= "z")


def _is_tool_bullet(trimmed: str) -> bool:
    """'● Bash(...)', '● Update:' and tool summaries; prose bullets pass."""
    rest = trimmed[1:].strip()
    for ch in rest:
        if ch in "(:":
            return True
        if not _is_ascii_letter(ch):
            break
    return rest.startswith(TOOL_SUMMARY_PREFIXES)


def is_ui_artifact(line: str) -> bool:
    """Whether a pane line is terminal UI rather than response text."""
    trimmed = line.strip()
    if not trimmed:
        return True

    if not trimmed.strip("─"):
        return True

    if trimmed.startswith("●") and _is_tool_bullet(trimmed):
        return True

    # Nested tool output
    if trimmed.startswith("⎿"):
        return True

    # Deeply indented tool continuation
    if line.startswith("     ") and not trimmed.startswith("●"):
        if "(ctrl+o to expand)" in trimmed or trimmed.startswith("…"):
            return True

    if trimmed.startswith(SPINNER_PREFIXES):
        return True

    # Status bar
    if trimmed.startswith("⏵"):
        return True

    # Thinking statistics: "Brewed for 1m 19s"
    if (
        " for " in trimmed
        and trimmed.endswith(("s", "m"))
        and trimmed.startswith(THINKING_VERBS)
    ):
        return True

    if "ctrl+c to interrupt" in line or "bypass permissions" in line:
        return True

    if "(ctrl+o to expand)" in trimmed:
        return True

    if trimmed.startswith("(timeout "):
        return True

    return trimmed == "(No content)"


def filter_artifacts(lines: list[str]) -> list[str]:
    """Drop UI artifact lines, keeping order."""
    return [line for line in lines if not is_ui_artifact(line)]


def _clean_line(line: str) -> str:
    trimmed = line.strip()
    if trimmed.startswith(BULLET_PREFIX):
        return trimmed[len(BULLET_PREFIX) :]
    return line


def is_echo(result: str, sent_text: str) -> bool:
    """Whether result is our own sent text, or a wrapped tail of it."""
    sent = sent_text.strip()
    if not sent or not result:
        return False
    return result == sent or sent.endswith(result) or result.endswith(sent)


def parse_response(pane_text: str, sent_text: str = "") -> str:
    """Pull the latest response out of a pane capture.

    Args:
        pane_text: Pane scrollback, oldest line first.
        sent_text: Text we sent, used to reject an echo of it.

    Returns:
        The response text, or "" when nothing usable was found.
    """
    collected: list[str] = []
    in_response = False

    for line in reversed(pane_text.split("\n")):
        if PROMPT_GLYPH in line:
            if in_response:
                break
            in_response = True
            continue

        if not in_response or not line.strip():
            continue
        if is_ui_artifact(line):
            continue
        collected.append(_clean_line(line))

    collected.reverse()
    result = "\n".join(collected).strip()

    if is_echo(result, sent_text):
        logger.debug(f"Echo of sent text detected, discarding: {result!r}")
        return ""
    return result


def extract_response(
    backend: TerminalBackend,
    tmux_name: str,
    sent_text: str = "",
    retry_delay: float = 2.0,
) -> str:
    """Capture the pane and extract the latest response, with retries.

    Each empty result widens the capture window per CAPTURE_SIZES.
    Capture failures count as empty.
    """
    for attempt, size in enumerate(CAPTURE_SIZES):
        if attempt > 0:
            logger.debug(f"Empty response from {tmux_name}, retry #{attempt} with {size} lines")
            time.sleep(retry_delay)

        try:
            pane = backend.capture_pane(tmux_name, size)
        except TransportError as e:
            logger.warning(f"Capture failed for {tmux_name}: {e}")
            continue

        result = parse_response(pane, sent_text)
        if result:
            return result

    logger.info(f"No response extracted from {tmux_name}")
    return ""
