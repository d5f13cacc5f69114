"""Outbound chat notifier (Telegram Bot API).

The chat platform is only an observer here: text relays and a "typing"
activity signal, posted into the forum topic linked to a session.
Failures are logged and never raised to callers.
"""

import logging

import requests

from ccc.models.config import TelegramConfig

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Posts messages and chat actions to a Telegram forum group."""

    def __init__(self, config: TelegramConfig, session: requests.Session | None = None):
        """Initialize the notifier.

        Args:
            config: Bot token, group id and API settings.
            session: Optional requests session (injected in tests).
        """
        self._config = config
        self._http = session or requests.Session()

    @property
    def enabled(self) -> bool:
        """Check if the notifier has what it needs to post."""
        return bool(self._config.enabled and self._config.bot_token and self._config.group_id)

    def _call(self, method: str, params: dict) -> bool:
        """Call a Bot API method.

        Args:
            method: API method name (e.g. "sendMessage").
            params: Form parameters.

        Returns:
            True if Telegram accepted the call.
        """
        if not self.enabled:
            return False

        url = f"{self._config.api_base}/bot{self._config.bot_token}/{method}"
        try:
            response = self._http.post(url, data=params, timeout=self._config.timeout)
        except requests.RequestException as e:
            logger.warning(f"Telegram {method} failed: {e}")
            return False

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code != 200 or not body.get("ok", False):
            logger.warning(
                f"Telegram {method} error {response.status_code}: "
                f"{body.get('description', response.text[:200])}"
            )
            return False
        return True

    def _params(self, conversation_ref: int) -> dict:
        params: dict = {"chat_id": str(self._config.group_id)}
        if conversation_ref > 0:
            params["message_thread_id"] = str(conversation_ref)
        return params

    def send_message(self, conversation_ref: int, text: str) -> bool:
        """Post text into the session's topic."""
        params = self._params(conversation_ref)
        params["text"] = text
        return self._call("sendMessage", params)

    def send_typing(self, conversation_ref: int) -> bool:
        """Show the "typing" activity in the session's topic."""
        params = self._params(conversation_ref)
        params["action"] = "typing"
        return self._call("sendChatAction", params)
