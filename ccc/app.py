"""Flask application factory and entry point for ccc.

Wires the services together and serves two surfaces:

- Control socket: newline-delimited JSON on a Unix socket (ControlServer)
- Hook receiver: Flask app receiving Claude Code hook POSTs

Usage:
    from ccc.app import create_app
    app = create_app("config.yaml")
    app.run(port=5051)
"""

import argparse
import logging
import sys

from flask import Flask

from ccc.backends.base import HostNotConfiguredError
from ccc.models import AppConfig
from ccc.routes import register_blueprints
from ccc.services import (
    BackgroundCapture,
    ConfigService,
    ControlDispatcher,
    ControlServer,
    HistoryStore,
    HookReceiver,
    QuestionStore,
    SessionLifecycleManager,
    StateInterpreter,
    TelegramNotifier,
    TypingIndicator,
    get_event_bus,
)

logger = logging.getLogger(__name__)


def create_app(config_path: str = "config.yaml") -> Flask:
    """Create and configure the Flask application.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Configured Flask application.
    """
    config_service = ConfigService(config_path)
    config = config_service.get_config()

    app = Flask(__name__)
    app.config["TESTING"] = False

    # Store services on app for access in routes
    app.extensions["config_service"] = config_service

    _init_services(app, config_service, config)

    register_blueprints(app)

    return app


def _init_services(app: Flask, config_service: ConfigService, config: AppConfig) -> None:
    """Initialize all services and wire them together.

    Args:
        app: Flask application.
        config_service: Loaded configuration service.
        config: Application configuration.
    """
    timing = config.timing

    event_bus = get_event_bus()
    app.extensions["event_bus"] = event_bus

    history = HistoryStore(config.history_dir, event_bus=event_bus)
    history.seed_counter()
    app.extensions["history_store"] = history

    notifier = TelegramNotifier(config.telegram)
    app.extensions["notifier"] = notifier

    interpreter = StateInterpreter()
    lifecycle = SessionLifecycleManager(config_service, interpreter, notifier)
    app.extensions["lifecycle"] = lifecycle

    typing = TypingIndicator(
        notifier,
        lifecycle.probe,
        check_interval=timing.typing_check_interval,
        signal_interval=timing.typing_signal_interval,
        max_duration=timing.typing_max_duration,
    )
    app.extensions["typing_indicator"] = typing

    questions = QuestionStore()
    app.extensions["question_store"] = questions

    hook_receiver = HookReceiver(
        config_service,
        history,
        questions,
        typing=typing,
        notifier=notifier,
        echo_suppress_seconds=config.hooks.echo_suppress_seconds,
    )
    app.extensions["hook_receiver"] = hook_receiver

    capture = BackgroundCapture(
        history,
        interpreter,
        interval=timing.capture_interval,
        timeout=timing.capture_timeout,
        warmup=timing.capture_warmup,
        retry_delay=timing.extract_retry_delay,
    )

    dispatcher = ControlDispatcher(
        config_service,
        lifecycle,
        history,
        questions,
        capture,
        hooks=hook_receiver,
        typing=typing,
        notifier=notifier,
        event_bus=event_bus,
    )
    app.extensions["control_dispatcher"] = dispatcher
    app.extensions["control_server"] = ControlServer(config.socket_path, dispatcher)

    logger.info("Services initialized")


def start_background_tasks(app: Flask) -> None:
    """Start the control socket server thread.

    Args:
        app: Flask application.
    """
    control_server = app.extensions.get("control_server")
    if control_server:
        control_server.start()
        logger.info(f"Started control server thread on {control_server.socket_path}")


def _serve(app: Flask) -> int:
    config = app.extensions["config_service"].get_config()
    control_server = app.extensions["control_server"]

    start_background_tasks(app)
    try:
        if config.hooks.enabled:
            logger.info(f"Hook receiver on {config.hooks.host}:{config.hooks.port}")
            app.run(
                host=config.hooks.host,
                port=config.hooks.port,
                debug=config.debug,
                threaded=True,
                use_reloader=False,
            )
        else:
            control_server.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        control_server.stop()
    return 0


def _kill(app: Flask, session_name: str) -> int:
    lifecycle = app.extensions["lifecycle"]
    try:
        lifecycle.kill(session_name)
    except KeyError:
        print(f"session '{session_name}' not found", file=sys.stderr)
        return 1
    except HostNotConfiguredError as e:
        print(str(e), file=sys.stderr)
        return 1
    print(f"killed {session_name}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="Drive Claude Code sessions in tmux")
    parser.add_argument("--config", "-c", default="config.yaml", help="Path to config.yaml")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("serve", help="Run the control socket and hook receiver (default)")
    kill_parser = subparsers.add_parser("kill", help="Kill a session and mark it deleted")
    kill_parser.add_argument("session", help="Session name ([host:]name)")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = create_app(args.config)
    if app.extensions["config_service"].get_config().debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.command == "kill":
        return _kill(app, args.session)
    return _serve(app)


if __name__ == "__main__":
    sys.exit(main())
