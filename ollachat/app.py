# ollachat/app.py
from __future__ import annotations
import argparse, logging, platform, signal, sys
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import List, Optional

from .constants import APP_NAME, __version__
from .core.conversation import Conversation, TurnResult
from .core.session import SessionManager
from .core.settings import Settings
from .infra.llm.ollama_client import OllamaClient
from .infra.llm.ollama_registry import fetch_model_names, refresh_models, resolve_model
from .logging_config import init_logging
from .media_helper import load_images
from .paths import app_settings_path, chat_settings_path, default_data_dir, log_paths
from .settings import load_settings, set_backend_url

COMMANDS = "/models  list models   /reset  new chat   /quit  exit"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog=APP_NAME.lower(), description=f"{APP_NAME} terminal client for a local Ollama server")
    p.add_argument("--base-url", type=str, default=None, help="Ollama server URL, e.g. http://127.0.0.1:11434 (remembered)")
    p.add_argument("--model", type=str, default=None, help="Model to chat with (remembered)")
    p.add_argument("--system-prompt", type=str, default=None, help="System prompt (remembered)")
    p.add_argument("--temperature", type=float, default=None, help="Sampling temperature (remembered)")
    p.add_argument("--num-ctx", type=int, default=None, help="Context window size (remembered)")
    p.add_argument("--no-stream", action="store_true", help="Wait for the whole reply instead of streaming")
    p.add_argument("--image", action="append", default=[], metavar="PATH", help="Attach an image to the first prompt")
    p.add_argument("--list-models", action="store_true", help="Print available models and exit")

    # logging / paths
    p.add_argument("--data-dir", type=str, default=None, help="Override data directory")
    p.add_argument("--log-level", type=str, default=None, help="DEBUG, INFO, WARNING, ERROR")
    p.add_argument("--no-console-log", action="store_true", help="Disable console logging")
    return p.parse_args(argv)


def apply_overrides(args: argparse.Namespace, session: SessionManager) -> None:
    if args.model:
        session.set_model_id(args.model)
    if args.system_prompt is not None:
        session.set_system_prompt(args.system_prompt)
    if args.temperature is not None:
        session.set_temperature(args.temperature)
    if args.num_ctx is not None:
        session.set_num_ctx(args.num_ctx)
    if args.no_stream:
        # per-run only; not persisted
        session.prefs.streaming = False


@contextmanager
def ctrl_c_cancels(conversation: Conversation):
    """While a reply streams, Ctrl+C stops the stream instead of the program."""
    def _handler(signum, frame):
        conversation.cancel()
    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _print_delta(delta: str) -> None:
    sys.stdout.write(delta)
    sys.stdout.flush()


def run_turn(conversation: Conversation, text: str, images=()) -> TurnResult:
    # blocking requests never check the token; Ctrl+C keeps its default there
    streaming = conversation.session.prefs.streaming
    with ctrl_c_cancels(conversation) if streaming else nullcontext():
        result = conversation.send(text, images, on_delta=_print_delta)
    if not streaming and result.text:
        sys.stdout.write(result.text)
    sys.stdout.write("\n")
    if result.notice:
        print(f"[system] {result.notice}")
    return result


def repl(conversation: Conversation, client: OllamaClient, pending_images=()) -> int:
    log = logging.getLogger("boot")
    model = conversation.session.get_model_id()
    print(f"{APP_NAME} {__version__} · model {model} · {COMMANDS}")
    images = list(pending_images)
    while True:
        try:
            text = input(f"\n{model}> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return 0
        if not text:
            continue
        if text == "/quit":
            return 0
        if text == "/reset":
            conversation.reset()
            print("[system] New chat started.")
            continue
        if text == "/models":
            names = refresh_models(conversation.session, client)
            model = conversation.session.get_model_id()
            print("\n".join(f"{'*' if n == model else ' '} {n}" for n in names) or "No models found")
            continue
        run_turn(conversation, text, images)
        images = []
        log.debug("Transcript now holds %d messages", len(conversation.transcript))


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    data_dir = Path(args.data_dir).expanduser().resolve() if args.data_dir else default_data_dir()
    logs_dir, log_path = log_paths(data_dir)
    cfg_path = app_settings_path(data_dir)
    cfg = load_settings(cfg_path)
    if args.base_url:
        cfg = set_backend_url(cfg_path, cfg, args.base_url)

    level = (args.log_level or cfg["logging"]["level"]).upper()
    init_logging(
        logs_dir,
        level=level,
        max_bytes=int(cfg["logging"]["max_bytes"]),
        backup_count=int(cfg["logging"]["backup_count"]),
        also_console=(not args.no_console_log),
    )
    log = logging.getLogger("boot")
    log.info("=== %s %s starting ===", APP_NAME, __version__)
    log.info("Platform: %s | Python: %s", platform.platform(), platform.python_version())
    log.info("Data dir: %s | Log file: %s", data_dir, log_path)

    client = OllamaClient(cfg["backend"]["base_url"], timeout=int(cfg["backend"]["timeout"]))
    if args.list_models:
        names = fetch_model_names(client)
        print("\n".join(names) if names else "No models found")
        return 0 if names else 1

    session = SessionManager(Settings(chat_settings_path(data_dir)))
    apply_overrides(args, session)
    resolve_model(session, client)
    log.info("Backend: %s | Model: %s", client.base_url, session.get_model_id())

    images, errors = load_images(args.image)
    for err in errors:
        print(f"[system] {err}")

    return repl(Conversation(client, session), client, images)


if __name__ == "__main__":
    raise SystemExit(main())
