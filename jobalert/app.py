import argparse
import json
from pathlib import Path

from . import __version__
from .cleanup import cleanup_expired
from .config import load_config, load_professions, save_professions, save_sources
from .cursors import CursorStore
from .env import Settings, load_env
from .errors import ConfigError, JobAlertError
from .logger import get_logger
from .notify import Dispatcher, SubscriberStore, TelegramChannel
from .pipeline import Pipeline
from .publisher import PublishStore
from .storage import KeyValueStore

logger = get_logger()


def _store(settings: Settings) -> KeyValueStore:
    return KeyValueStore(settings.database_url)


def _dispatcher(settings: Settings, kv: KeyValueStore) -> Dispatcher:
    channel = TelegramChannel(
        settings.telegram_bot_token,
        api_base=settings.telegram_api_base,
        timeout=settings.http_timeout,
    )
    return Dispatcher(PublishStore(kv, settings.pending_ttl_seconds), SubscriberStore(kv), channel)


def _read_json(path_arg: str):
    input_path = Path(path_arg)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    with input_path.open("r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise SystemExit(f"Invalid JSON in {input_path}: {e}")


def cmd_search(args: argparse.Namespace, settings: Settings) -> None:
    kv = _store(settings)
    pipeline = Pipeline(
        kv,
        retention_seconds=settings.pending_ttl_seconds,
        http_timeout=settings.http_timeout,
        max_workers=settings.max_workers,
        dispatcher=None if args.no_dispatch else _dispatcher(settings, kv),
    )
    summary = pipeline.run_cycle(load_config(kv))
    for outcome in summary.outcomes:
        if outcome.ok:
            print(f"[ok] {outcome.source_id} found={outcome.jobs_found} stored={outcome.jobs_stored}")
        else:
            print(f"[error] {outcome.source_id} -> {outcome.error}")
    print(
        f"Done. found={summary.total_jobs_found} stored={summary.total_jobs_stored} "
        f"sent={summary.notifications_sent} failed_sources={len(summary.failed_sources)}"
    )
    logger.log_metrics_summary()


def cmd_dispatch(args: argparse.Namespace, settings: Settings) -> None:
    kv = _store(settings)
    sent = _dispatcher(settings, kv).dispatch()
    print(f"Sent {sent} notifications.")


def cmd_new_jobs(args: argparse.Namespace, settings: Settings) -> None:
    jobs = PublishStore(_store(settings), settings.pending_ttl_seconds).pending()
    if args.json:
        print(json.dumps([j.to_dict() for j in jobs], indent=2, ensure_ascii=False))
        return
    if not jobs:
        print("No pending jobs.")
        return
    print(f"Found {len(jobs)} pending jobs:\n")
    for job in jobs:
        print(f"ID: {job.id}")
        print(f"  Company: {job.company}")
        print(f"  Title: {job.title}")
        print(f"  Location: {job.location}")
        print(f"  Profession: {job.profession}")
        print(f"  URL: {job.url}")
        print()


def _save_config(saver, args: argparse.Namespace, settings: Settings, kind: str) -> None:
    data = _read_json(args.input)
    try:
        items = saver(_store(settings), data)
    except ConfigError as e:
        print("Invalid:")
        for err in e.errors:
            print(f" - {err}")
        raise SystemExit(2)
    print(f"Stored {len(items)} {kind}.")


def cmd_sources(args: argparse.Namespace, settings: Settings) -> None:
    _save_config(save_sources, args, settings, "sources")


def cmd_professions(args: argparse.Namespace, settings: Settings) -> None:
    _save_config(save_professions, args, settings, "professions")


def cmd_subscribe(args: argparse.Namespace, settings: Settings) -> None:
    kv = _store(settings)
    names = [p.strip() for p in args.professions.split(",") if p.strip()]
    available = {p.name for p in load_professions(kv)}
    unknown = [n for n in names if n not in available]
    if unknown:
        raise SystemExit(f"Unknown professions: {', '.join(unknown)}")
    subscribers = SubscriberStore(kv)
    subscriber = subscribers.get_or_create(args.chat_id)
    subscriber.professions = names
    subscribers.save(subscriber)
    print(f"Subscriber {args.chat_id}: {', '.join(names) or '(none)'}")


def cmd_cursor(args: argparse.Namespace, settings: Settings) -> None:
    cursors = CursorStore(_store(settings))
    if args.reset:
        cursors.reset(args.source)
        print(f"Cursor for {args.source} reset; next poll uses today's postings only.")
        return
    cursor = cursors.get(args.source)
    if cursor is None:
        print(f"No cursor for {args.source}.")
        return
    print(f"Source: {cursor.source_id}")
    print(f"  Last job id: {cursor.last_job_id}")
    print(f"  Last check: {cursor.last_check_time}")


def cmd_cleanup(args: argparse.Namespace, settings: Settings) -> None:
    before, after = cleanup_expired(_store(settings))
    print(f"Done. removed={before - after} remaining={after}")


def cmd_serve(args: argparse.Namespace, settings: Settings) -> None:
    import uvicorn

    from .api import create_app

    uvicorn.run(create_app(settings), host=args.host, port=args.port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jobalert", description="Job alerts from Greenhouse and Lever boards")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    srch = subparsers.add_parser("search", help="Run one poll cycle over all sources, then notify subscribers")
    srch.add_argument("--no-dispatch", action="store_true", help="Only poll and store, do not send messages")
    srch.set_defaults(func=cmd_search)

    dsp = subparsers.add_parser("dispatch", help="Send pending jobs to interested subscribers")
    dsp.set_defaults(func=cmd_dispatch)

    nj = subparsers.add_parser("new-jobs", help="List jobs still pending notification")
    nj.add_argument("--json", action="store_true", help="Print as JSON array")
    nj.set_defaults(func=cmd_new_jobs)

    src = subparsers.add_parser("sources", help="Validate and store the source list from a JSON file")
    src.add_argument("--input", required=True, help="JSON file: list of sources or {\"sources\": [...]}")
    src.set_defaults(func=cmd_sources)

    prf = subparsers.add_parser("professions", help="Validate and store the profession list from a JSON file")
    prf.add_argument("--input", required=True, help="JSON file: list of professions or {\"professions\": [...]}")
    prf.set_defaults(func=cmd_professions)

    sub = subparsers.add_parser("subscribe", help="Create or update a subscriber")
    sub.add_argument("--chat-id", required=True, type=int, help="Telegram chat id")
    sub.add_argument("--professions", default="", help="Comma-separated profession names")
    sub.set_defaults(func=cmd_subscribe)

    cur = subparsers.add_parser("cursor", help="Show or reset a source cursor")
    cur.add_argument("--source", required=True, help="Source id")
    cur.add_argument("--reset", action="store_true", help="Delete the cursor")
    cur.set_defaults(func=cmd_cursor)

    cln = subparsers.add_parser("cleanup", help="Purge expired pending and delivery markers")
    cln.set_defaults(func=cmd_cleanup)

    srv = subparsers.add_parser("serve", help="Run the HTTP API")
    srv.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    srv.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    srv.set_defaults(func=cmd_serve)
    return parser


def main(argv=None):
    # Load .env if present (TELEGRAM_BOT_TOKEN, API_KEY, etc.)
    load_env()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if not hasattr(args, "func"):
        parser.print_help()
        return

    try:
        settings = Settings.from_env()
    except ConfigError as e:
        raise SystemExit(str(e))
    logger.configure(level=settings.log_level, log_dir=settings.log_dir)

    try:
        args.func(args, settings)
    except JobAlertError as e:
        logger.error("Command failed", command=args.command, error=str(e))
        raise SystemExit(f"Error: {e}")


if __name__ == "__main__":
    main()
