"""
Command-line interface for fastlog.

Builds the configuration and the selected DAL once, then hands them to the
core functions. Validation, state and database statement errors exit with
status 1, an unreachable remote store with status 2.
"""
import argparse
import sys
from typing import Callable, List, Optional

from fastlog.config import AppConfig, Settings
from fastlog.core import fast, logbook
from fastlog.core.errors import FastlogError, StorageUnavailable
from fastlog.core.estimator import OpenAIEstimator, estimate_calories, estimate_exercise_calories
from fastlog.data_access.dal import DataAccessLayer
from fastlog.data_access.factory import get_dal
from fastlog.data_access.postgres_dal import PostgresDal
from fastlog.infra import log_utils

TARGET_FAST_HOURS = 16


def _fmt(config: AppConfig, instant) -> str:
    return instant.astimezone(config.timezone).strftime("%Y-%m-%d %H:%M")


def _estimator(config: AppConfig) -> OpenAIEstimator:
    s = config.settings
    return OpenAIEstimator(config.openai_api_key, model=s.OPENAI_MODEL, api_url=s.OPENAI_API_URL)


# --- fast -----------------------------------------------------------------------
def cmd_fast(args, config: AppConfig, dal: DataAccessLayer) -> None:
    when = fast.parse_time_input(args.time, config.timezone) if args.time else None
    if args.action == "start":
        started = fast.start_fast(dal, when)
        print(f"Fast started at {_fmt(config, started)}")
        print('Use "fastlog fast end" to complete your fast')
    elif args.action == "end":
        done = fast.end_fast(dal, when)
        print(f"Fast completed at {_fmt(config, done.end_time)}")
        print(f"Duration: {done.duration_hours} hours")
        if done.duration_hours >= TARGET_FAST_HOURS:
            print(f"You reached the {TARGET_FAST_HOURS}-hour fasting goal!")
    elif args.action == "status":
        current = fast.get_current_fast(dal)
        if current is None:
            print("Status: NOT FASTING")
            return
        hours = fast.elapsed_hours(current)
        print(f"Status: FASTING ({hours}h elapsed, started {_fmt(config, current.start_time)})")
        if hours < TARGET_FAST_HOURS:
            print(f"{TARGET_FAST_HOURS - hours:.1f}h remaining to reach {TARGET_FAST_HOURS}h")
    else:  # history
        for session in fast.get_fast_history(dal):
            print(f"{_fmt(config, session.start_time)} -> {_fmt(config, session.end_time)}  {session.duration_hours}h")
        stats = fast.get_fast_stats(dal)
        print(f"Completed: {stats.count}  average: {stats.average}h  longest: {stats.max}h  shortest: {stats.min}h")


# --- logging food, weight, exercise ------------------------------------------
def cmd_food(args, config: AppConfig, dal: DataAccessLayer) -> None:
    kind = args.command
    calories = args.calories
    if calories is None:
        calories = estimate_calories(_estimator(config), args.description, kind, args.size, config.unit_system)
    log = logbook.log_meal if kind == "meal" else logbook.log_drink
    entry = log(dal, args.description, calories)
    print(f"{kind.capitalize()} logged: {entry.description} ({entry.calories} cal)")


def cmd_weight(args, config: AppConfig, dal: DataAccessLayer) -> None:
    result = logbook.log_weight(dal, args.value, config.weight_unit)
    print(f"Weight logged: {result.stored}")
    if result.original != result.stored:
        print(f"(converted from {result.original})")


def cmd_exercise(args, config: AppConfig, dal: DataAccessLayer) -> None:
    minutes = logbook.parse_duration(args.duration)
    calories = args.calories
    if calories is None:
        weights = logbook.get_weight_history(dal)
        weight = f"{weights[-1].weight:g} {config.weight_unit}" if weights else None
        calories = estimate_exercise_calories(_estimator(config), args.description, minutes, weight)
    entry = logbook.log_exercise(dal, args.description, minutes, calories)
    print(f"Exercise logged: {entry.description} ({entry.duration_minutes:g} min, {entry.calories_burned} calories burned)")


# --- views ----------------------------------------------------------------------
def cmd_today(args, config: AppConfig, dal: DataAccessLayer) -> None:
    entries = logbook.get_todays_entries(dal, config.timezone)
    exercises = logbook.get_todays_exercises(dal, config.timezone)
    if not entries and not exercises:
        print("Nothing logged today")
        return
    for e in entries:
        cal = "?" if e.calories is None else e.calories
        print(f"{_fmt(config, e.timestamp)}  {e.kind:<5} {e.description} ({cal} cal)")
    for x in exercises:
        print(f"{_fmt(config, x.timestamp)}  exercise {x.description} ({x.duration_minutes:g} min, {x.calories_burned} cal)")
    eaten = sum(e.calories or 0 for e in entries)
    burned = sum(x.calories_burned or 0 for x in exercises)
    print(f"Total calories today: {eaten} eaten, {burned} burned")


def cmd_history(args, config: AppConfig, dal: DataAccessLayer) -> None:
    print("Calories eaten per day:")
    for day in logbook.get_calorie_history(dal):
        print(f"  {day.date}  {day.total}")
    print("Calories burned per day:")
    for day in logbook.get_exercise_history(dal):
        print(f"  {day.date}  {day.total}")
    print(f"Weights ({config.weight_unit}):")
    for w in logbook.get_weight_history(dal):
        print(f"  {_fmt(config, w.timestamp)}  {w.weight:g}")


# --- configuration ---------------------------------------------------------------
def cmd_config(args, config: AppConfig) -> None:
    setters = {
        "storage": config.set_storage_mode,
        "units": config.set_unit_system,
        "weight-unit": config.set_weight_unit,
        "timezone": config.set_timezone,
        "database-url": config.set_database_url,
        "openai-key": config.set_openai_key,
    }
    if args.key != "show":
        if not args.value:
            raise SystemExit(f"fastlog config {args.key} needs a value")
        setters[args.key](args.value)
        print(f"Saved {args.key}.")
    print(f"Config file:  {config.settings.config_path}")
    print(f"Storage mode: {config.resolve_storage_mode()}")
    print(f"Unit system:  {config.unit_system} (weight in {config.weight_unit})")
    print(f"Timezone:     {config.timezone_name or 'system default'}")


def cmd_db(args, config: AppConfig) -> None:
    url = config.database_url
    if not url:
        raise SystemExit("No database URL configured. Set DATABASE_URL or run 'fastlog config database-url <url>'.")
    dal = PostgresDal(url)
    try:
        if args.action == "init":
            dal.init_schema()
            print("Tables created.")
        else:
            print("Connection OK" if dal.check_connection() else "Connection FAILED")
    finally:
        dal.close()


def cmd_clean(args, config: AppConfig, dal: DataAccessLayer) -> None:
    if not args.yes:
        answer = input("This deletes all meals, weights, fasts and exercises. Proceed? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Clean cancelled.")
            return
    logbook.clear_all_data(dal)
    if args.config:
        config.reset_user_config()
        print("All data and configuration deleted.")
    else:
        print("Meals, weight, fast and exercise data deleted.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fastlog", description="Intermittent fasting and nutrition log.")
    parser.add_argument("--storage", choices=["local", "remote"], default=None,
                        help="Override the configured storage backend for this run.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("fast", help="Start, end or inspect a fast")
    p.add_argument("action", choices=["start", "end", "status", "history"])
    p.add_argument("-t", "--time", default=None, help='Start/end time, e.g. "2023-12-01 18:00" or "18:00"')
    p.set_defaults(handler=cmd_fast)

    for kind in ("meal", "drink"):
        p = sub.add_parser(kind, help=f"Log a {kind}")
        p.add_argument("description")
        p.add_argument("-c", "--calories", type=int, default=None, help="Skip estimation and use this value")
        p.add_argument("-s", "--size", default=None, help='Portion size, e.g. "2 cups", "500ml", "8oz"')
        p.set_defaults(handler=cmd_food)

    p = sub.add_parser("weight", help='Log your weight, e.g. "305.8lbs", "138.5kg" or "180"')
    p.add_argument("value")
    p.set_defaults(handler=cmd_weight)

    p = sub.add_parser("exercise", help='Log exercise, e.g. "running" "30 minutes"')
    p.add_argument("description")
    p.add_argument("duration")
    p.add_argument("-c", "--calories", type=int, default=None, help="Skip estimation and use this value")
    p.set_defaults(handler=cmd_exercise)

    sub.add_parser("today", help="Show today's log").set_defaults(handler=cmd_today)
    sub.add_parser("history", help="Show daily totals and weights").set_defaults(handler=cmd_history)

    p = sub.add_parser("config", help="Show or change settings")
    p.add_argument("key", choices=["show", "storage", "units", "weight-unit", "timezone", "database-url", "openai-key"])
    p.add_argument("value", nargs="?")
    p.set_defaults(config_handler=cmd_config)

    p = sub.add_parser("db", help="Manage the remote database")
    p.add_argument("action", choices=["init", "check"])
    p.set_defaults(config_handler=cmd_db)

    p = sub.add_parser("clean", help="Delete all stored data")
    p.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    p.add_argument("--config", action="store_true", help="Also reset the configuration")
    p.set_defaults(handler=cmd_clean)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Parses CLI arguments and runs the requested command."""
    args = build_parser().parse_args(argv)
    settings = Settings()
    log_utils.configure(settings.log_path, settings.FASTING_LOG_LEVEL)
    config = AppConfig(settings, storage_override=args.storage)
    log_utils.log_message(f"CLI invoked for '{args.command}'.", "DEBUG")

    dal: Optional[DataAccessLayer] = None
    try:
        config_handler: Optional[Callable] = getattr(args, "config_handler", None)
        if config_handler is not None:
            config_handler(args, config)
            return 0
        dal = get_dal(config)
        args.handler(args, config, dal)
        return 0
    except StorageUnavailable as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except FastlogError as e:
        log_utils.log_message(f"'{args.command}' failed: {e}", "WARN")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if isinstance(dal, PostgresDal):
            dal.close()


if __name__ == "__main__":
    sys.exit(main())
