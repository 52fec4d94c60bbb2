import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from tabulate import tabulate
from termcolor import colored

from .config.config_manager import EngineSettings
from .core.clock import ManualClock
from .core.engine import ClassificationEngine
from .core.events import Event
from .core.sources import FileReplaySource
from .core.state import Phase
from .version import get_version


def setup_logging(level: str = "INFO", log_dir: Path = Path("logs")):
    """File + console logging, configured once by the entry point."""
    log_dir.mkdir(exist_ok=True)
    log_file_path = log_dir / "taverntally.log"

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file_path, encoding='utf-8'),
            logging.StreamHandler()
        ]
    )


def replay(log_path: Path, settings: EngineSettings, full: bool = False) -> ClassificationEngine:
    """Run a saved Power.log through a fresh engine and return it."""
    # Replays run on a stopped clock
    engine = ClassificationEngine(clock=ManualClock(), settings=settings)
    source = FileReplaySource(
        log_path,
        max_bytes=settings.trailing_window_bytes,
        max_lines=settings.trailing_window_lines,
        full=full,
    )
    engine.run(source)
    return engine


def format_phase(phase: Phase, color: bool = False) -> str:
    if not color:
        return phase.name
    return colored(phase.name, "red" if phase.is_combat else "green")


def format_report(engine: ClassificationEngine, color: bool = False) -> str:
    snapshot = engine.snapshot()
    table = [
        ["In Battlegrounds", "yes" if snapshot.in_special_mode else "no"],
        ["Phase", format_phase(snapshot.phase, color)],
        ["Hand", snapshot.hand_count],
        ["Board", snapshot.board_count],
        ["Shop", snapshot.shop_count],
        ["Tavern Tier", snapshot.tavern_tier],
        ["Turn", snapshot.turn_number],
        ["Lines processed", engine.lines_processed],
    ]
    if snapshot.manual_override:
        table.append(["Parsed (hand/board/shop)",
                      f"{snapshot.parsed_hand_count}/{snapshot.parsed_board_count}/{snapshot.parsed_shop_count}"])

    lines = ["=" * 40, "Final State", "=" * 40, tabulate(table, tablefmt="plain")]

    diagnostics: List[Event] = engine.diagnostics
    if diagnostics:
        rows = [
            [colored(event.event_type.name, "yellow") if color else event.event_type.name, event.message]
            for event in diagnostics
        ]
        lines.append(f"\nDiagnostics ({len(diagnostics)})")
        lines.append(tabulate(rows, headers=["Type", "Message"], tablefmt="simple"))
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="TavernTally - replay a Hearthstone Power.log")
    parser.add_argument("log_path", type=Path, help="Path to Power.log")
    parser.add_argument("--settings", type=Path, default=None, help="Settings JSON (default ~/.taverntally/settings.json)")
    parser.add_argument("--full", action="store_true", help="Replay the whole file instead of the trailing window")
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"TavernTally {get_version()}")
    args = parser.parse_args(argv)

    # TAVERNTALLY_* overrides may live in a .env file
    load_dotenv()

    try:
        settings = EngineSettings.load(args.settings).apply_env_overrides()
    except (TypeError, ValueError) as e:
        print(f"Invalid settings: {e}", file=sys.stderr)
        return 2

    setup_logging("DEBUG" if args.debug else settings.log_level)
    logging.info(f"TavernTally {get_version()} replaying {args.log_path} ({settings!r})")

    if not args.log_path.exists():
        logging.error(f"Log file not found: {args.log_path}")
        return 1

    engine = replay(args.log_path, settings, full=args.full)
    print(format_report(engine, color=sys.stdout.isatty()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
