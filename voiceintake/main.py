"""Main application entry point for voiceintake."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pubsub import pub
from rich.console import Console
from rich.panel import Panel

from .config import IntakeConfig
from .errors import IntakeError, IntakeValidationError, InvalidTransitionError
from .models import events
from .models.interview import InterviewStatus
from .services.intake_service import IntakeService

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "Type an answer and press Enter to submit it.\n"
    "/talk  hold-to-talk (press Enter again to stop)   /accept  submit the reviewed draft\n"
    "/stage accept without submitting   /send  submit the staged answer\n"
    "/edit <text>  replace the draft   /redo  discard the draft\n"
    "/pause  /resume  /end  /quit"
)

PROFILE_PROMPTS = [
    ("sex", "Sex (female/male/nonbinary/unspecified)"),
    ("age", "Age"),
    ("pmh", "Past medical history"),
    ("familyHistory", "Family history"),
    ("familyDoctor", "Family doctor"),
    ("currentMedications", "Current medications"),
    ("allergies", "Allergies"),
]


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/voiceintake.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger = logging.getLogger(__name__)
    logger.info("=" * 50)
    logger.info("voiceintake starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def load_config(config_path: Optional[str]) -> IntakeConfig:
    """Load the given config file, falling back to ./voiceintake.yaml or the defaults."""
    if config_path:
        return IntakeConfig(config_path)
    default_path = Path("voiceintake.yaml")
    if default_path.exists():
        return IntakeConfig(str(default_path))
    return IntakeConfig.from_dict({})


class ConsoleView:
    """Renders interview events with rich."""

    def __init__(self, console: Console):
        self.console = console
        pub.subscribe(self.on_message, events.TOPIC_INTERVIEW_MESSAGE)
        pub.subscribe(self.on_error, events.TOPIC_INTERVIEW_ERROR)
        pub.subscribe(self.on_error, events.TOPIC_CAPTURE_ERROR)
        pub.subscribe(self.on_countdown, events.TOPIC_INTERVIEW_COUNTDOWN)
        pub.subscribe(self.on_draft, events.TOPIC_DRAFT_STATE)

    def on_message(self, event) -> None:
        if event.action == "appended" and event.role == "assistant":
            self.console.print(Panel(event.content, title="Assistant", border_style="cyan"))
        elif event.action == "removed":
            self.console.print("[yellow]Your last answer was not processed and has been restored.[/yellow]")

    def on_error(self, event) -> None:
        self.console.print(f"[red]{event.message}[/red]")

    def on_countdown(self, event) -> None:
        self.console.print(f"[yellow]Interview ends in {event.remaining_seconds}s unless you /resume[/yellow]")

    def on_draft(self, event) -> None:
        if event.review_state == "reviewing" and event.text and not event.submitting:
            self.console.print(Panel(event.text, title="Draft (/accept, /edit, /redo)", border_style="green"))

    def close(self) -> None:
        pub.unsubscribe(self.on_message, events.TOPIC_INTERVIEW_MESSAGE)
        pub.unsubscribe(self.on_error, events.TOPIC_INTERVIEW_ERROR)
        pub.unsubscribe(self.on_error, events.TOPIC_CAPTURE_ERROR)
        pub.unsubscribe(self.on_countdown, events.TOPIC_INTERVIEW_COUNTDOWN)
        pub.unsubscribe(self.on_draft, events.TOPIC_DRAFT_STATE)


async def ask(console: Console, prompt: str) -> str:
    return await asyncio.to_thread(console.input, prompt)


async def collect_intake(console: Console, config: IntakeConfig) -> Dict[str, Any]:
    """Prompt for the intake form."""
    console.print("[bold]Please complete the intake form.[/bold]")
    profile = {}
    for key, label in PROFILE_PROMPTS:
        profile[key] = await ask(console, f"{label}: ")
    return {
        "chiefComplaint": await ask(console, "What brings you in today? "),
        "patientProfile": profile,
        "patientEmail": await ask(console, "Email: "),
        "physicianId": config.get('interview.physician_id') or await ask(console, "Physician ID: "),
    }


async def handle_command(service: IntakeService, console: Console, line: str) -> bool:
    """Run one console command. Returns False when the session should end."""
    command, _, argument = line.partition(" ")
    interview = service.interview

    if command == "/quit":
        return False
    if command == "/help":
        console.print(HELP_TEXT)
    elif command == "/pause":
        interview.pause()
        console.print("[yellow]Interview paused. Type /resume to continue.[/yellow]")
    elif command == "/resume":
        await interview.resume()
    elif command == "/end":
        await service.end_interview()
    elif command == "/talk":
        if service.capture is None:
            console.print("[red]Voice capture is disabled; start with --voice.[/red]")
            return True
        session = await service.capture.start(allow_while_reviewing=bool(argument == "more"))
        if session is not None:
            await ask(console, "[green]Listening... press Enter to stop[/green] ")
            await service.capture.stop()
    elif command == "/accept":
        await service.review.accept(auto_submit=True)
    elif command == "/stage":
        text = await service.review.accept(auto_submit=False)
        console.print(f"Staged: {text} (type /send to submit)")
    elif command == "/send":
        await service.review.submit_staged()
    elif command == "/edit":
        service.review.edit()
        service.review.finish_edit(argument or None)
    elif command == "/redo":
        service.review.redo()
    else:
        console.print(f"Unknown command {command}. Type /help.")
    return True


async def run_interview(service: IntakeService, console: Console, intake: Optional[Dict[str, Any]]) -> None:
    view = ConsoleView(console)
    try:
        while service.interview.status == InterviewStatus.IDLE:
            form = intake or await collect_intake(console, service.config)
            try:
                await service.start_interview(form)
            except IntakeValidationError as e:
                console.print(f"[red]{e}[/red]")
                intake = None
                continue
            if service.interview.session.error:
                if (await ask(console, "Retry? [y/n] ")).strip().lower() != "y":
                    return
                intake = form

        console.print(HELP_TEXT)
        while service.interview.status != InterviewStatus.COMPLETE:
            line = (await ask(console, "> ")).strip()
            if not line:
                continue
            try:
                if line.startswith("/"):
                    if not await handle_command(service, console, line):
                        break
                else:
                    await service.submit_typed_answer(line)
            except (InvalidTransitionError, IntakeValidationError) as e:
                console.print(f"[red]{e}[/red]")

        session = service.interview.session
        if session.status == InterviewStatus.COMPLETE:
            console.print(f"[bold green]Interview complete.[/bold green] Saved as {session.session_id}.")
    finally:
        await service.shutdown()
        view.close()


def main() -> None:
    """Main entry point for voiceintake."""
    parser = argparse.ArgumentParser(
        description="voiceintake - voice or text medical history interview",
        epilog="Commands: /talk, /accept, /edit, /redo, /pause, /resume, /end, /quit"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: looks for voiceintake.yaml)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config)"
    )

    parser.add_argument(
        "--intake",
        type=str,
        help="YAML or JSON file with the intake form (skips the prompts)"
    )

    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use the offline mock interview generator"
    )

    parser.add_argument(
        "--voice",
        action="store_true",
        help="Enable hold-to-talk voice capture"
    )

    parser.add_argument(
        "--language",
        type=str,
        help="Interview language code (overrides config)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="voiceintake v0.1.0"
    )

    args = parser.parse_args()

    console = Console()
    try:
        config = load_config(args.config)
        if args.mock:
            config.set('interview.mock', True)
        if args.language:
            config.set('interview.language', args.language)
        setup_logging(config, args.log_level or config.get('logging.level', 'INFO'))

        intake = None
        if args.intake:
            with open(args.intake, 'r', encoding='utf-8') as f:
                intake = yaml.safe_load(f)

        service = IntakeService(config, voice=args.voice)
        asyncio.run(run_interview(service, console, intake))
    except KeyboardInterrupt:
        console.print("\nGoodbye!")
    except (IntakeError, OSError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        logging.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
