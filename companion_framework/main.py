"""
CLI entrypoint for the companion.

Usage examples:
  - Typed conversation (replies printed, optionally spoken):
      python -m companion_framework.main chat --participant alex
      python -m companion_framework.main chat --participant alex --speak

  - Push-to-talk voice conversation (Enter to start, Enter to stop):
      python -m companion_framework.main voice --participant alex

  - Configuration and discovery:
      python -m companion_framework.main config
      python -m companion_framework.main list-providers

In chat, '/clear' deletes the participant's history, '/end' closes the
current session and '/quit' exits.
"""

import asyncio
import json
import os
from argparse import ArgumentParser
from pathlib import Path
from typing import Optional

from . import config as framework_config
from .factory import ProviderFactory
from .interfaces import StaticIdentity
from .models.data_models import UserPreferences
from .orchestrator import CompanionOrchestrator
from .utils.logging_config import setup_logging
from .utils.state_machine import TurnPhase


async def _prompt(text: str) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, input, text)


async def _build(args, voice: bool) -> Optional[CompanionOrchestrator]:
    config = framework_config.get_framework_config()
    preferences = UserPreferences(
        display_name=args.name,
        locale=args.locale,
    )
    orchestrator = CompanionOrchestrator(
        config,
        StaticIdentity(args.participant),
        voice=voice,
        preferences=preferences,
    )
    if not await orchestrator.initialize():
        print("❌ Failed to initialize companion")
        return None
    return orchestrator


async def _handle_command(orchestrator: CompanionOrchestrator, line: str) -> bool:
    """Run a slash command. Returns False when the session should end."""
    if line == "/quit":
        return False
    if line == "/clear":
        await orchestrator.clear_all_sessions()
        print("🧹 History cleared")
    elif line == "/end":
        await orchestrator.end_session()
        print("📕 Session closed")
    elif line == "/status":
        print(json.dumps(orchestrator.get_status(), indent=2, default=str))
    else:
        print(f"Unknown command: {line}")
    return True


async def cmd_chat(args) -> int:
    orchestrator = await _build(args, voice=args.speak)
    if orchestrator is None:
        return 1
    try:
        coordinator = orchestrator.coordinator
        while True:
            line = (await _prompt("You: ")).strip()
            if not line:
                continue
            if line.startswith("/"):
                if not await _handle_command(orchestrator, line):
                    break
                continue
            if coordinator.phase == TurnPhase.ERROR:
                await coordinator.acknowledge_error()
            task = await coordinator.submit_text(line, speak=args.speak)
            if task is None:
                continue
            result = await task
            if result.reply:
                print(f"Companion: {result.reply}")
        return 0
    finally:
        await orchestrator.shutdown()


async def cmd_voice(args) -> int:
    orchestrator = await _build(args, voice=True)
    if orchestrator is None:
        return 1
    try:
        coordinator = orchestrator.coordinator
        print("Press Enter to talk, Enter again to stop. Type /quit to exit.")
        while True:
            line = (await _prompt("")).strip()
            if line.startswith("/"):
                if not await _handle_command(orchestrator, line):
                    break
                continue
            if coordinator.phase == TurnPhase.ERROR:
                await coordinator.acknowledge_error()
            if not await coordinator.start_capture():
                continue
            print("🎙️  Listening...")
            await _prompt("")
            task = await coordinator.stop_capture()
            if task is None:
                continue
            result = await task
            if result.transcript:
                print(f"You: {result.transcript}")
            if result.reply:
                print(f"Companion: {result.reply}")
        return 0
    finally:
        await orchestrator.shutdown()


async def cmd_config(args) -> int:
    framework_config.print_config_summary()
    return 0


async def cmd_list_providers(args) -> int:
    print(json.dumps(ProviderFactory.list_providers(), indent=2))
    return 0


def _add_common_args(p):
    p.add_argument("--participant", default="local-user", help="Participant id to sign in as")
    p.add_argument("--name", help="Display name used in replies")
    p.add_argument("--locale", help="Locale such as en-GB (shapes regional wording)")


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog="companion_framework")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--log-file", help="Also write logs to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    p_chat = sub.add_parser("chat", help="Typed conversation")
    _add_common_args(p_chat)
    p_chat.add_argument("--speak", action="store_true", help="Also speak replies")
    p_chat.set_defaults(func=cmd_chat)

    p_voice = sub.add_parser("voice", help="Push-to-talk voice conversation")
    _add_common_args(p_voice)
    p_voice.set_defaults(func=cmd_voice)

    p_config = sub.add_parser("config", help="Show configuration summary")
    p_config.set_defaults(func=cmd_config)

    p_list = sub.add_parser("list-providers", help="List available providers")
    p_list.set_defaults(func=cmd_list_providers)

    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(
        args.log_level,
        Path(args.log_file) if args.log_file else None,
        secrets=[os.getenv(name) for name in ('DEEPGRAM_API_KEY', 'GROQ_API_KEY', 'SUPABASE_KEY')],
    )
    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
