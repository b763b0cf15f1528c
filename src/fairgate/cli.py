"""
FairGate CLI

Command-line interface for checking market packs and running requests
through the gates.

Usage:
    fairgate validate-pack --pack packs/nyc_strict.yaml
    fairgate validate-pack --packs-dir packs/
    fairgate pack-info --pack packs/nyc_strict.yaml
    fairgate transition --request transition.json
    fairgate check --request check.json
    fairgate legacy-check --request legacy_check.json
    fairgate legacy-stage --request legacy_stage.json

Exit Codes:
    0   ALLOWED         - Request allowed / pack valid
    1   BLOCKED         - Request blocked by a Fair Chance rule
    10  INPUT_INVALID   - Request file unreadable or invalid, bad settings
    11  PACK_ERROR      - Pack validation/loading failed
"""
from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Optional

from . import __version__
from .config import build_registry, load_settings
from .engine import CheckGate, LegacyGateAdapter, PolicyRegistry, TransitionGate
from .exceptions import (
    FairGateError,
    PackLoadError,
    PackValidationError,
    PackVersionMismatch,
    RequestValidationError,
    SettingsError,
)
from .log import configure_logging
from .models import (
    CheckRequest,
    LegacyBackgroundCheckRequest,
    LegacyStageTransitionRequest,
    TransitionRequest,
    UnknownMarketMode,
)
from .packs import MarketPackLoader


# ============================================================================
# EXIT CODES
# ============================================================================

class ExitCode:
    """Deterministic exit codes for pipeline integration."""
    ALLOWED = 0           # Request allowed / pack valid
    BLOCKED = 1           # Request blocked
    INPUT_INVALID = 10    # Invalid request file or settings
    PACK_ERROR = 11       # Pack validation/loading failed


PACK_ERRORS = (PackLoadError, PackValidationError, PackVersionMismatch)


# ============================================================================
# OUTPUT FORMATTING
# ============================================================================

class Colors:
    """ANSI color codes for terminal output."""
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BLUE = '\033[94m'
    BOLD = '\033[1m'
    END = '\033[0m'

    @classmethod
    def disable(cls):
        cls.CYAN = ''
        cls.GREEN = ''
        cls.YELLOW = ''
        cls.RED = ''
        cls.BLUE = ''
        cls.BOLD = ''
        cls.END = ''


def print_header(text: str):
    print(f"\n{Colors.BOLD}{Colors.CYAN}{'='*60}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}{text}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}{'='*60}{Colors.END}")


def print_success(text: str):
    print(f"{Colors.GREEN}[OK] {text}{Colors.END}")


def print_error(text: str):
    print(f"{Colors.RED}[ERROR] {text}{Colors.END}", file=sys.stderr)


def print_info(text: str):
    print(f"{Colors.BLUE}[INFO] {text}{Colors.END}")


def print_kv(key: str, value: str, indent: int = 0):
    spaces = "  " * indent
    print(f"{spaces}{Colors.BOLD}{key}:{Colors.END} {value}")


def json_dumps(obj: Any, indent: int = 2) -> str:
    """Serialize a result dict; anything exotic falls back to str()."""
    return json.dumps(obj, indent=indent, sort_keys=True, default=str, ensure_ascii=False)


def print_fairgate_error(error: FairGateError) -> None:
    print_error(str(error))
    if error.details:
        print(json_dumps(error.to_dict()), file=sys.stderr)


# ============================================================================
# PACK COMMANDS
# ============================================================================

def cmd_validate_pack(args) -> int:
    """Validate a single pack file or a whole packs directory."""
    print_header("FairGate - Validate Pack")
    loader = MarketPackLoader(strict_version=not args.lenient)

    try:
        if args.pack:
            pack_path = Path(args.pack)
            if not pack_path.exists():
                print_error(f"Pack file not found: {pack_path}")
                return ExitCode.INPUT_INVALID
            print_info(f"Validating: {pack_path}")
            pack = loader.load(pack_path)
            print_success(f"Pack {pack.id} v{pack.version} is valid!")
            print_kv("Pack Hash", loader.get_pack_hash(pack.id) or "")
            return ExitCode.ALLOWED

        directory = Path(args.packs_dir) if args.packs_dir else load_settings().packs_dir
        print_info(f"Validating directory: {directory}")
        table = loader.load_directory(directory)
        print_success(
            f"{len(table.packs)} pack(s), {len(table.profiles)} market(s) are valid!"
        )
        for market_id, profile in sorted(table.profiles.items()):
            gated = "gated" if profile.requires_gate else "not gated"
            print_kv(market_id, f"{profile.market_pack_id} ({gated})", indent=1)
        return ExitCode.ALLOWED

    except PACK_ERRORS as e:
        print_fairgate_error(e)
        return ExitCode.PACK_ERROR
    except SettingsError as e:
        print_fairgate_error(e)
        return ExitCode.INPUT_INVALID


def cmd_pack_info(args) -> int:
    """Show pack information."""
    print_header("FairGate - Pack Info")

    pack_path = Path(args.pack)
    if not pack_path.exists():
        print_error(f"Pack file not found: {pack_path}")
        return ExitCode.INPUT_INVALID

    loader = MarketPackLoader()
    try:
        pack = loader.load(pack_path)
    except PACK_ERRORS as e:
        print_fairgate_error(e)
        return ExitCode.PACK_ERROR

    rules = pack.fcha
    print_kv("Pack ID", pack.id)
    print_kv("Name", pack.name)
    print_kv("Version", pack.version)
    print_kv("Policy Version", pack.policy_version)
    print_kv("Jurisdiction", pack.jurisdiction)
    print_kv("Pack Hash", loader.get_pack_hash(pack.id) or "")
    print_kv("Fair Chance Rules", "enabled" if rules.enabled else "disabled")

    if not rules.enabled:
        return ExitCode.ALLOWED

    print_kv("Rule Reference", rules.rule_reference)
    print_kv("Unlock State", str(rules.restricted_unlock_state))
    print_kv("Response Window", f"{rules.response_window_days} days")

    print(f"\n{Colors.BOLD}Restricted Checks ({len(rules.restricted_checks)}):{Colors.END}")
    for check in rules.restricted_checks:
        print(f"  {check}")

    print(f"\n{Colors.BOLD}Transitions ({len(rules.transitions)}):{Colors.END}")
    for t in rules.transitions:
        notices = ", ".join(t.notices) or "-"
        print(f"  {t.from_state} -> {t.to_state}  [{t.prerequisite or 'none'}] notices: {notices}")

    return ExitCode.ALLOWED


# ============================================================================
# GATE COMMANDS
# ============================================================================

def _read_request(path: str) -> dict[str, Any]:
    if path == "-":
        data = json.load(sys.stdin)
    else:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    if not isinstance(data, dict):
        raise RequestValidationError(message="Request file must contain a JSON object")
    return data


def _registry(args) -> PolicyRegistry:
    settings = load_settings()
    overrides: dict[str, Any] = {}
    if args.packs_dir:
        overrides["packs_dir"] = Path(args.packs_dir)
    if args.unknown_market_mode:
        overrides["unknown_market_mode"] = UnknownMarketMode(args.unknown_market_mode)
    if overrides:
        settings = replace(settings, **overrides)
    return build_registry(settings)


def _run_gate(args, run: Callable[[PolicyRegistry, dict[str, Any]], Any]) -> int:
    try:
        registry = _registry(args)
    except PACK_ERRORS as e:
        print_fairgate_error(e)
        return ExitCode.PACK_ERROR
    except SettingsError as e:
        print_fairgate_error(e)
        return ExitCode.INPUT_INVALID

    try:
        data = _read_request(args.request)
        result = run(registry, data)
    except (OSError, json.JSONDecodeError) as e:
        print_error(f"Cannot read request: {e}")
        return ExitCode.INPUT_INVALID
    except RequestValidationError as e:
        print_fairgate_error(e)
        return ExitCode.INPUT_INVALID

    print(json_dumps(result.to_dict()))
    return ExitCode.ALLOWED if result.allowed else ExitCode.BLOCKED


def cmd_transition(args) -> int:
    """Run a transition request through the transition gate."""
    return _run_gate(
        args,
        lambda registry, data: TransitionGate(registry=registry).gate(
            TransitionRequest.from_dict(data)
        ),
    )


def cmd_check(args) -> int:
    """Run a screening check request through the check gate."""
    return _run_gate(
        args,
        lambda registry, data: CheckGate(registry=registry).gate(CheckRequest.from_dict(data)),
    )


def cmd_legacy_check(args) -> int:
    """Run a stage-named background check request."""
    return _run_gate(
        args,
        lambda registry, data: LegacyGateAdapter(registry=registry).gate_background_check(
            LegacyBackgroundCheckRequest.from_dict(data)
        ),
    )


def cmd_legacy_stage(args) -> int:
    """Run a stage-named transition request."""
    return _run_gate(
        args,
        lambda registry, data: LegacyGateAdapter(registry=registry).gate_stage_transition(
            LegacyStageTransitionRequest.from_dict(data)
        ),
    )


# ============================================================================
# MAIN
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fairgate",
        description="FairGate CLI - Fair Chance Housing compliance gate",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit Codes:
  0   ALLOWED         Request allowed / pack valid
  1   BLOCKED         Request blocked
  10  INPUT_INVALID   Invalid request file or settings
  11  PACK_ERROR      Pack validation failed

Examples:
  fairgate validate-pack --packs-dir packs/
  fairgate pack-info --pack packs/nyc_strict.yaml
  fairgate transition --request transition.json
  fairgate check --request check.json --unknown-market-mode fail_closed
        """
    )
    parser.add_argument("--version", action="version", version=f"fairgate {__version__}")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # validate-pack
    validate_parser = subparsers.add_parser("validate-pack", help="Validate market packs")
    source = validate_parser.add_mutually_exclusive_group()
    source.add_argument("--pack", "-p", help="Single pack file")
    source.add_argument("--packs-dir", "-d", help="Packs directory with markets.yaml")
    validate_parser.add_argument(
        "--lenient", action="store_true", help="Accept other schema major versions"
    )
    validate_parser.set_defaults(func=cmd_validate_pack)

    # pack-info
    info_parser = subparsers.add_parser("pack-info", help="Show pack information")
    info_parser.add_argument("--pack", "-p", required=True, help="Pack file")
    info_parser.set_defaults(func=cmd_pack_info)

    # gate commands
    gate_commands = [
        ("transition", "Gate a workflow state transition", cmd_transition),
        ("check", "Gate a screening check", cmd_check),
        ("legacy-check", "Gate a stage-named background check", cmd_legacy_check),
        ("legacy-stage", "Gate a stage-named transition", cmd_legacy_stage),
    ]
    for name, help_text, func in gate_commands:
        gate_parser = subparsers.add_parser(name, help=help_text)
        gate_parser.add_argument(
            "--request", "-r", required=True, help="Request JSON file ('-' for stdin)"
        )
        gate_parser.add_argument("--packs-dir", "-d", help="Packs directory with markets.yaml")
        gate_parser.add_argument(
            "--unknown-market-mode",
            choices=[m.value for m in UnknownMarketMode],
            help="Override FAIRGATE_UNKNOWN_MARKET_MODE",
        )
        gate_parser.set_defaults(func=func)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.no_color or not sys.stdout.isatty():
        Colors.disable()

    if not args.command:
        parser.print_help()
        return ExitCode.INPUT_INVALID

    try:
        settings = load_settings()
    except SettingsError as e:
        print_fairgate_error(e)
        return ExitCode.INPUT_INVALID
    configure_logging(settings.log_level, json_format=settings.log_json, stream=sys.stderr)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
