"""genesis-engine CLI — build and verify the founding state of the chain.

Usage:
    genesis-engine generate --byte-code-dir <dir> --config-file <file> --output <dir>
    genesis-engine verify --genesis-file <file>

Examples:
    genesis-engine generate -b out/bytecode -c genesis_config.json -o output/
    genesis-engine --log-file logs/genesis.log verify -g output/genesis.json
    GENESIS_VM_BACKEND=mypkg.vm:Backend genesis-engine verify -g genesis.json
"""

from __future__ import annotations

import argparse
import logging
import sys

from genesis_engine import __version__
from genesis_engine.core.config import Settings, get_settings
from genesis_engine.core.errors import GenesisError, TransactionFailedError
from genesis_engine.core.logging import setup_logging
from genesis_engine.core.types import checksum

logger = logging.getLogger("genesis_engine.cli")


# ── Coloured output helpers ──────────────────────────────────────────────────

_RESET = "\033[0m"
_BOLD = "\033[1m"
_RED = "\033[91m"
_YELLOW = "\033[93m"
_GREEN = "\033[92m"
_CYAN = "\033[96m"
_DIM = "\033[2m"


def _c(text: str, code: str) -> str:
    return f"{code}{text}{_RESET}"


# ── Banner ───────────────────────────────────────────────────────────────────

BANNER = rf"""
{_BOLD}{_CYAN}  ____                      _
 / ___| ___ _ __   ___  ___(_)___
| |  _ / _ \ '_ \ / _ \/ __| / __|
| |_| |  __/ | | |  __/\__ \ \__ \
 \____|\___|_| |_|\___||___/_|___/{_RESET}
  {_DIM}Genesis state builder & verifier — v{__version__}{_RESET}
"""


# ── CLI argument parser ─────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="genesis-engine",
        description="Genesis state builder and verifier",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("--no-banner", action="store_true", help="Suppress the startup banner")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", "-l", help="Also write logs to this file")

    sub = parser.add_subparsers(dest="command")

    # ── generate ─────────────────────────────────────────────────────────────
    gen_p = sub.add_parser("generate", help="Generate a new genesis state")
    gen_p.add_argument(
        "--byte-code-dir", "-b", required=True,
        help="Directory containing one <Contract>.hex file per system contract",
    )
    gen_p.add_argument(
        "--config-file", "-c", default="generate/new_genesis_config.json",
        help="Genesis configuration (.json or .yaml)",
    )
    gen_p.add_argument("--output", "-o", required=True, help="Output directory")
    gen_p.add_argument("--vm", help="Virtual machine backend as package.module:factory")

    # ── verify ───────────────────────────────────────────────────────────────
    verify_p = sub.add_parser("verify", help="Verify an existing genesis for ABI compatibility")
    verify_p.add_argument("--genesis-file", "-g", required=True, help="Genesis file to verify")
    verify_p.add_argument("--vm", help="Virtual machine backend as package.module:factory")

    return parser


# ── Generate command ─────────────────────────────────────────────────────────


def _run_generate(args: argparse.Namespace, settings: Settings) -> int:
    from genesis_engine.config_schema import load_genesis_config
    from genesis_engine.execution.vm import load_virtual_machine
    from genesis_engine.pipeline import GenesisGenerator
    from genesis_engine.seeder import DirectoryBytecodeSource

    logger.info("Starting Genesis Generate")
    config = load_genesis_config(args.config_file)
    vm = load_virtual_machine(args.vm or settings.vm_backend)
    source = DirectoryBytecodeSource(args.byte_code_dir, suffix=settings.bytecode_suffix)

    result = GenesisGenerator(vm, settings=settings).run(source, config, args.output)

    print(f"\n{_BOLD}Genesis generated{_RESET} — {len(result.snapshot)} accounts")
    for path in (result.paths.bundle_state, result.paths.genesis_accounts,
                 result.paths.genesis_contracts):
        print(f"  Written to {_c(str(path), _CYAN)}")
    if not result.validators_match:
        print(_c("  ! Validator set check did not pass, see log for details", _YELLOW))
    return 0


# ── Verify command ───────────────────────────────────────────────────────────


def print_verify_summary(report) -> None:
    """Human-readable pass/fail summary of a verification report."""
    rule = "=" * 40
    print(f"\n{rule}")
    print(f"{_BOLD}       GENESIS VERIFICATION RESULT{_RESET}")
    print(f"{rule}\n")

    if report.success:
        print(_c("✓ STATUS: PASSED", _GREEN) + "\n")
        print(f"Validators: {report.validator_count}")
        print("\nValidator Details:")
        for i, v in enumerate(report.validators):
            print(f"  [{i}] {checksum(v.address)}")
            print(f"      Power: {v.voting_power}, Index: {v.validator_index}")
            print(
                f"      Network Addrs: {'✓' if v.has_network_addresses else '✗'}, "
                f"Fullnode Addrs: {'✓' if v.has_fullnode_addresses else '✗'}"
            )
        print(_c("\nGenesis is compatible with the current validator interface.", _GREEN))
    else:
        print(_c("✗ STATUS: FAILED", _RED) + "\n")
        print("Errors:")
        for err in report.errors:
            print(f"  - {err}")
        print(f"\n{_DIM}Fix: recompile the system contracts and regenerate the genesis{_RESET}")

    print(f"\n{rule}\n")


def _run_verify(args: argparse.Namespace, settings: Settings) -> int:
    from genesis_engine.execution.vm import load_virtual_machine
    from genesis_engine.registry import default_registry
    from genesis_engine.verify import ReplayVerifier

    logger.info("Starting Genesis Verify")
    vm = load_virtual_machine(args.vm or settings.vm_backend)
    report = ReplayVerifier(vm, default_registry(), settings).verify_file(args.genesis_file)
    print_verify_summary(report)

    if report.success:
        logger.info("Genesis Verify completed successfully")
        return 0
    logger.error("Genesis verification failed")
    return 1


# ── Entrypoint ───────────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"genesis-engine {__version__}")
        return 0

    if not args.no_banner:
        print(BANNER, file=sys.stderr)

    if not args.command:
        parser.print_help()
        return 0

    settings = get_settings()
    setup_logging(
        env=settings.app_env,
        log_level="DEBUG" if args.debug else settings.log_level,
        log_file=args.log_file or settings.log_file,
    )

    handlers = {"generate": _run_generate, "verify": _run_verify}
    try:
        code = handlers[args.command](args, settings)
    except TransactionFailedError as exc:
        print(_c(f"\nGenesis transaction {exc.index + 1} failed", _RED), file=sys.stderr)
        print(exc.diagnosis.render(), file=sys.stderr)
        code = exc.exit_code
    except GenesisError as exc:
        logger.error("%s", exc.message, exc_info=args.debug)
        print(_c(f"\nError: {exc.message}", _RED), file=sys.stderr)
        code = exc.exit_code

    logger.info("Main execution completed")
    return code


if __name__ == "__main__":
    sys.exit(main())
