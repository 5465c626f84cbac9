"""
FinGate Main Entry Point

Interactive CLI demo of the orchestration pipeline:
1. Parse a command into a gateway request
2. Rate limiting and compliance checks
3. Response cache and fraud scoring
4. Provider routing with failover
5. Print the terminal outcome
"""

import asyncio
import logging
import sys
from dotenv import load_dotenv

from fingate.config import load_settings
from fingate.errors import ConfigurationError, RequestSchemaError
from fingate.gateway import build_gateway
from fingate.orchestrator import Outcome


# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


USAGE = """Commands:
  analysis <question>                         Ask for a financial analysis
  risk <subject> [amount currency]            Risk assessment of a subject
  fraud <amount> <currency> <counterparty>    Screen a transaction
  caller <id>                                 Switch caller identity
  quit                                        Exit
"""


def print_banner():
    """Print FinGate banner."""
    print("\n" + "=" * 60)
    print("  FinGate: AI-Request Orchestration Gateway")
    print("  Interactive demo")
    print("=" * 60 + "\n")


def parse_command(line: str, caller_id: str) -> dict:
    """
    Turn a CLI command into raw request data.

    Raises:
        ValueError: If the command is not understood
    """
    verb, _, rest = line.partition(" ")
    verb = verb.lower()
    rest = rest.strip()

    if verb == "analysis":
        if not rest:
            raise ValueError("analysis needs a question")
        return {"caller_id": caller_id, "operation_type": "ANALYSIS", "payload": {"prompt": rest}}

    if verb == "risk":
        parts = rest.split()
        if not parts:
            raise ValueError("risk needs a subject")
        payload = {"subject": parts[0]}
        if len(parts) >= 3:
            payload["amount"] = float(parts[1])
            payload["currency"] = parts[2].upper()
        return {"caller_id": caller_id, "operation_type": "RISK_ASSESSMENT", "payload": payload}

    if verb == "fraud":
        parts = rest.split()
        if len(parts) < 3:
            raise ValueError("fraud needs <amount> <currency> <counterparty>")
        return {
            "caller_id": caller_id,
            "operation_type": "FRAUD_CHECK",
            "payload": {
                "amount": float(parts[0]),
                "currency": parts[1].upper(),
                "counterparty": " ".join(parts[2:]),
            },
        }

    raise ValueError(f"Unknown command: {verb}")


def print_outcome(outcome: Outcome):
    """Pretty-print a terminal outcome."""
    icon = {"COMPLETED": "✅", "REJECTED": "⛔", "FAILED": "❌"}[outcome.status.value]
    print(f"\n{icon} [{outcome.reason.value}] {outcome.message}")
    print(f"    Path: {' → '.join(outcome.stage_history)}")

    if outcome.is_completed:
        source = "cache" if outcome.cached else outcome.provider
        print(f"    Served by: {source}")
        print(f"\n{outcome.response}")

    for key, value in outcome.details.items():
        print(f"    {key}: {value}")

    if outcome.warnings:
        print(f"    ⚠️  Warnings: {', '.join(outcome.warnings)}")


async def run(settings):
    gateway = build_gateway(settings)
    await gateway.start()

    print(f"✅ Gateway ready. Providers: {', '.join(settings.provider_priority)}")
    print(USAGE)

    caller_id = "cli-user"
    try:
        while True:
            line = (await asyncio.to_thread(input, f"💬 {caller_id}> ")).strip()

            if not line:
                continue
            if line.lower() in ["quit", "exit", "q"]:
                print("\n👋 Goodbye!")
                break
            if line.lower().startswith("caller "):
                caller_id = line.split(maxsplit=1)[1]
                continue

            try:
                raw = parse_command(line, caller_id)
                request = gateway.request_validator.validate(raw)
            except (ValueError, RequestSchemaError) as e:
                print(f"    ❌ {e}")
                continue

            outcome = await gateway.orchestrator.submit(request)
            print_outcome(outcome)
            print("\n" + "-" * 60 + "\n")
    finally:
        await gateway.stop()
        chain = gateway.ledger.validate_chain()
        print(f"🔗 Audit chain: {chain.total_entries} entries, valid={chain.is_valid}")


def main():
    """Main CLI application."""
    load_dotenv()
    print_banner()

    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(f"❌ Configuration error: {e.detail}")
        print("Check your FINGATE_* environment variables or .env file.")
        sys.exit(1)

    try:
        asyncio.run(run(settings))
    except ConfigurationError as e:
        print(f"❌ Initialization failed: {e.detail}")
        sys.exit(1)
    except (KeyboardInterrupt, EOFError):
        print("\n\n👋 Goodbye!")


if __name__ == "__main__":
    main()
