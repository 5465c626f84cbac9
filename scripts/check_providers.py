"""
Check Providers

Sends a one-line prompt to every configured provider and reports which
ones answer. Useful before starting the gateway.
"""

import asyncio
import sys
import time

from dotenv import load_dotenv

from fingate.config import load_settings
from fingate.errors import ConfigurationError
from fingate.gateway import build_providers


PROBE_PROMPT = "Reply with the single word OK."


async def probe(name, provider, timeout):
    started = time.perf_counter()
    try:
        text = await asyncio.wait_for(
            provider.invoke(PROBE_PROMPT, max_tokens=16, timeout=timeout),
            timeout=timeout,
        )
    except Exception as e:
        print(f"❌ {name}: {type(e).__name__}: {e}")
        return False

    elapsed_ms = (time.perf_counter() - started) * 1000
    print(f"✅ {name}: {text[:60]!r} ({elapsed_ms:.0f}ms)")
    return True


async def run(settings):
    providers = build_providers(settings)
    results = []
    for name in settings.provider_priority:
        results.append(await probe(name, providers[name], settings.timeout_for(name)))
    return all(results)


def main():
    load_dotenv()

    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(f"❌ Configuration error: {e.detail}")
        sys.exit(1)

    print(f"Checking providers: {', '.join(settings.provider_priority)}\n")
    ok = asyncio.run(run(settings))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
