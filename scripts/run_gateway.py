"""
Run Gateway

Helper script to start the FinGate HTTP server.
"""

import logging
import sys

import uvicorn
from dotenv import load_dotenv

from fingate.config import load_settings
from fingate.errors import ConfigurationError


def main():
    """Start the gateway server."""
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(f"❌ Configuration error: {e.detail}")
        sys.exit(1)

    print("=" * 60)
    print("  FinGate Gateway")
    print("  Starting FastAPI server...")
    print("=" * 60)
    print(f"\n🌐 Service will run at: http://{settings.host}:{settings.port}")
    print(f"📊 API docs available at: http://{settings.host}:{settings.port}/docs")
    print(f"🤖 Providers (priority order): {', '.join(settings.provider_priority)}")
    print("\nPress Ctrl+C to stop\n")

    uvicorn.run(
        "fingate.server:app",
        host=settings.host,
        port=settings.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
