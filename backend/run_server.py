"""Entry point for the Sankey Proxy gateway.

Usage:
    python run_server.py --port 3000
"""

import argparse
import os


def main() -> None:
    parser = argparse.ArgumentParser(description="Sankey Proxy Backend")
    parser.add_argument("--host", type=str, default="0.0.0.0", help="Interface to bind to")
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", "3000")), help="Port to bind to")
    parser.add_argument("--log-level", type=str, default=os.environ.get("LOG_LEVEL", "info"), help="uvicorn log level")
    args = parser.parse_args()

    import uvicorn
    from sankey_proxy.main import app

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
