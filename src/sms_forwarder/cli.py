from __future__ import annotations

import uvicorn

from .config import get_settings
from .main import configure_logging


def serve() -> None:
    """
    Run the forwarder on HOST:PORT.

    Point the Twilio number's "A message comes in" webhook at
    https://<public host>/twilio/sms.
    """
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        "sms_forwarder.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        # Honour X-Forwarded-* from the TLS-terminating proxy
        proxy_headers=True,
    )


def main() -> None:
    serve()


if __name__ == "__main__":
    main()
