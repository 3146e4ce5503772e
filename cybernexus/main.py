"""
Main entry point for CyberNexus ISMS.
"""

import uvicorn

from cybernexus.api import create_app
from cybernexus.core.config import settings
from cybernexus.core.logging import get_logger

logger = get_logger(__name__)

app = create_app()


def main():
    """Main entry point."""
    logger.info(
        "Starting CyberNexus ISMS",
        environment=settings.environment,
        debug=settings.debug,
    )

    uvicorn.run(
        "cybernexus.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        access_log=False,  # RequestLoggingMiddleware logs requests
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
