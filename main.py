import uvicorn

from agrotrade.config import get_settings
from agrotrade.logging_config import setup_logging

if __name__ == "__main__":
    settings = get_settings()
    setup_logging(settings.log_level)
    uvicorn.run(
        "agrotrade.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )
