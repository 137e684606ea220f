"""Run the API with uvicorn: ``python -m timetracker``."""
import uvicorn

from timetracker.config import settings


def main():
    uvicorn.run(
        "timetracker.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
