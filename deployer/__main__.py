"""Run the API server with uvicorn."""

import uvicorn

from deployer.config import settings


def main() -> None:
    uvicorn.run(
        "deployer.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )


if __name__ == "__main__":
    main()
