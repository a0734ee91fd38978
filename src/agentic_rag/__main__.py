"""Run the API server: python -m agentic_rag"""

import uvicorn

from .config import load_config


def main() -> None:
    config = load_config()
    uvicorn.run(
        "agentic_rag.app:app",
        host=config.server.host,
        port=config.server.port,
    )


if __name__ == "__main__":
    main()
