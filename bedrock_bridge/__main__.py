from __future__ import annotations

import uvicorn

from bedrock_bridge.config import Settings, configure_logging
from bedrock_bridge.main import create_app


def main() -> None:
    settings = Settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
