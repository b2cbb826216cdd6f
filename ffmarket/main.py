import logging

from .app import create_app
from .common.config import Settings

settings = Settings.from_env()
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app(settings)


def run() -> None:
    app.run(host=settings.APP_HOST, port=settings.APP_PORT)


if __name__ == "__main__":
    run()
