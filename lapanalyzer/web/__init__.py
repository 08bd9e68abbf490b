from __future__ import annotations

import logging

from flask import Flask

from lapanalyzer.config import Config


def create_app(config: Config | None = None) -> Flask:
    if config is None:
        config = Config.from_env()

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.max_upload_bytes
    app.config["config"] = config

    from lapanalyzer.web.routes import bp
    app.register_blueprint(bp)

    return app


def main() -> None:
    config = Config.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(config)
    app.run(host="0.0.0.0", port=config.flask_port, debug=config.flask_debug)


if __name__ == "__main__":
    main()
