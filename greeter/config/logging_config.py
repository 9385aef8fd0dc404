import logging
import os

_NOISY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "psycopg", "uvicorn.access")


def configure_logging(level: str | None = None) -> logging.Logger:
	level_name = (level or os.environ.get("LOG_LEVEL", "DEBUG")).upper()
	logging.basicConfig(level=level_name, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
	# Third-party chatter stays at WARNING unless explicitly asked for
	third_party = os.environ.get("THIRD_PARTY_LOG_LEVEL", "WARNING").upper()
	for name in _NOISY_LOGGERS:
		logging.getLogger(name).setLevel(third_party)
	return logging.getLogger("greeter")
