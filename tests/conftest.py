import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure project root is on sys.path so `import greeter` works under pytest
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
	sys.path.insert(0, str(ROOT_DIR))

VALID_CONFIG = """\
datasource:
  host: db.internal
  port: 5433
  database: movies
  user: luke
  password: s3cret
  maxSize: 7
"""


@pytest.fixture
def config_file(tmp_path):
	path = tmp_path / "application.yaml"
	path.write_text(VALID_CONFIG, encoding="utf-8")
	return path


@pytest.fixture
def app_client():
	from greeter.server.http import create_app
	return TestClient(create_app())
