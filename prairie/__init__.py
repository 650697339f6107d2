import os
from dotenv import load_dotenv, find_dotenv

env_file = os.environ.get("ENV_FILE", ".env")
try:
    path = find_dotenv(filename=env_file, raise_error_if_not_found=True, usecwd=True)
except IOError:
    # No file to set environment variables
    path = None
if path:
    print(f"Loading environment variables from {path}")
    load_dotenv(dotenv_path=path)

# Settings read the environment at import, so handlers load after the .env file.
from prairie.handlers import (  # noqa: E402
    homeagent,
    probes,
)

__all__ = [
    "homeagent",
    "probes",
]

__version__ = "0.1.0"
