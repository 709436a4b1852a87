import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

TOKEN_ENV_VAR = "GITHUB_TOKEN"


def load_env() -> None:
    """Load .env from the working directory if present.

    Existing environment variables win over values in the file.
    """
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path, override=False)


def token_from_env() -> Optional[str]:
    token = os.getenv(TOKEN_ENV_VAR, "").strip()
    return token or None
