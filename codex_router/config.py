import os
from dotenv import load_dotenv

load_dotenv()

# Root that stands in for the user's home directory. Tests and the --home
# flag pass an explicit root to the stores instead.
HOME_DIR = os.environ.get("CODEX_ROUTER_HOME") or os.path.expanduser("~")

TOKEN_URL = os.environ.get("CODEX_ROUTER_TOKEN_URL", "https://auth.openai.com/oauth/token")
CLIENT_ID = os.environ.get("CODEX_ROUTER_CLIENT_ID", "app_EMoamEEZ73f0CkXaXp7hrann")

LOG_LEVEL = os.environ.get("CODEX_ROUTER_LOG_LEVEL", "WARNING")
LOGIN_COMMAND = os.environ.get("CODEX_ROUTER_LOGIN_COMMAND", "codex login")


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except ValueError:
        return default


HTTP_TIMEOUT = _float_env("CODEX_ROUTER_HTTP_TIMEOUT", 30.0)


def get_home_dir(home_dir: str = None) -> str:
    return home_dir if home_dir else HOME_DIR
