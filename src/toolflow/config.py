# config.py
# Environment-backed settings. Config only, no logic lives here.
#
# Values are read once at import, after .env is loaded.

import os

from dotenv import load_dotenv

load_dotenv()

# Character budget for one tool-schema chunk handed to the planner.
CHUNK_BUDGET = int(os.getenv("TOOLFLOW_CHUNK_BUDGET", "8000"))

# Remote function forwarding. Unset means remote descriptors cannot be invoked.
HUB_URL = os.getenv("TOOLFLOW_HUB_URL", "")
REPO_TOKEN = os.getenv("TOOLFLOW_REPO_TOKEN", "")
REMOTE_TIMEOUT = float(os.getenv("TOOLFLOW_REMOTE_TIMEOUT", "30"))
HEADER_REPO_TOKEN = "x-repo-token"

# Planner client. Swap model strings for any OpenRouter-supported model.
# https://openrouter.ai/models
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
PLANNER_MODEL = os.getenv("TOOLFLOW_PLANNER_MODEL", "anthropic/claude-3.5-haiku")

LOG_LEVEL = os.getenv("TOOLFLOW_LOG_LEVEL", "INFO")
