# gsc_mcp/cli/config.py
import os
from dotenv import load_dotenv
from pathlib import Path

# This file is at <project>/gsc_mcp/cli/config.py
project_root = Path(__file__).parent.parent.parent.resolve()

load_dotenv(dotenv_path=project_root / '.env', override=True)

# Base URL of a running server, used by commands that query it over HTTP
GSC_CLI_API_BASE_URL = os.getenv("GSC_CLI_API_BASE_URL", "http://127.0.0.1:3000")
