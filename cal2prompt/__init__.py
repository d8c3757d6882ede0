"""cal2prompt: Calendar to LLM prompt

Fetches the user's Google Calendar events and turns them into a single text
prompt. The same capability is exposed as an MCP tool server over stdio.

Components:
    config_models.py: YAML configuration validated with pydantic
    logging_config.py: structlog setup (stderr only)
    errors.py: Named error hierarchy shared by CLI and MCP server
    google/: OAuth2 flow, token persistence, Calendar REST client
    calendar/: Aggregation, day bucketing, templates, duration shortcuts
    mcp/: JSON-RPC stdio transport and tool server
    cli.py: Command line entry point
"""

from pathlib import Path


__version__ = "0.2.0"

# Path constants
DEFAULT_CONFIG_PATH = Path("~/.config/cal2prompt/config.yaml")
DEFAULT_OAUTH2_DIR = Path("~/.local/share/cal2prompt/oauth2")
