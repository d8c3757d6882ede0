"""cal2prompt Test Suite

Test organization:
- unit/: Unit tests for individual modules
  - config/: YAML loading and validation
  - oauth/: Tokens, PKCE loopback flow, account/token lifecycle
  - aggregation/: Calendar client, bucketing, durations, templates
  - server/: JSON-RPC transport and MCP server
  - cli/: Argument handling and prompt assembly

No test touches the network; the OAuth flow tests bind 127.0.0.1 only.

Running tests:
    pip install -e ".[test]"
    pytest
"""
