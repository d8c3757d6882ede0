"""MCP: JSON-RPC tool server over stdio

Components:
    transport.py: Message types, line parser, stdio reader/writer
    server.py: Initialization gate, method and tool dispatch
    tools.py: Tool catalog for tools/list
"""
