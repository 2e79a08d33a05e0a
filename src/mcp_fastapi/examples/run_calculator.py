#!/usr/bin/env python
"""Run the calculator MCP server.

Serves SSE on /sse (+ /messages) and streamable HTTP on /mcp:

    python run_calculator.py --port 3000

Or over stdio, e.g. for Claude Desktop:

{
  "mcpServers": {
    "calculator": {
      "command": "python",
      "args": ["/path/to/examples/run_calculator.py", "--transport", "stdio"]
    }
  }
}
"""

import sys
import os

# Add the src directory to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from mcp_fastapi.examples.calculator_server import create_integration

if __name__ == "__main__":
    print("Starting Calculator MCP Server...", file=sys.stderr)
    create_integration().main()
