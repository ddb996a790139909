# src/core.py

from fastmcp import FastMCP

fastmcp_app = FastMCP("STS Risk Server")
