"""
RUN SCRIPT - Start the Parley server
====================================

PURPOSE:
  Single entry point to start the backend.

WHAT IT DOES:
  - Imports the FastAPI app from parley.main.
  - Runs it with uvicorn on host 0.0.0.0 and port 8000.
  - reload=True restarts the server when Python files change (handy for development).

USAGE:
  python run.py

  Then open http://localhost:8000/docs for the API docs, or use chat_cli.py.

NOTE:
  Set OPENAI_API_KEY and/or NOVITA_API_KEY in .env first (REPLICATE_API_KEY for
  image and video generation). With neither chat key, /api/chat answers 503.
"""

import uvicorn

# ------------------------------------------------------------------------------
# ENTRY POINT
# ------------------------------------------------------------------------------
if __name__ == "__main__":
    uvicorn.run(
        "parley.main:app",  # String path to the FastAPI app instance (module:variable).
        host="0.0.0.0",     # Listen on all network interfaces so other devices can connect.
        port=8000,          # HTTP port; change if 8000 is already in use.
        reload=True         # Auto-restart when .py files change (useful during development).
    )
