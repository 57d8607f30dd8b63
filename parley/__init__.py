"""
PARLEY APPLICATION PACKAGE
==========================

The Parley chat backend:

  from parley.main import app
  from parley.models import ChatRequest
  from parley.services.chat_orchestrator import ChatOrchestrator

FILE STRUCTURE:
  parley/
    __init__.py   - This file; marks 'parley' as a package.
    main.py       - FastAPI app and all HTTP endpoints (/api/chat, /api/model-status, ...).
    models.py     - Pydantic models for API requests, responses, and stored data.
    services/     - Business logic: chat providers, fallback orchestration, prompts,
                    storage, and image/video generation.
"""
