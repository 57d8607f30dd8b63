"""
SERVICES PACKAGE
=================

Business logic lives here. The API layer (parley.main) calls these services;
they don't handle HTTP, only chat flow, provider calls, and data.

MODULES:
    chat_orchestrator - primary -> fallback decision and provider status
    openai_service    - primary chat client (OpenAI via LangChain)
    fallback_service  - fallback chat client (Qwen via Hugging Face Inference)
    prompt_composer   - system message with personality and user details
    profile_extractor - name/location/interests/profession/pets from free text
    availability      - local API key checks
    personalities     - named system-prompt variants
    errors            - normalized provider error kinds
    storage           - JSON-file conversations, messages and users
    media_service     - image (Replicate FLUX) and video (Wan2.1) generation
"""
