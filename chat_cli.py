"""
PARLEY TERMINAL CLIENT
======================

PURPOSE:
A command-line chat client for the Parley API, so the backend can be used and
debugged without the web frontend. It keeps the transcript locally and sends
the whole thing to /api/chat on every turn, like the browser client does.

USAGE:
    python chat_cli.py

    Make sure the server is running first: python run.py

COMMANDS:
    /new               - Start a new conversation
    /history           - Show the stored messages of the current conversation
    /status            - Show which AI provider is active
    /personality <id>  - Switch personality (default, professional, friendly, ...)
    /quit or /exit     - Exit
"""

import requests

try:
    from config import ASSISTANT_NAME
except ImportError:
    ASSISTANT_NAME = "Parley"


# -----------------------------------------------------------------------------
# CONFIGURATION
# -----------------------------------------------------------------------------
BASE_URL = "http://localhost:8000"
# Chat requests can take a while when OpenAI fails and Qwen has to answer.
CHAT_TIMEOUT = 90

CONVERSATION_ID = None
PERSONALITY = "default"
TRANSCRIPT = []


# -----------------------------------------------------------------------------
# UI HELPERS
# -----------------------------------------------------------------------------

def print_header():
    print("\n" + "=" * 60)
    print(f"💬 {ASSISTANT_NAME} - Terminal Chat")
    print("=" * 60)
    print("\nCommands:")
    print("  /new - Start a new conversation")
    print("  /history - See stored messages")
    print("  /status - See which AI model is active")
    print("  /personality <id> - Switch personality")
    print("  /quit - Exit")
    print("=" * 60 + "\n")


def get_user_input():
    try:
        return input("\nYou: ").strip()
    except (KeyboardInterrupt, EOFError):
        return None


def _error_text(response):
    """Prefer the API's own detail message (e.g. 503 when no model is configured)."""
    try:
        detail = response.json().get("detail")
        if isinstance(detail, str):
            return f"❌ {detail}"
    except ValueError:
        pass
    return f"❌ Error: {response.status_code} - {response.text}"


# -----------------------------------------------------------------------------
# API CALLS
# -----------------------------------------------------------------------------

def new_conversation(first_message=None):
    """Create a conversation on the server and remember its id."""
    global CONVERSATION_ID, TRANSCRIPT
    response = requests.post(
        f"{BASE_URL}/api/conversations",
        json={"first_message": first_message, "personality": PERSONALITY},
        timeout=CHAT_TIMEOUT,
    )
    if response.status_code != 201:
        return _error_text(response)
    data = response.json()
    CONVERSATION_ID = data["id"]
    TRANSCRIPT = []
    return f"🆕 Conversation: {data['title']}"


def send_message(message):
    """
    Append the message to the local transcript, send it, and append the reply.

    Returns the reply text (with a marker when the fallback model answered),
    or an error message.
    """
    turns = TRANSCRIPT + [{"role": "user", "content": message}]
    try:
        if not CONVERSATION_ID:
            result = new_conversation(message)
            if result.startswith("❌"):
                return result
        response = requests.post(
            f"{BASE_URL}/api/chat",
            json={"messages": turns, "conversation_id": CONVERSATION_ID, "personality": PERSONALITY},
            timeout=CHAT_TIMEOUT,
        )
    except requests.exceptions.ConnectionError:
        return "❌ Cannot connect to backend. Start it with: python run.py"
    except requests.exceptions.Timeout:
        return "❌ Request timed out."

    if response.status_code != 200:
        return _error_text(response)

    data = response.json()
    reply = data["message"]["content"]
    TRANSCRIPT.extend([{"role": "user", "content": message}, {"role": "assistant", "content": reply}])
    if data["model_info"]["is_fallback"]:
        return f"[fallback] {reply}"
    return reply


def get_chat_history():
    if not CONVERSATION_ID:
        return "No active conversation"
    try:
        response = requests.get(f"{BASE_URL}/api/conversations/{CONVERSATION_ID}/messages", timeout=10)
    except requests.exceptions.RequestException as e:
        return f"Error retrieving history: {e}"
    if response.status_code != 200:
        return _error_text(response)

    messages = response.json()
    if not messages:
        return "No messages in this conversation"
    output = f"\n📜 Chat History ({len(messages)} messages):\n" + "-" * 60 + "\n"
    for i, msg in enumerate(messages, 1):
        role = "You" if msg.get("role") == "user" else ASSISTANT_NAME
        output += f"{i}. {role}: {msg.get('content', '')}\n"
    return output + "-" * 60 + "\n"


def set_personality(personality_id):
    """Switch personality after checking the id against /api/personalities."""
    global PERSONALITY
    try:
        response = requests.get(f"{BASE_URL}/api/personalities", timeout=10)
    except requests.exceptions.RequestException as e:
        return f"Error retrieving personalities: {e}"
    if response.status_code != 200:
        return _error_text(response)

    valid = [p["id"] for p in response.json()]
    if personality_id not in valid:
        return f"❌ Unknown personality '{personality_id}'. Choose one of: {', '.join(valid)}"
    PERSONALITY = personality_id
    return f"✅ Personality set to {PERSONALITY}"


def get_model_status():
    try:
        response = requests.get(f"{BASE_URL}/api/model-status", timeout=10)
    except requests.exceptions.RequestException as e:
        return f"Error retrieving model status: {e}"
    if response.status_code != 200:
        return _error_text(response)
    status = response.json()
    return (
        f"Active model: {status['active_provider']} "
        f"(OpenAI: {status['primary_available']}, Qwen: {status['fallback_available']}, "
        f"checked {status['last_checked_at']})"
    )


# -----------------------------------------------------------------------------
# MAIN LOOP
# -----------------------------------------------------------------------------

def main():
    global CONVERSATION_ID, TRANSCRIPT

    print_header()

    while True:
        try:
            user_input = get_user_input()
            if user_input is None or user_input in ["/quit", "/exit"]:
                print("\n👋 Goodbye!")
                break
            if not user_input:
                continue

            if user_input == "/new":
                CONVERSATION_ID = None
                TRANSCRIPT = []
                print("🔄 Next message starts a new conversation.")
                continue
            elif user_input == "/history":
                print(get_chat_history())
                continue
            elif user_input == "/status":
                print(get_model_status())
                continue
            elif user_input.startswith("/personality"):
                parts = user_input.split(maxsplit=1)
                if len(parts) != 2:
                    print("❌ Usage: /personality <id>")
                    continue
                print(set_personality(parts[1].strip()))
                continue
            elif user_input.startswith("/"):
                print(f"❌ Unknown command: {user_input}")
                continue

            print(f"🤖 {ASSISTANT_NAME}: ", end="", flush=True)
            print(send_message(user_input))

        except KeyboardInterrupt:
            print("\n\n👋 Goodbye!")
            break


if __name__ == "__main__":
    main()
