"""
Interactive chat client with streaming output.

Configure the backend in settings.yaml or .env (AELORA_LLM_API_KEY, AELORA_LLM_MODEL,
AELORA_LLM_BASE_URL), then run:
    python examples/chat.py

Commands: /clear drops the active history, /reset forgets the conversation,
/toggle <name> enables or disables a tool.
"""

import asyncio
import logging
import time
import uuid

from dotenv import load_dotenv

from aelora import BackendError, Runtime, SystemStatus, load_settings

load_dotenv()

STARTED = time.monotonic()


async def chat_loop():
    """Run an interactive chat loop with streaming responses."""
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    def status() -> SystemStatus:
        return SystemStatus(
            model=settings.llm.model,
            uptime_seconds=time.monotonic() - STARTED,
        )

    runtime = Runtime.from_settings(settings, status_provider=status)
    conversation_id = str(uuid.uuid4())

    print("=" * 60)
    print("Aelora chat")
    print("=" * 60)
    print(f"Conversation: {conversation_id}")
    print("Type 'quit' or 'exit' to end the conversation.")
    print("=" * 60)
    print()

    while True:
        try:
            user_input = input("You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye!")
            break

        if not user_input:
            continue
        if user_input.lower() in ("quit", "exit"):
            print("Goodbye!")
            break
        if user_input == "/clear":
            await runtime.clear(conversation_id)
            print("History cleared.\n")
            continue
        if user_input == "/reset":
            await runtime.reset(conversation_id)
            print("Conversation reset.\n")
            continue
        if user_input.startswith("/toggle "):
            name = user_input.split(maxsplit=1)[1]
            result = runtime.toggle(name)
            if not result.found:
                print(f"Unknown capability: {name}\n")
            else:
                print(f"{name} is now {'enabled' if result.enabled else 'disabled'}\n")
            continue

        print("Assistant: ", end="", flush=True)
        try:
            await runtime.respond(
                conversation_id,
                user_input,
                on_token=lambda text: print(text, end="", flush=True),
                user_id="local",
            )
            print()
            print()
        except BackendError as e:
            print(f"\nError: {e}")
            print()

        await runtime.compact_pending()

    await runtime.aclose()


async def main():
    await chat_loop()


if __name__ == "__main__":
    asyncio.run(main())
