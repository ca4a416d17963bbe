"""Minimal terminal chat on top of the service facade."""

from agent_friend.api.service import run_chat

if __name__ == "__main__":
    print("Welcome to Agent Friend! Type 'exit' to quit.")
    conversation_id = None
    while True:
        try:
            user_input = input("You: ").strip()
        except EOFError:
            break
        if user_input.lower() == "exit":
            print("Goodbye!")
            break
        if not user_input:
            continue
        print("Agent is thinking...", end="", flush=True)
        result = run_chat(user_input, conversation_id=conversation_id)
        print("\r", end="")
        conversation_id = result["conversation_id"]
        if result["ok"]:
            print("Agent:", result["reply"])
        else:
            print(f"Error [{result['error']['code']}]: {result['error']['message']}")
