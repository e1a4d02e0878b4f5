"""Play the Turing-test game from the terminal against the configured providers."""
import argparse
import sys
sys.path.insert(0, '.')

from main import select_policy
from services.chat_service import ChatService
from services.conversation_manager import ConversationManager
from services.errors import ChatError
from services.llm_client import LLMClient
from services.outcome_evaluator import OutcomeEvaluator


def main():
    """Run an interactive chat until the player wins or the stranger leaves."""
    parser = argparse.ArgumentParser(description="Terminal Turing Chat")
    parser.add_argument("--policy", default="score", choices=["score", "marker"])
    parser.add_argument("--user", default="terminal")
    parser.add_argument("--chat", default="demo")
    args = parser.parse_args()

    profile, policy = select_policy(args.policy)
    service = ChatService(
        conversation_manager=ConversationManager(profile=profile),
        llm_client=LLMClient(),
        outcome_evaluator=OutcomeEvaluator(policy),
        typing_chars_per_minute=0
    )

    print("=== Turing Chat ===")
    print("You are now chatting with a random stranger. Say hi!\n")

    while True:
        try:
            message = input("you: ")
        except (EOFError, KeyboardInterrupt):
            print()
            break

        try:
            result = service.handle_message(args.user, args.chat, message)
        except ChatError as e:
            print(f"[error {e.status_code}] {e.message}")
            continue

        print(result.message)
        if result.has_won:
            seconds = result.time_taken_ms / 1000
            print(f"\n✓ You convinced them! {result.num_messages} messages in {seconds:.1f}s "
                  f"(highest score: {result.highest_score})")
            break
        if result.has_completed:
            print("\nStranger has disconnected.")
            break


if __name__ == "__main__":
    main()
