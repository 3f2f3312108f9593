"""
Interactive chat with persistent memory.

Usage:
    python scripts/memory_chat.py
    python scripts/memory_chat.py --user alice --verbose

Commands:
    /memory   show stored flash and long-term memories
    /prompt   show the last rendered prompt
    /reset    forget everything stored for this user
    /quit     exit
"""

import argparse
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dialog_memory.config.settings import Settings
from dialog_memory.memory.store import SnapshotStore
from dialog_memory.persist.sqlite_store import KVStore
from dialog_memory.pipeline.conversation import MemorySession, create_pipeline
from dialog_memory.telemetry import configure_logging


def print_memory(session: MemorySession) -> None:
    snapshot = session.snapshot

    print(f"\n⚡ Flash memories ({len(snapshot.flash_memory)}):")
    for record in snapshot.flash_memory:
        topics = f" [{', '.join(record.topics)}]" if record.topics else ""
        print(f"  - {record.text}{topics}")

    print(f"\n📚 Long-term memories ({len(snapshot.long_term_memory)}):")
    for record in snapshot.long_term_memory:
        print(f"  - {record.text}")

    print(f"\n🗂  History events: {len(snapshot.conversation_history)}")


def main():
    parser = argparse.ArgumentParser(description="Chat with an assistant that remembers")

    parser.add_argument("--user", type=str, default="default", help="User id for stored memory")
    parser.add_argument("--db", type=str, default=None, help="SQLite database path (overrides MEMORY_DB_PATH)")
    parser.add_argument("--verbose", action="store_true", help="Log full prompts and memory records")
    parser.add_argument("--log-level", type=str, default="WARNING", help="Log level")

    args = parser.parse_args()

    configure_logging(args.log_level, json_logs=False)

    settings = Settings.from_env()
    db_path = Path(args.db or settings.paths.db_path)

    kv = KVStore(db_path)
    try:
        pipeline = create_pipeline(settings, kv=kv)
    except RuntimeError as e:
        print(f"❌ Failed to create pipeline: {e}")
        kv.close()
        return 1

    session = MemorySession(pipeline, SnapshotStore(kv=kv), user_id=args.user)

    print("=" * 70)
    print(f"💬 Memory chat for user '{args.user}' (type /quit to exit)")
    print(
        f"   Conversation: {settings.models.conversation_provider} | "
        f"Memory: {settings.models.memory_provider} | Database: {db_path}"
    )
    print("=" * 70)

    try:
        while True:
            try:
                query = input("\n🧑 You: ").strip()
            except (KeyboardInterrupt, EOFError):
                print("\n\n👋 Goodbye!")
                break

            if not query:
                continue

            if query == "/quit":
                print("\n👋 Goodbye!")
                break
            if query == "/memory":
                print_memory(session)
                continue
            if query == "/prompt":
                last = session.last_obs.last_prompt if session.last_obs else None
                print(last or "(no prompt yet)")
                continue
            if query == "/reset":
                session.reset()
                print("🧹 Memory cleared")
                continue

            try:
                result = session.chat(query, verbose=args.verbose)
            except Exception as e:
                print(f"\n❌ Error: {e}")
                continue

            print(f"🤖 Assistant: {result.response}")

            stages = [name for name, ran in (("flash", result.decision.run_flash),
                                             ("long-term", result.decision.run_long_term)) if ran]
            print(
                f"\n📊 Turn {result.decision.turn_count} | "
                f"Recalled: {len(result.relevant_memories)} | "
                f"Memory stages: {', '.join(stages) or 'none'}"
            )
    finally:
        kv.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
