"""Entry point for the assistant console demo."""

import argparse
from pathlib import Path

from resolver import ResolutionPipeline
from resolver.config import load_config


def main() -> None:
    parser = argparse.ArgumentParser(description="Chat with the assistant on the console.")
    parser.add_argument("--config", default="config/assistant.json", help="Path to config file.")
    parser.add_argument("--knowledge", default=None, help="Knowledge directory (overrides knowledge.dir).")
    parser.add_argument("--model", default=None, help="Model name for the completion backend.")
    args = parser.parse_args()

    config = load_config(args.config if Path(args.config).exists() else None)
    pipeline = ResolutionPipeline.from_config(config, args.knowledge)
    count = pipeline.refresh_knowledge(force=True)

    print(f"Assistant ready with {count} entries. Type 'exit' to quit, '/refresh' to reload knowledge.")
    try:
        while True:
            user_input = input("you> ").strip()
            if not user_input or user_input.lower() in {"exit", "quit"}:
                break
            if user_input == "/refresh":
                print(f"bot> {pipeline.refresh_knowledge(force=True)} entries loaded")
                continue
            if user_input == "/clear":
                print(f"bot> {pipeline.clear_response_cache()} cached responses dropped")
                continue
            resolution = pipeline.resolve(user_input, args.model)
            suffix = f" [{resolution.navigation_intent}]" if resolution.navigation_intent else ""
            print(f"bot> {resolution.response}{suffix}")
    finally:
        pipeline.close()


if __name__ == "__main__":
    main()
