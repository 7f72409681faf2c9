#!/usr/bin/env python3
"""
Interactive client for the assistant server.

- Text mode (/ws): send utterances over the websocket, print the JSON answers.
- Admin mode (http): trigger a knowledge refresh or clear the response cache.

Examples:
  python client.py --url ws://127.0.0.1:3000/ws --query "Was ist die GenialCard?"
  python client.py --url ws://127.0.0.1:3000/ws                 # interactive
  python client.py --url http://127.0.0.1:3000 --refresh
  python client.py --url http://127.0.0.1:3000 --clear-cache
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import List, Optional

import requests
import websockets


def _build_headers(args: argparse.Namespace) -> List[tuple[str, str]]:
    headers: List[tuple[str, str]] = []
    if args.auth:
        headers.append(("Authorization", args.auth))
    return headers


def _print_answer(raw: str) -> None:
    try:
        obj = json.loads(raw)
    except json.JSONDecodeError:
        print("bot>", raw)
        return
    intent = obj.get("navigationIntent")
    cached = " (cache)" if obj.get("fromCache") else ""
    suffix = f" [{intent}]" if intent else ""
    print(f"bot> {obj.get('response', '')}{suffix}{cached}")


async def text_client(uri: str, query: Optional[str], model: Optional[str], headers: List[tuple[str, str]]) -> None:
    async with websockets.connect(uri, additional_headers=headers) as ws:
        if query is not None:
            await ws.send(json.dumps({"message": query, "modelName": model}, ensure_ascii=False))
            _print_answer(await ws.recv())
            return
        print("Connected. Type 'exit' to quit.")
        while True:
            try:
                text = input("you> ").strip()
            except (EOFError, KeyboardInterrupt):
                break
            if not text or text.lower() in {"exit", "quit"}:
                break
            await ws.send(json.dumps({"message": text, "modelName": model}, ensure_ascii=False))
            _print_answer(await ws.recv())


def admin_call(base_url: str, path: str, payload: dict, headers: List[tuple[str, str]]) -> int:
    try:
        resp = requests.post(f"{base_url.rstrip('/')}{path}", json=payload, headers=dict(headers), timeout=30)
    except requests.RequestException as exc:
        print(f"Request failed: {exc}", file=sys.stderr)
        return 1
    if resp.status_code != 200:
        print(f"HTTP {resp.status_code}: {resp.text[:200]}", file=sys.stderr)
        return 1
    print(json.dumps(resp.json(), ensure_ascii=False))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Client for the assistant server")
    parser.add_argument("--url", required=True, help="ws://host:3000/ws for chat, http://host:3000 for admin calls")
    parser.add_argument("--query", default=None, help="One-shot query. Omit to enter interactive mode.")
    parser.add_argument("--model", default=None, help="Model name for delegated answers")
    parser.add_argument("--refresh", action="store_true", help="Reload the knowledge sources")
    parser.add_argument("--clear-cache", action="store_true", help="Drop all cached responses")
    parser.add_argument("--auth", default=None, help="Authorization header if needed, e.g. 'Bearer xxx'")
    args = parser.parse_args()

    headers = _build_headers(args)
    if args.url.startswith("http"):
        if args.refresh:
            sys.exit(admin_call(args.url, "/api/knowledge/refresh", {"force": True}, headers))
        if args.clear_cache:
            sys.exit(admin_call(args.url, "/api/cache/clear", {}, headers))
        print("Use --refresh or --clear-cache with an http URL.", file=sys.stderr)
        sys.exit(2)
    if args.url.endswith("/ws"):
        asyncio.run(text_client(args.url, args.query, args.model, headers))
        return
    print("Unknown endpoint. Use ws(s)://.../ws for chat or http(s)://host for admin calls.", file=sys.stderr)
    sys.exit(2)


if __name__ == "__main__":
    main()
