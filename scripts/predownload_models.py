#!/usr/bin/env python3
"""
Pre-download the model used by the local completion backend, with progress output.

The model id defaults to ``llm.local.model_id`` from the config file.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import List


def _configured_model(config_path: str) -> str:
    path = Path(config_path)
    if not path.exists() or path.suffix.lower() != ".json":
        return ""
    with path.open("r", encoding="utf-8") as f:
        cfg = json.load(f)
    return ((cfg.get("llm") or {}).get("local") or {}).get("model_id", "")


def _download_repo_files(repo_id: str, revision: str | None) -> None:
    try:
        from huggingface_hub import HfApi, hf_hub_download  # type: ignore
    except ImportError as exc:
        print("Missing dependency: huggingface_hub. Install the 'local' extra first.", file=sys.stderr)
        raise SystemExit(1) from exc

    api = HfApi()
    files: List[str] = api.list_repo_files(repo_id=repo_id, revision=revision, repo_type="model")
    if not files:
        print(f"No files found for {repo_id}", file=sys.stderr)
        return

    total = len(files)
    print(f"Downloading model files for {repo_id} ({total} files)")
    for idx, filename in enumerate(files, start=1):
        print(f"[{idx}/{total}] {filename}")
        hf_hub_download(repo_id=repo_id, filename=filename, revision=revision, repo_type="model")
    print("Done.")


def main() -> None:
    parser = argparse.ArgumentParser(description="Pre-download the local completion model with progress")
    parser.add_argument("--config", default="config/assistant.json", help="Config file to read llm.local.model_id from")
    parser.add_argument("--llm-model", default=os.environ.get("LLM_MODEL"), help="LLM model repo id")
    parser.add_argument("--revision", default=None, help="Model revision (optional)")
    args = parser.parse_args()

    model_id = args.llm_model or _configured_model(args.config) or "Qwen/Qwen2.5-7B-Instruct"
    _download_repo_files(model_id, args.revision)


if __name__ == "__main__":
    main()
