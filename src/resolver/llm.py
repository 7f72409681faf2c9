"""Completion backends.

A backend turns a ``CompletionRequest`` into text or raises ``BackendError``.
Bounding the call in time is the orchestrator's job.
"""

from __future__ import annotations

import re
import threading
from typing import Any, Dict, List, Optional, Protocol

import requests

from .errors import BackendError, BackendTimeout
from .logger import LOGGER
from .types import CompletionRequest


class CompletionBackend(Protocol):
    def complete(self, request: CompletionRequest) -> str:
        ...


class OllamaBackend:
    def __init__(self, base_url: str = "http://127.0.0.1:11434/api", timeout_sec: float = 8.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.session = requests.Session()

    def complete(self, request: CompletionRequest) -> str:
        payload = {
            "model": request.model_name,
            "messages": [
                {"role": "system", "content": request.system_instruction},
                {"role": "user", "content": request.user_utterance},
            ],
            "stream": False,
        }
        LOGGER.debug("Sending chat request to %s/chat with model %s", self.base_url, request.model_name)
        try:
            response = self.session.post(f"{self.base_url}/chat", json=payload, timeout=self.timeout_sec)
        except requests.Timeout as exc:
            raise BackendTimeout(f"no response within {self.timeout_sec}s") from exc
        except requests.RequestException as exc:
            raise BackendError(f"request failed: {exc}") from exc

        if response.status_code != 200:
            raise BackendError(f"HTTP {response.status_code}: {response.text[:200]}")
        try:
            data = response.json()
        except ValueError as exc:
            raise BackendError("response is not JSON") from exc
        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict):
            raise BackendError(f"unexpected response shape ({type(data).__name__})")
        content = message.get("content")
        if not isinstance(content, str) or not content.strip():
            raise BackendError("response has no message content")
        return content.strip()

    def list_models(self) -> List[str]:
        try:
            response = self.session.get(f"{self.base_url}/tags", timeout=self.timeout_sec)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise BackendError(f"cannot reach backend at {self.base_url}: {exc}") from exc
        models = (data.get("models") or []) if isinstance(data, dict) else None
        if not isinstance(models, list):
            raise BackendError("model listing has unexpected shape")
        return [m.get("name", "") for m in models if isinstance(m, dict)]


QUANTIZATION_ALIASES = {
    "int4": "int4", "4bit": "int4", "4-bit": "int4",
    "int8": "int8", "8bit": "int8", "8-bit": "int8",
}
SPEAKER_LABEL_RE = re.compile(r"^(assistant|assistent|hanna|antwort)\s*:\s*", re.IGNORECASE)


def clean_reply(text: str, max_chars: int = 0) -> str:
    """Strip a leading speaker label and cut an overlong reply after its last full sentence."""
    reply = SPEAKER_LABEL_RE.sub("", text.strip()).strip()
    if max_chars and len(reply) > max_chars:
        cut = reply[:max_chars]
        end = max(cut.rfind(". "), cut.rfind("! "), cut.rfind("? "))
        reply = cut[: end + 1] if end > 0 else cut.rstrip() + "…"
    return reply


class LocalTransformersBackend:
    """Serves one local chat model through transformers; the model loads on first use.

    Loading and generation are serialized behind one lock, since resolutions
    call ``complete`` from several pool threads.
    """

    def __init__(
        self,
        model_id: str,
        quantization: str = "int4",
        max_new_tokens: int = 256,
        temperature: float = 0.2,
        top_p: float = 0.9,
        max_answer_chars: int = 600,
    ) -> None:
        self.model_id = model_id
        self.quantization = QUANTIZATION_ALIASES.get((quantization or "").lower(), "fp16")
        self.max_new_tokens = max_new_tokens
        self.temperature = temperature
        self.top_p = top_p
        self.max_answer_chars = max_answer_chars
        self._model = None
        self._tokenizer = None
        self._lock = threading.Lock()

    def _quantization_config(self, torch: Any, bnb_config_cls: Any) -> Any:
        if self.quantization == "int4":
            return bnb_config_cls(
                load_in_4bit=True,
                bnb_4bit_compute_dtype=torch.float16,
                bnb_4bit_use_double_quant=True,
                bnb_4bit_quant_type="nf4",
            )
        if self.quantization == "int8":
            return bnb_config_cls(load_in_8bit=True)
        return None

    def _load(self) -> None:
        import torch
        from transformers import AutoModelForCausalLM, AutoTokenizer, BitsAndBytesConfig  # type: ignore

        LOGGER.info("Loading local model %s (%s)", self.model_id, self.quantization)
        tokenizer = AutoTokenizer.from_pretrained(self.model_id, trust_remote_code=True)
        model = AutoModelForCausalLM.from_pretrained(
            self.model_id,
            device_map="auto",
            torch_dtype=torch.float16,
            quantization_config=self._quantization_config(torch, BitsAndBytesConfig),
            trust_remote_code=True,
        )
        model.eval()
        self._tokenizer, self._model = tokenizer, model

    def _generate(self, request: CompletionRequest) -> str:
        tokenizer, model = self._tokenizer, self._model
        messages = [
            {"role": "system", "content": request.system_instruction},
            {"role": "user", "content": request.user_utterance},
        ]
        input_ids = tokenizer.apply_chat_template(messages, add_generation_prompt=True, return_tensors="pt")
        input_ids = input_ids.to(model.device)
        outputs = model.generate(
            input_ids,
            max_new_tokens=self.max_new_tokens,
            do_sample=self.temperature > 0,
            temperature=self.temperature,
            top_p=self.top_p,
            eos_token_id=tokenizer.eos_token_id,
            pad_token_id=tokenizer.eos_token_id,
        )
        return tokenizer.decode(outputs[0][input_ids.shape[-1]:], skip_special_tokens=True)

    def complete(self, request: CompletionRequest) -> str:
        # one model per backend; request.model_name is ignored
        with self._lock:
            if self._model is None:
                try:
                    self._load()
                except (ImportError, OSError) as exc:
                    raise BackendError(f"local model {self.model_id} unavailable: {exc}") from exc
            try:
                raw = self._generate(request)
            except (RuntimeError, ValueError) as exc:
                raise BackendError(f"generation failed: {exc}") from exc
        text = clean_reply(raw, self.max_answer_chars)
        if not text:
            raise BackendError("local model produced no text")
        return text


def build_backend(cfg: Dict[str, Any]) -> Optional[CompletionBackend]:
    kind = (cfg.get("backend") or "ollama").lower()
    if kind == "none":
        return None
    if kind == "ollama":
        return OllamaBackend(
            base_url=cfg.get("base_url", "http://127.0.0.1:11434/api"),
            timeout_sec=float(cfg.get("timeout_sec", 8)),
        )
    if kind == "local":
        local = cfg.get("local", {})
        return LocalTransformersBackend(
            model_id=local.get("model_id", "Qwen/Qwen2.5-7B-Instruct"),
            quantization=local.get("quantization", "int4"),
            max_new_tokens=local.get("max_new_tokens", 256),
            temperature=local.get("temperature", 0.2),
            top_p=local.get("top_p", 0.9),
            max_answer_chars=local.get("max_answer_chars", 600),
        )
    raise ValueError(f"Unknown completion backend: {kind}")
