"""
Simulated LLM inference worker
Pure business logic: no transport code, output goes through the emit callable
"""

import time
from typing import Callable, Union

from ..output import output

EOS = "<EOS>"
DEFAULT_RESPONSE = "DeepSeek is a powerful AI model running on Edge."


class LLMWorker:
    service_name = "llm_service"

    def __init__(self, emit: Callable[[Union[bytes, str]], None],
                 response: str = DEFAULT_RESPONSE,
                 load_delay: float = 0.4, token_delay: float = 0.2):
        self.emit = emit
        self.response = response
        self.load_delay = load_delay
        self.token_delay = token_delay
        self.loaded = False

    def initialize(self, config: bytes) -> bool:
        """Simulate staged model loading; configs mentioning "fail" are rejected"""
        text = config.decode("utf-8", errors="replace")
        output.info(f">>> [LLM] Loading model... Config: {text}")

        if "fail" in text.lower():
            output.error(">>> [LLM] Model load rejected by config")
            self.loaded = False
            return False

        for progress in range(0, 101, 20):
            output.info(f">>> [LLM] Loading: {progress}%")
            time.sleep(self.load_delay)

        self.loaded = True
        output.info(">>> [LLM] Model Loaded Successfully!")
        return True

    def process(self, payload: bytes) -> None:
        """Stream the canned response word by word, then the EOS marker"""
        output.info(f">>> [LLM] Received Prompt: {payload.decode('utf-8', errors='replace')}")

        for word in self.response.split():
            time.sleep(self.token_delay)
            token = word + " "
            output.debug(f">>> [LLM] Generated Token: {token}")
            self.emit(token)

        self.emit(EOS)
        output.info(">>> [LLM] Inference Finished.")
