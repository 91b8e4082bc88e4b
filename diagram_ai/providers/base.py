"""Provider-neutral chat completion types."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from diagram_ai.providers.cancellation import CancellationToken


class ProviderError(Exception):
    """Raised when the model provider answers with an error."""

    def __init__(self, message: str, code: Optional[str] = None, recoverable: bool = False):
        super().__init__(message)
        self.code = code
        self.recoverable = recoverable


class ProviderConnectionError(ProviderError):
    """Raised when the provider could not be reached or timed out."""

    def __init__(self, message: str, code: Optional[str] = "connection_error"):
        super().__init__(message, code=code, recoverable=True)


@dataclass
class ChatMessage:
    role: str
    content: str


@dataclass
class ChatCompletionRequest:
    model: str
    messages: List[ChatMessage]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    cancellation_token: Optional[CancellationToken] = None


@dataclass
class ChatChoice:
    index: int
    message: ChatMessage
    finish_reason: Optional[str] = None


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ChatCompletionResponse:
    id: str
    model: str
    choices: List[ChatChoice] = field(default_factory=list)
    usage: Optional[Usage] = None

    @property
    def content(self) -> str:
        """Text of the first choice, ``""`` when the provider sent none."""
        if not self.choices:
            return ""
        return self.choices[0].message.content or ""


class ModelProvider(ABC):
    name: str = "provider"

    @abstractmethod
    def chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        """Send one chat completion request.

        Raises ``ProviderError`` (or ``ProviderConnectionError``) on failure and
        ``RequestCancelled`` when the request's token is cancelled.
        """
