import pytest

from diagram_ai import prompts
from diagram_ai.models import (
    Confidence,
    DiagramGenerationRequest,
    DiagramModificationRequest,
    DiagramType,
    IntentClassification,
    IntentDiagramType,
    ValidationResult,
)
from diagram_ai.providers.base import (
    ChatChoice,
    ChatCompletionResponse,
    ChatMessage,
    ModelProvider,
    ProviderError,
    Usage,
)
from diagram_ai.providers.cancellation import CancellationToken, RequestCancelled
from diagram_ai.services.diagram_service import (
    MAX_PROMPT_CHARS,
    DiagramAssistant,
    estimate_token_count,
    resolve_diagram_type,
    sanitize_prompt,
)
from diagram_ai.utils.config import settings
from sample_replies import (
    REPLY_ENDPOINT,
    REPLY_EXPLANATION_ONLY,
    REPLY_SEQUENCE,
    REPLY_WORKFLOW,
    REPLY_WORKFLOW_WITH_ACTORS,
)


class ScriptedProvider(ModelProvider):
    name = "scripted"

    def __init__(self, reply="", usage=None, error=None):
        self.reply = reply
        self.usage = usage
        self.error = error
        self.requests = []

    def chat_completion(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return ChatCompletionResponse(
            id="resp-1",
            model="test-model",
            choices=[ChatChoice(index=0, message=ChatMessage(role="assistant", content=self.reply))],
            usage=self.usage,
        )


class RecordingValidator:
    def __init__(self, result=None):
        self.result = result or ValidationResult(is_valid=True)
        self.checked = []

    def __call__(self, code):
        self.checked.append(code)
        return self.result


def _assistant(reply, **kwargs):
    validator = RecordingValidator()
    provider = ScriptedProvider(reply, **kwargs)
    return DiagramAssistant(provider=provider, validator=validator), provider, validator


def test_sanitize_prompt():
    assert sanitize_prompt("  draw <b>this</b>  ") == "draw bthis/b"
    assert len(sanitize_prompt("x" * 5000)) == MAX_PROMPT_CHARS


def test_estimate_token_count():
    assert estimate_token_count("") == 0
    assert estimate_token_count("abcd") == 1
    assert estimate_token_count("abcde") == 2


@pytest.mark.parametrize(
    "intent_type, current_type, expected",
    [
        (IntentDiagramType.CONTEXT, DiagramType.SEQUENCE, DiagramType.SEQUENCE),
        (IntentDiagramType.CONTEXT, None, DiagramType.WORKFLOW),
        (IntentDiagramType.STATE, DiagramType.SEQUENCE, DiagramType.STATE),
        (None, DiagramType.SEQUENCE, None),
    ],
)
def test_resolve_diagram_type(intent_type, current_type, expected):
    classification = IntentClassification(diagram_type=intent_type, confidence=Confidence.HIGH)
    assert resolve_diagram_type(classification, current_type) == expected


def test_generate_workflow():
    assistant, provider, validator = _assistant(REPLY_WORKFLOW_WITH_ACTORS, usage=Usage(10, 20, 30))
    result = assistant.generate_diagram(DiagramGenerationRequest(prompt="patient registration"))

    assert result.type is DiagramType.WORKFLOW
    assert result.title == "Patient Registration Workflow"
    assert result.code.startswith("flowchart TD")
    assert result.workflow_trigger == "Patient arrival at facility"
    assert result.http_method is None
    assert result.validation.is_valid
    assert validator.checked == [result.code]
    assert result.provider == "scripted"
    assert result.model == "test-model"
    assert result.tokens_used == 30


def test_generate_request_messages():
    assistant, provider, _ = _assistant(REPLY_WORKFLOW)
    assistant.generate_diagram(
        DiagramGenerationRequest(prompt="  login <flow> ", type=DiagramType.SEQUENCE, context="existing system")
    )
    request = provider.requests[0]
    assert request.temperature == settings.temperature
    assert request.max_tokens == settings.max_tokens
    assert request.messages[0].content == prompts.generation_prompt(DiagramType.SEQUENCE)
    assert request.messages[1].content == "Additional context: existing system"
    assert request.messages[2].content == "login flow"


def test_extracted_type_overrides_requested_type():
    assistant, _, _ = _assistant(REPLY_ENDPOINT)
    result = assistant.generate_diagram(DiagramGenerationRequest(prompt="login", type=DiagramType.WORKFLOW))

    assert result.type is DiagramType.ENDPOINT
    assert result.http_method == "POST"
    assert result.endpoint_path == "/auth/login"
    assert len(result.request_payloads) == 1
    assert [payload.status for payload in result.response_payloads] == ["200", "400", "401"]
    assert result.workflow_actors is None


def test_requested_type_kept_when_reply_has_none():
    reply = "```mermaid\nsequenceDiagram\n  A->>B: hi\n```"
    assistant, _, _ = _assistant(reply)
    result = assistant.generate_diagram(DiagramGenerationRequest(prompt="hi", type=DiagramType.SEQUENCE))
    assert result.type is DiagramType.SEQUENCE
    assert result.tokens_used == estimate_token_count(reply)


def test_sequence_reply_leaves_type_specific_fields_empty():
    assistant, _, _ = _assistant(REPLY_SEQUENCE)
    result = assistant.generate_diagram(DiagramGenerationRequest(prompt="schema"))
    assert result.type is DiagramType.SEQUENCE
    assert result.workflow_actors is None
    assert result.request_payloads == []


def test_question_answer_is_not_validated():
    assistant, _, validator = _assistant(REPLY_EXPLANATION_ONLY)
    result = assistant.generate_diagram(DiagramGenerationRequest(prompt="how does login work?"))
    assert result.code == ""
    assert result.explanation == REPLY_EXPLANATION_ONLY
    assert result.validation is None
    assert validator.checked == []


def test_invalid_code_is_reported_not_raised():
    validator = RecordingValidator(ValidationResult(is_valid=False, error="Parse error on line 2"))
    assistant = DiagramAssistant(provider=ScriptedProvider(REPLY_WORKFLOW), validator=validator)
    result = assistant.generate_diagram(DiagramGenerationRequest(prompt="login"))
    assert result.code
    assert result.validation.error == "Parse error on line 2"


def test_modify_diagram():
    assistant, provider, validator = _assistant(REPLY_SEQUENCE)
    request = DiagramModificationRequest(code="flowchart TD\n A --> B", instruction="make it a <sequence>")
    result = assistant.modify_diagram(request)

    assert result.original_code == request.code
    assert result.modified_code.startswith("sequenceDiagram")
    assert result.validation.is_valid
    user_message = provider.requests[0].messages[1].content
    assert "```mermaid\nflowchart TD\n A --> B\n```" in user_message
    assert "Instruction: make it a sequence" in user_message
    assert provider.requests[0].messages[0].content == prompts.MODIFY_BASE


def test_modify_without_code_keeps_original():
    assistant, _, _ = _assistant("I cannot change that diagram without more detail.")
    result = assistant.modify_diagram(DiagramModificationRequest(code="flowchart TD\n A --> B", instruction="?"))
    assert result.modified_code == "flowchart TD\n A --> B"
    assert result.validation is None


def test_explain_diagram():
    assistant, provider, _ = _assistant("  The user logs in and is redirected.  ")
    assert assistant.explain_diagram("flowchart TD\n A --> B") == "The user logs in and is redirected."
    request = provider.requests[0]
    assert request.temperature == settings.explain_temperature
    assert request.max_tokens == settings.explain_max_tokens
    assert request.messages[0].content == prompts.EXPLAIN_BASE


def test_analyze_intent_uses_assistant_provider():
    assistant, provider, _ = _assistant('{"isQuestion": true, "diagramType": null, "confidence": "high"}')
    classification = assistant.analyze_intent("what does this do?", current_type=DiagramType.STATE)
    assert classification.is_question
    assert len(provider.requests) == 1


def test_provider_errors_and_cancellation_propagate():
    assistant = DiagramAssistant(provider=ScriptedProvider(error=ProviderError("boom")))
    with pytest.raises(ProviderError):
        assistant.generate_diagram(DiagramGenerationRequest(prompt="x"))

    token = CancellationToken()
    assistant = DiagramAssistant(provider=ScriptedProvider(error=RequestCancelled()))
    with pytest.raises(RequestCancelled):
        assistant.explain_diagram("flowchart TD", token=token)
