"""Inbound completion signal sources and their application to test runs."""

from .gitlab_webhook import PIPELINE_RESULTS, GitLabPipelineWebhookTranslator
from .kafka_signal_reader import CompletionSignalReader, KafkaConsumerProtocol
from .signal_application import apply_completion_signals
from .signal_messages import (
    AppliedCompletionSignal,
    CompletionSignalError,
    ReceivedCompletionSignal,
    parse_completion_signal,
)

__all__ = [
    "AppliedCompletionSignal",
    "CompletionSignalError",
    "CompletionSignalReader",
    "GitLabPipelineWebhookTranslator",
    "KafkaConsumerProtocol",
    "PIPELINE_RESULTS",
    "ReceivedCompletionSignal",
    "apply_completion_signals",
    "parse_completion_signal",
]
