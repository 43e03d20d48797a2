from pitchcoach.services.openai_service import LLMUnavailableError, OpenAIService

__all__ = [
    'LLMUnavailableError',
    'OpenAIService',
]
