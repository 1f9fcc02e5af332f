from wallet.core.config import get_settings
from wallet.services.llm.base import ExpenseParserProvider, ProviderNotConfiguredError
from wallet.services.llm.gemini_provider import GeminiExpenseParserProvider
from wallet.services.llm.mock_provider import MockExpenseParserProvider


def get_expense_parser_provider() -> ExpenseParserProvider:
    settings = get_settings()
    provider = settings.llm_provider.lower().strip()

    if provider == "mock":
        return MockExpenseParserProvider()
    if provider == "gemini":
        if not settings.gemini_api_key:
            raise ProviderNotConfiguredError(
                "Gemini API key is missing. Set GEMINI_API_KEY in backend .env."
            )
        return GeminiExpenseParserProvider(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            poll_interval=settings.media_poll_interval_seconds,
            poll_max_attempts=settings.media_poll_max_attempts,
            poll_deadline=settings.media_poll_deadline_seconds,
        )
    raise ProviderNotConfiguredError(f"LLM provider '{provider}' is not supported.")
