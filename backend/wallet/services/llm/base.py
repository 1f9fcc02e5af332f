from abc import ABC, abstractmethod

from wallet.services.llm.types import ParseContext, ParseResult


class ProviderNotConfiguredError(RuntimeError):
    """Raised when a provider is selected but not configured."""


class ExpenseParserProvider(ABC):
    @abstractmethod
    async def parse_expenses(self, text: str, context: ParseContext) -> ParseResult:
        raise NotImplementedError

    async def parse_media(
        self,
        data: bytes,
        mime_type: str,
        context: ParseContext,
    ) -> ParseResult:
        raise ProviderNotConfiguredError(
            f"{type(self).__name__} does not support audio or image input."
        )
