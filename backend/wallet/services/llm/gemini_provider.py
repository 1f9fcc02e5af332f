import httpx

from wallet.services.llm.base import ExpenseParserProvider
from wallet.services.llm.parser_utils import parse_result_from_text
from wallet.services.llm.prompts import SYSTEM_PROMPT, build_user_prompt
from wallet.services.llm.types import ParseContext, ParseResult
from wallet.services.media_polling import wait_until_ready

GEMINI_API_BASE = "https://generativelanguage.googleapis.com"


class GeminiExpenseParserProvider(ExpenseParserProvider):
    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        poll_interval: float = 2.0,
        poll_max_attempts: int = 30,
        poll_deadline: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.poll_interval = poll_interval
        self.poll_max_attempts = poll_max_attempts
        self.poll_deadline = poll_deadline
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(30.0, connect=10.0)
        return httpx.AsyncClient(
            base_url=GEMINI_API_BASE,
            timeout=timeout,
            transport=self.transport,
            params={"key": self.api_key},
        )

    async def _generate(self, client: httpx.AsyncClient, parts: list[dict]) -> ParseResult:
        payload = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "temperature": 0,
                "responseMimeType": "application/json",
            },
        }
        response = await client.post(
            f"/v1beta/models/{self.model}:generateContent",
            json=payload,
        )
        response.raise_for_status()
        data = response.json()
        content = data["candidates"][0]["content"]["parts"][0]["text"]
        return parse_result_from_text(content)

    async def parse_expenses(self, text: str, context: ParseContext) -> ParseResult:
        user_prompt = build_user_prompt(
            reference_date=str(context.reference_date),
            known_categories=context.known_categories,
            text=text,
        )
        async with self._client() as client:
            return await self._generate(client, [{"text": f"{SYSTEM_PROMPT}\n\n{user_prompt}"}])

    async def parse_media(
        self,
        data: bytes,
        mime_type: str,
        context: ParseContext,
    ) -> ParseResult:
        user_prompt = build_user_prompt(
            reference_date=str(context.reference_date),
            known_categories=context.known_categories,
        )
        async with self._client() as client:
            upload = await client.post(
                "/upload/v1beta/files",
                content=data,
                headers={
                    "X-Goog-Upload-Protocol": "raw",
                    "Content-Type": mime_type,
                },
            )
            upload.raise_for_status()
            uploaded = upload.json()["file"]

            async def check_file() -> dict | None:
                response = await client.get(f"/v1beta/{uploaded['name']}")
                response.raise_for_status()
                current = response.json()
                if current.get("state") == "FAILED":
                    raise httpx.HTTPError(f"Gemini could not process {uploaded['name']}.")
                if current.get("state") == "ACTIVE":
                    return current
                return None

            ready = await wait_until_ready(
                check_file,
                interval=self.poll_interval,
                max_attempts=self.poll_max_attempts,
                deadline=self.poll_deadline,
            )
            return await self._generate(
                client,
                [
                    {"text": f"{SYSTEM_PROMPT}\n\n{user_prompt}"},
                    {"fileData": {"mimeType": mime_type, "fileUri": ready["uri"]}},
                ],
            )
