"""
Text-to-SQL Service - asks the completion backend for a SQL statement and
extracts the executable text from its reply.

The model is prompted with the dataset schema only; the returned SQL is not
validated or rewritten beyond stripping markdown fences and chatty prefixes.
"""

from dataclasses import dataclass
from typing import List, Optional
import re
import structlog

from backend.services.llm_service import CompletionService, Message
from backend.services.prompt_templates import DATASET_SCHEMA, build_system_prompt, build_user_prompt
from backend.utils.errors import CompletionServiceError

logger = structlog.get_logger(__name__)

SQL_FENCE_PATTERN = re.compile(r"```sql\s*([\s\S]*?)\s*```", re.IGNORECASE)
CONVERSATIONAL_PREFIX_PATTERN = re.compile(
    r'(Sure!|Here is the SQL query for "[^"]+":?)', re.IGNORECASE
)


def extract_sql(text: str) -> str:
    """
    Pull the SQL statement out of a completion.

    The first fenced ```sql block wins when it has content; otherwise the
    first "Sure!" / 'Here is the SQL query for "...":' phrase is removed and
    the remainder trimmed.
    """
    text = (text or "").strip()
    match = SQL_FENCE_PATTERN.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return CONVERSATIONAL_PREFIX_PATTERN.sub("", text, count=1).strip()


@dataclass
class GeneratedQuery:
    natural_language: str
    raw_response: str
    sql: str


class TextToSQLService:
    """Translates a natural-language question into a SQL statement."""

    def __init__(self, completion_service: CompletionService, schema_prompt: Optional[str] = None):
        self.completion_service = completion_service
        self.system_prompt = build_system_prompt(schema_prompt or DATASET_SCHEMA)

    def build_messages(self, user_query: str) -> List[Message]:
        return [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": build_user_prompt(user_query)},
        ]

    async def generate_sql(self, user_query: str) -> GeneratedQuery:
        """
        Generate SQL for ``user_query``.

        Raises:
            CompletionServiceError: the completion call failed or produced no SQL
        """
        logger.info("Generating SQL from natural language", query=user_query[:100])

        raw_response = await self.completion_service.complete(self.build_messages(user_query))
        sql = extract_sql(raw_response)
        if not sql:
            raise CompletionServiceError("Completion did not contain a SQL statement")

        logger.info("Cleaned SQL", sql=sql)
        return GeneratedQuery(natural_language=user_query, raw_response=raw_response, sql=sql)
