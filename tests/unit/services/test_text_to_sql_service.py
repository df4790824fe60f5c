"""
Tests for Text-to-SQL Service

SQL extraction from completion text and the prompt sent to the model.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from backend.services.prompt_templates import DATASET_SCHEMA
from backend.services.text_to_sql_service import TextToSQLService, extract_sql
from backend.utils.errors import CompletionServiceError


class TestExtractSql:

    def test_fenced_block(self):
        text = "Sure! Here you go:\n```sql\nSELECT state, COUNT(*) FROM locations GROUP BY state;\n```\nEnjoy."

        assert extract_sql(text) == "SELECT state, COUNT(*) FROM locations GROUP BY state;"

    def test_fence_is_case_insensitive(self):
        assert extract_sql("```SQL\nSELECT 1\n```") == "SELECT 1"

    def test_first_fenced_block_wins(self):
        text = "```sql\nSELECT 1\n```\nor\n```sql\nSELECT 2\n```"

        assert extract_sql(text) == "SELECT 1"

    def test_sure_prefix_removed(self):
        assert extract_sql("Sure! SELECT * FROM customers") == "SELECT * FROM customers"

    def test_here_is_prefix_removed(self):
        text = 'Here is the SQL query for "top customers": SELECT commonName FROM customers'

        assert extract_sql(text) == "SELECT commonName FROM customers"

    def test_only_first_prefix_removed(self):
        assert extract_sql("Sure! SELECT 'Sure!'") == "SELECT 'Sure!'"

    def test_plain_sql_untouched(self):
        assert extract_sql("  SELECT 1  ") == "SELECT 1"

    def test_empty_fence_falls_back_to_whole_text(self):
        assert extract_sql("```sql\n```") == "```sql\n```"

    def test_empty_text(self):
        assert extract_sql("") == ""
        assert extract_sql(None) == ""


class TestTextToSQLService:

    def _service(self, completion_text):
        completion = MagicMock()
        completion.complete = AsyncMock(return_value=completion_text)
        return TextToSQLService(completion), completion

    def test_messages(self):
        service, _ = self._service("")

        messages = service.build_messages("sales by month")

        assert messages[0]["role"] == "system"
        assert messages[0]["content"].startswith(
            "You are an assistant that generates SQL queries based on the following dataset:"
        )
        assert DATASET_SCHEMA in messages[0]["content"]
        assert messages[1] == {
            "role": "user",
            "content": 'Translate this query into a SQL query: "sales by month"',
        }

    def test_custom_schema_prompt(self):
        service = TextToSQLService(MagicMock(), schema_prompt="tables: t(a, b)")

        assert service.system_prompt.endswith("tables: t(a, b)")

    @pytest.mark.asyncio
    async def test_generate_sql(self):
        service, completion = self._service("```sql\nSELECT state, SUM(x) FROM t GROUP BY state\n```")

        generated = await service.generate_sql("revenue by state")

        assert generated.sql == "SELECT state, SUM(x) FROM t GROUP BY state"
        assert generated.natural_language == "revenue by state"
        assert generated.raw_response.startswith("```sql")
        completion.complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_sql_in_completion(self):
        service, _ = self._service("Sure!")

        with pytest.raises(CompletionServiceError):
            await service.generate_sql("revenue by state")

    @pytest.mark.asyncio
    async def test_completion_failure_propagates(self):
        completion = MagicMock()
        completion.complete = AsyncMock(side_effect=CompletionServiceError("boom"))
        service = TextToSQLService(completion)

        with pytest.raises(CompletionServiceError):
            await service.generate_sql("revenue by state")
