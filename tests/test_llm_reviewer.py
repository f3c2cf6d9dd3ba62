import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from codeguardian.exceptions import ChunkAnalysisError
from codeguardian.llm_reviewer import NO_CUSTOM_RULES, LLMReviewer, extract_feedback
from codeguardian.models import Chunk
from codeguardian.plugin_config import PluginConfig


def llm_response(content):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


def make_config(**overrides):
    values = dict(llm_model="openai/gpt-4o", llm_api_key="sk-test", llm_api_base=None, scm_token="token",
                  azure_api_version=None, temperature=0.3, max_tokens=2048, llm_timeout=60.0)
    values.update(overrides)
    return PluginConfig(**values)


class TestExtractFeedback(unittest.TestCase):
    def test_bare_list(self):
        self.assertEqual(extract_feedback([{"file": "a.py"}]), [{"file": "a.py"}])

    def test_wrapped_list(self):
        for key in ("feedback", "reviews", "comments"):
            self.assertEqual(extract_feedback({key: [{"line": 1}]}), [{"line": 1}])

    def test_other_values_pass_through(self):
        self.assertEqual(extract_feedback({"summary": "fine"}), {"summary": "fine"})
        self.assertEqual(extract_feedback("text"), "text")


class TestLLMReviewer(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.reviewer = LLMReviewer(make_config())

    @patch("codeguardian.llm_reviewer.litellm.acompletion", new_callable=AsyncMock)
    async def test_parses_json_array(self, mock_acompletion):
        mock_acompletion.return_value = llm_response('[{"file": "app.py", "line": 11, "comment": "Check None"}]')

        feedback = await self.reviewer.analyze_chunk("diff --git a/app.py b/app.py\n", file_paths=["app.py"])

        self.assertEqual(feedback, [{"file": "app.py", "line": 11, "comment": "Check None"}])
        kwargs = mock_acompletion.call_args.kwargs
        self.assertEqual(kwargs["model"], "openai/gpt-4o")
        self.assertEqual(kwargs["api_key"], "sk-test")
        self.assertEqual(kwargs["timeout"], 60.0)
        self.assertNotIn("api_base", kwargs)
        self.assertNotIn("api_version", kwargs)

    @patch("codeguardian.llm_reviewer.litellm.acompletion", new_callable=AsyncMock)
    async def test_prompt_contents(self, mock_acompletion):
        mock_acompletion.return_value = llm_response("[]")
        self.reviewer.config.ci_pr_title = "Load users lazily"

        await self.reviewer.analyze_chunk("+    user = load_user(request)\n", rules="- Never use print()",
                                          file_paths=["app.py", "README.md"])

        system_prompt = mock_acompletion.call_args.kwargs["messages"][0]["content"]
        self.assertIn("+    user = load_user(request)", system_prompt)
        self.assertIn("- Never use print()", system_prompt)
        self.assertIn("Load users lazily", system_prompt)
        self.assertIn("app.py, README.md", system_prompt)

        await self.reviewer.analyze_chunk("+x\n")
        system_prompt = mock_acompletion.call_args.kwargs["messages"][0]["content"]
        self.assertIn(NO_CUSTOM_RULES, system_prompt)

    @patch("codeguardian.llm_reviewer.litellm.acompletion", new_callable=AsyncMock)
    async def test_code_fence_and_wrapper(self, mock_acompletion):
        mock_acompletion.return_value = llm_response(
            '```json\n{"feedback": [{"file": "a.py", "line": 2, "comment": "x"}]}\n```')

        feedback = await self.reviewer.analyze_chunk("+x\n")
        self.assertEqual(feedback, [{"file": "a.py", "line": 2, "comment": "x"}])

    @patch("codeguardian.llm_reviewer.litellm.acompletion", new_callable=AsyncMock)
    async def test_non_list_response_is_returned_unchanged(self, mock_acompletion):
        mock_acompletion.return_value = llm_response('{"summary": "looks fine"}')
        self.assertEqual(await self.reviewer.analyze_chunk("+x\n"), {"summary": "looks fine"})

    @patch("codeguardian.llm_reviewer.litellm.acompletion", new_callable=AsyncMock)
    async def test_invalid_json(self, mock_acompletion):
        mock_acompletion.return_value = llm_response("Here are my thoughts: the code is fine.")
        with self.assertRaises(ChunkAnalysisError):
            await self.reviewer.analyze_chunk("+x\n")

    @patch("codeguardian.llm_reviewer.litellm.acompletion", new_callable=AsyncMock)
    async def test_empty_content(self, mock_acompletion):
        for content in (None, "", "   "):
            mock_acompletion.return_value = llm_response(content)
            with self.assertRaises(ChunkAnalysisError):
                await self.reviewer.analyze_chunk("+x\n")

    @patch("codeguardian.llm_reviewer.litellm.acompletion", new_callable=AsyncMock)
    async def test_model_not_configured(self, mock_acompletion):
        reviewer = LLMReviewer(make_config(llm_model=None))
        with self.assertRaises(ChunkAnalysisError):
            await reviewer.analyze_chunk("+x\n")
        mock_acompletion.assert_not_called()

    @patch("codeguardian.llm_reviewer.litellm.acompletion", new_callable=AsyncMock)
    async def test_azure_kwargs(self, mock_acompletion):
        mock_acompletion.return_value = llm_response("[]")
        reviewer = LLMReviewer(make_config(llm_model="azure/gpt-4o", azure_api_version="2024-02-01",
                                           llm_api_base="https://example.openai.azure.com"))
        await reviewer.analyze_chunk("+x\n")

        kwargs = mock_acompletion.call_args.kwargs
        self.assertEqual(kwargs["api_version"], "2024-02-01")
        self.assertEqual(kwargs["api_base"], "https://example.openai.azure.com")

    @patch("codeguardian.llm_reviewer.litellm.acompletion", new_callable=AsyncMock)
    async def test_make_analyzer(self, mock_acompletion):
        mock_acompletion.return_value = llm_response("[]")
        analyzer = self.reviewer.make_analyzer(rules="- Prefer f-strings")
        chunk = Chunk(content="+print('%s' % x)\n", label="a.py", paths=["a.py"])

        self.assertEqual(await analyzer(chunk), [])
        system_prompt = mock_acompletion.call_args.kwargs["messages"][0]["content"]
        self.assertIn("- Prefer f-strings", system_prompt)
        self.assertIn("+print('%s' % x)", system_prompt)


if __name__ == '__main__':
    unittest.main()
