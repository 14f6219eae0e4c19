"""Tests for the analysis prompt templates."""

import pytest

from countly_mcp.infra.error_handler import ProtocolErrorCode, ToolValidationError
from countly_mcp.services.prompts import PROMPTS, get_prompt, list_prompts
from countly_mcp.services.tool_policy import TOOL_INDEX


class TestListPrompts:
    def test_known_prompts_listed(self):
        names = [prompt.name for prompt in list_prompts()]

        assert names[:4] == [
            "analyze_crash_trends",
            "generate_engagement_report",
            "compare_app_versions",
            "user_retention_analysis",
        ]
        assert len(names) == len(set(names)) == 8

    def test_every_prompt_requires_app_name(self):
        for prompt in list_prompts():
            app_name = [argument for argument in prompt.arguments if argument.name == "app_name"]
            assert app_name and app_name[0].required, prompt.name

    def test_wire_shape(self):
        wire = list_prompts()[0].to_wire()
        assert set(wire) == {"name", "title", "description", "arguments"}
        assert wire["arguments"][0] == {
            "name": "app_name",
            "description": "Name of the Countly application",
            "required": True,
        }

    @pytest.mark.parametrize("template", PROMPTS, ids=lambda template: template.definition.name)
    def test_referenced_tools_exist(self, template):
        text = template.render({"app_name": "Shop"})[1]
        for name in template.tools:
            assert name in TOOL_INDEX
            assert name in text


class TestGetPrompt:
    def test_arguments_are_rendered(self):
        result = get_prompt("analyze_crash_trends", {"app_name": "MyTestApp", "period": "7days"})

        assert result.description == "Analyze crash trends for MyTestApp"
        message = result.messages[0]
        assert message.role == "user"
        assert message.content["type"] == "text"
        assert '"MyTestApp" application over the 7days period' in message.content["text"]

    def test_defaults_fill_missing_arguments(self):
        text = get_prompt("analyze_crash_trends", {"app_name": "Shop"}).messages[0].content["text"]
        assert "30days" in text

        churn = get_prompt("identify_churn_risk", {}).messages[0].content["text"]
        assert '"[app name]"' in churn
        assert "period=7" in churn

    def test_cohort_step_only_when_named(self):
        plain = get_prompt("user_retention_analysis", {"app_name": "Shop"}).messages[0].content["text"]
        named = get_prompt(
            "user_retention_analysis", {"app_name": "Shop", "cohort_name": "Payers"}
        ).messages[0].content["text"]

        assert "get_cohort" not in plain
        assert 'for the "Payers" cohort' in named
        assert "get_cohort" in named

    def test_non_string_arguments_are_stringified(self):
        text = get_prompt("identify_churn_risk", {"app_name": "Shop", "inactivity_days": 14}).messages[0]
        assert "period=14" in text.content["text"]

    def test_unknown_prompt(self):
        with pytest.raises(ToolValidationError) as exc_info:
            get_prompt("unknown_prompt", {})

        assert exc_info.value.message.startswith("Unknown prompt: unknown_prompt")
        assert "analyze_crash_trends" in exc_info.value.message
        assert exc_info.value.code == ProtocolErrorCode.INVALID_PARAMS
