"""Prompt templates for common Countly analysis tasks.

Prompts need no credential: they only render text that tells the model
which tools to call. Missing arguments fall back to placeholders or
defaults so a client can preview a template before filling it in.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Tuple

from countly_mcp.infra.error_handler import ToolValidationError, format_known_names
from countly_mcp.models.prompt import PromptArgument, PromptDefinition, PromptMessage, PromptResult

Renderer = Callable[[Mapping[str, str]], Tuple[str, str]]

APP_NAME = PromptArgument(name="app_name", description="Name of the Countly application", required=True)


def _arg(args: Mapping[str, str], name: str, default: str) -> str:
    return args.get(name) or default


def _crash_trends(args: Mapping[str, str]) -> Tuple[str, str]:
    app = _arg(args, "app_name", "[app name]")
    period = _arg(args, "period", "30days")
    return f"Analyze crash trends for {app}", f"""\
Please analyze the crash and error trends for the "{app}" application over the {period} period.

I need you to:
1. Use list_crash_groups to get recent crashes for {app}
2. Use get_crash_statistics to get overall crash metrics
3. Identify the most common crash patterns
4. Analyze trends (increasing/decreasing crash rates)
5. Highlight any critical issues that need immediate attention
6. Suggest potential root causes based on crash data

Please provide a comprehensive analysis with actionable recommendations."""


def _engagement_report(args: Mapping[str, str]) -> Tuple[str, str]:
    app = _arg(args, "app_name", "[app name]")
    metrics = _arg(args, "metrics", "sessions, users, events, retention")
    return f"Generate engagement report for {app}", f"""\
Create a comprehensive user engagement report for "{app}" including these metrics: {metrics}.

Please:
1. Use get_dashboard_data to fetch current analytics
2. Use get_user_loyalty to understand user engagement levels
3. Use get_session_frequency to analyze usage patterns
4. Use get_top_events to identify key user actions
5. Use get_slipping_away_users to identify users at risk

Provide a detailed analysis covering:
- Overall engagement trends
- User behavior patterns
- Key events and their frequency
- User segments by engagement level
- Recommendations for improving engagement"""


def _compare_versions(args: Mapping[str, str]) -> Tuple[str, str]:
    app = _arg(args, "app_name", "[app name]")
    first = _arg(args, "version1", "[version 1]")
    second = _arg(args, "version2", "[version 2]")
    return f"Compare versions {first} and {second} for {app}", f"""\
Compare app versions "{first}" and "{second}" for the "{app}" application.

Please:
1. Use get_analytics_data with appropriate filters to get metrics for each version
2. Compare key metrics: sessions, users, crashes, session duration
3. Analyze any significant changes in user behavior
4. Check for version-specific crashes using list_crash_groups
5. Identify any performance regressions or improvements

Provide a side-by-side comparison highlighting:
- Performance differences
- User engagement changes
- Stability improvements or regressions
- Recommendations for the development team"""


def _retention_analysis(args: Mapping[str, str]) -> Tuple[str, str]:
    app = _arg(args, "app_name", "[app name]")
    cohort = args.get("cohort_name")
    scope = f' for the "{cohort}" cohort' if cohort else ""
    cohort_step = f'\n3. Use list_cohorts and get_cohort to inspect the "{cohort}" cohort' if cohort else ""
    return f"Analyze user retention for {app}", f"""\
Analyze user retention patterns{scope} in the "{app}" application.

Please:
1. Use get_user_loyalty to understand repeat usage patterns
2. Use get_session_frequency to analyze time between sessions{cohort_step}

Provide insights on:
- Retention rates by cohort
- Critical drop-off points
- Factors affecting retention
- User segments with best/worst retention
- Actionable recommendations to improve retention"""


def _funnel_optimization(args: Mapping[str, str]) -> Tuple[str, str]:
    app = _arg(args, "app_name", "[app name]")
    funnel = _arg(args, "funnel_name", "[funnel name]")
    return f'Optimize funnel "{funnel}" for {app}', f"""\
Analyze and optimize the "{funnel}" conversion funnel in the "{app}" application.

Please:
1. Use list_funnels to find the funnel
2. Use get_funnel_data to get conversion metrics
3. Use get_funnel_dropoff_users to see who leaves between steps
4. Use get_funnel_step_users to understand who completes each step

Provide analysis including:
- Overall conversion rate
- Step-by-step drop-off analysis
- Bottlenecks in the funnel
- User segments with different conversion patterns
- Specific recommendations to improve conversion at each step"""


def _event_health_check(args: Mapping[str, str]) -> Tuple[str, str]:
    app = _arg(args, "app_name", "[app name]")
    return f"Check event tracking health for {app}", f"""\
Perform a health check on event tracking implementation for "{app}".

Please:
1. Use get_events_overview to see all tracked events
2. Use get_top_events to identify most used events
3. Check the countly://app/{{app_id}}/events resource for event schemas

Analyze and report on:
- Event tracking coverage (are all important events being tracked?)
- Event naming consistency
- Event frequency and patterns
- Missing or underutilized events
- Events with unusual patterns that might indicate tracking errors
- Recommendations for improving event tracking strategy"""


def _churn_risk(args: Mapping[str, str]) -> Tuple[str, str]:
    app = _arg(args, "app_name", "[app name]")
    days = _arg(args, "inactivity_days", "7")
    return f"Identify users at churn risk for {app}", f"""\
Identify users who are at risk of churning from the "{app}" application.

Please:
1. Use get_slipping_away_users with period={days} to find inactive users
2. Use get_user_loyalty to understand typical usage patterns
3. Use get_session_frequency to analyze session timing
4. Compare at-risk users with active users to identify patterns

Provide analysis including:
- Number of users at risk
- Common characteristics of at-risk users
- Recent behavior changes
- Recommendations for re-engagement campaigns
- Suggested interventions to reduce churn"""


def _performance_dashboard(args: Mapping[str, str]) -> Tuple[str, str]:
    app = _arg(args, "app_name", "[app name]")
    time_range = _arg(args, "time_range", "30days")
    return f"Performance overview for {app}", f"""\
Provide a comprehensive performance overview for "{app}" over the {time_range} period.

Please gather data from:
1. get_dashboard_data for overall metrics
2. get_crash_statistics for stability metrics
3. get_session_durations for performance insights
4. get_analytics_data for detailed breakdowns
5. Check the countly://app/{{app_id}}/overview resource

Create a dashboard-style report covering:
- Key performance indicators (users, sessions, engagement)
- Application stability (crash rates, error rates)
- Performance metrics (session duration, response times)
- Growth trends
- Geographic distribution
- Device/platform breakdown
- Critical issues requiring attention
- Overall health score and recommendations"""


@dataclass(frozen=True)
class PromptTemplate:
    definition: PromptDefinition
    render: Renderer
    tools: Tuple[str, ...]  # tools the rendered text asks the model to call


def _template(name: str, title: str, description: str, arguments: List[PromptArgument],
              render: Renderer, tools: Tuple[str, ...]) -> PromptTemplate:
    definition = PromptDefinition(name=name, title=title, description=description, arguments=arguments)
    return PromptTemplate(definition=definition, render=render, tools=tools)


PROMPTS: Tuple[PromptTemplate, ...] = (
    _template(
        "analyze_crash_trends", "Analyze Crash Trends",
        "Analyze crash and error patterns for an application over a time period",
        [APP_NAME, PromptArgument(name="period", description='Time period (e.g. "7days", "30days", "60days")')],
        _crash_trends, ("list_crash_groups", "get_crash_statistics"),
    ),
    _template(
        "generate_engagement_report", "Generate User Engagement Report",
        "Create a comprehensive user engagement analysis report",
        [APP_NAME, PromptArgument(name="metrics", description='Metrics to include (e.g. "sessions, users, events")')],
        _engagement_report,
        ("get_dashboard_data", "get_user_loyalty", "get_session_frequency", "get_top_events",
         "get_slipping_away_users"),
    ),
    _template(
        "compare_app_versions", "Compare App Versions",
        "Compare performance and engagement metrics between two app versions",
        [
            APP_NAME,
            PromptArgument(name="version1", description="First version to compare", required=True),
            PromptArgument(name="version2", description="Second version to compare", required=True),
        ],
        _compare_versions, ("get_analytics_data", "list_crash_groups"),
    ),
    _template(
        "user_retention_analysis", "User Retention Analysis",
        "Analyze user retention patterns and cohort behavior",
        [APP_NAME, PromptArgument(name="cohort_name", description="Specific cohort to analyze")],
        _retention_analysis, ("get_user_loyalty", "get_session_frequency"),
    ),
    _template(
        "funnel_optimization", "Funnel Optimization Suggestions",
        "Analyze conversion funnel and suggest optimizations",
        [APP_NAME, PromptArgument(name="funnel_name", description="Name of the funnel to analyze", required=True)],
        _funnel_optimization,
        ("list_funnels", "get_funnel_data", "get_funnel_dropoff_users", "get_funnel_step_users"),
    ),
    _template(
        "event_health_check", "Event Tracking Health Check",
        "Check the health and quality of event tracking implementation",
        [APP_NAME],
        _event_health_check, ("get_events_overview", "get_top_events"),
    ),
    _template(
        "identify_churn_risk", "Identify Users at Churn Risk",
        "Find users who are showing signs of decreased engagement",
        [APP_NAME, PromptArgument(name="inactivity_days", description="Days of inactivity to consider (default: 7)")],
        _churn_risk, ("get_slipping_away_users", "get_user_loyalty", "get_session_frequency"),
    ),
    _template(
        "performance_dashboard", "Application Performance Overview",
        "Get a comprehensive overview of application performance metrics",
        [APP_NAME, PromptArgument(name="time_range", description='Time range for analysis (default: "30days")')],
        _performance_dashboard,
        ("get_dashboard_data", "get_crash_statistics", "get_session_durations", "get_analytics_data"),
    ),
)

PROMPTS_BY_NAME: Dict[str, PromptTemplate] = {template.definition.name: template for template in PROMPTS}


def list_prompts() -> List[PromptDefinition]:
    return [template.definition for template in PROMPTS]


def get_prompt(name: str, arguments: Mapping[str, str]) -> PromptResult:
    """
    Render a prompt.

    Raises:
        ToolValidationError: If the prompt name is unknown
    """
    template = PROMPTS_BY_NAME.get(name)
    if template is None:
        raise ToolValidationError(f"Unknown prompt: {name}. Available prompts: {format_known_names(PROMPTS_BY_NAME)}")
    description, text = template.render({key: str(value) for key, value in arguments.items() if value is not None})
    return PromptResult(description=description, messages=[PromptMessage.user_text(text)])
