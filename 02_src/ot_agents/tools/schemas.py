"""Input schemas and descriptions of every tool the server exposes."""

from ..models import MessageType, ObservationType, Topic

SEVERITY_FILTER = ["all", "critical", "high", "medium", "low"]
TIME_RANGES = ["hour", "day", "week"]
COMPARISON_METRICS = ["health", "risk", "lifecycle", "coverage"]
AGENT_TYPES = ["security", "lifecycle", "gap", "risk", "dependency"]

OBSERVATION_TYPES = [t.value for t in ObservationType]
TOPICS = [t.value for t in Topic]


def _object(properties: dict | None = None, required: list[str] | None = None) -> dict:
    schema = {"type": "object", "properties": properties or {}}
    if required:
        schema["required"] = required
    return schema


# Registered once per facility under "{prefix}_{name}".
FACILITY_TOOL_SCHEMAS: dict[str, dict] = {
    "get_plant_health": {
        "description": "Get overall plant health score and status summary",
        "input_schema": _object({
            "include_details": {"type": "boolean", "default": False},
        }),
    },
    "get_weaknesses": {
        "description": "Get current identified weaknesses in the plant",
        "input_schema": _object({
            "severity": {"type": "string", "enum": SEVERITY_FILTER},
            "limit": {"type": "integer", "default": 10},
        }),
    },
    "get_strengths": {
        "description": "Get things working well in the plant",
        "input_schema": _object({
            "limit": {"type": "integer", "default": 10},
        }),
    },
    "get_recommendations": {
        "description": "Get improvement suggestions for the plant",
        "input_schema": _object({
            "limit": {"type": "integer", "default": 10},
        }),
    },
    "ask_agent": {
        "description": "Ask the plant agent, or one of its specialists, a question",
        "input_schema": _object(
            {
                "question": {"type": "string"},
                "agent_type": {"type": "string", "enum": AGENT_TYPES},
            },
            required=["question"],
        ),
    },
    "get_observations": {
        "description": "Get recent observations from the plant agent",
        "input_schema": _object({
            "severity": {"type": "string", "enum": SEVERITY_FILTER},
            "type": {"type": "string", "enum": OBSERVATION_TYPES},
            "agent_type": {"type": "string", "enum": AGENT_TYPES},
            "limit": {"type": "integer", "default": 50},
        }),
    },
}

BREAK_ROOM_TOOL_SCHEMAS: dict[str, dict] = {
    "query_break_room": {
        "description": "Search conversations and observations in the break room",
        "input_schema": _object({
            "query": {"type": "string"},
            "topic": {"type": "string", "enum": TOPICS},
            "type": {"type": "string", "enum": [t.value for t in MessageType]},
            "facility": {"type": "string"},
            "since": {"type": "string", "description": "ISO timestamp to filter from"},
            "limit": {"type": "integer", "default": 20},
        }),
    },
    "get_active_threads": {
        "description": "Get currently active discussion threads",
        "input_schema": _object({
            "facility": {"type": "string"},
            "resolved": {"type": "boolean"},
            "limit": {"type": "integer", "default": 10},
        }),
    },
    "submit_question": {
        "description": "Submit a question to agents in the break room",
        "input_schema": _object(
            {
                "question": {"type": "string"},
                "target_agent": {"type": "string", "description": 'Specific agent ID or "all"'},
                "topic": {"type": "string", "enum": TOPICS},
            },
            required=["question"],
        ),
    },
    "get_summary": {
        "description": "Get a summary of recent break room activity",
        "input_schema": _object({
            "time_range": {"type": "string", "enum": TIME_RANGES},
            "facility": {"type": "string"},
        }),
    },
}

GLOBAL_TOOL_SCHEMAS: dict[str, dict] = {
    "list_facilities": {
        "description": "List all facilities with their agents and current health",
        "input_schema": _object(),
    },
    "get_enterprise_health": {
        "description": "Get enterprise-wide health across all facilities",
        "input_schema": _object({
            "include_breakdown": {"type": "boolean", "default": True},
        }),
    },
    "compare_facilities": {
        "description": "Compare facilities on health, risk, lifecycle or coverage",
        "input_schema": _object({
            "facilities": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Facility names or codes; all facilities when omitted",
            },
            "metric": {"type": "string", "enum": COMPARISON_METRICS, "default": "health"},
        }),
    },
    "start_observation_round": {
        "description": "Trigger all facility agents to observe and report",
        "input_schema": _object(),
    },
    "get_executive_summary": {
        "description": "Get an executive summary across all facilities",
        "input_schema": _object({
            "time_range": {"type": "string", "enum": TIME_RANGES, "default": "day"},
        }),
    },
    "ask_agents": {
        "description": "Ask a question to facility agents and collect their answers",
        "input_schema": _object(
            {
                "question": {"type": "string"},
                "target_facilities": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Facility names or codes; all facilities when omitted",
                },
            },
            required=["question"],
        ),
    },
}
