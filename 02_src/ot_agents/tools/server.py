"""Tool-call server exposing facility, bus and enterprise operations."""

import inspect
from dataclasses import dataclass
from typing import Any, Callable

from ..agents import CoordinatorAgent, FacilityAgent
from ..bus import BreakRoom
from ..logging_config import get_logger
from ..models import AgentRole, Severity, parse_timestamp, slugify
from .schemas import (
    BREAK_ROOM_TOOL_SCHEMAS,
    COMPARISON_METRICS,
    FACILITY_TOOL_SCHEMAS,
    GLOBAL_TOOL_SCHEMAS,
)

logger = get_logger(__name__)

SERVER_NAME = "ot-assurance-agents"
SERVER_VERSION = "1.0.0"
SERVER_DESCRIPTION = "OT asset assurance agents: facility health, findings and enterprise coordination"

# Worst first, except health which lists the best facility first.
COMPARISON_SORT_KEYS = {
    "health": lambda r: r["health_score"],
    "risk": lambda r: r["critical_issues"],
    "lifecycle": lambda r: r["lifecycle_issues"],
    "coverage": lambda r: r["blind_spots"] + r["orphans"],
}


@dataclass
class ToolDefinition:
    """A callable tool with its JSON input schema."""

    name: str
    description: str
    input_schema: dict
    handler: Callable[..., Any]
    facility: str | None = None

    def describe(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


def facility_prefix(facility: FacilityAgent) -> str:
    return facility.facility_code or slugify(facility.facility).replace("-", "_")


def _to_result(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [_to_result(v) for v in value]
    return value


class ToolServer:
    """
    Registry of named tools, each returning a success or error envelope.

    Global tools work through the coordinator, bus tools through the break
    room, and every registered facility adds ``{prefix}_{tool}`` aliases for
    its own tool handlers.
    """

    def __init__(self, coordinator: CoordinatorAgent, break_room: BreakRoom):
        self._coordinator = coordinator
        self._break_room = break_room
        self.tools: dict[str, ToolDefinition] = {}

        self._register_builtin_tools()
        for facility in coordinator.facilities.values():
            self.register_facility(facility)

    # Registry

    def register_tool(
        self,
        name: str,
        description: str,
        input_schema: dict,
        handler: Callable[..., Any],
        facility: str | None = None,
    ) -> ToolDefinition:
        tool = ToolDefinition(name, description, input_schema, handler, facility)
        self.tools[name] = tool
        return tool

    def unregister_tool(self, name: str) -> bool:
        return self.tools.pop(name, None) is not None

    def _register_builtin_tools(self) -> None:
        for schemas in (GLOBAL_TOOL_SCHEMAS, BREAK_ROOM_TOOL_SCHEMAS):
            for name, schema in schemas.items():
                self.register_tool(name, schema["description"], schema["input_schema"], getattr(self, name))

    def register_facility(self, facility: FacilityAgent) -> list[str]:
        prefix = facility_prefix(facility)
        names = []
        for tool_name in facility.TOOL_NAMES:
            schema = FACILITY_TOOL_SCHEMAS[tool_name]
            name = f"{prefix}_{tool_name}"
            self.register_tool(
                name,
                f"[{facility.facility}] {schema['description']}",
                schema["input_schema"],
                getattr(facility, tool_name),
                facility=facility.facility,
            )
            names.append(name)
        logger.info(
            "Registered %d tools for %s",
            len(names),
            facility.facility,
            extra={"facility": facility.facility},
        )
        return names

    def unregister_facility(self, facility: FacilityAgent) -> list[str]:
        names = [name for name, tool in self.tools.items() if tool.facility == facility.facility]
        for name in names:
            del self.tools[name]
        return names

    def list_tools(self) -> list[dict]:
        return [tool.describe() for tool in self.tools.values()]

    # Calls

    async def call_tool(self, name: str, arguments: dict | None = None) -> dict:
        """Run a tool. Failures come back as ``{"success": False, "error": ...}``."""
        tool = self.tools.get(name)
        if tool is None:
            return {"success": False, "error": f"Unknown tool: {name}"}

        try:
            result = tool.handler(**(arguments or {}))
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.error("Tool %s failed: %s", name, e, extra={"tool": name})
            return {"success": False, "error": str(e)}
        return {"success": True, "result": _to_result(result)}

    # Global tools

    def _select(self, keys: list[str] | None) -> list[FacilityAgent]:
        facilities = list(self._coordinator.facilities.values())
        if keys:
            facilities = [f for f in facilities if f.facility in keys or f.facility_code in keys]
        return facilities

    def list_facilities(self) -> dict:
        facilities = [
            {
                "id": f.id,
                "facility": f.facility,
                "facility_code": f.facility_code,
                "name": f.name,
                "tool_prefix": facility_prefix(f),
                "health_score": f.health["score"],
                "status": f.health["status"],
                "sub_agents": [role.value for role in f.sub_agents],
                "last_observation": f.last_observation_at.isoformat() if f.last_observation_at else None,
            }
            for f in self._coordinator.facilities.values()
        ]
        return {"count": len(facilities), "facilities": facilities}

    def get_enterprise_health(self, include_breakdown: bool = True) -> dict:
        rows = self._coordinator.facility_rows()
        overall = self._coordinator.enterprise_health()
        result = {
            "overall_score": overall["score"],
            "status": overall["status"],
            "facilities_monitored": len(rows),
            "critical_facilities": sum(1 for r in rows if r["status"] == "critical"),
            "total_critical_issues": sum(r["critical_issues"] for r in rows),
            "total_high_issues": sum(r["high_issues"] for r in rows),
        }
        if include_breakdown:
            result["breakdown"] = rows
        return result

    def compare_facilities(self, facilities: list[str] | None = None, metric: str = "health") -> dict:
        if metric not in COMPARISON_METRICS:
            raise ValueError(f"Unknown metric: {metric}")

        rows = []
        for facility in self._select(facilities):
            row = {"facility": facility.facility, "facility_code": facility.facility_code}
            health = facility.health
            if metric == "health":
                row.update(
                    health_score=health["score"],
                    status=health["status"],
                    weaknesses=len(facility.weaknesses),
                    strengths=len(facility.strengths),
                )
            elif metric == "risk":
                row.update(
                    critical_issues=health["breakdown"]["critical"],
                    high_issues=health["breakdown"]["high"],
                    avg_risk_score=100 - health["score"],
                )
            elif metric == "lifecycle":
                found = _from_role(facility, AgentRole.LIFECYCLE)
                row.update(
                    lifecycle_issues=sum(
                        1 for o in found if o.severity in (Severity.CRITICAL, Severity.HIGH)
                    ),
                    obsolete_count=sum(1 for o in found if "obsolete" in o.description.lower()),
                )
            else:
                found = _from_role(facility, AgentRole.GAP)
                row.update(
                    blind_spots=sum(1 for o in found if "blind spot" in o.description.lower()),
                    orphans=sum(
                        1 for o in found
                        if "orphan" in o.description.lower() or "undocumented" in o.description.lower()
                    ),
                )
            rows.append(row)

        rows.sort(key=COMPARISON_SORT_KEYS[metric], reverse=True)

        return {"metric": metric, "facilities_compared": len(rows), "comparison": rows}

    async def start_observation_round(self) -> dict:
        return await self._coordinator.start_observation_round()

    def get_executive_summary(self, time_range: str = "day") -> dict:
        return self._coordinator.generate_executive_summary(time_range)

    async def ask_agents(self, question: str, target_facilities: list[str] | None = None) -> dict:
        responses = []
        for facility in self._select(target_facilities):
            entry = {"facility": facility.facility, "agent_id": facility.id}
            try:
                entry["answer"] = await facility.generate_answer(question)
            except Exception as e:
                logger.error(
                    "Error asking %s: %s",
                    facility.name,
                    e,
                    extra={"facility": facility.facility},
                )
                entry["error"] = str(e)
            responses.append(entry)
        return {"question": question, "respondents": len(responses), "responses": responses}

    # Break room tools

    def query_break_room(
        self,
        query: str | None = None,
        topic: str | None = None,
        type: str | None = None,
        facility: str | None = None,
        since: str | None = None,
        limit: int = 20,
    ) -> dict:
        messages = self._break_room.get_messages(
            since=parse_timestamp(since) if since else None,
            facility=facility,
            topic=topic,
            type=type,
            limit=len(self._break_room.messages),
        )
        if query:
            needle = query.lower()
            messages = [m for m in messages if needle in m.content.lower()]
        messages = messages[-limit:] if limit > 0 else []

        observations = self._break_room.get_observations(facility=facility, limit=limit)
        if query:
            needle = query.lower()
            observations = [o for o in observations if needle in o.description.lower()]

        return {
            "messages": [m.to_dict() for m in messages],
            "observations": [o.to_dict() for o in observations],
            "count": len(messages),
        }

    def get_active_threads(
        self,
        facility: str | None = None,
        resolved: bool | None = None,
        limit: int = 10,
    ) -> list[dict]:
        return [t.to_dict() for t in self._break_room.get_active_threads(facility, resolved, limit)]

    async def submit_question(
        self,
        question: str,
        target_agent: str = "all",
        topic: str = "general",
    ) -> dict:
        return await self._break_room.submit_question(question, target_agent, topic)

    def get_summary(self, time_range: str = "day", facility: str | None = None) -> dict:
        return self._break_room.summarize(time_range, facility)


def _from_role(facility: FacilityAgent, role: AgentRole) -> list:
    agent = facility.sub_agents.get(role)
    if agent is None:
        return []
    return [o for o in facility.observations if o.source_agent_id == agent.id]
