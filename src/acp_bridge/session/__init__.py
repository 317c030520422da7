"""Session orchestration: the ACP agent and its per-session state."""

from acp_bridge.session.agent import BridgeAgent
from acp_bridge.session.complexity import ComplexityAnalysis, analyze_prompt
from acp_bridge.session.plan import ExecutionPlan, PlanStep, PlanStepStatus, build_plan
from acp_bridge.session.state import ActiveFiles, Session

__all__ = [
    "ActiveFiles",
    "BridgeAgent",
    "ComplexityAnalysis",
    "ExecutionPlan",
    "PlanStep",
    "PlanStepStatus",
    "Session",
    "analyze_prompt",
    "build_plan",
]
