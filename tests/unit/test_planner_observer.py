"""Unit tests for the Planner and Observer components and the completion policy."""

import pytest

from taskengine.config.services import AgentProfile, ServiceConfig
from taskengine.graph._plan import FALLBACK_ACTION, CapabilityCallPlan, ReasoningPlan
from taskengine.graph.nodes.observe import Observer, completion_allowed, parse_observation
from taskengine.graph.nodes.planner import Planner
from taskengine.graph.state import ExecutionStep, FailureRecord, FailureStrategy, TaskComponent, WorkflowState
from taskengine.context.compactor import ContextCompactor
from taskengine.tools.mcp.connection import ToolSpec
from taskengine.utils.error_handler import ModelInvocationError, ObservationParseError


def _state(components=None):
    return WorkflowState(
        task_id="t",
        user_id="u",
        agent=AgentProfile(name="Analyst"),
        original_objective="fetch BTC price and summarize",
        current_objective="fetch BTC price and summarize",
        max_iterations=5,
        components=components or [],
    )


def _component(cid, completed=False, optional=False):
    component = TaskComponent(id=cid, type="analysis", description=cid, optional=optional)
    if completed:
        component.mark_completed(1)
    return component


# ========== Planner ==========

@pytest.mark.asyncio
async def test_planner_returns_capability_plan(scripted_oracle):
    oracle = scripted_oracle({
        "plan": 'Plan: {"tool": "get_price", "toolType": "mcp", "mcpName": "coingecko", "args": {"symbol": "BTC"}}'
    })
    planner = Planner(oracle, ["coingecko-mcp", "coingecko"])

    plan = await planner.plan(_state())

    assert isinstance(plan, CapabilityCallPlan)
    assert plan.service == "coingecko"
    assert oracle.count("plan") == 1


@pytest.mark.asyncio
async def test_planner_prompt_carries_context(scripted_oracle):
    oracle = scripted_oracle({"plan": '{"tool": "think", "toolType": "llm"}'})
    state = _state([_component("collect", completed=True), _component("report")])
    state.data_store.put("step1", {"price": 1})
    state.failures.append(
        FailureRecord(action="post_tweet", last_error="401", first_step_number=1,
                      strategy=FailureStrategy.MANUAL_INTERVENTION)
    )
    services = [ServiceConfig(name="coingecko-mcp", description="Crypto data")]
    catalogs = {"coingecko-mcp": [ToolSpec(name="get_price", description="Latest price")]}

    await Planner(oracle).plan(state, services, catalogs)

    prompt = oracle.calls[0][1][-1].content
    assert "Completed: collect" in prompt
    assert "report" in prompt
    assert "post_tweet" in prompt and "manual_intervention" in prompt
    assert "step1" in prompt
    assert "get_price: Latest price" in prompt


@pytest.mark.asyncio
async def test_planner_falls_back_on_garbage(scripted_oracle):
    oracle = scripted_oracle({"plan": "I think we should look up the price"})
    plan = await Planner(oracle).plan(_state())

    assert isinstance(plan, ReasoningPlan)
    assert plan.action == FALLBACK_ACTION
    assert plan.args["content"] == "I think we should look up the price"


@pytest.mark.asyncio
async def test_planner_oracle_failure_raises(scripted_oracle):
    oracle = scripted_oracle({"plan": RuntimeError("429 rate_limit")})
    with pytest.raises(ModelInvocationError) as exc_info:
        await Planner(oracle).plan(_state())
    assert "rate limited" in exc_info.value.user_message


# ========== Completion policy ==========

def test_completion_allowed_when_required_components_done():
    state = _state([_component("a", completed=True), _component("b", optional=True)])
    assert completion_allowed(state)


def test_completion_denied_with_open_required_component():
    state = _state([_component("a", completed=True), _component("b")])
    assert not completion_allowed(state)


def test_completion_allowed_when_blocked_after_partial_value():
    state = _state([_component("a", completed=True), _component("b")])
    state.steps.append(ExecutionStep(1, ReasoningPlan(action="a"), "r", True))
    state.failures.append(
        FailureRecord(action="post", last_error="403", first_step_number=2,
                      strategy=FailureStrategy.MANUAL_INTERVENTION)
    )
    assert completion_allowed(state)


def test_manual_intervention_without_success_is_not_enough():
    state = _state([_component("a")])
    state.failures.append(
        FailureRecord(action="post", last_error="403", first_step_number=1,
                      strategy=FailureStrategy.MANUAL_INTERVENTION)
    )
    assert not completion_allowed(state)


# ========== Observer ==========

def test_parse_observation():
    observation = parse_observation(
        'Verdict: {"isComplete": "true", "nextObjective": "post it", "confidence": 1.7, '
        '"criticalGaps": "none", "reasoning": "ok"}'
    )
    assert observation.is_complete is True
    assert observation.next_objective == "post it"
    assert observation.confidence == 1.0
    assert observation.critical_gaps == ["none"]


def test_parse_observation_rejects_garbage():
    with pytest.raises(ObservationParseError):
        parse_observation("looks done to me")


@pytest.mark.asyncio
async def test_observer_vetoes_premature_completion(scripted_oracle):
    oracle = scripted_oracle({"observe": '{"isComplete": true, "confidence": 0.9}'})
    state = _state([_component("a", completed=True), _component("b")])

    observation = await Observer(oracle, ContextCompactor()).observe(state)

    assert observation.is_complete is False
    assert observation.critical_gaps == ["Open component: b"]


@pytest.mark.asyncio
async def test_observer_accepts_completion(scripted_oracle):
    oracle = scripted_oracle({"observe": '{"isComplete": true, "confidence": 0.9}'})
    state = _state([_component("a", completed=True)])

    observation = await Observer(oracle, ContextCompactor()).observe(state)

    assert observation.is_complete is True


@pytest.mark.asyncio
@pytest.mark.parametrize("reply", ["???", RuntimeError("boom")])
async def test_observer_continues_on_failure(scripted_oracle, reply):
    observation = await Observer(scripted_oracle({"observe": reply}), ContextCompactor()).observe(_state())

    assert observation.is_complete is False
    assert observation.next_objective is None
