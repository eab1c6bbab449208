"""Factory for assembling the control-loop state machine."""

from __future__ import annotations

from langgraph.graph import END, START, StateGraph

from taskengine.graph.nodes import (
    Executor,
    Observer,
    Planner,
    TaskDecomposer,
    build_abort_node,
    build_decompose_node,
    build_execute_node,
    build_finalize_node,
    build_observe_node,
    build_planner_node,
)
from taskengine.graph.routing import execute_route, observe_route, plan_route
from taskengine.graph.state import EngineState
from taskengine.tools.mcp.resolver import ToolResolver


def build_state_graph(context):
    """Compose the control loop graph from an ``EngineContext``.

        START → decompose → plan → execute → observe
                             ↑                  │
                             └──── continue ────┘
        plan    → finalize (cancelled)  | abort (oracle down)
        execute → abort (connection error or too many failures)
        observe → finalize (complete or out of iterations) → END
    """
    engine = context.settings.engine
    log_length = context.settings.observability.log_prompt_max_length
    compactor = context.build_compactor()
    services = context.services

    # ========== Build components ==========
    resolver = ToolResolver(context.oracle, context.pool, context.aliases, prompt_log_length=log_length)
    decomposer = TaskDecomposer(context.oracle, prompt_log_length=log_length)
    planner = Planner(context.oracle, context.known_service_names, prompt_log_length=log_length)
    executor = Executor(
        context.oracle,
        resolver,
        compactor,
        context.persistence,
        raw_chunk_size=engine.raw_chunk_size,
        format_results=engine.format_step_results,
        max_retries=engine.max_retries,
        prompt_log_length=log_length,
    )
    observer = Observer(context.oracle, compactor, prompt_log_length=log_length)

    # ========== Build nodes ==========
    graph = StateGraph(EngineState)
    graph.add_node("decompose", build_decompose_node(decomposer=decomposer, services=services))
    graph.add_node("plan", build_planner_node(planner=planner, pool=context.pool, services=services))
    graph.add_node(
        "execute",
        build_execute_node(executor=executor, max_consecutive_failures=engine.max_consecutive_failures),
    )
    graph.add_node("observe", build_observe_node(observer=observer))
    graph.add_node(
        "finalize",
        build_finalize_node(
            oracle=context.oracle,
            compactor=compactor,
            persistence=context.persistence,
            prompt_log_length=log_length,
        ),
    )
    graph.add_node("abort", build_abort_node(persistence=context.persistence))

    # ========== Wire edges ==========
    graph.add_edge(START, "decompose")
    graph.add_edge("decompose", "plan")
    graph.add_conditional_edges(
        "plan", plan_route, {"execute": "execute", "finalize": "finalize", "abort": "abort"}
    )
    graph.add_conditional_edges("execute", execute_route, {"observe": "observe", "abort": "abort"})
    graph.add_conditional_edges("observe", observe_route, {"plan": "plan", "finalize": "finalize"})
    graph.add_edge("finalize", END)
    graph.add_edge("abort", END)

    return graph.compile()
