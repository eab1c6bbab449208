"""Logging utilities for the task engine."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """Setup logging configuration for the task engine.

    Args:
        level: Console logging level (default: INFO)
        log_dir: Directory for the detailed log file; no file handler when None

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("taskengine")
    logger.setLevel(logging.DEBUG)  # Set to DEBUG to capture all child logs
    logger.propagate = False

    logger.handlers = []

    log_file = None
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"taskengine_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        logger.addHandler(file_handler)

    # Console handler (user-friendly)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console_handler)

    logger.info("=" * 80)
    logger.info("Task engine session started")
    if log_file:
        logger.info(f"Log file: {log_file}")
    logger.info("=" * 80)

    return logger


def _preview(text: str, max_length: int) -> str:
    if len(text) > max_length:
        return text[:max_length] + "... (truncated)"
    return text


def log_prompt(logger: logging.Logger, phase: str, prompt: str, max_length: int = 500) -> None:
    """Log the prompt sent to the oracle for a phase.

    Args:
        logger: Logger instance
        phase: Oracle phase (plan/observe/decompose/...)
        prompt: Prompt content
        max_length: Characters kept at INFO level; the full prompt goes to DEBUG
    """
    logger.info(f"Prompt for {phase} ({len(prompt)} chars): {_preview(prompt, max_length)}")
    logger.debug(f"Full prompt for {phase}:\n{prompt}")


def log_tool_call(logger: logging.Logger, service: str, tool_name: str, args: Dict[str, Any]) -> None:
    """Log capability tool invocation.

    Args:
        logger: Logger instance
        service: Capability service name
        tool_name: Name of the tool being called
        args: Tool arguments
    """
    logger.info(f"Tool call: {service}.{tool_name}")
    logger.debug(f"  Arguments: {json.dumps(args, ensure_ascii=False, indent=2, default=str)}")


def log_tool_result(logger: logging.Logger, tool_name: str, result: Any, success: bool = True) -> None:
    """Log the outcome of a tool call; the payload preview goes to DEBUG."""
    status = "✓ Success" if success else "✗ Failed"
    logger.info(f"Tool result: {tool_name} - {status}")
    logger.debug(f"  Result: {_preview(str(result), 500)}")


def log_routing_decision(logger: logging.Logger, from_node: str, decision: str, reason: str = "") -> None:
    """Log which edge a router took and why."""
    logger.info(f"Routing decision from {from_node}: → {decision}")
    if reason:
        logger.info(f"  → Reason: {reason}")


def log_plan(logger: logging.Logger, plan: Any) -> None:
    """Log a parsed plan as service.action plus its reasoning."""
    service = getattr(plan, "service", None)
    target = f"{service}.{plan.action}" if service else plan.action
    logger.info(f"Plan: {target} ({plan.kind})")
    logger.info(f"  Reasoning: {plan.reasoning}")
    logger.debug(f"  Args: {json.dumps(plan.args, ensure_ascii=False, default=str)}")


def log_node_entry(logger: logging.Logger, node_name: str, state: Dict[str, Any]) -> None:
    """Log node entry with a snapshot of the workflow state.

    Args:
        logger: Logger instance
        node_name: Name of the node being entered
        state: Current graph state dictionary
    """
    workflow = state.get("workflow")
    logger.info(f"{'#' * 20} ENTERING NODE: {node_name} {'#' * 20}")
    if workflow is None:
        return
    logger.info(f"  - task_id: {workflow.task_id}")
    logger.info(f"  - iteration: {workflow.iteration}/{workflow.max_iterations}")
    logger.info(f"  - steps: {len(workflow.steps)}")
    logger.info(
        f"  - components: {len(workflow.completed_component_ids)}/{len(workflow.components)} completed"
    )
    logger.info(f"  - consecutive_failures: {workflow.consecutive_failures}")


def log_node_exit(logger: logging.Logger, node_name: str, updates: Dict[str, Any]) -> None:
    """Log the scalar updates a node hands back to the graph."""
    logger.info(f"{'#' * 20} EXITING NODE: {node_name} {'#' * 20}")
    for key, value in updates.items():
        if key == "workflow":
            continue
        logger.info(f"  - {key}: {value}")
