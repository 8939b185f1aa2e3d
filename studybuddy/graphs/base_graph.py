"""Base class for LangGraph graphs to share common behavior."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from langgraph.graph import StateGraph

from studybuddy.utils.logging_config import logger


class BaseGraph(ABC):
    """Abstract base class for all LangGraph implementations.

    Centralizes logging and provides a consistent compile/run pattern so
    graph subclasses focus on node logic rather than boilerplate.
    """

    name = "graph"

    def __init__(self, timeout: int = 30):
        self.timeout = timeout
        self.logger = logger

    @abstractmethod
    def build_graph(self) -> StateGraph:
        """Build and return the StateGraph instance."""

    def _log_node_execution(self, node_name: str, state: dict) -> None:
        """Log node execution start with minimal state context."""

        self.logger.debug("Executing %s node: %s", self.name, node_name)

    def _log_node_error(self, node_name: str, error: Exception) -> None:
        """Log node execution error without leaking user data."""

        self.logger.error(
            "Node %s.%s failed: %s: %s",
            self.name,
            node_name,
            type(error).__name__,
            str(error),
        )

    def compile(self):
        """Build and compile the graph for execution."""

        graph = self.build_graph()
        return graph.compile()

    def run(self, initial_state: dict) -> dict:
        """Compile, invoke, and log how long the run took.

        Node exceptions propagate to the caller unchanged.
        """

        start_time = time.time()
        result = self.compile().invoke(initial_state)
        self.logger.debug(
            "%s graph finished in %.3fs", self.name, time.time() - start_time
        )
        return result
