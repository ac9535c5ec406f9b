"""FakeProvider: Scenario-based test double for the ProviderAdapter protocol.

Scenarios:
- happy_path: available, returns a deterministic result instantly
- unavailable: is_available() returns False
- failing: available, but execute() raises
- slow: available, execute() sleeps longer than any sensible timeout

Every call is recorded so tests can assert which providers were touched.
"""

import asyncio
from typing import Any

from discovery.schemas.research import ProviderResult, QueryType


class FakeProvider:
    """Deterministic provider double that records its calls."""

    VALID_SCENARIOS = {"happy_path", "unavailable", "failing", "slow"}

    def __init__(self, name: str, scenario: str = "happy_path", delay_seconds: float = 60.0):
        """Initialize FakeProvider with a named scenario.

        Raises:
            ValueError: If scenario is not recognized
        """
        if scenario not in self.VALID_SCENARIOS:
            raise ValueError(f"Unknown scenario: {scenario}. Valid scenarios: {self.VALID_SCENARIOS}")
        self.name = name
        self.scenario = scenario
        self.delay_seconds = delay_seconds
        self.availability_checks = 0
        self.executed: list[tuple[QueryType, str]] = []

    async def is_available(self, context: dict[str, Any]) -> bool:
        self.availability_checks += 1
        return self.scenario != "unavailable"

    async def execute(self, query_type: QueryType, query: str, context: dict[str, Any]) -> ProviderResult:
        self.executed.append((query_type, query))

        if self.scenario == "failing":
            raise RuntimeError(f"{self.name} upstream error: 503 Service Unavailable")

        if self.scenario == "slow":
            await asyncio.sleep(self.delay_seconds)

        return ProviderResult(
            summary=f"{self.name} findings for '{query}'",
            raw={"provider": self.name, "query_type": query_type.value, "query": query},
            sources=[f"https://example.com/{self.name}/1"],
        )

    @property
    def execute_count(self) -> int:
        return len(self.executed)
