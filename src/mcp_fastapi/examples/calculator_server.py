"""Example: calculator tools served over MCP from a FastAPI application.

The provider is a plain class; its decorated methods become MCP tools,
resources and prompts. The API token guard is an ordinary FastAPI
dependency and protects every MCP endpoint.
"""

import math
import os
from typing import Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, Request
from pydantic import BaseModel

from mcp_fastapi import (
    Context,
    McpIntegration,
    McpOptions,
    mcp_prompt,
    mcp_resource,
    mcp_resource_template,
    mcp_tool,
)

CALCULATOR_API_TOKEN = os.getenv("CALCULATOR_API_TOKEN", "calculator-token")


class Statistics(BaseModel):
    count: int
    mean: float
    minimum: float
    maximum: float


class CalculatorTools:
    """A simple calculator exposed through MCP."""

    @mcp_tool(annotations={"readOnlyHint": True, "idempotentHint": True})
    async def add(self, a: float, b: float) -> float:
        """Add two numbers together.

        Args:
            a: First number
            b: Second number

        Returns:
            Sum of a and b
        """
        return a + b

    @mcp_tool()
    async def subtract(self, a: float, b: float) -> float:
        """Subtract b from a.

        Args:
            a: Number to subtract from
            b: Number to subtract
        """
        return a - b

    @mcp_tool()
    def multiply(self, a: float, b: float) -> float:
        """Multiply two numbers.

        Args:
            a: First number
            b: Second number
        """
        return a * b

    @mcp_tool()
    async def divide(self, a: float, b: float) -> float:
        """Divide a by b.

        Args:
            a: Dividend
            b: Divisor (must not be zero)
        """
        if b == 0:
            raise ValueError("Cannot divide by zero")
        return a / b

    @mcp_tool(name="calculate-average")
    async def average(self, numbers: List[float]) -> float:
        """Calculate the average of a list of numbers.

        Args:
            numbers: List of numbers to average
        """
        if not numbers:
            raise ValueError("Cannot calculate average of empty list")
        return sum(numbers) / len(numbers)

    @mcp_tool()
    async def statistics(self, numbers: List[float]) -> Statistics:
        """Summarise a list of numbers.

        Args:
            numbers: Values to summarise
        """
        if not numbers:
            raise ValueError("Cannot summarise an empty list")
        return Statistics(
            count=len(numbers),
            mean=sum(numbers) / len(numbers),
            minimum=min(numbers),
            maximum=max(numbers),
        )

    @mcp_tool(name="running-total")
    async def running_total(self, numbers: List[float], context: Context) -> float:
        """Sum numbers one at a time, reporting progress after each step.

        Args:
            numbers: Values to add up
        """
        total = 0.0
        for index, number in enumerate(numbers, start=1):
            total += number
            await context.report_progress(index, len(numbers), message=f"Added {number}")
        await context.info(f"Running total finished at {total}")
        return total

    @mcp_tool(name="whoami", annotations={"readOnlyHint": True})
    async def whoami(self, context: Context) -> Dict[str, Optional[str]]:
        """Report the caller as identified by the API token guard."""
        return {"user": context.user}

    @mcp_resource("calculator://constants", mime_type="application/json")
    async def constants(self) -> Dict[str, float]:
        """Mathematical constants known to the calculator."""
        return {"pi": math.pi, "e": math.e, "tau": math.tau}

    @mcp_resource_template("calculator://tables/{number}", name="multiplication-table")
    async def multiplication_table(self, number: int) -> str:
        """Multiplication table from 1 to 10 for a number."""
        return "\n".join(f"{number} x {i} = {number * i}" for i in range(1, 11))

    @mcp_prompt(name="explain-calculation")
    async def explain_calculation(self, expression: str, audience: str = "student") -> str:
        """Ask the model to explain how an expression is evaluated.

        Args:
            expression: The arithmetic expression to explain
            audience: Who the explanation is for
        """
        return f"Explain step by step, for a {audience}, how to evaluate: {expression}"


async def require_api_token(request: Request, authorization: Optional[str] = Header(default=None)) -> None:
    """Guard accepting ``Authorization: Bearer <CALCULATOR_API_TOKEN>``."""
    if authorization != f"Bearer {CALCULATOR_API_TOKEN}":
        raise HTTPException(status_code=401, detail="Invalid or missing API token")
    request.state.user = "calculator-user"


def create_integration(**option_overrides) -> McpIntegration:
    options = McpOptions(name="calculator", version="1.0.0", **option_overrides)
    return McpIntegration(options, providers=[CalculatorTools], guards=[require_api_token])


def create_app(**option_overrides) -> FastAPI:
    app = FastAPI(title="Calculator")

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    create_integration(**option_overrides).attach(app)
    return app


if __name__ == "__main__":
    create_integration().main()
