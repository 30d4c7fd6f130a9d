"""In-memory registries for agents, customers and active calls.

Plain containers with lookup by id. Status and ``current_call`` fields are
written only by the call lifecycle manager.
"""
from typing import Iterator, Optional

from .errors import NotFound
from .models import Agent, AgentStatus, Call, Customer


class AgentRegistry:
    def __init__(self) -> None:
        self._agents: dict[str, Agent] = {}

    def __contains__(self, agent_id: str) -> bool:
        return agent_id in self._agents

    def __iter__(self) -> Iterator[Agent]:
        return iter(list(self._agents.values()))

    def __len__(self) -> int:
        return len(self._agents)

    def get(self, agent_id: str) -> Agent:
        agent = self._agents.get(agent_id)
        if agent is None:
            raise NotFound(f"agent {agent_id}")
        return agent

    def find(self, agent_id: str) -> Optional[Agent]:
        return self._agents.get(agent_id)

    def register(self, agent: Agent) -> Agent:
        # Upsert keeps the first registration slot, so first_available()
        # stays in registration order across reconnects.
        self._agents[agent.id] = agent
        return agent

    def set_status(self, agent_id: str, status: AgentStatus) -> None:
        agent = self._agents.get(agent_id)
        if agent is not None:
            agent.status = status

    def first_available(self) -> Optional[Agent]:
        return next((a for a in self._agents.values() if a.status == AgentStatus.available), None)

    def available_count(self) -> int:
        return sum(1 for a in self._agents.values() if a.status == AgentStatus.available)

    def remove(self, agent_id: str) -> Optional[Agent]:
        return self._agents.pop(agent_id, None)


class CustomerRegistry:
    def __init__(self) -> None:
        self._customers: dict[str, Customer] = {}

    def __contains__(self, customer_id: str) -> bool:
        return customer_id in self._customers

    def __iter__(self) -> Iterator[Customer]:
        return iter(list(self._customers.values()))

    def __len__(self) -> int:
        return len(self._customers)

    def add(self, customer: Customer) -> Customer:
        self._customers[customer.id] = customer
        return customer

    def get(self, customer_id: str) -> Customer:
        customer = self._customers.get(customer_id)
        if customer is None:
            raise NotFound(f"customer {customer_id}")
        return customer

    def find(self, customer_id: str) -> Optional[Customer]:
        return self._customers.get(customer_id)

    def remove(self, customer_id: str) -> Optional[Customer]:
        return self._customers.pop(customer_id, None)


class CallTable:
    def __init__(self) -> None:
        self._calls: dict[str, Call] = {}

    def __contains__(self, call_id: str) -> bool:
        return call_id in self._calls

    def __iter__(self) -> Iterator[Call]:
        return iter(list(self._calls.values()))

    def __len__(self) -> int:
        return len(self._calls)

    def add(self, call: Call) -> Call:
        self._calls[call.id] = call
        return call

    def get(self, call_id: str) -> Call:
        call = self._calls.get(call_id)
        if call is None:
            raise NotFound(f"call {call_id}")
        return call

    def find(self, call_id: str) -> Optional[Call]:
        return self._calls.get(call_id)

    def find_by_customer(self, customer_id: str) -> Optional[Call]:
        return next((c for c in self._calls.values() if c.customer_id == customer_id), None)

    def remove(self, call_id: str) -> Optional[Call]:
        return self._calls.pop(call_id, None)
