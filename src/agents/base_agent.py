"""
Base Agent for the Family Calendar Assistant
Defines the abstract base class and common response type for agents that
act on the calendar store.

Agents:
- handle a fixed set of named intents
- are async, because every store call is awaited
- share consistent JSON action logging and parameter validation
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
import logging
import json


@dataclass
class AgentResponse:
    """
    Standard response structure from any agent.

    Attributes:
        success: Whether the operation completed successfully
        message: Human-readable description of the result
        data: Optional structured data (event details, counts, etc.)
        errors: Field-level validation problems, if any
    """
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    errors: Optional[List[Dict[str, str]]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert response to dictionary for serialization."""
        return {
            "success": self.success,
            "message": self.message,
            "data": self.data,
            "errors": self.errors,
        }

    @classmethod
    def error(cls, message: str, data: Optional[Dict[str, Any]] = None,
              errors: Optional[List[Dict[str, str]]] = None) -> 'AgentResponse':
        """Factory method for creating error responses."""
        return cls(success=False, message=message, data=data, errors=errors)

    @classmethod
    def ok(cls, message: str, data: Optional[Dict[str, Any]] = None) -> 'AgentResponse':
        """Factory method for creating success responses."""
        return cls(success=True, message=message, data=data)


class BaseAgent(ABC):
    """
    Abstract base class for calendar agents.

    Provides common functionality for:
    - Configuration access
    - Logging
    - Intent matching
    - Parameter validation

    Subclasses must implement:
    - process(): Execute the actual request handling
    - get_supported_intents(): Return list of intents this agent handles
    """

    def __init__(self, store, config, name: str):
        """
        Initialize the base agent.

        Args:
            store: EventStore instance for data access
            config: Config instance for settings
            name: Unique identifier for this agent (e.g., "calendar")
        """
        self.store = store
        self.config = config
        self.name = name
        self.logger = logging.getLogger(f"agent.{name}")

    def can_handle(self, intent: str) -> bool:
        """Determine if this agent can handle the given intent."""
        return intent in self.get_supported_intents()

    @abstractmethod
    async def process(self, intent: str, context: Dict[str, Any]) -> AgentResponse:
        """
        Process the request and return a response.

        Args:
            intent: One of the intents returned by get_supported_intents()
            context: Request parameters, including the caller's owner scope

        Returns:
            AgentResponse with success/failure status and relevant data
        """
        pass

    @abstractmethod
    def get_supported_intents(self) -> List[str]:
        """Return list of intents this agent can handle."""
        pass

    def log_action(self, action: str, details: Optional[Dict[str, Any]] = None) -> None:
        """
        Log an action taken by this agent.

        Provides consistent action logging for debugging and audit trails.

        Args:
            action: Description of the action taken
            details: Optional additional details as key-value pairs
        """
        log_entry = {
            "agent": self.name,
            "action": action,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
        if details:
            log_entry["details"] = details

        self.logger.info(json.dumps(log_entry, default=str))

    def validate_required_params(self, context: Dict[str, Any],
                                 required: List[str]) -> Optional[AgentResponse]:
        """
        Validate that required parameters are present in context.

        Returns:
            AgentResponse with error if validation fails, None if valid
        """
        missing = [p for p in required if p not in context or context[p] is None]
        if missing:
            return AgentResponse.error(
                f"Missing required parameters: {', '.join(missing)}"
            )
        return None

    def get_config_value(self, key: str, section: str = "assistant",
                         default: Any = None) -> Any:
        """Get a configuration value with fallback to default."""
        return self.config.get(key, section=section, default=default)
