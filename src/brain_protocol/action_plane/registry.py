"""Resource Registry for the conversation surface exposed to adapters.

Operations are registered under a unique name with a path, a pydantic
parameter schema and an async handler. Definitions are validated when they
are registered, and parameters are validated on every invocation.
"""

import inspect
import logging
import re
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from ..core.exceptions import RegistrationError, ResourceValidationError

logger = logging.getLogger(__name__)

Handler = Callable[..., Awaitable[Any]]
H = TypeVar("H", bound=Handler)

_PLACEHOLDER = re.compile(r":([A-Za-z_]\w*)")


class ResourceKind(str, Enum):
    """Read-only resources versus state-changing tools."""

    RESOURCE = "resource"
    TOOL = "tool"


class ResourceDefinition(BaseModel):
    """A registered operation."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str = Field(..., description="Unique operation name")
    kind: ResourceKind = Field(..., description="Resource or tool")
    path: str = Field(..., description="Address, with :placeholders for path parameters")
    params_schema: type[BaseModel] = Field(..., description="Parameter model")
    handler: Handler = Field(..., description="Coroutine function receiving the parameters")
    description: str = ""

    @property
    def path_params(self) -> list[str]:
        return _PLACEHOLDER.findall(self.path)


def schema_from_handler(name: str, handler: Callable[..., Any]) -> type[BaseModel]:
    """Build a parameter model from a handler's signature."""
    fields: dict[str, Any] = {}
    for param_name, param in inspect.signature(handler).parameters.items():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        annotation = Any if param.annotation is inspect.Parameter.empty else param.annotation
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[param_name] = (annotation, default)

    model_name = "".join(part.capitalize() for part in name.split("_")) + "Params"
    return create_model(model_name, __config__=ConfigDict(extra="forbid"), **fields)


class ResourceRegistry:
    """Typed mapping from operation name to its definition."""

    def __init__(self) -> None:
        self._definitions: dict[str, ResourceDefinition] = {}

    def register(self, definition: ResourceDefinition) -> ResourceDefinition:
        """Register a definition after validating it.

        Raises:
            RegistrationError: If the name is taken, the path is empty, a
                path placeholder is missing from the schema, or the handler
                is not a coroutine function
        """
        if not definition.name:
            raise RegistrationError("Resource name must not be empty")
        if definition.name in self._definitions:
            raise RegistrationError(f"Resource '{definition.name}' is already registered")
        if not definition.path.strip():
            raise RegistrationError(f"Resource '{definition.name}' has an empty path")
        if not inspect.iscoroutinefunction(definition.handler):
            raise RegistrationError(
                f"Handler for resource '{definition.name}' must be an async function"
            )

        missing = [
            param for param in definition.path_params
            if param not in definition.params_schema.model_fields
        ]
        if missing:
            raise RegistrationError(
                f"Path parameters {', '.join(missing)} of resource "
                f"'{definition.name}' are not in its parameter schema"
            )

        self._definitions[definition.name] = definition
        logger.info(f"Registered {definition.kind.value} '{definition.name}' at {definition.path}")
        return definition

    def resource(
        self,
        name: str,
        path: str,
        params_schema: type[BaseModel] | None = None,
        kind: ResourceKind = ResourceKind.RESOURCE,
        description: str = "",
    ) -> Callable[[H], H]:
        """Decorator registering an async handler.

        Without an explicit schema, one is generated from the handler's
        signature.

        Example:
            @registry.resource("get_turns", "conversations://turns/:conversation_id")
            async def get_turns(conversation_id: str, limit: int | None = None):
                ...
        """
        def decorator(handler: H) -> H:
            self.register(ResourceDefinition(
                name=name,
                kind=kind,
                path=path,
                params_schema=params_schema or schema_from_handler(name, handler),
                handler=handler,
                description=description or (inspect.getdoc(handler) or ""),
            ))
            return handler

        return decorator

    def tool(
        self,
        name: str,
        path: str,
        params_schema: type[BaseModel] | None = None,
        description: str = "",
    ) -> Callable[[H], H]:
        """Decorator registering a state-changing tool."""
        return self.resource(name, path, params_schema, ResourceKind.TOOL, description)

    def get(self, name: str) -> ResourceDefinition | None:
        return self._definitions.get(name)

    def list_resources(self, kind: ResourceKind | None = None) -> list[str]:
        """Registered names, optionally filtered by kind."""
        return sorted(
            name for name, definition in self._definitions.items()
            if kind is None or definition.kind == kind
        )

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    async def invoke(self, name: str, params: dict[str, Any] | None = None) -> Any:
        """Validate ``params`` against the schema and await the handler.

        Raises:
            ResourceValidationError: If the name is unknown or the
                parameters do not validate
        """
        definition = self._definitions.get(name)
        if definition is None:
            raise ResourceValidationError(f"Unknown resource '{name}'")

        try:
            validated = definition.params_schema.model_validate(params or {})
        except ValidationError as e:
            raise ResourceValidationError(
                f"Invalid parameters for resource '{name}': {e}"
            ) from e

        try:
            return await definition.handler(**dict(validated))
        except Exception as e:
            logger.error(f"Resource '{name}' failed: {str(e)}")
            raise
