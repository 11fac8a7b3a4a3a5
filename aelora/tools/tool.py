"""Tool class and decorator for defining tools that the model can call."""

import inspect
import json
from collections.abc import Callable
from typing import Any, get_type_hints

from pydantic import BaseModel, ValidationError

from ..utils.serializer import serialize
from .capability import CallContext, Capability, ToolOutput


class Tool(Capability):
    """
    A flat, stateless-per-call capability.

    Handlers take the call context and, optionally, the arguments:
    - ``(ctx)``: no arguments
    - ``(ctx, input: SomeModel)``: arguments validated into a pydantic model
    - ``(ctx, args)``: the raw argument dict, checked against ``parameters``

    Handlers may be sync or async and return ``str``, ``ToolOutput``, a pydantic
    model or any JSON-serializable value.
    """

    kind = "tool"

    def __init__(
        self,
        name: str,
        description: str = "",
        parameters: dict[str, Any] | None = None,
        handler: Callable | None = None,
        input_schema: type[BaseModel] | None = None,
        enabled: bool = True,
    ):
        if parameters is None and input_schema is not None:
            parameters = input_schema.model_json_schema()
        super().__init__(name, description, parameters, enabled)
        self._handler = handler
        self._input_schema_class = input_schema
        self._takes_args = _handler_takes_args(handler) if callable(handler) else False

    @property
    def has_handler(self) -> bool:
        return callable(self._handler)

    @property
    def input_schema(self) -> type[BaseModel] | None:
        return self._input_schema_class

    def validate_args(self, args: dict[str, Any]) -> list[str]:
        if self._input_schema_class is not None:
            try:
                self._input_schema_class.model_validate(args)
            except ValidationError as e:
                return [_format_validation_error(err) for err in e.errors()]
            return []
        return super().validate_args(args)

    async def invoke(self, args: dict[str, Any], context: CallContext) -> str | ToolOutput:
        if not self.has_handler:
            raise NotImplementedError(f"Tool {self.name} has no handler")

        call_args: list[Any] = [context]
        if self._takes_args:
            if self._input_schema_class is not None:
                call_args.append(self._input_schema_class.model_validate(args))
            else:
                call_args.append(args)

        result = self._handler(*call_args)
        if inspect.isawaitable(result):
            result = await result
        return to_tool_output(result)


def to_tool_output(result: Any) -> str | ToolOutput:
    """Normalize a handler's return value to text or a ToolOutput."""
    if isinstance(result, (str, ToolOutput)):
        return result
    if result is None:
        return "(no output)"
    if isinstance(result, BaseModel):
        data = result.model_dump(mode="json")
        return ToolOutput(text=json.dumps(data), data=data)
    return json.dumps(serialize(result))


def tool(
    name: str | Callable | None = None,
    description: str | None = None,
    parameters: dict[str, Any] | None = None,
    enabled: bool = True,
):
    """
    Decorator turning a function into a Tool.

    Args:
        name: Optional tool name (defaults to function name)
        description: Optional tool description (defaults to the docstring)
        parameters: Optional JSON schema (inferred from a pydantic input model if omitted)
        enabled: Initial enabled state

    Example:
        class SearchInput(BaseModel):
            query: str

        @tool(description="Search the knowledge base")
        async def search_kb(ctx: CallContext, input: SearchInput) -> str:
            return await db.search(input.query)
    """

    tool_name = None if callable(name) else name

    def decorator(func: Callable) -> Tool:
        input_schema_class = _validate_tool_signature(func)
        return Tool(
            name=tool_name or func.__name__,
            description=description or inspect.getdoc(func) or "",
            parameters=parameters,
            handler=func,
            input_schema=input_schema_class,
            enabled=enabled,
        )

    # Handle both @tool and @tool(...) syntax
    if callable(name):
        return decorator(name)
    return decorator


def _handler_takes_args(func: Callable) -> bool:
    try:
        params = list(inspect.signature(func).parameters.values())
    except (TypeError, ValueError):
        return True
    return len(params) >= 2


def _validate_tool_signature(func: Callable) -> type[BaseModel] | None:
    """
    Validate a tool function signature and return its input model class, if any.

    Raises:
        TypeError: If the function takes no context or more than two parameters
    """
    params = list(inspect.signature(func).parameters.values())

    if len(params) < 1 or len(params) > 2:
        raise TypeError(
            f"Tool function '{func.__name__}' must take (ctx) or (ctx, input), "
            f"got {len(params)} parameter(s)"
        )

    if len(params) == 2:
        # Resolve string annotations from modules using postponed evaluation
        try:
            annotation = get_type_hints(func).get(params[1].name, params[1].annotation)
        except (NameError, TypeError):
            annotation = params[1].annotation
        if inspect.isclass(annotation) and issubclass(annotation, BaseModel):
            return annotation
    return None


def _format_validation_error(error: dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ())) or "arguments"
    if error.get("type") == "missing":
        return f'"{location}" is required'
    return f'"{location}": {error.get("msg", "invalid value")}'
