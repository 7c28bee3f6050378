"""
Base class for skillwarden MCP tools.
"""

import logging
from abc import ABC, abstractmethod

from mcp.server.fastmcp.utilities.func_metadata import FuncMetadata, func_metadata

from .errors import NotFoundError

logger = logging.getLogger(__name__)


class Tool(ABC):
    """A named operation exposed over MCP; ``apply`` returns display text."""

    @classmethod
    def get_name_from_cls(cls) -> str:
        """Get tool name from class name (``SkillPinTool`` -> ``skill_pin``)."""
        name = cls.__name__
        if name.endswith("Tool"):
            name = name[:-4]
        name = "".join(["_" + c.lower() if c.isupper() else c for c in name]).lstrip("_")
        return name

    def get_name(self) -> str:
        return self.get_name_from_cls()

    @abstractmethod
    def apply(self, **kwargs) -> str:
        """
        Apply the tool with the given arguments.

        Subclasses declare their real parameters; the signature becomes the
        tool's input schema.
        """

    def get_apply_docstring(self) -> str:
        """Get the docstring for the apply method."""
        docstring = self.apply.__doc__
        if not docstring:
            raise AttributeError(f"apply method has no docstring in {self.__class__}.")
        return docstring.strip()

    def get_apply_fn_metadata(self) -> FuncMetadata:
        return func_metadata(self.apply, skip_names=["self"])

    def apply_ex(self, log_call: bool = True, catch_exceptions: bool = True, **kwargs) -> str:
        """
        Apply the tool with logging and exception handling.

        With *catch_exceptions* any failure is returned as an error string so
        that it never propagates into the transport.
        """
        try:
            if log_call:
                logger.debug("Calling %s with args: %s", self.get_name(), kwargs)

            result = self.apply(**kwargs)

            if log_call:
                logger.debug(
                    "Result: %s%s", result[:200], "..." if len(result) > 200 else ""
                )
            return result

        except NotFoundError as e:
            if not catch_exceptions:
                raise
            return f"Not found: {e}"
        except Exception as e:
            if not catch_exceptions:
                raise
            error_msg = f"Error executing tool {self.get_name()}: {e}"
            logger.error(error_msg, exc_info=log_call)
            return error_msg
