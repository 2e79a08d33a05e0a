"""Per-call context handed to tool, resource and prompt handlers."""

from typing import Any, Optional, Union

from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.session import ServerSession
from starlette.requests import Request

LOG_LEVELS = ("debug", "info", "notice", "warning", "error", "critical", "alert", "emergency")


class LogLevelState:
    """Minimum MCP log level requested by the client via ``logging/setLevel``."""

    def __init__(self, level: types.LoggingLevel = "debug"):
        self.level = level

    def allows(self, level: types.LoggingLevel) -> bool:
        return LOG_LEVELS.index(level) >= LOG_LEVELS.index(self.level)


class Context:
    """Gives handlers access to the MCP session and the HTTP request behind a call.

    Handlers receive it by declaring a parameter annotated with ``Context``
    (or named ``context``). Notifications are silently skipped when the
    handler runs outside of an MCP request, e.g. when called directly.
    """

    def __init__(
        self,
        server: Optional[Server] = None,
        session: Optional[ServerSession] = None,
        request_id: Optional[Union[str, int]] = None,
        progress_token: Optional[types.ProgressToken] = None,
        request: Optional[Request] = None,
        log_level: Optional[LogLevelState] = None,
    ):
        self.server = server
        self.session = session
        self.request_id = request_id
        self.progress_token = progress_token
        self.request = request
        self._log_level = log_level or LogLevelState()

    @classmethod
    def from_server(cls, server: Server, log_level: Optional[LogLevelState] = None) -> "Context":
        """Build a context for the MCP request currently handled by ``server``."""
        try:
            request_context = server.request_context
        except LookupError:
            return cls(server=server, log_level=log_level)

        meta = request_context.meta
        return cls(
            server=server,
            session=request_context.session,
            request_id=request_context.request_id,
            progress_token=meta.progressToken if meta is not None else None,
            request=getattr(request_context, "request", None),
            log_level=log_level,
        )

    @property
    def user(self) -> Any:
        """The ``request.state.user`` set by an authentication guard, if any."""
        if self.request is None:
            return None
        return getattr(self.request.state, "user", None)

    async def report_progress(
        self, progress: float, total: Optional[float] = None, message: Optional[str] = None
    ) -> None:
        """Send a progress notification if the client asked for progress updates.

        Args:
            progress: Current progress value
            total: Optional total, letting clients render a percentage
            message: Optional human readable status
        """
        if self.session is None or self.progress_token is None:
            return

        await self.session.send_progress_notification(
            progress_token=self.progress_token,
            progress=progress,
            total=total,
            message=message,
            related_request_id=self._related_request_id,
        )

    async def log(
        self, level: types.LoggingLevel, data: Any, logger_name: Optional[str] = None
    ) -> None:
        """Send a logging notification to the client."""
        if self.session is None or not self._log_level.allows(level):
            return

        await self.session.send_log_message(
            level=level,
            data=data,
            logger=logger_name,
            related_request_id=self._related_request_id,
        )

    async def debug(self, data: Any, logger_name: Optional[str] = None) -> None:
        await self.log("debug", data, logger_name)

    async def info(self, data: Any, logger_name: Optional[str] = None) -> None:
        await self.log("info", data, logger_name)

    async def warning(self, data: Any, logger_name: Optional[str] = None) -> None:
        await self.log("warning", data, logger_name)

    async def error(self, data: Any, logger_name: Optional[str] = None) -> None:
        await self.log("error", data, logger_name)

    @property
    def _related_request_id(self) -> Optional[str]:
        # Streamable HTTP routes notifications to the stream of this request
        return str(self.request_id) if self.request_id is not None else None

    def __repr__(self) -> str:
        return f"Context(request_id={self.request_id!r}, progress_token={self.progress_token!r})"
