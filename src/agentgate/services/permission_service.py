"""
Interactive permission approval.

When the checker answers "ask the user", the front-end needs a place to
park the request until a human decides. InteractivePermissionService keeps
one asyncio future per pending request, notifies listeners (the UI, a
WebSocket broadcaster) and resolves the future when a response arrives,
when the request times out, or when the session ends.

All methods must be called from the event loop that awaits the requests.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from ..core.constants import (
    DEFAULT_PERMISSION_TIMEOUT_SECONDS,
    SESSION_ENDED_REASON,
    WRITE_TOOLS,
)
from ..core.exceptions import SettingsError
from ..core.permission_checker import PermissionAllow, PermissionChecker, PermissionDeny
from ..core.tool_input import ToolInput
from ..core.tool_utils import build_tool_call_string

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermissionRequest:
    """A tool call waiting for a human decision."""
    request_id: str
    tool_name: str
    tool_input: ToolInput
    cwd: str
    inferred_pattern: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def display_action(self) -> str:
        """Short description for the approval prompt, e.g. "Bash(npm test)"."""
        return build_tool_call_string(self.tool_name, self.tool_input)


RequestListener = Callable[[PermissionRequest], None]


class InteractivePermissionService:
    """
    Holds pending approval requests until a human answers them.

    Usage:
        service = InteractivePermissionService(checker)
        service.add_listener(lambda request: ui.show_prompt(request))

        can_use_tool = create_permission_callback(
            checker, cwd, on_ask=service.request_permission
        )

        # Later, from the UI:
        service.handle_permission_response(request_id, allow=True, remember=True)
    """

    def __init__(
        self,
        checker: PermissionChecker,
        timeout_seconds: Optional[float] = DEFAULT_PERMISSION_TIMEOUT_SECONDS,
    ) -> None:
        """
        Initialize the service.

        Args:
            checker: Checker whose session cache and settings receive
                "remember" answers.
            timeout_seconds: Seconds before an unanswered request is denied.
                None waits indefinitely.
        """
        self._checker = checker
        self._timeout_seconds = timeout_seconds
        self._pending: dict[str, tuple[PermissionRequest, asyncio.Future]] = {}
        self._listeners: list[RequestListener] = []

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def pending_requests(self) -> list[PermissionRequest]:
        return [request for request, _ in self._pending.values()]

    def add_listener(self, listener: RequestListener) -> None:
        """Register a callable notified of every new request."""
        self._listeners.append(listener)

    def remove_listener(self, listener: RequestListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def request_permission(
        self,
        tool_name: str,
        tool_input: ToolInput,
        cwd: str,
        inferred_pattern: Optional[str] = None,
    ) -> Union[PermissionAllow, PermissionDeny]:
        """
        Park a tool call until it is answered, times out, or is cancelled.

        If the awaiting task is cancelled the request is dropped, so no
        decision point is left dangling.

        Args:
            tool_name: Tool the agent wants to run.
            tool_input: Typed input of the call.
            cwd: Working directory of the agent.
            inferred_pattern: Rule to store if the user chooses "remember".

        Returns:
            PermissionAllow or PermissionDeny.
        """
        loop = asyncio.get_running_loop()
        request = PermissionRequest(
            request_id=str(uuid.uuid4()),
            tool_name=tool_name,
            tool_input=tool_input,
            cwd=cwd,
            inferred_pattern=inferred_pattern,
        )
        future: asyncio.Future = loop.create_future()
        self._pending[request.request_id] = (request, future)
        logger.info(f"Permission requested: {request.request_id} {request.display_action}")

        try:
            self._notify_listeners(request)
            result, remember = await asyncio.wait_for(future, timeout=self._timeout_seconds)
            if remember:
                await self._remember(request)
            return result
        except asyncio.TimeoutError:
            logger.warning(f"Permission request timed out: {request.request_id}")
            return PermissionDeny(
                f"Permission request timed out after {self._timeout_seconds:g} seconds"
            )
        finally:
            self._pending.pop(request.request_id, None)

    def _notify_listeners(self, request: PermissionRequest) -> None:
        for listener in list(self._listeners):
            try:
                listener(request)
            except Exception as e:
                logger.error(
                    f"Permission listener {listener!r} failed for {request.request_id}: {e}",
                    exc_info=True,
                )

    async def _remember(self, request: PermissionRequest) -> None:
        pattern = request.inferred_pattern
        if not pattern:
            return
        if request.tool_name in WRITE_TOOLS:
            self._checker.add_session_pattern(pattern)
            return
        manager = self._checker.settings_manager_for(request.cwd)
        try:
            # The settings write does file I/O; keep it off the event loop
            await asyncio.to_thread(manager.add_to_allow_list, pattern)
        except SettingsError as e:
            logger.error(f"Could not persist {pattern}: {e}")

    def handle_permission_response(
        self,
        request_id: str,
        allow: bool,
        remember: bool = False,
        message: Optional[str] = None,
    ) -> bool:
        """
        Resolve a pending request with the user's answer.

        With allow and remember, write tools get the inferred pattern in the
        session cache; other tools get it added to the project allow list.
        The pattern is stored by the waiting request_permission call before
        it returns.

        Args:
            request_id: Id from the PermissionRequest.
            allow: Whether the user approved the call.
            remember: Whether to keep the inferred pattern.
            message: Optional explanation returned to the agent on deny.

        Returns:
            True if a pending request was resolved, False if the id is
            unknown or the request was already resolved.
        """
        entry = self._pending.get(request_id)
        if entry is None:
            logger.warning(f"No pending permission request {request_id}")
            return False

        request, future = entry
        if future.done():
            return False

        if allow:
            future.set_result((PermissionAllow("Approved by user"), remember))
        else:
            future.set_result((PermissionDeny(message or "Denied by user"), False))

        logger.info(f"Permission {'granted' if allow else 'denied'}: {request_id}")
        return True

    def cancel_all(self, reason: str = SESSION_ENDED_REASON) -> int:
        """
        Deny every pending request, e.g. when the agent process is aborted.

        Returns:
            Number of requests resolved.
        """
        cancelled = 0
        for request_id, (_, future) in list(self._pending.items()):
            if not future.done():
                future.set_result((PermissionDeny(reason), False))
                cancelled += 1
            self._pending.pop(request_id, None)

        if cancelled:
            logger.info(f"Cancelled {cancelled} pending permission request(s): {reason}")
        return cancelled
