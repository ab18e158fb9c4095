import asyncio


class RequestMeta:
    """
    Per-call retry and cancellation state, owned by the transport for
    the duration of one request.

    Unset limits fall back to the transport configuration. Setting
    ``aborted`` (or calling ``abort()``) from any coroutine stops the
    request at the next suspension point.
    """

    def __init__(
        self,
        max_retries: int | None = None,
        request_timeout: float | None = None,
        deadline: float | None = None,
        sticky_key: str | None = None,
    ) -> None:
        self.max_retries = max_retries
        self.request_timeout = request_timeout
        self.deadline = deadline
        self.sticky_key = sticky_key
        self.attempt: int = 0
        self._aborted: bool = False
        self._abort_event: asyncio.Event | None = None

    @property
    def aborted(self) -> bool:
        return self._aborted

    @aborted.setter
    def aborted(self, value: bool) -> None:
        self._aborted = value

        if value and self._abort_event is not None:
            self._abort_event.set()

    @property
    def abort_event(self) -> asyncio.Event:
        if self._abort_event is None:
            self._abort_event = asyncio.Event()

            if self._aborted:
                self._abort_event.set()

        return self._abort_event

    def abort(self) -> None:
        self.aborted = True

    def __repr__(self) -> str:
        return (
            f"RequestMeta(attempt={self.attempt}, max_retries={self.max_retries}, "
            f"request_timeout={self.request_timeout}, aborted={self._aborted})"
        )
