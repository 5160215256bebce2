"""Object loader - fetch, parse, map, commit, merge, deliver.

An ObjectLoader drives one remote load:

    1. send the request through the manager's transport
    2. classify the response (mappable, error, empty or unexpected)
    3. parse the body and run the ``will_map_data`` hook
    4. map in a background ObjectContext on a worker thread and commit it
    5. merge the committed objects into the main context
    6. deliver the main-context objects to exactly one callback

Callbacks run on the event loop thread. A cancelled loader calls nothing and
never commits its background context.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from tree_mapper.adapters.protocol import Request, Response
from tree_mapper.core.context import ObjectContext
from tree_mapper.core.enums import ResponseClass
from tree_mapper.core.exceptions import (
    CommitError,
    HookError,
    LoaderStateError,
    ParseError,
    ResponseError,
    TreeMapperError,
    UnexpectedResponseError,
)
from tree_mapper.core.keypath import MISSING, is_sequence, value_for_key_path
from tree_mapper.mapping.mapper import MappingResult, ObjectMapper

if TYPE_CHECKING:
    from tree_mapper.core.manager import ObjectManager
    from tree_mapper.mapping.object_mapping import ObjectMapping
    from tree_mapper.mapping.protocol import MappingDelegate

logger = logging.getLogger(__name__)

SuccessCallback = Callable[["ObjectLoader", list[Any]], None]
FailureCallback = Callable[["ObjectLoader", TreeMapperError], None]
UnexpectedResponseCallback = Callable[["ObjectLoader"], None]
MapDataHook = Callable[["ObjectLoader", Any], Any]


class _LoaderState(Enum):
    READY = "ready"
    LOADING = "loading"
    FINISHED = "finished"
    CANCELLED = "cancelled"


def _error_messages(payload: Any) -> list[str]:
    if payload is MISSING or payload is None:
        return []
    if isinstance(payload, str):
        return [payload]
    if is_sequence(payload):
        return [m for item in payload for m in _error_messages(item)]
    if isinstance(payload, dict) and "message" in payload:
        return [str(payload["message"])]
    return [str(payload)]


class ObjectLoader:
    """One load of a remote resource into mapped objects.

    Created by ``ObjectManager.loader()``. Single-use: ``load()`` may be
    awaited once.

    Args:
        manager: Supplies transport, parsers, mappings and the main context.
        request: The remote resource to fetch.
        mapping: Mapping for the payload. Without one, the manager's
            provider discovers mappable key paths.
        target: Existing main-context object to map the result onto.
        on_success: Called with the mapped main-context objects.
        on_failure: Called with the classified error.
        on_unexpected_response: Called for unexpected status codes or MIME
            types. Without it, those go to ``on_failure``.
        will_map_data: Receives the parsed payload before mapping and
            returns the payload to map.
        delegate: Receives mapping events (on the worker thread).
    """

    def __init__(
        self,
        manager: ObjectManager,
        request: Request,
        *,
        mapping: ObjectMapping | None = None,
        target: Any = None,
        on_success: SuccessCallback | None = None,
        on_failure: FailureCallback | None = None,
        on_unexpected_response: UnexpectedResponseCallback | None = None,
        will_map_data: MapDataHook | None = None,
        delegate: MappingDelegate | None = None,
    ) -> None:
        self.manager = manager
        self.request = request
        self.mapping = mapping
        self.target = target
        self.on_success = on_success
        self.on_failure = on_failure
        self.on_unexpected_response = on_unexpected_response
        self.will_map_data = will_map_data
        self.delegate = delegate
        self.response: Response | None = None
        self.result: MappingResult | None = None
        self.objects: list[Any] | None = None
        self.error: TreeMapperError | None = None
        self._state = _LoaderState.READY
        self._cancelled = threading.Event()

    def __repr__(self) -> str:
        return f"ObjectLoader({self.request.method} {self.request.path!r}, state={self._state.value})"

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def is_finished(self) -> bool:
        return self._state is _LoaderState.FINISHED

    def cancel(self) -> None:
        """Stop delivering callbacks; an in-flight mapping pass is discarded."""
        if self._state is _LoaderState.FINISHED:
            return
        self._cancelled.set()
        self._state = _LoaderState.CANCELLED
        logger.info("Cancelled %r", self)

    async def load(self) -> list[Any] | None:
        """Run the load.

        Returns:
            The delivered objects, or None on failure, unexpected response
            or cancellation.

        Raises:
            LoaderStateError: If the loader was already started.
        """
        if self._state is _LoaderState.CANCELLED:
            return None
        if self._state is not _LoaderState.READY:
            raise LoaderStateError(f"{self!r} was already started")
        self._state = _LoaderState.LOADING

        logger.info("Loading %s %s", self.request.method, self.request.path)
        try:
            async with self.manager.lock_for(self.target):
                await self._run()
        except asyncio.CancelledError:
            self.cancel()
            raise
        return self.objects

    def classify(self, response: Response) -> ResponseClass:
        """Decide how a response is handled."""
        status = response.status_code
        if 200 <= status < 300:
            if status == 204 or not response.body.strip():
                return ResponseClass.EMPTY
            if self.manager.parsers.parser_for(self._content_type(response)) is None:
                return ResponseClass.UNEXPECTED
            return ResponseClass.MAPPABLE
        if 400 <= status < 600:
            return ResponseClass.ERROR
        return ResponseClass.UNEXPECTED

    # --- Stages ---

    async def _run(self) -> None:
        if self.is_cancelled:
            return
        try:
            response = await self.manager.transport.send(self.request)
        except TreeMapperError as e:
            self._fail(e)
            return
        self.response = response
        if self.is_cancelled:
            return

        classification = self.classify(response)
        logger.debug("%r: HTTP %d classified %s", self, response.status_code, classification.value)

        if classification is ResponseClass.UNEXPECTED:
            self._unexpected(response)
            return
        if classification is ResponseClass.ERROR:
            self._fail(ResponseError(response.status_code, self._response_messages(response)))
            return
        if classification is ResponseClass.EMPTY:
            self.result = MappingResult()
            self._succeed([self.target] if self.target is not None else [])
            return

        parser = self.manager.parsers.parser_for(self._content_type(response))
        if parser is None:
            self._unexpected(response)
            return
        try:
            payload = parser.parse(response.body)
        except ParseError as e:
            self._fail(e)
            return
        if self.will_map_data is not None:
            try:
                payload = self.will_map_data(self, payload)
            except TreeMapperError as e:
                self._fail(e)
                return
            except Exception as e:
                self._fail(HookError("will_map_data", e))
                return

        await self._map(payload)

    async def _map(self, payload: Any) -> None:
        main = self.manager.context
        background = main.new_background_context(f"loader:{self.request.path}")
        target = background.import_object(self.target) if self.target is not None else None

        try:
            result = await asyncio.to_thread(self._map_and_commit, background, payload, target)
        except TreeMapperError as e:
            background.discard()
            self._fail(e)
            return

        if self.is_cancelled:
            return
        error = result.error
        if error is not None:
            self.result = result
            self._fail(error)
            return

        counterparts = main.merge_changes(background)
        self.result = MappingResult(
            {
                key_path: [counterparts.get(id(obj), obj) for obj in objects]
                for key_path, objects in result.objects_by_key_path.items()
            }
        )
        if self.target is not None:
            self._succeed([self.target])
        else:
            self._succeed(self.result.as_list())

    def _map_and_commit(self, background: ObjectContext, payload: Any, target: Any) -> MappingResult:
        """Mapping pass and commit; runs on a worker thread that owns *background*."""
        mapper = ObjectMapper(self.manager.provider, context=background, delegate=self.delegate)
        result = mapper.map(payload, self.mapping, target)

        if self.is_cancelled or not result.succeeded:
            background.discard()
            return result
        try:
            background.commit()
        except CommitError as e:
            result.errors.extend(e.failures)
            background.discard()
        return result

    # --- Completion ---

    def _succeed(self, objects: list[Any]) -> None:
        if not self._finish():
            return
        self.objects = objects
        logger.info("Loaded %d object(s) from %s", len(objects), self.request.path)
        if self.on_success is not None:
            self.on_success(self, objects)

    def _fail(self, error: TreeMapperError) -> None:
        if not self._finish():
            return
        self.error = error
        logger.warning("Load of %s failed: %s", self.request.path, error)
        if self.on_failure is not None:
            self.on_failure(self, error)

    def _unexpected(self, response: Response) -> None:
        if self.on_unexpected_response is None:
            self._fail(UnexpectedResponseError(response.status_code, response.content_type))
            return
        if not self._finish():
            return
        logger.warning(
            "Unexpected response from %s: HTTP %d %s",
            self.request.path,
            response.status_code,
            response.content_type,
        )
        self.on_unexpected_response(self)

    def _finish(self) -> bool:
        """Claim the single completion; False when cancelled or already finished."""
        if self._state is not _LoaderState.LOADING or self.is_cancelled:
            return False
        self._state = _LoaderState.FINISHED
        return True

    # --- Helpers ---

    def _content_type(self, response: Response) -> str | None:
        return response.content_type or self.manager.config.default_mime_type

    def _response_messages(self, response: Response) -> list[str]:
        parser = self.manager.parsers.parser_for(self._content_type(response))
        if parser is None or not response.body.strip():
            return []
        try:
            payload = parser.parse(response.body)
        except ParseError:
            return []
        return _error_messages(value_for_key_path(payload, self.manager.config.error_key_path))
