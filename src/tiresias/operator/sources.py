"""
Event sources streaming Prometheus resource changes to the reconciler.

Two backends sit behind `EventSource.events()`:

- `KopfEventSource` runs kopf, which lists every Prometheus first and then
  watches, reconnecting transparently.
- `WatchEventSource` runs a plain Kubernetes watch on a background thread and
  reopens it with exponential backoff whenever it fails.

Both deliver typed `ResourceEvent`s; raw objects are checked once, in
`event_from_raw`, and anything unexpected is logged and dropped.
"""
import abc
import asyncio
import logging
import threading
from typing import Any, AsyncIterator, Dict, Iterator, Mapping, Optional

import kopf
from kubernetes import client, watch
from urllib3.exceptions import HTTPError as TransportError

from ..crds.const import CRD_GROUP, CRD_PLURAL_PROMETHEUS, CRD_VERSION
from ..crds.prometheus import Prometheus
from ..utils.kube import login_via_configured_client
from .events import EventType, ResourceEvent

logger = logging.getLogger(__name__)

HTTP_GONE = 410
# How long closing `WatchEventSource.events()` waits for the watch thread.
THREAD_JOIN_TIMEOUT = 5.0

# kopf reports objects found by the initial listing with a `None` type.
_EVENT_TYPES = {
    None: EventType.ADDED,
    "ADDED": EventType.ADDED,
    "MODIFIED": EventType.UPDATED,
    "DELETED": EventType.DELETED,
}


def _describe(obj: Any) -> str:
    if isinstance(obj, Mapping):
        metadata = obj.get("metadata")
        if isinstance(metadata, Mapping) and metadata.get("name"):
            namespace = metadata.get("namespace")
            name = metadata["name"]
            identity = f"{namespace}/{name}" if namespace else name
            return f"{obj.get('kind', 'object')} '{identity}'"
        return f"{obj.get('kind', 'object')} without metadata"
    return f"{type(obj).__name__} object"


def event_from_raw(
    event_type: Optional[str],
    obj: Any,
    log: Optional[logging.Logger] = None,
) -> Optional[ResourceEvent]:
    """
    Convert a raw watch event into a `ResourceEvent`.

    Returns None, after logging a warning, for unknown event types and for
    objects that are not well-formed Prometheus resources.
    """
    log = log or logger
    if event_type not in _EVENT_TYPES:
        log.warning(f"Ignoring unexpected '{event_type}' event for {_describe(obj)}.")
        return None
    if not isinstance(obj, Mapping) or not Prometheus.matches(obj):
        log.warning(f"Ignoring unexpected {_describe(obj)} in the Prometheus stream.")
        return None
    try:
        resource = Prometheus.from_dict(obj)
    except ValueError as e:
        log.warning(f"Ignoring malformed {_describe(obj)}: {e}")
        return None
    return ResourceEvent(type=_EVENT_TYPES[event_type], resource=resource)


class EventSource(abc.ABC):
    """Produces the ordered stream of Prometheus events, one backend per process."""

    @abc.abstractmethod
    def events(self) -> AsyncIterator[ResourceEvent]:
        ...


async def _drain(
    queue: "asyncio.Queue[ResourceEvent]", producer: "asyncio.Future[Any]"
) -> AsyncIterator[ResourceEvent]:
    """
    Yield queued events until the producer finishes.

    Events already queued when the producer finishes are still delivered; a
    failed producer re-raises its exception after that.
    """
    while True:
        getter = asyncio.ensure_future(queue.get())
        try:
            done, _ = await asyncio.wait(
                {getter, producer}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            if not getter.done():
                getter.cancel()

        if getter in done:
            yield getter.result()
            continue

        while not queue.empty():
            yield queue.get_nowait()
        producer.result()
        return


def enqueue_event(
    queue: "asyncio.Queue[ResourceEvent]",
    raw_event: Mapping[str, Any],
    log: Optional[logging.Logger] = None,
) -> None:
    event = event_from_raw(raw_event.get("type"), raw_event.get("object"), log)
    if event is not None:
        queue.put_nowait(event)


class KopfEventSource(EventSource):
    """
    Cache-backed source: kopf lists existing resources, then watches.

    kopf handles reconnects and re-listing on its own, so this source only
    bridges its raw event handler onto a queue.
    """

    def __init__(
        self,
        *,
        reconnect_backoff: float = 0.1,
        server_timeout: Optional[int] = None,
    ) -> None:
        self.reconnect_backoff = reconnect_backoff
        self.server_timeout = server_timeout

    def build_registry(self, queue: "asyncio.Queue[ResourceEvent]") -> kopf.OperatorRegistry:
        registry = kopf.OperatorRegistry()

        @kopf.on.login(registry=registry)
        def login(**kwargs: Any) -> kopf.ConnectionInfo:
            return login_via_configured_client()

        # Async so kopf runs it on the loop that owns `queue`, not in its executor.
        @kopf.on.event(
            CRD_GROUP, CRD_VERSION, CRD_PLURAL_PROMETHEUS, registry=registry
        )
        async def on_prometheus_event(
            event: Dict[str, Any], logger: logging.Logger, **kwargs: Any
        ) -> None:
            enqueue_event(queue, event, logger)

        return registry

    def build_settings(self) -> kopf.OperatorSettings:
        settings = kopf.OperatorSettings()
        # All logs by default go to the k8s event api; we never own these objects.
        settings.posting.enabled = False
        settings.watching.reconnect_backoff = self.reconnect_backoff
        if self.server_timeout:
            settings.watching.server_timeout = self.server_timeout
        return settings

    async def events(self) -> AsyncIterator[ResourceEvent]:
        queue: "asyncio.Queue[ResourceEvent]" = asyncio.Queue()
        stop_flag = asyncio.Event()
        operator_task = asyncio.create_task(
            kopf.operator(
                registry=self.build_registry(queue),
                settings=self.build_settings(),
                clusterwide=True,
                standalone=True,
                stop_flag=stop_flag,
            )
        )
        try:
            async for event in _drain(queue, operator_task):
                yield event
        finally:
            stop_flag.set()
            if not operator_task.done():
                await asyncio.wait({operator_task})


class WatchEventSource(EventSource):
    """
    Raw watch source with reconnect-with-backoff.

    The watch resumes from the last seen resource version after a server-side
    timeout or a dropped connection. A 410 (Gone) resets the version, which
    makes the next watch replay every existing resource as ADDED.
    """

    def __init__(
        self,
        api: Optional[client.CustomObjectsApi] = None,
        *,
        timeout_seconds: Optional[int] = None,
        backoff_initial: float = 1.0,
        backoff_max: float = 60.0,
    ) -> None:
        self.api = api or client.CustomObjectsApi()
        self.timeout_seconds = timeout_seconds
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self._watcher: Optional[watch.Watch] = None

    def iter_events(self, stop: threading.Event) -> Iterator[ResourceEvent]:
        """Blocking generator of events; runs until `stop` is set."""
        resource_version: Optional[str] = None
        backoff = self.backoff_initial

        while not stop.is_set():
            self._watcher = watch.Watch()
            failed = False
            try:
                for raw in Prometheus.watch(
                    self._watcher,
                    self.api,
                    resource_version=resource_version,
                    timeout_seconds=self.timeout_seconds,
                ):
                    event_type = raw.get("type")
                    obj = raw.get("object")

                    version = _resource_version(obj)
                    if version:
                        resource_version = version
                    backoff = self.backoff_initial
                    if event_type == "BOOKMARK":
                        continue

                    event = event_from_raw(event_type, obj)
                    if event is not None:
                        yield event
                    if stop.is_set():
                        break
            except client.ApiException as e:
                # The client turns ERROR watch events into ApiException; only the
                # status code, reason and message of the Status survive.
                if e.status == HTTP_GONE:
                    resource_version = None
                logger.error(f"Watch of prometheuses failed ({e.status} {e.reason}).")
                failed = True
            except TransportError as e:
                logger.error(f"Watch connection to the API server dropped: {e}")
                failed = True
            finally:
                self._watcher.stop()

            if failed and not stop.is_set():
                logger.warning(f"Reopening the prometheuses watch in {backoff:.1f}s.")
                stop.wait(backoff)
                backoff = min(backoff * 2, self.backoff_max)

    def _pump(
        self,
        loop: asyncio.AbstractEventLoop,
        queue: "asyncio.Queue[ResourceEvent]",
        done: "asyncio.Future[None]",
        stop: threading.Event,
    ) -> None:
        try:
            for event in self.iter_events(stop):
                if stop.is_set():
                    break
                loop.call_soon_threadsafe(queue.put_nowait, event)
        except Exception as e:
            if not loop.is_closed():
                loop.call_soon_threadsafe(_resolve, done, e)
            return
        if not loop.is_closed():
            loop.call_soon_threadsafe(_resolve, done, None)

    async def events(self) -> AsyncIterator[ResourceEvent]:
        loop = asyncio.get_running_loop()
        queue: "asyncio.Queue[ResourceEvent]" = asyncio.Queue()
        done: "asyncio.Future[None]" = loop.create_future()
        stop = threading.Event()
        thread = threading.Thread(
            target=self._pump,
            args=(loop, queue, done, stop),
            name="prometheus-watch",
            daemon=True,
        )
        thread.start()
        try:
            async for event in _drain(queue, done):
                yield event
        finally:
            stop.set()
            if self._watcher is not None:
                self._watcher.stop()
            await asyncio.to_thread(thread.join, THREAD_JOIN_TIMEOUT)
            if thread.is_alive():
                logger.warning("Watch thread did not stop in time; leaving it behind.")


def _resolve(future: "asyncio.Future[None]", error: Optional[BaseException]) -> None:
    if future.done():
        return
    if error is None:
        future.set_result(None)
    else:
        future.set_exception(error)


def _resource_version(obj: Any) -> Optional[str]:
    if isinstance(obj, Mapping) and isinstance(obj.get("metadata"), Mapping):
        return obj["metadata"].get("resourceVersion")
    return None
