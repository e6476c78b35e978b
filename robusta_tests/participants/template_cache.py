"""Cache of committed instance templates, keyed by configuration fingerprint.

Building and committing an instance template is expensive. Participants whose configuration
fingerprints match require identical templates, so the template is built once and every
participant gets a cheap clone of it.
"""

import dataclasses
import logging
import threading
import typing as tp

from robusta_tests.participants import instance_api

LOGGER = logging.getLogger(__name__)

TemplateBuilder = tp.Callable[[], instance_api.ClusterInstance]


@dataclasses.dataclass
class _CacheEntry:
    lock: threading.Lock = dataclasses.field(default_factory=threading.Lock)
    template: instance_api.ClusterInstance | None = None


class TemplateCache:
    """Memoization map of fingerprint -> committed instance template.

    The cache lives as long as the test run context that owns it. Entries are never evicted.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, _CacheEntry] = {}
        self.build_count = 0

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for e in self._entries.values() if e.template is not None)

    def __contains__(self, fingerprint: object) -> bool:
        with self._lock:
            entry = self._entries.get(fingerprint)  # type: ignore[arg-type]
            return entry is not None and entry.template is not None

    def fingerprints(self) -> list[str]:
        with self._lock:
            return [k for k, e in self._entries.items() if e.template is not None]

    def get_template(
        self, fingerprint: str, builder: TemplateBuilder
    ) -> instance_api.ClusterInstance:
        """Return template for the fingerprint, build it with `builder` on cache miss.

        Concurrent callers with the same fingerprint wait for a single build. When the build
        fails, the error is propagated and nothing is cached.
        """
        with self._lock:
            entry = self._entries.setdefault(fingerprint, _CacheEntry())

        with entry.lock:
            if entry.template is None:
                LOGGER.info(f"Template cache miss for '{fingerprint}', building new template.")
                entry.template = builder()
                # Builds of different fingerprints run concurrently
                with self._lock:
                    self.build_count += 1
            else:
                LOGGER.debug(f"Template cache hit for '{fingerprint}'.")
            return entry.template

    def resolve(
        self, fingerprint: str, *, name: str, builder: TemplateBuilder
    ) -> instance_api.ClusterInstance:
        """Return new instance called `name` cloned from the template for the fingerprint."""
        template = self.get_template(fingerprint=fingerprint, builder=builder)
        with instance_api.remote_operation("clone template", participant=name):
            return template.clone_with_name(name)
