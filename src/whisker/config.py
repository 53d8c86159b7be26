"""Whisker configuration.

WhiskerConfig is the central configuration object, frozen after creation.
"""

from dataclasses import dataclass, field
from pathlib import Path

from whisker._errors import ConfigError

# Highest valid TCP port.
MAX_PORT = 65535


@dataclass(frozen=True, slots=True)
class WhiskerConfig:
    """Configuration for a Whisker preview server.

    Attributes:
        source: Path to the Markdown file to watch.
                Always resolved to an absolute path on construction.
        host: Bind address for the preview server.
        port: First port to try; BindManager may move to a later one.
        max_bind_attempts: How many successive ports to try before giving up.
        debounce_ms: watchfiles debounce window for grouping filesystem events.
        queue_size: Pending signals a viewer may lag behind before it is dropped.
        templates_dir: Optional directory of user templates overriding the theme.
        static_dir: Optional directory of user assets served under ``/static``.

    """

    source: Path = field(default_factory=lambda: Path("README.md"))
    host: str = "127.0.0.1"
    port: int = 3000
    max_bind_attempts: int = 10
    debounce_ms: int = 300
    queue_size: int = 64
    templates_dir: Path | None = None
    static_dir: Path | None = None

    def __post_init__(self) -> None:
        # Resolve to absolute so that watchfiles (which reports absolute
        # paths) can be compared against the source path directly.
        resolved = self.source.resolve()
        if resolved != self.source:
            object.__setattr__(self, "source", resolved)

        if not 0 < self.port <= MAX_PORT:
            msg = f"port must be between 1 and {MAX_PORT}, got {self.port}"
            raise ConfigError(msg)
        if self.max_bind_attempts < 1:
            msg = f"max_bind_attempts must be at least 1, got {self.max_bind_attempts}"
            raise ConfigError(msg)
        if self.debounce_ms < 0:
            msg = f"debounce_ms must not be negative, got {self.debounce_ms}"
            raise ConfigError(msg)
        if self.queue_size < 1:
            msg = f"queue_size must be at least 1, got {self.queue_size}"
            raise ConfigError(msg)

    @property
    def watch_dir(self) -> Path:
        """Directory watched for changes (the source file's parent)."""
        return self.source.parent

    @property
    def display_name(self) -> str:
        """Short name of the watched file for titles and log lines."""
        return self.source.name
