from typing import Any, Generic, Protocol, TypeVar

T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name. Last write wins."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen"
            )
        self._implementations[name] = implementation

    def get(self, name: str) -> T:
        """Get an implementation by name."""
        if name not in self._implementations:
            raise KeyError(
                f"No {self.name.lower()} implementation registered with name: {name}"
            )
        return self._implementations[name]

    def __contains__(self, name: object) -> bool:
        return name in self._implementations

    # Defined before list(); annotations below that point resolve to the method
    def items(self) -> list[tuple[str, T]]:
        return list(self._implementations.items())

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


class JobHandler(Protocol):
    """Protocol for worker-side handlers that execute one kind of job."""

    async def handle(self, job: Any) -> dict[str, Any] | None:
        """
        Execute a claimed job.

        Args:
            job: The claimed job record (queue name, kind, payload, attempts)

        Returns:
            Optional result dictionary stored on the completed job
        """
        ...


class JobRegistry(Registry[JobHandler]):
    """Registry of job handlers keyed by ``"<queue>:<kind>"``."""

    def __init__(self):
        super().__init__("Job")

    @staticmethod
    def handler_key(queue_name: str, kind: str) -> str:
        return f"{queue_name}:{kind}"

    def register_handler(self, queue_name: str, kind: str, handler: JobHandler) -> None:
        self.register(self.handler_key(queue_name, kind), handler)

    def get_handler(self, queue_name: str, kind: str) -> JobHandler:
        return self.get(self.handler_key(queue_name, kind))
