"""Handle for a single database instance."""

from typing import TYPE_CHECKING, Any

from .types import Database, DatabaseUser, InstanceDetail
from .utils import escape

if TYPE_CHECKING:
    from .connection import Connection


class Instance:
    """A database instance bound to the connection that fetched it.

    Attribute reads (``id``, ``name``, ``hostname``, ``status``,
    ``flavor_id``, ``volume_size`` ...) come from the last fetched record.
    Call :meth:`refresh` to re-read it from the API.
    """

    def __init__(
        self,
        connection: "Connection",
        instance_id: str,
        detail: InstanceDetail | None = None,
    ):
        self._connection = connection
        self._id = str(instance_id)
        self._detail = detail
        if detail is None:
            self.refresh()

    def __repr__(self) -> str:
        return f"<Instance id={self._id!r} status={self.status!r}>"

    @property
    def id(self) -> str:
        return self._id

    @property
    def detail(self) -> InstanceDetail:
        return self._detail

    @property
    def name(self) -> str:
        return self._detail.name

    @property
    def hostname(self) -> str | None:
        return self._detail.hostname

    @property
    def created(self) -> str | None:
        return self._detail.created

    @property
    def updated(self) -> str | None:
        return self._detail.updated

    @property
    def status(self) -> str:
        return self._detail.status

    @property
    def flavor_id(self) -> str | int | None:
        return self._detail.flavor_id

    @property
    def volume_size(self) -> int | None:
        return self._detail.volume_size

    @property
    def path(self) -> str:
        """Path of this instance relative to the service endpoint."""
        return f"/instances/{escape(self._id)}"

    def refresh(self) -> InstanceDetail:
        """Re-read the instance record from the API."""
        data = self._connection.api_request("GET", self.path, key="instance")
        self._detail = InstanceDetail.model_validate(data)
        if self._detail.id:
            self._id = self._detail.id
        return self._detail

    populate = refresh

    def list_databases(self) -> list[Database]:
        """List the databases hosted on this instance."""
        return self._connection.list_databases(self._id)

    databases = list_databases

    def list_users(self) -> list[DatabaseUser]:
        """List the user accounts on this instance."""
        return self._connection.list_users(self._id)

    users = list_users

    def destroy(self) -> bool:
        """Delete the instance. Only a 202 response counts as success.

        Raises:
            UnexpectedResponse: For any other status, including 200 and 204.
        """
        return self._connection.delete_instance(self._id)

    def update(self, body: dict[str, Any]) -> InstanceDetail:
        """PUT changes to the instance, then re-read it."""
        self._connection.api_request("PUT", self.path, body={"instance": body})
        return self.refresh()
