"""Public entry point of the Cloud Databases client.

A :class:`Connection` logs in on construction and exposes the instance
operations. All requests go through a :class:`RequestDispatcher`, which
refreshes the token transparently when it expires::

    db = Connection(username="me", api_key="KEY", region="dfw")
    for summary in db.list_instances():
        print(summary.id, summary.status)
"""

import json
from collections.abc import Callable
from typing import Any

import structlog

from .auth import AUTH_USA, Authenticator, require_credentials
from .config import SERVICENET_ENV_VAR, VERBOSE_ENV_VAR, ClientConfig, env_flag
from .dispatcher import DEFAULT_MAX_AUTH_RETRIES, RequestDispatcher
from .exceptions import AuthenticationFailed, MissingArgument, UnexpectedResponse
from .instance import Instance
from .session import Region, ServiceEndpoint, SessionState
from .transport import DEFAULT_TIMEOUT, HttpxTransport, Transport
from .types import Database, DatabaseUser, InstanceDetail, InstanceSummary
from .utils import escape, is_success, paginate, with_query

logger = structlog.get_logger(__name__)

DELETE_ACCEPTED = 202


class Connection:
    """Authenticated session against the Cloud Databases API.

    Can be used as a context manager for automatic cleanup.
    """

    def __init__(
        self,
        username: str | None = None,
        api_key: str | None = None,
        region: Region | str | None = None,
        auth_url: str = AUTH_USA,
        retry_auth: bool = True,
        *,
        max_auth_retries: int = DEFAULT_MAX_AUTH_RETRIES,
        account: str | None = None,
        servicenet: bool | None = None,
        verbose: bool | None = None,
        uppercase_names: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Transport | None = None,
    ):
        """Validate credentials and log in.

        Args:
            username: Cloud account username (required).
            api_key: Cloud account API key (required).
            region: Datacenter hosting the instances: dfw, ord or lon (required).
            auth_url: Identity service URL (default: AUTH_USA).
            retry_auth: Re-authenticate when the token expires (default: True).
            max_auth_retries: Re-authentications allowed per request.
            account: Account scope; switches the token header to X-Storage-Token.
            servicenet: Use the internal service network host. Defaults to
                the RACKSPACE_SERVICENET environment variable.
            verbose: Log request and response bodies. Defaults to the
                DATABASES_VERBOSE environment variable.
            uppercase_names: Upper-case instance names on creation.
            timeout: HTTP timeout in seconds, used by the default transport.
            transport: Transport to send requests through; defaults to
                an httpx-backed one.

        Raises:
            ConfigurationError: If username, api_key or region is missing.
            AuthenticationFailed: If the login is rejected.
        """
        self.session = SessionState(
            username=username,
            api_key=api_key,
            region=region,
            auth_url=auth_url or AUTH_USA,
            retry_auth=retry_auth,
            account=account,
            servicenet=env_flag(SERVICENET_ENV_VAR) if servicenet is None else servicenet,
        )
        require_credentials(self.session)

        self.uppercase_names = uppercase_names
        self._transport = transport or HttpxTransport(timeout=timeout)
        self._authenticator = Authenticator(self._transport)
        self.dispatcher = RequestDispatcher(
            session=self.session,
            authenticator=self._authenticator,
            transport=self._transport,
            max_auth_retries=max_auth_retries,
            verbose=env_flag(VERBOSE_ENV_VAR) if verbose is None else verbose,
        )
        self._authenticator.authenticate(self.session)

    @classmethod
    def from_config(cls, config: ClientConfig, transport: Transport | None = None) -> "Connection":
        """Create a connection from validated configuration."""
        return cls(
            username=config.username,
            api_key=config.api_key,
            region=config.region,
            auth_url=config.auth_url,
            retry_auth=config.retry_auth,
            max_auth_retries=config.max_auth_retries,
            account=config.account,
            servicenet=config.servicenet,
            verbose=config.verbose,
            uppercase_names=config.uppercase_names,
            timeout=config.timeout,
            transport=transport,
        )

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager and cleanup resources."""
        self.close()

    def close(self):
        """Close the underlying transport."""
        self._transport.close()

    @property
    def authenticated(self) -> bool:
        return self.session.authenticated

    @property
    def endpoint(self) -> ServiceEndpoint:
        endpoint = self.session.endpoint
        if endpoint is None:
            msg = "Connection has no service endpoint; authenticate first"
            raise AuthenticationFailed(msg)
        return endpoint

    def api_request(
        self,
        method: str,
        path: str,
        body: Any = None,
        expected_status: int | Callable[[int], bool] = is_success,
        key: str | None = None,
    ) -> Any:
        """Send a request to the service endpoint and decode the JSON reply.

        Args:
            method: HTTP method.
            path: Path relative to the service endpoint, with query string.
            body: JSON-serializable request body.
            expected_status: Accepted status code, or a predicate on it
                (default: any 20x).
            key: Top-level key wrapping the payload (e.g. "instance").

        Returns:
            The payload under ``key``, or the whole decoded JSON object when
            no key is given. An empty body decodes to an empty dict.

        Raises:
            UnexpectedResponse: If the status is not accepted, or an accepted
                response is not a JSON object or lacks ``key``.
        """
        endpoint = self.endpoint
        data = json.dumps(body) if body is not None else None
        response = self.dispatcher.dispatch(
            method,
            endpoint.host,
            f"{endpoint.path}{path}",
            endpoint.port,
            endpoint.scheme,
            body=data,
        )

        accepted = (
            expected_status(response.status_code)
            if callable(expected_status)
            else response.status_code == expected_status
        )
        decoded = self._decode(response.content)
        if not accepted:
            logger.error(
                "Unexpected API response",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise UnexpectedResponse.from_fault(response.status_code, response.content, decoded)
        if not isinstance(decoded, dict):
            raise UnexpectedResponse(
                response.status_code,
                response.content,
                details="response body is not a JSON object",
            )
        if key is None:
            return decoded
        if key not in decoded:
            raise UnexpectedResponse(
                response.status_code,
                response.content,
                details=f"response has no {key!r} object",
            )
        return decoded[key]

    @staticmethod
    def _decode(content: bytes) -> Any:
        if not content:
            return {}
        try:
            return json.loads(content)
        except ValueError:
            return None

    def list_instances(
        self,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[InstanceSummary]:
        """List the database instances on the account.

        Args:
            limit: Maximum number of instances to return.
            offset: Number of instances to skip.
        """
        path = with_query("/instances", paginate(limit=limit, offset=offset))
        instances = self.api_request("GET", path, key="instances")
        return [InstanceSummary.model_validate(i) for i in instances]

    instances = list_instances

    def get_instance(self, instance_id: str) -> Instance:
        """Fetch an instance by id."""
        return Instance(self, instance_id)

    instance = get_instance

    def create_instance(
        self,
        flavor_ref: str | None = None,
        size: int | None = None,
        name: str | None = None,
        **extra: Any,
    ) -> Instance:
        """Create a new database instance.

        Args:
            flavor_ref: Flavor href from the flavor listing (required).
            size: Volume size in GB (required).
            name: Instance name, at most 128 characters.
            **extra: Further instance attributes, sent as given.

        Raises:
            MissingArgument: If flavor_ref or size is missing; nothing is sent.
        """
        if not flavor_ref:
            raise MissingArgument("flavor_ref")
        if size is None:
            raise MissingArgument("size")

        body: dict[str, Any] = {"flavorRef": flavor_ref, "volume": {"size": size}}
        if name is not None:
            body["name"] = name.upper() if self.uppercase_names else name
        body.update(extra)

        data = self.api_request("POST", "/instances", body={"instance": body}, key="instance")
        detail = InstanceDetail.model_validate(data)
        logger.info("Instance created", instance_id=detail.id, status=detail.status)
        return Instance(self, detail.id, detail=detail)

    def list_databases(self, instance_id: str) -> list[Database]:
        """List the databases on an instance without fetching the instance."""
        databases = self.api_request(
            "GET",
            f"/instances/{escape(instance_id)}/databases",
            key="databases",
        )
        return [Database.model_validate(d) for d in databases]

    def list_users(self, instance_id: str) -> list[DatabaseUser]:
        """List the users on an instance without fetching the instance."""
        users = self.api_request("GET", f"/instances/{escape(instance_id)}/users", key="users")
        return [DatabaseUser.model_validate(u) for u in users]

    def delete_instance(self, instance_id: str) -> bool:
        """Delete an instance by id; only a 202 response counts as success."""
        self.api_request(
            "DELETE",
            f"/instances/{escape(instance_id)}",
            expected_status=DELETE_ACCEPTED,
        )
        logger.info("Instance deleted", instance_id=instance_id)
        return True
