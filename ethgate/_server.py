import logging
from collections.abc import Awaitable, Callable
from http import HTTPStatus
from typing import Any, cast

import anyio
import trio
from hypercorn.config import Config
from hypercorn.trio import serve
from hypercorn.typing import ASGIFramework
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Mount, Route
from trio_typing import TaskStatus

from ._contract_abi import ABI_JSON
from ._errors import ABIParseError, ChainError, ContractNotFound, ConversionError, InvalidParam
from ._invoker import ContractInvoker, DeployRequest, InvokeRequest

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 60

Handler = Callable[[Request, ContractInvoker], Awaitable[ABI_JSON]]


def result_info(status: HTTPStatus, data: Any) -> JSONResponse:
    """Wraps the payload in the ``{code, msg, data}`` envelope."""
    return JSONResponse(
        {"code": status.value, "msg": status.phrase, "data": data}, status_code=status
    )


async def json_body(request: Request) -> ABI_JSON:
    try:
        return cast(ABI_JSON, await request.json())
    except ValueError as exc:
        raise InvalidParam(f"request body is not valid JSON: {exc}") from exc


def endpoint(handler: Handler) -> Callable[[Request], Awaitable[Response]]:
    """
    Turns a handler into a Starlette endpoint: applies the request timeout
    and translates the gateway errors into HTTP statuses.
    """

    async def wrapped(request: Request) -> Response:
        invoker = request.app.state.invoker
        try:
            with anyio.fail_after(request.app.state.request_timeout):
                data = await handler(request, invoker)
        except TimeoutError:
            return result_info(HTTPStatus.REQUEST_TIMEOUT, "request timed out")
        except (InvalidParam, ABIParseError, ConversionError) as exc:
            return result_info(HTTPStatus.BAD_REQUEST, str(exc))
        except ContractNotFound as exc:
            return result_info(HTTPStatus.NOT_FOUND, str(exc))
        except ChainError as exc:
            logger.warning("%s %s: %s", request.method, request.url.path, exc)
            return result_info(HTTPStatus.INTERNAL_SERVER_ERROR, str(exc))
        except Exception as exc:  # noqa: BLE001
            # A catch-all for any unexpected errors
            logger.exception("Unhandled error in %s %s", request.method, request.url.path)
            return result_info(
                HTTPStatus.INTERNAL_SERVER_ERROR, f"Unhandled internal error: {exc}"
            )

        return result_info(HTTPStatus.OK, data)

    return wrapped


async def eth_accounts(_request: Request, invoker: ContractInvoker) -> ABI_JSON:
    return [str(account) for account in await invoker.accounts()]


async def eth_balance(request: Request, invoker: ContractInvoker) -> ABI_JSON:
    return str(await invoker.balance(request.path_params["account"]))


async def deploy_contract(request: Request, invoker: ContractInvoker) -> ABI_JSON:
    deploy_request = DeployRequest.from_json(await json_body(request))
    return str(await invoker.deploy(deploy_request))


async def call_contract(request: Request, invoker: ContractInvoker) -> ABI_JSON:
    invoke_request = InvokeRequest.from_json(await json_body(request))
    return str(await invoker.call(invoke_request))


async def query_contract(request: Request, invoker: ContractInvoker) -> ABI_JSON:
    invoke_request = InvokeRequest.from_json(await json_body(request))
    return await invoker.query(invoke_request)


async def hello(_request: Request) -> Response:
    return PlainTextResponse("Hello, World!")


def make_app(
    invoker: ContractInvoker, *, request_timeout: float = DEFAULT_REQUEST_TIMEOUT
) -> ASGIFramework:
    """Creates and returns an ASGI app."""
    eth_routes = [
        Route("/accounts", endpoint(eth_accounts), methods=["GET"]),
        Route("/balance/{account}", endpoint(eth_balance), methods=["GET"]),
        Route("/contract/deploy", endpoint(deploy_contract), methods=["POST"]),
        Route("/contract/call", endpoint(call_contract), methods=["POST"]),
        Route("/contract/query", endpoint(query_contract), methods=["POST"]),
    ]
    routes = [
        Route("/", hello, methods=["GET"]),
        Mount("/eth", routes=eth_routes),
    ]

    app = Starlette(routes=routes)
    app.state.invoker = invoker
    app.state.request_timeout = request_timeout

    # We don't have a typing package shared between Starlette and Hypercorn,
    # so this will have to do
    return cast(ASGIFramework, app)


class GatewayServer:
    """Serves the contract gateway over HTTP."""

    def __init__(
        self,
        invoker: ContractInvoker,
        host: str = "127.0.0.1",
        port: int = 8080,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        self._host = host
        self._port = port
        self._invoker = invoker
        self._request_timeout = request_timeout
        self._shutdown_event = trio.Event()
        self._shutdown_finished = trio.Event()

    @property
    def url(self) -> str:
        return f"http://{self._host}:{self._port}"

    async def __call__(self, *, task_status: TaskStatus[None] = trio.TASK_STATUS_IGNORED) -> None:
        """
        Starts the server in an external event loop.
        Useful for the cases when it needs to run in parallel with other servers or clients.

        Supports start-up reporting when invoked via `nursery.start()`.
        """
        config = Config()
        config.bind = [f"{self._host}:{self._port}"]
        config.worker_class = "trio"
        app = make_app(self._invoker, request_timeout=self._request_timeout)
        logger.info("Serving on %s", self.url)
        await serve(
            app, config, shutdown_trigger=self._shutdown_event.wait, task_status=task_status
        )
        self._shutdown_finished.set()

    async def shutdown(self) -> None:
        """Shuts down the server."""
        self._shutdown_event.set()
        await self._shutdown_finished.wait()
