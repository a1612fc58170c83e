"""
Guest Order Service — FastAPI エントリーポイント

未認証の顧客が組織のカタログに対して行う「ゲスト注文」の作成・取得・一覧。

  POST /orgs/{org_id}/guest/orders              注文作成 (201)
  GET  /orgs/{org_id}/guest/orders/{order_id}   注文取得 (200)
  GET  /orgs/{org_id}/guest/orders              組織の注文一覧 (200)

  ┌──────────┐     ┌───────────────┐     ┌──────────────────┐
  │  Client  │────▶│ Guest Order   │────▶│ Catalog Service  │
  │          │     │ Service       │────▶│ Organization Svc │
  └──────────┘     └──────┬────────┘     └──────────────────┘
                          │
                   ┌──────▼──────┐   ┌─────────────────────┐
                   │ guest_orders│   │ Redis Pub/Sub       │
                   │ (DB)        │   │ guest_order_events  │
                   └─────────────┘   └─────────────────────┘

事前条件(組織の存在・注文の所属・バリアントの所属)は Depends で
ハンドラの前に実行する。接続はすべて create_app が保持し、各コンポーネントに
注入する。
"""

import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from . import commands, queries, validators
from .config import (
    GuestOrderAdapterOptions,
    ServiceUrls,
    options_from_env,
    service_urls_from_env,
)
from .custom_fields import validate_custom_fields
from .errors import ErrorCode, GuestOrderError
from .gateways import CatalogGateway, OrganizationGateway
from .models import CreateGuestOrderRequest
from .store import GuestOrderStore

logger = logging.getLogger(__name__)


@dataclass
class GuestOrderDependencies:
    store: GuestOrderStore
    catalog_api: CatalogGateway
    organization_api: OrganizationGateway
    redis: aioredis.Redis


def get_dependencies(request: Request) -> GuestOrderDependencies:
    return request.app.state.dependencies


def get_options(request: Request) -> GuestOrderAdapterOptions:
    return request.app.state.options


# ── Validators (Depends) ─────────────────────────


async def check_organization_exists(
    org_id: str,
    deps: GuestOrderDependencies = Depends(get_dependencies),
) -> dict:
    return await validators.organization_exists(deps.organization_api, org_id)


async def check_guest_order_belongs_to_organization(
    org_id: str,
    order_id: str,
    deps: GuestOrderDependencies = Depends(get_dependencies),
) -> None:
    await validators.guest_order_belongs_to_organization(
        deps.store, deps.organization_api, org_id, order_id
    )


async def validated_create_body(
    org_id: str,
    body: CreateGuestOrderRequest,
    _organization: dict = Depends(check_organization_exists),
    deps: GuestOrderDependencies = Depends(get_dependencies),
    options: GuestOrderAdapterOptions = Depends(get_options),
) -> CreateGuestOrderRequest:
    """組織の存在 → カスタムフィールド → バリアントの所属 の順に検証する。"""
    validate_custom_fields(body.custom_fields, options.custom_fields.order)
    await validators.product_contains_variant(deps.catalog_api, org_id, body.items)
    return body


# ── Routes ───────────────────────────────────────

router = APIRouter()


@router.post("/orgs/{org_id}/guest/orders", status_code=201)
async def create_guest_order(
    org_id: str,
    body: CreateGuestOrderRequest = Depends(validated_create_body),
    expand: str = Query("", alias="$expand"),
    deps: GuestOrderDependencies = Depends(get_dependencies),
    options: GuestOrderAdapterOptions = Depends(get_options),
):
    """ゲスト注文作成"""
    return await commands.create_guest_order(
        deps.store,
        deps.catalog_api,
        deps.organization_api,
        deps.redis,
        options.custom_fields.order,
        org_id,
        body,
        expand,
    )


@router.get(
    "/orgs/{org_id}/guest/orders/{order_id}",
    dependencies=[Depends(check_guest_order_belongs_to_organization)],
)
async def get_guest_order(
    org_id: str,
    order_id: str,
    expand: str = Query("", alias="$expand"),
    deps: GuestOrderDependencies = Depends(get_dependencies),
    options: GuestOrderAdapterOptions = Depends(get_options),
):
    """ゲスト注文取得"""
    return await queries.get_guest_order(
        deps.store,
        deps.catalog_api,
        deps.organization_api,
        options.custom_fields.order,
        org_id,
        order_id,
        expand,
    )


@router.get(
    "/orgs/{org_id}/guest/orders",
    dependencies=[Depends(check_organization_exists)],
)
async def list_guest_orders_for_organization(
    org_id: str,
    request: Request,
    deps: GuestOrderDependencies = Depends(get_dependencies),
    options: GuestOrderAdapterOptions = Depends(get_options),
):
    """組織のゲスト注文一覧"""
    host = request.headers.get("host") or request.url.netloc
    return await queries.list_guest_orders_for_organization(
        deps.store,
        deps.catalog_api,
        deps.organization_api,
        options.custom_fields.order,
        options.pagination_configuration,
        org_id,
        dict(request.query_params),
        f"{request.url.scheme}://{host}{request.url.path}",
    )


@router.get("/health")
async def health():
    return {"status": "ok", "service": "guest-order-service"}


# ── Exception Handlers ───────────────────────────


def _error_response(status_code: int, code: ErrorCode, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code.value, "message": message}},
    )


async def handle_guest_order_error(request: Request, exc: GuestOrderError):
    logger.info("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


async def handle_validation_error(request: Request, exc: RequestValidationError):
    message = "; ".join(
        f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    return _error_response(400, ErrorCode.WRONG_PARAMETER, message)


async def handle_upstream_error(request: Request, exc: httpx.HTTPError):
    logger.exception("Upstream service call failed")
    return _error_response(
        502, ErrorCode.SERVICE_UNAVAILABLE, "upstream service request failed"
    )


async def handle_persistence_error(request: Request, exc: SQLAlchemyError):
    logger.exception("Guest order store failed")
    return _error_response(
        500, ErrorCode.INTERNAL_SERVER_ERROR, "guest order store operation failed"
    )


# ── Composition Root ─────────────────────────────


def create_app(
    options: GuestOrderAdapterOptions,
    dependencies: GuestOrderDependencies | None = None,
    service_urls: ServiceUrls | None = None,
) -> FastAPI:
    """
    dependencies を渡せばそれを使う(テスト・ホストアプリからの組み込み用)。
    渡さなければ lifespan で service_urls から DB・HTTP・Redis 接続を開く。
    """
    if dependencies is None and service_urls is None:
        raise ValueError("either dependencies or service_urls is required")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if dependencies is not None:
            yield
            return

        engine = create_async_engine(service_urls.database_url, echo=False)
        async_session = sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )
        http_client = httpx.AsyncClient(timeout=10.0)
        redis_pool = aioredis.from_url(service_urls.redis_url, decode_responses=True)

        store = GuestOrderStore(async_session)
        await store.create_schema()
        app.state.dependencies = GuestOrderDependencies(
            store=store,
            catalog_api=CatalogGateway(http_client, service_urls.catalog_service_url),
            organization_api=OrganizationGateway(
                http_client, service_urls.organization_service_url
            ),
            redis=redis_pool,
        )
        logger.info("Guest order service started")
        yield
        await redis_pool.aclose()
        await http_client.aclose()
        await engine.dispose()

    app = FastAPI(title="Guest Order Service", lifespan=lifespan)
    app.state.options = options
    if dependencies is not None:
        app.state.dependencies = dependencies

    app.include_router(router)
    app.add_exception_handler(GuestOrderError, handle_guest_order_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(httpx.HTTPError, handle_upstream_error)
    app.add_exception_handler(SQLAlchemyError, handle_persistence_error)
    return app


def create_app_from_env() -> FastAPI:
    """uvicorn guest_order.main:create_app_from_env --factory"""
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    return create_app(options_from_env(), service_urls=service_urls_from_env())
