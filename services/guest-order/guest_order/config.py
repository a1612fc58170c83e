"""
Guest Order Service — 設定

アダプタのオプションはコンストラクタ(create_app)に渡す。
環境変数からの読み込みは from_env() だけが行う。
"""

import json
import os
from typing import Literal

from pydantic import BaseModel, Field


class CustomField(BaseModel):
    """注文のカスタムフィールド定義"""

    name: str
    type: Literal["string", "number", "boolean", "date", "json"] = "string"
    required: bool = False


class CustomFieldConfiguration(BaseModel):
    order: list[CustomField] = Field(default_factory=list)


class PaginationConfiguration(BaseModel):
    default_offset: int = 0
    default_page_size: int = 20
    max_page_size: int = 1000


class ServiceEndpoints(BaseModel):
    # リンク表示用。ロジックでは使わない。
    guest_order: str = ""


class GuestOrderAdapterOptions(BaseModel):
    auth_enc_secret: str = ""
    auth_sign_secret: str = ""
    custom_fields: CustomFieldConfiguration = Field(
        default_factory=CustomFieldConfiguration
    )
    pagination_configuration: PaginationConfiguration = Field(
        default_factory=PaginationConfiguration
    )
    service_endpoints: ServiceEndpoints = Field(default_factory=ServiceEndpoints)


class ServiceUrls(BaseModel):
    """依存サービスの接続先"""

    database_url: str
    catalog_service_url: str
    organization_service_url: str
    redis_url: str = "redis://localhost:6379"


def options_from_env() -> GuestOrderAdapterOptions:
    pagination = PaginationConfiguration()
    return GuestOrderAdapterOptions(
        auth_enc_secret=os.environ.get("AUTH_ENC_SECRET", ""),
        auth_sign_secret=os.environ.get("AUTH_SIGN_SECRET", ""),
        custom_fields=CustomFieldConfiguration(
            order=json.loads(os.environ.get("ORDER_CUSTOM_FIELDS", "[]"))
        ),
        pagination_configuration=PaginationConfiguration(
            default_offset=int(
                os.environ.get("DEFAULT_OFFSET", pagination.default_offset)
            ),
            default_page_size=int(
                os.environ.get("DEFAULT_PAGE_SIZE", pagination.default_page_size)
            ),
            max_page_size=int(
                os.environ.get("MAX_PAGE_SIZE", pagination.max_page_size)
            ),
        ),
        service_endpoints=ServiceEndpoints(
            guest_order=os.environ.get("GUEST_ORDER_SERVICE_URL", "")
        ),
    )


def service_urls_from_env() -> ServiceUrls:
    return ServiceUrls(
        database_url=os.environ["DATABASE_URL"],
        catalog_service_url=os.environ["CATALOG_SERVICE_URL"],
        organization_service_url=os.environ["ORGANIZATION_SERVICE_URL"],
        redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379"),
    )
