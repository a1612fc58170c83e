"""
Guest Order Service — 外部サービスゲートウェイ

  ┌───────────────┐     ┌──────────────────┐
  │ Guest Order   │────▶│ Catalog Service  │  公開中の商品・バリアント
  │ Service       │────▶│ Organization Svc │  組織
  └───────────────┘     └──────────────────┘

httpx.AsyncClient はコンポジションルート(main.py の lifespan)が生成し、
各ゲートウェイに注入する。404 は None として返し、それ以外の HTTP エラーは
そのまま送出する(リトライしない)。
"""

import logging

import httpx

logger = logging.getLogger(__name__)


class CatalogGateway:
    """Catalog Service クライアント"""

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def get_available_products(
        self,
        filter_expression: str,
        top: int,
        expand: str = "variants",
    ) -> list[dict]:
        """
        公開中(status=ACTIVE かつ公開期間内)の商品をフィルタ付きで取得する。
        レスポンスは {"value": [...]} 形式。
        """
        resp = await self.client.get(
            f"{self.base_url}/products/available",
            params={"$expand": expand, "$filter": filter_expression, "$top": top},
        )
        resp.raise_for_status()
        return resp.json().get("value", [])

    async def get_one_product(
        self, product_id: str, expand: str = "variants"
    ) -> dict | None:
        resp = await self.client.get(
            f"{self.base_url}/products/{product_id}",
            params={"$expand": expand},
        )
        if resp.status_code == 404:
            logger.info("Product not found in catalog: %s", product_id)
            return None
        resp.raise_for_status()
        return resp.json()


class OrganizationGateway:
    """Organization Service クライアント"""

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def get_organization_by_id(self, organization_id: str) -> dict | None:
        resp = await self.client.get(
            f"{self.base_url}/organizations/{organization_id}"
        )
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()
