"""
Guest Order Service — エラー定義

すべての失敗は GuestOrderError として送出し、ハンドラ境界(main.py の
exception handler)で {"error": {"code", "message"}} に変換する。
ローカルでのリカバリやリトライは行わない。
"""

from enum import Enum


class ErrorCode(str, Enum):
    NOT_FOUND = "notFound"
    NO_PERMISSION = "noPermission"
    WRONG_PARAMETER = "wrongParameter"
    INTERNAL_SERVER_ERROR = "internalServerError"
    SERVICE_UNAVAILABLE = "serviceUnavailable"


class GuestOrderError(Exception):
    """機械可読なコード・HTTP ステータス・メッセージを持つエラー"""

    code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR
    http_status: int = 500

    def __init__(self, message: str, http_status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if http_status is not None:
            self.http_status = http_status

    def to_dict(self) -> dict:
        return {"error": {"code": self.code.value, "message": self.message}}


class NotFoundError(GuestOrderError):
    code = ErrorCode.NOT_FOUND
    http_status = 404


class NoPermissionError(GuestOrderError):
    code = ErrorCode.NO_PERMISSION
    http_status = 403


class WrongParameterError(GuestOrderError):
    code = ErrorCode.WRONG_PARAMETER
    http_status = 400


class InternalServerError(GuestOrderError):
    code = ErrorCode.INTERNAL_SERVER_ERROR
    http_status = 500


def item_not_found(product_id: str, variant_id: str | None = None) -> NotFoundError:
    """
    カタログに存在しない明細用の NotFound (HTTP 400)。

    variant_id を省略すると「商品自体が組織のカタログに無い」ケースの
    メッセージになる。
    """
    if variant_id is None:
        message = (
            f"Could not find item productId={product_id}: "
            "Ensure the product exists in the organization and is published "
            "(status=ACTIVE & since/until include current date)"
        )
    else:
        message = (
            f"Could not find item productId={product_id} variantId={variant_id}: "
            "Ensure the product and variant exist and are published "
            "(status=ACTIVE & since/until include current date)"
        )
    return NotFoundError(message, http_status=400)
