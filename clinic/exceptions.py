"""
统一异常体系。

所有业务异常继承 BaseAppException，包含：
- type:        错误类型标识（validation_error / block / ingestion_error / ...）
- code:        业务错误码（JSON_RECOVERY_FAILURE / DISPENSING_ALREADY_RECORDED / ...）
- message:     人类可读的描述
- detail:      可选的附加信息（dict / list / None）
- http_status: HTTP 状态码

View 层只需 raise，exception_handler 统一捕获并格式化响应。

Ingestion 阶段（envelope → JSON recovery → field parser）的错误是 all-or-nothing：
任何一个抛出，整个诊断都不落库。
Dispensing 阶段的错误按条目收集，不中断整批。
"""


class BaseAppException(Exception):
    """所有业务异常的基类。"""

    type = 'error'
    code = 'UNKNOWN_ERROR'
    http_status = 500

    def __init__(self, message, code=None, detail=None, http_status=None):
        self.message = message
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status
        self.detail = detail
        super().__init__(message)

    def to_dict(self):
        body = {
            'type': self.type,
            'code': self.code,
            'message': self.message,
        }
        if self.detail is not None:
            body['detail'] = self.detail
        return body


class ValidationError(BaseAppException):
    """输入验证失败。400。"""

    type = 'validation_error'
    code = 'VALIDATION_ERROR'
    http_status = 400


class BlockError(BaseAppException):
    """业务规则阻止操作。service 层抛出，409。"""

    type = 'block'
    code = 'BUSINESS_BLOCK'
    http_status = 409


# ── Ingestion（provider 返回 → canonical diagnosis）─────────────────────────

class IngestionError(BaseAppException):
    """provider 返回的内容无法变成 canonical diagnosis。502：上游给了坏数据。"""

    type = 'ingestion_error'
    code = 'INGESTION_ERROR'
    http_status = 502


class TransportFormatError(IngestionError):
    """envelope 形状不认识（不是 text / list / 直接诊断对象）。"""

    code = 'TRANSPORT_FORMAT_ERROR'


class JsonRecoveryFailure(IngestionError):
    """
    抽取 + 修复之后仍然不是合法 JSON。

    detail['text'] 只保留截断后的原文，方便写日志。
    """

    code = 'JSON_RECOVERY_FAILURE'


class MissingRequiredField(IngestionError):
    """解析出的 JSON 没有 primary_diagnosis。"""

    code = 'MISSING_REQUIRED_FIELD'


# ── Reconciliation / dispensing ──────────────────────────────────────────

class MatchNotFound(BaseAppException):
    """
    处方药在库存里找不到对应记录。

    不会被 raise：unmatched 也照样生成一条 DispensingRecord，
    这个异常只用来生成 batch 结果里的 warning 条目。
    """

    type = 'warning'
    code = 'MATCH_NOT_FOUND'
    http_status = 200


class PersistenceError(BaseAppException):
    """持久层写入失败。批量操作中按条目上报，不中断整批。"""

    type = 'persistence_error'
    code = 'PERSISTENCE_ERROR'
    http_status = 500
