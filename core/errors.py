class SiteError(Exception):
    """站点业务异常基类"""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(SiteError):
    """必填字段为空或取值不在枚举内，对应 400"""

    def __init__(self, message: str = "", field: str = ""):
        super().__init__(message)
        self.field = field


class NotFoundError(SiteError):
    """引用了不存在的 id，对应 404"""


class PersistenceError(SiteError):
    """持久化读写失败；只记录日志，不回传给触发它的请求"""

    def __init__(self, message: str = "", blob: str = ""):
        super().__init__(message)
        self.blob = blob


class NotificationError(SiteError):
    """旁路通知失败；总是被吞掉"""
