# 数据库模型
from .storage_blob import StorageBlob
# 内存记录
from .announcement import Announcement, CATEGORIES
from .system_log import SystemLog
from .base import Base
