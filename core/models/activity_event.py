from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class ActivityEvent:
    """一次成功变更后交给通知旁路的事件描述"""

    message: str
    level: str = "info"
    source: str = "system"
    # 可选的 Discord embed，缺省时按 level 生成
    embed: Optional[Dict[str, Any]] = None
