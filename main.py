import argparse

import uvicorn

from core.config import cfg
from core.events import log_event, E
from core.log import get_logger, setup_logging


def parse_args():
    parser = argparse.ArgumentParser(description="RENNSZ 粉丝站后端")
    parser.add_argument("--config", default=None, help="配置文件路径，默认读取 CONFIG_PATH 或 config.yaml")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--reload", action="store_true", help="开发模式自动重载")
    return parser.parse_args()


def main():
    args = parse_args()
    if args.config:
        cfg.load(args.config)
    setup_logging()
    logger = get_logger(__name__)
    log_event(logger, E.SYSTEM_CONFIG_LOAD, path=cfg.config_path, backend=cfg.get("storage.backend", "file"))

    host = args.host or str(cfg.get("server.host", "0.0.0.0"))
    port = args.port or int(cfg.get("server.port", 5000))
    # 导入 web 时才构造 SiteStorage，须在配置加载之后
    uvicorn.run("web:app", host=host, port=port, reload=args.reload, log_config=None)


if __name__ == "__main__":
    main()
