"""
主程序入口

启动并发任务：
1. 事件写入（默认每 1s）
2. 窗口均值聚合（默认每 20s）
3. REST API 服务（可选）
"""

import asyncio
import logging
import sys
from datetime import timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path

import uvicorn

from .config import AppConfig, get_config
from .database import get_store
from .aggregator import AverageAggregator
from .samplers import get_sampler
from .scheduler import Scheduler
from .store import TimeSeriesStore
from .writer import EventWriter


def setup_logging():
    """配置日志"""
    config = get_config()

    # 日志格式
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # 获取日志级别
    level = getattr(logging, config.logging.level.upper(), logging.INFO)

    # 配置根日志
    logging.basicConfig(
        level=level,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    # 如果配置了文件日志（按大小轮转）
    if config.logging.file:
        log_path = Path(config.logging.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            str(log_path),
            maxBytes=config.logging.max_size_mb * 1024 * 1024,
            backupCount=config.logging.backup_count,
            encoding="utf-8"
        )
        file_handler.setFormatter(logging.Formatter(log_format))
        logging.getLogger().addHandler(file_handler)

    # 降低第三方库日志级别
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def build_scheduler(config: AppConfig, store: TimeSeriesStore) -> Scheduler:
    """根据配置组装写入任务与聚合任务"""
    writer = EventWriter(
        store,
        config.writer.category,
        sampler=get_sampler(
            config.writer.sampler,
            config.writer.sample_min,
            config.writer.sample_max
        )
    )
    aggregator = AverageAggregator(
        store,
        config.aggregator.category,
        window=timedelta(seconds=config.aggregator.window_seconds),
        interval=timedelta(seconds=config.aggregator.interval),
        align_windows=config.aggregator.align_windows
    )

    scheduler = Scheduler()
    scheduler.add_task("event-writer", config.writer.interval, writer.tick)
    scheduler.add_task("average-aggregator", config.aggregator.interval, aggregator.tick)
    return scheduler


async def run_api_server():
    """运行 API 服务器"""
    from .api.app import create_app

    config = get_config()
    app = create_app()

    server_config = uvicorn.Config(
        app=app,
        host=config.api.host,
        port=config.api.port,
        log_level="info",
        access_log=False
    )
    server = uvicorn.Server(server_config)
    await server.serve()


async def main():
    """主函数：启动所有任务"""
    logger = logging.getLogger(__name__)

    # 设置日志
    setup_logging()
    logger.info("=" * 60)
    logger.info("Event Aggregator v1.0.0")
    logger.info("=" * 60)

    # 加载配置
    config = get_config()
    logger.info(
        f"Writer: category='{config.writer.category}' every {config.writer.interval}s "
        f"(sampler={config.writer.sampler})"
    )
    logger.info(
        f"Aggregator: category='{config.aggregator.category}' every {config.aggregator.interval}s, "
        f"window={config.aggregator.window_seconds}s, aligned={config.aggregator.align_windows}"
    )

    store = get_store()
    logger.info(f"Store backend: {config.database.backend}")
    scheduler = build_scheduler(config, store)

    coros = [scheduler.run()]
    if config.api.enabled:
        logger.info(f"API: {config.api.host}:{config.api.port}")
        coros.append(run_api_server())

    try:
        await asyncio.gather(*coros)
    except asyncio.CancelledError:
        logger.info("Tasks cancelled, shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        raise


def cli():
    """命令行入口"""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutdown requested, exiting...")
        sys.exit(0)


if __name__ == "__main__":
    cli()
