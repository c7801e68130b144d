"""Command line entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from pathlib import Path

from .app import WikiMonitorApp
from .errors import ConfigError


def main() -> None:
    parser = argparse.ArgumentParser(description="Relay wiki activity to chat webhooks")
    parser.add_argument(
        "--config",
        default=os.getenv("WIKI_MONITOR_CONFIG", "config.json"),
        help="Путь к JSON конфигурации. Можно передать через WIKI_MONITOR_CONFIG",
    )
    parser.add_argument("--db-path", default="wiki-monitor.db", help="Путь к файлу хранилища")
    parser.add_argument("--log-level", default="INFO", help="Уровень логирования")
    args = parser.parse_args()

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config_path = Path(args.config)
    if not config_path.is_file():
        parser.error(f"Файл конфигурации {config_path} не найден")

    app = WikiMonitorApp(config_path=config_path, db_path=Path(args.db_path))
    try:
        asyncio.run(app.run())
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Остановка по запросу пользователя")
    except ConfigError as exc:
        logging.getLogger(__name__).error("Ошибка конфигурации: %s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
