"""
Загрузка и валидация конфигурации краулера WordScout.
Схема описана через Pydantic, файлы читаются из YAML или JSON.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, FrozenSet, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)

from word_scout.parser.text_extractor import DEFAULT_ALLOWED_TAGS


def default_concurrency() -> int:
    """Число CPU минус один слот под I/O, но не меньше одного."""
    return max(1, (os.cpu_count() or 1) - 1)


class CrawlerConfig(BaseModel):
    """Конфигурация одного запуска краулера."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    concurrency: int = Field(
        default_factory=default_concurrency, ge=1, description="Макс. число параллельных задач."
    )
    timeout: Optional[float] = Field(
        30.0, gt=0, description="Таймаут на один запрос (секунд); null отключает."
    )
    user_agent: str = Field("WordScoutBot/1.0", min_length=1, description="Заголовок User-Agent.")
    allowed_tags: FrozenSet[str] = Field(
        DEFAULT_ALLOWED_TAGS, description="Теги, текст после которых учитывается."
    )
    skip_cached: bool = Field(False, description="Не загружать URL, уже лежащие в хранилище.")
    top_words: int = Field(10, ge=1, description="Сколько слов показывать в отчёте на страницу.")

    @field_validator("allowed_tags", mode="after")
    def _normalize_tags(cls, v: FrozenSet[str]) -> FrozenSet[str]:
        tags = frozenset(t.strip().lower() for t in v if t.strip())
        if not tags:
            raise ValueError("allowed_tags must not be empty")
        return tags

    @field_serializer("allowed_tags")
    def _dump_tags(self, v: FrozenSet[str]) -> list[str]:
        return sorted(v)


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None] = None) -> CrawlerConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект CrawlerConfig.
    Без пути берёт configs/default.yaml, а если его нет, то значения по умолчанию.
    """
    if path is None:
        if not _DEFAULT_CFG.is_file():
            return CrawlerConfig()
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    return CrawlerConfig(**data)
