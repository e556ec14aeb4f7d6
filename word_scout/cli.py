# === FILE: word_scout/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска WordScout через командную строку.

Команды:
  crawl     Обойти URL, посчитать слова и вывести/сохранить результат
  config    Показать текущую конфигурацию

Общие опции:
  --config PATH        Путь к YAML/JSON-конфигу (default: configs/default.yaml, если есть)
  --concurrency INT    Макс. число параллельных загрузок (override concurrency)
  --log-level LEVEL    Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH      Файл для логов (stderr, если не указан)
  --log-format FORMAT  Формат логирования

Команда crawl опции:
  --urls-file PATH     Файл со списком URL (по одному на строку)
  --unique             Убрать повторяющиеся URL
  --json PATH          Сохранить JSON-отчёт в файл
  --html PATH          Сохранить HTML-отчёт в файл
  --template DIR       Папка с Jinja2-шаблонами
  --pretty             Преформатировать JSON-вывод (отступ 2)
  --scan-timeout SEC   Таймаут всего обхода (секунд)

Пример:
  word_scout crawl https://www.python.org https://www.djangoproject.com --pretty
"""
import asyncio
import json
import sys
from pathlib import Path

import click

from word_scout import __version__
from word_scout.config import load_config
from word_scout.engine import Engine
from word_scout.logger import init_logging, logger
from word_scout.report.html_report import render_html
from word_scout.report.json_report import render_json
from word_scout.utils import is_http_url, read_url_list, remove_duplicates

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='WordScout, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--concurrency', '-n', 'concurrency',
    type=click.IntRange(min=1),
    default=None,
    help='Макс. число параллельных загрузок (override concurrency)'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stderr, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, concurrency, log_level, log_file, log_format):
    """Группа команд WordScout CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    if concurrency is not None:
        cfg = cfg.model_copy(update={'concurrency': concurrency})
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


def _collect_urls(urls, urls_file, unique):
    collected = list(urls)
    if urls_file is not None:
        collected.extend(read_url_list(urls_file))
    valid = []
    for url in collected:
        if is_http_url(url):
            valid.append(url)
        else:
            logger.warning("Skipping invalid URL: %s", url)
    return remove_duplicates(valid) if unique else valid


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.argument('urls', nargs=-1)
@click.option(
    '--urls-file', '-f', 'urls_file',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Файл со списком URL'
)
@click.option(
    '--unique', is_flag=True,
    help='Убрать повторяющиеся URL'
)
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить JSON-отчёт в файл'
)
@click.option(
    '--html', '-h', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить HTML-отчёт в файл'
)
@click.option(
    '--template', '-t', 'template_dir',
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help='Папка с Jinja2-шаблонами (по умолчанию встроенные)'
)
@click.option(
    '--pretty', is_flag=True,
    help='Преформатировать JSON-вывод (отступ 2)'
)
@click.option(
    '--scan-timeout', 'scan_timeout',
    type=float,
    default=None,
    help='Таймаут всего обхода (секунд)'
)
@click.pass_context
def crawl(ctx, urls, urls_file, unique, json_output, html_output, template_dir, pretty, scan_timeout):
    """Обойти URL и посчитать частоты слов."""
    cfg = ctx.obj['config']
    targets = _collect_urls(urls, urls_file, unique)
    if not targets:
        print_error('Не задано ни одного корректного URL')
    click.echo(f'Crawling {len(targets)} URL(s) with concurrency {cfg.concurrency}', err=True)
    try:
        report = Engine(cfg).start_crawl(targets, timeout=scan_timeout or None)
    except asyncio.TimeoutError:
        print_error(f'Обход не завершён за {scan_timeout} секунд')
    except Exception as e:
        print_error(f'Ошибка при обходе: {e}')

    # без файлов отчёта печатаем в stdout
    if not json_output and not html_output:
        indent = 2 if pretty else None
        click.echo(json.dumps(report.frequencies, ensure_ascii=False, indent=indent))
        return

    if json_output:
        try:
            saved_json = render_json(report, json_output)
            click.echo(f'JSON report: {saved_json}')
        except Exception as e:
            print_error(f'Ошибка при сохранении JSON: {e}')

    if html_output:
        try:
            saved_html = render_html(report, template_dir, html_output)
            click.echo(f'HTML report: {saved_html}')
        except Exception as e:
            print_error(f'Ошибка при сохранении HTML: {e}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
