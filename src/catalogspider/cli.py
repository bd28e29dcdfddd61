"""CLI 入口"""

from __future__ import annotations

import asyncio
import json
import threading
from pathlib import Path

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .common.browser import create_browser_session
from .common.config import config
from .common.exceptions import URLValidationError, ValidationError
from .common.logger import get_logger, set_log_level, setup_file_logging
from .common.types import (
    CategoryDeduplicationResult,
    CategoryRecord,
    FallbackExtractionResult,
    FilterDiscoveryResult,
    FilterExplorationResult,
)
from .common.utils.deadline import RunDeadline
from .common.validators import validate_url
from .dedup import CategoryDeduplicator, UrlCategoryDeduplicator, deduplication_stats
from .exploration import FilterDiscoveryEngine, FilterExplorationEngine, validate_candidates
from .navigation import RedundantExtractionDriver, extraction_stats
from .pipeline import run_pipeline

# 日志器
logger = get_logger(__name__)

app = typer.Typer(
    name="catalogspider",
    help="CatalogSpider CLI - 电商站点结构发现与调试工具",
    add_completion=False,
)
console = Console()


@app.callback()
def main_options(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出 DEBUG 级别日志"),
    log_file: str = typer.Option("", "--log-file", help="同时把日志写入该文件"),
):
    """全局日志选项"""
    if verbose:
        set_log_level("DEBUG")
    if log_file:
        setup_file_logging(log_file)


def run_async_safely(coro):
    """在 CLI 同步上下文中安全执行协程。"""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        # 没有运行中的事件循环，直接使用 asyncio.run
        return asyncio.run(coro)

    # 已有运行中的事件循环，需要在新线程中创建新的事件循环
    result_holder: dict[str, object] = {"result": None, "error": None}

    def _runner():
        loop = None
        try:
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            result_holder["result"] = loop.run_until_complete(coro)
        except KeyboardInterrupt:
            result_holder["error"] = KeyboardInterrupt("用户中断")
            if loop:
                pending = asyncio.all_tasks(loop)
                for task in pending:
                    task.cancel()
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        except Exception as exc:  # noqa: BLE001
            result_holder["error"] = exc
        finally:
            if loop:
                try:
                    loop.run_until_complete(loop.shutdown_asyncgens())
                    loop.run_until_complete(loop.shutdown_default_executor())
                except Exception as exc:  # noqa: BLE001
                    logger.debug(f"[CLI] 关闭事件循环失败: {exc}")
                finally:
                    loop.close()
            asyncio.set_event_loop(None)

    thread = threading.Thread(target=_runner, daemon=True)
    thread.start()
    thread.join()

    if result_holder["error"] is not None:
        raise result_holder["error"]  # type: ignore[misc]
    return result_holder["result"]


def _show_error(message: str, title: str = "执行错误") -> None:
    console.print(Panel(f"[red]{message}[/red]", title=title, style="red"))


def _validated_url(url: str) -> str:
    try:
        return validate_url(url)
    except (URLValidationError, ValidationError) as e:
        _show_error(str(e), "输入验证错误")
        raise typer.Exit(1)


def _write_json(path: str, payload: str) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(payload, encoding="utf-8")
    console.print(f"[dim]结果已保存: {target}[/dim]")


def _load_records(path: str) -> list[CategoryRecord]:
    file = Path(path)
    if not file.exists():
        raise ValueError(f"分类文件不存在: {path}")
    try:
        data = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"分类 JSON 解析失败: {exc}") from exc
    if isinstance(data, dict):
        data = data.get("categories", [])
    if not isinstance(data, list):
        raise ValueError("分类文件必须是对象数组，或包含 categories 数组的对象")
    try:
        return [CategoryRecord.model_validate(item) for item in data]
    except PydanticValidationError as exc:
        raise ValueError(f"分类定义无效: {exc}") from exc


# ----------------------------------------------------------------------
# 表格
# ----------------------------------------------------------------------


def _build_navigation_table(result: FallbackExtractionResult) -> Table:
    table = Table(title=f"导航提取 (pattern={result.pattern_used or '-'})")
    table.add_column("#", style="dim")
    table.add_column("导航项", style="cyan")
    table.add_column("方法", style="magenta")
    table.add_column("链接数", style="green")
    table.add_column("错误", style="red")

    if result.result is None:
        return table
    dropdowns = result.result.dropdown_extraction.results
    for pos, item in enumerate(result.result.main_navigation.items):
        dropdown = dropdowns[pos] if pos < len(dropdowns) else None
        table.add_row(
            str(item.index),
            item.text,
            dropdown.method.value if dropdown else "-",
            str(dropdown.count) if dropdown else "0",
            (dropdown.error or "") if dropdown else "",
        )
    return table


def _build_attempts_table(result: FallbackExtractionResult) -> Table:
    table = Table(title="模式尝试")
    table.add_column("pattern", style="cyan")
    table.add_column("success", style="yellow")
    table.add_column("items", style="green")
    table.add_column("success_rate", style="magenta")
    table.add_column("error", style="red")
    for attempt in result.attempts:
        table.add_row(
            attempt.pattern,
            "是" if attempt.success else "否",
            str(attempt.main_items),
            f"{attempt.success_rate:.0%}",
            attempt.error or "",
        )
    return table


def _build_filters_table(result: FilterDiscoveryResult) -> Table:
    table = Table(title=f"筛选候选 ({len(result.candidates)})")
    table.add_column("label", style="cyan")
    table.add_column("type", style="magenta")
    table.add_column("score", style="green")
    table.add_column("container", style="blue")
    table.add_column("selector", style="dim")
    for candidate in result.candidates:
        table.add_row(
            candidate.label or "",
            candidate.element_type.value,
            str(candidate.score),
            candidate.container_hint or "",
            candidate.selector,
        )
    return table


def _build_exploration_table(result: FilterExplorationResult) -> Table:
    table = Table(title=f"筛选路径 '{result.category}'")
    table.add_column("filter", style="cyan")
    table.add_column("activation", style="magenta")
    table.add_column("products", style="green")
    for path in result.filter_paths:
        table.add_row(path.filter, path.activation or "-", str(path.products_found))
    return table


def _build_dedup_table(results: list[CategoryDeduplicationResult]) -> Table:
    table = Table(title="分类去重")
    table.add_column("name", style="cyan")
    table.add_column("slug", style="dim")
    table.add_column("mode", style="magenta")
    table.add_column("reason", style="green")
    table.add_column("alias_of / children", style="yellow")
    for r in results:
        related = r.alias_of or ", ".join(r.children)
        table.add_row(r.name, r.slug, r.crawl_mode.value, r.reason, related)
    return table


# ----------------------------------------------------------------------
# 命令
# ----------------------------------------------------------------------


async def _run_navigate(url: str, mode: str, headless: bool) -> FallbackExtractionResult:
    browser_config = config.browser.model_copy(update={"headless": headless})
    async with create_browser_session(browser_config, close_engine=True) as session:
        await session.page.goto(url, timeout_ms=browser_config.timeout_ms)
        driver = RedundantExtractionDriver()
        if mode == "quick":
            return await driver.quick_extract(session.page, url)
        if mode == "comprehensive":
            return await driver.comprehensive_extract(session.page, url)
        return await driver.extract_with_fallback(session.page, url)


@app.command("navigate")
def navigate_command(
    url: str = typer.Argument(..., help="站点首页 URL"),
    mode: str = typer.Option(
        "default",
        "--mode",
        "-m",
        help="提取模式: default/quick/comprehensive",
    ),
    headless: bool = typer.Option(
        True,
        "--headless/--no-headless",
        help="是否使用无头模式",
    ),
    output: str = typer.Option(
        "",
        "--output",
        "-o",
        help="结果 JSON 文件路径",
    ),
):
    """
    提取站点主导航与下拉菜单

    示例:
        catalogspider navigate "https://shop.example.com" --mode quick
    """
    url = _validated_url(url)
    if mode not in {"default", "quick", "comprehensive"}:
        _show_error(f"未知的提取模式: {mode}", "输入验证错误")
        raise typer.Exit(1)

    try:
        result = run_async_safely(_run_navigate(url, mode, headless))
    except KeyboardInterrupt:
        console.print("\n[yellow]用户中断[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        _show_error(str(e))
        raise typer.Exit(1)

    console.print(_build_attempts_table(result))
    console.print(_build_navigation_table(result))
    stats = extraction_stats(result).get("stats") or {}
    style = "green" if result.success else "yellow"
    console.print(
        Panel(
            f"成功: {result.success}\n"
            f"使用模式: {result.pattern_used or '-'}\n"
            f"尝试次数: {result.attempt_count}\n"
            f"效率: {stats.get('efficiency', '-')}\n"
            f"{result.warning or result.error or ''}",
            title="导航提取",
            style=style,
        )
    )
    if output:
        _write_json(output, result.model_dump_json(indent=2))


async def _run_filters(url: str, headless: bool) -> FilterDiscoveryResult:
    browser_config = config.browser.model_copy(update={"headless": headless})
    async with create_browser_session(browser_config, close_engine=True) as session:
        await session.page.goto(url, timeout_ms=browser_config.timeout_ms)
        return await FilterDiscoveryEngine().discover(session.page, url)


@app.command("filters")
def filters_command(
    url: str = typer.Argument(..., help="分类页 URL"),
    headless: bool = typer.Option(
        True,
        "--headless/--no-headless",
        help="是否使用无头模式",
    ),
    output: str = typer.Option(
        "",
        "--output",
        "-o",
        help="结果 JSON 文件路径",
    ),
):
    """发现分类页上的筛选候选"""
    url = _validated_url(url)
    try:
        result = run_async_safely(_run_filters(url, headless))
    except KeyboardInterrupt:
        console.print("\n[yellow]用户中断[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        _show_error(str(e))
        raise typer.Exit(1)

    console.print(_build_filters_table(result))
    warnings = validate_candidates(result)
    if warnings:
        console.print(Panel("\n".join(warnings), title="警告", style="yellow"))
    if result.stats.excluded_labels:
        console.print(f"[dim]已排除: {', '.join(result.stats.excluded_labels)}[/dim]")
    if output:
        _write_json(output, result.model_dump_json(indent=2))


async def _run_explore(url: str, name: str, headless: bool, time_limit: float | None) -> FilterExplorationResult:
    browser_config = config.browser.model_copy(update={"headless": headless})
    deadline = RunDeadline.after(time_limit)
    async with create_browser_session(browser_config, close_engine=True) as session:
        return await FilterExplorationEngine().explore_category(session.page, url, name, deadline)


@app.command("explore")
def explore_command(
    url: str = typer.Argument(..., help="分类页 URL"),
    name: str = typer.Option(
        "",
        "--name",
        "-n",
        help="分类名称（默认取 URL）",
    ),
    time_limit: float | None = typer.Option(
        None,
        "--time-limit",
        help="运行时长上限（秒），到期返回部分结果",
    ),
    headless: bool = typer.Option(
        True,
        "--headless/--no-headless",
        help="是否使用无头模式",
    ),
    output: str = typer.Option(
        "",
        "--output",
        "-o",
        help="结果 JSON 文件路径",
    ),
):
    """逐个应用筛选并收集分类下的商品"""
    url = _validated_url(url)
    try:
        result = run_async_safely(_run_explore(url, name or url, headless, time_limit))
    except KeyboardInterrupt:
        console.print("\n[yellow]用户中断[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        _show_error(str(e))
        raise typer.Exit(1)

    console.print(_build_exploration_table(result))
    stats = result.stats
    console.print(
        Panel(
            f"商品总数: {stats.total_products}\n"
            f"基线商品: {stats.baseline_products}\n"
            f"筛选生效: {stats.filters_applied}/{stats.filters_attempted}\n"
            f"规范化冲突: {stats.canonical_collisions_count}\n"
            f"已取消: {result.cancelled}\n"
            f"{result.error or ''}",
            title="筛选器探索",
            style="red" if result.error else "green",
        )
    )
    if output:
        _write_json(output, result.model_dump_json(indent=2))


@app.command("discover")
def discover_command(
    url: str = typer.Argument(..., help="站点首页 URL"),
    explore_filters: bool = typer.Option(
        False,
        "--filters/--no-filters",
        help="是否对叶子分类进行筛选器探索",
    ),
    max_filter_categories: int = typer.Option(
        10,
        "--max-filter-categories",
        help="最多探索多少个叶子分类的筛选",
    ),
    time_limit: float | None = typer.Option(
        None,
        "--time-limit",
        help="运行时长上限（秒），到期返回部分结果",
    ),
    headless: bool = typer.Option(
        True,
        "--headless/--no-headless",
        help="是否使用无头模式",
    ),
    output_dir: str = typer.Option(
        "output",
        "--output",
        "-o",
        help="输出目录",
    ),
):
    """导航提取 → 子分类探索 → 筛选探索 → 分类去重"""
    url = _validated_url(url)
    console.print(
        Panel(
            f"[bold]站点 URL:[/bold] {url}\n"
            f"[bold]筛选探索:[/bold] {explore_filters}\n"
            f"[bold]时长上限:[/bold] {time_limit if time_limit is not None else '不限'}\n"
            f"[bold]无头模式:[/bold] {headless}\n"
            f"[bold]输出目录:[/bold] {output_dir}",
            title="站点发现",
            style="cyan",
        )
    )
    try:
        summary = run_async_safely(
            run_pipeline(
                url,
                output_dir=output_dir,
                headless=headless,
                explore_filters=explore_filters,
                max_filter_categories=max_filter_categories,
                time_limit_s=time_limit,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]用户中断[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        _show_error(str(e))
        raise typer.Exit(1)

    dedup = summary["deduplication"]
    console.print(
        Panel(
            f"[green]站点发现完成[/green]\n\n"
            f"导航模式: {summary['navigation_pattern'] or '-'}\n"
            f"分类数量: {summary['categories']} (叶子 {summary['leaf_categories']})\n"
            f"商品数量: {summary['products']}\n"
            f"去重: products {dedup['products']}, structural-only {dedup['structural_only']}, "
            f"alias {dedup['alias']}\n"
            f"已取消: {summary['cancelled']}\n"
            f"结果文件: {summary['result_file']}",
            title="执行完成",
            style="green",
        )
    )


@app.command("dedupe")
def dedupe_command(
    file: str = typer.Argument(..., help="分类 JSON 文件（CategoryRecord 数组）"),
    merge_urls: bool = typer.Option(
        True,
        "--merge-urls/--no-merge-urls",
        help="去重前先按 URL 合并同一分类页",
    ),
    output: str = typer.Option(
        "",
        "--output",
        "-o",
        help="结果 JSON 文件路径",
    ),
):
    """对分类列表进行别名 / 结构分类去重"""
    try:
        records = _load_records(file)
    except ValueError as e:
        _show_error(str(e), "输入验证错误")
        raise typer.Exit(1)

    if merge_urls:
        records = UrlCategoryDeduplicator().merge_records(records) + [r for r in records if not r.url]

    results = CategoryDeduplicator().deduplicate(records)
    console.print(_build_dedup_table(results))
    stats = deduplication_stats(results)
    console.print(
        Panel(
            f"总数: {stats['total']}\n"
            f"products: {stats['products']}\n"
            f"structural-only: {stats['structural_only']}\n"
            f"alias: {stats['alias']}\n"
            f"减少比例: {stats['reduction_rate']:.0%}",
            title="去重统计",
            style="green",
        )
    )
    if output:
        payload = json.dumps([r.model_dump(mode="json") for r in results], ensure_ascii=False, indent=2)
        _write_json(output, payload)


def main():
    """CLI 入口点

    供 pyproject.toml 中 [project.scripts] 调用。
    """
    app()


if __name__ == "__main__":
    main()
