"""セッションストア管理CLI"""

import ipaddress
from typing import Optional

import click

from sesman.core.app_factory import build_sesman
from sesman.core.config import get_settings
from sesman.core.logging import get_logger
from sesman.core.manager import Sesman
from sesman.domain.exceptions import BackendError, DomainError

logger = get_logger(__name__)


def get_sesman(ctx: click.Context) -> Sesman:
    """
    コンテキストのセッションマネージャーを取得する。

    未設定の場合は環境変数の設定から生成する。
    インメモリのストアはプロセスごとに独立しているため、
    CLIからはFirestore / Redisのストアのみ意味を持つ。
    """
    if ctx.obj is None:
        try:
            ctx.obj = build_sesman(get_settings())
        except DomainError as e:
            click.echo(f"✗ {e.message}", err=True)
            raise click.Abort()
    return ctx.obj


@click.group()
def cli() -> None:
    """セッションストア管理CLI"""
    pass


@cli.command("count")
@click.pass_context
def count_sessions(ctx: click.Context) -> None:
    """有効なセッション数を表示する"""
    sesman = get_sesman(ctx)
    click.echo(
        f"{sesman.provider.label}: {sesman.active_sessions()} active sessions"
    )


@cli.command("gc")
@click.pass_context
def run_gc(ctx: click.Context) -> None:
    """期限切れセッションを即座に削除する"""
    sesman = get_sesman(ctx)
    deleted = sesman.gc()
    click.echo(f"✓ Removed {deleted} expired sessions")


@cli.command("blclean")
@click.pass_context
def run_blclean(ctx: click.Context) -> None:
    """ブラックリストの清掃を即座に実行する"""
    sesman = get_sesman(ctx)
    summary = sesman.blc()
    click.echo(
        f"✓ Blacklist cleaned: {summary.reviewed} reviewed, {summary.deleted} deleted"
    )


@cli.command("flush")
@click.option(
    "--yes",
    "-y",
    is_flag=True,
    help="確認をスキップ",
)
@click.pass_context
def flush_sessions(ctx: click.Context, yes: bool) -> None:
    """全セッションを削除する"""
    sesman = get_sesman(ctx)

    if not yes:
        click.confirm(
            f"⚠️  All sessions in the {sesman.provider.label} store will be deleted. Continue?",
            abort=True,
        )

    try:
        sesman.repository.flush()
    except BackendError as e:
        click.echo(f"✗ Flush failed: {e.message}", err=True)
        raise click.Abort()
    click.echo("✓ All sessions deleted")


@cli.group("blacklist")
def blacklist() -> None:
    """IPアドレスのブラックリスト操作"""
    pass


def validate_ip(ctx: click.Context, param: click.Parameter, value: str) -> str:
    try:
        return str(ipaddress.ip_address(value))
    except ValueError:
        raise click.BadParameter(f"{value!r} is not an IP address")


@blacklist.command("add")
@click.argument("ip", callback=validate_ip)
@click.option("--path", default="/", help="検知したリクエストのパス")
@click.option("--details", default=None, help="登録理由などの補足情報")
@click.pass_context
def blacklist_add(
    ctx: click.Context, ip: str, path: str, details: Optional[str]
) -> None:
    """
    IPアドレスをブラックリストに登録する。

    IP: 登録するIPアドレス
    """
    sesman = get_sesman(ctx)
    sesman.add_blacklisting(ip, path, details)
    click.echo(f"✓ {ip} added to the blacklist")


@blacklist.command("check")
@click.argument("ip", callback=validate_ip)
@click.pass_context
def blacklist_check(ctx: click.Context, ip: str) -> None:
    """
    IPアドレスがブラックリストに登録されているか確認する。

    登録されていない場合は終了コード1で終了する。

    IP: 確認するIPアドレス
    """
    sesman = get_sesman(ctx)
    if sesman.is_blacklisted(ip):
        click.echo(f"{ip} is blacklisted")
    else:
        click.echo(f"{ip} is not blacklisted")
        ctx.exit(1)


if __name__ == "__main__":
    cli()
